"""
Taxonomy Resolver

Find-or-create for the Department > Category > Subcategory hierarchy.

``ensure`` is idempotent: repeated calls with the same name (compared
case-insensitively, after trimming) under the same parent return the same
row. The dedup universe is whatever the store makes visible to the actor,
i.e. shared rows plus the actor's own rows. New rows are always personal.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import structlog

from resalebooks.errors import Conflict, InvalidHierarchy, InvalidInput
from resalebooks.store.base import Query, RecordStore, Row

logger = structlog.get_logger(__name__)


class TaxonomyLevel(str, Enum):
    """Levels of the product taxonomy"""
    DEPARTMENT = "department"
    CATEGORY = "category"
    SUBCATEGORY = "subcategory"

    @property
    def table(self) -> str:
        return {
            TaxonomyLevel.DEPARTMENT: "departments",
            TaxonomyLevel.CATEGORY: "categories",
            TaxonomyLevel.SUBCATEGORY: "subcategories",
        }[self]

    @property
    def parent(self) -> Optional["TaxonomyLevel"]:
        return {
            TaxonomyLevel.DEPARTMENT: None,
            TaxonomyLevel.CATEGORY: TaxonomyLevel.DEPARTMENT,
            TaxonomyLevel.SUBCATEGORY: TaxonomyLevel.CATEGORY,
        }[self]

    @property
    def parent_column(self) -> Optional[str]:
        parent = self.parent
        return f"{parent.value}_id" if parent else None

    @property
    def label(self) -> str:
        return "Sub-category" if self is TaxonomyLevel.SUBCATEGORY else self.value.capitalize()


@dataclass(frozen=True)
class TaxonomyNode:
    """One resolved taxonomy row"""
    level: TaxonomyLevel
    id: str
    name: str
    parent_id: Optional[str] = None

    @classmethod
    def from_row(cls, level: TaxonomyLevel, row: Row) -> "TaxonomyNode":
        parent_id = row.get(level.parent_column) if level.parent_column else None
        return cls(
            level=level,
            id=str(row["id"]),
            name=row["name"],
            parent_id=str(parent_id) if parent_id is not None else None,
        )


@dataclass(frozen=True)
class TaxonomyTriple:
    """Flattened department/category/subcategory path used by quick find"""
    department_id: str
    department: str
    category_id: str
    category: str
    subcategory_id: Optional[str] = None
    subcategory: str = ""


class TaxonomyResolver:
    """
    Lists and ensures taxonomy rows through the record store.

    Example:
        resolver = TaxonomyResolver(store)
        dept = await resolver.ensure(TaxonomyLevel.DEPARTMENT, "Electronics")
        cat = await resolver.ensure(TaxonomyLevel.CATEGORY, "Phones", parent_id=dept.id)
    """

    def __init__(self, store: RecordStore):
        self._store = store

    # ------------------------------------------------------------------
    # lists
    # ------------------------------------------------------------------

    async def _list(self, level: TaxonomyLevel, parent_id: Optional[Any] = None) -> List[TaxonomyNode]:
        equality: Dict[str, Any] = {"is_active": True}
        if level.parent_column:
            equality[level.parent_column] = parent_id
        rows = await self._store.select(
            level.table,
            Query(equality=equality, order=[("name", True)]),
        )
        return [TaxonomyNode.from_row(level, row) for row in rows]

    async def list_departments(self) -> List[TaxonomyNode]:
        return await self._list(TaxonomyLevel.DEPARTMENT)

    async def list_categories(self, department_id: Optional[Any]) -> List[TaxonomyNode]:
        if not department_id:
            return []
        return await self._list(TaxonomyLevel.CATEGORY, department_id)

    async def list_subcategories(self, category_id: Optional[Any]) -> List[TaxonomyNode]:
        if not category_id:
            return []
        return await self._list(TaxonomyLevel.SUBCATEGORY, category_id)

    async def list_all_triples(self) -> List[TaxonomyTriple]:
        """Every visible department/category/subcategory path"""
        active = Query(equality={"is_active": True}, order=[("name", True)])
        departments, categories, subcategories = await asyncio.gather(
            self._store.select("departments", active),
            self._store.select("categories", active),
            self._store.select("subcategories", active),
        )

        department_names = {str(d["id"]): d["name"] for d in departments}
        subs_by_category: Dict[str, List[Row]] = {}
        for sub in subcategories:
            subs_by_category.setdefault(str(sub["category_id"]), []).append(sub)

        triples = []
        for cat in categories:
            dep_id = str(cat["department_id"])
            if dep_id not in department_names:
                continue
            cat_id = str(cat["id"])
            subs = subs_by_category.get(cat_id)
            if not subs:
                triples.append(TaxonomyTriple(dep_id, department_names[dep_id], cat_id, cat["name"]))
                continue
            for sub in subs:
                triples.append(
                    TaxonomyTriple(dep_id, department_names[dep_id], cat_id, cat["name"], str(sub["id"]), sub["name"])
                )

        triples.sort(key=lambda t: (t.department.lower(), t.category.lower(), t.subcategory.lower()))
        return triples

    # ------------------------------------------------------------------
    # ensure
    # ------------------------------------------------------------------

    async def _find(self, level: TaxonomyLevel, name: str, parent_id: Optional[Any]) -> Optional[Row]:
        equality = {level.parent_column: parent_id} if level.parent_column else {}
        rows = await self._store.select(
            level.table,
            Query(
                equality=equality,
                ilike={"name": name},
                order=[("name", True), ("created_at", True), ("id", True)],
                limit=1,
            ),
        )
        return rows[0] if rows else None

    async def ensure(
        self,
        level: TaxonomyLevel,
        name: Optional[str],
        parent_id: Optional[Any] = None,
    ) -> TaxonomyNode:
        """
        Return the existing row for ``name`` under ``parent_id`` or create it.

        Raises:
            InvalidInput: empty name
            InvalidHierarchy: parent id missing or not visible
        """
        level = TaxonomyLevel(level)
        operation = f"ensure {level.value}"
        clean = str(name or "").strip()
        if not clean:
            raise InvalidInput(f"{level.label} name required.", operation=operation)

        if level.parent is not None:
            if not parent_id:
                raise InvalidHierarchy(f"{level.parent.value} id required.", operation=operation)
            parent = await self._store.get(level.parent.table, parent_id)
            if parent is None:
                raise InvalidHierarchy(
                    f"{level.parent.label} {parent_id} does not exist.", operation=operation
                )
        else:
            parent_id = None

        existing = await self._find(level, clean, parent_id)
        if existing is not None:
            logger.debug("Taxonomy row reused", level=level.value, name=existing["name"], id=str(existing["id"]))
            return TaxonomyNode.from_row(level, existing)

        values: Dict[str, Any] = {"name": clean, "is_active": True}
        if level.parent_column:
            values[level.parent_column] = parent_id

        try:
            created = await self._store.insert(level.table, values)
        except Conflict:
            # Someone created the same name between our lookup and insert
            existing = await self._find(level, clean, parent_id)
            if existing is None:
                raise
            logger.info("Taxonomy insert raced, reusing existing row", level=level.value, name=clean)
            return TaxonomyNode.from_row(level, existing)

        logger.info("Taxonomy row created", level=level.value, name=clean, id=str(created["id"]))
        return TaxonomyNode.from_row(level, created)

    async def ensure_department(self, name: str) -> TaxonomyNode:
        return await self.ensure(TaxonomyLevel.DEPARTMENT, name)

    async def ensure_category(self, department_id: Any, name: str) -> TaxonomyNode:
        return await self.ensure(TaxonomyLevel.CATEGORY, name, parent_id=department_id)

    async def ensure_subcategory(self, category_id: Any, name: str) -> TaxonomyNode:
        return await self.ensure(TaxonomyLevel.SUBCATEGORY, name, parent_id=category_id)


def quick_find(triples: List[TaxonomyTriple], text: str, limit: int = 12) -> List[TaxonomyTriple]:
    """
    Rank taxonomy paths against free text.

    Each query token found in "department category subcategory" scores 10,
    plus 3 when it opens the path and 2 when it starts a word. Paths whose
    subcategory (or category) contains every token get a further 5 (or 3).
    """
    tokens = text.strip().lower().split()
    if not tokens:
        return []

    def score(triple: TaxonomyTriple) -> int:
        haystack = f"{triple.department} {triple.category} {triple.subcategory}".lower()
        total = 0
        for token in tokens:
            idx = haystack.find(token)
            if idx < 0:
                continue
            total += 10
            if idx == 0:
                total += 3
            if idx == 0 or not haystack[idx - 1].isalnum():
                total += 2
        if all(token in triple.subcategory.lower() for token in tokens):
            total += 5
        if all(token in triple.category.lower() for token in tokens):
            total += 3
        return total

    scored = [(score(t), i, t) for i, t in enumerate(triples)]
    ranked = sorted((s for s in scored if s[0] > 0), key=lambda s: (-s[0], s[1]))
    return [t for _, _, t in ranked[:limit]]
