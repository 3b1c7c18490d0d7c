"""
Analytics groupings: saved department/category/subcategory triples.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, List, Optional

import structlog

from resalebooks.errors import InvalidHierarchy
from resalebooks.store.base import Query, RecordStore, Row
from resalebooks.taxonomy.selection import TaxonomySelection

logger = structlog.get_logger(__name__)

TABLE = "analytics_groupings"


@dataclass(frozen=True)
class GroupingView:
    id: str
    department_id: str
    department: str
    category_id: str
    category: str
    subcategory_id: str
    subcategory: str


class GroupingService:
    def __init__(self, store: RecordStore):
        self._store = store

    async def _check_hierarchy(self, department_id: Any, category_id: Any, subcategory_id: Any, operation: str):
        department, category, subcategory = await asyncio.gather(
            self._store.get("departments", department_id),
            self._store.get("categories", category_id),
            self._store.get("subcategories", subcategory_id),
        )
        if department is None:
            raise InvalidHierarchy(f"Department {department_id} does not exist.", operation=operation)
        if category is None or str(category["department_id"]) != str(department["id"]):
            raise InvalidHierarchy(
                f"Category {category_id} is not under department {department_id}.", operation=operation
            )
        if subcategory is None or str(subcategory["category_id"]) != str(category["id"]):
            raise InvalidHierarchy(
                f"Sub-category {subcategory_id} is not under category {category_id}.", operation=operation
            )

    async def add_grouping(self, department_id: Any, category_id: Any, subcategory_id: Any) -> Row:
        await self._check_hierarchy(department_id, category_id, subcategory_id, "add grouping")
        row = await self._store.insert(
            TABLE,
            {"department_id": department_id, "category_id": category_id, "subcategory_id": subcategory_id},
        )
        logger.info("Grouping added", id=str(row["id"]))
        return row

    async def update_grouping(self, grouping_id: Any, department_id: Any, category_id: Any, subcategory_id: Any) -> Row:
        await self._check_hierarchy(department_id, category_id, subcategory_id, "update grouping")
        return await self._store.update(
            TABLE,
            grouping_id,
            {"department_id": department_id, "category_id": category_id, "subcategory_id": subcategory_id},
        )

    async def delete_grouping(self, grouping_id: Any) -> None:
        await self._store.delete(TABLE, grouping_id)
        logger.info("Grouping deleted", id=str(grouping_id))

    async def save_selection(self, selection: TaxonomySelection, grouping_id: Optional[Any] = None) -> Row:
        """Resolve a picker selection (creating typed names) and save it"""
        ids = await selection.resolve()
        if grouping_id is None:
            return await self.add_grouping(ids.department_id, ids.category_id, ids.subcategory_id)
        return await self.update_grouping(grouping_id, ids.department_id, ids.category_id, ids.subcategory_id)

    async def list_groupings(self) -> List[GroupingView]:
        """Groupings with their names flattened; unknown ids show as empty names"""
        groupings, departments, categories, subcategories = await asyncio.gather(
            self._store.select(TABLE, Query(order=[("created_at", True), ("id", True)])),
            self._store.select("departments"),
            self._store.select("categories"),
            self._store.select("subcategories"),
        )
        names = {}
        for rows in (departments, categories, subcategories):
            names.update({str(r["id"]): r["name"] for r in rows})

        return [
            GroupingView(
                id=str(g["id"]),
                department_id=str(g["department_id"]),
                department=names.get(str(g["department_id"]), ""),
                category_id=str(g["category_id"]),
                category=names.get(str(g["category_id"]), ""),
                subcategory_id=str(g["subcategory_id"]),
                subcategory=names.get(str(g["subcategory_id"]), ""),
            )
            for g in groupings
        ]
