"""
Cascading taxonomy selection.

Holds the department/category/subcategory picker state for one form. A level
is either *picked* (an existing option, carrying its id) or *typed* (free
text that :meth:`TaxonomySelection.resolve` turns into a row on save).
Changing a level clears every level below it.
"""

from dataclasses import dataclass, field
from typing import List, Optional

import structlog

from resalebooks.errors import InvalidInput
from resalebooks.taxonomy.resolver import TaxonomyLevel, TaxonomyNode, TaxonomyResolver

logger = structlog.get_logger(__name__)


@dataclass
class LevelState:
    text: str = ""
    id: Optional[str] = None
    name: Optional[str] = None
    options: List[TaxonomyNode] = field(default_factory=list)

    def clear(self) -> None:
        self.text = ""
        self.id = None
        self.name = None
        self.options = []

    def pick(self, node: TaxonomyNode) -> None:
        self.text = node.name
        self.id = node.id
        self.name = node.name

    def type(self, text: str) -> bool:
        """Set free text; returns True when the text actually changed"""
        if text == self.text:
            return False
        self.text = text
        if self.id is not None and text != self.name:
            self.id = None
            self.name = None
        return True


@dataclass(frozen=True)
class ResolvedTaxonomy:
    department_id: str
    category_id: str
    subcategory_id: str


class TaxonomySelection:
    """
    Example:
        selection = TaxonomySelection(resolver)
        await selection.load()
        await selection.pick_department(selection.department.options[0])
        selection.type_category("Phones")
        selection.type_subcategory("Android")
        ids = await selection.resolve()
    """

    def __init__(self, resolver: TaxonomyResolver):
        self._resolver = resolver
        self.department = LevelState()
        self.category = LevelState()
        self.subcategory = LevelState()

    async def load(self) -> None:
        self.department.options = await self._resolver.list_departments()

    async def pick_department(self, node: TaxonomyNode) -> None:
        self.department.pick(node)
        self.category.clear()
        self.subcategory.clear()
        self.category.options = await self._resolver.list_categories(node.id)

    async def pick_category(self, node: TaxonomyNode) -> None:
        self.category.pick(node)
        self.subcategory.clear()
        self.subcategory.options = await self._resolver.list_subcategories(node.id)

    def pick_subcategory(self, node: TaxonomyNode) -> None:
        self.subcategory.pick(node)

    def type_department(self, text: str) -> None:
        if self.department.type(text):
            self.category.clear()
            self.subcategory.clear()

    def type_category(self, text: str) -> None:
        if self.category.type(text):
            self.subcategory.clear()

    def type_subcategory(self, text: str) -> None:
        self.subcategory.type(text)

    @property
    def can_save(self) -> bool:
        return all(level.text.strip() for level in (self.department, self.category, self.subcategory))

    async def resolve(self) -> ResolvedTaxonomy:
        """Ensure every typed level exists and return the three ids"""
        if not self.can_save:
            raise InvalidInput(
                "Department, Category and Sub-category are required.", operation="resolve taxonomy"
            )

        parent_id = None
        for level, state in (
            (TaxonomyLevel.DEPARTMENT, self.department),
            (TaxonomyLevel.CATEGORY, self.category),
            (TaxonomyLevel.SUBCATEGORY, self.subcategory),
        ):
            if state.id is None:
                node = await self._resolver.ensure(level, state.text, parent_id=parent_id)
                state.pick(node)
            parent_id = state.id

        logger.debug(
            "Taxonomy selection resolved",
            department=self.department.name,
            category=self.category.name,
            subcategory=self.subcategory.name,
        )
        return ResolvedTaxonomy(self.department.id, self.category.id, self.subcategory.id)
