"""
Sale platform vocabulary.

Shared default platforms plus the actor's own. Names are unique
case-insensitively among the platforms visible to the actor.
"""

from typing import Any, List, Optional

import structlog

from resalebooks.errors import Conflict, InvalidInput
from resalebooks.store.base import Query, RecordStore, Row

logger = structlog.get_logger(__name__)

TABLE = "sale_platforms"


class PlatformCatalog:
    def __init__(self, store: RecordStore):
        self._store = store

    async def list_platforms(self) -> List[Row]:
        """Own platforms first, then shared ones, each alphabetically"""
        rows = await self._store.select(TABLE, Query(order=[("name", True)]))
        return sorted(
            rows,
            key=lambda r: (r.get("owner_id") != self._store.actor_id, r["name"].lower()),
        )

    async def _check_unique(self, name: str, operation: str, exclude_id: Optional[Any] = None) -> None:
        clashes = await self._store.select(TABLE, Query(ilike={"name": name}))
        for row in clashes:
            if exclude_id is not None and str(row["id"]) == str(exclude_id):
                continue
            raise Conflict(f'"{row["name"]}" already exists.', operation=operation)

    @staticmethod
    def _clean(name: Optional[str], operation: str) -> str:
        clean = str(name or "").strip()
        if not clean:
            raise InvalidInput("Platform name required.", operation=operation)
        return clean

    async def add_platform(self, name: str) -> Row:
        clean = self._clean(name, "add platform")
        await self._check_unique(clean, "add platform")
        row = await self._store.insert(TABLE, {"name": clean, "is_default": False})
        logger.info("Platform added", name=clean)
        return row

    async def rename_platform(self, platform_id: Any, name: str) -> Row:
        clean = self._clean(name, "rename platform")
        await self._check_unique(clean, "rename platform", exclude_id=platform_id)
        return await self._store.update(TABLE, platform_id, {"name": clean})

    async def delete_platform(self, platform_id: Any) -> None:
        await self._store.delete(TABLE, platform_id)
        logger.info("Platform deleted", id=str(platform_id))
