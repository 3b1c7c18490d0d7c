"""
Ledger Session

Stateful ledger view for one actor: date range, tab, filters, sort, page,
page size and visible columns, plus the rows currently shown.

Every change that requires a re-query bumps a generation counter; a load
applies its result only if its generation is still the latest one issued,
so a slow earlier load can never overwrite a newer one.
"""

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

import structlog

from resalebooks.config import get_settings
from resalebooks.errors import BooksError, InvalidInput, NotFound
from resalebooks.ledger.engine import delete_source, fetch_ledger_rows, write_back
from resalebooks.ledger.export import CsvExport, export_rows
from resalebooks.ledger.rows import LedgerRow, normalize_row
from resalebooks.ledger.view import (
    COLUMN_KEYS,
    LedgerFilters,
    LedgerPage,
    SortSpec,
    check_tab,
    column,
    filter_and_sort,
    paginate,
)
from resalebooks.store.base import DateRange, RecordStore

logger = structlog.get_logger(__name__)


class ViewConsistency(str, Enum):
    """Whether the shown rows reflect the current filters and sort"""
    FRESH = "fresh"
    # Inline patches applied without re-filtering or re-sorting
    PATCHED = "patched"


class LedgerSession:
    """
    Example:
        session = LedgerSession(store, DateRange.parse("2025-03-01", "2025-03-31"))
        await session.refresh()
        session.set_sort("amount")
        await session.patch_inline(session.view.rows[0].id, {"vendor": "Acme"})
    """

    def __init__(
        self,
        store: RecordStore,
        date_range: DateRange,
        page_size: Optional[int] = None,
        row_limit: Optional[int] = None,
    ):
        ledger_settings = get_settings().ledger
        self._store = store
        self._row_limit = row_limit or ledger_settings.row_limit
        self._page_sizes = list(ledger_settings.page_sizes)

        self.date_range = date_range
        self.tab = "all"
        self.filters = LedgerFilters()
        self.sort = SortSpec(ledger_settings.default_sort, ledger_settings.default_descending)
        self.page = 1
        self.page_size = page_size or ledger_settings.default_page_size
        self.hidden_columns: set = set()

        self.loading = False
        self.error: Optional[str] = None
        self.consistency = ViewConsistency.FRESH
        self.view = LedgerPage(page_size=self.page_size)

        self._generation = 0
        self._rows: List[LedgerRow] = []
        self._filtered: List[LedgerRow] = []

    # ------------------------------------------------------------------
    # loading
    # ------------------------------------------------------------------

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def filtered_rows(self) -> List[LedgerRow]:
        """All rows after tab scope, filters and sort (before pagination)"""
        return list(self._filtered)

    async def refresh(self) -> bool:
        """
        Re-query the store for the current range.

        Returns False when the result was discarded because a newer load
        was issued while this one was in flight.
        """
        self._generation += 1
        generation = self._generation
        self.loading = True

        try:
            rows = await fetch_ledger_rows(self._store, self.date_range, self._row_limit)
        except BooksError as e:
            if generation != self._generation:
                logger.debug("Discarding stale ledger failure", generation=generation, latest=self._generation)
                return False
            logger.warning("Ledger load failed", error=str(e))
            self._rows = []
            self.error = f"Failed to load transactions: {e}"
            self._finish_load()
            return True
        finally:
            # a newer load in flight owns the flag
            if generation == self._generation:
                self.loading = False

        if generation != self._generation:
            logger.debug("Discarding stale ledger load", generation=generation, latest=self._generation)
            return False

        self._rows = rows
        self.error = None
        self._finish_load()
        return True

    def _finish_load(self) -> None:
        self.consistency = ViewConsistency.FRESH
        self._recompute()

    def _recompute(self) -> None:
        self._filtered = filter_and_sort(self._rows, self.tab, self.filters, self.sort)
        self._repage()

    def _repage(self) -> None:
        self.view = paginate(self._filtered, self.page, self.page_size)
        self.page = self.view.page

    # ------------------------------------------------------------------
    # view state
    # ------------------------------------------------------------------

    async def set_date_range(self, date_range: DateRange) -> bool:
        self.date_range = date_range
        self.page = 1
        return await self.refresh()

    async def set_tab(self, tab: str) -> bool:
        self.tab = check_tab(tab)
        self.page = 1
        return await self.refresh()

    async def set_filters(self, filters: LedgerFilters) -> bool:
        self.filters = filters
        self.page = 1
        return await self.refresh()

    def set_sort(self, key: str, descending: Optional[bool] = None) -> None:
        """Sort by ``key``; re-selecting the current key flips the direction"""
        if descending is None:
            descending = not self.sort.descending if key == self.sort.key else self.sort.descending
        self.sort = SortSpec(key, descending)
        self.page = 1
        self._recompute()

    def set_page(self, page: int) -> None:
        self.page = page
        self._repage()

    def set_page_size(self, page_size: int) -> None:
        if page_size not in self._page_sizes:
            raise InvalidInput(f"Page size must be one of {self._page_sizes}")
        self.page_size = page_size
        self.page = 1
        self._repage()

    def set_column_visible(self, key: str, visible: bool) -> None:
        column(key)
        if visible:
            self.hidden_columns.discard(key)
        else:
            self.hidden_columns.add(key)

    @property
    def visible_columns(self) -> List[str]:
        return [key for key in COLUMN_KEYS if key not in self.hidden_columns]

    def export_csv(self) -> CsvExport:
        """Every filtered row (not just this page), visible columns only"""
        return export_rows(
            self._filtered,
            self.date_range,
            tab=self.tab,
            platform=self.filters.platform,
            columns=self.visible_columns,
        )

    # ------------------------------------------------------------------
    # mutations
    # ------------------------------------------------------------------

    def _find(self, row_id: str, operation: str) -> LedgerRow:
        for row in self._rows:
            if row.id == row_id:
                return row
        raise NotFound(f"Ledger row {row_id} is not loaded", operation=operation)

    async def edit(self, row_id: str, changes: Mapping[str, Any]) -> bool:
        """Write changes back to the source record, then reload the view"""
        row = self._find(row_id, "edit ledger row")
        await write_back(self._store, row, changes)
        return await self.refresh()

    async def patch_inline(self, row_id: str, changes: Mapping[str, Any]) -> LedgerRow:
        """
        Write changes back and patch the row in place.

        The row keeps its position even if it no longer matches the filters
        or sort; the view stays PATCHED until the next full load.
        """
        row = self._find(row_id, "edit ledger row")
        stored = await write_back(self._store, row, changes)
        patched = normalize_row(row.source_type, stored)

        replace: Dict[str, LedgerRow] = {row.id: patched}
        self._rows = [replace.get(r.id, r) for r in self._rows]
        self._filtered = [replace.get(r.id, r) for r in self._filtered]
        self.view.rows = [replace.get(r.id, r) for r in self.view.rows]
        self.consistency = ViewConsistency.PATCHED
        return patched

    async def delete(self, row_id: str) -> bool:
        row = self._find(row_id, "delete ledger row")
        await delete_source(self._store, row)
        self._rows = [r for r in self._rows if r.id != row_id]
        self._recompute()
        return await self.refresh()
