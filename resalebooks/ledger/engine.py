"""
Ledger Merge Engine

Fetches the five record streams for a date range concurrently, normalises
them into ledger rows and runs the view pipeline. Edits and deletes are
written back to the source record.
"""

import asyncio
from typing import Any, List, Mapping, Optional

import structlog

from resalebooks.config import get_settings
from resalebooks.database.models import DATE_COLUMNS
from resalebooks.ledger.rows import LedgerRow, SourceType, normalize_row, to_source_patch
from resalebooks.ledger.view import LedgerFilters, LedgerPage, SortSpec, filter_and_sort, paginate
from resalebooks.store.base import DateRange, Query, RecordStore, Row

logger = structlog.get_logger(__name__)


async def fetch_ledger_rows(
    store: RecordStore,
    date_range: DateRange,
    row_limit: Optional[int] = None,
) -> List[LedgerRow]:
    """
    All five streams in the range, newest first per stream, capped per stream.

    Fails as a whole if any stream fails.
    """
    row_limit = row_limit or get_settings().ledger.row_limit
    sources = list(SourceType)
    results = await asyncio.gather(
        *(
            store.select(
                source.table,
                Query(
                    date_range=date_range,
                    order=[(DATE_COLUMNS[source.table], False)],
                    limit=row_limit,
                ),
            )
            for source in sources
        )
    )

    rows: List[LedgerRow] = []
    for source, records in zip(sources, results):
        if len(records) >= row_limit:
            logger.warning("Ledger stream hit row limit", source=source.value, limit=row_limit)
        rows.extend(normalize_row(source, record) for record in records)

    logger.debug("Ledger rows fetched", rows=len(rows), start=str(date_range.start), end=str(date_range.end))
    return rows


async def load_ledger(
    store: RecordStore,
    date_range: DateRange,
    tab: str = "all",
    filters: Optional[LedgerFilters] = None,
    sort: Optional[SortSpec] = None,
    page: int = 1,
    page_size: Optional[int] = None,
) -> LedgerPage:
    """One full pipeline run: fetch, normalise, scope, filter, sort, paginate"""
    page_size = page_size or get_settings().ledger.default_page_size
    rows = await fetch_ledger_rows(store, date_range)
    return paginate(filter_and_sort(rows, tab, filters, sort), page, page_size)


async def write_back(store: RecordStore, row: LedgerRow, changes: Mapping[str, Any]) -> Row:
    """Apply ledger field edits to the source record and return it as stored"""
    patch = to_source_patch(row.source_type, changes)
    stored = await store.update(row.source_type.table, row.source_id, patch)
    logger.info("Ledger row updated", row_id=row.id, fields=sorted(changes))
    return stored


async def delete_source(store: RecordStore, row: LedgerRow) -> None:
    await store.delete(row.source_type.table, row.source_id)
    logger.info("Ledger row deleted", row_id=row.id)
