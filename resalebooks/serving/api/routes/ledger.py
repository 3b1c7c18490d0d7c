"""
Ledger API Endpoints

Merged transaction view with filters, sort, pagination, CSV export and
write-back edits.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query, Response
from pydantic import BaseModel
import structlog

from resalebooks.config import get_settings
from resalebooks.errors import InvalidInput
from resalebooks.ledger import (
    COLUMN_KEYS,
    TABS,
    LedgerFilters,
    LedgerRow,
    SortSpec,
    delete_source,
    export_rows,
    fetch_ledger_rows,
    filter_and_sort,
    load_ledger,
    normalize_row,
    parse_source_type,
    write_back,
)
from resalebooks.serving.api.dependencies import get_store
from resalebooks.store import DateRange, RecordStore

router = APIRouter()
logger = structlog.get_logger(__name__)
settings = get_settings()


class LedgerRowOut(BaseModel):
    id: str
    source_type: str
    source_id: str
    date: Optional[str]
    amount: Optional[float]
    description: str
    vendor: str
    platform: str
    ledger_account: str
    bank_account: str
    related_id: str


class LedgerPageOut(BaseModel):
    """One page of the ledger"""
    start: date
    end: date
    tab: str
    rows: List[LedgerRowOut]
    total_after_filter: int
    page: int
    page_size: int
    total_pages: int


@dataclass
class LedgerParams:
    date_range: DateRange
    tab: str
    filters: LedgerFilters
    sort: SortSpec


def ledger_params(
    start: Optional[date] = None,
    end: Optional[date] = None,
    tab: str = Query("all", enum=list(TABS)),
    q: str = "",
    min_amount: Optional[float] = None,
    max_amount: Optional[float] = None,
    platform: str = "",
    sort: str = Query(settings.ledger.default_sort, enum=list(COLUMN_KEYS)),
    direction: str = Query("desc" if settings.ledger.default_descending else "asc", enum=["asc", "desc"]),
) -> LedgerParams:
    # Default to last 30 days
    if not end:
        end = date.today()
    if not start:
        start = end - timedelta(days=30)
    return LedgerParams(
        date_range=DateRange(start, end),
        tab=tab,
        filters=LedgerFilters(search=q, min_amount=min_amount, max_amount=max_amount, platform=platform),
        sort=SortSpec(sort, direction == "desc"),
    )


@router.get("", response_model=LedgerPageOut)
async def get_ledger(
    params: LedgerParams = Depends(ledger_params),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = None,
    store: RecordStore = Depends(get_store),
) -> LedgerPageOut:
    page_size = page_size or settings.ledger.default_page_size
    if page_size not in settings.ledger.page_sizes:
        raise InvalidInput(f"Page size must be one of {settings.ledger.page_sizes}", operation="load ledger")

    result = await load_ledger(
        store,
        params.date_range,
        tab=params.tab,
        filters=params.filters,
        sort=params.sort,
        page=page,
        page_size=page_size,
    )
    return LedgerPageOut(
        start=params.date_range.start,
        end=params.date_range.end,
        tab=params.tab,
        rows=[LedgerRowOut(**row.to_dict()) for row in result.rows],
        total_after_filter=result.total_after_filter,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
    )


@router.get("/export")
async def export_ledger(
    params: LedgerParams = Depends(ledger_params),
    columns: Optional[str] = Query(None, description="Comma-separated visible columns"),
    store: RecordStore = Depends(get_store),
) -> Response:
    """Every filtered row (all pages) as CSV"""
    visible = [c.strip() for c in columns.split(",") if c.strip()] if columns else None
    rows = await fetch_ledger_rows(store, params.date_range)
    export = export_rows(
        filter_and_sort(rows, params.tab, params.filters, params.sort),
        params.date_range,
        tab=params.tab,
        platform=params.filters.platform,
        columns=visible,
    )
    logger.info("Ledger exported", filename=export.filename)
    return Response(
        content=export.content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )


@router.patch("/{source_type}/{source_id}", response_model=LedgerRowOut)
async def edit_ledger_row(
    source_type: str,
    source_id: str,
    changes: Dict[str, Any] = Body(...),
    store: RecordStore = Depends(get_store),
) -> LedgerRowOut:
    """Write ledger field edits back to the source record"""
    source = parse_source_type(source_type)
    row = LedgerRow(id=f"{source.value}:{source_id}", source_type=source, source_id=source_id)
    stored = await write_back(store, row, changes)
    return LedgerRowOut(**normalize_row(source, stored).to_dict())


@router.delete("/{source_type}/{source_id}", status_code=204)
async def delete_ledger_row(
    source_type: str,
    source_id: str,
    store: RecordStore = Depends(get_store),
) -> Response:
    source = parse_source_type(source_type)
    await delete_source(store, LedgerRow(id=f"{source.value}:{source_id}", source_type=source, source_id=source_id))
    return Response(status_code=204)
