"""
Ledger view pipeline: tab scope -> filters -> sort -> paginate.

Every step is a pure function over a list of :class:`LedgerRow`.
"""

from dataclasses import dataclass, field
from math import ceil
from typing import Any, List, Optional, Sequence, Tuple

from resalebooks.errors import InvalidInput
from resalebooks.ledger.rows import LedgerRow, SourceType

TABS = ("all", "inventory", "sale", "refund", "expense")


@dataclass(frozen=True)
class LedgerColumn:
    key: str
    label: str
    numeric: bool = False


COLUMNS: Tuple[LedgerColumn, ...] = (
    LedgerColumn("date", "Date"),
    LedgerColumn("source_type", "Type"),
    LedgerColumn("description", "Description"),
    LedgerColumn("vendor", "Vendor"),
    LedgerColumn("platform", "Platform"),
    LedgerColumn("ledger_account", "GL Account"),
    LedgerColumn("bank_account", "Bank Account"),
    LedgerColumn("amount", "Amount", numeric=True),
    LedgerColumn("related_id", "Related ID"),
)
COLUMN_KEYS = tuple(c.key for c in COLUMNS)
_BY_KEY = {c.key: c for c in COLUMNS}


def column(key: str) -> LedgerColumn:
    try:
        return _BY_KEY[key]
    except KeyError:
        raise InvalidInput(f"Unknown ledger column '{key}'") from None


@dataclass(frozen=True)
class LedgerFilters:
    search: str = ""
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None
    platform: str = ""

    def matches(self, row: LedgerRow) -> bool:
        term = self.search.strip().lower()
        if term:
            haystack = " ".join(
                (row.description, row.vendor, row.platform, row.bank_account, row.ledger_account, row.source_type.value)
            ).lower()
            if term not in haystack:
                return False
        if self.min_amount is not None and (row.amount is None or row.amount < self.min_amount):
            return False
        if self.max_amount is not None and (row.amount is None or row.amount > self.max_amount):
            return False
        if self.platform and row.platform != self.platform:
            return False
        return True


@dataclass(frozen=True)
class SortSpec:
    key: str = "date"
    descending: bool = True

    def __post_init__(self):
        column(self.key)


@dataclass
class LedgerPage:
    rows: List[LedgerRow] = field(default_factory=list)
    total_after_filter: int = 0
    page: int = 1
    page_size: int = 25
    total_pages: int = 1


def check_tab(tab: str) -> str:
    if tab not in TABS:
        raise InvalidInput(f"Unknown ledger tab '{tab}' (expected one of: {', '.join(TABS)})")
    return tab


def scope_to_tab(rows: Sequence[LedgerRow], tab: str) -> List[LedgerRow]:
    check_tab(tab)
    if tab == "all":
        return list(rows)
    source = SourceType(tab)
    return [row for row in rows if row.source_type is source]


def apply_filters(rows: Sequence[LedgerRow], filters: LedgerFilters) -> List[LedgerRow]:
    return [row for row in rows if filters.matches(row)]


def _sort_value(row: LedgerRow, key: str) -> Any:
    value = getattr(row, key)
    if isinstance(value, SourceType):
        value = value.value
    if value is None or value == "":
        return None
    return float(value) if column(key).numeric else str(value)


def sort_rows(rows: Sequence[LedgerRow], sort: SortSpec) -> List[LedgerRow]:
    """
    Stable single-key sort; missing values go last in either direction.

    Ties break on the row id, so descending order is the exact reverse of
    ascending order among rows that have a value.
    """
    present, missing = [], []
    for row in rows:
        value = _sort_value(row, sort.key)
        if value is None:
            missing.append(row)
        else:
            present.append((value, row.id, row))

    present.sort(key=lambda item: (item[0], item[1]), reverse=sort.descending)
    missing.sort(key=lambda row: row.id, reverse=sort.descending)
    return [row for _, _, row in present] + missing


def paginate(rows: Sequence[LedgerRow], page: int, page_size: int) -> LedgerPage:
    if page_size < 1:
        raise InvalidInput(f"Page size must be positive, got {page_size}")
    total = len(rows)
    total_pages = max(1, ceil(total / page_size))
    page = min(max(1, page), total_pages)
    start = (page - 1) * page_size
    return LedgerPage(
        rows=list(rows[start:start + page_size]),
        total_after_filter=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
    )


def filter_and_sort(
    rows: Sequence[LedgerRow],
    tab: str = "all",
    filters: Optional[LedgerFilters] = None,
    sort: Optional[SortSpec] = None,
) -> List[LedgerRow]:
    """Rows as exported: scoped, filtered and sorted but not paginated"""
    scoped = scope_to_tab(rows, tab)
    filtered = apply_filters(scoped, filters or LedgerFilters())
    return sort_rows(filtered, sort or SortSpec())
