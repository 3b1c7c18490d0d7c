"""
Ledger: merged, filterable view over every transaction stream.
"""

from resalebooks.ledger.engine import delete_source, fetch_ledger_rows, load_ledger, write_back
from resalebooks.ledger.export import CsvExport, export_filename, export_rows, rows_to_csv
from resalebooks.ledger.rows import LedgerRow, SourceType, normalize_row, parse_source_type, to_source_patch
from resalebooks.ledger.session import LedgerSession, ViewConsistency
from resalebooks.ledger.view import (
    COLUMNS,
    COLUMN_KEYS,
    TABS,
    LedgerColumn,
    LedgerFilters,
    LedgerPage,
    SortSpec,
    apply_filters,
    filter_and_sort,
    paginate,
    scope_to_tab,
    sort_rows,
)

__all__ = [
    "COLUMNS",
    "COLUMN_KEYS",
    "TABS",
    "CsvExport",
    "LedgerColumn",
    "LedgerFilters",
    "LedgerPage",
    "LedgerRow",
    "LedgerSession",
    "SortSpec",
    "SourceType",
    "ViewConsistency",
    "apply_filters",
    "delete_source",
    "export_filename",
    "export_rows",
    "fetch_ledger_rows",
    "filter_and_sort",
    "load_ledger",
    "normalize_row",
    "paginate",
    "parse_source_type",
    "rows_to_csv",
    "scope_to_tab",
    "sort_rows",
    "to_source_patch",
    "write_back",
]
