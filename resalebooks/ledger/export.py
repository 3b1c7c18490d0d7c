"""
CSV export of the ledger view.
"""

from dataclasses import dataclass
from typing import Optional, Sequence
import re

import polars as pl

from resalebooks.ledger.rows import LedgerRow, SourceType
from resalebooks.ledger.view import COLUMN_KEYS, column
from resalebooks.store.base import DateRange

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class CsvExport:
    filename: str
    content: str


def export_filename(date_range: DateRange, tab: str = "all", platform: str = "") -> str:
    """``transactions_<start>_to_<end>[_<tab>][_platform_<name>].csv``"""
    name = f"transactions_{date_range.start.isoformat()}_to_{date_range.end.isoformat()}"
    if tab and tab != "all":
        name += f"_{tab}"
    if platform:
        name += f"_platform_{_UNSAFE.sub('-', platform.strip())}"
    return f"{name}.csv"


def _cell(row: LedgerRow, key: str) -> Optional[str]:
    value = getattr(row, key)
    if value is None:
        return None
    if isinstance(value, SourceType):
        return value.value
    if key == "amount":
        return f"{value:.2f}"
    return str(value) or None


def rows_to_csv(rows: Sequence[LedgerRow], columns: Optional[Sequence[str]] = None) -> str:
    """
    Render rows as CSV with a header of column labels.

    Only fields needing it are quoted (comma, quote or newline); embedded
    quotes are doubled.
    """
    keys = list(columns) if columns is not None else list(COLUMN_KEYS)
    labels = [column(key).label for key in keys]
    frame = pl.DataFrame(
        {label: [_cell(row, key) for row in rows] for key, label in zip(keys, labels)},
        schema={label: pl.Utf8 for label in labels},
    )
    return frame.write_csv(quote_style="necessary")


def export_rows(
    rows: Sequence[LedgerRow],
    date_range: DateRange,
    tab: str = "all",
    platform: str = "",
    columns: Optional[Sequence[str]] = None,
) -> CsvExport:
    return CsvExport(
        filename=export_filename(date_range, tab, platform),
        content=rows_to_csv(rows, columns),
    )
