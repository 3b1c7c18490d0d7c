"""
Monthly Aggregation Engine

Year-to-date income, operating expense and cost of goods per calendar month.

    income   = sales - refunds
    op_ex    = expenses - rebates
    cogs     = inventory purchases
    expenses = op_ex + cogs
    profit   = income - expenses
    margin   = profit / income   (0 when income is 0)
"""

import asyncio
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import polars as pl
import structlog

from resalebooks.dates import parse_date
from resalebooks.database.models import DATE_COLUMNS
from resalebooks.store.base import DateRange, Query, RecordStore, Row

logger = structlog.get_logger(__name__)

# table -> (measure, sign, amount column)
STREAMS = {
    "sales": ("income", 1, "sale_price"),
    "refunds": ("income", -1, "amount"),
    "expenses": ("op_ex", 1, "amount"),
    "rebates": ("op_ex", -1, "amount"),
    "inventory": ("cogs", 1, "purchase_price"),
}
MEASURES = ("income", "op_ex", "cogs")


@dataclass(frozen=True)
class MonthlyBucket:
    month: str
    income: float = 0.0
    op_ex: float = 0.0
    cogs: float = 0.0
    expenses: float = 0.0
    profit: float = 0.0
    margin: float = 0.0

    @classmethod
    def derive(cls, month: str, income: float, op_ex: float, cogs: float) -> "MonthlyBucket":
        expenses = op_ex + cogs
        profit = income - expenses
        return cls(
            month=month,
            income=income,
            op_ex=op_ex,
            cogs=cogs,
            expenses=expenses,
            profit=profit,
            margin=profit / income if income else 0.0,
        )


@dataclass(frozen=True)
class YearSeries:
    year: int
    buckets: List[MonthlyBucket]
    totals: MonthlyBucket


def _amount(value: Any) -> Optional[float]:
    if value is None or value == "":
        return 0.0
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return float(amount) if amount.is_finite() else None


def _entries(records: Dict[str, List[Row]], year: int) -> List[Dict[str, Any]]:
    entries = []
    skipped = 0
    for table, (measure, sign, amount_column) in STREAMS.items():
        for record in records.get(table, []):
            when = parse_date(record.get(DATE_COLUMNS[table]))
            amount = _amount(record.get(amount_column))
            if when is None or amount is None:
                skipped += 1
                continue
            if when.year != year:
                continue
            entry = {"month": when.month, **{m: 0.0 for m in MEASURES}}
            entry[measure] = sign * amount
            entries.append(entry)
    if skipped:
        logger.warning("Records skipped during aggregation", year=year, skipped=skipped)
    return entries


def aggregate_year(records: Dict[str, List[Row]], year: int) -> YearSeries:
    """Bucket already-fetched records (keyed by table) into the twelve months of ``year``"""
    schema = {"month": pl.Int32, **{m: pl.Float64 for m in MEASURES}}
    frame = pl.DataFrame(_entries(records, year), schema=schema)

    per_month = frame.group_by("month").agg([pl.col(m).sum() for m in MEASURES])
    calendar = pl.DataFrame({"month": list(range(1, 13))}, schema={"month": pl.Int32})
    monthly = (
        calendar.join(per_month, on="month", how="left")
        .with_columns([pl.col(m).fill_null(0.0) for m in MEASURES])
        .sort("month")
    )

    buckets = [
        MonthlyBucket.derive(f"{row['month']}/{year}", row["income"], row["op_ex"], row["cogs"])
        for row in monthly.iter_rows(named=True)
    ]
    totals = MonthlyBucket.derive(
        str(year),
        sum(b.income for b in buckets),
        sum(b.op_ex for b in buckets),
        sum(b.cogs for b in buckets),
    )
    return YearSeries(year=year, buckets=buckets, totals=totals)


async def build_year_series(store: RecordStore, year: int, today: Optional[date] = None) -> YearSeries:
    """
    Fetch the five streams from January 1st through ``today`` and aggregate.

    A year entirely in the future yields twelve zero buckets.
    """
    today = today or date.today()
    start = date(year, 1, 1)
    end = min(today, date(year, 12, 31))

    records: Dict[str, List[Row]] = {}
    if end >= start:
        window = DateRange(start, end)
        tables = list(STREAMS)
        results = await asyncio.gather(
            *(store.select(table, Query(date_range=window)) for table in tables)
        )
        records = dict(zip(tables, results))

    series = aggregate_year(records, year)
    logger.info(
        "Year series built",
        year=year,
        income=round(series.totals.income, 2),
        profit=round(series.totals.profit, 2),
    )
    return series
