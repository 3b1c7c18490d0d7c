"""
Report API Endpoints
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from resalebooks.reporting import build_year_series
from resalebooks.serving.api.dependencies import get_store
from resalebooks.store import RecordStore

router = APIRouter()


class MonthlyBucketOut(BaseModel):
    month: str
    income: float
    op_ex: float
    cogs: float
    expenses: float
    profit: float
    margin: float


class YearSeriesOut(BaseModel):
    """Twelve monthly buckets plus year totals"""
    year: int
    buckets: List[MonthlyBucketOut]
    totals: MonthlyBucketOut


@router.get("/monthly", response_model=YearSeriesOut)
async def get_monthly_report(
    year: Optional[int] = Query(None, ge=1900, le=9999),
    store: RecordStore = Depends(get_store),
) -> YearSeriesOut:
    series = await build_year_series(store, year or date.today().year)
    return YearSeriesOut(
        year=series.year,
        buckets=[MonthlyBucketOut(**vars(b)) for b in series.buckets],
        totals=MonthlyBucketOut(**vars(series.totals)),
    )
