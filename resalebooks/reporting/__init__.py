"""
Reporting: monthly profit and loss series.
"""

from resalebooks.reporting.monthly import (
    MonthlyBucket,
    YearSeries,
    aggregate_year,
    build_year_series,
)

__all__ = ["MonthlyBucket", "YearSeries", "aggregate_year", "build_year_series"]
