"""
Record Store Module
"""
from .base import DateRange, Query, RecordStore, Row, coerce_date
from .sql import SqlRecordStore

__all__ = [
    "DateRange",
    "Query",
    "RecordStore",
    "Row",
    "coerce_date",
    "SqlRecordStore",
]
