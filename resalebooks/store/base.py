"""
Record Store Contract

The engine reaches persistence only through this interface. A store instance
is bound to one actor; row visibility (shared vs personal taxonomy rows,
own-only transaction rows) is enforced by the store, never by callers.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from resalebooks.errors import InvalidInput, NotFound

Row = Dict[str, Any]


def coerce_date(value: Union[date, datetime, str, None], field_name: str = "date") -> Optional[date]:
    """Accept a date, datetime or ISO ``YYYY-MM-DD`` string"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError as e:
        raise InvalidInput(f"Invalid {field_name}: {value!r}") from e


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar date window"""
    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise InvalidInput(f"Date range start {self.start} is after end {self.end}")

    @classmethod
    def parse(cls, start: Union[date, str], end: Union[date, str]) -> "DateRange":
        start_date = coerce_date(start, "start date")
        end_date = coerce_date(end, "end date")
        if start_date is None or end_date is None:
            raise InvalidInput("Date range needs both a start and an end")
        return cls(start_date, end_date)

    def __contains__(self, value: date) -> bool:
        return self.start <= value <= self.end


@dataclass
class Query:
    """
    Filters for :meth:`RecordStore.select`.

    ``equality`` matches columns exactly (``None`` matches NULL), ``ilike``
    matches whole values case-insensitively using the backend's ``lower()``
    (PostgreSQL folds Unicode, SQLite only ASCII), ``order`` is a list of
    ``(column, ascending)`` pairs applied in turn.
    """
    date_range: Optional[DateRange] = None
    equality: Dict[str, Any] = field(default_factory=dict)
    ilike: Dict[str, str] = field(default_factory=dict)
    order: List[Tuple[str, bool]] = field(default_factory=list)
    limit: Optional[int] = None


class RecordStore(ABC):
    """Queryable record store scoped to the current actor"""

    def __init__(self, actor_id: str):
        if not actor_id or not str(actor_id).strip():
            raise InvalidInput("An authenticated actor is required")
        self.actor_id = str(actor_id).strip()

    @abstractmethod
    async def select(self, table: str, query: Optional[Query] = None) -> List[Row]:
        """Rows of ``table`` visible to the actor that match ``query``"""

    @abstractmethod
    async def insert(self, table: str, row: Row) -> Row:
        """Insert a row owned by the actor and return it as stored"""

    @abstractmethod
    async def update(self, table: str, row_id: Any, patch: Row) -> Row:
        """Apply ``patch`` to one of the actor's rows; raises NotFound"""

    @abstractmethod
    async def delete(self, table: str, row_id: Any) -> None:
        """Delete one of the actor's rows; raises NotFound"""

    async def get(self, table: str, row_id: Any) -> Optional[Row]:
        """Single visible row by id, or None"""
        rows = await self.select(table, Query(equality={"id": row_id}, limit=1))
        return rows[0] if rows else None

    async def require(self, table: str, row_id: Any, operation: str) -> Row:
        """Single visible row by id; raises NotFound naming ``operation``"""
        row = await self.get(table, row_id)
        if row is None:
            raise NotFound(f"No {table} row with id {row_id}", operation=operation)
        return row
