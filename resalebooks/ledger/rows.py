"""
Ledger rows: one normalised shape for all five record types.

Rows are derived projections and are never persisted. Missing text fields are
``""``; missing amount or date are ``None``.
"""

from dataclasses import asdict, dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from resalebooks.dates import to_iso
from resalebooks.errors import InvalidInput
from resalebooks.reconciliation.normalize import listed_platform, map_gl_account, map_platform, to_money
from resalebooks.store.base import Row


class SourceType(str, Enum):
    INVENTORY = "inventory"
    SALE = "sale"
    REFUND = "refund"
    EXPENSE = "expense"
    REBATE = "rebate"

    @property
    def table(self) -> str:
        return {
            SourceType.INVENTORY: "inventory",
            SourceType.SALE: "sales",
            SourceType.REFUND: "refunds",
            SourceType.EXPENSE: "expenses",
            SourceType.REBATE: "rebates",
        }[self]


@dataclass(frozen=True)
class LedgerRow:
    id: str
    source_type: SourceType
    source_id: str
    date: Optional[str] = None
    amount: Optional[float] = None
    description: str = ""
    vendor: str = ""
    platform: str = ""
    ledger_account: str = ""
    bank_account: str = ""
    related_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["source_type"] = self.source_type.value
        return data


# Ledger field -> source column, per record type. Fields missing from a
# mapping are not stored on that record type and cannot be edited there.
FIELD_COLUMNS: Dict[SourceType, Dict[str, str]] = {
    SourceType.INVENTORY: {
        "date": "purchase_date",
        "amount": "purchase_price",
        "description": "title",
        "vendor": "vendor",
        "platform": "platforms_listed",
    },
    SourceType.SALE: {
        "date": "sale_date",
        "amount": "sale_price",
        "description": "item_sold",
        "platform": "platform",
        "related_id": "inventory_id",
    },
    SourceType.REFUND: {
        "date": "refund_date",
        "amount": "amount",
        "description": "item",
        "related_id": "sale_id",
    },
    SourceType.EXPENSE: {
        "date": "date",
        "amount": "amount",
        "description": "description",
        "vendor": "vendor",
        "ledger_account": "gl_account",
        "bank_account": "bank_account",
        "related_id": "linked_sale",
    },
    SourceType.REBATE: {
        "date": "date",
        "amount": "amount",
        "description": "description",
        "vendor": "vendor",
        "bank_account": "bank_account",
    },
}

# related_id links are set at intake only
READ_ONLY_FIELDS = {"id", "source_type", "source_id", "related_id"}

# Sources whose amount column is NOT NULL
REQUIRED_AMOUNT = {SourceType.SALE, SourceType.REFUND, SourceType.REBATE}


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def _amount(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(Decimal(str(value)))
    except (InvalidOperation, ValueError):
        return None


def normalize_row(source_type: SourceType, record: Mapping[str, Any]) -> LedgerRow:
    """Project one stored record into a ledger row"""
    source_type = SourceType(source_type)
    columns = FIELD_COLUMNS[source_type]
    source_id = _text(record.get("id"))

    values: Dict[str, Any] = {}
    for ledger_field, column in columns.items():
        raw = record.get(column)
        if ledger_field == "date":
            values[ledger_field] = to_iso(raw)
        elif ledger_field == "amount":
            values[ledger_field] = _amount(raw)
        else:
            values[ledger_field] = _text(raw)

    return LedgerRow(
        id=f"{source_type.value}:{source_id}",
        source_type=source_type,
        source_id=source_id,
        **values,
    )


_WRITERS: Dict[str, Callable[[SourceType, Any], Any]] = {
    "amount": lambda source, value: to_money(value, "amount"),
    "platform": lambda source, value: (
        listed_platform(value) if source is SourceType.INVENTORY else map_platform(value)
    ),
    "ledger_account": lambda source, value: map_gl_account(value).value,
}


def to_source_patch(source_type: SourceType, changes: Mapping[str, Any]) -> Row:
    """
    Translate ledger field edits into a patch on the source table.

    Raises:
        InvalidInput: a field is unknown, read-only, or not stored on this record type
    """
    source_type = SourceType(source_type)
    columns = FIELD_COLUMNS[source_type]
    patch: Row = {}
    for ledger_field, value in changes.items():
        if ledger_field in READ_ONLY_FIELDS or ledger_field not in columns:
            raise InvalidInput(
                f"'{ledger_field}' cannot be edited on a {source_type.value} row", operation="edit ledger row"
            )
        writer = _WRITERS.get(ledger_field)
        if writer is not None:
            value = writer(source_type, value)
            if ledger_field == "amount" and value is None and source_type in REQUIRED_AMOUNT:
                raise InvalidInput(
                    f"A {source_type.value} row needs an amount", operation="edit ledger row"
                )
        elif isinstance(value, str) and ledger_field != "date":
            value = value.strip() or None
        patch[columns[ledger_field]] = value
    if "description" in changes and source_type in (SourceType.INVENTORY, SourceType.SALE, SourceType.REFUND):
        # title-like columns are NOT NULL
        patch[columns["description"]] = patch[columns["description"]] or ""
    return patch


def parse_source_type(value: Any) -> SourceType:
    try:
        return SourceType(value)
    except ValueError as e:
        allowed = ", ".join(s.value for s in SourceType)
        raise InvalidInput(f"Unknown record type '{value}' (expected one of: {allowed})") from e
