"""
Reconciliation Layer

Records sales, refunds, inventory intake, expenses and rebates, and keeps the
linked records consistent:

- a sale linked to an inventory item decrements its quantity on hand
  (floored at zero); failure is reported, the sale stays saved
- a refund linked to a sale gets read-only provenance from the sale and the
  best-matching inventory row

The decrement is read-then-write without a lock: two concurrent sales of the
same item can both read the same quantity.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional, Union

import structlog
from pydantic import BaseModel, Field

from resalebooks.dates import parse_date
from resalebooks.errors import BooksError, InvalidHierarchy, InvalidInput
from resalebooks.reconciliation.normalize import (
    clean_text,
    describe_expense,
    listed_platform,
    map_platform,
    to_money,
)
from resalebooks.store.base import Query, RecordStore, Row

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")
DateInput = Optional[Union[date, str]]


# =============================================================================
# INPUTS
# =============================================================================

class SaleEntry(BaseModel):
    item: str = ""
    sale_price: Optional[float] = None
    shipping_cost: Optional[float] = None
    transaction_fees: Optional[float] = None
    platform: Optional[str] = None
    sale_date: DateInput = None
    purchase_price: Optional[float] = None
    purchase_date: DateInput = None
    inventory_id: Optional[str] = None
    notes: Optional[str] = None


class RefundEntry(BaseModel):
    item: str = ""
    amount: Optional[float] = None
    refund_date: DateInput = None
    sale_id: Optional[str] = None
    notes: Optional[str] = None


class InventoryEntry(BaseModel):
    title: str
    vendor: Optional[str] = None
    department_id: Optional[str] = None
    category_id: Optional[str] = None
    subcategory_id: Optional[str] = None
    brand: Optional[str] = None
    location: Optional[str] = None
    sku: Optional[str] = None
    platform: Optional[str] = None
    purchase_date: DateInput = None
    purchase_price: Optional[float] = None
    quantity: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None


class ExpenseEntry(BaseModel):
    gl_account: str = "Other"
    vendor: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[float] = None
    date: DateInput = None
    bank_account: Optional[str] = None
    linked_sale: Optional[str] = None


class RebateEntry(BaseModel):
    vendor: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[float] = None
    date: DateInput = None
    bank_account: Optional[str] = None


# =============================================================================
# RESULTS
# =============================================================================

@dataclass
class SaleRecorded:
    sale: Row
    inventory_quantity: Optional[int] = None
    inventory_error: Optional[str] = None


@dataclass
class RefundProvenance:
    """Display-only projection of the sale a refund reverses"""
    sale_id: str
    sale_date: Optional[date] = None
    sale_price: Optional[Decimal] = None
    platform: Optional[str] = None
    vendor: Optional[str] = None
    purchase_date: Optional[date] = None
    purchase_price: Optional[Decimal] = None
    error: Optional[str] = None


@dataclass
class RefundRecorded:
    refund: Row
    provenance: Optional[RefundProvenance] = None


def _title_key(value: Any) -> str:
    return str(value or "").strip().casefold()


def match_inventory(title: Any, sale_date: Optional[date], items: Iterable[Row]) -> Optional[Row]:
    """
    Inventory row a sale most plausibly came from.

    Candidates share the sale's title (trimmed, case-folded). The most recent
    purchase on or before the sale date wins; without one, the most recent
    purchase overall.
    """
    key = _title_key(title)
    if not key:
        return None
    candidates = [item for item in items if _title_key(item.get("title")) == key]
    if not candidates:
        return None

    def recency(item: Row):
        return (parse_date(item.get("purchase_date")) or date.min, str(item.get("created_at") or ""))

    if sale_date is not None:
        before = [
            item for item in candidates
            if (parse_date(item.get("purchase_date")) or date.max) <= sale_date
        ]
        if before:
            return max(before, key=recency)
    return max(candidates, key=recency)


class ReconciliationService:
    """
    Example:
        service = ReconciliationService(store)
        result = await service.record_sale(SaleEntry(item="Lamp", sale_price=40, inventory_id=item_id))
        if result.inventory_error:
            ...
    """

    def __init__(self, store: RecordStore):
        self._store = store

    # ------------------------------------------------------------------
    # sales
    # ------------------------------------------------------------------

    async def record_sale(self, entry: SaleEntry) -> SaleRecorded:
        row = {
            "item_sold": entry.item.strip(),
            "sale_price": to_money(entry.sale_price, "sale price", ZERO),
            "shipping_cost": to_money(entry.shipping_cost, "shipping cost", ZERO),
            "transaction_fees": to_money(entry.transaction_fees, "transaction fees", ZERO),
            "platform": map_platform(entry.platform),
            "sale_date": parse_date(entry.sale_date),
            "purchase_price": to_money(entry.purchase_price, "purchase price", ZERO),
            "purchase_date": parse_date(entry.purchase_date),
            "inventory_id": entry.inventory_id or None,
            "notes": clean_text(entry.notes),
        }
        sale = await self._store.insert("sales", row)
        logger.info("Sale recorded", id=str(sale["id"]), platform=row["platform"])

        result = SaleRecorded(sale=sale)
        if row["inventory_id"]:
            try:
                result.inventory_quantity = await self.decrement_inventory(row["inventory_id"])
            except BooksError as e:
                logger.warning(
                    "Inventory decrement failed",
                    sale_id=str(sale["id"]),
                    inventory_id=row["inventory_id"],
                    error=str(e),
                )
                result.inventory_error = str(e)
        return result

    async def decrement_inventory(self, inventory_id: Any) -> int:
        """Reduce quantity on hand by one, never below zero"""
        operation = "decrement inventory"
        item = await self._store.require("inventory", inventory_id, operation)
        quantity = max(0, int(item.get("quantity_on_hand") or 0) - 1)
        await self._store.update("inventory", inventory_id, {"quantity_on_hand": quantity})
        logger.debug("Inventory decremented", inventory_id=str(inventory_id), quantity=quantity)
        return quantity

    # ------------------------------------------------------------------
    # refunds
    # ------------------------------------------------------------------

    async def refund_provenance(self, sale_id: Any) -> RefundProvenance:
        """
        Sale and inventory facts shown next to a refund.

        Raises NotFound when the sale is not visible. A failed inventory
        lookup leaves the inventory fields blank and sets ``error``.
        """
        sale = await self._store.require("sales", sale_id, "refund provenance")
        sale_date = parse_date(sale.get("sale_date"))
        provenance = RefundProvenance(
            sale_id=str(sale["id"]),
            sale_date=sale_date,
            sale_price=sale.get("sale_price"),
            platform=sale.get("platform"),
        )

        title = str(sale.get("item_sold") or "").strip()
        if not title:
            return provenance

        try:
            items = await self._store.select("inventory", Query(ilike={"title": title}))
        except BooksError as e:
            logger.warning("Refund provenance lookup failed", sale_id=str(sale_id), error=str(e))
            provenance.error = str(e)
            return provenance

        match = match_inventory(title, sale_date, items)
        if match is not None:
            provenance.vendor = match.get("vendor")
            provenance.purchase_date = parse_date(match.get("purchase_date"))
            provenance.purchase_price = match.get("purchase_price")
        return provenance

    async def record_refund(self, entry: RefundEntry) -> RefundRecorded:
        row = {
            "item": entry.item.strip(),
            "amount": to_money(entry.amount, "refund amount", ZERO),
            "refund_date": parse_date(entry.refund_date),
            "sale_id": entry.sale_id or None,
            "notes": clean_text(entry.notes),
        }
        refund = await self._store.insert("refunds", row)
        logger.info("Refund recorded", id=str(refund["id"]), sale_id=row["sale_id"])

        result = RefundRecorded(refund=refund)
        if row["sale_id"]:
            try:
                result.provenance = await self.refund_provenance(row["sale_id"])
            except BooksError as e:
                logger.warning("Refund provenance unavailable", refund_id=str(refund["id"]), error=str(e))
                result.provenance = RefundProvenance(sale_id=str(row["sale_id"]), error=str(e))
        return result

    # ------------------------------------------------------------------
    # intake
    # ------------------------------------------------------------------

    async def record_inventory(self, entry: InventoryEntry) -> Row:
        operation = "record inventory"
        title = entry.title.strip()
        if not title:
            raise InvalidInput("Title required.", operation=operation)
        if entry.subcategory_id and not entry.category_id:
            raise InvalidHierarchy("Sub-category needs a category.", operation=operation)
        if entry.category_id and not entry.department_id:
            raise InvalidHierarchy("Category needs a department.", operation=operation)

        row: Dict[str, Any] = {
            "title": title,
            "vendor": clean_text(entry.vendor),
            "department_id": entry.department_id or None,
            "category_id": entry.category_id or None,
            "subcategory_id": entry.subcategory_id or None,
            "brand": clean_text(entry.brand),
            "location": clean_text(entry.location),
            "sku": clean_text(entry.sku),
            "platforms_listed": listed_platform(entry.platform),
            "purchase_date": parse_date(entry.purchase_date),
            "purchase_price": to_money(entry.purchase_price, "purchase price"),
            "quantity_on_hand": 1 if entry.quantity is None else entry.quantity,
            "notes": clean_text(entry.notes),
        }
        item = await self._store.insert("inventory", row)
        logger.info("Inventory recorded", id=str(item["id"]), quantity=row["quantity_on_hand"])
        return item

    async def record_expense(self, entry: ExpenseEntry) -> Row:
        account, description = describe_expense(entry.gl_account, entry.description)
        row = {
            "gl_account": account.value,
            "vendor": clean_text(entry.vendor),
            "description": description,
            "amount": to_money(entry.amount, "expense amount"),
            "date": parse_date(entry.date),
            "bank_account": clean_text(entry.bank_account),
            "linked_sale": entry.linked_sale or None,
        }
        expense = await self._store.insert("expenses", row)
        logger.info("Expense recorded", id=str(expense["id"]), gl_account=account.value)
        return expense

    async def record_rebate(self, entry: RebateEntry) -> Row:
        row = {
            "vendor": clean_text(entry.vendor),
            "description": clean_text(entry.description),
            "amount": to_money(entry.amount, "rebate amount", ZERO),
            "date": parse_date(entry.date),
            "bank_account": clean_text(entry.bank_account),
        }
        rebate = await self._store.insert("rebates", row)
        logger.info("Rebate recorded", id=str(rebate["id"]))
        return rebate
