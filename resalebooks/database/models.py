"""
Database Models

Record tables behind the record store. Five transactional streams feed the
ledger and the monthly reports:

- InventoryItem: stock intake (cost of goods)
- Sale: items sold
- Refund: money returned to buyers
- Expense: operating expenses
- Rebate: vendor rebates (reduce operating expense)

Taxonomy tables (Department > Category > Subcategory) and sale platforms carry
an explicit ownership scope: ``shared`` rows are visible to every actor,
``personal`` rows only to their owner.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional
import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# ENUMERATIONS
# =============================================================================

class OwnerScope(str, Enum):
    """Visibility tier of a taxonomy or platform row"""
    SHARED = "shared"
    PERSONAL = "personal"


class SalePlatform(str, Enum):
    """Selling platform recorded on a sale"""
    NONE = "none"
    EBAY = "ebay"
    ETSY = "etsy"
    VINTED = "vinted"
    OTHER = "other"


class GLAccount(str, Enum):
    """Coarse ledger accounts stored on expenses"""
    POSTAGE = "Postage"
    FEES = "Fees"
    SUPPLIES = "Supplies"
    TRAVEL = "Travel"
    OTHER = "Other"


def _scope_column() -> Mapped[OwnerScope]:
    return mapped_column(
        SQLEnum(
            OwnerScope,
            name="owner_scope",
            native_enum=False,
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
        default=OwnerScope.PERSONAL,
    )


# =============================================================================
# TAXONOMY
# =============================================================================

class Department(Base):
    """Top level of the product taxonomy"""
    __tablename__ = "departments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    scope: Mapped[OwnerScope] = _scope_column()
    owner_id: Mapped[Optional[str]] = mapped_column(String(64))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())


class Category(Base):
    """Second level of the product taxonomy, child of a Department"""
    __tablename__ = "categories"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    department_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("departments.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    scope: Mapped[OwnerScope] = _scope_column()
    owner_id: Mapped[Optional[str]] = mapped_column(String(64))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())


class Subcategory(Base):
    """Leaf level of the product taxonomy, child of a Category"""
    __tablename__ = "subcategories"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    scope: Mapped[OwnerScope] = _scope_column()
    owner_id: Mapped[Optional[str]] = mapped_column(String(64))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())


class AnalyticsGrouping(Base):
    """A saved department/category/subcategory triple used to group reports"""
    __tablename__ = "analytics_groupings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    department_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("departments.id"), nullable=False)
    category_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("categories.id"), nullable=False)
    subcategory_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("subcategories.id"), nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())


class SalePlatformOption(Base):
    """Selectable selling platform (shared defaults plus the actor's own)"""
    __tablename__ = "sale_platforms"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(80), nullable=False)
    scope: Mapped[OwnerScope] = _scope_column()
    owner_id: Mapped[Optional[str]] = mapped_column(String(64))
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())


# =============================================================================
# TRANSACTION STREAMS
# =============================================================================

class InventoryItem(Base):
    """
    Inventory intake row.

    ``purchase_price`` is the total paid for the intake line and is what the
    reports count as cost of goods. ``quantity_on_hand`` is decremented by the
    reconciliation layer when a linked sale is recorded.
    """
    __tablename__ = "inventory"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    vendor: Mapped[Optional[str]] = mapped_column(String(200))

    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("departments.id"))
    category_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("categories.id"))
    subcategory_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("subcategories.id"))

    brand: Mapped[Optional[str]] = mapped_column(String(120))
    location: Mapped[Optional[str]] = mapped_column(String(120))
    sku: Mapped[Optional[str]] = mapped_column(String(80))
    platforms_listed: Mapped[str] = mapped_column(String(20), default=SalePlatform.NONE.value)

    purchase_date: Mapped[Optional[dt.date]] = mapped_column(Date)
    purchase_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    quantity_on_hand: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    receipt_path: Mapped[Optional[str]] = mapped_column(String(500))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        CheckConstraint("quantity_on_hand >= 0", name="ck_inventory_quantity_non_negative"),
        Index("ix_inventory_owner_date", "owner_id", "purchase_date"),
    )


class Sale(Base):
    """Sale row; profit = sale_price - purchase_price - shipping_cost - transaction_fees"""
    __tablename__ = "sales"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    item_sold: Mapped[str] = mapped_column(String(300), nullable=False, default="")

    sale_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    shipping_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    transaction_fees: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    platform: Mapped[str] = mapped_column(String(20), default=SalePlatform.NONE.value)
    sale_date: Mapped[Optional[dt.date]] = mapped_column(Date)

    purchase_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    purchase_date: Mapped[Optional[dt.date]] = mapped_column(Date)
    inventory_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("inventory.id", ondelete="SET NULL")
    )

    receipt_path: Mapped[Optional[str]] = mapped_column(String(500))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_sales_owner_date", "owner_id", "sale_date"),
    )


class Refund(Base):
    """Refund row, optionally linked to the sale it reverses"""
    __tablename__ = "refunds"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    item: Mapped[str] = mapped_column(String(300), nullable=False, default="")
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    refund_date: Mapped[Optional[dt.date]] = mapped_column(Date)
    sale_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("sales.id", ondelete="SET NULL")
    )
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_refunds_owner_date", "owner_id", "refund_date"),
    )


class Expense(Base):
    """Operating expense row"""
    __tablename__ = "expenses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    gl_account: Mapped[str] = mapped_column(String(50), default=GLAccount.OTHER.value)
    vendor: Mapped[Optional[str]] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text)
    amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    date: Mapped[Optional[dt.date]] = mapped_column(Date)
    bank_account: Mapped[Optional[str]] = mapped_column(String(120))
    linked_sale: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("sales.id", ondelete="SET NULL")
    )
    receipt_path: Mapped[Optional[str]] = mapped_column(String(500))
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_expenses_owner_date", "owner_id", "date"),
    )


class Rebate(Base):
    """Vendor rebate row"""
    __tablename__ = "rebates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    vendor: Mapped[Optional[str]] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    date: Mapped[Optional[dt.date]] = mapped_column(Date)
    bank_account: Mapped[Optional[str]] = mapped_column(String(120))
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_rebates_owner_date", "owner_id", "date"),
    )


# Case-insensitive uniqueness of names within a parent, per owner
Index(
    "uq_departments_owner_name",
    Department.owner_id,
    func.lower(Department.name),
    unique=True,
)
Index(
    "uq_categories_owner_parent_name",
    Category.owner_id,
    Category.department_id,
    func.lower(Category.name),
    unique=True,
)
Index(
    "uq_subcategories_owner_parent_name",
    Subcategory.owner_id,
    Subcategory.category_id,
    func.lower(Subcategory.name),
    unique=True,
)
Index(
    "uq_sale_platforms_owner_name",
    SalePlatformOption.owner_id,
    func.lower(SalePlatformOption.name),
    unique=True,
)


# Table name -> model, as addressed through the record store
TABLES = {
    "departments": Department,
    "categories": Category,
    "subcategories": Subcategory,
    "analytics_groupings": AnalyticsGrouping,
    "sale_platforms": SalePlatformOption,
    "inventory": InventoryItem,
    "sales": Sale,
    "refunds": Refund,
    "expenses": Expense,
    "rebates": Rebate,
}

# Date column each transactional stream is windowed and bucketed on
DATE_COLUMNS = {
    "inventory": "purchase_date",
    "sales": "sale_date",
    "refunds": "refund_date",
    "expenses": "date",
    "rebates": "date",
}
