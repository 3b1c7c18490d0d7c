"""
Field normalisation for record intake.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Tuple

from resalebooks.database.models import GLAccount, SalePlatform
from resalebooks.errors import InvalidInput

_NO_PLATFORM = {"", "none", "no platform", "no sale platform"}
_BASIC_GL_LABELS = {account.value.lower() for account in GLAccount}


def map_platform(value: Any) -> str:
    """Free-text platform name -> stored platform code"""
    text = str(value or "").strip().lower()
    if text in _NO_PLATFORM:
        return SalePlatform.NONE.value
    if text in (SalePlatform.EBAY.value, SalePlatform.ETSY.value, SalePlatform.VINTED.value):
        return text
    return SalePlatform.OTHER.value


def listed_platform(value: Any) -> str:
    """Inventory listing platform; unknown names mean not listed"""
    text = str(value or "").strip().lower()
    known = {p.value for p in SalePlatform} - {SalePlatform.OTHER.value}
    return text if text in known else SalePlatform.NONE.value


def map_gl_account(label: Any) -> GLAccount:
    """Coarse ledger account for a friendly expense label"""
    text = str(label or "").strip().lower()
    if "postage" in text or "shipping" in text:
        return GLAccount.POSTAGE
    if "fee" in text or "listing" in text:
        return GLAccount.FEES
    if "office" in text or "suppl" in text:
        return GLAccount.SUPPLIES
    if "travel" in text or "mileage" in text or "transport" in text:
        return GLAccount.TRAVEL
    return GLAccount.OTHER


def describe_expense(label: Any, description: Optional[str]) -> Tuple[GLAccount, Optional[str]]:
    """
    Map an expense label and keep a non-basic label readable in the description.

    >>> describe_expense("Shipping Supplies", "Boxes")
    (<GLAccount.POSTAGE: 'Postage'>, 'Boxes [GL: Shipping Supplies]')
    """
    label = str(label or GLAccount.OTHER.value).strip() or GLAccount.OTHER.value
    account = map_gl_account(label)
    if label.lower() in _BASIC_GL_LABELS:
        return account, description or None
    return account, f"{description or ''} [GL: {label}]".strip()


def to_money(value: Any, field_name: str, default: Optional[Decimal] = None) -> Optional[Decimal]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise InvalidInput(f"Invalid {field_name}: {value!r}") from e
    if not amount.is_finite():
        raise InvalidInput(f"Invalid {field_name}: {value!r}")
    return amount


def clean_text(value: Any) -> Optional[str]:
    text = str(value).strip() if value is not None else ""
    return text or None
