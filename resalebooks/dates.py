"""
Lenient date parsing for user-entered and stored dates.

Accepted inputs: ``date``/``datetime`` objects, ``YYYY-MM-DD``, ``DD/MM/YYYY``
and ISO timestamps. Anything else parses to ``None``.
"""

from datetime import date, datetime
from typing import Any, Optional
import re

_DMY = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")
_YMD = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_date(value: Any) -> Optional[date]:
    """Best-effort conversion to a calendar date; ``None`` when unparseable"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    try:
        match = _DMY.match(text)
        if match:
            day, month, year = match.groups()
            return date(int(year), int(month), int(day))
        if _YMD.match(text):
            return date.fromisoformat(text)
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def to_iso(value: Any) -> Optional[str]:
    """``YYYY-MM-DD`` string for anything :func:`parse_date` accepts"""
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else None
