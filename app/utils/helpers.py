"""
Helper utility functions
"""
import html
import re
from bson import ObjectId
from typing import Any, Dict, Optional, Tuple
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
import pytz

from app.config.settings import settings

LOCAL_TZ = pytz.timezone(settings.TIMEZONE)

FRENCH_MONTHS = [
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
]

_TAG_RE = re.compile(r"<[^>]+>")
_BREAK_RE = re.compile(r"<\s*(br|/p|/div|/li)\s*/?>", re.IGNORECASE)
_SPACE_RE = re.compile(r"\s+")


def _localize(value: datetime) -> str:
    if value.tzinfo is None:
        value = pytz.utc.localize(value)
    return value.astimezone(LOCAL_TZ).isoformat()


def serialize_doc(doc: Dict) -> Dict:
    """Convert MongoDB document to JSON-serializable format"""
    if doc is None:
        return None

    for key, value in doc.items():
        if isinstance(value, ObjectId):
            doc[key] = str(value)
        elif isinstance(value, datetime):
            doc[key] = _localize(value)
        elif isinstance(value, list):
            doc[key] = [
                serialize_doc(item) if isinstance(item, dict)
                else str(item) if isinstance(item, ObjectId)
                else _localize(item) if isinstance(item, datetime)
                else item
                for item in value
            ]
        elif isinstance(value, dict):
            doc[key] = serialize_doc(value)

    return doc


def round_money(value: float) -> float:
    """Round an amount to cents"""
    return float(Decimal(str(value or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))

def round_whole(value: float) -> int:
    """Round an amount to whole currency units, halves away from zero"""
    return int(Decimal(str(value or 0)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

def month_bounds(year: int, month: int) -> Tuple[datetime, datetime]:
    """Return the [start, end) UTC datetimes of a calendar month"""
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, end

def month_label(month: int) -> str:
    return FRENCH_MONTHS[month - 1]

def html_to_text(value: Optional[str]) -> str:
    """Strip tags from an HTML message and collapse whitespace for SMS"""
    if not value:
        return ""
    text = _BREAK_RE.sub(" ", value)
    text = _TAG_RE.sub("", text)
    text = html.unescape(text)
    return _SPACE_RE.sub(" ", text).strip()

def as_float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0
