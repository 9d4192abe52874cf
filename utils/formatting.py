"""
Display formatting shared by the JSON projection and exported documents.
"""
from __future__ import annotations

import math
from datetime import date, datetime, time, timezone
from typing import Any, Mapping, Optional
from zoneinfo import ZoneInfo

from dateutil import parser as date_parser

from config import settings

MISSING = "—"

_CURRENCY_SYMBOLS = {"CAD": "$", "USD": "$", "EUR": "€", "GBP": "£"}


def fmt_money(amount: Any, currency: Optional[str] = None) -> str:
    """Whole-unit currency, e.g. 400000 -> '$400,000'. Non-numbers render as '—'."""
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        return MISSING
    if isinstance(amount, float) and not math.isfinite(amount):
        return MISSING
    symbol = _CURRENCY_SYMBOLS.get((currency or settings.currency).upper(), "$")
    rounded = round(amount)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{symbol}{abs(rounded):,}"


def parse_date(value: Any) -> Optional[date | datetime]:
    """Parse ISO or common written dates ('2025-12-15', '12/15/2025', 'Dec 15 2025').

    A value with no time of day or zone is returned as a plain date.
    """
    if isinstance(value, (date, datetime)):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = date_parser.parse(value.strip())
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None and parsed.time() == time.min:
        return parsed.date()
    return parsed


def fmt_date(value: Any, tz: Optional[str] = None) -> str:
    """Long-form date ('September 24, 2025'); timestamps are shown in the document timezone."""
    parsed = parse_date(value)
    if parsed is None:
        return MISSING
    if isinstance(parsed, datetime):
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        parsed = parsed.astimezone(ZoneInfo(tz or settings.document_timezone)).date()
    return f"{parsed:%B} {parsed.day}, {parsed.year}"


def iso_or_none(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def full_name(obj: Optional[Mapping[str, Any]], prefix: str) -> Optional[str]:
    """Join '<prefix>-first' and '<prefix>-last'; None unless both are present."""
    if not obj:
        return None
    first = obj.get(f"{prefix}-first")
    last = obj.get(f"{prefix}-last")
    if not first or not last:
        return None
    return f"{str(first).strip()} {str(last).strip()}".strip() or None
