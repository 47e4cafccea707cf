from __future__ import annotations

import datetime as dt
import math
import re
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Any, Optional

import pytz

from .config import get_settings

_NON_NUMERIC = re.compile(r"[^0-9.+\-]")
_LEADING_NUMBER = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)")


def get_tz(name: Optional[str] = None) -> pytz.BaseTzInfo:
    return pytz.timezone(name or get_settings().TZ)


def iso_date(d: dt.date | dt.datetime) -> str:
    if isinstance(d, dt.datetime):
        d = d.date()
    return d.isoformat()


def utc_now_iso() -> str:
    return dt.datetime.now(pytz.utc).isoformat()


def parse_iso(ts: Any) -> Optional[dt.datetime]:
    """ISO timestamp -> aware datetime (naive values are taken as UTC)."""
    if not ts or not isinstance(ts, str):
        return None
    value = ts.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    try:
        parsed = dt.datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = pytz.utc.localize(parsed)
    return parsed


def is_number(value: Any) -> bool:
    # bool is an int subclass but JSON true/false are not metrics
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        # arbitrary-size JSON integers are finite even when float() would overflow
        return True
    return isinstance(value, float) and math.isfinite(value)


def coerce_number(value: Any) -> Optional[float]:
    """
    Best-effort numeric coercion:
      - finite numbers pass through
      - strings keep only digits . + - and the leading number is parsed ("42.5 bpm" -> 42.5)
      - everything else (and failed parses) -> None
    """
    if is_number(value):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    cleaned = _NON_NUMERIC.sub("", value)
    m = _LEADING_NUMBER.match(cleaned)
    if not m:
        return None
    num = float(m.group(0))
    return num if math.isfinite(num) else None


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    return Decimal(str(value))


def round_half_up(value: Any, places: int = 0) -> Decimal:
    d = to_decimal(value)
    exp = Decimal(1).scaleb(-places)
    with localcontext() as ctx:
        # quantize needs every integer digit plus the kept decimals
        ctx.prec = max(28, d.adjusted() + places + 2)
        return d.quantize(exp, rounding=ROUND_HALF_UP)


def format_number(value: float, max_places: int) -> str:
    """Round to at most `max_places` decimals, with thousands separators (1234.5 -> '1,234.5')."""
    text = f"{round_half_up(value, max_places):,f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text in ("-0", ""):
        text = "0"
    return text


def format_percent(value: float) -> str:
    return f"{format_number(value, 1)}%"


def format_plain(value: float) -> str:
    return format_number(value, 2)


def millis_to_hhmm(millis: Optional[float]) -> Optional[str]:
    """Milliseconds -> 'hh:mm' (no day rollover, 25h stays '25:00')."""
    if not is_number(millis):
        return None
    d = to_decimal(millis)
    with localcontext() as ctx:
        ctx.prec = max(28, d.adjusted() + 8)
        minutes = d / 60000
    total_minutes = int(round_half_up(minutes))
    h = total_minutes // 60
    mm = total_minutes % 60
    return f"{h:02d}:{mm:02d}"
