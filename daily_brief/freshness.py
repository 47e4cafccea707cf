from __future__ import annotations

import datetime as dt
import re
from typing import Any, Iterable, Mapping, Optional

import structlog

from .models import ParsedUsage
from .utils import get_tz, iso_date, parse_iso, utc_now_iso

logger = structlog.get_logger()

_SLASH_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2}|\d{4})$")
_DATED_DIR = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TEXT_FORMATS = ("%a, %b %d, %Y", "%a, %b %d %Y", "%b %d, %Y", "%d %b %Y")


def parse_usage_date(value: Any) -> Optional[str]:
    """'1/31/24', '2024-01-31', 'Wed, Jan 31, 2024' -> '2024-01-31'."""
    if not value:
        return None
    text = str(value).strip()

    m = _SLASH_DATE.match(text)
    if m:
        month, day, year = int(m.group(1)), int(m.group(2)), int(m.group(3))
        if len(m.group(3)) == 2:
            year += 2000
        if not (1 <= month <= 12 and 1 <= day <= 31):
            return None
        return f"{year}-{month:02d}-{day:02d}"

    try:
        return dt.date.fromisoformat(text).isoformat()
    except ValueError:
        pass
    parsed = parse_iso(text)
    if parsed:
        return iso_date(parsed)

    for fmt in _TEXT_FORMATS:
        try:
            return iso_date(dt.datetime.strptime(text, fmt))
        except ValueError:
            continue
    return None


def is_fresh_usage(payload: Optional[Mapping[str, Any]], now: Optional[dt.datetime] = None, tz: Optional[str] = None) -> bool:
    """
    Cached FTP snapshot is still good when:
      - it came from the FTP export
      - its directory is today's (local) date
      - the usage it describes is yesterday's
    """
    if not isinstance(payload, Mapping) or payload.get("source") != "ftp":
        return False
    zone = get_tz(tz)
    if now is None:
        now = dt.datetime.now(zone)
    elif now.tzinfo is None:
        now = zone.localize(now)
    else:
        now = now.astimezone(zone)
    if payload.get("directory") != iso_date(now):
        return False
    daily = payload.get("daily")
    if not isinstance(daily, Mapping):
        return False
    usage_date = parse_usage_date(daily.get("date"))
    if not usage_date:
        return False
    return usage_date == iso_date(now - dt.timedelta(days=1))


def latest_dated_directory(entries: Iterable[str]) -> Optional[str]:
    dated = sorted(e for e in entries if _DATED_DIR.match(e))
    return dated[-1] if dated else None


def pick_usage_csv(files: Iterable[str]) -> Optional[str]:
    """Newest CSV in a listing, DailyUsage exports preferred."""
    candidates = [f for f in files if f.lower().endswith(".csv")]
    if not candidates:
        return None
    preferred = [f for f in candidates if "dailyusage" in f.lower()]
    return sorted(preferred or candidates)[-1]


def build_usage_payload(parsed: ParsedUsage, source: str, updated_at: Optional[str] = None, **meta: Any) -> dict:
    payload = {**parsed.as_dict(), "source": source, "updated_at": updated_at or utc_now_iso(), **meta}
    logger.info("usage_payload_built", source=source, has_daily=parsed.daily is not None)
    return payload
