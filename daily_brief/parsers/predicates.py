"""Single-line classifiers shared by the email and CSV usage parsers."""
from __future__ import annotations

import re
from typing import Optional

from ..models import TimeTokenMode

_COMPOUND_TIME = re.compile(r"\b\d+h\b|\b\d+m\b|\b\d+s\b", re.IGNORECASE)
_CLOCK_TIME = re.compile(r"^\d{1,2}:\d{2}(:\d{2})?$")
# "+15%", "-3%" and the bare full-width plus some digests print for "new"
_DELTA = re.compile(r"^[+-]\d+%|^＋$")
_ACCESS_COUNT = re.compile(r"^#\d+")
_WEEKDAY_DATE = re.compile(r"^(Mon|Tue|Wed|Thu|Fri|Sat|Sun),", re.IGNORECASE)
_USAGE_LABEL = re.compile(r"usage time|access count", re.IGNORECASE)


def is_usage_time(line: Optional[str], mode: TimeTokenMode = TimeTokenMode.COMPOUND_OR_CLOCK) -> bool:
    if not line:
        return False
    if _COMPOUND_TIME.search(line):
        return True
    return TimeTokenMode(mode) is TimeTokenMode.COMPOUND_OR_CLOCK and bool(_CLOCK_TIME.match(line))


def is_delta(line: Optional[str]) -> bool:
    return bool(line) and bool(_DELTA.match(line))


def is_access_count(line: Optional[str]) -> bool:
    return bool(line) and bool(_ACCESS_COUNT.match(line))


def is_weekday_date(line: Optional[str]) -> bool:
    return bool(line) and bool(_WEEKDAY_DATE.match(line))


def is_usage_label(line: Optional[str]) -> bool:
    return bool(line) and bool(_USAGE_LABEL.search(line))
