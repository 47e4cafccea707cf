from __future__ import annotations

import enum
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from . import APP_USAGE_FIELDS, USAGE_FIELDS


class FormatKind(str, enum.Enum):
    PERCENT = "percent"
    DURATION = "duration"
    PLAIN = "plain"
    SLEEP_DURATION = "sleep_duration"


class Placement(str, enum.Enum):
    SUMMARY = "summary"
    SLEEP_DETAILS = "sleep_details"


class TimeTokenMode(str, enum.Enum):
    """Which usage-time tokens the app-usage parsers accept.

    - COMPOUND: only ``1h 2m 3s`` style tokens
    - COMPOUND_OR_CLOCK: also colon-delimited ``H:MM`` / ``H:MM:SS``
    """

    COMPOUND = "compound"
    COMPOUND_OR_CLOCK = "compound_or_clock"


@dataclass
class NormalizedRecord:
    date: Optional[str] = None
    fields: Dict[str, float] = field(default_factory=dict)

    def get(self, key: str) -> Optional[float]:
        return self.fields.get(key)

    def as_dict(self) -> Dict[str, Any]:
        # flat shape used by the snapshot file: {"date": ..., "<path>": <number>, ...}
        return {"date": self.date, **self.fields}


@dataclass
class Dataset:
    name: str
    records: List[NormalizedRecord] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "records": [r.as_dict() for r in self.records]}


@dataclass(frozen=True)
class MetricSpec:
    label: str
    key: str
    fmt: FormatKind
    dataset: str
    placement: Placement


@dataclass
class SummaryItem:
    label: str
    value: str

    def as_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass
class UsageRecord:
    date: Optional[str] = None
    usage_time: Optional[str] = None
    usage_delta: Optional[str] = None
    access_count: Optional[str] = None
    access_delta: Optional[str] = None

    @staticmethod
    def headers() -> List[str]:
        return list(USAGE_FIELDS)

    def as_row(self) -> List[Optional[str]]:
        # order must match headers()
        return [self.date, self.usage_time, self.usage_delta, self.access_count, self.access_delta]

    def as_dict(self) -> Dict[str, Optional[str]]:
        return asdict(self)


@dataclass
class AppUsageEntry:
    name: str
    usage_time: Optional[str] = None
    usage_delta: Optional[str] = None
    access_count: Optional[str] = None
    access_delta: Optional[str] = None

    @staticmethod
    def headers() -> List[str]:
        return list(APP_USAGE_FIELDS)

    def as_row(self) -> List[Optional[str]]:
        return [self.name, self.usage_time, self.usage_delta, self.access_count, self.access_delta]

    def as_dict(self) -> Dict[str, Optional[str]]:
        return asdict(self)


@dataclass
class ParsedUsage:
    daily: Optional[UsageRecord] = None
    top_apps: List[AppUsageEntry] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "daily": self.daily.as_dict() if self.daily else None,
            "top_apps": [a.as_dict() for a in self.top_apps],
        }
