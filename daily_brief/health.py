from __future__ import annotations

import functools
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import structlog

from . import SUMMARY_PRIORITY
from .models import Dataset, FormatKind, MetricSpec, NormalizedRecord, Placement, SummaryItem
from .utils import (
    coerce_number,
    format_percent,
    format_plain,
    is_number,
    millis_to_hhmm,
    parse_iso,
    utc_now_iso,
)

logger = structlog.get_logger()

SLEEP = "Sleep"
RECOVERY = "Recovery"

CONTAINER_KEYS = ("records", "data", "items")

DATE_KEYS = (
    "start",
    "end",
    "created_at",
    "updated_at",
    "timestamp",
    "cycle_start",
    "cycle_end",
)

SLEEP_STAGE_KEYS = (
    "score.stage_summary.total_light_sleep_time_milli",
    "score.stage_summary.total_rem_sleep_time_milli",
    "score.stage_summary.total_slow_wave_sleep_time_milli",
)

METRIC_SPECS: tuple[MetricSpec, ...] = (
    MetricSpec("Time in bed", "score.stage_summary.total_in_bed_time_milli", FormatKind.DURATION, SLEEP, Placement.SUMMARY),
    MetricSpec("Sleep duration", "sleep.total_duration", FormatKind.SLEEP_DURATION, SLEEP, Placement.SLEEP_DETAILS),
    MetricSpec("Sleep performance", "score.sleep_performance_percentage", FormatKind.PERCENT, SLEEP, Placement.SLEEP_DETAILS),
    MetricSpec("Sleep efficiency", "score.sleep_efficiency_percentage", FormatKind.PERCENT, SLEEP, Placement.SLEEP_DETAILS),
    MetricSpec("Sleep consistency", "score.sleep_consistency_percentage", FormatKind.PERCENT, SLEEP, Placement.SLEEP_DETAILS),
    MetricSpec("Sleep debt", "score.sleep_needed.need_from_sleep_debt_milli", FormatKind.DURATION, SLEEP, Placement.SLEEP_DETAILS),
    MetricSpec("Recovery score", "score.recovery_score", FormatKind.PERCENT, RECOVERY, Placement.SUMMARY),
    # recovery-sourced, shown next to the sleep numbers
    MetricSpec("HRV", "score.hrv_rmssd_milli", FormatKind.PLAIN, RECOVERY, Placement.SLEEP_DETAILS),
)


# --------------------------- Flatten / normalize ---------------------------

def flatten_record(record: Any) -> Dict[str, Any]:
    """
    Nested JSON object -> {"a.b.c": scalar}.

    Explicit stack instead of recursion. Lists are kept as opaque leaves,
    a non-object root gives {}.
    """
    output: Dict[str, Any] = {}
    stack: List[tuple[str, Any]] = [("", record)]

    while stack:
        prefix, value = stack.pop()
        if not isinstance(value, dict):
            continue
        for key, val in value.items():
            path = f"{prefix}.{key}" if prefix else str(key)
            if isinstance(val, dict):
                stack.append((path, val))
            else:
                output[path] = val

    return output


def pick_date(flat: Mapping[str, Any]) -> Optional[str]:
    for key in DATE_KEYS:
        value = flat.get(key)
        if value:
            return value if isinstance(value, str) else str(value)
    # fallback: anything that looks like an ISO timestamp
    for value in flat.values():
        if isinstance(value, str) and "T" in value:
            return value
    return None


def normalize_record(record: Any) -> Optional[NormalizedRecord]:
    flat = flatten_record(record)
    date = pick_date(flat)
    fields: Dict[str, float] = {}
    for key, value in flat.items():
        num = coerce_number(value)
        if num is not None:
            fields[key] = num

    if not date and not fields:
        logger.debug("record_discarded", keys=len(flat))
        return None
    return NormalizedRecord(date=date, fields=fields)


def normalize_records(records: Iterable[Any]) -> List[NormalizedRecord]:
    out: List[NormalizedRecord] = []
    for raw in records:
        rec = normalize_record(raw)
        if rec is not None:
            out.append(rec)
    return out


def extract_records(payload: Any) -> List[Any]:
    """First list found under records/data/items of an API envelope."""
    if not isinstance(payload, dict):
        return []
    for key in CONTAINER_KEYS:
        if isinstance(payload.get(key), list):
            return payload[key]
    return []


def _compare_dates(a: NormalizedRecord, b: NormalizedRecord) -> int:
    ta, tb = parse_iso(a.date), parse_iso(b.date)
    if ta is None or tb is None:
        return 0
    return (ta > tb) - (ta < tb)


def sort_records(records: List[NormalizedRecord]) -> List[NormalizedRecord]:
    """Ascending by date; undated/unparseable records compare equal (stable sort keeps them put)."""
    return sorted(records, key=functools.cmp_to_key(_compare_dates))


def build_datasets(payloads: Mapping[str, Any], skip_naps: bool = True) -> Dict[str, Dataset]:
    """{name: API envelope} -> {name: Dataset}, empty datasets dropped."""
    datasets: Dict[str, Dataset] = {}
    for name, payload in payloads.items():
        raw = extract_records(payload)
        if name == SLEEP and skip_naps:
            raw = [r for r in raw if not (isinstance(r, dict) and r.get("nap") is True)]
        records = normalize_records(raw)
        if not records:
            logger.info("dataset_empty", dataset=name, raw=len(raw))
            continue
        datasets[name] = Dataset(name=name, records=sort_records(records))
    return datasets


# --------------------------- Summary ---------------------------

def sleep_duration_millis(record: NormalizedRecord) -> float:
    return sum(v for v in (record.get(k) for k in SLEEP_STAGE_KEYS) if is_number(v))


def _format(value: float, fmt: FormatKind) -> Optional[str]:
    if fmt is FormatKind.PERCENT:
        return format_percent(value)
    if fmt in (FormatKind.DURATION, FormatKind.SLEEP_DURATION):
        return millis_to_hhmm(value)
    return format_plain(value)


def latest_metric(records: Sequence[NormalizedRecord], spec: MetricSpec) -> Optional[str]:
    """Newest record that actually has the value wins; newer records without it are skipped."""
    for record in reversed(records):
        if spec.fmt is FormatKind.SLEEP_DURATION:
            value = sleep_duration_millis(record)
            if not value:
                continue
        else:
            value = record.get(spec.key)
            if not is_number(value):
                continue
        return _format(value, spec.fmt)
    return None


def evaluate_metrics(
    datasets: Mapping[str, Dataset],
    specs: Sequence[MetricSpec] = METRIC_SPECS,
) -> List[tuple[MetricSpec, SummaryItem]]:
    found: List[tuple[MetricSpec, SummaryItem]] = []
    for spec in specs:
        dataset = datasets.get(spec.dataset)
        if dataset is None:
            continue
        value = latest_metric(dataset.records, spec)
        if value:
            found.append((spec, SummaryItem(label=spec.label, value=value)))
    return found


def place_metrics(found: Iterable[tuple[MetricSpec, SummaryItem]]) -> Dict[str, List[SummaryItem]]:
    """Route evaluated metrics to their display group, independent of the source dataset."""
    groups: Dict[str, List[SummaryItem]] = {p.value: [] for p in Placement}
    for spec, item in found:
        groups[spec.placement.value].append(item)
    return groups


def reorder_summary(items: Sequence[SummaryItem], priority: Sequence[str] = SUMMARY_PRIORITY) -> List[SummaryItem]:
    remaining = list(items)
    ordered: List[SummaryItem] = []
    for label in priority:
        for idx, item in enumerate(remaining):
            if item.label == label:
                ordered.append(remaining.pop(idx))
                break
    return ordered + remaining


def build_summary(datasets: Mapping[str, Dataset]) -> Dict[str, List[Dict[str, str]]]:
    groups = place_metrics(evaluate_metrics(datasets))
    summary = reorder_summary(groups[Placement.SUMMARY.value])
    details = groups[Placement.SLEEP_DETAILS.value]
    logger.info("summary_built", summary=len(summary), sleep_details=len(details))
    return {
        "summary": [i.as_dict() for i in summary],
        "sleep_details": [i.as_dict() for i in details],
    }


def build_health_payload(
    payloads: Mapping[str, Any],
    now: Optional[str] = None,
    skip_naps: bool = True,
) -> Dict[str, Any]:
    """Snapshot shape handed to the cache writer / HTTP layer."""
    datasets = build_datasets(payloads, skip_naps=skip_naps)
    summary = build_summary(datasets)
    return {
        "generated_at": now or utc_now_iso(),
        "summary": summary["summary"],
        "sleep_details": summary["sleep_details"],
        "datasets": [d.as_dict() for d in datasets.values()],
    }
