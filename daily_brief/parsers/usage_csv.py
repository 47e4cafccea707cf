"""
App-usage CSV exports (the "DailyUsage*.csv" files dropped on the FTP box).

Layout, by position:

    Summary
    <date>,<usage_time>,<usage_delta>,<access_count>,<access_delta>
    ...
    Top apps
    <name>,<usage_time>,<usage_delta>,<access_count>,<access_delta>
    ...
"""
from __future__ import annotations

import re
from typing import List, Optional, Sequence, Union

import structlog

from ..models import AppUsageEntry, ParsedUsage, TimeTokenMode, UsageRecord
from .predicates import is_usage_time

logger = structlog.get_logger()

_LINE_BREAK = re.compile(r"\r?\n")

SUMMARY_LABEL = "summary"
TOP_APPS_LABEL = "top apps"
DIGEST_LABEL = "daily usage digest"


class CsvFormatError(ValueError):
    """A CSV line could not be split into cells (e.g. unterminated quoted field)."""


def parse_csv_row(line: str) -> List[str]:
    """One CSV line -> trimmed cells. Handles "quoted, cells" and "" escapes."""
    values: List[str] = []
    current: List[str] = []
    in_quotes = False
    i = 0
    n = len(line)

    while i < n:
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < n and line[i + 1] == '"':
                current.append('"')
                i += 2
                continue
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            values.append("".join(current))
            current = []
        else:
            current.append(char)
        i += 1

    if in_quotes:
        raise CsvFormatError(f"unterminated quoted field: {line[:60]!r}")

    values.append("".join(current))
    return [v.strip() for v in values]


def _cell(row: Sequence[str], idx: int) -> Optional[str]:
    return row[idx] if idx < len(row) and row[idx] else None


def _find_row(rows: Sequence[Sequence[str]], label: str) -> int:
    for idx, row in enumerate(rows):
        if row and row[0].lower() == label:
            return idx
    return -1


def parse_usage_csv(
    raw: Union[str, bytes, None],
    mode: TimeTokenMode = TimeTokenMode.COMPOUND_OR_CLOCK,
) -> Optional[ParsedUsage]:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8-sig", errors="replace")
    if raw is None or raw == "":
        return None
    if not isinstance(raw, str):
        raise TypeError(f"expected CSV text, got {type(raw).__name__}")

    lines = [line.strip() for line in _LINE_BREAK.split(raw) if line.strip()]
    if not lines:
        return None
    rows = [parse_csv_row(line) for line in lines]

    summary_idx = _find_row(rows, SUMMARY_LABEL)
    if summary_idx == -1 or summary_idx + 1 >= len(rows):
        logger.info("usage_csv_no_summary", rows=len(rows))
        return None
    summary = rows[summary_idx + 1]
    daily = UsageRecord(*(_cell(summary, i) for i in range(5)))

    top_idx = _find_row(rows, TOP_APPS_LABEL)
    top_apps: List[AppUsageEntry] = []
    if top_idx != -1:
        for row in rows[top_idx + 1:]:
            name = _cell(row, 0)
            if not name or name.lower() == DIGEST_LABEL:
                continue
            if not is_usage_time(_cell(row, 1), mode):
                continue
            top_apps.append(AppUsageEntry(name, *(_cell(row, i) for i in range(1, 5))))

    logger.info("usage_csv_parsed", rows=len(rows), apps=len(top_apps))
    return ParsedUsage(daily=daily, top_apps=top_apps)
