"""
App-usage digest emails ("[App Usage] Daily usage digest").

The mail collaborator hands over the raw RFC822 message (already
base64url-decoded); everything here is text work:

    raw -> body -> quoted-printable decode -> tags to newlines -> lines
        -> parse_daily_usage / parse_top_apps
"""
from __future__ import annotations

import base64
import re
from typing import List, Optional, Sequence, Union

import structlog

from ..models import AppUsageEntry, ParsedUsage, TimeTokenMode, UsageRecord
from .predicates import is_access_count, is_delta, is_usage_label, is_usage_time, is_weekday_date

logger = structlog.get_logger()

_BLANK_LINE = re.compile(r"\r?\n\r?\n")
_LINE_BREAK = re.compile(r"\r?\n")
_SOFT_BREAK = re.compile(r"=\r?\n")
_QP_ESCAPES = re.compile(r"(?:=[0-9A-Fa-f]{2})+")
_TAG = re.compile(r"<[^>]*>")

# fixed subset, applied in this order
_ENTITIES = (
    ("&nbsp;", " "),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
)

DAILY_ANCHOR = "usage time"
TOP_APPS_ANCHOR = "top apps"
TOP_APPS_END = "pinned apps"


def _as_text(raw: Union[str, bytes]) -> str:
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        return raw
    raise TypeError(f"expected str or bytes, got {type(raw).__name__}")


def decode_base64url(value: str) -> str:
    padded = value + "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


def extract_html_body(raw: str) -> str:
    parts = _BLANK_LINE.split(raw)
    if len(parts) <= 1:
        return raw
    return "\n\n".join(parts[1:])


def _decode_escapes(m: re.Match) -> str:
    data = bytes.fromhex(m.group(0).replace("=", ""))
    # UTF-8 where it decodes, Latin-1 only for the offending bytes
    out: List[str] = []
    while data:
        try:
            out.append(data.decode("utf-8"))
            break
        except UnicodeDecodeError as e:
            out.append(data[:e.start].decode("utf-8"))
            out.append(data[e.start:e.end].decode("latin-1"))
            data = data[e.end:]
    return "".join(out)


def decode_quoted_printable(text: str) -> str:
    return _QP_ESCAPES.sub(_decode_escapes, _SOFT_BREAK.sub("", text))


def strip_html(text: str) -> str:
    text = _TAG.sub("\n", text)
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return text


def split_lines(text: str) -> List[str]:
    return [line.strip() for line in _LINE_BREAK.split(text) if line.strip()]


def extract_lines(raw: Union[str, bytes]) -> List[str]:
    body = extract_html_body(_as_text(raw))
    return split_lines(strip_html(decode_quoted_printable(body)))


def _index_of(lines: Sequence[str], label: str, start: int = 0) -> int:
    for idx in range(start, len(lines)):
        if lines[idx].lower() == label:
            return idx
    return -1


def _at(lines: Sequence[str], idx: int) -> Optional[str]:
    return lines[idx] if 0 <= idx < len(lines) and lines[idx] else None


def parse_daily_usage(lines: Sequence[str]) -> Optional[UsageRecord]:
    anchor = _index_of(lines, DAILY_ANCHOR)
    if anchor == -1:
        logger.debug("usage_anchor_missing", anchor=DAILY_ANCHOR)
        return None

    idx = next((i for i in range(anchor, len(lines)) if is_weekday_date(lines[i])), -1)
    if idx == -1:
        logger.debug("usage_date_missing", anchor_index=anchor)
        return None

    access_count = access_delta = None
    for j in range(idx + 1, min(idx + 6, len(lines))):
        if is_access_count(lines[j]):
            access_count = lines[j]
            access_delta = _at(lines, j + 1)
            break

    return UsageRecord(
        date=lines[idx],
        usage_time=_at(lines, idx + 1),
        usage_delta=_at(lines, idx + 2),
        access_count=access_count,
        access_delta=access_delta,
    )


def parse_top_apps(
    lines: Sequence[str],
    mode: TimeTokenMode = TimeTokenMode.COMPOUND_OR_CLOCK,
) -> List[AppUsageEntry]:
    start = _index_of(lines, TOP_APPS_ANCHOR)
    if start == -1:
        return []
    end = _index_of(lines, TOP_APPS_END, start + 1)
    segment = list(lines[start + 1:end if end != -1 else len(lines)])

    apps: List[AppUsageEntry] = []
    for i in range(1, len(segment)):
        line = segment[i]
        if not is_usage_time(line, mode):
            continue
        name = segment[i - 1]
        # guards against the column header being read as an app
        if not name or is_usage_label(name):
            continue

        delta = _at(segment, i + 1)
        access = _at(segment, i + 2)
        access_delta = _at(segment, i + 3)
        apps.append(
            AppUsageEntry(
                name=name,
                usage_time=line,
                usage_delta=delta if is_delta(delta) else None,
                access_count=access if is_access_count(access) else None,
                access_delta=access_delta if is_delta(access_delta) else None,
            )
        )
    return apps


def parse_usage_email(
    raw: Union[str, bytes],
    mode: TimeTokenMode = TimeTokenMode.COMPOUND_OR_CLOCK,
) -> Optional[ParsedUsage]:
    text = _as_text(raw)
    if not extract_html_body(text):
        return None
    lines = extract_lines(text)
    parsed = ParsedUsage(daily=parse_daily_usage(lines), top_apps=parse_top_apps(lines, mode))
    logger.info("usage_email_parsed", lines=len(lines), daily=parsed.daily is not None, apps=len(parsed.top_apps))
    return parsed
