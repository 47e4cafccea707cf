import base64

import pytest

from daily_brief.models import TimeTokenMode
from daily_brief.parsers import (
    decode_base64url,
    extract_lines,
    is_delta,
    is_usage_time,
    parse_daily_usage,
    parse_top_apps,
    parse_usage_email,
)
from daily_brief.parsers.usage_email import decode_quoted_printable, extract_html_body, strip_html

RAW_EMAIL = (
    "From: digest@example.com\r\n"
    "Subject: [App Usage] Daily usage digest\r\n"
    "Content-Type: text/html; charset=utf-8\r\n"
    "Content-Transfer-Encoding: quoted-printable\r\n"
    "\r\n"
    '<html><body><table><tr><td class=3D"title">Usage Time</td></tr>\r\n'
    "<tr><td>Mon, Jan 1</td><td>3h 20m</td><td>+15%</td></tr>=\r\n"
    "<tr><td>#42</td><td>-3%</td></tr>\r\n"
    "\r\n"
    "<tr><td>Top apps</td></tr><tr><td>App</td><td>Usage time</td><td>Access count</td></tr>\r\n"
    "<tr><td>YouTube</td><td>1h 5m</td><td>+10%</td><td>#12</td><td>-2%</td></tr>\r\n"
    "<tr><td>Caf=C3=A9 &amp; Bar</td><td>45m</td><td>-5%</td><td>#30</td><td>+1%</td></tr>\r\n"
    "<tr><td>Pinned apps</td></tr><tr><td>Maps</td><td>10m</td></tr>\r\n"
    "</table></body></html>\r\n"
)


def test_extract_lines_from_mime_message():
    lines = extract_lines(RAW_EMAIL)
    assert lines[:6] == ["Usage Time", "Mon, Jan 1", "3h 20m", "+15%", "#42", "-3%"]
    assert "Café & Bar" in lines
    assert not any(line.startswith("Subject:") for line in lines)
    assert all(line == line.strip() and line for line in lines)


def test_extract_lines_accepts_bytes_and_rejects_other_types():
    assert extract_lines(RAW_EMAIL.encode("utf-8")) == extract_lines(RAW_EMAIL)
    with pytest.raises(TypeError):
        extract_lines(123)


def test_extract_html_body_without_headers():
    assert extract_html_body("<p>only body</p>") == "<p>only body</p>"
    assert extract_html_body("H: 1\n\nfirst\n\nsecond") == "first\n\nsecond"


def test_decode_quoted_printable():
    assert decode_quoted_printable("caf=C3=A9 =3D ok=\r\nay") == "café = okay"
    assert decode_quoted_printable("na=EFve") == "naïve"


def test_strip_html_and_entities():
    assert strip_html("<p>Tom &amp; Jerry&nbsp;&lt;3&gt; &quot;x&quot; &#39;y&#39;</p>") == "\nTom & Jerry <3> \"x\" 'y'\n"


def test_decode_base64url():
    encoded = base64.urlsafe_b64encode("subject: ünïcode?>".encode("utf-8")).decode("ascii").rstrip("=")
    assert decode_base64url(encoded) == "subject: ünïcode?>"


# ---------- predicates ----------

def test_usage_time_predicate_modes():
    assert is_usage_time("1h 2m")
    assert is_usage_time("45m")
    assert is_usage_time("12s")
    assert is_usage_time("1:05:00")
    assert is_usage_time("0:45")
    assert not is_usage_time("1:05:00", TimeTokenMode.COMPOUND)
    assert is_usage_time("1h 2m", TimeTokenMode.COMPOUND)
    assert is_usage_time("0:45", "compound_or_clock")
    assert not is_usage_time("Usage time")
    assert not is_usage_time(None)


def test_delta_predicate():
    assert is_delta("+15%")
    assert is_delta("-3%")
    assert is_delta("＋")
    assert not is_delta("15%")
    assert not is_delta("#42")
    assert not is_delta(None)


# ---------- daily ----------

def test_parse_daily_usage_scenario():
    lines = ["Daily usage digest", "Usage Time", "Mon, Jan 1", "3h 20m", "+15%", "#42", "-3%", "Top apps"]
    daily = parse_daily_usage(lines)
    assert daily.as_dict() == {
        "date": "Mon, Jan 1",
        "usage_time": "3h 20m",
        "usage_delta": "+15%",
        "access_count": "#42",
        "access_delta": "-3%",
    }


def test_parse_daily_usage_missing_anchor_or_date():
    assert parse_daily_usage(["Mon, Jan 1", "3h"]) is None
    assert parse_daily_usage(["usage time", "3h 20m", "+15%"]) is None
    assert parse_daily_usage([]) is None


def test_parse_daily_usage_fields_are_independent():
    daily = parse_daily_usage(["USAGE TIME", "sun, Feb 4"])
    assert daily.date == "sun, Feb 4"
    assert daily.usage_time is None
    assert daily.usage_delta is None
    assert daily.access_count is None
    assert daily.access_delta is None


def test_parse_daily_usage_access_count_window():
    within = parse_daily_usage(["Usage time", "Tue, Feb 6", "2h", "-5%", "x", "y", "#9"])
    assert within.access_count == "#9"
    assert within.access_delta is None
    beyond = parse_daily_usage(["Usage time", "Tue, Feb 6", "2h", "-5%", "x", "y", "z", "#9", "+1%"])
    assert beyond.access_count is None
    assert beyond.access_delta is None


# ---------- top apps ----------

def test_parse_top_apps_from_email():
    lines = extract_lines(RAW_EMAIL)
    apps = parse_top_apps(lines)
    assert [a.as_dict() for a in apps] == [
        {"name": "YouTube", "usage_time": "1h 5m", "usage_delta": "+10%", "access_count": "#12", "access_delta": "-2%"},
        {"name": "Café & Bar", "usage_time": "45m", "usage_delta": "-5%", "access_count": "#30", "access_delta": "+1%"},
    ]


def test_parse_top_apps_stops_at_pinned_apps():
    lines = ["Top apps", "x", "Slack", "12m", "Pinned Apps", "Maps", "10m", "Clock", "0:30"]
    apps = parse_top_apps(lines)
    assert [a.name for a in apps] == ["Slack"]
    assert apps[0].usage_delta is None
    assert apps[0].access_count is None


def test_parse_top_apps_rejects_label_as_name():
    apps = parse_top_apps(["Top apps", "Usage time", "1h 2m", "Slack", "12m"])
    assert [(a.name, a.usage_time) for a in apps] == [("Slack", "12m")]


def test_parse_top_apps_lookahead_must_match():
    apps = parse_top_apps(["top apps", "Notes", "5m", "n/a", "12", "Mail", "2m"])
    assert apps[0].as_dict() == {
        "name": "Notes",
        "usage_time": "5m",
        "usage_delta": None,
        "access_count": None,
        "access_delta": None,
    }
    assert [a.name for a in apps] == ["Notes", "Mail"]


def test_parse_top_apps_clock_tokens_follow_mode():
    lines = ["Top apps", "Spotify", "1:05:00", "+4%"]
    assert [a.name for a in parse_top_apps(lines)] == ["Spotify"]
    assert parse_top_apps(lines, TimeTokenMode.COMPOUND) == []


def test_parse_top_apps_missing_anchor():
    assert parse_top_apps(["YouTube", "1h"]) == []


# ---------- whole message ----------

def test_parse_usage_email():
    parsed = parse_usage_email(RAW_EMAIL)
    assert parsed.daily.usage_time == "3h 20m"
    assert [a.name for a in parsed.top_apps] == ["YouTube", "Café & Bar"]


def test_parse_usage_email_empty_and_unrelated():
    assert parse_usage_email("") is None
    parsed = parse_usage_email("Subject: hi\n\n<p>nothing here</p>")
    assert parsed.daily is None
    assert parsed.top_apps == []


def test_decode_quoted_printable_mixed_run():
    # one bad byte must not garble the valid UTF-8 around it
    assert decode_quoted_printable("=C3=A9=FF=C3=BC") == "éÿü"
    assert decode_quoted_printable("end=E2=82") == "endâ\x82"
