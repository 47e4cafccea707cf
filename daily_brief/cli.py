# daily_brief/cli.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
import structlog

from .config import get_settings
from .freshness import build_usage_payload, is_fresh_usage
from .health import build_health_payload
from .parsers import CsvFormatError, decode_base64url, parse_usage_csv, parse_usage_email

app = typer.Typer(no_args_is_help=True, help="daily-brief CLI")
log = structlog.get_logger()


# ---------- helpers ----------

def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"{path} is not valid JSON: {e}")


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


# ---------- commands ----------

@app.command("diag")
def diag() -> None:
    """Print the effective settings (.env + environment)."""
    settings = get_settings()
    typer.echo(f"TZ: {settings.TZ}")
    typer.echo(f"TIME_TOKEN_MODE: {settings.TIME_TOKEN_MODE.value}")
    typer.echo(f"SKIP_NAPS: {settings.SKIP_NAPS}")


@app.command()
def health(
    payloads: Path = typer.Argument(..., exists=True, dir_okay=False, help='JSON file: {"Sleep": {...}, "Recovery": {...}}'),
) -> None:
    """Build the sleep/recovery summary from saved API responses."""
    data = _read_json(payloads)
    if not isinstance(data, dict):
        raise typer.BadParameter("expected a JSON object keyed by dataset name")
    _echo_json(build_health_payload(data, skip_naps=get_settings().SKIP_NAPS))


@app.command()
def email(
    raw_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Raw message (.eml) or Gmail 'raw' field"),
    base64url: bool = typer.Option(False, "--base64url", help="File holds the base64url 'raw' field, decode first"),
) -> None:
    """Parse an app-usage digest email."""
    raw = raw_file.read_bytes()
    if base64url:
        try:
            raw = decode_base64url(raw.decode("ascii").strip())
        except ValueError as e:  # UnicodeDecodeError, binascii.Error
            raise typer.BadParameter(f"{raw_file} is not base64url text: {e}")
    parsed = parse_usage_email(raw, mode=get_settings().TIME_TOKEN_MODE)
    if parsed is None:
        log.warning("email_empty", file=str(raw_file))
        typer.echo("No message body found.")
        raise typer.Exit(code=1)
    _echo_json(build_usage_payload(parsed, source="gmail", file=raw_file.name))


@app.command()
def csv(
    csv_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="DailyUsage CSV export"),
) -> None:
    """Parse an app-usage CSV export."""
    try:
        parsed = parse_usage_csv(csv_file.read_bytes(), mode=get_settings().TIME_TOKEN_MODE)
    except CsvFormatError as e:
        raise typer.BadParameter(f"{csv_file} is not readable CSV: {e}")
    if parsed is None or parsed.daily is None:
        log.warning("csv_no_summary", file=str(csv_file))
        typer.echo("No summary row found.")
        raise typer.Exit(code=1)
    _echo_json(build_usage_payload(parsed, source="ftp", file=csv_file.name, directory=csv_file.parent.name))


@app.command()
def fresh(
    snapshot: Path = typer.Argument(..., exists=True, dir_okay=False, help="Cached phone usage snapshot"),
) -> None:
    """Exit 0 when the cached FTP usage snapshot is still today's, 1 otherwise."""
    ok = is_fresh_usage(_read_json(snapshot), tz=get_settings().TZ)
    typer.echo("fresh" if ok else "stale")
    if not ok:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
