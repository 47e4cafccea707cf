from .predicates import is_access_count, is_delta, is_usage_label, is_usage_time, is_weekday_date
from .usage_csv import CsvFormatError, parse_csv_row, parse_usage_csv
from .usage_email import (
    decode_base64url,
    extract_lines,
    parse_daily_usage,
    parse_top_apps,
    parse_usage_email,
)

__all__ = [
    "CsvFormatError",
    "decode_base64url",
    "extract_lines",
    "is_access_count",
    "is_delta",
    "is_usage_label",
    "is_usage_time",
    "is_weekday_date",
    "parse_csv_row",
    "parse_daily_usage",
    "parse_top_apps",
    "parse_usage_csv",
    "parse_usage_email",
]
