__all__ = ["SUMMARY_PRIORITY", "USAGE_FIELDS", "APP_USAGE_FIELDS", "__version__"]

__version__ = "0.1.0"

# Summary labels in exact display order required by the dashboard
SUMMARY_PRIORITY = (
    "Time in bed",
    "Recovery score",
    "Sleep duration",
    "Sleep performance",
    "Sleep efficiency",
    "Sleep consistency",
    "Sleep debt",
)

# Positional columns of the usage exports (summary row and top-apps rows)
USAGE_FIELDS = (
    "date",
    "usage_time",
    "usage_delta",
    "access_count",
    "access_delta",
)

APP_USAGE_FIELDS = (
    "name",
    "usage_time",
    "usage_delta",
    "access_count",
    "access_delta",
)
