"""
Runtime configuration.

Every value can be overridden through the environment; defaults suit local use.
"""

import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


LOG_LEVEL = os.environ.get("AVAILABILITY_LOG_LEVEL", "INFO").upper()

# Product rule: an expert edits their single pattern instead of adding more
SINGLE_PATTERN = _env_bool("AVAILABILITY_SINGLE_PATTERN", True)

MAX_RANGE_DAYS = _env_int("AVAILABILITY_MAX_RANGE_DAYS", 366)
SUMMARY_CACHE_SIZE = _env_int("AVAILABILITY_SUMMARY_CACHE_SIZE", 256)

# --- Runner I/O ---
DATA_FILENAME = os.environ.get("AVAILABILITY_DATA_FILE", "expert_data.json")
EXPORT_FILENAME = os.environ.get("AVAILABILITY_EXPORT_FILE", "schedule_export.json")
