from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, time
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


_TIMEZONE_ENV = "ANALYTICS_TIMEZONE"
_GAP_TOLERANCE_ENV = "GAP_TOLERANCE_MINUTES"
_SIGMA_ENV = "THRESHOLD_SIGMA"
_LIFESPAN_ENV = "EXPECTED_LIFESPAN_YEARS"
_INSTALLED_AT_ENV = "SYSTEM_INSTALLED_AT"
_NIGHT_START_ENV = "NIGHT_MODE_START"
_NIGHT_END_ENV = "NIGHT_MODE_END"
_MAX_OPEN_ENV = "MAX_DOOR_OPEN_SECONDS"
_STORE_PATH_ENV = "TELEMETRY_STORE_PATH"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_DEFAULT_TIMEZONE = "Asia/Singapore"
_DEFAULT_INSTALLED_AT = datetime.fromisoformat("2025-08-01T00:00:00+08:00")


@dataclass(frozen=True)
class Settings:
    timezone: ZoneInfo
    gap_tolerance_minutes: float
    threshold_sigma: float
    expected_lifespan_years: float
    system_installed_at: datetime
    night_mode_start: time
    night_mode_end: time
    max_open_duration_seconds: int
    store_path: Optional[str]
    log_level: str


def _read_env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    candidate = value.strip()
    return candidate or None


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_float(name: str, default: float) -> float:
    candidate = _read_env(name)
    if candidate is None:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_int(name: str, default: int) -> int:
    candidate = _read_env(name)
    if candidate is None:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_timezone(default: str) -> ZoneInfo:
    candidate = _read_env(_TIMEZONE_ENV)
    if candidate is not None:
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            pass
    return ZoneInfo(default)


def _read_datetime(name: str, default: datetime) -> datetime:
    candidate = _read_env(name)
    if candidate is None:
        return default
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        return default
    if parsed.tzinfo is None:
        return default
    return parsed


def parse_time_of_day(value: str) -> time:
    """Parse an ``HH:MM`` string, raising ``ValueError`` when malformed."""
    hours, sep, minutes = value.strip().partition(":")
    if not sep:
        raise ValueError(f"Invalid time of day {value!r}; expected HH:MM.")
    return time(hour=int(hours), minute=int(minutes))


def _read_time_of_day(name: str, default: time) -> time:
    candidate = _read_env(name)
    if candidate is None:
        return default
    try:
        return parse_time_of_day(candidate)
    except ValueError:
        return default


def _read_log_level(default: str) -> str:
    candidate = _read_env(_LOG_LEVEL_ENV)
    if candidate is None:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        timezone=_read_timezone(_DEFAULT_TIMEZONE),
        gap_tolerance_minutes=_read_positive_float(_GAP_TOLERANCE_ENV, 15.0),
        threshold_sigma=_read_positive_float(_SIGMA_ENV, 3.0),
        expected_lifespan_years=_read_positive_float(_LIFESPAN_ENV, 1.0),
        system_installed_at=_read_datetime(_INSTALLED_AT_ENV, _DEFAULT_INSTALLED_AT),
        night_mode_start=_read_time_of_day(_NIGHT_START_ENV, time(23, 0)),
        night_mode_end=_read_time_of_day(_NIGHT_END_ENV, time(6, 0)),
        max_open_duration_seconds=_read_positive_int(_MAX_OPEN_ENV, 300),
        store_path=_read_optional_env(_STORE_PATH_ENV, None),
        log_level=_read_log_level("INFO"),
    )
