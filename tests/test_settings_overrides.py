from __future__ import annotations

from datetime import datetime, time, timezone
from typing import Iterable

import pytest

from datastore.telemetry_store import build_default_store
from services.dashboard import build_default_service
from settings import get_settings, parse_time_of_day


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


CACHES = (get_settings, build_default_store, build_default_service)


def test_environment_overrides_apply(monkeypatch, tmp_path) -> None:
    store_path = tmp_path / "telemetry.json"

    monkeypatch.setenv("ANALYTICS_TIMEZONE", "Europe/London")
    monkeypatch.setenv("GAP_TOLERANCE_MINUTES", "20")
    monkeypatch.setenv("THRESHOLD_SIGMA", "2.5")
    monkeypatch.setenv("EXPECTED_LIFESPAN_YEARS", "10")
    monkeypatch.setenv("SYSTEM_INSTALLED_AT", "2024-01-01T00:00:00Z")
    monkeypatch.setenv("NIGHT_MODE_START", "21:30")
    monkeypatch.setenv("MAX_DOOR_OPEN_SECONDS", "90")
    monkeypatch.setenv("TELEMETRY_STORE_PATH", str(store_path))
    monkeypatch.setenv("LOG_LEVEL", "debug")
    _clear_caches(CACHES)

    service = build_default_service()

    try:
        settings = get_settings()
        assert str(settings.timezone) == "Europe/London"
        assert settings.gap_tolerance_minutes == 20.0
        assert settings.system_installed_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert settings.log_level == "DEBUG"
        assert service.thresholds.sigma == 2.5
        assert service.reliability.tolerance_minutes == 20.0
        assert service.longevity.expected_lifespan_years == 10.0
        assert service.store.persistence_path == store_path
        assert service.security_settings().night_mode_start == time(21, 30)
        assert service.security_settings().max_open_duration_seconds == 90
        assert store_path.exists()
    finally:
        service.shutdown()
        _clear_caches(CACHES)


def test_invalid_values_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("ANALYTICS_TIMEZONE", "Mars/Olympus")
    monkeypatch.setenv("GAP_TOLERANCE_MINUTES", "-5")
    monkeypatch.setenv("THRESHOLD_SIGMA", "lots")
    monkeypatch.setenv("SYSTEM_INSTALLED_AT", "2024-01-01T00:00:00")
    monkeypatch.setenv("NIGHT_MODE_END", "6am")
    monkeypatch.setenv("MAX_DOOR_OPEN_SECONDS", "   ")
    get_settings.cache_clear()

    try:
        settings = get_settings()
        assert str(settings.timezone) == "Asia/Singapore"
        assert settings.gap_tolerance_minutes == 15.0
        assert settings.threshold_sigma == 3.0
        assert settings.system_installed_at.isoformat() == "2025-08-01T00:00:00+08:00"
        assert settings.night_mode_end == time(6, 0)
        assert settings.max_open_duration_seconds == 300
    finally:
        get_settings.cache_clear()


def test_parse_time_of_day() -> None:
    assert parse_time_of_day(" 07:45 ") == time(7, 45)
    for bad in ("0745", "24:00", "xx:10"):
        with pytest.raises(ValueError):
            parse_time_of_day(bad)
