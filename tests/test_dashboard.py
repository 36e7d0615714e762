from __future__ import annotations

from dataclasses import replace
from datetime import datetime, time, timedelta
from typing import Iterator
from zoneinfo import ZoneInfo

import pytest

from datastore.telemetry_store import TelemetryStore
from models.channels import UnknownChannelError
from models.records import DoorEventKind
from services.dashboard import DashboardService
from services.door_security import SecurityState
from services.ingest import IngestStatus
from services.scheduling import ManualScheduler
from settings import get_settings

SGT = ZoneInfo("Asia/Singapore")
NOW = datetime(2025, 3, 10, 12, 0, tzinfo=SGT)

CSV = b"""timestamp,location,temperature,humidity
2025-03-10T10:05:00,main,20.0,50
2025-03-10T10:35:00,main,22.0,52
2025-03-10T11:05:00,main,21.0,51
"""


@pytest.fixture
def service() -> Iterator[DashboardService]:
    settings = replace(
        get_settings(),
        timezone=SGT,
        threshold_sigma=3.0,
        system_installed_at=datetime(2025, 1, 1, tzinfo=SGT),
    )
    scheduler = ManualScheduler()
    dashboard = DashboardService(
        store=TelemetryStore(tz=SGT),
        settings=settings,
        clock=lambda: NOW + timedelta(seconds=scheduler.elapsed),
        scheduler=scheduler,
    )
    dashboard.start()
    yield dashboard
    dashboard.shutdown()


def test_ingest_stores_readings_and_marks_sync(service) -> None:
    result = service.ingest_csv(CSV)

    assert result.status is IngestStatus.processed
    assert service.session.last_sync_at == NOW
    series = service.series("temperature", 24)
    point = next(p for p in series.points if p.label == "10:00")
    assert point.value == pytest.approx(21.0)


def test_series_is_cached_until_new_data(service) -> None:
    first = service.series("temperature", 24)
    assert service.series("temperature", 24) is first

    service.ingest_csv(CSV)

    assert service.series("temperature", 24) is not first


def test_logout_clears_session(service) -> None:
    service.ingest_csv(CSV)
    first = service.series("temperature", 24)

    service.logout()

    assert service.session.active is False
    assert service.session.last_sync_at is None
    assert service.series("temperature", 24) is not first


def test_thresholds_validate_input(service) -> None:
    service.ingest_csv(CSV)

    result = service.channel_thresholds("temperature", 24)

    assert result.applicable is True
    assert result.statistics.count == 3
    with pytest.raises(ValueError):
        service.channel_thresholds("temperature", 24, sigma=0)
    with pytest.raises(UnknownChannelError):
        service.channel_thresholds("voltage", 24)


def test_reliability_and_longevity_reports(service) -> None:
    service.ingest_csv(CSV)

    reliability = service.reliability_report(24)
    longevity = service.longevity_report()

    assert reliability.uptime.incidents >= 1
    assert reliability.period_hours == 24
    assert longevity.expected_lifespan_years == service.settings.expected_lifespan_years
    with pytest.raises(ValueError):
        service.reliability_report(0)


def test_door_events_flow_through_monitor(service) -> None:
    status = service.record_door_event(DoorEventKind.open)
    assert status.state is SecurityState.WARNING

    service.door_monitor.scheduler.advance(301)
    assert service.security_status().state is SecurityState.OVERSTAY_CRITICAL

    status = service.record_door_event(DoorEventKind.close)
    assert status.state is SecurityState.SECURE


def test_security_settings_update(service) -> None:
    updated = service.update_security_settings("20:00", "07:00", 120)

    assert updated.night_mode_start == time(20, 0)
    assert service.security_settings() == updated
    assert service.door_monitor.machine.settings == updated
    with pytest.raises(ValueError):
        service.update_security_settings("25:00", "07:00", 120)
    with pytest.raises(ValueError):
        service.update_security_settings("20:00", "07:00", 0)


def test_alert_evaluation_persists_new_alerts(service) -> None:
    rows = "\n".join(
        f"2025-03-10T11:{minute:02d}:00,main,{40.0 if minute == 59 else 20.0}"
        for minute in range(30, 60)
    )
    service.ingest_csv(f"timestamp,location,temperature\n{rows}\n".encode())

    created = service.evaluate_alerts()

    assert [(a.sensor_type, a.priority) for a in created] == [("temperature", "P1")]
    assert service.store.fetch_alerts() == created
    assert service.evaluate_alerts() == []
