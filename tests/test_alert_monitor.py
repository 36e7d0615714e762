from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from models.records import SensorReading
from services.alert_monitor import AlertMonitor
from services.thresholds import DynamicThresholdEngine

SGT = ZoneInfo("Asia/Singapore")
NOW = datetime(2025, 3, 10, 12, 0, tzinfo=SGT)


@pytest.fixture
def monitor() -> AlertMonitor:
    return AlertMonitor(DynamicThresholdEngine(sigma=3.0))


def _temperatures(values: list[float], location: str = "main") -> list[SensorReading]:
    start = NOW - timedelta(minutes=len(values))
    return [
        SensorReading(timestamp=start + timedelta(minutes=i), location=location, temperature=value)
        for i, value in enumerate(values)
    ]


def test_critical_spike_raises_p1_alert(monitor) -> None:
    readings = _temperatures([20.0] * 20 + [40.0], location="plant-room")

    created = monitor.evaluate(readings, [], NOW, channels=["temperature"])

    assert len(created) == 1
    alert = created[0]
    assert alert.severity == "critical"
    assert alert.priority == "P1"
    assert alert.sensor_type == "temperature"
    assert alert.location == "plant-room"
    assert alert.sensor_value == 40.0
    assert alert.threshold < alert.sensor_value
    assert alert.created_at == NOW
    assert alert.is_open


def test_warning_band_raises_p2_alert(monitor) -> None:
    readings = _temperatures([19.0, 21.0] * 10 + [22.5])

    created = monitor.evaluate(readings, [], NOW, channels=["temperature"])

    assert [(a.severity, a.priority) for a in created] == [("warning", "P2")]


def test_low_side_uses_low_bound(monitor) -> None:
    readings = _temperatures([20.0] * 20 + [0.0])

    created = monitor.evaluate(readings, [], NOW, channels=["temperature"])

    assert created[0].severity == "critical"
    assert created[0].threshold > created[0].sensor_value


def test_normal_readings_raise_nothing(monitor) -> None:
    readings = _temperatures([20.0, 21.0, 20.5, 20.0])

    assert monitor.evaluate(readings, [], NOW) == []


def test_open_duplicate_is_suppressed(monitor) -> None:
    readings = _temperatures([20.0] * 20 + [40.0])
    first = monitor.evaluate(readings, [], NOW, channels=["temperature"])

    again = monitor.evaluate(readings, first, NOW + timedelta(hours=1), channels=["temperature"])

    assert again == []


def test_resolved_or_stale_alerts_do_not_suppress(monitor) -> None:
    readings = _temperatures([20.0] * 20 + [40.0])
    first = monitor.evaluate(readings, [], NOW, channels=["temperature"])[0]
    resolved = replace(first, resolved_at=NOW + timedelta(minutes=5))
    stale = replace(first, created_at=NOW - timedelta(hours=25))

    assert len(monitor.evaluate(readings, [resolved], NOW, channels=["temperature"])) == 1
    assert len(monitor.evaluate(readings, [stale], NOW, channels=["temperature"])) == 1
