from dataclasses import replace
from datetime import datetime
from typing import Iterator
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from datastore.telemetry_store import TelemetryStore
from services.dashboard import DashboardService, build_default_service
from services.scheduling import ManualScheduler
from settings import get_settings

SGT = ZoneInfo("Asia/Singapore")
NOW = datetime(2025, 3, 10, 12, 0, tzinfo=SGT)

CSV = """timestamp,location,temperature,humidity,pm2_5
2025-03-10T10:05:00,main,20.0,50,5
2025-03-10T10:35:00,main,22.0,52,6
2025-03-10T11:05:00,main,21.0,51,7
2025-03-10T11:35:00,main,21.5,51,6
"""


@pytest.fixture
def service() -> DashboardService:
    settings = replace(
        get_settings(),
        timezone=SGT,
        system_installed_at=datetime(2025, 1, 1, tzinfo=SGT),
    )
    return DashboardService(
        store=TelemetryStore(tz=SGT),
        settings=settings,
        clock=lambda: NOW,
        scheduler=ManualScheduler(),
    )


@pytest.fixture
def api_client(service: DashboardService, monkeypatch) -> Iterator[TestClient]:
    def build_test_service() -> DashboardService:
        return service

    build_test_service.cache_clear = lambda: None  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_service", build_test_service)
    monkeypatch.setattr("app.api.build_default_service", build_test_service)
    monkeypatch.setattr("services.dashboard.build_default_service", build_test_service)

    app = create_app()
    with TestClient(app) as client:
        yield client


def _upload(client: TestClient, content: str = CSV):
    return client.post("/readings", files={"file": ("readings.csv", content, "text/csv")})


def test_lifespan_starts_and_stops_service_and_clears_cache(monkeypatch) -> None:
    monkeypatch.delenv("TELEMETRY_STORE_PATH", raising=False)
    app = create_app()

    with TestClient(app):
        service_during = build_default_service()
        assert service_during.session.active is True

    assert service_during.session.active is False
    service_after = build_default_service()
    try:
        assert service_after is not service_during
    finally:
        service_after.shutdown()
        build_default_service.cache_clear()


def test_health_endpoints(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}
    assert api_client.get("/").json()["status"] == "ok"


def test_upload_readings(api_client: TestClient) -> None:
    response = _upload(api_client)

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "processed"
    assert payload["accepted"] == 4
    assert payload["errors"] == []
    assert payload["synced_at"] is not None


def test_upload_reports_row_errors(api_client: TestClient) -> None:
    response = _upload(api_client, "timestamp,location,temperature\n,main,1\n2025-03-10T10:00:00,main,2\n")

    payload = response.json()
    assert payload["status"] == "partial"
    assert payload["errors"] == [{"row_number": 2, "reason": "missing timestamp"}]


@pytest.mark.parametrize("content", ["", "timestamp,temperature\n2025-03-10T10:00:00,1\n"])
def test_malformed_upload_returns_bad_request(api_client: TestClient, content: str) -> None:
    response = _upload(api_client, content)

    assert response.status_code == 400
    assert response.json()["detail"]


def test_series_endpoint(api_client: TestClient) -> None:
    _upload(api_client)

    response = api_client.get("/channels/temperature/series", params={"lookback_hours": 24})

    assert response.status_code == 200
    payload = response.json()
    assert payload["unit"] == "°C"
    assert payload["resolution"] == "hour"
    assert len(payload["points"]) == 24
    point = next(p for p in payload["points"] if p["label"] == "10:00")
    assert point["value"] == pytest.approx(21.0)
    assert point["has_data"] is True


def test_weekly_series_endpoint(api_client: TestClient) -> None:
    response = api_client.get(
        "/channels/humidity/series", params={"lookback_hours": 720, "weekly": True}
    )

    payload = response.json()
    assert payload["resolution"] == "week"
    assert len(payload["points"]) == 4


def test_unknown_channel_returns_not_found(api_client: TestClient) -> None:
    assert api_client.get("/channels/voltage/series").status_code == 404
    assert api_client.get("/channels/voltage/thresholds").status_code == 404


def test_thresholds_endpoint(api_client: TestClient) -> None:
    _upload(api_client)

    response = api_client.get("/channels/pm2_5/thresholds", params={"sigma": 2.5})

    assert response.status_code == 200
    payload = response.json()
    assert payload["applicable"] is True
    assert payload["sigma"] == 2.5
    assert payload["warning_low"] is None
    assert payload["statistics"]["count"] == 4
    assert payload["trend"]["direction"] in {"up", "down", "stable"}
    assert [t["label"] for t in payload["thresholds"]][-1] == "High Critical"


def test_thresholds_reject_non_positive_sigma(api_client: TestClient) -> None:
    assert api_client.get("/channels/temperature/thresholds", params={"sigma": 0}).status_code == 400


def test_reliability_endpoint(api_client: TestClient) -> None:
    _upload(api_client)

    response = api_client.get("/reliability", params={"period_hours": 24})

    assert response.status_code == 200
    payload = response.json()
    assert 0 <= payload["uptime"]["uptime_percent"] <= 100
    assert payload["mtbf_hours"] is None
    assert payload["monthly_uptime"][-1]["month"] == "Mar 2025"
    assert api_client.get("/reliability", params={"period_hours": 0}).status_code == 400


def test_longevity_endpoint(api_client: TestClient) -> None:
    response = api_client.get("/longevity")

    assert response.status_code == 200
    payload = response.json()
    assert payload["degradation_rate"] == 2.5
    assert len(payload["components"]) == 5
    assert "maintenance_quality" in payload["conditions"]


def test_door_security_endpoints(api_client: TestClient) -> None:
    assert api_client.get("/security/status").json()["state"] == "SECURE"

    opened = api_client.post(
        "/security/door-events",
        json={"kind": "open", "timestamp": "2025-03-10T11:57:00+08:00"},
    ).json()
    assert opened["state"] == "WARNING"
    assert opened["is_amber_warning"] is True
    assert opened["elapsed_seconds"] == 180
    assert opened["door_status"] == "OPEN"
    assert opened["entries_today"] == 1

    updated = api_client.put(
        "/security/settings",
        json={"night_mode_start": "22:00", "night_mode_end": "06:30", "max_open_duration_seconds": 120},
    )
    assert updated.status_code == 200
    assert updated.json()["night_mode_start"] == "22:00"
    status_payload = api_client.get("/security/status").json()
    assert status_payload["state"] == "OVERSTAY_CRITICAL"
    assert status_payload["is_red_alert"] is True

    closed = api_client.post("/security/door-events", json={"kind": "close"}).json()
    assert closed["state"] == "SECURE"
    assert closed["elapsed_seconds"] == 0
    assert closed["entries_today"] == 1
    assert [e["kind"] for e in closed["recent_events"]] == ["close", "open"]


def test_invalid_security_settings_return_bad_request(api_client: TestClient) -> None:
    response = api_client.put(
        "/security/settings",
        json={"night_mode_start": "late", "night_mode_end": "06:00", "max_open_duration_seconds": 60},
    )

    assert response.status_code == 400


def test_alert_evaluation_endpoint(api_client: TestClient) -> None:
    rows = "\n".join(
        f"2025-03-10T11:{minute:02d}:00,main,{40.0 if minute == 59 else 20.0}"
        for minute in range(30, 60)
    )
    _upload(api_client, f"timestamp,location,temperature\n{rows}\n")

    first = api_client.post("/alerts/evaluate").json()
    second = api_client.post("/alerts/evaluate").json()

    assert [(a["sensor_type"], a["severity"]) for a in first["created"]] == [("temperature", "critical")]
    assert second["created"] == []


def test_logout_ends_session(api_client: TestClient, service: DashboardService) -> None:
    response = api_client.post("/session/logout")

    assert response.status_code == 200
    assert response.json() == {"status": "logged_out"}
    assert service.session.active is False
