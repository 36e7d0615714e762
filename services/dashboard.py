"""Dashboard orchestration: wires the store, analytics and live security monitor."""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta
from functools import lru_cache
from typing import Callable, Hashable, List, Optional

from datastore.session_cache import SessionCache
from datastore.telemetry_store import TelemetryStore, build_default_store
from models.channels import get_channel
from models.records import AlertEvent, DoorEvent, DoorEventKind, SecuritySettings
from services.aggregator import AggregationPipeline, SeriesResult
from services.alert_monitor import DEDUP_WINDOW, AlertMonitor
from services.door_security import (
    DoorSecurityMonitor,
    DoorSecurityStateMachine,
    SecurityStatus,
)
from services.ingest import IngestResult, parse_readings_csv
from services.longevity import LongevityModel, LongevityReport
from services.reliability import ReliabilityAnalytics, ReliabilityReport
from services.scheduling import EventFeed, Scheduler, ThreadingScheduler
from services.thresholds import DynamicThresholdEngine, ThresholdResult
from services.time_window import DEFAULT_LOOKBACK_HOURS, TimeWindowResolver, to_local
from settings import Settings, get_settings, parse_time_of_day

logger = logging.getLogger(__name__)

ALERT_EVALUATION_LOOKBACK_HOURS = 24
# fetch_readings treats ``end`` as exclusive
_INCLUSIVE_END = timedelta(seconds=1)


class DashboardService:
    """Coordinates storage, analytics, session caching and door security."""

    def __init__(
        self,
        store: TelemetryStore,
        settings: Settings,
        clock: Optional[Callable[[], datetime]] = None,
        scheduler: Optional[Scheduler] = None,
        session: Optional[SessionCache] = None,
    ) -> None:
        self.store = store
        self.settings = settings
        self.tz = settings.timezone
        self.clock = clock or (lambda: datetime.now(self.tz))
        self.resolver = TimeWindowResolver(self.tz)
        self.pipeline = AggregationPipeline(store, self.resolver)
        self.thresholds = DynamicThresholdEngine(sigma=settings.threshold_sigma)
        self.reliability = ReliabilityAnalytics(self.tz, settings.gap_tolerance_minutes)
        self.longevity = LongevityModel(
            self.tz, settings.expected_lifespan_years, settings.system_installed_at
        )
        self.alert_monitor = AlertMonitor(self.thresholds)
        self.session = session or SessionCache()
        self.door_events: EventFeed[DoorEvent] = EventFeed()
        self.door_monitor = DoorSecurityMonitor(
            DoorSecurityStateMachine(store.get_security_settings(), self.tz),
            scheduler or ThreadingScheduler(),
            self.door_events,
            self.clock,
        )

    def start(self) -> None:
        self.session.start()
        self.door_monitor.start()

    def shutdown(self) -> None:
        self.door_monitor.stop()
        self.session.clear()

    def logout(self) -> None:
        self.session.clear()

    def now(self) -> datetime:
        return to_local(self.clock(), self.tz)

    def ingest_csv(self, contents: bytes) -> IngestResult:
        result = parse_readings_csv(contents)
        if result.readings:
            self.store.add_readings(result.readings)
            self.session.invalidate()
            self.session.mark_synced(self.now())
        return result

    def series(
        self,
        channel_id: str,
        lookback_hours: int = DEFAULT_LOOKBACK_HOURS,
        weekly: bool = False,
    ) -> SeriesResult:
        get_channel(channel_id)
        now = self.now()
        plan = self.resolver.resolve(lookback_hours, now)
        key = ("series", channel_id, plan.lookback_hours, weekly, plan.bucket_keys[-1])
        return self._cached(
            key, lambda: self.pipeline.build_series(channel_id, lookback_hours, now, weekly)
        )

    def threshold_values(
        self, channel_id: str, lookback_hours: int = DEFAULT_LOOKBACK_HOURS
    ) -> List[Optional[float]]:
        return self.pipeline.window_values(channel_id, lookback_hours, self.now())

    def channel_thresholds(
        self,
        channel_id: str,
        lookback_hours: int = DEFAULT_LOOKBACK_HOURS,
        sigma: Optional[float] = None,
    ) -> ThresholdResult:
        descriptor = get_channel(channel_id)
        if sigma is not None and sigma <= 0:
            raise ValueError("sigma must be greater than zero.")
        now = self.now()
        plan = self.resolver.resolve(lookback_hours, now)
        key = ("thresholds", channel_id, plan.lookback_hours, sigma, plan.bucket_keys[-1])
        return self._cached(
            key,
            lambda: self.thresholds.compute(
                self.pipeline.window_values(channel_id, lookback_hours, now), descriptor, sigma
            ),
        )

    def reliability_report(self, period_hours: float = 24.0) -> ReliabilityReport:
        if period_hours <= 0:
            raise ValueError("period_hours must be greater than zero.")
        now = self.now()
        window = timedelta(hours=period_hours)
        installed_at = self.settings.system_installed_at
        history_start = min(to_local(installed_at, self.tz), now - window)
        history = self.store.fetch_readings(history_start, now + _INCLUSIVE_END)
        return self.reliability.report(
            readings=history,
            tasks=self.store.fetch_tasks(since=now - 2 * window),
            alerts=self.store.fetch_alerts(since=now - 2 * window),
            period_hours=period_hours,
            now=now,
            installed_at=installed_at,
        )

    def longevity_report(self) -> LongevityReport:
        now = self.now()
        readings = self.store.fetch_readings(
            to_local(self.settings.system_installed_at, self.tz), now + _INCLUSIVE_END
        )
        return self.longevity.report(
            readings, self.store.fetch_tasks(), self.store.fetch_alerts(), now
        )

    def security_status(self) -> SecurityStatus:
        return self.door_monitor.refresh()

    def record_door_event(
        self, kind: DoorEventKind, timestamp: Optional[datetime] = None
    ) -> SecurityStatus:
        event = DoorEvent(kind=kind, timestamp=to_local(timestamp or self.clock(), self.tz))
        self.door_events.publish(event)
        return self.door_monitor.status

    def security_settings(self) -> SecuritySettings:
        return self.store.get_security_settings()

    def update_security_settings(
        self,
        night_mode_start: str | time,
        night_mode_end: str | time,
        max_open_duration_seconds: int,
    ) -> SecuritySettings:
        if max_open_duration_seconds <= 0:
            raise ValueError("max_open_duration_seconds must be greater than zero.")
        settings = SecuritySettings(
            night_mode_start=_as_time(night_mode_start),
            night_mode_end=_as_time(night_mode_end),
            max_open_duration_seconds=max_open_duration_seconds,
        )
        self.store.put_security_settings(settings)
        self.door_monitor.update_settings(settings)
        return settings

    def evaluate_alerts(self) -> List[AlertEvent]:
        now = self.now()
        readings = self.pipeline.window_readings(ALERT_EVALUATION_LOOKBACK_HOURS, now)
        created = self.alert_monitor.evaluate(
            readings, self.store.fetch_alerts(since=now - DEDUP_WINDOW), now
        )
        if created:
            self.store.add_alerts(created)
            self.session.invalidate()
        return created

    def _cached(self, key: Hashable, compute: Callable[[], object]):
        cached = self.session.get(key)
        if cached is not None:
            return cached
        value = compute()
        self.session.put(key, value)
        return value


def _as_time(value: str | time) -> time:
    if isinstance(value, time):
        return value
    return parse_time_of_day(value)


@lru_cache
def build_default_service() -> DashboardService:
    """Factory that wires the dashboard with the default store and settings."""
    return DashboardService(store=build_default_store(), settings=get_settings())
