from __future__ import annotations
import json
from dataclasses import dataclass, field, replace
from datetime import datetime, tzinfo
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Iterable, List, Optional

from pydantic import TypeAdapter, ValidationError

from models.records import (
    AggregatedBucket,
    AggregationLevel,
    AlertEvent,
    MaintenanceTask,
    SecuritySettings,
    SensorReading,
)
from services.time_window import to_local
from settings import get_settings


class TelemetryStoreError(RuntimeError):
    """Raised when the backing store cannot serve a request."""


@dataclass
class _Snapshot:
    readings: List[SensorReading] = field(default_factory=list)
    rollups: List[AggregatedBucket] = field(default_factory=list)
    tasks: List[MaintenanceTask] = field(default_factory=list)
    alerts: List[AlertEvent] = field(default_factory=list)
    security: SecuritySettings = field(default_factory=SecuritySettings)


_SNAPSHOT_ADAPTER = TypeAdapter(_Snapshot)


class TelemetryStore:
    """In-memory stand-in for the managed backing store.

    Timestamps are normalised to the reporting timezone on write so that
    range queries compare like with like. Reads return fresh lists.
    """

    def __init__(self, tz: tzinfo, persistence_path: Optional[Path] = None) -> None:
        self.tz = tz
        self.persistence_path = persistence_path
        self._data = _Snapshot()
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def add_readings(self, readings: Iterable[SensorReading]) -> int:
        normalized = [replace(r, timestamp=to_local(r.timestamp, self.tz)) for r in readings]
        with self._lock:
            self._data.readings.extend(normalized)
            self._data.readings.sort(key=lambda reading: reading.timestamp)
            self._persist()
        return len(normalized)

    def fetch_readings(self, start: datetime, end: datetime) -> List[SensorReading]:
        """Readings with ``start <= timestamp < end``, oldest first."""
        start, end = to_local(start, self.tz), to_local(end, self.tz)
        with self._lock:
            return [r for r in self._data.readings if start <= r.timestamp < end]

    def put_rollups(self, rollups: Iterable[AggregatedBucket]) -> None:
        normalized = [
            replace(r, time_bucket=to_local(r.time_bucket, self.tz)) for r in rollups
        ]
        with self._lock:
            self._data.rollups.extend(normalized)
            self._data.rollups.sort(key=lambda rollup: rollup.time_bucket)
            self._persist()

    def fetch_rollups(
        self, level: AggregationLevel, start: datetime, end: datetime
    ) -> List[AggregatedBucket]:
        start, end = to_local(start, self.tz), to_local(end, self.tz)
        with self._lock:
            return [
                r
                for r in self._data.rollups
                if r.aggregation_level is level and start <= r.time_bucket < end
            ]

    def add_tasks(self, tasks: Iterable[MaintenanceTask]) -> None:
        normalized = [
            replace(
                t,
                created_at=to_local(t.created_at, self.tz),
                due_date=to_local(t.due_date, self.tz),
                completed_at=to_local(t.completed_at, self.tz) if t.completed_at else None,
            )
            for t in tasks
        ]
        with self._lock:
            self._data.tasks.extend(normalized)
            self._persist()

    def fetch_tasks(self, since: Optional[datetime] = None) -> List[MaintenanceTask]:
        with self._lock:
            tasks = list(self._data.tasks)
        if since is None:
            return tasks
        since = to_local(since, self.tz)
        return [t for t in tasks if t.created_at >= since]

    def add_alerts(self, alerts: Iterable[AlertEvent]) -> None:
        normalized = [
            replace(
                a,
                created_at=to_local(a.created_at, self.tz),
                resolved_at=to_local(a.resolved_at, self.tz) if a.resolved_at else None,
            )
            for a in alerts
        ]
        with self._lock:
            self._data.alerts.extend(normalized)
            self._data.alerts.sort(key=lambda alert: alert.created_at)
            self._persist()

    def fetch_alerts(self, since: Optional[datetime] = None) -> List[AlertEvent]:
        with self._lock:
            alerts = list(self._data.alerts)
        if since is None:
            return alerts
        since = to_local(since, self.tz)
        return [a for a in alerts if a.created_at >= since]

    def get_security_settings(self) -> SecuritySettings:
        with self._lock:
            return self._data.security

    def put_security_settings(self, security: SecuritySettings) -> None:
        with self._lock:
            self._data.security = security
            self._persist()

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = _SNAPSHOT_ADAPTER.dump_python(self._data, mode="json")
        try:
            self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))
        except OSError as exc:
            raise TelemetryStoreError(f"Could not persist store: {exc}") from exc

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            self._data = _SNAPSHOT_ADAPTER.validate_python(json.loads(raw))
        except (OSError, json.JSONDecodeError, ValidationError):
            self._data = _Snapshot()


@lru_cache
def build_default_store(path: Optional[str] = None) -> TelemetryStore:
    settings = get_settings()
    store_path = settings.store_path if path is None else path
    persistence = Path(store_path) if store_path else None
    store = TelemetryStore(tz=settings.timezone, persistence_path=persistence)
    if persistence is None or not persistence.exists():
        store.put_security_settings(
            SecuritySettings(
                night_mode_start=settings.night_mode_start,
                night_mode_end=settings.night_mode_end,
                max_open_duration_seconds=settings.max_open_duration_seconds,
            )
        )
    return store
