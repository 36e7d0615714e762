"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time
from enum import Enum
from typing import Dict, Optional


SENSOR_CHANNELS = (
    "temperature",
    "humidity",
    "pressure",
    "gas_resistance",
    "pm1_0",
    "pm2_5",
    "pm10",
    "accel_x",
    "accel_y",
    "accel_z",
    "accel_magnitude",
    "gyro_x",
    "gyro_y",
    "gyro_z",
    "gyro_magnitude",
)


@dataclass(frozen=True, slots=True)
class SensorReading:
    """A single multi-channel reading; absent channels are ``None``."""

    timestamp: datetime
    location: str = "main"
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    pressure: Optional[float] = None
    gas_resistance: Optional[float] = None
    pm1_0: Optional[float] = None
    pm2_5: Optional[float] = None
    pm10: Optional[float] = None
    accel_x: Optional[float] = None
    accel_y: Optional[float] = None
    accel_z: Optional[float] = None
    accel_magnitude: Optional[float] = None
    gyro_x: Optional[float] = None
    gyro_y: Optional[float] = None
    gyro_z: Optional[float] = None
    gyro_magnitude: Optional[float] = None
    anomaly_score: Optional[float] = None
    quality_score: Optional[float] = None

    def channel_value(self, column: str) -> Optional[float]:
        return getattr(self, column)


class AggregationLevel(str, Enum):
    day = "day"
    week = "week"
    month = "month"


@dataclass(frozen=True)
class AggregatedBucket:
    """A pre-rolled bucket produced by the upstream rollup job."""

    time_bucket: datetime
    aggregation_level: AggregationLevel
    averages: Dict[str, Optional[float]] = field(default_factory=dict)
    minimums: Dict[str, Optional[float]] = field(default_factory=dict)
    maximums: Dict[str, Optional[float]] = field(default_factory=dict)
    sample_count: int = 0


class ThresholdKind(str, Enum):
    warning = "warning"
    critical = "critical"
    optimal_min = "optimal-min"
    optimal_max = "optimal-max"


@dataclass(frozen=True)
class Threshold:
    channel: str
    kind: ThresholdKind
    value: float
    label: str


class TaskStatus(str, Enum):
    pending = "pending"
    in_progress = "in-progress"
    completed = "completed"


@dataclass(frozen=True)
class MaintenanceTask:
    created_at: datetime
    due_date: datetime
    status: TaskStatus = TaskStatus.pending
    task_type: str = "corrective"
    completed_at: Optional[datetime] = None
    estimated_cost: Optional[float] = None
    actual_cost: Optional[float] = None

    @property
    def cost(self) -> Optional[float]:
        return self.actual_cost if self.actual_cost is not None else self.estimated_cost


@dataclass(frozen=True)
class AlertEvent:
    created_at: datetime
    severity: str
    priority: str
    sensor_type: str
    location: str = "main"
    sensor_value: Optional[float] = None
    threshold: Optional[float] = None
    cost: Optional[float] = None
    resolved_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.resolved_at is None


@dataclass(frozen=True)
class SecuritySettings:
    night_mode_start: time = time(23, 0)
    night_mode_end: time = time(6, 0)
    max_open_duration_seconds: int = 300


class DoorEventKind(str, Enum):
    open = "open"
    close = "close"


@dataclass(frozen=True)
class DoorEvent:
    kind: DoorEventKind
    timestamp: datetime


class DoorStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class DoorState:
    status: DoorStatus = DoorStatus.CLOSED
    opened_at: Optional[datetime] = None
