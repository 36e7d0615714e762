"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.records import DoorEventKind, DoorStatus, ThresholdKind
from services.door_security import SecurityState
from services.ingest import IngestStatus
from services.time_window import Resolution


class _FromAttributes(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class IngestError(_FromAttributes):
    """Details about a row that failed validation or parsing."""

    row_number: int = Field(..., ge=1)
    reason: str


class IngestResponse(BaseModel):
    """Outcome of a readings upload."""

    status: IngestStatus
    accepted: int = Field(..., ge=0, description="Readings stored from this upload.")
    errors: List[IngestError] = Field(default_factory=list)
    synced_at: Optional[datetime] = None


class ChartPointModel(_FromAttributes):
    label: str
    timestamp: datetime
    value: Optional[float] = None
    axes: Dict[str, Optional[float]] = Field(default_factory=dict)
    sample_count: int = 0
    has_data: bool = Field(False, description="False for backfilled buckets.")


class SeriesResponse(_FromAttributes):
    channel: str
    unit: str
    lookback_hours: int
    resolution: Resolution
    source: str = Field(..., description="'rollup' or 'raw'.")
    points: List[ChartPointModel] = Field(default_factory=list)


class ValueRangeModel(_FromAttributes):
    min: float
    max: float


class WindowStatisticsModel(_FromAttributes):
    count: int
    mean: Optional[float] = None
    std: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None


class ThresholdModel(_FromAttributes):
    kind: ThresholdKind
    value: float
    label: str


class TrendModel(_FromAttributes):
    direction: str
    percentage: float
    is_anomalous: bool
    prediction: str
    recommendation: Optional[str] = None


class ThresholdResponse(_FromAttributes):
    channel: str
    sigma: float
    applicable: bool = Field(..., description="False when registry defaults were used.")
    optimal_range: ValueRangeModel
    axis_range: ValueRangeModel
    statistics: WindowStatisticsModel
    warning_high: float
    critical_high: float
    warning_low: Optional[float] = None
    critical_low: Optional[float] = None
    thresholds: List[ThresholdModel] = Field(default_factory=list)
    anomaly_count: int = 0
    trend: Optional[TrendModel] = None


class UptimeModel(_FromAttributes):
    uptime_percent: float
    downtime_percent: float
    downtime_minutes: float
    downtime_hours: float
    incidents: int


class MonthlyUptimeModel(_FromAttributes):
    month: str
    uptime_percent: float
    downtime_percent: float
    incidents: int


class CorrelationModel(_FromAttributes):
    channel: str
    coefficient: float
    pairs: int


class CostTrendModel(_FromAttributes):
    current: float
    previous: float
    change_percent: Optional[float] = None


class ReliabilityResponse(_FromAttributes):
    period_hours: float
    uptime: UptimeModel
    mttr_hours: Optional[float] = None
    mtbf_hours: Optional[float] = None
    correlations: List[CorrelationModel] = Field(default_factory=list)
    cost: Optional[CostTrendModel] = None
    monthly_uptime: List[MonthlyUptimeModel] = Field(default_factory=list)


class ComponentHealthModel(_FromAttributes):
    component: str
    current_age_years: float
    expected_years: float
    health: int


class ConditionScoreModel(_FromAttributes):
    level: str
    score: int


class LongevityResponse(_FromAttributes):
    expected_lifespan_years: float
    current_age_years: float
    degradation_rate: float
    maintenance_efficiency: float
    cost_efficiency: float
    predicted_remaining_life: float
    components: List[ComponentHealthModel] = Field(default_factory=list)
    conditions: Dict[str, ConditionScoreModel] = Field(default_factory=dict)


class DoorEventModel(_FromAttributes):
    kind: DoorEventKind
    timestamp: datetime


class SecurityStatusResponse(_FromAttributes):
    state: SecurityState
    is_red_alert: bool
    is_amber_warning: bool
    elapsed_seconds: int = Field(..., ge=0)
    opened_at: Optional[datetime] = None
    door_status: DoorStatus
    entries_today: int = Field(default=0, ge=0)
    recent_events: List[DoorEventModel] = Field(
        default_factory=list, description="Latest door events, newest first."
    )


class DoorEventRequest(BaseModel):
    kind: DoorEventKind
    timestamp: Optional[datetime] = Field(
        default=None, description="Event time; defaults to the server clock."
    )


class SecuritySettingsPayload(BaseModel):
    night_mode_start: str = Field(..., description="Local time of day, HH:MM.")
    night_mode_end: str = Field(..., description="Local time of day, HH:MM.")
    max_open_duration_seconds: int


class AlertModel(_FromAttributes):
    created_at: datetime
    severity: str
    priority: str
    sensor_type: str
    location: str
    sensor_value: Optional[float] = None
    threshold: Optional[float] = None


class AlertEvaluationResponse(BaseModel):
    created: List[AlertModel] = Field(default_factory=list)
