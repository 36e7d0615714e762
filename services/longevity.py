"""Degradation, maintenance efficiency, remaining life and component health."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, tzinfo
from typing import Dict, List, Optional, Sequence, Tuple

from models.records import AlertEvent, MaintenanceTask, SensorReading, TaskStatus
from services.aggregator import mean_of
from services.condition_scores import (
    ConditionScore,
    environmental_conditions,
    equipment_wear,
    maintenance_quality,
    structural_integrity,
    usage_intensity,
)
from services.time_window import to_local

DEFAULT_DEGRADATION_RATE = 2.5
MIN_DEGRADATION_MONTHS = 3
DEGRADATION_BOUNDS = (0.5, 10.0)
BASE_EFFICIENCY = 75.0
BASE_COST_EFFICIENCY = 80.0
ANOMALY_SCORE_CUTOFF = 0.3
NEW_SYSTEM_AGE_YEARS = 0.5
MIN_REMAINING_LIFE = 0.1
PREVENTIVE_TASK_TYPES = frozenset({"preventive", "routine"})
EFFICIENCY_READING_WINDOW = 1000
REMAINING_LIFE_READING_WINDOW = 500
STRESS_READING_WINDOW = 100
ALERT_PENALTY = 5
SEVERE_ALERT_LEVELS = frozenset({"critical", "high"})


@dataclass(frozen=True)
class _Component:
    name: str
    expected_years: float
    base_health: float
    keywords: Tuple[str, ...]


COMPONENTS = (
    _Component("HVAC System", 15, 85, ("temperature", "humidity")),
    _Component("Structural Steel", 50, 95, ("vibration", "accel")),
    _Component("Electrical Systems", 20, 90, ("voltage",)),
    _Component("Sensors Network", 10, 88, ("pm",)),
    _Component("Door Mechanisms", 12, 75, ()),
)


@dataclass(frozen=True)
class ComponentHealth:
    component: str
    current_age_years: float
    expected_years: float
    health: int


@dataclass(frozen=True)
class MaintenanceEfficiency:
    efficiency: float
    cost_efficiency: float


@dataclass
class LongevityReport:
    expected_lifespan_years: float
    current_age_years: float
    degradation_rate: float
    maintenance_efficiency: float
    cost_efficiency: float
    predicted_remaining_life: float
    components: List[ComponentHealth] = field(default_factory=list)
    conditions: Dict[str, ConditionScore] = field(default_factory=dict)


def round_half_up(value: float, digits: int = 0) -> float:
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def quality_proxy(reading: SensorReading) -> Optional[float]:
    """Explicit quality score, else ``100 - anomaly_score * 10``."""
    if reading.quality_score is not None:
        return reading.quality_score
    if reading.anomaly_score is not None:
        return 100 - reading.anomaly_score * 10
    return None


def degradation_rate(readings: Sequence[SensorReading], tz: tzinfo) -> float:
    """Annualised quality decline in percent per year, clamped to [0.5, 10]."""
    monthly: Dict[Tuple[int, int], List[float]] = {}
    for reading in readings:
        proxy = quality_proxy(reading)
        if proxy is None:
            continue
        local = to_local(reading.timestamp, tz)
        monthly.setdefault((local.year, local.month), []).append(proxy)

    if len(monthly) < MIN_DEGRADATION_MONTHS:
        return DEFAULT_DEGRADATION_RATE

    averages = [sum(values) / len(values) for _, values in sorted(monthly.items())]
    initial = sum(averages[:3]) / 3
    current = sum(averages[-3:]) / 3
    monthly_decline = (initial - current) / len(averages)
    yearly_decline = max(0.0, monthly_decline * 12)
    rate = _clamp(yearly_decline / 10, *DEGRADATION_BOUNDS)
    return round_half_up(rate, 1)


def _task_weight(task_count: int) -> float:
    return min(0.6, 0.2 + 0.04 * task_count)


def maintenance_efficiency(
    tasks: Sequence[MaintenanceTask],
    readings: Sequence[SensorReading] = (),
) -> MaintenanceEfficiency:
    efficiency = BASE_EFFICIENCY
    cost_efficiency = BASE_COST_EFFICIENCY

    recent = readings[-EFFICIENCY_READING_WINDOW:]
    anomaly_scores = [r.anomaly_score for r in recent if r.anomaly_score is not None]
    mean_quality = mean_of(quality_proxy(r) for r in recent)
    if anomaly_scores or mean_quality is not None:
        anomaly_rate = (
            sum(1 for score in anomaly_scores if score > ANOMALY_SCORE_CUTOFF) / len(anomaly_scores)
            if anomaly_scores
            else 0.0
        )
        quality = 100.0 if mean_quality is None else mean_quality
        sensor_score = _clamp(quality - anomaly_rate * 50, 25, 95)
        efficiency = round_half_up(efficiency * 0.4 + sensor_score * 0.6)

    if tasks:
        on_time = sum(
            1
            for task in tasks
            if task.status is TaskStatus.completed
            and task.completed_at is not None
            and task.completed_at <= task.due_date
        )
        task_ratio = on_time / len(tasks) * 100
        weight = _task_weight(len(tasks))
        efficiency = round_half_up(efficiency * (1 - weight) + task_ratio * weight)

        preventive = sum(1 for task in tasks if task.task_type in PREVENTIVE_TASK_TYPES)
        cost_efficiency = round_half_up(min(100.0, 60 + preventive / len(tasks) * 40))

    return MaintenanceEfficiency(
        efficiency=_clamp(efficiency, 25, 100),
        cost_efficiency=_clamp(cost_efficiency, 25, 100),
    )


def system_age_years(installed_at: datetime, now: datetime) -> float:
    days = (now - installed_at).days
    return max(0.0, days / 365.25)


def remaining_life(
    current_age: float,
    expected_lifespan: float,
    degradation: float,
    efficiency: float,
    readings: Sequence[SensorReading] = (),
) -> float:
    """Predicted remaining years.

    Systems younger than half a year have no maintenance history worth
    weighing, so only anomaly and quality adjustments apply to them.
    """
    base = expected_lifespan - current_age

    if current_age < NEW_SYSTEM_AGE_YEARS:
        recent = readings[-REMAINING_LIFE_READING_WINDOW:]
        mean_anomaly = mean_of(r.anomaly_score for r in recent)
        mean_quality = mean_of(quality_proxy(r) for r in recent)
        anomaly_adjustment = max(0.7, 1 - (mean_anomaly or 0.0) * 0.3)
        quality_adjustment = max(0.8, (100.0 if mean_quality is None else mean_quality) / 100)
        adjusted = base * anomaly_adjustment * quality_adjustment
    else:
        degradation_adjustment = (5 - degradation) / 5
        maintenance_adjustment = max(0.3, efficiency / 100)
        adjusted = base * degradation_adjustment * maintenance_adjustment

    floor = MIN_REMAINING_LIFE if current_age < expected_lifespan else 0.0
    return max(floor, round_half_up(adjusted, 1))


def _related_alerts(component: _Component, alerts: Sequence[AlertEvent]) -> int:
    count = 0
    for alert in alerts:
        if alert.severity.lower() not in SEVERE_ALERT_LEVELS:
            continue
        sensor = alert.sensor_type.lower()
        if any(keyword in sensor for keyword in component.keywords):
            count += 1
    return count


def _stress_penalty(readings: Sequence[SensorReading]) -> float:
    recent = readings[-STRESS_READING_WINDOW:]
    penalty = 0.0
    mean_temperature = mean_of(r.temperature for r in recent)
    if mean_temperature is not None:
        if mean_temperature > 35:
            penalty += 10
        if mean_temperature < 10:
            penalty += 5
    mean_vibration = mean_of(r.accel_magnitude for r in recent)
    if mean_vibration is not None and mean_vibration > 2:
        penalty += 15
    return penalty


def component_health(
    readings: Sequence[SensorReading],
    alerts: Sequence[AlertEvent],
    system_age: float,
) -> List[ComponentHealth]:
    stress = _stress_penalty(readings)
    age = round_half_up(system_age, 1)
    results = []
    for component in COMPONENTS:
        health = component.base_health - ALERT_PENALTY * _related_alerts(component, alerts) - stress
        results.append(
            ComponentHealth(
                component=component.name,
                current_age_years=age,
                expected_years=component.expected_years,
                health=int(round_half_up(_clamp(health, 0, 100))),
            )
        )
    return results


class LongevityModel:
    """Computes the full longevity report from one data snapshot.

    Every timestamp is read in ``tz``; naive values are local time.
    """

    def __init__(self, tz: tzinfo, expected_lifespan_years: float, installed_at: datetime) -> None:
        self.tz = tz
        self.expected_lifespan_years = expected_lifespan_years
        self.installed_at = installed_at

    def _localize_inputs(
        self,
        readings: Sequence[SensorReading],
        tasks: Sequence[MaintenanceTask],
        alerts: Sequence[AlertEvent],
    ) -> Tuple[List[SensorReading], List[MaintenanceTask], List[AlertEvent]]:
        tz = self.tz
        return (
            [replace(r, timestamp=to_local(r.timestamp, tz)) for r in readings],
            [
                replace(
                    t,
                    created_at=to_local(t.created_at, tz),
                    due_date=to_local(t.due_date, tz),
                    completed_at=to_local(t.completed_at, tz) if t.completed_at else None,
                )
                for t in tasks
            ],
            [replace(a, created_at=to_local(a.created_at, tz)) for a in alerts],
        )

    def report(
        self,
        readings: Sequence[SensorReading],
        tasks: Sequence[MaintenanceTask],
        alerts: Sequence[AlertEvent],
        now: datetime,
    ) -> LongevityReport:
        now = to_local(now, self.tz)
        readings, tasks, alerts = self._localize_inputs(readings, tasks, alerts)
        age = system_age_years(to_local(self.installed_at, self.tz), now)
        degradation = degradation_rate(readings, self.tz)
        efficiency = maintenance_efficiency(tasks, readings)
        return LongevityReport(
            expected_lifespan_years=self.expected_lifespan_years,
            current_age_years=age,
            degradation_rate=degradation,
            maintenance_efficiency=efficiency.efficiency,
            cost_efficiency=efficiency.cost_efficiency,
            predicted_remaining_life=remaining_life(
                age, self.expected_lifespan_years, degradation, efficiency.efficiency, readings
            ),
            components=component_health(readings, alerts, age),
            conditions={
                "equipment_wear": equipment_wear(readings, alerts, now),
                "usage_intensity": usage_intensity(readings, tasks, alerts, now),
                "environmental_conditions": environmental_conditions(readings),
                "structural_integrity": structural_integrity(readings),
                "maintenance_quality": maintenance_quality(alerts, tasks),
            },
        )
