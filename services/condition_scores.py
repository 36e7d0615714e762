"""Banded condition scores shown next to the longevity prediction."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple

from models.records import AlertEvent, MaintenanceTask, SensorReading, TaskStatus

RECENT_WINDOW = timedelta(days=30)


@dataclass(frozen=True)
class ConditionScore:
    level: str
    score: int


def _band(score: float, bands: Sequence[Tuple[float, str]], fallback: str) -> str:
    for minimum, level in bands:
        if score >= minimum:
            return level
    return fallback


def _present(values) -> List[float]:
    return [value for value in values if value is not None]


def _variance(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    return sum((value - mean) ** 2 for value in values) / len(values)


def _quartiles(values: Sequence[float]) -> Tuple[float, float]:
    ordered = sorted(values)
    return ordered[int(len(ordered) * 0.25)], ordered[int(len(ordered) * 0.75)]


def equipment_wear(
    readings: Sequence[SensorReading], alerts: Sequence[AlertEvent], now: datetime
) -> ConditionScore:
    if not readings:
        return ConditionScore("Moderate", 50)

    recent = readings[-1000:]
    score = 0

    vibrations = [
        math.hypot(r.accel_magnitude or 0.0, r.gyro_magnitude or 0.0)
        for r in recent
        if r.accel_magnitude is not None or r.gyro_magnitude is not None
    ]
    avg_vibration = sum(vibrations) / len(vibrations) if vibrations else 0.0
    if avg_vibration > 3:
        score += 40
    elif avg_vibration > 2:
        score += 30
    elif avg_vibration > 1:
        score += 20
    else:
        score += 10

    temperatures = _present(r.temperature for r in recent)
    if temperatures:
        avg_temp = sum(temperatures) / len(temperatures)
        spread = max(temperatures) - min(temperatures)
        if avg_temp > 35 or avg_temp < 10 or spread > 20:
            score += 25
        elif avg_temp > 30 or avg_temp < 15 or spread > 15:
            score += 15
        else:
            score += 5
    else:
        score += 5

    cutoff = now - RECENT_WINDOW
    recent_alerts = [a for a in alerts if a.created_at > cutoff]
    critical = sum(1 for a in recent_alerts if a.severity.lower() == "critical")
    high = sum(1 for a in recent_alerts if a.severity.lower() == "high")
    if critical > 5 or high > 10:
        score += 35
    elif critical > 2 or high > 5:
        score += 25
    elif critical > 0 or high > 2:
        score += 15
    else:
        score += 5

    level = _band(score, [(80, "Critical"), (60, "High"), (40, "Moderate")], "Low")
    return ConditionScore(level, score)


def usage_intensity(
    readings: Sequence[SensorReading],
    tasks: Sequence[MaintenanceTask],
    alerts: Sequence[AlertEvent],
    now: datetime,
) -> ConditionScore:
    if not readings:
        return ConditionScore("Normal", 50)

    cutoff = now - RECENT_WINDOW
    score = 0

    daily_average = sum(1 for r in readings if r.timestamp > cutoff) / RECENT_WINDOW.days
    if daily_average > 2000:
        score += 40
    elif daily_average > 1000:
        score += 30
    elif daily_average > 500:
        score += 20
    else:
        score += 10

    completed = sum(
        1 for t in tasks if t.created_at > cutoff and t.status is TaskStatus.completed
    )
    if completed > 10:
        score += 30
    elif completed > 5:
        score += 20
    elif completed > 2:
        score += 15
    else:
        score += 5

    recent_alerts = sum(1 for a in alerts if a.created_at > cutoff)
    if recent_alerts > 50:
        score += 30
    elif recent_alerts > 25:
        score += 20
    elif recent_alerts > 10:
        score += 15
    else:
        score += 5

    level = _band(score, [(80, "Very High"), (60, "High"), (40, "Normal")], "Low")
    return ConditionScore(level, score)


def _stability_score(
    values: Sequence[float],
    weight: float,
    std_scale: float,
    bounds: Tuple[Optional[float], Optional[float]] = (None, None),
) -> float:
    q1, q3 = _quartiles(values)
    iqr = q3 - q1
    low, high = q1 - iqr * 0.5, q3 + iqr * 0.5
    if bounds[0] is not None:
        low = max(bounds[0], low)
    if bounds[1] is not None:
        high = min(bounds[1], high)
    in_range = sum(1 for value in values if low <= value <= high) / len(values)
    variation = max(0.0, 1 - math.sqrt(_variance(values)) / std_scale)
    return (in_range * 0.7 + variation * 0.3) * weight


def environmental_conditions(readings: Sequence[SensorReading]) -> ConditionScore:
    if not readings:
        return ConditionScore("Good", 75)

    recent = readings[-500:]
    temperatures = _present(r.temperature for r in recent)
    humidities = _present(r.humidity for r in recent)
    particulates = _present(r.pm2_5 for r in recent)

    temp_score = _stability_score(temperatures, 35, 10) if len(temperatures) > 10 else 20
    humidity_score = (
        _stability_score(humidities, 35, 15, bounds=(30, 70)) if len(humidities) > 10 else 20
    )
    air_score = (
        sum(1 for value in particulates if value < 25) / len(particulates) * 30
        if particulates
        else 20
    )

    total = temp_score + humidity_score + air_score
    level = _band(
        total, [(85, "Excellent"), (70, "Good"), (50, "Fair"), (30, "Poor")], "Critical"
    )
    return ConditionScore(level, round(total))


def structural_integrity(readings: Sequence[SensorReading]) -> ConditionScore:
    if not readings:
        return ConditionScore("Excellent", 90)

    recent = readings[-300:]
    vibrating = [
        r for r in recent if r.accel_magnitude is not None or r.gyro_magnitude is not None
    ]
    vibration_score = 35.0
    if vibrating:
        high = sum(
            1
            for r in vibrating
            if (r.accel_magnitude or 0.0) > 2.0 or (r.gyro_magnitude or 0.0) > 1.5
        )
        vibration_score = max(5.0, 40 - high / len(vibrating) * 40)

    temperatures = _present(r.temperature for r in recent)
    stability_score = 30.0
    if len(temperatures) > 10:
        stability_score = max(5.0, 35 - min(_variance(temperatures) * 2, 30))

    pressures = _present(r.pressure for r in recent)
    pressure_score = 20.0
    if len(pressures) > 10:
        pressure_score = max(5.0, 25 - min(_variance(pressures) / 100, 20))

    total = vibration_score + stability_score + pressure_score
    level = _band(
        total, [(90, "Excellent"), (75, "Good"), (60, "Fair"), (40, "Poor")], "Critical"
    )
    return ConditionScore(level, round(total))


def maintenance_quality(
    alerts: Sequence[AlertEvent], tasks: Sequence[MaintenanceTask]
) -> ConditionScore:
    if not alerts and not tasks:
        return ConditionScore("Good", 70)

    alert_score = 30.0
    if alerts:
        alert_score = sum(1 for a in alerts if a.resolved_at is not None) / len(alerts) * 40

    if tasks:
        completed = sum(1 for t in tasks if t.status is TaskStatus.completed)
        task_score = completed / len(tasks) * 35
        preventive = sum(1 for t in tasks if t.task_type in ("preventive", "routine"))
        preventive_score = preventive / len(tasks) * 25
    else:
        task_score = 20.0
        preventive_score = 10.0

    total = alert_score + task_score + preventive_score
    level = _band(
        total, [(85, "Excellent"), (70, "High"), (55, "Good"), (40, "Fair")], "Poor"
    )
    return ConditionScore(level, round(total))
