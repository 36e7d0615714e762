"""Re-evaluate the latest readings against the dynamic threshold policy."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence

from models.channels import CHANNELS, get_channel
from models.records import AlertEvent, SensorReading
from services.thresholds import DynamicThresholdEngine, Severity, ThresholdResult, classify_value

logger = logging.getLogger(__name__)

DEDUP_WINDOW = timedelta(hours=24)
_PRIORITIES = {Severity.critical: "P1", Severity.warning: "P2"}


def crossed_bound(value: float, severity: Severity, result: ThresholdResult) -> float:
    if severity is Severity.critical:
        high, low = result.critical_high, result.critical_low
    else:
        high, low = result.warning_high, result.warning_low
    if value > high or low is None:
        return high
    return low


def is_duplicate(candidate: AlertEvent, existing: Iterable[AlertEvent]) -> bool:
    """An open alert with the same identity tuple inside the last 24 hours."""
    for alert in existing:
        if not alert.is_open:
            continue
        if (
            alert.sensor_type == candidate.sensor_type
            and alert.location == candidate.location
            and alert.sensor_value == candidate.sensor_value
            and alert.threshold == candidate.threshold
            and candidate.created_at - alert.created_at < DEDUP_WINDOW
        ):
            return True
    return False


class AlertMonitor:
    def __init__(self, engine: DynamicThresholdEngine) -> None:
        self.engine = engine

    def evaluate(
        self,
        readings: Sequence[SensorReading],
        existing_alerts: Sequence[AlertEvent],
        now: datetime,
        channels: Optional[Sequence[str]] = None,
    ) -> List[AlertEvent]:
        created: List[AlertEvent] = []
        for channel_id in channels if channels is not None else list(CHANNELS):
            descriptor = get_channel(channel_id)
            values = [reading.channel_value(descriptor.column) for reading in readings]
            latest = next(
                (
                    reading
                    for reading in reversed(readings)
                    if reading.channel_value(descriptor.column) is not None
                ),
                None,
            )
            if latest is None:
                continue

            value = latest.channel_value(descriptor.column)
            result = self.engine.compute(values, descriptor)
            severity = classify_value(value, result)
            if severity is Severity.normal:
                continue

            candidate = AlertEvent(
                created_at=now,
                severity=severity.value.lower(),
                priority=_PRIORITIES[severity],
                sensor_type=channel_id,
                location=latest.location,
                sensor_value=round(value, 2),
                threshold=round(crossed_bound(value, severity, result), 2),
            )
            if is_duplicate(candidate, [*existing_alerts, *created]):
                logger.debug("Suppressed duplicate alert", extra={"channel": channel_id})
                continue
            created.append(candidate)
            logger.info(
                "Threshold alert raised",
                extra={"channel": channel_id, "state": candidate.severity},
            )
        return created
