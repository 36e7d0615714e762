"""Aggregation logic turning readings and rollups into chart series."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from datastore.telemetry_store import TelemetryStore, TelemetryStoreError
from models.channels import ChannelDescriptor, get_channel
from models.records import AggregatedBucket, AggregationLevel, SensorReading
from services.time_window import (
    Resolution,
    TimeWindowResolver,
    WindowPlan,
    bucket_instant,
    format_label,
)

logger = logging.getLogger(__name__)

ROLLUP_MIN_COVERAGE = 4 / 7
WEEKS_PER_MONTH_VIEW = 4


@dataclass
class ChartPoint:
    """One plotted bucket; ``has_data`` is False for backfilled buckets."""

    label: str
    timestamp: datetime
    value: Optional[float] = None
    axes: Dict[str, Optional[float]] = field(default_factory=dict)
    sample_count: int = 0
    has_data: bool = False


@dataclass
class SeriesResult:
    channel: str
    lookback_hours: int
    resolution: Resolution
    source: str
    points: List[ChartPoint] = field(default_factory=list)


def mean_of(values: Iterable[Optional[float]]) -> Optional[float]:
    """Arithmetic mean over present values, ``None`` when nothing is present."""
    total = 0.0
    count = 0
    for value in values:
        if value is None:
            continue
        total += value
        count += 1
    if not count:
        return None
    return total / count


@dataclass
class _BucketAccumulator:
    sample_count: int = 0
    totals: Dict[str, float] = field(default_factory=dict)
    counts: Dict[str, int] = field(default_factory=dict)

    def add(self, reading: SensorReading, columns: Sequence[str]) -> None:
        self.sample_count += 1
        for column in columns:
            value = reading.channel_value(column)
            if value is None:
                continue
            self.totals[column] = self.totals.get(column, 0.0) + value
            self.counts[column] = self.counts.get(column, 0) + 1

    def average(self, column: str) -> Optional[float]:
        count = self.counts.get(column, 0)
        if not count:
            return None
        return self.totals[column] / count


@dataclass
class _BucketValue:
    value: Optional[float]
    axes: Dict[str, Optional[float]]
    sample_count: int

    @property
    def has_value(self) -> bool:
        return self.value is not None or any(v is not None for v in self.axes.values())


def group_readings(
    readings: Iterable[SensorReading],
    plan: WindowPlan,
    descriptor: ChannelDescriptor,
) -> Dict[datetime, _BucketValue]:
    """Average each channel column per bucket over non-null samples only."""
    columns = descriptor.columns
    accumulators: Dict[datetime, _BucketAccumulator] = {}
    for reading in readings:
        key = plan.bucket_id(reading.timestamp)
        accumulator = accumulators.get(key)
        if accumulator is None:
            accumulator = accumulators[key] = _BucketAccumulator()
        accumulator.add(reading, columns)

    grouped: Dict[datetime, _BucketValue] = {}
    for key, accumulator in accumulators.items():
        grouped[key] = _BucketValue(
            value=accumulator.average(descriptor.column),
            axes={axis: accumulator.average(column) for axis, column in descriptor.axes.items()},
            sample_count=accumulator.sample_count,
        )
    return grouped


def rollups_to_buckets(
    rollups: Iterable[AggregatedBucket],
    plan: WindowPlan,
    descriptor: ChannelDescriptor,
) -> Dict[datetime, _BucketValue]:
    grouped: Dict[datetime, _BucketValue] = {}
    for rollup in rollups:
        grouped[plan.bucket_id(rollup.time_bucket)] = _BucketValue(
            value=rollup.averages.get(descriptor.column),
            axes={axis: rollup.averages.get(column) for axis, column in descriptor.axes.items()},
            sample_count=rollup.sample_count,
        )
    return grouped


def backfill(plan: WindowPlan, grouped: Dict[datetime, _BucketValue]) -> List[ChartPoint]:
    """Left-join computed buckets onto every expected bucket key."""
    points: List[ChartPoint] = []
    for key in plan.bucket_keys:
        bucket = grouped.get(bucket_instant(key))
        if bucket is None or not bucket.has_value:
            points.append(
                ChartPoint(
                    label=plan.label(key),
                    timestamp=key,
                    sample_count=bucket.sample_count if bucket else 0,
                )
            )
            continue
        points.append(
            ChartPoint(
                label=plan.label(key),
                timestamp=key,
                value=bucket.value,
                axes=dict(bucket.axes),
                sample_count=bucket.sample_count,
                has_data=True,
            )
        )
    return points


def downsample(points: Sequence[ChartPoint], max_points: int) -> List[ChartPoint]:
    """Keep every step-th point and always the final one."""
    count = len(points)
    if max_points <= 0 or count <= max_points:
        return list(points)
    step = math.ceil(count / max_points)
    sampled = [points[index] for index in range(0, count, step)]
    if (count - 1) % step != 0:
        sampled.append(points[-1])
    return sampled


def required_rollup_days(expected_days: int) -> int:
    return math.ceil(expected_days * ROLLUP_MIN_COVERAGE)


def collapse_weeks(
    points: Sequence[ChartPoint],
    now: datetime,
    weeks: int = WEEKS_PER_MONTH_VIEW,
) -> List[ChartPoint]:
    """Average daily points into fixed 7-day windows counted back from ``now``."""
    collapsed: List[ChartPoint] = []
    for index in range(weeks - 1, -1, -1):
        window_end = now - timedelta(days=7 * index)
        window_start = window_end - timedelta(days=7)
        days = [point for point in points if window_start < point.timestamp <= window_end]
        present = [point for point in days if point.has_data]
        anchor = days[0].timestamp if days else window_start
        axis_names = sorted({axis for point in present for axis in point.axes})
        value = mean_of(point.value for point in present)
        collapsed.append(
            ChartPoint(
                label=format_label(anchor, Resolution.week),
                timestamp=anchor,
                value=value,
                axes={
                    axis: mean_of(point.axes.get(axis) for point in present)
                    for axis in axis_names
                },
                sample_count=sum(point.sample_count for point in days),
                has_data=bool(present),
            )
        )
    return collapsed


class AggregationPipeline:
    """Fetches raw or pre-rolled data and produces backfilled chart series."""

    def __init__(self, store: TelemetryStore, resolver: TimeWindowResolver) -> None:
        self.store = store
        self.resolver = resolver

    def build_series(
        self,
        channel_id: str,
        lookback_hours: int,
        now: datetime,
        weekly: bool = False,
    ) -> SeriesResult:
        descriptor = get_channel(channel_id)
        plan = self.resolver.resolve(lookback_hours, now)

        if plan.uses_rollups:
            source, grouped = self._daily_buckets(plan, descriptor)
            points = backfill(plan, grouped)
            resolution = plan.resolution
            if weekly and plan.lookback_hours == 720:
                points = collapse_weeks(points, plan.now)
                resolution = Resolution.week
        else:
            source = "raw"
            readings = self.store.fetch_readings(plan.start, plan.end)
            points = downsample(
                backfill(plan, group_readings(readings, plan, descriptor)),
                plan.max_points,
            )
            resolution = plan.resolution

        logger.debug(
            "Built chart series",
            extra={
                "channel": channel_id,
                "lookback_hours": plan.lookback_hours,
                "resolution": resolution.value,
                "source": source,
                "point_count": len(points),
            },
        )
        return SeriesResult(
            channel=channel_id,
            lookback_hours=plan.lookback_hours,
            resolution=resolution,
            source=source,
            points=points,
        )

    def window_readings(self, lookback_hours: int, now: datetime) -> List[SensorReading]:
        plan = self.resolver.resolve(lookback_hours, now)
        return self.store.fetch_readings(plan.start, plan.end)

    def window_values(
        self, channel_id: str, lookback_hours: int, now: datetime
    ) -> List[Optional[float]]:
        descriptor = get_channel(channel_id)
        return [
            reading.channel_value(descriptor.column)
            for reading in self.window_readings(lookback_hours, now)
        ]

    def _daily_buckets(
        self, plan: WindowPlan, descriptor: ChannelDescriptor
    ) -> tuple[str, Dict[datetime, _BucketValue]]:
        expected = {bucket_instant(key) for key in plan.bucket_keys}
        try:
            rollups = self.store.fetch_rollups(AggregationLevel.day, plan.start, plan.end)
        except TelemetryStoreError as exc:
            logger.warning(
                "Rollup fetch failed, regrouping raw readings",
                extra={"lookback_hours": plan.lookback_hours, "reason": str(exc)},
            )
            rollups = []

        grouped = rollups_to_buckets(rollups, plan, descriptor)
        # Only days carrying a value for this channel count towards coverage.
        covered = sum(1 for key, bucket in grouped.items() if key in expected and bucket.has_value)
        if covered >= required_rollup_days(len(plan.bucket_keys)):
            return "rollup", grouped

        logger.info(
            "Rollup coverage too low, regrouping raw readings by day",
            extra={"lookback_hours": plan.lookback_hours, "row_count": covered},
        )
        readings = self.store.fetch_readings(plan.start, plan.end)
        return "raw", group_readings(readings, plan, descriptor)
