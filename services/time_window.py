"""Resolve a requested lookback into a timezone-aligned bucket schedule."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from typing import List

logger = logging.getLogger(__name__)


class Resolution(str, Enum):
    minute = "minute"
    hour = "hour"
    day = "day"
    week = "week"


@dataclass(frozen=True)
class _WindowShape:
    resolution: Resolution
    buckets: int
    uses_rollups: bool


_SHAPES = {
    1: _WindowShape(Resolution.minute, 60, uses_rollups=False),
    24: _WindowShape(Resolution.hour, 24, uses_rollups=False),
    168: _WindowShape(Resolution.day, 7, uses_rollups=True),
    720: _WindowShape(Resolution.day, 31, uses_rollups=True),
}

DEFAULT_LOOKBACK_HOURS = 24
SUPPORTED_LOOKBACKS = tuple(sorted(_SHAPES))

_LABEL_FORMATS = {
    Resolution.minute: "%H:%M",
    Resolution.hour: "%H:00",
    Resolution.day: "%b %d",
    Resolution.week: "%b %d",
}


@dataclass(frozen=True)
class WindowPlan:
    """Bucket schedule for one chart window.

    ``bucket_keys`` are the local start instants of every expected bucket,
    oldest first. ``end`` is exclusive.
    """

    lookback_hours: int
    resolution: Resolution
    max_points: int
    uses_rollups: bool
    tz: tzinfo
    start: datetime
    end: datetime
    now: datetime
    bucket_keys: List[datetime] = field(default_factory=list)

    def bucket_key(self, timestamp: datetime) -> datetime:
        return bucket_start(to_local(timestamp, self.tz), self.resolution)

    def bucket_id(self, timestamp: datetime) -> datetime:
        return bucket_instant(self.bucket_key(timestamp))

    def label(self, key: datetime) -> str:
        return format_label(key, self.resolution)


def to_local(timestamp: datetime, tz: tzinfo) -> datetime:
    """Convert to the reporting timezone; naive values are already local."""
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=tz)
    return timestamp.astimezone(tz)


def bucket_start(local: datetime, resolution: Resolution) -> datetime:
    if resolution is Resolution.minute:
        return local.replace(second=0, microsecond=0)
    if resolution is Resolution.hour:
        return local.replace(minute=0, second=0, microsecond=0)
    return datetime.combine(local.date(), time(0), tzinfo=local.tzinfo)


def bucket_instant(key: datetime) -> datetime:
    """UTC identity of a bucket key.

    Same-zone aware datetimes compare and hash on wall time, so the two
    occurrences of a repeated fall-back hour would otherwise collide.
    """
    return key.astimezone(timezone.utc)


def local_midnight(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time(0), tzinfo=tz)


def format_label(key: datetime, resolution: Resolution) -> str:
    return key.strftime(_LABEL_FORMATS[resolution])


def _step_back(anchor: datetime, resolution: Resolution, count: int, tz: tzinfo) -> datetime:
    # Sub-day steps are taken on UTC instants; local wall-clock hours may repeat or skip.
    if resolution is Resolution.minute:
        return (anchor.astimezone(timezone.utc) - timedelta(minutes=count)).astimezone(tz)
    if resolution is Resolution.hour:
        return (anchor.astimezone(timezone.utc) - timedelta(hours=count)).astimezone(tz)
    return local_midnight(anchor.date() - timedelta(days=count), tz)


def _next_bucket(key: datetime, resolution: Resolution, tz: tzinfo) -> datetime:
    if resolution is Resolution.day:
        return local_midnight(key.date() + timedelta(days=1), tz)
    return _step_back(key, resolution, -1, tz)


class TimeWindowResolver:
    """Maps a lookback in hours to a :class:`WindowPlan` in a fixed timezone."""

    def __init__(self, tz: tzinfo) -> None:
        self.tz = tz

    def resolve(self, lookback_hours: int, now: datetime) -> WindowPlan:
        shape = _SHAPES.get(lookback_hours)
        if shape is None:
            logger.warning(
                "Unsupported lookback requested, falling back to default window",
                extra={"lookback_hours": lookback_hours},
            )
            lookback_hours = DEFAULT_LOOKBACK_HOURS
            shape = _SHAPES[DEFAULT_LOOKBACK_HOURS]

        now_local = to_local(now, self.tz)
        anchor = bucket_start(now_local, shape.resolution)
        keys = [
            _step_back(anchor, shape.resolution, offset, self.tz)
            for offset in range(shape.buckets - 1, -1, -1)
        ]
        return WindowPlan(
            lookback_hours=lookback_hours,
            resolution=shape.resolution,
            max_points=shape.buckets,
            uses_rollups=shape.uses_rollups,
            tz=self.tz,
            start=keys[0],
            end=_next_bucket(keys[-1], shape.resolution, self.tz),
            now=now_local,
            bucket_keys=keys,
        )
