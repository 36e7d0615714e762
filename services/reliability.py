"""Uptime, MTTR, MTBF, channel/failure correlation and cost trend."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Dict, Iterable, List, Optional, Sequence

from models.channels import CHANNELS
from models.records import AlertEvent, MaintenanceTask, SensorReading
from services.time_window import local_midnight, to_local

DEFAULT_GAP_TOLERANCE_MINUTES = 15.0
MIN_MTBF_EVENTS = 2
MIN_CORRELATION_PAIRS = 2
MAX_REPORTED_MONTHS = 12


@dataclass(frozen=True)
class UptimeMetrics:
    uptime_percent: float
    downtime_percent: float
    downtime_minutes: float
    incidents: int

    @property
    def downtime_hours(self) -> float:
        return self.downtime_minutes / 60


@dataclass(frozen=True)
class MonthlyUptime:
    month: str
    uptime_percent: float
    downtime_percent: float
    incidents: int


@dataclass(frozen=True)
class ChannelCorrelation:
    channel: str
    coefficient: float
    pairs: int


@dataclass(frozen=True)
class CostTrend:
    current: float
    previous: float
    change_percent: Optional[float]


@dataclass
class ReliabilityReport:
    period_hours: float
    uptime: UptimeMetrics
    mttr_hours: Optional[float]
    mtbf_hours: Optional[float]
    correlations: List[ChannelCorrelation] = field(default_factory=list)
    cost: Optional[CostTrend] = None
    monthly_uptime: List[MonthlyUptime] = field(default_factory=list)


def _minutes_between(earlier: datetime, later: datetime) -> float:
    if earlier.tzinfo is not None and later.tzinfo is not None:
        earlier, later = earlier.astimezone(timezone.utc), later.astimezone(timezone.utc)
    return (later - earlier).total_seconds() / 60


def _localize(timestamp: datetime, tz: Optional[tzinfo]) -> datetime:
    return timestamp if tz is None else to_local(timestamp, tz)


def uptime_metrics(
    timestamps: Sequence[datetime],
    period_hours: float,
    period_end: datetime,
    tolerance_minutes: float = DEFAULT_GAP_TOLERANCE_MINUTES,
    tz: Optional[tzinfo] = None,
) -> UptimeMetrics:
    """Treat every reading gap above the tolerance as a downtime incident.

    Each incident contributes ``gap - tolerance`` minutes. The gaps from the
    period start to the first reading and from the last reading to
    ``period_end`` count the same way. With ``tz`` set, naive timestamps are
    read as local time in that zone.
    """
    period_minutes = period_hours * 60
    if not timestamps or period_minutes <= 0:
        return UptimeMetrics(0.0, 100.0, max(period_minutes, 0.0), 0)

    period_end = _localize(period_end, tz)
    ordered = sorted(_localize(ts, tz) for ts in timestamps)
    downtime = 0.0
    incidents = 0
    edges = [(period_end - timedelta(minutes=period_minutes), ordered[0])]
    edges.extend(zip(ordered, ordered[1:]))
    edges.append((ordered[-1], period_end))
    for earlier, later in edges:
        gap = _minutes_between(earlier, later)
        if gap > tolerance_minutes:
            downtime += gap - tolerance_minutes
            incidents += 1

    uptime = max(0.0, (period_minutes - downtime) / period_minutes * 100)
    return UptimeMetrics(
        uptime_percent=uptime,
        downtime_percent=100 - uptime,
        downtime_minutes=downtime,
        incidents=incidents,
    )


def _month_start(day: date) -> date:
    return day.replace(day=1)


def _next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def monthly_uptime(
    timestamps: Sequence[datetime],
    installed_at: datetime,
    now: datetime,
    tz: tzinfo,
    tolerance_minutes: float = DEFAULT_GAP_TOLERANCE_MINUTES,
) -> List[MonthlyUptime]:
    """Uptime per local calendar month since install, most recent twelve."""
    local_now = to_local(now, tz)
    installed = to_local(installed_at, tz)
    local_times = sorted(to_local(ts, tz) for ts in timestamps)
    report: List[MonthlyUptime] = []
    month = _month_start(installed.date())
    while month <= local_now.date():
        start = max(local_midnight(month, tz), installed)
        end = min(local_midnight(_next_month(month), tz), local_now)
        in_month = [ts for ts in local_times if start <= ts < end]
        label = start.strftime("%b %Y")
        if in_month:
            hours = _minutes_between(start, end) / 60
            metrics = uptime_metrics(in_month, hours, end, tolerance_minutes)
            report.append(
                MonthlyUptime(label, metrics.uptime_percent, metrics.downtime_percent, metrics.incidents)
            )
        else:
            report.append(MonthlyUptime(label, 0.0, 100.0, 0))
        month = _next_month(month)
    return report[-MAX_REPORTED_MONTHS:]


def mean_time_to_repair(
    tasks: Iterable[MaintenanceTask], tz: Optional[tzinfo] = None
) -> Optional[float]:
    durations = [
        _minutes_between(_localize(task.created_at, tz), _localize(task.completed_at, tz)) / 60
        for task in tasks
        if task.completed_at is not None
    ]
    if not durations:
        return None
    return sum(durations) / len(durations)


def is_failure_event(alert: AlertEvent) -> bool:
    """Highest alert class: critical severity or P1 priority."""
    return alert.severity.lower() == "critical" or alert.priority.upper() == "P1"


def mean_time_between_failures(
    alerts: Iterable[AlertEvent], tz: Optional[tzinfo] = None
) -> Optional[float]:
    failures = sorted(
        _localize(alert.created_at, tz) for alert in alerts if is_failure_event(alert)
    )
    if len(failures) < MIN_MTBF_EVENTS:
        return None
    gaps = [
        _minutes_between(earlier, later) / 60
        for earlier, later in zip(failures, failures[1:])
    ]
    return sum(gaps) / len(gaps)


def pearson(xs: Sequence[float], ys: Sequence[float]) -> Optional[float]:
    """Pearson coefficient; ``None`` for too few pairs or a constant side."""
    n = len(xs)
    if n != len(ys) or n < MIN_CORRELATION_PAIRS:
        return None
    mean_x = sum(xs) / n
    mean_y = sum(ys) / n
    cov = sum((x - mean_x) * (y - mean_y) for x, y in zip(xs, ys))
    var_x = sum((x - mean_x) ** 2 for x in xs)
    var_y = sum((y - mean_y) ** 2 for y in ys)
    if var_x == 0 or var_y == 0:
        return None
    return cov / math.sqrt(var_x * var_y)


def _window_days(start: datetime, end: datetime) -> List[date]:
    last = (end - timedelta(microseconds=1)).date()
    days = []
    day = start.date()
    while day <= last:
        days.append(day)
        day += timedelta(days=1)
    return days


def channel_failure_correlation(
    readings: Iterable[SensorReading],
    alerts: Iterable[AlertEvent],
    start: datetime,
    end: datetime,
    tz: tzinfo,
    channels: Optional[Sequence[str]] = None,
) -> List[ChannelCorrelation]:
    """Correlate daily channel averages with a daily failure indicator."""
    start, end = to_local(start, tz), to_local(end, tz)
    channel_ids = list(channels) if channels is not None else list(CHANNELS)

    totals: Dict[tuple[str, date], List[float]] = {}
    for reading in readings:
        local = to_local(reading.timestamp, tz)
        if not start <= local < end:
            continue
        for channel_id in channel_ids:
            value = reading.channel_value(CHANNELS[channel_id].column)
            if value is None:
                continue
            bucket = totals.setdefault((channel_id, local.date()), [0.0, 0])
            bucket[0] += value
            bucket[1] += 1

    failure_days = {
        to_local(alert.created_at, tz).date()
        for alert in alerts
        if is_failure_event(alert) and start <= to_local(alert.created_at, tz) < end
    }

    results: List[ChannelCorrelation] = []
    for channel_id in channel_ids:
        xs: List[float] = []
        ys: List[float] = []
        for day in _window_days(start, end):
            bucket = totals.get((channel_id, day))
            if bucket is None:
                continue
            xs.append(bucket[0] / bucket[1])
            ys.append(1.0 if day in failure_days else 0.0)
        coefficient = pearson(xs, ys)
        if coefficient is None:
            continue
        results.append(ChannelCorrelation(channel_id, coefficient, len(xs)))

    results.sort(key=lambda item: abs(item.coefficient), reverse=True)
    return results


def cost_trend(
    tasks: Iterable[MaintenanceTask],
    alerts: Iterable[AlertEvent],
    window: timedelta,
    now: datetime,
    tz: Optional[tzinfo] = None,
) -> CostTrend:
    now = _localize(now, tz)
    current_start = now - window
    previous_start = current_start - window
    current = 0.0
    previous = 0.0
    entries = [(task.created_at, task.cost) for task in tasks]
    entries.extend((alert.created_at, alert.cost) for alert in alerts)
    for created_at, cost in entries:
        if cost is None:
            continue
        created_at = _localize(created_at, tz)
        if current_start <= created_at < now:
            current += cost
        elif previous_start <= created_at < current_start:
            previous += cost
    change = None if previous == 0 else (current - previous) / previous * 100
    return CostTrend(current=current, previous=previous, change_percent=change)


class ReliabilityAnalytics:
    """Bundles the reliability metrics for one reporting period.

    Every timestamp is read in ``tz``; naive values are local time.
    """

    def __init__(self, tz: tzinfo, tolerance_minutes: float = DEFAULT_GAP_TOLERANCE_MINUTES) -> None:
        self.tz = tz
        self.tolerance_minutes = tolerance_minutes

    def report(
        self,
        readings: Sequence[SensorReading],
        tasks: Sequence[MaintenanceTask],
        alerts: Sequence[AlertEvent],
        period_hours: float,
        now: datetime,
        installed_at: Optional[datetime] = None,
        history: Optional[Sequence[SensorReading]] = None,
    ) -> ReliabilityReport:
        tz = self.tz
        now = to_local(now, tz)
        window = timedelta(hours=period_hours)
        start = now - window
        in_window = [r for r in readings if start <= to_local(r.timestamp, tz) <= now]
        window_tasks = [t for t in tasks if start <= to_local(t.created_at, tz) <= now]
        window_alerts = [a for a in alerts if start <= to_local(a.created_at, tz) <= now]

        monthly: List[MonthlyUptime] = []
        if installed_at is not None:
            source = history if history is not None else readings
            monthly = monthly_uptime(
                [r.timestamp for r in source], installed_at, now, tz, self.tolerance_minutes
            )

        return ReliabilityReport(
            period_hours=period_hours,
            uptime=uptime_metrics(
                [r.timestamp for r in in_window], period_hours, now, self.tolerance_minutes, tz=tz
            ),
            mttr_hours=mean_time_to_repair(window_tasks, tz=tz),
            mtbf_hours=mean_time_between_failures(window_alerts, tz=tz),
            correlations=channel_failure_correlation(in_window, window_alerts, start, now, tz),
            cost=cost_trend(tasks, alerts, window, now, tz=tz),
            monthly_uptime=monthly,
        )
