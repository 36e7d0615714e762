"""Statistically derived alert thresholds for a visible chart window.

Every result is recomputed from the window's samples alone; nothing is carried
between calls.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from models.channels import ChannelDescriptor
from models.records import Threshold, ThresholdKind

WARNING_SIGMA = 2.0
OPTIMAL_SIGMA = 1.0
AXIS_MARGIN = 0.1
MIN_SAMPLES = 2
MIN_ANOMALY_SAMPLES = 3
TREND_WINDOW = 10
STABLE_CHANGE_PERCENT = 1.0
STRONG_CHANGE_PERCENT = 5.0


class Severity(str, Enum):
    normal = "NORMAL"
    warning = "WARNING"
    critical = "CRITICAL"


@dataclass(frozen=True)
class ValueRange:
    min: float
    max: float


@dataclass(frozen=True)
class WindowStatistics:
    count: int
    mean: Optional[float] = None
    std: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None


@dataclass
class ThresholdResult:
    channel: str
    sigma: float
    applicable: bool
    optimal_range: ValueRange
    axis_range: ValueRange
    statistics: WindowStatistics
    warning_high: float
    critical_high: float
    warning_low: Optional[float] = None
    critical_low: Optional[float] = None
    thresholds: List[Threshold] = field(default_factory=list)


def present_values(values: Sequence[Optional[float]]) -> List[float]:
    return [value for value in values if value is not None and not math.isnan(value)]


def population_stats(values: Sequence[float]) -> tuple[float, float]:
    """Mean and population standard deviation of a non-empty sequence."""
    mean = sum(values) / len(values)
    variance = sum((value - mean) ** 2 for value in values) / len(values)
    return mean, math.sqrt(variance)


def _floored(value: Optional[float], floor: Optional[float]) -> Optional[float]:
    if value is None or floor is None:
        return value
    return max(floor, value)


def axis_range(
    optimal: ValueRange,
    observed_min: Optional[float],
    observed_max: Optional[float],
    floor: Optional[float],
    margin: float = AXIS_MARGIN,
) -> ValueRange:
    low = optimal.min if observed_min is None else min(optimal.min, observed_min)
    high = optimal.max if observed_max is None else max(optimal.max, observed_max)
    span = high - low
    pad = span * margin if span > 0 else (abs(high) * margin or 1.0)
    return ValueRange(min=_floored(low - pad, floor), max=high + pad)


class DynamicThresholdEngine:
    """Derives warning, critical and optimal bands from window statistics."""

    def __init__(self, sigma: float = 3.0, margin: float = AXIS_MARGIN) -> None:
        self.sigma = sigma
        self.margin = margin

    def compute(
        self,
        values: Sequence[Optional[float]],
        descriptor: ChannelDescriptor,
        sigma: Optional[float] = None,
    ) -> ThresholdResult:
        k = self.sigma if sigma is None else sigma
        samples = present_values(values)
        observed_min = min(samples) if samples else None
        observed_max = max(samples) if samples else None

        if len(samples) < MIN_SAMPLES:
            return self._defaults(descriptor, k, samples, observed_min, observed_max)

        mean, std = population_stats(samples)
        two_sided = descriptor.is_two_sided
        floor = descriptor.floor
        optimal = ValueRange(min=_floored(mean - OPTIMAL_SIGMA * std, floor), max=mean + OPTIMAL_SIGMA * std)
        result = ThresholdResult(
            channel=descriptor.channel_id,
            sigma=k,
            applicable=True,
            optimal_range=optimal,
            axis_range=axis_range(optimal, observed_min, observed_max, floor, self.margin),
            statistics=WindowStatistics(
                count=len(samples), mean=mean, std=std, min=observed_min, max=observed_max
            ),
            warning_high=mean + WARNING_SIGMA * std,
            critical_high=mean + k * std,
            warning_low=_floored(mean - WARNING_SIGMA * std, floor) if two_sided else None,
            critical_low=_floored(mean - k * std, floor) if two_sided else None,
        )
        result.thresholds = _threshold_list(descriptor, result)
        return result

    def _defaults(
        self,
        descriptor: ChannelDescriptor,
        k: float,
        samples: List[float],
        observed_min: Optional[float],
        observed_max: Optional[float],
    ) -> ThresholdResult:
        optimal = ValueRange(*descriptor.default_optimal)
        warning_low, warning_high = descriptor.default_warning
        critical_low, critical_high = descriptor.default_critical
        result = ThresholdResult(
            channel=descriptor.channel_id,
            sigma=k,
            applicable=False,
            optimal_range=optimal,
            axis_range=axis_range(optimal, observed_min, observed_max, descriptor.floor, self.margin),
            statistics=WindowStatistics(
                count=len(samples),
                mean=samples[0] if samples else None,
                min=observed_min,
                max=observed_max,
            ),
            warning_high=warning_high,
            critical_high=critical_high,
            warning_low=warning_low if descriptor.is_two_sided else None,
            critical_low=critical_low if descriptor.is_two_sided else None,
        )
        result.thresholds = _threshold_list(descriptor, result)
        return result


def _threshold_list(descriptor: ChannelDescriptor, result: ThresholdResult) -> List[Threshold]:
    channel = descriptor.channel_id
    thresholds = []
    if result.critical_low is not None:
        thresholds.append(Threshold(channel, ThresholdKind.critical, result.critical_low, "Low Critical"))
    if result.warning_low is not None:
        thresholds.append(Threshold(channel, ThresholdKind.warning, result.warning_low, "Low Warning"))
    thresholds.extend(
        [
            Threshold(channel, ThresholdKind.optimal_min, result.optimal_range.min, "Optimal Min"),
            Threshold(channel, ThresholdKind.optimal_max, result.optimal_range.max, "Optimal Max"),
            Threshold(channel, ThresholdKind.warning, result.warning_high, "High Warning"),
            Threshold(channel, ThresholdKind.critical, result.critical_high, "High Critical"),
        ]
    )
    return thresholds


def classify_value(value: float, result: ThresholdResult) -> Severity:
    if value > result.critical_high or (
        result.critical_low is not None and value < result.critical_low
    ):
        return Severity.critical
    if value > result.warning_high or (
        result.warning_low is not None and value < result.warning_low
    ):
        return Severity.warning
    return Severity.normal


@dataclass(frozen=True)
class AnomalyFlag:
    index: int
    value: float
    z_score: float
    is_anomaly: bool


def flag_anomalies(values: Sequence[Optional[float]], sigma: float = 3.0) -> List[AnomalyFlag]:
    """Z-score every present sample; absent samples are skipped, not zeroed."""
    samples = present_values(values)
    if len(samples) < MIN_ANOMALY_SAMPLES:
        return []
    mean, std = population_stats(samples)
    flags = []
    for index, value in enumerate(values):
        if value is None or math.isnan(value):
            continue
        z_score = 0.0 if std == 0 else abs(value - mean) / std
        flags.append(AnomalyFlag(index=index, value=value, z_score=z_score, is_anomaly=z_score > sigma))
    return flags


@dataclass(frozen=True)
class TrendAnalysis:
    direction: str
    percentage: float
    is_anomalous: bool
    prediction: str
    recommendation: Optional[str] = None


def analyze_trend(
    values: Sequence[Optional[float]], optimal: Optional[ValueRange] = None
) -> TrendAnalysis:
    """Compare the latest ten samples with the ten before them."""
    samples = present_values(values)
    if len(samples) < 2:
        return TrendAnalysis("stable", 0.0, False, "Insufficient data")

    recent = samples[-TREND_WINDOW:]
    older = samples[-2 * TREND_WINDOW:-TREND_WINDOW]
    recent_avg = sum(recent) / len(recent)
    older_avg = sum(older) / len(older) if older else recent_avg
    change = 0.0 if older_avg == 0 else (recent_avg - older_avg) / abs(older_avg) * 100

    if abs(change) < STABLE_CHANGE_PERCENT:
        direction = "stable"
    else:
        direction = "up" if change > 0 else "down"

    latest = samples[-1]
    is_anomalous = optimal is not None and not optimal.min <= latest <= optimal.max

    if direction == "up" and change > STRONG_CHANGE_PERCENT:
        prediction = "Increasing trend detected"
        recommendation = "Monitor closely, consider preventive action"
    elif direction == "down" and change < -STRONG_CHANGE_PERCENT:
        prediction = "Decreasing trend detected"
        recommendation = "Investigate potential causes"
    else:
        prediction = "Stable conditions"
        recommendation = "Continue regular monitoring"
    if is_anomalous:
        recommendation = "Values outside optimal range, immediate attention required"

    return TrendAnalysis(direction, abs(change), is_anomalous, prediction, recommendation)
