from __future__ import annotations

import pytest

from models.channels import get_channel
from models.records import ThresholdKind
from services.thresholds import (
    DynamicThresholdEngine,
    Severity,
    ValueRange,
    analyze_trend,
    classify_value,
    flag_anomalies,
)


@pytest.fixture
def engine() -> DynamicThresholdEngine:
    return DynamicThresholdEngine(sigma=3.0)


def test_two_sided_bounds(engine) -> None:
    result = engine.compute([10.0, 20.0], get_channel("temperature"))

    assert result.applicable is True
    assert result.statistics.mean == pytest.approx(15.0)
    assert result.statistics.std == pytest.approx(5.0)
    assert result.warning_high == pytest.approx(25.0)
    assert result.critical_high == pytest.approx(30.0)
    assert result.warning_low == pytest.approx(5.0)
    assert result.critical_low == pytest.approx(0.0)
    assert result.optimal_range == ValueRange(10.0, 20.0)
    assert result.axis_range.min == pytest.approx(9.0)
    assert result.axis_range.max == pytest.approx(21.0)


def test_missing_values_are_excluded(engine) -> None:
    with_gaps = engine.compute([None, 10.0, None, 20.0], get_channel("temperature"))

    assert with_gaps.statistics.count == 2
    assert with_gaps.warning_high == pytest.approx(25.0)


def test_floor_applies_to_low_bounds(engine) -> None:
    result = engine.compute([5.0, 15.0], get_channel("humidity"))

    assert result.critical_low == 0.0
    assert result.warning_low == 0.0
    assert result.optimal_range.min == pytest.approx(5.0)
    assert result.axis_range.min >= 0.0


def test_one_sided_channels_have_no_low_bounds(engine) -> None:
    result = engine.compute([5.0, 7.0, 9.0], get_channel("pm2_5"))

    assert result.warning_low is None
    assert result.critical_low is None
    labels = [threshold.label for threshold in result.thresholds]
    assert "Low Warning" not in labels
    assert "Low Critical" not in labels
    assert labels[-1] == "High Critical"


def test_threshold_list_for_two_sided_channel(engine) -> None:
    result = engine.compute([10.0, 20.0], get_channel("temperature"))

    kinds = [threshold.kind for threshold in result.thresholds]
    assert kinds == [
        ThresholdKind.critical,
        ThresholdKind.warning,
        ThresholdKind.optimal_min,
        ThresholdKind.optimal_max,
        ThresholdKind.warning,
        ThresholdKind.critical,
    ]


def test_insufficient_samples_use_registry_defaults(engine) -> None:
    result = engine.compute([None, 21.0], get_channel("temperature"))

    assert result.applicable is False
    assert result.statistics.count == 1
    assert result.warning_high == 30.0
    assert result.critical_high == 35.0
    assert result.warning_low == 15.0
    assert result.optimal_range == ValueRange(18.0, 26.0)


def test_zero_deviation_collapses_bounds(engine) -> None:
    result = engine.compute([7.0, 7.0, 7.0], get_channel("temperature"))

    assert result.warning_high == result.critical_high == result.warning_low == 7.0
    assert result.optimal_range == ValueRange(7.0, 7.0)
    assert result.axis_range.min == pytest.approx(6.3)
    assert result.axis_range.max == pytest.approx(7.7)


def test_sigma_override(engine) -> None:
    result = engine.compute([10.0, 20.0], get_channel("temperature"), sigma=2.0)

    assert result.sigma == 2.0
    assert result.critical_high == pytest.approx(result.warning_high)


def test_classify_value(engine) -> None:
    result = engine.compute([10.0, 20.0], get_channel("temperature"))

    assert classify_value(15.0, result) is Severity.normal
    assert classify_value(26.0, result) is Severity.warning
    assert classify_value(31.0, result) is Severity.critical
    assert classify_value(4.0, result) is Severity.warning
    assert classify_value(-1.0, result) is Severity.critical


def test_flag_anomalies() -> None:
    values = [10.0] * 20 + [None, 100.0]

    flags = flag_anomalies(values, sigma=3.0)

    assert len(flags) == 21
    assert [flag.index for flag in flags if flag.is_anomaly] == [21]
    assert flag_anomalies([1.0, 2.0]) == []
    assert all(flag.z_score == 0.0 for flag in flag_anomalies([3.0, 3.0, 3.0]))


def test_trend_detects_increase() -> None:
    trend = analyze_trend([10.0] * 10 + [20.0] * 10)

    assert trend.direction == "up"
    assert trend.percentage == pytest.approx(100.0)
    assert trend.prediction == "Increasing trend detected"
    assert trend.is_anomalous is False


def test_trend_flags_values_outside_optimal_range() -> None:
    trend = analyze_trend([10.0] * 10 + [20.0] * 10, ValueRange(0.0, 15.0))

    assert trend.is_anomalous is True
    assert trend.recommendation == "Values outside optimal range, immediate attention required"


def test_trend_with_too_few_samples() -> None:
    trend = analyze_trend([None, 4.0])

    assert trend.direction == "stable"
    assert trend.prediction == "Insufficient data"
