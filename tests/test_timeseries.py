"""Tests for half-over-half trend detection and recent-window anomaly detection."""

from __future__ import annotations

import pytest

from src.account360.scoring.timeseries import detect_anomaly, detect_trend


class TestDetectTrend:
    def test_too_short_is_stable(self) -> None:
        assert detect_trend([]).trend == "stable"
        result = detect_trend([42])
        assert result.trend == "stable"
        assert result.change_percent == 0.0

    def test_growth_is_up(self) -> None:
        values = [100 * 1.2**week for week in range(8)]
        result = detect_trend(values)
        assert result.trend == "up"
        assert result.change_percent >= 20

    def test_decline_is_down(self) -> None:
        result = detect_trend([100, 100, 50, 50])
        assert result.trend == "down"
        assert result.change_percent == pytest.approx(-50.0)

    def test_small_change_is_stable(self) -> None:
        result = detect_trend([100, 100, 105, 105])
        assert result.trend == "stable"
        assert result.change_percent == pytest.approx(5.0)

    def test_zero_baseline_with_activity_is_up(self) -> None:
        result = detect_trend([0, 0, 5, 10])
        assert result.trend == "up"
        assert result.change_percent == 0.0

    def test_all_zero_is_stable(self) -> None:
        result = detect_trend([0, 0, 0, 0])
        assert result.trend == "stable"
        assert result.change_percent == 0.0

    def test_odd_length_middle_point_counts_as_recent(self) -> None:
        result = detect_trend([10, 10, 40])
        assert result.older_average == 10
        assert result.recent_average == 25


class TestDetectAnomaly:
    @pytest.mark.parametrize("values", [[], [10], [10, 0], [100, 0, 0]])
    def test_fewer_than_four_points_never_anomalous(self, values) -> None:
        result = detect_anomaly(values)
        assert result.is_anomaly is False
        assert result.direction == "none"

    def test_drop(self) -> None:
        result = detect_anomaly([50, 50, 50, 10, 10, 10])
        assert result.is_anomaly is True
        assert result.direction == "drop"
        assert result.magnitude == pytest.approx(80.0)

    def test_spike(self) -> None:
        result = detect_anomaly([10, 10, 10, 30, 30, 30])
        assert result.is_anomaly is True
        assert result.direction == "spike"
        assert result.magnitude == pytest.approx(200.0)

    def test_moderate_change_is_not_anomalous(self) -> None:
        result = detect_anomaly([100, 100, 80, 80, 80])
        assert result.is_anomaly is False

    def test_zero_baseline_is_not_anomalous(self) -> None:
        assert detect_anomaly([0, 0, 10, 10, 10]).is_anomaly is False

    def test_four_points_uses_single_baseline_point(self) -> None:
        result = detect_anomaly([100, 20, 20, 20])
        assert result.direction == "drop"
