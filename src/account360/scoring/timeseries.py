"""Trend and anomaly detection over activity timelines.

Both detectors are total functions: short or empty timelines and zero
baselines return a neutral result instead of raising.

Exports:
    TrendResult: Direction and percent change between timeline halves.
    AnomalyResult: Whether the latest points deviate from the baseline.
    detect_trend: Compare the recent half of a timeline to the older half.
    detect_anomaly: Compare the last 3 points to all preceding points.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Sequence

from src.account360.scoring.constants import (
    ANOMALY_DROP_PERCENT,
    ANOMALY_MIN_POINTS,
    ANOMALY_RECENT_POINTS,
    ANOMALY_SPIKE_PERCENT,
    TREND_DOWN_PERCENT,
    TREND_UP_PERCENT,
)


@dataclass(frozen=True)
class TrendResult:
    """Outcome of half-over-half trend detection."""

    trend: Literal["up", "down", "stable"]
    change_percent: float
    recent_average: float = 0.0
    older_average: float = 0.0


@dataclass(frozen=True)
class AnomalyResult:
    """Outcome of recent-window anomaly detection."""

    is_anomaly: bool
    direction: Literal["drop", "spike", "none"]
    magnitude: float = 0.0


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def detect_trend(values: Sequence[float]) -> TrendResult:
    """Classify a timeline as trending up, down, or stable.

    The timeline is split into an older half and a recent half (the middle
    point of an odd-length timeline belongs to the recent half).
    ``change_percent = (recent_avg - older_avg) / older_avg * 100``; above
    +10% is up, below -10% is down. A zero older average yields up when
    there is any recent activity, otherwise stable, with a change of 0.
    """
    if len(values) < 2:
        return TrendResult(trend="stable", change_percent=0.0)

    half = len(values) // 2
    older = values[:half]
    recent = values[half:]
    older_avg = _mean(older)
    recent_avg = _mean(recent)

    if older_avg == 0:
        return TrendResult(
            trend="up" if recent_avg > 0 else "stable",
            change_percent=0.0,
            recent_average=recent_avg,
            older_average=older_avg,
        )

    change_percent = (recent_avg - older_avg) / older_avg * 100.0
    if change_percent > TREND_UP_PERCENT:
        trend = "up"
    elif change_percent < TREND_DOWN_PERCENT:
        trend = "down"
    else:
        trend = "stable"

    return TrendResult(
        trend=trend,
        change_percent=change_percent,
        recent_average=recent_avg,
        older_average=older_avg,
    )


def detect_anomaly(values: Sequence[float]) -> AnomalyResult:
    """Flag a drop (< -30%) or spike (> +50%) in the last 3 points.

    Requires at least 4 points; fewer is insufficient data, never an
    anomaly. A zero baseline is likewise never an anomaly.
    """
    if len(values) < ANOMALY_MIN_POINTS:
        return AnomalyResult(is_anomaly=False, direction="none")

    recent = values[-ANOMALY_RECENT_POINTS:]
    baseline = values[:-ANOMALY_RECENT_POINTS]
    baseline_avg = _mean(baseline)
    if baseline_avg == 0:
        return AnomalyResult(is_anomaly=False, direction="none")

    change_percent = (_mean(recent) - baseline_avg) / baseline_avg * 100.0

    if change_percent < ANOMALY_DROP_PERCENT:
        return AnomalyResult(
            is_anomaly=True, direction="drop", magnitude=abs(change_percent)
        )
    if change_percent > ANOMALY_SPIKE_PERCENT:
        return AnomalyResult(
            is_anomaly=True, direction="spike", magnitude=change_percent
        )
    return AnomalyResult(is_anomaly=False, direction="none")


__all__ = ["TrendResult", "AnomalyResult", "detect_trend", "detect_anomaly"]
