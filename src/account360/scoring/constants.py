"""Named weight and threshold tables for health, alert, insight and churn rules.

These tables are a public contract: downstream alert thresholds (health
below 40 / 25) are calibrated against the health weight scale, and tests
read these names directly. Every table is read-only at runtime; engines
accept per-instance overrides through keyword-only constructor arguments
instead of mutating module state.
"""

from __future__ import annotations

import uuid
from types import MappingProxyType
from typing import Mapping

# -- Health Weights -----------------------------------------------------------

ADOPTION_WEIGHT: float = 0.30
ENGAGEMENT_WEIGHT: float = 0.25
RELATIONSHIP_WEIGHT: float = 0.15
SUPPORT_WEIGHT: float = 0.15
COMMERCIAL_WEIGHT: float = 0.15

HEALTH_WEIGHTS: Mapping[str, float] = MappingProxyType(
    {
        "adoption": ADOPTION_WEIGHT,
        "engagement": ENGAGEMENT_WEIGHT,
        "relationship": RELATIONSHIP_WEIGHT,
        "support": SUPPORT_WEIGHT,
        "commercial": COMMERCIAL_WEIGHT,
    }
)

# Enterprise leans on relationship coverage; SMB on raw usage.
SEGMENT_WEIGHT_OVERRIDES: Mapping[str, Mapping[str, float]] = MappingProxyType(
    {
        "enterprise": MappingProxyType(
            {
                "adoption": 0.25,
                "engagement": 0.20,
                "relationship": 0.25,
                "support": 0.15,
                "commercial": 0.15,
            }
        ),
        "smb": MappingProxyType(
            {
                "adoption": 0.35,
                "engagement": 0.30,
                "relationship": 0.10,
                "support": 0.10,
                "commercial": 0.15,
            }
        ),
    }
)

# Score at or above each threshold earns the grade; below D is F.
GRADE_THRESHOLDS: Mapping[str, int] = MappingProxyType(
    {"A": 80, "B": 65, "C": 50, "D": 35}
)

# Score change at or beyond +/- this many points sets the trend.
TREND_CHANGE_THRESHOLD: int = 5

# Neutral component scores used when a data source is missing entirely.
RELATIONSHIP_NEUTRAL_SCORE: float = 50.0
SUPPORT_NEUTRAL_SCORE: float = 80.0
COMMERCIAL_NEUTRAL_SCORE: float = 70.0

# Real signals + timeline weeks needed for full confidence.
FULL_CONFIDENCE_DATA_POINTS: int = 24
CONFIDENCE_TIMELINE_WEEKS: int = 8

# -- Alert Thresholds ---------------------------------------------------------

ALERT_THRESHOLDS: Mapping[str, float] = MappingProxyType(
    {
        # churn_risk (inactivity)
        "inactivity_high_days": 14,
        "inactivity_critical_days": 30,
        # health_drop
        "health_high_below": 40,
        "health_critical_below": 25,
        # onboarding_stalled
        "onboarding_min_age_days": 7,
        "onboarding_high_age_days": 14,
        "onboarding_min_items": 5,
        # low_engagement
        "low_engagement_min_age_days": 30,
        "low_engagement_max_activity": 10,
        "low_engagement_min_inactive_days": 7,
        # expansion_opportunity
        "expansion_min_activity": 50,
        "expansion_min_active_users": 3,
        "expansion_max_inactive_days": 7,
        # payment_overdue
        "payment_critical_amount": 10_000,
        "payment_high_value_arr": 10_000,
        # renewal_approaching
        "renewal_medium_days": 60,
        "renewal_high_days": 30,
        "renewal_health_risk_below": 60,
        # support_escalation
        "support_high_open_tickets": 5,
        # usage_decline
        "usage_decline_min_baseline": 10,
        "usage_decline_ratio": 0.5,
        # champion_left heuristic
        "champion_min_users": 3,
        "champion_min_age_days": 90,
        "champion_min_inactive_days": 21,
    }
)

ALERT_ID_NAMESPACE: uuid.UUID = uuid.UUID("6f1c2f7e-4a51-5b0e-9d0a-3c8e2b7a9f10")

SEVERITY_RANK: Mapping[str, int] = MappingProxyType(
    {"critical": 0, "high": 1, "medium": 2, "low": 3}
)

# -- Timeseries ---------------------------------------------------------------

TREND_UP_PERCENT: float = 10.0
TREND_DOWN_PERCENT: float = -10.0
ANOMALY_MIN_POINTS: int = 4
ANOMALY_RECENT_POINTS: int = 3
ANOMALY_DROP_PERCENT: float = -30.0
ANOMALY_SPIKE_PERCENT: float = 50.0

# -- Insights -----------------------------------------------------------------

INSIGHT_ID_NAMESPACE: uuid.UUID = uuid.UUID("0b7d9a54-2c3e-5f61-8a4b-91d2e6c7f803")

INSIGHT_SEVERITY_RANK: Mapping[str, int] = MappingProxyType(
    {"critical": 0, "warning": 1, "info": 2}
)

INSIGHT_THRESHOLDS: Mapping[str, float] = MappingProxyType(
    {
        "usage_growth_percent": 20,
        "expansion_seat_utilization": 0.8,
        "expansion_active_users": 10,
        "renewal_warning_days": 60,
        "renewal_critical_days": 30,
        "health_decline_points": -10,
        "onboarding_inactive_days": 7,
        "low_adoption_percent": 30,
    }
)

# Portfolio rule thresholds, including the minimum population per rule.
PORTFOLIO_THRESHOLDS: Mapping[str, float] = MappingProxyType(
    {
        "at_risk_health_below": 50,
        "at_risk_inactive_days": 14,
        "at_risk_critical_count": 5,
        "benchmark_min_accounts": 5,
        "benchmark_fraction": 0.1,
        "revenue_risk_critical_percent": 20,
        "stalled_inactive_days": 7,
        "healthy_at_least": 70,
        "moderate_at_least": 40,
        "expansion_min_active_users": 5,
        "expansion_arr_fraction": 0.2,
        "renewal_window_days": 90,
        "renewal_wave_min_accounts": 3,
        "renewal_wave_health_warning": 60,
        "declining_min_accounts": 3,
    }
)

# -- Churn --------------------------------------------------------------------

# Maximum probability points per signal; each signal is scaled 0..1.
CHURN_WEIGHTS: Mapping[str, float] = MappingProxyType(
    {
        "inactivity": 40.0,
        "low_health": 35.0,
        "payment": 15.0,
        "declining_trend": 10.0,
        "support": 10.0,
        "low_adoption": 5.0,
    }
)

CHURN_INACTIVITY_GRACE_DAYS: int = 7
CHURN_INACTIVITY_FULL_DAYS: int = 30
CHURN_HEALTH_SAFE_SCORE: int = 75
CHURN_HEALTH_FULL_RISK_SCORE: int = 25
CHURN_PROBABILITY_CAP: int = 95

# Probability below each bound maps to the level; otherwise critical.
CHURN_RISK_LEVELS: tuple[tuple[int, str], ...] = (
    (30, "low"),
    (50, "medium"),
    (70, "high"),
)
CHURN_ACTION_THRESHOLD: int = 30
CHURN_URGENT_THRESHOLD: int = 50

# -- Forecasting --------------------------------------------------------------

FORECAST_MONTHS: int = 6
FORECAST_CHURN_RATES: Mapping[str, float] = MappingProxyType(
    {"at_risk": 0.25, "moderate": 0.05, "healthy": 0.02}
)
FORECAST_EXPANSION_RATE: float = 0.15
FORECAST_MONTHLY_DECAY: float = 0.95
FORECAST_BASE_CONFIDENCE: int = 90
FORECAST_CONFIDENCE_DECAY: float = 0.92


__all__ = [
    "ADOPTION_WEIGHT",
    "ENGAGEMENT_WEIGHT",
    "RELATIONSHIP_WEIGHT",
    "SUPPORT_WEIGHT",
    "COMMERCIAL_WEIGHT",
    "HEALTH_WEIGHTS",
    "SEGMENT_WEIGHT_OVERRIDES",
    "GRADE_THRESHOLDS",
    "TREND_CHANGE_THRESHOLD",
    "FULL_CONFIDENCE_DATA_POINTS",
    "ALERT_THRESHOLDS",
    "ALERT_ID_NAMESPACE",
    "SEVERITY_RANK",
    "INSIGHT_ID_NAMESPACE",
    "INSIGHT_SEVERITY_RANK",
    "INSIGHT_THRESHOLDS",
    "PORTFOLIO_THRESHOLDS",
    "CHURN_WEIGHTS",
    "CHURN_RISK_LEVELS",
]
