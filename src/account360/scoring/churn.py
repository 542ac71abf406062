"""Churn probability prediction with contributing factors.

Probability is a weighted sum of risk signals, each scaled to 0..1 and
monotonic in its input, times its maximum points in ``CHURN_WEIGHTS``:

    inactivity       40  0 at <=7 days inactive, 1 at >=30, linear between
    low_health       35  0 at score >=75, 1 at <=25, linear between
    payment          15  overdue (or overdue balance) 1.0, at_risk 0.6
    declining_trend  10  health trend declining
    support          10  critical tickets or >2 escalations 1.0, >3 open 0.5
    low_adoption      5  average feature adoption <20% 1.0, <40% 0.5

The sum is capped at 95 (never certain) and rounded. Risk levels:
<30 low, <50 medium, <70 high, else critical.
"""

from __future__ import annotations

from typing import Mapping, Optional, Sequence

import structlog

from src.account360.scoring.constants import (
    CHURN_ACTION_THRESHOLD,
    CHURN_HEALTH_FULL_RISK_SCORE,
    CHURN_HEALTH_SAFE_SCORE,
    CHURN_INACTIVITY_FULL_DAYS,
    CHURN_INACTIVITY_GRACE_DAYS,
    CHURN_PROBABILITY_CAP,
    CHURN_RISK_LEVELS,
    CHURN_URGENT_THRESHOLD,
    CHURN_WEIGHTS,
)
from src.account360.scoring.health_scorer import score_health
from src.account360.scoring.schemas import (
    AccountHealth,
    AccountSnapshot,
    ChurnFactor,
    ChurnPrediction,
)

logger = structlog.get_logger(__name__)


def risk_level_for(probability: int) -> str:
    for bound, level in CHURN_RISK_LEVELS:
        if probability < bound:
            return level
    return "critical"


def _linear(value: float, zero_at: float, one_at: float) -> float:
    """Scale ``value`` to 0..1 between two anchors, clamped at both ends.

    Anchors may be descending (``one_at < zero_at``) for inverse signals.
    """
    if zero_at == one_at:
        return 1.0 if value >= one_at else 0.0
    return max(0.0, min(1.0, (value - zero_at) / (one_at - zero_at)))


class ChurnPredictor:
    """Predict churn probability for account snapshots.

    Args:
        weights: Partial overrides of the maximum points per signal.
    """

    def __init__(self, *, weights: Optional[Mapping[str, float]] = None) -> None:
        merged = dict(CHURN_WEIGHTS)
        if weights:
            unknown = set(weights) - set(CHURN_WEIGHTS)
            if unknown:
                raise ValueError(f"unknown churn signals: {sorted(unknown)}")
            if any(w < 0 for w in weights.values()):
                raise ValueError("churn weights must be non-negative")
            merged.update(weights)
        self._weights = merged

    # ── Signals ──────────────────────────────────────────────────────────
    # Each returns (scale 0..1, factor name, description, literal value).

    @staticmethod
    def _inactivity(snapshot: AccountSnapshot) -> tuple[float, str, str, Optional[str]]:
        days = snapshot.usage.days_since_last_activity
        if days is None:
            return 0.0, "Activity Unknown", "No activity data available", None
        scale = _linear(days, CHURN_INACTIVITY_GRACE_DAYS, CHURN_INACTIVITY_FULL_DAYS)
        if scale >= 1.0:
            return scale, "Inactive Account", f"No activity in {days} days", f"{days} days"
        if scale > 0:
            return scale, "Low Recent Activity", "Limited activity in past week", f"{days} days"
        return 0.0, "Active Engagement", "Account is actively engaged", f"{days} days"

    @staticmethod
    def _low_health(health: AccountHealth) -> tuple[float, str, str, Optional[str]]:
        scale = _linear(health.score, CHURN_HEALTH_SAFE_SCORE, CHURN_HEALTH_FULL_RISK_SCORE)
        if scale >= 0.5:
            name, description = "Low Health Score", "Account health is below critical threshold"
        elif scale > 0:
            name, description = "Moderate Health Score", "Account health is moderate but needs attention"
        else:
            name, description = "Good Health Score", "Account health is in good standing"
        return scale, name, description, str(health.score)

    @staticmethod
    def _payment(snapshot: AccountSnapshot) -> tuple[float, str, str, Optional[str]]:
        commercial = snapshot.commercial
        amount = commercial.overdue_amount or 0.0
        if commercial.payment_status == "overdue" or amount > 0:
            value = f"${amount:,.0f}" if amount > 0 else "Overdue"
            return 1.0, "Payment Overdue", "Account has overdue payments", value
        if commercial.payment_status == "at_risk":
            return 0.6, "Payment At Risk", "Payment status shows risk signals", "at_risk"
        return 0.0, "Payment Current", "No payment issues", None

    @staticmethod
    def _declining_trend(health: AccountHealth) -> tuple[float, str, str, Optional[str]]:
        value = str(health.score_change)
        if health.trend == "declining":
            return 1.0, "Declining Trend", "Health score has been declining over recent period", value
        if health.trend == "improving":
            return 0.0, "Improving Trend", "Health score is trending upward", value
        return 0.0, "Stable Trend", "Health score is stable", value

    @staticmethod
    def _support(snapshot: AccountSnapshot) -> tuple[float, str, str, Optional[str]]:
        support = snapshot.support
        if support is None:
            return 0.0, "Support Unknown", "No support data available", None
        critical = support.critical_tickets or 0
        escalations = support.escalation_count
        open_tickets = support.open_tickets or 0
        if critical > 0 or escalations > 2:
            return (
                1.0,
                "Support Escalations",
                "Account has unresolved critical issues or multiple escalations",
                f"{critical} critical, {escalations} escalations",
            )
        if open_tickets > 3:
            return (
                0.5,
                "Multiple Open Tickets",
                "Several support tickets remain open",
                f"{open_tickets} open tickets",
            )
        return 0.0, "Support Healthy", "No significant support issues", None

    @staticmethod
    def _low_adoption(snapshot: AccountSnapshot) -> tuple[float, str, str, Optional[str]]:
        avg = snapshot.usage.average_feature_adoption
        if avg is None:
            return 0.0, "Adoption Unknown", "No feature adoption data", None
        value = f"{round(avg)}% average"
        if avg < 20:
            return 1.0, "Very Low Adoption", "Account is using very few features", value
        if avg < 40:
            return 0.5, "Low Adoption", "Account has limited feature adoption", value
        return 0.0, "Healthy Adoption", "Feature adoption is healthy", value

    # Zero-scale signals worth reporting as positive context.
    _POSITIVE_FACTORS = frozenset(
        {"Active Engagement", "Good Health Score", "Improving Trend"}
    )

    # ── Prediction ───────────────────────────────────────────────────────

    def predict(
        self, snapshot: AccountSnapshot, health: AccountHealth | None = None
    ) -> ChurnPrediction:
        """Predict churn risk for one account.

        Factors are ordered by contribution descending; positive context
        factors (zero contribution) follow the risk factors.
        """
        if health is None:
            health = score_health(snapshot)

        signals = {
            "inactivity": self._inactivity(snapshot),
            "low_health": self._low_health(health),
            "payment": self._payment(snapshot),
            "declining_trend": self._declining_trend(health),
            "support": self._support(snapshot),
            "low_adoption": self._low_adoption(snapshot),
        }

        total = 0.0
        risk_factors: list[ChurnFactor] = []
        positive_factors: list[ChurnFactor] = []
        for key, (scale, name, description, value) in signals.items():
            points = scale * self._weights[key]
            total += points
            if points > 0:
                risk_factors.append(
                    ChurnFactor(
                        name=name,
                        impact="negative",
                        weight=round(min(1.0, points / 100), 4),
                        description=description,
                        value=value,
                    )
                )
            elif name in self._POSITIVE_FACTORS:
                positive_factors.append(
                    ChurnFactor(name=name, impact="positive", description=description, value=value)
                )
        risk_factors.sort(key=lambda f: f.weight, reverse=True)

        probability = max(0, min(CHURN_PROBABILITY_CAP, round(total)))
        risk_level = risk_level_for(probability)
        arr = snapshot.commercial.arr

        prediction = ChurnPrediction(
            account_id=snapshot.account_id,
            account_name=snapshot.display_name,
            probability=probability,
            risk_level=risk_level,
            factors=risk_factors + positive_factors,
            recommended_actions=self._recommended_actions(probability, risk_factors),
            arr_at_risk=arr if probability >= CHURN_ACTION_THRESHOLD else None,
            calculated_at=snapshot.as_of,
        )
        logger.debug(
            "churn_predicted",
            account_id=snapshot.account_id,
            probability=probability,
            risk_level=risk_level,
        )
        return prediction

    @staticmethod
    def _recommended_actions(probability: int, factors: Sequence[ChurnFactor]) -> list[str]:
        names = {f.name for f in factors}
        actions: list[str] = []
        if probability >= CHURN_URGENT_THRESHOLD:
            actions.append("Schedule urgent health check call with account champion")
        if names & {"Inactive Account", "Low Recent Activity"}:
            actions.append("Send re-engagement email with value proposition")
        if names & {"Low Health Score", "Moderate Health Score"}:
            actions.append("Review weakest health components and agree a recovery plan")
        if names & {"Support Escalations", "Multiple Open Tickets"}:
            actions.append("Expedite resolution of open support issues")
        if names & {"Payment Overdue", "Payment At Risk"}:
            actions.append("Coordinate with finance team on payment issues")
        if names & {"Very Low Adoption", "Low Adoption"}:
            actions.append("Schedule training session to improve feature adoption")
        if "Declining Trend" in names:
            actions.append("Identify root cause of declining health and create action plan")
        if not actions:
            actions.append("Continue regular check-ins to maintain relationship")
        return actions


_default_predictor = ChurnPredictor()


def predict_churn_risk(
    snapshot: AccountSnapshot, health: AccountHealth | None = None
) -> ChurnPrediction:
    return _default_predictor.predict(snapshot, health)


def top_churn_risks(
    snapshots: Sequence[AccountSnapshot], limit: int = 5
) -> list[ChurnPrediction]:
    """Highest-probability predictions first."""
    predictions = [predict_churn_risk(s) for s in snapshots]
    predictions.sort(key=lambda p: p.probability, reverse=True)
    return predictions[:limit]


def churn_metrics(predictions: Sequence[ChurnPrediction]) -> dict[str, float]:
    """Counts per risk level, total ARR at risk, and average probability."""
    counts = {level: 0 for level in ("critical", "high", "medium", "low")}
    for prediction in predictions:
        counts[prediction.risk_level] += 1
    avg = (
        round(sum(p.probability for p in predictions) / len(predictions))
        if predictions
        else 0
    )
    return {
        "critical_count": counts["critical"],
        "high_count": counts["high"],
        "medium_count": counts["medium"],
        "low_count": counts["low"],
        "total_arr_at_risk": sum(p.arr_at_risk or 0.0 for p in predictions),
        "avg_probability": avg,
    }


__all__ = [
    "ChurnPredictor",
    "predict_churn_risk",
    "risk_level_for",
    "top_churn_risks",
    "churn_metrics",
]
