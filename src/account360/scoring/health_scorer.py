"""Explainable five-component account health scoring.

Computes a deterministic 0-100 composite health score from adoption,
engagement, relationship, support, and commercial components. Each
component is scored 0-100 by its own sub-rule with a list of explainable
factors; the composite is the rounded weighted sum. Grade, trend, score
change, confidence, and data freshness are derived from the composite and
the snapshot.

IMPORTANT: The score is a deterministic numeric calculation. Missing data
never raises: a component without inputs falls back to a documented neutral
score and reports zero data points, which lowers confidence instead.

Exports:
    AccountHealthScorer: Configurable health scoring engine with segment
        weight overrides and grade derivation.
    score_health: Module-level convenience using default configuration.
    grade_for_score: Letter grade bucketing for a composite score.
"""

from __future__ import annotations

from typing import Mapping, Optional

import structlog

from src.account360.scoring.constants import (
    CONFIDENCE_TIMELINE_WEEKS,
    COMMERCIAL_NEUTRAL_SCORE,
    FULL_CONFIDENCE_DATA_POINTS,
    GRADE_THRESHOLDS,
    HEALTH_WEIGHTS,
    RELATIONSHIP_NEUTRAL_SCORE,
    SEGMENT_WEIGHT_OVERRIDES,
    SUPPORT_NEUTRAL_SCORE,
    TREND_CHANGE_THRESHOLD,
)
from src.account360.scoring.schemas import (
    AccountHealth,
    AccountSnapshot,
    HealthComponent,
    HealthFactor,
)

logger = structlog.get_logger(__name__)

_WEIGHT_TOLERANCE = 1e-9


def grade_for_score(
    score: float, thresholds: Mapping[str, int] = GRADE_THRESHOLDS
) -> str:
    """Bucket a composite score into A/B/C/D/F."""
    if score >= thresholds["A"]:
        return "A"
    if score >= thresholds["B"]:
        return "B"
    if score >= thresholds["C"]:
        return "C"
    if score >= thresholds["D"]:
        return "D"
    return "F"


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _component(
    score: float, factors: list[HealthFactor], data_points: int, snapshot: AccountSnapshot
) -> HealthComponent:
    return HealthComponent(
        score=round(_clamp(score)),
        factors=factors,
        data_points=data_points,
        last_updated=snapshot.as_of,
    )


class AccountHealthScorer:
    """Compute account health (0-100, higher = healthier) from five components.

    Component weights (default, sum = 1.0):
        adoption:      0.30
        engagement:    0.25
        relationship:  0.15
        support:       0.15
        commercial:    0.15

    Segment overrides replace the defaults for ``enterprise`` and ``smb``
    accounts unless explicit ``weights`` are passed to the constructor.

    Grade derivation:
        score >= 80: A, >= 65: B, >= 50: C, >= 35: D, else F

    Trend derivation (requires ``snapshot.previous_health``):
        change >= +5: improving, change <= -5: declining, else stable.
        Without a previous calculation, trend is stable and change is 0.

    Args:
        weights: Component weights overriding defaults and segment overrides.
            Must contain all five components and sum to 1.0.
        grade_thresholds: Minimum score per grade (A, B, C, D).
        use_segment_overrides: Whether segment-specific weights apply.
    """

    def __init__(
        self,
        *,
        weights: Optional[Mapping[str, float]] = None,
        grade_thresholds: Mapping[str, int] = GRADE_THRESHOLDS,
        use_segment_overrides: bool = True,
    ) -> None:
        if weights is not None:
            self._validate_weights(weights)
        self._weights = dict(weights) if weights is not None else None
        self._grade_thresholds = dict(grade_thresholds)
        self._use_segment_overrides = use_segment_overrides

    @staticmethod
    def _validate_weights(weights: Mapping[str, float]) -> None:
        missing = set(HEALTH_WEIGHTS) - set(weights)
        if missing:
            raise ValueError(f"weights missing components: {sorted(missing)}")
        total = sum(weights[name] for name in HEALTH_WEIGHTS)
        if abs(total - 1.0) > _WEIGHT_TOLERANCE:
            raise ValueError(f"weights must sum to 1.0, got {total}")

    def weights_for(self, segment: str) -> dict[str, float]:
        """Resolve the component weights that apply to a segment."""
        if self._weights is not None:
            return dict(self._weights)
        if self._use_segment_overrides and segment in SEGMENT_WEIGHT_OVERRIDES:
            return dict(SEGMENT_WEIGHT_OVERRIDES[segment])
        return dict(HEALTH_WEIGHTS)

    # ── Component Scorers (private) ──────────────────────────────────────

    @staticmethod
    def _score_adoption(snapshot: AccountSnapshot) -> HealthComponent:
        """Adoption: catalog depth, workflow usage, ordering, feature breadth."""
        usage = snapshot.usage
        factors: list[HealthFactor] = []
        data_points = 3

        items = usage.item_count
        item_points = min(20, round(items / 50 * 20))
        factors.append(
            HealthFactor(
                name="Items created",
                value=items,
                impact="positive" if items >= 20 else "neutral" if items >= 5 else "negative",
                points=item_points,
                explanation=(
                    "Excellent item catalog depth" if items >= 50
                    else "Good item catalog" if items >= 20
                    else "Basic item setup" if items >= 5
                    else "Limited item setup - needs attention"
                ),
            )
        )

        cards = usage.kanban_card_count
        kanban_points = min(25, round(cards / 100 * 25))
        factors.append(
            HealthFactor(
                name="Kanban cards",
                value=cards,
                impact="positive" if cards >= 50 else "neutral" if cards >= 10 else "negative",
                points=kanban_points,
                explanation=(
                    "Heavy kanban workflow adoption" if cards >= 100
                    else "Active kanban usage" if cards >= 50
                    else "Beginning to use kanban" if cards >= 10
                    else "Minimal kanban adoption"
                ),
            )
        )

        orders = usage.order_count
        order_points = min(25, round(orders / 20 * 25))
        factors.append(
            HealthFactor(
                name="Orders placed",
                value=orders,
                impact="positive" if orders >= 10 else "neutral" if orders >= 1 else "negative",
                points=order_points,
                explanation=(
                    "Strong ordering activity - delivering value" if orders >= 20
                    else "Regular ordering" if orders >= 10
                    else "Started placing orders" if orders >= 1
                    else "No orders yet - key adoption milestone missing"
                ),
            )
        )

        score = float(item_points + kanban_points + order_points)

        avg_adoption = usage.average_feature_adoption
        if avg_adoption is not None:
            data_points += 1
            adoption_points = round(_clamp(avg_adoption) / 100 * 15)
            factors.append(
                HealthFactor(
                    name="Feature adoption",
                    value=f"{round(avg_adoption)}%",
                    impact=(
                        "positive" if avg_adoption >= 60
                        else "neutral" if avg_adoption >= 30
                        else "negative"
                    ),
                    points=adoption_points,
                    explanation=f"Average adoption across {len(usage.feature_adoption)} features",
                )
            )
            score += adoption_points

        age = snapshot.account_age_days
        if age is not None:
            data_points += 1
            activity_per_day = usage.total_activity / max(1, age)
            if activity_per_day >= 2:
                velocity = 15
            elif activity_per_day >= 1:
                velocity = 10
            elif activity_per_day >= 0.5:
                velocity = 5
            else:
                velocity = 0
            if velocity > 0:
                factors.append(
                    HealthFactor(
                        name="Onboarding velocity",
                        value=f"{age} days",
                        impact="positive",
                        points=velocity,
                        explanation="Fast adoption relative to account age",
                    )
                )
                score += velocity

        return _component(score, factors, data_points, snapshot)

    @staticmethod
    def _score_engagement(snapshot: AccountSnapshot) -> HealthComponent:
        """Engagement: recency plus breadth of the active user base."""
        usage = snapshot.usage
        factors: list[HealthFactor] = []
        data_points = 3
        score = 0.0

        days = usage.days_since_last_activity
        if days is not None:
            data_points += 1
            recency = max(0.0, 35 - min(35.0, days * 2.5))
            factors.append(
                HealthFactor(
                    name="Days since last activity",
                    value=days,
                    impact="positive" if days <= 3 else "neutral" if days <= 14 else "negative",
                    points=round(recency),
                    explanation=(
                        "Very recent activity" if days <= 3
                        else "Active this week" if days <= 7
                        else "Some recent activity" if days <= 14
                        else f"No activity for {days} days - potential churn risk"
                    ),
                )
            )
            score += recency

        total = usage.total_users
        monthly = usage.active_users_last_30_days
        breadth = min(1.0, monthly / total) if total > 0 else 0.0
        breadth_points = round(breadth * 30)
        factors.append(
            HealthFactor(
                name="Monthly active user ratio",
                value=f"{monthly}/{total}",
                impact="positive" if breadth >= 0.5 else "neutral" if breadth >= 0.25 else "negative",
                points=breadth_points,
                explanation=(
                    "Most users are active" if breadth >= 0.75
                    else "Good user engagement" if breadth >= 0.5
                    else "Some user engagement" if breadth >= 0.25
                    else "Low user adoption across the team"
                ),
            )
        )
        score += breadth_points

        weekly = usage.active_users_last_7_days
        weekly_points = min(20, weekly * 4)
        factors.append(
            HealthFactor(
                name="Weekly active users",
                value=weekly,
                impact="positive" if weekly >= 3 else "neutral" if weekly >= 1 else "negative",
                points=weekly_points,
                explanation=(
                    "Strong weekly engagement" if weekly >= 5
                    else "Regular weekly usage" if weekly >= 3
                    else "At least one weekly user" if weekly >= 1
                    else "No activity this week"
                ),
            )
        )
        score += weekly_points

        user_points = min(15, total * 3)
        factors.append(
            HealthFactor(
                name="Total users",
                value=total,
                impact="positive" if total >= 5 else "neutral" if total >= 2 else "negative",
                points=user_points,
                explanation=(
                    "Good team adoption" if total >= 5
                    else "Multiple users" if total >= 2
                    else "Single user - concentration risk"
                ),
            )
        )
        score += user_points

        return _component(score, factors, data_points, snapshot)

    @staticmethod
    def _score_relationship(snapshot: AccountSnapshot) -> HealthComponent:
        """Relationship: CS touch recency, interaction cadence, champion coverage."""
        factors: list[HealthFactor] = []
        data_points = 0
        score = RELATIONSHIP_NEUTRAL_SCORE

        contact_days = snapshot.days_since_last_cs_contact
        if contact_days is not None:
            data_points += 1
            touch = max(0.0, 40 - min(40.0, contact_days * 1.5))
            factors.append(
                HealthFactor(
                    name="Days since last CS contact",
                    value=contact_days,
                    impact=(
                        "positive" if contact_days <= 14
                        else "neutral" if contact_days <= 30
                        else "negative"
                    ),
                    points=round(touch),
                    explanation=(
                        "Recent CS engagement" if contact_days <= 14
                        else "Contacted this month" if contact_days <= 30
                        else "Overdue for CS touch"
                    ),
                )
            )
            score = touch
        else:
            factors.append(
                HealthFactor(
                    name="CS contact data",
                    value="Missing",
                    points=RELATIONSHIP_NEUTRAL_SCORE,
                    explanation="No CS interaction data - using neutral score",
                )
            )

        interactions = snapshot.interactions_last_30_days
        if interactions is not None:
            data_points += 1
            interaction_points = min(30, interactions * 10)
            factors.append(
                HealthFactor(
                    name="Interactions last 30 days",
                    value=interactions,
                    impact=(
                        "positive" if interactions >= 2
                        else "neutral" if interactions >= 1
                        else "negative"
                    ),
                    points=interaction_points,
                    explanation=(
                        "High-touch engagement" if interactions >= 3
                        else "Regular engagement" if interactions >= 1
                        else "No recent interactions"
                    ),
                )
            )
            score += interaction_points

        champion = snapshot.champion_present
        if champion is not None:
            data_points += 1
            factors.append(
                HealthFactor(
                    name="Champion identified",
                    value="Yes" if champion else "No",
                    impact="positive" if champion else "negative",
                    points=30 if champion else 0,
                    explanation=(
                        "Has identified champion" if champion
                        else "No champion - relationship risk"
                    ),
                )
            )
            score += 30 if champion else 0

        active_stakeholders = [s for s in snapshot.stakeholders if not s.has_left]
        if snapshot.stakeholders:
            data_points += 1
            high_influence = any(s.influence == "high" for s in active_stakeholders)
            coverage_points = 10 if high_influence else 0
            factors.append(
                HealthFactor(
                    name="Stakeholder coverage",
                    value=len(active_stakeholders),
                    impact="positive" if high_influence else "neutral",
                    points=coverage_points,
                    explanation=(
                        "High-influence stakeholder engaged" if high_influence
                        else "No high-influence stakeholder mapped"
                    ),
                )
            )
            score += coverage_points

        return _component(score, factors, data_points, snapshot)

    @staticmethod
    def _score_support(snapshot: AccountSnapshot) -> HealthComponent:
        """Support: ticket volume and severity inverted, blended with CSAT."""
        factors: list[HealthFactor] = []
        data_points = 0
        score = SUPPORT_NEUTRAL_SCORE
        support = snapshot.support

        if support is not None and support.open_tickets is not None:
            data_points += 1
            open_tickets = support.open_tickets
            ticket_points = max(0, 40 - min(40, open_tickets * 10))
            factors.append(
                HealthFactor(
                    name="Open support tickets",
                    value=open_tickets,
                    impact=(
                        "positive" if open_tickets == 0
                        else "neutral" if open_tickets <= 2
                        else "negative"
                    ),
                    points=ticket_points,
                    explanation=(
                        "No open tickets" if open_tickets == 0
                        else "Normal ticket volume" if open_tickets <= 2
                        else "High ticket volume - frustration risk"
                    ),
                )
            )
            score = 60.0 + ticket_points

        if support is not None and support.critical_tickets is not None:
            data_points += 1
            critical = support.critical_tickets
            if critical > 0:
                penalty = critical * 20
                factors.append(
                    HealthFactor(
                        name="Critical tickets",
                        value=critical,
                        impact="negative",
                        points=-penalty,
                        explanation=f"{critical} critical issue(s) requiring immediate attention",
                    )
                )
                score = max(0.0, score - penalty)

        if support is not None and support.csat is not None:
            data_points += 1
            csat = support.csat
            csat_points = round(csat / 100 * 30)
            factors.append(
                HealthFactor(
                    name="CSAT score",
                    value=f"{round(csat)}%",
                    impact="positive" if csat >= 80 else "neutral" if csat >= 60 else "negative",
                    points=csat_points,
                    explanation=(
                        "High customer satisfaction" if csat >= 80
                        else "Adequate satisfaction" if csat >= 60
                        else "Low satisfaction - action needed"
                    ),
                )
            )
            score = score * 0.7 + csat_points * 0.3

        if not factors:
            factors.append(
                HealthFactor(
                    name="Support data",
                    value="No data",
                    points=SUPPORT_NEUTRAL_SCORE,
                    explanation="No support tickets or data - assuming healthy",
                )
            )

        return _component(score, factors, data_points, snapshot)

    @staticmethod
    def _score_commercial(snapshot: AccountSnapshot) -> HealthComponent:
        """Commercial: payment standing, renewal proximity, expansion signals."""
        commercial = snapshot.commercial
        factors: list[HealthFactor] = []
        data_points = 0
        score = COMMERCIAL_NEUTRAL_SCORE

        status = commercial.payment_status
        if status in ("current", "overdue", "at_risk", "churned"):
            data_points += 1
            payment_points = {"current": 40, "at_risk": 25, "overdue": 10, "churned": 0}[status]
            factors.append(
                HealthFactor(
                    name="Payment status",
                    value=status,
                    impact="positive" if status == "current" else "negative",
                    points=payment_points,
                    explanation=(
                        "Payments current" if status == "current"
                        else "Payment overdue - churn risk" if status == "overdue"
                        else "Payment at risk" if status == "at_risk"
                        else "Subscription churned"
                    ),
                )
            )
            score = payment_points + 30.0

        days = commercial.days_to_renewal
        if days is not None:
            data_points += 1
            if days <= 30:
                renewal_points, impact, explanation = (
                    10, "negative", "Renewal in <30 days - requires attention"
                )
            elif days <= 60:
                renewal_points, impact, explanation = (
                    20, "neutral", "Renewal approaching in 30-60 days"
                )
            elif days <= 90:
                renewal_points, impact, explanation = (
                    25, "neutral", "Renewal in 60-90 days - plan ahead"
                )
            else:
                renewal_points, impact, explanation = (
                    30, "positive", "Renewal not imminent"
                )
            factors.append(
                HealthFactor(
                    name="Days to renewal",
                    value=days,
                    impact=impact,
                    points=renewal_points,
                    explanation=explanation,
                )
            )
            score = score * 0.6 + renewal_points * 0.4

        potential = commercial.expansion_potential
        if potential != "unknown":
            data_points += 1
            bonus = {"high": 10, "medium": 5}.get(potential, 0)
            factors.append(
                HealthFactor(
                    name="Expansion potential",
                    value=potential,
                    impact="positive" if bonus else "neutral",
                    points=bonus,
                    explanation=f"CRM expansion potential: {potential}",
                )
            )
            score += bonus

        if not factors:
            factors.append(
                HealthFactor(
                    name="Commercial data",
                    value="No data",
                    points=COMMERCIAL_NEUTRAL_SCORE,
                    explanation="No commercial data available - using neutral score",
                )
            )

        return _component(score, factors, data_points, snapshot)

    # ── Derived Fields ───────────────────────────────────────────────────

    @staticmethod
    def composite_score(components: Mapping[str, HealthComponent]) -> int:
        """Round the sum of component weighted scores into the composite."""
        return round(sum(c.weighted_score for c in components.values()))

    @staticmethod
    def _trend(score_change: int) -> str:
        if score_change >= TREND_CHANGE_THRESHOLD:
            return "improving"
        if score_change <= -TREND_CHANGE_THRESHOLD:
            return "declining"
        return "stable"

    @staticmethod
    def _change_reason(
        components: Mapping[str, HealthComponent], score_change: int
    ) -> str:
        if abs(score_change) < 3:
            return "Score is stable"
        if score_change < 0:
            weakest = min(components, key=lambda name: components[name].score)
            return (
                f"Score declined, primarily due to {weakest} "
                f"({round(components[weakest].score)}/100)"
            )
        return "Score improved across components"

    @staticmethod
    def _confidence(components: Mapping[str, HealthComponent], timeline_len: int) -> int:
        data_points = sum(c.data_points for c in components.values())
        data_points += min(timeline_len, CONFIDENCE_TIMELINE_WEEKS)
        return min(100, round(100 * data_points / FULL_CONFIDENCE_DATA_POINTS))

    @staticmethod
    def _data_freshness(days_since_activity: Optional[int]) -> str:
        if days_since_activity is None:
            return "missing"
        if days_since_activity <= 1:
            return "fresh"
        if days_since_activity <= 7:
            return "stale"
        if days_since_activity <= 30:
            return "outdated"
        return "missing"

    # ── Main Scoring Method ──────────────────────────────────────────────

    def score(self, snapshot: AccountSnapshot) -> AccountHealth:
        """Compute account health from a snapshot.

        Steps:
        1. Score each of the five components independently.
        2. Apply segment-resolved weights.
        3. Round the weighted sum into the composite and derive the grade.
        4. Derive trend and score change from ``previous_health``.
        5. Estimate confidence from data points and timeline length.

        Args:
            snapshot: Account snapshot; sparse snapshots are scored with
                neutral component fallbacks.

        Returns:
            AccountHealth with score, grade, trend, components, confidence.
        """
        weights = self.weights_for(snapshot.segment)

        components: dict[str, HealthComponent] = {
            "adoption": self._score_adoption(snapshot),
            "engagement": self._score_engagement(snapshot),
            "relationship": self._score_relationship(snapshot),
            "support": self._score_support(snapshot),
            "commercial": self._score_commercial(snapshot),
        }
        for name, component in components.items():
            component.weight = weights[name]
            component.weighted_score = component.score * weights[name]

        composite = max(0, min(100, self.composite_score(components)))
        grade = grade_for_score(composite, self._grade_thresholds)

        previous = snapshot.previous_health
        score_change = composite - previous.score if previous is not None else 0
        trend = self._trend(score_change)
        if previous is not None:
            for name, component in components.items():
                prior = previous.components.get(name)
                if prior is not None:
                    component.trend = self._trend(round(component.score - prior))

        health = AccountHealth(
            account_id=snapshot.account_id,
            score=composite,
            grade=grade,
            trend=trend,
            score_change=score_change,
            previous_score=previous.score if previous is not None else None,
            change_reason=self._change_reason(components, score_change),
            components=components,
            confidence=self._confidence(components, len(snapshot.usage.activity_timeline)),
            data_freshness=self._data_freshness(snapshot.usage.days_since_last_activity),
            calculated_at=snapshot.as_of,
        )
        logger.debug(
            "health_scored",
            account_id=snapshot.account_id,
            score=health.score,
            grade=health.grade,
            confidence=health.confidence,
        )
        return health


_default_scorer = AccountHealthScorer()


def score_health(snapshot: AccountSnapshot) -> AccountHealth:
    """Score a snapshot with the default weights and thresholds."""
    return _default_scorer.score(snapshot)


__all__ = ["AccountHealthScorer", "score_health", "grade_for_score"]
