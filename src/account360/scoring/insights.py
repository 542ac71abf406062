"""Narrative insights for single accounts and whole portfolios.

Account insights run trend and anomaly detection over the activity
timeline together with commercial and lifecycle signals. Portfolio insights
aggregate over ``AccountSummary`` lists. Both batteries are ordered tables
of independent rules; each rule may emit at most one insight, and the final
list is stably sorted critical, warning, info.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Mapping, Optional, Sequence

import structlog

from src.account360.scoring.constants import (
    INSIGHT_ID_NAMESPACE,
    INSIGHT_SEVERITY_RANK,
    INSIGHT_THRESHOLDS,
    PORTFOLIO_THRESHOLDS,
)
from src.account360.scoring.health_scorer import score_health
from src.account360.scoring.schemas import (
    AccountHealth,
    AccountSnapshot,
    AccountSummary,
    Insight,
)
from src.account360.scoring.timeseries import detect_anomaly, detect_trend

logger = structlog.get_logger(__name__)

PORTFOLIO_SCOPE = "portfolio"


@dataclass(frozen=True)
class InsightResult:
    """What a triggered insight rule contributes to its Insight."""

    type: str
    severity: str
    title: str
    description: str
    evidence: list[str]
    confidence: int
    category: str
    suggested_action: Optional[str] = None
    metric: Optional[str] = None
    value: Optional[float] = None
    previous_value: Optional[float] = None
    change_percent: Optional[float] = None
    related_account_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AccountContext:
    snapshot: AccountSnapshot
    health: AccountHealth
    thresholds: Mapping[str, float]


@dataclass(frozen=True)
class PortfolioContext:
    accounts: Sequence[AccountSummary]
    thresholds: Mapping[str, float]

    @property
    def total_arr(self) -> float:
        return sum(a.arr or 0.0 for a in self.accounts)


@dataclass(frozen=True)
class InsightRule:
    key: str
    check: Callable[..., Optional[InsightResult]]


def insight_id(scope: str, rule_key: str) -> str:
    """Deterministic insight id for a (scope, rule) pair."""
    return str(uuid.uuid5(INSIGHT_ID_NAMESPACE, f"{scope}:{rule_key}"))


def _money(amount: float) -> str:
    return f"${amount:,.0f}"


def _ids(accounts: Sequence[AccountSummary]) -> list[str]:
    return [a.id for a in accounts]


def _avg_health(accounts: Sequence[AccountSummary]) -> int:
    return round(sum(a.health_score for a in accounts) / len(accounts))


# -- Account Rules ------------------------------------------------------------


def _usage_trending_up(ctx: AccountContext) -> Optional[InsightResult]:
    usage = ctx.snapshot.usage
    if not usage.activity_timeline:
        return None
    result = detect_trend(usage.timeline_totals)
    if result.trend != "up" or result.change_percent < ctx.thresholds["usage_growth_percent"]:
        return None
    change = round(result.change_percent)
    return InsightResult(
        type="trend",
        severity="info",
        title=f"Usage trending up {change}% week-over-week",
        description=(
            f"{ctx.snapshot.display_name} shows strong growth in product usage. "
            "Activity has increased significantly over recent weeks."
        ),
        evidence=[
            f"Items: {usage.item_count}",
            f"Active users: {usage.active_users_last_30_days}",
            f"{change}% increase in activity",
        ],
        suggested_action="Consider scheduling expansion conversation",
        confidence=85,
        category="usage",
        metric="weekly_activity",
        value=result.recent_average,
        previous_value=result.older_average,
        change_percent=result.change_percent,
    )


def _activity_drop(ctx: AccountContext) -> Optional[InsightResult]:
    usage = ctx.snapshot.usage
    anomaly = detect_anomaly(usage.timeline_totals)
    if not anomaly.is_anomaly or anomaly.direction != "drop":
        return None
    magnitude = round(anomaly.magnitude)
    days = usage.days_since_last_activity
    return InsightResult(
        type="anomaly",
        severity="warning",
        title="Unusual drop in recent activity",
        description=(
            f"{ctx.snapshot.display_name} has shown a {magnitude}% drop in activity "
            "compared to baseline. This may indicate a potential issue."
        ),
        evidence=[
            f"{magnitude}% decrease in activity",
            f"Days since last activity: {days if days is not None else 'Unknown'}",
        ],
        suggested_action="Reach out to understand if there are any blockers or issues",
        confidence=75,
        category="engagement",
        metric="weekly_activity",
        change_percent=-anomaly.magnitude,
    )


def _expansion_prediction(ctx: AccountContext) -> Optional[InsightResult]:
    commercial = ctx.snapshot.commercial
    usage = ctx.snapshot.usage
    t = ctx.thresholds
    utilization = commercial.seat_utilization
    signals = (
        (utilization is not None and utilization > t["expansion_seat_utilization"])
        or usage.active_users_last_30_days > t["expansion_active_users"]
        or commercial.expansion_potential == "high"
    )
    if not signals or ctx.health.trend == "declining":
        return None

    evidence = []
    if utilization is not None:
        evidence.append(f"Seat utilization: {round(utilization * 100)}%")
    evidence.append(f"Active users: {usage.active_users_last_30_days}")
    if commercial.expansion_potential != "unknown":
        evidence.append(f"Expansion potential: {commercial.expansion_potential}")
    return InsightResult(
        type="prediction",
        severity="info",
        title="Likely to expand based on usage pattern",
        description=(
            f"{ctx.snapshot.display_name} shows strong expansion signals including "
            "high seat utilization and growing usage patterns."
        ),
        evidence=evidence,
        suggested_action="Schedule expansion conversation with account champion",
        confidence=78,
        category="commercial",
        metric="seat_utilization" if utilization is not None else None,
        value=utilization,
    )


def _renewal_qbr(ctx: AccountContext) -> Optional[InsightResult]:
    commercial = ctx.snapshot.commercial
    days = commercial.days_to_renewal
    t = ctx.thresholds
    if days is None or days > t["renewal_warning_days"]:
        return None
    evidence = [f"Renewal in {days} days"]
    if commercial.arr:
        evidence.append(f"ARR: {_money(commercial.arr)}")
    evidence.append(f"Health score: {ctx.health.score}")
    return InsightResult(
        type="recommendation",
        severity="critical" if days <= t["renewal_critical_days"] else "warning",
        title="Schedule QBR - account approaching renewal",
        description=(
            f"{ctx.snapshot.display_name} is {days} days from renewal. A Quarterly "
            "Business Review should be scheduled to discuss value delivered and "
            "renewal terms."
        ),
        evidence=evidence,
        suggested_action="Schedule QBR meeting within the next 2 weeks",
        confidence=95,
        category="commercial",
        metric="days_to_renewal",
        value=float(days),
    )


def _health_declining(ctx: AccountContext) -> Optional[InsightResult]:
    health = ctx.health
    if health.trend != "declining" or health.score_change >= ctx.thresholds["health_decline_points"]:
        return None
    reason = health.change_reason or "Multiple factors contributing to decline."
    return InsightResult(
        type="trend",
        severity="warning",
        title="Health score declining significantly",
        description=(
            f"{ctx.snapshot.display_name}'s health score has dropped "
            f"{abs(health.score_change)} points. {reason}"
        ),
        evidence=[
            f"Score: {health.score} (Grade {health.grade})",
            f"Change: {health.score_change} points",
            reason,
        ],
        suggested_action="Review account health factors and schedule check-in call",
        confidence=88,
        category="health",
        metric="health_score",
        value=float(health.score),
        previous_value=float(health.previous_score) if health.previous_score is not None else None,
    )


def _onboarding_stalled(ctx: AccountContext) -> Optional[InsightResult]:
    snapshot = ctx.snapshot
    days = snapshot.usage.days_since_last_activity
    inactive = days is not None and days > ctx.thresholds["onboarding_inactive_days"]
    if not (
        snapshot.onboarding_status == "stalled"
        or (snapshot.lifecycle_stage == "onboarding" and inactive)
    ):
        return None
    return InsightResult(
        type="anomaly",
        severity="warning",
        title="Onboarding appears stalled",
        description=(
            f"{snapshot.display_name} has been in onboarding but shows limited recent "
            "activity. They may need additional support to get started."
        ),
        evidence=[
            f"Onboarding status: {snapshot.onboarding_status}",
            f"Days since activity: {days if days is not None else 'Unknown'}",
            f"Items created: {snapshot.usage.item_count}",
        ],
        suggested_action="Send onboarding check-in email and offer training session",
        confidence=82,
        category="engagement",
    )


def _low_feature_adoption(ctx: AccountContext) -> Optional[InsightResult]:
    snapshot = ctx.snapshot
    avg = snapshot.usage.average_feature_adoption
    if avg is None or snapshot.lifecycle_stage == "onboarding":
        return None
    if avg >= ctx.thresholds["low_adoption_percent"]:
        return None
    return InsightResult(
        type="recommendation",
        severity="info",
        title="Low feature adoption detected",
        description=(
            f"{snapshot.display_name} is only using {round(avg)}% of available "
            "features. There's opportunity to drive more value."
        ),
        evidence=[
            f"{name}: {round(value)}%"
            for name, value in snapshot.usage.feature_adoption.items()
        ],
        suggested_action="Schedule feature training or share best practices content",
        confidence=72,
        category="engagement",
        metric="feature_adoption",
        value=avg,
    )


def _payment_issue(ctx: AccountContext) -> Optional[InsightResult]:
    commercial = ctx.snapshot.commercial
    amount = commercial.overdue_amount or 0.0
    if commercial.payment_status != "overdue" and amount <= 0:
        return None
    return InsightResult(
        type="anomaly",
        severity="critical",
        title="Payment overdue - action required",
        description=(
            f"{ctx.snapshot.display_name} has outstanding payment issues that need "
            "immediate attention."
        ),
        evidence=[
            f"Payment status: {commercial.payment_status}",
            f"Overdue amount: {_money(amount)}" if amount > 0 else "Payment collection needed",
        ],
        suggested_action="Coordinate with finance team and reach out to billing contact",
        confidence=95,
        category="commercial",
        metric="overdue_amount",
        value=amount if amount > 0 else None,
    )


ACCOUNT_INSIGHT_RULES: tuple[InsightRule, ...] = (
    InsightRule("usage_trending_up", _usage_trending_up),
    InsightRule("activity_drop", _activity_drop),
    InsightRule("expansion_prediction", _expansion_prediction),
    InsightRule("renewal_qbr", _renewal_qbr),
    InsightRule("health_declining", _health_declining),
    InsightRule("onboarding_stalled", _onboarding_stalled),
    InsightRule("low_feature_adoption", _low_feature_adoption),
    InsightRule("payment_issue", _payment_issue),
)


# -- Portfolio Rules ----------------------------------------------------------


def _churn_signals(ctx: PortfolioContext) -> Optional[InsightResult]:
    t = ctx.thresholds
    at_risk = [
        a
        for a in ctx.accounts
        if a.health_score < t["at_risk_health_below"]
        or a.health_trend == "declining"
        or a.critical_alert_count > 0
        or (
            a.days_since_last_activity is not None
            and a.days_since_last_activity > t["at_risk_inactive_days"]
        )
    ]
    if not at_risk:
        return None
    arr = sum(a.arr or 0.0 for a in at_risk)
    return InsightResult(
        type="prediction",
        severity="critical" if len(at_risk) >= t["at_risk_critical_count"] else "warning",
        title=f"{len(at_risk)} accounts showing churn signals",
        description=(
            "These accounts show multiple risk indicators including declining "
            "health, low engagement, or critical alerts."
        ),
        evidence=[
            f"{len(at_risk)} accounts at risk",
            f"Combined ARR at risk: {_money(arr)}",
            f"Average health score: {_avg_health(at_risk)}",
        ],
        suggested_action="Prioritize outreach to these accounts immediately",
        confidence=82,
        category="risk",
        metric="arr_at_risk",
        value=arr,
        related_account_ids=_ids(at_risk),
    )


def _top_performers(ctx: PortfolioContext) -> Optional[InsightResult]:
    t = ctx.thresholds
    if len(ctx.accounts) < t["benchmark_min_accounts"]:
        return None
    ranked = sorted(ctx.accounts, key=lambda a: a.health_score, reverse=True)
    top = ranked[: max(1, math.ceil(len(ranked) * t["benchmark_fraction"]))]
    avg = _avg_health(top)
    names = ", ".join(a.name or a.id for a in top[:3])
    return InsightResult(
        type="benchmark",
        severity="info",
        title=f"Top {len(top)} accounts by health score",
        description=(
            f"These are your healthiest accounts with an average health score of "
            f"{avg}. They represent best practices to replicate."
        ),
        evidence=[
            f"Top accounts: {names}{'...' if len(top) > 3 else ''}",
            f"Average health: {avg}",
        ],
        suggested_action=(
            "Study what makes these accounts successful and apply learnings to "
            "at-risk accounts"
        ),
        confidence=90,
        category="health",
        metric="health_score",
        value=float(avg),
        related_account_ids=_ids(top),
    )


def _revenue_at_risk(ctx: PortfolioContext) -> Optional[InsightResult]:
    t = ctx.thresholds
    at_risk = [
        a
        for a in ctx.accounts
        if (a.health_score < t["at_risk_health_below"] or a.critical_alert_count > 0)
        and (a.arr or 0.0) > 0
    ]
    at_risk_arr = sum(a.arr or 0.0 for a in at_risk)
    if at_risk_arr <= 0:
        return None
    total = ctx.total_arr
    percent = round(at_risk_arr / total * 100) if total > 0 else 0
    return InsightResult(
        type="prediction",
        severity="critical" if percent >= t["revenue_risk_critical_percent"] else "warning",
        title=f"Revenue at risk from at-risk accounts: {_money(at_risk_arr)}",
        description=(
            f"{percent}% of total ARR is associated with accounts showing risk "
            "signals. Immediate action recommended."
        ),
        evidence=[
            f"At-risk ARR: {_money(at_risk_arr)}",
            f"Total ARR: {_money(total)}",
            f"{len(at_risk)} accounts contributing to risk",
        ],
        suggested_action="Review and prioritize intervention for highest ARR at-risk accounts",
        confidence=85,
        category="commercial",
        metric="revenue_at_risk",
        value=at_risk_arr,
        change_percent=float(percent),
        related_account_ids=_ids(at_risk),
    )


def _stalled_onboarding(ctx: PortfolioContext) -> Optional[InsightResult]:
    onboarding = [a for a in ctx.accounts if a.lifecycle_stage == "onboarding"]
    stalled = [
        a
        for a in onboarding
        if (
            a.days_since_last_activity is not None
            and a.days_since_last_activity > ctx.thresholds["stalled_inactive_days"]
        )
        or a.onboarding_status == "stalled"
    ]
    if not stalled:
        return None
    known = [a.days_since_last_activity for a in stalled if a.days_since_last_activity is not None]
    avg_inactive = f"{round(sum(known) / len(known))}" if known else "unknown"
    return InsightResult(
        type="trend",
        severity="warning",
        title=f"{len(stalled)} onboarding accounts need attention",
        description=(
            "These accounts are in onboarding but showing signs of stalling. Early "
            "intervention is critical for long-term success."
        ),
        evidence=[
            f"{len(stalled)} stalled onboardings",
            f"{len(onboarding)} total in onboarding",
            f"Avg days inactive: {avg_inactive}",
        ],
        suggested_action="Schedule onboarding check-ins and offer additional training",
        confidence=78,
        category="engagement",
        value=float(len(stalled)),
        related_account_ids=_ids(stalled),
    )


def _health_distribution(ctx: PortfolioContext) -> Optional[InsightResult]:
    t = ctx.thresholds
    accounts = ctx.accounts
    healthy = [a for a in accounts if a.health_score >= t["healthy_at_least"]]
    moderate = [
        a
        for a in accounts
        if t["moderate_at_least"] <= a.health_score < t["healthy_at_least"]
    ]
    unhealthy = [a for a in accounts if a.health_score < t["moderate_at_least"]]
    healthy_pct = round(len(healthy) / len(accounts) * 100)
    unhealthy_pct = round(len(unhealthy) / len(accounts) * 100)
    return InsightResult(
        type="benchmark",
        severity="warning" if healthy_pct < 50 else "info",
        title=f"Portfolio health: {healthy_pct}% healthy, {unhealthy_pct}% at-risk",
        description=(
            f"Overall portfolio health distribution shows {len(healthy)} healthy "
            f"accounts, {len(moderate)} moderate, and {len(unhealthy)} at-risk."
        ),
        evidence=[
            f"Healthy ({int(t['healthy_at_least'])}+): {len(healthy)} accounts",
            f"Moderate ({int(t['moderate_at_least'])}-{int(t['healthy_at_least']) - 1}): "
            f"{len(moderate)} accounts",
            f"At-risk (<{int(t['moderate_at_least'])}): {len(unhealthy)} accounts",
        ],
        suggested_action=(
            "Focus on improving moderate accounts before they become at-risk"
            if healthy_pct < 50
            else "Maintain current engagement strategies and share best practices"
        ),
        confidence=92,
        category="health",
        metric="healthy_percent",
        value=float(healthy_pct),
        related_account_ids=_ids(unhealthy),
    )


def _expansion_pipeline(ctx: PortfolioContext) -> Optional[InsightResult]:
    t = ctx.thresholds
    candidates = [
        a
        for a in ctx.accounts
        if a.health_score >= t["healthy_at_least"]
        and a.health_trend != "declining"
        and a.active_users >= t["expansion_min_active_users"]
    ]
    if not candidates:
        return None
    potential = round(sum(a.arr or 0.0 for a in candidates) * t["expansion_arr_fraction"])
    return InsightResult(
        type="prediction",
        severity="info",
        title=f"{len(candidates)} accounts showing expansion potential",
        description=(
            "These healthy, active accounts are good candidates for upsell conversations."
        ),
        evidence=[
            f"{len(candidates)} expansion candidates",
            f"Potential expansion ARR: {_money(potential)}",
            f"All with health score {int(t['healthy_at_least'])}+",
        ],
        suggested_action="Prioritize expansion conversations with these accounts",
        confidence=72,
        category="commercial",
        metric="expansion_arr",
        value=float(potential),
        related_account_ids=_ids(candidates),
    )


def _renewal_wave(ctx: PortfolioContext) -> Optional[InsightResult]:
    t = ctx.thresholds
    renewing = [
        a
        for a in ctx.accounts
        if a.days_to_renewal is not None and a.days_to_renewal <= t["renewal_window_days"]
    ]
    if len(renewing) < t["renewal_wave_min_accounts"]:
        return None
    arr = sum(a.arr or 0.0 for a in renewing)
    avg = _avg_health(renewing)
    window = int(t["renewal_window_days"])
    return InsightResult(
        type="trend",
        severity="warning" if avg < t["renewal_wave_health_warning"] else "info",
        title=f"{len(renewing)} renewals coming up in next {window} days",
        description=(
            f"{_money(arr)} ARR up for renewal. Average health of renewing "
            f"accounts is {avg}."
        ),
        evidence=[
            f"{len(renewing)} accounts renewing",
            f"Total renewal ARR: {_money(arr)}",
            f"Average health: {avg}",
        ],
        suggested_action="Ensure all renewal accounts have scheduled QBR or renewal discussions",
        confidence=88,
        category="commercial",
        metric="renewal_arr",
        value=arr,
        related_account_ids=_ids(renewing),
    )


def _declining_vs_improving(ctx: PortfolioContext) -> Optional[InsightResult]:
    improving = [a for a in ctx.accounts if a.health_trend == "improving"]
    declining = [a for a in ctx.accounts if a.health_trend == "declining"]
    if len(declining) <= len(improving) or len(declining) < ctx.thresholds["declining_min_accounts"]:
        return None
    stable = len(ctx.accounts) - len(improving) - len(declining)
    return InsightResult(
        type="trend",
        severity="warning",
        title=(
            f"More accounts declining ({len(declining)}) than improving "
            f"({len(improving)})"
        ),
        description=(
            "Portfolio trend shows more accounts with declining health than "
            "improving. This warrants investigation into root causes."
        ),
        evidence=[
            f"Improving: {len(improving)}",
            f"Declining: {len(declining)}",
            f"Stable or unknown: {stable}",
        ],
        suggested_action=(
            "Analyze common factors among declining accounts and address systemic issues"
        ),
        confidence=80,
        category="health",
        value=float(len(declining)),
        related_account_ids=_ids(declining),
    )


PORTFOLIO_INSIGHT_RULES: tuple[InsightRule, ...] = (
    InsightRule("churn_signals", _churn_signals),
    InsightRule("top_performers", _top_performers),
    InsightRule("revenue_at_risk", _revenue_at_risk),
    InsightRule("stalled_onboarding", _stalled_onboarding),
    InsightRule("health_distribution", _health_distribution),
    InsightRule("expansion_pipeline", _expansion_pipeline),
    InsightRule("renewal_wave", _renewal_wave),
    InsightRule("declining_vs_improving", _declining_vs_improving),
)


# -- Engine -------------------------------------------------------------------


def _sort_by_severity(insights: Sequence[Insight]) -> list[Insight]:
    return sorted(insights, key=lambda i: INSIGHT_SEVERITY_RANK[i.severity])


def _build(
    rule: InsightRule,
    result: InsightResult,
    scope: str,
    created_at: Optional[datetime],
    account: Optional[AccountSnapshot] = None,
) -> Insight:
    return Insight(
        id=insight_id(scope, rule.key),
        type=result.type,
        severity=result.severity,
        title=result.title,
        description=result.description,
        evidence=list(result.evidence),
        suggested_action=result.suggested_action,
        confidence=result.confidence,
        category=result.category,
        account_id=account.account_id if account is not None else None,
        account_name=account.display_name if account is not None else None,
        related_account_ids=list(result.related_account_ids),
        metric=result.metric,
        value=result.value,
        previous_value=result.previous_value,
        change_percent=result.change_percent,
        created_at=created_at,
    )


class InsightEngine:
    """Evaluate account and portfolio insight rule batteries.

    Args:
        thresholds: Partial overrides merged over ``INSIGHT_THRESHOLDS``.
        portfolio_thresholds: Partial overrides merged over
            ``PORTFOLIO_THRESHOLDS``.
    """

    def __init__(
        self,
        *,
        thresholds: Optional[Mapping[str, float]] = None,
        portfolio_thresholds: Optional[Mapping[str, float]] = None,
    ) -> None:
        self._thresholds = self._merge(INSIGHT_THRESHOLDS, thresholds, "insight")
        self._portfolio_thresholds = self._merge(
            PORTFOLIO_THRESHOLDS, portfolio_thresholds, "portfolio"
        )

    @staticmethod
    def _merge(
        defaults: Mapping[str, float],
        overrides: Optional[Mapping[str, float]],
        label: str,
    ) -> dict[str, float]:
        merged = dict(defaults)
        if overrides:
            unknown = set(overrides) - set(defaults)
            if unknown:
                raise ValueError(f"unknown {label} thresholds: {sorted(unknown)}")
            merged.update(overrides)
        return merged

    def account_insights(
        self, snapshot: AccountSnapshot, health: AccountHealth | None = None
    ) -> list[Insight]:
        """Insights for one account, sorted critical, warning, info."""
        if health is None:
            health = score_health(snapshot)
        ctx = AccountContext(snapshot=snapshot, health=health, thresholds=self._thresholds)

        insights: list[Insight] = []
        for rule in ACCOUNT_INSIGHT_RULES:
            try:
                result = rule.check(ctx)
            except Exception as exc:
                logger.warning(
                    "insight_rule_skipped",
                    rule=rule.key,
                    account_id=snapshot.account_id,
                    error=str(exc),
                )
                continue
            if result is not None:
                insights.append(
                    _build(rule, result, snapshot.account_id, snapshot.as_of, snapshot)
                )
        return _sort_by_severity(insights)

    def portfolio_insights(
        self,
        accounts: Sequence[AccountSummary],
        as_of: Optional[datetime] = None,
    ) -> list[Insight]:
        """Aggregate insights over account summaries. Empty input yields none."""
        if not accounts:
            return []
        ctx = PortfolioContext(accounts=accounts, thresholds=self._portfolio_thresholds)

        insights: list[Insight] = []
        for rule in PORTFOLIO_INSIGHT_RULES:
            try:
                result = rule.check(ctx)
            except Exception as exc:
                logger.warning(
                    "portfolio_rule_skipped",
                    rule=rule.key,
                    accounts=len(accounts),
                    error=str(exc),
                )
                continue
            if result is not None:
                insights.append(_build(rule, result, PORTFOLIO_SCOPE, as_of))

        logger.info("portfolio_insights_generated", accounts=len(accounts), count=len(insights))
        return _sort_by_severity(insights)


_default_engine = InsightEngine()


def generate_account_insights(
    snapshot: AccountSnapshot, health: AccountHealth | None = None
) -> list[Insight]:
    return _default_engine.account_insights(snapshot, health)


def generate_portfolio_insights(
    accounts: Sequence[AccountSummary], as_of: Optional[datetime] = None
) -> list[Insight]:
    return _default_engine.portfolio_insights(accounts, as_of)


# -- Helpers ------------------------------------------------------------------


def filter_insights(insights: Sequence[Insight], insight_type: str = "all") -> list[Insight]:
    """Keep insights of one type; ``"all"`` keeps everything."""
    if insight_type == "all":
        return list(insights)
    return [i for i in insights if i.type == insight_type]


def count_insights_by_severity(insights: Sequence[Insight]) -> dict[str, int]:
    counts = {"critical": 0, "warning": 0, "info": 0}
    for insight in insights:
        counts[insight.severity] += 1
    return counts


def top_insights(insights: Sequence[Insight], limit: int = 5) -> list[Insight]:
    """The ``limit`` most severe insights, preserving order within a severity."""
    return _sort_by_severity(insights)[:limit]


__all__ = [
    "InsightResult",
    "InsightRule",
    "ACCOUNT_INSIGHT_RULES",
    "PORTFOLIO_INSIGHT_RULES",
    "InsightEngine",
    "insight_id",
    "generate_account_insights",
    "generate_portfolio_insights",
    "filter_insights",
    "count_insights_by_severity",
    "top_insights",
]
