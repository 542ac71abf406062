"""Rule-based alert generation for account managers.

Evaluates an ordered battery of independent alert rules against an account
snapshot and its health score. Every rule is a ``(type, category, check)``
entry in ``ALERT_RULES``; ``check`` returns an ``AlertResult`` when the rule
triggers or ``None`` otherwise. A rule that raises is logged and treated as
not triggered so one malformed field never aborts the whole battery.

Output order is the rule evaluation order. Use ``sort_alerts`` for a
severity-ranked view.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Mapping, Optional, Sequence

import structlog

from src.account360.scoring.constants import (
    ALERT_ID_NAMESPACE,
    ALERT_THRESHOLDS,
    SEVERITY_RANK,
)
from src.account360.scoring.health_scorer import score_health
from src.account360.scoring.schemas import (
    AccountHealth,
    AccountSnapshot,
    Alert,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AlertResult:
    """What a triggered rule contributes to its Alert."""

    severity: str
    title: str
    description: str
    evidence: list[str]
    suggested_action: str
    playbook: Optional[str] = None
    sla_hours: Optional[int] = None


@dataclass(frozen=True)
class RuleContext:
    """Inputs shared by every rule in one evaluation."""

    snapshot: AccountSnapshot
    health: AccountHealth
    thresholds: Mapping[str, float] = field(default_factory=lambda: ALERT_THRESHOLDS)

    @property
    def name(self) -> str:
        return self.snapshot.display_name


@dataclass(frozen=True)
class AlertRule:
    type: str
    category: str
    check: Callable[[RuleContext], Optional[AlertResult]]


def alert_id(account_id: str, alert_type: str) -> str:
    """Deterministic alert id for an (account, alert type) pair."""
    return str(uuid.uuid5(ALERT_ID_NAMESPACE, f"{account_id}:{alert_type}"))


def _money(amount: float) -> str:
    return f"${amount:,.0f}"


# -- Rules --------------------------------------------------------------------


def _check_churn_risk(ctx: RuleContext) -> Optional[AlertResult]:
    days = ctx.snapshot.usage.days_since_last_activity
    if days is None:
        return None
    t = ctx.thresholds
    usage = ctx.snapshot.usage

    if days >= t["inactivity_critical_days"]:
        return AlertResult(
            severity="critical",
            title=f"High churn risk - No activity for {int(t['inactivity_critical_days'])}+ days",
            description=(
                f"{ctx.name} has had no product activity for {days} days. "
                "This is a strong indicator of potential churn."
            ),
            evidence=[
                f"{days} days since last activity",
                f"Monthly active users: {usage.active_users_last_30_days}",
                f"Health score: {ctx.health.score}",
            ],
            suggested_action="Immediately reach out to understand blockers and re-engage the customer",
            playbook="churn-intervention",
            sla_hours=24,
        )
    if days >= t["inactivity_high_days"]:
        return AlertResult(
            severity="high",
            title=f"Churn risk - No activity for {int(t['inactivity_high_days'])}+ days",
            description=f"{ctx.name} has had no product activity for {days} days.",
            evidence=[
                f"{days} days since last activity",
                f"Weekly active users: {usage.active_users_last_7_days}",
            ],
            suggested_action="Schedule a check-in call to understand if there are any issues",
            playbook="reengagement",
            sla_hours=48,
        )
    return None


def _check_health_drop(ctx: RuleContext) -> Optional[AlertResult]:
    t = ctx.thresholds
    health = ctx.health
    if health.score >= t["health_high_below"]:
        return None

    weak_components = [
        f"{name}: {round(component.score)}/100"
        for name, component in health.components.items()
        if component.score < 50
    ]
    evidence = [f"Health score: {health.score} (grade {health.grade})"]
    if health.previous_score is not None:
        evidence.append(f"Score change: {health.previous_score} -> {health.score}")
    evidence.extend(weak_components)

    if health.score < t["health_critical_below"]:
        return AlertResult(
            severity="critical",
            title="Critical health score",
            description=f"{ctx.name}'s health score is {health.score}, in the critical range.",
            evidence=evidence,
            suggested_action="Review account activity and reach out to understand what changed",
            playbook="health-recovery",
            sla_hours=24,
        )
    return AlertResult(
        severity="high",
        title="Low health score",
        description=f"{ctx.name}'s health score is {health.score}.",
        evidence=evidence,
        suggested_action="Review account activity and reach out to understand what changed",
        playbook="health-recovery",
        sla_hours=72,
    )


def _check_onboarding_stalled(ctx: RuleContext) -> Optional[AlertResult]:
    age = ctx.snapshot.account_age_days
    if age is None:
        return None
    t = ctx.thresholds
    items = ctx.snapshot.usage.item_count
    stage = ctx.snapshot.stage
    if age <= t["onboarding_min_age_days"] or items >= t["onboarding_min_items"]:
        return None
    if stage == "live":
        return None

    severity = "high" if age > t["onboarding_high_age_days"] else "medium"
    return AlertResult(
        severity=severity,
        title="Onboarding stalled - No item setup",
        description=f"{ctx.name} signed up {age} days ago but has only {items} items.",
        evidence=[
            f"Account age: {age} days",
            f"Items created: {items}",
            f"Deployment stage: {stage}",
            f"Expected: {int(t['onboarding_min_items'])}+ items",
        ],
        suggested_action="Offer hands-on onboarding assistance or data import help",
        playbook="onboarding-assist",
        sla_hours=24 if severity == "high" else 72,
    )


def _check_low_engagement(ctx: RuleContext) -> Optional[AlertResult]:
    age = ctx.snapshot.account_age_days
    days = ctx.snapshot.usage.days_since_last_activity
    if age is None or days is None:
        return None
    t = ctx.thresholds
    activity = ctx.snapshot.usage.total_activity
    if (
        age > t["low_engagement_min_age_days"]
        and activity < t["low_engagement_max_activity"]
        and days >= t["low_engagement_min_inactive_days"]
    ):
        return AlertResult(
            severity="medium",
            title="Low engagement",
            description=(
                f"{ctx.name} has been a customer for {age} days "
                f"with only {activity} total actions."
            ),
            evidence=[
                f"Account age: {age} days",
                f"Total activity: {activity}",
                f"Days since activity: {days}",
            ],
            suggested_action="Consider offering training or identifying champions to drive adoption",
            playbook="user-activation",
            sla_hours=168,
        )
    return None


def _check_expansion_opportunity(ctx: RuleContext) -> Optional[AlertResult]:
    usage = ctx.snapshot.usage
    days = usage.days_since_last_activity
    if days is None:
        return None
    t = ctx.thresholds
    activity = usage.total_activity
    active_users = usage.active_users_last_30_days
    if (
        activity > t["expansion_min_activity"]
        and active_users >= t["expansion_min_active_users"]
        and days < t["expansion_max_inactive_days"]
    ):
        return AlertResult(
            severity="low",
            title="Potential expansion opportunity",
            description=(
                f"{ctx.name} is showing good adoption that may indicate expansion readiness."
            ),
            evidence=[
                f"Total activity: {activity}",
                f"Monthly active users: {active_users}",
                f"Days since activity: {days}",
            ],
            suggested_action="Schedule success review and explore expansion opportunities",
            playbook="expansion",
        )
    return None


def _check_payment_overdue(ctx: RuleContext) -> Optional[AlertResult]:
    commercial = ctx.snapshot.commercial
    t = ctx.thresholds
    status = commercial.payment_status
    amount = commercial.overdue_amount or 0.0
    if status not in ("overdue", "at_risk") and amount <= 0:
        return None

    arr = commercial.arr or 0.0
    critical = amount >= t["payment_critical_amount"] or (
        status == "overdue" and arr >= t["payment_high_value_arr"]
    )
    evidence = [f"Payment status: {status}"]
    if amount > 0:
        evidence.append(f"Overdue amount: {_money(amount)}")
    if commercial.arr:
        evidence.append(f"ARR: {_money(commercial.arr)}")
    if commercial.last_payment_date:
        evidence.append(f"Last payment: {commercial.last_payment_date}")

    title = f"Payment overdue - {_money(amount)}" if amount > 0 else "Payment at risk"
    description = f"{ctx.name}'s payment status is {status}."
    if critical:
        description += " This is a high-value account requiring immediate attention."
    return AlertResult(
        severity="critical" if critical else "high",
        title=title,
        description=description,
        evidence=evidence,
        suggested_action="Coordinate with finance team and reach out to understand payment situation",
        playbook="payment-recovery",
        sla_hours=24 if critical else 48,
    )


def _check_renewal_approaching(ctx: RuleContext) -> Optional[AlertResult]:
    commercial = ctx.snapshot.commercial
    days = commercial.days_to_renewal
    if days is None:
        return None
    t = ctx.thresholds
    if days > t["renewal_medium_days"]:
        return None

    evidence = [f"Days remaining: {days}"]
    if commercial.renewal_date:
        evidence.insert(0, f"Renewal date: {commercial.renewal_date}")

    if days <= t["renewal_high_days"]:
        health_risk = ctx.health.score < t["renewal_health_risk_below"]
        evidence.append(f"Health score: {ctx.health.score}")
        if commercial.arr:
            evidence.append(f"ARR: {_money(commercial.arr)}")
        return AlertResult(
            severity="critical" if health_risk else "high",
            title=f"Renewal in {days} days" + (" - At risk" if health_risk else ""),
            description=(
                f"{ctx.name}'s contract renews in {days} days."
                + (" Health score is low, indicating potential churn risk." if health_risk else "")
            ),
            evidence=evidence,
            suggested_action=(
                "Urgent: Begin renewal conversation and address health concerns"
                if health_risk
                else "Initiate renewal discussion and confirm expansion opportunities"
            ),
            playbook="renewal",
            sla_hours=24,
        )
    return AlertResult(
        severity="medium",
        title=f"Renewal in {days} days",
        description=(
            f"{ctx.name}'s contract renews in {days} days. "
            "Start planning renewal conversation."
        ),
        evidence=evidence,
        suggested_action="Schedule renewal planning call and gather success metrics",
        playbook="renewal-prep",
        sla_hours=168,
    )


def _check_support_escalation(ctx: RuleContext) -> Optional[AlertResult]:
    support = ctx.snapshot.support
    if support is None:
        return None
    critical = support.critical_tickets or 0
    open_tickets = support.open_tickets or 0

    if critical > 0:
        evidence = [f"Critical tickets: {critical}", f"Total open tickets: {open_tickets}"]
        if support.escalation_count > 0:
            evidence.append(f"Escalations: {support.escalation_count}")
        return AlertResult(
            severity="critical",
            title=f"{critical} critical support ticket(s)",
            description=(
                f"{ctx.name} has {critical} critical support issue(s) "
                "that require immediate attention."
            ),
            evidence=evidence,
            suggested_action="Coordinate with support team and proactively reach out to customer",
            playbook="support-escalation",
            sla_hours=4,
        )
    if open_tickets >= ctx.thresholds["support_high_open_tickets"]:
        return AlertResult(
            severity="high",
            title="High support ticket volume",
            description=f"{ctx.name} has {open_tickets} open support tickets.",
            evidence=[
                f"Open tickets: {open_tickets}",
                f"Tickets last 30 days: {support.tickets_last_30_days}",
            ],
            suggested_action="Review ticket patterns and reach out to understand systematic issues",
            playbook="support-review",
            sla_hours=24,
        )
    return None


def _check_usage_decline(ctx: RuleContext) -> Optional[AlertResult]:
    totals = ctx.snapshot.usage.timeline_totals
    recent = totals[-4:]
    older = totals[-8:-4]
    if len(totals) < 4 or not older:
        return None

    t = ctx.thresholds
    recent_avg = sum(recent) / len(recent)
    older_avg = sum(older) / len(older)
    if older_avg <= t["usage_decline_min_baseline"]:
        return None
    if recent_avg >= older_avg * t["usage_decline_ratio"]:
        return None

    decline = round((1 - recent_avg / older_avg) * 100)
    return AlertResult(
        severity="high",
        title=f"Usage declined {decline}%",
        description=f"{ctx.name}'s activity has dropped significantly over the past month.",
        evidence=[
            f"Recent weekly average: {recent_avg:.1f} actions",
            f"Previous weekly average: {older_avg:.1f} actions",
            f"Decline: {decline}%",
        ],
        suggested_action="Investigate cause of decline and reach out to re-engage",
        playbook="usage-recovery",
        sla_hours=48,
    )


def _check_champion_left(ctx: RuleContext) -> Optional[AlertResult]:
    snapshot = ctx.snapshot
    departed = [
        s for s in snapshot.stakeholders if s.role == "champion" and s.has_left
    ]
    if departed and not snapshot.champion_present:
        return AlertResult(
            severity="high",
            title="Champion departed",
            description=f"{ctx.name}'s champion is no longer with the company.",
            evidence=[f"Departed champion: {s.name}" for s in departed],
            suggested_action="Verify key contacts are still at the company and identify new champion if needed",
            playbook="champion-recovery",
            sla_hours=48,
        )

    usage = snapshot.usage
    age = snapshot.account_age_days
    days = usage.days_since_last_activity
    if age is None or days is None:
        return None
    t = ctx.thresholds
    went_silent = (
        usage.active_users_last_30_days == 0
        and usage.total_users > t["champion_min_users"]
        and age > t["champion_min_age_days"]
    )
    if went_silent and days >= t["champion_min_inactive_days"]:
        return AlertResult(
            severity="high",
            title="Potential champion departure",
            description=(
                f"{ctx.name} was previously active but has gone silent. "
                "A key stakeholder may have left."
            ),
            evidence=[
                f"No active users in last 30 days (previously had {usage.total_users} users)",
                f"Days since last activity: {days}",
                "Recommend verifying stakeholder contacts",
            ],
            suggested_action="Verify key contacts are still at the company and identify new champion if needed",
            playbook="champion-recovery",
            sla_hours=48,
        )
    return None


ALERT_RULES: tuple[AlertRule, ...] = (
    AlertRule("churn_risk", "risk", _check_churn_risk),
    AlertRule("health_drop", "risk", _check_health_drop),
    AlertRule("onboarding_stalled", "action_required", _check_onboarding_stalled),
    AlertRule("low_engagement", "risk", _check_low_engagement),
    AlertRule("expansion_opportunity", "opportunity", _check_expansion_opportunity),
    AlertRule("payment_overdue", "action_required", _check_payment_overdue),
    AlertRule("renewal_approaching", "action_required", _check_renewal_approaching),
    AlertRule("support_escalation", "action_required", _check_support_escalation),
    AlertRule("usage_decline", "risk", _check_usage_decline),
    AlertRule("champion_left", "risk", _check_champion_left),
)


# -- Generation ---------------------------------------------------------------


class AlertGenerator:
    """Evaluate the alert rule battery against account snapshots.

    Args:
        thresholds: Partial overrides merged over ``ALERT_THRESHOLDS``.
        rules: Rule battery to evaluate, in order.
    """

    def __init__(
        self,
        *,
        thresholds: Optional[Mapping[str, float]] = None,
        rules: Sequence[AlertRule] = ALERT_RULES,
    ) -> None:
        merged = dict(ALERT_THRESHOLDS)
        if thresholds:
            unknown = set(thresholds) - set(ALERT_THRESHOLDS)
            if unknown:
                raise ValueError(f"unknown alert thresholds: {sorted(unknown)}")
            merged.update(thresholds)
        self._thresholds = merged
        self._rules = tuple(rules)

    def generate(
        self, snapshot: AccountSnapshot, health: AccountHealth | None = None
    ) -> list[Alert]:
        """Return every triggered alert in rule evaluation order."""
        if health is None:
            health = score_health(snapshot)
        ctx = RuleContext(snapshot=snapshot, health=health, thresholds=self._thresholds)

        alerts: list[Alert] = []
        for rule in self._rules:
            try:
                result = rule.check(ctx)
            except Exception as exc:
                logger.warning(
                    "alert_rule_skipped",
                    rule=rule.type,
                    account_id=snapshot.account_id,
                    error=str(exc),
                )
                continue
            if result is None:
                continue
            alerts.append(self._build(rule, result, snapshot))

        logger.debug(
            "alerts_generated",
            account_id=snapshot.account_id,
            count=len(alerts),
        )
        return alerts

    @staticmethod
    def _build(rule: AlertRule, result: AlertResult, snapshot: AccountSnapshot) -> Alert:
        created_at = snapshot.as_of
        return Alert(
            id=alert_id(snapshot.account_id, rule.type),
            account_id=snapshot.account_id,
            type=rule.type,
            category=rule.category,
            severity=result.severity,
            title=result.title,
            description=result.description,
            evidence=list(result.evidence),
            suggested_action=result.suggested_action,
            playbook=result.playbook,
            sla_hours=result.sla_hours,
            sla_deadline=(
                created_at + timedelta(hours=result.sla_hours)
                if result.sla_hours
                else None
            ),
            sla_status="on_track" if result.sla_hours else "none",
            arr_at_risk=snapshot.commercial.arr if rule.category == "risk" else None,
            created_at=created_at,
        )


_default_generator = AlertGenerator()


def generate_alerts(
    snapshot: AccountSnapshot, health: AccountHealth | None = None
) -> list[Alert]:
    """Evaluate the default rule battery against a snapshot."""
    return _default_generator.generate(snapshot, health)


def sort_alerts(alerts: Sequence[Alert]) -> list[Alert]:
    """Critical first, then by ARR at risk descending. Stable otherwise."""
    return sorted(
        alerts,
        key=lambda a: (SEVERITY_RANK[a.severity], -(a.arr_at_risk or 0.0)),
    )


def summarize_alerts(alerts: Sequence[Alert]) -> dict[str, int]:
    """Count alerts per severity, plus the total."""
    summary = {"total": len(alerts), "critical": 0, "high": 0, "medium": 0, "low": 0}
    for alert in alerts:
        summary[alert.severity] += 1
    return summary


__all__ = [
    "AlertResult",
    "AlertRule",
    "ALERT_RULES",
    "AlertGenerator",
    "alert_id",
    "generate_alerts",
    "sort_alerts",
    "summarize_alerts",
]
