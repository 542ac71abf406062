"""Pydantic data models for the account health, alert, and insight engine.

Defines the account snapshot consumed by every engine (usage, commercial,
support, and relationship signals), the computed outputs (health score,
alerts, insights, churn prediction), and the lightweight portfolio summary
and forecast types. All outputs are value objects computed fresh from a
snapshot; nothing here holds a reference back to its source account beyond
an id used for display and linking.

Unknown enum values on input never raise: ``mode="before"`` validators map
them to ``"unknown"`` (or ``"other"`` for stakeholder roles) so a sparse or
slightly-off upstream payload still produces a best-effort result. Nulls
in count, list, and nested-metric fields fall back to the field default
for the same reason; only fields declared ``Optional`` keep ``None`` to
mean "not tracked".
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal, Optional, get_args

from pydantic import (
    BaseModel,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)


# -- Enumerations -------------------------------------------------------------

AccountSegment = Literal["enterprise", "mid-market", "smb", "startup", "unknown"]
LifecycleStage = Literal[
    "prospect",
    "onboarding",
    "adoption",
    "growth",
    "mature",
    "renewal",
    "churned",
    "unknown",
]
OnboardingStatus = Literal[
    "not_started", "in_progress", "stalled", "completed", "unknown"
]
DeploymentStage = Literal["signed", "deployed", "training", "live", "unknown"]
PaymentStatus = Literal["current", "overdue", "at_risk", "churned", "unknown"]
ExpansionPotential = Literal["high", "medium", "low", "none", "unknown"]
StakeholderRole = Literal[
    "champion",
    "economic_buyer",
    "decision_maker",
    "admin",
    "power_user",
    "end_user",
    "executive_sponsor",
    "influencer",
    "other",
]
Influence = Literal["high", "medium", "low", "unknown"]

HealthGrade = Literal["A", "B", "C", "D", "F"]
HealthTrend = Literal["improving", "stable", "declining"]
DataFreshness = Literal["fresh", "stale", "outdated", "missing"]
ComponentName = Literal[
    "adoption", "engagement", "relationship", "support", "commercial"
]
Impact = Literal["positive", "neutral", "negative"]

AlertType = Literal[
    "churn_risk",
    "low_engagement",
    "onboarding_stalled",
    "expansion_opportunity",
    "renewal_approaching",
    "health_drop",
    "usage_decline",
    "champion_left",
    "support_escalation",
    "payment_overdue",
]
AlertCategory = Literal["risk", "opportunity", "action_required"]
AlertSeverity = Literal["critical", "high", "medium", "low"]
AlertStatus = Literal["open", "acknowledged", "in_progress", "resolved", "snoozed"]
SLAStatus = Literal["on_track", "at_risk", "none"]

InsightType = Literal["trend", "anomaly", "prediction", "recommendation", "benchmark"]
InsightSeverity = Literal["info", "warning", "critical"]
InsightCategory = Literal["usage", "health", "commercial", "engagement", "risk"]

ChurnRiskLevel = Literal["low", "medium", "high", "critical"]


def _coerce_enum(value: Any, literal: Any, default: str = "unknown") -> Any:
    """Map values outside a Literal's members to a safe default."""
    if value is None:
        return default
    return value if value in get_args(literal) else default


def _utc(value: Any) -> Any:
    """Attach UTC to naive datetimes so date arithmetic never mixes kinds."""
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _default_if_none(cls: type[BaseModel], value: Any, info: ValidationInfo) -> Any:
    """Replace an upstream null with the field's declared default."""
    if value is None:
        return cls.model_fields[info.field_name].get_default(call_default_factory=True)
    return value


# -- Snapshot Inputs ----------------------------------------------------------


class ActivityDataPoint(BaseModel):
    """One period (usually a week) of product activity.

    Attributes:
        date: ISO date or week label for the period.
        items: Items created in the period.
        kanban_cards: Kanban cards created in the period.
        orders: Orders placed in the period.
        active_users: Distinct users active in the period.
    """

    date: str = ""
    items: int = Field(ge=0, default=0)
    kanban_cards: int = Field(ge=0, default=0)
    orders: int = Field(ge=0, default=0)
    active_users: int = Field(ge=0, default=0)

    @field_validator("date", "items", "kanban_cards", "orders", "active_users", mode="before")
    @classmethod
    def _null_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        return _default_if_none(cls, value, info)

    @property
    def total(self) -> int:
        return self.items + self.kanban_cards + self.orders


class UsageMetrics(BaseModel):
    """Product usage signals for an account.

    Attributes:
        item_count: Items created to date.
        kanban_card_count: Kanban cards created to date.
        order_count: Orders placed to date.
        total_users: Users provisioned on the account.
        active_users_last_7_days: Users active in the trailing week.
        active_users_last_30_days: Users active in the trailing 30 days.
        days_since_last_activity: Calendar days since any product activity.
            None when the usage store has no activity timestamp.
        feature_adoption: Per-feature adoption percentage (0-100), keyed by
            feature name (e.g. ``items``, ``kanban``, ``ordering``).
        activity_timeline: Ordered (oldest first) weekly activity points.
    """

    item_count: int = Field(ge=0, default=0)
    kanban_card_count: int = Field(ge=0, default=0)
    order_count: int = Field(ge=0, default=0)
    total_users: int = Field(ge=0, default=0)
    active_users_last_7_days: int = Field(ge=0, default=0)
    active_users_last_30_days: int = Field(ge=0, default=0)
    days_since_last_activity: Optional[int] = Field(default=None, ge=0)
    feature_adoption: dict[str, float] = Field(default_factory=dict)
    activity_timeline: list[ActivityDataPoint] = Field(default_factory=list)

    @field_validator(
        "item_count",
        "kanban_card_count",
        "order_count",
        "total_users",
        "active_users_last_7_days",
        "active_users_last_30_days",
        "feature_adoption",
        "activity_timeline",
        mode="before",
    )
    @classmethod
    def _null_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        return _default_if_none(cls, value, info)

    @property
    def total_activity(self) -> int:
        return self.item_count + self.kanban_card_count + self.order_count

    @property
    def timeline_totals(self) -> list[float]:
        return [float(point.total) for point in self.activity_timeline]

    @property
    def average_feature_adoption(self) -> Optional[float]:
        """Mean adoption percentage across features, None without data."""
        if not self.feature_adoption:
            return None
        values = list(self.feature_adoption.values())
        return sum(values) / len(values)


class CommercialMetrics(BaseModel):
    """Billing and contract signals for an account.

    Attributes:
        plan: Plan name from the billing provider.
        arr: Annual recurring revenue.
        mrr: Monthly recurring revenue.
        payment_status: Current payment standing.
        overdue_amount: Outstanding overdue balance.
        last_payment_date: ISO date of the last successful payment.
        renewal_date: ISO date of the next contract renewal.
        days_to_renewal: Calendar days until renewal.
        seat_limit: Purchased seats.
        seat_usage: Seats in use.
        expansion_potential: CRM-assessed expansion potential.
    """

    plan: Optional[str] = None
    arr: Optional[float] = Field(default=None, ge=0.0)
    mrr: Optional[float] = Field(default=None, ge=0.0)
    payment_status: PaymentStatus = "unknown"
    overdue_amount: Optional[float] = Field(default=None, ge=0.0)
    last_payment_date: Optional[str] = None
    renewal_date: Optional[str] = None
    days_to_renewal: Optional[int] = None
    seat_limit: Optional[int] = Field(default=None, ge=0)
    seat_usage: Optional[int] = Field(default=None, ge=0)
    expansion_potential: ExpansionPotential = "unknown"

    @field_validator("payment_status", mode="before")
    @classmethod
    def _coerce_payment_status(cls, value: Any) -> Any:
        return _coerce_enum(value, PaymentStatus)

    @field_validator("expansion_potential", mode="before")
    @classmethod
    def _coerce_expansion_potential(cls, value: Any) -> Any:
        return _coerce_enum(value, ExpansionPotential)

    @property
    def seat_utilization(self) -> Optional[float]:
        """Seat usage as a fraction of the limit, None when not computable."""
        if not self.seat_limit or self.seat_usage is None:
            return None
        return self.seat_usage / self.seat_limit


class SupportMetrics(BaseModel):
    """Support desk signals for an account.

    Attributes:
        open_tickets: Currently open tickets, None when not tracked.
        critical_tickets: Open tickets at critical priority.
        tickets_last_30_days: Tickets opened in the trailing 30 days.
        escalation_count: Escalations in the trailing 90 days.
        csat: Customer satisfaction (0-100), if surveyed.
    """

    open_tickets: Optional[int] = Field(default=None, ge=0)
    critical_tickets: Optional[int] = Field(default=None, ge=0)
    tickets_last_30_days: int = Field(ge=0, default=0)
    escalation_count: int = Field(ge=0, default=0)
    csat: Optional[float] = Field(default=None, ge=0.0, le=100.0)

    @field_validator("tickets_last_30_days", "escalation_count", mode="before")
    @classmethod
    def _null_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        return _default_if_none(cls, value, info)


class Stakeholder(BaseModel):
    """A customer-side contact and their role in the relationship."""

    name: str
    email: Optional[str] = None
    title: Optional[str] = None
    role: StakeholderRole = "other"
    influence: Influence = "unknown"
    is_primary: bool = False
    has_left: bool = False

    @field_validator("role", mode="before")
    @classmethod
    def _coerce_role(cls, value: Any) -> Any:
        return _coerce_enum(value, StakeholderRole, default="other")

    @field_validator("influence", mode="before")
    @classmethod
    def _coerce_influence(cls, value: Any) -> Any:
        return _coerce_enum(value, Influence)


class PreviousHealth(BaseModel):
    """The prior health calculation used for trend and score change.

    ``components`` holds prior per-component scores when the caller kept
    them; a component without a prior score reports a stable trend.
    """

    score: int = Field(ge=0, le=100)
    components: dict[ComponentName, float] = Field(default_factory=dict)
    calculated_at: Optional[datetime] = None


class AccountSnapshot(BaseModel):
    """Point-in-time bundle of one customer's usage, billing and CRM data.

    Supplied by the external data-fetch layer; every numeric and date field
    is treated as already parsed. ``as_of`` is the reference time for all
    derived ages and output timestamps, which keeps every engine a pure
    function of the snapshot.

    Attributes:
        account_id: Stable account identifier.
        account_name: Display name.
        segment: Customer segment, selects health weight overrides.
        tier: Commercial tier label.
        owner_name: Assigned account manager.
        lifecycle_stage: Coarse customer journey phase.
        onboarding_status: Onboarding progress.
        stage: Deployment stage (signed, deployed, training, live).
        created_at: Account creation time.
        as_of: Reference time of the snapshot.
        usage: Product usage signals.
        commercial: Billing and contract signals.
        support: Support desk signals, None when not integrated.
        stakeholders: Known customer-side contacts.
        days_since_last_cs_contact: Days since the last CS touch.
        interactions_last_30_days: CS interactions in the trailing 30 days.
        has_champion: Explicit champion flag when no stakeholder list exists.
        previous_health: Last health calculation, if any.
    """

    account_id: str
    account_name: str = ""
    segment: AccountSegment = "unknown"
    tier: Optional[str] = None
    owner_name: Optional[str] = None
    lifecycle_stage: LifecycleStage = "unknown"
    onboarding_status: OnboardingStatus = "unknown"
    stage: DeploymentStage = "unknown"
    created_at: Optional[datetime] = None
    as_of: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    usage: UsageMetrics = Field(default_factory=UsageMetrics)
    commercial: CommercialMetrics = Field(default_factory=CommercialMetrics)
    support: Optional[SupportMetrics] = None
    stakeholders: list[Stakeholder] = Field(default_factory=list)
    days_since_last_cs_contact: Optional[int] = Field(default=None, ge=0)
    interactions_last_30_days: Optional[int] = Field(default=None, ge=0)
    has_champion: Optional[bool] = None
    previous_health: Optional[PreviousHealth] = None

    @field_validator("segment", mode="before")
    @classmethod
    def _coerce_segment(cls, value: Any) -> Any:
        return _coerce_enum(value, AccountSegment)

    @field_validator("lifecycle_stage", mode="before")
    @classmethod
    def _coerce_lifecycle_stage(cls, value: Any) -> Any:
        return _coerce_enum(value, LifecycleStage)

    @field_validator("onboarding_status", mode="before")
    @classmethod
    def _coerce_onboarding_status(cls, value: Any) -> Any:
        return _coerce_enum(value, OnboardingStatus)

    @field_validator("stage", mode="before")
    @classmethod
    def _coerce_stage(cls, value: Any) -> Any:
        return _coerce_enum(value, DeploymentStage)

    @field_validator("account_name", "usage", "commercial", "stakeholders", mode="before")
    @classmethod
    def _null_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        return _default_if_none(cls, value, info)

    @field_validator("created_at", "as_of", mode="after")
    @classmethod
    def _ensure_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _utc(value)

    @property
    def display_name(self) -> str:
        return self.account_name or self.account_id

    @property
    def account_age_days(self) -> Optional[int]:
        """Whole days between creation and ``as_of``, None when unknown."""
        if self.created_at is None:
            return None
        return max(0, (self.as_of - self.created_at).days)

    @property
    def champion_present(self) -> Optional[bool]:
        """Whether an active champion is known, from stakeholders or the flag."""
        if self.stakeholders:
            return any(
                s.role == "champion" and not s.has_left for s in self.stakeholders
            )
        return self.has_champion


# -- Health -------------------------------------------------------------------


class HealthFactor(BaseModel):
    """One explainable contribution to a health component score."""

    name: str
    value: Any = None
    impact: Impact = "neutral"
    points: float = 0.0
    explanation: str = ""


class HealthComponent(BaseModel):
    """A single scored dimension of account health.

    Attributes:
        score: Component score (0-100).
        weight: Weight of this component in the composite (0-1).
        weighted_score: ``score * weight``; components sum to the composite.
        trend: Direction of change for the component.
        factors: Explainable contributions to the score.
        data_points: Number of real (non-placeholder) signals scored.
        last_updated: Reference time of the underlying data.
    """

    score: float = Field(ge=0.0, le=100.0)
    weight: float = Field(ge=0.0, le=1.0, default=0.0)
    weighted_score: float = 0.0
    trend: HealthTrend = "stable"
    factors: list[HealthFactor] = Field(default_factory=list)
    data_points: int = Field(ge=0, default=0)
    last_updated: Optional[datetime] = None


class AccountHealth(BaseModel):
    """Composite health score with letter grade and explainability.

    The ``trend`` must agree in sign with ``score_change``: a declining
    trend implies a negative change and an improving trend a positive one.
    Construction with a contradicting pair fails validation.

    Attributes:
        account_id: Account this health score belongs to.
        score: Composite health score (0-100), rounded sum of weighted scores.
        grade: Letter grade bucketed from ``score``.
        trend: Direction of change versus the previous calculation.
        score_change: Delta versus the previous calculation (0 without one).
        previous_score: The previous composite score, if known.
        change_reason: Human-readable explanation of the change.
        components: The five scored components keyed by name.
        confidence: Data-sufficiency estimate (0-100).
        data_freshness: Recency class of the underlying activity data.
        calculated_at: Reference time of the calculation.
    """

    account_id: str
    score: int = Field(ge=0, le=100)
    grade: HealthGrade
    trend: HealthTrend = "stable"
    score_change: int = 0
    previous_score: Optional[int] = None
    change_reason: str = ""
    components: dict[ComponentName, HealthComponent] = Field(default_factory=dict)
    confidence: int = Field(ge=0, le=100, default=0)
    data_freshness: DataFreshness = "missing"
    calculated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _check_trend_sign(self) -> AccountHealth:
        """Reject a trend that contradicts the sign of score_change."""
        if self.trend == "declining" and self.score_change >= 0:
            raise ValueError("declining trend requires a negative score_change")
        if self.trend == "improving" and self.score_change <= 0:
            raise ValueError("improving trend requires a positive score_change")
        return self


# -- Alerts -------------------------------------------------------------------


class Alert(BaseModel):
    """A rule-triggered, actionable flag for an account manager.

    Alerts are regenerated on every evaluation. The ``id`` is derived from
    the account and alert type, so acknowledgement or snooze state kept by
    an outside store can be looked up across re-evaluations.

    Attributes:
        id: Deterministic identifier for (account, alert type).
        account_id: Account the alert belongs to.
        type: Rule that produced the alert.
        category: Risk, opportunity, or required action.
        severity: Severity of the alert.
        title: Short headline.
        description: Narrative description.
        evidence: Ordered literal values that caused the trigger.
        suggested_action: Fixed recommended next step for the rule.
        playbook: Playbook identifier to apply, if any.
        sla_hours: Response SLA in hours, if the rule carries one.
        sla_deadline: ``created_at + sla_hours``.
        sla_status: SLA tracking status.
        status: Lifecycle status, mutated downstream only.
        arr_at_risk: ARR exposed by a risk-category alert.
        created_at: Reference time of the evaluation.
    """

    id: str
    account_id: str
    type: AlertType
    category: AlertCategory
    severity: AlertSeverity
    title: str
    description: str
    evidence: list[str] = Field(default_factory=list)
    suggested_action: str
    playbook: Optional[str] = None
    sla_hours: Optional[int] = None
    sla_deadline: Optional[datetime] = None
    sla_status: SLAStatus = "none"
    status: AlertStatus = "open"
    arr_at_risk: Optional[float] = None
    created_at: Optional[datetime] = None


# -- Insights -----------------------------------------------------------------


class Insight(BaseModel):
    """A narrative observation derived from account or portfolio data.

    Account-level insights carry ``account_id``; portfolio-level insights
    leave it unset and list the accounts behind them in
    ``related_account_ids``.
    """

    id: str
    type: InsightType
    severity: InsightSeverity
    title: str
    description: str
    evidence: list[str] = Field(default_factory=list)
    suggested_action: Optional[str] = None
    confidence: int = Field(ge=0, le=100)
    category: Optional[InsightCategory] = None
    account_id: Optional[str] = None
    account_name: Optional[str] = None
    related_account_ids: list[str] = Field(default_factory=list)
    metric: Optional[str] = None
    value: Optional[float] = None
    previous_value: Optional[float] = None
    change_percent: Optional[float] = None
    created_at: Optional[datetime] = None


# -- Churn --------------------------------------------------------------------


class ChurnFactor(BaseModel):
    """A signal that contributed to (or offset) churn probability.

    Attributes:
        name: Signal name (e.g. "Inactive Account").
        impact: Whether the signal raises (negative) or lowers risk.
        weight: Contribution to probability as a fraction (0-1).
        description: Human-readable explanation.
        value: Literal value of the signal.
    """

    name: str
    impact: Impact
    weight: float = Field(ge=0.0, le=1.0, default=0.0)
    description: str = ""
    value: Optional[str] = None


class ChurnPrediction(BaseModel):
    """Churn probability with contributing factors and recommended actions."""

    account_id: str
    account_name: str = ""
    probability: int = Field(ge=0, le=100)
    risk_level: ChurnRiskLevel
    factors: list[ChurnFactor] = Field(default_factory=list)
    recommended_actions: list[str] = Field(default_factory=list)
    arr_at_risk: Optional[float] = None
    calculated_at: Optional[datetime] = None


# -- Portfolio ----------------------------------------------------------------


class AccountSummary(BaseModel):
    """Lightweight account summary for portfolio views and insights.

    Attributes:
        id: Account identifier.
        name: Display name.
        health_score: Composite health score.
        health_grade: Letter grade.
        health_trend: Trend versus the previous calculation.
        active_users: Users active in the trailing 30 days.
        days_since_last_activity: Days since any product activity, None when unknown.
        arr: Annual recurring revenue, if known.
        days_to_renewal: Days until renewal, if known.
        alert_count: Open alerts on the account.
        critical_alert_count: Open critical alerts on the account.
        activity_trend: Weekly activity totals, oldest first.
    """

    id: str
    name: str = ""
    segment: AccountSegment = "unknown"
    tier: Optional[str] = None
    owner_name: Optional[str] = None
    health_score: int = Field(ge=0, le=100)
    health_grade: HealthGrade = "F"
    health_trend: Literal["improving", "stable", "declining", "unknown"] = "unknown"
    active_users: int = Field(ge=0, default=0)
    days_since_last_activity: Optional[int] = Field(default=None, ge=0)
    item_count: Optional[int] = None
    kanban_card_count: Optional[int] = None
    order_count: Optional[int] = None
    account_age_days: Optional[int] = None
    lifecycle_stage: LifecycleStage = "unknown"
    onboarding_status: OnboardingStatus = "unknown"
    arr: Optional[float] = None
    days_to_renewal: Optional[int] = None
    alert_count: int = Field(ge=0, default=0)
    critical_alert_count: int = Field(ge=0, default=0)
    activity_trend: list[float] = Field(default_factory=list)

    @field_validator("segment", mode="before")
    @classmethod
    def _coerce_segment(cls, value: Any) -> Any:
        return _coerce_enum(value, AccountSegment)

    @field_validator("lifecycle_stage", mode="before")
    @classmethod
    def _coerce_lifecycle_stage(cls, value: Any) -> Any:
        return _coerce_enum(value, LifecycleStage)

    @field_validator("onboarding_status", mode="before")
    @classmethod
    def _coerce_onboarding_status(cls, value: Any) -> Any:
        return _coerce_enum(value, OnboardingStatus)


class AccountEvaluation(BaseModel):
    """Everything the pipeline derives for one account snapshot."""

    account_id: str
    health: AccountHealth
    alerts: list[Alert] = Field(default_factory=list)
    insights: list[Insight] = Field(default_factory=list)
    churn: ChurnPrediction
    summary: AccountSummary


class RevenueForecast(BaseModel):
    """Projected ARR movement for one forecast month."""

    month: str
    predicted_arr: float
    at_risk_arr: float
    expansion_arr: float
    renewal_arr: float
    churned_arr: float
    net_change: float
    confidence: int = Field(ge=0, le=100)


class PortfolioForecast(BaseModel):
    """Portfolio-wide forecast summary."""

    current_arr: float
    forecasts: list[RevenueForecast] = Field(default_factory=list)
    total_at_risk: float = 0.0
    total_expansion_opportunity: float = 0.0
    projected_net_change: float = 0.0
    confidence: int = Field(ge=0, le=100, default=0)


__all__ = [
    "ActivityDataPoint",
    "UsageMetrics",
    "CommercialMetrics",
    "SupportMetrics",
    "Stakeholder",
    "PreviousHealth",
    "AccountSnapshot",
    "HealthFactor",
    "HealthComponent",
    "AccountHealth",
    "Alert",
    "Insight",
    "ChurnFactor",
    "ChurnPrediction",
    "AccountSummary",
    "AccountEvaluation",
    "RevenueForecast",
    "PortfolioForecast",
]
