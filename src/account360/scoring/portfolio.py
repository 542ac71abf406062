"""Pipeline composition and batch evaluation across a portfolio.

``evaluate_account`` runs the full pipeline for one snapshot (health first,
then alerts, insights, and churn against that health) and is the unit of
work. ``PortfolioEvaluator`` fans a batch of snapshots out to worker threads
with bounded concurrency; accounts are independent, so correctness never
depends on execution order, and results come back in input order.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Optional, Sequence

import structlog

from src.account360.config import get_settings
from src.account360.scoring.alerts import generate_alerts
from src.account360.scoring.churn import predict_churn_risk
from src.account360.scoring.insights import (
    generate_account_insights,
    generate_portfolio_insights,
)
from src.account360.scoring.health_scorer import score_health
from src.account360.scoring.schemas import (
    AccountEvaluation,
    AccountHealth,
    AccountSnapshot,
    AccountSummary,
    Alert,
    Insight,
)

logger = structlog.get_logger(__name__)

# Weeks of activity carried on a summary for sparklines and forecasts.
SUMMARY_TREND_WEEKS = 8


def summarize_account(
    snapshot: AccountSnapshot,
    health: AccountHealth,
    alerts: Sequence[Alert] = (),
) -> AccountSummary:
    """Condense a snapshot and its evaluation into a portfolio summary row."""
    usage = snapshot.usage
    open_alerts = [a for a in alerts if a.status == "open"]
    return AccountSummary(
        id=snapshot.account_id,
        name=snapshot.display_name,
        segment=snapshot.segment,
        tier=snapshot.tier,
        owner_name=snapshot.owner_name,
        health_score=health.score,
        health_grade=health.grade,
        health_trend=health.trend if snapshot.previous_health is not None else "unknown",
        active_users=usage.active_users_last_30_days,
        days_since_last_activity=usage.days_since_last_activity,
        item_count=usage.item_count,
        kanban_card_count=usage.kanban_card_count,
        order_count=usage.order_count,
        account_age_days=snapshot.account_age_days,
        lifecycle_stage=snapshot.lifecycle_stage,
        onboarding_status=snapshot.onboarding_status,
        arr=snapshot.commercial.arr,
        days_to_renewal=snapshot.commercial.days_to_renewal,
        alert_count=len(open_alerts),
        critical_alert_count=sum(1 for a in open_alerts if a.severity == "critical"),
        activity_trend=usage.timeline_totals[-SUMMARY_TREND_WEEKS:],
    )


def evaluate_account(snapshot: AccountSnapshot) -> AccountEvaluation:
    """Score, alert, explain, and predict churn for one account snapshot."""
    health = score_health(snapshot)
    alerts = generate_alerts(snapshot, health)
    insights = generate_account_insights(snapshot, health)
    churn = predict_churn_risk(snapshot, health)
    return AccountEvaluation(
        account_id=snapshot.account_id,
        health=health,
        alerts=alerts,
        insights=insights,
        churn=churn,
        summary=summarize_account(snapshot, health, alerts),
    )


class PortfolioEvaluator:
    """Evaluate many account snapshots concurrently.

    Each account runs in a worker thread via ``asyncio.to_thread``; an
    ``asyncio.Semaphore`` bounds how many run at once.

    Args:
        max_concurrency: Upper bound on accounts evaluated at once.
            Defaults to ``PORTFOLIO_MAX_CONCURRENCY`` from settings.
    """

    def __init__(self, *, max_concurrency: Optional[int] = None) -> None:
        if max_concurrency is None:
            max_concurrency = get_settings().PORTFOLIO_MAX_CONCURRENCY
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._max_concurrency = max_concurrency

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    async def evaluate(
        self, snapshots: Sequence[AccountSnapshot]
    ) -> list[AccountEvaluation]:
        """Evaluate every snapshot; results are in input order."""
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _run(snapshot: AccountSnapshot) -> AccountEvaluation:
            async with semaphore:
                return await asyncio.to_thread(evaluate_account, snapshot)

        results = await asyncio.gather(*(_run(s) for s in snapshots))
        logger.info(
            "portfolio_evaluated",
            accounts=len(results),
            max_concurrency=self._max_concurrency,
        )
        return list(results)

    async def portfolio_insights(
        self,
        snapshots: Sequence[AccountSnapshot],
        as_of: Optional[datetime] = None,
    ) -> tuple[list[AccountEvaluation], list[Insight]]:
        """Evaluate the batch, then derive portfolio insights from its summaries."""
        evaluations = await self.evaluate(snapshots)
        if as_of is None and snapshots:
            as_of = max(s.as_of for s in snapshots)
        insights = generate_portfolio_insights([e.summary for e in evaluations], as_of)
        return evaluations, insights


__all__ = [
    "SUMMARY_TREND_WEEKS",
    "summarize_account",
    "evaluate_account",
    "PortfolioEvaluator",
]
