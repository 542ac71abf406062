"""Shared builders for scoring engine tests.

Provides factory fixtures so each test states only the fields it cares
about on top of a healthy, fully-populated baseline account:
- make_snapshot: AccountSnapshot with nested overrides
- make_health: AccountHealth at a given composite score and trend
- make_summary: AccountSummary for portfolio-level rules
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from src.account360.config import get_settings
from src.account360.scoring.constants import HEALTH_WEIGHTS
from src.account360.scoring.health_scorer import grade_for_score
from src.account360.scoring.schemas import (
    AccountHealth,
    AccountSnapshot,
    AccountSummary,
    HealthComponent,
)

AS_OF = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _baseline(age_days: int) -> dict[str, Any]:
    return {
        "account_id": "acct-001",
        "account_name": "Acme Manufacturing",
        "segment": "mid-market",
        "tier": "growth",
        "owner_name": "Jordan Lee",
        "lifecycle_stage": "mature",
        "onboarding_status": "completed",
        "stage": "live",
        "created_at": AS_OF - timedelta(days=age_days),
        "as_of": AS_OF,
        "usage": {
            "item_count": 60,
            "kanban_card_count": 120,
            "order_count": 25,
            "total_users": 8,
            "active_users_last_7_days": 5,
            "active_users_last_30_days": 7,
            "days_since_last_activity": 1,
            "feature_adoption": {"items": 80.0, "kanban": 70.0, "ordering": 60.0},
            "activity_timeline": [
                {"date": f"2026-W{week:02d}", "items": 10, "kanban_cards": 15, "orders": 5, "active_users": 5}
                for week in range(1, 9)
            ],
        },
        "commercial": {
            "plan": "pro",
            "arr": 50_000.0,
            "mrr": 50_000.0 / 12,
            "payment_status": "current",
            "overdue_amount": 0.0,
            "renewal_date": "2026-09-17",
            "days_to_renewal": 200,
            "seat_limit": 10,
            "seat_usage": 8,
            "expansion_potential": "medium",
        },
        "support": {
            "open_tickets": 0,
            "critical_tickets": 0,
            "tickets_last_30_days": 1,
            "escalation_count": 0,
            "csat": 90.0,
        },
        "days_since_last_cs_contact": 5,
        "interactions_last_30_days": 3,
        "has_champion": True,
    }


def _timeline(totals: list[int]) -> list[dict[str, Any]]:
    return [
        {"date": f"2026-W{i + 1:02d}", "items": total, "kanban_cards": 0, "orders": 0}
        for i, total in enumerate(totals)
    ]


@pytest.fixture
def make_snapshot():
    """Build a snapshot from the healthy baseline.

    ``usage``/``commercial``/``support`` dicts are merged into the baseline
    sections; ``support=None`` removes support data; ``timeline`` replaces
    the activity timeline with per-week totals; ``age_days`` sets
    ``created_at`` relative to ``AS_OF``.
    """

    def _make(
        *,
        age_days: int = 400,
        usage: dict[str, Any] | None = None,
        commercial: dict[str, Any] | None = None,
        support: dict[str, Any] | None | str = "baseline",
        timeline: list[int] | None = None,
        **overrides: Any,
    ) -> AccountSnapshot:
        data = _baseline(age_days)
        data["usage"].update(usage or {})
        data["commercial"].update(commercial or {})
        if support is None:
            data["support"] = None
        elif support != "baseline":
            data["support"].update(support)
        if timeline is not None:
            data["usage"]["activity_timeline"] = _timeline(timeline)
        data.update(overrides)
        return AccountSnapshot.model_validate(data)

    return _make


@pytest.fixture
def make_health():
    """Build an AccountHealth whose five components all equal ``score``."""

    def _make(
        score: int,
        trend: str = "stable",
        score_change: int = 0,
        account_id: str = "acct-001",
    ) -> AccountHealth:
        components = {
            name: HealthComponent(
                score=score, weight=weight, weighted_score=score * weight
            )
            for name, weight in HEALTH_WEIGHTS.items()
        }
        return AccountHealth(
            account_id=account_id,
            score=score,
            grade=grade_for_score(score),
            trend=trend,
            score_change=score_change,
            previous_score=score - score_change if score_change else None,
            components=components,
            confidence=80,
            data_freshness="fresh",
            calculated_at=AS_OF,
        )

    return _make


@pytest.fixture
def make_summary():
    """Build an AccountSummary with healthy defaults."""

    def _make(account_id: str, **overrides: Any) -> AccountSummary:
        data: dict[str, Any] = {
            "id": account_id,
            "name": account_id.title(),
            "health_score": 85,
            "health_grade": "A",
            "health_trend": "stable",
            "active_users": 3,
            "days_since_last_activity": 2,
            "lifecycle_stage": "mature",
            "onboarding_status": "completed",
            "arr": 30_000.0,
            "alert_count": 0,
            "critical_alert_count": 0,
        }
        data.update(overrides)
        data["health_grade"] = grade_for_score(data["health_score"])
        return AccountSummary.model_validate(data)

    return _make


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Clear the cached settings so env overrides apply per test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
