"""Tests for the alert rule battery.

Covers per-rule triggers and severities, idempotent deterministic ids,
evidence/SLA population, rule-order output, fail-open rule skipping, and
the two end-to-end alert scenarios (inactive low-health account, stalled
onboarding).
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from src.account360.scoring.alerts import (
    ALERT_RULES,
    AlertGenerator,
    AlertRule,
    alert_id,
    generate_alerts,
    sort_alerts,
    summarize_alerts,
)
from src.account360.scoring.schemas import AccountSnapshot

from conftest import AS_OF


def _by_type(alerts):
    return {a.type: a for a in alerts}


# -- Baseline ----------------------------------------------------------------


class TestBaseline:
    def test_healthy_active_account_only_gets_expansion(self, make_snapshot) -> None:
        alerts = generate_alerts(make_snapshot())
        assert [a.type for a in alerts] == ["expansion_opportunity"]
        assert alerts[0].severity == "low"
        assert alerts[0].category == "opportunity"

    def test_empty_snapshot_produces_valid_list(self) -> None:
        alerts = generate_alerts(AccountSnapshot(account_id="new", as_of=AS_OF))
        assert isinstance(alerts, list)
        # Sparse accounts still score low enough to flag health.
        assert all(a.account_id == "new" for a in alerts)


# -- Determinism -------------------------------------------------------------


class TestDeterminism:
    def test_repeated_evaluation_is_identical(self, make_snapshot) -> None:
        snapshot = make_snapshot(usage={"days_since_last_activity": 35})
        first = generate_alerts(snapshot)
        second = generate_alerts(snapshot)
        assert [a.model_dump() for a in first] == [a.model_dump() for a in second]

    def test_ids_derive_from_account_and_type(self, make_snapshot) -> None:
        alerts = generate_alerts(make_snapshot(account_id="acct-xyz"))
        for alert in alerts:
            assert alert.id == alert_id("acct-xyz", alert.type)

    def test_ids_differ_across_accounts(self) -> None:
        assert alert_id("a", "churn_risk") != alert_id("b", "churn_risk")
        assert alert_id("a", "churn_risk") != alert_id("a", "health_drop")

    def test_output_follows_rule_order(self, make_snapshot, make_health) -> None:
        snapshot = make_snapshot(
            usage={"days_since_last_activity": 40},
            commercial={"payment_status": "overdue", "days_to_renewal": 20},
        )
        alerts = generate_alerts(snapshot, make_health(20))
        rule_order = [rule.type for rule in ALERT_RULES]
        positions = [rule_order.index(a.type) for a in alerts]
        assert positions == sorted(positions)


# -- Rules -------------------------------------------------------------------


class TestChurnRisk:
    def test_crossing_fourteen_days_adds_alert(self, make_snapshot, make_health) -> None:
        health = make_health(80)
        before = _by_type(generate_alerts(make_snapshot(usage={"days_since_last_activity": 10}), health))
        after = _by_type(generate_alerts(make_snapshot(usage={"days_since_last_activity": 20}), health))
        assert "churn_risk" not in before
        assert after["churn_risk"].severity == "high"

    def test_thirty_days_is_critical(self, make_snapshot, make_health) -> None:
        alerts = _by_type(
            generate_alerts(make_snapshot(usage={"days_since_last_activity": 30}), make_health(80))
        )
        assert alerts["churn_risk"].severity == "critical"
        assert "30 days since last activity" in alerts["churn_risk"].evidence

    def test_missing_activity_skips_rule(self, make_snapshot, make_health) -> None:
        alerts = _by_type(
            generate_alerts(make_snapshot(usage={"days_since_last_activity": None}), make_health(80))
        )
        assert "churn_risk" not in alerts

    def test_null_counts_do_not_block_battery(self, make_health) -> None:
        snapshot = AccountSnapshot.model_validate(
            {
                "account_id": "sparse",
                "as_of": AS_OF,
                "usage": {
                    "item_count": None,
                    "days_since_last_activity": 40,
                    "activity_timeline": [{"items": None, "orders": 3}],
                },
            }
        )
        alerts = _by_type(generate_alerts(snapshot, make_health(80)))
        assert alerts["churn_risk"].severity == "critical"


class TestHealthDrop:
    @pytest.mark.parametrize(
        "score,severity",
        [(45, None), (40, None), (39, "high"), (25, "high"), (24, "critical"), (20, "critical")],
    )
    def test_severity_by_score(self, make_snapshot, make_health, score, severity) -> None:
        alerts = _by_type(generate_alerts(make_snapshot(), make_health(score)))
        if severity is None:
            assert "health_drop" not in alerts
        else:
            assert alerts["health_drop"].severity == severity
            assert f"Health score: {score} (grade {make_health(score).grade})" in alerts["health_drop"].evidence


class TestOnboardingStalled:
    def test_young_account_with_few_items(self, make_snapshot) -> None:
        snapshot = make_snapshot(
            age_days=10,
            stage="signed",
            usage={"item_count": 2, "kanban_card_count": 0, "order_count": 0},
        )
        alert = _by_type(generate_alerts(snapshot))["onboarding_stalled"]
        assert alert.severity == "medium"
        assert "Items created: 2" in alert.evidence

    def test_older_than_two_weeks_is_high(self, make_snapshot) -> None:
        snapshot = make_snapshot(age_days=20, stage="deployed", usage={"item_count": 1})
        assert _by_type(generate_alerts(snapshot))["onboarding_stalled"].severity == "high"

    def test_live_accounts_are_exempt(self, make_snapshot) -> None:
        snapshot = make_snapshot(age_days=20, stage="live", usage={"item_count": 1})
        assert "onboarding_stalled" not in _by_type(generate_alerts(snapshot))

    def test_first_week_is_exempt(self, make_snapshot) -> None:
        snapshot = make_snapshot(age_days=7, stage="signed", usage={"item_count": 0})
        assert "onboarding_stalled" not in _by_type(generate_alerts(snapshot))

    def test_unknown_age_skips_rule(self, make_snapshot) -> None:
        snapshot = make_snapshot(created_at=None, stage="signed", usage={"item_count": 0})
        assert "onboarding_stalled" not in _by_type(generate_alerts(snapshot))


class TestLowEngagement:
    def test_established_quiet_account(self, make_snapshot, make_health) -> None:
        snapshot = make_snapshot(
            age_days=60,
            usage={
                "item_count": 3,
                "kanban_card_count": 2,
                "order_count": 0,
                "days_since_last_activity": 9,
            },
        )
        alert = _by_type(generate_alerts(snapshot, make_health(70)))["low_engagement"]
        assert alert.severity == "medium"
        assert alert.category == "risk"

    def test_recent_activity_suppresses(self, make_snapshot) -> None:
        snapshot = make_snapshot(
            age_days=60,
            usage={"item_count": 3, "kanban_card_count": 2, "order_count": 0, "days_since_last_activity": 2},
        )
        assert "low_engagement" not in _by_type(generate_alerts(snapshot))


class TestExpansionOpportunity:
    def test_requires_recent_activity(self, make_snapshot) -> None:
        snapshot = make_snapshot(usage={"days_since_last_activity": 7})
        assert "expansion_opportunity" not in _by_type(generate_alerts(snapshot))

    def test_requires_three_active_users(self, make_snapshot) -> None:
        snapshot = make_snapshot(usage={"active_users_last_30_days": 2})
        assert "expansion_opportunity" not in _by_type(generate_alerts(snapshot))


class TestPaymentOverdue:
    def test_at_risk_without_amount_is_high(self, make_snapshot) -> None:
        snapshot = make_snapshot(commercial={"payment_status": "at_risk"})
        alert = _by_type(generate_alerts(snapshot))["payment_overdue"]
        assert alert.severity == "high"
        assert "Payment status: at_risk" in alert.evidence

    def test_overdue_high_value_account_is_critical(self, make_snapshot) -> None:
        snapshot = make_snapshot(commercial={"payment_status": "overdue", "overdue_amount": 500.0})
        alert = _by_type(generate_alerts(snapshot))["payment_overdue"]
        assert alert.severity == "critical"
        assert "Overdue amount: $500" in alert.evidence

    def test_overdue_small_account_is_high(self, make_snapshot) -> None:
        snapshot = make_snapshot(
            commercial={"payment_status": "overdue", "overdue_amount": 500.0, "arr": 5_000.0}
        )
        assert _by_type(generate_alerts(snapshot))["payment_overdue"].severity == "high"

    def test_large_balance_is_critical_regardless_of_status(self, make_snapshot) -> None:
        snapshot = make_snapshot(
            commercial={"payment_status": "current", "overdue_amount": 15_000.0, "arr": 5_000.0}
        )
        assert _by_type(generate_alerts(snapshot))["payment_overdue"].severity == "critical"

    def test_current_without_balance_is_quiet(self, make_snapshot) -> None:
        assert "payment_overdue" not in _by_type(generate_alerts(make_snapshot()))


class TestRenewalApproaching:
    def test_within_sixty_days_is_medium(self, make_snapshot, make_health) -> None:
        snapshot = make_snapshot(commercial={"days_to_renewal": 45})
        alert = _by_type(generate_alerts(snapshot, make_health(80)))["renewal_approaching"]
        assert alert.severity == "medium"
        assert "Days remaining: 45" in alert.evidence

    def test_within_thirty_days_is_high(self, make_snapshot, make_health) -> None:
        snapshot = make_snapshot(commercial={"days_to_renewal": 20})
        alert = _by_type(generate_alerts(snapshot, make_health(80)))["renewal_approaching"]
        assert alert.severity == "high"

    def test_within_thirty_days_with_low_health_is_critical(self, make_snapshot, make_health) -> None:
        snapshot = make_snapshot(commercial={"days_to_renewal": 20})
        alert = _by_type(generate_alerts(snapshot, make_health(55)))["renewal_approaching"]
        assert alert.severity == "critical"
        assert alert.suggested_action.startswith("Urgent")

    def test_distant_or_unknown_renewal_is_quiet(self, make_snapshot, make_health) -> None:
        for days in (61, None):
            snapshot = make_snapshot(commercial={"days_to_renewal": days})
            assert "renewal_approaching" not in _by_type(generate_alerts(snapshot, make_health(80)))


class TestSupplementalRules:
    def test_critical_ticket_escalates(self, make_snapshot) -> None:
        snapshot = make_snapshot(support={"critical_tickets": 1, "open_tickets": 2, "escalation_count": 1})
        alert = _by_type(generate_alerts(snapshot))["support_escalation"]
        assert alert.severity == "critical"
        assert alert.sla_hours == 4
        assert "Escalations: 1" in alert.evidence

    def test_ticket_volume_is_high(self, make_snapshot) -> None:
        snapshot = make_snapshot(support={"open_tickets": 6})
        assert _by_type(generate_alerts(snapshot))["support_escalation"].severity == "high"

    def test_no_support_data_is_quiet(self, make_snapshot) -> None:
        assert "support_escalation" not in _by_type(generate_alerts(make_snapshot(support=None)))

    def test_usage_decline(self, make_snapshot) -> None:
        snapshot = make_snapshot(timeline=[40, 40, 40, 40, 10, 10, 10, 10])
        alert = _by_type(generate_alerts(snapshot))["usage_decline"]
        assert alert.severity == "high"
        assert "Decline: 75%" in alert.evidence

    def test_usage_decline_needs_meaningful_baseline(self, make_snapshot) -> None:
        snapshot = make_snapshot(timeline=[8, 8, 8, 8, 1, 1, 1, 1])
        assert "usage_decline" not in _by_type(generate_alerts(snapshot))

    def test_departed_champion(self, make_snapshot) -> None:
        snapshot = make_snapshot(
            stakeholders=[{"name": "Priya", "role": "champion", "has_left": True}]
        )
        alert = _by_type(generate_alerts(snapshot))["champion_left"]
        assert alert.severity == "high"
        assert "Departed champion: Priya" in alert.evidence

    def test_silent_established_account_suggests_champion_loss(self, make_snapshot) -> None:
        snapshot = make_snapshot(
            age_days=200,
            usage={"active_users_last_30_days": 0, "active_users_last_7_days": 0, "days_since_last_activity": 25},
        )
        assert "champion_left" in _by_type(generate_alerts(snapshot))


# -- Alert Fields ------------------------------------------------------------


class TestAlertFields:
    def test_sla_deadline_from_snapshot_time(self, make_snapshot, make_health) -> None:
        snapshot = make_snapshot(usage={"days_since_last_activity": 35})
        alert = _by_type(generate_alerts(snapshot, make_health(80)))["churn_risk"]
        assert alert.created_at == AS_OF
        assert alert.sla_hours == 24
        assert alert.sla_deadline == AS_OF + timedelta(hours=24)
        assert alert.sla_status == "on_track"
        assert alert.status == "open"

    def test_alert_without_sla(self, make_snapshot) -> None:
        alert = _by_type(generate_alerts(make_snapshot()))["expansion_opportunity"]
        assert alert.sla_hours is None
        assert alert.sla_deadline is None
        assert alert.sla_status == "none"

    def test_arr_at_risk_only_on_risk_alerts(self, make_snapshot, make_health) -> None:
        snapshot = make_snapshot(
            usage={"days_since_last_activity": 35},
            commercial={"payment_status": "at_risk"},
        )
        alerts = _by_type(generate_alerts(snapshot, make_health(80)))
        assert alerts["churn_risk"].arr_at_risk == 50_000.0
        assert alerts["payment_overdue"].arr_at_risk is None

    def test_every_alert_has_evidence_and_action(self, make_snapshot, make_health) -> None:
        snapshot = make_snapshot(
            age_days=200,
            usage={"days_since_last_activity": 40, "active_users_last_30_days": 0},
            commercial={"payment_status": "overdue", "overdue_amount": 20_000.0, "days_to_renewal": 10},
            support={"critical_tickets": 2},
        )
        alerts = generate_alerts(snapshot, make_health(15))
        assert len(alerts) >= 5
        for alert in alerts:
            assert alert.evidence
            assert all(alert.evidence)
            assert alert.suggested_action


# -- Failure Semantics -------------------------------------------------------


class TestFailOpen:
    def test_raising_rule_is_skipped(self, make_snapshot, make_health) -> None:
        def _boom(ctx):
            raise KeyError("malformed")

        rules = (AlertRule("churn_risk", "risk", _boom),) + ALERT_RULES[1:]
        generator = AlertGenerator(rules=rules)
        snapshot = make_snapshot(usage={"days_since_last_activity": 40})

        alerts = _by_type(generator.generate(snapshot, make_health(20)))

        assert "churn_risk" not in alerts
        assert alerts["health_drop"].severity == "critical"

    def test_threshold_overrides(self, make_snapshot, make_health) -> None:
        generator = AlertGenerator(thresholds={"inactivity_high_days": 5})
        snapshot = make_snapshot(usage={"days_since_last_activity": 6})
        assert "churn_risk" in _by_type(generator.generate(snapshot, make_health(80)))

    def test_unknown_threshold_rejected(self) -> None:
        with pytest.raises(ValueError, match="unknown alert thresholds"):
            AlertGenerator(thresholds={"not_a_threshold": 1})


# -- End-to-End Scenarios ----------------------------------------------------


class TestScenarios:
    def test_inactive_low_health_account(self, make_snapshot, make_health) -> None:
        snapshot = make_snapshot(usage={"days_since_last_activity": 35})
        alerts = _by_type(generate_alerts(snapshot, make_health(20)))
        assert alerts["churn_risk"].severity == "critical"
        assert alerts["health_drop"].severity == "critical"

    def test_stalled_onboarding_account(self, make_snapshot) -> None:
        snapshot = make_snapshot(
            age_days=10,
            stage="signed",
            usage={"item_count": 2, "kanban_card_count": 0, "order_count": 0},
        )
        alerts = _by_type(generate_alerts(snapshot))
        assert alerts["onboarding_stalled"].severity == "medium"
        assert "expansion_opportunity" not in alerts


# -- Helpers -----------------------------------------------------------------


class TestHelpers:
    def test_sort_alerts_by_severity(self, make_snapshot, make_health) -> None:
        snapshot = make_snapshot(
            usage={"days_since_last_activity": 20},
            commercial={"days_to_renewal": 45},
        )
        alerts = generate_alerts(snapshot, make_health(20))
        ranked = sort_alerts(alerts)
        severities = [a.severity for a in ranked]
        order = {"critical": 0, "high": 1, "medium": 2, "low": 3}
        assert [order[s] for s in severities] == sorted(order[s] for s in severities)
        assert ranked[0].type == "health_drop"

    def test_summarize_alerts(self, make_snapshot, make_health) -> None:
        snapshot = make_snapshot(usage={"days_since_last_activity": 35})
        summary = summarize_alerts(generate_alerts(snapshot, make_health(20)))
        assert summary["critical"] == 2
        assert summary["total"] == sum(summary[s] for s in ("critical", "high", "medium", "low"))
