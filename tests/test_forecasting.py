"""Tests for the six-month ARR forecast."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from src.account360.scoring.forecasting import forecast_revenue, portfolio_forecast

from conftest import AS_OF


@pytest.fixture
def portfolio(make_summary):
    return [
        make_summary("healthy", health_score=85, arr=60_000.0, days_to_renewal=45),
        make_summary("moderate", health_score=60, arr=30_000.0, days_to_renewal=100),
        make_summary("risky", health_score=30, arr=10_000.0, critical_alert_count=1, days_to_renewal=20),
    ]


class TestForecastRevenue:
    def test_empty_portfolio(self) -> None:
        assert forecast_revenue([], AS_OF) == []

    def test_six_months_labelled_from_as_of(self, portfolio) -> None:
        forecasts = forecast_revenue(portfolio, AS_OF)
        assert [f.month for f in forecasts] == [
            "Apr 2026", "May 2026", "Jun 2026", "Jul 2026", "Aug 2026", "Sep 2026",
        ]

    def test_labels_roll_over_year(self, portfolio) -> None:
        december = datetime(2026, 12, 15, tzinfo=timezone.utc)
        assert forecast_revenue(portfolio, december)[0].month == "Jan 2027"

    def test_churn_and_expansion(self, portfolio) -> None:
        first = forecast_revenue(portfolio, AS_OF)[0]
        # 10k * 25% + 30k * 5% + 60k * 2%, spread over six months
        assert first.churned_arr == round((2_500 + 1_500 + 1_200) / 6)
        assert first.expansion_arr == round(60_000 * 0.15 / 6)
        assert first.net_change == first.expansion_arr - first.churned_arr
        assert first.predicted_arr == 100_000 + first.net_change
        assert first.at_risk_arr == 10_000

    def test_predicted_arr_chains(self, portfolio) -> None:
        forecasts = forecast_revenue(portfolio, AS_OF)
        for previous, current in zip(forecasts, forecasts[1:]):
            assert current.predicted_arr == previous.predicted_arr + current.net_change

    def test_renewals_bucketed_by_month(self, portfolio) -> None:
        forecasts = forecast_revenue(portfolio, AS_OF)
        assert forecasts[0].renewal_arr == 10_000
        assert forecasts[1].renewal_arr == 60_000
        assert forecasts[3].renewal_arr == 30_000

    def test_confidence_decays(self, portfolio) -> None:
        confidences = [f.confidence for f in forecast_revenue(portfolio, AS_OF)]
        assert confidences[0] == 90
        assert confidences == sorted(confidences, reverse=True)


class TestPortfolioForecast:
    def test_totals(self, portfolio) -> None:
        summary = portfolio_forecast(portfolio, AS_OF)
        assert summary.current_arr == 100_000
        assert summary.total_at_risk == 10_000
        assert summary.total_expansion_opportunity == 12_000
        assert summary.projected_net_change == summary.forecasts[-1].predicted_arr - 100_000
        assert 0 < summary.confidence <= 90

    def test_empty(self) -> None:
        summary = portfolio_forecast([], AS_OF)
        assert summary.forecasts == []
        assert summary.projected_net_change == 0
        assert summary.confidence == 0
