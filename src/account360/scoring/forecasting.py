"""Six-month ARR forecast over portfolio account summaries.

Accounts are bucketed by risk (at-risk, moderate, healthy) and each bucket
churns a fixed share of its ARR over the horizon. Healthy accounts expand at
a rate decayed 5% per month, and confidence decays 8% per month.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Sequence

import structlog

from src.account360.scoring.constants import (
    FORECAST_BASE_CONFIDENCE,
    FORECAST_CHURN_RATES,
    FORECAST_CONFIDENCE_DECAY,
    FORECAST_EXPANSION_RATE,
    FORECAST_MONTHLY_DECAY,
    FORECAST_MONTHS,
    PORTFOLIO_THRESHOLDS,
)
from src.account360.scoring.schemas import (
    AccountSummary,
    PortfolioForecast,
    RevenueForecast,
)

logger = structlog.get_logger(__name__)

_RENEWAL_WINDOW_DAYS = 30


def _arr(accounts: Sequence[AccountSummary]) -> float:
    return sum(a.arr or 0.0 for a in accounts)


def _is_at_risk(account: AccountSummary) -> bool:
    return (
        account.health_score < PORTFOLIO_THRESHOLDS["at_risk_health_below"]
        or account.critical_alert_count > 0
        or account.health_trend == "declining"
    )


def _is_healthy(account: AccountSummary) -> bool:
    return (
        account.health_score >= PORTFOLIO_THRESHOLDS["healthy_at_least"]
        and account.health_trend != "declining"
    )


def _month_label(as_of: datetime, offset: int) -> str:
    year, month = divmod(as_of.month - 1 + offset, 12)
    return date(as_of.year + year, month + 1, 1).strftime("%b %Y")


def forecast_revenue(
    accounts: Sequence[AccountSummary], as_of: datetime
) -> list[RevenueForecast]:
    """Project ARR month by month, starting the month after ``as_of``."""
    if not accounts:
        return []

    total_arr = _arr(accounts)
    at_risk_arr = _arr([a for a in accounts if _is_at_risk(a)])
    healthy_arr = _arr([a for a in accounts if _is_healthy(a)])
    moderate_arr = _arr(
        [
            a
            for a in accounts
            if PORTFOLIO_THRESHOLDS["at_risk_health_below"]
            <= a.health_score
            < PORTFOLIO_THRESHOLDS["healthy_at_least"]
        ]
    )

    monthly_churn = round(
        at_risk_arr * FORECAST_CHURN_RATES["at_risk"] / FORECAST_MONTHS
        + moderate_arr * FORECAST_CHURN_RATES["moderate"] / FORECAST_MONTHS
        + healthy_arr * FORECAST_CHURN_RATES["healthy"] / FORECAST_MONTHS
    )

    forecasts: list[RevenueForecast] = []
    predicted = total_arr
    for month in range(FORECAST_MONTHS):
        decay = FORECAST_MONTHLY_DECAY**month
        expansion = round(healthy_arr * FORECAST_EXPANSION_RATE / FORECAST_MONTHS * decay)

        window_start = month * _RENEWAL_WINDOW_DAYS
        window_end = (month + 1) * _RENEWAL_WINDOW_DAYS
        renewal_arr = _arr(
            [
                a
                for a in accounts
                if a.days_to_renewal is not None
                and window_start < a.days_to_renewal <= window_end
            ]
        )

        net_change = expansion - monthly_churn
        predicted += net_change
        forecasts.append(
            RevenueForecast(
                month=_month_label(as_of, month + 1),
                predicted_arr=predicted,
                at_risk_arr=round(at_risk_arr * decay),
                expansion_arr=expansion,
                renewal_arr=renewal_arr,
                churned_arr=monthly_churn,
                net_change=net_change,
                confidence=round(FORECAST_BASE_CONFIDENCE * FORECAST_CONFIDENCE_DECAY**month),
            )
        )

    logger.debug("revenue_forecast_built", accounts=len(accounts), current_arr=total_arr)
    return forecasts


def portfolio_forecast(
    accounts: Sequence[AccountSummary], as_of: datetime
) -> PortfolioForecast:
    """Forecast plus headline totals for the portfolio."""
    forecasts = forecast_revenue(accounts, as_of)
    current_arr = _arr(accounts)

    total_at_risk = _arr(
        [
            a
            for a in accounts
            if a.health_score < PORTFOLIO_THRESHOLDS["at_risk_health_below"]
            or a.critical_alert_count > 0
        ]
    )
    expansion_fraction = PORTFOLIO_THRESHOLDS["expansion_arr_fraction"]
    total_expansion = sum(
        round((a.arr or 0.0) * expansion_fraction) for a in accounts if _is_healthy(a)
    )

    return PortfolioForecast(
        current_arr=current_arr,
        forecasts=forecasts,
        total_at_risk=total_at_risk,
        total_expansion_opportunity=total_expansion,
        projected_net_change=(forecasts[-1].predicted_arr - current_arr) if forecasts else 0.0,
        confidence=(
            round(sum(f.confidence for f in forecasts) / len(forecasts)) if forecasts else 0
        ),
    )


__all__ = ["forecast_revenue", "portfolio_forecast"]
