"""Account health scoring, alert generation, insights, and churn prediction.

Exports:
    AccountHealthScorer: Five-component weighted health scoring engine.
    AlertGenerator: Declarative alert rule battery with SLA metadata.
    InsightEngine: Account and portfolio insight rule batteries.
    ChurnPredictor: Weighted, monotonic churn probability with factors.
    PortfolioEvaluator: Bounded-concurrency batch evaluation.
    score_health, generate_alerts, generate_account_insights,
    generate_portfolio_insights, predict_churn_risk, evaluate_account:
        Module-level entry points using default configuration.
"""

from src.account360.scoring.alerts import (
    AlertGenerator,
    generate_alerts,
    sort_alerts,
    summarize_alerts,
)
from src.account360.scoring.churn import (
    ChurnPredictor,
    churn_metrics,
    predict_churn_risk,
    top_churn_risks,
)
from src.account360.scoring.forecasting import forecast_revenue, portfolio_forecast
from src.account360.scoring.health_scorer import AccountHealthScorer, score_health
from src.account360.scoring.insights import (
    InsightEngine,
    count_insights_by_severity,
    filter_insights,
    generate_account_insights,
    generate_portfolio_insights,
    top_insights,
)
from src.account360.scoring.portfolio import (
    PortfolioEvaluator,
    evaluate_account,
    summarize_account,
)
from src.account360.scoring.timeseries import detect_anomaly, detect_trend

__all__ = [
    "AccountHealthScorer",
    "AlertGenerator",
    "ChurnPredictor",
    "InsightEngine",
    "PortfolioEvaluator",
    "churn_metrics",
    "count_insights_by_severity",
    "detect_anomaly",
    "detect_trend",
    "evaluate_account",
    "filter_insights",
    "forecast_revenue",
    "generate_account_insights",
    "generate_alerts",
    "generate_portfolio_insights",
    "portfolio_forecast",
    "predict_churn_risk",
    "score_health",
    "sort_alerts",
    "summarize_account",
    "summarize_alerts",
    "top_churn_risks",
    "top_insights",
]
