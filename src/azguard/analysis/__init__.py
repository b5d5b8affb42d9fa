"""Cost analysis for azguard: trends and budget alerts."""

from azguard.analysis.alert_evaluator import AlertEvaluator, AlertResult, AlertStatus
from azguard.analysis.trend import TrendAnalysis, analyze_trend, calculate_change

__all__ = [
    "AlertEvaluator",
    "AlertResult",
    "AlertStatus",
    "TrendAnalysis",
    "analyze_trend",
    "calculate_change",
]
