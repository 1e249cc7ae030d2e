"""
Analysis services for pain-pattern records.

Each module is a set of stateless functions; the pipeline combines them into
a single report.
"""

from .correlation_engine import build_correlation_pairs
from .forecaster import predict_next, predictive_insights
from .multi_factor import multi_factor_insights
from .pipeline import PainPatternPipeline
from .recommendations import synthesize
from .trend_detector import analyze_trend, detect_anomalies, summarize_trends

__all__ = [
    "PainPatternPipeline",
    "build_correlation_pairs",
    "multi_factor_insights",
    "analyze_trend",
    "detect_anomalies",
    "summarize_trends",
    "predict_next",
    "predictive_insights",
    "synthesize",
]
