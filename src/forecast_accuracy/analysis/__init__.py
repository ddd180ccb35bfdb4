"""Accuracy scoring and ranking."""

from .analyzer import AccuracyAnalyzer, AnalysisRun, AnalysisState
from .ranking import RankingAggregator, summarize_provider

__all__ = [
    "AccuracyAnalyzer",
    "AnalysisRun",
    "AnalysisState",
    "RankingAggregator",
    "summarize_provider",
]
