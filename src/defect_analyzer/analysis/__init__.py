"""
Analysis Module
===============

Single-pass streaming analysis of inspection records.

Components:
    - match: Condition Filter predicate
    - OnlineClusterer: Grid-indexed, sliding-window cluster assignment
    - WindowedAggregator: Face x code counts and alarm buckets
    - Analyzer: Run driver writing the Cluster, Aggregate and AlarmRate reports
    - TrendAggregator: Optional per-day trend of selected codes
"""

from defect_analyzer.analysis.aggregator import WindowedAggregator, window_start
from defect_analyzer.analysis.analyzer import Analyzer, RecordSource, iterate_records
from defect_analyzer.analysis.clusterer import ClusterAnchor, OnlineClusterer
from defect_analyzer.analysis.filter import match
from defect_analyzer.analysis.trend import TrendAggregator
from defect_analyzer.models.reports import RunOutcome


__all__ = [
    "Analyzer",
    "ClusterAnchor",
    "OnlineClusterer",
    "RecordSource",
    "RunOutcome",
    "TrendAggregator",
    "WindowedAggregator",
    "iterate_records",
    "match",
    "window_start",
]
