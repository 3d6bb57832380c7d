"""
DefectAnalyzer
==============

Streaming analysis of inspection-defect records.

This package ingests defect records exported by inspection equipment, filters
them against a set of run conditions and derives three reports in a single
forward pass over the record stream:

    - Cluster: spatial-temporal cluster id for every accepted record
    - Aggregate: defect-code frequency per inspected face
    - AlarmRate: matched-record count per fixed time window vs. a threshold

Components:
    - models: Records, run conditions and result contracts
    - ingest: CSV loading and input directory scanning
    - analysis: Condition filter, online clusterer, windowed aggregator
    - reporting: CSV report writer
    - codes: Defect codebook and trend-code normalization

Example:
    import asyncio
    from defect_analyzer.analysis import Analyzer
    from defect_analyzer.ingest import merge_sources
    from defect_analyzer.models import ConditionSet

    result = asyncio.run(
        Analyzer().run(merge_sources(paths), ConditionSet(), "out/exports")
    )
    print(result.outcome, result.cluster_path)
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
