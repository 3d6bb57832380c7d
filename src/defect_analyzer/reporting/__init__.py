"""
Reporting Module
================

CSV report output for analysis runs.

    - ReportWriter: Two-phase writer owning the Cluster, Aggregate and
      AlarmRate reports of one run
    - Formatting helpers shared with the trend report
"""

from defect_analyzer.reporting.writer import (
    AGGREGATE,
    ALARM_RATE,
    CLUSTER,
    ReportWriter,
    format_number,
    format_ratio,
    format_timestamp,
    range_label,
    resolve_labels,
)


__all__ = [
    "AGGREGATE",
    "ALARM_RATE",
    "CLUSTER",
    "ReportWriter",
    "format_number",
    "format_ratio",
    "format_timestamp",
    "range_label",
    "resolve_labels",
]
