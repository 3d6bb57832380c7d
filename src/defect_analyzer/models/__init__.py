"""
Data Models
===========

Records, run conditions and report contracts for the DefectAnalyzer.

This module re-exports all data models for convenient access.

Models:
    Input:
        - Face: Inspected side of the item
        - InspectionRecord: One defect observation

    Conditions:
        - ConditionSet: Query filters and run parameters

    Output:
        - AggregateRow: Per (face, code) count and ratio
        - AlarmRow: Per alarm window count and alarm flag
        - RunOutcome: SUCCEEDED, CANCELED or FAILED
        - AnalysisResult: Complete run result contract
"""

from defect_analyzer.models.record import Face, InspectionRecord
from defect_analyzer.models.conditions import ConditionSet
from defect_analyzer.models.reports import AggregateRow, AlarmRow, AnalysisResult, RunOutcome

__all__ = [
    # Input
    "Face",
    "InspectionRecord",
    # Conditions
    "ConditionSet",
    # Output
    "AggregateRow",
    "AlarmRow",
    "AnalysisResult",
    "RunOutcome",
]
