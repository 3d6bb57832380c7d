"""
Report and Result Models
========================

This module defines the rows of the derived reports and the result contract
returned by an analysis run.

Report Rows:
    - AggregateRow: One (face, code) group of the Aggregate report
    - AlarmRow: One non-empty alarm bucket of the AlarmRate report

Result Contract:
    {
        "outcome": "SUCCEEDED",
        "cluster_path": "out/exports/Cluster_NG1ISL001_24081234_20240101-20240101.csv",
        "aggregate_path": "out/exports/Aggregate_NG1ISL001_24081234_20240101-20240101.csv",
        "alarm_path": "out/exports/AlarmRate_NG1ISL001_24081234_20240101-20240101.csv",
        "records_seen": 1200,
        "records_matched": 812,
        "clusters": 97,
        "alarm_windows": 14,
        "error": null,
        "error_path": null
    }
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from defect_analyzer.models.record import Face


@dataclass(frozen=True, slots=True)
class AggregateRow:
    """
    Count of one defect code on one face.

    Attributes:
        face: Inspected face
        code: Raw defect code (first spelling seen)
        count: Records with this face and code
        ratio_in_face: count / face total
    """

    face: Face
    code: str
    count: int
    ratio_in_face: float


@dataclass(frozen=True, slots=True)
class AlarmRow:
    """
    Matched-record count of one fixed alarm window.

    Attributes:
        window_start: Bucket start (inclusive)
        window_end: window_start + alarm window
        count: Records in the bucket
        threshold: Alarm threshold of the run
        alarm: 1 when count >= threshold, else 0
    """

    window_start: datetime
    window_end: datetime
    count: int
    threshold: int
    alarm: int


class RunOutcome(str, Enum):
    """
    Final state of an analysis run.

    Attributes:
        SUCCEEDED: All three reports were written
        CANCELED: The cancel signal stopped the run
        FAILED: An output directory or file could not be written
    """

    SUCCEEDED = "SUCCEEDED"
    CANCELED = "CANCELED"
    FAILED = "FAILED"


class AnalysisResult(BaseModel):
    """
    Result of one analysis run.

    Report paths are set once the report files have been opened; a run
    canceled before the first accepted record has no paths.
    """

    outcome: RunOutcome = Field(..., description="Final state of the run")
    cluster_path: Optional[Path] = Field(default=None, description="Cluster report")
    aggregate_path: Optional[Path] = Field(default=None, description="Aggregate report")
    alarm_path: Optional[Path] = Field(default=None, description="AlarmRate report")
    records_seen: int = Field(default=0, ge=0, description="Records read from the source")
    records_matched: int = Field(default=0, ge=0, description="Records accepted by the filter")
    clusters: int = Field(default=0, ge=0, description="Cluster ids assigned")
    alarm_windows: int = Field(default=0, ge=0, description="Windows with alarm=1")
    error: Optional[str] = Field(default=None, description="Failure message")
    error_path: Optional[Path] = Field(default=None, description="Path that failed")

    @property
    def succeeded(self) -> bool:
        return self.outcome == RunOutcome.SUCCEEDED
