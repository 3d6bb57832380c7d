"""
Run Conditions
==============

This module defines the ConditionSet model holding the query and run
parameters of one analysis run.

A ConditionSet may hold invalid values while it is being edited; it is
validated explicitly with `collect_errors()` / `ensure_valid()` before a run.
Validation reports messages keyed by field name so a caller can attach them
to the offending inputs.

Validation Rules:
    - time_from <= time_to when both are set (errors on both fields)
    - time_from / time_to carry no UTC offset
    - cluster_radius finite and > 0
    - cluster_time_window > 0
    - alarm_window > 0
    - alarm_threshold >= 0

Example:
    from datetime import datetime
    from defect_analyzer.models import ConditionSet

    conditions = ConditionSet(
        ic="NG1ISL001",
        time_from=datetime(2024, 1, 1),
        time_to=datetime(2024, 1, 1, 23, 59, 59),
    )
    conditions.ensure_valid()
"""

import math
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from defect_analyzer.config import AnalysisConfig
from defect_analyzer.errors import ConditionValidationError


class ConditionSet(BaseModel):
    """
    Query and run parameters for one analysis run.

    Empty or whitespace-only filter fields mean "no constraint".

    Attributes:
        ic: Equipment (IC) code filter
        lot_no: Lot filter
        equipment_code: Secondary equipment code filter
        code_filter: Case-insensitive substring of the raw defect code
        severity_min: Minimum severity (inclusive)
        time_from: Earliest timestamp (inclusive)
        time_to: Latest timestamp (inclusive)
        cluster_radius: Cluster radius r
        cluster_time_window: Cluster time window t
        alarm_window: Alarm bucket width
        alarm_threshold: Alarm raised when a bucket count reaches this value
    """

    model_config = ConfigDict(validate_assignment=True)

    ic: Optional[str] = Field(default=None, description="Equipment (IC) code filter")
    lot_no: Optional[str] = Field(default=None, description="Lot filter")
    equipment_code: Optional[str] = Field(
        default=None,
        description="Secondary equipment code filter",
    )
    code_filter: Optional[str] = Field(
        default=None,
        description="Substring matched case-insensitively in the raw code",
    )
    severity_min: Optional[int] = Field(default=None, description="Minimum severity")
    time_from: Optional[datetime] = Field(default=None, description="Range start (inclusive)")
    time_to: Optional[datetime] = Field(default=None, description="Range end (inclusive)")

    cluster_radius: float = Field(default=3.0, description="Cluster radius r")
    cluster_time_window: timedelta = Field(
        default=timedelta(seconds=60),
        description="Cluster time window t",
    )
    alarm_window: timedelta = Field(
        default=timedelta(seconds=300),
        description="Alarm bucket width",
    )
    alarm_threshold: int = Field(default=10, description="Alarm threshold (inclusive)")

    @classmethod
    def from_analysis_config(cls, analysis: AnalysisConfig, **filters) -> "ConditionSet":
        """
        Build conditions whose run parameters default to configured values.

        Args:
            analysis: Analysis section of the settings
            **filters: Any ConditionSet field, overriding the defaults

        Returns:
            ConditionSet
        """
        values = {
            "cluster_radius": analysis.cluster_radius,
            "cluster_time_window": timedelta(seconds=analysis.cluster_time_window_sec),
            "alarm_window": timedelta(seconds=analysis.alarm_window_sec),
            "alarm_threshold": analysis.alarm_threshold,
        }
        values.update({k: v for k, v in filters.items() if v is not None})
        return cls(**values)

    def collect_errors(self) -> Dict[str, List[str]]:
        """
        Validate the run parameters.

        Returns:
            Field name -> list of messages; empty when valid.
        """
        errors: Dict[str, List[str]] = {}

        def add(name: str, message: str) -> None:
            errors.setdefault(name, []).append(message)

        naive = True
        for name in ("time_from", "time_to"):
            value = getattr(self, name)
            if value is not None and value.tzinfo is not None:
                add(name, f"{name} must be a local time without UTC offset")
                naive = False
        if (
            naive
            and self.time_from is not None
            and self.time_to is not None
            and self.time_from > self.time_to
        ):
            add("time_from", "time_from must be earlier than or equal to time_to")
            add("time_to", "time_to must be later than or equal to time_from")
        if not math.isfinite(self.cluster_radius) or self.cluster_radius <= 0:
            add("cluster_radius", "cluster_radius must be a positive finite number")
        if self.cluster_time_window <= timedelta(0):
            add("cluster_time_window", "cluster_time_window must be a positive duration")
        if self.alarm_window <= timedelta(0):
            add("alarm_window", "alarm_window must be a positive duration")
        if self.alarm_threshold < 0:
            add("alarm_threshold", "alarm_threshold must be zero or greater")

        return errors

    @property
    def has_errors(self) -> bool:
        """Whether any validation error exists."""
        return bool(self.collect_errors())

    def ensure_valid(self) -> None:
        """
        Raise if the conditions are invalid.

        Raises:
            ConditionValidationError: With the field-keyed messages
        """
        errors = self.collect_errors()
        if errors:
            raise ConditionValidationError(errors)
