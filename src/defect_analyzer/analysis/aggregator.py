"""
Windowed Aggregator
===================

Accumulates defect-code counts and alarm buckets in the same forward pass
as clustering.

State:
    - total: number of accepted records
    - per (face, code) counts and per-face totals
    - per alarm bucket counts, keyed by the bucket start

Bucketing:
    start = EPOCH + floor((ts - EPOCH) / window) * window, with EPOCH at
    0001-01-01 00:00:00. Buckets are fixed and aligned; a bucket is emitted
    only when it holds at least one record.

Alarm Rule:
    alarm = 1 if count >= threshold else 0 (inclusive)

Defect codes are grouped case-insensitively and reported with the first
spelling seen.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List

from defect_analyzer.models.record import Face, InspectionRecord
from defect_analyzer.models.reports import AggregateRow, AlarmRow


logger = logging.getLogger(__name__)


BUCKET_EPOCH = datetime.min


def window_start(timestamp: datetime, window: timedelta) -> datetime:
    """
    Start of the fixed window containing a timestamp.

    Args:
        timestamp: Record time
        window: Window width, positive

    Returns:
        Aligned window start
    """
    offset = timestamp - BUCKET_EPOCH
    return BUCKET_EPOCH + (offset // window) * window


class WindowedAggregator:
    """
    Single-pass accumulator for the Aggregate and AlarmRate reports.

    Attributes:
        alarm_window: Alarm bucket width
        alarm_threshold: Inclusive alarm threshold
        total: Accepted records so far

    Example:
        aggregator = WindowedAggregator(timedelta(seconds=60), alarm_threshold=2)

        for record in records:
            aggregator.add(record)

        rows = aggregator.aggregate_rows()
        alarms = aggregator.alarm_rows()
    """

    def __init__(self, alarm_window: timedelta, alarm_threshold: int) -> None:
        """
        Initialize aggregator.

        Args:
            alarm_window: Alarm bucket width, must be positive
            alarm_threshold: Alarm threshold, must be >= 0
        """
        if alarm_window <= timedelta(0):
            raise ValueError("alarm_window must be positive")
        if alarm_threshold < 0:
            raise ValueError("alarm_threshold must be >= 0")

        self.alarm_window = alarm_window
        self.alarm_threshold = alarm_threshold

        self.total: int = 0
        self._face_totals: Dict[Face, int] = {}
        self._code_counts: Dict[Face, Dict[str, int]] = {}
        self._code_labels: Dict[str, str] = {}
        self._window_counts: Dict[datetime, int] = {}

    def add(self, record: InspectionRecord) -> None:
        """Account one accepted record."""
        self.total += 1

        face = record.face
        code = record.code_raw or ""
        key = code.casefold()
        self._code_labels.setdefault(key, code)

        self._face_totals[face] = self._face_totals.get(face, 0) + 1
        counts = self._code_counts.setdefault(face, {})
        counts[key] = counts.get(key, 0) + 1

        start = window_start(record.timestamp, self.alarm_window)
        self._window_counts[start] = self._window_counts.get(start, 0) + 1

    def face_total(self, face: Face) -> int:
        """Records seen on a face."""
        return self._face_totals.get(face, 0)

    def is_alarm(self, count: int) -> int:
        """Alarm flag for a bucket count."""
        return 1 if count >= self.alarm_threshold else 0

    def aggregate_rows(self) -> List[AggregateRow]:
        """
        Rows of the Aggregate report.

        Faces in Face declaration order; within a face, descending count
        with first-seen order breaking ties.
        """
        rows: List[AggregateRow] = []
        for face in Face:
            counts = self._code_counts.get(face)
            if not counts:
                continue
            face_total = self._face_totals.get(face, 0)
            for key, count in sorted(counts.items(), key=lambda kv: kv[1], reverse=True):
                rows.append(
                    AggregateRow(
                        face=face,
                        code=self._code_labels[key],
                        count=count,
                        ratio_in_face=count / face_total if face_total > 0 else 0.0,
                    )
                )
        return rows

    def alarm_rows(self) -> List[AlarmRow]:
        """Rows of the AlarmRate report in ascending window order."""
        rows: List[AlarmRow] = []
        for start in sorted(self._window_counts):
            count = self._window_counts[start]
            rows.append(
                AlarmRow(
                    window_start=start,
                    window_end=start + self.alarm_window,
                    count=count,
                    threshold=self.alarm_threshold,
                    alarm=self.is_alarm(count),
                )
            )
        return rows

    def get_metrics(self) -> dict:
        """Get aggregator metrics for observability."""
        return {
            "total": self.total,
            "faces": {face.value: total for face, total in self._face_totals.items()},
            "codes": len(self._code_labels),
            "windows": len(self._window_counts),
            "alarm_windows": sum(
                1 for count in self._window_counts.values() if self.is_alarm(count)
            ),
        }
