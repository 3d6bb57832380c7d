"""
Windowed Aggregator Tests
=========================

Tests for face x code counts, ratios and alarm buckets.
"""

from datetime import datetime, timedelta

import pytest

from defect_analyzer.analysis.aggregator import WindowedAggregator, window_start
from defect_analyzer.models.record import Face


MINUTE = timedelta(seconds=60)


class TestWindowStart:
    """Tests for fixed window alignment."""

    def test_aligned_to_window(self):
        """Verify buckets start on whole multiples of the window."""
        ts = datetime(2024, 1, 1, 12, 0, 45)

        assert window_start(ts, MINUTE) == datetime(2024, 1, 1, 12, 0, 0)
        assert window_start(ts, timedelta(minutes=5)) == datetime(2024, 1, 1, 12, 0, 0)
        assert window_start(datetime(2024, 1, 1, 12, 7, 0), timedelta(minutes=5)) == datetime(
            2024, 1, 1, 12, 5, 0
        )

    def test_boundary_belongs_to_next_window(self):
        """Verify a timestamp on a boundary opens the next window."""
        assert window_start(datetime(2024, 1, 1, 12, 1, 0), MINUTE) == datetime(2024, 1, 1, 12, 1, 0)


class TestAlarmRule:
    """Tests for the inclusive alarm threshold."""

    def test_two_records_in_one_bucket(self, make_record):
        """Verify Count=2 with threshold 2 raises the alarm."""
        aggregator = WindowedAggregator(MINUTE, alarm_threshold=2)
        aggregator.add(make_record(seconds=1))
        aggregator.add(make_record(seconds=30))

        rows = aggregator.alarm_rows()

        assert len(rows) == 1
        assert rows[0].count == 2
        assert rows[0].alarm == 1
        assert rows[0].window_end - rows[0].window_start == MINUTE

    def test_count_equal_to_threshold(self):
        """Verify Count == Threshold gives Alarm = 1."""
        assert WindowedAggregator(MINUTE, alarm_threshold=3).is_alarm(3) == 1

    def test_count_below_threshold(self):
        """Verify Count == Threshold - 1 gives Alarm = 0."""
        assert WindowedAggregator(MINUTE, alarm_threshold=3).is_alarm(2) == 0

    def test_zero_threshold_always_alarms(self, make_record):
        """Verify threshold 0 marks every non-empty window."""
        aggregator = WindowedAggregator(MINUTE, alarm_threshold=0)
        aggregator.add(make_record())

        assert [row.alarm for row in aggregator.alarm_rows()] == [1]

    def test_windows_ascending_and_non_empty_only(self, make_record):
        """Verify only occupied windows are emitted, in ascending order."""
        aggregator = WindowedAggregator(MINUTE, alarm_threshold=2)
        aggregator.add(make_record(seconds=600))
        aggregator.add(make_record(seconds=0))
        aggregator.add(make_record(seconds=10))

        rows = aggregator.alarm_rows()

        assert [row.count for row in rows] == [2, 1]
        assert rows[0].window_start < rows[1].window_start
        assert [row.alarm for row in rows] == [1, 0]
        assert aggregator.get_metrics()["alarm_windows"] == 1


class TestAggregateRows:
    """Tests for the face x code aggregate."""

    def test_ratios_sum_to_one_per_face(self, make_record):
        """Verify per-face ratios and counts are consistent."""
        aggregator = WindowedAggregator(MINUTE, alarm_threshold=10)
        codes = ["01_Kizu", "01_Kizu", "02_Ibutsu", "03_Yogore", "01_Kizu"]
        for code in codes:
            aggregator.add(make_record(code_raw=code, face=Face.FRONT))
        aggregator.add(make_record(code_raw="02_Ibutsu", face=Face.BACK))

        rows = aggregator.aggregate_rows()
        front = [row for row in rows if row.face == Face.FRONT]

        assert sum(row.count for row in front) == aggregator.face_total(Face.FRONT) == 5
        assert sum(row.ratio_in_face for row in front) == pytest.approx(1.0)
        back = [row for row in rows if row.face == Face.BACK]
        assert back[0].ratio_in_face == pytest.approx(1.0)

    def test_ordering(self, make_record):
        """Verify faces in declaration order and codes by descending count."""
        aggregator = WindowedAggregator(MINUTE, alarm_threshold=10)
        for code, face in [
            ("02_Ibutsu", Face.BACK),
            ("01_Kizu", Face.UNSPECIFIED),
            ("03_Yogore", Face.FRONT),
            ("01_Kizu", Face.FRONT),
            ("01_Kizu", Face.FRONT),
        ]:
            aggregator.add(make_record(code_raw=code, face=face))

        rows = [(row.face, row.code, row.count) for row in aggregator.aggregate_rows()]

        assert rows == [
            (Face.FRONT, "01_Kizu", 2),
            (Face.FRONT, "03_Yogore", 1),
            (Face.BACK, "02_Ibutsu", 1),
            (Face.UNSPECIFIED, "01_Kizu", 1),
        ]

    def test_ties_keep_first_seen_order(self, make_record):
        """Verify equal counts keep arrival order."""
        aggregator = WindowedAggregator(MINUTE, alarm_threshold=10)
        for code in ["B", "A", "C"]:
            aggregator.add(make_record(code_raw=code))

        assert [row.code for row in aggregator.aggregate_rows()] == ["B", "A", "C"]

    def test_codes_grouped_case_insensitively(self, make_record):
        """Verify spellings differing in case share one row with the first spelling."""
        aggregator = WindowedAggregator(MINUTE, alarm_threshold=10)
        aggregator.add(make_record(code_raw="01_Kizu"))
        aggregator.add(make_record(code_raw="01_KIZU"))

        rows = aggregator.aggregate_rows()

        assert len(rows) == 1
        assert rows[0].code == "01_Kizu"
        assert rows[0].count == 2

    def test_empty_aggregator(self):
        """Verify no rows without records."""
        aggregator = WindowedAggregator(MINUTE, alarm_threshold=10)

        assert aggregator.total == 0
        assert aggregator.aggregate_rows() == []
        assert aggregator.alarm_rows() == []

    def test_invalid_parameters(self):
        """Verify invalid window or threshold is rejected."""
        with pytest.raises(ValueError):
            WindowedAggregator(timedelta(0), alarm_threshold=1)
        with pytest.raises(ValueError):
            WindowedAggregator(MINUTE, alarm_threshold=-1)
