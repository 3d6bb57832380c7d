"""
CLI Tests
=========

Tests for argument mapping and exit codes of the command line runner.
"""

import argparse
from datetime import date, datetime, time, timedelta

import pytest

from defect_analyzer.cli import build_conditions, build_parser, main, parse_date
from defect_analyzer.config import Settings


CSV_LINES = [
    "LotNo,Timestamp,EquipmentCode,LedgerNo,Face,X,Y,Severity,CodeRaw",
    "24081234,20240101-120000,NG1ISL001,LD01,Front,10,10,5,01_Kizu",
    "24081234,20240101-120001,NG1ISL001,LD01,Front,11,11,5,01_Kizu",
]


def exit_code(argv) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


class TestArguments:
    """Tests for argument parsing and condition mapping."""

    def test_parse_date(self):
        """Verify both accepted date spellings."""
        assert parse_date("20240101") == date(2024, 1, 1)
        assert parse_date("2024-01-01") == date(2024, 1, 1)
        with pytest.raises(argparse.ArgumentTypeError):
            parse_date("01/01/2024")

    def test_single_day_covers_whole_day(self):
        """Verify --date maps to an inclusive day range."""
        args = build_parser().parse_args(["--date", "20240101", "--ic", "NG1ISL001"])

        conditions = build_conditions(args, Settings())

        assert conditions.time_from == datetime(2024, 1, 1)
        assert conditions.time_to == datetime.combine(date(2024, 1, 1), time.max)
        assert conditions.ic == "NG1ISL001"

    def test_run_parameters_override_settings(self):
        """Verify run parameter flags override configured defaults."""
        args = build_parser().parse_args([
            "--radius", "5", "--cluster-window", "30",
            "--alarm-window", "120", "--alarm-threshold", "2",
        ])

        conditions = build_conditions(args, Settings())

        assert conditions.cluster_radius == 5.0
        assert conditions.cluster_time_window == timedelta(seconds=30)
        assert conditions.alarm_window == timedelta(seconds=120)
        assert conditions.alarm_threshold == 2


class TestMain:
    """Tests for main() exit codes."""

    def test_successful_run_with_trend(self, write_csv, tmp_path):
        """Verify reports and the trend file land in <out>/exports."""
        write_csv("input/NG1ISL001/20240101/24081234/a.csv", CSV_LINES)
        out = tmp_path / "out"

        code = exit_code([
            "--root", str(tmp_path / "input"),
            "--out", str(out),
            "--date", "20240101",
            "--trend-codes", "01_Kizu",
        ])

        assert code == 0
        produced = sorted(path.name.split("_")[0] for path in (out / "exports").iterdir())
        assert produced == ["Aggregate", "AlarmRate", "Cluster", "Trend"]

    def test_no_input_files(self, tmp_path):
        """Verify exit code 1 when nothing is found."""
        assert exit_code(["--root", str(tmp_path), "--out", str(tmp_path / "out")]) == 1

    def test_invalid_conditions(self, tmp_path):
        """Verify exit code 2 for invalid conditions."""
        assert exit_code(["--root", str(tmp_path), "--radius", "0"]) == 2
        assert exit_code([
            "--root", str(tmp_path), "--from", "20240102", "--to", "20240101",
        ]) == 2
