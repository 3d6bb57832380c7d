"""
CSV Loader Tests
================

Tests for delimiter detection, header aliases and row skipping.
"""

import asyncio
from datetime import datetime

import pytest

from defect_analyzer.ingest import (
    LoaderMetrics,
    detect_delimiter,
    load_records,
    merge_sources,
    parse_timestamp,
)
from defect_analyzer.models.record import Face


def collect(source):
    async def _collect():
        return [record async for record in source]

    return asyncio.run(_collect())


class TestDetectDelimiter:
    """Tests for detect_delimiter()."""

    @pytest.mark.parametrize(
        "line, expected",
        [
            ("LotNo,Timestamp,X", ","),
            ("LotNo\tTimestamp\tX", "\t"),
            ("LotNo;Timestamp;X", ";"),
            ("LotNo|Timestamp|X", "|"),
            ("LotNo", ","),
        ],
    )
    def test_most_frequent_candidate(self, line, expected):
        """Verify the most frequent candidate is picked."""
        assert detect_delimiter(line) == expected

    def test_tie_prefers_earlier_candidate(self):
        """Verify ties resolve in candidate order."""
        assert detect_delimiter("a;b,c") == ","


class TestParseTimestamp:
    """Tests for parse_timestamp()."""

    @pytest.mark.parametrize(
        "value",
        ["20240101-123001", "2024-01-01T12:30:01", "2024-01-01 12:30:01", "2024/01/01 12:30:01"],
    )
    def test_supported_formats(self, value):
        """Verify every supported format parses to the same instant."""
        assert parse_timestamp(value) == datetime(2024, 1, 1, 12, 30, 1)

    @pytest.mark.parametrize("value", [
        "",
        "20240101-1230XX",
        "yesterday",
        "2024-01-01T12:30:01+09:00",
        "2024-01-01T12:30:01Z",
    ])
    def test_invalid(self, value):
        """Verify unparseable values raise ValueError."""
        with pytest.raises(ValueError):
            parse_timestamp(value)


class TestLoadRecords:
    """Tests for load_records()."""

    def test_streams_records_and_skips_bad_lines(self, write_csv):
        """Verify a broken timestamp row is skipped and counted."""
        path = write_csv("test.csv", [
            "LotNo,Timestamp,EquipmentCode,LedgerNo,X,Y,Severity,CodeRaw",
            "24081234,20240101-123001,NG1ISL001,LD01,10.0,11.0,5,01_Kizu",
            "24081234,20240101-1230XX,NG1ISL001,LD01,10.0,11.0,5,01_Kizu",
            "24081234,20240101-123002,NG1ISL001,LD01,12.0,13.0,7,02_Ibutsu",
        ])
        metrics = LoaderMetrics()

        records = collect(load_records(path, metrics=metrics))

        assert len(records) == 2
        assert records[0].code_raw == "01_Kizu"
        assert records[0].face == Face.UNSPECIFIED
        assert records[1].severity == 7
        assert metrics.to_dict() == {
            "files_read": 1,
            "rows_read": 3,
            "rows_yielded": 2,
            "rows_skipped": 1,
        }

    def test_offset_timestamps_are_skipped(self, write_csv):
        """Verify a row with a UTC offset is skipped like any bad timestamp."""
        path = write_csv("offset.csv", [
            "LotNo,Timestamp,X,Y",
            "L1,2024-01-01T12:00:00+09:00,1,1",
            "L1,2024-01-01T12:00:05,2,2",
        ])
        metrics = LoaderMetrics()

        records = collect(load_records(path, metrics=metrics))

        assert [record.timestamp for record in records] == [datetime(2024, 1, 1, 12, 0, 5)]
        assert records[0].timestamp.tzinfo is None
        assert metrics.rows_skipped == 1

    def test_undecodable_bytes_are_replaced(self, tmp_path):
        """Verify invalid UTF-8 keeps the row and the rest of the file."""
        path = tmp_path / "binary.csv"
        path.write_bytes(
            b"LotNo,Timestamp,CodeRaw\n"
            b"L1,20240101-000000,01_Kizu\n"
            b"L1,20240101-000001,\xff\xfeKizu\n"
            b"L1,20240101-000002,02_Ibutsu\n"
        )

        records = collect(load_records(path))

        assert len(records) == 3
        assert records[1].code_raw == "\ufffd\ufffdKizu"
        assert records[2].code_raw == "02_Ibutsu"

    def test_aliases_delimiter_and_extras(self, write_csv):
        """Verify alias headers, semicolons, BOM and unmapped columns."""
        path = write_csv("alias.csv", [
            " lot ; ymd-hms ;IC;LD;Side;PosX;PosY;Rank;NgCode;Area",
            "L1;2024/01/01 08:00:00;EQ1;LD9;表;1.5;-2;3;01_Kizu;0.25",
        ], encoding="utf-8-sig")

        records = collect(load_records(path))

        assert len(records) == 1
        record = records[0]
        assert record.lot_no == "L1"
        assert record.timestamp == datetime(2024, 1, 1, 8, 0, 0)
        assert record.equipment_code == "EQ1"
        assert record.ledger_no == "LD9"
        assert record.face == Face.FRONT
        assert (record.x, record.y, record.severity) == (1.5, -2.0, 3)
        assert record.extras == {"Area": "0.25"}

    def test_empty_numbers_default_to_zero(self, write_csv):
        """Verify empty X, Y and Severity become 0."""
        path = write_csv("empty.csv", [
            "LotNo,Timestamp,X,Y,Severity,CodeRaw,Face",
            "L1,20240101-000000,,,,01_Kizu,back",
        ])

        record = collect(load_records(path))[0]

        assert (record.x, record.y, record.severity) == (0.0, 0.0, 0)
        assert record.face == Face.BACK

    @pytest.mark.parametrize("x, severity", [("abc", "1"), ("nan", "1"), ("1", "-3"), ("1", "2.5")])
    def test_bad_numbers_are_skipped(self, write_csv, x, severity):
        """Verify non-numeric or out-of-range values skip the row."""
        path = write_csv("bad.csv", [
            "LotNo,Timestamp,X,Y,Severity",
            f"L1,20240101-000000,{x},1,{severity}",
        ])

        assert collect(load_records(path)) == []

    def test_missing_file_yields_nothing(self, tmp_path):
        """Verify a missing file is not an error."""
        assert collect(load_records(tmp_path / "nope.csv")) == []

    def test_header_only_and_blank_rows(self, write_csv):
        """Verify blank lines are ignored."""
        path = write_csv("blank.csv", ["LotNo,Timestamp", "", "L1,20240101-000000", ""])

        assert len(collect(load_records(path))) == 1

    def test_quoted_values(self, write_csv):
        """Verify quoted fields containing the delimiter."""
        path = write_csv("quoted.csv", [
            "LotNo,Timestamp,CodeRaw",
            'L1,20240101-000000,"A,B"',
        ])

        assert collect(load_records(path))[0].code_raw == "A,B"


class TestMergeSources:
    """Tests for merge_sources()."""

    def test_concatenates_in_file_order(self, write_csv):
        """Verify files are read one after another without re-sorting."""
        second = write_csv("b.csv", ["LotNo,Timestamp", "B1,20240101-000000"])
        first = write_csv("a.csv", ["LotNo,Timestamp", "A1,20240102-000000", "A2,20240102-000001"])
        metrics = LoaderMetrics()

        records = collect(merge_sources([first, second], metrics=metrics, yield_every=1))

        assert [record.lot_no for record in records] == ["A1", "A2", "B1"]
        assert metrics.files_read == 2
