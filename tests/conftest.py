"""
Test Configuration
==================

Pytest fixtures and test configuration for DefectAnalyzer.
"""

import csv
from datetime import datetime, timedelta

import pytest

from defect_analyzer.models.record import Face, InspectionRecord


BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)

CSV_HEADER = "LotNo,Timestamp,EquipmentCode,LedgerNo,Face,X,Y,Severity,CodeRaw"


@pytest.fixture
def base_time():
    """Provide the reference timestamp used by the record factory."""
    return BASE_TIME


@pytest.fixture
def make_record():
    """Provide a factory for InspectionRecords offset from BASE_TIME."""

    def _make(
        x: float = 0.0,
        y: float = 0.0,
        seconds: float = 0,
        code_raw: str = "01_Kizu",
        face: Face = Face.FRONT,
        lot_no: str = "24081234",
        equipment_code: str = "NG1ISL001",
        ledger_no: str = "LD01",
        severity: int = 5,
        timestamp: datetime = None,
    ) -> InspectionRecord:
        return InspectionRecord(
            lot_no=lot_no,
            timestamp=timestamp or BASE_TIME + timedelta(seconds=seconds),
            equipment_code=equipment_code,
            ledger_no=ledger_no,
            x=x,
            y=y,
            severity=severity,
            code_raw=code_raw,
            face=face,
        )

    return _make


@pytest.fixture
def write_csv(tmp_path):
    """Provide a helper writing CSV lines below tmp_path."""

    def _write(relative: str, lines, encoding: str = "utf-8") -> "Path":
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(lines) + "\n", encoding=encoding)
        return path

    return _write


@pytest.fixture
def read_report():
    """Provide a helper reading a report back as rows."""

    def _read(path):
        with open(path, "r", encoding="utf-8-sig", newline="") as f:
            return list(csv.reader(f))

    return _read
