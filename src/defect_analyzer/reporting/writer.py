"""
Report Writer
=============

Writes the three CSV reports of an analysis run.

Reports:
    - Cluster:   one row per accepted record, in arrival order
    - Aggregate: one row per (face, code), grouped by face
    - AlarmRate: one row per non-empty alarm window, ascending

File Naming:
    {Kind}_{IC}_{Lot}_{Label}.csv

    IC and Lot come from the conditions, else from the first accepted record,
    else the fallbacks "IC" and "Lot". Label is "yyyyMMdd-yyyyMMdd" when the
    conditions carry a time range, else the run start "yyyyMMddHHmmss".

Two-Phase Open:
    The writer is created before the run but opens nothing. `open()` is
    called with the first accepted record (so names can use its values), or
    with None at end-of-stream when nothing matched; the reports then hold
    header rows only. `close()` releases all three files on every exit path.

Format:
    UTF-8 with byte-order mark, comma separated, CRLF line endings, header
    row first, standard CSV quoting.
"""

import csv
import logging
import re
from contextlib import ExitStack
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from defect_analyzer.errors import ReportWriteError
from defect_analyzer.models.conditions import ConditionSet
from defect_analyzer.models.record import InspectionRecord
from defect_analyzer.models.reports import AggregateRow, AlarmRow


logger = logging.getLogger(__name__)


CLUSTER = "Cluster"
AGGREGATE = "Aggregate"
ALARM_RATE = "AlarmRate"

CLUSTER_HEADER = [
    "LotNo", "Timestamp", "EquipmentCode", "LedgerNo", "Face",
    "X", "Y", "Severity", "CodeRaw", "ClusterId",
]
AGGREGATE_HEADER = ["Face", "Code", "Count", "RatioInFace"]
ALARM_HEADER = ["WindowStart", "WindowEnd", "Count", "Threshold", "Alarm"]

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
OUTPUT_ENCODING = "utf-8-sig"
LINE_TERMINATOR = "\r\n"

_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


# =============================================================================
# Formatting
# =============================================================================

def format_timestamp(value: datetime) -> str:
    return value.strftime(TIMESTAMP_FORMAT)


def format_number(value: float) -> str:
    """Render a float without a trailing '.0' for integral values."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def format_ratio(value: float) -> str:
    """Render a ratio with at most 5 decimals, trailing zeros trimmed."""
    text = f"{value:.5f}".rstrip("0").rstrip(".")
    return text or "0"


def range_label(time_from: Optional[datetime], time_to: Optional[datetime]) -> Optional[str]:
    """
    Date-range part of a report name.

    Returns:
        "yyyyMMdd-yyyyMMdd", or None when no bound is set
    """
    if time_from is None and time_to is None:
        return None
    start = time_from or time_to
    end = time_to or time_from
    return f"{start:%Y%m%d}-{end:%Y%m%d}"


def sanitize_label(value: str) -> str:
    return _INVALID_FILENAME_CHARS.sub("_", value.strip())


def resolve_labels(
    conditions: ConditionSet,
    first: Optional[InspectionRecord],
) -> Tuple[str, str]:
    """IC and Lot name parts: condition value, then first record, then fallback."""
    def pick(condition_value: Optional[str], record_value: Optional[str], fallback: str) -> str:
        for candidate in (condition_value, record_value):
            if candidate is not None and candidate.strip():
                return sanitize_label(candidate)
        return fallback

    ic = pick(conditions.ic, first.equipment_code if first else None, "IC")
    lot = pick(conditions.lot_no, first.lot_no if first else None, "Lot")
    return ic, lot


# =============================================================================
# Writer
# =============================================================================

class ReportWriter:
    """
    Owner of the three report files of one run.

    Attributes:
        output_dir: Directory the reports are written to
        paths: Kind -> file path, filled by open()

    Example:
        with ReportWriter(out_dir, conditions) as writer:
            for record, cluster_id in assigned:
                if not writer.is_open:
                    writer.open(record)
                writer.write_cluster_row(record, cluster_id)
            if not writer.is_open:
                writer.open(None)
            writer.write_aggregate(aggregator.aggregate_rows())
            writer.write_alarms(aggregator.alarm_rows())
    """

    def __init__(
        self,
        output_dir: Union[str, Path],
        conditions: ConditionSet,
        started_at: Optional[datetime] = None,
    ) -> None:
        self.output_dir = Path(output_dir)
        self.conditions = conditions
        self.started_at = started_at or datetime.now()

        self.paths: Dict[str, Path] = {}
        self._stack: Optional[ExitStack] = None
        self._writers: Dict[str, Any] = {}
        self._rows_written: Dict[str, int] = {}

    @property
    def is_open(self) -> bool:
        return self._stack is not None

    def __enter__(self) -> "ReportWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def report_path(self, kind: str, first: Optional[InspectionRecord]) -> Path:
        """Path a report of the given kind would be written to."""
        ic, lot = resolve_labels(self.conditions, first)
        label = range_label(self.conditions.time_from, self.conditions.time_to)
        if label is None:
            label = self.started_at.strftime("%Y%m%d%H%M%S")
        return self.output_dir / f"{kind}_{ic}_{lot}_{label}.csv"

    def open(self, first: Optional[InspectionRecord]) -> None:
        """
        Create the output directory and open the three reports.

        Args:
            first: First accepted record, or None when nothing matched

        Raises:
            ReportWriteError: Directory or file could not be created
        """
        if self.is_open:
            return

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ReportWriteError(self.output_dir, e) from e

        stack = ExitStack()
        self._stack = stack
        for kind in (CLUSTER, AGGREGATE, ALARM_RATE):
            path = self.report_path(kind, first)
            try:
                handle = stack.enter_context(
                    open(path, "w", encoding=OUTPUT_ENCODING, newline="")
                )
            except OSError as e:
                raise ReportWriteError(path, e) from e
            self.paths[kind] = path
            self._writers[kind] = csv.writer(handle, lineterminator=LINE_TERMINATOR)
            self._rows_written[kind] = 0

        self._write(CLUSTER, CLUSTER_HEADER, count=False)
        logger.info(f"Reports opened in {self.output_dir}")

    def write_cluster_row(self, record: InspectionRecord, cluster_id: int) -> None:
        self._write(CLUSTER, [
            record.lot_no,
            format_timestamp(record.timestamp),
            record.equipment_code,
            record.ledger_no,
            record.face.value,
            format_number(record.x),
            format_number(record.y),
            str(record.severity),
            record.code_raw,
            str(cluster_id),
        ])

    def write_aggregate(self, rows: Iterable[AggregateRow]) -> None:
        self._write(AGGREGATE, AGGREGATE_HEADER, count=False)
        for row in rows:
            self._write(AGGREGATE, [
                row.face.value,
                row.code,
                str(row.count),
                format_ratio(row.ratio_in_face),
            ])

    def write_alarms(self, rows: Iterable[AlarmRow]) -> None:
        self._write(ALARM_RATE, ALARM_HEADER, count=False)
        for row in rows:
            self._write(ALARM_RATE, [
                format_timestamp(row.window_start),
                format_timestamp(row.window_end),
                str(row.count),
                str(row.threshold),
                str(row.alarm),
            ])

    def rows_written(self, kind: str) -> int:
        """Data rows written to a report, header excluded."""
        return self._rows_written.get(kind, 0)

    def close(self) -> None:
        """
        Flush and close every open report.

        All files are closed even if one of them fails to flush.

        Raises:
            ReportWriteError: A report failed to flush
        """
        stack, self._stack = self._stack, None
        self._writers = {}
        if stack is None:
            return
        try:
            stack.close()
        except OSError as e:
            raise ReportWriteError(self.output_dir, e) from e

    def _write(self, kind: str, values: List[str], count: bool = True) -> None:
        writer = self._writers.get(kind)
        if writer is None:
            raise RuntimeError(f"{kind} report is not open")
        try:
            writer.writerow(values)
        except OSError as e:
            raise ReportWriteError(self.paths[kind], e) from e
        if count:
            self._rows_written[kind] += 1
