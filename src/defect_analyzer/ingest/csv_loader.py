"""
CSV Loader
==========

Streams InspectionRecords out of vendor CSV exports.

Header Handling:
    - Delimiter is detected from the header line: the candidate occurring
      most often wins, earlier candidates win ties, "," when none occurs
    - A UTF-8 byte-order mark is stripped, names and values are trimmed
    - Names are matched case-insensitively against HEADER_ALIASES
    - Columns without an alias are carried in InspectionRecord.extras

Row Handling:
    - Timestamp formats are tried in TIMESTAMP_FORMATS order, then ISO-8601;
      values with a UTC offset are rejected
    - Undecodable bytes are replaced, the row is kept
    - Empty X, Y and Severity default to 0
    - A row that fails conversion is logged as WARNING and skipped

Concurrency:
    File reads are synchronous; the loader hands control back to the event
    loop every `yield_every` rows so a cancel request is seen promptly.

Example:
    metrics = LoaderMetrics()
    async for record in load_records("lot/a.csv", metrics=metrics):
        print(record)
    print(metrics.to_dict())
"""

import asyncio
import csv
import logging
import math
from contextlib import aclosing
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from defect_analyzer.models.record import Face, InspectionRecord


logger = logging.getLogger(__name__)


DEFAULT_DELIMITERS: Tuple[str, ...] = (",", "\t", ";", "|")

HEADER_ALIASES: Dict[str, Tuple[str, ...]] = {
    "lot_no": ("LotNo", "Lot", "Lot_No", "Lot Number"),
    "timestamp": ("Timestamp", "Time", "DateTime", "YMD-HMS"),
    "equipment_code": ("EquipmentCode", "IC", "Eq", "Equipment"),
    "ledger_no": ("LedgerNo", "Ledger", "LD"),
    "face": ("Face", "Side", "Surface"),
    "x": ("X", "PosX"),
    "y": ("Y", "PosY"),
    "severity": ("Severity", "Sev", "Rank"),
    "code_raw": ("CodeRaw", "Code", "Defect", "NgCode"),
}

# ISO-8601 is tried between the first and the second format
TIMESTAMP_FORMATS: Tuple[str, ...] = ("%Y%m%d-%H%M%S", "%Y/%m/%d %H:%M:%S")

_ALIAS_LOOKUP: Dict[str, str] = {
    alias.casefold(): field_name
    for field_name, aliases in HEADER_ALIASES.items()
    for alias in aliases
}

_BOM = "\ufeff"


class LoaderMetrics:
    """Metrics for CSV loading observability."""

    __slots__ = (
        "files_read",
        "rows_read",
        "rows_yielded",
        "rows_skipped",
    )

    def __init__(self) -> None:
        self.files_read: int = 0
        self.rows_read: int = 0
        self.rows_yielded: int = 0
        self.rows_skipped: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "files_read": self.files_read,
            "rows_read": self.rows_read,
            "rows_yielded": self.rows_yielded,
            "rows_skipped": self.rows_skipped,
        }


# =============================================================================
# Header / Value Parsing
# =============================================================================

def detect_delimiter(header_line: str, candidates: Sequence[str] = DEFAULT_DELIMITERS) -> str:
    """
    Pick the delimiter of a file from its header line.

    Args:
        header_line: First line of the file
        candidates: Delimiter candidates in tie-break order

    Returns:
        Most frequent candidate, or "," when none occurs
    """
    best, best_count = ",", 0
    for candidate in candidates:
        count = header_line.count(candidate)
        if count > best_count:
            best, best_count = candidate, count
    return best


def map_header(names: Iterable[str]) -> Tuple[Dict[str, int], Dict[str, int]]:
    """
    Map header names onto record fields.

    Returns:
        (field name -> column index, extra column name -> column index).
        The first column wins when two names map to the same field.
    """
    columns: Dict[str, int] = {}
    extras: Dict[str, int] = {}
    for index, raw in enumerate(names):
        name = raw.replace(_BOM, "").strip()
        if not name:
            continue
        field_name = _ALIAS_LOOKUP.get(name.casefold())
        if field_name is None:
            extras.setdefault(name, index)
        else:
            columns.setdefault(field_name, index)
    return columns, extras


def parse_timestamp(value: str) -> datetime:
    """
    Parse a vendor timestamp.

    Raises:
        ValueError: No supported format matched, or the value carries a
            UTC offset
    """
    text = value.strip()
    if not text:
        raise ValueError("empty timestamp")

    try:
        return datetime.strptime(text, TIMESTAMP_FORMATS[0])
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        pass
    else:
        # Records carry naive local time
        if parsed.tzinfo is not None:
            raise ValueError(f"timestamp with UTC offset not supported: {text!r}")
        return parsed
    for fmt in TIMESTAMP_FORMATS[1:]:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    raise ValueError(f"unsupported timestamp {text!r}")


def _parse_coordinate(name: str, value: str) -> float:
    if not value:
        return 0.0
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"{name} is not finite: {value!r}")
    return number


def _parse_severity(value: str) -> int:
    if not value:
        return 0
    severity = int(value)
    if severity < 0:
        raise ValueError(f"negative severity: {value!r}")
    return severity


def _to_record(row: List[str], columns: Dict[str, int], extras: Dict[str, int]) -> InspectionRecord:
    def cell(index: int) -> str:
        return row[index].strip() if index < len(row) else ""

    values = {name: cell(index) for name, index in columns.items()}
    return InspectionRecord(
        lot_no=values.get("lot_no", ""),
        timestamp=parse_timestamp(values.get("timestamp", "")),
        equipment_code=values.get("equipment_code", ""),
        ledger_no=values.get("ledger_no", ""),
        x=_parse_coordinate("X", values.get("x", "")),
        y=_parse_coordinate("Y", values.get("y", "")),
        severity=_parse_severity(values.get("severity", "")),
        code_raw=values.get("code_raw", ""),
        face=Face.parse(values.get("face")),
        extras={name: cell(index) for name, index in extras.items()},
    )


# =============================================================================
# Streaming
# =============================================================================

async def load_records(
    path: Union[str, Path],
    encoding: str = "utf-8-sig",
    delimiters: Sequence[str] = DEFAULT_DELIMITERS,
    yield_every: int = 500,
    metrics: Optional[LoaderMetrics] = None,
) -> AsyncIterator[InspectionRecord]:
    """
    Stream the records of one CSV file in file order.

    A missing file yields nothing. Undecodable bytes are replaced with
    U+FFFD; other I/O errors propagate.

    Args:
        path: CSV file
        encoding: Source encoding
        delimiters: Delimiter candidates
        yield_every: Rows between event-loop yields
        metrics: Optional shared metrics

    Yields:
        InspectionRecord per convertible row
    """
    path = Path(path)
    if yield_every < 1:
        raise ValueError("yield_every must be >= 1")
    if metrics is None:
        metrics = LoaderMetrics()

    if not path.is_file():
        logger.warning(f"CSV not found, skipped: {path}")
        return

    logger.info(f"Loading CSV: {path}")
    skipped = 0
    with open(path, "r", encoding=encoding, errors="replace", newline="") as f:
        header_line = f.readline()
        if not header_line:
            logger.info(f"Empty CSV: {path}")
            return

        delimiter = detect_delimiter(header_line, delimiters)
        logger.info(f"Delimiter for {path.name}: {delimiter!r}")

        header = next(csv.reader([header_line], delimiter=delimiter), [])
        columns, extras = map_header(header)
        if "timestamp" not in columns:
            logger.warning(f"No timestamp column in {path}, file skipped")
            return

        metrics.files_read += 1
        reader = csv.reader(f, delimiter=delimiter)
        for line_no, row in enumerate(reader, start=2):
            if not any(value.strip() for value in row):
                continue

            metrics.rows_read += 1
            try:
                record = _to_record(row, columns, extras)
            except ValueError as e:
                skipped += 1
                metrics.rows_skipped += 1
                logger.warning(f"Row skipped {path.name}:{line_no}: {e}")
            else:
                metrics.rows_yielded += 1
                yield record

            if metrics.rows_read % yield_every == 0:
                await asyncio.sleep(0)

    if skipped:
        logger.warning(f"{skipped} rows skipped in {path}")
    logger.info(f"Finished CSV: {path}")


async def merge_sources(
    paths: Iterable[Union[str, Path]],
    **kwargs,
) -> AsyncIterator[InspectionRecord]:
    """
    Concatenate the record streams of several files.

    Files are read one after another in the given order; records are not
    re-sorted across files.

    Args:
        paths: CSV files
        **kwargs: Passed to load_records (encoding, delimiters, metrics, ...)
    """
    for path in paths:
        async with aclosing(load_records(path, **kwargs)) as records:
            async for record in records:
                yield record
