"""
Daily Trend Report
==================

Per-day counts of selected defect codes.

A record counts for a selector when, after the Condition Filter accepts it,
its raw code equals the selector (case-insensitive) or its key part equals
the selector. Output:

    Trend_{IC}_{Lot}_{Range}_{yyyyMMddHHmmss}.csv

    Date,<selector 1>,<selector 2>,...
    2024-01-01,3,0,...

Every day with an accepted record is listed; selectors without a count on
that day are written as 0.
"""

import asyncio
import csv
import logging
from contextlib import aclosing
from datetime import date, datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from defect_analyzer.analysis.analyzer import RecordSource, iterate_records
from defect_analyzer.analysis.filter import match
from defect_analyzer.codes.codebook import code_key
from defect_analyzer.errors import ReportWriteError
from defect_analyzer.models.conditions import ConditionSet
from defect_analyzer.reporting.writer import (
    LINE_TERMINATOR,
    OUTPUT_ENCODING,
    range_label,
    sanitize_label,
)


logger = logging.getLogger(__name__)


class TrendAggregator:
    """
    Counts selected codes per calendar day and writes the trend report.

    Example:
        trend = TrendAggregator()
        path = await trend.write_daily_trend(records, conditions, ["01_Kizu"], out_dir)
    """

    async def write_daily_trend(
        self,
        source: RecordSource,
        conditions: ConditionSet,
        selectors: Sequence[str],
        output_dir: Union[str, Path],
        cancel_event: Optional[asyncio.Event] = None,
        started_at: Optional[datetime] = None,
    ) -> Optional[Path]:
        """
        Write the daily trend report.

        Args:
            source: Ordered records, sync or async iterable
            conditions: Filters of the run
            selectors: Codes to trend, already normalized
            output_dir: Directory the report is written to
            cancel_event: Cooperative cancel signal
            started_at: Timestamp used in the file name (default: now)

        Returns:
            Report path, or None when there was nothing to trend or the
            run was canceled

        Raises:
            ReportWriteError: Directory or file could not be written
        """
        targets = _unique(selectors)
        if not targets:
            logger.warning("No trend codes selected, skipping trend report")
            return None

        lookup = {target.casefold(): target for target in targets}
        daily: Dict[date, Dict[str, int]] = {}

        async with aclosing(iterate_records(source)) as records:
            async for record in records:
                if cancel_event is not None and cancel_event.is_set():
                    logger.info("Trend report canceled")
                    return None
                if not match(record, conditions):
                    continue

                bucket = daily.setdefault(record.timestamp.date(), {})
                target = lookup.get((record.code_raw or "").strip().casefold())
                if target is None:
                    key = code_key(record.code_raw)
                    target = lookup.get(key.casefold()) if key else None
                if target is not None:
                    bucket[target] = bucket.get(target, 0) + 1

        path = self._report_path(Path(output_dir), conditions, started_at or datetime.now())
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding=OUTPUT_ENCODING, newline="") as f:
                writer = csv.writer(f, lineterminator=LINE_TERMINATOR)
                writer.writerow(["Date", *targets])
                for day in sorted(daily):
                    counts = daily[day]
                    writer.writerow(
                        [day.strftime("%Y-%m-%d"), *(str(counts.get(t, 0)) for t in targets)]
                    )
        except OSError as e:
            raise ReportWriteError(path, e) from e

        logger.info(f"Trend report: {path} ({len(daily)} days, {len(targets)} codes)")
        return path

    @staticmethod
    def _report_path(output_dir: Path, conditions: ConditionSet, started_at: datetime) -> Path:
        ic = sanitize_label(conditions.ic) if conditions.ic and conditions.ic.strip() else "IC"
        lot = sanitize_label(conditions.lot_no) if conditions.lot_no and conditions.lot_no.strip() else "ALL"
        label = range_label(conditions.time_from, conditions.time_to) or "ALL"
        return output_dir / f"Trend_{ic}_{lot}_{label}_{started_at:%Y%m%d%H%M%S}.csv"


def _unique(selectors: Sequence[str]) -> List[str]:
    result: List[str] = []
    seen = set()
    for selector in selectors:
        value = (selector or "").strip()
        if value and value.casefold() not in seen:
            seen.add(value.casefold())
            result.append(value)
    return result
