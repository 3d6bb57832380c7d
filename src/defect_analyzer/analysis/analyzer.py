"""
Analyzer
========

Single-pass streaming analysis run.

Pipeline (per record, strictly in source order):
    source -> Condition Filter -> {OnlineClusterer, WindowedAggregator}
           -> Cluster report row

At end-of-stream the Aggregate and AlarmRate reports are rendered from the
aggregator state.

Concurrency:
    The run suspends only while awaiting the next record from the source.
    A cancel event is checked at the top of the per-record loop; once set,
    no further records are consumed and the result is CANCELED.

Resources:
    Report files are opened on the first accepted record (or at
    end-of-stream when nothing matched) and are closed on every exit path,
    including task cancellation. The source is closed when the run stops
    early.

Errors:
    - ConditionValidationError is raised before anything is read
    - I/O failures end the run with outcome FAILED (CANCELED if the cancel
      event is already set); partial files are left in place
"""

import asyncio
import logging
from contextlib import aclosing
from datetime import datetime
from pathlib import Path
from typing import AsyncIterable, AsyncIterator, Iterable, Optional, Union

from defect_analyzer.analysis.aggregator import WindowedAggregator
from defect_analyzer.analysis.clusterer import OnlineClusterer
from defect_analyzer.analysis.filter import match
from defect_analyzer.errors import ReportWriteError
from defect_analyzer.models.conditions import ConditionSet
from defect_analyzer.models.record import InspectionRecord
from defect_analyzer.models.reports import AnalysisResult, RunOutcome
from defect_analyzer.reporting.writer import AGGREGATE, ALARM_RATE, CLUSTER, ReportWriter


logger = logging.getLogger(__name__)


RecordSource = Union[Iterable[InspectionRecord], AsyncIterable[InspectionRecord]]


async def iterate_records(source: RecordSource) -> AsyncIterator[InspectionRecord]:
    """Adapt a sync or async record source to an async iterator."""
    if hasattr(source, "__aiter__"):
        iterator = source.__aiter__()
        try:
            async for record in iterator:
                yield record
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()
    else:
        for record in source:
            yield record


def _is_canceled(cancel_event: Optional[asyncio.Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()


class Analyzer:
    """
    Runs the streaming analysis and writes the three reports.

    Each call to `run()` builds fresh clusterer, aggregator and writer state;
    nothing is shared between runs.

    Attributes:
        prune_every: Full anchor prune cadence, in accepted records

    Example:
        analyzer = Analyzer()
        cancel = asyncio.Event()

        result = await analyzer.run(records, conditions, "out/exports", cancel)
        if result.outcome == RunOutcome.SUCCEEDED:
            print(result.cluster_path)
    """

    def __init__(self, prune_every: int = 10000) -> None:
        if prune_every < 1:
            raise ValueError("prune_every must be >= 1")
        self.prune_every = prune_every

    async def run(
        self,
        source: RecordSource,
        conditions: ConditionSet,
        output_dir: Union[str, Path],
        cancel_event: Optional[asyncio.Event] = None,
        started_at: Optional[datetime] = None,
    ) -> AnalysisResult:
        """
        Run one analysis over a record stream.

        Args:
            source: Ordered records, sync or async iterable
            conditions: Filters and run parameters
            output_dir: Directory the reports are written to
            cancel_event: Cooperative cancel signal
            started_at: Run start used in report names (default: now)

        Returns:
            AnalysisResult with outcome, report paths and counts

        Raises:
            ConditionValidationError: Conditions are invalid; nothing was read
        """
        conditions.ensure_valid()

        clusterer = OnlineClusterer(conditions.cluster_radius, conditions.cluster_time_window)
        aggregator = WindowedAggregator(conditions.alarm_window, conditions.alarm_threshold)
        writer = ReportWriter(output_dir, conditions, started_at=started_at)

        records_seen = 0
        canceled = False

        logger.info(
            f"Analysis started: radius={conditions.cluster_radius}, "
            f"cluster_window={conditions.cluster_time_window}, "
            f"alarm_window={conditions.alarm_window}, "
            f"threshold={conditions.alarm_threshold}"
        )

        def result(outcome: RunOutcome, error: Optional[ReportWriteError] = None) -> AnalysisResult:
            metrics = aggregator.get_metrics()
            return AnalysisResult(
                outcome=outcome,
                cluster_path=writer.paths.get(CLUSTER),
                aggregate_path=writer.paths.get(AGGREGATE),
                alarm_path=writer.paths.get(ALARM_RATE),
                records_seen=records_seen,
                records_matched=aggregator.total,
                clusters=clusterer.clusters_created,
                alarm_windows=metrics["alarm_windows"],
                error=str(error) if error else None,
                error_path=error.path if error else None,
            )

        try:
            with writer:
                async with aclosing(iterate_records(source)) as records:
                    async for record in records:
                        if _is_canceled(cancel_event):
                            canceled = True
                            break

                        records_seen += 1
                        if not match(record, conditions):
                            continue

                        if not writer.is_open:
                            writer.open(record)

                        cluster_id = clusterer.assign_record(record)
                        aggregator.add(record)
                        writer.write_cluster_row(record, cluster_id)

                        # Ids match the lazy-only path only for time-ordered input
                        if aggregator.total % self.prune_every == 0:
                            clusterer.prune(record.timestamp)

                if not canceled:
                    if not writer.is_open:
                        writer.open(None)
                    writer.write_aggregate(aggregator.aggregate_rows())
                    writer.write_alarms(aggregator.alarm_rows())

        except ReportWriteError as e:
            if _is_canceled(cancel_event):
                logger.info(f"Analysis canceled after {records_seen} records (pending write error: {e})")
                return result(RunOutcome.CANCELED)
            logger.error(f"Analysis failed: {e}")
            return result(RunOutcome.FAILED, e)

        if canceled:
            logger.info(
                f"Analysis canceled after {records_seen} records "
                f"({aggregator.total} matched)"
            )
            return result(RunOutcome.CANCELED)

        outcome = result(RunOutcome.SUCCEEDED)
        logger.info(
            f"Analysis finished: seen={outcome.records_seen}, "
            f"matched={outcome.records_matched}, clusters={outcome.clusters}, "
            f"alarm_windows={outcome.alarm_windows}"
        )
        logger.info(
            f"Aggregate: {outcome.aggregate_path} Cluster: {outcome.cluster_path} "
            f"AlarmRate: {outcome.alarm_path}"
        )
        return outcome
