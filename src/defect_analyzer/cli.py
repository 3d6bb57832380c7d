"""
Command Line Runner
===================

Scans an input root, streams the matching CSV exports through the analyzer
and writes the reports to <out>/exports.

Usage:
    defect-analyzer --root data --out out --ic NG1ISL001 --date 20240101
    defect-analyzer --root data --from 20240101 --to 20240107 --trend-codes "01_Kizu;Ibutsu"
    python -m defect_analyzer --config config.yaml --lot 24081234

Exit Codes:
    0    Analysis succeeded
    1    No input files found
    2    Invalid conditions
    3    Report output failed
    130  Canceled (Ctrl+C)
"""

import argparse
import asyncio
import logging
import signal
import sys
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import List, Optional

from defect_analyzer import config
from defect_analyzer.analysis import Analyzer, TrendAggregator
from defect_analyzer.codes import DefectCodeRepository, normalize_code_selectors, parse_code_selectors
from defect_analyzer.config import Settings, load_config, setup_logging
from defect_analyzer.errors import ConditionValidationError, ReportWriteError
from defect_analyzer.ingest import LoaderMetrics, PathScanner, merge_sources
from defect_analyzer.models import ConditionSet, RunOutcome


logger = logging.getLogger(__name__)


EXIT_OK = 0
EXIT_NO_INPUT = 1
EXIT_INVALID_CONDITIONS = 2
EXIT_FAILED = 3
EXIT_CANCELED = 130


def parse_date(value: str) -> date:
    """argparse type for yyyyMMdd or yyyy-MM-dd dates."""
    for fmt in ("%Y%m%d", "%Y-%m-%d"):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise argparse.ArgumentTypeError(f"invalid date {value!r}, expected yyyyMMdd or yyyy-MM-dd")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="defect-analyzer",
        description="Cluster, aggregate and alarm-rate analysis of inspection defect CSVs",
    )
    parser.add_argument("--config", type=str, default=None, help="Path to config.yaml")
    parser.add_argument("--root", type=str, default=None, help="Input root (default: paths.input_root)")
    parser.add_argument("--out", type=str, default=None, help="Output root (default: paths.output_root or .)")

    filters = parser.add_argument_group("conditions")
    filters.add_argument("--ic", type=str, default=None, help="Equipment (IC) code")
    filters.add_argument("--lot", type=str, default=None, help="Lot number")
    filters.add_argument("--date", type=parse_date, default=None, help="Single day (yyyyMMdd)")
    filters.add_argument("--from", dest="date_from", type=parse_date, default=None, help="First day, inclusive")
    filters.add_argument("--to", dest="date_to", type=parse_date, default=None, help="Last day, inclusive")
    filters.add_argument("--equipment", type=str, default=None, help="Secondary equipment code filter")
    filters.add_argument("--code-filter", type=str, default=None, help="Substring of the raw defect code")
    filters.add_argument("--severity-min", type=int, default=None, help="Minimum severity")

    params = parser.add_argument_group("run parameters")
    params.add_argument("--radius", type=float, default=None, help="Cluster radius r")
    params.add_argument("--cluster-window", type=float, default=None, help="Cluster time window in seconds")
    params.add_argument("--alarm-window", type=float, default=None, help="Alarm bucket width in seconds")
    params.add_argument("--alarm-threshold", type=int, default=None, help="Alarm threshold (inclusive)")

    trend = parser.add_argument_group("trend report")
    trend.add_argument("--codebook", type=str, default=None, help="Codebook file (default: paths.codebook_path)")
    trend.add_argument("--trend-codes", type=str, default=None, help="Codes to trend, ',' or ';' separated")

    parser.add_argument("--log-level", type=str, default=None, help="Log level override")
    return parser


def build_conditions(args: argparse.Namespace, settings: Settings) -> ConditionSet:
    """Map command line arguments onto a ConditionSet."""
    time_from: Optional[datetime] = None
    time_to: Optional[datetime] = None
    if args.date is not None:
        time_from = datetime.combine(args.date, time.min)
        time_to = datetime.combine(args.date, time.max)
    else:
        if args.date_from is not None:
            time_from = datetime.combine(args.date_from, time.min)
        if args.date_to is not None:
            time_to = datetime.combine(args.date_to, time.max)

    def seconds(value: Optional[float]) -> Optional[timedelta]:
        return timedelta(seconds=value) if value is not None else None

    return ConditionSet.from_analysis_config(
        settings.analysis,
        ic=args.ic,
        lot_no=args.lot,
        equipment_code=args.equipment,
        code_filter=args.code_filter,
        severity_min=args.severity_min,
        time_from=time_from,
        time_to=time_to,
        cluster_radius=args.radius,
        cluster_time_window=seconds(args.cluster_window),
        alarm_window=seconds(args.alarm_window),
        alarm_threshold=args.alarm_threshold,
    )


async def run(args: argparse.Namespace, settings: Settings) -> int:
    """
    Execute one command line run.

    Args:
        args: Parsed arguments
        settings: Loaded settings

    Returns:
        Process exit code
    """
    conditions = build_conditions(args, settings)
    try:
        conditions.ensure_valid()
    except ConditionValidationError as e:
        for name, messages in e.errors.items():
            for message in messages:
                logger.error(f"Invalid condition {name}: {message}")
        return EXIT_INVALID_CONDITIONS

    root = args.root or settings.paths.input_root
    if not root:
        logger.error("No input root given (--root or paths.input_root)")
        return EXIT_NO_INPUT

    files: List[Path] = list(PathScanner().enumerate(
        root,
        ic=args.ic,
        lot_no=args.lot,
        date=args.date,
        date_from=args.date_from,
        date_to=args.date_to,
    ))
    if not files:
        logger.warning(f"No CSV files found under {root}")
        return EXIT_NO_INPUT
    logger.info(f"Found {len(files)} CSV files under {root}")

    output_dir = Path(args.out or settings.paths.output_root or ".") / "exports"
    started_at = datetime.now()
    loader_options = {
        "encoding": settings.ingest.encoding,
        "delimiters": settings.ingest.delimiters,
        "yield_every": settings.ingest.yield_every,
    }

    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
        signal_hooked = True
    except (NotImplementedError, RuntimeError):
        logger.debug("SIGINT handler not supported on this platform")
        signal_hooked = False

    try:
        metrics = LoaderMetrics()
        analyzer = Analyzer(prune_every=settings.analysis.prune_every)
        result = await analyzer.run(
            merge_sources(files, metrics=metrics, **loader_options),
            conditions,
            output_dir,
            cancel_event=cancel_event,
            started_at=started_at,
        )
        logger.info(f"Loader metrics: {metrics.to_dict()}")

        if result.outcome == RunOutcome.CANCELED:
            logger.warning("Analysis canceled")
            return EXIT_CANCELED
        if result.outcome == RunOutcome.FAILED:
            logger.error(f"Analysis failed at {result.error_path}: {result.error}")
            return EXIT_FAILED

        selectors = parse_code_selectors(args.trend_codes)
        if selectors:
            codebook = args.codebook or settings.paths.codebook_path
            repository = DefectCodeRepository(codebook) if codebook else None
            try:
                trend_path = await TrendAggregator().write_daily_trend(
                    merge_sources(files, **loader_options),
                    conditions,
                    normalize_code_selectors(selectors, repository),
                    output_dir,
                    cancel_event=cancel_event,
                    started_at=started_at,
                )
            except ReportWriteError as e:
                logger.error(f"Trend report failed: {e}")
                return EXIT_FAILED
            if trend_path is None and cancel_event.is_set():
                logger.warning("Trend report canceled")
                return EXIT_CANCELED

        return EXIT_OK
    finally:
        if signal_hooked:
            loop.remove_signal_handler(signal.SIGINT)


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_config(args.config) if args.config else config.settings
    if args.log_level:
        settings.logging.level = args.log_level
    setup_logging(settings)

    sys.exit(asyncio.run(run(args, settings)))


if __name__ == "__main__":
    main()
