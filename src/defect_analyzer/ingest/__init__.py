"""
Ingest Module
=============

Input side of the analyzer: finding CSV exports and streaming records.

Components:
    - PathScanner: Lazy <root>/<IC>/<yyyyMMdd>/<Lot>/**/*.csv enumeration
    - load_records: Async record stream of one CSV file
    - merge_sources: Concatenated stream over several files
"""

from defect_analyzer.ingest.csv_loader import (
    HEADER_ALIASES,
    LoaderMetrics,
    detect_delimiter,
    load_records,
    merge_sources,
    parse_timestamp,
)
from defect_analyzer.ingest.path_scanner import PathScanner


__all__ = [
    "HEADER_ALIASES",
    "LoaderMetrics",
    "PathScanner",
    "detect_delimiter",
    "load_records",
    "merge_sources",
    "parse_timestamp",
]
