"""
Path Scanner
============

Finds the CSV exports below an input root.

Directory Layout:
    <root>/<IC>/<yyyyMMdd>/<Lot>/**/*.csv

Selection:
    - ic / lot_no: pick one directory on that level instead of all
    - date: pick one yyyyMMdd directory
    - date_from / date_to: inclusive filter on yyyyMMdd directory names,
      other names are skipped
    - a missing root yields nothing

Directories that cannot be listed are logged and skipped. Enumeration is
lazy and sorted by name on every level.
"""

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Iterator, List, Optional, Union


logger = logging.getLogger(__name__)


DATE_DIR_FORMAT = "%Y%m%d"


class PathScanner:
    """
    Lazy enumerator of input CSV files.

    Example:
        scanner = PathScanner()
        for path in scanner.enumerate("data", ic="NG1ISL001", date=date(2024, 1, 1)):
            print(path)
    """

    def __init__(self, suffix: str = ".csv") -> None:
        self.suffix = suffix.lower()

    def enumerate(
        self,
        root: Union[str, Path],
        ic: Optional[str] = None,
        lot_no: Optional[str] = None,
        date: Optional[date] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> Iterator[Path]:
        """
        Yield the CSV files matching the selection.

        Args:
            root: Input root directory
            ic: Equipment directory, all when None
            lot_no: Lot directory, all when None
            date: Single day; overrides date_from/date_to
            date_from: First day, inclusive
            date_to: Last day, inclusive

        Yields:
            CSV file paths
        """
        root = Path(root)
        if not root.is_dir():
            logger.warning(f"Input root not found: {root}")
            return

        for ic_dir in self._select(root, ic):
            for date_dir in self._date_dirs(ic_dir, date, date_from, date_to):
                for lot_dir in self._select(date_dir, lot_no):
                    yield from self._csv_files(lot_dir)

    def _select(self, parent: Path, name: Optional[str]) -> List[Path]:
        if name is not None and name.strip():
            path = parent / name.strip()
            return [path] if path.is_dir() else []
        return self._subdirs(parent)

    def _date_dirs(
        self,
        ic_dir: Path,
        day: Optional[date],
        date_from: Optional[date],
        date_to: Optional[date],
    ) -> Iterator[Path]:
        if day is not None:
            path = ic_dir / day.strftime(DATE_DIR_FORMAT)
            if path.is_dir():
                yield path
            return

        for path in self._subdirs(ic_dir):
            try:
                dir_date = datetime.strptime(path.name, DATE_DIR_FORMAT).date()
            except ValueError:
                continue
            if date_from is not None and dir_date < date_from:
                continue
            if date_to is not None and dir_date > date_to:
                continue
            yield path

    def _subdirs(self, parent: Path) -> List[Path]:
        try:
            return sorted(p for p in parent.iterdir() if p.is_dir())
        except OSError as e:
            logger.warning(f"Cannot list directory {parent}: {e}")
            return []

    def _csv_files(self, directory: Path) -> Iterator[Path]:
        try:
            entries = sorted(directory.iterdir())
        except OSError as e:
            logger.warning(f"Cannot list directory {directory}: {e}")
            return

        for entry in entries:
            if entry.is_dir():
                yield from self._csv_files(entry)
            elif entry.suffix.lower() == self.suffix and entry.is_file():
                yield entry
