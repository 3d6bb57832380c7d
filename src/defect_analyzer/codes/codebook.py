"""
Defect Codebook
===============

Lookup of defect codes in their two-part "NN_Key" form.

Codebook File:
    One code per line, "NN_Key" (e.g. "01_Kizu"). Blank lines and lines
    starting with '#' are ignored. Malformed lines are logged and skipped.

Selector Normalization:
    Trend selectors are best-effort normalized against the codebook:
        - "01_Kizu"  -> kept as-is
        - "1" / "01" -> looked up by code number
        - "Kizu"     -> looked up by key (case-insensitive)
        - anything unresolved is kept unchanged
"""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DefectCode:
    """
    One codebook entry.

    Attributes:
        code: Numeric code
        key: Defect name
    """

    code: int
    key: str

    def __str__(self) -> str:
        return f"{self.code:02d}_{self.key}"


def split_code(raw: Optional[str]) -> Optional[Tuple[str, str]]:
    """
    Split a "NN_Key" code into its parts.

    Returns:
        (prefix, key), or None when the value has no two-part form
    """
    if raw is None:
        return None
    value = raw.strip()
    index = value.find("_")
    if index <= 0 or index == len(value) - 1:
        return None
    return value[:index], value[index + 1:]


def code_key(raw: Optional[str]) -> Optional[str]:
    """Key part of a raw code; a bare value is its own key."""
    if raw is None or not raw.strip():
        return None
    parts = split_code(raw)
    return parts[1] if parts else raw.strip()


class DefectCodeRepository:
    """
    Lazily loaded, thread-safe codebook.

    The file is read once, on the first lookup.

    Example:
        repository = DefectCodeRepository("data/codebook.txt")
        code = repository.get_by_key("kizu")
        print(code)  # 01_Kizu
    """

    def __init__(self, codebook_path: Union[str, Path]) -> None:
        self.codebook_path = Path(codebook_path)
        self._by_code: Dict[int, DefectCode] = {}
        self._by_key: Dict[str, DefectCode] = {}
        self._loaded: bool = False
        self._lock = threading.Lock()

    def __len__(self) -> int:
        self._ensure_loaded()
        return len(self._by_code)

    def get_by_code(self, code: int) -> Optional[DefectCode]:
        self._ensure_loaded()
        return self._by_code.get(code)

    def get_by_key(self, key: str) -> Optional[DefectCode]:
        self._ensure_loaded()
        return self._by_key.get(key.strip().casefold())

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        with self._lock:
            if self._loaded:
                return
            self._load()
            self._loaded = True

    def _load(self) -> None:
        self._by_code.clear()
        self._by_key.clear()

        if not self.codebook_path.exists():
            logger.warning(f"Codebook not found: {self.codebook_path}")
            return

        with open(self.codebook_path, "r", encoding="utf-8-sig") as f:
            for line_no, line in enumerate(f, start=1):
                value = line.strip()
                if not value or value.startswith("#"):
                    continue

                parts = split_code(value)
                if parts is None:
                    logger.warning(f"Malformed codebook line {line_no}: {value!r}")
                    continue
                try:
                    number = int(parts[0])
                except ValueError:
                    logger.warning(f"Invalid code number on line {line_no}: {value!r}")
                    continue

                entry = DefectCode(code=number, key=parts[1])
                self._by_code[number] = entry
                self._by_key[entry.key.casefold()] = entry

        logger.info(f"Codebook loaded: {len(self._by_code)} codes from {self.codebook_path}")


def parse_code_selectors(text: Optional[str]) -> List[str]:
    """Split a ',' / ';' separated selector list, dropping empty entries."""
    if not text:
        return []
    items = text.replace(";", ",").split(",")
    return [item.strip() for item in items if item.strip()]


def normalize_code_selectors(
    selectors: Iterable[str],
    repository: Optional[DefectCodeRepository] = None,
) -> List[str]:
    """
    Normalize trend selectors to "NN_Key" where the codebook allows.

    Args:
        selectors: Raw selectors
        repository: Codebook; without one selectors are only de-duplicated

    Returns:
        Selectors in input order, case-insensitive duplicates removed
    """
    normalized: List[str] = []
    seen = set()

    for selector in selectors:
        value = (selector or "").strip()
        if not value:
            continue

        if repository is not None and split_code(value) is None:
            entry = None
            if value.isdigit():
                entry = repository.get_by_code(int(value))
            if entry is None:
                entry = repository.get_by_key(value)
            if entry is not None:
                value = str(entry)
            else:
                logger.warning(f"Trend selector not in codebook, kept as-is: {value}")

        folded = value.casefold()
        if folded in seen:
            continue
        seen.add(folded)
        normalized.append(value)

    return normalized
