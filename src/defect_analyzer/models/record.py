"""
Inspection Record Model
=======================

Internal representation of one defect observation.

This module defines the typed InspectionRecord class that is used as the
interface between the ingestion layer and the analysis pipeline.

Design Rules:
    - This is the ONLY record format passed to the analysis stages
    - Records are immutable once created by the loader
    - Vendor-specific columns are carried in `extras` and never interpreted
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional


class Face(str, Enum):
    """
    Side of the inspected item a defect was found on.

    Attributes:
        FRONT: Front (top) face
        BACK: Back (bottom) face
        UNSPECIFIED: Vendor format does not report a face
    """

    FRONT = "Front"
    BACK = "Back"
    UNSPECIFIED = "Unspecified"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Face":
        """
        Map a vendor face label onto a Face.

        Unknown or empty labels map to UNSPECIFIED.
        """
        if value is None:
            return cls.UNSPECIFIED
        label = value.strip().casefold()
        if label in _FRONT_LABELS:
            return cls.FRONT
        if label in _BACK_LABELS:
            return cls.BACK
        return cls.UNSPECIFIED


_FRONT_LABELS = frozenset({"front", "f", "top", "表", "omote"})
_BACK_LABELS = frozenset({"back", "b", "bottom", "rear", "裏", "ura"})


@dataclass(frozen=True, slots=True)
class InspectionRecord:
    """
    One defect observation produced by the ingestion layer.

    Attributes:
        lot_no: Lot identifier
        timestamp: Local timestamp, second precision
        equipment_code: Inspection equipment (IC) code
        ledger_no: Ledger number
        x: X position, same unit as the cluster radius
        y: Y position, same unit as the cluster radius
        severity: Non-negative severity rank
        code_raw: Raw defect code, either "NN_Name" or a bare key
        face: Inspected face
        extras: Unmapped vendor columns (area, color channels, ...)
    """

    lot_no: str
    timestamp: datetime
    equipment_code: str
    ledger_no: str
    x: float
    y: float
    severity: int
    code_raw: str
    face: Face = Face.UNSPECIFIED
    extras: Dict[str, str] = field(default_factory=dict, compare=False, hash=False)

    def __repr__(self) -> str:
        """Compact repr without the vendor extras."""
        return (
            f"InspectionRecord(lot_no={self.lot_no!r}, "
            f"timestamp={self.timestamp:%Y-%m-%d %H:%M:%S}, "
            f"equipment_code={self.equipment_code!r}, "
            f"x={self.x}, y={self.y}, code_raw={self.code_raw!r})"
        )
