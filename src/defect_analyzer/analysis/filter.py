"""
Condition Filter
================

Pure predicate deciding whether a record is accepted by a run.

Rules (all ANDed, first mismatch rejects):
    - timestamp before time_from or after time_to (bounds inclusive)
    - ic set and not equal to the record's equipment code
    - lot_no set and not equal to the record's lot
    - equipment_code set and not equal to the record's equipment code
    - severity_min set and record severity below it
    - code_filter set and not a substring of the raw code

String comparisons are case-insensitive. Empty or whitespace-only filter
fields impose no constraint.
"""

from typing import Optional

from defect_analyzer.models.conditions import ConditionSet
from defect_analyzer.models.record import InspectionRecord


def _is_set(value: Optional[str]) -> bool:
    return value is not None and value.strip() != ""


def _equals_ignore_case(a: Optional[str], b: str) -> bool:
    return (a or "").casefold() == b.casefold()


def match(record: InspectionRecord, conditions: ConditionSet) -> bool:
    """
    Decide whether a record satisfies the conditions.

    Args:
        record: Record to test
        conditions: Filters of the run

    Returns:
        True if the record is accepted
    """
    if conditions.time_from is not None and record.timestamp < conditions.time_from:
        return False
    if conditions.time_to is not None and record.timestamp > conditions.time_to:
        return False
    if _is_set(conditions.ic) and not _equals_ignore_case(record.equipment_code, conditions.ic):
        return False
    if _is_set(conditions.lot_no) and not _equals_ignore_case(record.lot_no, conditions.lot_no):
        return False
    if _is_set(conditions.equipment_code) and not _equals_ignore_case(
        record.equipment_code, conditions.equipment_code
    ):
        return False
    if conditions.severity_min is not None and record.severity < conditions.severity_min:
        return False
    if _is_set(conditions.code_filter):
        if conditions.code_filter.casefold() not in (record.code_raw or "").casefold():
            return False
    return True
