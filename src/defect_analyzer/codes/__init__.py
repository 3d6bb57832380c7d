"""
Codes Module
============

Defect codebook lookup and trend selector normalization.
"""

from defect_analyzer.codes.codebook import (
    DefectCode,
    DefectCodeRepository,
    code_key,
    normalize_code_selectors,
    parse_code_selectors,
    split_code,
)


__all__ = [
    "DefectCode",
    "DefectCodeRepository",
    "code_key",
    "normalize_code_selectors",
    "parse_code_selectors",
    "split_code",
]
