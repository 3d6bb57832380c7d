"""
Errors
======

Exception types surfaced to callers of the analysis pipeline.

    - AnalyzerError: Base class for all analyzer failures
    - ConditionValidationError: Run conditions are invalid; nothing was read
    - ReportWriteError: An output directory or report file could not be written
"""

from pathlib import Path
from typing import Dict, List, Union


class AnalyzerError(Exception):
    """Base class for analyzer errors."""
    pass


class ConditionValidationError(AnalyzerError):
    """
    Raised when a ConditionSet fails validation.

    Attributes:
        errors: Field name -> list of messages
    """

    def __init__(self, errors: Dict[str, List[str]]) -> None:
        self.errors = {name: list(messages) for name, messages in errors.items()}
        summary = "; ".join(
            f"{name}: {', '.join(messages)}" for name, messages in self.errors.items()
        )
        super().__init__(f"Invalid conditions: {summary}")


class ReportWriteError(AnalyzerError):
    """
    Raised when a report directory or file cannot be created or written.

    Attributes:
        path: Offending file or directory
    """

    def __init__(self, path: Union[str, Path], cause: OSError) -> None:
        self.path = Path(path)
        self.cause = cause
        super().__init__(f"Failed to write {self.path}: {cause}")
