"""
Shared types for the validator module.

This module exists to avoid circular imports between core.py and the
individual check modules.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorKind(Enum):
    """Which class of rule produced a validation error."""
    OUT_OF_RANGE = "out_of_range"
    MALFORMED = "malformed"
    MISSING = "missing"
    FEATURE_GATE_REQUIRED = "feature_gate_required"
    FEATURE_DEPENDENCY_UNMET = "feature_dependency_unmet"
    INCONSISTENT_SETTINGS = "inconsistent_settings"


@dataclass(frozen=True)
class ValidationError:
    """A single problem found in the run options."""
    check: str
    kind: ErrorKind
    message: str
    fix: str | None = None

    def __str__(self) -> str:
        return self.message
