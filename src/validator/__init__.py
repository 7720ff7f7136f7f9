"""Validation rules producing aggregated policy violations."""

from .field import FieldPath, ViolationKind, ViolationRecord, aggregate
from .rules import VALIDATION_RULES, validate

__all__ = [
    "FieldPath",
    "VALIDATION_RULES",
    "ViolationKind",
    "ViolationRecord",
    "aggregate",
    "validate",
]
