"""Error taxonomy shared by the admission engine."""

from __future__ import annotations


class AdmissionError(Exception):
    """Base class for failures that deny a decision before or after rules run."""


class DecodeError(AdmissionError):
    """Raised when a submitted document does not match its declared kind."""


class UnsupportedKind(DecodeError):
    """Raised when the declared kind is not one the engine handles."""


class NamespaceLookupError(AdmissionError):
    """Raised when namespace metadata cannot be fetched."""


class PatchConflict(AdmissionError):
    """Raised when a synthesized patch breaks its structural invariants."""


class ConfigError(ValueError):
    """Raised when process configuration cannot be parsed."""


__all__ = [
    "AdmissionError",
    "ConfigError",
    "DecodeError",
    "NamespaceLookupError",
    "PatchConflict",
    "UnsupportedKind",
]
