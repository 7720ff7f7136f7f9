"""Decision engine and the AdmissionReview surface around it."""

from .engine import AdmissionEngine, Decision, DecisionRequest, Intent

__all__ = ["AdmissionEngine", "Decision", "DecisionRequest", "Intent"]
