"""JSON Patch operations and the synthesizer that orders and checks them."""

from .operations import PatchOperation, add, remove, replace
from .synthesizer import check_parents, synthesize, to_json

__all__ = ["PatchOperation", "add", "check_parents", "remove", "replace", "synthesize", "to_json"]
