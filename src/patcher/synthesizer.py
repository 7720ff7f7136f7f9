from __future__ import annotations

import copy
import json
from typing import Any, Dict, List, Optional, Sequence

import jsonpatch
from jsonpointer import JsonPointerException, resolve_pointer

from src.common.errors import PatchConflict
from src.common.pointer import Address

from .operations import REMOVE, PatchOperation

_MISSING = object()


def check_parents(ops: Sequence[PatchOperation], source: Dict[str, Any]) -> Dict[str, Any]:
    """Replay ``ops`` over a copy of ``source`` and return the patched document.

    Every operation must address a parent that either exists in ``source`` or
    was created by an earlier operation, appends (``-``) must target arrays, and
    no operation may overwrite a value set earlier in the same list.
    """

    working = copy.deepcopy(source)
    written: List[Address] = []
    for index, op in enumerate(ops):
        if not op.path.parts:
            raise PatchConflict(f"operation {index} ({op.op}) targets the document root")
        parent = resolve_pointer(working, op.path.parent.path, _MISSING)
        if parent is _MISSING:
            raise PatchConflict(
                f"operation {index} ({op.op} {op.path}) addresses missing parent {op.path.parent}"
            )
        if op.path.is_append and not isinstance(parent, list):
            raise PatchConflict(f"operation {index} ({op.op} {op.path}) appends to a non-array")
        if not isinstance(parent, (dict, list)):
            raise PatchConflict(f"operation {index} ({op.op} {op.path}) addresses into a scalar")
        if op.op != REMOVE:
            if not op.path.is_append:
                for earlier in written:
                    if earlier.parts[: len(op.path.parts)] == op.path.parts:
                        raise PatchConflict(f"operation {index} ({op.op} {op.path}) overwrites {earlier}")
            written.append(op.path)
        try:
            working = jsonpatch.apply_patch(working, [op.to_dict()], in_place=True)
        except (jsonpatch.JsonPatchException, JsonPointerException) as exc:
            raise PatchConflict(f"operation {index} ({op.op} {op.path}) cannot be applied: {exc}") from exc
    return working


def synthesize(ops: Sequence[PatchOperation], source: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    """Turn the rule output into a wire-ready JSON Patch list.

    An empty list means the document is accepted unchanged.
    """

    if not ops:
        return []
    if source is not None:
        check_parents(ops, source)
    return [op.to_dict() for op in ops]


def to_json(patch: Sequence[Dict[str, Any]]) -> bytes:
    return json.dumps(list(patch), separators=(",", ":")).encode("utf-8")


__all__ = ["check_parents", "synthesize", "to_json"]
