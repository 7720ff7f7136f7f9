"""Field paths and violation records rendered the way the API server renders them."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple


@dataclass(frozen=True)
class FieldPath:
    parts: Tuple[str, ...] = ()

    @classmethod
    def of(cls, *names: str) -> "FieldPath":
        return cls(tuple(names))

    def child(self, *names: str) -> "FieldPath":
        return FieldPath(self.parts + tuple(names))

    def index(self, idx: int) -> "FieldPath":
        return FieldPath(self.parts + (f"[{idx}]",))

    def key(self, key: str) -> "FieldPath":
        return FieldPath(self.parts + (f"[{key}]",))

    def __str__(self) -> str:
        rendered = ""
        for part in self.parts:
            if part.startswith("["):
                rendered += part
            elif rendered:
                rendered += "." + part
            else:
                rendered = part
        return rendered


class ViolationKind(str, Enum):
    MISSING = "missing"
    INVALID = "invalid"
    FORBIDDEN = "forbidden"

    @property
    def label(self) -> str:
        return _KIND_LABELS[self]


_KIND_LABELS = {
    ViolationKind.MISSING: "Required value",
    ViolationKind.INVALID: "Invalid value",
    ViolationKind.FORBIDDEN: "Forbidden",
}

_NO_VALUE = object()


@dataclass(frozen=True)
class ViolationRecord:
    field: FieldPath
    kind: ViolationKind
    detail: str
    value: Any = _NO_VALUE

    def message(self) -> str:
        body = self.kind.label
        if self.kind is ViolationKind.INVALID and self.value is not _NO_VALUE:
            body = f"{body}: {_render_value(self.value)}"
        if self.detail:
            body = f"{body}: {self.detail}"
        return f"{self.field}: {body}"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"field": str(self.field), "kind": self.kind.value, "detail": self.detail}
        if self.value is not _NO_VALUE:
            data["value"] = self.value
        return data

    def __str__(self) -> str:
        return self.message()


def required(path: FieldPath, detail: str) -> ViolationRecord:
    return ViolationRecord(path, ViolationKind.MISSING, detail)


def invalid(path: FieldPath, value: Any, detail: str) -> ViolationRecord:
    return ViolationRecord(path, ViolationKind.INVALID, detail, value)


def forbidden(path: FieldPath, detail: str) -> ViolationRecord:
    return ViolationRecord(path, ViolationKind.FORBIDDEN, detail)


def aggregate(violations: Sequence[ViolationRecord]) -> Optional[str]:
    """Join violations into one message: a single entry alone, several as ``[a, b]``."""

    messages = _dedupe(v.message() for v in violations)
    if not messages:
        return None
    if len(messages) == 1:
        return messages[0]
    return "[" + ", ".join(messages) + "]"


def _dedupe(messages: Iterable[str]) -> list[str]:
    unique: list[str] = []
    seen = set()
    for message in messages:
        if message in seen:
            continue
        seen.add(message)
        unique.append(message)
    return unique


def _render_value(value: Any) -> str:
    if isinstance(value, str):
        return json.dumps(value)
    if isinstance(value, bool) or value is None:
        return json.dumps(value)
    return str(value)


__all__ = [
    "FieldPath",
    "ViolationKind",
    "ViolationRecord",
    "aggregate",
    "forbidden",
    "invalid",
    "required",
]
