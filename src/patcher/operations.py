from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from src.common.pointer import Address

ADD = "add"
REPLACE = "replace"
REMOVE = "remove"

_VALID_OPS = {ADD, REPLACE, REMOVE}

_UNSET = object()


@dataclass(frozen=True)
class PatchOperation:
    op: str
    path: Address
    value: Any = _UNSET

    def __post_init__(self) -> None:
        if self.op not in _VALID_OPS:
            raise ValueError(f"invalid op: {self.op}")
        if self.op == REMOVE and self.has_value:
            raise ValueError("remove operations carry no value")
        if self.op != REMOVE and not self.has_value:
            raise ValueError(f"{self.op} operations require a value")

    @property
    def has_value(self) -> bool:
        return self.value is not _UNSET

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"op": self.op, "path": self.path.path}
        if self.has_value:
            data["value"] = self.value
        return data


def add(path: Address, value: Any) -> PatchOperation:
    return PatchOperation(ADD, path, value)


def replace(path: Address, value: Any) -> PatchOperation:
    return PatchOperation(REPLACE, path, value)


def remove(path: Address) -> PatchOperation:
    return PatchOperation(REMOVE, path)


__all__ = ["ADD", "PatchOperation", "REMOVE", "REPLACE", "add", "remove", "replace"]
