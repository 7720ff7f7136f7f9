"""JSON Pointer addresses used by every patch-producing rule."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union

from jsonpointer import JsonPointer

Segment = Union[str, int]

APPEND = "-"


@dataclass(frozen=True)
class Address:
    """An RFC 6901 pointer kept as unescaped segments.

    Segments are escaped only when the address is rendered, so label keys such
    as ``app.kubernetes.io/part-of`` can be passed in verbatim.
    """

    parts: Tuple[str, ...] = ()

    @classmethod
    def parse(cls, path: str) -> "Address":
        return cls(tuple(JsonPointer(path).parts))

    def child(self, *segments: Segment) -> "Address":
        return Address(self.parts + tuple(str(segment) for segment in segments))

    def append(self) -> "Address":
        return self.child(APPEND)

    @property
    def parent(self) -> "Address":
        if not self.parts:
            raise ValueError("root address has no parent")
        return Address(self.parts[:-1])

    @property
    def last(self) -> str:
        return self.parts[-1] if self.parts else ""

    @property
    def is_append(self) -> bool:
        return self.last == APPEND

    @property
    def path(self) -> str:
        return JsonPointer.from_parts(list(self.parts)).path

    def __str__(self) -> str:
        return self.path


ROOT = Address()


__all__ = ["APPEND", "Address", "ROOT"]
