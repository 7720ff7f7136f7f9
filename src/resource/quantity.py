from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

BINARY_MULTIPLIERS = {
    "Ki": Decimal(2) ** 10,
    "Mi": Decimal(2) ** 20,
    "Gi": Decimal(2) ** 30,
    "Ti": Decimal(2) ** 40,
    "Pi": Decimal(2) ** 50,
    "Ei": Decimal(2) ** 60,
}

DECIMAL_MULTIPLIERS = {
    "n": Decimal("1e-9"),
    "u": Decimal("1e-6"),
    "m": Decimal("1e-3"),
    "": Decimal(1),
    "k": Decimal("1e3"),
    "M": Decimal("1e6"),
    "G": Decimal("1e9"),
    "T": Decimal("1e12"),
    "P": Decimal("1e15"),
    "E": Decimal("1e18"),
}

QUANTITY_RE = re.compile(
    r"^(?P<number>[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+))"
    r"(?P<suffix>[eE][+-]?[0-9]+|[KMGTPE]i|[numkMGTPE])?$"
)


def parse_quantity(value: Any) -> Decimal:
    """Parse a Kubernetes resource quantity (``500m``, ``128Mi``, ``1e3``) to a Decimal."""

    if isinstance(value, bool) or value is None:
        raise ValueError(f"invalid quantity: {value!r}")
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if not isinstance(value, str):
        raise ValueError(f"invalid quantity: {value!r}")
    match = QUANTITY_RE.match(value.strip())
    if match is None:
        raise ValueError(f"invalid quantity: {value!r}")
    suffix = match.group("suffix") or ""
    try:
        number = Decimal(match.group("number"))
        if suffix[:1] in {"e", "E"} and len(suffix) > 1:
            return number * (Decimal(10) ** int(suffix[1:]))
        if suffix in BINARY_MULTIPLIERS:
            return number * BINARY_MULTIPLIERS[suffix]
        return number * DECIMAL_MULTIPLIERS[suffix]
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"invalid quantity: {value!r}") from exc


def is_zero_quantity(value: Optional[Decimal]) -> bool:
    return value is None or value == 0


__all__ = ["parse_quantity", "is_zero_quantity"]
