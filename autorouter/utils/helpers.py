"""Small coercion helpers shared by the routing pipeline."""

from __future__ import annotations

import math
from typing import Any, Iterable, Mapping, TypeVar

T = TypeVar("T")


def to_boolean(value: Any) -> bool:
    """Coerce a loosely-typed toggle value to a bool.

    Precedence:
    1. ``bool`` values are returned unchanged.
    2. Strings ``"true"``/``"false"`` (case-insensitive, trimmed) map to
       ``True``/``False``.
    3. Numbers are ``True`` when nonzero.
    4. Anything else falls back to Python truthiness, so ``None`` and empty
       strings are ``False`` and other non-empty strings are ``True``.
    """
    if isinstance(value, bool):
        return value

    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized == "true":
            return True
        if normalized == "false":
            return False

    if isinstance(value, (int, float)):
        return value != 0

    return bool(value)


def to_number(value: Any) -> float:
    """Coerce a request field to a finite number, or 0 when it isn't one."""
    if isinstance(value, bool):
        return float(value)

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip()) if value.strip() else 0.0
        except ValueError:
            return 0.0
    else:
        return 0.0

    return number if math.isfinite(number) else 0.0


def clamp(value: float, minimum: float = 0.0, maximum: float = 1.0) -> float:
    """Clamp ``value`` into ``[minimum, maximum]``."""
    return min(maximum, max(minimum, value))


def dedupe(items: Iterable[T]) -> list[T]:
    """Remove duplicates while keeping first-seen order."""
    return list(dict.fromkeys(items))


def remove_nullish(data: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return a copy of ``data`` without ``None`` values."""
    return {key: value for key, value in (data or {}).items() if value is not None}
