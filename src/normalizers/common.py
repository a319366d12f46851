"""Shared helpers for upstream response normalizers."""

import re
from typing import Any, Optional


class ShapeError(TypeError):
    """Upstream body has a fundamentally different shape than its format expects."""

    def __init__(self, format_tag: str, expected: str, got: Any):
        self.format_tag = format_tag
        super().__init__(f"{format_tag}: expected {expected}, got {type(got).__name__}")


_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: Any) -> str:
    """'Festival of Fantasy Parade' -> 'festival_of_fantasy_parade'."""
    text = "" if text is None else str(text)
    return _NON_ALNUM.sub("_", text.lower()).strip("_")


def record_id(item: dict, name: Any, prefix: str = "") -> str:
    raw = item.get("id")
    if raw not in (None, ""):
        return f"{prefix}{raw}"
    return f"{prefix}{slugify(name)}"


def as_int(value: Any, default: int = 0) -> int:
    """Non-negative int, or ``default`` for missing, negative or non-numeric values."""
    if isinstance(value, bool) or value is None:
        return default
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        return default
    return number if number >= 0 else default


def as_optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        return None
    return number if number >= 0 else None


def as_str_list(value: Any, default: list[str]) -> list[str]:
    """Showtime/character lists: keep order, drop blanks, accept a bare string."""
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return list(default)
    items = [str(v).strip() for v in value if v is not None and str(v).strip()]
    return items or list(default)


def require_mapping(raw: Any, format_tag: str) -> dict:
    if not isinstance(raw, dict):
        raise ShapeError(format_tag, "object", raw)
    return raw


def require_items(raw: Any, format_tag: str, *keys: str) -> list:
    """
    Accept either a bare list or an object wrapping the list under one of ``keys``.

    Objects without any of the keys yield an empty list; non-container
    bodies raise ShapeError.
    """
    if isinstance(raw, list):
        return raw
    if isinstance(raw, dict):
        for key in keys:
            value = raw.get(key)
            if isinstance(value, list):
                return value
        return []
    raise ShapeError(format_tag, "list or object", raw)


def dicts(items: list) -> list[dict]:
    return [item for item in items if isinstance(item, dict)]
