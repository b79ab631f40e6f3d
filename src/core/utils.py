"""
Core Utility Functions.

Small helpers for loosely shaped input (query strings, decoded JSON, page
globals) used across the application.
"""

from typing import Any, Iterable, List, Mapping


def safe_get(obj: Any, *keys: Any, default: Any = None) -> Any:
    """
    Safely walk nested mappings and sequences.

    Integer keys index into lists; anything missing or of the wrong shape
    returns `default`.

    Example:
        >>> safe_get({"filters": [{"queryArgs": {}}]}, "filters", 0, "queryArgs")
        {}
        >>> safe_get({"filters": None}, "filters", 0, default=[])
        []
    """
    current = obj
    for key in keys:
        if isinstance(current, Mapping):
            current = current.get(key)
        elif isinstance(key, int) and isinstance(current, (list, tuple)):
            current = current[key] if -len(current) <= key < len(current) else None
        else:
            return default
        if current is None:
            return default
    return current


def split_csv(value: Any) -> List[str]:
    """
    Split comma-separated values into trimmed, non-empty strings.

    Lists are flattened, so ["a,b", "c"] and "a, b,c" both give ["a", "b", "c"].
    Numbers are converted to strings; other types are ignored.
    """
    if value is None or isinstance(value, bool):
        return []
    if isinstance(value, (int, float)):
        return [str(value)]
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, Iterable) and not isinstance(value, Mapping):
        result: List[str] = []
        for item in value:
            result.extend(split_csv(item))
        return result
    return []


def is_number(value: Any) -> bool:
    """True for ints/floats and strings that parse as a decimal number (no digit separators)."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    if not isinstance(value, str) or "_" in value:
        return False
    try:
        float(value.strip())
    except ValueError:
        return False
    return value.strip().lower() not in ("nan", "inf", "-inf", "+inf", "infinity")
