"""
backend/types.py — Normalization of raw backend payloads.

Joined relations come back either as a single object or as a one-element
array depending on the foreign key shape. Everything leaving the data access
layer goes through one() / many() so callers only ever see one shape.
"""
import json
from typing import Any, Dict, List, Optional


def one(value: Any) -> Optional[Dict[str, Any]]:
    """Nullable single object: first element of a list, the dict itself, or None."""
    if value is None:
        return None
    if isinstance(value, list):
        return one(value[0]) if value else None
    if isinstance(value, dict):
        return value
    raise TypeError(f"expected object or array, got {type(value).__name__}")


def many(value: Any) -> List[Dict[str, Any]]:
    """Always an array."""
    if value is None:
        return []
    if isinstance(value, list):
        return [v for v in value if v is not None]
    if isinstance(value, dict):
        return [value]
    raise TypeError(f"expected object or array, got {type(value).__name__}")


def parse_options(value: Any) -> List[str]:
    """Question options are stored as JSONB and sometimes arrive as a string."""
    if isinstance(value, str):
        value = json.loads(value)
    if not isinstance(value, list):
        raise TypeError("options must be an array")
    return [str(v) for v in value]
