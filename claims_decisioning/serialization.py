"""Serialization helpers for ledger entries, decisions and configs.

``to_serializable()`` turns pydantic models, dataclasses, enums, mappings,
sets and date/datetime values into plain JSON-compatible structures.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel


def to_serializable(obj: Any) -> Any:
    """Recursively convert *obj* to a JSON-serializable structure.

    Handles: None, primitives, Enum, date/datetime, set, list/tuple,
    mappings (including read-only ``MappingProxyType``), dataclasses,
    pydantic models and objects with ``__dict__``. Falls back to ``str``.
    """
    if isinstance(obj, Enum):
        return obj.value
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset)):
        return sorted(to_serializable(item) for item in obj)
    if isinstance(obj, (list, tuple)):
        return [to_serializable(item) for item in obj]
    if isinstance(obj, Mapping):
        return {str(to_serializable(k)): to_serializable(v) for k, v in obj.items()}
    if isinstance(obj, BaseModel):
        return to_serializable(obj.model_dump())
    if hasattr(obj, "__dataclass_fields__"):
        return {
            field_name: to_serializable(getattr(obj, field_name))
            for field_name in obj.__dataclass_fields__
        }
    if hasattr(obj, "__dict__"):
        return to_serializable(vars(obj))
    return str(obj)


def summarize(obj: Any, max_items: int = 10) -> Any:
    """Shallow, size-bounded view of *obj* for audit ``inputs_summary`` fields."""
    data = to_serializable(obj)
    if isinstance(data, dict):
        return {k: summarize(v, max_items) for k, v in list(data.items())[:max_items]}
    if isinstance(data, list):
        head = [summarize(v, max_items) for v in data[:max_items]]
        if len(data) > max_items:
            head.append(f"... {len(data) - max_items} more")
        return head
    return data
