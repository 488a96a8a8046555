"""Utility helpers shared across the sitepub service."""
from __future__ import annotations

from .coerce import parse_float, parse_int, to_bool, to_optional_str
from .concurrency import HandoffQueue, sleep_with_stop

__all__ = [
    "HandoffQueue",
    "parse_float",
    "parse_int",
    "sleep_with_stop",
    "to_bool",
    "to_optional_str",
]
