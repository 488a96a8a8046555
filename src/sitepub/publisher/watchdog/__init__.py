"""Live-directory watchdog utilities."""
from __future__ import annotations

from .runtime import ChangeWatcher, LiveTreeEventHandler, collect_seed_tasks, is_hidden_or_temp

__all__ = ["ChangeWatcher", "LiveTreeEventHandler", "collect_seed_tasks", "is_hidden_or_temp"]
