"""HTTP routes for the sitepub control API."""
from __future__ import annotations

from .sites import api_bp

__all__ = ["api_bp"]
