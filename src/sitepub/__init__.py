"""Root package for the sitepub service."""
from __future__ import annotations

from .engine import BuildDispatcher, ProcessRunner, SiteSupervisor
from .models import PublishCredentials, SitePaths, SiteRegistration, UploadTask, site_paths
from .publisher import ChangeWatcher, UploadWorker
from .registry import SiteRegistry

__version__ = "0.1.0"

__all__ = [
    "BuildDispatcher",
    "ChangeWatcher",
    "ProcessRunner",
    "PublishCredentials",
    "SitePaths",
    "SiteRegistration",
    "SiteRegistry",
    "SiteSupervisor",
    "UploadTask",
    "UploadWorker",
    "site_paths",
]
