"""Incremental publishing of live output to the object store."""
from __future__ import annotations

from .credentials import resolve_credentials
from .queue_worker import UploadWorker
from .storage import S3Storage, s3_storage_factory
from .watchdog import ChangeWatcher, collect_seed_tasks

__all__ = [
    "ChangeWatcher",
    "S3Storage",
    "UploadWorker",
    "collect_seed_tasks",
    "resolve_credentials",
    "s3_storage_factory",
]
