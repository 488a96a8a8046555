"""Supervised watcher/uploader pairs, one per hosted site."""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from ..errors import WatcherSetupError
from ..models import PublishCredentials, SiteRegistration, site_paths
from ..publisher.credentials import resolve_credentials
from ..publisher.queue_worker import UploadWorker
from ..publisher.storage import StorageFactory
from ..publisher.watchdog import ChangeWatcher, collect_seed_tasks

LOGGER = logging.getLogger(__name__)


class SitePublisher:
    """A site's change watcher and the upload worker it feeds."""

    def __init__(
        self,
        host_name: str,
        *,
        live_dir: Path,
        credentials: PublishCredentials,
        storage_factory: StorageFactory,
    ) -> None:
        self.host_name = host_name
        self.live_dir = live_dir
        self.credentials = credentials
        self.worker = UploadWorker(host_name, storage_factory=storage_factory)
        self.watcher = ChangeWatcher(host_name, live_dir, credentials, self.worker.enqueue)

    def start(self, *, seed: bool = False) -> None:
        """Start the worker, then the watcher.

        Seed tasks are handed to the worker before the watcher exists, so
        they are published ahead of any change event.
        """

        initial = collect_seed_tasks(self.live_dir, self.credentials) if seed else []
        if seed:
            LOGGER.info("[%s] Seeding %d file(s) from %s", self.host_name, len(initial), self.live_dir)
        self.worker.start(initial)
        self.watcher.start()

    def seed(self) -> int:
        tasks = collect_seed_tasks(self.live_dir, self.credentials)
        LOGGER.info("[%s] Seeding %d file(s) into running publisher", self.host_name, len(tasks))
        for task in tasks:
            if not self.worker.enqueue(task):
                break
        return len(tasks)

    def stop(self) -> None:
        self.worker.stop_event.set()
        self.watcher.stop()
        self.worker.shutdown()


class SiteSupervisor:
    """Keep at most one publisher pair per host name alive."""

    def __init__(
        self,
        *,
        base_dir: Path,
        default_key: str,
        default_secret: str,
        storage_factory: StorageFactory,
    ) -> None:
        self.base_dir = Path(base_dir)
        self._default_key = default_key
        self._default_secret = default_secret
        self._storage_factory = storage_factory
        self._lock = threading.Lock()
        self._publishers: dict[str, SitePublisher] = {}
        self._failed: set[str] = set()

    def ensure(self, registration: SiteRegistration, *, seed: bool = False) -> Optional[SitePublisher]:
        """Attach a publisher for the site unless one is already running.

        Returns ``None`` when the site's publisher could not be set up; that
        site then gets no incremental publishing until restart.
        """

        host = registration.host_name
        with self._lock:
            if host in self._failed:
                LOGGER.debug("[%s] Publisher previously failed to start; not retrying", host)
                return None
            existing = self._publishers.get(host)
            if existing is None:
                paths = site_paths(self.base_dir, host)
                try:
                    credentials = resolve_credentials(
                        paths.source,
                        host,
                        default_key=self._default_key,
                        default_secret=self._default_secret,
                    )
                except WatcherSetupError as exc:
                    LOGGER.error("[%s] %s; site will not be published", host, exc)
                    self._failed.add(host)
                    return None
                publisher = SitePublisher(
                    host,
                    live_dir=paths.live,
                    credentials=credentials,
                    storage_factory=self._storage_factory,
                )
                self._publishers[host] = publisher
                try:
                    publisher.start(seed=seed)
                except WatcherSetupError as exc:
                    # The worker keeps draining its seed backlog.
                    LOGGER.error("%s; site will not be published incrementally", exc)
                return publisher

        if seed:
            existing.seed()
        return existing

    def is_attached(self, host_name: str) -> bool:
        with self._lock:
            return host_name in self._publishers

    def hosts(self) -> list[str]:
        with self._lock:
            return sorted(self._publishers)

    def shutdown(self) -> None:
        with self._lock:
            publishers = list(self._publishers.values())
            self._publishers.clear()
        for publisher in publishers:
            publisher.stop()


__all__ = ["SitePublisher", "SiteSupervisor"]
