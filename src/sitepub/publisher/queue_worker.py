"""Per-site background worker that publishes changed files to S3."""
from __future__ import annotations

import logging
import queue
import threading
import time
from threading import Event
from typing import Callable, Iterable, Optional

from ..errors import PublishError
from ..models import PublishCredentials, UploadTask
from ..utils import HandoffQueue, sleep_with_stop
from .storage import ObjectStoreSession, StorageFactory, guess_content_type

LOGGER = logging.getLogger("sitepub.publisher.queue")


class UploadWorker:
    """Consume upload tasks for one site, one at a time, in arrival order.

    The storage session is rebuilt when it has been idle for longer than
    ``SESSION_TTL`` seconds. A failed upload is retried once after
    ``RETRY_BACKOFF`` seconds; a second failure drops the task.
    """

    SESSION_TTL = 120.0
    RETRY_BACKOFF = 0.1

    def __init__(
        self,
        host_name: str,
        *,
        storage_factory: StorageFactory,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], None]] = None,
        stop_event: Optional[Event] = None,
    ) -> None:
        self.host_name = host_name
        self.stop_event = stop_event or Event()
        self._storage_factory = storage_factory
        self._clock = clock
        self._sleep = sleep or (lambda seconds: sleep_with_stop(seconds, self.stop_event))
        self._queue: HandoffQueue[UploadTask] = HandoffQueue()
        self._session: Optional[ObjectStoreSession] = None
        self._thread: Optional[threading.Thread] = None
        self.session_refreshes = 0
        self.published = 0
        self.dropped = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self, initial: Iterable[UploadTask] = ()) -> None:
        """Start the worker; ``initial`` tasks run before any queued task."""

        if self._thread is not None:
            return
        backlog = list(initial)
        self._thread = threading.Thread(
            target=self._run,
            args=(backlog,),
            name=f"uploader-{self.host_name}",
            daemon=True,
        )
        self._thread.start()
        LOGGER.info("[%s] Upload worker started (seed=%d)", self.host_name, len(backlog))

    def shutdown(self, timeout: float = 2.0) -> None:
        self.stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def enqueue(self, task: UploadTask) -> bool:
        """Hand ``task`` to the worker, blocking while it is busy."""

        return self._queue.put(task, stop_event=self.stop_event)

    def process(self, task: UploadTask) -> bool:
        """Publish one task; return ``True`` when the object was stored."""

        path = task.path
        try:
            if path.is_dir():
                return False
            body = path.read_bytes()
        except OSError as exc:
            LOGGER.warning("[%s] Unable to read %s: %s", self.host_name, path, exc)
            return False

        content_type = guess_content_type(task.relative)
        session = self._session_for(task.credentials)
        LOGGER.debug("[%s] Uploading %s", self.host_name, path)
        try:
            try:
                session.storage.put_object(task.relative, body, content_type)
            except PublishError as exc:
                LOGGER.warning("[%s] Upload of %s failed (%s); retrying once", self.host_name, task.relative, exc)
                self._sleep(self.RETRY_BACKOFF)
                session.storage.put_object(task.relative, body, content_type)
        except PublishError as exc:
            self.dropped += 1
            LOGGER.error("[%s] Upload of %s failed twice; dropping task: %s", self.host_name, path, exc)
            return False
        finally:
            session.last_used = self._clock()

        self.published += 1
        LOGGER.info("[%s] Uploaded %s (%s)", self.host_name, task.relative, content_type)
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _session_for(self, credentials: PublishCredentials) -> ObjectStoreSession:
        now = self._clock()
        session = self._session
        if session is not None and session.credentials == credentials:
            if now - session.last_used <= self.SESSION_TTL:
                return session
            LOGGER.info(
                "[%s] Session idle for %.0fs; refreshing credentials",
                self.host_name,
                now - session.last_used,
            )
        session = ObjectStoreSession(
            credentials=credentials,
            storage=self._storage_factory(credentials),
            last_used=now,
        )
        self._session = session
        self.session_refreshes += 1
        return session

    def _run(self, backlog: list[UploadTask]) -> None:
        for task in backlog:
            if self.stop_event.is_set():
                return
            self._process_safely(task)
        while not self.stop_event.is_set():
            try:
                task = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue
            self._process_safely(task)
        LOGGER.debug("[%s] Upload worker stopped", self.host_name)

    def _process_safely(self, task: UploadTask) -> None:
        try:
            self.process(task)
        except Exception:
            LOGGER.exception("[%s] Unexpected error while uploading %s", self.host_name, task.relative)


__all__ = ["UploadWorker"]
