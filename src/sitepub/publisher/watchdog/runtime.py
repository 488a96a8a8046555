"""Watchdog runtime that turns live-directory changes into upload tasks."""
from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from stat import S_ISDIR
from typing import Callable, Iterator, Optional

from watchdog.events import (
    DirMovedEvent,
    FileClosedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch

from ...errors import WatcherSetupError
from ...models import PublishCredentials, UploadTask

LOGGER = logging.getLogger("sitepub.publisher.watchdog")

IGNORED_RELATIVE_PATHS = frozenset({"README.md"})

TaskSink = Callable[[UploadTask], object]


def is_hidden_or_temp(relative: str) -> bool:
    """Return True for dot-files, anything under a dot-directory, and ``~`` backups."""

    if relative in IGNORED_RELATIVE_PATHS:
        return True
    parts = [part for part in relative.replace(os.sep, "/").split("/") if part]
    if not parts:
        return False
    if any(part.startswith(".") for part in parts):
        return True
    return parts[-1].endswith("~")


class LiveTreeEventHandler(FileSystemEventHandler):
    """React to filesystem events and delegate to the watcher."""

    def __init__(self, watcher: "ChangeWatcher") -> None:
        super().__init__()
        self._watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            self._watcher.add_directory(_event_path(event.src_path))

    def on_closed(self, event: FileSystemEvent) -> None:
        if event.is_directory or not isinstance(event, FileClosedEvent):
            return
        self._watcher.publish(_event_path(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if not isinstance(event, (FileMovedEvent, DirMovedEvent)):
            return
        dest = _event_path(event.dest_path)
        if event.is_directory:
            self._watcher.forget_directory(_event_path(event.src_path))
            self._watcher.add_directory(dest)
            return
        self._watcher.publish(dest)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            self._watcher.forget_directory(_event_path(event.src_path))


class ChangeWatcher:
    """Watch a site's live tree and hand every changed file to ``sink``.

    Each directory gets its own non-recursive watch; directories created
    later are added as they appear. ``sink`` may block, which in turn holds
    back event dispatch, so no event is dropped here.
    """

    def __init__(
        self,
        host_name: str,
        live_dir: Path,
        credentials: PublishCredentials,
        sink: TaskSink,
    ) -> None:
        self.host_name = host_name
        self.live_dir = Path(live_dir)
        self.credentials = credentials
        self._sink = sink
        self._handler = LiveTreeEventHandler(self)
        self._observer: Optional[Observer] = None
        self._watches: dict[Path, ObservedWatch] = {}
        # relative path -> (st_mtime_ns, st_size) of files handed off by a directory scan
        self._scanned: dict[str, tuple[int, int]] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        try:
            self.live_dir.mkdir(parents=True, exist_ok=True)
            observer = Observer()
            self._observer = observer
            with self._lock:
                for directory in _walk_directories(self.live_dir):
                    self._schedule(directory)
            observer.start()
        except (OSError, RuntimeError) as exc:
            self.stop()
            raise WatcherSetupError(f"[{self.host_name}] Unable to watch {self.live_dir}: {exc}") from exc
        LOGGER.info("[%s] Watching %s (%d dir(s))", self.host_name, self.live_dir, len(self._watches))

    def stop(self) -> None:
        observer = self._observer
        self._observer = None
        if observer is None:
            return
        observer.stop()
        if observer.is_alive():
            observer.join(timeout=5.0)
        with self._lock:
            self._watches.clear()
            self._scanned.clear()

    @property
    def running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    @property
    def watched(self) -> frozenset[Path]:
        with self._lock:
            return frozenset(self._watches)

    # ------------------------------------------------------------------
    # Event entry points
    # ------------------------------------------------------------------
    def add_directory(self, directory: Path) -> None:
        """Extend the watch set to ``directory`` and anything below it.

        Files already present are handed off once. A close or move event that
        follows for an unchanged file is then ignored.
        """

        if self._observer is None or self._relative(directory) is None:
            return
        if not directory.is_dir():
            return
        for candidate in _walk_directories(directory):
            with self._lock:
                if candidate in self._watches:
                    continue
                LOGGER.info("[%s] Watching new directory %s", self.host_name, candidate)
                try:
                    self._schedule(candidate)
                except OSError as exc:
                    LOGGER.warning("[%s] Unable to watch %s: %s", self.host_name, candidate, exc)
                    continue
            for entry in sorted(candidate.iterdir()):
                if entry.is_file():
                    self._publish_scanned(entry)

    def forget_directory(self, directory: Path) -> None:
        observer = self._observer
        with self._lock:
            doomed = [path for path in self._watches if path == directory or directory in path.parents]
            prefix = self._relative(directory)
            if prefix:
                for relative in [key for key in self._scanned if key.startswith(prefix + "/")]:
                    del self._scanned[relative]
            for path in doomed:
                watch = self._watches.pop(path)
                if observer is None:
                    continue
                try:
                    observer.unschedule(watch)
                except (KeyError, OSError, RuntimeError):
                    LOGGER.debug("[%s] Watch on %s already gone", self.host_name, path)

    def publish(self, path: Path) -> None:
        """Hand off a file reported by a close or move event."""

        relative = self._relative(path)
        if relative is None or is_hidden_or_temp(relative):
            return
        try:
            stat = path.stat()
        except OSError:
            with self._lock:
                self._scanned.pop(relative, None)
            return
        if S_ISDIR(stat.st_mode):
            return
        with self._lock:
            scanned = self._scanned.pop(relative, None)
        if scanned == (stat.st_mtime_ns, stat.st_size):
            LOGGER.debug("[%s] %s already handed off by directory scan", self.host_name, relative)
            return
        self._emit(path, relative)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _publish_scanned(self, path: Path) -> None:
        relative = self._relative(path)
        if relative is None or is_hidden_or_temp(relative):
            return
        try:
            stat = path.stat()
        except OSError:
            return
        with self._lock:
            self._scanned[relative] = (stat.st_mtime_ns, stat.st_size)
        self._emit(path, relative)

    def _emit(self, path: Path, relative: str) -> None:
        LOGGER.info("[%s] File created or modified: %s", self.host_name, relative)
        self._sink(UploadTask(path=path, relative=relative, credentials=self.credentials))

    def _schedule(self, directory: Path) -> None:
        assert self._observer is not None
        self._watches[directory] = self._observer.schedule(
            self._handler, str(directory), recursive=False
        )

    def _relative(self, path: Path) -> Optional[str]:
        try:
            relative = path.relative_to(self.live_dir)
        except ValueError:
            return None
        return relative.as_posix() if relative.parts else ""


def collect_seed_tasks(live_dir: Path, credentials: PublishCredentials) -> list[UploadTask]:
    """Return one task per regular file under ``live_dir``."""

    root = Path(live_dir)
    if not root.is_dir():
        return []
    tasks: list[UploadTask] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            if not path.is_file():
                continue
            relative = path.relative_to(root).as_posix()
            tasks.append(UploadTask(path=path, relative=relative, credentials=credentials))
    return tasks


def _walk_directories(root: Path) -> Iterator[Path]:
    yield root
    for dirpath, dirnames, _ in os.walk(root):
        dirnames.sort()
        for name in dirnames:
            yield Path(dirpath) / name


def _event_path(raw: object) -> Path:
    return Path(os.fsdecode(raw))  # type: ignore[arg-type]


__all__ = [
    "ChangeWatcher",
    "LiveTreeEventHandler",
    "collect_seed_tasks",
    "is_hidden_or_temp",
]
