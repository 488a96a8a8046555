"""Single-site preview: render once, re-render on edits, serve the output."""
from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Callable

from flask import Flask, Response, abort, send_from_directory
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .engine.generator import Generator, GeneratorFactory
from .publisher.watchdog import is_hidden_or_temp

LOGGER = logging.getLogger(__name__)

_REBUILD_EVENTS = {"created", "modified", "deleted", "moved"}


class PreviewSite:
    """Hold one generator and serialize its rebuilds."""

    def __init__(self, source: Path, output: Path, generator_factory: GeneratorFactory) -> None:
        self.source = Path(source).resolve()
        self.output = Path(output).resolve()
        self.generator: Generator = generator_factory(self.source, self.output)
        self._lock = threading.Lock()
        self.builds = 0

    def build(self, *, reload: bool = True) -> bool:
        with self._lock:
            try:
                if reload:
                    self.generator.reload()
                self.generator.render()
            except Exception as exc:
                LOGGER.error("Error while regenerating %s: %s", self.source, exc)
                return False
            self.builds += 1
        LOGGER.info("Site regenerated into %s", self.output)
        return True

    def is_relevant(self, path: Path) -> bool:
        if path == self.output or self.output in path.parents:
            return False
        try:
            relative = path.relative_to(self.source)
        except ValueError:
            return False
        return not is_hidden_or_temp(relative.as_posix())


class SourceChangeHandler(FileSystemEventHandler):
    """Rebuild the preview whenever a relevant source file changes."""

    def __init__(self, site: PreviewSite, rebuild: Callable[[], object]) -> None:
        super().__init__()
        self._site = site
        self._rebuild = rebuild

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in _REBUILD_EVENTS or event.is_directory:
            return
        paths = [event.src_path]
        if event.event_type == "moved":
            paths.append(event.dest_path)
        if not any(self._site.is_relevant(Path(os.fsdecode(raw))) for raw in paths):
            return
        LOGGER.info("Event: %s", event)
        self._rebuild()


def create_preview_app(output: Path) -> Flask:
    """Return a Flask app that serves the rendered output directory."""

    output_root = Path(output).resolve()
    app = Flask(__name__)

    def _serve(requested_path: str) -> Response:
        target = (output_root / requested_path).resolve()
        try:
            target.relative_to(output_root)
        except ValueError:
            abort(400, description="Invalid path")
        if target.is_dir():
            target = target / "index.html"
        if not target.is_file():
            abort(404)
        return send_from_directory(str(output_root), target.relative_to(output_root).as_posix())

    @app.route("/", defaults={"requested_path": ""}, methods=["GET", "HEAD"])
    @app.route("/<path:requested_path>", methods=["GET", "HEAD"])
    def preview_file(requested_path: str) -> Response:
        return _serve(requested_path)

    return app


def run_preview(
    source: Path,
    output: Path,
    *,
    port: int,
    generator_factory: GeneratorFactory,
    host: str = "127.0.0.1",
) -> int:
    """Render ``source`` once, then keep it rendered and served until interrupted."""

    site = PreviewSite(source, output, generator_factory)
    site.output.mkdir(parents=True, exist_ok=True)
    if not site.build(reload=False):
        LOGGER.error("Error on site while trying to generate static content; aborting preview")
        return 1
    LOGGER.info("Site generated successfully. Check your site at http://%s:%d/", host, port)

    observer = Observer()
    observer.schedule(SourceChangeHandler(site, site.build), str(site.source), recursive=True)
    observer.start()
    try:
        create_preview_app(site.output).run(host=host, port=port, threaded=True)
    finally:
        observer.stop()
        observer.join(timeout=5.0)
    return 0


__all__ = ["PreviewSite", "SourceChangeHandler", "create_preview_app", "run_preview"]
