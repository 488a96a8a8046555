"""Bootstrap helpers for the sitepub Flask application."""
from __future__ import annotations

import logging
import os
import threading

from flask import Flask

from ..config import Settings
from ..errors import ConfigError
from ..logging_config import configure_logging
from ..utils import parse_int
from .extensions import get_dispatcher, get_registry

LOGGER = logging.getLogger(__name__)


def init_logging() -> None:
    """Configure file and console logging for the service."""

    configure_logging("sitepub")


def load_configuration(app: Flask, settings: Settings) -> None:
    """Populate the configuration values on the Flask app."""

    app.config.from_mapping(settings.as_config())
    app.extensions["sitepub_settings"] = settings


def ensure_single_worker() -> None:
    """Refuse to start under more than one worker process.

    The registry and the build queue live in process memory, so a second
    worker would keep its own diverging copies.
    """

    worker_count = 1
    raw_worker_count = (
        os.getenv("SITEPUB_WORKER_PROCESSES")
        or os.getenv("GUNICORN_WORKERS")
        or os.getenv("WEB_CONCURRENCY")
    )
    if raw_worker_count:
        worker_count = max(1, parse_int(raw_worker_count, 1))
    if worker_count != 1:
        raise ConfigError(
            "sitepub requires a single worker process. "
            "Set GUNICORN_WORKERS=1 (or WEB_CONCURRENCY=1) and scale with threads instead. "
            f"Detected {worker_count}."
        )


def bootstrap_sites(app: Flask) -> threading.Thread:
    """Attach publishers for every known site and queue their first builds.

    Runs in a background thread because each handoff to the dispatcher
    blocks until the previous build has been picked up.
    """

    registry = get_registry(app)
    dispatcher = get_dispatcher(app)
    sites = registry.all()

    def _bootstrap() -> None:
        LOGGER.info("Reading all sites configuration (%d site(s))", len(sites))
        for site in sites:
            LOGGER.info("Site: %s [%s]", site.name, site.host_name)
            # Sites awaiting their first deploy are attached and seeded by the build.
            if not site.needs_deployment:
                dispatcher.supervisor.ensure(site)
            if not dispatcher.submit(site):
                LOGGER.info("Dispatcher stopping; remaining startup builds skipped")
                return

    thread = threading.Thread(target=_bootstrap, name="sites-bootstrap", daemon=True)
    thread.start()
    return thread


__all__ = ["bootstrap_sites", "ensure_single_worker", "init_logging", "load_configuration"]
