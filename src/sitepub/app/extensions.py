"""Extension wiring for the sitepub Flask application."""
from __future__ import annotations

import logging
from typing import Callable

from flask import Flask

from ..config import Settings
from ..engine import BuildDispatcher, JobReport, ProcessRunner, SiteSupervisor, command_generator_factory
from ..errors import RegistryPersistError
from ..publisher import s3_storage_factory
from ..registry import SiteRegistry
from ..routes import api_bp

LOGGER = logging.getLogger(__name__)


def init_registry(app: Flask, settings: Settings) -> SiteRegistry:
    registry = SiteRegistry.load(settings.sites_file)
    app.extensions["sitepub_registry"] = registry
    return registry


def job_finished_hook(registry: SiteRegistry) -> Callable[[JobReport], None]:
    """Log each finished build and re-save the registry after first deploys."""

    def _after_job(report: JobReport) -> None:
        failed = [stage.stage.value for stage in report.stages if not stage.ok]
        LOGGER.info(
            "[%s] Build %s in %.1fs%s",
            report.host_name,
            report.state.value,
            report.finished_at - report.started_at,
            f" (failed stages: {', '.join(failed)})" if failed else "",
        )
        if not (report.first_deploy and report.succeeded):
            return
        try:
            registry.persist()
        except RegistryPersistError as exc:
            LOGGER.error("[%s] Saving sites configuration failed: %s", report.host_name, exc)

    return _after_job


def init_dispatcher(app: Flask, settings: Settings, registry: SiteRegistry) -> BuildDispatcher:
    runner = ProcessRunner(verbose=settings.verbose, default_timeout=settings.command_timeout)
    supervisor = SiteSupervisor(
        base_dir=settings.base_dir,
        default_key=settings.s3_key,
        default_secret=settings.s3_secret,
        storage_factory=s3_storage_factory(
            region=settings.s3_region,
            endpoint_url=settings.s3_endpoint,
        ),
    )
    dispatcher = BuildDispatcher(
        base_dir=settings.base_dir,
        runner=runner,
        generator_factory=command_generator_factory(
            settings.generator_command,
            runner=runner,
            timeout=settings.command_timeout,
        ),
        supervisor=supervisor,
        abort_on_sync_failure=settings.abort_on_sync_failure,
        after_job=job_finished_hook(registry),
    )
    dispatcher.start()
    app.extensions["sitepub_dispatcher"] = dispatcher
    return dispatcher


def register_blueprints(app: Flask) -> None:
    app.register_blueprint(api_bp)


def get_registry(app: Flask) -> SiteRegistry:
    return app.extensions["sitepub_registry"]


def get_dispatcher(app: Flask) -> BuildDispatcher:
    return app.extensions["sitepub_dispatcher"]


__all__ = [
    "get_dispatcher",
    "get_registry",
    "init_dispatcher",
    "init_registry",
    "job_finished_hook",
    "register_blueprints",
]
