"""sitepub application factory."""
from __future__ import annotations

from typing import Optional

from flask import Flask

from ..config import Settings, load_settings_from_env
from ..engine import BuildDispatcher
from ..registry import SiteRegistry
from .bootstrap import bootstrap_sites, ensure_single_worker, init_logging, load_configuration
from .extensions import init_dispatcher, init_registry, register_blueprints


def create_app(
    settings: Optional[Settings] = None,
    *,
    registry: Optional[SiteRegistry] = None,
    dispatcher: Optional[BuildDispatcher] = None,
    configure_logs: bool = True,
) -> Flask:
    """Create and configure the sitepub Flask application.

    ``registry`` and ``dispatcher`` replace the ones built from ``settings``.
    """

    if configure_logs:
        init_logging()
    settings = settings or load_settings_from_env()
    ensure_single_worker()

    app = Flask(__name__)
    load_configuration(app, settings)

    if registry is None:
        registry = init_registry(app, settings)
    else:
        app.extensions["sitepub_registry"] = registry
    if dispatcher is None:
        init_dispatcher(app, settings, registry)
    else:
        app.extensions["sitepub_dispatcher"] = dispatcher

    register_blueprints(app)
    return app


__all__ = ["bootstrap_sites", "create_app"]
