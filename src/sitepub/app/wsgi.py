"""WSGI entrypoint: ``gunicorn 'sitepub.app.wsgi:app' --workers 1 --threads 8``."""
from __future__ import annotations

from . import bootstrap_sites, create_app

app = create_app()
bootstrap_sites(app)
