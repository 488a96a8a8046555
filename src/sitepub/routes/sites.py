"""HTTP routes that register sites and trigger rebuilds."""
from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timezone
from http import HTTPStatus

from flask import Blueprint, Response, current_app, jsonify, request

from ..engine import BuildDispatcher
from ..errors import RegistryPersistError
from ..logging_config import current_log_file
from ..models import SiteRegistration, is_valid_host_name
from ..registry import SiteRegistry

api_bp = Blueprint("sitepub_api", __name__)


def _registry() -> SiteRegistry:
    return current_app.extensions["sitepub_registry"]


def _dispatcher() -> BuildDispatcher:
    return current_app.extensions["sitepub_dispatcher"]


def _api_response(code: HTTPStatus, message: str) -> tuple[Response, int]:
    response = jsonify({"Code": code.value, "Message": message})
    response.headers["Content-Type"] = "text/javascript"
    response.headers["Cache-Control"] = "no-cache"
    return response, code.value


@api_bp.route("/update", methods=["GET", "POST"])
@api_bp.route("/update/", methods=["GET", "POST"])
def update_endpoint():
    hostname = (request.values.get("hostname") or "").strip()
    site = _registry().find(hostname)
    if site is None:
        return _api_response(HTTPStatus.NOT_FOUND, "Host not found")

    _dispatcher().submit(site)
    return _api_response(HTTPStatus.OK, "Command executed successfully")


@api_bp.route("/add", methods=["GET", "POST"])
@api_bp.route("/add/", methods=["GET", "POST"])
def add_endpoint():
    args = request.values
    hostname = (args.get("hostname") or "").strip()
    if not is_valid_host_name(hostname):
        return _api_response(HTTPStatus.BAD_REQUEST, "Invalid hostname")

    site = SiteRegistration(
        name=args.get("name", ""),
        email=args.get("email", ""),
        base_url=args.get("baseurl", ""),
        host_name=hostname,
        clone_url_type=args.get("clonetype", ""),
        clone_url=args.get("cloneurl", ""),
        api_secret=str(uuid.uuid4()),
        needs_deployment=True,
    )

    _dispatcher().submit(site)

    registry = _registry()
    registry.add(replace(site, needs_deployment=False))
    try:
        registry.persist()
    except RegistryPersistError as exc:
        current_app.logger.error("Saving sites configuration failed: %s", exc)

    return _api_response(HTTPStatus.OK, site.api_secret)


@api_bp.route("/health", methods=["GET"])
def health_endpoint():
    payload = {
        "status": "ok",
        "service": "sitepub",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    return jsonify(payload), HTTPStatus.OK


@api_bp.route("/status", methods=["GET"])
def status_endpoint():
    dispatcher = _dispatcher()
    log_file = current_log_file()
    payload = {
        "dispatcher": dispatcher.status(),
        "sites": len(_registry()),
        "publishers": dispatcher.supervisor.hosts(),
        "log_file": str(log_file) if log_file else None,
    }
    return jsonify(payload), HTTPStatus.OK


__all__ = ["api_bp"]
