"""Resolution of per-site object-store credentials."""
from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

import yaml

from ..errors import WatcherSetupError
from ..models import PublishCredentials

LOGGER = logging.getLogger(__name__)

OVERRIDE_FILENAME = "_jekyll_s3.yml"


def _parse_override(path: Path, raw: str) -> Any:
    """Decode the override file as TOML, or as YAML when it is not TOML.

    Existing deployments write ``Key = "..."`` despite the ``.yml`` name.
    """

    try:
        return tomllib.loads(raw)
    except tomllib.TOMLDecodeError as toml_exc:
        try:
            return yaml.safe_load(raw)
        except yaml.YAMLError as yaml_exc:
            raise WatcherSetupError(
                f"Unable to parse deployment config {path} as TOML ({toml_exc}) or YAML ({yaml_exc})"
            ) from yaml_exc


def resolve_credentials(
    source_dir: Path,
    host_name: str,
    *,
    default_key: str,
    default_secret: str,
) -> PublishCredentials:
    """Pick the site's override file when present, else the global key pair.

    The bucket defaults to the site's host name.
    """

    path = Path(source_dir) / OVERRIDE_FILENAME
    if not path.is_file():
        return PublishCredentials(key=default_key, secret=default_secret, bucket=host_name)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise WatcherSetupError(f"Unable to read deployment config {path}: {exc}") from exc
    payload = _parse_override(path, raw)
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise WatcherSetupError(f"Deployment config {path} must be a mapping")

    LOGGER.info("[%s] Using deployment config %s", host_name, path)
    return PublishCredentials(
        key=str(payload.get("Key") or default_key),
        secret=str(payload.get("Secret") or default_secret),
        bucket=str(payload.get("Bucket") or host_name),
    )


__all__ = ["OVERRIDE_FILENAME", "resolve_credentials"]
