"""Data shapes shared by the registry, build pipeline and publisher."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Union

from .utils import to_bool

SOURCE_DIRNAME = "sites"
RENDERED_DIRNAME = "_gen"
LIVE_DIRNAME = "_out"

# Persisted field name -> attribute name. The JSON layout predates this
# service and existing ``sites.json`` files must keep loading.
_FIELD_MAP = {
    "Name": "name",
    "Email": "email",
    "BaseURL": "base_url",
    "HostName": "host_name",
    "CloneURLType": "clone_url_type",
    "CloneURL": "clone_url",
    "APISecret": "api_secret",
    "NeedsDeployment": "needs_deployment",
}


@dataclass
class SiteRegistration:
    """Identity and build parameters for one hosted site."""

    name: str = ""
    email: str = ""
    base_url: str = ""
    host_name: str = ""
    clone_url_type: str = ""
    clone_url: str = ""
    api_secret: str = ""
    needs_deployment: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {key: getattr(self, attr) for key, attr in _FIELD_MAP.items()}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SiteRegistration":
        values: dict[str, Any] = {}
        for key, attr in _FIELD_MAP.items():
            if key not in payload or payload[key] is None:
                continue
            raw = payload[key]
            values[attr] = to_bool(raw) if attr == "needs_deployment" else str(raw)
        return cls(**values)


@dataclass(frozen=True)
class PublishCredentials:
    """Object-store key pair and bucket used to publish one site."""

    key: str
    secret: str
    bucket: str

    def __repr__(self) -> str:
        return f"PublishCredentials(key={self.key!r}, secret='***', bucket={self.bucket!r})"


@dataclass(frozen=True)
class UploadTask:
    """One file waiting to be pushed to the object store."""

    path: Path
    relative: str
    credentials: PublishCredentials


@dataclass(frozen=True)
class SitePaths:
    """The checkout, rendered and live directories of a site."""

    source: Path
    rendered: Path
    live: Path


def is_valid_host_name(host_name: str) -> bool:
    """Return True when ``host_name`` names exactly one directory level."""

    if not host_name or host_name in {".", ".."}:
        return False
    return not any(sep in host_name for sep in ("/", "\\", "\0"))


def site_paths(base_dir: Union[str, Path], host_name: str) -> SitePaths:
    """Derive the directory triple for ``host_name`` under ``base_dir``.

    Only string manipulation is involved, so the result depends on nothing
    but the arguments (and the working directory for a relative base).
    """

    if not is_valid_host_name(host_name):
        raise ValueError(f"Invalid host name {host_name!r}")

    root = Path(os.path.abspath(os.fspath(base_dir) or "."))
    return SitePaths(
        source=root / SOURCE_DIRNAME / host_name,
        rendered=root / RENDERED_DIRNAME / host_name,
        live=root / LIVE_DIRNAME / host_name,
    )


__all__ = [
    "PublishCredentials",
    "SitePaths",
    "SiteRegistration",
    "UploadTask",
    "is_valid_host_name",
    "site_paths",
]
