"""In-memory site registry with atomic JSON snapshots."""
from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import replace
from pathlib import Path
from typing import Iterable, Optional

from .errors import ConfigError, RegistryPersistError
from .models import SiteRegistration, is_valid_host_name

LOGGER = logging.getLogger(__name__)


class SiteRegistry:
    """Thread-safe collection of site registrations.

    Every read and write goes through one lock. Readers always get copies so
    that callers never mutate the stored registrations behind the lock.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        sites: Optional[Iterable[SiteRegistration]] = None,
    ) -> None:
        self.path = Path(path).expanduser() if path is not None else None
        self._lock = threading.RLock()
        self._sites: list[SiteRegistration] = [replace(site) for site in sites or ()]

    @classmethod
    def load(cls, path: Path) -> "SiteRegistry":
        """Read a registry snapshot; a missing or empty file yields no sites."""

        target = Path(path).expanduser()
        if not target.exists():
            LOGGER.info("Sites file %s not found; starting with an empty registry", target)
            return cls(target)
        try:
            raw = target.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Unable to read sites file {target}: {exc}") from exc
        if not raw.strip():
            return cls(target)
        try:
            payload = json.loads(raw)
        except ValueError as exc:
            raise ConfigError(f"Sites file {target} is not valid JSON: {exc}") from exc
        if payload is None:
            return cls(target)
        if not isinstance(payload, list):
            raise ConfigError(f"Sites file {target} must contain a JSON array")
        sites = []
        for entry in payload:
            if not isinstance(entry, dict):
                continue
            site = SiteRegistration.from_dict(entry)
            if not is_valid_host_name(site.host_name):
                LOGGER.warning("Skipping site %r with invalid host name %r", site.name, site.host_name)
                continue
            sites.append(site)
        LOGGER.info("Loaded %d site(s) from %s", len(sites), target)
        return cls(target, sites)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def add(self, registration: SiteRegistration) -> None:
        with self._lock:
            self._sites.append(replace(registration))

    def all(self) -> list[SiteRegistration]:
        with self._lock:
            return [replace(site) for site in self._sites]

    def find(self, host_name: str) -> Optional[SiteRegistration]:
        if not host_name:
            return None
        with self._lock:
            for site in self._sites:
                if site.host_name == host_name:
                    return replace(site)
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sites)

    def persist(self) -> Path:
        """Rewrite the whole snapshot file atomically."""

        if self.path is None:
            raise RegistryPersistError("Registry has no backing file configured")
        with self._lock:
            payload = [site.to_dict() for site in self._sites]
            target = self.path
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
                )
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as handle:
                        json.dump(payload, handle, indent=2)
                        handle.flush()
                        os.fsync(handle.fileno())
                    os.replace(tmp_name, target)
                except BaseException:
                    Path(tmp_name).unlink(missing_ok=True)
                    raise
            except OSError as exc:
                raise RegistryPersistError(f"Unable to save sites to {target}: {exc}") from exc
        LOGGER.info("Saved %d site(s) to %s", len(payload), target)
        return target


__all__ = ["SiteRegistry"]
