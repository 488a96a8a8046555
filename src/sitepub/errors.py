"""Custom exceptions raised by the sitepub package."""
from __future__ import annotations


class SitepubError(RuntimeError):
    """Base error for the sitepub package."""


class ConfigError(SitepubError):
    """Raised when required startup configuration is missing or unreadable."""


class GeneratorError(SitepubError):
    """Raised when the site generator fails to load or render a site."""


class RegistryPersistError(SitepubError):
    """Raised when the site registry cannot be written to disk."""


class WatcherSetupError(SitepubError):
    """Raised when a live directory cannot be placed under watch."""


class PublishError(SitepubError):
    """Raised when an object-store upload fails."""


__all__ = [
    "ConfigError",
    "GeneratorError",
    "PublishError",
    "RegistryPersistError",
    "SitepubError",
    "WatcherSetupError",
]
