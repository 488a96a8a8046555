"""Configuration helpers for the sitepub service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import find_dotenv, load_dotenv

from .errors import ConfigError
from .utils import parse_float, parse_int, to_bool, to_optional_str

DEFAULT_PORT = 9999
DEFAULT_HOST = "0.0.0.0"
DEFAULT_SITES_FILE = "sites.json"
DEFAULT_REGION = "us-east-1"
DEFAULT_COMMAND_TIMEOUT = 60.0
DEFAULT_GENERATOR_COMMAND = "jekyll build"


def _ensure_dotenv_loaded() -> None:
    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path, override=False)


@dataclass(frozen=True)
class Settings:
    """Configuration values that drive the service."""

    port: int
    host: str
    base_dir: Path
    sites_file: Path
    s3_key: str
    s3_secret: str
    s3_region: str
    s3_endpoint: Optional[str]
    command_timeout: float
    verbose: bool
    generator_command: str
    abort_on_sync_failure: bool

    def as_config(self) -> Dict[str, Any]:
        """Return the Flask configuration mapping for these settings."""

        return {
            "SITEPUB_PORT": self.port,
            "SITEPUB_HOST": self.host,
            "SITEPUB_BASE_DIR": str(self.base_dir),
            "SITEPUB_SITES_FILE": str(self.sites_file),
            "SITEPUB_S3_REGION": self.s3_region,
            "SITEPUB_S3_ENDPOINT": self.s3_endpoint,
            "SITEPUB_COMMAND_TIMEOUT": self.command_timeout,
            "SITEPUB_VERBOSE": self.verbose,
            "SITEPUB_GENERATOR_COMMAND": self.generator_command,
            "SITEPUB_ABORT_ON_SYNC_FAILURE": self.abort_on_sync_failure,
        }


def load_settings_from_env(
    *,
    sites_file: Optional[str] = None,
    port: Optional[int] = None,
) -> Settings:
    """Return Settings populated from environment variables.

    Raises :class:`ConfigError` when the default object-store key pair is
    absent: no site can publish without it.
    """

    _ensure_dotenv_loaded()

    s3_key = to_optional_str(os.getenv("SITEPUB_S3_KEY"))
    if not s3_key:
        raise ConfigError(
            "No default global S3 key found. Set SITEPUB_S3_KEY in the environment or .env file."
        )
    s3_secret = to_optional_str(os.getenv("SITEPUB_S3_SECRET"))
    if not s3_secret:
        raise ConfigError(
            "No default global S3 secret found. Set SITEPUB_S3_SECRET in the environment or .env file."
        )

    base_dir = Path(os.getenv("SITEPUB_BASE_DIR") or ".").expanduser()
    sites_path = Path(
        sites_file or os.getenv("SITEPUB_SITES_FILE") or DEFAULT_SITES_FILE
    ).expanduser()

    return Settings(
        port=port if port is not None else parse_int(os.getenv("SITEPUB_PORT"), DEFAULT_PORT),
        host=os.getenv("SITEPUB_HOST") or DEFAULT_HOST,
        base_dir=base_dir,
        sites_file=sites_path,
        s3_key=s3_key,
        s3_secret=s3_secret,
        s3_region=os.getenv("SITEPUB_S3_REGION") or DEFAULT_REGION,
        s3_endpoint=to_optional_str(os.getenv("SITEPUB_S3_ENDPOINT")),
        command_timeout=max(
            1.0,
            parse_float(os.getenv("SITEPUB_COMMAND_TIMEOUT"), DEFAULT_COMMAND_TIMEOUT),
        ),
        verbose=to_bool(os.getenv("SITEPUB_VERBOSE"), default=True),
        generator_command=os.getenv("SITEPUB_GENERATOR_COMMAND") or DEFAULT_GENERATOR_COMMAND,
        abort_on_sync_failure=to_bool(os.getenv("SITEPUB_ABORT_ON_SYNC_FAILURE")),
    )


__all__ = ["Settings", "load_settings_from_env"]
