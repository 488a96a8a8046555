"""Logging setup shared by the control API and the preview server."""
from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Client and server libraries that log every request at INFO or DEBUG.
CHATTY_LOGGERS = ("botocore", "boto3", "s3transfer", "urllib3", "watchdog", "werkzeug")

_LOG_FILE: Optional[Path] = None
_CONFIGURED = False


def resolve_log_level(raw: Optional[str]) -> int:
    """Map ``SITEPUB_LOG_LEVEL`` (a name or a number) to a logging level."""

    if not raw:
        return logging.INFO
    text = raw.strip()
    if text.isdigit():
        return int(text)
    level = logging.getLevelName(text.upper())
    return level if isinstance(level, int) else logging.INFO


def resolve_log_directory(log_dir: Optional[Path] = None) -> Path:
    if log_dir is not None:
        return Path(log_dir)
    env_dir = os.getenv("SITEPUB_LOG_DIR")
    return Path(env_dir).expanduser() if env_dir else Path.cwd() / "logs"


def configure_logging(prefix: str = "sitepub", *, log_dir: Optional[Path] = None) -> Path:
    """Send root logging to a per-run file and stdout; later calls are no-ops.

    Third-party request loggers stay at WARNING unless the service itself
    runs at DEBUG, so per-upload boto chatter does not drown the per-site
    build lines.
    """

    global _CONFIGURED, _LOG_FILE

    if _CONFIGURED and _LOG_FILE is not None:
        return _LOG_FILE

    directory = resolve_log_directory(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    log_file = directory / f"{prefix}-{stamp}.log"

    level = resolve_log_level(os.getenv("SITEPUB_LOG_LEVEL"))
    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in (
        logging.FileHandler(log_file, encoding="utf-8"),
        logging.StreamHandler(sys.stdout),
    ):
        handler.setFormatter(formatter)
        root.addHandler(handler)

    library_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    _CONFIGURED = True
    _LOG_FILE = log_file
    root.info("Logging %s at %s to %s", prefix, logging.getLevelName(level), log_file)
    return log_file


def current_log_file() -> Optional[Path]:
    """Return the file chosen by the first ``configure_logging`` call, if any."""

    return _LOG_FILE


__all__ = ["configure_logging", "current_log_file", "resolve_log_level"]
