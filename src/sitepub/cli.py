#!/usr/bin/env python3
"""Command-line entry points for the sitepub service."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .config import DEFAULT_GENERATOR_COMMAND, load_settings_from_env
from .engine import ProcessRunner, command_generator_factory
from .errors import ConfigError
from .logging_config import configure_logging

LOGGER = logging.getLogger("sitepub.cli")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sitepub",
        description="Build, watch and publish statically generated sites.",
    )
    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Run the multi-site control API (default)")
    serve_parser.add_argument("--sites", help="Sites list file (overrides SITEPUB_SITES_FILE)")
    serve_parser.add_argument("--port", type=int, help="Control API port (overrides SITEPUB_PORT)")

    preview_parser = subparsers.add_parser("preview", help="Render one site and serve it locally")
    preview_parser.add_argument("source", nargs="?", default=".", help="Site source directory")
    preview_parser.add_argument("--output", help="Output directory (default: <source>/../_out)")
    preview_parser.add_argument("--port", type=int, default=8080, help="Preview server port")
    preview_parser.add_argument(
        "--generator",
        default=DEFAULT_GENERATOR_COMMAND,
        help="Generator command line",
    )

    arguments = list(sys.argv[1:] if argv is None else argv)
    if not arguments or arguments[0] not in {"serve", "preview", "-h", "--help"}:
        arguments = ["serve", *arguments]
    return parser.parse_args(arguments)


def serve(args: argparse.Namespace) -> int:
    from .app import bootstrap_sites, create_app

    configure_logging("sitepub")
    try:
        settings = load_settings_from_env(sites_file=args.sites, port=args.port)
        app = create_app(settings, configure_logs=False)
    except ConfigError as exc:
        LOGGER.error("%s Bailing out!", exc)
        return 1

    LOGGER.info(
        "Program started with base dir %s, sites %s",
        settings.base_dir.resolve(),
        settings.sites_file.resolve(),
    )
    bootstrap_sites(app)
    LOGGER.info("Starting server on port %d", settings.port)
    try:
        app.run(host=settings.host, port=settings.port, threaded=True)
    finally:
        app.extensions["sitepub_dispatcher"].shutdown()
    return 0


def preview(args: argparse.Namespace) -> int:
    from .preview import run_preview

    configure_logging("preview")
    source = Path(args.source).expanduser().resolve()
    output = Path(args.output).expanduser() if args.output else source.parent / "_out"
    runner = ProcessRunner(verbose=True)
    return run_preview(
        source,
        output,
        port=args.port,
        generator_factory=command_generator_factory(args.generator, runner=runner),
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    if args.command == "preview":
        return preview(args)
    return serve(args)


if __name__ == "__main__":
    sys.exit(main())
