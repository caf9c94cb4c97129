"""sitedrop CLI - operator commands for the publishing service.

Usage:
    sitedrop serve [--host HOST] [--port PORT] [--log-level LEVEL]
    sitedrop route HOST URI
    sitedrop publish ARCHIVE

Commands:
    serve:   Run the HTTP API under uvicorn
    route:   Print the storage path the edge router maps a request to
    publish: Stage a local zip archive and publish it as a new site

Configuration is read from SITEDROP_* environment variables.

Exit codes:
    0: Success
    1: Internal error (unexpected)
    2: Publish rejected / invalid configuration
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import uuid
from pathlib import Path
from typing import Any

from sitedrop.config import ConfigError, Settings, load_settings
from sitedrop.edge import rewrite_uri
from sitedrop.publishing import (
    STAGED_ARCHIVE_KEY,
    ArchiveExtractor,
    PublishError,
    PublishingFinalizer,
)
from sitedrop.storage import build_object_stores

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000
LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


def _output_json(data: dict[str, Any]) -> None:
    """Output JSON to stdout with deterministic ordering."""
    print(json.dumps(data, sort_keys=True, indent=2))


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the API server. Blocks until uvicorn exits."""
    import uvicorn

    from sitedrop.api.main import create_app

    _configure_logging(args.log_level)
    app = create_app()
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level)
    return 0


def cmd_route(args: argparse.Namespace) -> int:
    """Print the rewritten URI for a host and path."""
    _output_json(
        {
            "host": args.host,
            "rewritten": rewrite_uri(args.host, args.uri),
            "uri": args.uri,
        }
    )
    return 0


def publish_archive(settings: Settings, archive_path: Path) -> dict[str, Any]:
    """Stage a local archive under a fresh tenant and publish it.

    Returns:
        The publish result as a dict with tenant_id, url and object_count.

    Raises:
        PublishError: If extraction or publishing is rejected.
    """
    published_store, staging_store = build_object_stores(settings)
    extractor = ArchiveExtractor(settings, published_store, staging_store)
    finalizer = PublishingFinalizer(settings, extractor, published_store, staging_store)

    tenant_id = str(uuid.uuid4())
    with open(archive_path, "rb") as f:
        staging_store.put_stream(tenant_id, STAGED_ARCHIVE_KEY, f, content_type="application/zip")

    result = finalizer.finalize(tenant_id)
    return {
        "object_count": result.object_count,
        "tenant_id": result.tenant_id,
        "url": result.url,
    }


def cmd_publish(args: argparse.Namespace) -> int:
    """Publish a local archive using the configured stores.

    Exit codes:
        0: Published
        2: Archive missing or publish rejected
    """
    _configure_logging(args.log_level)

    archive_path = Path(args.archive)
    if not archive_path.is_file():
        _output_json({"error": f"File not found: {archive_path}", "code": "FILE_NOT_FOUND"})
        return 2

    try:
        result = publish_archive(load_settings(), archive_path)
    except PublishError as e:
        _output_json({"error": e.message, "code": e.code})
        return 2

    _output_json(result)
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="sitedrop",
        description="sitedrop - static-site archive publishing",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument(
        "--host",
        default=DEFAULT_HOST,
        help=f"Host to bind to (default: {DEFAULT_HOST})",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=DEFAULT_PORT,
        help=f"Port to listen on (default: {DEFAULT_PORT})",
    )
    serve_parser.add_argument("--log-level", choices=LOG_LEVELS, default="info")

    route_parser = subparsers.add_parser(
        "route",
        help="Show the storage path a viewer request is routed to",
    )
    route_parser.add_argument("host", help="Host header, e.g. abc123.example.com")
    route_parser.add_argument("uri", help="Request path, e.g. /notes/")

    publish_parser = subparsers.add_parser(
        "publish",
        help="Publish a local zip archive as a new site",
    )
    publish_parser.add_argument("archive", metavar="ARCHIVE", help="Path to a .zip file")
    publish_parser.add_argument("--log-level", choices=LOG_LEVELS, default="warning")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Exit codes:
        0: Success
        1: Internal error (unexpected)
        2: Publish rejected / invalid configuration
    """
    try:
        parser = create_parser()
        args = parser.parse_args(argv)

        if args.command is None:
            parser.print_help()
            return 0

        if args.command == "serve":
            return cmd_serve(args)

        if args.command == "route":
            return cmd_route(args)

        if args.command == "publish":
            return cmd_publish(args)

        return 0

    except ConfigError as e:
        _output_json({"error": str(e), "code": "INVALID_CONFIGURATION"})
        return 2
    except Exception as e:
        logger.exception("Unexpected CLI failure")
        _output_json({"error": str(e), "code": "INTERNAL_ERROR"})
        return 1


if __name__ == "__main__":
    sys.exit(main())
