"""Command-line interface for the Konzertmeister to BMV sync."""

import argparse
import asyncio
import logging
import sys

from pydantic import ValidationError

from km_bmv_sync import __version__


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Konzertmeister to BMV Sync - Import Konzertmeister appointments into BMV"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Run command
    run_parser = subparsers.add_parser("run", help="Run one sync now")
    run_parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Only process the first N new appointments (manual verification)",
    )
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Transform new appointments but do not submit them to BMV",
    )

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP sync service")
    serve_parser.add_argument("--host", default=None, help="Bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Port")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "run" and args.limit is not None and args.limit < 1:
        parser.error("--limit must be at least 1")

    from km_bmv_sync.config import get_settings

    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return 2

    configure_logging("DEBUG" if args.verbose else settings.log_level)

    if args.command == "run":
        from km_bmv_sync.sync.engine import run_sync

        result = asyncio.run(run_sync(settings, limit=args.limit, dry_run=args.dry_run))
        print(result.message)
        return 0 if result.success else 1

    import uvicorn

    from km_bmv_sync.api import create_app

    uvicorn.run(
        create_app(settings),
        host=args.host or settings.host,
        port=args.port or settings.port,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
