#!/usr/bin/env python3
"""Undangan CLI - run the service and maintain its database."""

import argparse
import asyncio
import sys
from pathlib import Path

from undangan.settings import settings
from undangan.utils.db_manager import db_manager
from undangan.utils.logger import logger

SETTINGS_TEMPLATE = """# Undangan configuration

port = 8000
host = "127.0.0.1"
debug = true

database_driver = "sqlite"
database_name = "undangan"

# Sessions end at midnight, N days after the last login
session_expiry_days = 1
session_timezone = "UTC"

# Daily purge of expired sessions
session_cleanup_enabled = true
session_cleanup_hour = 0
session_cleanup_minute = 1
"""


def init_project(path: str) -> None:
    """Write a starter settings.toml into ``path`` unless one is there already."""
    target = Path(path).resolve()
    target.mkdir(parents=True, exist_ok=True)

    settings_file = target / "settings.toml"
    if settings_file.exists():
        logger.warning(f"Keeping existing {settings_file}")
        return

    settings_file.write_text(SETTINGS_TEMPLATE)
    logger.info(f"Wrote {settings_file}")


def run_server(host: str | None = None, port: int | None = None) -> None:
    """Serve the API with uvicorn; reloads on change in debug mode."""
    import uvicorn

    host = host or settings.host
    port = port or settings.port
    logger.info(f"Serving Undangan on http://{host}:{port}")

    uvicorn.run(
        "undangan.api.app:app",
        host=host,
        port=port,
        reload=settings.debug,
        log_level="info" if settings.debug else "warning",
    )


async def init_database() -> None:
    """Create the tables."""
    try:
        await db_manager.create_db_and_tables_async()
    finally:
        await db_manager.close()


async def cleanup_sessions() -> int:
    """Purge expired sessions once, outside the server's daily schedule."""
    from undangan.services.session_cleanup import SessionCleanupService

    try:
        return await SessionCleanupService().cleanup_once()
    finally:
        await db_manager.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="undangan", description="Undangan service CLI")
    commands = parser.add_subparsers(dest="command", help="Available commands")

    init_cmd = commands.add_parser("init", help="Write a starter settings.toml")
    init_cmd.add_argument("path", nargs="?", default=".", help="Target directory (default: .)")

    run_cmd = commands.add_parser("run", help="Run the API server")
    run_cmd.add_argument("--host", default=None, help=f"Bind address (default: {settings.host})")
    run_cmd.add_argument("--port", type=int, default=None, help=f"Port (default: {settings.port})")

    db_cmd = commands.add_parser("db", help="Database maintenance")
    db_cmd.add_subparsers(dest="action").add_parser("init", help="Create the tables")

    sessions_cmd = commands.add_parser("sessions", help="Session maintenance")
    sessions_cmd.add_subparsers(dest="action").add_parser(
        "cleanup", help="Delete expired sessions now"
    )

    return parser


def main() -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    match (args.command, getattr(args, "action", None)):
        case ("init", _):
            init_project(args.path)
        case ("run", _):
            run_server(args.host, args.port)
        case ("db", "init"):
            asyncio.run(init_database())
        case ("sessions", "cleanup"):
            deleted = asyncio.run(cleanup_sessions())
            print(f"Removed {deleted} expired sessions")
        case _:
            parser.print_help()
            sys.exit(1)


if __name__ == "__main__":
    main()
