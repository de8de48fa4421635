"""CLI entry point: sync, status."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import os
import sys

from scripts.auth_sync.config import load_config
from scripts.auth_sync.db import Database
from scripts.auth_sync.logging_config import configure_logging
from scripts.auth_sync.providers.auth0_users import Auth0UsersProvider

logger = logging.getLogger("auth_sync.cli")


def cmd_sync(args: argparse.Namespace) -> None:
    """Run one Auth0 sync into the database."""
    config = load_config()
    if args.domain:
        config = dataclasses.replace(
            config, auth0=dataclasses.replace(config.auth0, domain=args.domain)
        )
    db = Database(config.database)

    try:
        provider = Auth0UsersProvider(config, db)
        logger.info("Starting sync for %s", config.auth0.domain)
        results = provider.sync_with_tracking()
        logger.info("Sync results for %s: %s", config.auth0.domain, results)
    finally:
        db.close()


def cmd_status(args: argparse.Namespace) -> None:
    """Show recent ingestion runs."""
    config = load_config()
    db = Database(config.database)

    try:
        runs = db.get_recent_runs(limit=args.limit)
        if not runs:
            print("No ingestion runs found.")
            return

        fmt = "{:<36}  {:<10}  {:<8}  {:<20}  {:<20}  {:>8}  {}"
        print(fmt.format(
            "RUN ID", "PROVIDER", "STATUS", "STARTED", "FINISHED", "UPSERTED", "ERROR",
        ))
        print("-" * 130)
        for r in runs:
            started = str(r["started_at"])[:19] if r["started_at"] else ""
            finished = str(r["finished_at"])[:19] if r["finished_at"] else ""
            error = (r.get("error_message") or "")[:40]
            print(fmt.format(
                str(r["id"])[:36],
                r["provider"],
                r["status"],
                started,
                finished,
                r.get("records_upserted", 0),
                error,
            ))
    finally:
        db.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="auth-sync",
        description="Sync Auth0 users and login events into PostgreSQL",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        help="Log level (default: $LOG_LEVEL or INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Run one-shot sync")
    sync_parser.add_argument(
        "--domain", "-d",
        default=None,
        help="Auth0 tenant, e.g. 'oxide' for oxide.auth0.com (default: $AUTH0_DOMAIN)",
    )
    sync_parser.set_defaults(func=cmd_sync)

    status_parser = subparsers.add_parser("status", help="Show recent ingestion runs")
    status_parser.add_argument(
        "--limit", "-l",
        type=int,
        default=10,
        help="Number of runs to show (default: 10)",
    )
    status_parser.set_defaults(func=cmd_status)
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    try:
        args.func(args)
    except Exception as exc:
        logger.error("%s failed: %s", args.command, exc, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
