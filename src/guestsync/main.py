#!/usr/bin/env python3

# ruff: noqa: T201

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from guestsync.app import build_app, check_cache, listen, run_catch_up, run_sync_ids
from guestsync.config import ConfigurationError, configure_logging

if TYPE_CHECKING:
    from collections.abc import Sequence

    from guestsync.domain.reconciliation import SyncResult


def _parse_iso_datetime(value: str) -> datetime:
    try:
        normalized = value.strip()
        if normalized.endswith("Z"):
            normalized = normalized[:-1] + "+00:00"
        dt = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise ValueError(f"Invalid ISO timestamp: {value}") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync OPERA guests into Salesforce")
    commands = parser.add_subparsers(dest="command", required=True)

    catch_up = commands.add_parser("catch-up", help="Sync guests changed since the last run")
    catch_up.add_argument(
        "--since",
        type=str,
        help="ISO-8601 timestamp overriding the stored watermark",
    )

    sync = commands.add_parser("sync", help="Sync specific OPERA guests by NAME_ID")
    sync.add_argument("ids", nargs="+", help="OPERA NAME_ID values")

    commands.add_parser("listen", help="Follow the OPERA change feed with periodic catch-up")
    commands.add_parser("check-cache", help="Load the duplicate cache and print its statistics")
    return parser.parse_args(list(argv))


def _print_result(result: SyncResult) -> None:
    print(
        f"Identities: {result.identities.created} created, {result.identities.failed} failed"
    )
    print(
        f"Stays: {result.stays.created} created, {result.stays.updated} updated, "
        f"{result.stays.unchanged} unchanged, {result.stays.failed} failed"
    )
    if result.likely_duplicates:
        print(f"Held as likely duplicates: {len(result.likely_duplicates)}")
    if result.needs_review:
        print(f"Needs review ({len(result.needs_review)}):")
        for item in result.needs_review:
            print(f"  [{item.reason}] {item.email}: {item.detail}")


async def _listen_until_signalled() -> None:
    app = build_app()
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stop.set)
    try:
        await listen(app, stop=stop)
    finally:
        await app.aclose()


async def _run(args: argparse.Namespace) -> int:
    if args.command == "listen":
        await _listen_until_signalled()
        return 0

    app = build_app()
    try:
        if args.command == "catch-up":
            since = _parse_iso_datetime(args.since) if args.since else None
            outcome = await run_catch_up(app, since=since)
            _print_result(outcome.result)
            return 0 if outcome.succeeded else 1
        if args.command == "sync":
            result = await run_sync_ids(app, args.ids)
            _print_result(result)
            return 1 if result.all_failed else 0
        stats = await check_cache(app)
        print(
            f"Duplicate detection: enabled={stats.enabled} threshold={stats.threshold} "
            f"cached={stats.cached} degraded={stats.degraded}"
        )
        print(
            f"Records: {stats.record_count}, names: {stats.name_count}, "
            f"emails: {stats.email_count}, last refresh: {stats.last_refresh}"
        )
        return 0
    finally:
        await app.aclose()


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    configure_logging()
    try:
        parsed_args = _parse_args(sys.argv[1:] if argv is None else argv)
        if getattr(parsed_args, "since", None):
            _parse_iso_datetime(parsed_args.since)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)

    try:
        exit_code = asyncio.run(_run(parsed_args))
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(2)
    except Exception as e:  # noqa: BLE001
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
