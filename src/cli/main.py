"""Fee ledger CLI entry points.
This module exposes ingest, publish, and status commands.
It maps argparse commands onto SDK calls.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
from typing import Any, Sequence

from cli.publish_command import add_publish_command, run_publish_command
from core.config import FeeLedgerConfig
from core.errors import FeeLedgerError
from store.ledger_sdk import FeeLedgerClient


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="feeledger", description="Referral fee ledger CLI")
    parser.add_argument("--data-root", help="Override FEELEDGER_DATA_ROOT for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_ingest_command(subparsers)
    add_publish_command(subparsers)
    _add_status_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the fee ledger CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        client = _build_client(args.data_root)
        if args.command == "ingest":
            return _run_ingest_command(client, args)
        if args.command == "aggregate-and-publish":
            return run_publish_command(client, args)
        if args.command == "status":
            return _run_status_command(client)
    except FeeLedgerError as error:
        print(f"error={error}")
        return 1
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _build_client(data_root: str | None) -> FeeLedgerClient:
    """Build SDK client with optional data-root override.

    Args:
        data_root: Optional override path.

    Returns:
        Configured SDK client.
    """
    config = FeeLedgerConfig.from_env()
    if data_root:
        config = replace(config, data_root=Path(data_root).expanduser().resolve())
    return FeeLedgerClient(config)


def _run_ingest_command(client: FeeLedgerClient, args: argparse.Namespace) -> int:
    """Handle ingest command.

    Args:
        client: SDK client.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    summary = client.ingest(new_pass=args.new_pass)
    print(f"stop_reason={summary.stop_reason}")
    print(f"pages_fetched={summary.pages_fetched}")
    print(f"records_appended={summary.records_appended}")
    print(f"duplicates={summary.duplicates}")
    print(f"out_of_window={summary.out_of_window}")
    print(f"invalid_records={summary.invalid_records}")
    print(f"cursor={summary.checkpoint.cursor}")
    print(f"snapshot_boundary={summary.checkpoint.snapshot_boundary or '-'}")
    print(f"ledger_rows={summary.ledger_rows}")
    return 0


def _run_status_command(client: FeeLedgerClient) -> int:
    """Handle status command."""
    status = client.status()
    checkpoint = status.checkpoint
    print(f"ledger_path={status.ledger_path}")
    print(f"ledger_rows={status.ledger_rows}")
    print(f"cursor={checkpoint.cursor}")
    print(f"snapshot_boundary={checkpoint.snapshot_boundary or '-'}")
    print(f"last_key={checkpoint.last_key or '-'}")
    print(f"total_processed={checkpoint.total_processed}")
    print(f"last_updated={checkpoint.last_updated or '-'}")
    return 0


def _add_ingest_command(subparsers: Any) -> None:
    """Register ingest subcommand."""
    parser = subparsers.add_parser("ingest", help="Fetch upstream transactions into the ledger")
    parser.add_argument(
        "--new-pass",
        action="store_true",
        help="Start a new snapshot-bounded pass from page 1",
    )


def _add_status_command(subparsers: Any) -> None:
    """Register status subcommand."""
    subparsers.add_parser("status", help="Show ledger and checkpoint state")
