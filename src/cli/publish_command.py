"""Aggregate-and-publish command wiring for the fee ledger CLI."""

from __future__ import annotations

import argparse
from typing import Any

from store.ledger_sdk import FeeLedgerClient


def add_publish_command(subparsers: Any) -> None:
    """Register aggregate-and-publish subcommand."""
    parser = subparsers.add_parser(
        "aggregate-and-publish",
        help="Aggregate the ledger and publish the analytics document",
    )
    parser.add_argument(
        "--artifact-uri",
        help="Destination directory or s3://bucket/prefix (overrides FEELEDGER_ARTIFACT_URI)",
    )
    parser.add_argument(
        "--artifact-name",
        help="Artifact key (overrides FEELEDGER_ARTIFACT_NAME)",
    )


def run_publish_command(client: FeeLedgerClient, args: argparse.Namespace) -> int:
    """Aggregate, publish, and print the run report."""
    result, url = client.aggregate_and_publish(
        artifact_uri=args.artifact_uri,
        artifact_name=args.artifact_name,
    )
    summary = result.summary
    print(f"artifact_url={url}")
    print(f"total_input_rows={summary.total_input_rows}")
    print(f"processed={summary.processed}")
    print(f"skipped_no_token={summary.skipped_no_token}")
    print(f"skipped_no_price={summary.skipped_no_price}")
    print(f"malformed_rows={summary.malformed_rows}")
    print(f"total_referrals={len(result.leaderboard)}")
    print(f"total_fees_usd={result.total_fees_usd:.2f}")
    return 0
