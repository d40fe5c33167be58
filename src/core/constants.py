"""Core constants used across fee ledger modules.

This module centralizes storage layout and upstream API defaults.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_DATA_ROOT = Path(".feeledger")
LEDGER_DIR_NAME = "ledger"
LEDGER_FILE_NAME = "transactions.csv"
INGEST_CHECKPOINT_DIR_NAME = "ingest_checkpoint"
CHECKPOINT_STATE_FILE_NAME = "state.json"
DEFAULT_EXPLORER_URL = "https://explorer.near-intents.org/api/v0/transactions-pages"
DEFAULT_TOKEN_REGISTRY_URL = "https://1click.chaindefuser.com/v0/tokens"
DEFAULT_PER_PAGE = 1000
DEFAULT_PAGE_DELAY_SECONDS = 1.0
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_IDLE_PAGES = 3
DEFAULT_TOP_ROUTES_LIMIT = 50
DEFAULT_TOP_FEES_LIMIT = 10
DEFAULT_RECENT_FEE_WINDOW_DAYS = 14
DEFAULT_ARTIFACT_NAME = "referral-fees.json"
BPS_DENOMINATOR = 10_000
UNKNOWN_CHAIN = "Unknown"
LEDGER_VARIANT_REGISTRY = "registry"
LEDGER_VARIANT_REPORTED = "reported"
SUPPORTED_LEDGER_VARIANTS = (LEDGER_VARIANT_REGISTRY, LEDGER_VARIANT_REPORTED)
LEDGER_HEADER = (
    "Timestamp",
    "TimestampUnix",
    "Provider",
    "InflowAsset",
    "InflowAmount",
    "InflowUSD",
    "OutflowAsset",
    "OutflowAmount",
    "OutflowUSD",
    "AppFees",
    "DepositAddress",
    "Recipient",
    "OriginTxHash",
    "DestinationTxHash",
    "Status",
)
