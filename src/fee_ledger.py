"""Public SDK surface for the referral fee ledger.

This module provides a stable import path for library users.
It re-exports the primary client and typed result models.
"""

from __future__ import annotations

from core.config import FeeLedgerConfig
from core.types import (
    AggregationResult,
    AggregationSummary,
    Checkpoint,
    IngestSummary,
    LedgerStatus,
    TransactionRecord,
)
from store.analytics_publisher import analytics_document
from store.ledger_sdk import FeeLedgerClient
from transforms.fee_extraction import extract_fee_entries
from transforms.usd_pricing import minor_units_to_usd

__all__ = [
    "AggregationResult",
    "AggregationSummary",
    "Checkpoint",
    "FeeLedgerClient",
    "FeeLedgerConfig",
    "IngestSummary",
    "LedgerStatus",
    "TransactionRecord",
    "analytics_document",
    "extract_fee_entries",
    "minor_units_to_usd",
]
