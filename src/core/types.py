"""Shared typed models.

This module defines immutable data models used by ingest, store,
transform, and publish layers to keep interfaces explicit and stable.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from pathlib import Path


@dataclass(frozen=True)
class AppFee:
    """One fee specification attached to a transaction.

    Attributes:
        fee_bps: Fee share in basis points of the inflow amount.
        recipient: Account credited with the fee.
    """

    fee_bps: int
    recipient: str


@dataclass(frozen=True)
class TransactionRecord:
    """Canonical transaction record as fetched and as stored in the ledger.

    Attributes:
        deposit_address: Per-transaction unique key used for deduplication.
        created_at: ISO-8601 creation time reported upstream.
        created_at_timestamp: Creation time in unix seconds.
        referral: Partner credited with the transaction, empty when absent.
        origin_asset: Inflow asset id.
        destination_asset: Outflow asset id.
        amount_in: Inflow amount in minor units.
        amount_out: Outflow amount in minor units.
        app_fees: Ordered fee specifications.
        status: Upstream settlement status.
        amount_in_usd: Upstream-reported inflow USD when present.
        amount_out_usd: Upstream-reported outflow USD when present.
        recipient: Withdrawal recipient when present.
        origin_tx_hash: First origin-chain transaction hash.
        destination_tx_hash: First destination-chain transaction hash.
    """

    deposit_address: str
    created_at: str
    created_at_timestamp: int
    referral: str
    origin_asset: str
    destination_asset: str
    amount_in: int
    amount_out: int
    app_fees: tuple[AppFee, ...] = ()
    status: str = ""
    amount_in_usd: float | None = None
    amount_out_usd: float | None = None
    recipient: str = ""
    origin_tx_hash: str = ""
    destination_tx_hash: str = ""


@dataclass(frozen=True)
class TransactionPage:
    """One upstream page of transactions.

    Attributes:
        page: Page number that was requested.
        records: Valid records on the page in upstream order.
        total_pages: Upstream page count at fetch time.
        next_page: Next page number, or None on the last page.
        invalid_records: Upstream records dropped because they failed validation.
    """

    page: int
    records: tuple[TransactionRecord, ...]
    total_pages: int
    next_page: int | None
    invalid_records: int = 0


@dataclass(frozen=True)
class Checkpoint:
    """Persisted ingestion progress.

    Attributes:
        cursor: Next page to fetch.
        snapshot_boundary: Locked unix timestamp bounding the current pass.
        last_key: Deposit address observed when the boundary was locked.
        total_processed: Ledger rows appended across all runs.
        last_updated: ISO-8601 UTC time of the last save.
    """

    cursor: int = 1
    snapshot_boundary: int | None = None
    last_key: str | None = None
    total_processed: int = 0
    last_updated: str = ""


class IngestState(Enum):
    """Ingestion orchestrator states."""

    FRESH = "fresh"
    BOUNDED = "bounded"
    DRAINING = "draining"
    DONE = "done"


@dataclass(frozen=True)
class IngestSummary:
    """Ingestion run report.

    Attributes:
        pages_fetched: Pages fetched in this run.
        records_seen: Valid upstream records seen in this run.
        records_appended: New ledger rows written in this run.
        duplicates: Records skipped because their key was already stored.
        out_of_window: Records newer than the locked snapshot boundary.
        not_fee_bearing: Records skipped by the reported-variant filter.
        invalid_records: Upstream records that failed validation.
        final_state: Terminal orchestrator state.
        stop_reason: Why the pass ended.
        checkpoint: Checkpoint persisted at the end of the run.
        ledger_rows: Ledger row count after the run.
    """

    pages_fetched: int
    records_seen: int
    records_appended: int
    duplicates: int
    out_of_window: int
    not_fee_bearing: int
    invalid_records: int
    final_state: IngestState
    stop_reason: str
    checkpoint: Checkpoint
    ledger_rows: int


@dataclass(frozen=True)
class TokenInfo:
    """Point-in-time asset metadata from the token registry.

    Attributes:
        asset_id: Registry asset identifier.
        symbol: Display symbol.
        decimals: Minor-unit exponent.
        price: USD price per whole unit.
        chain: Blockchain name.
    """

    asset_id: str
    symbol: str
    decimals: int
    price: float
    chain: str


@dataclass(frozen=True)
class FeeEntry:
    """One fee owed by one transaction to one recipient.

    Attributes:
        deposit_address: Key of the originating transaction.
        referral: Provider credited with the transaction.
        recipient: Fee recipient.
        fee_bps: Fee share in basis points.
        fee_amount: Fee in the inflow asset's minor units.
        inflow_asset: Inflow asset id.
        outflow_asset: Outflow asset id.
        created_at: ISO-8601 creation time.
        created_at_timestamp: Creation time in unix seconds.
    """

    deposit_address: str
    referral: str
    recipient: str
    fee_bps: int
    fee_amount: Decimal
    inflow_asset: str
    outflow_asset: str
    created_at: str
    created_at_timestamp: int


@dataclass(frozen=True)
class PricedTransaction:
    """USD view of one transaction.

    Attributes:
        inflow_symbol: Inflow display symbol.
        outflow_symbol: Outflow display symbol.
        source_chain: Inflow chain.
        destination_chain: Outflow chain.
        inflow_usd: Inflow value in USD.
        outflow_usd: Outflow value in USD, None when the outflow side is unpriced.
    """

    inflow_symbol: str
    outflow_symbol: str
    source_chain: str
    destination_chain: str
    inflow_usd: float
    outflow_usd: float | None


@dataclass(frozen=True)
class LeaderboardEntry:
    """Total fees credited to one referral."""

    referral: str
    total_fees_usd: float


@dataclass(frozen=True)
class ChartPoint:
    """Daily and cumulative fee totals for one date."""

    date: str
    daily_fees_usd: float
    cumulative_fees_usd: float


@dataclass(frozen=True)
class FlowSummary:
    """Inflow and outflow totals for one grouping key.

    Attributes:
        key: Grouping values, e.g. ``("USDC",)`` or ``("provider", "USDC")``.
        total_inflow_usd: Summed inflow USD.
        total_outflow_usd: Summed outflow USD.
        net_flow_usd: Inflow minus outflow.
        inflow_count: Transactions contributing inflow.
        outflow_count: Transactions contributing outflow.
    """

    key: tuple[str, ...]
    total_inflow_usd: float
    total_outflow_usd: float
    net_flow_usd: float
    inflow_count: int
    outflow_count: int


@dataclass(frozen=True)
class ProviderFlowSummary:
    """Volume and fee totals for one provider.

    Attributes:
        provider: Referral identifier.
        flow: Volume totals counted once per transaction.
        total_fees_usd: Fees summed once per fee specification.
        average_fee_bps: Summed fee bps divided by transaction count.
        transaction_count: Distinct transactions credited to the provider.
    """

    provider: str
    flow: FlowSummary
    total_fees_usd: float
    average_fee_bps: float
    transaction_count: int


@dataclass(frozen=True)
class RouteSummary:
    """Volume traded along one ordered asset pair."""

    from_asset: str
    to_asset: str
    volume_usd: float
    count: int


@dataclass(frozen=True)
class TopFee:
    """One individual fee entry ranked by USD value."""

    referral: str
    recipient: str
    deposit_address: str
    symbol: str
    fee_usd: float
    fee_amount: Decimal


@dataclass(frozen=True)
class AggregationSummary:
    """Row accounting for one aggregation pass.

    ``processed + skipped_no_token + skipped_no_price + malformed_rows``
    always equals ``total_input_rows``.
    """

    total_input_rows: int
    processed: int
    skipped_no_token: int
    skipped_no_price: int
    malformed_rows: int
    fee_entries: int
    transactions: int


@dataclass(frozen=True)
class AggregationResult:
    """Analytics document derived from the ledger."""

    leaderboard: tuple[LeaderboardEntry, ...]
    chart: tuple[ChartPoint, ...]
    asset_flows: tuple[FlowSummary, ...]
    chain_flows: tuple[FlowSummary, ...]
    provider_flows: tuple[ProviderFlowSummary, ...]
    provider_asset_flows: tuple[FlowSummary, ...]
    top_routes: tuple[RouteSummary, ...]
    top_fees: tuple[TopFee, ...]
    total_inflow_usd: float
    total_outflow_usd: float
    total_fees_usd: float
    recent_fees_usd: float
    summary: AggregationSummary
    generated_at: str
    ledger_variant: str


@dataclass(frozen=True)
class LedgerStatus:
    """Local ledger and checkpoint snapshot for status reporting."""

    ledger_path: Path
    ledger_rows: int
    checkpoint: Checkpoint
