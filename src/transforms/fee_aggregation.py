"""Single-pass fee analytics aggregation.

This module folds ledger rows into the leaderboard, the cumulative fee
chart, flow breakdowns, trade routes, and top fees. Volume-side totals
count each transaction once; fee-side totals count each fee entry.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import heapq

from core.config import FeeLedgerConfig
from core.errors import MalformedRowError, NonPositivePriceError, UnresolvedAssetError
from core.logging_config import get_logger
from core.types import (
    AggregationResult,
    AggregationSummary,
    ChartPoint,
    FeeEntry,
    FlowSummary,
    LeaderboardEntry,
    PricedTransaction,
    ProviderFlowSummary,
    RouteSummary,
    TopFee,
    TransactionRecord,
)
from ingest.token_registry import TokenRegistry
from store.ledger_row import transaction_from_line
from store.transaction_ledger import TransactionLedger
from transforms.fee_extraction import extract_fee_entries
from transforms.usd_pricing import TransactionPricer

_LOGGER = get_logger(__name__)


@dataclass
class _FlowAccumulator:
    inflow_usd: float = 0.0
    outflow_usd: float = 0.0
    inflow_count: int = 0
    outflow_count: int = 0

    def add_inflow(self, usd: float) -> None:
        self.inflow_usd += usd
        self.inflow_count += 1

    def add_outflow(self, usd: float) -> None:
        self.outflow_usd += usd
        self.outflow_count += 1

    def summary(self, key: tuple[str, ...]) -> FlowSummary:
        return FlowSummary(
            key=key,
            total_inflow_usd=self.inflow_usd,
            total_outflow_usd=self.outflow_usd,
            net_flow_usd=self.inflow_usd - self.outflow_usd,
            inflow_count=self.inflow_count,
            outflow_count=self.outflow_count,
        )


@dataclass
class _ProviderAccumulator:
    fees_usd: float = 0.0
    total_bps: int = 0
    transaction_count: int = 0


@dataclass
class _RouteAccumulator:
    volume_usd: float = 0.0
    count: int = 0


class FeeAnalyticsAggregator:
    """Accumulate analytics over ledger rows in one pass.

    Rows are fed with ``add_line`` (raw ledger line) or ``add_record``
    (already parsed). ``result`` can be called at any point and does not
    reset the accumulators.
    """

    def __init__(
        self,
        registry: TokenRegistry,
        config: FeeLedgerConfig,
        now: datetime | None = None,
    ) -> None:
        self._pricer = TransactionPricer(registry, config.ledger_variant)
        self._ledger_variant = config.ledger_variant
        self._top_routes_limit = config.top_routes_limit
        self._top_fees_limit = config.top_fees_limit
        self._now = now or datetime.now(timezone.utc)
        self._recent_cutoff = (
            self._now - timedelta(days=config.recent_fee_window_days)
        ).timestamp()
        self._seen_deposits: set[str] = set()
        self._referral_fees: dict[str, float] = defaultdict(float)
        self._daily_fees: dict[str, float] = defaultdict(float)
        self._asset_flows: dict[str, _FlowAccumulator] = defaultdict(_FlowAccumulator)
        self._chain_flows: dict[str, _FlowAccumulator] = defaultdict(_FlowAccumulator)
        self._provider_flows: dict[str, _FlowAccumulator] = defaultdict(_FlowAccumulator)
        self._provider_asset_flows: dict[tuple[str, str], _FlowAccumulator] = defaultdict(
            _FlowAccumulator
        )
        self._providers: dict[str, _ProviderAccumulator] = defaultdict(_ProviderAccumulator)
        self._routes: dict[tuple[str, str], _RouteAccumulator] = defaultdict(_RouteAccumulator)
        self._top_fees: list[tuple[float, int, TopFee]] = []
        self._fee_sequence = 0
        self._total_inflow_usd = 0.0
        self._total_outflow_usd = 0.0
        self._total_fees_usd = 0.0
        self._recent_fees_usd = 0.0
        self._total_input_rows = 0
        self._processed = 0
        self._skipped_no_token = 0
        self._skipped_no_price = 0
        self._malformed_rows = 0
        self._fee_entries = 0

    def add_line(self, line_number: int, line: str | bytes) -> None:
        """Parse and accumulate one raw ledger line."""
        self._total_input_rows += 1
        try:
            record = transaction_from_line(line, line_number)
        except MalformedRowError as error:
            self._malformed_rows += 1
            _LOGGER.warning("malformed_ledger_row", line_number=line_number, error=str(error))
            return
        self._accumulate(record)

    def add_record(self, record: TransactionRecord) -> None:
        """Accumulate one parsed transaction."""
        self._total_input_rows += 1
        self._accumulate(record)

    def _accumulate(self, record: TransactionRecord) -> None:
        try:
            priced = self._pricer.price(record)
        except UnresolvedAssetError:
            self._skipped_no_token += 1
            return
        except NonPositivePriceError:
            self._skipped_no_price += 1
            return
        self._processed += 1
        entries = extract_fee_entries(record)
        if not entries:
            return
        for entry in entries:
            self._add_fee(entry, priced)
        if record.deposit_address in self._seen_deposits:
            return
        self._seen_deposits.add(record.deposit_address)
        self._add_volume(record.referral, priced)

    def _add_fee(self, entry: FeeEntry, priced: PricedTransaction) -> None:
        fee_usd = self._pricer.fee_usd(entry, priced)
        self._fee_entries += 1
        self._total_fees_usd += fee_usd
        self._referral_fees[entry.referral] += fee_usd
        self._daily_fees[_utc_date(entry.created_at_timestamp)] += fee_usd
        provider = self._providers[entry.referral]
        provider.fees_usd += fee_usd
        provider.total_bps += entry.fee_bps
        if entry.created_at_timestamp >= self._recent_cutoff:
            self._recent_fees_usd += fee_usd
        self._push_top_fee(
            TopFee(
                referral=entry.referral,
                recipient=entry.recipient,
                deposit_address=entry.deposit_address,
                symbol=priced.inflow_symbol,
                fee_usd=fee_usd,
                fee_amount=entry.fee_amount,
            )
        )

    def _push_top_fee(self, top_fee: TopFee) -> None:
        if self._top_fees_limit <= 0:
            return
        # Negated sequence keeps earlier entries ahead of later ties.
        item = (top_fee.fee_usd, -self._fee_sequence, top_fee)
        self._fee_sequence += 1
        if len(self._top_fees) < self._top_fees_limit:
            heapq.heappush(self._top_fees, item)
        else:
            heapq.heappushpop(self._top_fees, item)

    def _add_volume(self, provider: str, priced: PricedTransaction) -> None:
        self._providers[provider].transaction_count += 1
        self._total_inflow_usd += priced.inflow_usd
        self._asset_flows[priced.inflow_symbol].add_inflow(priced.inflow_usd)
        self._chain_flows[priced.source_chain].add_inflow(priced.inflow_usd)
        self._provider_flows[provider].add_inflow(priced.inflow_usd)
        self._provider_asset_flows[(provider, priced.inflow_symbol)].add_inflow(priced.inflow_usd)
        if priced.outflow_usd is None:
            return
        self._total_outflow_usd += priced.outflow_usd
        self._asset_flows[priced.outflow_symbol].add_outflow(priced.outflow_usd)
        self._chain_flows[priced.destination_chain].add_outflow(priced.outflow_usd)
        self._provider_flows[provider].add_outflow(priced.outflow_usd)
        self._provider_asset_flows[(provider, priced.outflow_symbol)].add_outflow(
            priced.outflow_usd
        )
        route = self._routes[(priced.inflow_symbol, priced.outflow_symbol)]
        route.volume_usd += priced.inflow_usd
        route.count += 1

    def result(self) -> AggregationResult:
        """Build the sorted analytics result from current accumulators."""
        return AggregationResult(
            leaderboard=self._leaderboard(),
            chart=self._chart(),
            asset_flows=_sorted_flows(
                flow.summary((symbol,)) for symbol, flow in self._asset_flows.items()
            ),
            chain_flows=_sorted_flows(
                flow.summary((chain,)) for chain, flow in self._chain_flows.items()
            ),
            provider_flows=self._provider_summaries(),
            provider_asset_flows=_sorted_flows(
                flow.summary(key) for key, flow in self._provider_asset_flows.items()
            ),
            top_routes=self._top_routes(),
            top_fees=tuple(item[2] for item in sorted(self._top_fees, reverse=True)),
            total_inflow_usd=self._total_inflow_usd,
            total_outflow_usd=self._total_outflow_usd,
            total_fees_usd=self._total_fees_usd,
            recent_fees_usd=self._recent_fees_usd,
            summary=self.summary(),
            generated_at=self._now.isoformat(),
            ledger_variant=self._ledger_variant,
        )

    def summary(self) -> AggregationSummary:
        return AggregationSummary(
            total_input_rows=self._total_input_rows,
            processed=self._processed,
            skipped_no_token=self._skipped_no_token,
            skipped_no_price=self._skipped_no_price,
            malformed_rows=self._malformed_rows,
            fee_entries=self._fee_entries,
            transactions=len(self._seen_deposits),
        )

    def _leaderboard(self) -> tuple[LeaderboardEntry, ...]:
        entries = [
            LeaderboardEntry(referral=referral, total_fees_usd=fees)
            for referral, fees in self._referral_fees.items()
        ]
        entries.sort(key=lambda entry: entry.total_fees_usd, reverse=True)
        return tuple(entries)

    def _chart(self) -> tuple[ChartPoint, ...]:
        points: list[ChartPoint] = []
        cumulative = 0.0
        for date in sorted(self._daily_fees):
            daily = self._daily_fees[date]
            cumulative += daily
            points.append(
                ChartPoint(date=date, daily_fees_usd=daily, cumulative_fees_usd=cumulative)
            )
        return tuple(points)

    def _provider_summaries(self) -> tuple[ProviderFlowSummary, ...]:
        summaries: list[ProviderFlowSummary] = []
        for provider, totals in self._providers.items():
            flow = self._provider_flows.get(provider, _FlowAccumulator())
            count = totals.transaction_count
            summaries.append(
                ProviderFlowSummary(
                    provider=provider,
                    flow=flow.summary((provider,)),
                    total_fees_usd=totals.fees_usd,
                    average_fee_bps=totals.total_bps / count if count else 0.0,
                    transaction_count=count,
                )
            )
        summaries.sort(key=lambda summary: summary.total_fees_usd, reverse=True)
        return tuple(summaries)

    def _top_routes(self) -> tuple[RouteSummary, ...]:
        routes = [
            RouteSummary(
                from_asset=from_asset,
                to_asset=to_asset,
                volume_usd=route.volume_usd,
                count=route.count,
            )
            for (from_asset, to_asset), route in self._routes.items()
        ]
        routes.sort(key=lambda route: route.volume_usd, reverse=True)
        return tuple(routes[: self._top_routes_limit])


def aggregate_ledger(
    ledger: TransactionLedger,
    registry: TokenRegistry,
    config: FeeLedgerConfig,
    now: datetime | None = None,
) -> AggregationResult:
    """Aggregate every stored ledger row in one pass.

    Args:
        ledger: Ledger to read.
        registry: Token registry snapshot.
        config: Runtime configuration.
        now: Generation time, defaults to the current UTC time.

    Returns:
        Aggregation result.
    """
    aggregator = FeeAnalyticsAggregator(registry, config, now=now)
    for line_number, line in ledger.iter_lines():
        aggregator.add_line(line_number, line)
    result = aggregator.result()
    summary = result.summary
    _LOGGER.info(
        "aggregation_completed",
        ledger_variant=result.ledger_variant,
        total_input_rows=summary.total_input_rows,
        processed=summary.processed,
        skipped_no_token=summary.skipped_no_token,
        skipped_no_price=summary.skipped_no_price,
        malformed_rows=summary.malformed_rows,
        fee_entries=summary.fee_entries,
        transactions=summary.transactions,
        total_fees_usd=result.total_fees_usd,
    )
    return result


def _sorted_flows(flows) -> tuple[FlowSummary, ...]:
    """Order flows by absolute net flow, largest first."""
    return tuple(sorted(flows, key=lambda flow: abs(flow.net_flow_usd), reverse=True))


def _utc_date(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, timezone.utc).date().isoformat()
