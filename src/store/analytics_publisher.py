"""Analytics document serialization and publishing.

This module renders an AggregationResult as the dashboard JSON document
and uploads it under a fixed artifact name.
"""

from __future__ import annotations

import json
from typing import Any

from core.errors import ArtifactPublishError
from core.logging_config import get_logger
from core.types import AggregationResult, FlowSummary
from store.artifact_store import ArtifactStore

_LOGGER = get_logger(__name__)


def analytics_document(result: AggregationResult) -> dict[str, Any]:
    """Build the JSON-ready analytics document.

    Args:
        result: Aggregation result.

    Returns:
        Document with camelCase keys.
    """
    summary = result.summary
    return {
        "leaderboard": [
            {"referral": entry.referral, "totalFeesUSD": entry.total_fees_usd}
            for entry in result.leaderboard
        ],
        "chartData": [
            {
                "date": point.date,
                "cumulativeFees": point.cumulative_fees_usd,
                "dailyFees": point.daily_fees_usd,
            }
            for point in result.chart
        ],
        "assetFlows": [_flow_payload(flow, ("symbol",)) for flow in result.asset_flows],
        "chainFlows": [_flow_payload(flow, ("chain",)) for flow in result.chain_flows],
        "providerFlows": [
            {
                "provider": provider.provider,
                "totalInflowUSD": provider.flow.total_inflow_usd,
                "totalOutflowUSD": provider.flow.total_outflow_usd,
                "netFlowUSD": provider.flow.net_flow_usd,
                "totalFeesUSD": provider.total_fees_usd,
                "averageFeeBps": provider.average_fee_bps,
                "transactionCount": provider.transaction_count,
            }
            for provider in result.provider_flows
        ],
        "providerAssetFlows": [
            _flow_payload(flow, ("provider", "symbol")) for flow in result.provider_asset_flows
        ],
        "topRoutes": [
            {
                "fromAsset": route.from_asset,
                "toAsset": route.to_asset,
                "volumeUSD": route.volume_usd,
                "count": route.count,
            }
            for route in result.top_routes
        ],
        "topFees": [
            {
                "referral": fee.referral,
                "recipient": fee.recipient,
                "depositAddress": fee.deposit_address,
                "symbol": fee.symbol,
                "feeUSD": fee.fee_usd,
                "feeAmount": str(fee.fee_amount),
            }
            for fee in result.top_fees
        ],
        "totalInflowUSD": result.total_inflow_usd,
        "totalOutflowUSD": result.total_outflow_usd,
        "totalFees": result.total_fees_usd,
        "recentFeesUSD": result.recent_fees_usd,
        "totalReferrals": len(result.leaderboard),
        "summary": {
            "ledgerVariant": result.ledger_variant,
            "totalInputRows": summary.total_input_rows,
            "processed": summary.processed,
            "skippedNoToken": summary.skipped_no_token,
            "skippedNoPrice": summary.skipped_no_price,
            "malformedRows": summary.malformed_rows,
            "feeEntries": summary.fee_entries,
            "transactions": summary.transactions,
        },
        "lastUpdated": result.generated_at,
    }


def publish_analytics(result: AggregationResult, store: ArtifactStore, artifact_name: str) -> str:
    """Serialize and upload the analytics document.

    Args:
        result: Aggregation result.
        store: Destination artifact store.
        artifact_name: Fixed artifact key, overwritten on every publish.

    Returns:
        Published artifact location.

    Raises:
        ArtifactPublishError: If serialization or upload fails.
    """
    try:
        document = json.dumps(analytics_document(result), indent=2, allow_nan=False)
        payload = document.encode("utf-8")
    except (TypeError, ValueError) as error:
        raise ArtifactPublishError(
            f"Failed to serialize analytics for {artifact_name}: {error}.",
            target=artifact_name,
        ) from error
    url = store.put(artifact_name, payload)
    _LOGGER.info(
        "analytics_published",
        url=url,
        size_bytes=len(payload),
        total_referrals=len(result.leaderboard),
        total_fees_usd=result.total_fees_usd,
    )
    return url


def _flow_payload(flow: FlowSummary, key_names: tuple[str, ...]) -> dict[str, Any]:
    payload: dict[str, Any] = dict(zip(key_names, flow.key))
    payload.update(
        {
            "totalInflowUSD": flow.total_inflow_usd,
            "totalOutflowUSD": flow.total_outflow_usd,
            "netFlowUSD": flow.net_flow_usd,
            "inflowCount": flow.inflow_count,
            "outflowCount": flow.outflow_count,
        }
    )
    return payload
