"""USD pricing for ledger transactions.

This module converts minor-unit token amounts into USD using the token
registry, or reads upstream-reported USD values, depending on the
configured ledger variant.
"""

from __future__ import annotations

from decimal import Decimal

from core.constants import BPS_DENOMINATOR, LEDGER_VARIANT_REPORTED, UNKNOWN_CHAIN
from core.errors import NonPositivePriceError, UnresolvedAssetError
from core.types import FeeEntry, PricedTransaction, TokenInfo, TransactionRecord
from ingest.token_registry import TokenRegistry


def minor_units_to_usd(raw_amount: int | Decimal, decimals: int, price: float) -> float:
    """Convert a minor-unit amount into USD.

    ``usd = (raw_amount / 10**decimals) * price``

    Args:
        raw_amount: Amount in the asset's smallest denomination.
        decimals: Asset decimal exponent.
        price: USD price per whole unit.

    Returns:
        USD value.
    """
    whole_units = Decimal(raw_amount).scaleb(-decimals)
    return float(whole_units) * price


class TransactionPricer:
    """Price transactions and fee entries for one aggregation pass."""

    def __init__(self, registry: TokenRegistry, ledger_variant: str) -> None:
        self._registry = registry
        self._use_reported_usd = ledger_variant == LEDGER_VARIANT_REPORTED

    def price(self, record: TransactionRecord) -> PricedTransaction:
        """Resolve symbols, chains and USD volume for one transaction.

        Args:
            record: Ledger transaction.

        Returns:
            Priced view of the transaction. ``outflow_usd`` is None when the
            outflow side cannot be priced or carries no amount.

        Raises:
            UnresolvedAssetError: If the inflow asset is unknown (registry variant).
            NonPositivePriceError: If the inflow side has no positive price.
        """
        inflow_token = self._registry.resolve(record.origin_asset)
        outflow_token = self._registry.resolve(record.destination_asset)
        if self._use_reported_usd:
            inflow_usd = record.amount_in_usd
            if inflow_usd is None or inflow_usd <= 0:
                raise NonPositivePriceError(
                    f"No reported inflow USD for {record.deposit_address}"
                )
            outflow_usd = record.amount_out_usd if record.amount_out_usd else None
        else:
            inflow_usd = _token_usd(inflow_token, record.origin_asset, record.amount_in)
            outflow_usd = _optional_token_usd(outflow_token, record.amount_out)
        return PricedTransaction(
            inflow_symbol=inflow_token.symbol if inflow_token else record.origin_asset,
            outflow_symbol=_symbol_or_asset(outflow_token, record.destination_asset),
            source_chain=inflow_token.chain if inflow_token else UNKNOWN_CHAIN,
            destination_chain=outflow_token.chain if outflow_token else UNKNOWN_CHAIN,
            inflow_usd=inflow_usd,
            outflow_usd=outflow_usd if outflow_usd and outflow_usd > 0 else None,
        )

    def fee_usd(self, entry: FeeEntry, priced: PricedTransaction) -> float:
        """Return the USD value of one fee entry of a priced transaction."""
        if self._use_reported_usd:
            return priced.inflow_usd * entry.fee_bps / BPS_DENOMINATOR
        token = self._registry.resolve(entry.inflow_asset)
        if token is None:
            raise UnresolvedAssetError(f"Unknown asset {entry.inflow_asset}")
        return minor_units_to_usd(entry.fee_amount, token.decimals, token.price)


def _token_usd(token: TokenInfo | None, asset_id: str, raw_amount: int) -> float:
    if token is None:
        raise UnresolvedAssetError(f"Unknown asset {asset_id}")
    if token.price <= 0:
        raise NonPositivePriceError(f"Non-positive price {token.price} for {asset_id}")
    return minor_units_to_usd(raw_amount, token.decimals, token.price)


def _optional_token_usd(token: TokenInfo | None, raw_amount: int) -> float | None:
    if token is None or token.price <= 0 or raw_amount <= 0:
        return None
    return minor_units_to_usd(raw_amount, token.decimals, token.price)


def _symbol_or_asset(token: TokenInfo | None, asset_id: str) -> str:
    return token.symbol if token else asset_id
