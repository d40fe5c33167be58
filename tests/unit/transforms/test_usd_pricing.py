"""Unit tests for USD pricing."""

from __future__ import annotations

import pytest

from core.errors import NonPositivePriceError, UnresolvedAssetError
from core.types import TokenInfo
from ingest.token_registry import TokenRegistry
from tests.ledger_fakes import ETH, USDC, make_record
from transforms.fee_extraction import extract_fee_entries
from transforms.usd_pricing import TransactionPricer, minor_units_to_usd


def _registry() -> TokenRegistry:
    return TokenRegistry(
        [
            TokenInfo(asset_id=USDC, symbol="USDC", decimals=6, price=1.0, chain="near"),
            TokenInfo(asset_id=ETH, symbol="ETH", decimals=18, price=2000.0, chain="eth"),
            TokenInfo(
                asset_id="nep141:zero.near", symbol="ZERO", decimals=6, price=0.0, chain="near"
            ),
        ]
    )


def test_minor_units_to_usd_scales_by_decimals() -> None:
    """Five units at six decimals and price two should be ten dollars."""
    assert minor_units_to_usd(5_000_000, 6, 2.0) == 10.0


def test_price_converts_both_sides_with_registry() -> None:
    """Registry variant should price inflow and outflow independently."""
    record = make_record("dep-1", amount_in=10_000_000, amount_out=5 * 10**15)

    priced = TransactionPricer(_registry(), "registry").price(record)

    assert (priced.inflow_usd, priced.outflow_usd) == pytest.approx((10.0, 10.0))


def test_price_raises_for_unknown_inflow_asset() -> None:
    """An unresolved inflow asset should be a pricing error."""
    record = make_record("dep-1", origin_asset="nep141:unknown.near")

    with pytest.raises(UnresolvedAssetError):
        TransactionPricer(_registry(), "registry").price(record)


def test_price_raises_for_zero_inflow_price() -> None:
    """A zero-priced inflow asset should be a pricing error."""
    record = make_record("dep-1", origin_asset="nep141:zero.near")

    with pytest.raises(NonPositivePriceError):
        TransactionPricer(_registry(), "registry").price(record)


def test_price_leaves_unknown_outflow_unpriced() -> None:
    """An unresolved outflow asset should not fail the transaction."""
    record = make_record("dep-1", destination_asset="nep141:unknown.near")

    priced = TransactionPricer(_registry(), "registry").price(record)

    assert (priced.outflow_usd, priced.destination_chain) == (None, "Unknown")


def test_fee_usd_uses_inflow_decimals_and_price() -> None:
    """Registry fee value should convert the fee amount of the inflow asset."""
    record = make_record("dep-1", amount_in=10_000_000_000, fees=(25,))
    pricer = TransactionPricer(_registry(), "registry")
    priced = pricer.price(record)

    fee_usd = pricer.fee_usd(extract_fee_entries(record)[0], priced)

    assert fee_usd == pytest.approx(25.0)


def test_reported_variant_uses_upstream_usd() -> None:
    """Reported variant should take inflow USD from the ledger row."""
    record = make_record("dep-1", amount_in_usd=400.0, amount_out_usd=398.0, fees=(50,))
    pricer = TransactionPricer(_registry(), "reported")
    priced = pricer.price(record)

    fee_usd = pricer.fee_usd(extract_fee_entries(record)[0], priced)

    assert (priced.inflow_usd, fee_usd) == pytest.approx((400.0, 2.0))


def test_reported_variant_requires_positive_inflow_usd() -> None:
    """A missing reported inflow value should be a price skip."""
    record = make_record("dep-1", amount_in_usd=None)

    with pytest.raises(NonPositivePriceError):
        TransactionPricer(_registry(), "reported").price(record)


def test_reported_variant_falls_back_to_asset_id_symbol() -> None:
    """Unknown assets should keep their raw id as the display symbol."""
    record = make_record("dep-1", origin_asset="nep141:mystery.near", amount_in_usd=5.0)

    priced = TransactionPricer(_registry(), "reported").price(record)

    assert (priced.inflow_symbol, priced.source_chain) == ("nep141:mystery.near", "Unknown")
