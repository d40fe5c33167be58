"""Fee extraction transform.

This module expands one transaction into one fee entry per fee
specification. Amounts stay in the inflow asset's minor units.
"""

from __future__ import annotations

from decimal import Context, Decimal

from core.constants import BPS_DENOMINATOR
from core.types import FeeEntry, TransactionRecord

# Wide enough for uint256 amounts multiplied by any basis-point value.
_AMOUNT_CONTEXT = Context(prec=96)


def extract_fee_entries(record: TransactionRecord) -> list[FeeEntry]:
    """Expand a transaction into fee entries in fee-specification order.

    Args:
        record: Stored or fetched transaction.

    Returns:
        One entry per fee specification; empty when the transaction has no
        referral or no fee specifications.
    """
    if not record.referral or not record.app_fees:
        return []
    return [
        FeeEntry(
            deposit_address=record.deposit_address,
            referral=record.referral,
            recipient=app_fee.recipient,
            fee_bps=app_fee.fee_bps,
            fee_amount=calculate_fee_amount(record.amount_in, app_fee.fee_bps),
            inflow_asset=record.origin_asset,
            outflow_asset=record.destination_asset,
            created_at=record.created_at,
            created_at_timestamp=record.created_at_timestamp,
        )
        for app_fee in record.app_fees
    ]


def calculate_fee_amount(amount_in: int, fee_bps: int) -> Decimal:
    """Return ``amount_in * fee_bps / 10000`` exactly, in minor units.

    Args:
        amount_in: Inflow amount in minor units.
        fee_bps: Fee in basis points.

    Returns:
        Exact fee amount; fractional when the division does not terminate
        on a whole minor unit.
    """
    return _AMOUNT_CONTEXT.divide(Decimal(amount_in * fee_bps), Decimal(BPS_DENOMINATOR))
