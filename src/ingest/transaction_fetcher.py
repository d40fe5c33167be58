"""Paginated transaction fetcher for the explorer API.

This module retrieves one page of transactions per call and normalizes
upstream JSON into typed records. It holds no pagination state.
"""

from __future__ import annotations

import math
from typing import Any

import requests

from core.config import FeeLedgerConfig
from core.errors import TransientFetchError
from core.logging_config import get_logger
from core.types import AppFee, TransactionPage, TransactionRecord

_LOGGER = get_logger(__name__)


class TransactionFetcher:
    """Fetch pages from the explorer ``transactions-pages`` endpoint."""

    def __init__(
        self,
        config: FeeLedgerConfig,
        session: requests.Session | None = None,
    ) -> None:
        """Create a fetcher bound to configured credentials.

        Args:
            config: Runtime configuration.
            session: Optional HTTP session, mainly for tests.

        Raises:
            MissingCredentialError: If no explorer API key is configured.
        """
        self._api_key = config.require_explorer_api_key()
        self._url = config.explorer_url
        self._per_page = config.per_page
        self._timeout = config.request_timeout_seconds
        self._session = session or requests.Session()

    def fetch_page(self, page: int, snapshot_boundary: int | None = None) -> TransactionPage:
        """Fetch and parse one page of transactions.

        Args:
            page: One-based page number.
            snapshot_boundary: Optional unix timestamp passed as ``endTimestampUnix``.

        Returns:
            Parsed transaction page.

        Raises:
            TransientFetchError: On timeout, transport failure, non-2xx status,
                or an unparseable response body.
        """
        params: dict[str, str] = {"page": str(page), "perPage": str(self._per_page)}
        if snapshot_boundary is not None:
            params["endTimestampUnix"] = str(snapshot_boundary)
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = self._session.get(
                self._url, params=params, headers=headers, timeout=self._timeout
            )
        except requests.Timeout as error:
            raise TransientFetchError(
                f"Timed out fetching page {page} after {self._timeout}s. "
                "Rerun ingest to resume from the last checkpoint."
            ) from error
        except requests.RequestException as error:
            raise TransientFetchError(
                f"Failed to fetch page {page}: {error}. "
                "Rerun ingest to resume from the last checkpoint."
            ) from error
        if not response.ok:
            raise TransientFetchError(
                f"Failed to fetch page {page}: HTTP {response.status_code}. "
                "Rerun ingest to resume from the last checkpoint.",
                status=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as error:
            raise TransientFetchError(
                f"Failed to parse page {page}: response body is not JSON.",
                status=response.status_code,
            ) from error
        return parse_transaction_page(page, payload)


def parse_transaction_page(page: int, payload: Any) -> TransactionPage:
    """Parse a ``transactions-pages`` response body.

    Args:
        page: Requested page number.
        payload: Decoded JSON body.

    Returns:
        Typed page with invalid records dropped and counted.

    Raises:
        TransientFetchError: If the envelope itself is malformed.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
        raise TransientFetchError(
            f"Invalid response for page {page}: expected object with a 'data' list."
        )
    records: list[TransactionRecord] = []
    invalid_records = 0
    for position, item in enumerate(payload["data"]):
        try:
            records.append(transaction_from_payload(item))
        except (KeyError, TypeError, ValueError) as error:
            invalid_records += 1
            _LOGGER.warning(
                "invalid_upstream_record",
                page=page,
                position=position,
                error=str(error),
            )
    next_page = payload.get("nextPage")
    return TransactionPage(
        page=page,
        records=tuple(records),
        total_pages=int(payload.get("totalPages") or 0),
        next_page=int(next_page) if next_page else None,
        invalid_records=invalid_records,
    )


def transaction_from_payload(payload: dict[str, Any]) -> TransactionRecord:
    """Build a transaction record from one upstream JSON object.

    Args:
        payload: Upstream transaction object.

    Returns:
        Typed transaction record.

    Raises:
        KeyError: If a required field is missing.
        ValueError: If a field has an invalid value.
        TypeError: If a field has an invalid type.
    """
    deposit_address = str(payload["depositAddress"] or "")
    if not deposit_address:
        raise ValueError("empty depositAddress")
    origin_hashes = payload.get("originChainTxHashes") or []
    destination_hashes = payload.get("destinationChainTxHashes") or []
    return TransactionRecord(
        deposit_address=deposit_address,
        created_at=str(payload["createdAt"]),
        created_at_timestamp=int(payload["createdAtTimestamp"]),
        referral=str(payload.get("referral") or ""),
        origin_asset=str(payload["originAsset"]),
        destination_asset=str(payload.get("destinationAsset") or ""),
        amount_in=parse_minor_units(payload["amountIn"]),
        amount_out=parse_minor_units(payload.get("amountOut") or 0),
        app_fees=tuple(
            AppFee(fee_bps=int(fee["fee"]), recipient=str(fee.get("recipient") or ""))
            for fee in payload.get("appFees") or []
        ),
        status=str(payload.get("status") or ""),
        amount_in_usd=_optional_float(payload.get("amountInUsd")),
        amount_out_usd=_optional_float(payload.get("amountOutUsd")),
        recipient=str(payload.get("recipient") or ""),
        origin_tx_hash=str(origin_hashes[0]) if origin_hashes else "",
        destination_tx_hash=str(destination_hashes[0]) if destination_hashes else "",
    )


def parse_minor_units(raw_value: Any) -> int:
    """Parse an integer minor-unit amount.

    Raises:
        ValueError: If the value is not a non-negative integer.
    """
    if isinstance(raw_value, bool):
        raise ValueError(f"invalid minor-unit amount: {raw_value!r}")
    value = int(str(raw_value).strip())
    if value < 0:
        raise ValueError(f"negative minor-unit amount: {raw_value!r}")
    return value


def _optional_float(raw_value: Any) -> float | None:
    if raw_value is None or raw_value == "":
        return None
    value = float(raw_value)
    if not math.isfinite(value):
        raise ValueError(f"non-finite amount: {raw_value!r}")
    return value
