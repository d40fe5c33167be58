"""Token registry loader.

This module fetches a point-in-time snapshot of asset metadata
(symbol, decimals, USD price, chain) keyed by asset id.
"""

from __future__ import annotations

import math
from typing import Any, Iterable

import requests

from core.config import FeeLedgerConfig
from core.constants import UNKNOWN_CHAIN
from core.errors import TransientFetchError
from core.logging_config import get_logger
from core.types import TokenInfo

_LOGGER = get_logger(__name__)


class TokenRegistry:
    """In-memory asset metadata lookup for one aggregation run."""

    def __init__(self, tokens: Iterable[TokenInfo]) -> None:
        self._tokens = {token.asset_id: token for token in tokens}

    def resolve(self, asset_id: str) -> TokenInfo | None:
        """Return metadata for an asset id, or None when unknown."""
        return self._tokens.get(asset_id)

    def __len__(self) -> int:
        return len(self._tokens)


def load_token_registry(
    config: FeeLedgerConfig,
    session: requests.Session | None = None,
) -> TokenRegistry:
    """Fetch the token registry snapshot.

    Args:
        config: Runtime configuration with registry URL and timeout.
        session: Optional HTTP session, mainly for tests.

    Returns:
        Registry built from every valid entry.

    Raises:
        TransientFetchError: If the request fails or the body is not a JSON list.
    """
    http = session or requests.Session()
    url = config.token_registry_url
    try:
        response = http.get(url, timeout=config.request_timeout_seconds)
    except requests.RequestException as error:
        raise TransientFetchError(
            f"Failed to fetch token registry from {url}: {error}. Retry aggregation."
        ) from error
    if not response.ok:
        raise TransientFetchError(
            f"Failed to fetch token registry from {url}: HTTP {response.status_code}.",
            status=response.status_code,
        )
    try:
        payload = response.json()
    except ValueError as error:
        raise TransientFetchError(
            f"Failed to parse token registry from {url}: response body is not JSON."
        ) from error
    registry = TokenRegistry(parse_token_entries(payload))
    _LOGGER.info("token_registry_loaded", url=url, token_count=len(registry))
    return registry


def parse_token_entries(payload: Any) -> list[TokenInfo]:
    """Parse registry JSON into token metadata, skipping invalid entries.

    Raises:
        TransientFetchError: If payload is not a list.
    """
    if not isinstance(payload, list):
        raise TransientFetchError("Invalid token registry payload: expected a JSON list.")
    tokens: list[TokenInfo] = []
    for position, entry in enumerate(payload):
        try:
            tokens.append(_token_from_entry(entry))
        except (KeyError, TypeError, ValueError) as error:
            _LOGGER.warning("invalid_token_entry", position=position, error=str(error))
    return tokens


def _token_from_entry(entry: dict[str, Any]) -> TokenInfo:
    price = float(entry.get("price") or 0.0)
    if not math.isfinite(price):
        raise ValueError(f"non-finite price for {entry.get('assetId')!r}")
    return TokenInfo(
        asset_id=str(entry["assetId"]),
        symbol=str(entry["symbol"]),
        decimals=int(entry["decimals"]),
        price=price,
        chain=str(entry.get("blockchain") or UNKNOWN_CHAIN),
    )
