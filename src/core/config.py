"""Runtime configuration model for the fee ledger.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import (
    DEFAULT_ARTIFACT_NAME,
    DEFAULT_DATA_ROOT,
    DEFAULT_EXPLORER_URL,
    DEFAULT_MAX_IDLE_PAGES,
    DEFAULT_PAGE_DELAY_SECONDS,
    DEFAULT_PER_PAGE,
    DEFAULT_RECENT_FEE_WINDOW_DAYS,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_TOKEN_REGISTRY_URL,
    DEFAULT_TOP_FEES_LIMIT,
    DEFAULT_TOP_ROUTES_LIMIT,
    LEDGER_VARIANT_REGISTRY,
    SUPPORTED_LEDGER_VARIANTS,
)
from core.errors import FeeLedgerConfigError, MissingCredentialError


@dataclass(frozen=True)
class FeeLedgerConfig:
    """Validated runtime configuration.

    Attributes:
        data_root: Local root directory for the ledger and checkpoint.
        explorer_api_key: Bearer token for the transaction explorer API.
        explorer_url: Paginated transactions endpoint.
        token_registry_url: Token metadata and price endpoint.
        per_page: Upstream page size.
        page_delay_seconds: Fixed pause between page fetches.
        request_timeout_seconds: Timeout applied to every HTTP request.
        max_idle_pages: Consecutive pages without new rows before stopping; 0 disables.
        top_routes_limit: Number of trade routes kept in the published document.
        top_fees_limit: Number of individual fees kept in the published document.
        recent_fee_window_days: Trailing window for the recent fee total.
        ledger_variant: ``registry`` or ``reported`` USD derivation.
        artifact_uri: Local directory or ``s3://bucket/prefix`` publish target.
        artifact_name: Fixed object name of the published document.
        s3_region: Optional default AWS region for S3 operations.
        s3_profile: Optional AWS profile for boto3 session initialization.
    """

    data_root: Path
    explorer_api_key: str | None
    explorer_url: str = DEFAULT_EXPLORER_URL
    token_registry_url: str = DEFAULT_TOKEN_REGISTRY_URL
    per_page: int = DEFAULT_PER_PAGE
    page_delay_seconds: float = DEFAULT_PAGE_DELAY_SECONDS
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    max_idle_pages: int = DEFAULT_MAX_IDLE_PAGES
    top_routes_limit: int = DEFAULT_TOP_ROUTES_LIMIT
    top_fees_limit: int = DEFAULT_TOP_FEES_LIMIT
    recent_fee_window_days: int = DEFAULT_RECENT_FEE_WINDOW_DAYS
    ledger_variant: str = LEDGER_VARIANT_REGISTRY
    artifact_uri: str | None = None
    artifact_name: str = DEFAULT_ARTIFACT_NAME
    s3_region: str | None = None
    s3_profile: str | None = None

    @classmethod
    def from_env(cls) -> "FeeLedgerConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            FeeLedgerConfigError: If environment values are invalid.
        """
        data_root_value = os.getenv("FEELEDGER_DATA_ROOT", str(DEFAULT_DATA_ROOT))
        return cls(
            data_root=Path(data_root_value).expanduser().resolve(),
            explorer_api_key=os.getenv("FEELEDGER_EXPLORER_API_KEY") or None,
            explorer_url=os.getenv("FEELEDGER_EXPLORER_URL", DEFAULT_EXPLORER_URL),
            token_registry_url=os.getenv(
                "FEELEDGER_TOKEN_REGISTRY_URL", DEFAULT_TOKEN_REGISTRY_URL
            ),
            per_page=_read_int("FEELEDGER_PER_PAGE", DEFAULT_PER_PAGE, minimum=1),
            page_delay_seconds=_read_float(
                "FEELEDGER_PAGE_DELAY_SECONDS", DEFAULT_PAGE_DELAY_SECONDS
            ),
            request_timeout_seconds=_read_float(
                "FEELEDGER_REQUEST_TIMEOUT_SECONDS", DEFAULT_REQUEST_TIMEOUT_SECONDS
            ),
            max_idle_pages=_read_int("FEELEDGER_MAX_IDLE_PAGES", DEFAULT_MAX_IDLE_PAGES),
            top_routes_limit=_read_int(
                "FEELEDGER_TOP_ROUTES_LIMIT", DEFAULT_TOP_ROUTES_LIMIT, minimum=1
            ),
            top_fees_limit=_read_int("FEELEDGER_TOP_FEES_LIMIT", DEFAULT_TOP_FEES_LIMIT),
            recent_fee_window_days=_read_int(
                "FEELEDGER_RECENT_FEE_WINDOW_DAYS", DEFAULT_RECENT_FEE_WINDOW_DAYS
            ),
            ledger_variant=_read_ledger_variant(),
            artifact_uri=os.getenv("FEELEDGER_ARTIFACT_URI") or None,
            artifact_name=os.getenv("FEELEDGER_ARTIFACT_NAME", DEFAULT_ARTIFACT_NAME),
            s3_region=os.getenv("FEELEDGER_S3_REGION"),
            s3_profile=os.getenv("FEELEDGER_S3_PROFILE"),
        )

    def require_explorer_api_key(self) -> str:
        """Return the explorer API key or fail before any network I/O.

        Raises:
            MissingCredentialError: If the key is not configured.
        """
        if not self.explorer_api_key:
            raise MissingCredentialError(
                "Missing explorer API key. "
                "Set FEELEDGER_EXPLORER_API_KEY before running ingest."
            )
        return self.explorer_api_key


def _read_int(name: str, default: int, minimum: int = 0) -> int:
    """Parse a non-negative integer environment value.

    Args:
        name: Environment variable name.
        default: Value used when the variable is unset.
        minimum: Smallest accepted value.

    Returns:
        Parsed integer.

    Raises:
        FeeLedgerConfigError: If value is not an integer in range.
    """
    raw_value = os.getenv(name)
    if raw_value is None or raw_value == "":
        return default
    try:
        value = int(raw_value)
    except ValueError as error:
        raise FeeLedgerConfigError(
            f"Invalid {name} value: expected integer, got '{raw_value}'. "
            f"Set {name} to a numeric value."
        ) from error
    if value < minimum:
        raise FeeLedgerConfigError(
            f"Invalid {name} value: expected integer >= {minimum}, got {value}."
        )
    return value


def _read_float(name: str, default: float) -> float:
    """Parse a non-negative float environment value."""
    raw_value = os.getenv(name)
    if raw_value is None or raw_value == "":
        return default
    try:
        value = float(raw_value)
    except ValueError as error:
        raise FeeLedgerConfigError(
            f"Invalid {name} value: expected number, got '{raw_value}'. "
            f"Set {name} to a numeric value."
        ) from error
    if value < 0:
        raise FeeLedgerConfigError(f"Invalid {name} value: expected number >= 0, got {value}.")
    return value


def _read_ledger_variant() -> str:
    """Parse the ledger variant selector."""
    variant = os.getenv("FEELEDGER_LEDGER_VARIANT", LEDGER_VARIANT_REGISTRY).strip().lower()
    if variant not in SUPPORTED_LEDGER_VARIANTS:
        raise FeeLedgerConfigError(
            f"Invalid FEELEDGER_LEDGER_VARIANT value '{variant}'. "
            f"Supported variants: {SUPPORTED_LEDGER_VARIANTS}."
        )
    return variant
