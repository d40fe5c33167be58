"""Fee ledger exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations


class FeeLedgerError(Exception):
    """Base exception for all fee ledger failures."""


class FeeLedgerConfigError(FeeLedgerError):
    """Raised for invalid runtime configuration."""


class MissingCredentialError(FeeLedgerConfigError):
    """Raised when a required credential is absent from the environment."""


class FeeLedgerIngestError(FeeLedgerError):
    """Raised for upstream fetch and checkpoint failures."""


class TransientFetchError(FeeLedgerIngestError):
    """Raised when an upstream request fails; safe to resume from checkpoint."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class FeeLedgerStoreError(FeeLedgerError):
    """Raised for ledger and artifact persistence failures."""


class MalformedRowError(FeeLedgerStoreError):
    """Raised when a stored ledger row cannot be parsed."""


class ArtifactPublishError(FeeLedgerStoreError):
    """Raised when the analytics document cannot be uploaded."""

    def __init__(self, message: str, target: str) -> None:
        super().__init__(message)
        self.target = target


class FeeLedgerPricingError(FeeLedgerError):
    """Raised when a transaction cannot be converted to USD."""


class UnresolvedAssetError(FeeLedgerPricingError):
    """Raised when an asset id is missing from the token registry."""


class NonPositivePriceError(FeeLedgerPricingError):
    """Raised when a resolved asset has no usable USD price."""


class FeeLedgerDependencyError(FeeLedgerError):
    """Raised when an optional runtime dependency is missing."""
