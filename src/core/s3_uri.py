"""S3 URI parsing helpers.

This module centralizes S3 URI parsing for artifact destinations.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.errors import FeeLedgerConfigError


@dataclass(frozen=True)
class S3Location:
    """Parsed S3 location model."""

    bucket: str
    prefix: str

    def object_key(self, name: str) -> str:
        """Return the object key for ``name`` under this prefix."""
        if not self.prefix:
            return name
        return f"{self.prefix.rstrip('/')}/{name}"


def is_s3_uri(uri: str) -> bool:
    return uri.startswith("s3://")


def parse_s3_uri(uri: str) -> S3Location:
    """Parse and validate an S3 URI.

    Args:
        uri: URI in format ``s3://bucket`` or ``s3://bucket/prefix``.

    Returns:
        Parsed bucket and prefix pair. The prefix may be empty.

    Raises:
        FeeLedgerConfigError: If the URI has no bucket.
    """
    if not is_s3_uri(uri):
        _raise_uri_error(uri)
    stripped_uri = uri.removeprefix("s3://")
    bucket, _, prefix = stripped_uri.partition("/")
    if not bucket:
        _raise_uri_error(uri)
    return S3Location(bucket=bucket, prefix=prefix.strip("/"))


def _raise_uri_error(uri: str) -> None:
    raise FeeLedgerConfigError(
        f"Invalid S3 URI '{uri}': expected s3://bucket/prefix. "
        "Set FEELEDGER_ARTIFACT_URI to a valid destination."
    )
