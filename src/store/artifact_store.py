"""Artifact stores for published analytics.

This module writes the analytics document under a fixed key, either to
S3 through boto3 or to a local directory. Both overwrite in place.
"""

from __future__ import annotations

import os
from pathlib import Path
import tempfile
from typing import Any, Protocol

from core.config import FeeLedgerConfig
from core.errors import ArtifactPublishError, FeeLedgerConfigError, FeeLedgerDependencyError
from core.s3_uri import S3Location, is_s3_uri, parse_s3_uri

ARTIFACT_CONTENT_TYPE = "application/json"


class ArtifactStore(Protocol):
    """Destination for published artifacts."""

    def put(self, name: str, payload: bytes) -> str:
        """Store ``payload`` under ``name`` and return its location."""
        ...


class S3ArtifactStore:
    """S3-backed artifact store."""

    def __init__(self, s3_client: Any, location: S3Location) -> None:
        self._s3_client = s3_client
        self._location = location

    def put(self, name: str, payload: bytes) -> str:
        """Upload payload with ``put_object``, replacing any previous object.

        Raises:
            ArtifactPublishError: If the upload fails.
        """
        object_key = self._location.object_key(name)
        target = f"s3://{self._location.bucket}/{object_key}"
        try:
            self._s3_client.put_object(
                Bucket=self._location.bucket,
                Key=object_key,
                Body=payload,
                ContentType=ARTIFACT_CONTENT_TYPE,
            )
        except Exception as error:
            raise ArtifactPublishError(
                f"Failed to publish artifact to {target}: {error}. "
                "Check AWS credentials and retry aggregate-and-publish.",
                target=target,
            ) from error
        return target


class LocalArtifactStore:
    """Directory-backed artifact store."""

    def __init__(self, directory: Path) -> None:
        self._directory = directory

    def put(self, name: str, payload: bytes) -> str:
        """Write payload atomically to ``directory/name``.

        Raises:
            ArtifactPublishError: If the file cannot be written.
        """
        target_path = self._directory / name
        temp_name: str | None = None
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            file_descriptor, temp_name = tempfile.mkstemp(
                prefix=f".{name}-", suffix=".tmp", dir=self._directory
            )
            with os.fdopen(file_descriptor, "wb") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_name, target_path)
        except OSError as error:
            if temp_name is not None:
                Path(temp_name).unlink(missing_ok=True)
            raise ArtifactPublishError(
                f"Failed to publish artifact to {target_path}: {error}.",
                target=str(target_path),
            ) from error
        return str(target_path)


def create_artifact_store(
    config: FeeLedgerConfig,
    artifact_uri: str | None = None,
) -> ArtifactStore:
    """Build the artifact store for a destination URI.

    Args:
        config: Runtime config with the default destination and S3 session settings.
        artifact_uri: Destination override, ``s3://bucket/prefix`` or a directory.

    Returns:
        Artifact store for the destination.

    Raises:
        FeeLedgerConfigError: If no destination is configured or the URI is invalid.
        FeeLedgerDependencyError: If an S3 destination is used without boto3.
    """
    uri = artifact_uri or config.artifact_uri
    if not uri:
        raise FeeLedgerConfigError(
            "No artifact destination configured. "
            "Set FEELEDGER_ARTIFACT_URI or pass --artifact-uri."
        )
    if is_s3_uri(uri):
        location = parse_s3_uri(uri)
        return S3ArtifactStore(create_s3_client(config), location)
    return LocalArtifactStore(Path(uri).expanduser())


def create_s3_client(config: FeeLedgerConfig) -> Any:
    """Create boto3 S3 client for artifact uploads.

    Args:
        config: Runtime config with optional session settings.

    Returns:
        Boto3 S3 client.

    Raises:
        FeeLedgerDependencyError: If boto3 is missing.
    """
    try:
        import boto3
    except ImportError as error:
        raise FeeLedgerDependencyError(
            "S3 publishing requires boto3, but it is not installed. "
            "Install boto3 to publish to s3:// destinations."
        ) from error
    session_kwargs: dict[str, str] = {}
    if config.s3_profile:
        session_kwargs["profile_name"] = config.s3_profile
    if config.s3_region:
        session_kwargs["region_name"] = config.s3_region
    session = boto3.session.Session(**session_kwargs)
    return session.client("s3")
