"""Python SDK for referral fee ledger operations.

This module exposes high-level APIs for ingestion, aggregation,
publishing, and status inspection backed by the local data root.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from pathlib import Path

from core.config import FeeLedgerConfig
from core.types import AggregationResult, IngestSummary, LedgerStatus
from ingest.checkpoint_store import IngestCheckpointStore
from ingest.pipeline import ingest_transactions
from ingest.token_registry import TokenRegistry, load_token_registry
from store.analytics_publisher import publish_analytics
from store.artifact_store import ArtifactStore, create_artifact_store
from store.transaction_ledger import TransactionLedger
from transforms.fee_aggregation import aggregate_ledger


class FeeLedgerClient:
    """Primary SDK entry point for ledger workflows."""

    def __init__(self, config: FeeLedgerConfig | None = None) -> None:
        """Create SDK client.

        Args:
            config: Optional runtime configuration.
        """
        self._config = config or FeeLedgerConfig.from_env()

    @property
    def config(self) -> FeeLedgerConfig:
        return self._config

    def ingest(self, new_pass: bool = False) -> IngestSummary:
        """Fetch upstream pages into the local ledger.

        Args:
            new_pass: Start a new snapshot-bounded pass from page 1.

        Returns:
            Ingestion summary.

        Raises:
            MissingCredentialError: If no explorer API key is configured.
            TransientFetchError: If a page fetch fails.
            FeeLedgerStoreError: If ledger persistence fails.
        """
        return ingest_transactions(self._config, new_pass=new_pass)

    def aggregate(
        self,
        registry: TokenRegistry | None = None,
        now: datetime | None = None,
    ) -> AggregationResult:
        """Aggregate the stored ledger.

        Args:
            registry: Optional registry snapshot. Fetched when omitted.
            now: Optional generation time.

        Returns:
            Aggregation result.

        Raises:
            TransientFetchError: If the token registry cannot be fetched.
        """
        token_registry = registry or load_token_registry(self._config)
        ledger = TransactionLedger(self._config.data_root)
        return aggregate_ledger(ledger, token_registry, self._config, now=now)

    def publish(
        self,
        result: AggregationResult,
        artifact_uri: str | None = None,
        artifact_name: str | None = None,
        store: ArtifactStore | None = None,
    ) -> str:
        """Publish an aggregation result.

        Args:
            result: Aggregation result.
            artifact_uri: Optional destination override.
            artifact_name: Optional artifact key override.
            store: Optional prebuilt artifact store.

        Returns:
            Published artifact location.

        Raises:
            FeeLedgerConfigError: If no destination is configured.
            ArtifactPublishError: If the upload fails.
        """
        artifact_store = store or create_artifact_store(self._config, artifact_uri)
        return publish_analytics(
            result,
            artifact_store,
            artifact_name or self._config.artifact_name,
        )

    def aggregate_and_publish(
        self,
        artifact_uri: str | None = None,
        artifact_name: str | None = None,
    ) -> tuple[AggregationResult, str]:
        """Aggregate the ledger and publish the analytics document.

        The destination is resolved before aggregation starts so a missing
        destination fails without fetching the token registry.

        Returns:
            Aggregation result and published artifact location.
        """
        store = create_artifact_store(self._config, artifact_uri)
        result = self.aggregate()
        url = self.publish(result, artifact_name=artifact_name, store=store)
        return result, url

    def status(self) -> LedgerStatus:
        """Return local ledger and checkpoint state without network access."""
        ledger = TransactionLedger(self._config.data_root)
        checkpoint = IngestCheckpointStore(self._config.data_root).load()
        return LedgerStatus(
            ledger_path=ledger.path,
            ledger_rows=ledger.row_count,
            checkpoint=checkpoint,
        )

    def with_data_root(self, data_root: str) -> "FeeLedgerClient":
        """Clone the client with a different local data root.

        Args:
            data_root: New data root path.

        Returns:
            New SDK client instance.
        """
        resolved_root = Path(data_root).expanduser().resolve()
        return FeeLedgerClient(replace(self._config, data_root=resolved_root))
