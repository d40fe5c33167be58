"""Ingest orchestration for the transaction ledger.

This module drives the paginated fetcher, the append-only ledger, and
the checkpoint store through one snapshot-bounded ingestion pass:
FRESH -> BOUNDED -> (DRAINING) -> DONE.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
import time
from typing import Callable, Protocol

from core.config import FeeLedgerConfig
from core.constants import LEDGER_VARIANT_REPORTED
from core.logging_config import get_logger
from core.types import (
    Checkpoint,
    IngestState,
    IngestSummary,
    TransactionPage,
    TransactionRecord,
)
from ingest.checkpoint_store import IngestCheckpointStore
from ingest.transaction_fetcher import TransactionFetcher
from store.transaction_ledger import TransactionLedger

_LOGGER = get_logger(__name__)


class PageFetcher(Protocol):
    """Anything that can fetch one upstream page."""

    def fetch_page(self, page: int, snapshot_boundary: int | None = None) -> TransactionPage:
        ...


@dataclass
class _RunCounters:
    """Mutable per-run tallies."""

    pages_fetched: int = 0
    records_seen: int = 0
    records_appended: int = 0
    duplicates: int = 0
    out_of_window: int = 0
    not_fee_bearing: int = 0
    invalid_records: int = 0
    idle_pages: int = 0


class LedgerIngestRunner:
    """Stateful runner for one resumable ingestion pass."""

    def __init__(
        self,
        config: FeeLedgerConfig,
        fetcher: PageFetcher,
        ledger: TransactionLedger,
        checkpoint_store: IngestCheckpointStore,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config
        self._fetcher = fetcher
        self._ledger = ledger
        self._checkpoint_store = checkpoint_store
        self._sleep = sleep
        self._fee_bearing_only = config.ledger_variant == LEDGER_VARIANT_REPORTED

    def run(self, new_pass: bool = False) -> IngestSummary:
        """Execute the pass until DONE and return the run summary.

        Args:
            new_pass: Discard the locked boundary and restart from page 1.
                Ledger contents and ``total_processed`` are kept.

        Returns:
            Summary of this run.

        Raises:
            TransientFetchError: If a page fetch fails. Progress up to the
                last saved checkpoint is kept.
            FeeLedgerStoreError: If the ledger cannot be written.
        """
        checkpoint = self._checkpoint_store.load()
        if new_pass:
            checkpoint = replace(checkpoint, cursor=1, snapshot_boundary=None, last_key=None)
            _LOGGER.info("ingest_new_pass", total_processed=checkpoint.total_processed)
        state = IngestState.FRESH if checkpoint.snapshot_boundary is None else IngestState.BOUNDED
        _LOGGER.info(
            "ingest_started",
            state=state.value,
            cursor=checkpoint.cursor,
            snapshot_boundary=checkpoint.snapshot_boundary,
            total_processed=checkpoint.total_processed,
            ledger_rows=self._ledger.row_count,
        )
        counters = _RunCounters()
        stop_reason = ""
        while state is not IngestState.DONE:
            if state is IngestState.DRAINING:
                _LOGGER.info("ingest_draining", idle_pages=counters.idle_pages)
                stop_reason = "idle_pages"
                state = IngestState.DONE
                continue
            page = self._fetcher.fetch_page(checkpoint.cursor, checkpoint.snapshot_boundary)
            counters.pages_fetched += 1
            counters.invalid_records += page.invalid_records
            if not page.records and not page.invalid_records:
                checkpoint = self._save(checkpoint)
                stop_reason = "empty_page"
                state = IngestState.DONE
                continue
            # A page of only invalid records advances like an idle page.
            lock_page = state is IngestState.FRESH and bool(page.records)
            if lock_page:
                checkpoint = _lock_snapshot_boundary(checkpoint, page.records)
                state = IngestState.BOUNDED
            appended = self._append_page(page, checkpoint, lock_page, counters)
            checkpoint = replace(checkpoint, total_processed=checkpoint.total_processed + appended)
            counters.idle_pages = 0 if appended else counters.idle_pages + 1
            _log_page(page, appended, checkpoint)
            if page.next_page is None:
                checkpoint = self._save(checkpoint)
                stop_reason = "last_page"
                state = IngestState.DONE
                continue
            checkpoint = self._save(replace(checkpoint, cursor=page.next_page))
            if self._idle_limit_reached(counters.idle_pages):
                state = IngestState.DRAINING
                continue
            self._sleep(self._config.page_delay_seconds)
        summary = IngestSummary(
            pages_fetched=counters.pages_fetched,
            records_seen=counters.records_seen,
            records_appended=counters.records_appended,
            duplicates=counters.duplicates,
            out_of_window=counters.out_of_window,
            not_fee_bearing=counters.not_fee_bearing,
            invalid_records=counters.invalid_records,
            final_state=state,
            stop_reason=stop_reason,
            checkpoint=checkpoint,
            ledger_rows=self._ledger.row_count,
        )
        _log_ingest_completion(summary)
        return summary

    def _append_page(
        self,
        page: TransactionPage,
        checkpoint: Checkpoint,
        lock_page: bool,
        counters: _RunCounters,
    ) -> int:
        """Filter one page against the snapshot window and append new rows."""
        candidates: list[TransactionRecord] = []
        for record in page.records:
            counters.records_seen += 1
            if (
                not lock_page
                and checkpoint.snapshot_boundary is not None
                and record.created_at_timestamp > checkpoint.snapshot_boundary
            ):
                counters.out_of_window += 1
                continue
            if self._fee_bearing_only and not record.app_fees:
                counters.not_fee_bearing += 1
                continue
            if record.deposit_address in self._ledger:
                counters.duplicates += 1
                continue
            candidates.append(record)
        appended = self._ledger.append(candidates)
        counters.duplicates += len(candidates) - appended
        counters.records_appended += appended
        return appended

    def _idle_limit_reached(self, idle_pages: int) -> bool:
        limit = self._config.max_idle_pages
        return limit > 0 and idle_pages >= limit

    def _save(self, checkpoint: Checkpoint) -> Checkpoint:
        updated = replace(checkpoint, last_updated=datetime.now(timezone.utc).isoformat())
        self._checkpoint_store.save(updated)
        return updated


def ingest_transactions(config: FeeLedgerConfig, new_pass: bool = False) -> IngestSummary:
    """Run one ingestion pass against the configured explorer API.

    Args:
        config: Runtime configuration.
        new_pass: Start a new snapshot-bounded pass from page 1.

    Returns:
        Ingestion summary.

    Raises:
        MissingCredentialError: If no explorer API key is configured.
        TransientFetchError: If a page fetch fails.
        FeeLedgerStoreError: If ledger persistence fails.
    """
    fetcher = TransactionFetcher(config)
    ledger = TransactionLedger(config.data_root)
    checkpoint_store = IngestCheckpointStore(config.data_root)
    runner = LedgerIngestRunner(config, fetcher, ledger, checkpoint_store)
    return runner.run(new_pass=new_pass)


def _lock_snapshot_boundary(
    checkpoint: Checkpoint,
    records: tuple[TransactionRecord, ...],
) -> Checkpoint:
    """Lock the pass boundary at the oldest record on the first page."""
    oldest = min(records, key=lambda record: record.created_at_timestamp)
    _LOGGER.info(
        "snapshot_boundary_locked",
        snapshot_boundary=oldest.created_at_timestamp,
        last_key=oldest.deposit_address,
        locked_at=datetime.fromtimestamp(oldest.created_at_timestamp, timezone.utc).isoformat(),
    )
    return replace(
        checkpoint,
        snapshot_boundary=oldest.created_at_timestamp,
        last_key=oldest.deposit_address,
    )


def _log_page(page: TransactionPage, appended: int, checkpoint: Checkpoint) -> None:
    _LOGGER.info(
        "page_ingested",
        page=page.page,
        total_pages=page.total_pages,
        records=len(page.records),
        appended=appended,
        total_processed=checkpoint.total_processed,
    )


def _log_ingest_completion(summary: IngestSummary) -> None:
    """Log pass completion with contextual metadata."""
    _LOGGER.info(
        "ingest_completed",
        stop_reason=summary.stop_reason,
        pages_fetched=summary.pages_fetched,
        records_seen=summary.records_seen,
        records_appended=summary.records_appended,
        duplicates=summary.duplicates,
        out_of_window=summary.out_of_window,
        not_fee_bearing=summary.not_fee_bearing,
        invalid_records=summary.invalid_records,
        cursor=summary.checkpoint.cursor,
        snapshot_boundary=summary.checkpoint.snapshot_boundary,
        total_processed=summary.checkpoint.total_processed,
        ledger_rows=summary.ledger_rows,
    )
