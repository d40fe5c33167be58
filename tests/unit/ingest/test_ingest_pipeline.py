"""Unit tests for the snapshot-bounded ingestion orchestrator."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from core.errors import MissingCredentialError, TransientFetchError
from core.types import IngestState, IngestSummary
from ingest.checkpoint_store import IngestCheckpointStore
from ingest.pipeline import LedgerIngestRunner, ingest_transactions
from store.ledger_row import transaction_from_line
from store.transaction_ledger import TransactionLedger
from tests.ledger_fakes import FakeUpstream, make_config, make_record, newest_first


def _run(
    data_root: Path,
    upstream: FakeUpstream,
    new_pass: bool = False,
    sleeps: list[float] | None = None,
    **config_overrides,
) -> IngestSummary:
    config = make_config(data_root, **config_overrides)
    runner = LedgerIngestRunner(
        config,
        upstream,
        TransactionLedger(data_root),
        IngestCheckpointStore(data_root),
        sleep=(sleeps.append if sleeps is not None else lambda _: None),
    )
    return runner.run(new_pass=new_pass)


def _ledger_keys(data_root: Path) -> list[str]:
    ledger = TransactionLedger(data_root)
    return [
        transaction_from_line(line, line_number).deposit_address
        for line_number, line in ledger.iter_lines()
    ]


def test_fresh_run_appends_every_record_in_page_order(tmp_path) -> None:
    """A fresh pass should store every upstream record once, in order."""
    upstream = FakeUpstream(newest_first(5))

    _run(tmp_path, upstream)

    assert _ledger_keys(tmp_path) == [f"dep-{index:03d}" for index in range(5)]


def test_fresh_run_locks_boundary_at_oldest_first_page_record(tmp_path) -> None:
    """Boundary and lastKey should come from the oldest record on page one."""
    records = newest_first(5)
    upstream = FakeUpstream(records)

    summary = _run(tmp_path, upstream)

    assert (summary.checkpoint.snapshot_boundary, summary.checkpoint.last_key) == (
        records[1].created_at_timestamp,
        "dep-001",
    )


def test_fresh_run_ends_on_last_page(tmp_path) -> None:
    """A page without nextPage should finish the pass."""
    summary = _run(tmp_path, FakeUpstream(newest_first(5)))

    assert (summary.final_state, summary.stop_reason, summary.checkpoint.cursor) == (
        IngestState.DONE,
        "last_page",
        3,
    )


def test_rerun_is_idempotent(tmp_path) -> None:
    """Rerunning a completed pass should not change the ledger."""
    upstream = FakeUpstream(newest_first(5))
    _run(tmp_path, upstream)
    ledger_path = TransactionLedger(tmp_path).path
    before = ledger_path.read_text(encoding="utf-8")

    summary = _run(tmp_path, upstream)

    assert ledger_path.read_text(encoding="utf-8") == before and summary.records_appended == 0


def test_rerun_leaves_checkpoint_unchanged_except_timestamp(tmp_path) -> None:
    """A rerun without new data should only refresh lastUpdated."""
    upstream = FakeUpstream(newest_first(5))
    _run(tmp_path, upstream)
    before = IngestCheckpointStore(tmp_path).load()

    _run(tmp_path, upstream)
    after = IngestCheckpointStore(tmp_path).load()

    assert replace(after, last_updated=before.last_updated) == before


def test_total_processed_matches_ledger_rows(tmp_path) -> None:
    """Checkpoint total should track the number of stored rows."""
    summary = _run(tmp_path, FakeUpstream(newest_first(5)))

    assert summary.checkpoint.total_processed == summary.ledger_rows == 5


def test_resume_after_failure_matches_uninterrupted_run(tmp_path) -> None:
    """Crash-and-resume should produce the same ledger as one clean run."""
    interrupted_root = tmp_path / "interrupted"
    clean_root = tmp_path / "clean"
    flaky = FakeUpstream(newest_first(7), fail_pages={3})
    with pytest.raises(TransientFetchError):
        _run(interrupted_root, flaky)
    _run(interrupted_root, flaky)
    _run(clean_root, FakeUpstream(newest_first(7)))

    interrupted_text = TransactionLedger(interrupted_root).path.read_text(encoding="utf-8")
    clean_text = TransactionLedger(clean_root).path.read_text(encoding="utf-8")

    assert interrupted_text == clean_text


def test_failed_page_keeps_previous_checkpoint(tmp_path) -> None:
    """A fetch failure should leave the cursor at the failed page."""
    upstream = FakeUpstream(newest_first(5), fail_pages={2})
    with pytest.raises(TransientFetchError):
        _run(tmp_path, upstream)

    checkpoint = IngestCheckpointStore(tmp_path).load()

    assert checkpoint.cursor == 2


def test_resume_keeps_boundary_when_upstream_gains_newer_records(tmp_path) -> None:
    """Records created after the lock should not enter the current pass."""
    old_records = newest_first(5)
    upstream = FakeUpstream(list(old_records), fail_pages={2})
    with pytest.raises(TransientFetchError):
        _run(tmp_path, upstream)
    boundary = IngestCheckpointStore(tmp_path).load().snapshot_boundary
    upstream.records = newest_first(2, start_timestamp=1_760_000_000, prefix="new") + old_records

    summary = _run(tmp_path, upstream)

    assert (
        summary.checkpoint.snapshot_boundary == boundary
        and not any(key.startswith("new-") for key in _ledger_keys(tmp_path))
    )


def test_resume_passes_locked_boundary_as_filter_hint(tmp_path) -> None:
    """Every fetch after the lock should carry the boundary."""
    records = newest_first(5)
    upstream = FakeUpstream(records)

    _run(tmp_path, upstream)

    assert upstream.requests == [
        (1, None),
        (2, records[1].created_at_timestamp),
        (3, records[1].created_at_timestamp),
    ]


def test_records_newer_than_boundary_on_later_pages_are_out_of_window(tmp_path) -> None:
    """Client-side window should drop newer records regardless of the server."""
    records = newest_first(4)
    late = make_record("late-arrival", timestamp=records[0].created_at_timestamp + 3600)
    upstream = FakeUpstream(records[:2] + [late] + records[2:])

    summary = _run(tmp_path, upstream)

    assert summary.out_of_window == 1 and "late-arrival" not in _ledger_keys(tmp_path)


def test_empty_first_page_finishes_without_boundary(tmp_path) -> None:
    """An empty upstream should end the pass with no boundary locked."""
    summary = _run(tmp_path, FakeUpstream([]))

    assert (summary.stop_reason, summary.checkpoint.snapshot_boundary) == ("empty_page", None)


def test_idle_guard_drains_after_consecutive_empty_appends(tmp_path) -> None:
    """K pages without new rows should stop the pass early."""
    upstream = FakeUpstream(newest_first(8))
    _run(tmp_path, upstream)

    summary = _run(tmp_path, upstream, new_pass=True, max_idle_pages=2)

    assert (summary.stop_reason, summary.pages_fetched, summary.checkpoint.cursor) == (
        "idle_pages",
        2,
        3,
    )


def test_idle_guard_disabled_with_zero_limit(tmp_path) -> None:
    """A zero idle limit should walk every page."""
    upstream = FakeUpstream(newest_first(8))
    _run(tmp_path, upstream)

    summary = _run(tmp_path, upstream, new_pass=True, max_idle_pages=0)

    assert (summary.stop_reason, summary.pages_fetched) == ("last_page", 4)


def test_new_pass_resets_boundary_and_keeps_total(tmp_path) -> None:
    """An explicit new pass should relock the boundary and keep totals."""
    old_records = newest_first(3)
    upstream = FakeUpstream(list(old_records))
    first = _run(tmp_path, upstream)
    upstream.records = newest_first(2, start_timestamp=1_760_000_000, prefix="new") + old_records

    second = _run(tmp_path, upstream, new_pass=True)

    assert (
        second.checkpoint.snapshot_boundary > first.checkpoint.snapshot_boundary
        and second.checkpoint.total_processed == 5
    )


def test_sleeps_between_pages_only(tmp_path) -> None:
    """The fixed delay should apply between pages, not after the last one."""
    sleeps: list[float] = []

    _run(tmp_path, FakeUpstream(newest_first(5)), sleeps=sleeps, page_delay_seconds=1.5)

    assert sleeps == [1.5, 1.5]


def test_reported_variant_skips_records_without_fees(tmp_path) -> None:
    """The reported ledger should keep only fee-bearing transactions."""
    records = [
        make_record("dep-fee", timestamp=1_750_000_000),
        make_record("dep-nofee", timestamp=1_749_999_000, fees=()),
    ]

    summary = _run(tmp_path, FakeUpstream(records), ledger_variant="reported")

    assert (summary.not_fee_bearing, _ledger_keys(tmp_path)) == (1, ["dep-fee"])


def test_ingest_transactions_fails_fast_without_credentials(tmp_path) -> None:
    """Missing API key should fail before the ledger is created."""
    config = make_config(tmp_path, explorer_api_key=None)

    with pytest.raises(MissingCredentialError):
        ingest_transactions(config)

    assert not (tmp_path / "ledger").exists()


def test_page_of_invalid_records_does_not_end_the_pass(tmp_path) -> None:
    """A page whose records all fail validation should be skipped, not terminal."""
    upstream = FakeUpstream(newest_first(6), invalid_pages={2})

    summary = _run(tmp_path, upstream)

    assert (summary.stop_reason, summary.invalid_records, _ledger_keys(tmp_path)) == (
        "last_page",
        2,
        ["dep-000", "dep-001", "dep-004", "dep-005"],
    )


def test_invalid_first_page_defers_boundary_lock(tmp_path) -> None:
    """The boundary should lock on the first page with valid records."""
    records = newest_first(6)
    upstream = FakeUpstream(records, invalid_pages={1})

    summary = _run(tmp_path, upstream)

    assert (summary.checkpoint.snapshot_boundary, _ledger_keys(tmp_path)) == (
        records[3].created_at_timestamp,
        ["dep-002", "dep-003", "dep-004", "dep-005"],
    )
