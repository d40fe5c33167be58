"""Unit tests for ingest checkpoint storage."""

from __future__ import annotations

import json

import pytest

from core.errors import FeeLedgerIngestError
from core.types import Checkpoint
from ingest.checkpoint_store import IngestCheckpointStore


def test_load_returns_defaults_on_first_run(tmp_path) -> None:
    """Missing checkpoint file should yield the initial checkpoint."""
    store = IngestCheckpointStore(tmp_path)

    checkpoint = store.load()

    assert checkpoint == Checkpoint()


def test_checkpoint_roundtrip(tmp_path) -> None:
    """Saved checkpoint should load back unchanged."""
    store = IngestCheckpointStore(tmp_path)
    saved = Checkpoint(
        cursor=7,
        snapshot_boundary=1748779200,
        last_key="dep-001",
        total_processed=12,
        last_updated="2025-06-01T12:00:00+00:00",
    )
    store.save(saved)

    loaded = store.load()

    assert loaded == saved


def test_checkpoint_file_uses_camel_case_keys(tmp_path) -> None:
    """Checkpoint file should use the documented field names."""
    store = IngestCheckpointStore(tmp_path)
    store.save(Checkpoint(cursor=3))

    payload = json.loads(store.path.read_text(encoding="utf-8"))

    assert set(payload) == {
        "cursor",
        "snapshotBoundary",
        "lastKey",
        "totalProcessed",
        "lastUpdated",
    }


def test_save_leaves_no_temporary_files(tmp_path) -> None:
    """Atomic save should replace the state file without leftovers."""
    store = IngestCheckpointStore(tmp_path)
    store.save(Checkpoint(cursor=2))
    store.save(Checkpoint(cursor=3))

    names = sorted(path.name for path in store.path.parent.iterdir())

    assert names == ["state.json"]


def test_load_raises_for_corrupt_checkpoint(tmp_path) -> None:
    """Unreadable checkpoint content should fail with an ingest error."""
    store = IngestCheckpointStore(tmp_path)
    store.path.write_text("{not json", encoding="utf-8")

    with pytest.raises(FeeLedgerIngestError):
        store.load()
