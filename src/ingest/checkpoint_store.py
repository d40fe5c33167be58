"""Ingest checkpoint persistence.

This module stores pagination progress for resumable ingest execution.
It enables resume behavior across process restarts.
"""

from __future__ import annotations

from dataclasses import asdict
import json
import os
from pathlib import Path
import tempfile

from core.constants import CHECKPOINT_STATE_FILE_NAME, INGEST_CHECKPOINT_DIR_NAME
from core.errors import FeeLedgerIngestError
from core.types import Checkpoint

_PAYLOAD_KEYS = {
    "cursor": "cursor",
    "snapshot_boundary": "snapshotBoundary",
    "last_key": "lastKey",
    "total_processed": "totalProcessed",
    "last_updated": "lastUpdated",
}


class IngestCheckpointStore:
    """Filesystem-backed ingest checkpoint store."""

    def __init__(self, data_root: Path) -> None:
        self._checkpoint_dir = data_root / INGEST_CHECKPOINT_DIR_NAME
        self._checkpoint_dir.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._checkpoint_dir / CHECKPOINT_STATE_FILE_NAME

    def load(self) -> Checkpoint:
        """Load the persisted checkpoint, or defaults on first run.

        Returns:
            Current checkpoint.

        Raises:
            FeeLedgerIngestError: If the checkpoint file is unreadable.
        """
        state_path = self.path
        if not state_path.exists():
            return Checkpoint()
        try:
            payload = json.loads(state_path.read_text(encoding="utf-8"))
            boundary = payload["snapshotBoundary"]
            return Checkpoint(
                cursor=int(payload["cursor"]),
                snapshot_boundary=int(boundary) if boundary is not None else None,
                last_key=str(payload["lastKey"]) if payload["lastKey"] else None,
                total_processed=int(payload["totalProcessed"]),
                last_updated=str(payload.get("lastUpdated") or ""),
            )
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as error:
            raise FeeLedgerIngestError(
                f"Failed to read ingest checkpoint at {state_path}: {error}. "
                "Fix or delete the checkpoint file and rerun ingest."
            ) from error

    def save(self, checkpoint: Checkpoint) -> None:
        """Persist checkpoint atomically.

        The payload is written to a temporary sibling file, fsynced, and
        swapped into place so a reader never observes a partial file.

        Args:
            checkpoint: Checkpoint to persist.

        Raises:
            FeeLedgerIngestError: If the checkpoint cannot be written.
        """
        payload = {_PAYLOAD_KEYS[name]: value for name, value in asdict(checkpoint).items()}
        serialized = json.dumps(payload, indent=2) + "\n"
        file_descriptor, temp_name = tempfile.mkstemp(
            prefix=".state-", suffix=".tmp", dir=self._checkpoint_dir
        )
        try:
            with os.fdopen(file_descriptor, "w", encoding="utf-8") as handle:
                handle.write(serialized)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_name, self.path)
        except OSError as error:
            Path(temp_name).unlink(missing_ok=True)
            raise FeeLedgerIngestError(
                f"Failed to write ingest checkpoint at {self.path}: {error}."
            ) from error
