"""Append-only deduplicated transaction ledger.

This module persists one CSV row per unique deposit address. Existing
rows are never rewritten: new rows are appended to the end of the file
and an in-memory key index, built once at open, rejects duplicates.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Iterator

from core.constants import LEDGER_DIR_NAME, LEDGER_FILE_NAME
from core.errors import FeeLedgerStoreError, MalformedRowError
from core.logging_config import get_logger
from core.types import TransactionRecord
from store.ledger_row import header_line, transaction_from_line, transaction_to_line

_LOGGER = get_logger(__name__)


class TransactionLedger:
    """CSV-backed append-only ledger keyed by deposit address."""

    def __init__(self, data_root: Path) -> None:
        """Open the ledger and index stored keys.

        Args:
            data_root: Local data root directory.

        Raises:
            FeeLedgerStoreError: If an existing file has an unexpected header.
        """
        ledger_dir = data_root / LEDGER_DIR_NAME
        ledger_dir.mkdir(parents=True, exist_ok=True)
        self._path = ledger_dir / LEDGER_FILE_NAME
        self._seen_keys: set[str] = set()
        self._load_seen_keys()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def row_count(self) -> int:
        """Number of valid stored rows."""
        return len(self._seen_keys)

    def __contains__(self, deposit_address: object) -> bool:
        return deposit_address in self._seen_keys

    def append(self, records: Iterable[TransactionRecord]) -> int:
        """Append records whose deposit address is not yet stored.

        Args:
            records: Candidate records in upstream order.

        Returns:
            Number of rows written.

        Raises:
            FeeLedgerStoreError: If the file cannot be written.
        """
        new_keys: set[str] = set()
        lines: list[str] = []
        for record in records:
            key = record.deposit_address
            if key in self._seen_keys or key in new_keys:
                continue
            new_keys.add(key)
            lines.append(transaction_to_line(record))
        if not lines:
            return 0
        try:
            needs_header = not self._path.exists() or self._path.stat().st_size == 0
            if not needs_header:
                self._terminate_partial_line()
            with self._path.open("a", encoding="utf-8", newline="") as handle:
                if needs_header:
                    handle.write(header_line())
                handle.writelines(lines)
                handle.flush()
                os.fsync(handle.fileno())
        except OSError as error:
            raise FeeLedgerStoreError(
                f"Failed to append {len(lines)} rows to ledger at {self._path}: {error}. "
                "Rerun ingest to resume from the last checkpoint."
            ) from error
        self._seen_keys.update(new_keys)
        return len(lines)

    def iter_lines(self) -> Iterator[tuple[int, bytes]]:
        """Yield ``(line_number, raw_bytes)`` for every stored data line.

        Lines are left undecoded so a row cut mid-character by an
        interrupted write is rejected by the row codec instead of
        failing the whole read. Blank lines are skipped. Line numbers
        are one-based file lines, so the first data row is line 2.
        """
        if not self._path.exists():
            return
        with self._path.open("rb") as handle:
            for line_number, line in enumerate(handle, 1):
                if line_number == 1 or not line.strip():
                    continue
                yield line_number, line.rstrip(b"\r\n")

    def _load_seen_keys(self) -> None:
        """Build the key index from storage, validating the header."""
        if not self._path.exists() or self._path.stat().st_size == 0:
            return
        self._validate_header()
        malformed_rows = 0
        for line_number, line in self.iter_lines():
            try:
                record = transaction_from_line(line, line_number)
            except MalformedRowError:
                malformed_rows += 1
                continue
            self._seen_keys.add(record.deposit_address)
        _LOGGER.info(
            "ledger_opened",
            path=str(self._path),
            row_count=len(self._seen_keys),
            malformed_rows=malformed_rows,
        )

    def _validate_header(self) -> None:
        with self._path.open("rb") as handle:
            first_line = handle.readline()
        if first_line.rstrip(b"\r\n") != header_line().rstrip("\n").encode("utf-8"):
            raise FeeLedgerStoreError(
                f"Unexpected ledger header in {self._path}: {first_line.strip()!r}. "
                "Point FEELEDGER_DATA_ROOT at a ledger written by this tool."
            )

    def _terminate_partial_line(self) -> None:
        """Close a trailing partial row left by an interrupted write."""
        with self._path.open("rb+") as handle:
            handle.seek(-1, os.SEEK_END)
            if handle.read(1) != b"\n":
                handle.write(b"\n")
