"""Shared CSV row serialization for ledger transactions.

This module centralizes TransactionRecord <-> ledger row conversion.
It is reused by ledger appends and the aggregation pass.
"""

from __future__ import annotations

import csv
import io
import json
from typing import Any, Mapping

from core.constants import LEDGER_HEADER
from core.errors import MalformedRowError
from core.types import AppFee, TransactionRecord


def transaction_to_row(record: TransactionRecord) -> dict[str, str]:
    """Serialize a transaction into a ledger CSV row.

    Args:
        record: Transaction record.

    Returns:
        Row keyed by ledger header names.
    """
    app_fees = [{"fee": fee.fee_bps, "recipient": fee.recipient} for fee in record.app_fees]
    return {
        "Timestamp": record.created_at,
        "TimestampUnix": str(record.created_at_timestamp),
        "Provider": record.referral,
        "InflowAsset": record.origin_asset,
        "InflowAmount": str(record.amount_in),
        "InflowUSD": _format_optional_float(record.amount_in_usd),
        "OutflowAsset": record.destination_asset,
        "OutflowAmount": str(record.amount_out),
        "OutflowUSD": _format_optional_float(record.amount_out_usd),
        "AppFees": json.dumps(app_fees, separators=(",", ":")),
        "DepositAddress": record.deposit_address,
        "Recipient": record.recipient,
        "OriginTxHash": record.origin_tx_hash,
        "DestinationTxHash": record.destination_tx_hash,
        "Status": record.status,
    }


def transaction_from_row(row: Mapping[str, Any], line_number: int) -> TransactionRecord:
    """Deserialize a ledger CSV row.

    Args:
        row: Row produced by ``csv.DictReader``.
        line_number: One-based file line for error context.

    Returns:
        Parsed transaction record.

    Raises:
        MalformedRowError: If any required column is missing or invalid.
    """
    try:
        deposit_address = _required(row, "DepositAddress")
        created_at = _required(row, "Timestamp")
        return TransactionRecord(
            deposit_address=deposit_address,
            created_at=created_at,
            created_at_timestamp=int(_required(row, "TimestampUnix")),
            referral=str(row.get("Provider") or ""),
            origin_asset=_required(row, "InflowAsset"),
            destination_asset=str(row.get("OutflowAsset") or ""),
            amount_in=int(_required(row, "InflowAmount")),
            amount_out=int(row.get("OutflowAmount") or 0),
            app_fees=_parse_app_fees(str(row.get("AppFees") or "[]")),
            status=str(row.get("Status") or ""),
            amount_in_usd=_parse_optional_float(row.get("InflowUSD")),
            amount_out_usd=_parse_optional_float(row.get("OutflowUSD")),
            recipient=str(row.get("Recipient") or ""),
            origin_tx_hash=str(row.get("OriginTxHash") or ""),
            destination_tx_hash=str(row.get("DestinationTxHash") or ""),
        )
    except (KeyError, TypeError, ValueError) as error:
        raise MalformedRowError(f"Invalid ledger row at line {line_number}: {error}") from error


def _required(row: Mapping[str, Any], column: str) -> str:
    value = row.get(column)
    if value is None or str(value).strip() == "":
        raise ValueError(f"missing column {column}")
    return str(value)


def _parse_app_fees(raw_value: str) -> tuple[AppFee, ...]:
    """Parse the JSON-encoded fee specification list."""
    payload = json.loads(raw_value)
    if not isinstance(payload, list):
        raise ValueError("AppFees must be a JSON list")
    return tuple(
        AppFee(fee_bps=int(item["fee"]), recipient=str(item.get("recipient") or ""))
        for item in payload
    )


def _parse_optional_float(raw_value: Any) -> float | None:
    if raw_value is None or str(raw_value).strip() == "":
        return None
    return float(raw_value)


def _format_optional_float(value: float | None) -> str:
    return "" if value is None else repr(value)


def header_line() -> str:
    """Return the fixed ledger header line including its terminator."""
    return _encode_fields(list(LEDGER_HEADER))


def transaction_to_line(record: TransactionRecord) -> str:
    """Encode a transaction as one terminated CSV line.

    Embedded line breaks are flattened so every row occupies exactly one
    physical line of the ledger file.
    """
    row = transaction_to_row(record)
    return _encode_fields([_single_line(row[column]) for column in LEDGER_HEADER])


def transaction_from_line(line: str | bytes, line_number: int) -> TransactionRecord:
    """Decode one physical ledger line.

    Raises:
        MalformedRowError: If the line is not UTF-8, has the wrong column
            count or has bad values.
    """
    if isinstance(line, bytes):
        try:
            line = line.decode("utf-8")
        except UnicodeDecodeError as error:
            raise MalformedRowError(
                f"Invalid ledger row at line {line_number}: not UTF-8 ({error.reason})"
            ) from error
    try:
        fields = next(csv.reader([line]), [])
    except csv.Error as error:
        raise MalformedRowError(f"Invalid ledger row at line {line_number}: {error}") from error
    if len(fields) != len(LEDGER_HEADER):
        raise MalformedRowError(
            f"Invalid ledger row at line {line_number}: "
            f"expected {len(LEDGER_HEADER)} columns, got {len(fields)}"
        )
    return transaction_from_row(dict(zip(LEDGER_HEADER, fields)), line_number)


def _encode_fields(fields: list[str]) -> str:
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="\n").writerow(fields)
    return buffer.getvalue()


def _single_line(value: str) -> str:
    return value.replace("\r", " ").replace("\n", " ")
