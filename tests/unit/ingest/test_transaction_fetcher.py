"""Unit tests for the paginated transaction fetcher."""

from __future__ import annotations

import json
from typing import Any

import pytest
import requests

from core.errors import MissingCredentialError, TransientFetchError
from ingest.transaction_fetcher import (
    TransactionFetcher,
    parse_minor_units,
    parse_transaction_page,
)
from tests.fixture_paths import fixture_path
from tests.ledger_fakes import make_config


class _FakeResponse:
    def __init__(self, status_code: int, payload: Any = None, invalid_json: bool = False) -> None:
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self._payload = payload
        self._invalid_json = invalid_json

    def json(self) -> Any:
        if self._invalid_json:
            raise ValueError("Expecting value")
        return self._payload


class _FakeSession:
    def __init__(
        self,
        response: _FakeResponse | None = None,
        error: Exception | None = None,
    ) -> None:
        self._response = response
        self._error = error
        self.calls: list[dict[str, Any]] = []

    def get(self, url: str, **kwargs: Any) -> _FakeResponse:
        self.calls.append({"url": url, **kwargs})
        if self._error is not None:
            raise self._error
        assert self._response is not None
        return self._response


def _page_payload() -> dict[str, Any]:
    return json.loads(fixture_path("transactions_page.json").read_text(encoding="utf-8"))


def test_fetch_page_parses_valid_records(tmp_path) -> None:
    """Valid upstream records should be returned in page order."""
    session = _FakeSession(_FakeResponse(200, _page_payload()))
    fetcher = TransactionFetcher(make_config(tmp_path), session=session)

    page = fetcher.fetch_page(1)

    assert [record.deposit_address for record in page.records] == ["dep-003", "dep-002"]


def test_fetch_page_counts_invalid_records(tmp_path) -> None:
    """Records missing required fields should be dropped and counted."""
    session = _FakeSession(_FakeResponse(200, _page_payload()))
    fetcher = TransactionFetcher(make_config(tmp_path), session=session)

    page = fetcher.fetch_page(1)

    assert page.invalid_records == 1


def test_fetch_page_sends_boundary_and_bearer_token(tmp_path) -> None:
    """Boundary hint and credentials should be sent with the request."""
    session = _FakeSession(_FakeResponse(200, _page_payload()))
    fetcher = TransactionFetcher(make_config(tmp_path, per_page=500), session=session)

    fetcher.fetch_page(3, snapshot_boundary=1748779200)
    call = session.calls[0]

    assert (
        call["params"] == {"page": "3", "perPage": "500", "endTimestampUnix": "1748779200"}
        and call["headers"]["Authorization"] == "Bearer test-key"
    )


def test_fetch_page_applies_request_timeout(tmp_path) -> None:
    """Every request should carry the configured timeout."""
    session = _FakeSession(_FakeResponse(200, _page_payload()))
    config = make_config(tmp_path, request_timeout_seconds=5.0)
    fetcher = TransactionFetcher(config, session=session)

    fetcher.fetch_page(1)

    assert session.calls[0]["timeout"] == 5.0


def test_fetch_page_raises_with_status_on_error_response(tmp_path) -> None:
    """Non-success responses should surface their status code."""
    session = _FakeSession(_FakeResponse(429))
    fetcher = TransactionFetcher(make_config(tmp_path), session=session)

    with pytest.raises(TransientFetchError) as error_info:
        fetcher.fetch_page(1)

    assert error_info.value.status == 429


def test_fetch_page_maps_timeout_to_transient_error(tmp_path) -> None:
    """Request timeouts should be transient fetch errors."""
    session = _FakeSession(error=requests.Timeout("read timed out"))
    fetcher = TransactionFetcher(make_config(tmp_path), session=session)

    with pytest.raises(TransientFetchError):
        fetcher.fetch_page(1)


def test_fetch_page_rejects_non_json_body(tmp_path) -> None:
    """An unparseable body should be a transient fetch error."""
    session = _FakeSession(_FakeResponse(200, invalid_json=True))
    fetcher = TransactionFetcher(make_config(tmp_path), session=session)

    with pytest.raises(TransientFetchError):
        fetcher.fetch_page(1)


def test_fetcher_requires_api_key(tmp_path) -> None:
    """Construction should fail before any request without credentials."""
    config = make_config(tmp_path, explorer_api_key=None)

    with pytest.raises(MissingCredentialError):
        TransactionFetcher(config, session=_FakeSession())


def test_parse_transaction_page_treats_null_next_page_as_last() -> None:
    """A null nextPage should end pagination."""
    page = parse_transaction_page(5, {"data": [], "totalPages": 5, "nextPage": None})

    assert page.next_page is None


def test_parse_transaction_page_rejects_missing_data_list() -> None:
    """Envelope without a data list should be rejected."""
    with pytest.raises(TransientFetchError):
        parse_transaction_page(1, {"items": []})


def test_parse_minor_units_keeps_full_precision() -> None:
    """Amounts beyond float precision should parse exactly."""
    assert parse_minor_units("1000000000000000000000001") == 10**24 + 1


def test_parse_minor_units_rejects_negative_amounts() -> None:
    """Negative amounts are invalid upstream values."""
    with pytest.raises(ValueError):
        parse_minor_units("-5")


def test_parse_transaction_page_rejects_non_finite_usd_amounts() -> None:
    """A NaN reported USD amount should make the record invalid."""
    record = dict(_page_payload()["data"][0], amountInUsd="NaN")

    page = parse_transaction_page(1, {"data": [record], "totalPages": 1, "nextPage": None})

    assert (page.records, page.invalid_records) == ((), 1)
