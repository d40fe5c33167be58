"""Unit tests for S3 URI parsing."""

from __future__ import annotations

import pytest

from core.errors import FeeLedgerConfigError
from core.s3_uri import parse_s3_uri


def test_parse_s3_uri_splits_bucket_and_prefix() -> None:
    """Bucket and nested prefix should be separated."""
    location = parse_s3_uri("s3://dashboards/referrals/latest/")

    assert (location.bucket, location.prefix) == ("dashboards", "referrals/latest")


def test_object_key_without_prefix_is_name() -> None:
    """Bucket-only URIs should place objects at the bucket root."""
    location = parse_s3_uri("s3://dashboards")

    assert location.object_key("referral-fees.json") == "referral-fees.json"


def test_parse_s3_uri_rejects_missing_bucket() -> None:
    """An empty bucket should fail with a config error."""
    with pytest.raises(FeeLedgerConfigError):
        parse_s3_uri("s3:///prefix")
