"""Upstream ingestion layer.

This module fetches transaction pages and token metadata and drives
resumable, snapshot-bounded ingestion into the ledger.
"""
