"""Storage and publishing layer.

This module persists the append-only transaction ledger and publishes
analytics documents to artifact stores.
"""
