"""Shared helpers for the ledger kernel."""
