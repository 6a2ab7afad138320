"""Utilities package for the Cafe Ledger inventory core."""
