"""Cafe Ledger - batch-based inventory ledger and returns engine for a cafe POS."""

from .utils.constants import APP_VERSION

__version__ = APP_VERSION
