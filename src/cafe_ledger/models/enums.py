"""
Enumerations for batch tracking.

- AgeCategory: Freshness classification of an inventory batch
- AuditEventName: Structured events emitted for the audit collaborator
"""

from enum import Enum


class AgeCategory(str, Enum):
    """
    Batch age classification.

    Values:
        FRESH: 0-2 days since date_added
        MEDIUM: 3-7 days
        OLD: 8 days or more
    """

    FRESH = "fresh"
    MEDIUM = "medium"
    OLD = "old"


class AuditEventName(str, Enum):
    """Names of the audit events the ledger emits."""

    RETURN_PROCESSED = "return_processed"
    RETURN_UNDONE = "return_undone"
