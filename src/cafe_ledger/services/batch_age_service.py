"""Batch age classification.

Pure functions: age is the whole number of calendar days between a batch's
date_added and today, ignoring time of day, so a batch checked in earlier
today has age 0. Categories:

    fresh   0-2 days
    medium  3-7 days
    old     8+ days
"""

from datetime import date, datetime
from typing import Iterable, List, Optional, Tuple

from ..models.enums import AgeCategory
from ..utils.constants import FRESH_MAX_AGE_DAYS, MEDIUM_MAX_AGE_DAYS
from ..utils.datetime_utils import get_clock


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def calculate_batch_age(date_added, today: Optional[date] = None) -> int:
    """
    Age of a batch in whole days.

    Args:
        date_added: Date (or datetime) the batch was checked in; None counts as today
        today: Reference date; defaults to the active clock's today

    Returns:
        Days since date_added, never negative
    """
    if date_added is None:
        return 0
    if today is None:
        today = get_clock().today()
    delta = _as_date(today) - _as_date(date_added)
    return max(0, delta.days)


def get_batch_age_category(age_in_days: int) -> AgeCategory:
    """Map an age in days to its category."""
    if age_in_days <= FRESH_MAX_AGE_DAYS:
        return AgeCategory.FRESH
    if age_in_days <= MEDIUM_MAX_AGE_DAYS:
        return AgeCategory.MEDIUM
    return AgeCategory.OLD


def classify_batch(batch, today: Optional[date] = None) -> Tuple[int, AgeCategory]:
    """Return (age, category) for a batch."""
    age = calculate_batch_age(batch.date_added, today=today)
    return age, get_batch_age_category(age)


def sort_batches_fifo(batches: Iterable) -> List:
    """Order batches oldest first; ties broken by id ascending."""
    return sorted(batches, key=lambda b: (_as_date(b.date_added), b.id or 0))
