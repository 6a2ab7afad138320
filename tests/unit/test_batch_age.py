"""Tests for batch age classification and FIFO ordering."""

from datetime import date, datetime, timedelta

import pytest

from cafe_ledger.models import InventoryBatch
from cafe_ledger.models.enums import AgeCategory
from cafe_ledger.services.batch_age_service import (
    calculate_batch_age,
    classify_batch,
    get_batch_age_category,
    sort_batches_fifo,
)
from cafe_ledger.utils.datetime_utils import FixedClock, set_clock

TODAY = date(2025, 3, 10)


class TestCalculateBatchAge:
    def test_added_today_is_zero(self):
        assert calculate_batch_age(TODAY, today=TODAY) == 0

    def test_whole_days_between_dates(self):
        assert calculate_batch_age(TODAY - timedelta(days=3), today=TODAY) == 3

    def test_time_of_day_is_ignored(self):
        added = datetime(2025, 3, 9, 23, 59)
        now = datetime(2025, 3, 10, 0, 1)
        assert calculate_batch_age(added, today=now) == 1

    def test_future_date_clamps_to_zero(self):
        assert calculate_batch_age(TODAY + timedelta(days=2), today=TODAY) == 0

    def test_missing_date_counts_as_today(self):
        assert calculate_batch_age(None, today=TODAY) == 0

    def test_defaults_to_clock_today(self):
        set_clock(FixedClock(date(2025, 3, 20)))
        assert calculate_batch_age(TODAY) == 10


class TestAgeCategory:
    @pytest.mark.parametrize(
        "age,expected",
        [
            (0, AgeCategory.FRESH),
            (2, AgeCategory.FRESH),
            (3, AgeCategory.MEDIUM),
            (7, AgeCategory.MEDIUM),
            (8, AgeCategory.OLD),
            (30, AgeCategory.OLD),
        ],
    )
    def test_boundaries(self, age, expected):
        assert get_batch_age_category(age) == expected

    def test_category_values_are_strings(self):
        assert AgeCategory.OLD == "old"

    def test_classify_batch(self):
        batch = InventoryBatch(id=1, product_id=1, date_added=TODAY - timedelta(days=5))
        assert classify_batch(batch, today=TODAY) == (5, AgeCategory.MEDIUM)


class TestSortBatchesFifo:
    def test_oldest_first_with_id_tiebreak(self):
        a = InventoryBatch(id=3, product_id=1, date_added=date(2025, 3, 8))
        b = InventoryBatch(id=1, product_id=1, date_added=date(2025, 3, 9))
        c = InventoryBatch(id=2, product_id=1, date_added=date(2025, 3, 8))

        assert [x.id for x in sort_batches_fifo([b, a, c])] == [2, 3, 1]
