"""Tests for FIFO deduction.

Tests cover:
- oldest batch consumed first, ties broken by id
- all-or-nothing behaviour on insufficient stock
- dry_run leaves stock untouched and reports shortfall
- drained batches stay at 0 and drop out of the active set
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from cafe_ledger.services import batch_service, fifo_service, stock_service
from cafe_ledger.services.exceptions import InsufficientStock, ProductNotFound, ValidationError

TODAY = date(2025, 3, 10)


@pytest.fixture
def two_batches(test_db, croissant):
    """Batch A: 5 units added 3 days ago; batch B: 10 units added yesterday."""
    a = batch_service.create_batch(croissant.id, 5, date_added=TODAY - timedelta(days=3))
    b = batch_service.create_batch(croissant.id, 10, date_added=TODAY - timedelta(days=1))
    return a, b


class TestDeduct:
    def test_spans_batches_oldest_first(self, croissant, two_batches):
        a, b = two_batches

        result = fifo_service.deduct(croissant.id, 7)

        assert result["satisfied"] is True
        assert result["consumed"] == Decimal("7.000")
        assert [line["batch_id"] for line in result["breakdown"]] == [a.id, b.id]
        assert result["breakdown"][0]["quantity_consumed"] == Decimal("5.000")
        assert result["breakdown"][1]["remaining_in_batch"] == Decimal("8.000")
        assert result["batches_depleted"] == [a.id]

        assert batch_service.get_batch(a.id).quantity == Decimal("0.000")
        assert [x.id for x in batch_service.list_batches_for_product(croissant.id)] == [b.id]
        assert stock_service.total_stock(croissant.id) == Decimal("8.000")

    def test_same_date_uses_lower_id_first(self, test_db, croissant):
        first = batch_service.create_batch(croissant.id, 2, date_added=TODAY)
        second = batch_service.create_batch(croissant.id, 2, date_added=TODAY)

        result = fifo_service.deduct(croissant.id, 1)

        assert result["breakdown"][0]["batch_id"] == first.id
        assert batch_service.get_batch(second.id).quantity == Decimal("2.000")

    def test_exact_quantity_drains_everything(self, croissant, two_batches):
        result = fifo_service.deduct(croissant.id, 15)

        assert result["shortfall"] == Decimal("0")
        assert len(result["batches_depleted"]) == 2
        assert batch_service.list_batches_for_product(croissant.id) == []

    def test_fractional_weight(self, test_db, cheese):
        batch_service.create_batch(cheese.id, "1.250")
        fifo_service.deduct(cheese.id, "0.375")
        assert stock_service.total_stock(cheese.id) == Decimal("0.875")

    def test_insufficient_stock_changes_nothing(self, croissant, two_batches):
        a, b = two_batches

        with pytest.raises(InsufficientStock) as exc_info:
            fifo_service.deduct(croissant.id, 20)

        assert exc_info.value.required == Decimal("20.000")
        assert exc_info.value.available == Decimal("15.000")
        assert batch_service.get_batch(a.id).quantity == Decimal("5.000")
        assert batch_service.get_batch(b.id).quantity == Decimal("10.000")

    def test_no_batches_is_insufficient(self, test_db, croissant):
        with pytest.raises(InsufficientStock):
            fifo_service.deduct(croissant.id, 1)

    @pytest.mark.parametrize("quantity", [0, -1, "abc"])
    def test_rejects_non_positive(self, croissant, two_batches, quantity):
        with pytest.raises(ValidationError):
            fifo_service.deduct(croissant.id, quantity)

    def test_unknown_product(self, test_db):
        with pytest.raises(ProductNotFound):
            fifo_service.deduct(999, 1)


class TestDeductDryRun:
    def test_does_not_modify_stock(self, croissant, two_batches):
        result = fifo_service.deduct(croissant.id, 7, dry_run=True)

        assert result["dry_run"] is True
        assert result["consumed"] == Decimal("7.000")
        assert result["breakdown"][1]["remaining_in_batch"] == Decimal("8.000")
        assert stock_service.total_stock(croissant.id) == Decimal("15.000")

    def test_reports_shortfall_instead_of_raising(self, croissant, two_batches):
        result = fifo_service.deduct(croissant.id, 20, dry_run=True)

        assert result["satisfied"] is False
        assert result["consumed"] == Decimal("15.000")
        assert result["shortfall"] == Decimal("5.000")
        assert stock_service.total_stock(croissant.id) == Decimal("15.000")


def test_session_passthrough_rolls_back_with_caller(croissant, two_batches, test_db):
    session = test_db()
    fifo_service.deduct(croissant.id, 7, session=session)
    session.rollback()
    session.close()

    assert stock_service.total_stock(croissant.id) == Decimal("15.000")


def test_logs_outcome(croissant, two_batches, caplog):
    with caplog.at_level("INFO", logger="cafe_ledger.services"):
        fifo_service.deduct(croissant.id, 3)

    record = [r for r in caplog.records if getattr(r, "operation", None) == "deduct"][-1]
    assert record.outcome == "success"
    assert record.consumed == "3.000"
