"""Tests for the Batch Store."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from cafe_ledger.models import InventoryBatch
from cafe_ledger.models.enums import AgeCategory
from cafe_ledger.services import batch_service
from cafe_ledger.services.database import session_scope
from cafe_ledger.services.exceptions import BatchNotFound, ProductNotFound, ValidationError

TODAY = date(2025, 3, 10)


class TestCreateBatch:
    def test_defaults_to_today(self, test_db, croissant):
        batch = batch_service.create_batch(croissant.id, 12)

        assert batch.id is not None
        assert batch.date_added == TODAY
        assert batch.quantity == Decimal("12.000")

    def test_fractional_quantity(self, test_db, cheese):
        batch = batch_service.create_batch(cheese.id, "1.250", date_added=date(2025, 3, 8))
        assert batch.quantity == Decimal("1.250")
        assert batch.date_added == date(2025, 3, 8)

    @pytest.mark.parametrize("quantity", [0, -3, "abc", "0.0001"])
    def test_rejects_non_positive(self, test_db, croissant, quantity):
        with pytest.raises(ValidationError):
            batch_service.create_batch(croissant.id, quantity)
        assert batch_service.list_batches_for_product(croissant.id) == []

    def test_unknown_product(self, test_db):
        with pytest.raises(ProductNotFound):
            batch_service.create_batch(999, 5)


class TestQueries:
    def test_list_for_product_excludes_depleted(self, test_db, croissant, brownie):
        keep = batch_service.create_batch(croissant.id, 5)
        drained = batch_service.create_batch(croissant.id, 2)
        batch_service.create_batch(brownie.id, 4)
        batch_service.set_quantity(drained.id, 0)

        ids = [b.id for b in batch_service.list_batches_for_product(croissant.id)]
        assert ids == [keep.id]

    def test_list_all_active_has_product_loaded(self, test_db, croissant, brownie):
        batch_service.create_batch(brownie.id, 4, date_added=TODAY)
        batch_service.create_batch(croissant.id, 5, date_added=TODAY - timedelta(days=1))

        batches = batch_service.list_all_active_batches()

        assert [b.product.name for b in batches] == ["Croissant", "Chocolate Brownie"]
        assert batches[0].product.original_price == Decimal("100.00")

    def test_get_batch_returns_depleted_too(self, test_db, croissant):
        batch = batch_service.create_batch(croissant.id, 1)
        batch_service.set_quantity(batch.id, 0)

        assert batch_service.get_batch(batch.id).quantity == Decimal("0.000")

    def test_get_unknown_batch(self, test_db):
        with pytest.raises(BatchNotFound):
            batch_service.get_batch(42)


class TestMutations:
    def test_set_quantity_bumps_updated_at(self, test_db, croissant):
        batch = batch_service.create_batch(croissant.id, 5)
        before = batch.updated_at

        updated = batch_service.set_quantity(batch.id, "3.5")

        assert updated.quantity == Decimal("3.500")
        assert updated.updated_at >= before

    def test_set_quantity_rejects_negative(self, test_db, croissant):
        batch = batch_service.create_batch(croissant.id, 5)
        with pytest.raises(ValidationError):
            batch_service.set_quantity(batch.id, -1)
        assert batch_service.get_batch(batch.id).quantity == Decimal("5.000")

    def test_set_quantity_unknown_batch(self, test_db):
        with pytest.raises(BatchNotFound):
            batch_service.set_quantity(42, 1)

    def test_delete_batch(self, test_db, croissant):
        batch = batch_service.create_batch(croissant.id, 5)

        assert batch_service.delete_batch(batch.id) is True
        with pytest.raises(BatchNotFound):
            batch_service.delete_batch(batch.id)

    def test_purge_depleted(self, test_db, croissant):
        drained = batch_service.create_batch(croissant.id, 2)
        live = batch_service.create_batch(croissant.id, 3)
        batch_service.set_quantity(drained.id, 0)

        assert batch_service.purge_depleted_batches() == 1
        with session_scope() as session:
            assert [b.id for b in session.query(InventoryBatch).all()] == [live.id]

    def test_session_passthrough_does_not_commit(self, test_db, croissant):
        session = test_db()
        batch_service.create_batch(croissant.id, 5, session=session)
        session.rollback()
        session.close()

        assert batch_service.list_batches_for_product(croissant.id) == []


class TestCheckIn:
    def test_creates_one_batch_per_positive_quantity(self, test_db, croissant, brownie, cheese):
        batches = batch_service.check_in_stock(
            {croissant.id: 10, brownie.id: 0, cheese.id: "1.5"}
        )

        assert sorted(b.product_id for b in batches) == sorted([croissant.id, cheese.id])
        assert all(b.date_added == TODAY for b in batches)

    def test_blank_and_negative_entries_skipped(self, test_db, croissant, brownie):
        batches = batch_service.check_in_stock({croissant.id: "", brownie.id: -2})
        assert batches == []

    def test_invalid_quantity_creates_nothing(self, test_db, croissant, brownie):
        with pytest.raises(ValidationError):
            batch_service.check_in_stock({croissant.id: 5, brownie.id: "lots"})
        assert batch_service.list_all_active_batches() == []

    def test_unknown_product_rolls_back_all(self, test_db, croissant):
        with pytest.raises(ProductNotFound):
            batch_service.check_in_stock({croissant.id: 5, 999: 3})
        assert batch_service.list_all_active_batches() == []


class TestFilterAndSerialize:
    def test_filter_by_search_and_age(self, test_db, croissant, brownie):
        batch_service.create_batch(croissant.id, 5, date_added=TODAY - timedelta(days=9))
        batch_service.create_batch(croissant.id, 5, date_added=TODAY)
        batch_service.create_batch(brownie.id, 5, date_added=TODAY - timedelta(days=9))
        batches = batch_service.list_all_active_batches()

        result = batch_service.filter_batches(batches, search="CROIS", age_category="old")

        assert len(result) == 1
        assert result[0].product.name == "Croissant"
        assert len(batch_service.filter_batches(batches, age_category="all")) == 3
        assert len(batch_service.filter_batches(batches, age_category=AgeCategory.FRESH)) == 1

    def test_filter_rejects_unknown_category(self, test_db):
        with pytest.raises(ValidationError):
            batch_service.filter_batches([], age_category="stale")

    def test_batch_to_dict(self, test_db, croissant):
        batch_service.create_batch(croissant.id, 4, date_added=TODAY - timedelta(days=3))
        batch = batch_service.list_all_active_batches()[0]

        data = batch_service.batch_to_dict(batch)

        assert data["product_name"] == "Croissant"
        assert data["age"] == 3
        assert data["age_category"] == "medium"
        assert data["default_return_percentage"] == Decimal("20.00")
        assert data["is_weight_based"] is False
