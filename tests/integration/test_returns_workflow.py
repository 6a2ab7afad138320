"""End-to-end day in the cafe: check-in, sales, end-of-day return, undo."""

from datetime import date, timedelta
from decimal import Decimal

from cafe_ledger.models.enums import AgeCategory
from cafe_ledger.services import (
    batch_service,
    fifo_service,
    product_service,
    return_service,
    return_undo_service,
    stock_service,
)
from cafe_ledger.services.batch_age_service import classify_batch

TODAY = date(2025, 3, 10)


def test_full_day(test_db, frozen_clock):
    product_service.import_products(
        [
            {"id": 1, "name": "Croissant", "original_price": "100", "sale_price": "150",
             "default_return_percentage": "20"},
            {"id": 2, "name": "Banana Bread", "original_price": "60", "sale_price": "95"},
            {"id": 3, "name": "Gouda", "original_price": "2000", "sale_price": "2600",
             "is_weight_based": True},
        ]
    )

    # Stock from earlier in the week, then this morning's delivery
    frozen_clock.advance(days=-8)
    batch_service.check_in_stock({1: 6, 2: 4})
    frozen_clock.advance(days=8)
    batch_service.check_in_stock({1: 12, 2: 0, 3: "1.500"})

    # Sales through the day
    fifo_service.deduct(1, 8)
    fifo_service.deduct(3, "0.400")

    assert stock_service.stock_by_product() == {
        1: Decimal("10.000"),
        2: Decimal("4.000"),
        3: Decimal("1.100"),
    }

    # End of day: review old stock only, keep the cheese, return at 100% for bread
    working_set = batch_service.list_all_active_batches()
    old = batch_service.filter_batches(working_set, age_category=AgeCategory.OLD)
    assert [b.product.name for b in old] == ["Banana Bread"]

    ids = [b.id for b in working_set]
    cheese_batch = [b for b in working_set if b.product_id == 3][0]
    bread_batch = old[0]

    preview = return_service.preview_return(
        ids, keep_batch_ids=[cheese_batch.id], percentage_overrides={bread_batch.id: 100}
    )
    result = return_service.process_return(
        ids,
        "alice",
        keep_batch_ids=[cheese_batch.id],
        percentage_overrides={bread_batch.id: 100},
    )

    # Croissant 10 x 20.00 + bread 4 x 60.00
    assert result["total_value"] == Decimal("440.00") == preview["total_value"]
    assert stock_service.stock_by_product() == {3: Decimal("1.100")}

    # Next morning the return is found to be a mistake
    frozen_clock.advance(days=1)
    assert return_undo_service.undo_return(result["return_id"])["batches_restored"] == 2

    restored = {b.product_id: b for b in batch_service.list_all_active_batches()}
    assert restored[1].quantity == Decimal("10.000")
    assert classify_batch(restored[1]) == (0, AgeCategory.FRESH)
    assert classify_batch(restored[2]) == (8, AgeCategory.OLD)
    assert restored[2].date_added == TODAY + timedelta(days=1) - timedelta(days=8)
    assert return_service.list_returns() == []
