"""Tests for the Finished Goods module service (corrections and reports)."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from mfg_kernel.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from mfg_modules.finished_goods import AdjustFinishedGoodsCommand


class TestAdjustQuantity:

    def test_count_correction(self, finished_goods_service, make_finished_goods, test_actor_id):
        batch = make_finished_goods("BREAD", "FG-1", "50")
        result = finished_goods_service.adjust_quantity(
            batch.id, AdjustFinishedGoodsCommand(Decimal("48"), "cycle count"), test_actor_id,
        )
        assert result.old_quantity == Decimal("50")
        assert result.batch.quantity == Decimal("48")
        assert result.delta == Decimal("-2")

    def test_command_validation(self):
        with pytest.raises(ValidationError):
            AdjustFinishedGoodsCommand(Decimal("-1"), "x")
        with pytest.raises(ValidationError):
            AdjustFinishedGoodsCommand(Decimal("1"), "  ")
        command = AdjustFinishedGoodsCommand.from_payload({"quantity": "7", "reason": "recount"})
        assert command.new_quantity == Decimal("7")

    def test_unknown_batch(self, finished_goods_service, test_actor_id):
        with pytest.raises(NotFoundError):
            finished_goods_service.adjust_quantity(
                uuid4(), AdjustFinishedGoodsCommand(Decimal("1"), "x"), test_actor_id,
            )


class TestUpdateStatus:

    def test_reserve_and_release(self, finished_goods_service, make_finished_goods, test_actor_id):
        batch = make_finished_goods("BREAD", "FG-1", "5")
        reserved = finished_goods_service.update_status(batch.id, "reserved", test_actor_id)
        assert reserved.status == "reserved"
        assert finished_goods_service.summary() == []
        released = finished_goods_service.update_status(batch.id, "available", test_actor_id)
        assert released.status == "available"

    def test_damaged_is_terminal(self, finished_goods_service, make_finished_goods, test_actor_id):
        batch = make_finished_goods("BREAD", "FG-1", "5")
        finished_goods_service.update_status(batch.id, "damaged", test_actor_id)
        with pytest.raises(InvalidTransitionError):
            finished_goods_service.update_status(batch.id, "available", test_actor_id)

    def test_unknown_status(self, finished_goods_service, make_finished_goods, test_actor_id):
        batch = make_finished_goods("BREAD", "FG-1", "5")
        with pytest.raises(InvalidTransitionError):
            finished_goods_service.update_status(batch.id, "lost", test_actor_id)


class TestReports:

    @pytest.fixture
    def batches(self, make_finished_goods):
        make_finished_goods("BREAD", "B1", "4", product_name="Bread",
                            production_date=date(2023, 12, 20), expiry_date=date(2024, 1, 20))
        make_finished_goods("BREAD", "B2", "6", product_name="Bread")
        make_finished_goods("CAKE", "C1", "2", product_name="Cake",
                            production_date=date(2023, 10, 1), expiry_date=date(2023, 11, 1))

    def test_summary_excludes_expired(self, finished_goods_service, batches):
        [bread] = finished_goods_service.summary()
        assert bread.product_code == "BREAD"
        assert bread.available_quantity == Decimal("10")
        assert bread.batch_count == 2
        assert bread.earliest_expiry == date(2024, 1, 20)

    def test_batches_for_product_oldest_first(self, finished_goods_service, batches):
        assert [b.batch_number for b in finished_goods_service.batches_for_product("BREAD")] == [
            "B1", "B2",
        ]

    def test_list_filters(self, finished_goods_service, batches):
        assert len(finished_goods_service.list_batches()) == 3
        assert [b.batch_number for b in finished_goods_service.list_batches(status="available")] == [
            "B1", "B2", "C1",
        ]

    def test_statistics(self, finished_goods_service, batches):
        stats = finished_goods_service.statistics()
        assert stats.total_batches == 3
        assert stats.total_quantity == Decimal("12")
        assert stats.available_quantity == Decimal("10")
        assert stats.expiring_soon == 1
        assert stats.status_breakdown["available"]["count"] == 3
        assert stats.status_breakdown["damaged"]["count"] == 0
