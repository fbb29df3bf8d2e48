"""
Tests for the raw-material ledger (mfg_kernel/services/ledger_service.py).

The ledger flushes but never commits; these tests drive it directly on the
rolled-back test session.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from mfg_kernel.exceptions import (
    InsufficientMaterialsError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from mfg_kernel.models.inventory import (
    NO_BATCH,
    InventoryMovement,
    InventoryRecord,
    MovementType,
)
from mfg_kernel.services.ledger_service import LedgerService

WAREHOUSE = "Main Warehouse"
COLD_ROOM = "Cold Room"


@pytest.fixture
def ledger(session, deterministic_clock):
    return LedgerService(session, deterministic_clock)


@pytest.fixture
def flour(make_material):
    return make_material("RM001", name="Flour")


@pytest.fixture
def sugar(make_material):
    return make_material("RM002", name="Sugar")


def movements(session, material_id):
    return session.execute(
        select(InventoryMovement)
        .where(InventoryMovement.material_id == material_id)
        .order_by(InventoryMovement.occurred_at, InventoryMovement.quantity_after)
    ).scalars().all()


class TestAdjust:

    def test_creates_cell_and_movement(self, session, ledger, flour, test_actor_id):
        qty = ledger.adjust(
            flour.material_id, WAREHOUSE, None, Decimal("30"), "Opening", test_actor_id,
        )

        assert qty == Decimal("30")
        cell = session.execute(
            select(InventoryRecord).where(InventoryRecord.material_id == flour.material_id)
        ).scalar_one()
        assert cell.batch_number == NO_BATCH
        [movement] = movements(session, flour.material_id)
        assert movement.movement_type == MovementType.ADJUSTMENT.value
        assert movement.delta == Decimal("30")
        assert movement.quantity_after == Decimal("30")
        assert movement.actor_id == test_actor_id

    def test_negative_delta_within_cell(self, ledger, flour, test_actor_id):
        ledger.adjust(flour.material_id, WAREHOUSE, "B1", Decimal("10"), "In", test_actor_id)
        qty = ledger.adjust(flour.material_id, WAREHOUSE, "B1", Decimal("-4"), "Out", test_actor_id)
        assert qty == Decimal("6")

    def test_over_deduction_rejected_without_writes(
        self, session, ledger, flour, test_actor_id,
    ):
        ledger.adjust(flour.material_id, WAREHOUSE, None, Decimal("5"), "In", test_actor_id)

        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.adjust(flour.material_id, WAREHOUSE, None, Decimal("-8"), "Out", test_actor_id)

        [shortage] = exc_info.value.shortages
        assert shortage.code == "RM001"
        assert shortage.required == Decimal("8")
        assert shortage.available == Decimal("5")
        assert ledger.get_available(flour.material_id) == Decimal("5")
        assert len(movements(session, flour.material_id)) == 1

    def test_cannot_deduct_from_unseen_cell(self, ledger, flour, test_actor_id):
        with pytest.raises(InsufficientStockError):
            ledger.adjust(flour.material_id, COLD_ROOM, None, Decimal("-1"), "Out", test_actor_id)

    @pytest.mark.parametrize(
        "location, delta, reason",
        [(WAREHOUSE, "0", "r"), ("  ", "1", "r"), (WAREHOUSE, "1", "  ")],
    )
    def test_validation(self, ledger, flour, test_actor_id, location, delta, reason):
        with pytest.raises(ValidationError):
            ledger.adjust(flour.material_id, location, None, Decimal(delta), reason, test_actor_id)

    def test_unknown_material(self, ledger, test_actor_id):
        with pytest.raises(NotFoundError):
            ledger.adjust(uuid4(), WAREHOUSE, None, Decimal("1"), "In", test_actor_id)

    def test_zero_quantity_cell_is_kept(self, session, ledger, flour, test_actor_id):
        ledger.adjust(flour.material_id, WAREHOUSE, None, Decimal("3"), "In", test_actor_id)
        ledger.adjust(flour.material_id, WAREHOUSE, None, Decimal("-3"), "Out", test_actor_id)
        cell = session.execute(
            select(InventoryRecord).where(InventoryRecord.material_id == flour.material_id)
        ).scalar_one()
        assert cell.quantity == 0


class TestGetAvailable:

    def test_scopes(self, ledger, flour, test_actor_id):
        ledger.adjust(flour.material_id, WAREHOUSE, "B1", Decimal("10"), "In", test_actor_id)
        ledger.adjust(flour.material_id, WAREHOUSE, "B2", Decimal("5"), "In", test_actor_id)
        ledger.adjust(flour.material_id, COLD_ROOM, None, Decimal("2.5"), "In", test_actor_id)

        assert ledger.get_available(flour.material_id) == Decimal("17.5")
        assert ledger.get_available(flour.material_id, WAREHOUSE) == Decimal("15")
        assert ledger.get_available(flour.material_id, WAREHOUSE, "B2") == Decimal("5")
        assert ledger.get_available(flour.material_id, "Nowhere") == Decimal("0")

    def test_unknown_material(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.get_available(uuid4())

    def test_large_quantity_sums_exactly(self, session, ledger, flour, test_actor_id):
        ledger.adjust(
            flour.material_id, WAREHOUSE, None, Decimal("123456789.1234"), "In", test_actor_id,
        )
        ledger.adjust(flour.material_id, COLD_ROOM, None, Decimal("0.000001"), "In", test_actor_id)
        session.expire_all()

        assert ledger.get_available(flour.material_id, WAREHOUSE) == Decimal("123456789.1234")
        assert ledger.get_available(flour.material_id) == Decimal("123456789.123401")


class TestTransfer:

    def test_moves_batch_and_expiry(self, session, ledger, flour, test_actor_id):
        ledger.adjust(
            flour.material_id, WAREHOUSE, "B1", Decimal("10"), "In", test_actor_id,
            expiry_date=date(2024, 3, 1),
        )

        legs = ledger.transfer(
            flour.material_id, WAREHOUSE, COLD_ROOM, Decimal("4"), "Chill", test_actor_id,
            batch_number="B1",
        )

        assert [(leg.batch_number, leg.quantity) for leg in legs] == [("B1", Decimal("4"))]
        assert ledger.get_available(flour.material_id, WAREHOUSE) == Decimal("6")
        assert ledger.get_available(flour.material_id, COLD_ROOM, "B1") == Decimal("4")
        moved = session.execute(
            select(InventoryRecord).where(
                InventoryRecord.material_id == flour.material_id,
                InventoryRecord.storage_location == COLD_ROOM,
            )
        ).scalar_one()
        assert moved.expiry_date == date(2024, 3, 1)
        kinds = [m.movement_type for m in movements(session, flour.material_id)]
        assert kinds.count(MovementType.TRANSFER_OUT.value) == 1
        assert kinds.count(MovementType.TRANSFER_IN.value) == 1

    def test_unbatched_transfer_draws_earliest_expiry(self, ledger, flour, test_actor_id):
        ledger.adjust(
            flour.material_id, WAREHOUSE, "LATE", Decimal("5"), "In", test_actor_id,
            expiry_date=date(2024, 9, 1),
        )
        ledger.adjust(
            flour.material_id, WAREHOUSE, "EARLY", Decimal("3"), "In", test_actor_id,
            expiry_date=date(2024, 2, 1),
        )

        legs = ledger.transfer(
            flour.material_id, WAREHOUSE, COLD_ROOM, Decimal("4"), "Chill", test_actor_id,
        )

        assert [(leg.batch_number, leg.quantity) for leg in legs] == [
            ("EARLY", Decimal("3")),
            ("LATE", Decimal("1")),
        ]

    def test_total_is_conserved(self, ledger, flour, test_actor_id):
        ledger.adjust(flour.material_id, WAREHOUSE, None, Decimal("12"), "In", test_actor_id)
        ledger.transfer(flour.material_id, WAREHOUSE, COLD_ROOM, Decimal("12"), "All", test_actor_id)
        assert ledger.get_available(flour.material_id) == Decimal("12")
        assert ledger.get_available(flour.material_id, WAREHOUSE) == Decimal("0")

    def test_insufficient_source(self, ledger, flour, test_actor_id):
        ledger.adjust(flour.material_id, WAREHOUSE, None, Decimal("2"), "In", test_actor_id)
        with pytest.raises(InsufficientStockError):
            ledger.transfer(flour.material_id, WAREHOUSE, COLD_ROOM, Decimal("3"), "x", test_actor_id)
        assert ledger.get_available(flour.material_id, COLD_ROOM) == Decimal("0")

    def test_same_location_rejected(self, ledger, flour, test_actor_id):
        with pytest.raises(ValidationError):
            ledger.transfer(flour.material_id, WAREHOUSE, " Main Warehouse ", Decimal("1"), "x", test_actor_id)


class TestConsume:

    def test_all_or_nothing_with_itemized_shortages(
        self, session, ledger, flour, sugar, test_actor_id,
    ):
        ledger.adjust(flour.material_id, WAREHOUSE, None, Decimal("8"), "In", test_actor_id)
        ledger.adjust(sugar.material_id, WAREHOUSE, None, Decimal("100"), "In", test_actor_id)
        other = uuid4()

        with pytest.raises(InsufficientMaterialsError) as exc_info:
            ledger.consume(
                {sugar.material_id: Decimal("5"), flour.material_id: Decimal("22")},
                "Batch PB-1", test_actor_id, reference_id=other,
            )

        assert [s.code for s in exc_info.value.shortages] == ["RM001"]
        assert exc_info.value.shortages[0].shortage == Decimal("14")
        # sugar was sufficient but must not have moved
        assert ledger.get_available(sugar.material_id) == Decimal("100")
        assert ledger.get_available(flour.material_id) == Decimal("8")

    def test_draws_across_locations(self, session, ledger, flour, test_actor_id):
        ledger.adjust(
            flour.material_id, WAREHOUSE, "A", Decimal("5"), "In", test_actor_id,
            expiry_date=date(2024, 5, 1),
        )
        ledger.adjust(
            flour.material_id, COLD_ROOM, "B", Decimal("5"), "In", test_actor_id,
            expiry_date=date(2024, 4, 1),
        )
        ref = uuid4()

        legs = ledger.consume(
            {flour.material_id: Decimal("7")}, "Batch PB-2", test_actor_id,
            reference_type="production_batch", reference_id=ref,
        )

        assert [(leg.storage_location, leg.quantity) for leg in legs] == [
            (COLD_ROOM, Decimal("5")),
            (WAREHOUSE, Decimal("2")),
        ]
        assert ledger.get_available(flour.material_id) == Decimal("3")
        issues = [
            m for m in movements(session, flour.material_id)
            if m.movement_type == MovementType.PRODUCTION_ISSUE.value
        ]
        assert len(issues) == 2
        assert all(m.reference_id == ref for m in issues)

    def test_consumes_large_balance_to_exact_zero(self, session, ledger, flour, test_actor_id):
        amount = Decimal("99999999.9999")
        ledger.adjust(flour.material_id, WAREHOUSE, None, amount, "In", test_actor_id)
        session.expire_all()

        legs = ledger.consume({flour.material_id: amount}, "Batch PB-3", test_actor_id)

        assert [leg.quantity for leg in legs] == [amount]
        session.expire_all()
        assert ledger.get_available(flour.material_id) == Decimal("0")
        cell = session.execute(
            select(InventoryRecord).where(InventoryRecord.material_id == flour.material_id)
        ).scalar_one()
        assert cell.quantity == Decimal("0")

    def test_rejects_non_positive_requirement(self, ledger, flour, test_actor_id):
        with pytest.raises(ValidationError):
            ledger.consume({flour.material_id: Decimal("0")}, "x", test_actor_id)
