"""
Property tests for the raw-material ledger.

Random sequences of receipts, issues and transfers are replayed against
the ledger alongside a plain dict model.  Whatever the sequence, no cell
goes negative, rejected operations leave nothing behind, and
``get_available`` always equals the sum of the cells.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from sqlalchemy import select

from mfg_kernel.exceptions import InsufficientStockError
from mfg_kernel.models.inventory import NO_BATCH, InventoryMovement, InventoryRecord
from mfg_kernel.services.ledger_service import LedgerService

LOCATIONS = ("Main Warehouse", "Cold Room", "Production Floor")

quantities = st.decimals(
    min_value=Decimal("0.001"), max_value=Decimal("50"), places=3, allow_nan=False,
)

operations = st.lists(
    st.one_of(
        st.tuples(st.just("adjust"), st.sampled_from(LOCATIONS), quantities, st.booleans()),
        st.tuples(
            st.just("transfer"),
            st.sampled_from(LOCATIONS),
            quantities,
            st.sampled_from(LOCATIONS),
        ),
    ),
    min_size=1,
    max_size=25,
)

DB_SETTINGS = settings(
    max_examples=40,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)


@pytest.fixture
def ledger(session, deterministic_clock):
    return LedgerService(session, deterministic_clock)


@DB_SETTINGS
@given(ops=operations)
def test_random_ledger_activity_stays_consistent(
    session, ledger, make_material, test_actor_id, ops,
):
    material = make_material(f"FZ-{uuid4().hex[:8]}")
    mid = material.material_id
    model = {location: Decimal("0") for location in LOCATIONS}

    for kind, location, qty, extra in ops:
        if kind == "adjust":
            delta = qty if extra else -qty
            if model[location] + delta < 0:
                with pytest.raises(InsufficientStockError):
                    ledger.adjust(mid, location, None, delta, "fuzz", test_actor_id)
            else:
                ledger.adjust(mid, location, None, delta, "fuzz", test_actor_id)
                model[location] += delta
        else:
            destination = extra
            if destination == location:
                continue
            if model[location] < qty:
                with pytest.raises(InsufficientStockError):
                    ledger.transfer(mid, location, destination, qty, "fuzz", test_actor_id)
            else:
                ledger.transfer(mid, location, destination, qty, "fuzz", test_actor_id)
                model[location] -= qty
                model[destination] += qty

    cells = session.execute(
        select(InventoryRecord).where(InventoryRecord.material_id == mid)
    ).scalars().all()
    assert all(cell.quantity >= 0 for cell in cells)
    assert all(cell.batch_number == NO_BATCH for cell in cells)
    for location, expected in model.items():
        assert ledger.get_available(mid, location) == expected
    assert ledger.get_available(mid) == sum(model.values())

    deltas = session.execute(
        select(InventoryMovement.delta).where(InventoryMovement.material_id == mid)
    ).scalars().all()
    assert sum(deltas, Decimal("0")) == sum(model.values())
