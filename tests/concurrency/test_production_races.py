"""
Concurrent production starts competing for the same raw material.

Flour 100, each batch of 10 needs 10 * 2.0 * 1.10 = 22: exactly four
starts can succeed whatever the interleaving.
"""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from threading import Barrier

import pytest

from mfg_config.schema import EngineConfig
from mfg_kernel.domain.clock import DeterministicClock
from mfg_kernel.exceptions import InsufficientMaterialsError, InvalidTransitionError
from mfg_modules.bom import BomService
from mfg_modules.inventory import InventoryService
from mfg_modules.production import (
    CreateProductionBatchCommand,
    ProductionService,
    ProductionStatus,
)

pytestmark = pytest.mark.slow_locks

WORKERS = 8


def test_only_covered_batches_start(committed_session_factory, builders, test_actor_id):
    clock = DeterministicClock()
    config = EngineConfig()
    inventory = InventoryService(committed_session_factory(), clock, config)
    flour = builders.build_material(inventory, test_actor_id, "RM001", name="Flour")
    builders.add_stock(inventory, test_actor_id, flour.material_id, "100")
    bom = builders.build_bom(
        BomService(committed_session_factory(), clock), test_actor_id,
        "BOM-001", "BREAD", [(flour.material_id, "2.0", "10")],
    )

    setup = ProductionService(committed_session_factory(), clock, config)
    batch_ids = [
        setup.create_batch(
            CreateProductionBatchCommand(f"PB-{i}", bom.bom.bom_id, Decimal("10")),
            test_actor_id,
        ).batch_id
        for i in range(WORKERS)
    ]

    barrier = Barrier(WORKERS)

    def start(batch_id):
        service = ProductionService(committed_session_factory(), clock, config)
        barrier.wait()
        try:
            service.start_batch(batch_id, test_actor_id)
            return True
        except InsufficientMaterialsError:
            return False

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        results = list(pool.map(start, batch_ids))

    assert results.count(True) == 4

    check = ProductionService(committed_session_factory(), clock, config)
    statuses = [b.status for b in check.list_batches()]
    assert statuses.count(ProductionStatus.IN_PROGRESS) == 4
    assert statuses.count(ProductionStatus.PLANNED) == 4
    remaining = InventoryService(committed_session_factory(), clock, config).get_available(
        flour.material_id,
    )
    assert remaining == Decimal("12")


def test_same_batch_started_once(committed_session_factory, builders, test_actor_id):
    clock = DeterministicClock()
    config = EngineConfig()
    inventory = InventoryService(committed_session_factory(), clock, config)
    flour = builders.build_material(inventory, test_actor_id, "RM001", name="Flour")
    builders.add_stock(inventory, test_actor_id, flour.material_id, "1000")
    bom = builders.build_bom(
        BomService(committed_session_factory(), clock), test_actor_id,
        "BOM-001", "BREAD", [(flour.material_id, "2.0", "10")],
    )
    batch_id = ProductionService(committed_session_factory(), clock, config).create_batch(
        CreateProductionBatchCommand("PB-1", bom.bom.bom_id, Decimal("10")), test_actor_id,
    ).batch_id

    barrier = Barrier(4)

    def start(_):
        service = ProductionService(committed_session_factory(), clock, config)
        barrier.wait()
        try:
            service.start_batch(batch_id, test_actor_id)
            return True
        except InvalidTransitionError:
            return False

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(start, range(4)))

    assert results.count(True) == 1
    remaining = InventoryService(committed_session_factory(), clock, config).get_available(
        flour.material_id,
    )
    assert remaining == Decimal("978")
