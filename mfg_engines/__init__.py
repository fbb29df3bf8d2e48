"""
Pure calculation engines (zero I/O).

- ``bom``: material explosion and standard-cost rollup.
- ``allocation``: FIFO planning of finished-goods demand across lots.
"""

from mfg_engines.allocation import (
    AllocationLine,
    AllocationPlan,
    Shortfall,
    StockLot,
    fifo_order,
    plan_allocation,
)
from mfg_engines.bom import (
    BomLineInput,
    CostRollup,
    LineCost,
    MaterialRequirement,
    aggregate_requirements,
    cost_rollup,
    explode,
)

__all__ = [
    "AllocationLine",
    "AllocationPlan",
    "Shortfall",
    "StockLot",
    "fifo_order",
    "plan_allocation",
    "BomLineInput",
    "CostRollup",
    "LineCost",
    "MaterialRequirement",
    "aggregate_requirements",
    "cost_rollup",
    "explode",
]
