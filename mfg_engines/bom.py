"""
Module: mfg_engines.bom
Responsibility:
    Bill-of-materials explosion and standard-cost rollup.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import mfg_kernel/domain and mfg_kernel/logging_config.

Formulae:
    required_i = quantity_required_i * target / base * (1 + scrap_i / 100)

    evaluated as ``q * target * (100 + scrap) / (base * 100)`` so there is a
    single division per line.  Results stay exact Decimals (no rounding here);
    callers round at their own boundary.

    total_cost     = sum(required_i(target=base) * standard_cost_i)
    cost_per_unit  = total_cost / base

Invariants enforced:
    - Linearity: explode(lines, base, 2q)[i] == 2 * explode(lines, base, q)[i].
    - Round-trip: cost_rollup(...).total_cost equals the sum of the base-level
      explosion times each material's standard cost.
    - A material with no standard cost contributes zero and is reported in
      ``uncosted_material_ids``.

Failure modes:
    - ValueError on base_quantity <= 0, target_quantity <= 0, an empty line
      list, quantity_required <= 0 or scrap_percentage < 0.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

from mfg_kernel.logging_config import get_logger

logger = get_logger("engines.bom")

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class BomLineInput:
    """
    One recipe line as the engine sees it.

    Guarantees:
        - ``quantity_required > 0`` and ``scrap_percentage >= 0``.
    """

    material_id: UUID
    quantity_required: Decimal
    scrap_percentage: Decimal = Decimal("0")
    unit_of_measure: str | None = None
    sequence: int = 0

    def __post_init__(self) -> None:
        if self.quantity_required <= 0:
            raise ValueError(
                f"quantity_required must be positive (got {self.quantity_required})"
            )
        if self.scrap_percentage < 0:
            raise ValueError(
                f"scrap_percentage cannot be negative (got {self.scrap_percentage})"
            )


@dataclass(frozen=True)
class MaterialRequirement:
    """Quantity of one material needed for a target output."""

    material_id: UUID
    required_quantity: Decimal
    unit: str | None
    sequence: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "material_id": str(self.material_id),
            "required_quantity": str(self.required_quantity),
            "unit": self.unit,
            "sequence": self.sequence,
        }


@dataclass(frozen=True)
class LineCost:
    material_id: UUID
    quantity: Decimal
    unit_cost: Decimal | None
    line_cost: Decimal


@dataclass(frozen=True)
class CostRollup:
    """Standard cost of one base batch of a BOM."""

    total_cost: Decimal
    cost_per_unit: Decimal
    line_costs: tuple[LineCost, ...]
    uncosted_material_ids: tuple[UUID, ...] = ()

    @property
    def is_fully_costed(self) -> bool:
        return not self.uncosted_material_ids


def _check_quantity(name: str, value: Decimal) -> None:
    if value <= 0:
        raise ValueError(f"{name} must be positive (got {value})")


def _ordered(lines: Sequence[BomLineInput]) -> list[BomLineInput]:
    if not lines:
        raise ValueError("A BOM needs at least one line")
    # Stable: equal sequence numbers keep their input order
    return sorted(lines, key=lambda line: line.sequence)


def line_requirement(
    line: BomLineInput,
    base_quantity: Decimal,
    target_quantity: Decimal,
) -> Decimal:
    """Required quantity of a single line, scrap included."""
    return (
        line.quantity_required
        * target_quantity
        * (HUNDRED + line.scrap_percentage)
        / (base_quantity * HUNDRED)
    )


def explode(
    lines: Sequence[BomLineInput],
    base_quantity: Decimal,
    target_quantity: Decimal,
) -> list[MaterialRequirement]:
    """
    Per-line material requirements for ``target_quantity`` units of output.

    One requirement per line, in sequence order.  Lines that name the same
    material are not merged; consumers that deduct stock aggregate by
    material themselves (see ``aggregate_requirements``).
    """
    _check_quantity("base_quantity", base_quantity)
    _check_quantity("target_quantity", target_quantity)
    return [
        MaterialRequirement(
            material_id=line.material_id,
            required_quantity=line_requirement(line, base_quantity, target_quantity),
            unit=line.unit_of_measure,
            sequence=line.sequence,
        )
        for line in _ordered(lines)
    ]


def aggregate_requirements(
    requirements: Sequence[MaterialRequirement],
) -> dict[UUID, Decimal]:
    """Sum requirements per material, keeping first-seen order."""
    totals: dict[UUID, Decimal] = {}
    for req in requirements:
        totals[req.material_id] = totals.get(req.material_id, Decimal("0")) + req.required_quantity
    return totals


def cost_rollup(
    lines: Sequence[BomLineInput],
    base_quantity: Decimal,
    standard_costs: Mapping[UUID, Decimal | None],
) -> CostRollup:
    """
    Standard cost of producing ``base_quantity`` units.

    ``standard_costs`` maps material id to its standard cost; a missing key or
    a ``None`` value costs the line at zero.
    """
    _check_quantity("base_quantity", base_quantity)
    line_costs: list[LineCost] = []
    uncosted: list[UUID] = []
    total = Decimal("0")

    for req in explode(lines, base_quantity, base_quantity):
        unit_cost = standard_costs.get(req.material_id)
        if unit_cost is None:
            if req.material_id not in uncosted:
                uncosted.append(req.material_id)
            cost = Decimal("0")
        else:
            cost = req.required_quantity * unit_cost
        total += cost
        line_costs.append(
            LineCost(
                material_id=req.material_id,
                quantity=req.required_quantity,
                unit_cost=unit_cost,
                line_cost=cost,
            )
        )

    if uncosted:
        logger.debug(
            "bom_cost_rollup_uncosted_lines",
            extra={"uncosted_count": len(uncosted)},
        )

    return CostRollup(
        total_cost=total,
        cost_per_unit=total / base_quantity,
        line_costs=tuple(line_costs),
        uncosted_material_ids=tuple(uncosted),
    )
