"""
LedgerService -- the raw-material inventory ledger.

Responsibility:
    Single source of truth for raw-material stock.  Reads and mutates
    ``InventoryRecord`` cells keyed by (material, location, batch) and
    appends one ``InventoryMovement`` per cell change.

Architecture position:
    Kernel > Services -- imperative shell, flush-only (see BaseService).
    Called by the inventory, procurement and production module services.

Invariants enforced:
    - No cell ever goes negative: a deduction is checked against the cell (or
      the material's total) while the material row is locked, and fails with
      an itemized shortage before anything is written.
    - All-or-nothing: ``transfer`` and ``consume`` validate every leg before
      writing any, so a failure leaves every cell unchanged.
    - Serialized check-then-act: the ``raw_materials`` row of every touched
      material is locked with ``SELECT ... FOR UPDATE`` (ascending id order)
      for the rest of the caller's transaction.  Unrelated materials never
      contend.
    - Audit: every cell change appends exactly one movement carrying the
      reason, actor, originating document and a timestamp from the Clock.

Failure modes:
    - NotFoundError: unknown material id.
    - ValidationError: zero delta, blank reason or location, same-location
      transfer, non-positive quantity.
    - InsufficientStockError: adjust/transfer would drive stock negative.
    - InsufficientMaterialsError: consume is short on one or more materials
      (the full shortage list, not just the first).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Mapping, Sequence
from uuid import UUID

from sqlalchemy import func, select

from mfg_kernel.db.types import ZERO, normalize
from mfg_kernel.domain.values import CellConsumption, Shortage
from mfg_kernel.exceptions import (
    InsufficientMaterialsError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from mfg_kernel.logging_config import get_logger
from mfg_kernel.models.inventory import (
    NO_BATCH,
    InventoryMovement,
    InventoryRecord,
    MovementType,
)
from mfg_kernel.models.material import RawMaterial
from mfg_kernel.services.base import BaseService

logger = get_logger("services.ledger")


def _clean_location(location: str | None, field: str = "storage_location") -> str:
    if location is None or not str(location).strip():
        raise ValidationError(field, "a storage location is required")
    return str(location).strip()


def _clean_batch(batch_number: str | None) -> str:
    if batch_number is None:
        return NO_BATCH
    return str(batch_number).strip()


def _fefo_key(cell: InventoryRecord):
    # Earliest expiry first (no expiry last), then oldest cell
    return (
        cell.expiry_date is None,
        cell.expiry_date or date.max,
        cell.created_at is None,
        str(cell.created_at or ""),
        str(cell.id),
    )


class LedgerService(BaseService[InventoryRecord]):
    """
    Check-then-act operations on raw-material ledger cells.

    Contract:
        Every public mutator locks the affected material rows, validates the
        whole operation, then writes cells and movements and flushes.

    Non-goals:
        - Does NOT commit; the calling module service owns the transaction.
        - Does NOT decide *why* stock moves (receipt, production, ...); the
          caller passes the movement type and reference.
    """

    # =========================================================================
    # Reads
    # =========================================================================

    def get_available(
        self,
        material_id: UUID,
        location: str | None = None,
        batch_number: str | None = None,
    ) -> Decimal:
        """
        Available quantity of a material.

        With no location: the sum over every cell.  With a location: the sum
        over that location's cells, or a single cell when ``batch_number`` is
        also given.  One aggregate statement, so the figure is never torn
        across cells.
        """
        if self.session.get(RawMaterial, material_id) is None:
            raise NotFoundError("RawMaterial", material_id)
        stmt = select(func.coalesce(func.sum(InventoryRecord.quantity), 0)).where(
            InventoryRecord.material_id == material_id
        )
        if location is not None:
            stmt = stmt.where(InventoryRecord.storage_location == location.strip())
            if batch_number is not None:
                stmt = stmt.where(InventoryRecord.batch_number == _clean_batch(batch_number))
        return normalize(self.session.execute(stmt).scalar_one())

    # =========================================================================
    # Mutations
    # =========================================================================

    def adjust(
        self,
        material_id: UUID,
        location: str,
        batch_number: str | None,
        delta: Decimal,
        reason: str,
        actor_id: UUID,
        *,
        movement_type: MovementType = MovementType.ADJUSTMENT,
        expiry_date: date | None = None,
        reference_type: str | None = None,
        reference_id: UUID | None = None,
    ) -> Decimal:
        """
        Apply ``delta`` to one ledger cell and return the cell's new quantity.

        Preconditions:
            - ``delta != 0`` and ``reason`` is non-blank.
        Postconditions:
            - A positive delta into an unseen (material, location, batch)
              creates the cell (with ``expiry_date`` if given).
            - One movement row appended.
        Raises:
            InsufficientStockError: negative delta larger than the cell.
        """
        location = _clean_location(location)
        batch = _clean_batch(batch_number)
        reason = self._require_reason(reason)
        if delta == 0:
            raise ValidationError("delta", "adjustment quantity cannot be zero")

        material = self._lock_material(material_id)
        cell = self._find_cell(material_id, location, batch)
        current = cell.quantity if cell is not None else ZERO
        new_quantity = current + delta

        if new_quantity < 0:
            logger.info(
                "ledger_adjust_rejected",
                extra={
                    "material_code": material.code,
                    "storage_location": location,
                    "batch_number": batch,
                    "delta": delta,
                    "available": current,
                },
            )
            raise InsufficientStockError(
                [Shortage(material.code, material.name, normalize(-delta),
                          normalize(current), material.id)],
                context=f"{location}" + (f" batch {batch}" if batch else ""),
            )

        if cell is None:
            cell = InventoryRecord(
                material_id=material_id,
                storage_location=location,
                batch_number=batch,
                expiry_date=expiry_date,
                quantity=new_quantity,
                created_by_id=actor_id,
            )
            self.session.add(cell)
        else:
            cell.quantity = new_quantity
            if expiry_date is not None and cell.expiry_date is None:
                cell.expiry_date = expiry_date
            cell.touch(actor_id)

        self._append_movement(
            material_id, location, batch, movement_type, delta, new_quantity,
            reason, actor_id, reference_type, reference_id,
        )
        self.session.flush()

        logger.info(
            "ledger_adjusted",
            extra={
                "material_code": material.code,
                "storage_location": location,
                "batch_number": batch,
                "movement_type": movement_type.value,
                "delta": delta,
                "quantity_after": new_quantity,
            },
        )
        return normalize(new_quantity)

    def transfer(
        self,
        material_id: UUID,
        from_location: str,
        to_location: str,
        quantity: Decimal,
        reason: str,
        actor_id: UUID,
        batch_number: str | None = None,
    ) -> list[CellConsumption]:
        """
        Move ``quantity`` between locations atomically.

        With ``batch_number`` only that batch's cell is drawn from; otherwise
        the source location's cells are drawn earliest-expiry first.  Each leg
        keeps its batch number and expiry date at the destination.  Returns the
        legs moved.

        Raises:
            ValidationError: same source and destination, quantity <= 0.
            InsufficientStockError: source holds less than ``quantity``; no leg
                is written.
        """
        source = _clean_location(from_location, "from_location")
        target = _clean_location(to_location, "to_location")
        reason = self._require_reason(reason)
        if source == target:
            raise ValidationError("to_location", "source and destination must differ")
        if quantity <= 0:
            raise ValidationError("quantity", "transfer quantity must be positive")

        material = self._lock_material(material_id)
        cells = self._cells(material_id, source)
        if batch_number is not None:
            batch = _clean_batch(batch_number)
            cells = [c for c in cells if c.batch_number == batch]

        available = sum((c.quantity for c in cells), ZERO)
        if available < quantity:
            raise InsufficientStockError(
                [Shortage(material.code, material.name, normalize(quantity),
                          normalize(available), material.id)],
                context=f"transfer from {source}",
            )

        legs = self._plan(material_id, cells, quantity)
        by_batch = {c.batch_number: c for c in cells}
        for leg in legs:
            src = by_batch[leg.batch_number]
            src.quantity -= leg.quantity
            src.touch(actor_id)
            self._append_movement(
                material_id, source, leg.batch_number, MovementType.TRANSFER_OUT,
                -leg.quantity, src.quantity, reason, actor_id, None, None,
            )

            dst = self._find_cell(material_id, target, leg.batch_number)
            if dst is None:
                dst = InventoryRecord(
                    material_id=material_id,
                    storage_location=target,
                    batch_number=leg.batch_number,
                    expiry_date=leg.expiry_date,
                    quantity=leg.quantity,
                    created_by_id=actor_id,
                )
                self.session.add(dst)
            else:
                dst.quantity += leg.quantity
                if dst.expiry_date is None:
                    dst.expiry_date = leg.expiry_date
                dst.touch(actor_id)
            self._append_movement(
                material_id, target, leg.batch_number, MovementType.TRANSFER_IN,
                leg.quantity, dst.quantity, reason, actor_id, None, None,
            )

        self.session.flush()
        logger.info(
            "ledger_transferred",
            extra={
                "material_code": material.code,
                "from_location": source,
                "to_location": target,
                "quantity": quantity,
                "legs": len(legs),
            },
        )
        return legs

    def consume(
        self,
        requirements: Mapping[UUID, Decimal],
        reason: str,
        actor_id: UUID,
        *,
        reference_type: str | None = None,
        reference_id: UUID | None = None,
        movement_type: MovementType = MovementType.PRODUCTION_ISSUE,
    ) -> list[CellConsumption]:
        """
        Deduct several materials atomically.

        Every material row is locked first (ascending id), then every
        requirement is checked against the material's total.  If any is short
        the whole shortage list is raised and nothing is written; otherwise
        each requirement is drawn from its cells earliest-expiry first, oldest
        cell next.

        Returns:
            One CellConsumption per cell drawn from.
        Raises:
            InsufficientMaterialsError: itemized, in requirement order.
        """
        reason = self._require_reason(reason)
        for material_id, quantity in requirements.items():
            if quantity <= 0:
                raise ValidationError(
                    "required_quantity",
                    f"requirement for material {material_id} must be positive",
                )

        materials = self._lock_materials(requirements.keys())

        shortages: list[Shortage] = []
        cells_by_material: dict[UUID, list[InventoryRecord]] = {}
        for material_id, required in requirements.items():
            cells = self._cells(material_id)
            cells_by_material[material_id] = cells
            available = sum((c.quantity for c in cells), ZERO)
            if available < required:
                material = materials[material_id]
                shortages.append(
                    Shortage(material.code, material.name, normalize(required),
                             normalize(available), material.id)
                )

        if shortages:
            logger.info(
                "ledger_consume_rejected",
                extra={
                    "reference_id": reference_id,
                    "shortage_count": len(shortages),
                    "material_codes": [s.code for s in shortages],
                },
            )
            raise InsufficientMaterialsError(shortages)

        consumed: list[CellConsumption] = []
        for material_id, required in requirements.items():
            cells = cells_by_material[material_id]
            legs = self._plan(material_id, cells, required)
            by_key = {(c.storage_location, c.batch_number): c for c in cells}
            for leg in legs:
                cell = by_key[(leg.storage_location, leg.batch_number)]
                cell.quantity -= leg.quantity
                cell.touch(actor_id)
                self._append_movement(
                    material_id, cell.storage_location, cell.batch_number,
                    movement_type, -leg.quantity, cell.quantity, reason,
                    actor_id, reference_type, reference_id,
                )
            consumed.extend(legs)

        self.session.flush()
        logger.info(
            "ledger_consumed",
            extra={
                "reference_type": reference_type,
                "reference_id": reference_id,
                "materials": len(requirements),
                "cells": len(consumed),
            },
        )
        return consumed

    # =========================================================================
    # Internals
    # =========================================================================

    def _require_reason(self, reason: str | None) -> str:
        if reason is None or not str(reason).strip():
            raise ValidationError("reason", "a reason is required for every stock change")
        return str(reason).strip()

    def _lock_material(self, material_id: UUID) -> RawMaterial:
        return self._lock_materials([material_id])[material_id]

    def _lock_materials(self, material_ids) -> dict[UUID, RawMaterial]:
        ids = list(material_ids)
        locked = self._lock_rows(RawMaterial, ids)
        for material_id in ids:
            if material_id not in locked:
                raise NotFoundError("RawMaterial", material_id)
        return locked

    def _find_cell(
        self, material_id: UUID, location: str, batch: str,
    ) -> InventoryRecord | None:
        return self.session.execute(
            select(InventoryRecord)
            .where(
                InventoryRecord.material_id == material_id,
                InventoryRecord.storage_location == location,
                InventoryRecord.batch_number == batch,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _cells(self, material_id: UUID, location: str | None = None) -> list[InventoryRecord]:
        """Non-empty cells of a material in FEFO order."""
        stmt = select(InventoryRecord).where(
            InventoryRecord.material_id == material_id,
            InventoryRecord.quantity > 0,
        )
        if location is not None:
            stmt = stmt.where(InventoryRecord.storage_location == location)
        cells = self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalars().all()
        return sorted(cells, key=_fefo_key)

    def _plan(
        self,
        material_id: UUID,
        cells: Sequence[InventoryRecord],
        quantity: Decimal,
    ) -> list[CellConsumption]:
        """Split ``quantity`` over ``cells`` in the order given."""
        remaining = quantity
        legs: list[CellConsumption] = []
        for cell in cells:
            if remaining <= 0:
                break
            take = min(cell.quantity, remaining)
            legs.append(
                CellConsumption(
                    material_id=material_id,
                    storage_location=cell.storage_location,
                    batch_number=cell.batch_number,
                    quantity=normalize(take),
                    expiry_date=cell.expiry_date,
                )
            )
            remaining -= take
        return legs

    def _append_movement(
        self,
        material_id: UUID,
        location: str,
        batch: str,
        movement_type: MovementType,
        delta: Decimal,
        quantity_after: Decimal,
        reason: str,
        actor_id: UUID,
        reference_type: str | None,
        reference_id: UUID | None,
    ) -> InventoryMovement:
        movement = InventoryMovement(
            material_id=material_id,
            storage_location=location,
            batch_number=batch,
            movement_type=movement_type.value,
            delta=delta,
            quantity_after=quantity_after,
            reason=reason,
            reference_type=reference_type,
            reference_id=reference_id,
            actor_id=actor_id,
            occurred_at=self.clock.now(),
        )
        self.session.add(movement)
        return movement
