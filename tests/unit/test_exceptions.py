"""Tests for the typed exception hierarchy (mfg_kernel/exceptions.py)."""

from decimal import Decimal
from uuid import uuid4

import pytest

from mfg_kernel.domain.values import Shortage
from mfg_kernel.exceptions import (
    ConcurrencyConflictError,
    ConcurrencyError,
    DuplicateCodeError,
    ImmutabilityViolationError,
    InsufficientInventoryError,
    InsufficientMaterialsError,
    InsufficientStockError,
    InvalidStateError,
    InvalidTransitionError,
    ManufacturingError,
    NotFoundError,
    ShortageError,
    ValidationError,
)


class TestHierarchy:

    @pytest.mark.parametrize(
        "cls, parent",
        [
            (ValidationError, ManufacturingError),
            (DuplicateCodeError, ValidationError),
            (NotFoundError, ManufacturingError),
            (InvalidStateError, ManufacturingError),
            (InvalidTransitionError, InvalidStateError),
            (ShortageError, ManufacturingError),
            (InsufficientStockError, ShortageError),
            (InsufficientMaterialsError, ShortageError),
            (InsufficientInventoryError, ShortageError),
            (ConcurrencyError, ManufacturingError),
            (ConcurrencyConflictError, ConcurrencyError),
            (ImmutabilityViolationError, ManufacturingError),
        ],
    )
    def test_parentage(self, cls, parent):
        assert issubclass(cls, parent)

    def test_codes_are_unique(self):
        classes = [
            ManufacturingError, ValidationError, DuplicateCodeError, NotFoundError,
            InvalidStateError, InvalidTransitionError, ShortageError,
            InsufficientStockError, InsufficientMaterialsError,
            InsufficientInventoryError, ConcurrencyError, ConcurrencyConflictError,
            ImmutabilityViolationError,
        ]
        codes = [cls.code for cls in classes]
        assert len(codes) == len(set(codes))

    def test_only_concurrency_errors_are_retryable(self):
        assert ConcurrencyConflictError("op", "deadlock").retryable
        assert not ValidationError("quantity", "bad").retryable
        assert not InsufficientStockError(
            [Shortage("RM001", "Flour", Decimal("5"), Decimal("2"))]
        ).retryable


class TestShortageErrors:

    def test_itemized_shortages_in_details(self):
        item_id = uuid4()
        error = InsufficientMaterialsError(
            [
                Shortage("RM001", "Flour", Decimal("22"), Decimal("8"), item_id),
                Shortage("RM002", "Sugar", Decimal("3"), Decimal("0")),
            ],
        )

        data = error.to_dict()
        assert data["code"] == "INSUFFICIENT_MATERIALS"
        shortages = data["details"]["shortages"]
        assert [s["code"] for s in shortages] == ["RM001", "RM002"]
        assert shortages[0] == {
            "name": "Flour",
            "code": "RM001",
            "required": "22",
            "available": "8",
            "shortage": "14",
            "item_id": str(item_id),
        }

    def test_message_names_every_item(self):
        error = InsufficientInventoryError(
            [
                Shortage("FG-A", "Bread", Decimal("10"), Decimal("4")),
                Shortage("FG-B", "Cake", Decimal("2"), Decimal("1")),
            ],
            context="SO-1",
        )
        message = str(error)
        assert "SO-1" in message
        assert "FG-A" in message and "FG-B" in message

    def test_shortage_must_be_positive(self):
        with pytest.raises(ValueError):
            Shortage("RM001", "Flour", Decimal("5"), Decimal("5"))


class TestStructuredAttributes:

    def test_invalid_transition_details(self):
        entity_id = uuid4()
        error = InvalidTransitionError("ProductionBatch", entity_id, "completed", "planned")
        details = error.to_dict()["details"]
        assert details["from_state"] == "completed"
        assert details["to_state"] == "planned"
        assert details["entity_id"] == str(entity_id)
        assert error.status == "completed"

    def test_duplicate_code(self):
        error = DuplicateCodeError("RawMaterial", "material_code", "RM001")
        assert error.field == "material_code"
        assert error.to_dict()["details"]["value"] == "RM001"
        assert "RM001" in str(error)

    def test_not_found(self):
        error = NotFoundError("SalesOrder", "abc")
        assert error.to_dict() == {
            "code": "NOT_FOUND",
            "message": "SalesOrder not found: abc",
            "details": {"entity_type": "SalesOrder", "entity_id": "abc"},
        }
