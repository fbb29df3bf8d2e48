"""
Typed Exception Hierarchy for the Manufacturing Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (a UI, a CLI, a job runner) must react to failures precisely:
render an itemized shortage table, retry a lock conflict, or show a field
error. Parsing message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)
  4. ``to_dict()`` renders the error as a JSON-ready response body

Example:
    try:
        production.start_batch(batch_id, actor_id=actor)
    except InsufficientMaterialsError as e:
        return {"error": e.code, "shortages": [s.to_dict() for s in e.shortages]}
    except ConcurrencyConflictError:
        ...  # retry with backoff

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ManufacturingError (base)
    |
    +-- ValidationError
    |   +-- DuplicateCodeError
    |
    +-- NotFoundError
    |
    +-- InvalidStateError
    |   +-- InvalidTransitionError
    |
    +-- ShortageError
    |   +-- InsufficientStockError
    |   +-- InsufficientMaterialsError
    |   +-- InsufficientInventoryError
    |
    +-- ConcurrencyError
    |   +-- ConcurrencyConflictError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                    | When Raised
-------------|-------------------------|------------------------------------------
Validation   | VALIDATION_ERROR        | Missing/malformed field, bad quantity
             | DUPLICATE_CODE          | Code/number already used
-------------|-------------------------|------------------------------------------
Lookup       | NOT_FOUND               | Unknown id or code
-------------|-------------------------|------------------------------------------
State        | INVALID_STATE           | Operation illegal for current status
             | INVALID_TRANSITION      | Requested status change not allowed
-------------|-------------------------|------------------------------------------
Shortage     | INSUFFICIENT_STOCK      | Ledger cell would go negative
             | INSUFFICIENT_MATERIALS  | Production start short of materials
             | INSUFFICIENT_INVENTORY  | Sales fulfillment short of goods
-------------|-------------------------|------------------------------------------
Concurrency  | CONCURRENCY_CONFLICT    | Lock timeout / deadlock (retryable)
-------------|-------------------------|------------------------------------------
Immutability | IMMUTABILITY_VIOLATION  | Update/delete of an append-only row

Only ConcurrencyError subclasses are ``retryable``. Validation and shortage
errors need new input (or new stock) before a retry can succeed.
"""

from __future__ import annotations

from typing import Any

from mfg_kernel.domain.values import Shortage


class ManufacturingError(Exception):
    """
    Base exception for all manufacturing kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "MANUFACTURING_ERROR"
    retryable: bool = False

    def details(self) -> dict[str, Any]:
        """Structured context for API responses (subclasses extend)."""
        return {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": str(self),
            "details": self.details(),
        }


# Validation


class ValidationError(ManufacturingError):
    """A command field is missing, malformed, or out of range."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")

    def details(self) -> dict[str, Any]:
        return {"field": self.field}


class DuplicateCodeError(ValidationError):
    """A unique business code (material code, PO number, ...) already exists."""

    code: str = "DUPLICATE_CODE"

    def __init__(self, entity_type: str, field: str, value: str):
        self.entity_type = entity_type
        self.value = value
        super().__init__(field, f"{entity_type} with {field} '{value}' already exists")

    def details(self) -> dict[str, Any]:
        return {"entity_type": self.entity_type, "field": self.field, "value": self.value}


# Lookup


class NotFoundError(ManufacturingError):
    """Entity with the given id or code does not exist."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(f"{entity_type} not found: {entity_id}")

    def details(self) -> dict[str, Any]:
        return {"entity_type": self.entity_type, "entity_id": self.entity_id}


# State


class InvalidStateError(ManufacturingError):
    """Operation is not permitted in the entity's current status."""

    code: str = "INVALID_STATE"

    def __init__(self, entity_type: str, entity_id: Any, status: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.status = status
        self.reason = reason
        super().__init__(
            f"{entity_type} {entity_id} is '{status}': {reason}"
        )

    def details(self) -> dict[str, Any]:
        return {
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "status": self.status,
        }


class InvalidTransitionError(InvalidStateError):
    """Requested status transition is not defined by the workflow."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: Any,
        from_state: str,
        to_state: str,
    ):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            entity_type,
            entity_id,
            from_state,
            f"transition '{from_state}' -> '{to_state}' is not allowed",
        )

    def details(self) -> dict[str, Any]:
        data = super().details()
        data.update({"from_state": self.from_state, "to_state": self.to_state})
        return data


# Shortages


class ShortageError(ManufacturingError):
    """Base for quantity-check failures; always carries the itemized list."""

    code: str = "SHORTAGE"
    summary: str = "Insufficient quantity"

    def __init__(self, shortages: list[Shortage], context: str | None = None):
        self.shortages = list(shortages)
        self.context = context
        items = ", ".join(
            f"{s.code} (required {s.required}, available {s.available})"
            for s in self.shortages
        )
        prefix = f"{self.summary} for {context}" if context else self.summary
        super().__init__(f"{prefix}: {items}")

    def details(self) -> dict[str, Any]:
        return {
            "context": self.context,
            "shortages": [s.to_dict() for s in self.shortages],
        }


class InsufficientStockError(ShortageError):
    """A ledger adjustment or transfer would drive a cell below zero."""

    code: str = "INSUFFICIENT_STOCK"
    summary: str = "Insufficient stock"


class InsufficientMaterialsError(ShortageError):
    """Production batch cannot start: one or more materials are short."""

    code: str = "INSUFFICIENT_MATERIALS"
    summary: str = "Insufficient materials"


class InsufficientInventoryError(ShortageError):
    """Sales order cannot be fulfilled: finished goods are short."""

    code: str = "INSUFFICIENT_INVENTORY"
    summary: str = "Insufficient finished goods inventory"


# Concurrency


class ConcurrencyError(ManufacturingError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"
    retryable: bool = True


class ConcurrencyConflictError(ConcurrencyError):
    """Lock wait timed out or a deadlock was detected; safe to retry."""

    code: str = "CONCURRENCY_CONFLICT"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(
            f"Concurrency conflict during {operation}: {reason}"
        )

    def details(self) -> dict[str, Any]:
        return {"operation": self.operation}


# Immutability


class ImmutabilityViolationError(ManufacturingError):
    """Attempted to update or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )

    def details(self) -> dict[str, Any]:
        return {"entity_type": self.entity_type, "entity_id": self.entity_id}
