"""
ORM-level append-only enforcement.

Two tables are audit trails and must never change once written:

Entity             | Why
-------------------|-----------------------------------------------------
InventoryMovement  | Every ledger change is explained by exactly one row
Payment            | paid_amount is always the sum of recorded payments

Models opt in with the ``@append_only("EntityName")`` class decorator.
``register_immutability_listeners()`` attaches ``before_update`` and
``before_delete`` mapper listeners to every opted-in class, so a flush that
would modify or delete such a row raises ``ImmutabilityViolationError``
before any SQL reaches the database.

    session.flush()
         |
         v
    [before_update] --> _reject_update() --> ImmutabilityViolationError
    [before_delete] --> _reject_delete() --> ImmutabilityViolationError

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
    ...
    register_immutability_listeners()

Bulk ``UPDATE``/``DELETE`` statements bypass mapper events; the services
never issue them against append-only tables.
"""

from sqlalchemy import event

from mfg_kernel.exceptions import ImmutabilityViolationError
from mfg_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_APPEND_ONLY: dict[type, str] = {}


def append_only(entity_type: str):
    """Class decorator marking an ORM model as append-only."""

    def decorator(cls):
        _APPEND_ONLY[cls] = entity_type
        return cls

    return decorator


def append_only_models() -> dict[type, str]:
    return dict(_APPEND_ONLY)


def _reject_update(mapper, connection, target):
    entity_type = _APPEND_ONLY.get(type(target), type(target).__name__)
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=f"{entity_type} records are append-only and cannot be modified",
    )


def _reject_delete(mapper, connection, target):
    entity_type = _APPEND_ONLY.get(type(target), type(target).__name__)
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=f"{entity_type} records are append-only and cannot be deleted",
    )


def register_immutability_listeners() -> None:
    """
    Attach the append-only listeners to every opted-in model (idempotent).

    Imports the ORM registry first so module models have been decorated.
    """
    from mfg_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    for model in _APPEND_ONLY:
        if not event.contains(model, "before_update", _reject_update):
            event.listen(model, "before_update", _reject_update)
        if not event.contains(model, "before_delete", _reject_delete):
            event.listen(model, "before_delete", _reject_delete)


def unregister_immutability_listeners() -> None:
    """
    Remove the append-only listeners.

    WARNING: Only use this in tests that need to bypass the guard.
    """
    for model in _APPEND_ONLY:
        if event.contains(model, "before_update", _reject_update):
            event.remove(model, "before_update", _reject_update)
        if event.contains(model, "before_delete", _reject_delete):
            event.remove(model, "before_delete", _reject_delete)
