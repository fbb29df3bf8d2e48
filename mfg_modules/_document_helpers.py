"""
Shared helpers for module document flows.

Used by mfg_modules/*/service.py to load and lock document rows (purchase
orders, BOMs, production batches, sales orders) and to check business-code
uniqueness before insert.

Architecture: Modules layer. Imports only from mfg_kernel.
"""

from __future__ import annotations

from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from mfg_kernel.db.base import Base
from mfg_kernel.exceptions import DuplicateCodeError, NotFoundError

ModelType = TypeVar("ModelType", bound=Base)


def get_document(
    session: Session, model: type[ModelType], entity_type: str, doc_id: UUID,
) -> ModelType:
    """Load a row by id or raise ``NotFoundError``."""
    row = session.get(model, doc_id)
    if row is None:
        raise NotFoundError(entity_type, doc_id)
    return row


def lock_document(
    session: Session, model: type[ModelType], entity_type: str, doc_id: UUID,
) -> ModelType:
    """
    ``SELECT ... FOR UPDATE`` one document row and return it fresh.

    Status checks made after this call cannot be invalidated by a concurrent
    command on the same document until the transaction ends.
    """
    row = session.execute(
        select(model)
        .where(model.id == doc_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if row is None:
        raise NotFoundError(entity_type, doc_id)
    return row


def ensure_code_free(
    session: Session, column: Any, entity_type: str, field: str, value: Any,
) -> None:
    """Raise ``DuplicateCodeError`` when ``column == value`` already exists."""
    if session.execute(select(exists().where(column == value))).scalar():
        raise DuplicateCodeError(entity_type, field, value)


def is_referenced(session: Session, column: Any, value: Any) -> bool:
    return bool(session.execute(select(exists().where(column == value))).scalar())
