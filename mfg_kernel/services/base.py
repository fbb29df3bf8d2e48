"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor, clock injection and row-locking helper
    for every write service in the kernel layer.  Services receive a
    SQLAlchemy ``Session`` that they use via ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: kernel services flush within the caller's
      transaction and never commit or roll back.  The module service (or
      test harness) owns commit/rollback, so multi-step commands such as
      "deduct every material, then flip the batch status" are atomic.
    - Lock ordering: ``_lock_rows`` always locks in ascending id order, so
      two commands touching overlapping rows cannot deadlock each other.
"""

from abc import ABC
from typing import Generic, Iterable, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from mfg_kernel.db.base import Base
from mfg_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Does NOT provide read-only reporting queries; those belong in
          ``mfg_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()

    def _lock_rows(self, model: type[Base], ids: Iterable[UUID]) -> dict[UUID, Base]:
        """
        ``SELECT ... FOR UPDATE`` the rows of ``model`` with the given ids.

        Rows are locked in ascending id order.  ``populate_existing`` refreshes
        identity-map copies with the values read under the lock.  Missing ids
        are simply absent from the result; callers decide whether that is an
        error.
        """
        wanted = sorted({str(i) for i in ids})
        if not wanted:
            return {}
        rows = self.session.execute(
            select(model)
            .where(model.id.in_([UUID(i) for i in wanted]))
            .order_by(model.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
        return {row.id: row for row in rows}
