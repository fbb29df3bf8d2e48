"""Database layer - engine, base classes, types, and append-only guards."""

from mfg_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from mfg_kernel.db.engine import (
    command_scope,
    create_tables,
    get_engine,
    get_session,
    query_scope,
    session_scope,
)
from mfg_kernel.db.types import Money, Quantity, round_money, round_quantity

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "command_scope",
    "query_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Money",
    "Quantity",
    "round_money",
    "round_quantity",
]
