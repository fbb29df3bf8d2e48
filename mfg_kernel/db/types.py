"""
Module: mfg_kernel.db.types
Responsibility: Column type for exact decimals, annotated type aliases and
    rounding helpers for quantity and money columns.  Centralizes precision
    so every model and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain-level
    engines, services/ and selectors/.  MUST NOT import from any of those.

Precision:
    Quantities and money are stored with STORAGE_DECIMAL_PLACES (9) places.
    PostgreSQL uses Numeric(38, 9).  SQLite has no exact decimal type (its
    NUMERIC affinity stores REAL), so there the value is stored as a scaled
    64-bit integer; SUM/MIN/MAX stay exact in SQL and the result is scaled
    back to Decimal.  Computation stays exact in Decimal; rounding happens
    only at the boundaries below.
    - Quantity requirements are rounded to QUANTITY_DECIMAL_PLACES (6) before
      they are checked against or deducted from the ledger.
    - Money totals are rounded to MONEY_DECIMAL_PLACES (2) with ROUND_HALF_UP.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import BigInteger, Numeric, String
from sqlalchemy.types import TypeDecorator

STORAGE_DECIMAL_PLACES = 9
QUANTITY_DECIMAL_PLACES = 6
MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

# Largest magnitude a scaled SQLite value can hold (signed 64-bit)
_SQLITE_MAX_SCALED = 2**63 - 1


class ExactDecimal(TypeDecorator):
    """
    Decimal column that never round-trips through float.

    Guarantees:
        - PostgreSQL: Numeric(38, 9), values pass through unchanged.
        - SQLite: BIGINT holding ``value * 10**9`` (ROUND_HALF_UP), read
          back as an exact Decimal.  Magnitudes beyond about 9.2e9 raise
          ValueError instead of silently losing precision.
    """

    impl = Numeric(38, STORAGE_DECIMAL_PLACES)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(BigInteger())
        return dialect.type_descriptor(Numeric(38, STORAGE_DECIMAL_PLACES))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        if dialect.name != "sqlite":
            return value
        scaled = int(
            value.scaleb(STORAGE_DECIMAL_PLACES).to_integral_value(rounding=DEFAULT_ROUNDING)
        )
        if abs(scaled) > _SQLITE_MAX_SCALED:
            raise ValueError(f"{value} exceeds the range of a SQLite decimal column")
        return scaled

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if dialect.name != "sqlite":
            return value
        return Decimal(int(value)).scaleb(-STORAGE_DECIMAL_PLACES)


Quantity = Annotated[Decimal, ExactDecimal()]
Money = Annotated[Decimal, ExactDecimal()]

# Business codes (material code, PO number, batch number, ...)
ShortCode = Annotated[str, String(50)]

# Names and locations
Label = Annotated[str, String(255)]

# Free text
LongText = Annotated[str, String(4000)]

ZERO = Decimal("0")

_QUANTITY_EXPONENT = Decimal(1).scaleb(-QUANTITY_DECIMAL_PLACES)
_MONEY_EXPONENT = Decimal(1).scaleb(-MONEY_DECIMAL_PLACES)


def round_quantity(value: Decimal) -> Decimal:
    """Round a quantity to QUANTITY_DECIMAL_PLACES using ROUND_HALF_UP."""
    return value.quantize(_QUANTITY_EXPONENT, rounding=DEFAULT_ROUNDING)


def round_money(value: Decimal) -> Decimal:
    """Round a money amount to MONEY_DECIMAL_PLACES using ROUND_HALF_UP."""
    return value.quantize(_MONEY_EXPONENT, rounding=DEFAULT_ROUNDING)


def normalize(value: Decimal | int | float | None) -> Decimal:
    """Strip trailing zeros from a stored value; ``None`` becomes zero.

    Stored values come back as e.g. ``Decimal("8.000000000")``;
    results are reported as ``Decimal("8")``.
    """
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        # plain ints, e.g. a COALESCE default
        value = Decimal(str(value))
    if value == 0:
        return ZERO
    result = value.normalize()
    # normalize() yields exponent notation for integral values (8E+1)
    if result == result.to_integral_value():
        return result.quantize(Decimal(1))
    return result
