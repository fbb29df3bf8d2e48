"""
Command validation helpers (kernel primitives).

Pure checks with no I/O.  Used by the ``from_payload`` builders of every
module command to turn duck-typed request payloads (JSON bodies, form
fields) into typed values before any ledger mutation happens.  Every
failure raises ``ValidationError`` naming the offending field.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping
from uuid import UUID

from mfg_kernel.exceptions import ValidationError


def to_decimal(value: Any, field: str) -> Decimal:
    """Parse ``value`` into a finite Decimal.

    Floats go through ``str()`` so 0.1 becomes Decimal("0.1"), not its
    binary expansion.  Booleans are rejected even though they are ints.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(field, "a numeric value is required")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        text = str(value).strip()
        if not text:
            raise ValidationError(field, "a numeric value is required")
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise ValidationError(field, f"'{value}' is not a number") from None
    else:
        raise ValidationError(field, f"unsupported numeric type {type(value).__name__}")
    if not result.is_finite():
        raise ValidationError(field, "must be a finite number")
    return result


def require_positive(value: Any, field: str) -> Decimal:
    result = to_decimal(value, field)
    if result <= 0:
        raise ValidationError(field, f"must be positive (got {result})")
    return result


def require_non_negative(value: Any, field: str) -> Decimal:
    result = to_decimal(value, field)
    if result < 0:
        raise ValidationError(field, f"cannot be negative (got {result})")
    return result


def optional_decimal(value: Any, field: str, *, non_negative: bool = True) -> Decimal | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if non_negative:
        return require_non_negative(value, field)
    return to_decimal(value, field)


def require_text(value: Any, field: str, max_length: int = 255) -> str:
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(field, "is required")
    text = value.strip()
    if len(text) > max_length:
        raise ValidationError(field, f"must be at most {max_length} characters")
    return text


def optional_text(value: Any, field: str, max_length: int = 4000) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(field, "must be a string")
    text = value.strip()
    if not text:
        return None
    if len(text) > max_length:
        raise ValidationError(field, f"must be at most {max_length} characters")
    return text


def parse_uuid(value: Any, field: str) -> UUID:
    if isinstance(value, UUID):
        return value
    if isinstance(value, str):
        try:
            return UUID(value.strip())
        except ValueError:
            pass
    raise ValidationError(field, f"'{value}' is not a valid identifier")


def parse_date(value: Any, field: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValidationError(field, f"'{value}' is not an ISO date (YYYY-MM-DD)")


def optional_date(value: Any, field: str) -> date | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_date(value, field)


def parse_choice(value: Any, field: str, choices: Iterable[str]) -> str:
    allowed = tuple(choices)
    if not isinstance(value, str) or value.strip().lower() not in allowed:
        raise ValidationError(field, f"must be one of {', '.join(allowed)} (got {value!r})")
    return value.strip().lower()


def first_of(payload: Mapping[str, Any], *keys: str) -> Any:
    """Value of the first key present in ``payload`` (accepts legacy names)."""
    for key in keys:
        if key in payload:
            return payload[key]
    return None


def require_lines(
    payload: Mapping[str, Any],
    field: str = "lines",
    aliases: tuple[str, ...] = (),
) -> list[Mapping[str, Any]]:
    lines = first_of(payload, field, *aliases)
    if not isinstance(lines, (list, tuple)) or not lines:
        raise ValidationError(field, "at least one line is required")
    for index, line in enumerate(lines):
        if not isinstance(line, Mapping):
            raise ValidationError(f"{field}[{index}]", "must be an object")
    return list(lines)
