"""
Finished Goods Domain Models (``mfg_modules.finished_goods.models``).

Commands for manual corrections of finished-goods batches.  Read views
(``FinishedGoodsView``, ``ProductStock``, ``FinishedGoodsStatistics``)
live in ``mfg_kernel.selectors.finished_goods_selector``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping

from mfg_kernel.domain.validation import first_of, require_non_negative, require_text
from mfg_kernel.exceptions import ValidationError
from mfg_kernel.selectors.finished_goods_selector import FinishedGoodsView


@dataclass(frozen=True)
class AdjustFinishedGoodsCommand:
    """Overwrite a batch's quantity after a physical count."""

    new_quantity: Decimal
    reason: str

    def __post_init__(self) -> None:
        if self.new_quantity < 0:
            raise ValidationError("new_quantity", "cannot be negative")
        if not self.reason.strip():
            raise ValidationError("reason", "is required")

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "AdjustFinishedGoodsCommand":
        return cls(
            new_quantity=require_non_negative(
                first_of(payload, "new_quantity", "quantity"), "new_quantity",
            ),
            reason=require_text(payload.get("reason"), "reason"),
        )


@dataclass(frozen=True)
class QuantityAdjustment:
    batch: FinishedGoodsView
    old_quantity: Decimal
    reason: str

    @property
    def delta(self) -> Decimal:
        return self.batch.quantity - self.old_quantity

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch": self.batch.to_dict(),
            "old_quantity": str(self.old_quantity),
            "new_quantity": str(self.batch.quantity),
            "delta": str(self.delta),
            "reason": self.reason,
        }
