"""
Finished Goods Module (``mfg_modules.finished_goods``).

Manual corrections and reports for finished-goods batches.  Production
creates batches and sales fulfillment drains them; this module covers what
operators do in between.
"""

from mfg_modules.finished_goods.models import AdjustFinishedGoodsCommand, QuantityAdjustment
from mfg_modules.finished_goods.service import FinishedGoodsModuleService
from mfg_modules.finished_goods.workflows import FINISHED_GOODS_WORKFLOW

__all__ = [
    "AdjustFinishedGoodsCommand",
    "QuantityAdjustment",
    "FinishedGoodsModuleService",
    "FINISHED_GOODS_WORKFLOW",
]
