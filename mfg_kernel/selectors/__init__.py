"""Read-only selectors over the raw-material and finished-goods ledgers."""

from mfg_kernel.selectors.finished_goods_selector import FinishedGoodsSelector
from mfg_kernel.selectors.inventory_selector import InventorySelector

__all__ = ["InventorySelector", "FinishedGoodsSelector"]
