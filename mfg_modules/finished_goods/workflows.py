"""
Finished Goods Workflows.

Status of a finished-goods batch.  ``shipped`` is also set by fulfillment
when a batch is drained to zero.
"""

from mfg_kernel.domain.workflow import Transition, Workflow
from mfg_kernel.logging_config import get_logger
from mfg_kernel.models.finished_goods import FinishedGoodsStatus

logger = get_logger("modules.finished_goods.workflows")

_AVAILABLE = FinishedGoodsStatus.AVAILABLE.value
_RESERVED = FinishedGoodsStatus.RESERVED.value
_SHIPPED = FinishedGoodsStatus.SHIPPED.value
_DAMAGED = FinishedGoodsStatus.DAMAGED.value
_EXPIRED = FinishedGoodsStatus.EXPIRED.value


FINISHED_GOODS_WORKFLOW = Workflow(
    name="finished_goods_batch",
    description="Finished-goods batch status",
    initial_state=_AVAILABLE,
    states=(_AVAILABLE, _RESERVED, _SHIPPED, _DAMAGED, _EXPIRED),
    transitions=(
        Transition(_AVAILABLE, _RESERVED, action="reserve"),
        Transition(_AVAILABLE, _DAMAGED, action="mark_damaged"),
        Transition(_AVAILABLE, _EXPIRED, action="mark_expired"),
        Transition(_AVAILABLE, _SHIPPED, action="ship"),
        Transition(_RESERVED, _AVAILABLE, action="release"),
        Transition(_RESERVED, _SHIPPED, action="ship"),
        Transition(_RESERVED, _DAMAGED, action="mark_damaged"),
    ),
    terminal_states=(_SHIPPED, _DAMAGED, _EXPIRED),
)
