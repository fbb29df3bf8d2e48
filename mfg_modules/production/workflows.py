"""
Production Workflows.

Production batch lifecycle.  Materials move only on ``start``.
"""

from mfg_kernel.domain.workflow import Guard, Transition, Workflow
from mfg_kernel.logging_config import get_logger

logger = get_logger("modules.production.workflows")


class ProductionStatus:
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

MATERIALS_AVAILABLE = Guard(
    name="materials_available",
    description="Every exploded requirement is in stock at start time",
)


# -----------------------------------------------------------------------------
# Production Batch Workflow
# -----------------------------------------------------------------------------

PRODUCTION_WORKFLOW = Workflow(
    name="production_batch",
    description="Production batch lifecycle",
    initial_state=ProductionStatus.PLANNED,
    states=(
        ProductionStatus.PLANNED,
        ProductionStatus.IN_PROGRESS,
        ProductionStatus.COMPLETED,
        ProductionStatus.CANCELLED,
    ),
    transitions=(
        Transition(
            ProductionStatus.PLANNED, ProductionStatus.IN_PROGRESS,
            action="start", guard=MATERIALS_AVAILABLE, moves_stock=True,
        ),
        Transition(
            ProductionStatus.IN_PROGRESS, ProductionStatus.COMPLETED,
            action="complete", moves_stock=True,
        ),
        Transition(ProductionStatus.PLANNED, ProductionStatus.CANCELLED, action="cancel"),
    ),
    terminal_states=(ProductionStatus.COMPLETED, ProductionStatus.CANCELLED),
)

# No stock has moved in these states
DELETABLE_STATUSES = (ProductionStatus.PLANNED, ProductionStatus.CANCELLED)
