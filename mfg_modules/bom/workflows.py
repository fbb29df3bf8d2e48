"""
BOM Workflows.

Version lifecycle of a bill of materials.  Only ``active`` BOMs can be
used to plan production.
"""

from mfg_kernel.domain.workflow import Transition, Workflow
from mfg_kernel.logging_config import get_logger

logger = get_logger("modules.bom.workflows")


class BomStatus:
    DRAFT = "draft"
    ACTIVE = "active"
    OBSOLETE = "obsolete"


BOM_WORKFLOW = Workflow(
    name="bill_of_materials",
    description="BOM version lifecycle",
    initial_state=BomStatus.DRAFT,
    states=(BomStatus.DRAFT, BomStatus.ACTIVE, BomStatus.OBSOLETE),
    transitions=(
        Transition(BomStatus.DRAFT, BomStatus.ACTIVE, action="activate"),
        Transition(BomStatus.DRAFT, BomStatus.OBSOLETE, action="retire"),
        Transition(BomStatus.ACTIVE, BomStatus.OBSOLETE, action="retire"),
    ),
    terminal_states=(BomStatus.OBSOLETE,),
)
