"""
BOM Module (``mfg_modules.bom``).

Responsibility
--------------
Versioned bills of materials: creation, revision, status lifecycle,
explosion into material requirements and standard-cost rollup.  The
arithmetic lives in ``mfg_engines.bom``; this module persists recipes and
resolves material master data around it.

Failure Modes
-------------
- ``ValidationError`` for empty recipes or non-positive quantities.
- ``InvalidTransitionError`` for illegal status changes.
- ``InvalidStateError`` when deleting a BOM that production refers to.
"""

from mfg_modules.bom.models import (
    BomCostSummary,
    BomDetails,
    BomInfo,
    BomLineCommand,
    BomLineInfo,
    CreateBomCommand,
    ExplosionResult,
    RequirementView,
    ReviseBomCommand,
)
from mfg_modules.bom.service import BomService
from mfg_modules.bom.workflows import BOM_WORKFLOW, BomStatus

__all__ = [
    "BomCostSummary",
    "BomDetails",
    "BomInfo",
    "BomLineCommand",
    "BomLineInfo",
    "CreateBomCommand",
    "ExplosionResult",
    "RequirementView",
    "ReviseBomCommand",
    "BomService",
    "BOM_WORKFLOW",
    "BomStatus",
]
