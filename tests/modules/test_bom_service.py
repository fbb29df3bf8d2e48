"""
Tests for the BOM module service.

Creation, lifecycle, revisions, explosion and standard-cost rollup.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from mfg_kernel.exceptions import (
    DuplicateCodeError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from mfg_modules.bom import (
    BomLineCommand,
    BomStatus,
    CreateBomCommand,
    ReviseBomCommand,
)
from mfg_modules.production import CreateProductionBatchCommand


@pytest.fixture
def flour(make_material):
    return make_material("RM001", name="Flour", standard_cost="5.50")


@pytest.fixture
def sugar(make_material):
    return make_material("RM002", name="Sugar", standard_cost="2.00")


@pytest.fixture
def bread_bom(make_bom, flour):
    return make_bom("BOM-001", "BREAD", [(flour.material_id, "2.0", "10")])


class TestCreate:

    def test_details_and_cost(self, bread_bom):
        assert bread_bom.bom.status == BomStatus.ACTIVE
        assert bread_bom.bom.line_count == 1
        assert bread_bom.total_material_cost == Decimal("12.1")
        assert bread_bom.cost_per_unit == Decimal("12.1")
        assert bread_bom.lines[0].unit_of_measure == "kg"
        assert bread_bom.uncosted_material_ids == ()

    def test_default_status_is_draft(self, bom_service, flour, test_actor_id):
        details = bom_service.create_bom(
            CreateBomCommand.from_payload({
                "bom_number": "BOM-D",
                "product_code": "CAKE",
                "base_quantity": "1",
                "unit_of_measure": "unit",
                "line_items": [{"material_id": str(flour.material_id), "quantity_required": "1"}],
            }),
            test_actor_id,
        )
        assert details.bom.status == BomStatus.DRAFT

    def test_obsolete_not_creatable(self, flour):
        with pytest.raises(ValidationError):
            CreateBomCommand(
                bom_number="B", product_code="P", base_quantity=Decimal("1"),
                unit_of_measure="unit", status=BomStatus.OBSOLETE,
                lines=(BomLineCommand(flour.material_id, Decimal("1")),),
            )

    def test_duplicate_number(self, make_bom, bread_bom, flour):
        with pytest.raises(DuplicateCodeError):
            make_bom("BOM-001", "CAKE", [(flour.material_id, "1", "0")])

    def test_duplicate_product_version(self, make_bom, bread_bom, flour):
        with pytest.raises(DuplicateCodeError):
            make_bom("BOM-002", "BREAD", [(flour.material_id, "1", "0")], version="1.0")

    def test_unknown_material(self, make_bom):
        with pytest.raises(NotFoundError):
            make_bom("BOM-X", "BREAD", [(uuid4(), "1", "0")])

    def test_line_validation(self):
        with pytest.raises(ValidationError):
            BomLineCommand(uuid4(), Decimal("0"))
        with pytest.raises(ValidationError):
            BomLineCommand(uuid4(), Decimal("1"), Decimal("-5"))

    def test_uncosted_material_reported(self, make_bom, make_material, flour):
        mystery = make_material("RM009", standard_cost=None)
        details = make_bom(
            "BOM-U", "MIX", [(flour.material_id, "1", "0"), (mystery.material_id, "3", "0")],
        )
        assert details.total_material_cost == Decimal("5.5")
        assert details.uncosted_material_ids == (mystery.material_id,)


class TestExplodeAndCost:

    def test_worked_example(self, bom_service, bread_bom):
        result = bom_service.explode(bread_bom.bom.bom_id, "10")
        [req] = result.requirements
        assert req.material_code == "RM001"
        assert req.required_quantity == Decimal("22")
        assert req.unit == "kg"

    def test_base_quantity_and_multiple_lines(self, bom_service, make_bom, flour, sugar):
        bom = make_bom(
            "BOM-C", "CAKE",
            [(flour.material_id, "4", "0"), (sugar.material_id, "1", "50")],
            base_quantity="8",
        )
        result = bom_service.explode(bom.bom.bom_id, Decimal("2"))
        assert [(r.material_code, r.required_quantity) for r in result.requirements] == [
            ("RM001", Decimal("1")),
            ("RM002", Decimal("0.375")),
        ]

        rollup = bom_service.cost_rollup(bom.bom.bom_id)
        # 4 * 5.50 + 1.5 * 2.00 for 8 units
        assert rollup.total_cost == Decimal("25")
        assert rollup.cost_per_unit == Decimal("3.125")

    def test_rejects_bad_target(self, bom_service, bread_bom):
        with pytest.raises(ValidationError):
            bom_service.explode(bread_bom.bom.bom_id, "0")

    def test_unknown_bom(self, bom_service):
        with pytest.raises(NotFoundError):
            bom_service.cost_rollup(uuid4())

    def test_cost_analysis_skips_obsolete(self, bom_service, make_bom, bread_bom, flour, test_actor_id):
        old = make_bom("BOM-OLD", "ROLL", [(flour.material_id, "1", "0")])
        bom_service.update_status(old.bom.bom_id, BomStatus.OBSOLETE, test_actor_id)
        summary = bom_service.cost_analysis_summary()
        assert [s.bom_number for s in summary] == ["BOM-001"]
        assert summary[0].is_fully_costed


class TestLifecycle:

    def test_activate_then_retire(self, bom_service, make_bom, flour, test_actor_id):
        draft = make_bom("BOM-D", "CAKE", [(flour.material_id, "1", "0")], status=BomStatus.DRAFT)
        active = bom_service.update_status(draft.bom.bom_id, BomStatus.ACTIVE, test_actor_id)
        assert active.status == BomStatus.ACTIVE
        retired = bom_service.update_status(draft.bom.bom_id, BomStatus.OBSOLETE, test_actor_id)
        assert retired.status == BomStatus.OBSOLETE
        with pytest.raises(InvalidTransitionError):
            bom_service.update_status(draft.bom.bom_id, BomStatus.ACTIVE, test_actor_id)

    def test_revise_copies_lines_and_obsoletes(self, bom_service, bread_bom, test_actor_id):
        revision = bom_service.revise_bom(
            bread_bom.bom.bom_id, ReviseBomCommand(new_version="2.0", activate=True), test_actor_id,
        )
        assert revision.bom.bom_number == "BOM-001-2.0"
        assert revision.bom.status == BomStatus.ACTIVE
        assert revision.bom.supersedes_id == bread_bom.bom.bom_id
        assert revision.total_material_cost == bread_bom.total_material_cost
        old = bom_service.get_bom_details(bread_bom.bom.bom_id)
        assert old.bom.status == BomStatus.OBSOLETE
        versions = [b.version for b in bom_service.get_boms_for_product("BREAD")]
        assert sorted(versions) == ["1.0", "2.0"]

    def test_revise_with_new_lines_stays_draft(self, bom_service, bread_bom, sugar, test_actor_id):
        revision = bom_service.revise_bom(
            bread_bom.bom.bom_id,
            ReviseBomCommand(
                new_version="1.1",
                bom_number="BOM-001B",
                lines=(BomLineCommand(sugar.material_id, Decimal("3")),),
            ),
            test_actor_id,
        )
        assert revision.bom.status == BomStatus.DRAFT
        assert [line.material_code for line in revision.lines] == ["RM002"]
        assert bom_service.get_bom_details(bread_bom.bom.bom_id).bom.status == BomStatus.ACTIVE

    def test_revise_duplicate_version(self, bom_service, bread_bom, test_actor_id):
        with pytest.raises(DuplicateCodeError):
            bom_service.revise_bom(
                bread_bom.bom.bom_id, ReviseBomCommand(new_version="1.0"), test_actor_id,
            )

    def test_list_by_status(self, bom_service, make_bom, bread_bom, flour):
        make_bom("BOM-D", "CAKE", [(flour.material_id, "1", "0")], status=BomStatus.DRAFT)
        assert [b.bom_number for b in bom_service.list_boms(BomStatus.DRAFT)] == ["BOM-D"]
        assert len(bom_service.list_boms()) == 2


class TestDelete:

    def test_delete_unused(self, bom_service, bread_bom, test_actor_id):
        bom_service.delete_bom(bread_bom.bom.bom_id, test_actor_id)
        with pytest.raises(NotFoundError):
            bom_service.get_bom_details(bread_bom.bom.bom_id)

    def test_delete_with_batches_rejected(
        self, bom_service, production_service, bread_bom, test_actor_id,
    ):
        production_service.create_batch(
            CreateProductionBatchCommand(
                batch_number="PB-1", bom_id=bread_bom.bom.bom_id, planned_quantity=Decimal("1"),
            ),
            test_actor_id,
        )
        with pytest.raises(InvalidStateError):
            bom_service.delete_bom(bread_bom.bom.bom_id, test_actor_id)

    def test_delete_superseded_rejected(self, bom_service, bread_bom, test_actor_id):
        bom_service.revise_bom(
            bread_bom.bom.bom_id, ReviseBomCommand(new_version="2.0"), test_actor_id,
        )
        with pytest.raises(InvalidStateError):
            bom_service.delete_bom(bread_bom.bom.bom_id, test_actor_id)
