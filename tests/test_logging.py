"""
Tests for structured logging.

Verifies:
- JSON formatter output shape and type coercion
- LogContext propagation and restoration
- Error bodies from ManufacturingError subclasses
- Logger namespace
"""

import json
import logging
import sys
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from mfg_kernel.domain.values import Shortage
from mfg_kernel.exceptions import ConcurrencyConflictError, NotFoundError
from mfg_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


def _emit(logger_name: str, message: str, *, exc_info=None, **extra) -> dict:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    logger = logging.getLogger(logger_name)
    logger.addHandler(handler)
    try:
        logger.warning(message, extra=extra, exc_info=exc_info)
    finally:
        logger.removeHandler(handler)
    return json.loads(stream.getvalue().strip().splitlines()[-1])


class TestStructuredFormatter:

    def test_base_fields(self):
        record = _emit("mfg.test.formatter", "material_created")
        assert record["level"] == "WARNING"
        assert record["logger"] == "mfg.test.formatter"
        assert record["message"] == "material_created"
        assert "ts" in record

    def test_extra_fields_are_coerced(self):
        material_id = uuid4()
        record = _emit(
            "mfg.test.formatter",
            "ledger_adjusted",
            material_id=material_id,
            quantity=Decimal("12.5"),
            expiry_date=date(2024, 6, 1),
        )
        assert record["material_id"] == str(material_id)
        assert record["quantity"] == "12.5"
        assert record["expiry_date"] == "2024-06-01"

    def test_exception_fields(self):
        try:
            raise NotFoundError("RawMaterial", "RM404")
        except NotFoundError:
            record = _emit("mfg.test.formatter", "lookup_failed", exc_info=sys.exc_info())

        assert record["error"] == {
            "type": "NotFoundError",
            "code": "NOT_FOUND",
            "message": "RawMaterial not found: RM404",
            "details": {"entity_type": "RawMaterial", "entity_id": "RM404"},
        }
        assert "traceback" in record

    def test_plain_exception(self):
        try:
            raise RuntimeError("disk full")
        except RuntimeError:
            record = _emit("mfg.test.formatter", "export_failed", exc_info=sys.exc_info())
        assert record["error"] == {"type": "RuntimeError", "message": "disk full"}

    def test_retryable_errors_are_flagged(self):
        try:
            raise ConcurrencyConflictError("inventory.adjust", "database is locked")
        except ConcurrencyConflictError:
            record = _emit("mfg.test.formatter", "transaction_lock_conflict", exc_info=sys.exc_info())
        assert record["error"]["code"] == "CONCURRENCY_CONFLICT"
        assert record["error"]["retryable"] is True

    def test_value_objects_use_to_dict(self):
        shortage = Shortage(code="RM001", name="Flour", required=Decimal("22"), available=Decimal("8"))
        record = _emit("mfg.test.formatter", "production_start_rejected", shortages=[shortage])
        assert record["shortages"] == [{
            "name": "Flour",
            "code": "RM001",
            "required": "22",
            "available": "8",
            "shortage": "14",
        }]


class TestLogContext:

    def test_bind_sets_and_restores(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(command="production.start_batch", entity_id="B-1"):
            fields = LogContext.get_all()
            assert fields["command"] == "production.start_batch"
            assert fields["entity_id"] == "B-1"
            assert fields["correlation_id"] == "outer"
        assert "command" not in LogContext.get_all()
        assert LogContext.get_all()["correlation_id"] == "outer"

    def test_context_fields_in_output(self):
        actor = uuid4()
        with LogContext.bind(actor_id=actor, command="sales.fulfill_order"):
            record = _emit("mfg.test.context", "sales_order_fulfilled")
        assert record["actor_id"] == str(actor)
        assert record["command"] == "sales.fulfill_order"

    def test_unknown_keys_ignored(self):
        with LogContext.bind(tenant="x"):
            assert "tenant" not in LogContext.get_all()

    def test_set_rejects_unknown_field(self):
        with pytest.raises(TypeError):
            LogContext.set(tenant="x")

    def test_bind_restores_after_error(self):
        with pytest.raises(NotFoundError):
            with LogContext.bind(command="bom.explode"):
                raise NotFoundError("BillOfMaterials", "BOM-404")
        assert "command" not in LogContext.get_all()


class TestLoggerNamespace:

    def test_prefix(self):
        assert get_logger("modules.inventory.service").name == "mfg.modules.inventory.service"

    def test_namespaced_name_kept(self):
        assert get_logger("mfg.db.engine").name == "mfg.db.engine"


def test_configure_logging_accepts_level_name():
    stream = StringIO()
    reset_logging()
    try:
        configure_logging(level="warning", stream=stream)
        configure_logging(level=logging.DEBUG)
        get_logger("test.levels").info("ignored")
        get_logger("test.levels").warning("kept")
        lines = stream.getvalue().strip().splitlines()
        assert [json.loads(line)["message"] for line in lines] == ["kept"]
    finally:
        reset_logging()
        configure_logging(level=logging.DEBUG)


class TestServiceLogging:

    def test_mutation_logs_carry_command_context(
        self, captured_logs, make_material, stock,
    ):
        material = make_material("RM-LOG")
        stock(material.material_id, "5")

        records = captured_logs()
        adjusted = [r for r in records if r["message"] == "ledger_adjusted"]
        assert adjusted
        assert adjusted[-1]["command"] == "inventory.adjust"
