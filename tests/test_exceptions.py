"""Tests for the typed inventory errors and storage error translation."""
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from warehouse_api.exceptions import (
    ConcurrentModification,
    ErrorCode,
    InsufficientStock,
    InvalidAmount,
    PersistenceFailure,
    RecordNotFound,
    SameLocationTransfer,
    TargetNotFound,
    Unauthenticated,
    UnitMismatch,
)
from warehouse_api.services.inventory.unit_of_work import translate_storage_error


class _PgError(Exception):
    def __init__(self, message, sqlstate):
        super().__init__(message)
        self.sqlstate = sqlstate


class TestProblemDetail:
    def test_insufficient_stock_problem(self):
        exc = InsufficientStock(requested=Decimal("70"), available=Decimal("60"), inventory_id=3)
        problem = exc.to_problem_detail(instance="/api/v2/inventory/transactions")

        assert problem.status == 409
        assert problem.code == "INV_002"
        assert problem.type.endswith("/inv-002")
        assert problem.context == {"requested": "70", "available": "60", "inventory_id": 3}
        assert problem.instance == "/api/v2/inventory/transactions"
        assert problem.trace_id

    @pytest.mark.parametrize(
        "exc, status, code",
        [
            (InvalidAmount("-1", "must_be_positive"), 422, ErrorCode.INVALID_AMOUNT),
            (UnitMismatch("kg", "lb"), 422, ErrorCode.UNIT_MISMATCH),
            (SameLocationTransfer(1, 2), 422, ErrorCode.SAME_LOCATION_TRANSFER),
            (RecordNotFound("Inventory record", 5), 404, ErrorCode.NOT_FOUND),
            (TargetNotFound(9), 404, ErrorCode.TARGET_NOT_FOUND),
            (ConcurrentModification(), 409, ErrorCode.CONCURRENT_MODIFICATION),
            (Unauthenticated(), 401, ErrorCode.UNAUTHORIZED),
            (PersistenceFailure("transfer", RuntimeError("boom")), 503, ErrorCode.DATABASE_ERROR),
        ],
    )
    def test_status_and_code(self, exc, status, code):
        assert exc.status_code == status
        assert exc.code == code
        assert str(exc).startswith(code.value)

    def test_persistence_failure_hides_driver_message(self):
        exc = PersistenceFailure("inventory add", RuntimeError("password=hunter2"))
        assert "hunter2" not in str(exc.to_problem_detail().model_dump())


class TestStorageTranslation:
    def test_stale_version(self):
        translated = translate_storage_error(StaleDataError("0 rows matched"), "remove")
        assert isinstance(translated, ConcurrentModification)
        assert translated.context["reason"] == "stale_version"

    def test_sqlite_unique_violation(self):
        error = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: inventory_records.product_id"))
        translated = translate_storage_error(error, "initial")
        assert isinstance(translated, ConcurrentModification)
        assert translated.context["reason"] == "duplicate_location"

    def test_postgres_unique_violation(self):
        error = IntegrityError("INSERT", {}, _PgError("duplicate key value", "23505"))
        assert isinstance(translate_storage_error(error, "initial"), ConcurrentModification)

    def test_other_integrity_error(self):
        error = IntegrityError("INSERT", {}, _PgError("violates check constraint", "23514"))
        assert isinstance(translate_storage_error(error, "remove"), PersistenceFailure)

    @pytest.mark.parametrize("sqlstate", ["40001", "40P01", "55P03"])
    def test_postgres_lock_conflicts(self, sqlstate):
        error = OperationalError("UPDATE", {}, _PgError("could not serialize access", sqlstate))
        assert isinstance(translate_storage_error(error, "transfer"), ConcurrentModification)

    def test_sqlite_lock(self):
        error = OperationalError("UPDATE", {}, Exception("database is locked"))
        assert isinstance(translate_storage_error(error, "transfer"), ConcurrentModification)

    def test_connection_loss(self):
        error = OperationalError("SELECT", {}, Exception("connection refused"))
        assert isinstance(translate_storage_error(error, "transfer"), PersistenceFailure)

    def test_domain_errors_pass_through(self):
        original = InsufficientStock(Decimal("2"), Decimal("1"))
        assert translate_storage_error(original, "remove") is original

    def test_unrelated_errors_pass_through(self):
        original = KeyError("x")
        assert translate_storage_error(original, "remove") is original
