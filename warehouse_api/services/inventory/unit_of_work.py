"""Atomic boundary for inventory operations.

Every mutating inventory operation runs inside exactly one ``UnitOfWork``:
record writes and ledger appends are flushed inside it and committed together
when the block exits cleanly. Any exception rolls the whole session back, so a
failed operation leaves neither the records nor the ledger changed.

Storage errors are translated on the way out:

- optimistic version mismatch, concurrent insert of the same location, lock
  or serialization conflicts -> ConcurrentModification (caller may retry)
- anything else from SQLAlchemy -> PersistenceFailure
"""

import logging
from typing import Optional

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from warehouse_api.exceptions import (
    ConcurrentModification,
    PersistenceFailure,
    WarehouseException,
)

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected, lock_not_available
RETRYABLE_SQLSTATES = {"40001", "40P01", "55P03"}
UNIQUE_VIOLATION_SQLSTATE = "23505"


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = exc.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return str(code)
    return None


def translate_storage_error(exc: Exception, operation: str) -> Exception:
    """Map a storage exception onto the inventory error taxonomy."""
    if isinstance(exc, WarehouseException):
        return exc
    if isinstance(exc, StaleDataError):
        return ConcurrentModification({"operation": operation, "reason": "stale_version"})
    if isinstance(exc, IntegrityError):
        message = str(exc.orig)
        if _sqlstate(exc) == UNIQUE_VIOLATION_SQLSTATE or "UNIQUE constraint failed" in message:
            return ConcurrentModification({"operation": operation, "reason": "duplicate_location"})
        return PersistenceFailure(operation, exc)
    if isinstance(exc, DBAPIError):
        if _sqlstate(exc) in RETRYABLE_SQLSTATES or "database is locked" in str(exc.orig):
            return ConcurrentModification({"operation": operation, "reason": "lock_conflict"})
        return PersistenceFailure(operation, exc)
    if isinstance(exc, SQLAlchemyError):
        return PersistenceFailure(operation, exc)
    return exc


class UnitOfWork:
    """
    Commit-or-rollback scope around one inventory operation.

    Usage:
        async with UnitOfWork(db, "transfer") as uow:
            ...
            await uow.flush()
        # committed here, or rolled back and re-raised as a typed error
    """

    def __init__(self, session: AsyncSession, operation: str):
        self.session = session
        self.operation = operation
        self.committed = False

    async def __aenter__(self) -> "UnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc is None:
            try:
                await self.commit()
            except Exception as commit_exc:
                await self.rollback()
                translated = translate_storage_error(commit_exc, self.operation)
                if translated is commit_exc:
                    raise
                self._log_failure(translated, commit_exc)
                raise translated from commit_exc
            return False

        await self.rollback()
        translated = translate_storage_error(exc, self.operation)
        if translated is exc:
            return False
        self._log_failure(translated, exc)
        raise translated from exc

    async def flush(self) -> None:
        """Flush pending writes so constraint and version checks run now."""
        await self.session.flush()

    async def commit(self) -> None:
        await self.session.commit()
        self.committed = True

    async def rollback(self) -> None:
        try:
            await self.session.rollback()
        except SQLAlchemyError:
            # The original failure is what the caller needs to see
            logger.exception(f"Rollback failed during {self.operation}")

    def _log_failure(self, translated: Exception, original: Exception) -> None:
        if isinstance(translated, PersistenceFailure):
            logger.error(f"{self.operation} failed in storage: {type(original).__name__}: {original}")
        else:
            logger.info(f"{self.operation} rolled back: {translated}")
