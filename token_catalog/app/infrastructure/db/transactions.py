from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Sequence, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import (
    DataError,
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
)
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from token_catalog.app.domain.errors import (
    ConstraintViolation,
    LockTimeoutError,
    StoreUnavailableError,
    TokenImportError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# lock_not_available, query_canceled (statement_timeout), deadlock_detected
_LOCK_TIMEOUT_SQLSTATES = frozenset({"55P03", "57014", "40P01"})


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def translate_db_error(
    exc: DBAPIError,
    *,
    keys: Sequence[bytes],
    operation: str,
) -> TokenImportError | None:
    """
    Map a driver error onto the import error taxonomy.

    Returns None for errors outside the taxonomy (they propagate unchanged).
    """
    sqlstate = _sqlstate(exc)

    if sqlstate in _LOCK_TIMEOUT_SQLSTATES or "database is locked" in str(exc.orig):
        return LockTimeoutError(f"{operation}: row locks not acquired in time", keys=keys)

    if isinstance(exc, (IntegrityError, DataError)):
        return ConstraintViolation(f"{operation}: {exc.orig}", keys=keys, orig=exc.orig)

    if exc.connection_invalidated or isinstance(exc, (OperationalError, InterfaceError)):
        return StoreUnavailableError(f"{operation}: store unavailable ({exc.orig})", keys=keys)

    return None


async def _apply_local_timeouts(conn: AsyncConnection, timeout: float) -> None:
    # Transaction-scoped; reset by COMMIT/ROLLBACK
    if conn.dialect.name != "postgresql":
        return

    value = f"{max(int(timeout * 1000), 1)}ms"
    await conn.execute(
        select(
            func.set_config("lock_timeout", value, True),
            func.set_config("statement_timeout", value, True),
        )
    )


async def run_in_transaction(
    engine: AsyncEngine,
    work: Callable[[AsyncConnection], Awaitable[T]],
    *,
    timeout: float,
    keys: Sequence[bytes],
    operation: str,
) -> T:
    """
    Run ``work`` inside a single transaction bounded by ``timeout`` seconds.

    Any failure rolls the whole transaction back, so callers never observe
    a partially applied batch.
    """

    async def _run() -> T:
        async with engine.begin() as conn:
            await _apply_local_timeouts(conn, timeout)
            return await work(conn)

    try:
        return await asyncio.wait_for(_run(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        logger.warning(
            "%s timed out after %ss",
            operation,
            timeout,
            extra={"operation": operation, "keys": len(keys)},
        )
        raise LockTimeoutError(f"{operation}: timed out after {timeout}s", keys=keys) from exc
    except DBAPIError as exc:
        translated = translate_db_error(exc, keys=keys, operation=operation)
        if translated is None:
            raise
        logger.warning(
            "%s failed: %s",
            operation,
            type(translated).__name__,
            extra={"operation": operation, "keys": len(keys)},
        )
        raise translated from exc
    except OSError as exc:
        raise StoreUnavailableError(f"{operation}: store unavailable ({exc})", keys=keys) from exc
