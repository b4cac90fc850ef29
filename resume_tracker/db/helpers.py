"""
Query helpers shared by the engagement repositories.

Every helper takes an optional ``connection`` so repositories can join a
caller-owned transaction (the per-resume row lock) or borrow a pooled
autocommit connection for one-off reads.
"""

import asyncio
import functools
from collections.abc import Awaitable, Callable
from typing import Any

import psycopg
from psycopg import errors

from resume_tracker.db.pool import get_db_connection
from resume_tracker.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

RowHandler = Callable[[psycopg.AsyncCursor], Awaitable[Any]]


class DatabaseError(Exception):
    """A failed query, tagged with the helper that ran it."""

    def __init__(self, message: str, operation: str = "unknown", recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


def _is_recoverable(error: psycopg.Error) -> bool:
    # Lock waits and dropped connections succeed on retry; bad data never does
    if isinstance(error, (errors.LockNotAvailable, errors.DeadlockDetected)):
        return True
    return not isinstance(error, (psycopg.IntegrityError, psycopg.DataError, psycopg.ProgrammingError))


async def _run(
    operation: str,
    query: str,
    params: tuple,
    handler: RowHandler,
    connection: psycopg.AsyncConnection | None,
) -> Any:
    try:
        if connection is not None:
            async with connection.cursor() as cur:
                await cur.execute(query, params)
                return await handler(cur)

        async with await get_db_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                return await handler(cur)

    except psycopg.Error as e:
        logger.error(
            "Database query failed",
            operation=operation,
            query=" ".join(query.split())[:100],
            error=str(e),
        )
        raise DatabaseError(
            f"{operation} failed: {e}", operation=operation, recoverable=_is_recoverable(e)
        ) from e


async def fetch_one(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> dict[str, Any] | None:
    """Return the first row as a dict, or None when the query matches nothing."""

    async def _first(cur):
        return await cur.fetchone()

    return await _run("fetch_one", query, params, _first, connection)


async def fetch_all(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> list[dict[str, Any]]:
    async def _all(cur):
        return await cur.fetchall()

    return await _run("fetch_all", query, params, _all, connection)


async def execute_query(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> int:
    """Run a write and return the affected row count."""

    async def _rowcount(cur):
        return cur.rowcount

    return await _run("execute", query, params, _rowcount, connection)


def with_db_retry(max_retries: int = 3, base_delay: float = 0.1):
    """
    Retry a coroutine on transient database failures with exponential backoff.

    The whole coroutine is re-run, so wrap units that own their transaction
    (a rolled-back attempt leaves nothing behind). Non-database exceptions
    and permanent failures propagate on the first attempt.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except (psycopg.OperationalError, DatabaseError) as e:
                    if isinstance(e, DatabaseError) and (
                        not e.recoverable
                        or isinstance(e.__cause__, (psycopg.IntegrityError, psycopg.DataError))
                    ):
                        raise

                    if attempt >= max_retries:
                        logger.error(
                            "Database operation failed after all retries",
                            operation=func.__name__,
                            attempts=attempt + 1,
                            error=str(e),
                        )
                        raise DatabaseError(
                            f"Operation failed after {max_retries} retries: {e}",
                            operation=func.__name__,
                            recoverable=False,
                        ) from e

                    delay = base_delay * (2**attempt)
                    attempt += 1
                    logger.warning(
                        "Database operation failed, retrying",
                        operation=func.__name__,
                        attempt=attempt,
                        max_retries=max_retries,
                        delay=delay,
                        error=str(e),
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
