"""
Async PostgreSQL pool shared by the tracking service, repositories and jobs.

Connections run in autocommit mode; multi-statement work (the per-resume
append/aggregate/classify/persist cycle) goes through ``transaction()`` so
the ``SELECT ... FOR UPDATE`` row lock is held until commit.
"""

import asyncio
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from resume_tracker.config import settings
from resume_tracker.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

POOL_CLOSE_TIMEOUT_SECONDS = 30.0
HEALTHY_UTILIZATION_PERCENT = 90
HEALTHY_LATENCY_MS = 100


@dataclass(slots=True)
class PoolHealth:
    healthy: bool
    connection_time_ms: float | None = None
    error: str | None = None
    stats: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"healthy": self.healthy, "service": "database_pool"}
        if self.connection_time_ms is not None:
            payload["connection_time_ms"] = self.connection_time_ms
        if self.error:
            payload["error"] = self.error
        if self.stats:
            payload["pool_stats"] = self.stats
        return payload


class DatabasePoolManager:
    """Lifecycle wrapper around one AsyncConnectionPool."""

    def __init__(self, conninfo: str | None = None):
        self.conninfo = conninfo or settings.DATABASE_URL
        self.pool: AsyncConnectionPool | None = None
        self._state = "new"

    @property
    def initialized(self) -> bool:
        return self._state == "open"

    async def initialize(self) -> None:
        if self._state == "open":
            logger.warning("Database pool already initialized")
            return
        if self._state == "closed":
            raise RuntimeError("Cannot reinitialize closed pool")

        pool_config = settings.get_db_pool_config()
        logger.info("Opening database pool", **pool_config)

        self.pool = AsyncConnectionPool(
            conninfo=self.conninfo,
            open=False,
            check=AsyncConnectionPool.check_connection,
            configure=self._configure_connection,
            **pool_config,
        )
        try:
            await self.pool.open(wait=True)
            self._state = "open"
            await self._probe()
        except Exception as e:
            logger.error("Failed to initialize database pool", error=str(e))
            self._state = "new"
            await self.pool.close()
            self.pool = None
            raise RuntimeError(f"Database pool initialization failed: {e}") from e

    async def _configure_connection(self, conn: psycopg.AsyncConnection) -> None:
        conn.row_factory = dict_row
        await conn.set_autocommit(True)

        session = {
            "application_name": f"resume-tracker-{settings.environment}",
            "timezone": "UTC",
            "statement_timeout": f"{settings.DB_STATEMENT_TIMEOUT_SECONDS}s",
            # Bounds how long a hit waits behind another hit on the same resume
            "lock_timeout": f"{settings.DB_LOCK_TIMEOUT_SECONDS}s",
        }
        for name, value in session.items():
            await conn.execute(
                sql.SQL("SET {} = {}").format(sql.Identifier(name), sql.Literal(value))
            )

    async def _probe(self) -> None:
        async with self.connection() as conn:
            cur = await conn.execute("SELECT 1 AS ok")
            row = await cur.fetchone()
        if not row or row["ok"] != 1:
            raise RuntimeError("Database probe returned an unexpected result")

    async def close(self) -> None:
        if self._state != "open":
            return

        logger.info("Closing database pool")
        try:
            await asyncio.wait_for(self.pool.close(), timeout=POOL_CLOSE_TIMEOUT_SECONDS)
        except TimeoutError:
            logger.warning("Database pool close timed out, forcing shutdown")
        finally:
            self._state = "closed"

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        if self._state == "closed":
            raise RuntimeError("Database pool is closed")
        if self._state != "open":
            raise RuntimeError("Database pool not initialized. Call initialize() first.")

        async with self.pool.connection() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """Commit on clean exit, roll back (and release row locks) on error."""
        async with self.connection() as conn:
            async with conn.transaction():
                yield conn

    async def health_check(self) -> PoolHealth:
        if not self.initialized:
            return PoolHealth(healthy=False, error="Pool not available")

        started = time.perf_counter()
        try:
            async with self.connection() as conn:
                await conn.execute("SELECT 1")
        except psycopg.Error as e:
            logger.error("Database pool health check failed", error=str(e))
            return PoolHealth(healthy=False, error=f"{type(e).__name__}: {e}")
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

        stats = self.pool.get_stats()
        size = stats.get("pool_size", 0)
        available = stats.get("pool_available", 0)
        utilization = round((size - available) / size * 100, 2) if size else 0.0

        return PoolHealth(
            healthy=utilization < HEALTHY_UTILIZATION_PERCENT and elapsed_ms < HEALTHY_LATENCY_MS,
            connection_time_ms=elapsed_ms,
            stats={
                "pool_size": size,
                "pool_available": available,
                "pool_utilization_percent": utilization,
                "requests_waiting": stats.get("requests_waiting", 0),
            },
        )


db_pool = DatabasePoolManager()


async def get_db_connection():
    """Pooled autocommit connection context manager."""
    return db_pool.connection()


async def get_db_transaction():
    """Pooled connection wrapped in a transaction."""
    return db_pool.transaction()
