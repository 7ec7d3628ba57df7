"""
Database connection pool and query helpers for the API service.

This module builds the psycopg v3 AsyncConnectionPool used by every
repository and provides a base class whose read/write helpers bound each
statement by a timeout and translate driver errors into the service's error
taxonomy. The pool is created once at startup and injected; nothing here
holds a module-level connection handle.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Awaitable, Sequence, TypeVar

import psycopg
from psycopg.errors import UniqueViolation
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from implementation.misc.errors import Conflict, DependencyUnavailable, PersistenceFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")

SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"


def _build_conninfo() -> str:
    """
    Build a libpq connection string from environment variables.

    Returns:
        A connection string in the format expected by psycopg.
    """
    return (
        f"host={os.getenv('POSTGRES_HOST')} "
        f"dbname={os.getenv('POSTGRES_DB')} "
        f"user={os.getenv('POSTGRES_USER')} "
        f"password={os.getenv('POSTGRES_PASSWORD')}"
    )


def create_pool() -> AsyncConnectionPool:
    """
    Create the connection pool with production-ready settings.

    The pool is created inert (open=False) and is opened explicitly during
    FastAPI startup via the lifespan handler.
    """
    return AsyncConnectionPool(
        conninfo=_build_conninfo(),
        min_size=2,           # Keep 2 warm connections for steady-state traffic
        max_size=10,          # Allow up to 10 connections for burst capacity
        max_lifetime=1800,    # Recycle connections after 30 minutes to prevent staleness
        max_idle=300,         # Close idle connections above min_size after 5 minutes
        timeout=5.0,          # Wait up to 5s for a connection before raising PoolTimeout
        open=False,
    )


async def apply_schema(pool: AsyncConnectionPool) -> None:
    """Create tables, unique constraints and the seed vocabulary if missing."""
    ddl = SCHEMA_PATH.read_text(encoding="utf-8")
    async with pool.connection() as conn:
        await conn.execute(ddl)
        await conn.commit()
    logger.info("Database schema is up to date")


async def check_postgres(pool: AsyncConnectionPool) -> str:
    """
    Ping Postgres via the pool to verify connectivity.

    Used by the /health endpoint.

    Returns:
        'ok' if the check succeeds, otherwise an error message string.
    """
    try:
        async with pool.connection() as conn:
            await conn.execute("SELECT 1")
        return "ok"
    except Exception as e:
        return str(e)


class PostgresRepository:
    """
    Base class for repositories backed by the shared pool.

    Every helper runs under ``asyncio.wait_for`` so a slow database surfaces
    as ``DependencyUnavailable`` instead of a hung request. Cancellation of the
    calling task propagates into the in-flight query.
    """

    def __init__(self, pool: AsyncConnectionPool, timeout: float = 10.0) -> None:
        self._pool = pool
        self._timeout = timeout

    # ===============================
    #     PRIVATE BASE METHODS
    # ===============================

    async def _guard(self, operation: Awaitable[T], action: str, conflict_message: str | None = None) -> T:
        """
        Await a database operation with the configured timeout and map failures.

        Args:
            operation: The coroutine performing the query.
            action: Short description used in log lines and error messages.
            conflict_message: Message for the Conflict raised on unique violations.
        """
        try:
            return await asyncio.wait_for(operation, timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.error("Postgres timed out after %.1fs while trying to %s", self._timeout, action)
            raise DependencyUnavailable(f"Database timed out while trying to {action}")
        except UniqueViolation as e:
            logger.info("Unique constraint rejected write (%s): %s", action, e.diag.constraint_name)
            raise Conflict(conflict_message or "Resource already exists")
        except (PoolTimeout, psycopg.OperationalError) as e:
            logger.error("Postgres unavailable while trying to %s: %s", action, e)
            raise DependencyUnavailable(f"Database unavailable while trying to {action}")
        except psycopg.Error as e:
            logger.error("Postgres error while trying to %s: %s", action, e)
            raise PersistenceFailure(f"Failed to {action}")

    async def _execute_read(self, query: str, params: Sequence[object] | None = None) -> list[tuple]:
        """
        Execute a read query and return all rows.

        Args:
            query: SQL query string with parameter placeholders (%s).
            params: Optional sequence of parameters to bind to the query.
        """
        async with self._pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                return await cur.fetchall()

    async def _execute_read_one(self, query: str, params: Sequence[object] | None = None) -> tuple | None:
        """
        Execute a read query and return a single row, or None if no rows match.
        """
        async with self._pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                return await cur.fetchone()

    async def _execute_write(
        self,
        query: str,
        params: Sequence[object] | None = None,
        fetch_one: bool = False,
    ):
        """
        Execute a write query (INSERT, UPDATE, DELETE) with an explicit commit.

        If an exception occurs the transaction is rolled back automatically by
        the connection context manager.

        Returns:
            The first row when fetch_one is True (e.g. for RETURNING clauses),
            otherwise the number of affected rows.
        """
        async with self._pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                result = await cur.fetchone() if fetch_one else cur.rowcount
            await conn.commit()
            return result
