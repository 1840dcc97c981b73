"""
Database helper functions for common patterns.
Reduces boilerplate in the repository layer.

Every helper accepts an optional `connection` so several statements can share
one transaction (see `get_db_transaction`). psycopg failures are translated
into the application error taxonomy here, once.
"""

from typing import Any

import psycopg
from psycopg import errors as pg_errors
from psycopg import sql

from offerready.db.pool import get_db_connection, get_db_transaction
from offerready.errors import AccessError, ValidationError
from offerready.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

Query = str | sql.Composable

__all__ = [
    "DatabaseError",
    "execute_query",
    "fetch_all",
    "fetch_one",
    "get_db_transaction",
]


class DatabaseError(AccessError):
    """The store failed or rejected an operation for a non-validation reason."""

    def __init__(self, message: str, operation: str = "unknown"):
        super().__init__(message)
        self.operation = operation


def _translate_error(e: psycopg.Error, operation: str, query: Query) -> Exception:
    """Map a psycopg error onto AccessError / ValidationError / DatabaseError."""
    if isinstance(e, pg_errors.InsufficientPrivilege):
        logger.warning("Database rejected operation", operation=operation, error=str(e))
        return AccessError(f"Operation not permitted: {e.diag.message_primary or e}")

    if isinstance(e, (psycopg.IntegrityError, psycopg.DataError)):
        logger.warning("Database constraint rejected operation", operation=operation, error=str(e))
        return ValidationError(f"Invalid data: {e.diag.message_primary or e}")

    logger.error("Database query failed", operation=operation, query=str(query)[:100], error=str(e))
    return DatabaseError(f"Query failed: {e}", operation=operation)


async def fetch_one(
    query: Query, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> dict[str, Any] | None:
    """
    Execute query and return single row as dict.

    Args:
        query: SQL query with %s placeholders
        params: Query parameters
        connection: Optional existing connection

    Returns:
        Dict with row data or None if no results
    """
    try:
        if connection:
            async with connection.cursor() as cur:
                await cur.execute(query, params)
                row = await cur.fetchone()
                return row if row else None
        else:
            async with await get_db_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    row = await cur.fetchone()
                    return row if row else None

    except psycopg.Error as e:
        raise _translate_error(e, "fetch_one", query) from e


async def fetch_all(
    query: Query, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> list[dict[str, Any]]:
    """
    Execute query and return all rows as list of dicts.

    Args:
        query: SQL query with %s placeholders
        params: Query parameters
        connection: Optional existing connection

    Returns:
        List of dicts with row data
    """
    try:
        if connection:
            async with connection.cursor() as cur:
                await cur.execute(query, params)
                return await cur.fetchall()
        else:
            async with await get_db_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    return await cur.fetchall()

    except psycopg.Error as e:
        raise _translate_error(e, "fetch_all", query) from e


async def execute_query(
    query: Query, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> int:
    """
    Execute query and return number of affected rows.

    Args:
        query: SQL query with %s placeholders
        params: Query parameters
        connection: Optional existing connection

    Returns:
        Number of affected rows
    """
    try:
        if connection:
            cursor = await connection.execute(query, params)
            return cursor.rowcount
        else:
            async with await get_db_connection() as conn:
                cursor = await conn.execute(query, params)
                return cursor.rowcount

    except psycopg.Error as e:
        raise _translate_error(e, "execute", query) from e
