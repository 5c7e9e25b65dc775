"""
Base Repository

Base class shared by all workflow repositories.

Every repository method accepts an optional ``conn``. When given, the query runs on
that connection (and inside whatever transaction the caller opened), which lets the
orchestrator compose several repositories atomically. When omitted, a connection is
borrowed from the pool for the duration of the call.
"""

from contextlib import asynccontextmanager
from typing import Any
from typing import AsyncIterator
from typing import Dict
from typing import Optional

import asyncpg

SCHEMA = "ccas"


class BaseRepository:
    """
    Base repository with connection handling.

    All concrete repositories (RequestRepository, DetailsRepository, ...) inherit from this.
    """

    def __init__(self, pool: asyncpg.Pool, table_name: str):
        """
        Initialize base repository.

        Args:
            pool: asyncpg connection pool
            table_name: Database table name (without schema prefix)
        """
        self.pool = pool
        self.table = table_name

    @property
    def qualified_table(self) -> str:
        return f"{SCHEMA}.{self.table}"

    @asynccontextmanager
    async def connection(self, conn: Optional[asyncpg.Connection] = None) -> AsyncIterator[asyncpg.Connection]:
        """Yield the caller's connection, or borrow one from the pool."""
        if conn is not None:
            yield conn
            return
        async with self.pool.acquire() as acquired:
            yield acquired


@asynccontextmanager
async def transaction(pool: asyncpg.Pool) -> AsyncIterator[asyncpg.Connection]:
    """
    Borrow a connection and open a transaction on it.

    Usage:
        async with transaction(pool) as conn:
            await request_repo.update_status(request_id, status, conn=conn)
            await approval_repo.upsert(..., conn=conn)
    """
    async with pool.acquire() as conn:
        async with conn.transaction():
            yield conn


def row_to_dict(row: Optional[asyncpg.Record]) -> Optional[Dict[str, Any]]:
    """Convert an asyncpg Record to a plain dict (None passes through)."""
    return dict(row) if row is not None else None
