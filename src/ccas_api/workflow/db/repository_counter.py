"""
Request ID Counter Repository

Daily sequence counters per request-ID prefix.
"""

from typing import Optional

import asyncpg

from ccas_api.workflow.db.repository_base import BaseRepository
from ccas_api.workflow.enums import RequestKind


class RequestIdCounterRepository(BaseRepository):
    """Counter table keyed by (prefix, yyyymmdd)."""

    def __init__(self, pool: asyncpg.Pool):
        super().__init__(pool, "request_id_counters")

    async def next_sequence(
        self,
        prefix: RequestKind,
        yyyymmdd: str,
        conn: Optional[asyncpg.Connection] = None,
    ) -> int:
        """
        Atomically increment (or start at 1) the counter and return the new value.

        A single INSERT ... ON CONFLICT DO UPDATE statement: concurrent callers are
        serialized on the row lock and each sees a distinct post-increment value.

        Raises:
            RuntimeError: the statement returned no value
        """
        async with self.connection(conn) as c:
            seq = await c.fetchval(
                f"""
                INSERT INTO {self.qualified_table} (prefix, yyyymmdd, last_seq)
                VALUES ($1, $2, 1)
                ON CONFLICT (prefix, yyyymmdd) DO UPDATE
                SET last_seq = {self.table}.last_seq + 1
                RETURNING last_seq
                """,
                RequestKind(prefix).value,
                yyyymmdd,
            )
        if seq is None:
            raise RuntimeError(f"Request ID counter upsert returned no value for {prefix}/{yyyymmdd}")
        return int(seq)
