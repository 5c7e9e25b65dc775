"""
History Log Repository

Repository for the history log (append-only table).
"""

import json
from datetime import datetime
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

import asyncpg

from ccas_api.workflow.db.repository_base import BaseRepository
from ccas_api.workflow.enums import HistoryAction


class HistoryRepository(BaseRepository):
    """History log repository (append-only, never updated)."""

    def __init__(self, pool: asyncpg.Pool):
        super().__init__(pool, "history_logs")

    async def append(
        self,
        request_id: str,
        action: HistoryAction,
        user: str,
        metadata: Optional[Dict[str, Any]] = None,
        timestamp: Optional[datetime] = None,
        conn: Optional[asyncpg.Connection] = None,
    ) -> Dict[str, Any]:
        """
        Append a lifecycle event.

        Entries sharing a timestamp are kept apart by history_id.
        """
        async with self.connection(conn) as c:
            row = await c.fetchrow(
                f"""
                INSERT INTO {self.qualified_table} (request_id, timestamp, action, "user", metadata)
                VALUES ($1, COALESCE($2, NOW()), $3, $4, $5::jsonb)
                RETURNING *
                """,
                request_id,
                timestamp,
                HistoryAction(action).value,
                user,
                json.dumps(metadata, default=str) if metadata is not None else None,
            )
        return _decode(row)

    async def list_for_request(
        self,
        request_id: str,
        conn: Optional[asyncpg.Connection] = None,
    ) -> List[Dict[str, Any]]:
        """Entries for a request in timestamp order (ties in insertion order)."""
        async with self.connection(conn) as c:
            rows = await c.fetch(
                f"""
                SELECT * FROM {self.qualified_table}
                WHERE request_id = $1
                ORDER BY timestamp ASC, history_id ASC
                """,
                request_id,
            )
        return [_decode(row) for row in rows]


def _decode(row: asyncpg.Record) -> Dict[str, Any]:
    entry = dict(row)
    # asyncpg returns jsonb as text unless a codec is registered
    if isinstance(entry.get("metadata"), str):
        entry["metadata"] = json.loads(entry["metadata"])
    return entry
