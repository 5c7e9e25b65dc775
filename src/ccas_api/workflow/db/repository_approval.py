"""
Approval Repository

Approval ledger: one row per (request_id, approver_email). A repeated decision by the
same approver overwrites the earlier one; the full sequence of decisions is kept in
the history log.
"""

from typing import Any
from typing import Dict
from typing import List
from typing import Optional

import asyncpg

from ccas_api.workflow.db.repository_base import BaseRepository
from ccas_api.workflow.enums import Decision
from ccas_api.workflow.enums import Role


class ApprovalRepository(BaseRepository):
    """Approval ledger repository (upsert per approver)."""

    def __init__(self, pool: asyncpg.Pool):
        super().__init__(pool, "approvals")

    async def upsert(
        self,
        request_id: str,
        approver_email: str,
        role: Role,
        decision: Decision,
        comment: str,
        attachment_id: Optional[str] = None,
        conn: Optional[asyncpg.Connection] = None,
    ) -> Dict[str, Any]:
        """Insert the approver's decision, or overwrite their previous one."""
        async with self.connection(conn) as c:
            row = await c.fetchrow(
                f"""
                INSERT INTO {self.qualified_table}
                    (request_id, approver_email, role, decision, comment, attachment_id, timestamp)
                VALUES ($1, $2, $3, $4, $5, $6, NOW())
                ON CONFLICT (request_id, approver_email) DO UPDATE
                SET role = EXCLUDED.role,
                    decision = EXCLUDED.decision,
                    comment = EXCLUDED.comment,
                    attachment_id = EXCLUDED.attachment_id,
                    timestamp = EXCLUDED.timestamp
                RETURNING *
                """,
                request_id,
                approver_email,
                Role(role).value,
                Decision(decision).value,
                comment,
                attachment_id,
            )
        return dict(row)

    async def list_for_request(
        self,
        request_id: str,
        conn: Optional[asyncpg.Connection] = None,
    ) -> List[Dict[str, Any]]:
        """All approval rows for a request, oldest first."""
        async with self.connection(conn) as c:
            rows = await c.fetch(
                f"SELECT * FROM {self.qualified_table} WHERE request_id = $1 ORDER BY timestamp ASC",
                request_id,
            )
        return [dict(row) for row in rows]

    async def count_by_request(
        self,
        conn: Optional[asyncpg.Connection] = None,
    ) -> Dict[str, int]:
        """Number of approval rows per request_id."""
        async with self.connection(conn) as c:
            rows = await c.fetch(
                f"SELECT request_id, COUNT(*) AS approvals_count FROM {self.qualified_table} GROUP BY request_id"
            )
        return {row["request_id"]: row["approvals_count"] for row in rows}
