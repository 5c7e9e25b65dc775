"""
Request Repository

Repository for the requests table (one row per request, mutated in place).
"""

from datetime import datetime
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from typing import Optional

import asyncpg
from loguru import logger

from ccas_api.workflow.db.repository_base import BaseRepository
from ccas_api.workflow.db.repository_base import row_to_dict
from ccas_api.workflow.enums import RequestStatus
from ccas_api.workflow.enums import RequestType


class RequestRepository(BaseRepository):
    """Requests repository."""

    def __init__(self, pool: asyncpg.Pool):
        super().__init__(pool, "requests")

    async def create(
        self,
        request_id: str,
        request_type: RequestType,
        title: str,
        status: RequestStatus,
        created_by: str,
        original_request_id: Optional[str] = None,
        conn: Optional[asyncpg.Connection] = None,
    ) -> Dict[str, Any]:
        """
        Insert a new request.

        Args:
            request_id: Allocated request ID (N_... or C_...)
            request_type: plant or company (immutable afterwards)
            title: Human-readable title
            status: Initial status
            created_by: Requestor email
            original_request_id: Source request for change requests

        Returns:
            The inserted row
        """
        async with self.connection(conn) as c:
            row = await c.fetchrow(
                f"""
                INSERT INTO {self.qualified_table}
                    (request_id, type, title, status, created_by, created_at, updated_at, original_request_id)
                VALUES ($1, $2, $3, $4, $5, NOW(), NOW(), $6)
                RETURNING *
                """,
                request_id,
                RequestType(request_type).value,
                title,
                RequestStatus(status).value,
                created_by,
                original_request_id,
            )

        logger.debug("Request row created", request_id=request_id, status=RequestStatus(status).value)
        return dict(row)

    async def get(
        self,
        request_id: str,
        for_update: bool = False,
        conn: Optional[asyncpg.Connection] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Get a request by ID.

        Args:
            request_id: Request ID
            for_update: Lock the row until the surrounding transaction ends

        Returns:
            Row dict or None if not found
        """
        lock = " FOR UPDATE" if for_update else ""
        async with self.connection(conn) as c:
            row = await c.fetchrow(
                f"SELECT * FROM {self.qualified_table} WHERE request_id = $1{lock}",
                request_id,
            )
        return row_to_dict(row)

    async def list_requests(
        self,
        created_by: Optional[str] = None,
        status: Optional[Iterable[RequestStatus]] = None,
        request_type: Optional[RequestType] = None,
        conn: Optional[asyncpg.Connection] = None,
    ) -> List[Dict[str, Any]]:
        """
        List requests, newest first.

        Args:
            created_by: Only requests created by this email
            status: Only requests in one of these statuses
            request_type: Only plant or only company requests
        """
        clauses = []
        params: List[Any] = []
        if created_by:
            params.append(created_by)
            clauses.append(f"created_by = ${len(params)}")
        if status:
            params.append([RequestStatus(s).value for s in status])
            clauses.append(f"status = ANY(${len(params)}::text[])")
        if request_type:
            params.append(RequestType(request_type).value)
            clauses.append(f"type = ${len(params)}")

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        async with self.connection(conn) as c:
            rows = await c.fetch(
                f"SELECT * FROM {self.qualified_table} {where} ORDER BY created_at DESC",
                *params,
            )
        return [dict(row) for row in rows]

    async def update_status(
        self,
        request_id: str,
        status: RequestStatus,
        conn: Optional[asyncpg.Connection] = None,
    ) -> Optional[Dict[str, Any]]:
        """Set a new status and refresh updated_at. Returns the updated row or None."""
        async with self.connection(conn) as c:
            row = await c.fetchrow(
                f"""
                UPDATE {self.qualified_table}
                SET status = $2, updated_at = NOW()
                WHERE request_id = $1
                RETURNING *
                """,
                request_id,
                RequestStatus(status).value,
            )
        return row_to_dict(row)

    async def update_for_resubmission(
        self,
        request_id: str,
        title: str,
        status: RequestStatus,
        conn: Optional[asyncpg.Connection] = None,
    ) -> Optional[Dict[str, Any]]:
        """Regenerate the title and restart the approval chain after an edit."""
        async with self.connection(conn) as c:
            row = await c.fetchrow(
                f"""
                UPDATE {self.qualified_table}
                SET title = $2, status = $3, updated_at = NOW()
                WHERE request_id = $1
                RETURNING *
                """,
                request_id,
                title,
                RequestStatus(status).value,
            )
        return row_to_dict(row)

    async def mark_completed(
        self,
        request_id: str,
        completed_at: datetime,
        turnaround_days: int,
        conn: Optional[asyncpg.Connection] = None,
    ) -> Optional[Dict[str, Any]]:
        """Move to completed and store the turnaround time."""
        async with self.connection(conn) as c:
            row = await c.fetchrow(
                f"""
                UPDATE {self.qualified_table}
                SET status = $2, completed_at = $3, turnaround_days = $4, updated_at = $3
                WHERE request_id = $1
                RETURNING *
                """,
                request_id,
                RequestStatus.COMPLETED.value,
                completed_at,
                turnaround_days,
            )
        return row_to_dict(row)
