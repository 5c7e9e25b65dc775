"""
Attachment Repository

Blob store for request attachments. Content is stored as bytea next to its metadata;
listings never load the content.
"""

from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from uuid import uuid4

import asyncpg
from loguru import logger

from ccas_api.errors import NotFoundError
from ccas_api.workflow.db.repository_base import BaseRepository

METADATA_COLUMNS = (
    "attachment_id, request_id, file_name, file_type, size_bytes, version, title, uploaded_by, uploaded_at"
)


class AttachmentRepository(BaseRepository):
    """Attachment blob store (put / get / list)."""

    def __init__(self, pool: asyncpg.Pool):
        super().__init__(pool, "attachments")

    async def put(
        self,
        content: bytes,
        file_name: str,
        file_type: str,
        request_id: str,
        uploaded_by: str,
        version: Optional[int] = None,
        title: Optional[str] = None,
        conn: Optional[asyncpg.Connection] = None,
    ) -> Dict[str, Any]:
        """
        Store a file and return its metadata (including the new attachment_id).

        Args:
            content: Raw file bytes
            file_name: Original file name
            file_type: MIME type
            request_id: Request the file belongs to
            uploaded_by: Uploader email
            version: Details version the file was attached to
            title: Optional display title
        """
        attachment_id = uuid4().hex

        async with self.connection(conn) as c:
            row = await c.fetchrow(
                f"""
                INSERT INTO {self.qualified_table}
                    (attachment_id, request_id, file_name, file_type, content, size_bytes,
                     version, title, uploaded_by, uploaded_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, NOW())
                RETURNING {METADATA_COLUMNS}
                """,
                attachment_id,
                request_id,
                file_name,
                file_type,
                content,
                len(content),
                version,
                title,
                uploaded_by,
            )

        logger.info(
            "Attachment stored",
            attachment_id=attachment_id,
            request_id=request_id,
            file_name=file_name,
            size_bytes=len(content),
        )
        return dict(row)

    async def get(
        self,
        attachment_id: str,
        conn: Optional[asyncpg.Connection] = None,
    ) -> Dict[str, Any]:
        """
        Fetch a file with its metadata.

        Raises:
            NotFoundError: unknown attachment_id
        """
        async with self.connection(conn) as c:
            row = await c.fetchrow(
                f"SELECT {METADATA_COLUMNS}, content FROM {self.qualified_table} WHERE attachment_id = $1",
                attachment_id,
            )
        if row is None:
            raise NotFoundError(f"Attachment not found: {attachment_id}")
        return dict(row)

    async def list_for_request(
        self,
        request_id: str,
        conn: Optional[asyncpg.Connection] = None,
    ) -> List[Dict[str, Any]]:
        """Metadata of all files for a request, newest first."""
        async with self.connection(conn) as c:
            rows = await c.fetch(
                f"""
                SELECT {METADATA_COLUMNS} FROM {self.qualified_table}
                WHERE request_id = $1
                ORDER BY uploaded_at DESC
                """,
                request_id,
            )
        return [dict(row) for row in rows]
