"""
Notification Repository

Repository for notification operations (append-only table).
"""

from typing import List
from typing import Optional
from uuid import UUID
from uuid import uuid4

import asyncpg

from ccas_api.workflow.db.repository_base import BaseRepository
from ccas_api.workflow.enums import NotificationStatus
from ccas_api.workflow.enums import NotificationType


class NotificationRepository(BaseRepository):
    """Notification repository (append-only apart from delivery status)."""

    def __init__(self, pool: asyncpg.Pool):
        super().__init__(pool, "notifications")

    async def create(
        self,
        notification_type: NotificationType,
        request_id: str,
        recipients: List[str],
        subject: str,
        body: str,
        conn: Optional[asyncpg.Connection] = None,
    ) -> UUID:
        """Create a new notification (PENDING status)."""
        notification_id = uuid4()

        async with self.connection(conn) as c:
            await c.execute(
                f"""
                INSERT INTO {self.qualified_table}
                    (notification_id, notification_type, request_id, recipients, subject, body,
                     status, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, NOW())
                """,
                notification_id,
                NotificationType(notification_type).value,
                request_id,
                recipients,
                subject,
                body,
                NotificationStatus.PENDING.value,
            )

        return notification_id

    async def mark_sent(self, notification_id: UUID, conn: Optional[asyncpg.Connection] = None) -> None:
        """Mark notification as SENT."""
        async with self.connection(conn) as c:
            await c.execute(
                f"""
                UPDATE {self.qualified_table}
                SET status = $2, sent_at = NOW()
                WHERE notification_id = $1
                """,
                notification_id,
                NotificationStatus.SENT.value,
            )

    async def mark_failed(
        self,
        notification_id: UUID,
        error_message: str,
        conn: Optional[asyncpg.Connection] = None,
    ) -> None:
        """Mark notification as FAILED."""
        await self._set_status(notification_id, NotificationStatus.FAILED, error_message, conn)

    async def mark_skipped(
        self,
        notification_id: UUID,
        reason: str,
        conn: Optional[asyncpg.Connection] = None,
    ) -> None:
        """Mark notification as SKIPPED (email disabled or nobody to send to)."""
        await self._set_status(notification_id, NotificationStatus.SKIPPED, reason, conn)

    async def _set_status(
        self,
        notification_id: UUID,
        status: NotificationStatus,
        error_message: str,
        conn: Optional[asyncpg.Connection],
    ) -> None:
        async with self.connection(conn) as c:
            await c.execute(
                f"""
                UPDATE {self.qualified_table}
                SET status = $2, error_message = $3
                WHERE notification_id = $1
                """,
                notification_id,
                status.value,
                error_message,
            )
