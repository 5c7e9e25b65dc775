"""
Notifiers

``Notifier`` is the interface the workflow core calls after a details version is saved
or a request changes status. ``EmailNotifier`` resolves recipients from the role
directory, records every message in the notifications table and sends it over SMTP.
"""

import asyncio
import smtplib
from abc import ABC
from abc import abstractmethod
from typing import List
from typing import Optional

import asyncpg
from loguru import logger

from ccas_api.errors import DependencyFailure
from ccas_api.settings import Settings
from ccas_api.workflow.db.repository_details import DetailsRepository
from ccas_api.workflow.db.repository_notification import NotificationRepository
from ccas_api.workflow.db.repository_request import RequestRepository
from ccas_api.workflow.db.repository_user import UserRepository
from ccas_api.workflow.enums import NotificationType
from ccas_api.workflow.enums import RequestStatus
from ccas_api.workflow.notifications.mailer import send_email
from ccas_api.workflow.notifications.templates import STAGE_RECIPIENT_ROLE
from ccas_api.workflow.notifications.templates import status_changed_message
from ccas_api.workflow.notifications.templates import version_saved_message


class Notifier(ABC):
    """Notification interface. Implementations must not raise into the workflow."""

    @abstractmethod
    async def notify_version_saved(self, request_id: str) -> None:
        """Tell the requestor a details version was stored."""

    @abstractmethod
    async def notify_status_changed(self, request_id: str, new_status: RequestStatus) -> None:
        """Tell whoever acts next that the request moved to new_status."""


class EmailNotifier(Notifier):
    """Email notifier backed by the notifications table and SMTP."""

    def __init__(self, pool: asyncpg.Pool, settings: Settings):
        self.pool = pool
        self.settings = settings
        self.request_repo = RequestRepository(pool)
        self.user_repo = UserRepository(pool)
        self.notification_repo = NotificationRepository(pool)

    async def notify_version_saved(self, request_id: str) -> None:
        """Confirm to the requestor that their details were saved."""
        request = await self.request_repo.get(request_id)
        if request is None:
            logger.warning("Skipping version-saved notification: request not found", request_id=request_id)
            return

        details = await DetailsRepository(self.pool, request["type"]).get_latest(request_id)
        subject, body = version_saved_message(request, details, self.settings.app_base_url)
        await self._deliver(NotificationType.VERSION_SAVED, request_id, [request["created_by"]], [], subject, body)

    async def notify_status_changed(self, request_id: str, new_status: RequestStatus) -> None:
        """Tell the next responsible role, copying the requestor."""
        request = await self.request_repo.get(request_id)
        if request is None:
            logger.warning("Skipping status notification: request not found", request_id=request_id)
            return

        new_status = RequestStatus(new_status)
        to: List[str] = []
        role = STAGE_RECIPIENT_ROLE.get(new_status)
        if role is not None:
            stage_email = await self.user_repo.get_email_for_role(role)
            if stage_email:
                to.append(stage_email)
            else:
                logger.warning("No user registered for role", role=role.value, request_id=request_id)

        cc: List[str] = []
        requestor = request["created_by"]
        if not to:
            to.append(requestor)
        elif requestor not in to:
            cc.append(requestor)

        details = await DetailsRepository(self.pool, request["type"]).get_latest(request_id)
        subject, body = status_changed_message(request, details, new_status, self.settings.app_base_url)
        await self._deliver(NotificationType.STATUS_CHANGED, request_id, to, cc, subject, body)

    async def _deliver(
        self,
        notification_type: NotificationType,
        request_id: str,
        to: List[str],
        cc: List[str],
        subject: str,
        body: str,
    ) -> None:
        """
        Record the notification, then send it when SMTP is configured.

        Raises:
            DependencyFailure: the SMTP server rejected or could not be reached
        """
        notification_id = await self.notification_repo.create(notification_type, request_id, [*to, *cc], subject, body)

        if not self.settings.smtp_configured:
            await self.notification_repo.mark_skipped(notification_id, "Email notifications disabled")
            logger.info(
                "Notification recorded (email disabled)",
                notification_id=str(notification_id),
                request_id=request_id,
                notification_type=notification_type.value,
            )
            return

        error: Optional[Exception] = None
        try:
            await asyncio.to_thread(send_email, self.settings, to, cc, subject, body)
        except (smtplib.SMTPException, OSError) as e:
            error = e

        if error is not None:
            await self.notification_repo.mark_failed(notification_id, str(error))
            raise DependencyFailure(f"Email delivery failed for {request_id}: {error}") from error

        await self.notification_repo.mark_sent(notification_id)
        logger.success(
            "Notification email sent",
            notification_id=str(notification_id),
            request_id=request_id,
            recipients=[*to, *cc],
        )
