"""
Notification Dispatcher

Runs notifier calls as background tasks so the triggering operation never waits on
or fails because of email delivery.
"""

import asyncio
from typing import Awaitable
from typing import Optional
from typing import Set

from loguru import logger

from ccas_api.monitoring.request_context import get_request_context
from ccas_api.workflow.enums import RequestStatus
from ccas_api.workflow.notifications.notifier import Notifier


class NotificationDispatcher:
    """Fire-and-forget wrapper around a Notifier."""

    def __init__(self, notifier: Optional[Notifier]):
        self.notifier = notifier
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def version_saved(self, request_id: str) -> None:
        if self.notifier is None:
            return
        self.fire("version_saved", request_id, self.notifier.notify_version_saved(request_id))

    def status_changed(self, request_id: str, new_status: RequestStatus) -> None:
        if self.notifier is None:
            return
        self.fire("status_changed", request_id, self.notifier.notify_status_changed(request_id, new_status))

    def fire(self, event: str, request_id: str, call: Awaitable[None]) -> None:
        correlation_id = get_request_context()["request_id"]
        task = asyncio.create_task(self._run(event, request_id, correlation_id, call))
        # Keep a strong reference until the task finishes
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, event: str, request_id: str, correlation_id: str, call: Awaitable[None]) -> None:
        try:
            await call
        except Exception as e:  # pylint: disable=broad-except
            logger.error(
                "Notification failed",
                notification_event=event,
                request_id=request_id,
                correlation_id=correlation_id,
                error_type=type(e).__name__,
                error_message=str(e),
                exc_info=True,
            )

    async def drain(self) -> None:
        """Wait for outstanding notifications (used at shutdown and in tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
