"""
Notifications Module

Email notifications triggered by details saves and status changes. Delivery is
best-effort: failures are recorded and logged, never returned to the caller.
"""

from ccas_api.workflow.notifications.dispatcher import NotificationDispatcher
from ccas_api.workflow.notifications.notifier import EmailNotifier
from ccas_api.workflow.notifications.notifier import Notifier

__all__ = [
    "EmailNotifier",
    "NotificationDispatcher",
    "Notifier",
]
