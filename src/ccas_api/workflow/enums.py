"""
Workflow Enums

All enum types used throughout the workflow system.
Values must match exactly with database constraints.
"""

from enum import Enum

# ════════════════════════════════════════════════════════════════════════════
# Request Enums
# ════════════════════════════════════════════════════════════════════════════


class RequestType(str, Enum):
    """Kind of master data a request creates or changes. Fixed at creation."""

    PLANT = "plant"
    COMPANY = "company"


class RequestKind(str, Enum):
    """Request-ID prefix: brand new request or change to existing master data."""

    NEW = "N"
    CHANGE = "C"


class RequestStatus(str, Enum):
    """Request lifecycle status."""

    DRAFT = "draft"
    PENDING_SECRETARY = "pending-secretary"
    PENDING_SIVA = "pending-siva"
    PENDING_RAGHU = "pending-raghu"
    PENDING_MANOJ = "pending-manoj"
    APPROVED = "approved"
    REJECTED = "rejected"
    SAP_UPDATED = "sap-updated"
    COMPLETED = "completed"


# ════════════════════════════════════════════════════════════════════════════
# Actor and Decision Enums
# ════════════════════════════════════════════════════════════════════════════


class Role(str, Enum):
    """Caller role supplied by the authentication provider."""

    REQUESTOR = "requestor"
    SECRETARY = "secretary"
    SIVA = "siva"  # Finance approver 1
    RAGHU = "raghu"  # Finance approver 2
    MANOJ = "manoj"  # Finance approver 3
    IT = "it"
    ADMIN = "admin"


class Decision(str, Enum):
    """Approver decision recorded in the approval ledger."""

    APPROVE = "approve"
    REJECT = "reject"


# ════════════════════════════════════════════════════════════════════════════
# Audit and Notification Enums
# ════════════════════════════════════════════════════════════════════════════


class HistoryAction(str, Enum):
    """Lifecycle event recorded in the history log."""

    CREATE = "create"
    EDIT = "edit"
    APPROVE = "approve"
    REJECT = "reject"
    UPDATE_SAP = "update-sap"


class NotificationStatus(str, Enum):
    """Delivery status of a recorded notification."""

    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"  # email disabled or no recipients


class NotificationType(str, Enum):
    """Event that triggered a notification."""

    VERSION_SAVED = "VERSION_SAVED"
    STATUS_CHANGED = "STATUS_CHANGED"
