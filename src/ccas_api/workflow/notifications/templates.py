"""Subjects and bodies for notification emails."""

from typing import Any
from typing import Dict
from typing import Mapping
from typing import Optional
from typing import Tuple

from ccas_api.workflow.change_detection import field_label
from ccas_api.workflow.enums import RequestStatus
from ccas_api.workflow.enums import RequestType
from ccas_api.workflow.enums import Role
from ccas_api.workflow.models.details import FIELDS_BY_TYPE
from ccas_api.workflow.state_machine import STATUS_LABELS

# Who is told to act next when a request enters a status
STAGE_RECIPIENT_ROLE: Dict[RequestStatus, Role] = {
    RequestStatus.PENDING_SECRETARY: Role.SECRETARY,
    RequestStatus.PENDING_SIVA: Role.SIVA,
    RequestStatus.PENDING_RAGHU: Role.RAGHU,
    RequestStatus.PENDING_MANOJ: Role.MANOJ,
    RequestStatus.APPROVED: Role.IT,
}

STATUS_SUBJECTS: Dict[RequestStatus, str] = {
    RequestStatus.PENDING_SECRETARY: "Approval Needed (Secretarial)",
    RequestStatus.PENDING_SIVA: "Approval Needed (Finance Approver 1)",
    RequestStatus.PENDING_RAGHU: "Approval Needed (Finance Approver 2)",
    RequestStatus.PENDING_MANOJ: "Approval Needed (Finance Approver 3)",
    RequestStatus.APPROVED: "Request Approved - SAP Update Needed",
    RequestStatus.REJECTED: "Request Rejected",
    RequestStatus.SAP_UPDATED: "Request Marked as Updated in SAP",
    RequestStatus.COMPLETED: "Request Completed",
}


def _details_block(request_type: str, details: Optional[Mapping[str, Any]]) -> str:
    if not details:
        return "(no details saved)"
    lines = []
    for field in FIELDS_BY_TYPE[RequestType(request_type)]:
        value = details.get(field)
        lines.append(f"  {field_label(field)}: {value if value not in (None, '') else '-'}")
    return "\n".join(lines)


def _footer(request_id: str, base_url: Optional[str]) -> str:
    if base_url:
        return f"\nOpen the request: {base_url.rstrip('/')}/requests/{request_id}\n"
    return ""


def version_saved_message(
    request: Mapping[str, Any],
    details: Optional[Mapping[str, Any]],
    base_url: Optional[str] = None,
) -> Tuple[str, str]:
    """Confirmation to the requestor that a details version was saved."""
    version = details.get("version") if details else None
    subject = f"Request {request['request_id']} saved (version {version})"
    body = (
        f"Your request has been saved.\n\n"
        f"Request ID: {request['request_id']}\n"
        f"Title: {request['title']}\n"
        f"Version: {version}\n"
        f"Status: {STATUS_LABELS[RequestStatus(request['status'])]}\n\n"
        f"Details:\n{_details_block(request['type'], details)}\n"
        f"{_footer(request['request_id'], base_url)}"
    )
    return subject, body


def status_changed_message(
    request: Mapping[str, Any],
    details: Optional[Mapping[str, Any]],
    new_status: RequestStatus,
    base_url: Optional[str] = None,
) -> Tuple[str, str]:
    """Message for the next responsible party (requestor copied)."""
    new_status = RequestStatus(new_status)
    subject = f"{STATUS_SUBJECTS.get(new_status, 'Request Updated')}: {request['request_id']}"
    body = (
        f"Request {request['request_id']} is now {STATUS_LABELS[new_status]}.\n\n"
        f"Title: {request['title']}\n"
        f"Type: {RequestType(request['type']).value}\n"
        f"Requested by: {request['created_by']}\n\n"
        f"Details:\n{_details_block(request['type'], details)}\n"
        f"{_footer(request['request_id'], base_url)}"
    )
    return subject, body
