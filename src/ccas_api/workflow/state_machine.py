"""
Request Status State Machine

The approval chain is fixed:

    pending-secretary -> pending-siva -> pending-raghu -> pending-manoj -> approved
    approved --(IT SAP update)--> sap-updated --(mark completed)--> completed

Any approver may reject while the request waits on them. Submissions and edits
always (re)enter the chain at pending-secretary.
"""

from typing import Dict
from typing import List
from typing import Optional

from ccas_api.errors import AuthorizationError
from ccas_api.workflow.enums import Decision
from ccas_api.workflow.enums import RequestStatus
from ccas_api.workflow.enums import Role

INITIAL_STATUS = RequestStatus.PENDING_SECRETARY

TERMINAL_STATUSES = frozenset({RequestStatus.REJECTED, RequestStatus.COMPLETED})

# Statuses a requestor may edit in place; later stages need a change request
EDITABLE_STATUSES = frozenset(
    {
        RequestStatus.DRAFT,
        RequestStatus.PENDING_SECRETARY,
        RequestStatus.PENDING_SIVA,
        RequestStatus.PENDING_RAGHU,
        RequestStatus.PENDING_MANOJ,
        RequestStatus.REJECTED,
    }
)

REQUIRED_ROLE: Dict[RequestStatus, Role] = {
    RequestStatus.PENDING_SECRETARY: Role.SECRETARY,
    RequestStatus.PENDING_SIVA: Role.SIVA,
    RequestStatus.PENDING_RAGHU: Role.RAGHU,
    RequestStatus.PENDING_MANOJ: Role.MANOJ,
    RequestStatus.APPROVED: Role.IT,
}

NEXT_ON_APPROVE: Dict[RequestStatus, RequestStatus] = {
    RequestStatus.PENDING_SECRETARY: RequestStatus.PENDING_SIVA,
    RequestStatus.PENDING_SIVA: RequestStatus.PENDING_RAGHU,
    RequestStatus.PENDING_RAGHU: RequestStatus.PENDING_MANOJ,
    RequestStatus.PENDING_MANOJ: RequestStatus.APPROVED,
}

STATUS_LABELS: Dict[RequestStatus, str] = {
    RequestStatus.DRAFT: "Draft",
    RequestStatus.PENDING_SECRETARY: "Pending Secretarial",
    RequestStatus.PENDING_SIVA: "Pending Finance Approver 1",
    RequestStatus.PENDING_RAGHU: "Pending Finance Approver 2",
    RequestStatus.PENDING_MANOJ: "Pending Finance Approver 3",
    RequestStatus.APPROVED: "Approved",
    RequestStatus.REJECTED: "Rejected",
    RequestStatus.SAP_UPDATED: "SAP Updated",
    RequestStatus.COMPLETED: "Completed",
}


def required_role(status: RequestStatus) -> Optional[Role]:
    """Role whose action the request is waiting for, or None."""
    return REQUIRED_ROLE.get(RequestStatus(status))


def statuses_awaiting(role: Role) -> List[RequestStatus]:
    """Statuses in which the given role is the next actor (its work queue)."""
    return [status for status, owner in REQUIRED_ROLE.items() if owner == Role(role)]


def next_status(status: RequestStatus, role: Role, decision: Decision) -> RequestStatus:
    """
    Resolve an approver decision against the transition table.

    Args:
        status: Current request status
        role: Role of the acting approver
        decision: approve or reject

    Returns:
        The status the request moves to

    Raises:
        AuthorizationError: the request is not waiting on this role's decision
    """
    status = RequestStatus(status)
    role = Role(role)
    decision = Decision(decision)

    if status not in NEXT_ON_APPROVE or REQUIRED_ROLE[status] != role:
        raise AuthorizationError(
            f"Role '{role.value}' cannot {decision.value} a request in status '{status.value}'"
        )

    if decision == Decision.REJECT:
        return RequestStatus.REJECTED
    return NEXT_ON_APPROVE[status]


def sap_update_status(status: RequestStatus, role: Role) -> RequestStatus:
    """approved -> sap-updated, IT only."""
    status = RequestStatus(status)
    role = Role(role)
    if status != RequestStatus.APPROVED or role != Role.IT:
        raise AuthorizationError(
            f"Role '{role.value}' cannot mark a request in status '{status.value}' as updated in SAP"
        )
    return RequestStatus.SAP_UPDATED


def completion_status(status: RequestStatus) -> RequestStatus:
    """sap-updated -> completed (administrative, any role)."""
    status = RequestStatus(status)
    if status != RequestStatus.SAP_UPDATED:
        raise AuthorizationError(f"A request in status '{status.value}' cannot be marked completed")
    return RequestStatus.COMPLETED


def is_editable(status: RequestStatus) -> bool:
    return RequestStatus(status) in EDITABLE_STATUSES
