"""
Approval Flow

Approver decisions, the IT SAP update and administrative completion. Each operation
locks the request row, validates the transition against the state machine and
commits the ledger row and status change together.
"""

import math
from datetime import datetime
from datetime import timezone
from typing import Any
from typing import Dict
from typing import Optional

import asyncpg
from loguru import logger

from ccas_api.errors import NotFoundError
from ccas_api.errors import ValidationError
from ccas_api.workflow.db.repository_approval import ApprovalRepository
from ccas_api.workflow.db.repository_base import transaction
from ccas_api.workflow.db.repository_history import HistoryRepository
from ccas_api.workflow.db.repository_request import RequestRepository
from ccas_api.workflow.enums import Decision
from ccas_api.workflow.enums import HistoryAction
from ccas_api.workflow.enums import RequestStatus
from ccas_api.workflow.models.caller import Caller
from ccas_api.workflow.notifications.dispatcher import NotificationDispatcher
from ccas_api.workflow.orchestrator.audit import record_history
from ccas_api.workflow.state_machine import completion_status
from ccas_api.workflow.state_machine import next_status
from ccas_api.workflow.state_machine import sap_update_status

SECONDS_PER_DAY = 86400


def _require_comment(comment: Optional[str]) -> str:
    if comment is None or not comment.strip():
        raise ValidationError("A comment is required")
    return comment.strip()


async def _lock_request(request_repo: RequestRepository, request_id: str, conn: asyncpg.Connection) -> Dict[str, Any]:
    request = await request_repo.get(request_id, for_update=True, conn=conn)
    if request is None:
        raise NotFoundError(f"Request not found: {request_id}")
    return request


def turnaround_days(created_at: datetime, completed_at: datetime) -> int:
    """Whole days from creation to completion, rounded up (a partial day counts as one)."""
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if completed_at.tzinfo is None:
        completed_at = completed_at.replace(tzinfo=timezone.utc)
    elapsed = (completed_at - created_at).total_seconds()
    return max(0, math.ceil(elapsed / SECONDS_PER_DAY))


async def record_decision(
    pool: asyncpg.Pool,
    dispatcher: NotificationDispatcher,
    request_id: str,
    caller: Caller,
    decision: Decision,
    comment: Optional[str],
    attachment_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Record an approver's approve/reject decision and advance the request.

    Args:
        pool: Workflow DB pool
        dispatcher: Notification dispatcher for the status change
        request_id: Request being decided
        caller: Acting approver (email + role)
        decision: approve or reject
        comment: Mandatory comment
        attachment_id: Optional supporting attachment

    Returns:
        Dict with the updated request and the approval row

    Raises:
        ValidationError: blank comment
        NotFoundError: unknown request
        AuthorizationError: the request is not waiting on the caller's role
    """
    decision = Decision(decision)
    comment = _require_comment(comment)

    request_repo = RequestRepository(pool)
    approval_repo = ApprovalRepository(pool)

    async with transaction(pool) as conn:
        request = await _lock_request(request_repo, request_id, conn)
        from_status = RequestStatus(request["status"])
        to_status = next_status(from_status, caller.role, decision)

        approval = await approval_repo.upsert(
            request_id,
            caller.email,
            caller.role,
            decision,
            comment,
            attachment_id=attachment_id,
            conn=conn,
        )
        request = await request_repo.update_status(request_id, to_status, conn=conn)

    logger.success(
        "Decision recorded",
        request_id=request_id,
        approver=caller.email,
        role=caller.role.value,
        decision=decision.value,
        from_status=from_status.value,
        to_status=to_status.value,
    )

    action = HistoryAction.APPROVE if decision == Decision.APPROVE else HistoryAction.REJECT
    await record_history(
        HistoryRepository(pool),
        request_id,
        action,
        caller.email,
        {
            "role": caller.role.value,
            "comment": comment,
            "fromStatus": from_status.value,
            "toStatus": to_status.value,
            "attachmentId": attachment_id,
        },
    )
    dispatcher.status_changed(request_id, to_status)

    return {"request": request, "approval": approval}


async def mark_sap_updated(
    pool: asyncpg.Pool,
    dispatcher: NotificationDispatcher,
    request_id: str,
    caller: Caller,
    comment: Optional[str],
    attachment_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    IT confirms the approved request has been applied in SAP (approved -> sap-updated).

    The IT user's confirmation is kept in the approval ledger like any other decision.
    """
    comment = _require_comment(comment)

    request_repo = RequestRepository(pool)
    approval_repo = ApprovalRepository(pool)

    async with transaction(pool) as conn:
        request = await _lock_request(request_repo, request_id, conn)
        from_status = RequestStatus(request["status"])
        to_status = sap_update_status(from_status, caller.role)

        approval = await approval_repo.upsert(
            request_id,
            caller.email,
            caller.role,
            Decision.APPROVE,
            comment,
            attachment_id=attachment_id,
            conn=conn,
        )
        request = await request_repo.update_status(request_id, to_status, conn=conn)

    logger.success("Request marked as updated in SAP", request_id=request_id, updated_by=caller.email)

    await record_history(
        HistoryRepository(pool),
        request_id,
        HistoryAction.UPDATE_SAP,
        caller.email,
        {"role": caller.role.value, "comment": comment, "fromStatus": from_status.value, "toStatus": to_status.value},
    )
    dispatcher.status_changed(request_id, to_status)

    return {"request": request, "approval": approval}


async def mark_completed(
    pool: asyncpg.Pool,
    dispatcher: NotificationDispatcher,
    request_id: str,
    caller: Caller,
) -> Dict[str, Any]:
    """Close out a request that is updated in SAP (sap-updated -> completed)."""
    request_repo = RequestRepository(pool)

    async with transaction(pool) as conn:
        request = await _lock_request(request_repo, request_id, conn)
        completion_status(request["status"])

        completed_at = datetime.now(timezone.utc)
        days = turnaround_days(request["created_at"], completed_at)
        request = await request_repo.mark_completed(request_id, completed_at, days, conn=conn)

    logger.success("Request completed", request_id=request_id, completed_by=caller.email, turnaround_days=days)

    await record_history(
        HistoryRepository(pool),
        request_id,
        HistoryAction.UPDATE_SAP,
        caller.email,
        {"completed": True, "turnaroundTime": days, "completedBy": caller.email},
    )
    dispatcher.status_changed(request_id, RequestStatus.COMPLETED)

    return {"request": request}
