"""
Read models

Listings and lookups that combine several repositories, plus the primary (not
best-effort) history append exposed over HTTP.
"""

from typing import Any
from typing import Dict
from typing import List
from typing import Optional

import asyncpg

from ccas_api.errors import NotFoundError
from ccas_api.workflow.change_detection import ChangeSet
from ccas_api.workflow.change_detection import compare
from ccas_api.workflow.db.repository_approval import ApprovalRepository
from ccas_api.workflow.db.repository_details import DetailsRepository
from ccas_api.workflow.db.repository_history import HistoryRepository
from ccas_api.workflow.db.repository_request import RequestRepository
from ccas_api.workflow.enums import HistoryAction
from ccas_api.workflow.enums import RequestStatus
from ccas_api.workflow.enums import RequestType
from ccas_api.workflow.enums import Role
from ccas_api.workflow.models.caller import Caller
from ccas_api.workflow.state_machine import statuses_awaiting


async def get_request_or_404(pool: asyncpg.Pool, request_id: str) -> Dict[str, Any]:
    request = await RequestRepository(pool).get(request_id)
    if request is None:
        raise NotFoundError(f"Request not found: {request_id}")
    return request


async def list_requests_with_details(
    pool: asyncpg.Pool,
    created_by: Optional[str] = None,
    status: Optional[List[RequestStatus]] = None,
    request_type: Optional[RequestType] = None,
) -> List[Dict[str, Any]]:
    """
    Requests (newest first), each with its latest details snapshot and approval count.

    A request whose details have not been saved yet carries ``details: None``.
    """
    requests = await RequestRepository(pool).list_requests(
        created_by=created_by, status=status, request_type=request_type
    )
    latest_by_type = {
        RequestType.PLANT: await DetailsRepository(pool, RequestType.PLANT).get_latest_for_all(),
        RequestType.COMPANY: await DetailsRepository(pool, RequestType.COMPANY).get_latest_for_all(),
    }
    approvals_count = await ApprovalRepository(pool).count_by_request()

    return [
        {
            **request,
            "details": latest_by_type[RequestType(request["type"])].get(request["request_id"]),
            "approvals_count": approvals_count.get(request["request_id"], 0),
        }
        for request in requests
    ]


async def list_pending_for_role(pool: asyncpg.Pool, role: Role) -> List[Dict[str, Any]]:
    """The work queue of a role: requests whose current status awaits that role."""
    statuses = statuses_awaiting(role)
    if not statuses:
        return []
    return await RequestRepository(pool).list_requests(status=statuses)


async def latest_changes(pool: asyncpg.Pool, request_type: RequestType, request_id: str) -> ChangeSet:
    """Diff between the two newest stored versions (empty when fewer than two exist)."""
    versions = await DetailsRepository(pool, request_type).get_all_versions(request_id)
    if not versions:
        raise NotFoundError(f"No {RequestType(request_type).value} details saved for {request_id}")
    if len(versions) < 2:
        return ChangeSet()
    return compare(versions[1], versions[0], request_type)


async def append_history(
    pool: asyncpg.Pool,
    request_id: str,
    action: HistoryAction,
    caller: Caller,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Append a history entry on behalf of the caller; failures propagate."""
    await get_request_or_404(pool, request_id)
    return await HistoryRepository(pool).append(request_id, action, caller.email, metadata)
