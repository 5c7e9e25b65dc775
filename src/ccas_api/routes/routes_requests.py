"""
Request API Routes

Submission of Plant Code / Company Code requests, listings, approver decisions,
IT transitions and the history log.
"""

from typing import List
from typing import Optional

import asyncpg
from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query
from fastapi import status
from fastapi.responses import JSONResponse
from loguru import logger

from ccas_api.dependencies import get_allocator
from ccas_api.dependencies import get_caller
from ccas_api.dependencies import get_db_pool
from ccas_api.dependencies import get_dispatcher
from ccas_api.schemas.schemas_workflow import ApprovalListResponse
from ccas_api.schemas.schemas_workflow import CompanyCodeSubmission
from ccas_api.schemas.schemas_workflow import DecisionRequest
from ccas_api.schemas.schemas_workflow import HistoryAppendRequest
from ccas_api.schemas.schemas_workflow import HistoryEntryResponse
from ccas_api.schemas.schemas_workflow import HistoryListResponse
from ccas_api.schemas.schemas_workflow import PlantCodeSubmission
from ccas_api.schemas.schemas_workflow import RequestListResponse
from ccas_api.schemas.schemas_workflow import RequestResponse
from ccas_api.schemas.schemas_workflow import RequestWithDetailsListResponse
from ccas_api.schemas.schemas_workflow import RequestWithDetailsResponse
from ccas_api.schemas.schemas_workflow import SapUpdateRequest
from ccas_api.schemas.schemas_workflow import SubmissionOptions
from ccas_api.schemas.schemas_workflow import SubmissionResponse
from ccas_api.schemas.schemas_workflow import TransitionResponse
from ccas_api.schemas.schemas_workflow import approval_response
from ccas_api.schemas.schemas_workflow import field_changes_response
from ccas_api.schemas.schemas_workflow import history_entry_response
from ccas_api.schemas.schemas_workflow import request_response
from ccas_api.workflow.db.repository_approval import ApprovalRepository
from ccas_api.workflow.db.repository_history import HistoryRepository
from ccas_api.workflow.db.repository_request import RequestRepository
from ccas_api.workflow.enums import RequestStatus
from ccas_api.workflow.enums import RequestType
from ccas_api.workflow.enums import Role
from ccas_api.workflow.models.caller import Caller
from ccas_api.workflow.notifications.dispatcher import NotificationDispatcher
from ccas_api.workflow.orchestrator.approval import mark_completed
from ccas_api.workflow.orchestrator.approval import mark_sap_updated
from ccas_api.workflow.orchestrator.approval import record_decision
from ccas_api.workflow.orchestrator.queries import append_history
from ccas_api.workflow.orchestrator.queries import get_request_or_404
from ccas_api.workflow.orchestrator.queries import list_pending_for_role
from ccas_api.workflow.orchestrator.queries import list_requests_with_details
from ccas_api.workflow.orchestrator.submission import SubmissionResult
from ccas_api.workflow.orchestrator.submission import submit_details
from ccas_api.workflow.request_ids import RequestIdAllocator

ROUTER_REQUESTS = APIRouter(tags=["Requests"], prefix="/requests")

SUBMISSION_RESPONSES = {
    200: {"description": "Existing request edited; a new version was saved"},
    201: {"description": "New request or change request created"},
    400: {"description": "Missing required field or malformed value"},
    403: {"description": "Only the requestor may edit the request"},
    404: {"description": "Request or source request not found"},
    409: {"description": "Version conflict, or the request can no longer be edited"},
}


def _submission_response(result: SubmissionResult) -> SubmissionResponse:
    request = result.request
    action = "created" if result.created else "updated"
    return SubmissionResponse(
        Message=f"Request {request['request_id']} {action}",
        RequestId=request["request_id"],
        Version=result.details["version"],
        Status=request["status"],
        Title=request["title"],
        IsChangeRequest=result.is_change_request,
        HasChanges=result.changes.has_changes,
        Changes=field_changes_response(result.changes.changes),
    )


async def _submit(
    request_type: RequestType,
    body: SubmissionOptions,
    details: dict,
    caller: Caller,
    pool: asyncpg.Pool,
    allocator: RequestIdAllocator,
    dispatcher: NotificationDispatcher,
):
    result = await submit_details(
        pool,
        allocator,
        dispatcher,
        request_type,
        details,
        caller,
        request_id=body.request_id,
        change_request=body.change_request,
        source_request_id=body.source_request_id,
        version=body.version,
    )
    return JSONResponse(
        status_code=status.HTTP_201_CREATED if result.created else status.HTTP_200_OK,
        content=_submission_response(result).model_dump(mode="json"),
    )


@ROUTER_REQUESTS.post(
    "/plant",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a Plant Code request (new, change request or edit)",
    responses=SUBMISSION_RESPONSES,
)
async def submit_plant_request(
    body: PlantCodeSubmission,
    caller: Caller = Depends(get_caller),
    pool: asyncpg.Pool = Depends(get_db_pool),
    allocator: RequestIdAllocator = Depends(get_allocator),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Submit Plant Code details.

    - No `requestId`: creates a new request (`N_...`), or a change request (`C_...`) when
      `changeRequest` or `sourceRequestId` is given
    - With `requestId`: saves the next version of the caller's own request and restarts the
      approval chain
    """
    return await _submit(RequestType.PLANT, body, body.details.to_fields(), caller, pool, allocator, dispatcher)


@ROUTER_REQUESTS.post(
    "/company",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a Company Code request (new, change request or edit)",
    responses=SUBMISSION_RESPONSES,
)
async def submit_company_request(
    body: CompanyCodeSubmission,
    caller: Caller = Depends(get_caller),
    pool: asyncpg.Pool = Depends(get_db_pool),
    allocator: RequestIdAllocator = Depends(get_allocator),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Submit Company Code details (same modes as the Plant Code submission)."""
    return await _submit(RequestType.COMPANY, body, body.details.to_fields(), caller, pool, allocator, dispatcher)


@ROUTER_REQUESTS.get(
    "",
    response_model=RequestListResponse,
    summary="List requests (newest first)",
)
async def list_requests(
    created_by: Optional[str] = Query(default=None, description="Only requests created by this email"),
    status_filter: Optional[List[RequestStatus]] = Query(default=None, alias="status"),
    request_type: Optional[RequestType] = Query(default=None, alias="type"),
    pool: asyncpg.Pool = Depends(get_db_pool),
):
    requests = await RequestRepository(pool).list_requests(
        created_by=created_by, status=status_filter, request_type=request_type
    )
    return RequestListResponse(
        Message=f"Found {len(requests)} request(s)",
        Count=len(requests),
        Requests=[request_response(r) for r in requests],
    )


@ROUTER_REQUESTS.get(
    "/with-details",
    response_model=RequestWithDetailsListResponse,
    summary="List requests with their latest details and approval count",
)
async def list_requests_with_latest_details(
    created_by: Optional[str] = Query(default=None),
    status_filter: Optional[List[RequestStatus]] = Query(default=None, alias="status"),
    request_type: Optional[RequestType] = Query(default=None, alias="type"),
    pool: asyncpg.Pool = Depends(get_db_pool),
):
    rows = await list_requests_with_details(
        pool, created_by=created_by, status=status_filter, request_type=request_type
    )
    return RequestWithDetailsListResponse(
        Message=f"Found {len(rows)} request(s)",
        Count=len(rows),
        Requests=[
            RequestWithDetailsResponse(
                **request_response(row).model_dump(),
                Details=row["details"],
                ApprovalsCount=row["approvals_count"],
            )
            for row in rows
        ],
    )


@ROUTER_REQUESTS.get(
    "/pending",
    response_model=RequestListResponse,
    summary="Work queue: requests awaiting the caller's role (or the given role)",
)
async def list_pending_requests(
    role: Optional[Role] = Query(default=None, description="Defaults to the caller's role"),
    caller: Caller = Depends(get_caller),
    pool: asyncpg.Pool = Depends(get_db_pool),
):
    queue_role = role or caller.role
    requests = await list_pending_for_role(pool, queue_role)
    logger.debug("Pending queue listed", role=queue_role.value, count=len(requests))
    return RequestListResponse(
        Message=f"Found {len(requests)} request(s) awaiting {queue_role.value}",
        Count=len(requests),
        Requests=[request_response(r) for r in requests],
    )


@ROUTER_REQUESTS.get(
    "/{request_id}",
    response_model=RequestResponse,
    summary="Get a request by ID",
    responses={404: {"description": "Request not found"}},
)
async def get_request(request_id: str, pool: asyncpg.Pool = Depends(get_db_pool)):
    return request_response(await get_request_or_404(pool, request_id))


@ROUTER_REQUESTS.post(
    "/{request_id}/decision",
    response_model=TransitionResponse,
    summary="Approve or reject a request",
    responses={
        400: {"description": "Comment missing"},
        403: {"description": "The request is not awaiting the caller's role"},
        404: {"description": "Request not found"},
    },
)
async def decide_request(
    request_id: str,
    body: DecisionRequest,
    caller: Caller = Depends(get_caller),
    pool: asyncpg.Pool = Depends(get_db_pool),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Record the caller's decision; approval moves the request to the next stage, rejection ends it."""
    result = await record_decision(
        pool,
        dispatcher,
        request_id,
        caller,
        body.decision,
        body.comment,
        attachment_id=body.attachment_id,
    )
    return TransitionResponse(
        Message=f"Request {request_id} is now {result['request']['status']}",
        Request=request_response(result["request"]),
        Approval=approval_response(result["approval"]),
    )


@ROUTER_REQUESTS.get(
    "/{request_id}/approvals",
    response_model=ApprovalListResponse,
    summary="Approval ledger of a request",
    responses={404: {"description": "Request not found"}},
)
async def list_approvals(request_id: str, pool: asyncpg.Pool = Depends(get_db_pool)):
    await get_request_or_404(pool, request_id)
    approvals = await ApprovalRepository(pool).list_for_request(request_id)
    return ApprovalListResponse(
        Message=f"Found {len(approvals)} approval(s)",
        Count=len(approvals),
        Approvals=[approval_response(a) for a in approvals],
    )


@ROUTER_REQUESTS.post(
    "/{request_id}/sap-update",
    response_model=TransitionResponse,
    summary="Mark an approved request as updated in SAP (IT)",
    responses={
        400: {"description": "Comment missing"},
        403: {"description": "Caller is not IT or the request is not approved"},
        404: {"description": "Request not found"},
    },
)
async def sap_update(
    request_id: str,
    body: SapUpdateRequest,
    caller: Caller = Depends(get_caller),
    pool: asyncpg.Pool = Depends(get_db_pool),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = await mark_sap_updated(pool, dispatcher, request_id, caller, body.comment, body.attachment_id)
    return TransitionResponse(
        Message=f"Request {request_id} marked as updated in SAP",
        Request=request_response(result["request"]),
        Approval=approval_response(result["approval"]),
    )


@ROUTER_REQUESTS.post(
    "/{request_id}/complete",
    response_model=TransitionResponse,
    summary="Mark a request updated in SAP as completed",
    responses={
        403: {"description": "The request is not in sap-updated"},
        404: {"description": "Request not found"},
    },
)
async def complete_request(
    request_id: str,
    caller: Caller = Depends(get_caller),
    pool: asyncpg.Pool = Depends(get_db_pool),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = await mark_completed(pool, dispatcher, request_id, caller)
    return TransitionResponse(
        Message=f"Request {request_id} completed in {result['request']['turnaround_days']} day(s)",
        Request=request_response(result["request"]),
    )


@ROUTER_REQUESTS.get(
    "/{request_id}/history",
    response_model=HistoryListResponse,
    summary="History log of a request",
    responses={404: {"description": "Request not found"}},
)
async def list_history(request_id: str, pool: asyncpg.Pool = Depends(get_db_pool)):
    await get_request_or_404(pool, request_id)
    history = await HistoryRepository(pool).list_for_request(request_id)
    return HistoryListResponse(
        Message=f"Found {len(history)} history entr{'y' if len(history) == 1 else 'ies'}",
        Count=len(history),
        History=[history_entry_response(h) for h in history],
    )


@ROUTER_REQUESTS.post(
    "/{request_id}/history",
    response_model=HistoryEntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Append a history entry",
    responses={404: {"description": "Request not found"}},
)
async def add_history(
    request_id: str,
    body: HistoryAppendRequest,
    caller: Caller = Depends(get_caller),
    pool: asyncpg.Pool = Depends(get_db_pool),
):
    entry = await append_history(pool, request_id, body.action, caller, body.metadata)
    return history_entry_response(entry)
