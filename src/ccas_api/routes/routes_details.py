"""
Details API Routes

Direct access to the versioned details store (per request type).
"""

import asyncpg
from fastapi import APIRouter
from fastapi import Depends
from fastapi import status

from ccas_api.dependencies import get_caller
from ccas_api.dependencies import get_db_pool
from ccas_api.dependencies import get_dispatcher
from ccas_api.errors import NotFoundError
from ccas_api.schemas.schemas_workflow import ChangesResponse
from ccas_api.schemas.schemas_workflow import DetailsResponse
from ccas_api.schemas.schemas_workflow import DetailsVersionsResponse
from ccas_api.schemas.schemas_workflow import SaveDetailsRequest
from ccas_api.schemas.schemas_workflow import details_response
from ccas_api.schemas.schemas_workflow import field_changes_response
from ccas_api.workflow.db.repository_details import DetailsRepository
from ccas_api.workflow.enums import RequestType
from ccas_api.workflow.models.caller import Caller
from ccas_api.workflow.notifications.dispatcher import NotificationDispatcher
from ccas_api.workflow.orchestrator.queries import latest_changes

ROUTER_DETAILS = APIRouter(tags=["Details"], prefix="/details")


@ROUTER_DETAILS.get(
    "/{request_type}/{request_id}/latest",
    response_model=DetailsResponse,
    summary="Latest details version of a request",
    responses={404: {"description": "No details saved for the request"}},
)
async def get_latest_details(
    request_type: RequestType,
    request_id: str,
    pool: asyncpg.Pool = Depends(get_db_pool),
):
    snapshot = await DetailsRepository(pool, request_type).get_latest(request_id)
    if snapshot is None:
        raise NotFoundError(f"No {request_type.value} details saved for {request_id}")
    return details_response(snapshot)


@ROUTER_DETAILS.get(
    "/{request_type}/{request_id}",
    response_model=DetailsVersionsResponse,
    summary="All details versions of a request (newest first)",
)
async def list_detail_versions(
    request_type: RequestType,
    request_id: str,
    pool: asyncpg.Pool = Depends(get_db_pool),
):
    versions = await DetailsRepository(pool, request_type).get_all_versions(request_id)
    return DetailsVersionsResponse(
        Message=f"Found {len(versions)} version(s)",
        RequestId=request_id,
        Count=len(versions),
        Versions=[details_response(v) for v in versions],
    )


@ROUTER_DETAILS.get(
    "/{request_type}/{request_id}/changes",
    response_model=ChangesResponse,
    summary="Changes between the two newest versions",
    responses={404: {"description": "No details saved for the request"}},
)
async def get_detail_changes(
    request_type: RequestType,
    request_id: str,
    pool: asyncpg.Pool = Depends(get_db_pool),
):
    changes = await latest_changes(pool, request_type, request_id)
    return ChangesResponse(
        Message=f"{len(changes.changes)} field(s) changed" if changes.has_changes else "No changes",
        RequestId=request_id,
        HasChanges=changes.has_changes,
        Changes=field_changes_response(changes.changes),
    )


@ROUTER_DETAILS.post(
    "/{request_type}",
    response_model=DetailsResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Save one details version",
    responses={
        201: {"description": "Version saved (or retried version overwritten)"},
        400: {"description": "Missing required field or malformed value"},
        404: {"description": "Request not found"},
        409: {"description": "Version already saved by another user, or stale version"},
    },
)
async def save_details_version(
    request_type: RequestType,
    body: SaveDetailsRequest,
    caller: Caller = Depends(get_caller),
    pool: asyncpg.Pool = Depends(get_db_pool),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Store the snapshot for (requestId, version).

    Re-sending the same version as the same user overwrites it (retry); the same
    version from a different user, or a version below the latest, is a conflict.
    """
    snapshot = await DetailsRepository(pool, request_type).save_version(
        body.request_id, body.version, body.details, caller.email
    )
    dispatcher.version_saved(body.request_id)
    return details_response(snapshot, message=f"Version {snapshot['version']} saved")
