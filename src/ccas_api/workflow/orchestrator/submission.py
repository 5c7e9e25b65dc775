"""
Submission Flow

Creates new requests and change requests, and resubmits (edits) existing ones.
Every submission writes a details version and (re)enters the approval chain at
pending-secretary.
"""

from typing import Any
from typing import Dict
from typing import Mapping
from typing import Optional

import asyncpg
from loguru import logger
from pydantic import BaseModel

from ccas_api.errors import AuthorizationError
from ccas_api.errors import ConflictError
from ccas_api.errors import NotFoundError
from ccas_api.errors import ValidationError
from ccas_api.workflow.change_detection import ChangeSet
from ccas_api.workflow.change_detection import compare
from ccas_api.workflow.change_detection import format_changes_summary
from ccas_api.workflow.db.repository_base import transaction
from ccas_api.workflow.db.repository_details import DetailsRepository
from ccas_api.workflow.db.repository_history import HistoryRepository
from ccas_api.workflow.db.repository_master import MasterDataRepository
from ccas_api.workflow.db.repository_request import RequestRepository
from ccas_api.workflow.enums import HistoryAction
from ccas_api.workflow.enums import RequestKind
from ccas_api.workflow.enums import RequestStatus
from ccas_api.workflow.enums import RequestType
from ccas_api.workflow.models.caller import Caller
from ccas_api.workflow.models.details import build_title
from ccas_api.workflow.models.details import normalize_details
from ccas_api.workflow.notifications.dispatcher import NotificationDispatcher
from ccas_api.workflow.orchestrator.audit import record_history
from ccas_api.workflow.request_ids import RequestIdAllocator
from ccas_api.workflow.state_machine import INITIAL_STATUS
from ccas_api.workflow.state_machine import is_editable


class SubmissionResult(BaseModel):
    """Authoritative state written by a submission."""

    request: Dict[str, Any]
    details: Dict[str, Any]
    changes: ChangeSet
    is_change_request: bool = False
    created: bool = True


def _change_metadata(
    request_type: RequestType,
    title: str,
    changes: ChangeSet,
    is_change_request: bool,
    original_request_id: Optional[str],
) -> Dict[str, Any]:
    return {
        "type": request_type.value,
        "title": title,
        "changes": changes.to_metadata(),
        "changesSummary": format_changes_summary(changes.changes),
        "isChangeRequest": is_change_request,
        "originalRequestId": original_request_id,
    }


async def _load_change_baseline(
    pool: asyncpg.Pool,
    request_type: RequestType,
    fields: Mapping[str, Any],
    source_request_id: Optional[str],
) -> Optional[Dict[str, Any]]:
    """Snapshot a change request is compared against: source request or master data."""
    if source_request_id:
        source = await RequestRepository(pool).get(source_request_id)
        if source is None:
            raise NotFoundError(f"Source request not found: {source_request_id}")
        if source["type"] != request_type.value:
            raise ValidationError(
                f"Source request {source_request_id} is a {source['type']} request, not {request_type.value}"
            )
        baseline = await DetailsRepository(pool, request_type).get_latest(source_request_id)
        if baseline is None:
            raise NotFoundError(f"Source request {source_request_id} has no saved details")
        return baseline

    master_repo = MasterDataRepository(pool)
    if request_type == RequestType.PLANT:
        return await master_repo.get_plant_code(fields["companyCode"], fields["plantCode"])
    return await master_repo.get_company_code(fields["companyCode"])


async def submit_details(
    pool: asyncpg.Pool,
    allocator: RequestIdAllocator,
    dispatcher: NotificationDispatcher,
    request_type: RequestType,
    fields: Mapping[str, Any],
    caller: Caller,
    request_id: Optional[str] = None,
    change_request: bool = False,
    source_request_id: Optional[str] = None,
    version: Optional[int] = None,
) -> SubmissionResult:
    """
    Submit Plant Code or Company Code details.

    Three modes:
    - new request (no request_id, change_request False): allocates N_..., version 1
    - change request (change_request True, optional source_request_id): allocates C_...,
      version 1, diffed against the source request's latest details or the master record
    - edit (request_id given): writes the next version of an existing request

    Validation happens before anything is written; the request row, details version and
    status reset commit together. History and notifications follow the commit.
    """
    request_type = RequestType(request_type)
    if request_id and (change_request or source_request_id):
        raise ValidationError("An edit cannot also be a change request")
    if source_request_id:
        change_request = True

    normalized = normalize_details(request_type, fields)

    if request_id:
        return await _resubmit(pool, dispatcher, request_type, normalized, caller, request_id, version)

    baseline = None
    if change_request:
        baseline = await _load_change_baseline(pool, request_type, normalized, source_request_id)

    kind = RequestKind.CHANGE if change_request else RequestKind.NEW
    title = build_title(request_type, normalized, is_change_request=change_request)

    request_repo = RequestRepository(pool)
    details_repo = DetailsRepository(pool, request_type)

    async with transaction(pool) as conn:
        new_request_id = await allocator.allocate(kind, conn=conn)
        request = await request_repo.create(
            new_request_id,
            request_type,
            title,
            INITIAL_STATUS,
            caller.email,
            original_request_id=source_request_id,
            conn=conn,
        )
        details = await details_repo.save_version(new_request_id, 1, normalized, caller.email, conn=conn)

    changes = compare(baseline, normalized, request_type)

    logger.success(
        "Request submitted",
        request_id=new_request_id,
        request_type=request_type.value,
        is_change_request=change_request,
        changed_fields=len(changes.changes),
    )

    await record_history(
        HistoryRepository(pool),
        new_request_id,
        HistoryAction.CREATE,
        caller.email,
        _change_metadata(request_type, title, changes, change_request, source_request_id),
    )
    dispatcher.version_saved(new_request_id)
    dispatcher.status_changed(new_request_id, INITIAL_STATUS)

    return SubmissionResult(
        request=request,
        details=details,
        changes=changes,
        is_change_request=change_request,
        created=True,
    )


async def _resubmit(
    pool: asyncpg.Pool,
    dispatcher: NotificationDispatcher,
    request_type: RequestType,
    normalized: Dict[str, Any],
    caller: Caller,
    request_id: str,
    version: Optional[int],
) -> SubmissionResult:
    request_repo = RequestRepository(pool)
    details_repo = DetailsRepository(pool, request_type)

    async with transaction(pool) as conn:
        request = await request_repo.get(request_id, for_update=True, conn=conn)
        if request is None:
            raise NotFoundError(f"Request not found: {request_id}")
        if request["created_by"] != caller.email:
            raise AuthorizationError(f"Only the requestor ({request['created_by']}) can edit {request_id}")
        if request["type"] != request_type.value:
            raise ValidationError(f"{request_id} is a {request['type']} request; its type cannot change")
        previous_status = RequestStatus(request["status"])
        if not is_editable(previous_status):
            raise ConflictError(
                f"{request_id} is {previous_status.value} and can no longer be edited; submit a change request"
            )

        latest = await details_repo.get_latest(request_id, conn=conn)
        latest_version = latest["version"] if latest else 0
        next_version = version if version is not None else latest_version + 1

        # A retry of the latest version is diffed against the version before it
        if latest is not None and next_version == latest_version:
            baseline = await details_repo.get_version(request_id, next_version - 1, conn=conn)
        else:
            baseline = latest

        details = await details_repo.save_version(request_id, next_version, normalized, caller.email, conn=conn)
        is_change_request = request["request_id"].startswith(f"{RequestKind.CHANGE.value}_")
        title = build_title(request_type, normalized, is_change_request=is_change_request)
        request = await request_repo.update_for_resubmission(request_id, title, INITIAL_STATUS, conn=conn)

    changes = compare(baseline, normalized, request_type)

    logger.success(
        "Request resubmitted",
        request_id=request_id,
        version=next_version,
        previous_status=previous_status.value,
        changed_fields=len(changes.changes),
    )

    metadata = _change_metadata(request_type, title, changes, is_change_request, request.get("original_request_id"))
    metadata["version"] = next_version
    metadata["previousStatus"] = previous_status.value
    await record_history(HistoryRepository(pool), request_id, HistoryAction.EDIT, caller.email, metadata)
    dispatcher.version_saved(request_id)
    dispatcher.status_changed(request_id, INITIAL_STATUS)

    return SubmissionResult(
        request=request,
        details=details,
        changes=changes,
        is_change_request=is_change_request,
        created=False,
    )

