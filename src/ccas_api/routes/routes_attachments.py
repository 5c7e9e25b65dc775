"""Attachment (blob store) endpoints: upload, list per request, fetch by id."""

import base64
import binascii
import re
from typing import Optional
from urllib.parse import quote

import asyncpg
from fastapi import APIRouter
from fastapi import Depends
from fastapi import File
from fastapi import Form
from fastapi import Response
from fastapi import UploadFile
from fastapi import status

from ccas_api.dependencies import get_caller
from ccas_api.dependencies import get_db_pool
from ccas_api.errors import ValidationError
from ccas_api.schemas.schemas_workflow import AttachmentListResponse
from ccas_api.schemas.schemas_workflow import AttachmentResponse
from ccas_api.schemas.schemas_workflow import Base64AttachmentRequest
from ccas_api.schemas.schemas_workflow import attachment_response
from ccas_api.workflow.db.repository_attachment import AttachmentRepository
from ccas_api.workflow.models.caller import Caller
from ccas_api.workflow.orchestrator.queries import get_request_or_404

ROUTER_ATTACHMENTS = APIRouter(tags=["Attachments"])

DATA_URL_PREFIX = re.compile(r"^data:[^;,]*;base64,")
UNSAFE_FALLBACK_CHARS = re.compile(r'["\\\x00-\x1f\x7f]')


def decode_base64_content(content: str) -> bytes:
    """Decode base64 file content, accepting a ``data:<type>;base64,`` prefix."""
    payload = DATA_URL_PREFIX.sub("", content.strip(), count=1)
    try:
        decoded = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Attachment content is not valid base64")
    if not decoded:
        raise ValidationError("Attachment content is empty")
    return decoded


def content_disposition(file_name: str) -> str:
    """
    Inline Content-Disposition for a stored file name.

    Carries an ASCII fallback in ``filename`` and the exact UTF-8 name in ``filename*``
    (RFC 5987), so non-Latin names survive the latin-1 header encoding.
    """
    ascii_name = file_name.encode("ascii", "ignore").decode("ascii")
    fallback = UNSAFE_FALLBACK_CHARS.sub("", ascii_name).strip() or "attachment"
    encoded = quote(file_name, safe="")
    return f"inline; filename=\"{fallback}\"; filename*=UTF-8''{encoded}"


@ROUTER_ATTACHMENTS.post(
    "/attachments",
    response_model=AttachmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload an attachment (multipart)",
    responses={
        400: {"description": "Empty file"},
        404: {"description": "Request not found"},
    },
)
async def upload_attachment(
    file: UploadFile = File(..., description="File to attach"),
    request_id: str = Form(..., alias="requestId"),
    version: Optional[int] = Form(None),
    title: Optional[str] = Form(None),
    caller: Caller = Depends(get_caller),
    pool: asyncpg.Pool = Depends(get_db_pool),
):
    await get_request_or_404(pool, request_id)
    content = await file.read()
    if not content:
        raise ValidationError("Attachment content is empty")

    attachment = await AttachmentRepository(pool).put(
        content,
        file.filename or "attachment",
        file.content_type or "application/octet-stream",
        request_id,
        caller.email,
        version=version,
        title=title,
    )
    return attachment_response(attachment)


@ROUTER_ATTACHMENTS.post(
    "/attachments/base64",
    response_model=AttachmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload an attachment (base64 JSON)",
    responses={
        400: {"description": "Content is not valid base64"},
        404: {"description": "Request not found"},
    },
)
async def upload_attachment_base64(
    body: Base64AttachmentRequest,
    caller: Caller = Depends(get_caller),
    pool: asyncpg.Pool = Depends(get_db_pool),
):
    content = decode_base64_content(body.content)
    await get_request_or_404(pool, body.request_id)

    attachment = await AttachmentRepository(pool).put(
        content,
        body.file_name,
        body.file_type,
        body.request_id,
        caller.email,
        version=body.version,
        title=body.title,
    )
    return attachment_response(attachment)


@ROUTER_ATTACHMENTS.get(
    "/requests/{request_id}/attachments",
    response_model=AttachmentListResponse,
    summary="Attachments of a request (metadata only, newest first)",
)
async def list_attachments(request_id: str, pool: asyncpg.Pool = Depends(get_db_pool)):
    attachments = await AttachmentRepository(pool).list_for_request(request_id)
    return AttachmentListResponse(
        Message=f"Found {len(attachments)} attachment(s)",
        Count=len(attachments),
        Attachments=[attachment_response(a) for a in attachments],
    )


@ROUTER_ATTACHMENTS.get(
    "/attachments/{attachment_id}",
    summary="Download an attachment",
    response_class=Response,
    responses={
        200: {"description": "Raw file content"},
        404: {"description": "Attachment not found"},
    },
)
async def get_attachment(attachment_id: str, pool: asyncpg.Pool = Depends(get_db_pool)):
    attachment = await AttachmentRepository(pool).get(attachment_id)
    return Response(
        content=bytes(attachment["content"]),
        media_type=attachment["file_type"],
        headers={"Content-Disposition": content_disposition(attachment["file_name"])},
    )
