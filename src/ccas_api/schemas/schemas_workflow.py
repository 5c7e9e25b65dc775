"""
Workflow API Schemas

Request bodies (snake_case, camelCase accepted) and response models (PascalCase fields)
for the workflow endpoints.
"""

from datetime import datetime
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator
from pydantic.alias_generators import to_camel

from ccas_api.workflow.enums import Decision
from ccas_api.workflow.enums import HistoryAction
from ccas_api.workflow.enums import RequestStatus
from ccas_api.workflow.enums import Role
from ccas_api.workflow.models.details import CompanyCodeFields
from ccas_api.workflow.models.details import PlantCodeFields
from ccas_api.workflow.state_machine import STATUS_LABELS


class _CamelBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# ════════════════════════════════════════════════════════════════════════════
# Request Bodies
# ════════════════════════════════════════════════════════════════════════════


class SubmissionOptions(_CamelBody):
    """Submission mode shared by plant and company submissions."""

    request_id: Optional[str] = Field(default=None, description="Existing request to edit")
    source_request_id: Optional[str] = Field(default=None, description="Request a change request is based on")
    change_request: bool = Field(default=False, description="Submit as a change request (C_ prefix)")
    version: Optional[int] = Field(default=None, description="Explicit version (retry of a previous save)")


class PlantCodeSubmission(SubmissionOptions):
    """Plant Code submission: details plus submission mode."""

    details: PlantCodeFields

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "details": {
                    "companyCode": "1000",
                    "plantCode": "P100",
                    "nameOfPlant": "Alpha Works",
                    "gstNumber": "29ABCDE1234F1Z5",
                }
            }
        }
    )


class CompanyCodeSubmission(SubmissionOptions):
    """Company Code submission: details plus submission mode."""

    details: CompanyCodeFields

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "details": {
                    "companyCode": "1000",
                    "nameOfCompanyCode": "Acme Holdings",
                    "shareholdingPercentage": "51.25",
                },
                "changeRequest": True,
            }
        }
    )


class SaveDetailsRequest(_CamelBody):
    """Raw versioned-store write: one snapshot for (request_id, version)."""

    request_id: str
    version: int
    details: Dict[str, Any]

    @field_validator("version")
    @classmethod
    def validate_version(cls, v):
        """Validate that version is a positive integer."""
        if v < 1:
            raise ValueError("version must be greater than 0")
        return v


class DecisionRequest(_CamelBody):
    """Approver decision."""

    decision: Decision
    comment: str
    attachment_id: Optional[str] = None


class SapUpdateRequest(_CamelBody):
    """IT confirmation that the request is applied in SAP."""

    comment: str
    attachment_id: Optional[str] = None


class HistoryAppendRequest(_CamelBody):
    """Manual history entry."""

    action: HistoryAction
    metadata: Optional[Dict[str, Any]] = None


class Base64AttachmentRequest(_CamelBody):
    """Attachment upload with base64 content (a data URL prefix is accepted)."""

    request_id: str
    file_name: str
    file_type: str = "application/octet-stream"
    content: str
    version: Optional[int] = None
    title: Optional[str] = None


class CreateUserRequest(_CamelBody):
    """New user for the role directory."""

    email: str
    role: Role

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        """Normalize and sanity-check the email."""
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("email must contain '@'")
        return v


# ════════════════════════════════════════════════════════════════════════════
# Request Schemas
# ════════════════════════════════════════════════════════════════════════════


class RequestResponse(BaseModel):
    """Request details."""

    RequestId: str
    Type: str
    Title: str
    Status: str
    StatusLabel: str
    CreatedBy: str
    CreatedAt: datetime
    UpdatedAt: datetime
    OriginalRequestId: Optional[str] = None
    CompletedAt: Optional[datetime] = None
    TurnaroundDays: Optional[int] = None


class RequestListResponse(BaseModel):
    """List of requests."""

    Message: str
    Count: int
    Requests: List[RequestResponse]


class RequestWithDetailsResponse(RequestResponse):
    """Request with its latest details snapshot and approval count."""

    Details: Optional[Dict[str, Any]] = None
    ApprovalsCount: int = 0


class RequestWithDetailsListResponse(BaseModel):
    """List of requests with details."""

    Message: str
    Count: int
    Requests: List[RequestWithDetailsResponse]


# ════════════════════════════════════════════════════════════════════════════
# Details / Change Schemas
# ════════════════════════════════════════════════════════════════════════════


class FieldChangeResponse(BaseModel):
    """One changed field."""

    Field: str
    Label: str
    OldValue: str
    NewValue: str


class SubmissionResponse(BaseModel):
    """Authoritative state written by a submission."""

    Message: str
    RequestId: str
    Version: int
    Status: str
    Title: str
    IsChangeRequest: bool
    HasChanges: bool
    Changes: List[FieldChangeResponse] = Field(default_factory=list)


class DetailsResponse(BaseModel):
    """One stored details version."""

    Message: str
    RequestId: str
    Version: int
    SubmittedBy: str
    SubmittedAt: datetime
    Details: Dict[str, Any]


class DetailsVersionsResponse(BaseModel):
    """All stored versions, newest first."""

    Message: str
    RequestId: str
    Count: int
    Versions: List[DetailsResponse]


class ChangesResponse(BaseModel):
    """Diff between the two newest versions."""

    Message: str
    RequestId: str
    HasChanges: bool
    Changes: List[FieldChangeResponse]


# ════════════════════════════════════════════════════════════════════════════
# Approval / History Schemas
# ════════════════════════════════════════════════════════════════════════════


class ApprovalResponse(BaseModel):
    """Latest decision of one approver."""

    RequestId: str
    ApproverEmail: str
    Role: str
    Decision: str
    Comment: str
    AttachmentId: Optional[str] = None
    Timestamp: datetime


class ApprovalListResponse(BaseModel):
    """Approval ledger of a request (oldest first)."""

    Message: str
    Count: int
    Approvals: List[ApprovalResponse]


class TransitionResponse(BaseModel):
    """Result of a decision, SAP update or completion."""

    Message: str
    Request: RequestResponse
    Approval: Optional[ApprovalResponse] = None


class HistoryEntryResponse(BaseModel):
    """One history log entry."""

    HistoryId: int
    RequestId: str
    Timestamp: datetime
    Action: str
    User: str
    Metadata: Optional[Dict[str, Any]] = None


class HistoryListResponse(BaseModel):
    """History log of a request."""

    Message: str
    Count: int
    History: List[HistoryEntryResponse]


# ════════════════════════════════════════════════════════════════════════════
# Attachment Schemas
# ════════════════════════════════════════════════════════════════════════════


class AttachmentResponse(BaseModel):
    """Attachment metadata (content is fetched separately)."""

    AttachmentId: str
    RequestId: str
    FileName: str
    FileType: str
    SizeBytes: int
    Version: Optional[int] = None
    Title: Optional[str] = None
    UploadedBy: str
    UploadedAt: datetime


class AttachmentListResponse(BaseModel):
    """Attachments of a request, newest first."""

    Message: str
    Count: int
    Attachments: List[AttachmentResponse]


# ════════════════════════════════════════════════════════════════════════════
# User Schemas
# ════════════════════════════════════════════════════════════════════════════


class UserResponse(BaseModel):
    """User in the role directory."""

    Email: str
    Role: str
    CreatedAt: datetime


class UserListResponse(BaseModel):
    """List of users."""

    Message: str
    Count: int
    Users: List[UserResponse]


# ════════════════════════════════════════════════════════════════════════════
# Master Data Schemas
# ════════════════════════════════════════════════════════════════════════════


class MasterDataResponse(BaseModel):
    """Page of master plant or company codes."""

    Message: str
    Count: int
    Limit: int
    Offset: int
    Items: List[Dict[str, Any]]


# ════════════════════════════════════════════════════════════════════════════
# Health Check Schema
# ════════════════════════════════════════════════════════════════════════════


class ReadinessResponse(BaseModel):
    """Readiness check including the workflow database."""

    Message: str
    DatabaseConfigured: bool
    DatabaseConnected: bool
    TablesCount: int
    TableCounts: Dict[str, int] = Field(default_factory=dict)


# ════════════════════════════════════════════════════════════════════════════
# Row Converters
# ════════════════════════════════════════════════════════════════════════════


def request_response(row: Dict[str, Any]) -> RequestResponse:
    """Build a RequestResponse from a requests row."""
    return RequestResponse(
        RequestId=row["request_id"],
        Type=row["type"],
        Title=row["title"],
        Status=row["status"],
        StatusLabel=STATUS_LABELS[RequestStatus(row["status"])],
        CreatedBy=row["created_by"],
        CreatedAt=row["created_at"],
        UpdatedAt=row["updated_at"],
        OriginalRequestId=row.get("original_request_id"),
        CompletedAt=row.get("completed_at"),
        TurnaroundDays=row.get("turnaround_days"),
    )


def details_response(snapshot: Dict[str, Any], message: str = "Details retrieved successfully") -> DetailsResponse:
    """Build a DetailsResponse from a details snapshot (camelCase keys)."""
    bookkeeping = {"requestId", "version", "submittedBy", "submittedAt"}
    return DetailsResponse(
        Message=message,
        RequestId=snapshot["requestId"],
        Version=snapshot["version"],
        SubmittedBy=snapshot["submittedBy"],
        SubmittedAt=snapshot["submittedAt"],
        Details={key: value for key, value in snapshot.items() if key not in bookkeeping},
    )


def field_changes_response(changes) -> List[FieldChangeResponse]:
    return [
        FieldChangeResponse(Field=c.field, Label=c.label, OldValue=c.old_value, NewValue=c.new_value)
        for c in changes
    ]


def approval_response(row: Dict[str, Any]) -> ApprovalResponse:
    return ApprovalResponse(
        RequestId=row["request_id"],
        ApproverEmail=row["approver_email"],
        Role=row["role"],
        Decision=row["decision"],
        Comment=row["comment"],
        AttachmentId=row.get("attachment_id"),
        Timestamp=row["timestamp"],
    )


def history_entry_response(row: Dict[str, Any]) -> HistoryEntryResponse:
    return HistoryEntryResponse(
        HistoryId=row["history_id"],
        RequestId=row["request_id"],
        Timestamp=row["timestamp"],
        Action=row["action"],
        User=row["user"],
        Metadata=row.get("metadata"),
    )


def attachment_response(row: Dict[str, Any]) -> AttachmentResponse:
    return AttachmentResponse(
        AttachmentId=row["attachment_id"],
        RequestId=row["request_id"],
        FileName=row["file_name"],
        FileType=row["file_type"],
        SizeBytes=row["size_bytes"],
        Version=row.get("version"),
        Title=row.get("title"),
        UploadedBy=row["uploaded_by"],
        UploadedAt=row["uploaded_at"],
    )


def user_response(row: Dict[str, Any]) -> UserResponse:
    return UserResponse(Email=row["email"], Role=row["role"], CreatedAt=row["created_at"])
