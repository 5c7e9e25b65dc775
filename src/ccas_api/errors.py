"""Workflow exceptions and their FastAPI error handlers."""

import pydantic
from fastapi import Request
from fastapi import status
from fastapi.responses import JSONResponse
from loguru import logger

from ccas_api.monitoring.logger import log_response_info

__all__ = [
    "WorkflowError",
    "ValidationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "StoreUnavailableError",
    "DependencyFailure",
    "handle_broad_exceptions",
    "handle_workflow_errors",
    "handle_pydantic_validation_errors",
]


class WorkflowError(Exception):
    """Base class for errors raised by the workflow core."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(WorkflowError):
    """Missing required field, malformed number or missing mandatory comment."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthorizationError(WorkflowError):
    """Caller's role may not perform the action in the request's current status."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(WorkflowError):
    """Unknown request, attachment, user or details version."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(WorkflowError):
    """Version-number collision, stale write or duplicate user."""

    status_code = status.HTTP_409_CONFLICT


class StoreUnavailableError(WorkflowError):
    """The workflow database is not configured or not reachable."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class DependencyFailure(WorkflowError):
    """
    A best-effort side channel (notification, audit append) failed.

    Never returned to the caller; it is logged where the side channel runs.
    """


# fastapi docs on middlewares: https://fastapi.tiangolo.com/tutorial/middleware/
async def handle_broad_exceptions(request: Request, call_next):
    """Handle any exception that goes unhandled by a more specific exception handler."""
    try:
        return await call_next(request)
    except Exception as err:  # pylint: disable=broad-except
        error_response = {"detail": "Internal server error", "error_type": type(err).__name__}

        # Get request body from request state (set by RequestContextMiddleware)
        request_body = getattr(request.state, "request_body", None)

        logger.error(
            "Unhandled exception",
            http_status=500,
            status_code=500,
            http_method=request.method,
            url_path=str(request.url.path),
            error_type=type(err).__name__,
            error_message=str(err),
            request_body=request_body,
            response_body=error_response,
            exc_info=True,
        )

        response = JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_response,
        )
        log_response_info(response)
        return response


# fastapi docs on error handlers: https://fastapi.tiangolo.com/tutorial/handling-errors/
async def handle_workflow_errors(request: Request, exc: WorkflowError) -> JSONResponse:
    """
    Convert workflow exceptions into JSON error responses.

    Maps the exception taxonomy to HTTP status codes:
    - ValidationError -> 400 Bad Request
    - AuthorizationError -> 403 Forbidden
    - NotFoundError -> 404 Not Found
    - ConflictError -> 409 Conflict
    - StoreUnavailableError -> 503 Service Unavailable

    Parameters
    ----------
    request : Request
        FastAPI request object
    exc : WorkflowError
        Exception raised by the workflow core

    Returns
    -------
    JSONResponse
        HTTP response with ``detail`` and ``error_type``
    """
    error_type = type(exc).__name__
    error_response = {"detail": exc.message, "error_type": error_type}

    request_body = getattr(request.state, "request_body", None)

    logger.warning(
        "Workflow error",
        http_status=exc.status_code,
        status_code=exc.status_code,
        http_method=request.method,
        url_path=str(request.url.path),
        error_type=error_type,
        error_message=exc.message,
        request_body=request_body,
        response_body=error_response,
    )

    response = JSONResponse(
        status_code=exc.status_code,
        content=error_response,
    )
    log_response_info(response)
    return response


async def handle_pydantic_validation_errors(request: Request, exc: pydantic.ValidationError) -> JSONResponse:
    """Handle Pydantic validation errors raised while building domain models."""
    errors = exc.errors()
    error_response = {
        "detail": [
            {
                "loc": [str(part) for part in error.get("loc", ())],
                "msg": error["msg"],
            }
            for error in errors
        ],
        "error_type": "ValidationError",
    }

    request_body = getattr(request.state, "request_body", None)

    logger.warning(
        f"Validation error: {len(errors)} validation errors",
        http_status=422,
        status_code=422,
        http_method=request.method,
        url_path=str(request.url.path),
        error_type="ValidationError",
        request_body=request_body,
        response_body=error_response,
    )

    response = JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        content=error_response,
    )
    log_response_info(response)

    return response
