"""FastAPI dependencies for accessing app state and the caller identity."""

from typing import Optional

import asyncpg
from fastapi import Header
from fastapi import HTTPException
from fastapi import Request
from fastapi import status
from loguru import logger

from ccas_api.errors import StoreUnavailableError
from ccas_api.settings import Settings
from ccas_api.workflow.db.repository_counter import RequestIdCounterRepository
from ccas_api.workflow.enums import Role
from ccas_api.workflow.models.caller import Caller
from ccas_api.workflow.notifications.dispatcher import NotificationDispatcher
from ccas_api.workflow.request_ids import RequestIdAllocator


def get_settings(request: Request) -> Settings:
    """
    Get application settings from request state.

    Parameters
    ----------
    request : Request
        FastAPI request object

    Returns
    -------
    Settings
        Application settings instance
    """
    return request.app.state.settings


def get_db_pool(request: Request) -> asyncpg.Pool:
    """
    Get the workflow database pool.

    Raises
    ------
    StoreUnavailableError
        503 if no database is configured or the pool failed to start
    """
    domain_db_pool = getattr(request.app.state, "domain_db_pool", None)
    if domain_db_pool is None or domain_db_pool.pool is None:
        raise StoreUnavailableError("Workflow database is not available")
    return domain_db_pool.pool


def get_dispatcher(request: Request) -> NotificationDispatcher:
    """Notification dispatcher; a no-op dispatcher when notifications are not wired."""
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        return NotificationDispatcher(None)
    return dispatcher


def get_allocator(request: Request) -> RequestIdAllocator:
    """Request-ID allocator bound to the workflow database."""
    settings = get_settings(request)
    return RequestIdAllocator(RequestIdCounterRepository(get_db_pool(request)), settings.request_id_timezone)


async def get_caller(
    x_user_email: Optional[str] = Header(
        None,
        alias="X-User-Email",
        description="<small>*Email of the authenticated caller*</small>",
    ),
    x_user_role: Optional[str] = Header(
        None,
        alias="X-User-Role",
        description="<small>*Role of the authenticated caller*</small>",
    ),
) -> Caller:
    """
    Build the caller identity from the headers set by the authentication provider.

    Parameters
    ----------
    x_user_email : str | None
        Caller email from X-User-Email header
    x_user_role : str | None
        Caller role from X-User-Role header

    Returns
    -------
    Caller
        Caller with normalized (lowercase) email

    Raises
    ------
    HTTPException
        401 if either header is missing or empty
        400 if the role is not a known role
    """
    if not x_user_email or not x_user_email.strip() or not x_user_role or not x_user_role.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Email and X-User-Role headers are required",
        )

    role_value = x_user_role.strip().lower()
    try:
        role = Role(role_value)
    except ValueError:
        logger.warning("Unknown caller role", role=role_value)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown role '{role_value}'. Valid roles: {', '.join(r.value for r in Role)}",
        )

    return Caller(email=x_user_email.strip().lower(), role=role)
