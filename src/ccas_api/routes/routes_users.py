"""User directory endpoints (email -> role)."""

import asyncpg
from fastapi import APIRouter
from fastapi import Depends
from fastapi import Response
from fastapi import status

from ccas_api.dependencies import get_caller
from ccas_api.dependencies import get_db_pool
from ccas_api.errors import NotFoundError
from ccas_api.schemas.schemas_workflow import CreateUserRequest
from ccas_api.schemas.schemas_workflow import UserListResponse
from ccas_api.schemas.schemas_workflow import UserResponse
from ccas_api.schemas.schemas_workflow import user_response
from ccas_api.workflow.db.repository_user import UserRepository
from ccas_api.workflow.models.caller import Caller

ROUTER_USERS = APIRouter(tags=["Users"], prefix="/users")


@ROUTER_USERS.get(
    "",
    response_model=UserListResponse,
    summary="List users",
)
async def list_users(pool: asyncpg.Pool = Depends(get_db_pool)):
    """List all users ordered by email."""
    users = await UserRepository(pool).list_users()
    return UserListResponse(
        Message=f"Found {len(users)} user(s)",
        Count=len(users),
        Users=[user_response(user) for user in users],
    )


@ROUTER_USERS.get(
    "/{email}",
    response_model=UserResponse,
    summary="Get a user by email",
    responses={404: {"description": "User not found"}},
)
async def get_user(email: str, pool: asyncpg.Pool = Depends(get_db_pool)):
    user = await UserRepository(pool).get(email.strip().lower())
    if user is None:
        raise NotFoundError(f"User not found: {email}")
    return user_response(user)


@ROUTER_USERS.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a user",
    responses={
        201: {"description": "User created"},
        409: {"description": "A user with this email already exists"},
    },
)
async def create_user(
    body: CreateUserRequest,
    caller: Caller = Depends(get_caller),
    pool: asyncpg.Pool = Depends(get_db_pool),
):
    """Add a user with a role to the directory."""
    user = await UserRepository(pool).create(body.email, body.role)
    return user_response(user)


@ROUTER_USERS.delete(
    "/{email}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a user",
    responses={
        204: {"description": "User removed"},
        404: {"description": "User not found"},
    },
)
async def delete_user(
    email: str,
    caller: Caller = Depends(get_caller),
    pool: asyncpg.Pool = Depends(get_db_pool),
):
    await UserRepository(pool).delete(email.strip().lower())
    return Response(status_code=status.HTTP_204_NO_CONTENT)
