"""Unit tests for dependencies.py."""

from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException
from fastapi import status

from ccas_api.dependencies import get_allocator
from ccas_api.dependencies import get_caller
from ccas_api.dependencies import get_db_pool
from ccas_api.dependencies import get_dispatcher
from ccas_api.dependencies import get_settings
from ccas_api.errors import StoreUnavailableError
from ccas_api.workflow.enums import Role
from ccas_api.workflow.notifications.dispatcher import NotificationDispatcher
from ccas_api.workflow.request_ids import RequestIdAllocator


def make_request(**state):
    """Request whose app.state carries the given attributes."""
    request = MagicMock()
    request.app.state = MagicMock(spec=list(state))
    for key, value in state.items():
        setattr(request.app.state, key, value)
    return request


class TestGetCaller:
    """Tests for get_caller."""

    @pytest.mark.asyncio
    async def test_valid_headers(self):
        caller = await get_caller(x_user_email="  Siva@Example.COM ", x_user_role="Siva")

        assert caller.email == "siva@example.com"
        assert caller.role == Role.SIVA

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "email,role",
        [(None, "siva"), ("siva@example.com", None), ("  ", "siva"), ("siva@example.com", "")],
        ids=["no_email", "no_role", "blank_email", "empty_role"],
    )
    async def test_missing_headers_are_401(self, email, role):
        with pytest.raises(HTTPException) as exc_info:
            await get_caller(x_user_email=email, x_user_role=role)

        assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_unknown_role_is_400(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_caller(x_user_email="a@example.com", x_user_role="superuser")

        assert exc_info.value.status_code == status.HTTP_400_BAD_REQUEST
        assert "superuser" in exc_info.value.detail


class TestGetDbPool:
    """Tests for get_db_pool."""

    def test_returns_asyncpg_pool(self):
        domain_db_pool = MagicMock()
        request = make_request(domain_db_pool=domain_db_pool)

        assert get_db_pool(request) is domain_db_pool.pool

    def test_not_configured(self):
        with pytest.raises(StoreUnavailableError):
            get_db_pool(make_request(domain_db_pool=None))

    def test_not_initialized(self):
        domain_db_pool = MagicMock()
        domain_db_pool.pool = None

        with pytest.raises(StoreUnavailableError):
            get_db_pool(make_request(domain_db_pool=domain_db_pool))


class TestOtherDependencies:
    """Tests for settings, dispatcher and allocator dependencies."""

    def test_get_settings(self, mock_settings):
        assert get_settings(make_request(settings=mock_settings)) is mock_settings

    def test_dispatcher_from_state(self):
        dispatcher = NotificationDispatcher(None)

        assert get_dispatcher(make_request(dispatcher=dispatcher)) is dispatcher

    def test_dispatcher_default_is_noop(self):
        dispatcher = get_dispatcher(make_request())

        assert isinstance(dispatcher, NotificationDispatcher)
        assert dispatcher.notifier is None

    def test_allocator_uses_configured_timezone(self, workflow_settings):
        request = make_request(settings=workflow_settings, domain_db_pool=MagicMock())

        allocator = get_allocator(request)

        assert isinstance(allocator, RequestIdAllocator)
        assert str(allocator.tz) == "Asia/Kolkata"
