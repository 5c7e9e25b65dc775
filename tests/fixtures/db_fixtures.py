"""Fake asyncpg pool/connection objects and sample workflow rows."""

from contextlib import asynccontextmanager
from datetime import datetime
from datetime import timezone
from decimal import Decimal
from typing import Any
from typing import Dict
from unittest.mock import AsyncMock

import pytest

CREATED_AT = datetime(2025, 1, 1, 9, 30, tzinfo=timezone.utc)


class FakeTransaction:
    """Stands in for asyncpg's Transaction context manager."""

    def __init__(self, conn: "FakeConnection"):
        self.conn = conn

    async def __aenter__(self):
        self.conn.transactions_opened += 1
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is not None:
            self.conn.transactions_rolled_back += 1
        return False


class FakeConnection:
    """asyncpg.Connection double: query methods are AsyncMocks, transaction() is real."""

    def __init__(self):
        self.fetch = AsyncMock(return_value=[])
        self.fetchrow = AsyncMock(return_value=None)
        self.fetchval = AsyncMock(return_value=None)
        self.execute = AsyncMock(return_value="OK")
        self.transactions_opened = 0
        self.transactions_rolled_back = 0

    def transaction(self):
        return FakeTransaction(self)


class FakePool:
    """asyncpg.Pool double that always hands out the same connection."""

    def __init__(self, conn: FakeConnection):
        self.conn = conn
        self.acquired = 0

    @asynccontextmanager
    async def acquire(self):
        self.acquired += 1
        yield self.conn


@pytest.fixture
def fake_conn():
    return FakeConnection()


@pytest.fixture
def fake_pool(fake_conn):
    return FakePool(fake_conn)


def make_request_row(**overrides: Any) -> Dict[str, Any]:
    row = {
        "request_id": "N_01012025_001",
        "type": "plant",
        "title": "Plant Code: P100 - Alpha",
        "status": "pending-secretary",
        "created_by": "requestor@example.com",
        "created_at": CREATED_AT,
        "updated_at": CREATED_AT,
        "original_request_id": None,
        "completed_at": None,
        "turnaround_days": None,
    }
    row.update(overrides)
    return row


def make_plant_row(**overrides: Any) -> Dict[str, Any]:
    """plant_code_details row (snake_case columns)."""
    row = {
        "request_id": "N_01012025_001",
        "version": 1,
        "company_code": "1000",
        "gst_number": None,
        "gst_certificate": None,
        "plant_code": "P100",
        "name_of_plant": "Alpha",
        "address_of_plant": None,
        "purchase_organization": None,
        "name_of_purchase_organization": None,
        "sales_organization": None,
        "name_of_sales_organization": None,
        "profit_center": None,
        "name_of_profit_center": None,
        "cost_centers": None,
        "name_of_cost_centers": None,
        "project_code": None,
        "project_code_description": None,
        "storage_location_code": None,
        "storage_location_description": None,
        "submitted_by": "requestor@example.com",
        "submitted_at": CREATED_AT,
    }
    row.update(overrides)
    return row


def make_company_row(**overrides: Any) -> Dict[str, Any]:
    """company_code_details row (snake_case columns)."""
    row = {
        "request_id": "N_01012025_002",
        "version": 1,
        "company_code": "2000",
        "name_of_company_code": "Acme Holdings",
        "shareholding_percentage": Decimal("51.25"),
        "gst_number": None,
        "cin_number": None,
        "pan_number": None,
        "gst_certificate": None,
        "cin": None,
        "pan": None,
        "segment": None,
        "name_of_segment": None,
        "submitted_by": "requestor@example.com",
        "submitted_at": CREATED_AT,
    }
    row.update(overrides)
    return row


def make_approval_row(**overrides: Any) -> Dict[str, Any]:
    row = {
        "request_id": "N_01012025_001",
        "approver_email": "secretary@example.com",
        "role": "secretary",
        "decision": "approve",
        "comment": "ok",
        "attachment_id": None,
        "timestamp": CREATED_AT,
    }
    row.update(overrides)
    return row


def make_history_row(**overrides: Any) -> Dict[str, Any]:
    row = {
        "history_id": 1,
        "request_id": "N_01012025_001",
        "timestamp": CREATED_AT,
        "action": "create",
        "user": "requestor@example.com",
        "metadata": {"type": "plant"},
    }
    row.update(overrides)
    return row


def make_attachment_row(**overrides: Any) -> Dict[str, Any]:
    row = {
        "attachment_id": "a" * 32,
        "request_id": "N_01012025_001",
        "file_name": "gst.pdf",
        "file_type": "application/pdf",
        "size_bytes": 5,
        "version": 1,
        "title": "GST certificate",
        "uploaded_by": "requestor@example.com",
        "uploaded_at": CREATED_AT,
    }
    row.update(overrides)
    return row


@pytest.fixture
def request_row():
    return make_request_row()


@pytest.fixture
def plant_row():
    return make_plant_row()


@pytest.fixture
def company_row():
    return make_company_row()
