"""
Request ID Allocation

Request IDs look like ``N_01012025_001``: prefix (N = new, C = change request), the
allocation day as DDMMYYYY, and a per-prefix daily sequence zero-padded to three digits.
"""

import re
from datetime import date
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

import asyncpg
from loguru import logger

from ccas_api.workflow.db.repository_counter import RequestIdCounterRepository
from ccas_api.workflow.enums import RequestKind

REQUEST_ID_PATTERN = re.compile(r"^(?P<prefix>[NC])_(?P<ddmmyyyy>\d{8})_(?P<seq>\d{3,})$")


def format_request_id(kind: RequestKind, day: date, seq: int) -> str:
    """N + 2025-01-01 + 7 -> N_01012025_007. Sequences past 999 keep growing in width."""
    return f"{RequestKind(kind).value}_{day.strftime('%d%m%Y')}_{seq:03d}"


def is_request_id(value: str) -> bool:
    return bool(REQUEST_ID_PATTERN.match(value or ""))


class RequestIdAllocator:
    """Allocates request IDs from the daily counter table."""

    def __init__(self, counter_repo: RequestIdCounterRepository, timezone: str = "Asia/Kolkata"):
        self.counter_repo = counter_repo
        self.tz = ZoneInfo(timezone)

    def today(self) -> date:
        """Allocation day in the configured time zone."""
        return datetime.now(self.tz).date()

    async def allocate(
        self,
        kind: RequestKind,
        day: Optional[date] = None,
        conn: Optional[asyncpg.Connection] = None,
    ) -> str:
        """
        Allocate the next request ID for a prefix.

        The counter increment is a single atomic upsert; any failure propagates and no
        ID is produced.

        Args:
            kind: N (new request) or C (change request)
            day: Allocation day (defaults to today in the configured zone)
            conn: Optional connection (joins the caller's transaction)
        """
        day = day or self.today()
        seq = await self.counter_repo.next_sequence(kind, day.strftime("%Y%m%d"), conn=conn)
        request_id = format_request_id(kind, day, seq)
        logger.debug("Request ID allocated", request_id=request_id)
        return request_id
