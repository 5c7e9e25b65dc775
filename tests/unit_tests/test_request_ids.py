"""Unit tests for request ID formatting and allocation."""

import asyncio
from datetime import date
from unittest.mock import AsyncMock
from unittest.mock import MagicMock

import pytest

from ccas_api.workflow.db.repository_counter import RequestIdCounterRepository
from ccas_api.workflow.enums import RequestKind
from ccas_api.workflow.request_ids import RequestIdAllocator
from ccas_api.workflow.request_ids import format_request_id
from ccas_api.workflow.request_ids import is_request_id
from tests.fixtures.db_fixtures import FakeConnection
from tests.fixtures.db_fixtures import FakePool


class TestFormatRequestId:
    """Tests for the N_DDMMYYYY_SSS format."""

    @pytest.mark.parametrize(
        "kind,day,seq,expected",
        [
            (RequestKind.NEW, date(2025, 1, 1), 1, "N_01012025_001"),
            (RequestKind.CHANGE, date(2025, 12, 31), 42, "C_31122025_042"),
            (RequestKind.NEW, date(2025, 3, 9), 999, "N_09032025_999"),
            (RequestKind.NEW, date(2025, 3, 9), 1000, "N_09032025_1000"),
            ("C", date(2024, 2, 29), 7, "C_29022024_007"),
        ],
        ids=["first_new", "change", "max_three_digits", "width_grows", "raw_prefix"],
    )
    def test_format(self, kind, day, seq, expected):
        assert format_request_id(kind, day, seq) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("N_01012025_001", True),
            ("C_01012025_1234", True),
            ("X_01012025_001", False),
            ("N_0101202_001", False),
            ("N_01012025_01", False),
            ("", False),
            (None, False),
        ],
        ids=["new", "long_seq", "bad_prefix", "short_date", "short_seq", "empty", "none"],
    )
    def test_is_request_id(self, value, expected):
        assert is_request_id(value) is expected


class TestRequestIdAllocator:
    """Tests for RequestIdAllocator."""

    @pytest.mark.asyncio
    async def test_allocate_uses_counter_for_prefix_and_day(self):
        counter_repo = MagicMock()
        counter_repo.next_sequence = AsyncMock(return_value=3)
        allocator = RequestIdAllocator(counter_repo)

        request_id = await allocator.allocate(RequestKind.CHANGE, day=date(2025, 6, 15))

        assert request_id == "C_15062025_003"
        counter_repo.next_sequence.assert_awaited_once_with(RequestKind.CHANGE, "20250615", conn=None)

    @pytest.mark.asyncio
    async def test_allocate_defaults_to_today_in_zone(self):
        counter_repo = MagicMock()
        counter_repo.next_sequence = AsyncMock(return_value=1)
        allocator = RequestIdAllocator(counter_repo, timezone="UTC")
        allocator.today = MagicMock(return_value=date(2025, 1, 1))

        assert await allocator.allocate(RequestKind.NEW) == "N_01012025_001"

    @pytest.mark.asyncio
    async def test_counter_failure_propagates(self):
        """No ID is produced when the counter cannot be incremented."""
        counter_repo = MagicMock()
        counter_repo.next_sequence = AsyncMock(side_effect=OSError("connection reset"))
        allocator = RequestIdAllocator(counter_repo)

        with pytest.raises(OSError):
            await allocator.allocate(RequestKind.NEW, day=date(2025, 1, 1))

    @pytest.mark.asyncio
    async def test_concurrent_allocations_are_unique_and_contiguous(self):
        """100 concurrent allocations on one day yield _001.._100 with no gaps or repeats."""
        counters = {}
        lock = asyncio.Lock()

        async def upsert(query, prefix, yyyymmdd):
            async with lock:
                await asyncio.sleep(0)
                counters[(prefix, yyyymmdd)] = counters.get((prefix, yyyymmdd), 0) + 1
                return counters[(prefix, yyyymmdd)]

        conn = FakeConnection()
        conn.fetchval.side_effect = upsert
        allocator = RequestIdAllocator(RequestIdCounterRepository(FakePool(conn)))
        day = date(2025, 1, 1)

        ids = await asyncio.gather(*(allocator.allocate(RequestKind.NEW, day=day) for _ in range(100)))

        assert len(set(ids)) == 100
        assert sorted(ids) == [f"N_01012025_{n:03d}" for n in range(1, 101)]

    @pytest.mark.asyncio
    async def test_prefixes_have_independent_sequences(self):
        counters = {}

        async def upsert(query, prefix, yyyymmdd):
            counters[prefix] = counters.get(prefix, 0) + 1
            return counters[prefix]

        conn = FakeConnection()
        conn.fetchval.side_effect = upsert
        allocator = RequestIdAllocator(RequestIdCounterRepository(FakePool(conn)))
        day = date(2025, 1, 1)

        assert await allocator.allocate(RequestKind.NEW, day=day) == "N_01012025_001"
        assert await allocator.allocate(RequestKind.CHANGE, day=day) == "C_01012025_001"
        assert await allocator.allocate(RequestKind.NEW, day=day) == "N_01012025_002"


class TestRequestIdCounterRepository:
    """Tests for the counter upsert."""

    @pytest.mark.asyncio
    async def test_next_sequence(self, fake_pool, fake_conn):
        fake_conn.fetchval.return_value = 5

        seq = await RequestIdCounterRepository(fake_pool).next_sequence(RequestKind.NEW, "20250101")

        assert seq == 5
        query, prefix, yyyymmdd = fake_conn.fetchval.call_args.args
        assert "ON CONFLICT (prefix, yyyymmdd) DO UPDATE" in query
        assert (prefix, yyyymmdd) == ("N", "20250101")

    @pytest.mark.asyncio
    async def test_next_sequence_without_value_raises(self, fake_pool, fake_conn):
        fake_conn.fetchval.return_value = None

        with pytest.raises(RuntimeError):
            await RequestIdCounterRepository(fake_pool).next_sequence(RequestKind.CHANGE, "20250101")

    @pytest.mark.asyncio
    async def test_uses_given_connection(self, fake_pool):
        """With conn= the pool is not touched (joins the caller's transaction)."""
        own_conn = FakeConnection()
        own_conn.fetchval.return_value = 1

        await RequestIdCounterRepository(fake_pool).next_sequence(RequestKind.NEW, "20250101", conn=own_conn)

        assert fake_pool.acquired == 0
        own_conn.fetchval.assert_awaited_once()
