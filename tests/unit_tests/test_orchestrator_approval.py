"""Unit tests for approver decisions, the SAP update and completion."""

from datetime import datetime
from datetime import timedelta
from datetime import timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock
from unittest.mock import MagicMock
from unittest.mock import patch

import asyncpg
import pytest

from ccas_api.errors import AuthorizationError
from ccas_api.errors import NotFoundError
from ccas_api.errors import ValidationError
from ccas_api.workflow.enums import Decision
from ccas_api.workflow.enums import HistoryAction
from ccas_api.workflow.enums import RequestStatus
from ccas_api.workflow.enums import Role
from ccas_api.workflow.models.caller import Caller
from ccas_api.workflow.orchestrator.approval import mark_completed
from ccas_api.workflow.orchestrator.approval import mark_sap_updated
from ccas_api.workflow.orchestrator.approval import record_decision
from ccas_api.workflow.orchestrator.approval import turnaround_days
from ccas_api.workflow.orchestrator.audit import record_history
from tests.fixtures.db_fixtures import make_approval_row
from tests.fixtures.db_fixtures import make_request_row

MODULE = "ccas_api.workflow.orchestrator.approval"

SECRETARY = Caller(email="secretary@example.com", role=Role.SECRETARY)
IT = Caller(email="it@example.com", role=Role.IT)


@pytest.fixture
def repos():
    request_repo = MagicMock()
    request_repo.get = AsyncMock(return_value=make_request_row())
    request_repo.update_status = AsyncMock(side_effect=lambda rid, st, conn=None: make_request_row(status=st.value))
    request_repo.mark_completed = AsyncMock(return_value=make_request_row(status="completed", turnaround_days=2))

    approval_repo = MagicMock()
    approval_repo.upsert = AsyncMock(return_value=make_approval_row())

    with (
        patch(f"{MODULE}.RequestRepository", return_value=request_repo),
        patch(f"{MODULE}.ApprovalRepository", return_value=approval_repo),
        patch(f"{MODULE}.HistoryRepository"),
        patch(f"{MODULE}.record_history", new_callable=AsyncMock) as mock_record_history,
    ):
        yield SimpleNamespace(request=request_repo, approval=approval_repo, record_history=mock_record_history)


@pytest.fixture
def dispatcher():
    return MagicMock()


class TestRecordDecision:
    """Tests for record_decision()."""

    @pytest.mark.asyncio
    async def test_approve_advances_chain(self, fake_pool, fake_conn, repos, dispatcher):
        result = await record_decision(
            fake_pool, dispatcher, "N_01012025_001", SECRETARY, Decision.APPROVE, "  looks good  "
        )

        assert result["request"]["status"] == "pending-siva"
        repos.request.get.assert_awaited_once_with("N_01012025_001", for_update=True, conn=fake_conn)
        repos.approval.upsert.assert_awaited_once_with(
            "N_01012025_001",
            "secretary@example.com",
            Role.SECRETARY,
            Decision.APPROVE,
            "looks good",
            attachment_id=None,
            conn=fake_conn,
        )
        repos.request.update_status.assert_awaited_once_with(
            "N_01012025_001", RequestStatus.PENDING_SIVA, conn=fake_conn
        )
        dispatcher.status_changed.assert_called_once_with("N_01012025_001", RequestStatus.PENDING_SIVA)

        _, request_id, action, user, metadata = repos.record_history.call_args.args
        assert action == HistoryAction.APPROVE
        assert metadata == {
            "role": "secretary",
            "comment": "looks good",
            "fromStatus": "pending-secretary",
            "toStatus": "pending-siva",
            "attachmentId": None,
        }

    @pytest.mark.asyncio
    async def test_reject_moves_to_rejected(self, fake_pool, repos, dispatcher):
        repos.request.get.return_value = make_request_row(status="pending-raghu")
        caller = Caller(email="raghu@example.com", role=Role.RAGHU)

        result = await record_decision(
            fake_pool, dispatcher, "N_01012025_001", caller, Decision.REJECT, "wrong profit center", "f" * 32
        )

        assert result["request"]["status"] == "rejected"
        assert repos.approval.upsert.call_args.kwargs["attachment_id"] == "f" * 32
        assert repos.record_history.call_args.args[2] == HistoryAction.REJECT

    @pytest.mark.asyncio
    @pytest.mark.parametrize("comment", [None, "", "   "], ids=["none", "empty", "blank"])
    async def test_comment_is_mandatory(self, fake_pool, repos, dispatcher, comment):
        with pytest.raises(ValidationError):
            await record_decision(fake_pool, dispatcher, "N_01012025_001", SECRETARY, Decision.REJECT, comment)

        assert fake_pool.acquired == 0

    @pytest.mark.asyncio
    async def test_wrong_role_changes_nothing(self, fake_pool, fake_conn, repos, dispatcher):
        caller = Caller(email="manoj@example.com", role=Role.MANOJ)

        with pytest.raises(AuthorizationError):
            await record_decision(fake_pool, dispatcher, "N_01012025_001", caller, Decision.APPROVE, "ok")

        repos.approval.upsert.assert_not_awaited()
        repos.request.update_status.assert_not_awaited()
        repos.record_history.assert_not_awaited()
        dispatcher.status_changed.assert_not_called()
        assert fake_conn.transactions_rolled_back == 1

    @pytest.mark.asyncio
    async def test_second_concurrent_decision_is_rejected(self, fake_pool, repos, dispatcher):
        """The row lock serializes decisions: the second one sees the advanced status."""
        repos.request.get.side_effect = [
            make_request_row(status="pending-secretary"),
            make_request_row(status="pending-siva"),
        ]

        await record_decision(fake_pool, dispatcher, "N_01012025_001", SECRETARY, Decision.APPROVE, "first")
        with pytest.raises(AuthorizationError):
            await record_decision(fake_pool, dispatcher, "N_01012025_001", SECRETARY, Decision.APPROVE, "second")

        assert repos.approval.upsert.await_count == 1

    @pytest.mark.asyncio
    async def test_unknown_request(self, fake_pool, repos, dispatcher):
        repos.request.get.return_value = None

        with pytest.raises(NotFoundError):
            await record_decision(fake_pool, dispatcher, "N_01012025_404", SECRETARY, Decision.APPROVE, "ok")


class TestMarkSapUpdated:
    """Tests for mark_sap_updated()."""

    @pytest.mark.asyncio
    async def test_it_marks_approved_request(self, fake_pool, repos, dispatcher):
        repos.request.get.return_value = make_request_row(status="approved")

        result = await mark_sap_updated(fake_pool, dispatcher, "N_01012025_001", IT, "created in SAP")

        assert result["request"]["status"] == "sap-updated"
        assert repos.approval.upsert.call_args.args[3] == Decision.APPROVE
        assert repos.record_history.call_args.args[2] == HistoryAction.UPDATE_SAP
        dispatcher.status_changed.assert_called_once_with("N_01012025_001", RequestStatus.SAP_UPDATED)

    @pytest.mark.asyncio
    async def test_non_it_role_rejected(self, fake_pool, repos, dispatcher):
        repos.request.get.return_value = make_request_row(status="approved")

        with pytest.raises(AuthorizationError):
            await mark_sap_updated(fake_pool, dispatcher, "N_01012025_001", SECRETARY, "done")

    @pytest.mark.asyncio
    async def test_comment_required(self, fake_pool, repos, dispatcher):
        with pytest.raises(ValidationError):
            await mark_sap_updated(fake_pool, dispatcher, "N_01012025_001", IT, " ")


class TestMarkCompleted:
    """Tests for mark_completed()."""

    @pytest.mark.asyncio
    async def test_completes_and_records_turnaround(self, fake_pool, repos, dispatcher):
        created_at = datetime.now(timezone.utc) - timedelta(days=1, hours=2)
        repos.request.get.return_value = make_request_row(status="sap-updated", created_at=created_at)

        result = await mark_completed(fake_pool, dispatcher, "N_01012025_001", IT)

        assert result["request"]["status"] == "completed"
        request_id, completed_at, days = repos.request.mark_completed.call_args.args
        assert request_id == "N_01012025_001"
        assert completed_at.tzinfo is not None
        assert days == 2
        _, _, action, _, metadata = repos.record_history.call_args.args
        assert action == HistoryAction.UPDATE_SAP
        assert metadata == {"completed": True, "turnaroundTime": 2, "completedBy": "it@example.com"}
        dispatcher.status_changed.assert_called_once_with("N_01012025_001", RequestStatus.COMPLETED)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["approved", "completed", "pending-manoj"])
    async def test_only_sap_updated_can_complete(self, fake_pool, repos, dispatcher, status):
        repos.request.get.return_value = make_request_row(status=status)

        with pytest.raises(AuthorizationError):
            await mark_completed(fake_pool, dispatcher, "N_01012025_001", IT)

        repos.request.mark_completed.assert_not_awaited()


class TestTurnaroundDays:
    """Tests for turnaround_days()."""

    START = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "elapsed,expected",
        [
            (timedelta(0), 0),
            (timedelta(minutes=5), 1),
            (timedelta(days=1), 1),
            (timedelta(days=1, seconds=1), 2),
            (timedelta(days=9, hours=23), 10),
            (timedelta(hours=-1), 0),
        ],
        ids=["same_instant", "minutes", "exactly_one_day", "just_over", "ten_days", "clock_skew"],
    )
    def test_rounds_up(self, elapsed, expected):
        assert turnaround_days(self.START, self.START + elapsed) == expected

    def test_naive_timestamps_treated_as_utc(self):
        naive = datetime(2025, 1, 1, 9, 0)

        assert turnaround_days(naive, self.START + timedelta(hours=30)) == 2


class TestRecordHistory:
    """Tests for the best-effort history append."""

    @pytest.mark.asyncio
    async def test_returns_entry(self):
        history_repo = MagicMock()
        history_repo.append = AsyncMock(return_value={"history_id": 7})

        entry = await record_history(history_repo, "N_01012025_001", HistoryAction.CREATE, "a@example.com", {})

        assert entry == {"history_id": 7}

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, captured_logs):
        history_repo = MagicMock()
        history_repo.append = AsyncMock(side_effect=asyncpg.PostgresError("disk full"))

        entry = await record_history(history_repo, "N_01012025_001", HistoryAction.APPROVE, "a@example.com")

        assert entry is None
        errors = [r for r in captured_logs if r["level"].name == "ERROR"]
        assert errors[-1]["message"] == "History append failed"
        assert errors[-1]["extra"]["request_id"] == "N_01012025_001"
        assert errors[-1]["extra"]["action"] == "approve"
