"""Tests for the scoring service (user, group and roommate scores)."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from housemate.errors import DataFetchError
from housemate.models import (
    Domain,
    ObligationRecord,
    ResultStatus,
    SwapRecord,
    SwapStatus,
    TaskMetrics,
    UserProfile,
)
from housemate.scoring.service import (
    compute_group_performance,
    compute_roommate_score,
    compute_user_score,
)

T0 = datetime(2026, 6, 1, tzinfo=timezone.utc)
NOW = T0 + timedelta(days=10)
GROUP_ID = "99999999-9999-9999-9999-999999999999"
ALICE = "aaaaaaaa-0000-0000-0000-000000000001"
BOB = "bbbbbbbb-0000-0000-0000-000000000002"
CAROL = "cccccccc-0000-0000-0000-000000000003"

SERVICE = "housemate.scoring.service"


# ── Helpers ───────────────────────────────────────────────────────────────────


def _share(i: int, paid_after_days: float | None, amount: str = "10", currency: str = "USD"):
    return ObligationRecord(
        id=f"s{i}",
        assigned_at=T0,
        completed=paid_after_days is not None,
        completed_at=None if paid_after_days is None else T0 + timedelta(days=paid_after_days),
        amount=Decimal(amount),
        currency=currency,
    )


def _task(i: int, *, done: bool = True, missed: bool = False):
    return ObligationRecord(
        id=f"t{i}",
        assigned_at=T0,
        due_at=T0 + timedelta(days=2),
        completed=done,
        completed_at=T0 + timedelta(days=1) if done else None,
        missed=missed,
    )


EIGHT_OF_TEN = (
    [_share(i, 1) for i in range(6)]
    + [_share(6, 5), _share(7, 6)]
    + [_share(8, None, "12.50"), _share(9, None, "4", "EUR")]
)


def _session_factory(closed: list | None = None):
    """Return a session factory and the list of sessions it opened.

    Sessions whose context exits are appended to *closed* when given.
    """
    opened = []

    @asynccontextmanager
    async def factory():
        session = AsyncMock()
        opened.append(session)
        try:
            yield session
        finally:
            if closed is not None:
                closed.append(session)

    return factory, opened


# ── compute_user_score ────────────────────────────────────────────────────────


class TestComputeUserScore:
    """Tests for compute_user_score."""

    @pytest.mark.asyncio
    async def test_expense_eight_of_ten(self) -> None:
        with (
            patch(f"{SERVICE}.fetch_user_obligations", AsyncMock(return_value=EIGHT_OF_TEN)),
            patch(f"{SERVICE}.fetch_contributed_amounts", AsyncMock(return_value=[])),
        ):
            result = await compute_user_score(AsyncMock(), ALICE, GROUP_ID, "expense", now=NOW)

        assert result.status == ResultStatus.OK
        assert result.domain == Domain.EXPENSE
        assert result.metrics.payment_rate == 80
        assert result.metrics.promptness_rate == 75
        assert result.score == 74
        assert set(result.subscores) == {
            "payment_rate",
            "promptness_rate",
            "payment_responsibility",
            "contribution",
            "settlement_initiation",
        }
        assert result.outstanding_by_currency == {"USD": Decimal("12.50"), "EUR": Decimal("4")}
        # dollars and euros are not added together
        assert result.outstanding_amount is None

    @pytest.mark.asyncio
    async def test_single_currency_outstanding_is_totalled(self) -> None:
        shares = [_share(0, 1), _share(1, None, "12.50"), _share(2, None, "7.25")]
        with (
            patch(f"{SERVICE}.fetch_user_obligations", AsyncMock(return_value=shares)),
            patch(f"{SERVICE}.fetch_contributed_amounts", AsyncMock(return_value=[])),
        ):
            result = await compute_user_score(AsyncMock(), ALICE, GROUP_ID, "expense", now=NOW)

        assert result.outstanding_by_currency == {"USD": Decimal("19.75")}
        assert result.outstanding_amount == Decimal("19.75")

    @pytest.mark.asyncio
    async def test_no_history_is_neutral(self) -> None:
        with (
            patch(f"{SERVICE}.fetch_user_obligations", AsyncMock(return_value=[])),
            patch(f"{SERVICE}.fetch_contributed_amounts", AsyncMock(return_value=[])),
        ):
            result = await compute_user_score(AsyncMock(), ALICE, GROUP_ID, Domain.EXPENSE)

        assert result.score == 50
        assert result.status == ResultStatus.INSUFFICIENT_DATA
        assert result.subscores == {}
        assert result.outstanding_amount == 0

    @pytest.mark.asyncio
    async def test_task_domain_reads_swaps(self) -> None:
        swaps = AsyncMock(
            return_value=[SwapRecord(requester_id=BOB, requested_id=ALICE, status=SwapStatus.ACCEPTED)]
        )
        contributions = AsyncMock()
        with (
            patch(
                f"{SERVICE}.fetch_user_obligations",
                AsyncMock(return_value=[_task(0), _task(1), _task(2, done=False, missed=True)]),
            ),
            patch(f"{SERVICE}.fetch_swap_history", swaps),
            patch(f"{SERVICE}.fetch_contributed_amounts", contributions),
        ):
            result = await compute_user_score(AsyncMock(), ALICE, GROUP_ID, Domain.TASK)

        swaps.assert_awaited_once()
        contributions.assert_not_called()
        assert isinstance(result.metrics, TaskMetrics)
        assert result.metrics.received_swaps == 1
        assert result.status == ResultStatus.OK
        assert 0 <= result.score <= 100
        assert "swap_penalty" in result.subscores

    @pytest.mark.asyncio
    async def test_fetch_failure_propagates(self) -> None:
        with patch(
            f"{SERVICE}.fetch_user_obligations",
            AsyncMock(side_effect=DataFetchError("Failed to fetch tasks.")),
        ):
            with pytest.raises(DataFetchError):
                await compute_user_score(AsyncMock(), ALICE, GROUP_ID, Domain.TASK)

    @pytest.mark.asyncio
    async def test_unknown_domain_rejected(self) -> None:
        with pytest.raises(ValueError):
            await compute_user_score(AsyncMock(), ALICE, GROUP_ID, "furniture")


# ── compute_group_performance ─────────────────────────────────────────────────


class TestComputeGroupPerformance:
    """Tests for compute_group_performance."""

    @pytest.mark.asyncio
    async def test_sorted_best_first_with_profiles(self) -> None:
        obligations = {
            ALICE: [_share(0, 20), _share(1, None)],
            BOB: [_share(0, 1)],
            CAROL: [],
        }

        async def fake_obligations(session, user_id, group_id, domain):
            return obligations[user_id]

        factory, opened = _session_factory()
        with (
            patch(f"{SERVICE}.fetch_group_member_ids", AsyncMock(return_value=[ALICE, BOB, CAROL])),
            patch(
                f"{SERVICE}.fetch_user_profiles",
                AsyncMock(return_value={BOB: UserProfile(id=BOB, name="Bob")}),
            ),
            patch(f"{SERVICE}.fetch_user_obligations", side_effect=fake_obligations),
            patch(f"{SERVICE}.fetch_contributed_amounts", AsyncMock(return_value=[])),
        ):
            rows = await compute_group_performance(
                GROUP_ID, Domain.EXPENSE, session_factory=factory, now=T0 + timedelta(days=25)
            )

        assert [row.user_id for row in rows] == [BOB, CAROL, ALICE]
        assert rows[0].name == "Bob"
        assert rows[1].name == "Unknown"
        assert rows[1].status == ResultStatus.INSUFFICIENT_DATA
        assert rows[0].score >= rows[1].score >= rows[2].score
        # one session for membership, one per member
        assert len(opened) == 4

    @pytest.mark.asyncio
    async def test_equal_scores_keep_membership_order(self) -> None:
        factory, _ = _session_factory()
        with (
            patch(f"{SERVICE}.fetch_group_member_ids", AsyncMock(return_value=[CAROL, ALICE, BOB])),
            patch(f"{SERVICE}.fetch_user_profiles", AsyncMock(return_value={})),
            patch(f"{SERVICE}.fetch_user_obligations", AsyncMock(return_value=[])),
            patch(f"{SERVICE}.fetch_contributed_amounts", AsyncMock(return_value=[])),
        ):
            rows = await compute_group_performance(GROUP_ID, "expense", session_factory=factory)

        assert [row.user_id for row in rows] == [CAROL, ALICE, BOB]
        assert all(row.score == 50 for row in rows)

    @pytest.mark.asyncio
    async def test_empty_group(self) -> None:
        factory, opened = _session_factory()
        with (
            patch(f"{SERVICE}.fetch_group_member_ids", AsyncMock(return_value=[])),
            patch(f"{SERVICE}.fetch_user_profiles", AsyncMock(return_value={})),
        ):
            assert await compute_group_performance(GROUP_ID, "task", session_factory=factory) == []
        assert len(opened) == 1

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self) -> None:
        in_flight = 0
        peak = 0

        async def slow_obligations(session, user_id, group_id, domain):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return []

        members = [f"{i:08d}-0000-0000-0000-000000000000" for i in range(6)]
        limited = SimpleNamespace(
            max_concurrent_reads=2, promptness_grace_days=3, recent_settlement_window_days=30
        )
        factory, _ = _session_factory()
        with (
            patch(f"{SERVICE}.settings", limited),
            patch(f"{SERVICE}.fetch_group_member_ids", AsyncMock(return_value=members)),
            patch(f"{SERVICE}.fetch_user_profiles", AsyncMock(return_value={})),
            patch(f"{SERVICE}.fetch_user_obligations", side_effect=slow_obligations),
            patch(f"{SERVICE}.fetch_swap_history", AsyncMock(return_value=[])),
        ):
            rows = await compute_group_performance(GROUP_ID, Domain.TASK, session_factory=factory)

        assert len(rows) == 6
        assert 1 < peak <= 2

    @pytest.mark.asyncio
    async def test_member_failure_fails_the_call(self) -> None:
        factory, _ = _session_factory()
        with (
            patch(f"{SERVICE}.fetch_group_member_ids", AsyncMock(return_value=[ALICE, BOB])),
            patch(f"{SERVICE}.fetch_user_profiles", AsyncMock(return_value={})),
            patch(
                f"{SERVICE}.fetch_user_obligations",
                AsyncMock(side_effect=DataFetchError("Failed to fetch expense shares.")),
            ),
        ):
            with pytest.raises(DataFetchError):
                await compute_group_performance(GROUP_ID, "expense", session_factory=factory)

    @pytest.mark.asyncio
    async def test_member_failure_cancels_the_others(self) -> None:
        finished = []

        async def obligations(session, user_id, group_id, domain):
            if user_id == ALICE:
                raise DataFetchError("Failed to fetch expense shares.")
            await asyncio.sleep(5)
            finished.append(user_id)
            return []

        closed = []
        factory, opened = _session_factory(closed)
        with (
            patch(f"{SERVICE}.fetch_group_member_ids", AsyncMock(return_value=[ALICE, BOB])),
            patch(f"{SERVICE}.fetch_user_profiles", AsyncMock(return_value={})),
            patch(f"{SERVICE}.fetch_user_obligations", side_effect=obligations),
            patch(f"{SERVICE}.fetch_contributed_amounts", AsyncMock(return_value=[])),
        ):
            with pytest.raises(DataFetchError, match="expense shares"):
                await asyncio.wait_for(
                    compute_group_performance(GROUP_ID, "expense", session_factory=factory),
                    timeout=2,
                )

        assert finished == []
        assert len(closed) == len(opened)


# ── compute_roommate_score ────────────────────────────────────────────────────


class TestComputeRoommateScore:
    """Tests for compute_roommate_score."""

    @pytest.mark.asyncio
    async def test_no_history_uses_neutral_components(self) -> None:
        with (
            patch(f"{SERVICE}.fetch_user_obligations", AsyncMock(return_value=[])),
            patch(f"{SERVICE}.fetch_contributed_amounts", AsyncMock(return_value=[])),
            patch(f"{SERVICE}.fetch_swap_history", AsyncMock(return_value=[])),
        ):
            result = await compute_roommate_score(AsyncMock(), ALICE, GROUP_ID)

        assert result.payment_score == 50
        assert result.task_score == 50
        assert result.response_score == 90
        assert result.score == 58

    @pytest.mark.asyncio
    async def test_blends_both_domains(self) -> None:
        async def fake_obligations(session, user_id, group_id, domain):
            return EIGHT_OF_TEN if domain == Domain.EXPENSE else [_task(0), _task(1)]

        with (
            patch(f"{SERVICE}.fetch_user_obligations", side_effect=fake_obligations),
            patch(f"{SERVICE}.fetch_contributed_amounts", AsyncMock(return_value=[])),
            patch(f"{SERVICE}.fetch_swap_history", AsyncMock(return_value=[])),
        ):
            result = await compute_roommate_score(AsyncMock(), ALICE, GROUP_ID, now=NOW)

        assert result.payment_score == 74
        # two clean on-time tasks: 0.4 * 100 + 0.25 * 100 + 0.15 * 0
        assert result.task_score == 65
        # 0.5 * 74 + 0.3 * 65 + 0.2 * 90 = 74.5
        assert result.score == 75
        assert result.outstanding_amount is None
