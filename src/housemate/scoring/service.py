"""Performance scoring over stored obligation history.

- :func:`compute_user_score` — one user's score in one domain
- :func:`compute_group_performance` — leaderboard for a household
- :func:`compute_roommate_score` — payment + task + responsiveness blend

Scores are always recomputed from raw history; nothing is cached here.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from housemate.config import settings
from housemate.db.session import get_session
from housemate.ledger.repository import (
    IdLike,
    fetch_contributed_amounts,
    fetch_group_member_ids,
    fetch_swap_history,
    fetch_user_obligations,
    fetch_user_profiles,
)
from housemate.models import (
    Domain,
    MemberPerformance,
    ResultStatus,
    RoommateScore,
    ScoreResult,
    UserProfile,
)
from housemate.scoring.formulas import (
    RESPONSE_SCORE,
    calculate_expense_score,
    calculate_roommate_score,
    calculate_task_score,
    expense_subscores,
    has_expense_history,
    has_task_history,
    task_subscores,
)
from housemate.scoring.metrics import (
    extract_expense_metrics,
    extract_task_metrics,
    outstanding_by_currency,
    single_currency_total,
)

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


async def compute_user_score(
    session: AsyncSession,
    user_id: IdLike,
    group_id: IdLike,
    domain: Domain | str,
    *,
    now: datetime | None = None,
) -> ScoreResult:
    """Score one user's reliability in the expense or task domain.

    Args:
        session: Async database session.
        user_id: The user to score.
        group_id: The household whose history counts.
        domain: ``"expense"`` or ``"task"``.
        now: Reference time for recency windows (defaults to now, UTC).

    Returns:
        A :class:`ScoreResult`.  A user with no history gets the neutral
        score 50, empty sub-scores and status ``INSUFFICIENT_DATA``.

    Raises:
        DataFetchError: If a storage query fails.
        ValueError: If *domain* is not a known domain.
    """
    domain = Domain(domain)
    now = now or datetime.now(timezone.utc)
    uid = str(user_id)
    obligations = await fetch_user_obligations(session, user_id, group_id, domain)

    if domain == Domain.EXPENSE:
        contributions = await fetch_contributed_amounts(session, user_id, group_id)
        metrics = extract_expense_metrics(
            obligations,
            contributions,
            now=now,
            grace_days=settings.promptness_grace_days,
            recent_window_days=settings.recent_settlement_window_days,
        )
        has_history = has_expense_history(metrics)
        score = calculate_expense_score(metrics)
        subscores = expense_subscores(metrics) if has_history else {}
    else:
        swaps = await fetch_swap_history(session, user_id)
        metrics = extract_task_metrics(obligations, swaps, uid)
        has_history = has_task_history(metrics)
        score = calculate_task_score(metrics)
        subscores = task_subscores(metrics) if has_history else {}

    if not has_history:
        logger.info("User %s has no %s history in group %s; neutral score", uid, domain, group_id)

    outstanding = outstanding_by_currency(obligations)
    return ScoreResult(
        user_id=uid,
        domain=domain,
        status=ResultStatus.OK if has_history else ResultStatus.INSUFFICIENT_DATA,
        score=score,
        subscores=subscores,
        metrics=metrics,
        outstanding_amount=single_currency_total(outstanding),
        outstanding_by_currency=outstanding,
    )


async def compute_group_performance(
    group_id: IdLike,
    domain: Domain | str,
    *,
    session_factory: SessionFactory = get_session,
    now: datetime | None = None,
) -> list[MemberPerformance]:
    """Score every member of a household, best first.

    Members are scored concurrently, each in its own session, with at most
    ``settings.max_concurrent_reads`` in flight.  The first member to fail
    cancels the rest and its exception is re-raised.

    Args:
        group_id: The household.
        domain: ``"expense"`` or ``"task"``.
        session_factory: Returns an async context manager yielding a session.
        now: Reference time shared by every member's score.

    Returns:
        One :class:`MemberPerformance` per member, sorted by score
        descending; equal scores keep membership order.
    """
    domain = Domain(domain)
    now = now or datetime.now(timezone.utc)

    async with session_factory() as session:
        member_ids = await fetch_group_member_ids(session, group_id)
        profiles = await fetch_user_profiles(session, member_ids)

    if not member_ids:
        logger.info("Group %s has no members", group_id)
        return []

    semaphore = asyncio.Semaphore(settings.max_concurrent_reads)

    async def _score(member_id: str) -> ScoreResult:
        async with semaphore:
            async with session_factory() as member_session:
                return await compute_user_score(
                    member_session, member_id, group_id, domain, now=now
                )

    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(_score(member_id)) for member_id in member_ids]
    except ExceptionGroup as failures:
        raise failures.exceptions[0]
    results = [task.result() for task in tasks]

    rows = []
    for result in results:
        profile = profiles.get(result.user_id, UserProfile(id=result.user_id))
        rows.append(
            MemberPerformance(
                user_id=result.user_id,
                name=profile.name,
                avatar_url=profile.avatar_url,
                score=result.score,
                status=result.status,
                metrics=result.metrics,
            )
        )
    rows.sort(key=lambda row: row.score, reverse=True)

    logger.info("Scored %d members of group %s (%s)", len(rows), group_id, domain)
    return rows


async def compute_roommate_score(
    session: AsyncSession,
    user_id: IdLike,
    group_id: IdLike,
    *,
    now: datetime | None = None,
) -> RoommateScore:
    """Blend a user's expense and task scores into one roommate score.

    A domain with no history contributes the neutral score instead of
    dragging the blend down.
    """
    payment = await compute_user_score(session, user_id, group_id, Domain.EXPENSE, now=now)
    task = await compute_user_score(session, user_id, group_id, Domain.TASK, now=now)

    for part in (payment, task):
        if part.status == ResultStatus.INSUFFICIENT_DATA:
            logger.warning(
                "Roommate score for %s: no %s history, using neutral %d",
                part.user_id,
                part.domain,
                part.score,
            )

    return RoommateScore(
        user_id=str(user_id),
        score=calculate_roommate_score(payment.score, task.score),
        payment_score=payment.score,
        task_score=task.score,
        response_score=RESPONSE_SCORE,
        outstanding_amount=payment.outstanding_amount,
    )
