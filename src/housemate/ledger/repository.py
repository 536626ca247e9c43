"""Database repository for household debts, obligations and settlements.

Provides the async query functions the core consumes:

- :func:`fetch_group_debts` — raw pairwise debts from unpaid expense shares
- :func:`fetch_group_member_ids` — members of a household
- :func:`fetch_user_obligations` — expense shares or tasks of one user
- :func:`fetch_contributed_amounts` — expenses a user paid for
- :func:`fetch_swap_history` — task swap requests involving a user
- :func:`fetch_user_profiles` — display data for result enrichment

and one write:

- :func:`save_settlement` — record a payment and mark covered shares paid

Any :class:`~sqlalchemy.exc.SQLAlchemyError` is logged and re-raised as
:class:`~housemate.errors.DataFetchError`.  Nothing here retries.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.engine import Result
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.expression import Executable

from housemate.errors import DataFetchError, InvalidInputError
from housemate.ledger.models import (
    Expense,
    ExpenseSettlement,
    ExpenseShare,
    GroupMember,
    Profile,
    Task,
    TaskIssue,
    TaskSwapRequest,
)
from housemate.models import Domain, ObligationRecord, SwapRecord, SwapStatus, UserProfile
from housemate.money import ZERO

logger = logging.getLogger(__name__)

IdLike = uuid.UUID | str


def _as_uuid(value: IdLike) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError as exc:
        raise InvalidInputError(f"Not a valid ID: {value!r}.") from exc


async def _execute(session: AsyncSession, stmt: Executable, what: str) -> Result[Any]:
    """Run *stmt*, translating driver errors into :class:`DataFetchError`."""
    try:
        return await session.execute(stmt)
    except SQLAlchemyError as exc:
        logger.exception("Query failed: %s", what)
        raise DataFetchError(f"Failed to {what}.") from exc


# ── Debts ────────────────────────────────────────────────────────────────────


async def fetch_group_debts(
    session: AsyncSession,
    group_id: IdLike,
) -> list[dict[str, Any]]:
    """Return every outstanding share in a group as a raw debt row.

    An unpaid share means its holder owes the expense's payer.  Shares the
    payer holds on their own expense are not debts and are skipped.

    Args:
        session: Active async database session.
        group_id: The household to read.

    Returns:
        Dicts with ``from_user_id``, ``to_user_id``, ``amount`` and
        ``currency`` keys, oldest share first.  Rows are returned as stored;
        validation happens in the core.
    """
    stmt = (
        select(
            ExpenseShare.user_id,
            Expense.created_by,
            ExpenseShare.amount,
            Expense.currency,
        )
        .join(Expense, ExpenseShare.expense_id == Expense.id)
        .where(
            Expense.group_id == _as_uuid(group_id),
            ExpenseShare.paid.is_(False),
            ExpenseShare.user_id != Expense.created_by,
        )
        .order_by(ExpenseShare.created_at)
    )
    result = await _execute(session, stmt, "fetch group debts")
    return [
        {
            "from_user_id": str(debtor),
            "to_user_id": str(creditor),
            "amount": amount,
            "currency": currency,
        }
        for debtor, creditor, amount, currency in result.all()
    ]


async def fetch_group_member_ids(session: AsyncSession, group_id: IdLike) -> list[str]:
    """Return the user IDs of a household's members in join order."""
    stmt = (
        select(GroupMember.user_id)
        .where(GroupMember.group_id == _as_uuid(group_id))
        .order_by(GroupMember.joined_at)
    )
    result = await _execute(session, stmt, "fetch group members")
    return [str(user_id) for user_id in result.scalars().all()]


# ── Obligations ──────────────────────────────────────────────────────────────


async def fetch_user_obligations(
    session: AsyncSession,
    user_id: IdLike,
    group_id: IdLike,
    domain: Domain,
) -> list[ObligationRecord]:
    """Return the obligations assigned to a user within a household.

    Args:
        session: Active async database session.
        user_id: Whose obligations to load.
        group_id: The household to read.
        domain: ``EXPENSE`` loads expense shares (assigned when the expense
            was created, completed when paid); ``TASK`` loads tasks along
            with how many verified issues each has.

    Returns:
        A list of :class:`ObligationRecord` ordered oldest first.
    """
    if domain == Domain.EXPENSE:
        return await _fetch_expense_obligations(session, user_id, group_id)
    return await _fetch_task_obligations(session, user_id, group_id)


async def _fetch_expense_obligations(
    session: AsyncSession,
    user_id: IdLike,
    group_id: IdLike,
) -> list[ObligationRecord]:
    stmt = (
        select(ExpenseShare, Expense.created_at, Expense.currency)
        .join(Expense, ExpenseShare.expense_id == Expense.id)
        .where(
            ExpenseShare.user_id == _as_uuid(user_id),
            Expense.group_id == _as_uuid(group_id),
        )
        .order_by(ExpenseShare.created_at)
    )
    result = await _execute(session, stmt, "fetch expense shares")
    return [
        ObligationRecord(
            id=str(share.id),
            assigned_at=expense_created_at,
            due_at=share.due_date,
            completed_at=share.paid_at,
            completed=share.paid,
            amount=share.amount,
            currency=currency,
        )
        for share, expense_created_at, currency in result.all()
    ]


async def _fetch_task_obligations(
    session: AsyncSession,
    user_id: IdLike,
    group_id: IdLike,
) -> list[ObligationRecord]:
    verified_issues = (
        select(func.count(TaskIssue.id))
        .where(TaskIssue.task_id == Task.id, TaskIssue.status == "verified")
        .correlate(Task)
        .scalar_subquery()
    )
    stmt = (
        select(Task, verified_issues)
        .where(
            Task.assigned_to == _as_uuid(user_id),
            Task.group_id == _as_uuid(group_id),
        )
        .order_by(Task.created_at)
    )
    result = await _execute(session, stmt, "fetch tasks")
    return [
        ObligationRecord(
            id=str(task.id),
            assigned_at=task.created_at,
            due_at=task.due_date,
            completed_at=task.completed_at,
            completed=task.status == "completed",
            missed=task.status == "missed",
            verified_issues=issue_count or 0,
        )
        for task, issue_count in result.all()
    ]


async def fetch_contributed_amounts(
    session: AsyncSession,
    user_id: IdLike,
    group_id: IdLike,
) -> list[Decimal]:
    """Return the amounts of every expense *user_id* paid for in the group.

    Overpayment credits are not contributions and are left out.
    """
    stmt = (
        select(Expense.amount)
        .where(
            Expense.created_by == _as_uuid(user_id),
            Expense.group_id == _as_uuid(group_id),
            Expense.kind == "expense",
        )
        .order_by(Expense.created_at)
    )
    result = await _execute(session, stmt, "fetch contributed expenses")
    return list(result.scalars().all())


async def fetch_swap_history(session: AsyncSession, user_id: IdLike) -> list[SwapRecord]:
    """Return swap requests where the user is the requester or the one asked."""
    uid = _as_uuid(user_id)
    stmt = (
        select(TaskSwapRequest)
        .where(or_(TaskSwapRequest.requester_id == uid, TaskSwapRequest.requested_id == uid))
        .order_by(TaskSwapRequest.created_at)
    )
    result = await _execute(session, stmt, "fetch swap history")
    return [
        SwapRecord(
            requester_id=str(swap.requester_id),
            requested_id=str(swap.requested_id),
            status=SwapStatus(swap.status),
        )
        for swap in result.scalars().all()
    ]


# ── Profiles ─────────────────────────────────────────────────────────────────


async def fetch_user_profiles(
    session: AsyncSession,
    ids: Iterable[IdLike],
) -> dict[str, UserProfile]:
    """Return display profiles keyed by user ID (as a string).

    IDs with no profile row are simply absent from the result.
    """
    uuids = list(dict.fromkeys(_as_uuid(i) for i in ids))
    if not uuids:
        return {}

    stmt = select(Profile).where(Profile.id.in_(uuids))
    result = await _execute(session, stmt, "fetch user profiles")
    return {
        str(profile.id): UserProfile(
            id=str(profile.id),
            name=profile.full_name or "Unknown",
            avatar_url=profile.avatar_url,
        )
        for profile in result.scalars().all()
    }


# ── Settlement persistence ───────────────────────────────────────────────────


async def save_settlement(
    session: AsyncSession,
    *,
    group_id: IdLike,
    from_user: IdLike,
    to_user: IdLike,
    amount: Decimal,
    currency: str,
    payment_method: str = "cash",
    note: str = "",
) -> tuple[ExpenseSettlement, int, Decimal]:
    """Record a payment and apply it to the payer's oldest unpaid shares.

    Shares the payer owes the recipient in this group and currency are paid
    off oldest first.  A share fully covered is marked paid; the share the
    money runs out on keeps only its uncovered remainder.  Money left over
    once every share is paid is stored as a ``kind="credit"`` expense paid
    by *from_user* with one unpaid share for *to_user*, so the recipient
    owes it back.  The caller manages the commit, so the whole write is
    atomic.

    Args:
        session: Active async database session (caller manages commit).
        group_id: The household.
        from_user: The paying user.
        to_user: The receiving user.
        amount: Validated payment amount.
        currency: Validated three-letter currency code.
        payment_method: How the money moved (``"cash"``, ``"transfer"`` …).
        note: Optional free-text note.

    Returns:
        The new :class:`ExpenseSettlement` row (``id`` populated after flush),
        the number of shares marked fully paid, and the credit created (zero
        when the payment did not exceed the debt).
    """
    now = datetime.now(timezone.utc)
    stmt = (
        select(ExpenseShare)
        .join(Expense, ExpenseShare.expense_id == Expense.id)
        .where(
            ExpenseShare.user_id == _as_uuid(from_user),
            ExpenseShare.paid.is_(False),
            Expense.created_by == _as_uuid(to_user),
            Expense.group_id == _as_uuid(group_id),
            Expense.currency == currency,
        )
        .order_by(ExpenseShare.created_at)
    )
    result = await _execute(session, stmt, "load unpaid shares")

    remaining = amount
    shares_paid = 0
    for share in result.scalars().all():
        if remaining <= ZERO:
            break
        share.payment_method = payment_method
        share.settlement_note = note
        if share.amount <= remaining:
            share.paid = True
            share.paid_at = now
            remaining -= share.amount
            shares_paid += 1
        else:
            share.amount = share.amount - remaining
            remaining = ZERO

    if remaining > ZERO:
        credit = Expense(
            group_id=_as_uuid(group_id),
            created_by=_as_uuid(from_user),
            description=f"Overpayment credit: {note}" if note else "Overpayment credit",
            amount=remaining,
            currency=currency,
            kind="credit",
        )
        credit.shares.append(
            ExpenseShare(user_id=_as_uuid(to_user), amount=remaining, paid=False)
        )
        session.add(credit)
        logger.info(
            "Overpayment by %s: %s %s credited against %s", from_user, currency, remaining, to_user
        )

    settlement = ExpenseSettlement(
        group_id=_as_uuid(group_id),
        from_user_id=_as_uuid(from_user),
        to_user_id=_as_uuid(to_user),
        amount=amount,
        currency=currency,
        payment_method=payment_method,
        note=note,
        status="completed",
        completed_at=now,
    )
    session.add(settlement)
    try:
        await session.flush()
    except SQLAlchemyError as exc:
        logger.exception("Failed to save settlement %s -> %s", from_user, to_user)
        raise DataFetchError("Failed to save settlement.") from exc
    return settlement, shares_paid, remaining
