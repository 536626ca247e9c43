"""Metric extraction from a user's obligation history.

Pure functions: the same records always yield the same metrics.  Nothing
here touches storage or caches results.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta
from decimal import Decimal

from housemate.models import ExpenseMetrics, ObligationRecord, SwapRecord, SwapStatus, TaskMetrics
from housemate.money import ZERO, round_half_up

_SECONDS_PER_DAY = 86_400


def days_to_complete(record: ObligationRecord) -> int | None:
    """Whole days (half-up) between assignment and completion, if completed."""
    if record.completed_at is None:
        return None
    elapsed = (record.completed_at - record.assigned_at).total_seconds()
    return round_half_up(elapsed / _SECONDS_PER_DAY)


def extract_expense_metrics(
    shares: Sequence[ObligationRecord],
    contributions: Iterable[Decimal] = (),
    *,
    now: datetime,
    grace_days: int = 3,
    recent_window_days: int = 30,
) -> ExpenseMetrics:
    """Aggregate payment behaviour over a user's expense shares.

    Args:
        shares: The user's shares; ``completed`` means paid.
        contributions: Amounts of expenses the user paid for the group.
        now: Reference time for the recent-payments window.
        grace_days: A share paid within this many days of its expense
            counts as prompt.
        recent_window_days: Payments newer than this count as initiated
            settlements.

    Returns:
        :class:`ExpenseMetrics`.  ``payment_rate`` is 100 with no shares;
        ``promptness_rate`` is 0 with no paid shares.
    """
    total = len(shares)
    paid = [s for s in shares if s.completed]
    paid_count = len(paid)

    payment_days = [d for d in (days_to_complete(s) for s in paid) if d is not None]
    prompt = sum(1 for d in payment_days if d <= grace_days)

    contributed = list(contributions)
    cutoff = now - timedelta(days=recent_window_days)
    paid_times = [s.completed_at for s in paid if s.completed_at is not None]

    return ExpenseMetrics(
        total_shares=total,
        paid_shares=paid_count,
        unpaid_shares=total - paid_count,
        payment_rate=(paid_count / total * 100) if total > 0 else 100.0,
        promptness_rate=(prompt / paid_count * 100) if paid_count > 0 else 0.0,
        avg_payment_days=(sum(payment_days) / paid_count) if paid_count > 0 else 0.0,
        contributed_expenses=len(contributed),
        total_contributed_amount=sum(contributed, ZERO),
        initiated_settlements=sum(1 for t in paid_times if t > cutoff),
        last_payment_at=max(paid_times, default=None),
    )


def is_on_time(record: ObligationRecord) -> bool:
    """A completion with no due date is on time by definition."""
    if record.completed_at is None or record.due_at is None:
        return True
    return record.completed_at <= record.due_at


def extract_task_metrics(
    tasks: Sequence[ObligationRecord],
    swaps: Iterable[SwapRecord],
    user_id: str,
) -> TaskMetrics:
    """Aggregate task behaviour over a user's tasks and swap history.

    ``swapped`` counts the user's own swap requests that were accepted (tasks
    they got out of); ``received_swaps`` counts requests from others the
    user accepted.  ``helpfulness`` rewards the latter relative to a quarter
    of the user's own load and is not capped.
    """
    total = len(tasks)
    completed = [t for t in tasks if t.completed]
    missed = sum(1 for t in tasks if t.missed)
    issues = sum(t.verified_issues for t in tasks)

    timed = [t for t in completed if t.completed_at is not None]
    on_time = sum(1 for t in timed if is_on_time(t))
    on_time_percentage = round_half_up(on_time / len(timed) * 100) if timed else 100

    swaps = list(swaps)
    initiated = [s for s in swaps if s.requester_id == user_id]
    initiated_accepted = sum(1 for s in initiated if s.status == SwapStatus.ACCEPTED)
    initiated_rejected = sum(1 for s in initiated if s.status == SwapStatus.REJECTED)
    received = sum(
        1 for s in swaps if s.requested_id == user_id and s.status == SwapStatus.ACCEPTED
    )

    return TaskMetrics(
        total=total,
        completed=len(completed),
        missed=missed,
        swapped=initiated_accepted,
        issues=issues,
        on_time_percentage=on_time_percentage,
        initiated_swaps=len(initiated),
        initiated_accepted=initiated_accepted,
        initiated_rejected=initiated_rejected,
        received_swaps=received,
        swap_accept_rate=(initiated_accepted / len(initiated) * 100) if initiated else 100.0,
        helpfulness=(received / max(1, total / 4) * 100) if total > 0 else 50.0,
    )


def outstanding_by_currency(shares: Iterable[ObligationRecord]) -> dict[str, Decimal]:
    """Sum unpaid share amounts per currency."""
    totals: dict[str, Decimal] = {}
    for share in shares:
        if share.completed or share.amount is None or share.currency is None:
            continue
        totals[share.currency] = totals.get(share.currency, ZERO) + share.amount
    return totals


def single_currency_total(totals: dict[str, Decimal]) -> Decimal | None:
    """Collapse a per-currency breakdown to one amount where that is meaningful.

    Zero with nothing outstanding, the sole amount with one currency, and
    ``None`` when amounts in different currencies would have to be added.
    """
    if len(totals) > 1:
        return None
    return next(iter(totals.values()), ZERO)
