"""Minimum-cash-flow settlement optimizer.

Works from aggregate per-user balances rather than pairwise net debts, which
is what lets it cancel multi-hop cycles (A owes B, B owes C, C owes A) that
pairwise netting leaves untouched.

Per currency:

1. Split users into creditors (balance >= 0.01) and debtors (balance <= -0.01).
2. Sort both queues by amount, largest first.  Ties keep balance order.
3. Repeatedly pay ``min(creditor, debtor)`` from the head debtor to the head
   creditor, dropping whichever side falls below one cent.

The queues are immutable tuples; each step returns new ones.  Greedy
largest-first matching is deterministic but not guaranteed globally minimal.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from decimal import Decimal
from operator import attrgetter

from housemate.models import Debt, ResultStatus, Settlement, SettlementPlan, SettlementStats
from housemate.money import MIN_SETTLEMENT, ZERO, is_negligible, round_cents, round_half_up
from housemate.settlement.netting import compute_balances, net_debts

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Party:
    """A creditor or debtor with the (positive) amount still to settle."""

    user_id: str
    amount: Decimal


Queue = tuple[_Party, ...]


def partition_balances(balances: Mapping[str, Decimal]) -> tuple[Queue, Queue]:
    """Return ``(creditors, debtors)`` sorted largest first.

    Users less than one cent from zero are dropped.  Debtor amounts are made
    positive.
    """
    creditors = [_Party(u, a) for u, a in balances.items() if a > ZERO and not is_negligible(a)]
    debtors = [_Party(u, -a) for u, a in balances.items() if a < ZERO and not is_negligible(a)]
    by_amount = attrgetter("amount")
    return (
        tuple(sorted(creditors, key=by_amount, reverse=True)),
        tuple(sorted(debtors, key=by_amount, reverse=True)),
    )


def _consume(queue: Queue, amount: Decimal) -> Queue:
    """Take *amount* off the head of *queue*, dropping it once exhausted."""
    head, rest = queue[0], queue[1:]
    if is_negligible(head.amount - amount):
        return rest
    return (replace(head, amount=head.amount - amount), *rest)


def _settle_step(
    creditors: Queue,
    debtors: Queue,
    currency: str,
) -> tuple[Settlement | None, Queue, Queue]:
    """Match the two queue heads once.

    Returns the payment (``None`` when it rounds below one cent) and the
    remaining queues.
    """
    creditor, debtor = creditors[0], debtors[0]
    amount = min(creditor.amount, debtor.amount)
    rounded = round_cents(amount)

    payment = None
    if rounded >= MIN_SETTLEMENT:
        payment = Settlement(
            from_user=debtor.user_id,
            to_user=creditor.user_id,
            amount=rounded,
            currency=currency,
            optimized=True,
        )
    return payment, _consume(creditors, amount), _consume(debtors, amount)


def optimize_currency(balances: Mapping[str, Decimal], currency: str) -> list[Settlement]:
    """Produce the greedy settlement list for one currency's balances."""
    creditors, debtors = partition_balances(balances)
    settlements: list[Settlement] = []
    while creditors and debtors:
        payment, creditors, debtors = _settle_step(creditors, debtors, currency)
        if payment is not None:
            settlements.append(payment)
    return settlements


def optimize_settlements(net: list[Debt]) -> list[Settlement]:
    """Run :func:`optimize_currency` independently for every currency in *net*."""
    settlements: list[Settlement] = []
    for currency, balances in compute_balances(net).items():
        per_currency = optimize_currency(balances, currency)
        logger.debug(
            "Optimized %s: %d users -> %d settlements",
            currency,
            len(balances),
            len(per_currency),
        )
        settlements.extend(per_currency)
    return settlements


def replaced_debts(settlement: Settlement, net: list[Debt]) -> list[Debt]:
    """Net debts an optimized payment stands in for.

    A net debt is replaced when it shares the payment's debtor but goes to a
    different creditor, or shares the creditor but comes from a different
    debtor.
    """
    return [
        debt
        for debt in net
        if debt.currency == settlement.currency
        and (
            (debt.from_user == settlement.from_user and debt.to_user != settlement.to_user)
            or (debt.to_user == settlement.to_user and debt.from_user != settlement.from_user)
        )
    ]


def settlement_stats(original_count: int, optimized_count: int) -> SettlementStats:
    """Build :class:`SettlementStats`; reduction is 0 when nothing was owed."""
    reduction = (
        round_half_up((1 - optimized_count / original_count) * 100) if original_count > 0 else 0
    )
    return SettlementStats(
        original_count=original_count,
        optimized_count=optimized_count,
        reduction_percent=reduction,
    )


def plan_settlements(debts: list[Debt]) -> SettlementPlan:
    """Net *debts*, optimize, and pick whichever list has fewer payments.

    Optimized settlements are returned only when they are strictly fewer
    than the net debts; otherwise the net debts themselves are the plan.
    An empty input is the neutral no-data result, not an error.
    """
    if not debts:
        return SettlementPlan(status=ResultStatus.INSUFFICIENT_DATA)

    net = net_debts(debts)
    optimized = optimize_settlements(net)
    use_optimized = len(optimized) < len(net)

    if use_optimized:
        settlements = [
            s.model_copy(update={"replaces": replaced_debts(s, net)}) for s in optimized
        ]
    else:
        settlements = [
            Settlement(
                from_user=d.from_user,
                to_user=d.to_user,
                amount=d.amount,
                currency=d.currency,
                optimized=False,
            )
            for d in net
        ]

    return SettlementPlan(
        settlements=settlements,
        optimized=use_optimized,
        stats=settlement_stats(len(net), len(optimized)),
        net_debts=net,
    )
