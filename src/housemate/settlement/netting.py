"""Debt-graph construction, pairwise netting and balance derivation.

Balances are **always derived** from the debt list, never stored.

Provides:

- :func:`parse_debts` — validate raw storage rows into :class:`Debt` records.
- :func:`build_debt_graph` — gross amount owed per (currency, debtor, creditor).
- :func:`net_debts` — cancel opposing debts so each pair keeps at most one
  directional debt per currency.
- :func:`compute_balances` — each user's signed position per currency.
- :func:`pairwise_outstanding` — what one user owes another after netting.

Netting alone does not cancel cycles spanning more than two people; that is
the optimizer's job (see :mod:`housemate.settlement.optimizer`).
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Collection, Iterable, Mapping
from decimal import Decimal
from typing import Any

from housemate.errors import InvalidInputError
from housemate.models import Debt
from housemate.money import MIN_SETTLEMENT, ZERO, round_cents

# currency -> (from_user, to_user) -> amount
DebtGraph = dict[str, dict[tuple[str, str], Decimal]]

# currency -> user -> signed balance (positive = is owed money)
Balances = dict[str, dict[str, Decimal]]


def parse_debts(
    records: Iterable[Mapping[str, Any]],
    member_ids: Collection[str] | None = None,
) -> list[Debt]:
    """Validate storage rows and convert them to :class:`Debt` records.

    Every row is checked before anything is returned, so a single bad row
    fails the whole batch.

    Raises:
        InvalidInputError: Carrying one message per problem, prefixed with
            the row index.
    """
    debts: list[Debt] = []
    errors: list[str] = []
    for index, record in enumerate(records):
        try:
            debts.append(Debt.from_record(record, member_ids))
        except InvalidInputError as exc:
            errors.extend(f"Debt #{index}: {message}" for message in exc.errors)
    if errors:
        raise InvalidInputError(errors)
    return debts


def build_debt_graph(debts: Iterable[Debt]) -> DebtGraph:
    """Sum raw debts per currency and directed pair.

    Duplicate debts between the same pair accumulate.  Iteration order of
    the result follows first appearance in *debts*.
    """
    graph: DebtGraph = {}
    for debt in debts:
        edges = graph.setdefault(debt.currency, {})
        key = (debt.from_user, debt.to_user)
        edges[key] = edges.get(key, ZERO) + debt.amount
    return graph


def net_debts(debts: Iterable[Debt]) -> list[Debt]:
    """Collapse opposing debts into one directional net debt per pair.

    For each currency and unordered pair ``{A, B}`` the net is
    ``sum(A→B) - sum(B→A)``.  The larger side keeps the difference rounded
    to the cent; pairs whose net rounds below one cent are settled and
    produce nothing.  Running this on its own output returns the same list.
    """
    result: list[Debt] = []
    for currency, edges in build_debt_graph(debts).items():
        visited: set[frozenset[str]] = set()
        for (a, b), forward in edges.items():
            pair = frozenset((a, b))
            if pair in visited:
                continue
            visited.add(pair)

            net = forward - edges.get((b, a), ZERO)
            amount = round_cents(abs(net))
            if amount < MIN_SETTLEMENT:
                continue
            debtor, creditor = (a, b) if net > 0 else (b, a)
            result.append(
                Debt(from_user=debtor, to_user=creditor, amount=amount, currency=currency)
            )
    return result


def compute_balances(debts: Iterable[Debt]) -> Balances:
    """Derive each user's signed balance per currency.

    Positive means the user is owed money, negative means they owe.
    Within a currency the balances always sum to zero.
    """
    balances: Balances = {}
    for debt in debts:
        per_user = balances.setdefault(debt.currency, {})
        per_user[debt.from_user] = per_user.get(debt.from_user, ZERO) - debt.amount
        per_user[debt.to_user] = per_user.get(debt.to_user, ZERO) + debt.amount
    return balances


def pairwise_outstanding(
    debts: Iterable[Debt],
    debtor: str,
    creditor: str,
    currency: str,
) -> Decimal:
    """Return how much *debtor* owes *creditor* in *currency* after netting.

    Returns:
        A signed :class:`~decimal.Decimal`:

        - **positive** → *debtor* owes *creditor*
        - **negative** → *creditor* owes *debtor*
        - **zero** → settled up
    """
    totals: dict[tuple[str, str], Decimal] = defaultdict(lambda: ZERO)
    for debt in debts:
        if debt.currency == currency:
            totals[(debt.from_user, debt.to_user)] += debt.amount
    return round_cents(totals[(debtor, creditor)] - totals[(creditor, debtor)])
