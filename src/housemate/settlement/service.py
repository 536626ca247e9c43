"""Settlement operations over a household's stored debts.

- :func:`simplify_debts` — fetch, validate, net, optimize, enrich
- :func:`record_settlement` — validate and persist one payment
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from housemate.errors import InvalidInputError
from housemate.ledger.repository import (
    IdLike,
    fetch_group_debts,
    fetch_group_member_ids,
    fetch_user_profiles,
    save_settlement,
)
from housemate.ledger.validation import split_warnings, validate_settlement
from housemate.models import ResultStatus, Settlement, SettlementPlan, UserProfile
from housemate.money import normalize_currency, round_cents, to_decimal
from housemate.settlement.netting import pairwise_outstanding, parse_debts
from housemate.settlement.optimizer import plan_settlements

logger = logging.getLogger(__name__)


async def simplify_debts(session: AsyncSession, group_id: IdLike) -> SettlementPlan:
    """Compute the settlement plan for a household.

    Every raw debt is validated before any computation.  Debts naming a
    user who is not a member of the group, or who has no profile, are
    rejected as unknown references.

    Args:
        session: Async database session.
        group_id: The household to settle.

    Returns:
        A :class:`SettlementPlan`.  With no outstanding debts the plan is
        empty and tagged ``INSUFFICIENT_DATA``.

    Raises:
        DataFetchError: If a storage query fails.
        InvalidInputError: If any stored debt is malformed.
    """
    records = await fetch_group_debts(session, group_id)
    if not records:
        logger.info("Group %s has no outstanding debts", group_id)
        return SettlementPlan(status=ResultStatus.INSUFFICIENT_DATA)

    member_ids = await fetch_group_member_ids(session, group_id)
    debts = parse_debts(records, set(member_ids))
    involved = list(dict.fromkeys(u for d in debts for u in (d.from_user, d.to_user)))
    profiles = await fetch_user_profiles(session, involved)

    unknown = [user for user in involved if user not in profiles]
    if unknown:
        raise InvalidInputError([f"Debt references unknown user {user}." for user in unknown])

    plan = plan_settlements(debts)
    logger.info(
        "Group %s: %d raw debts -> %d net -> %d settlements (optimized=%s, -%d%%)",
        group_id,
        len(debts),
        plan.stats.original_count,
        len(plan.settlements),
        plan.optimized,
        plan.stats.reduction_percent,
    )
    return enrich_plan(plan, profiles)


def enrich_plan(plan: SettlementPlan, profiles: dict[str, UserProfile]) -> SettlementPlan:
    """Attach display profiles to every settlement in *plan*.

    Users missing from *profiles* get a placeholder named ``"Unknown"``.
    """
    return plan.model_copy(
        update={"settlements": [_with_profiles(s, profiles) for s in plan.settlements]}
    )


def _with_profiles(settlement: Settlement, profiles: dict[str, UserProfile]) -> Settlement:
    return settlement.model_copy(
        update={
            "from_profile": profiles.get(settlement.from_user, UserProfile(id=settlement.from_user)),
            "to_profile": profiles.get(settlement.to_user, UserProfile(id=settlement.to_user)),
        }
    )


async def record_settlement(
    session: AsyncSession,
    *,
    group_id: IdLike,
    from_user: str,
    to_user: str,
    amount: Decimal | float | str,
    currency: str,
    payment_method: str = "cash",
    note: str = "",
) -> dict[str, Any]:
    """Validate and persist a payment from *from_user* to *to_user*.

    Paying more than is currently owed is allowed and reported as a warning;
    the excess is stored as a credit the recipient owes back.

    Args:
        session: Async database session (caller manages commit).
        group_id: The household.
        from_user: The paying user.
        to_user: The receiving user.
        amount: Payment amount; rounded half-up to the cent.
        currency: Three-letter currency code.
        payment_method: How the money moved.
        note: Optional free-text note.

    Returns:
        A dict with ``settlement_id``, ``shares_paid``, ``credit`` (the
        overpaid amount now owed back to *from_user*, zero if none) and
        ``warnings`` keys.

    Raises:
        InvalidInputError: If the payment fails validation.
        DataFetchError: If reading debts or writing the payment fails.
    """
    try:
        dec_amount = round_cents(to_decimal(amount))
    except ValueError as exc:
        raise InvalidInputError(str(exc)) from exc

    try:
        code = normalize_currency(currency)
    except ValueError as exc:
        raise InvalidInputError(str(exc)) from exc

    debts = parse_debts(await fetch_group_debts(session, group_id))
    outstanding = pairwise_outstanding(debts, from_user, to_user, code)

    hard_errors, warnings = split_warnings(
        validate_settlement(dec_amount, from_user, to_user, code, outstanding)
    )
    if hard_errors:
        raise InvalidInputError(hard_errors)
    for warning in warnings:
        logger.warning("Settlement %s -> %s: %s", from_user, to_user, warning)

    row, shares_paid, credit = await save_settlement(
        session,
        group_id=group_id,
        from_user=from_user,
        to_user=to_user,
        amount=dec_amount,
        currency=code,
        payment_method=payment_method,
        note=note,
    )
    logger.info(
        "Recorded settlement %s: %s paid %s %s %s (%d shares cleared)",
        row.id,
        from_user,
        to_user,
        code,
        dec_amount,
        shares_paid,
    )
    return {
        "settlement_id": str(row.id),
        "shares_paid": shares_paid,
        "credit": credit,
        "warnings": warnings,
    }
