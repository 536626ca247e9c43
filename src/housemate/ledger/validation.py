"""Debt and settlement validation rules.

Provides:

- :func:`validate_debt_record` — checks a raw debt row before it enters the
  debt graph.
- :func:`validate_settlement` — checks a proposed settlement before it is
  written to the ledger.

Validation errors are returned as a list of human-readable strings.
An empty list means the record is valid.  Callers turn a non-empty list of
hard errors into :class:`~housemate.errors.InvalidInputError`.
"""

from __future__ import annotations

from collections.abc import Collection
from decimal import Decimal

from housemate.money import MIN_SETTLEMENT, ZERO, normalize_currency, to_decimal

WARNING_PREFIX = "WARNING:"


def validate_debt_record(
    from_user: str | None,
    to_user: str | None,
    amount: Decimal | int | float | str | None,
    currency: str | None,
    member_ids: Collection[str] | None = None,
) -> list[str]:
    """Validate one raw pairwise debt.

    Args:
        from_user: ID of the user who owes.
        to_user: ID of the user who is owed.
        amount: Amount owed (must be a non-negative number).
        currency: Three-letter currency code.  Never defaulted.
        member_ids: Known group members.  When given, both users must be in it.

    Returns:
        A list of validation error strings.  Empty means valid.
    """
    errors: list[str] = []

    if not from_user:
        errors.append("Debt is missing the debtor (from_user).")
    if not to_user:
        errors.append("Debt is missing the creditor (to_user).")
    if from_user and to_user and from_user == to_user:
        errors.append(f"User {from_user} cannot owe themselves.")

    if amount is None:
        errors.append("Debt is missing an amount.")
    else:
        try:
            if to_decimal(amount) < ZERO:
                errors.append(f"Debt amount must not be negative (got {amount}).")
        except ValueError:
            errors.append(f"Debt amount is not a number: {amount!r}.")

    try:
        normalize_currency(currency)
    except ValueError as exc:
        errors.append(str(exc))

    if member_ids is not None:
        for user in (from_user, to_user):
            if user and user not in member_ids:
                errors.append(f"User {user} is not a member of this group.")

    return errors


def validate_settlement(
    amount: Decimal,
    from_user: str,
    to_user: str,
    currency: str | None,
    outstanding: Decimal | None = None,
) -> list[str]:
    """Validate a proposed settlement payment.

    Args:
        amount: The payment amount (must be at least one cent).
        from_user: ID of the paying user.
        to_user: ID of the receiving user.
        currency: Three-letter currency code of the payment.
        outstanding: What *from_user* currently owes *to_user* in this
            currency.  If provided, an overpayment warning is emitted but the
            settlement is still allowed.

    Returns:
        A list of validation error/warning strings.  Empty means valid.
        Strings starting with ``"WARNING:"`` are soft warnings — the
        settlement can still proceed.
    """
    errors: list[str] = []

    if amount < MIN_SETTLEMENT:
        errors.append(f"Settlement amount must be at least {MIN_SETTLEMENT}.")

    if from_user == to_user:
        errors.append("The payer and the recipient must be different users.")

    try:
        normalize_currency(currency)
    except ValueError as exc:
        errors.append(str(exc))

    if outstanding is not None and amount >= MIN_SETTLEMENT:
        _check_overpayment(errors, amount, outstanding)

    return errors


def split_warnings(messages: list[str]) -> tuple[list[str], list[str]]:
    """Separate hard errors from ``"WARNING:"`` soft warnings."""
    hard = [m for m in messages if not m.startswith(WARNING_PREFIX)]
    warnings = [m for m in messages if m.startswith(WARNING_PREFIX)]
    return hard, warnings


def _check_overpayment(
    errors: list[str],
    amount: Decimal,
    outstanding: Decimal,
) -> None:
    """Append a warning if the settlement exceeds what the payer owes."""
    debt = outstanding if outstanding > ZERO else ZERO

    if debt == ZERO:
        errors.append(
            f"{WARNING_PREFIX} The payer does not currently owe anything. "
            f"This settlement of {amount} will create a credit."
        )
    elif amount > debt:
        errors.append(
            f"{WARNING_PREFIX} Settlement amount ({amount}) exceeds the "
            f"outstanding balance ({debt}). The difference will "
            f"become a credit."
        )
