"""Currency and rounding helpers shared by the settlement and scoring code.

All money is :class:`~decimal.Decimal` with two fraction digits.  Values are
rounded half-up to the cent wherever they become user-facing, and any
difference smaller than :data:`EPSILON` is treated as zero.
"""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0")

# Differences below one cent are floating-point drift, not debt.
EPSILON = CENT

# Smallest settlement worth emitting.
MIN_SETTLEMENT = CENT

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Coerce *value* to a :class:`Decimal` without binary float artefacts.

    Floats go through ``str()`` first so ``0.1`` becomes ``Decimal("0.1")``
    rather than ``Decimal("0.1000000000000000055511151231257827")``.

    Raises:
        ValueError: If *value* cannot be parsed as a finite number.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValueError(f"Not a monetary amount: {value!r}")
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as exc:
            raise ValueError(f"Not a monetary amount: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    return result


def round_cents(amount: Decimal) -> Decimal:
    """Round half-up to two fraction digits."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def is_negligible(amount: Decimal) -> bool:
    """Return ``True`` if ``abs(amount)`` is below :data:`EPSILON`."""
    return abs(amount) < EPSILON


def round_half_up(value: float | Decimal) -> int:
    """Round to the nearest integer, halves away from zero.

    Python's :func:`round` uses banker's rounding (``round(2.5) == 2``);
    scores and day counts use the conventional rule instead.
    """
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def normalize_currency(code: str | None) -> str:
    """Return *code* upper-cased and stripped.

    Raises:
        ValueError: If the code is missing or not a three-letter alphabetic code.
    """
    if code is None or not str(code).strip():
        raise ValueError("Currency is required.")
    normalized = str(code).strip().upper()
    if not _CURRENCY_RE.match(normalized):
        raise ValueError(f"Unknown currency code: {code!r}.")
    return normalized
