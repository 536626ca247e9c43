"""Typed records passed between the storage layer and the core.

Provides:

- :class:`Debt` — one directional obligation (raw or netted).
- :class:`Settlement` / :class:`SettlementPlan` — the output of the debt
  simplifier.
- :class:`ObligationRecord` / :class:`SwapRecord` — historical events the
  performance scorer reads.
- :class:`ExpenseMetrics` / :class:`TaskMetrics` — aggregates extracted
  from those events.
- :class:`ScoreResult` / :class:`MemberPerformance` / :class:`RoommateScore`
  — scorer output.

Constructors validate invariants at the boundary (non-negative amounts,
three-letter currency codes).  All records are immutable.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from housemate.errors import InvalidInputError
from housemate.ledger.validation import validate_debt_record
from housemate.money import MIN_SETTLEMENT, ZERO, normalize_currency, to_decimal

# ── Enums ─────────────────────────────────────────────────────────────────────


class Domain(StrEnum):
    """Which kind of obligation a score is computed over."""

    EXPENSE = "expense"
    TASK = "task"


class ResultStatus(StrEnum):
    """Tag distinguishing a computed result from the neutral no-data path."""

    OK = "ok"
    INSUFFICIENT_DATA = "insufficient_data"


class SwapStatus(StrEnum):
    """Lifecycle states of a task swap request."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# ── Debts and settlements ─────────────────────────────────────────────────────


class UserProfile(BaseModel):
    """Display data for a user — used for enrichment only."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = "Unknown"
    avatar_url: str | None = None


class Debt(BaseModel):
    """``from_user`` owes ``to_user`` ``amount`` in ``currency``."""

    model_config = ConfigDict(frozen=True)

    from_user: str
    to_user: str
    amount: Decimal = Field(ge=0)
    currency: str

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> Any:
        return to_decimal(v) if isinstance(v, (int, float, str)) else v

    @field_validator("currency", mode="before")
    @classmethod
    def coerce_currency(cls, v: Any) -> str:
        return normalize_currency(v)

    @classmethod
    def from_record(
        cls,
        record: Mapping[str, Any],
        member_ids: Collection[str] | None = None,
    ) -> Debt:
        """Build a :class:`Debt` from a storage row.

        Accepts either ``from_user_id``/``to_user_id`` (storage naming) or
        ``from_user``/``to_user`` keys.

        Raises:
            InvalidInputError: If the row fails :func:`validate_debt_record`.
        """
        from_user = record.get("from_user_id", record.get("from_user"))
        to_user = record.get("to_user_id", record.get("to_user"))
        from_user = str(from_user) if from_user is not None else None
        to_user = str(to_user) if to_user is not None else None
        amount = record.get("amount")
        currency = record.get("currency")

        errors = validate_debt_record(from_user, to_user, amount, currency, member_ids)
        if errors:
            raise InvalidInputError(errors)
        return cls(from_user=from_user, to_user=to_user, amount=amount, currency=currency)


class Settlement(BaseModel):
    """One proposed payment from ``from_user`` to ``to_user``."""

    model_config = ConfigDict(frozen=True)

    from_user: str
    to_user: str
    amount: Decimal
    currency: str
    optimized: bool = False
    from_profile: UserProfile | None = None
    to_profile: UserProfile | None = None
    replaces: list[Debt] = Field(
        default_factory=list,
        description="Net debts this optimized payment stands in for.",
    )

    @field_validator("amount")
    @classmethod
    def at_least_one_cent(cls, v: Decimal) -> Decimal:
        if v < MIN_SETTLEMENT:
            raise ValueError(f"Settlement amount must be at least {MIN_SETTLEMENT}.")
        return v

    @field_validator("currency", mode="before")
    @classmethod
    def coerce_currency(cls, v: Any) -> str:
        return normalize_currency(v)


class SettlementStats(BaseModel):
    """How much the optimizer shrank the payment list."""

    model_config = ConfigDict(frozen=True)

    original_count: int = 0
    optimized_count: int = 0
    reduction_percent: int = 0


class SettlementPlan(BaseModel):
    """Result of simplifying a group's debts."""

    model_config = ConfigDict(frozen=True)

    status: ResultStatus = ResultStatus.OK
    settlements: list[Settlement] = Field(default_factory=list)
    optimized: bool = False
    stats: SettlementStats = Field(default_factory=SettlementStats)
    net_debts: list[Debt] = Field(
        default_factory=list,
        description="Pairwise net debts before balance-based optimization.",
    )


# ── Historical events ─────────────────────────────────────────────────────────


class ObligationRecord(BaseModel):
    """An expense share or a task assigned to a user.

    ``completed`` means paid (expense domain) or done (task domain).
    ``missed`` only exists in the task domain.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    assigned_at: datetime
    due_at: datetime | None = None
    completed_at: datetime | None = None
    completed: bool = False
    missed: bool = False
    amount: Decimal | None = Field(default=None, ge=0)
    currency: str | None = None
    verified_issues: int = Field(default=0, ge=0)

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> Any:
        return to_decimal(v) if isinstance(v, (int, float, str)) else v

    @field_validator("currency", mode="before")
    @classmethod
    def coerce_currency(cls, v: Any) -> str | None:
        return None if v is None else normalize_currency(v)

    @model_validator(mode="after")
    def check_state(self) -> ObligationRecord:
        if self.completed and self.missed:
            raise ValueError(f"Obligation {self.id} cannot be both completed and missed.")
        if self.amount is not None and self.currency is None:
            raise ValueError(f"Obligation {self.id} has an amount but no currency.")
        return self


class SwapRecord(BaseModel):
    """One task swap request involving a user."""

    model_config = ConfigDict(frozen=True)

    requester_id: str
    requested_id: str
    status: SwapStatus


# ── Metrics ───────────────────────────────────────────────────────────────────


class ExpenseMetrics(BaseModel):
    """Payment behaviour aggregated over a user's expense shares."""

    model_config = ConfigDict(frozen=True)

    total_shares: int = 0
    paid_shares: int = 0
    unpaid_shares: int = 0
    payment_rate: float = 100.0
    promptness_rate: float = 0.0
    avg_payment_days: float = 0.0
    contributed_expenses: int = 0
    total_contributed_amount: Decimal = ZERO
    initiated_settlements: int = 0
    last_payment_at: datetime | None = None


class TaskMetrics(BaseModel):
    """Task behaviour aggregated over a user's tasks and swap history."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    completed: int = 0
    missed: int = 0
    swapped: int = 0
    issues: int = 0
    on_time_percentage: int = 100
    initiated_swaps: int = 0
    initiated_accepted: int = 0
    initiated_rejected: int = 0
    received_swaps: int = 0
    swap_accept_rate: float = 100.0
    helpfulness: float = 50.0


# ── Scores ────────────────────────────────────────────────────────────────────


class ScoreResult(BaseModel):
    """A user's 0–100 score in one domain with its weighted parts."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    domain: Domain
    status: ResultStatus = ResultStatus.OK
    score: int = Field(ge=0, le=100)
    subscores: dict[str, float] = Field(default_factory=dict)
    metrics: ExpenseMetrics | TaskMetrics
    outstanding_amount: Decimal | None = Field(
        default=ZERO,
        description="Unpaid total; None when it spans several currencies.",
    )
    outstanding_by_currency: dict[str, Decimal] = Field(default_factory=dict)


class MemberPerformance(BaseModel):
    """One row of a group leaderboard."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    name: str = "Unknown"
    avatar_url: str | None = None
    score: int = Field(ge=0, le=100)
    status: ResultStatus = ResultStatus.OK
    metrics: ExpenseMetrics | TaskMetrics


class RoommateScore(BaseModel):
    """Blend of payment, task and responsiveness scores for one roommate."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    score: int = Field(ge=0, le=100)
    payment_score: int = Field(ge=0, le=100)
    task_score: int = Field(ge=0, le=100)
    response_score: int = Field(ge=0, le=100)
    outstanding_amount: Decimal | None = ZERO
