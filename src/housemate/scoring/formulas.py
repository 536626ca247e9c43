"""Fixed-weight score formulas.

The weights below are part of the design, not configuration: changing any
of them changes what a score means.  Every formula returns an integer in
[0, 100]; a user with no history gets :data:`NEUTRAL_SCORE`.

Expense score::

    payment   = 0.7 * min(100, payment_rate) + 0.3 * min(100, promptness_rate)
    score     = 0.5 * payment + 0.3 * contribution + 0.2 * settlement_initiation

Task score::

    score = 0.40 * completion + 0.25 * on_time + 0.15 * helpfulness
          - 0.10 * miss_penalty - 0.10 * issue_penalty - 0.05 * swap_penalty
"""

from __future__ import annotations

from housemate.models import ExpenseMetrics, TaskMetrics
from housemate.money import round_half_up

# Absence of data is not poor performance.
NEUTRAL_SCORE = 50

# ── Expense weights ───────────────────────────────────────────────────────────

PAYMENT_WEIGHT = 0.5
CONTRIBUTION_WEIGHT = 0.3
SETTLEMENT_WEIGHT = 0.2

PAYMENT_RATE_WEIGHT = 0.7
PROMPTNESS_WEIGHT = 0.3

CONTRIBUTION_BASE = 50
CONTRIBUTION_PER_EXPENSE = 10
SETTLEMENT_BASE = 70
SETTLEMENT_PER_PAYMENT = 5

# ── Task weights ──────────────────────────────────────────────────────────────

COMPLETION_WEIGHT = 0.40
ON_TIME_WEIGHT = 0.25
HELPFULNESS_WEIGHT = 0.15
MISS_PENALTY_WEIGHT = 0.10
ISSUE_PENALTY_WEIGHT = 0.10
SWAP_PENALTY_WEIGHT = 0.05

# Swapping away up to 20% of tasks is free.
FREE_SWAP_RATIO = 0.20
SWAP_PENALTY_SCALE = 50


def clamp_score(raw: float) -> int:
    """Clamp to [0, 100] and round half-up to an integer."""
    return round_half_up(max(0.0, min(100.0, raw)))


# ── Expense ───────────────────────────────────────────────────────────────────


def has_expense_history(metrics: ExpenseMetrics) -> bool:
    return metrics.total_shares > 0 or metrics.contributed_expenses > 0


def expense_subscores(metrics: ExpenseMetrics) -> dict[str, float]:
    """Named components of the expense score, each on a 0–100 scale."""
    payment_rate = min(100.0, metrics.payment_rate)
    promptness = min(100.0, metrics.promptness_rate)

    contribution = float(CONTRIBUTION_BASE)
    if metrics.contributed_expenses > 0:
        contribution = min(
            100.0, CONTRIBUTION_BASE + metrics.contributed_expenses * CONTRIBUTION_PER_EXPENSE
        )

    settlement = float(NEUTRAL_SCORE)
    if metrics.initiated_settlements > 0:
        settlement = min(
            100.0, SETTLEMENT_BASE + metrics.initiated_settlements * SETTLEMENT_PER_PAYMENT
        )

    return {
        "payment_rate": payment_rate,
        "promptness_rate": promptness,
        "payment_responsibility": payment_rate * PAYMENT_RATE_WEIGHT
        + promptness * PROMPTNESS_WEIGHT,
        "contribution": contribution,
        "settlement_initiation": settlement,
    }


def calculate_expense_score(metrics: ExpenseMetrics) -> int:
    """Score payment reliability; :data:`NEUTRAL_SCORE` with no history."""
    if not has_expense_history(metrics):
        return NEUTRAL_SCORE

    parts = expense_subscores(metrics)
    return clamp_score(
        parts["payment_responsibility"] * PAYMENT_WEIGHT
        + parts["contribution"] * CONTRIBUTION_WEIGHT
        + parts["settlement_initiation"] * SETTLEMENT_WEIGHT
    )


# ── Task ──────────────────────────────────────────────────────────────────────


def has_task_history(metrics: TaskMetrics) -> bool:
    return metrics.total > 0


def task_subscores(metrics: TaskMetrics) -> dict[str, float]:
    """Named components of the task score.

    Verified issues discount completions, so a task done badly does not
    count as a clean completion.
    """
    total = metrics.total
    if total == 0:
        return {
            "completion": 0.0,
            "on_time": float(metrics.on_time_percentage),
            "helpfulness": metrics.helpfulness,
            "miss_penalty": 0.0,
            "issue_penalty": 0.0,
            "swap_penalty": 0.0,
        }

    completion = max(0, metrics.completed - metrics.issues) / total * 100
    miss_penalty = metrics.missed / total * 100
    issue_penalty = (metrics.issues / metrics.completed * 100) if metrics.completed > 0 else 0.0
    excessive_swap_ratio = max(0.0, metrics.swapped / total - FREE_SWAP_RATIO)

    return {
        "completion": completion,
        "on_time": float(metrics.on_time_percentage),
        "helpfulness": metrics.helpfulness,
        "miss_penalty": miss_penalty,
        "issue_penalty": issue_penalty,
        "swap_penalty": excessive_swap_ratio * SWAP_PENALTY_SCALE,
    }


def calculate_task_score(metrics: TaskMetrics) -> int:
    """Score task reliability; :data:`NEUTRAL_SCORE` with no tasks."""
    if not has_task_history(metrics):
        return NEUTRAL_SCORE

    parts = task_subscores(metrics)
    return clamp_score(
        parts["completion"] * COMPLETION_WEIGHT
        + parts["on_time"] * ON_TIME_WEIGHT
        + parts["helpfulness"] * HELPFULNESS_WEIGHT
        - parts["miss_penalty"] * MISS_PENALTY_WEIGHT
        - parts["issue_penalty"] * ISSUE_PENALTY_WEIGHT
        - parts["swap_penalty"] * SWAP_PENALTY_WEIGHT
    )


# ── Roommate blend ────────────────────────────────────────────────────────────

ROOMMATE_PAYMENT_WEIGHT = 0.5
ROOMMATE_TASK_WEIGHT = 0.3
ROOMMATE_RESPONSE_WEIGHT = 0.2

# Response times are not tracked; every roommate gets the same fixed value.
RESPONSE_SCORE = 90


def calculate_roommate_score(payment_score: int, task_score: int) -> int:
    """Blend an expense score and a task score into one roommate score."""
    return clamp_score(
        payment_score * ROOMMATE_PAYMENT_WEIGHT
        + task_score * ROOMMATE_TASK_WEIGHT
        + RESPONSE_SCORE * ROOMMATE_RESPONSE_WEIGHT
    )
