"""Debt simplification.

- :func:`~housemate.settlement.optimizer.plan_settlements` — pure planner
  over already-validated debts.
- :func:`~housemate.settlement.service.simplify_debts` — load, validate and
  plan a household's debts.
"""

from housemate.settlement.optimizer import plan_settlements

__all__ = ["plan_settlements"]
