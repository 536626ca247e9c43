"""Tests for the typed records' boundary validation."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from housemate.errors import InvalidInputError
from housemate.models import Debt, ObligationRecord, Settlement

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


class TestDebt:
    """Tests for Debt construction."""

    def test_from_record_storage_keys(self) -> None:
        debt = Debt.from_record(
            {"from_user_id": "a", "to_user_id": "b", "amount": "12.5", "currency": "usd"}
        )
        assert debt == Debt(from_user="a", to_user="b", amount=Decimal("12.5"), currency="USD")

    def test_from_record_plain_keys(self) -> None:
        debt = Debt.from_record({"from_user": "a", "to_user": "b", "amount": 3, "currency": "EUR"})
        assert debt.amount == Decimal("3")

    def test_from_record_collects_every_problem(self) -> None:
        with pytest.raises(InvalidInputError) as exc_info:
            Debt.from_record({"from_user_id": "a", "to_user_id": "a", "amount": -1})
        errors = exc_info.value.errors
        assert any("owe themselves" in e for e in errors)
        assert any("negative" in e for e in errors)
        assert any("Currency is required" in e for e in errors)

    def test_from_record_checks_membership(self) -> None:
        with pytest.raises(InvalidInputError, match="not a member"):
            Debt.from_record(
                {"from_user_id": "a", "to_user_id": "x", "amount": 1, "currency": "USD"},
                member_ids={"a", "b"},
            )

    def test_invalid_input_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            Debt.from_record({"from_user_id": "a", "to_user_id": "b", "amount": 1})

    def test_direct_constructor_rejects_negative(self) -> None:
        with pytest.raises(ValidationError):
            Debt(from_user="a", to_user="b", amount=Decimal("-1"), currency="USD")


class TestSettlement:
    """Tests for Settlement construction."""

    def test_rejects_sub_cent_amount(self) -> None:
        with pytest.raises(ValidationError):
            Settlement(from_user="a", to_user="b", amount=Decimal("0.001"), currency="USD")

    def test_records_are_frozen(self) -> None:
        s = Settlement(from_user="a", to_user="b", amount=Decimal("1"), currency="USD")
        with pytest.raises(ValidationError):
            s.amount = Decimal("2")


class TestObligationRecord:
    """Tests for ObligationRecord invariants."""

    def test_completed_and_missed_is_invalid(self) -> None:
        with pytest.raises(ValidationError):
            ObligationRecord(id="t1", assigned_at=T0, completed=True, missed=True)

    def test_amount_requires_currency(self) -> None:
        with pytest.raises(ValidationError):
            ObligationRecord(id="s1", assigned_at=T0, amount=Decimal("5"))

    def test_currency_normalised(self) -> None:
        record = ObligationRecord(id="s1", assigned_at=T0, amount="5", currency="ils")
        assert record.currency == "ILS"
        assert record.amount == Decimal("5")
