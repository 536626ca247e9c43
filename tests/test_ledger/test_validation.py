"""Tests for debt and settlement validation rules."""

from __future__ import annotations

from decimal import Decimal

from housemate.ledger.validation import (
    split_warnings,
    validate_debt_record,
    validate_settlement,
)

USER_A = "11111111-1111-1111-1111-111111111111"
USER_B = "22222222-2222-2222-2222-222222222222"


class TestValidateDebtRecord:
    """Tests for the validate_debt_record function."""

    def test_valid_debt(self) -> None:
        assert validate_debt_record(USER_A, USER_B, Decimal("10"), "USD") == []

    def test_zero_amount_is_valid(self) -> None:
        """A zero debt is allowed in; netting drops it later."""
        assert validate_debt_record(USER_A, USER_B, 0, "USD") == []

    def test_missing_parties(self) -> None:
        errors = validate_debt_record(None, "", Decimal("10"), "USD")
        assert any("debtor" in e for e in errors)
        assert any("creditor" in e for e in errors)

    def test_self_debt(self) -> None:
        errors = validate_debt_record(USER_A, USER_A, Decimal("10"), "USD")
        assert any("cannot owe themselves" in e for e in errors)

    def test_missing_amount(self) -> None:
        errors = validate_debt_record(USER_A, USER_B, None, "USD")
        assert any("missing an amount" in e for e in errors)

    def test_non_numeric_amount(self) -> None:
        errors = validate_debt_record(USER_A, USER_B, "ten", "USD")
        assert any("not a number" in e for e in errors)

    def test_negative_amount(self) -> None:
        errors = validate_debt_record(USER_A, USER_B, "-0.50", "USD")
        assert any("negative" in e for e in errors)

    def test_missing_currency_is_never_defaulted(self) -> None:
        errors = validate_debt_record(USER_A, USER_B, Decimal("10"), None)
        assert errors == ["Currency is required."]

    def test_bad_currency_code(self) -> None:
        errors = validate_debt_record(USER_A, USER_B, Decimal("10"), "DOLLARS")
        assert any("Unknown currency" in e for e in errors)

    def test_non_member_rejected(self) -> None:
        errors = validate_debt_record(USER_A, USER_B, Decimal("10"), "USD", member_ids={USER_A})
        assert errors == [f"User {USER_B} is not a member of this group."]

    def test_membership_skipped_without_member_set(self) -> None:
        assert validate_debt_record("ghost", USER_B, Decimal("10"), "USD") == []


class TestValidateSettlement:
    """Tests for the validate_settlement function."""

    def test_valid_settlement_no_outstanding(self) -> None:
        """A valid settlement with no balance context passes."""
        assert validate_settlement(Decimal("500"), USER_A, USER_B, "USD") == []

    def test_valid_settlement_within_outstanding(self) -> None:
        errors = validate_settlement(
            Decimal("100"), USER_A, USER_B, "USD", outstanding=Decimal("200")
        )
        assert errors == []

    def test_below_one_cent_fails(self) -> None:
        errors = validate_settlement(Decimal("0.001"), USER_A, USER_B, "USD")
        assert any("at least 0.01" in e for e in errors)

    def test_negative_amount_fails(self) -> None:
        errors = validate_settlement(Decimal("-50"), USER_A, USER_B, "USD")
        assert any("at least" in e for e in errors)

    def test_same_user_fails(self) -> None:
        errors = validate_settlement(Decimal("10"), USER_A, USER_A, "USD")
        assert any("different" in e for e in errors)

    def test_missing_currency_fails(self) -> None:
        errors = validate_settlement(Decimal("10"), USER_A, USER_B, "")
        assert "Currency is required." in errors

    def test_overpayment_is_warning(self) -> None:
        """Paying more than owed is allowed but flagged."""
        errors = validate_settlement(
            Decimal("300"), USER_A, USER_B, "USD", outstanding=Decimal("200")
        )
        hard, warnings = split_warnings(errors)
        assert hard == []
        assert len(warnings) == 1
        assert "exceeds" in warnings[0]

    def test_paying_with_nothing_owed_warns_of_credit(self) -> None:
        errors = validate_settlement(
            Decimal("50"), USER_A, USER_B, "USD", outstanding=Decimal("-20")
        )
        hard, warnings = split_warnings(errors)
        assert hard == []
        assert "does not currently owe" in warnings[0]

    def test_no_overpayment_check_for_invalid_amount(self) -> None:
        errors = validate_settlement(Decimal("0"), USER_A, USER_B, "USD", outstanding=Decimal("0"))
        _, warnings = split_warnings(errors)
        assert warnings == []


class TestSplitWarnings:
    """Tests for split_warnings."""

    def test_separates_prefixed_messages(self) -> None:
        hard, warnings = split_warnings(["bad", "WARNING: soft", "worse"])
        assert hard == ["bad", "worse"]
        assert warnings == ["WARNING: soft"]
