"""
Tests for form validation.
"""

import pytest
from datetime import date
from decimal import Decimal

from household_finance.models.forms import (
    CategoryForm,
    GoalForm,
    InitialBalanceForm,
    TransactionForm,
    UserForm,
)
from household_finance.models.records import TransactionKind
from household_finance.validation import FormValidationError, FormValidator
from household_finance.validation.validator import (
    MSG_FILL_ALL_FIELDS,
    MSG_INITIAL_BALANCE_INVALID,
    MSG_INVALID_AMOUNT,
    MSG_INVALID_DATE,
    MSG_INVALID_GOAL_AMOUNTS,
    MSG_TOO_LONG,
)


@pytest.fixture
def validator() -> FormValidator:
    return FormValidator("household")


def transaction_form(**overrides) -> TransactionForm:
    values = dict(
        description="Groceries",
        amount="85.40",
        category="Food",
        transaction_user="Alice",
        date="2024-01-20",
    )
    values.update(overrides)
    return TransactionForm(**values)


class TestTransactionValidation:
    """Tests for income and expense forms."""

    def test_valid_form_builds_transaction(self, validator):
        """Test a complete form becomes a stored record."""
        transaction = validator.build_transaction(transaction_form(), TransactionKind.EXPENSE)

        assert transaction.group_id == "household"
        assert transaction.amount == Decimal("85.40")
        assert transaction.date == date(2024, 1, 20)
        assert transaction.kind is TransactionKind.EXPENSE

    @pytest.mark.parametrize("amount", ["0", "-5", "0,00"])
    def test_non_positive_amount_rejected(self, validator, amount):
        """Test that zero and negative amounts never reach the store."""
        result = validator.validate_transaction(transaction_form(amount=amount))
        assert not result.is_valid
        assert result.message == MSG_INVALID_AMOUNT
        with pytest.raises(FormValidationError):
            validator.build_transaction(transaction_form(amount=amount), TransactionKind.INCOME)

    def test_non_numeric_amount_rejected(self, validator):
        """Test that text in the amount field is rejected."""
        result = validator.validate_transaction(transaction_form(amount="lots"))
        assert result.issues[0].issue_type == "not_numeric"

    def test_comma_amount_accepted(self, validator):
        """Test a decimal comma in the amount field."""
        transaction = validator.build_transaction(transaction_form(amount="12,5"), TransactionKind.INCOME)
        assert transaction.amount == Decimal("12.5")

    def test_blank_fields_reported_together(self, validator):
        """Test that missing fields are the only thing reported."""
        result = validator.validate_transaction(
            transaction_form(category=" ", transaction_user="", amount="abc")
        )
        assert result.message == MSG_FILL_ALL_FIELDS
        assert {issue.field for issue in result.issues} == {"category", "transaction_user"}

    def test_exponent_amount_rejected(self, validator):
        """Test that amounts must be written as plain decimals."""
        result = validator.validate_transaction(transaction_form(amount="1e999999"))
        assert result.issues[0].issue_type == "not_numeric"

    def test_description_too_long(self, validator):
        """Test the description limit is checked before building the record."""
        form = transaction_form(description="x" * 501)
        result = validator.validate_transaction(form)

        assert result.issues[0].issue_type == "too_long"
        assert result.message == MSG_TOO_LONG.format(label="Description", limit=500)
        with pytest.raises(FormValidationError):
            validator.build_transaction(form, TransactionKind.INCOME)

    def test_description_at_limit_accepted(self, validator):
        """Test a description of exactly the maximum length."""
        transaction = validator.build_transaction(
            transaction_form(description="x" * 500), TransactionKind.INCOME,
        )
        assert len(transaction.description) == 500

    def test_invalid_date_rejected(self, validator):
        """Test that dates must be ISO calendar dates."""
        result = validator.validate_transaction(transaction_form(date="2024-02-30"))
        assert result.message == MSG_INVALID_DATE

    def test_error_carries_result(self, validator):
        """Test that the raised error exposes the validation result."""
        with pytest.raises(FormValidationError) as excinfo:
            validator.build_transaction(transaction_form(amount="-5"), TransactionKind.EXPENSE)
        assert excinfo.value.result.form == "transaction"
        assert str(excinfo.value) == MSG_INVALID_AMOUNT


class TestGoalValidation:
    """Tests for savings goal forms."""

    def goal_form(self, **overrides) -> GoalForm:
        values = dict(name="Trip", target_amount="1000", current_amount="0", due_date="2024-12-01")
        values.update(overrides)
        return GoalForm(**values)

    def test_valid_goal(self, validator):
        """Test that a zero current amount is allowed."""
        goal = validator.build_goal(self.goal_form())
        assert goal.current_amount == Decimal("0")
        assert goal.due_date == date(2024, 12, 1)

    @pytest.mark.parametrize(
        "overrides",
        [{"target_amount": "0"}, {"target_amount": "-10"}, {"current_amount": "-1"}],
    )
    def test_out_of_range_amounts(self, validator, overrides):
        """Test target must be positive and current non-negative."""
        result = validator.validate_goal(self.goal_form(**overrides))
        assert result.message == MSG_INVALID_GOAL_AMOUNTS

    def test_goal_name_too_long(self, validator):
        """Test the goal name limit."""
        with pytest.raises(FormValidationError) as excinfo:
            validator.build_goal(self.goal_form(name="g" * 201))
        assert excinfo.value.result.issues[0].field == "name"

    def test_blank_goal_fields(self, validator):
        """Test that a goal without a due date is incomplete."""
        result = validator.validate_goal(self.goal_form(due_date=""))
        assert result.message == MSG_FILL_ALL_FIELDS


class TestOtherForms:
    """Tests for category, user and initial balance forms."""

    def test_category(self, validator):
        """Test a category for expenses."""
        category = validator.build_category(CategoryForm(name="Rent", applies_to="expense"))
        assert category.applies_to is TransactionKind.EXPENSE

    def test_category_unknown_kind(self, validator):
        """Test that categories must apply to income or expense."""
        result = validator.validate_category(CategoryForm(name="Rent", applies_to="savings"))
        assert result.issues[0].field == "applies_to"

    def test_blank_user(self, validator):
        """Test that a user label cannot be blank."""
        with pytest.raises(FormValidationError):
            validator.build_user(UserForm(name="  "))

    @pytest.mark.parametrize(
        "build, form",
        [
            ("build_user", UserForm(name="y" * 101)),
            ("build_category", CategoryForm(name="c" * 101, applies_to="income")),
        ],
    )
    def test_names_too_long(self, validator, build, form):
        """Test that user and category names over the limit are rejected."""
        with pytest.raises(FormValidationError) as excinfo:
            getattr(validator, build)(form)
        assert excinfo.value.result.issues[0].issue_type == "too_long"

    def test_record_rejection_becomes_form_error(self):
        """Test that a value only the record rejects is still a form error."""
        with pytest.raises(FormValidationError) as excinfo:
            FormValidator("").build_user(UserForm(name="Bob"))
        assert excinfo.value.result.issues[0].issue_type == "invalid_value"
        assert excinfo.value.result.issues[0].field == "group_id"

    def test_initial_balance_may_be_negative(self, validator):
        """Test that any finite number is a valid starting balance."""
        balance = validator.build_initial_balance(InitialBalanceForm(amount="-150,25"))
        assert balance.amount == Decimal("-150.25")

    def test_initial_balance_not_numeric(self, validator):
        """Test that the starting balance must be a number."""
        result = validator.validate_initial_balance(InitialBalanceForm(amount="ten"))
        assert result.message == MSG_INITIAL_BALANCE_INVALID


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
