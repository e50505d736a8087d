"""
Form Validation

DESIGN DECISION: Validation is the gate in front of the store.
A form that fails validation never reaches a store call; the user sees
one message and keeps what they typed.

Each form is checked in two steps:

STEP 1 - PRESENCE:
- Every required field is filled in
- If anything is blank, report that alone (it is the most useful message)

STEP 2 - VALUES:
- Amounts parse as numbers and sit in their allowed range
- Dates are calendar dates
- Text fits the stored record's length limits
- Category kinds are income or expense

IMPORTANT: Validation NEVER silently fixes values. It reports them.
"""

from datetime import date
from decimal import Decimal
from typing import Callable, Optional, TypeVar

from pydantic import ValidationError

from household_finance.models.forms import (
    CategoryForm,
    GoalForm,
    InitialBalanceForm,
    TransactionForm,
    UserForm,
)
from household_finance.models.records import (
    DESCRIPTION_MAX_LENGTH,
    GOAL_NAME_MAX_LENGTH,
    NAME_MAX_LENGTH,
    Category,
    Goal,
    HouseholdUser,
    InitialBalance,
    Transaction,
    TransactionKind,
    ValidationIssue,
    ValidationResult,
)
from household_finance.transfer.csv_codec import parse_amount


MSG_FILL_ALL_FIELDS = "Please fill in all fields."
MSG_INVALID_AMOUNT = "Invalid amount. Please enter a positive number."
MSG_INVALID_DATE = "Invalid date. Please use the YYYY-MM-DD format."
MSG_INVALID_GOAL_AMOUNTS = (
    "Invalid values. Please enter a positive number for the goal amount "
    "and a non-negative number for the current amount."
)
MSG_CATEGORY_NAME = "Please enter the category name."
MSG_CATEGORY_KIND = "Category type must be income or expense."
MSG_USER_NAME = "Please enter the user name."
MSG_INITIAL_BALANCE_MISSING = "Please enter the initial balance amount."
MSG_INITIAL_BALANCE_INVALID = "Invalid amount. Please enter a number."
MSG_TOO_LONG = "{label} is too long (at most {limit} characters)."
MSG_INVALID_VALUES = "Invalid values. Please check the form."

RecordT = TypeVar("RecordT")


class FormValidationError(Exception):
    """A form submission was rejected before reaching the store."""

    def __init__(self, result: ValidationResult):
        self.result = result
        super().__init__(result.message)


def _blank(value: str) -> bool:
    return not value or not value.strip()


def _decimal_or_none(raw: str) -> Optional[Decimal]:
    try:
        return parse_amount(raw)
    except ValueError:
        return None


def _date_or_none(raw: str) -> Optional[date]:
    try:
        return date.fromisoformat(raw.strip())
    except ValueError:
        return None


def _missing(fields: list[str], message: str) -> list[ValidationIssue]:
    return [
        ValidationIssue(field=field, issue_type="missing", message=message)
        for field in fields
    ]


def _check_length(
    result: ValidationResult,
    field: str,
    label: str,
    value: str,
    limit: int,
) -> None:
    if len(value.strip()) > limit:
        result.issues.append(ValidationIssue(
            field=field,
            issue_type="too_long",
            message=MSG_TOO_LONG.format(label=label, limit=limit),
        ))


def _build(result: ValidationResult, factory: Callable[[], RecordT]) -> RecordT:
    """
    Build the record for a validated form.

    Raises:
        FormValidationError: If validation failed, or the record itself
            rejects a value the checks above did not cover
    """
    if not result.is_valid:
        raise FormValidationError(result)
    try:
        return factory()
    except ValidationError as e:
        for error in e.errors():
            result.issues.append(ValidationIssue(
                field=".".join(str(part) for part in error["loc"]) or result.form,
                issue_type="invalid_value",
                message=MSG_INVALID_VALUES,
            ))
        raise FormValidationError(result)


class FormValidator:
    """
    Validates form input and builds the records to store.

    The build_* methods raise FormValidationError; the validate_* methods
    only report.
    """

    def __init__(self, group_id: str):
        self._group_id = group_id

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def validate_transaction(self, form: TransactionForm) -> ValidationResult:
        result = ValidationResult(form="transaction")

        blank = [
            field for field in ("description", "amount", "category", "date", "transaction_user")
            if _blank(getattr(form, field))
        ]
        if blank:
            result.issues.extend(_missing(blank, MSG_FILL_ALL_FIELDS))
            return result

        amount = _decimal_or_none(form.amount)
        if amount is None:
            result.issues.append(ValidationIssue(
                field="amount", issue_type="not_numeric", message=MSG_INVALID_AMOUNT,
            ))
        elif amount <= 0:
            result.issues.append(ValidationIssue(
                field="amount", issue_type="out_of_range", message=MSG_INVALID_AMOUNT,
            ))

        if _date_or_none(form.date) is None:
            result.issues.append(ValidationIssue(
                field="date", issue_type="invalid_format", message=MSG_INVALID_DATE,
            ))

        _check_length(result, "description", "Description", form.description, DESCRIPTION_MAX_LENGTH)

        return result

    def build_transaction(self, form: TransactionForm, kind: TransactionKind) -> Transaction:
        return _build(self.validate_transaction(form), lambda: Transaction(
            group_id=self._group_id,
            description=form.description,
            amount=parse_amount(form.amount),
            category=form.category,
            transaction_user=form.transaction_user,
            date=date.fromisoformat(form.date.strip()),
            kind=kind,
        ))

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    def validate_category(self, form: CategoryForm) -> ValidationResult:
        result = ValidationResult(form="category")
        if _blank(form.name):
            result.issues.extend(_missing(["name"], MSG_CATEGORY_NAME))
            return result
        if form.applies_to not in {kind.value for kind in TransactionKind}:
            result.issues.append(ValidationIssue(
                field="applies_to", issue_type="invalid_value", message=MSG_CATEGORY_KIND,
            ))
        _check_length(result, "name", "Category name", form.name, NAME_MAX_LENGTH)
        return result

    def build_category(self, form: CategoryForm) -> Category:
        return _build(self.validate_category(form), lambda: Category(
            group_id=self._group_id,
            name=form.name,
            applies_to=TransactionKind(form.applies_to),
        ))

    # -------------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------------

    def validate_goal(self, form: GoalForm) -> ValidationResult:
        result = ValidationResult(form="goal")

        blank = [
            field for field in ("name", "target_amount", "current_amount", "due_date")
            if _blank(getattr(form, field))
        ]
        if blank:
            result.issues.extend(_missing(blank, MSG_FILL_ALL_FIELDS))
            return result

        target = _decimal_or_none(form.target_amount)
        current = _decimal_or_none(form.current_amount)
        if target is None or target <= 0:
            result.issues.append(ValidationIssue(
                field="target_amount", issue_type="out_of_range", message=MSG_INVALID_GOAL_AMOUNTS,
            ))
        if current is None or current < 0:
            result.issues.append(ValidationIssue(
                field="current_amount", issue_type="out_of_range", message=MSG_INVALID_GOAL_AMOUNTS,
            ))

        if _date_or_none(form.due_date) is None:
            result.issues.append(ValidationIssue(
                field="due_date", issue_type="invalid_format", message=MSG_INVALID_DATE,
            ))

        _check_length(result, "name", "Goal name", form.name, GOAL_NAME_MAX_LENGTH)

        return result

    def build_goal(self, form: GoalForm) -> Goal:
        return _build(self.validate_goal(form), lambda: Goal(
            group_id=self._group_id,
            name=form.name,
            target_amount=parse_amount(form.target_amount),
            current_amount=parse_amount(form.current_amount),
            due_date=date.fromisoformat(form.due_date.strip()),
        ))

    # -------------------------------------------------------------------------
    # Users and initial balance
    # -------------------------------------------------------------------------

    def validate_user(self, form: UserForm) -> ValidationResult:
        result = ValidationResult(form="user")
        if _blank(form.name):
            result.issues.extend(_missing(["name"], MSG_USER_NAME))
            return result
        _check_length(result, "name", "User name", form.name, NAME_MAX_LENGTH)
        return result

    def build_user(self, form: UserForm) -> HouseholdUser:
        return _build(self.validate_user(form), lambda: HouseholdUser(
            group_id=self._group_id,
            name=form.name,
        ))

    def validate_initial_balance(self, form: InitialBalanceForm) -> ValidationResult:
        result = ValidationResult(form="initial_balance")
        if _blank(form.amount):
            result.issues.extend(_missing(["amount"], MSG_INITIAL_BALANCE_MISSING))
        elif _decimal_or_none(form.amount) is None:
            result.issues.append(ValidationIssue(
                field="amount", issue_type="not_numeric", message=MSG_INITIAL_BALANCE_INVALID,
            ))
        return result

    def build_initial_balance(self, form: InitialBalanceForm) -> InitialBalance:
        return _build(self.validate_initial_balance(form), lambda: InitialBalance(
            amount=parse_amount(form.amount),
        ))
