"""
Core Data Models for Household Finance

These models define the schemas for everything the shared workspace stores
and everything the aggregation layer derives from it.
They are designed to:
1. Enforce the record invariants at runtime (positive amounts, known kinds)
2. Provide clear validation error messages
3. Convert to and from store documents without losing precision

DESIGN DECISION: Money is always Decimal. Documents hold amounts as strings,
so a round trip through any backend never goes through float.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionKind(str, Enum):
    """
    Direction of a transaction.

    The sign of the amount never carries direction; the kind does.
    """
    INCOME = "income"
    EXPENSE = "expense"

    @property
    def collection(self) -> str:
        """Store collection holding transactions of this kind."""
        return INCOMES if self is TransactionKind.INCOME else EXPENSES


# Store collection names
INCOMES = "incomes"
EXPENSES = "expenses"
CATEGORIES = "categories"
GOALS = "goals"
USERS = "users"

COLLECTIONS = (INCOMES, EXPENSES, CATEGORIES, GOALS, USERS)

# Singleton settings keys
INITIAL_BALANCE_KEY = "initialBalance"

# Text field limits, shared with form validation
DESCRIPTION_MAX_LENGTH = 500
NAME_MAX_LENGTH = 100
GOAL_NAME_MAX_LENGTH = 200


class _StoredRecord(BaseModel):
    """Shared document conversion for everything kept in a collection."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = Field(
        default=None,
        description="Store-assigned document ID (None until persisted)"
    )
    group_id: str = Field(
        ...,
        min_length=1,
        description="Workspace the record belongs to"
    )

    def to_document(self) -> dict[str, Any]:
        """Convert to a JSON-safe store document (the ID lives outside it)."""
        return self.model_dump(mode="json", exclude={"id"})

    @classmethod
    def from_document(cls, record_id: str, document: dict[str, Any]):
        """Build a model from a store document and its ID."""
        return cls.model_validate({**document, "id": record_id})


# =============================================================================
# STORED RECORDS
# =============================================================================

class Transaction(_StoredRecord):
    """
    A single income or expense entry.

    Transactions are never edited in place: they are created by a form
    submission or an import, and removed by an explicit delete.
    """

    description: str = Field(
        default="",
        max_length=DESCRIPTION_MAX_LENGTH,
        description="Free-text description"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Positive amount; direction comes from kind"
    )
    category: str = Field(
        default="",
        description="Category name (empty is its own bucket)"
    )
    transaction_user: str = Field(
        default="",
        description="Household member the transaction is attributed to"
    )
    date: date
    kind: TransactionKind


class Category(_StoredRecord):
    """A named category offered for incomes or for expenses."""

    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH)
    applies_to: TransactionKind


class Goal(_StoredRecord):
    """
    A savings goal.

    current_amount is maintained by hand; nothing derives it from
    transactions, so progress can drift from the real balance.
    """

    name: str = Field(..., min_length=1, max_length=GOAL_NAME_MAX_LENGTH)
    target_amount: Decimal = Field(..., gt=0)
    current_amount: Decimal = Field(..., ge=0)
    due_date: date

    @property
    def progress_percent(self) -> Decimal:
        """Progress clamped to [0, 100] for display."""
        progress = self.current_amount / self.target_amount * 100
        return max(Decimal("0"), min(Decimal("100"), progress))


class HouseholdUser(_StoredRecord):
    """Display label used to attribute transactions, not a login identity."""

    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH)


class InitialBalance(BaseModel):
    """The workspace's starting balance, stored as a singleton."""

    amount: Decimal = Field(
        default=Decimal("0"),
        description="Starting balance; any sign"
    )

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_document(cls, document: Optional[dict[str, Any]]) -> "InitialBalance":
        """A missing singleton reads as a zero balance."""
        if not document or document.get("amount") in (None, ""):
            return cls()
        return cls.model_validate(document)


# =============================================================================
# DERIVED MODELS (aggregation output)
# =============================================================================

class DateRange(BaseModel):
    """Inclusive calendar window; unbounded by default."""

    start: date = date.min
    end: date = date.max

    @model_validator(mode='after')
    def validate_order(self) -> 'DateRange':
        if self.end < self.start:
            raise ValueError("Range end cannot be before start")
        return self

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


class MonthlySummaryRow(BaseModel):
    """One month of the overview table."""

    month_key: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    month_label: str
    incomes: Decimal
    expenses: Decimal
    balance: Decimal = Field(
        ...,
        description="Running balance after this month"
    )


class UserTotals(BaseModel):
    """Per-user chart entry."""

    name: str
    income_total: Decimal = Decimal("0")
    expense_total: Decimal = Decimal("0")


class PeriodSummary(BaseModel):
    """Totals and breakdowns over a date window."""

    date_range: DateRange
    initial_balance: Decimal
    total_incomes: Decimal
    total_expenses: Decimal
    current_balance: Decimal
    income_by_category: dict[str, Decimal] = Field(default_factory=dict)
    expense_by_category: dict[str, Decimal] = Field(default_factory=dict)
    income_by_user: dict[str, Decimal] = Field(default_factory=dict)
    expense_by_user: dict[str, Decimal] = Field(default_factory=dict)
    user_chart: list[UserTotals] = Field(default_factory=list)


class ImportResult(BaseModel):
    """Outcome of a committed CSV import."""

    accepted: int = Field(ge=0)
    skipped: int = Field(ge=0)
    imported_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def message(self) -> str:
        return f"{self.accepted} records imported successfully!"


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found in a form submission."""

    field: str = Field(
        ...,
        description="Form field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'not_numeric', 'out_of_range')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )


class ValidationResult(BaseModel):
    """Result of validating one form."""

    form: str
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues

    @property
    def message(self) -> str:
        """First issue, which is what the form shows."""
        return self.issues[0].message if self.issues else ""
