"""
Data Models Package

This package contains all Pydantic models used in the Household Finance system.
All data flowing through the system must conform to these schemas.
"""

from household_finance.models.records import (
    CATEGORIES,
    COLLECTIONS,
    EXPENSES,
    GOALS,
    INCOMES,
    INITIAL_BALANCE_KEY,
    USERS,
    Category,
    DateRange,
    Goal,
    HouseholdUser,
    ImportResult,
    InitialBalance,
    MonthlySummaryRow,
    PeriodSummary,
    Transaction,
    TransactionKind,
    UserTotals,
    ValidationIssue,
    ValidationResult,
)
from household_finance.models.forms import (
    CategoryForm,
    FormOutcome,
    GoalForm,
    InitialBalanceForm,
    TransactionForm,
    UserForm,
)

__all__ = [
    # Collections
    "CATEGORIES",
    "COLLECTIONS",
    "EXPENSES",
    "GOALS",
    "INCOMES",
    "INITIAL_BALANCE_KEY",
    "USERS",
    # Stored records
    "Category",
    "Goal",
    "HouseholdUser",
    "InitialBalance",
    "Transaction",
    "TransactionKind",
    # Derived models
    "DateRange",
    "ImportResult",
    "MonthlySummaryRow",
    "PeriodSummary",
    "UserTotals",
    "ValidationIssue",
    "ValidationResult",
    # Forms
    "CategoryForm",
    "FormOutcome",
    "GoalForm",
    "InitialBalanceForm",
    "TransactionForm",
    "UserForm",
]
