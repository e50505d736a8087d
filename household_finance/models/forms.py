"""
Form Models

Raw form input exactly as the user typed it. Everything is a string here;
parsing and checking happen in the validator, so a rejected form can be
handed back unchanged for the user to fix.
"""

from datetime import date
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field


def _today() -> str:
    return date.today().isoformat()


class TransactionForm(BaseModel):
    """Income or expense entry form."""

    description: str = ""
    amount: str = ""
    category: str = ""
    transaction_user: str = ""
    date: str = Field(default_factory=_today)


class CategoryForm(BaseModel):
    """New category form."""

    name: str = ""
    applies_to: str = "income"


class GoalForm(BaseModel):
    """New savings goal form."""

    name: str = ""
    target_amount: str = ""
    current_amount: str = ""
    due_date: str = ""


class UserForm(BaseModel):
    """New household member label form."""

    name: str = ""


class InitialBalanceForm(BaseModel):
    """Initial balance form."""

    amount: str = ""


FormT = TypeVar("FormT", bound=BaseModel)


class FormOutcome(BaseModel, Generic[FormT]):
    """
    What a form shows after a submission.

    On success the form comes back cleared; on any failure it comes back
    exactly as submitted so the user can retry.
    """

    success: bool
    message: str
    form: FormT
    record_id: Optional[str] = None
