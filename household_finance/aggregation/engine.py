"""
Aggregation Engine

DESIGN DECISION: Aggregation is DETERMINISTIC and side-effect free.
Every view is recomputed from the full current snapshot of transactions,
so these functions take plain lists and return new models; they never
touch the store and never keep state between calls.

Two views are produced:
- Monthly summary: every transaction, bucketed by calendar month, with a
  running balance starting from the initial balance.
- Period summary: transactions inside a date window, with totals and
  breakdowns by category and by household member. The initial balance is
  always counted in full, whatever the window.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, Optional

from household_finance.models.records import (
    DateRange,
    Goal,
    MonthlySummaryRow,
    PeriodSummary,
    Transaction,
    TransactionKind,
    UserTotals,
)


ZERO = Decimal("0")

MONTH_NAMES = {
    "en": [
        "January", "February", "March", "April", "May", "June",
        "July", "August", "September", "October", "November", "December",
    ],
    "pt_BR": [
        "janeiro", "fevereiro", "março", "abril", "maio", "junho",
        "julho", "agosto", "setembro", "outubro", "novembro", "dezembro",
    ],
}

MONTH_LABEL_FORMATS = {
    "en": "{month} {year}",
    "pt_BR": "{month} de {year}",
}


def month_key(day: date) -> str:
    """Bucket key for a date; sorts chronologically as a string."""
    return day.strftime("%Y-%m")


def month_label(key: str, locale: str = "en") -> str:
    """Format a YYYY-MM key for display, e.g. 'January 2024'."""
    year, month = key.split("-")
    return MONTH_LABEL_FORMATS[locale].format(
        month=MONTH_NAMES[locale][int(month) - 1],
        year=year,
    )


def _split_by_kind(transactions: Iterable[Transaction]) -> tuple[list[Transaction], list[Transaction]]:
    incomes, expenses = [], []
    for transaction in transactions:
        if transaction.kind is TransactionKind.INCOME:
            incomes.append(transaction)
        else:
            expenses.append(transaction)
    return incomes, expenses


def sum_amounts(transactions: Iterable[Transaction]) -> Decimal:
    return sum((t.amount for t in transactions), ZERO)


def group_totals(
    transactions: Iterable[Transaction],
    key: Callable[[Transaction], str],
) -> dict[str, Decimal]:
    """
    Sum amounts per group key, in first-seen order.

    Blank keys are a bucket of their own rather than being dropped.
    """
    groups: dict[str, Decimal] = {}
    for transaction in transactions:
        group = key(transaction)
        groups[group] = groups.get(group, ZERO) + transaction.amount
    return groups


def merge_user_totals(
    income_by_user: dict[str, Decimal],
    expense_by_user: dict[str, Decimal],
) -> list[UserTotals]:
    """One chart entry per user seen on either side, zero where absent."""
    names = list(dict.fromkeys([*income_by_user, *expense_by_user]))
    return [
        UserTotals(
            name=name,
            income_total=income_by_user.get(name, ZERO),
            expense_total=expense_by_user.get(name, ZERO),
        )
        for name in names
    ]


def monthly_summary(
    transactions: Iterable[Transaction],
    initial_balance: Decimal,
    locale: str = "en",
) -> list[MonthlySummaryRow]:
    """
    Monthly incomes, expenses and running balance.

    Months without transactions are absent rather than zero-filled, so the
    balance of a row is the initial balance plus the net change of every
    month up to and including it that has data.
    """
    buckets: dict[str, dict[TransactionKind, Decimal]] = defaultdict(
        lambda: {TransactionKind.INCOME: ZERO, TransactionKind.EXPENSE: ZERO}
    )
    for transaction in transactions:
        buckets[month_key(transaction.date)][transaction.kind] += transaction.amount

    rows = []
    balance = initial_balance
    for key in sorted(buckets):
        incomes = buckets[key][TransactionKind.INCOME]
        expenses = buckets[key][TransactionKind.EXPENSE]
        balance += incomes - expenses
        rows.append(MonthlySummaryRow(
            month_key=key,
            month_label=month_label(key, locale),
            incomes=incomes,
            expenses=expenses,
            balance=balance,
        ))
    return rows


def period_summary(
    transactions: Iterable[Transaction],
    initial_balance: Decimal,
    date_range: Optional[DateRange] = None,
) -> PeriodSummary:
    """Totals and breakdowns over the inclusive window (unbounded by default)."""
    date_range = date_range or DateRange()
    incomes, expenses = _split_by_kind(
        t for t in transactions if date_range.contains(t.date)
    )

    total_incomes = sum_amounts(incomes)
    total_expenses = sum_amounts(expenses)
    income_by_user = group_totals(incomes, lambda t: t.transaction_user)
    expense_by_user = group_totals(expenses, lambda t: t.transaction_user)

    return PeriodSummary(
        date_range=date_range,
        initial_balance=initial_balance,
        total_incomes=total_incomes,
        total_expenses=total_expenses,
        current_balance=initial_balance + total_incomes - total_expenses,
        income_by_category=group_totals(incomes, lambda t: t.category),
        expense_by_category=group_totals(expenses, lambda t: t.category),
        income_by_user=income_by_user,
        expense_by_user=expense_by_user,
        user_chart=merge_user_totals(income_by_user, expense_by_user),
    )


def goal_progress(goal: Goal) -> Decimal:
    """Percent of the target reached, clamped to [0, 100]."""
    return goal.progress_percent


def default_summary_range(today: Optional[date] = None) -> DateRange:
    """Window the summary opens with: January 1st of this year to today."""
    today = today or date.today()
    return DateRange(start=date(today.year, 1, 1), end=today)
