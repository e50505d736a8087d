"""Aggregation package."""

from household_finance.aggregation.engine import (
    MONTH_NAMES,
    default_summary_range,
    goal_progress,
    group_totals,
    merge_user_totals,
    month_key,
    month_label,
    monthly_summary,
    period_summary,
    sum_amounts,
)

__all__ = [
    "MONTH_NAMES",
    "default_summary_range",
    "goal_progress",
    "group_totals",
    "merge_user_totals",
    "month_key",
    "month_label",
    "monthly_summary",
    "period_summary",
    "sum_amounts",
]
