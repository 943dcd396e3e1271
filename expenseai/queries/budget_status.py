"""
Budget Status Tracker

DESIGN DECISION: Budget progress is computed from stored expenses every
time it is asked for. Nothing is cached, so a new expense is reflected on
the next read without any bookkeeping.

Each budget is measured over the period window containing "today":
- weekly: Monday..Sunday
- monthly: the calendar month
- yearly: the calendar year
"""

from datetime import date
from typing import Optional

from expenseai.models.finance import (
    ALL_CATEGORIES_NAME,
    UNCATEGORIZED_NAME,
    Budget,
    BudgetHealth,
    BudgetPeriod,
    BudgetStatus,
    period_bounds,
)
from expenseai.services.storage import ExpenseStorageInterface


NEAR_LIMIT_PERCENTAGE = 80.0


def budget_health(spent: float, amount: float, percentage: float) -> BudgetHealth:
    if spent > amount:
        return BudgetHealth.OVER_BUDGET
    if percentage >= NEAR_LIMIT_PERCENTAGE:
        return BudgetHealth.NEAR_LIMIT
    return BudgetHealth.ON_TRACK


def capped_percentage(spent: float, amount: float) -> float:
    if amount <= 0:
        return 100.0 if spent > 0 else 0.0
    return min(spent / amount * 100, 100.0)


class BudgetTracker:
    """
    Computes how far each active budget has progressed.

    Works against one storage backend for its whole lifetime; build a new
    tracker per request.
    """

    def __init__(self, storage: ExpenseStorageInterface):
        self._storage = storage

    async def get_budget_statuses(
        self,
        user_id: str,
        today: date,
        period: Optional[BudgetPeriod] = None,
    ) -> list[BudgetStatus]:
        """
        Progress of every budget active on `today`.

        Args:
            user_id: Owner of the budgets
            today: Reference day; picks the active budgets and the period window
            period: Only consider budgets of this period

        Returns:
            One BudgetStatus per active budget, in storage order (newest first)
        """
        budgets = [b for b in await self._storage.get_budgets_by_user(user_id) if b.is_active(today, period)]
        if not budgets:
            return []

        category_names = {c.id: c.name for c in await self._storage.get_categories()}
        return [
            await self._status_for(user_id, budget, today, category_names)
            for budget in budgets
        ]

    async def _status_for(
        self,
        user_id: str,
        budget: Budget,
        today: date,
        category_names: dict[str, str],
    ) -> BudgetStatus:
        window_start, window_end = period_bounds(budget.period, today)
        expenses = await self._storage.get_expenses_by_user_and_date_range(
            user_id, window_start, window_end
        )
        if budget.category_id is not None:
            expenses = [e for e in expenses if e.category_id == budget.category_id]
            category_name = category_names.get(budget.category_id, UNCATEGORIZED_NAME)
        else:
            category_name = ALL_CATEGORIES_NAME

        spent = sum(e.amount for e in expenses)
        percentage = capped_percentage(spent, budget.amount)
        return BudgetStatus(
            budget=budget,
            category_name=category_name,
            period_start=window_start,
            period_end=window_end,
            spent=spent,
            budget_amount=budget.amount,
            percentage=percentage,
            remaining=budget.amount - spent,
            exceeded_by=max(spent - budget.amount, 0.0),
            expense_count=len(expenses),
            status=budget_health(spent, budget.amount, percentage),
        )
