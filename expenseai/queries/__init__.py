"""Budget tracking queries package."""

from expenseai.queries.budget_status import BudgetTracker

__all__ = ["BudgetTracker"]
