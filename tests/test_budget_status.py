"""
Tests for budget progress tracking.
"""

import pytest

from expenseai.models.finance import BudgetCreate, BudgetHealth, BudgetPeriod
from expenseai.queries import BudgetTracker
from expenseai.queries.budget_status import budget_health, capped_percentage

from conftest import FIXED_TODAY, category_named, make_expense


def march_budget(amount, category_id=None, period=BudgetPeriod.MONTHLY, start="2024-03-01", end="2024-03-31"):
    return BudgetCreate(
        amount=amount,
        category_id=category_id,
        period=period,
        start_date=start,
        end_date=end,
    )


class TestHealth:
    def test_thresholds(self):
        assert budget_health(6000, 5000, 100) == BudgetHealth.OVER_BUDGET
        assert budget_health(4000, 5000, 80) == BudgetHealth.NEAR_LIMIT
        assert budget_health(3999, 5000, 79.98) == BudgetHealth.ON_TRACK

    def test_exactly_at_budget_is_near_limit(self):
        assert budget_health(5000, 5000, 100) == BudgetHealth.NEAR_LIMIT

    def test_percentage_capped(self):
        assert capped_percentage(6000, 5000) == 100
        assert capped_percentage(2500, 5000) == 50
        assert capped_percentage(10, 0) == 100
        assert capped_percentage(0, 0) == 0


class TestBudgetTracker:
    """Tests for BudgetTracker against both backends."""

    async def test_over_budget(self, storage):
        """A 5000 all-category budget with 6000 spent, beside an untouched Travel budget."""
        travel = await category_named(storage, "Travel")
        await storage.create_budget("u1", march_budget(5000))
        await storage.create_budget("u1", march_budget(1000, category_id=travel.id))
        await storage.create_expense("u1", make_expense(amount=4000, day="2024-03-02"))
        await storage.create_expense("u1", make_expense(amount=2000, day="2024-03-18"))

        statuses = await BudgetTracker(storage).get_budget_statuses("u1", FIXED_TODAY)
        by_name = {s.category_name: s for s in statuses}
        assert set(by_name) == {"All Categories", "Travel"}
        assert by_name["Travel"].spent == 0
        assert by_name["Travel"].status == BudgetHealth.ON_TRACK

        status = by_name["All Categories"]
        assert status.category_name == "All Categories"
        assert status.spent == 6000
        assert status.status == BudgetHealth.OVER_BUDGET
        assert status.is_over_budget
        assert status.remaining == -1000
        assert status.exceeded_by == 1000
        assert status.percentage == 100
        assert status.expense_count == 2
        assert (status.period_start, status.period_end) == ("2024-03-01", "2024-03-31")

    async def test_near_limit(self, storage):
        await storage.create_budget("u1", march_budget(5000))
        await storage.create_expense("u1", make_expense(amount=4000))

        [status] = await BudgetTracker(storage).get_budget_statuses("u1", FIXED_TODAY)
        assert status.status == BudgetHealth.NEAR_LIMIT
        assert status.percentage == pytest.approx(80)
        assert status.exceeded_by == 0

    async def test_category_budget_counts_only_its_category(self, storage):
        food = await category_named(storage, "Food & Dining")
        travel = await category_named(storage, "Travel")
        await storage.create_budget("u1", march_budget(1000, category_id=food.id))
        await storage.create_expense("u1", make_expense(amount=300, category_id=food.id))
        await storage.create_expense("u1", make_expense(amount=900, category_id=travel.id))

        [status] = await BudgetTracker(storage).get_budget_statuses("u1", FIXED_TODAY)
        assert status.category_name == "Food & Dining"
        assert status.spent == 300
        assert status.status == BudgetHealth.ON_TRACK
        assert status.remaining == 700

    async def test_only_expenses_in_window_count(self, storage):
        await storage.create_budget("u1", march_budget(1000, start="2024-01-01", end="2024-12-31"))
        await storage.create_expense("u1", make_expense(amount=500, day="2024-02-28"))
        await storage.create_expense("u1", make_expense(amount=100, day="2024-03-01"))

        [status] = await BudgetTracker(storage).get_budget_statuses("u1", FIXED_TODAY)
        assert status.spent == 100

    async def test_weekly_window(self, storage):
        """Weekly budgets measure Monday to Sunday around today."""
        await storage.create_budget("u1", march_budget(500, period=BudgetPeriod.WEEKLY))
        await storage.create_expense("u1", make_expense(amount=200, day="2024-03-17"))
        await storage.create_expense("u1", make_expense(amount=150, day="2024-03-18"))
        await storage.create_expense("u1", make_expense(amount=50, day="2024-03-24"))

        [status] = await BudgetTracker(storage).get_budget_statuses("u1", FIXED_TODAY)
        assert (status.period_start, status.period_end) == ("2024-03-18", "2024-03-24")
        assert status.spent == 200

    async def test_period_filter(self, storage):
        await storage.create_budget("u1", march_budget(500, period=BudgetPeriod.WEEKLY))
        await storage.create_budget("u1", march_budget(5000))

        statuses = await BudgetTracker(storage).get_budget_statuses(
            "u1", FIXED_TODAY, BudgetPeriod.WEEKLY
        )
        assert [s.budget.period for s in statuses] == [BudgetPeriod.WEEKLY]

    async def test_inactive_budgets_excluded(self, storage):
        await storage.create_budget("u1", march_budget(5000, start="2024-01-01", end="2024-01-31"))
        assert await BudgetTracker(storage).get_budget_statuses("u1", FIXED_TODAY) == []

    async def test_other_users_expenses_ignored(self, storage):
        await storage.create_budget("u1", march_budget(5000))
        await storage.create_expense("u2", make_expense(amount=4000))

        [status] = await BudgetTracker(storage).get_budget_statuses("u1", FIXED_TODAY)
        assert status.spent == 0
        assert status.status == BudgetHealth.ON_TRACK
