"""
Main Orchestrator for ExpenseAI

This module ties together all the components and defines the
end-to-end flows for:
1. Expenses (validate → categorize if needed → save → notify)
2. Insights (clear → gather two months + budgets → AI → save → notify)
3. Budget recommendations (history → AI → formatted suggestions)

DESIGN DECISION: Every flow asks the StorageManager for the active backend
exactly once, at the start of an operation, and uses that reference until
the operation ends. A backend swap in the middle of a request therefore
never splits one operation across two backends.

AI failures never reach the caller; the agents return fallbacks.
"""

from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from expenseai.agents import (
    BudgetAgent,
    BudgetTarget,
    CategorizationAgent,
    CategorySuggestion,
    InsightAgent,
)
from expenseai.config import Settings, get_settings
from expenseai.logger import get_logger
from expenseai.models.finance import (
    ALL_CATEGORIES_NAME,
    UNCATEGORIZED_NAME,
    BudgetPeriod,
    BudgetRecommendation,
    CamelModel,
    Category,
    Expense,
    ExpenseCreate,
    ExpenseUpdate,
    Insight,
    UserProfile,
    month_bounds,
    previous_month_bounds,
)
from expenseai.models.notifications import ExpenseAction
from expenseai.notifications import NotificationBroadcaster
from expenseai.services.storage import ExpenseStorageInterface, StorageManager


logger = get_logger(__name__)

EARLIEST_DATE = "0001-01-01"
LATEST_DATE = "9999-12-31"
UNKNOWN_CATEGORY_NAME = "Unknown"


class CategorizationResult(CamelModel):
    """A category suggestion resolved against the stored categories."""

    category: str
    confidence: float
    reasoning: str
    suggested_category_id: Optional[str] = None
    suggested_category_name: str = UNKNOWN_CATEGORY_NAME


async def match_category(
    storage: ExpenseStorageInterface,
    slug: str,
) -> Optional[Category]:
    """First category whose lowercase name contains the slug."""
    slug = slug.lower()
    for category in await storage.get_categories():
        if slug in category.name.lower():
            return category
    return None


async def user_today(storage: ExpenseStorageInterface, user_id: str) -> date:
    """Today in the user's profile timezone (Asia/Kolkata without a profile)."""
    profile = await storage.get_user_profile(user_id) or UserProfile.defaults_for(user_id)
    return profile.today()


def _format_amount(amount: float) -> str:
    return str(int(amount)) if float(amount).is_integer() else str(amount)


class ExpenseFlow:
    """
    Orchestrates expense writes.

    Flow:
    1. Capture the active backend
    2. Categorize → only when no category was chosen
    3. Save
    4. Notify → expense_update, then analytics_update with this month's stats
    """

    def __init__(
        self,
        manager: StorageManager,
        categorizer: Optional[CategorizationAgent] = None,
        broadcaster: Optional[NotificationBroadcaster] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self._manager = manager
        self._categorizer = categorizer or CategorizationAgent()
        self._broadcaster = broadcaster or NotificationBroadcaster()
        self._today = today

    async def create_expense(self, user_id: str, payload: ExpenseCreate) -> Expense:
        storage = self._manager.current()

        if payload.category_id is None and payload.description:
            suggestion = await self._categorizer.categorize(payload.description, payload.amount)
            category = await match_category(storage, suggestion.category)
            if category is not None:
                payload = payload.model_copy(update={"category_id": category.id})
            logger.info(
                "expense_auto_categorized",
                suggested=suggestion.category,
                confidence=suggestion.confidence,
                matched=category.name if category else None,
            )

        expense = await storage.create_expense(user_id, payload)
        logger.info("expense_created", expense_id=expense.id, backend=storage.name)
        await self._notify(storage, user_id, expense, ExpenseAction.CREATE)
        return expense

    async def update_expense(self, user_id: str, expense_id: str, changes: ExpenseUpdate) -> Expense:
        storage = self._manager.current()
        expense = await storage.update_expense(user_id, expense_id, changes)
        logger.info("expense_updated", expense_id=expense_id, fields=sorted(changes.changes()))
        await self._notify(storage, user_id, expense, ExpenseAction.UPDATE)
        return expense

    async def delete_expense(self, user_id: str, expense_id: str) -> None:
        storage = self._manager.current()
        await storage.delete_expense(user_id, expense_id)
        logger.info("expense_deleted", expense_id=expense_id)
        await self._notify(storage, user_id, {"id": expense_id}, ExpenseAction.DELETE)

    async def categorize(self, description: str, amount: float = 0.0) -> CategorizationResult:
        """Suggest a category without saving anything."""
        storage = self._manager.current()
        suggestion: CategorySuggestion = await self._categorizer.categorize(description, amount)
        category = await match_category(storage, suggestion.category)
        return CategorizationResult(
            **suggestion.model_dump(),
            suggested_category_id=category.id if category else None,
            suggested_category_name=category.name if category else UNKNOWN_CATEGORY_NAME,
        )

    async def _notify(self, storage, user_id: str, expense, action: ExpenseAction) -> None:
        await self._broadcaster.notify_expense_update(expense, action, user_id=user_id)
        today = self._today() if self._today else await user_today(storage, user_id)
        start, end = month_bounds(today)
        stats = await storage.get_expense_stats(user_id, start, end)
        await self._broadcaster.notify_analytics_update(stats, user_id=user_id)


class InsightFlow:
    """
    Orchestrates insight generation.

    `generate` replaces previous insights; `generate_for_range` adds to them.
    """

    def __init__(
        self,
        manager: StorageManager,
        insight_agent: Optional[InsightAgent] = None,
        broadcaster: Optional[NotificationBroadcaster] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self._manager = manager
        self._insight_agent = insight_agent or InsightAgent()
        self._broadcaster = broadcaster or NotificationBroadcaster()
        self._today = today

    async def _budget_targets(self, storage: ExpenseStorageInterface, user_id: str, today: date) -> list[BudgetTarget]:
        budgets = [
            b for b in await storage.get_budgets_by_user(user_id)
            if b.is_active(today, BudgetPeriod.MONTHLY)
        ]
        if not budgets:
            return []
        names = {c.id: c.name for c in await storage.get_categories()}
        return [
            BudgetTarget(
                category_name=(
                    names.get(b.category_id, UNCATEGORIZED_NAME)
                    if b.category_id else ALL_CATEGORIES_NAME
                ),
                amount=b.amount,
            )
            for b in budgets
        ]

    async def generate(self, user_id: str) -> list[Insight]:
        """
        Replace the user's insights with three fresh ones.

        Returns:
            The stored insights, all unread
        """
        storage = self._manager.current()
        today = self._today() if self._today else await user_today(storage, user_id)

        cleared = await storage.clear_user_insights(user_id)
        current = await storage.get_expenses_by_user_and_date_range(user_id, *month_bounds(today))
        previous = await storage.get_expenses_by_user_and_date_range(user_id, *previous_month_bounds(today))
        budgets = await self._budget_targets(storage, user_id, today)

        generated = await self._insight_agent.generate_insights(current, previous, budgets)
        saved = [await storage.create_insight(user_id, insight) for insight in generated]

        logger.info(
            "insights_generated",
            cleared=cleared,
            created=len(saved),
            current_expenses=len(current),
            previous_expenses=len(previous),
        )
        await self._broadcaster.notify_insights_update(saved, user_id=user_id)
        return saved

    async def generate_for_range(self, user_id: str, start: str, end: str) -> list[Insight]:
        """
        Insights for an inclusive date range, stored next to the existing ones.

        The range has no comparison period and no budget targets.
        """
        storage = self._manager.current()
        expenses = await storage.get_expenses_by_user_and_date_range(user_id, start, end)

        generated = await self._insight_agent.generate_insights(expenses, [], [])
        saved = [await storage.create_insight(user_id, insight) for insight in generated]

        logger.info(
            "custom_insights_generated",
            start=start,
            end=end,
            created=len(saved),
            expenses=len(expenses),
        )
        await self._broadcaster.notify_insights_update(saved, user_id=user_id)
        return saved


class BudgetFlow:
    """Orchestrates AI budget recommendations."""

    def __init__(
        self,
        manager: StorageManager,
        budget_agent: Optional[BudgetAgent] = None,
    ):
        self._manager = manager
        self._budget_agent = budget_agent or BudgetAgent()

    async def recommendations(self, user_id: str) -> list[BudgetRecommendation]:
        storage = self._manager.current()
        expenses = await storage.get_expenses_by_user_and_date_range(user_id, EARLIEST_DATE, LATEST_DATE)
        if not expenses:
            return []

        profile = await storage.get_user_profile(user_id) or UserProfile.defaults_for(user_id)
        suggested = await self._budget_agent.recommend_budgets(expenses, profile.monthly_income)

        spend: dict[str, float] = {}
        for expense in expenses:
            spend[expense.category_name] = spend.get(expense.category_name, 0.0) + expense.amount

        return [
            BudgetRecommendation(
                category=category,
                current_spend=spend.get(category, 0.0),
                recommended_budget=amount,
                potential_savings=max(0.0, spend.get(category, 0.0) - amount),
                reason=(
                    f"AI suggests ₹{_format_amount(amount)}/month for {category} "
                    "based on your spending patterns."
                ),
            )
            for category, amount in suggested.items()
        ]


@dataclass
class AppComponents:
    settings: Settings
    manager: StorageManager
    broadcaster: NotificationBroadcaster
    expense_flow: ExpenseFlow
    insight_flow: InsightFlow
    budget_flow: BudgetFlow


def create_app_components(
    settings: Optional[Settings] = None,
    manager: Optional[StorageManager] = None,
    categorizer: Optional[CategorizationAgent] = None,
    insight_agent: Optional[InsightAgent] = None,
    budget_agent: Optional[BudgetAgent] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Application settings (defaults to get_settings())
        manager: Pre-built storage manager, e.g. with a test client factory
        categorizer, insight_agent, budget_agent: Agent overrides for testing

    Returns:
        AppComponents; call `await components.manager.start()` before serving
    """
    settings = settings or get_settings()
    manager = manager or StorageManager(settings)
    broadcaster = NotificationBroadcaster()
    gemini = settings.gemini

    return AppComponents(
        settings=settings,
        manager=manager,
        broadcaster=broadcaster,
        expense_flow=ExpenseFlow(
            manager,
            categorizer=categorizer or CategorizationAgent(gemini),
            broadcaster=broadcaster,
        ),
        insight_flow=InsightFlow(
            manager,
            insight_agent=insight_agent or InsightAgent(gemini),
            broadcaster=broadcaster,
        ),
        budget_flow=BudgetFlow(
            manager,
            budget_agent=budget_agent or BudgetAgent(gemini),
        ),
    )
