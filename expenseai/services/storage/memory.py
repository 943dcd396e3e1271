"""
In-Memory Storage Implementation

DESIGN DECISION: The application always boots on this backend so requests
are served before (or without) a database. Everything lives in dicts keyed
by a generated id and filtered queries are linear scans.

TRADEOFFS:
- Data is lost on restart and whenever the manager swaps backends
- Linear scans are fine for a single user's worth of rows
- No awaits happen while a mutation is in progress, so no locking is needed
"""

from collections import defaultdict
from typing import Optional
from uuid import uuid4

from expenseai.models.finance import (
    DEFAULT_CATEGORIES,
    UNCATEGORIZED_COLOR,
    UNCATEGORIZED_NAME,
    Budget,
    BudgetCreate,
    BudgetUpdate,
    Category,
    CategoryBreakdownItem,
    CategoryCreate,
    CategoryUpdate,
    DailyTrendPoint,
    Expense,
    ExpenseCreate,
    ExpenseStats,
    ExpenseUpdate,
    ExpenseWithCategory,
    Insight,
    InsightCreate,
    User,
    UserCreate,
    UserProfile,
    UserProfileUpdate,
    UserUpdate,
    utcnow,
)
from expenseai.services.storage.interface import (
    DuplicateError,
    ExpenseStorageInterface,
    NotFoundError,
    SessionStore,
)
from expenseai.services.storage.sessions import (
    DEFAULT_SESSION_TTL_SECONDS,
    InMemorySessionStore,
)


def new_id() -> str:
    return uuid4().hex


def summarize_expenses(
    expenses: list[ExpenseWithCategory],
) -> ExpenseStats:
    """
    Build the analytics summary for an already-filtered list of expenses.

    Expenses whose category is missing or no longer exists are grouped
    together under the "Uncategorized" sentinel.
    """
    total = 0.0
    by_category: dict[Optional[str], float] = defaultdict(float)
    categories: dict[str, Category] = {}
    by_day: dict[str, float] = defaultdict(float)

    for expense in expenses:
        total += expense.amount
        key = expense.category.id if expense.category else None
        if expense.category:
            categories[expense.category.id] = expense.category
        by_category[key] += expense.amount
        by_day[expense.date] += expense.amount

    breakdown = []
    for category_id, amount in by_category.items():
        category = categories.get(category_id) if category_id else None
        breakdown.append(CategoryBreakdownItem(
            category_name=category.name if category else UNCATEGORIZED_NAME,
            color=category.color if category else UNCATEGORIZED_COLOR,
            amount=amount,
        ))
    breakdown.sort(key=lambda item: (-item.amount, item.category_name))

    trend = [DailyTrendPoint(date=day, amount=amount) for day, amount in sorted(by_day.items())]

    return ExpenseStats(total_spent=total, category_breakdown=breakdown, daily_trend=trend)


class InMemoryStorage(ExpenseStorageInterface):
    """
    Process-local storage.

    Seeds the default categories on construction unless seed_defaults is
    False.
    """

    name = "memory"

    def __init__(
        self,
        seed_defaults: bool = True,
        session_ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS,
    ):
        self._users: dict[str, User] = {}
        self._categories: dict[str, Category] = {}
        self._expenses: dict[str, Expense] = {}
        self._insights: dict[str, Insight] = {}
        self._budgets: dict[str, Budget] = {}
        self._profiles: dict[str, UserProfile] = {}
        self._sessions = InMemorySessionStore(ttl_seconds=session_ttl_seconds)

        if seed_defaults:
            for category in DEFAULT_CATEGORIES:
                category_id = new_id()
                self._categories[category_id] = Category(id=category_id, **category)

    @property
    def session_store(self) -> SessionStore:
        return self._sessions

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def get_user(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    async def get_user_by_username(self, username: str) -> Optional[User]:
        for user in self._users.values():
            if user.username == username:
                return user
        return None

    async def create_user(self, user: UserCreate) -> User:
        if await self.get_user_by_username(user.username) is not None:
            raise DuplicateError(f"Username already exists: {user.username}")
        created = User(id=new_id(), **user.model_dump())
        self._users[created.id] = created
        return created

    async def update_user(self, user_id: str, changes: UserUpdate) -> User:
        existing = self._users.get(user_id)
        if existing is None:
            raise NotFoundError(f"User not found: {user_id}")
        updated = existing.model_copy(
            update={**changes.model_dump(exclude_unset=True), "updated_at": utcnow()}
        )
        self._users[user_id] = updated
        return updated

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def get_categories(self) -> list[Category]:
        return list(self._categories.values())

    async def create_category(self, category: CategoryCreate) -> Category:
        created = Category(id=new_id(), **category.model_dump())
        self._categories[created.id] = created
        return created

    async def update_category(self, category_id: str, changes: CategoryUpdate) -> Category:
        existing = self._categories.get(category_id)
        if existing is None:
            raise NotFoundError(f"Category not found: {category_id}")
        updated = Category(**{**existing.model_dump(), **changes.changes()})
        self._categories[category_id] = updated
        return updated

    async def delete_category(self, category_id: str) -> None:
        if self._categories.pop(category_id, None) is None:
            raise NotFoundError(f"Category not found: {category_id}")

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    def _with_category(self, expense: Expense) -> ExpenseWithCategory:
        category = self._categories.get(expense.category_id) if expense.category_id else None
        return ExpenseWithCategory(**expense.model_dump(), category=category)

    def _owned_expense(self, user_id: str, expense_id: str) -> Expense:
        expense = self._expenses.get(expense_id)
        if expense is None or expense.user_id != user_id:
            raise NotFoundError(f"Expense not found: {expense_id}")
        return expense

    def _user_expenses(self, user_id: str) -> list[Expense]:
        # Newest insertion first so equal (date, created_at) keys keep that order
        rows = [e for e in reversed(list(self._expenses.values())) if e.user_id == user_id]
        rows.sort(key=lambda e: (e.date, e.created_at), reverse=True)
        return rows

    async def get_expenses_by_user(
        self,
        user_id: str,
        limit: int = 50,
    ) -> list[ExpenseWithCategory]:
        rows = self._user_expenses(user_id)[:max(limit, 0)]
        return [self._with_category(e) for e in rows]

    async def get_expenses_by_user_and_date_range(
        self,
        user_id: str,
        start_date: str,
        end_date: str,
    ) -> list[ExpenseWithCategory]:
        return [
            self._with_category(e)
            for e in self._user_expenses(user_id)
            if start_date <= e.date <= end_date
        ]

    async def create_expense(self, user_id: str, expense: ExpenseCreate) -> Expense:
        created = Expense(id=new_id(), user_id=user_id, **expense.model_dump())
        self._expenses[created.id] = created
        return created

    async def update_expense(
        self,
        user_id: str,
        expense_id: str,
        changes: ExpenseUpdate,
    ) -> Expense:
        existing = self._owned_expense(user_id, expense_id)
        updated = Expense(**{**existing.model_dump(), **changes.changes(), "updated_at": utcnow()})
        self._expenses[expense_id] = updated
        return updated

    async def delete_expense(self, user_id: str, expense_id: str) -> None:
        self._owned_expense(user_id, expense_id)
        del self._expenses[expense_id]

    # -------------------------------------------------------------------------
    # Insights
    # -------------------------------------------------------------------------

    async def get_insights_by_user(self, user_id: str) -> list[Insight]:
        rows = [i for i in reversed(list(self._insights.values())) if i.user_id == user_id]
        rows.sort(key=lambda i: i.created_at, reverse=True)
        return rows

    async def create_insight(self, user_id: str, insight: InsightCreate) -> Insight:
        created = Insight(id=new_id(), user_id=user_id, is_read=False, **insight.model_dump())
        self._insights[created.id] = created
        return created

    async def mark_insight_as_read(self, user_id: str, insight_id: str) -> Insight:
        existing = self._insights.get(insight_id)
        if existing is None or existing.user_id != user_id:
            raise NotFoundError(f"Insight not found: {insight_id}")
        updated = existing.model_copy(update={"is_read": True})
        self._insights[insight_id] = updated
        return updated

    async def clear_user_insights(self, user_id: str) -> int:
        doomed = [i.id for i in self._insights.values() if i.user_id == user_id]
        for insight_id in doomed:
            del self._insights[insight_id]
        return len(doomed)

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    def _owned_budget(self, user_id: str, budget_id: str) -> Budget:
        budget = self._budgets.get(budget_id)
        if budget is None or budget.user_id != user_id:
            raise NotFoundError(f"Budget not found: {budget_id}")
        return budget

    async def get_budgets_by_user(self, user_id: str) -> list[Budget]:
        rows = [b for b in reversed(list(self._budgets.values())) if b.user_id == user_id]
        rows.sort(key=lambda b: b.created_at, reverse=True)
        return rows

    async def create_budget(self, user_id: str, budget: BudgetCreate) -> Budget:
        created = Budget(id=new_id(), user_id=user_id, **budget.model_dump())
        self._budgets[created.id] = created
        return created

    async def update_budget(
        self,
        user_id: str,
        budget_id: str,
        changes: BudgetUpdate,
    ) -> Budget:
        existing = self._owned_budget(user_id, budget_id)
        # Re-validate so the date range check applies to the merged record
        updated = Budget(**{
            **existing.model_dump(),
            **changes.changes(),
            "updated_at": utcnow(),
        })
        self._budgets[budget_id] = updated
        return updated

    async def delete_budget(self, user_id: str, budget_id: str) -> None:
        self._owned_budget(user_id, budget_id)
        del self._budgets[budget_id]

    # -------------------------------------------------------------------------
    # User profile
    # -------------------------------------------------------------------------

    async def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        return self._profiles.get(user_id)

    async def update_user_profile(
        self,
        user_id: str,
        changes: UserProfileUpdate,
    ) -> UserProfile:
        existing = self._profiles.get(user_id)
        if existing is None:
            existing = UserProfile(id=new_id(), user_id=user_id)
        updated = existing.model_copy(update=existing.merged_with(changes))
        self._profiles[user_id] = updated
        return updated

    # -------------------------------------------------------------------------
    # Analytics
    # -------------------------------------------------------------------------

    async def get_expense_stats(
        self,
        user_id: str,
        start_date: str,
        end_date: str,
    ) -> ExpenseStats:
        expenses = await self.get_expenses_by_user_and_date_range(user_id, start_date, end_date)
        return summarize_expenses(expenses)
