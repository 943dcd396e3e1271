"""
Abstract Storage Interface

DESIGN DECISION: Every persistence operation the application performs is
listed here. Two backends implement it:
1. InMemoryStorage - process-local dicts, the startup default
2. MongoStorage - MongoDB through Motor, used once a connection is live

The StorageManager decides which one is active. Callers only ever see this
interface, so backend identity is invisible to them.

Contract shared by all backends:
- "by user" reads return only the requesting user's rows
- writes to user-owned rows are scoped by user_id; another user's row
  behaves exactly like a missing one
- create returns the fully materialized entity (id, timestamps)
- update/delete of a missing id raise NotFoundError
"""

from abc import ABC, abstractmethod
from typing import Optional

from expenseai.models.finance import (
    DEFAULT_CATEGORIES,
    Budget,
    BudgetCreate,
    BudgetUpdate,
    Category,
    CategoryCreate,
    CategoryUpdate,
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
)


class SessionStore(ABC):
    """
    Login sessions, keyed by an opaque session id.

    Sessions belong to the backend that created them.
    """

    @abstractmethod
    async def create(self, user_id: str) -> str:
        """Open a session for a user and return its id."""
        pass

    @abstractmethod
    async def get(self, session_id: str) -> Optional[str]:
        """Return the session's user id, or None if unknown or expired."""
        pass

    @abstractmethod
    async def destroy(self, session_id: str) -> None:
        """End a session. Unknown ids are ignored."""
        pass


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for ExpenseAI storage operations.

    Any storage implementation must implement these methods.
    """

    # Human-readable backend name, reported by the health endpoint
    name: str = "abstract"

    @property
    @abstractmethod
    def session_store(self) -> SessionStore:
        """Session store living in this backend."""
        pass

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[User]:
        pass

    @abstractmethod
    async def create_user(self, user: UserCreate) -> User:
        """
        Create a user. The password must already be hashed.

        Raises:
            DuplicateError: If the username is taken
        """
        pass

    @abstractmethod
    async def update_user(self, user_id: str, changes: UserUpdate) -> User:
        """
        Apply a partial profile update.

        Raises:
            NotFoundError: If the user doesn't exist
        """
        pass

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_categories(self) -> list[Category]:
        pass

    @abstractmethod
    async def create_category(self, category: CategoryCreate) -> Category:
        pass

    @abstractmethod
    async def update_category(self, category_id: str, changes: CategoryUpdate) -> Category:
        pass

    @abstractmethod
    async def delete_category(self, category_id: str) -> None:
        """
        Delete a category.

        Expenses and budgets referencing it are left untouched; they
        resolve to the "Uncategorized" / "All Categories" sentinels.
        """
        pass

    async def ensure_default_categories(self) -> list[Category]:
        """
        Seed the default categories if none exist.

        Returns the categories that were created (empty if none were needed).
        """
        existing = await self.get_categories()
        if existing:
            return []
        created = []
        for category in DEFAULT_CATEGORIES:
            created.append(await self.create_category(CategoryCreate(**category)))
        return created

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_expenses_by_user(
        self,
        user_id: str,
        limit: int = 50,
    ) -> list[ExpenseWithCategory]:
        """
        List a user's expenses, newest date first.

        Args:
            user_id: Owner of the expenses
            limit: Maximum number of results

        Returns:
            Expenses with their categories resolved
        """
        pass

    @abstractmethod
    async def get_expenses_by_user_and_date_range(
        self,
        user_id: str,
        start_date: str,
        end_date: str,
    ) -> list[ExpenseWithCategory]:
        """
        List a user's expenses with start_date <= date <= end_date.

        Dates are YYYY-MM-DD strings; the bounds are inclusive.
        """
        pass

    @abstractmethod
    async def create_expense(self, user_id: str, expense: ExpenseCreate) -> Expense:
        pass

    @abstractmethod
    async def update_expense(
        self,
        user_id: str,
        expense_id: str,
        changes: ExpenseUpdate,
    ) -> Expense:
        """
        Apply a partial update to an expense.

        Raises:
            NotFoundError: If the user has no expense with this id
        """
        pass

    @abstractmethod
    async def delete_expense(self, user_id: str, expense_id: str) -> None:
        """
        Raises:
            NotFoundError: If the user has no expense with this id
        """
        pass

    # -------------------------------------------------------------------------
    # Insights
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_insights_by_user(self, user_id: str) -> list[Insight]:
        """Newest first."""
        pass

    @abstractmethod
    async def create_insight(self, user_id: str, insight: InsightCreate) -> Insight:
        """Store an insight as unread."""
        pass

    @abstractmethod
    async def mark_insight_as_read(self, user_id: str, insight_id: str) -> Insight:
        pass

    @abstractmethod
    async def clear_user_insights(self, user_id: str) -> int:
        """Delete all of a user's insights. Returns the number removed."""
        pass

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_budgets_by_user(self, user_id: str) -> list[Budget]:
        """Newest first."""
        pass

    @abstractmethod
    async def create_budget(self, user_id: str, budget: BudgetCreate) -> Budget:
        pass

    @abstractmethod
    async def update_budget(
        self,
        user_id: str,
        budget_id: str,
        changes: BudgetUpdate,
    ) -> Budget:
        pass

    @abstractmethod
    async def delete_budget(self, user_id: str, budget_id: str) -> None:
        pass

    # -------------------------------------------------------------------------
    # User profile
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        pass

    @abstractmethod
    async def update_user_profile(
        self,
        user_id: str,
        changes: UserProfileUpdate,
    ) -> UserProfile:
        """Create or update the profile; unspecified fields keep their value."""
        pass

    # -------------------------------------------------------------------------
    # Analytics
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_expense_stats(
        self,
        user_id: str,
        start_date: str,
        end_date: str,
    ) -> ExpenseStats:
        """
        Summarize a user's spending over an inclusive date range.

        Returns:
            total_spent, category_breakdown (amount desc, uncategorized rows
            grouped under "Uncategorized"), daily_trend (date asc)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class BackendUnavailableError(StorageError):
    """The storage backend could not complete a write."""
    pass
