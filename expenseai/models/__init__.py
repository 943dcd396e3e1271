"""
Data Models Package

This package contains all Pydantic models used in ExpenseAI.
All data flowing through the system must conform to these schemas.
"""

from expenseai.models.finance import (
    ALL_CATEGORIES_NAME,
    DEFAULT_CATEGORIES,
    UNCATEGORIZED_COLOR,
    UNCATEGORIZED_NAME,
    Budget,
    BudgetCreate,
    BudgetHealth,
    BudgetPeriod,
    BudgetRecommendation,
    BudgetStatus,
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
    InsightPriority,
    InsightType,
    PaymentMethod,
    User,
    UserCreate,
    UserProfile,
    UserProfileUpdate,
    UserUpdate,
)
from expenseai.models.notifications import (
    ClientMessage,
    ExpenseAction,
    NotificationMessage,
    NotificationType,
)

__all__ = [
    # Constants
    "ALL_CATEGORIES_NAME",
    "DEFAULT_CATEGORIES",
    "UNCATEGORIZED_COLOR",
    "UNCATEGORIZED_NAME",
    # Finance models
    "Budget",
    "BudgetCreate",
    "BudgetHealth",
    "BudgetPeriod",
    "BudgetRecommendation",
    "BudgetStatus",
    "BudgetUpdate",
    "Category",
    "CategoryBreakdownItem",
    "CategoryCreate",
    "CategoryUpdate",
    "DailyTrendPoint",
    "Expense",
    "ExpenseCreate",
    "ExpenseStats",
    "ExpenseUpdate",
    "ExpenseWithCategory",
    "Insight",
    "InsightCreate",
    "InsightPriority",
    "InsightType",
    "PaymentMethod",
    "User",
    "UserCreate",
    "UserProfile",
    "UserProfileUpdate",
    "UserUpdate",
    # Notification models
    "ClientMessage",
    "ExpenseAction",
    "NotificationMessage",
    "NotificationType",
]
