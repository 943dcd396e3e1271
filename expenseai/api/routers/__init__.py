"""HTTP and WebSocket routers."""

from expenseai.api.routers import (
    ai,
    analytics,
    auth,
    budgets,
    categories,
    expenses,
    health,
    insights,
    profile,
    ws,
)

__all__ = [
    "ai",
    "analytics",
    "auth",
    "budgets",
    "categories",
    "expenses",
    "health",
    "insights",
    "profile",
    "ws",
]
