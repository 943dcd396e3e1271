"""AI Agents package."""

from expenseai.agents.ai_agents import (
    DEFAULT_SUGGESTION,
    FALLBACK_INSIGHTS,
    AIServiceError,
    BudgetAgent,
    BudgetTarget,
    CategorizationAgent,
    CategorySuggestion,
    InsightAgent,
    SpendingSummary,
    build_spending_summary,
)

__all__ = [
    "DEFAULT_SUGGESTION",
    "FALLBACK_INSIGHTS",
    "AIServiceError",
    "BudgetAgent",
    "BudgetTarget",
    "CategorizationAgent",
    "CategorySuggestion",
    "InsightAgent",
    "SpendingSummary",
    "build_spending_summary",
]
