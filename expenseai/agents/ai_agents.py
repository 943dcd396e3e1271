"""
AI Agents for ExpenseAI

DESIGN DECISION: Gemini is used for three narrow jobs:
1. Categorizing a single expense from its description and amount
2. Turning a deterministic spending summary into three readable insights
3. Suggesting monthly budgets per category

CRITICAL BOUNDARIES:

1. CATEGORIZATION AGENT:
   - CAN: Pick one of a fixed set of category slugs
   - CANNOT: Invent categories (unknown slugs fall back to keyword rules)

2. INSIGHT AGENT:
   - CAN: Phrase insights FROM the summary we compute
   - CANNOT: See raw data beyond the summary
   - MUST: Return exactly three insights

3. BUDGET AGENT:
   - CAN: Suggest amounts per category
   - CANNOT: Return anything but numbers (other values are dropped)

No agent ever raises. Every failure (no API key, timeout, bad JSON, an
unexpected shape) ends in a deterministic fallback value.
"""

import asyncio
import json
import math
import re
from typing import Any, Optional

import google.generativeai as genai
from pydantic import BaseModel, Field

from expenseai.config import GeminiSettings, get_settings
from expenseai.logger import get_logger
from expenseai.models.finance import (
    ALL_CATEGORIES_NAME,
    ExpenseWithCategory,
    InsightCreate,
    InsightPriority,
    InsightType,
)


logger = get_logger(__name__)


# =============================================================================
# CATEGORY VOCABULARY
# =============================================================================

CATEGORY_SLUGS = [
    "transportation",
    "food",
    "shopping",
    "entertainment",
    "bills",
    "healthcare",
    "education",
    "travel",
]

# Checked in order; transportation wins over everything else
CATEGORY_KEYWORDS: list[tuple[str, list[str]]] = [
    ("transportation", [
        "uber", "ola", "taxi", "cab", "bus", "metro", "train", "auto",
        "rickshaw", "petrol", "diesel", "fuel", "parking", "bike", "scooter",
    ]),
    ("food", [
        "zomato", "swiggy", "starbucks", "mcdonald", "kfc", "dominos",
        "pizza", "burger", "restaurant", "coffee", "tea", "lunch", "dinner",
        "breakfast", "groceries", "grocery", "vegetables", "fruits", "snacks",
    ]),
    ("entertainment", [
        "netflix", "spotify", "prime", "hotstar", "disney", "movie",
        "cinema", "concert", "game", "games",
    ]),
    ("bills", [
        "electricity", "internet", "wifi", "broadband", "recharge", "phone bill",
        "rent", "emi", "loan", "insurance",
    ]),
    ("healthcare", [
        "doctor", "medicine", "medicines", "hospital", "dental", "pharmacy",
        "clinic", "medical",
    ]),
    ("education", [
        "course", "courses", "book", "books", "tuition", "school",
        "university", "coaching", "certification",
    ]),
    ("travel", [
        "flight", "flights", "hotel", "hotels", "vacation", "airbnb",
        "tour", "sightseeing",
    ]),
    ("shopping", [
        "amazon", "flipkart", "myntra", "nykaa", "mall", "clothes",
        "electronics", "gadget", "gadgets",
    ]),
]

KEYWORD_CONFIDENCE = 0.6


class CategorySuggestion(BaseModel):
    """AI's suggestion for an expense category."""

    category: str = Field(description="One of CATEGORY_SLUGS")
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str


DEFAULT_SUGGESTION = CategorySuggestion(
    category="shopping",
    confidence=0.1,
    reasoning="Default categorization due to AI service error",
)


FALLBACK_INSIGHTS = [
    InsightCreate(
        type=InsightType.RECOMMENDATION,
        title="Track Your Expenses",
        description="Continue logging your expenses to get personalized AI insights and recommendations.",
        priority=InsightPriority.MEDIUM,
    ),
    InsightCreate(
        type=InsightType.GOAL,
        title="Building Financial Habits",
        description="Every expense you track helps build better financial awareness and spending habits.",
        priority=InsightPriority.LOW,
    ),
    InsightCreate(
        type=InsightType.WARNING,
        title="AI Insights Unavailable",
        description="AI insights are temporarily unavailable. Keep tracking expenses for future analysis.",
        priority=InsightPriority.LOW,
    ),
]

INSIGHT_COUNT = 3


class AIServiceError(Exception):
    """The model could not be reached or returned something unusable."""
    pass


def extract_json(text: str) -> Any:
    """
    Parse the JSON payload of a model response.

    Tolerates prose or code fences around a single JSON object.
    """
    text = (text or "").strip()
    if not text:
        raise AIServiceError("Empty response from model")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise AIServiceError("No JSON object in model response")
    try:
        return json.loads(text[start:end])
    except json.JSONDecodeError as e:
        raise AIServiceError(f"Invalid JSON in model response: {e}") from e


def match_keywords(description: str) -> Optional[CategorySuggestion]:
    """Rule-based categorization used when the model is unavailable."""
    text = description.lower()
    for slug, keywords in CATEGORY_KEYWORDS:
        for keyword in keywords:
            if re.search(rf"\b{re.escape(keyword)}\b", text):
                return CategorySuggestion(
                    category=slug,
                    confidence=KEYWORD_CONFIDENCE,
                    reasoning=f"Matched keyword '{keyword}'",
                )
    return None


def _clamp(value: Any, default: float = 0.5) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:
        return default
    return max(0.0, min(1.0, number))


# =============================================================================
# SPENDING SUMMARY
# =============================================================================

class BudgetTarget(BaseModel):
    """A budget as seen by the insight agent."""

    category_name: str
    amount: float


class MonthSummary(BaseModel):
    total: float
    category_breakdown: dict[str, float]
    expense_count: int
    average_expense: float


class CategoryTrend(BaseModel):
    category: str
    current: float
    previous: float
    change: float = Field(description="Percent change vs the previous month; 0 when there was none")


class BudgetUtilization(BaseModel):
    category: str
    budget: float
    spent: float
    remaining: float
    utilization: float
    is_over_budget: bool


class SavingsOpportunity(BaseModel):
    category: str
    increase: float
    current_spend: float
    potential_saving: float


class SpendingSummary(BaseModel):
    """Deterministic numbers the insight prompt is built from."""

    current_month: MonthSummary
    previous_month: MonthSummary
    trends: list[CategoryTrend]
    budget_analysis: list[BudgetUtilization]
    total_budget: float
    savings_opportunities: list[SavingsOpportunity]


SAVINGS_TREND_THRESHOLD = 20.0
SAVINGS_RATE = 0.15


def _month_summary(expenses: list[ExpenseWithCategory]) -> MonthSummary:
    breakdown: dict[str, float] = {}
    for expense in expenses:
        breakdown[expense.category_name] = breakdown.get(expense.category_name, 0.0) + expense.amount
    total = sum(e.amount for e in expenses)
    return MonthSummary(
        total=total,
        category_breakdown=breakdown,
        expense_count=len(expenses),
        average_expense=total / len(expenses) if expenses else 0.0,
    )


def build_spending_summary(
    current: list[ExpenseWithCategory],
    previous: list[ExpenseWithCategory],
    budgets: list[BudgetTarget],
) -> SpendingSummary:
    """
    Summarize two months of spending against the user's budgets.

    Args:
        current: This month's expenses
        previous: Last month's expenses
        budgets: Active budgets with resolved category names

    Returns:
        Totals, per-category trends, budget utilization and the categories
        that grew by more than 20% (with a 15% reduction target)
    """
    this_month = _month_summary(current)
    last_month = _month_summary(previous)

    trends = []
    for category, amount in this_month.category_breakdown.items():
        before = last_month.category_breakdown.get(category, 0.0)
        change = ((amount - before) / before) * 100 if before > 0 else 0.0
        trends.append(CategoryTrend(category=category, current=amount, previous=before, change=change))

    analysis = []
    for budget in budgets:
        if budget.category_name == ALL_CATEGORIES_NAME:
            spent = this_month.total
        else:
            spent = this_month.category_breakdown.get(budget.category_name, 0.0)
        analysis.append(BudgetUtilization(
            category=budget.category_name,
            budget=budget.amount,
            spent=spent,
            remaining=budget.amount - spent,
            utilization=(spent / budget.amount) * 100 if budget.amount > 0 else 0.0,
            is_over_budget=spent > budget.amount,
        ))

    opportunities = [
        SavingsOpportunity(
            category=t.category,
            increase=t.change,
            current_spend=t.current,
            potential_saving=t.current * SAVINGS_RATE,
        )
        for t in trends
        if t.change > SAVINGS_TREND_THRESHOLD
    ]

    return SpendingSummary(
        current_month=this_month,
        previous_month=last_month,
        trends=trends,
        budget_analysis=analysis,
        total_budget=sum(b.amount for b in budgets),
        savings_opportunities=opportunities,
    )


# =============================================================================
# AGENTS
# =============================================================================

class _GeminiAgent:
    """Shared Gemini plumbing: configuration, timeout, JSON parsing."""

    system_prompt: str = ""

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        self._model = None
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI. Without an API key the agent stays offline."""
        if not self._settings.api_key:
            return
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            system_instruction=self.system_prompt,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
                "response_mime_type": "application/json",
            },
        )

    @property
    def is_configured(self) -> bool:
        return self._model is not None

    async def _generate_json(self, prompt: str) -> Any:
        if self._model is None:
            raise AIServiceError("Gemini API key is not configured")
        try:
            response = await asyncio.wait_for(
                self._model.generate_content_async(prompt),
                timeout=self._settings.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise AIServiceError("Gemini request timed out") from e
        return extract_json(response.text)


class CategorizationAgent(_GeminiAgent):
    """
    Suggests a category slug for a single expense.

    Fallback order: model answer, keyword rules, static "shopping" default.
    """

    system_prompt = f"""You are an expense categorization assistant for an Indian personal finance app.

Available categories: {', '.join(CATEGORY_SLUGS)}
- transportation: uber, ola, taxi, bus, metro, train, fuel, parking, auto rickshaw
- food: restaurants, groceries, coffee, zomato, swiggy, food delivery
- shopping: clothes, electronics, amazon, flipkart, myntra, general retail
- entertainment: movies, games, netflix, spotify, subscriptions, concerts
- bills: electricity, internet, phone, rent, insurance, emi, recharge
- healthcare: doctor, medicines, hospital, pharmacy, medical tests
- education: courses, books, tuition, coaching, certifications
- travel: flights, hotels, vacations, tour packages

If the description mentions uber, ola, taxi, bus or metro it is ALWAYS transportation.

Confidence: 0.9-1.0 very clear keywords, 0.7-0.89 good context, 0.5-0.69 inference, below 0.5 uncertain.

Respond with ONLY a JSON object in this exact format:
{{"category": "category_slug", "confidence": 0.95, "reasoning": "brief explanation"}}"""

    async def categorize(self, description: str, amount: float) -> CategorySuggestion:
        """
        Suggest a category for an expense.

        Returns a suggestion the caller may use or ignore; never raises.
        """
        try:
            data = await self._generate_json(
                f'Categorize this expense: "{description}" with amount ₹{amount}'
            )
            if not isinstance(data, dict):
                raise AIServiceError("Categorization response is not an object")
            category = str(data.get("category", "")).strip().lower()
            if category not in CATEGORY_SLUGS:
                raise AIServiceError(f"Unknown category slug: {category!r}")
            return CategorySuggestion(
                category=category,
                confidence=_clamp(data.get("confidence")),
                reasoning=str(data.get("reasoning") or "AI categorization based on description"),
            )
        except Exception as e:
            logger.warning("ai_categorization_failed", error=str(e))

        return match_keywords(description) or DEFAULT_SUGGESTION.model_copy()


class InsightAgent(_GeminiAgent):
    """
    Produces exactly three insights from a spending summary.

    The summary is computed here, deterministically; the model only
    phrases it.
    """

    system_prompt = """You are an expert personal financial advisor. Analyze the spending summary and provide specific, actionable insights.

Generate EXACTLY 3 insights. Each insight must have:
- type: "alert" (budget violations), "goal" (achievements), "warning" (approaching limits) or "recommendation" (improvements)
- title: specific title, at most 45 characters
- description: actionable advice with exact ₹ amounts, percentages and timeframes
- priority: "low", "medium" or "high" based on financial impact

Priorities: budgets over 100% utilization are high alerts, increases over 30% vs last month are high warnings,
budgets at 80-100% are medium warnings, savings opportunities are medium recommendations, good behaviour is a low goal.

Respond with JSON: {"insights": [{"type": "alert", "title": "...", "description": "...", "priority": "high"}]}"""

    @staticmethod
    def _normalize(raw: dict) -> InsightCreate:
        insight_type = raw.get("type")
        priority = raw.get("priority")
        return InsightCreate(
            type=insight_type if insight_type in {t.value for t in InsightType} else InsightType.RECOMMENDATION,
            title=str(raw.get("title") or "Financial Insight")[:200],
            description=str(raw.get("description") or "Review your spending patterns for better financial health."),
            priority=priority if priority in {p.value for p in InsightPriority} else InsightPriority.MEDIUM,
        )

    async def generate_insights(
        self,
        current: list[ExpenseWithCategory],
        previous: list[ExpenseWithCategory],
        budgets: list[BudgetTarget],
    ) -> list[InsightCreate]:
        """Return exactly three insights; the static set on any failure."""
        try:
            summary = build_spending_summary(current, previous, budgets)
            data = await self._generate_json(
                "Analyze this spending data and provide insights: "
                + summary.model_dump_json()
            )
            raw_insights = data.get("insights") if isinstance(data, dict) else None
            if not isinstance(raw_insights, list):
                raise AIServiceError("Insight response has no insights list")
            insights = [self._normalize(r) for r in raw_insights if isinstance(r, dict)]
        except Exception as e:
            logger.warning("ai_insights_failed", error=str(e))
            return [i.model_copy() for i in FALLBACK_INSIGHTS]

        insights = insights[:INSIGHT_COUNT]
        if len(insights) < INSIGHT_COUNT:
            insights.extend(i.model_copy() for i in FALLBACK_INSIGHTS[len(insights):])
        return insights


class BudgetAgent(_GeminiAgent):
    """Suggests monthly budgets per category."""

    system_prompt = """You are a financial planning expert. Based on spending history, recommend monthly budgets for each category.
Consider the 50/30/20 rule and reasonable spending patterns.
Respond with JSON where keys are category names and values are recommended monthly amounts."""

    async def recommend_budgets(
        self,
        expenses: list[ExpenseWithCategory],
        monthly_income: Optional[float] = None,
    ) -> dict[str, float]:
        """
        Map category names to recommended monthly amounts.

        Returns {} when the model is unavailable; non-numeric values are dropped.
        """
        totals: dict[str, float] = {}
        for expense in expenses:
            totals[expense.category_name] = totals.get(expense.category_name, 0.0) + expense.amount

        prompt = f"Recommend monthly budgets based on this spending: {json.dumps(totals)}"
        if monthly_income:
            prompt += f" with monthly income: ₹{monthly_income}"

        try:
            data = await self._generate_json(prompt)
            if not isinstance(data, dict):
                raise AIServiceError("Budget response is not an object")
        except Exception as e:
            logger.warning("ai_budget_recommendations_failed", error=str(e))
            return {}

        recommendations = {}
        for category, amount in data.items():
            if isinstance(amount, bool) or not isinstance(amount, (int, float)):
                continue
            try:
                amount = float(amount)
            except OverflowError:
                continue
            if not math.isfinite(amount) or amount < 0:
                continue
            recommendations[str(category)] = amount
        return recommendations
