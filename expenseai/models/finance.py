"""
Core Data Models for ExpenseAI

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Validate input at construction time (no scattered "is this field present" checks)
2. Normalize amounts to floats at the storage boundary
3. Serialize to the camelCase shape used on the wire and in MongoDB documents

DESIGN DECISION: Python attributes are snake_case, the alias generator maps
them to camelCase. Documents written by earlier deployments (userId,
categoryId, paymentMethod, ...) therefore load unchanged.
"""

from datetime import date as date_type
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import ClassVar, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


# =============================================================================
# CONSTANTS
# =============================================================================

UNCATEGORIZED_NAME = "Uncategorized"
UNCATEGORIZED_COLOR = "#6b7280"
ALL_CATEGORIES_NAME = "All Categories"

DEFAULT_MONTHLY_INCOME = 50000.0
DEFAULT_CURRENCY = "INR"
DEFAULT_TIMEZONE = "Asia/Kolkata"

HEX_COLOR_PATTERN = r"^#[0-9a-fA-F]{6}$"

DEFAULT_CATEGORIES = [
    {"name": "Food & Dining", "color": "#ef4444", "icon": "🍽️"},
    {"name": "Transportation", "color": "#3b82f6", "icon": "🚗"},
    {"name": "Shopping", "color": "#10b981", "icon": "🛍️"},
    {"name": "Entertainment", "color": "#f59e0b", "icon": "🎬"},
    {"name": "Bills & Utilities", "color": "#8b5cf6", "icon": "📱"},
    {"name": "Healthcare", "color": "#ec4899", "icon": "🏥"},
    {"name": "Education", "color": "#06b6d4", "icon": "📚"},
    {"name": "Travel", "color": "#84cc16", "icon": "✈️"},
]


def utcnow() -> datetime:
    """Current UTC time, truncated to milliseconds (MongoDB precision)."""
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def validate_iso_date(value: Union[str, date_type]) -> str:
    """Normalize a calendar date to the fixed-width YYYY-MM-DD string."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date_type):
        return value.isoformat()
    if not isinstance(value, str):
        raise ValueError("Date must be an ISO date string (YYYY-MM-DD)")
    value = value.strip()
    try:
        parsed = date_type.fromisoformat(value)
    except ValueError:
        raise ValueError(f"Invalid date: {value!r}. Expected YYYY-MM-DD")
    if len(value) != 10:
        raise ValueError(f"Invalid date: {value!r}. Expected YYYY-MM-DD")
    return parsed.isoformat()


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class PaymentMethod(str, Enum):
    """How an expense was paid."""
    CASH = "cash"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    UPI = "upi"
    BANK_TRANSFER = "bank_transfer"


class BudgetPeriod(str, Enum):
    """Granularity a budget applies to."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class InsightType(str, Enum):
    """Kinds of AI insights."""
    ALERT = "alert"                    # Budget violations, urgent overspending
    GOAL = "goal"                      # Achievements worth celebrating
    WARNING = "warning"                # Approaching limits
    RECOMMENDATION = "recommendation"  # Improvement suggestions


class InsightPriority(str, Enum):
    """Financial impact of an insight."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class BudgetHealth(str, Enum):
    """Display status of a budget in its current period."""
    ON_TRACK = "On Track"
    NEAR_LIMIT = "Near Limit"
    OVER_BUDGET = "Over Budget"


# =============================================================================
# BASE
# =============================================================================

class CamelModel(BaseModel):
    """Base model: snake_case attributes, camelCase wire/document names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        use_enum_values=False,
    )


class _AmountModel(CamelModel):
    """Amounts arrive as numbers or numeric strings and are stored as floats."""

    @field_validator('amount', mode='before', check_fields=False)
    @classmethod
    def parse_amount(cls, v):
        if v is None:
            return v
        if isinstance(v, str):
            v = v.strip()
            if not v:
                raise ValueError("Amount is required")
            try:
                return float(v)
            except ValueError:
                raise ValueError(f"Amount must be a number, got {v!r}")
        return v


class _PartialUpdate(_AmountModel):
    """
    Base for partial updates.

    Only fields present in the payload are applied. An explicit null is
    accepted only for the fields listed in `nullable_fields`.
    """

    nullable_fields: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode='after')
    def reject_nulls(self):
        nulls = sorted(
            name for name in self.model_fields_set
            if getattr(self, name) is None and name not in self.nullable_fields
        )
        if nulls:
            raise ValueError(f"Fields cannot be null: {', '.join(nulls)}")
        return self

    def changes(self) -> dict:
        """Fields explicitly sent by the caller, by attribute name."""
        return self.model_dump(exclude_unset=True)


# =============================================================================
# USERS
# =============================================================================

class UserCreate(CamelModel):
    """Registration payload. The password is hashed before it reaches storage."""

    username: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(
        default=None,
        pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$",
        max_length=254,
    )
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    password: str = Field(..., min_length=6)
    profile_image_url: Optional[str] = None


class UserUpdate(CamelModel):
    """Partial profile update (username and password are not editable here)."""

    email: Optional[str] = Field(
        default=None,
        pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$",
        max_length=254,
    )
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    profile_image_url: Optional[str] = None


class User(CamelModel):
    """A registered user."""

    id: str
    username: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    password: str = Field(..., exclude=True, description="bcrypt hash")
    profile_image_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# CATEGORIES
# =============================================================================

class CategoryCreate(CamelModel):
    """Payload for a new category."""

    name: str = Field(..., min_length=1, max_length=100)
    color: str = Field(..., pattern=HEX_COLOR_PATTERN, description="Hex color, e.g. #3b82f6")
    icon: Optional[str] = Field(default=None, max_length=50)


class CategoryUpdate(_PartialUpdate):
    nullable_fields = frozenset({"icon"})

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)
    icon: Optional[str] = Field(default=None, max_length=50)


class Category(CamelModel):
    """An expense category. Categories are shared by all users."""

    id: str
    name: str = Field(..., min_length=1, max_length=100)
    color: str = Field(..., pattern=HEX_COLOR_PATTERN)
    icon: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# EXPENSES
# =============================================================================

class ExpenseCreate(_AmountModel):
    """
    Payload for a new expense.

    Omitting category_id leaves the expense uncategorized; the expense flow
    then asks the AI categorizer for a category.
    """

    category_id: Optional[str] = None
    amount: float = Field(..., ge=0, allow_inf_nan=False)
    description: str = Field(..., min_length=1, max_length=500)
    payment_method: PaymentMethod
    date: str = Field(..., description="Calendar date, YYYY-MM-DD")

    @field_validator('date', mode='before')
    @classmethod
    def check_date(cls, v):
        return validate_iso_date(v)

    @field_validator('category_id', mode='before')
    @classmethod
    def blank_category_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class ExpenseUpdate(_PartialUpdate):
    """Partial update. Sending categoryId: null uncategorizes the expense."""

    nullable_fields = frozenset({"category_id"})

    category_id: Optional[str] = None
    amount: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    payment_method: Optional[PaymentMethod] = None
    date: Optional[str] = None

    @field_validator('date', mode='before')
    @classmethod
    def check_date(cls, v):
        if v is None:
            return v
        return validate_iso_date(v)


class Expense(CamelModel):
    """A stored expense."""

    id: str
    user_id: str
    category_id: Optional[str] = None
    amount: float = Field(..., ge=0)
    description: str
    payment_method: PaymentMethod
    date: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator('date', mode='before')
    @classmethod
    def check_date(cls, v):
        return validate_iso_date(v)


class ExpenseWithCategory(Expense):
    """
    An expense with its category resolved.

    category is None when the expense has no category_id or when the
    referenced category no longer exists.
    """

    category: Optional[Category] = None

    @computed_field
    @property
    def category_name(self) -> str:
        return self.category.name if self.category else UNCATEGORIZED_NAME

    @computed_field
    @property
    def category_color(self) -> str:
        return self.category.color if self.category else UNCATEGORIZED_COLOR


# =============================================================================
# BUDGETS
# =============================================================================

class BudgetCreate(_AmountModel):
    """Payload for a new budget. No category_id means all categories."""

    category_id: Optional[str] = None
    amount: float = Field(..., ge=0, allow_inf_nan=False)
    period: BudgetPeriod = BudgetPeriod.MONTHLY
    start_date: str
    end_date: str

    @field_validator('start_date', 'end_date', mode='before')
    @classmethod
    def check_dates(cls, v):
        return validate_iso_date(v)

    @field_validator('category_id', mode='before')
    @classmethod
    def all_means_none(cls, v):
        # The web client sends "all" for the all-categories option
        if isinstance(v, str) and v.strip().lower() in ("", "all"):
            return None
        return v

    @model_validator(mode='after')
    def validate_range(self) -> 'BudgetCreate':
        if self.end_date < self.start_date:
            raise ValueError("Budget end date cannot be before start date")
        return self


class BudgetUpdate(_PartialUpdate):
    nullable_fields = frozenset({"category_id"})

    category_id: Optional[str] = None
    amount: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    period: Optional[BudgetPeriod] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    @field_validator('start_date', 'end_date', mode='before')
    @classmethod
    def check_dates(cls, v):
        if v is None:
            return v
        return validate_iso_date(v)



class Budget(CamelModel):
    """A stored budget."""

    id: str
    user_id: str
    category_id: Optional[str] = None
    amount: float = Field(..., ge=0)
    period: BudgetPeriod
    start_date: str
    end_date: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator('start_date', 'end_date', mode='before')
    @classmethod
    def check_dates(cls, v):
        return validate_iso_date(v)

    @model_validator(mode='after')
    def validate_range(self) -> 'Budget':
        if self.end_date < self.start_date:
            raise ValueError("Budget end date cannot be before start date")
        return self

    def is_active(
        self,
        on: Union[str, date_type],
        period: Optional[BudgetPeriod] = None,
    ) -> bool:
        """True if `on` falls within [start_date, end_date] and the period matches."""
        day = validate_iso_date(on)
        if period is not None and self.period != period:
            return False
        return self.start_date <= day <= self.end_date


# =============================================================================
# INSIGHTS
# =============================================================================

class InsightCreate(CamelModel):
    """An insight as produced by the AI insight agent."""

    type: InsightType
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    priority: InsightPriority = InsightPriority.MEDIUM


class Insight(InsightCreate):
    """
    A stored insight.

    is_read is a real boolean. Older documents stored the strings
    "true"/"false"; both forms are accepted on input.
    """

    id: str
    user_id: str
    is_read: bool = False
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator('is_read', mode='before')
    @classmethod
    def parse_legacy_flag(cls, v):
        if isinstance(v, str):
            return v.strip().lower() == "true"
        return v


# =============================================================================
# USER PROFILE
# =============================================================================

class UserProfileUpdate(CamelModel):
    monthly_income: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    timezone: Optional[str] = Field(default=None, min_length=1, max_length=64)

    @field_validator('monthly_income', mode='before')
    @classmethod
    def parse_income(cls, v):
        if isinstance(v, str):
            return float(v) if v.strip() else None
        return v


class UserProfile(CamelModel):
    """Per-user financial settings."""

    id: str
    user_id: str
    monthly_income: float = DEFAULT_MONTHLY_INCOME
    currency: str = DEFAULT_CURRENCY
    timezone: str = DEFAULT_TIMEZONE

    @classmethod
    def defaults_for(cls, user_id: str) -> 'UserProfile':
        return cls(id=user_id, user_id=user_id)

    def today(self) -> date_type:
        """The current day in this user's timezone."""
        return local_today(self.timezone)

    def merged_with(self, changes: UserProfileUpdate) -> dict:
        """Field values after applying a partial update; unset fields keep their value."""
        values = {
            "monthly_income": self.monthly_income,
            "currency": self.currency,
            "timezone": self.timezone,
        }
        for key, value in changes.model_dump(exclude_unset=True).items():
            if value is not None:
                values[key] = value
        return values


# =============================================================================
# ANALYTICS
# =============================================================================

class CategoryBreakdownItem(CamelModel):
    category_name: str
    amount: float
    color: str


class DailyTrendPoint(CamelModel):
    date: str
    amount: float


class ExpenseStats(CamelModel):
    """
    Spending summary for a user over an inclusive date range.

    category_breakdown is sorted by amount (descending), daily_trend by date
    (ascending). An empty range yields zero and two empty lists.
    """

    total_spent: float = 0.0
    category_breakdown: list[CategoryBreakdownItem] = Field(default_factory=list)
    daily_trend: list[DailyTrendPoint] = Field(default_factory=list)


class BudgetStatus(CamelModel):
    """Progress of one budget within its current period window."""

    budget: Budget
    category_name: str
    period_start: str
    period_end: str
    spent: float
    budget_amount: float
    percentage: float = Field(..., ge=0, le=100)
    remaining: float = Field(..., description="amount - spent; negative when over budget")
    exceeded_by: float = Field(..., ge=0)
    expense_count: int = Field(..., ge=0)
    status: BudgetHealth

    @computed_field
    @property
    def is_over_budget(self) -> bool:
        return self.status == BudgetHealth.OVER_BUDGET


class BudgetRecommendation(CamelModel):
    """AI-suggested monthly budget for one category."""

    category: str
    current_spend: float
    recommended_budget: float
    potential_savings: float
    reason: str


# =============================================================================
# DATE HELPERS
# =============================================================================

def local_today(timezone_name: Optional[str] = None, now: Optional[datetime] = None) -> date_type:
    """
    Calendar day in an IANA timezone.

    Unknown or malformed zone names fall back to DEFAULT_TIMEZONE.
    """
    try:
        zone = ZoneInfo(timezone_name or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        zone = ZoneInfo(DEFAULT_TIMEZONE)
    return (now or datetime.now(timezone.utc)).astimezone(zone).date()


def month_bounds(day: date_type) -> tuple[str, str]:
    """First and last day of the calendar month containing `day`."""
    start = day.replace(day=1)
    if start.month == 12:
        next_month = start.replace(year=start.year + 1, month=1)
    else:
        next_month = start.replace(month=start.month + 1)
    return start.isoformat(), (next_month - timedelta(days=1)).isoformat()


def previous_month_bounds(day: date_type) -> tuple[str, str]:
    """First and last day of the calendar month before the one containing `day`."""
    last_of_previous = day.replace(day=1) - timedelta(days=1)
    return month_bounds(last_of_previous)


def period_bounds(period: BudgetPeriod, day: date_type) -> tuple[str, str]:
    """Inclusive window of `period` containing `day` (weeks run Monday..Sunday)."""
    if period == BudgetPeriod.WEEKLY:
        start = day - timedelta(days=day.weekday())
        return start.isoformat(), (start + timedelta(days=6)).isoformat()
    if period == BudgetPeriod.YEARLY:
        return date_type(day.year, 1, 1).isoformat(), date_type(day.year, 12, 31).isoformat()
    return month_bounds(day)
