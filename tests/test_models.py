"""
Tests for ExpenseAI data models.

Models are the first line of validation: anything that gets past them is
assumed well-formed by storage and flows.
"""

from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError

from expenseai.models.finance import (
    ALL_CATEGORIES_NAME,
    DEFAULT_CATEGORIES,
    UNCATEGORIZED_COLOR,
    UNCATEGORIZED_NAME,
    Budget,
    BudgetCreate,
    BudgetPeriod,
    Category,
    ExpenseCreate,
    ExpenseUpdate,
    ExpenseWithCategory,
    Insight,
    PaymentMethod,
    User,
    UserCreate,
    UserProfile,
    UserProfileUpdate,
    local_today,
    month_bounds,
    period_bounds,
    previous_month_bounds,
    validate_iso_date,
)
from expenseai.models.notifications import NotificationMessage, NotificationType


class TestExpenseModels:
    """Tests for expense payloads and records."""

    def test_amount_string_is_parsed(self):
        """Numeric strings from the web form become floats."""
        expense = ExpenseCreate(
            amount="250.50",
            description="Uber ride",
            paymentMethod="upi",
            date="2024-03-15",
        )
        assert expense.amount == 250.5
        assert expense.payment_method == PaymentMethod.UPI

    def test_negative_amount_rejected(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValidationError):
            ExpenseCreate(amount=-1, description="x", payment_method="cash", date="2024-03-15")

    def test_non_numeric_amount_rejected(self):
        with pytest.raises(ValidationError):
            ExpenseCreate(amount="abc", description="x", payment_method="cash", date="2024-03-15")

    def test_invalid_date_rejected(self):
        """Dates must be YYYY-MM-DD calendar dates."""
        with pytest.raises(ValidationError):
            ExpenseCreate(amount=1, description="x", payment_method="cash", date="15/03/2024")
        with pytest.raises(ValidationError):
            ExpenseCreate(amount=1, description="x", payment_method="cash", date="2024-02-30")

    def test_unknown_payment_method_rejected(self):
        with pytest.raises(ValidationError):
            ExpenseCreate(amount=1, description="x", payment_method="cheque", date="2024-03-15")

    def test_blank_category_becomes_none(self):
        expense = ExpenseCreate(
            amount=1, description="x", payment_method="cash", date="2024-03-15", categoryId=""
        )
        assert expense.category_id is None

    def test_update_only_reports_sent_fields(self):
        """Partial updates carry only the fields the caller sent."""
        changes = ExpenseUpdate(amount="99")
        assert changes.changes() == {"amount": 99.0}

    def test_update_null_only_allowed_for_category(self):
        assert ExpenseUpdate.model_validate({"categoryId": None}).changes() == {"category_id": None}
        for field in ("amount", "description", "paymentMethod", "date"):
            with pytest.raises(ValidationError, match="cannot be null"):
                ExpenseUpdate.model_validate({field: None})

    def test_missing_category_renders_uncategorized(self):
        """An expense without a category serializes with the sentinel name and color."""
        expense = ExpenseWithCategory(
            id="e1",
            user_id="u1",
            amount=10,
            description="Mystery",
            payment_method=PaymentMethod.CASH,
            date="2024-03-15",
        )
        data = expense.model_dump(by_alias=True)
        assert data["categoryName"] == UNCATEGORIZED_NAME
        assert data["categoryColor"] == UNCATEGORIZED_COLOR

    def test_resolved_category_is_exposed(self):
        category = Category(id="c1", name="Travel", color="#84cc16")
        expense = ExpenseWithCategory(
            id="e1",
            user_id="u1",
            category_id="c1",
            category=category,
            amount=10,
            description="Flight",
            payment_method=PaymentMethod.CREDIT_CARD,
            date="2024-03-15",
        )
        assert expense.category_name == "Travel"
        assert expense.category_color == "#84cc16"

    def test_camel_case_serialization(self):
        expense = ExpenseCreate(amount=1, description="x", payment_method="debit_card", date="2024-03-15")
        data = expense.model_dump(by_alias=True)
        assert "paymentMethod" in data
        assert "categoryId" in data


class TestBudgetModels:
    """Tests for budgets."""

    def test_all_category_option_means_no_category(self):
        budget = BudgetCreate(
            amount=5000, category_id="all", start_date="2024-03-01", end_date="2024-03-31"
        )
        assert budget.category_id is None
        assert budget.period == BudgetPeriod.MONTHLY

    def test_end_before_start_rejected(self):
        with pytest.raises(ValidationError):
            BudgetCreate(amount=100, start_date="2024-03-31", end_date="2024-03-01")

    def test_is_active_inclusive_bounds(self):
        budget = Budget(
            id="b1",
            user_id="u1",
            amount=100,
            period=BudgetPeriod.MONTHLY,
            start_date="2024-03-01",
            end_date="2024-03-31",
        )
        assert budget.is_active("2024-03-01")
        assert budget.is_active(date(2024, 3, 31))
        assert not budget.is_active("2024-04-01")
        assert not budget.is_active("2024-03-15", BudgetPeriod.WEEKLY)


class TestUserModels:
    """Tests for users and profiles."""

    def test_short_password_rejected(self):
        with pytest.raises(ValidationError):
            UserCreate(username="asha", password="123")

    def test_password_never_serialized(self):
        """Test that the password hash is excluded from output."""
        user = User(id="u1", username="asha", password="$2b$12$hash")
        assert "password" not in user.model_dump()
        assert "password" not in user.model_dump_json()

    def test_profile_defaults(self):
        profile = UserProfile.defaults_for("u1")
        assert profile.monthly_income == 50000
        assert profile.currency == "INR"
        assert profile.timezone == "Asia/Kolkata"

    def test_profile_merge_keeps_unset_fields(self):
        profile = UserProfile(id="p1", user_id="u1", monthly_income=80000, currency="USD")
        merged = profile.merged_with(UserProfileUpdate(timezone="UTC"))
        assert merged == {"monthly_income": 80000, "currency": "USD", "timezone": "UTC"}


class TestInsightModels:
    """Tests for stored insights."""

    @pytest.mark.parametrize("raw, expected", [("true", True), ("false", False), (True, True)])
    def test_legacy_read_flag(self, raw, expected):
        """Older documents stored isRead as a string."""
        insight = Insight(
            id="i1",
            user_id="u1",
            type="goal",
            title="Nice",
            description="Well done",
            priority="low",
            isRead=raw,
        )
        assert insight.is_read is expected

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            Insight(id="i1", user_id="u1", type="gossip", title="t", description="d")


class TestDateHelpers:
    """Tests for period window calculations."""

    def test_validate_iso_date_accepts_date(self):
        assert validate_iso_date(date(2024, 3, 5)) == "2024-03-05"

    def test_month_bounds_december(self):
        assert month_bounds(date(2024, 12, 10)) == ("2024-12-01", "2024-12-31")

    def test_month_bounds_leap_february(self):
        assert month_bounds(date(2024, 2, 10)) == ("2024-02-01", "2024-02-29")

    def test_previous_month_crosses_year(self):
        assert previous_month_bounds(date(2024, 1, 15)) == ("2023-12-01", "2023-12-31")

    def test_weekly_window_is_monday_to_sunday(self):
        # 2024-03-20 is a Wednesday
        assert period_bounds(BudgetPeriod.WEEKLY, date(2024, 3, 20)) == ("2024-03-18", "2024-03-24")

    def test_yearly_window(self):
        assert period_bounds(BudgetPeriod.YEARLY, date(2024, 3, 20)) == ("2024-01-01", "2024-12-31")

    def test_local_today_follows_timezone(self):
        # 20:00 UTC is already the next day in India
        now = datetime(2024, 3, 19, 20, 0, tzinfo=timezone.utc)
        assert local_today("Asia/Kolkata", now) == date(2024, 3, 20)
        assert local_today("America/New_York", now) == date(2024, 3, 19)

    def test_local_today_unknown_zone_uses_default(self):
        now = datetime(2024, 3, 19, 20, 0, tzinfo=timezone.utc)
        assert local_today("Mars/Olympus_Mons", now) == date(2024, 3, 20)
        assert local_today("../etc", now) == date(2024, 3, 20)
        assert local_today(None, now) == date(2024, 3, 20)


class TestConstants:
    def test_eight_default_categories(self):
        assert len(DEFAULT_CATEGORIES) == 8
        names = [c["name"] for c in DEFAULT_CATEGORIES]
        assert "Transportation" in names
        assert ALL_CATEGORIES_NAME not in names


class TestNotificationMessage:
    def test_frame_shape(self):
        """Frames carry type, data and an epoch-millisecond timestamp."""
        message = NotificationMessage(type=NotificationType.PONG)
        data = message.model_dump()
        assert data["type"] == NotificationType.PONG
        assert data["timestamp"] > 1_600_000_000_000
        assert "data" not in message.to_json()
