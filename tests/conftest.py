"""
Shared fixtures.

Test strategy:
1. Storage contract tests run against both backends (MongoDB via mongomock-motor)
2. AI agents run unconfigured or with a fake model (no real API calls)
3. API tests use FastAPI's TestClient on an in-memory app
"""

from datetime import date
from typing import Any

import pytest
from mongomock_motor import AsyncMongoMockClient

from expenseai.config import get_settings
from expenseai.models.finance import ExpenseCreate, PaymentMethod
from expenseai.services.storage import InMemoryStorage, MongoStorage


ENV_VARS = (
    "MONGODB_URI",
    "MONGODB_DATABASE_NAME",
    "DATABASE_URL",
    "GEMINI_API_KEY",
    "STORAGE_INITIAL_PROBE_DELAY_SECONDS",
    "STORAGE_RETRY_INTERVAL_SECONDS",
    "STORAGE_RETRY_WINDOW_SECONDS",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Tests never see a real database URI or API key."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def memory_storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
async def mongo_storage() -> MongoStorage:
    client = AsyncMongoMockClient()
    storage = MongoStorage(client["expenseai_test"])
    await storage.ensure_default_categories()
    return storage


@pytest.fixture(params=["memory", "mongodb"])
async def storage(request):
    """Every storage contract test runs once per backend."""
    if request.param == "memory":
        return InMemoryStorage()
    client = AsyncMongoMockClient()
    backend = MongoStorage(client["expenseai_test"])
    await backend.ensure_default_categories()
    return backend


def make_expense(
    amount: Any = 100.0,
    description: str = "Test expense",
    day: str = "2024-03-15",
    category_id=None,
    payment_method: PaymentMethod = PaymentMethod.UPI,
) -> ExpenseCreate:
    return ExpenseCreate(
        amount=amount,
        description=description,
        date=day,
        category_id=category_id,
        payment_method=payment_method,
    )


async def category_named(storage, name: str):
    for category in await storage.get_categories():
        if category.name == name:
            return category
    raise AssertionError(f"No category named {name!r}")


FIXED_TODAY = date(2024, 3, 20)
