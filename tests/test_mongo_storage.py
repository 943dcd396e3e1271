"""
MongoDB-specific storage behaviour: document shape, id handling and
failure degradation.
"""

import pytest
from bson import ObjectId
from mongomock_motor import AsyncMongoMockClient
from pymongo.errors import ServerSelectionTimeoutError

from expenseai.models.finance import ExpenseUpdate, UserCreate
from expenseai.services.storage import (
    BackendUnavailableError,
    MongoStorage,
    NotFoundError,
)
from expenseai.services.storage.mongo import to_object_id

from conftest import category_named, make_expense


class _Unreachable:
    """Collection whose every operation fails like a lost server."""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise ServerSelectionTimeoutError("No servers available")
        return fail


class _UnreachableDatabase:
    def __getitem__(self, name):
        return _Unreachable()


@pytest.fixture
def broken_storage() -> MongoStorage:
    return MongoStorage(_UnreachableDatabase())


class TestDocuments:
    """Tests for the stored document shape."""

    async def test_camel_case_fields(self):
        """Documents use the same field names as the API."""
        client = AsyncMongoMockClient()
        db = client["expenseai_test"]
        storage = MongoStorage(db)
        expense = await storage.create_expense("u1", make_expense(amount="42"))

        document = await db["expenses"].find_one({"_id": ObjectId(expense.id)})
        assert document["userId"] == "u1"
        assert document["paymentMethod"] == "upi"
        assert document["amount"] == 42.0
        assert "createdAt" in document
        assert "user_id" not in document

    async def test_legacy_string_read_flag_loads(self):
        client = AsyncMongoMockClient()
        db = client["expenseai_test"]
        await db["insights"].insert_one({
            "userId": "u1",
            "type": "goal",
            "title": "Saved more",
            "description": "You spent less this month.",
            "priority": "low",
            "isRead": "false",
        })
        [insight] = await MongoStorage(db).get_insights_by_user("u1")
        assert insight.is_read is False

    async def test_password_hash_is_stored(self):
        client = AsyncMongoMockClient()
        db = client["expenseai_test"]
        user = await MongoStorage(db).create_user(UserCreate(username="asha", password="bcrypt-hash"))
        document = await db["users"].find_one({"_id": ObjectId(user.id)})
        assert document["password"] == "bcrypt-hash"


class TestIds:
    """Tests for ObjectId translation."""

    def test_invalid_ids(self):
        assert to_object_id("not-an-object-id") is None
        assert to_object_id(None) is None
        assert to_object_id("65f1c0ffee0000000000abcd") == ObjectId("65f1c0ffee0000000000abcd")

    async def test_invalid_id_is_not_found(self, mongo_storage):
        with pytest.raises(NotFoundError):
            await mongo_storage.update_expense("u1", "garbage", ExpenseUpdate(amount=1))
        with pytest.raises(NotFoundError):
            await mongo_storage.delete_budget("u1", "garbage")
        assert await mongo_storage.get_user("garbage") is None

    async def test_garbage_category_id_reads_as_uncategorized(self, mongo_storage):
        await mongo_storage.create_expense("u1", make_expense(category_id="not-an-object-id"))
        [expense] = await mongo_storage.get_expenses_by_user("u1")
        assert expense.category is None

    async def test_category_lookup_is_batched(self, mongo_storage, monkeypatch):
        """One category query per listing, however many expenses."""
        food = await category_named(mongo_storage, "Food & Dining")
        for _ in range(5):
            await mongo_storage.create_expense("u1", make_expense(category_id=food.id))

        calls = []
        original = mongo_storage._categories_by_id

        async def counting(ids):
            calls.append(set(ids))
            return await original(ids)

        monkeypatch.setattr(mongo_storage, "_categories_by_id", counting)
        expenses = await mongo_storage.get_expenses_by_user("u1")
        assert len(expenses) == 5
        assert calls == [{food.id}]


class TestFailures:
    """Reads degrade, writes raise."""

    async def test_reads_degrade(self, broken_storage):
        assert await broken_storage.get_expenses_by_user("u1") == []
        assert await broken_storage.get_categories() == []
        assert await broken_storage.get_user_by_username("asha") is None
        assert await broken_storage.get_user_profile("u1") is None
        assert await broken_storage.session_store.get("sid") is None

        stats = await broken_storage.get_expense_stats("u1", "2024-03-01", "2024-03-31")
        assert stats.total_spent == 0
        assert stats.category_breakdown == []

    async def test_writes_raise_chained(self, broken_storage):
        with pytest.raises(BackendUnavailableError) as excinfo:
            await broken_storage.create_expense("u1", make_expense())
        assert isinstance(excinfo.value.__cause__, ServerSelectionTimeoutError)

    async def test_session_create_raises(self, broken_storage):
        with pytest.raises(BackendUnavailableError):
            await broken_storage.session_store.create("u1")

    async def test_seeding_failure_surfaces_as_storage_error(self, broken_storage):
        with pytest.raises(BackendUnavailableError):
            await broken_storage.ensure_default_categories()
