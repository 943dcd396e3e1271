"""
MongoDB Storage Implementation

DESIGN DECISION: Documents use the camelCase field names of the API models
(userId, categoryId, paymentMethod, createdAt, ...), so data written by
earlier deployments of the service loads unchanged. Ids are ObjectIds in
the database and hex strings everywhere else.

TRADEOFFS:
- Reads degrade: a driver failure is logged and an empty result returned,
  so a flaky connection shows up as missing data rather than 500s
- Writes fail loudly with BackendUnavailableError
- No multi-document transactions (every write touches one document)
"""

from contextlib import contextmanager
from enum import Enum
from typing import Any, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from expenseai.logger import get_logger
from expenseai.models.finance import (
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
    BackendUnavailableError,
    DuplicateError,
    ExpenseStorageInterface,
    NotFoundError,
    SessionStore,
)
from expenseai.services.storage.sessions import (
    DEFAULT_SESSION_TTL_SECONDS,
    MongoSessionStore,
)


logger = get_logger(__name__)

USERS = "users"
CATEGORIES = "categories"
EXPENSES = "expenses"
INSIGHTS = "insights"
BUDGETS = "budgets"
PROFILES = "userprofiles"
SESSIONS = "sessions"


def to_object_id(value: Optional[str]) -> Optional[ObjectId]:
    """Parse a hex id. Anything that is not a valid ObjectId yields None."""
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def to_document(fields: dict[str, Any], model_cls) -> dict[str, Any]:
    """Map attribute names to their camelCase document keys."""
    document = {}
    for name, value in fields.items():
        field = model_cls.model_fields.get(name)
        key = field.alias if field is not None and field.alias else name
        document[key] = _plain(value)
    return document


def from_document(model_cls, document: dict[str, Any]):
    data = dict(document)
    data["id"] = str(data.pop("_id"))
    return model_cls.model_validate(data)


@contextmanager
def _writing(operation: str):
    try:
        yield
    except DuplicateKeyError as e:
        raise DuplicateError(f"{operation}: duplicate key") from e
    except PyMongoError as e:
        raise BackendUnavailableError(f"{operation} failed: {e}") from e


def _read_failed(operation: str, error: Exception) -> None:
    logger.warning("mongo_read_failed", operation=operation, error=str(error))


class MongoStorage(ExpenseStorageInterface):
    """
    Storage on a Motor database handle.

    Usage:
        client = AsyncIOMotorClient(uri)
        storage = MongoStorage(client["expenseai"])
    """

    name = "mongodb"

    def __init__(self, database, session_ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS):
        self._db = database
        self._sessions = MongoSessionStore(database[SESSIONS], ttl_seconds=session_ttl_seconds)

    @property
    def session_store(self) -> SessionStore:
        return self._sessions

    async def _find_all(self, collection: str, query: dict, **kwargs) -> list[dict]:
        cursor = self._db[collection].find(query, **kwargs)
        return await cursor.to_list(length=None)

    async def _aggregate(self, collection: str, pipeline: list[dict]) -> list[dict]:
        cursor = self._db[collection].aggregate(pipeline)
        return await cursor.to_list(length=None)

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def get_user(self, user_id: str) -> Optional[User]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        try:
            document = await self._db[USERS].find_one({"_id": oid})
        except PyMongoError as e:
            _read_failed("get_user", e)
            return None
        return from_document(User, document) if document else None

    async def get_user_by_username(self, username: str) -> Optional[User]:
        try:
            document = await self._db[USERS].find_one({"username": username})
        except PyMongoError as e:
            _read_failed("get_user_by_username", e)
            return None
        return from_document(User, document) if document else None

    async def create_user(self, user: UserCreate) -> User:
        with _writing("create_user"):
            if await self._db[USERS].find_one({"username": user.username}) is not None:
                raise DuplicateError(f"Username already exists: {user.username}")
            now = utcnow()
            document = to_document(
                {**user.model_dump(), "created_at": now, "updated_at": now}, User
            )
            result = await self._db[USERS].insert_one(document)
        document["_id"] = result.inserted_id
        return from_document(User, document)

    async def update_user(self, user_id: str, changes: UserUpdate) -> User:
        oid = to_object_id(user_id)
        if oid is None:
            raise NotFoundError(f"User not found: {user_id}")
        update = to_document(
            {**changes.model_dump(exclude_unset=True), "updated_at": utcnow()}, User
        )
        with _writing("update_user"):
            document = await self._db[USERS].find_one_and_update(
                {"_id": oid},
                {"$set": update},
                return_document=ReturnDocument.AFTER,
            )
        if document is None:
            raise NotFoundError(f"User not found: {user_id}")
        return from_document(User, document)

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def get_categories(self) -> list[Category]:
        try:
            documents = await self._find_all(CATEGORIES, {})
        except PyMongoError as e:
            _read_failed("get_categories", e)
            return []
        return [from_document(Category, d) for d in documents]

    async def _categories_by_id(self, ids: set[str]) -> dict[str, Category]:
        """Resolve many category ids with a single $in query."""
        oids = [oid for oid in (to_object_id(i) for i in ids) if oid is not None]
        if not oids:
            return {}
        documents = await self._find_all(CATEGORIES, {"_id": {"$in": oids}})
        categories = [from_document(Category, d) for d in documents]
        return {c.id: c for c in categories}

    async def create_category(self, category: CategoryCreate) -> Category:
        document = to_document({**category.model_dump(), "created_at": utcnow()}, Category)
        with _writing("create_category"):
            result = await self._db[CATEGORIES].insert_one(document)
        document["_id"] = result.inserted_id
        return from_document(Category, document)

    async def update_category(self, category_id: str, changes: CategoryUpdate) -> Category:
        oid = to_object_id(category_id)
        if oid is None:
            raise NotFoundError(f"Category not found: {category_id}")
        with _writing("update_category"):
            document = await self._db[CATEGORIES].find_one({"_id": oid})
            if document is None:
                raise NotFoundError(f"Category not found: {category_id}")
            fields = changes.changes()
            if fields:
                Category(**{**from_document(Category, document).model_dump(), **fields})
                document = await self._db[CATEGORIES].find_one_and_update(
                    {"_id": oid},
                    {"$set": to_document(fields, Category)},
                    return_document=ReturnDocument.AFTER,
                )
        if document is None:
            raise NotFoundError(f"Category not found: {category_id}")
        return from_document(Category, document)

    async def delete_category(self, category_id: str) -> None:
        oid = to_object_id(category_id)
        if oid is None:
            raise NotFoundError(f"Category not found: {category_id}")
        with _writing("delete_category"):
            result = await self._db[CATEGORIES].delete_one({"_id": oid})
        if result.deleted_count == 0:
            raise NotFoundError(f"Category not found: {category_id}")

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    async def _attach_categories(self, documents: list[dict]) -> list[ExpenseWithCategory]:
        expenses = [from_document(Expense, d) for d in documents]
        categories = await self._categories_by_id(
            {e.category_id for e in expenses if e.category_id}
        )
        return [
            ExpenseWithCategory(
                **e.model_dump(),
                category=categories.get(e.category_id) if e.category_id else None,
            )
            for e in expenses
        ]

    async def get_expenses_by_user(
        self,
        user_id: str,
        limit: int = 50,
    ) -> list[ExpenseWithCategory]:
        if limit <= 0:
            return []
        try:
            documents = await self._find_all(
                EXPENSES,
                {"userId": user_id},
                sort=[("date", -1), ("createdAt", -1), ("_id", -1)],
                limit=limit,
            )
            return await self._attach_categories(documents)
        except PyMongoError as e:
            _read_failed("get_expenses_by_user", e)
            return []

    async def get_expenses_by_user_and_date_range(
        self,
        user_id: str,
        start_date: str,
        end_date: str,
    ) -> list[ExpenseWithCategory]:
        try:
            documents = await self._find_all(
                EXPENSES,
                {"userId": user_id, "date": {"$gte": start_date, "$lte": end_date}},
                sort=[("date", -1), ("createdAt", -1), ("_id", -1)],
            )
            return await self._attach_categories(documents)
        except PyMongoError as e:
            _read_failed("get_expenses_by_user_and_date_range", e)
            return []

    async def create_expense(self, user_id: str, expense: ExpenseCreate) -> Expense:
        now = utcnow()
        document = to_document(
            {**expense.model_dump(), "user_id": user_id, "created_at": now, "updated_at": now},
            Expense,
        )
        with _writing("create_expense"):
            result = await self._db[EXPENSES].insert_one(document)
        document["_id"] = result.inserted_id
        return from_document(Expense, document)

    async def update_expense(
        self,
        user_id: str,
        expense_id: str,
        changes: ExpenseUpdate,
    ) -> Expense:
        oid = to_object_id(expense_id)
        if oid is None:
            raise NotFoundError(f"Expense not found: {expense_id}")
        with _writing("update_expense"):
            document = await self._db[EXPENSES].find_one({"_id": oid, "userId": user_id})
            if document is None:
                raise NotFoundError(f"Expense not found: {expense_id}")
            fields = {**changes.changes(), "updated_at": utcnow()}
            # Validate the merged record before anything is written
            Expense(**{**from_document(Expense, document).model_dump(), **fields})
            document = await self._db[EXPENSES].find_one_and_update(
                {"_id": oid, "userId": user_id},
                {"$set": to_document(fields, Expense)},
                return_document=ReturnDocument.AFTER,
            )
        if document is None:
            raise NotFoundError(f"Expense not found: {expense_id}")
        return from_document(Expense, document)

    async def delete_expense(self, user_id: str, expense_id: str) -> None:
        oid = to_object_id(expense_id)
        if oid is None:
            raise NotFoundError(f"Expense not found: {expense_id}")
        with _writing("delete_expense"):
            result = await self._db[EXPENSES].delete_one({"_id": oid, "userId": user_id})
        if result.deleted_count == 0:
            raise NotFoundError(f"Expense not found: {expense_id}")

    # -------------------------------------------------------------------------
    # Insights
    # -------------------------------------------------------------------------

    async def get_insights_by_user(self, user_id: str) -> list[Insight]:
        try:
            documents = await self._find_all(
                INSIGHTS,
                {"userId": user_id},
                sort=[("createdAt", -1), ("_id", -1)],
            )
        except PyMongoError as e:
            _read_failed("get_insights_by_user", e)
            return []
        return [from_document(Insight, d) for d in documents]

    async def create_insight(self, user_id: str, insight: InsightCreate) -> Insight:
        document = to_document(
            {**insight.model_dump(), "user_id": user_id, "is_read": False, "created_at": utcnow()},
            Insight,
        )
        with _writing("create_insight"):
            result = await self._db[INSIGHTS].insert_one(document)
        document["_id"] = result.inserted_id
        return from_document(Insight, document)

    async def mark_insight_as_read(self, user_id: str, insight_id: str) -> Insight:
        oid = to_object_id(insight_id)
        if oid is None:
            raise NotFoundError(f"Insight not found: {insight_id}")
        with _writing("mark_insight_as_read"):
            document = await self._db[INSIGHTS].find_one_and_update(
                {"_id": oid, "userId": user_id},
                {"$set": {"isRead": True}},
                return_document=ReturnDocument.AFTER,
            )
        if document is None:
            raise NotFoundError(f"Insight not found: {insight_id}")
        return from_document(Insight, document)

    async def clear_user_insights(self, user_id: str) -> int:
        with _writing("clear_user_insights"):
            result = await self._db[INSIGHTS].delete_many({"userId": user_id})
        return result.deleted_count

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    async def get_budgets_by_user(self, user_id: str) -> list[Budget]:
        try:
            documents = await self._find_all(
                BUDGETS,
                {"userId": user_id},
                sort=[("createdAt", -1), ("_id", -1)],
            )
        except PyMongoError as e:
            _read_failed("get_budgets_by_user", e)
            return []
        return [from_document(Budget, d) for d in documents]

    async def create_budget(self, user_id: str, budget: BudgetCreate) -> Budget:
        now = utcnow()
        document = to_document(
            {**budget.model_dump(), "user_id": user_id, "created_at": now, "updated_at": now},
            Budget,
        )
        with _writing("create_budget"):
            result = await self._db[BUDGETS].insert_one(document)
        document["_id"] = result.inserted_id
        return from_document(Budget, document)

    async def update_budget(
        self,
        user_id: str,
        budget_id: str,
        changes: BudgetUpdate,
    ) -> Budget:
        oid = to_object_id(budget_id)
        if oid is None:
            raise NotFoundError(f"Budget not found: {budget_id}")
        with _writing("update_budget"):
            document = await self._db[BUDGETS].find_one({"_id": oid, "userId": user_id})
            if document is None:
                raise NotFoundError(f"Budget not found: {budget_id}")
            existing = from_document(Budget, document)
            # Validates the merged date range before anything is written
            merged = Budget(**{**existing.model_dump(), **changes.changes(), "updated_at": utcnow()})
            update = to_document(merged.model_dump(exclude={"id", "user_id", "created_at"}), Budget)
            document = await self._db[BUDGETS].find_one_and_update(
                {"_id": oid, "userId": user_id},
                {"$set": update},
                return_document=ReturnDocument.AFTER,
            )
        if document is None:
            raise NotFoundError(f"Budget not found: {budget_id}")
        return from_document(Budget, document)

    async def delete_budget(self, user_id: str, budget_id: str) -> None:
        oid = to_object_id(budget_id)
        if oid is None:
            raise NotFoundError(f"Budget not found: {budget_id}")
        with _writing("delete_budget"):
            result = await self._db[BUDGETS].delete_one({"_id": oid, "userId": user_id})
        if result.deleted_count == 0:
            raise NotFoundError(f"Budget not found: {budget_id}")

    # -------------------------------------------------------------------------
    # User profile
    # -------------------------------------------------------------------------

    async def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        try:
            document = await self._db[PROFILES].find_one({"userId": user_id})
        except PyMongoError as e:
            _read_failed("get_user_profile", e)
            return None
        return from_document(UserProfile, document) if document else None

    async def update_user_profile(
        self,
        user_id: str,
        changes: UserProfileUpdate,
    ) -> UserProfile:
        provided = {
            key: value
            for key, value in changes.model_dump(exclude_unset=True).items()
            if value is not None
        }
        defaults = UserProfile.defaults_for(user_id).model_dump(exclude={"id", "user_id"})
        on_insert = {k: v for k, v in defaults.items() if k not in provided}

        update: dict[str, Any] = {}
        if provided:
            update["$set"] = to_document(provided, UserProfile)
        if on_insert:
            update["$setOnInsert"] = to_document(on_insert, UserProfile)

        with _writing("update_user_profile"):
            document = await self._db[PROFILES].find_one_and_update(
                {"userId": user_id},
                update,
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        return from_document(UserProfile, document)

    # -------------------------------------------------------------------------
    # Analytics
    # -------------------------------------------------------------------------

    async def get_expense_stats(
        self,
        user_id: str,
        start_date: str,
        end_date: str,
    ) -> ExpenseStats:
        match = {"$match": {"userId": user_id, "date": {"$gte": start_date, "$lte": end_date}}}
        try:
            totals = await self._aggregate(EXPENSES, [
                match,
                {"$group": {"_id": None, "total": {"$sum": "$amount"}}},
            ])
            by_category = await self._aggregate(EXPENSES, [
                match,
                {"$group": {"_id": "$categoryId", "amount": {"$sum": "$amount"}}},
                {"$sort": {"amount": -1}},
            ])
            by_day = await self._aggregate(EXPENSES, [
                match,
                {"$group": {"_id": "$date", "amount": {"$sum": "$amount"}}},
                {"$sort": {"_id": 1}},
            ])
            categories = await self._categories_by_id(
                {row["_id"] for row in by_category if row.get("_id")}
            )
        except PyMongoError as e:
            _read_failed("get_expense_stats", e)
            return ExpenseStats()

        breakdown: dict[Optional[str], CategoryBreakdownItem] = {}
        for row in by_category:
            category = categories.get(row.get("_id"))
            key = category.id if category else None
            if key in breakdown:
                # Missing and dangling category ids share one sentinel entry
                breakdown[key].amount += row["amount"]
                continue
            breakdown[key] = CategoryBreakdownItem(
                category_name=category.name if category else UNCATEGORIZED_NAME,
                color=category.color if category else UNCATEGORIZED_COLOR,
                amount=row["amount"],
            )
        items = sorted(breakdown.values(), key=lambda item: (-item.amount, item.category_name))

        return ExpenseStats(
            total_spent=totals[0]["total"] if totals else 0.0,
            category_breakdown=items,
            daily_trend=[DailyTrendPoint(date=row["_id"], amount=row["amount"]) for row in by_day],
        )
