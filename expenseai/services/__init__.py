"""Services package."""

from expenseai.services.storage import (
    BackendUnavailableError,
    DuplicateError,
    ExpenseStorageInterface,
    InMemoryStorage,
    MongoStorage,
    NotFoundError,
    StorageError,
    StorageManager,
)

__all__ = [
    "BackendUnavailableError",
    "DuplicateError",
    "ExpenseStorageInterface",
    "InMemoryStorage",
    "MongoStorage",
    "NotFoundError",
    "StorageError",
    "StorageManager",
]
