"""
Storage Services Package

Provides the abstract storage interface, the in-memory and MongoDB
backends, and the manager that switches between them at runtime.
"""

from expenseai.services.storage.interface import (
    BackendUnavailableError,
    DuplicateError,
    ExpenseStorageInterface,
    NotFoundError,
    SessionStore,
    StorageError,
)
from expenseai.services.storage.lifecycle import (
    MongoTopologyListener,
    StorageManager,
    create_mongo_client,
)
from expenseai.services.storage.memory import InMemoryStorage
from expenseai.services.storage.mongo import MongoStorage
from expenseai.services.storage.sessions import (
    InMemorySessionStore,
    MongoSessionStore,
)

__all__ = [
    # Interfaces
    "ExpenseStorageInterface",
    "SessionStore",
    # Backends
    "InMemoryStorage",
    "MongoStorage",
    "InMemorySessionStore",
    "MongoSessionStore",
    # Lifecycle
    "MongoTopologyListener",
    "StorageManager",
    "create_mongo_client",
    # Exceptions
    "BackendUnavailableError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
]
