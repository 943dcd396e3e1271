"""
Login session stores.

A session maps an opaque id (carried inside the JWT) to a user id. Each
storage backend owns one store, so switching backends ends every session.
"""

import secrets
import time
from datetime import timedelta
from typing import Callable, Optional

from pymongo.errors import PyMongoError

from expenseai.logger import get_logger
from expenseai.models.finance import utcnow
from expenseai.services.storage.interface import BackendUnavailableError, SessionStore


logger = get_logger(__name__)

DEFAULT_SESSION_TTL_SECONDS = 30 * 24 * 60 * 60


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


class InMemorySessionStore(SessionStore):
    """Sessions in a dict. Expired entries are pruned on every create."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = ttl_seconds
        self._clock = clock
        self._sessions: dict[str, tuple[str, float]] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def _prune(self) -> None:
        now = self._clock()
        expired = [sid for sid, (_, expires) in self._sessions.items() if expires <= now]
        for sid in expired:
            del self._sessions[sid]

    async def create(self, user_id: str) -> str:
        self._prune()
        session_id = new_session_id()
        self._sessions[session_id] = (user_id, self._clock() + self._ttl)
        return session_id

    async def get(self, session_id: str) -> Optional[str]:
        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        user_id, expires = entry
        if expires <= self._clock():
            del self._sessions[session_id]
            return None
        return user_id

    async def destroy(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)


class MongoSessionStore(SessionStore):
    """
    Sessions in the `sessions` collection.

    Documents: {_id: <session id>, userId, expiresAt}. Lookups that fail
    against the database are logged and treated as "no session".
    """

    def __init__(self, collection, ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS):
        self._collection = collection
        self._ttl = ttl_seconds

    async def create(self, user_id: str) -> str:
        session_id = new_session_id()
        document = {
            "_id": session_id,
            "userId": user_id,
            "expiresAt": utcnow() + timedelta(seconds=self._ttl),
        }
        try:
            await self._collection.insert_one(document)
        except PyMongoError as e:
            raise BackendUnavailableError(f"Failed to create session: {e}") from e
        return session_id

    async def get(self, session_id: str) -> Optional[str]:
        try:
            document = await self._collection.find_one({"_id": session_id})
        except PyMongoError as e:
            logger.warning("mongo_read_failed", operation="get_session", error=str(e))
            return None
        if document is None:
            return None
        if document.get("expiresAt") and document["expiresAt"] <= utcnow():
            await self.destroy(session_id)
            return None
        return document.get("userId")

    async def destroy(self, session_id: str) -> None:
        try:
            await self._collection.delete_one({"_id": session_id})
        except PyMongoError as e:
            logger.warning("mongo_session_destroy_failed", error=str(e))
