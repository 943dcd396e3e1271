"""
Storage Lifecycle Manager

DESIGN DECISION: The process always starts on InMemoryStorage and upgrades
to MongoDB once the database answers. After that, the driver's topology
events move the active backend back and forth:
- readable server appears -> upgrade to a new MongoStorage
- readable server lost    -> downgrade to a fresh InMemoryStorage

TRADEOFFS:
- Nothing is migrated between backends. Rows written in memory before the
  upgrade are gone once MongoDB takes over, and in-memory rows written
  during an outage are gone once it comes back.
- Sessions live in the backend, so a swap logs every user out.
- Callers that captured current() keep using that backend until their
  operation finishes.
"""

import asyncio
import contextlib
from typing import Callable, Optional, Sequence

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import monitoring
from pymongo.errors import PyMongoError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_delay,
    wait_fixed,
)

from expenseai.config import MongoSettings, Settings, get_settings
from expenseai.logger import get_logger
from expenseai.services.storage.interface import (
    BackendUnavailableError,
    ExpenseStorageInterface,
    StorageError,
)
from expenseai.services.storage.memory import InMemoryStorage
from expenseai.services.storage.mongo import MongoStorage


logger = get_logger(__name__)


def create_mongo_client(
    settings: MongoSettings,
    event_listeners: Sequence[monitoring.TopologyListener] = (),
) -> AsyncIOMotorClient:
    """Build the Motor client. Connecting happens lazily in the background."""
    return AsyncIOMotorClient(
        settings.uri,
        serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
        connectTimeoutMS=settings.connect_timeout_ms,
        socketTimeoutMS=settings.socket_timeout_ms,
        maxPoolSize=settings.max_pool_size,
        minPoolSize=settings.min_pool_size,
        event_listeners=list(event_listeners),
    )


class MongoTopologyListener(monitoring.TopologyListener):
    """
    Turns driver topology changes into upgrade/downgrade calls.

    The driver invokes these callbacks on its monitor threads; the actual
    swap is scheduled on the manager's event loop.
    """

    def __init__(self, manager: "StorageManager", loop: asyncio.AbstractEventLoop):
        self._manager = manager
        self._loop = loop

    def opened(self, event):
        pass

    def closed(self, event):
        pass

    def description_changed(self, event):
        was_readable = event.previous_description.has_readable_server()
        is_readable = event.new_description.has_readable_server()
        if was_readable == is_readable:
            return
        callback = self._manager.upgrade if is_readable else self._manager.downgrade
        try:
            self._loop.call_soon_threadsafe(callback)
        except RuntimeError:
            # Event loop already closed during shutdown
            logger.debug("topology_event_after_shutdown", readable=is_readable)


class StorageManager:
    """
    Owns the active storage backend.

    Usage:
        manager = StorageManager(settings)
        await manager.start()
        storage = manager.current()   # capture once per operation
        ...
        await manager.stop()
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client_factory: Optional[Callable] = None,
    ):
        self._settings = settings or get_settings()
        self._client_factory = client_factory or create_mongo_client
        self._client = None
        self._probe_task: Optional[asyncio.Task] = None
        self._background: set[asyncio.Task] = set()
        self._backend: ExpenseStorageInterface = self._new_memory_backend()

    def _new_memory_backend(self) -> InMemoryStorage:
        return InMemoryStorage(session_ttl_seconds=self._settings.auth.session_ttl_seconds)

    def current(self) -> ExpenseStorageInterface:
        """The backend to use for the operation about to start."""
        return self._backend

    @property
    def backend_name(self) -> str:
        return self._backend.name

    @property
    def is_persistent(self) -> bool:
        return isinstance(self._backend, MongoStorage)

    # -------------------------------------------------------------------------
    # Startup / shutdown
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Create the database client and begin probing, if a URI is configured."""
        mongo_settings = self._settings.mongo
        if not mongo_settings.uri:
            logger.info("storage_memory_only", reason="no MongoDB URI configured")
            return

        listener = MongoTopologyListener(self, asyncio.get_running_loop())
        self._client = self._client_factory(mongo_settings, [listener])
        self._probe_task = asyncio.create_task(self._probe_until_connected())
        logger.info("storage_probe_started", database=mongo_settings.database_name)

    async def stop(self) -> None:
        tasks = list(self._background)
        if self._probe_task is not None:
            tasks.append(self._probe_task)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._probe_task = None
        self._background.clear()

        if self._client is not None:
            self._client.close()
            self._client = None
        logger.info("storage_stopped", backend=self.backend_name)

    # -------------------------------------------------------------------------
    # Probing
    # -------------------------------------------------------------------------

    async def ping(self) -> None:
        """
        Ask the server for a ping.

        Raises:
            BackendUnavailableError: If the server did not answer
        """
        try:
            await self._client.admin.command("ping")
        except PyMongoError as e:
            raise BackendUnavailableError(f"MongoDB ping failed: {e}") from e

    async def _probe_until_connected(self) -> None:
        storage_settings = self._settings.storage
        await asyncio.sleep(storage_settings.initial_probe_delay_seconds)
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_delay(storage_settings.retry_window_seconds),
                wait=wait_fixed(storage_settings.retry_interval_seconds),
                retry=retry_if_exception_type(BackendUnavailableError),
                reraise=True,
            ):
                with attempt:
                    await self.ping()
        except BackendUnavailableError as e:
            logger.warning(
                "storage_upgrade_abandoned",
                retry_window_seconds=storage_settings.retry_window_seconds,
                error=str(e),
            )
            return
        self.upgrade()

    # -------------------------------------------------------------------------
    # Swaps
    # -------------------------------------------------------------------------

    def upgrade(self) -> bool:
        """Switch to MongoDB. Returns False if there was nothing to do."""
        if self._client is None or isinstance(self._backend, MongoStorage):
            return False
        backend = MongoStorage(
            self._client[self._settings.mongo.database_name],
            session_ttl_seconds=self._settings.auth.session_ttl_seconds,
        )
        self._backend = backend
        logger.info("storage_upgraded", backend=backend.name)
        self._run_in_background(self._seed_defaults(backend))
        return True

    def downgrade(self) -> bool:
        """Switch to a fresh in-memory backend. Returns False if already there."""
        if isinstance(self._backend, InMemoryStorage):
            return False
        self._backend = self._new_memory_backend()
        logger.warning("storage_downgraded", backend=self._backend.name)
        return True

    def _run_in_background(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _seed_defaults(self, backend: ExpenseStorageInterface) -> None:
        try:
            created = await backend.ensure_default_categories()
        except StorageError as e:
            logger.error("default_categories_seed_failed", backend=backend.name, error=str(e))
            return
        if created:
            logger.info("default_categories_seeded", backend=backend.name, count=len(created))

    async def wait_for_background(self) -> None:
        """Wait for pending background work (seeding) to finish."""
        if self._background:
            await asyncio.gather(*list(self._background))
