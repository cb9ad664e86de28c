"""
MongoDB connection management.

The connection is attempted in the background with a bounded number of
attempts, each raced against a timeout. Failing to connect is not fatal: the
manager switches to fallback mode and the application keeps serving from the
in-memory store.
"""

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from pymongo import AsyncMongoClient
from pymongo.monitoring import TopologyListener

import config

logger = logging.getLogger("portfolio-api.database")

FALLBACK_STATUS = "Using fallback in-memory storage"


class DatabaseUnavailableError(RuntimeError):
    """Raised when the durable database is accessed without a live client."""


class ConnectionState(str, Enum):
    DISCONNECTED = "Disconnected"
    CONNECTED = "Connected"
    CONNECTING = "Connecting"
    DISCONNECTING = "Disconnecting"
    UNINITIALIZED = "Uninitialized"


class _TopologyWatcher(TopologyListener):
    """Mirror driver-level connectivity changes into the manager's state."""

    def __init__(self, manager: "ConnectionManager"):
        self._manager = manager

    def opened(self, event):
        pass

    def description_changed(self, event):
        self._manager._on_topology_changed(event.new_description.has_writable_server())

    def closed(self, event):
        pass


class ConnectionManager:
    def __init__(
        self,
        uri: Optional[str] = None,
        database_name: str = config.DATABASE_NAME,
        max_connect_attempts: int = config.MAX_CONNECT_ATTEMPTS,
        connection_timeout_ms: int = config.CONNECTION_TIMEOUT_MS,
        retry_base_delay_ms: int = config.RETRY_BASE_DELAY_MS,
        client_options: Optional[Dict[str, Any]] = None,
        client_factory: Callable[..., Any] = AsyncMongoClient,
    ):
        self.uri = uri
        self.database_name = database_name
        self.max_connect_attempts = max(1, max_connect_attempts)
        self.connection_timeout_ms = connection_timeout_ms
        self.retry_base_delay_ms = retry_base_delay_ms
        self._client_options = dict(client_options if client_options is not None else config.client_options())
        self._client_factory = client_factory

        self._client = None
        self._state = ConnectionState.UNINITIALIZED
        self._using_fallback = False
        self._lock = asyncio.Lock()

    # -------- status --------

    @property
    def state(self) -> ConnectionState:
        return self._state

    def get_status(self) -> str:
        if self._using_fallback:
            return FALLBACK_STATUS
        return self._state.value

    def is_using_fallback(self) -> bool:
        return self._using_fallback

    def has_active_connection(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def status_report(self) -> Dict[str, Any]:
        return {
            "status": self.get_status(),
            "usingFallback": self._using_fallback,
            "connectionTime": datetime.now(timezone.utc).isoformat(),
        }

    def get_database(self):
        if self._client is None:
            raise DatabaseUnavailableError("No MongoDB client; running on in-memory storage")
        return self._client.get_default_database(default=self.database_name)

    # -------- lifecycle --------

    async def connect(self) -> bool:
        """
        Connect with bounded retries. Never raises.

        Returns True when connected. After the last failed attempt the
        fallback flag is set and False is returned.
        """
        async with self._lock:
            if self._client is not None and self.has_active_connection():
                logger.info("Using cached MongoDB connection")
                return True

            if not self.uri or self.uri == config.MONGODB_URI_PLACEHOLDER:
                logger.warning("MongoDB URI is not configured (set MONGODB_URI); using in-memory storage")
                self._state = ConnectionState.DISCONNECTED
                self._using_fallback = True
                return False

            # Stale client left behind by a dropped connection
            await self._discard_client()

            last_error: Optional[BaseException] = None
            for attempt in range(1, self.max_connect_attempts + 1):
                logger.info("MongoDB connection attempt %s/%s...", attempt, self.max_connect_attempts)
                self._state = ConnectionState.CONNECTING
                try:
                    await self._open_client()
                except Exception as e:
                    last_error = e
                    self._state = ConnectionState.DISCONNECTED
                    logger.error("MongoDB connection attempt %s failed: %s", attempt, e)
                    await self._discard_client()
                    if attempt < self.max_connect_attempts:
                        delay_ms = self.retry_base_delay_ms * attempt
                        logger.info("Retrying connection in %.1f seconds...", delay_ms / 1000)
                        await asyncio.sleep(delay_ms / 1000)
                    continue

                self._state = ConnectionState.CONNECTED
                # A successful (re)connection clears degraded mode
                self._using_fallback = False
                logger.info('Connected to MongoDB database "%s" successfully', self.database_name)
                return True

            logger.error("All MongoDB connection attempts failed. Last error: %s", last_error)
            self._using_fallback = True
            logger.warning("Using fallback in-memory storage instead. Data will not be persisted to MongoDB.")
            return False

    async def close(self) -> None:
        if self._using_fallback or self._client is None:
            logger.info("No MongoDB connection to close, using fallback storage")
            return
        self._state = ConnectionState.DISCONNECTING
        try:
            await self._client.close()
            logger.info("MongoDB connection closed")
        except Exception:
            logger.exception("Error while closing MongoDB connection")
        finally:
            self._client = None
            self._state = ConnectionState.DISCONNECTED

    # -------- internals --------

    async def _open_client(self) -> None:
        options = dict(self._client_options)
        options.setdefault("event_listeners", [_TopologyWatcher(self)])
        self._client = self._client_factory(self.uri, **options)
        timeout = self.connection_timeout_ms / 1000
        try:
            await asyncio.wait_for(self._client.admin.command("ping"), timeout=timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"Connection timeout after {self.connection_timeout_ms}ms") from None

    async def _discard_client(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.close()
        except Exception:
            logger.debug("Ignoring error while discarding failed MongoDB client", exc_info=True)

    def _on_topology_changed(self, writable: bool) -> None:
        # Only react once the initial handshake has settled
        if self._client is None or self._using_fallback:
            return
        if self._state is ConnectionState.CONNECTED and not writable:
            logger.warning("MongoDB disconnected")
            self._state = ConnectionState.DISCONNECTED
        elif self._state is ConnectionState.DISCONNECTED and writable:
            logger.info("MongoDB reconnected")
            self._state = ConnectionState.CONNECTED
