"""
MongoDB connection handling.

``db_manager`` owns the single async client for the process. The client is
bound to the event loop it was created on; when that loop closes or a
different loop asks for the database (test runners, reloaders), the old
client is abandoned and a fresh one is built.
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from dataclasses import dataclass
from datetime import UTC
from typing import Any, Final, Self

import certifi
from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

logger = logging.getLogger(__name__)

DEFAULT_MONGO_URI: Final[str] = "mongodb://mongo:27017"
DEFAULT_DATABASE: Final[str] = "geotracker"


@dataclass(frozen=True)
class MongoSettings:
    """Connection settings read from MONGODB_* environment variables."""

    uri: str
    database: str
    max_pool_size: int
    connect_timeout_ms: int
    server_selection_timeout_ms: int
    socket_timeout_ms: int

    @classmethod
    def from_env(cls) -> MongoSettings:
        return cls(
            uri=os.getenv("MONGODB_URI", "").strip() or DEFAULT_MONGO_URI,
            database=os.getenv("MONGODB_DATABASE", "").strip() or DEFAULT_DATABASE,
            max_pool_size=int(os.getenv("MONGODB_MAX_POOL_SIZE", "50")),
            connect_timeout_ms=int(os.getenv("MONGODB_CONNECTION_TIMEOUT_MS", "5000")),
            server_selection_timeout_ms=int(
                os.getenv("MONGODB_SERVER_SELECTION_TIMEOUT_MS", "10000"),
            ),
            socket_timeout_ms=int(os.getenv("MONGODB_SOCKET_TIMEOUT_MS", "30000")),
        )

    def client_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "tz_aware": True,
            "tzinfo": UTC,
            "maxPoolSize": self.max_pool_size,
            "minPoolSize": 0,
            "connectTimeoutMS": self.connect_timeout_ms,
            "serverSelectionTimeoutMS": self.server_selection_timeout_ms,
            "socketTimeoutMS": self.socket_timeout_ms,
            "retryWrites": True,
            "retryReads": True,
            "appname": "GeoTracker",
        }
        # Atlas clusters are served over TLS.
        if self.uri.startswith("mongodb+srv://"):
            kwargs.update(tls=True, tlsCAFile=certifi.where())
        return kwargs


class DatabaseManager:
    """Process-wide owner of the MongoDB client and the Beanie initialization."""

    _instance: DatabaseManager | None = None
    _lock = threading.Lock()

    _client: AsyncMongoClient | None
    _db: AsyncDatabase | None
    _loop: asyncio.AbstractEventLoop | None
    _beanie_ready: bool

    def __new__(cls) -> Self:
        with cls._lock:
            if cls._instance is None:
                instance = super().__new__(cls)
                instance._client = None
                instance._db = None
                instance._loop = None
                instance._beanie_ready = False
                cls._instance = instance
        return cls._instance

    @staticmethod
    def _running_loop() -> asyncio.AbstractEventLoop | None:
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None

    def _forget_client(self, reason: str) -> None:
        # An async client cannot be closed from a foreign loop; its pool goes
        # away with the loop it was bound to.
        logger.info("Discarding MongoDB client: %s", reason)
        self._client = None
        self._db = None
        self._loop = None
        self._beanie_ready = False

    def _ensure_same_loop(self) -> None:
        if self._client is None or self._loop is None:
            return
        if self._loop.is_closed():
            self._forget_client("its event loop is closed")
            return
        current = self._running_loop()
        if current is not None and current is not self._loop:
            self._forget_client("called from a different event loop")

    def _connect(self) -> None:
        settings = MongoSettings.from_env()
        try:
            self._client = AsyncMongoClient(settings.uri, **settings.client_kwargs())
        except Exception:
            logger.exception("Could not create MongoDB client")
            raise
        self._db = self._client[settings.database]
        self._loop = self._running_loop()
        logger.info("MongoDB client created for database '%s'", settings.database)

    @property
    def db(self) -> AsyncDatabase:
        """The application database, connecting on first use."""
        self._ensure_same_loop()
        if self._db is None:
            self._connect()
        return self._db

    async def init_beanie(self) -> None:
        """Register every document model with Beanie (this also builds indexes)."""
        self._ensure_same_loop()
        if self._beanie_ready and self._db is not None:
            return

        from beanie import init_beanie

        from db.models import ALL_DOCUMENT_MODELS

        await init_beanie(database=self.db, document_models=ALL_DOCUMENT_MODELS)
        self._beanie_ready = True
        logger.info("Beanie initialized with %d document models", len(ALL_DOCUMENT_MODELS))

    async def cleanup_connections(self) -> None:
        """Close the client; the next ``db`` access reconnects."""
        client = self._client
        self._client = None
        self._db = None
        self._loop = None
        self._beanie_ready = False
        if client is None:
            return
        try:
            await client.close()
        except Exception:
            logger.exception("Error while closing MongoDB client")
        else:
            logger.info("MongoDB client closed")


db_manager = DatabaseManager()
