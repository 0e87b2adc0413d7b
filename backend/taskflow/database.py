"""MongoDB connection management"""
from typing import Callable, Optional
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database as MongoDatabase
from pymongo.errors import PyMongoError
from taskflow.utils.monitoring import StructuredLogger

DEFAULT_DATABASE_NAME = "advanced_crud"


class Database:
    """Owns the single MongoDB client for the process.

    The composition root creates one instance, calls ``connect()`` before
    serving and ``close()`` on shutdown. Route handlers receive it through
    dependency injection instead of importing a module-level client.
    """

    def __init__(
        self,
        uri: str,
        client_factory: Callable[..., MongoClient] = MongoClient,
        server_selection_timeout_ms: int = 5000,
    ):
        self.uri = uri
        self._client_factory = client_factory
        self._server_selection_timeout_ms = server_selection_timeout_ms
        self._client: Optional[MongoClient] = None
        self._db: Optional[MongoDatabase] = None
        self._closed = False

    @property
    def is_connected(self) -> bool:
        return self._db is not None and not self._closed

    @property
    def state(self) -> str:
        return "connected" if self.is_connected else "disconnected"

    def connect(self) -> bool:
        """Open the client, verify the server answers and create indexes.

        Returns False on failure; the caller decides what to do with it.
        """
        if self.is_connected:
            return True

        try:
            self._client = self._client_factory(
                self.uri,
                serverSelectionTimeoutMS=self._server_selection_timeout_ms,
            )
            self._client.admin.command("ping")
            self._db = self._client.get_default_database(default=DEFAULT_DATABASE_NAME)
            self._closed = False
            self.ensure_indexes()
        except PyMongoError as e:
            StructuredLogger.log_error(e, context={"function": "Database.connect", "uri": self.uri})
            self._release_client()
            return False

        StructuredLogger.log_event(
            "database_connected",
            "Connected to MongoDB",
            metadata={"uri": self.uri, "database": self._db.name},
        )
        return True

    def ensure_indexes(self):
        """Create the indexes the route groups rely on"""
        self.users.create_index("email", unique=True)
        self.items.create_index([("created_by", ASCENDING), ("status", ASCENDING)])
        self.items.create_index([("is_public", ASCENDING), ("created_at", DESCENDING)])
        self.items.create_index("due_date")
        self.reminders.create_index([("user_id", ASCENDING), ("status", ASCENDING)])
        self.reminders.create_index([("status", ASCENDING), ("remind_at", ASCENDING)])
        self.notifications.create_index([("user_id", ASCENDING), ("is_read", ASCENDING)])
        self.notifications.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])

    def close(self):
        """Close the client. Safe to call more than once."""
        if self._closed or self._client is None:
            return
        self._release_client()
        self._closed = True
        StructuredLogger.log_event("database_closed", "MongoDB connection closed")

    def _release_client(self):
        if self._client is not None:
            self._client.close()
        self._client = None
        self._db = None

    @property
    def db(self) -> MongoDatabase:
        if not self.is_connected:
            raise RuntimeError("Database is not connected")
        return self._db

    @property
    def users(self) -> Collection:
        return self.db["users"]

    @property
    def items(self) -> Collection:
        return self.db["items"]

    @property
    def reminders(self) -> Collection:
        return self.db["reminders"]

    @property
    def notifications(self) -> Collection:
        return self.db["notifications"]
