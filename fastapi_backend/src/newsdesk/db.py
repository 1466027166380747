import logging
import math
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from bson import ObjectId
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from src.newsdesk.documents import registry
from src.newsdesk.settings import Settings, get_settings

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., MongoClient]

# Shared by count/list pairs; each pair needs two workers at most.
_QUERY_POOL = ThreadPoolExecutor(max_workers=4, thread_name_prefix="newsdesk-query")


class ConfigurationError(RuntimeError):
    """A required configuration value is missing."""


class DatabaseUnavailableError(RuntimeError):
    """The database could not be reached after all connection attempts."""


class ConnectionCache:
    """
    Lazily connects to MongoDB and memoizes the client for the process.

    Every call to get_database() re-checks that the cached client is live and
    reconnects when it is not. Connection attempts back off exponentially
    (capped by ``db_retry_max_delay_seconds``) and give up after
    ``db_connect_retries`` attempts.
    """

    def __init__(
        self,
        settings: Settings,
        client_factory: ClientFactory = MongoClient,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self._client_factory = client_factory
        self._sleep = sleep
        self._client: Optional[MongoClient] = None
        self._lock = threading.Lock()

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def get_database(self) -> Database:
        client = self._client
        if client is not None and self._is_alive(client):
            return client[self.settings.mongodb_db]

        with self._lock:
            # Another thread may have reconnected while this one waited.
            if self._client is not None and self._client is not client:
                return self._client[self.settings.mongodb_db]
            self._discard()
            self._client = self._connect()
            database = self._client[self.settings.mongodb_db]
            registry.ensure_indexes(database)
            return database

    def close(self) -> None:
        with self._lock:
            self._discard()

    def _discard(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    @staticmethod
    def _is_alive(client: MongoClient) -> bool:
        try:
            client.server_info()
            return True
        except PyMongoError as e:
            logger.warning("Cached MongoDB connection is no longer live: %s", e)
            return False

    def _connect(self) -> MongoClient:
        uri = self.settings.mongodb_uri
        if not uri:
            raise ConfigurationError("MONGODB_URI is not set")

        attempts = self.settings.db_connect_retries
        delay = self.settings.db_retry_delay_seconds
        for attempt in range(1, attempts + 1):
            client: Optional[MongoClient] = None
            try:
                logger.debug("Connecting to MongoDB (attempt %d/%d)", attempt, attempts)
                client = self._client_factory(
                    uri,
                    maxPoolSize=self.settings.db_max_pool_size,
                    serverSelectionTimeoutMS=self.settings.db_server_selection_timeout_ms,
                    connectTimeoutMS=self.settings.db_connect_timeout_ms,
                    socketTimeoutMS=self.settings.db_socket_timeout_ms,
                )
                client.server_info()
                logger.info("MongoDB connected (database '%s')", self.settings.mongodb_db)
                return client
            except PyMongoError as e:
                if client is not None:
                    client.close()
                logger.warning("MongoDB connection attempt %d/%d failed: %s", attempt, attempts, e)
                if attempt == attempts:
                    raise DatabaseUnavailableError(
                        f"MongoDB connection failed after {attempts} attempts"
                    ) from e
                self._sleep(min(delay, self.settings.db_retry_max_delay_seconds))
                delay *= 2
        raise DatabaseUnavailableError("MongoDB connection failed")


_CACHE: Optional[ConnectionCache] = None
_CACHE_LOCK = threading.Lock()


# PUBLIC_INTERFACE
def init_connection_cache(
    settings: Optional[Settings] = None,
    client_factory: ClientFactory = MongoClient,
) -> ConnectionCache:
    """Install the process-wide connection cache (replacing any previous one)."""
    global _CACHE
    with _CACHE_LOCK:
        if _CACHE is not None:
            _CACHE.close()
        _CACHE = ConnectionCache(settings or get_settings(), client_factory=client_factory)
        return _CACHE


# PUBLIC_INTERFACE
def get_connection_cache() -> ConnectionCache:
    global _CACHE
    with _CACHE_LOCK:
        if _CACHE is None:
            _CACHE = ConnectionCache(get_settings())
        return _CACHE


# PUBLIC_INTERFACE
def get_connection() -> Database:
    """Return the live database handle, connecting on first use."""
    return get_connection_cache().get_database()


# PUBLIC_INTERFACE
def get_db() -> Database:
    """FastAPI dependency yielding the database handle."""
    return get_connection()


# PUBLIC_INTERFACE
def close_connection() -> None:
    global _CACHE
    with _CACHE_LOCK:
        if _CACHE is not None:
            _CACHE.close()
        _CACHE = None


def serialize(value: Any) -> Any:
    """Convert a stored document (or list of them) into JSON-ready data."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        # The driver returns naive datetimes; stored values are always UTC.
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()
    if isinstance(value, Mapping):
        return {key: serialize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(item) for item in value]
    return value


def pagination(page: int, limit: int, total: int) -> Dict[str, int]:
    return {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)}


# PUBLIC_INTERFACE
def fetch_page(
    collection: Collection,
    query: Dict[str, Any],
    sort: Sequence[Tuple[str, int]],
    page: int,
    limit: int,
) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
    """Fetch one page and the total count concurrently."""
    skip = (page - 1) * limit
    items_future = _QUERY_POOL.submit(
        lambda: list(collection.find(query).sort(list(sort)).skip(skip).limit(limit))
    )
    total_future = _QUERY_POOL.submit(collection.count_documents, query)
    items = items_future.result()
    total = total_future.result()
    return items, pagination(page, limit, total)


# PUBLIC_INTERFACE
def group_counts(collection: Collection, field: str, match: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    """Counts per distinct value of ``field``, largest first."""
    pipeline: List[Dict[str, Any]] = []
    if match:
        pipeline.append({"$match": match})
    pipeline.append({"$group": {"_id": f"${field}", "count": {"$sum": 1}}})
    pipeline.append({"$sort": {"count": -1}})
    return list(collection.aggregate(pipeline))
