"""Query cache: named caching policies, per-key query state, pluggable stores."""

import enum
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import redis

from erpconsole.core.config import settings
from erpconsole.core.exceptions import ERPConsoleError, ServerError, TransportError

logger = logging.getLogger("erp_console.cache")


@dataclass(frozen=True)
class CachePolicy:
    """How long a query's data stays fresh and what may trigger a refetch.

    ``stale_after=None`` means the data never goes stale. ``refetch()``
    ignores the policy entirely; it is the explicit invalidation path.
    """

    name: str
    stale_after: Optional[float] = 0.0
    retry: int = 0
    retry_delay: float = 0.0
    refetch_on_focus: bool = True
    refetch_on_mount: bool = True
    refetch_interval: Optional[float] = None


SESSION_FOREVER = CachePolicy(
    name="session_forever",
    stale_after=None,
    retry=0,
    refetch_on_focus=False,
    refetch_on_mount=False,
    refetch_interval=None,
)

PROFILE = CachePolicy(
    name="profile",
    stale_after=settings.PROFILE_STALE_SECONDS,
    retry=settings.QUERY_RETRY_COUNT,
    retry_delay=settings.QUERY_RETRY_DELAY_SECONDS,
    refetch_on_focus=False,
)

DEFAULT = CachePolicy(
    name="default",
    stale_after=0.0,
    retry=settings.QUERY_RETRY_COUNT,
    retry_delay=settings.QUERY_RETRY_DELAY_SECONDS,
)


class QueryStatus(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class QueryState:
    status: QueryStatus = QueryStatus.IDLE
    data: Any = None
    error: Optional[Exception] = None
    updated_at: Optional[float] = None
    fetch_count: int = 0
    invalidated: bool = False


# ---- Stores ----
class MemoryStore:
    """Process-local store; the default."""

    def __init__(self):
        self._data: Dict[str, Dict[str, Any]] = {}

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        return self._data.get(key)

    def set(self, key: str, entry: Dict[str, Any]) -> None:
        self._data[key] = entry

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()


class RedisStore:
    """Redis-backed store so cached queries outlive a single CLI run.

    Redis failures are non-fatal: reads miss and writes are dropped.
    """

    def __init__(self, url: Optional[str] = None, namespace: Optional[str] = None, client=None):
        self.url = url or settings.REDIS_URL
        self.namespace = namespace or settings.CACHE_NAMESPACE
        self._client: Optional[redis.Redis] = client

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(self.url, decode_responses=True)
        return self._client

    def _key(self, key: str) -> str:
        return f"{self.namespace}:query:{key}"

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            raw = self.client.get(self._key(key))
        except redis.RedisError as exc:
            logger.warning("Redis unavailable, cache miss for %s: %s", key, exc)
            return None
        if raw:
            return json.loads(raw)
        return None

    def set(self, key: str, entry: Dict[str, Any]) -> None:
        try:
            self.client.set(self._key(key), json.dumps(entry, default=str))
        except redis.RedisError as exc:
            logger.warning("Redis unavailable, not caching %s: %s", key, exc)

    def delete(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except redis.RedisError as exc:
            logger.warning("Redis unavailable, could not delete %s: %s", key, exc)

    def clear(self) -> None:
        try:
            keys = self.client.keys(f"{self.namespace}:query:*")
            if keys:
                self.client.delete(*keys)
        except redis.RedisError as exc:
            logger.warning("Redis unavailable, could not clear cache: %s", exc)

    def health_check(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False


def session_namespace(base_url: str, token: Optional[str]) -> str:
    """Cache namespace for one backend and session token.

    Cached reads are per user, so a different token or backend must never
    hydrate another session's entries. Only a digest of the token is stored.
    """
    digest = hashlib.sha256(f"{base_url}\n{token or ''}".encode("utf-8")).hexdigest()[:16]
    return f"{settings.CACHE_NAMESPACE}:{digest}"


def make_store(base_url: Optional[str] = None, token: Optional[str] = None):
    """Redis when ``ERP_REDIS_URL`` is set, otherwise in-memory."""
    if settings.REDIS_URL:
        return RedisStore(namespace=session_namespace(base_url or settings.API_BASE_URL, token))
    return MemoryStore()


# ---- Queries ----
def _retryable(exc: Exception) -> bool:
    """Network failures and 5xx are retried; other client errors are final."""
    return isinstance(exc, (TransportError, ServerError))


class Query:
    """One cached remote read identified by ``key``."""

    def __init__(
        self,
        key: str,
        fetcher: Callable[[], Any],
        policy: CachePolicy = DEFAULT,
        store=None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.key = key
        self.fetcher = fetcher
        self.policy = policy
        self.store = store if store is not None else MemoryStore()
        self.state = QueryState()
        self._clock = clock
        self._sleep = sleep
        self._hydrate()

    def _hydrate(self) -> None:
        entry = self.store.get(self.key)
        if entry is None:
            return
        self.state.status = QueryStatus.SUCCESS
        self.state.data = entry.get("data")
        self.state.updated_at = entry.get("updated_at")

    # -- state --
    @property
    def data(self) -> Any:
        return self.state.data

    @property
    def is_loading(self) -> bool:
        return self.state.status is QueryStatus.LOADING

    @property
    def is_error(self) -> bool:
        return self.state.status is QueryStatus.ERROR

    @property
    def is_success(self) -> bool:
        return self.state.status is QueryStatus.SUCCESS

    @property
    def has_data(self) -> bool:
        return self.state.updated_at is not None

    def is_stale(self) -> bool:
        if not self.has_data or self.state.invalidated:
            return True
        if self.policy.stale_after is None:
            return False
        return self._clock() - self.state.updated_at >= self.policy.stale_after

    # -- triggers --
    def fetch(self) -> Any:
        """Return cached data while fresh, otherwise fetch."""
        if not self.is_stale():
            return self.state.data
        return self._run()

    def refetch(self) -> Any:
        """Fetch now, whatever the freshness or policy."""
        return self._run()

    def on_mount(self) -> Any:
        if not self.has_data or (self.policy.refetch_on_mount and self.is_stale()):
            return self._run()
        return self.state.data

    def on_focus(self) -> Any:
        if self.has_data and self.policy.refetch_on_focus and self.is_stale():
            return self._run()
        return self.state.data

    def tick(self, now: Optional[float] = None) -> Any:
        interval = self.policy.refetch_interval
        if not interval or not self.has_data:
            return self.state.data
        now = self._clock() if now is None else now
        if now - self.state.updated_at >= interval:
            return self._run()
        return self.state.data

    def invalidate(self) -> None:
        self.state.invalidated = True
        self.store.delete(self.key)

    def _run(self) -> Any:
        self.state.status = QueryStatus.LOADING
        attempts = self.policy.retry + 1
        for attempt in range(1, attempts + 1):
            self.state.fetch_count += 1
            try:
                data = self.fetcher()
            except Exception as exc:
                if attempt < attempts and _retryable(exc):
                    logger.debug("Query %s failed (attempt %d/%d): %s", self.key, attempt, attempts, exc)
                    if self.policy.retry_delay:
                        self._sleep(self.policy.retry_delay * attempt)
                    continue
                logger.info("Query %s failed: %s", self.key, exc)
                self.state.status = QueryStatus.ERROR
                self.state.error = exc
                raise
            self.state.status = QueryStatus.SUCCESS
            self.state.data = data
            self.state.error = None
            self.state.updated_at = self._clock()
            self.state.invalidated = False
            self.store.set(self.key, {"data": data, "updated_at": self.state.updated_at})
            return data


class QueryCache:
    """Registry of queries keyed by API path."""

    def __init__(self, store=None, clock: Callable[[], float] = time.time, sleep: Callable[[float], None] = time.sleep):
        self.store = store if store is not None else MemoryStore()
        self._queries: Dict[str, Query] = {}
        self._clock = clock
        self._sleep = sleep

    def query(self, key: str, fetcher: Callable[[], Any], policy: CachePolicy = DEFAULT) -> Query:
        existing = self._queries.get(key)
        if existing is not None:
            return existing
        q = Query(key, fetcher, policy, store=self.store, clock=self._clock, sleep=self._sleep)
        self._queries[key] = q
        return q

    def get(self, key: str) -> Optional[Query]:
        return self._queries.get(key)

    def invalidate(self, key: str) -> None:
        """Mark a query stale and refetch it if it has been loaded before."""
        q = self._queries.get(key)
        if q is None:
            self.store.delete(key)
            return
        had_data = q.has_data
        q.invalidate()
        if had_data:
            try:
                q.refetch()
            except ERPConsoleError as exc:
                logger.warning("Refetch after invalidating %s failed: %s", key, exc)

    def invalidate_prefix(self, prefix: str) -> None:
        for key in [k for k in self._queries if k.startswith(prefix)]:
            self.invalidate(key)

    def clear(self) -> None:
        self._queries.clear()
        self.store.clear()
