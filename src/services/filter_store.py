"""
Filter State Storage

Keeps each shopper's last pushed FilterState for a limited time so requests
that carry no filters themselves (pagination, AJAX searches) can recover
them.

Supports two backends:
1. InMemory: For development/testing (default)
2. Redis: For multi-process deployments

Writes for one identity are last-write-wins; there is no locking across
processes.
"""

import json
import threading
import time
from typing import Callable, Dict, Optional, Protocol, Tuple

import redis

from config.settings import Settings, get_settings
from core.logging import LoggerMixin, get_logger
from filters.models import FilterState


logger = get_logger(__name__)

REDIS_KEY_PREFIX = "search_scope:"


class FilterStoreError(RuntimeError):
    """Raised when a requested storage backend is unavailable."""


class FilterStore(Protocol):
    def get(self, key: str) -> Optional[FilterState]:
        ...

    def set(self, key: str, state: FilterState, ttl: int) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


# =============================================================================
# In-Memory Backend
# =============================================================================

class InMemoryFilterStore:
    """
    Process-local store with per-entry expiry.

    Note: state is lost on restart and not shared between workers.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        cleanup_interval: float = 300,
    ):
        self._entries: Dict[str, Tuple[float, FilterState]] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._cleanup_interval = cleanup_interval
        self._last_cleanup = clock()

    def _maybe_cleanup(self) -> None:
        """Purge expired entries if the cleanup interval has passed."""
        now = self._clock()
        if now - self._last_cleanup < self._cleanup_interval:
            return
        self._last_cleanup = now
        removed = self.purge_expired()
        if removed:
            logger.debug("Purged expired filter states", removed=removed)

    def get(self, key: str) -> Optional[FilterState]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, state = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return state

    def set(self, key: str, state: FilterState, ttl: int) -> None:
        self._maybe_cleanup()
        with self._lock:
            self._entries[key] = (self._clock() + ttl, state)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def purge_expired(self) -> int:
        """Drop expired entries; returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


# =============================================================================
# Redis Backend
# =============================================================================

class RedisFilterStore:
    """Stores states as JSON strings with SETEX."""

    def __init__(self, client: "redis.Redis", key_prefix: str = REDIS_KEY_PREFIX):
        self._redis = client
        self._prefix = key_prefix

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisFilterStore":
        """Connect and ping; raises redis.RedisError when unreachable."""
        client = redis.from_url(redis_url, decode_responses=True)
        client.ping()
        logger.info("Connected to Redis", url=redis_url.split("@")[-1])
        return cls(client)

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get(self, key: str) -> Optional[FilterState]:
        data = self._redis.get(self._key(key))
        if data is None:
            return None
        return FilterState.parse_blob(data)

    def set(self, key: str, state: FilterState, ttl: int) -> None:
        self._redis.setex(self._key(key), ttl, state.to_json())

    def delete(self, key: str) -> None:
        self._redis.delete(self._key(key))


# =============================================================================
# Service
# =============================================================================

class FilterStateService(LoggerMixin):
    """
    Filter state persistence with backend selection.

    Backends:
        "auto"   Redis when REDIS_ENABLED and reachable, else memory
        "redis"  Redis or FilterStoreError
        "memory" process-local store
    """

    def __init__(
        self,
        store: Optional[FilterStore] = None,
        ttl_seconds: int = 3600,
        backend: str = "memory",
        redis_url: Optional[str] = None,
        redis_enabled: bool = False,
    ):
        self.ttl_seconds = ttl_seconds
        if store is not None:
            self._store = store
            self.backend = "custom"
        else:
            self._store, self.backend = self._select_backend(backend, redis_url, redis_enabled)

    def _select_backend(
        self, backend: str, redis_url: Optional[str], redis_enabled: bool
    ) -> Tuple[FilterStore, str]:
        if backend == "redis":
            try:
                return RedisFilterStore.from_url(redis_url or ""), "redis"
            except (redis.RedisError, ValueError) as e:
                raise FilterStoreError(f"Redis backend unavailable: {e}") from e

        if backend == "auto" and redis_enabled and redis_url:
            try:
                return RedisFilterStore.from_url(redis_url), "redis"
            except (redis.RedisError, ValueError) as e:
                self.logger.warning("Redis unavailable, using in-memory filter store", error=str(e))

        return InMemoryFilterStore(), "memory"

    @classmethod
    def from_settings(cls, settings: Settings) -> "FilterStateService":
        return cls(
            ttl_seconds=settings.filter_state_ttl_seconds,
            backend=settings.filter_store_backend,
            redis_url=settings.redis_url,
            redis_enabled=settings.redis_enabled,
        )

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def load(self, key: str) -> FilterState:
        """
        Stored state for `key`, or the empty state.

        Stored state is advisory: a backend error is logged and treated as
        no stored state.
        """
        try:
            return self._store.get(key) or FilterState.empty()
        except redis.RedisError as e:
            self.logger.warning("Filter state unavailable", key=key, error=str(e))
            return FilterState.empty()

    def save(self, key: str, state: FilterState, merge: bool = False) -> FilterState:
        """
        Store `state` for `key` and restart its TTL.

        Replaces the stored state unless `merge` is set, in which case the
        new state is unioned with the stored one. Returns what was stored.
        """
        if merge:
            state = self.load(key).merge(state)
        self._store.set(key, state, self.ttl_seconds)
        self.logger.debug("Filter state saved", key=key, merge=merge, empty=state.is_empty())
        return state

    def clear(self, key: str) -> None:
        self._store.delete(key)
        self.logger.debug("Filter state cleared", key=key)

    def get_stats(self) -> Dict[str, object]:
        return {"backend": self.backend, "ttl_seconds": self.ttl_seconds}


# =============================================================================
# Singleton
# =============================================================================

_filter_state_service: Optional[FilterStateService] = None
_service_lock = threading.Lock()


def get_filter_state_service() -> FilterStateService:
    """Shared service built from application settings."""
    global _filter_state_service
    if _filter_state_service is None:
        with _service_lock:
            if _filter_state_service is None:
                _filter_state_service = FilterStateService.from_settings(get_settings())
    return _filter_state_service


def reset_filter_state_service() -> None:
    global _filter_state_service
    _filter_state_service = None
