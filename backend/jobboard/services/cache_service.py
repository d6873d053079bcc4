"""In-process TTL cache keyed by "<type>:<specific>" strings.

Entries are stored serialised so callers never share mutable state with the
cache. Expiry defaults come from the key's type prefix.
"""
import json
import logging
import time
from typing import Any, Callable

from jobboard.config import settings

logger = logging.getLogger(__name__)


class CacheFullError(Exception):
    pass


class CacheService:
    def __init__(self, clock: Callable[[], float] = time.time, max_entries: int | None = None):
        self._clock = clock
        self._max_entries = max_entries or settings.cache_max_entries
        self._storage: dict[str, str] = {}

    def _default_expiry(self, key: str) -> float:
        data_type = key.split(":")[0]
        return settings.cache_ttls.get(data_type, settings.cache_ttl_default)

    def _write(self, key: str, raw: str):
        if key not in self._storage and len(self._storage) >= self._max_entries:
            raise CacheFullError(f"cache holds {len(self._storage)} entries")
        self._storage[key] = raw

    def set(self, key: str, data: Any, expires_in: float | None = None):
        item = {
            "data": data,
            "timestamp": self._clock(),
            "expires_in": expires_in or self._default_expiry(key),
        }
        raw = json.dumps(item, default=str)
        try:
            self._write(key, raw)
        except CacheFullError as exc:
            logger.warning("Cache write for %s failed (%s), clearing cache", key, exc)
            self.clear_all()
            try:
                self._write(key, raw)
            except CacheFullError:
                logger.error("Cache write for %s failed after clearing", key)

    def get(self, key: str) -> Any | None:
        raw = self._storage.get(key)
        if raw is None:
            return None
        try:
            item = json.loads(raw)
            if self._clock() - item["timestamp"] > item["expires_in"]:
                self.remove(key)
                return None
            return item["data"]
        except (ValueError, KeyError, TypeError):
            logger.error("Dropping unreadable cache entry %s", key)
            self.remove(key)
            return None

    def remove(self, key: str):
        self._storage.pop(key, None)

    def clear_key(self, key: str):
        self.remove(key)

    def clear_all(self):
        self._storage.clear()

    def clear_type(self, data_type: str):
        prefix = f"{data_type}:"
        for key in [k for k in self._storage if k.startswith(prefix)]:
            del self._storage[key]

    def is_expired(self, key: str) -> bool:
        raw = self._storage.get(key)
        if raw is None:
            return True
        try:
            item = json.loads(raw)
            return self._clock() - item["timestamp"] > item["expires_in"]
        except (ValueError, KeyError, TypeError):
            return True

    def keys(self, prefix: str = "") -> list[str]:
        return [k for k in self._storage if k.startswith(prefix)]


cache_service = CacheService()
