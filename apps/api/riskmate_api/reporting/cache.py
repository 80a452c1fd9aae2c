"""Cache for reporting aggregates, invalidated on material ledger events.

Keys are ``executive:{organization_id}:{time_range}``. The in-memory backend
is per process and only fit for a single instance; deployments with more
than one API instance use the Redis backend so every instance sees the same
invalidations. Both apply a TTL as a safety net.

Each organization also has a generation counter that every invalidation
bumps. A writer reads the generation before computing an aggregate and passes
it to ``set``; the write is dropped if an invalidation happened in between,
so an aggregate computed from a pre-invalidation snapshot never lands in the
cache.
"""

import json
import logging
import threading
import time
from functools import lru_cache
from typing import Optional

import redis

from riskmate_api.settings import get_settings
from riskmate_api.utils.metrics import reporting_cache_invalidations, reporting_cache_requests

logger = logging.getLogger(__name__)

TIME_RANGES = ("7d", "30d", "90d", "all")


def cache_key(organization_id: str, time_range: str) -> str:
    """Build the cache key for an organization and reporting window."""
    return f"executive:{organization_id}:{time_range}"


def generation_key(organization_id: str) -> str:
    return f"executive:{organization_id}:generation"


class ReportingCache:
    """Interface shared by the cache backends."""

    def get(self, organization_id: str, time_range: str) -> Optional[dict]:
        raise NotImplementedError

    def set(
        self, organization_id: str, time_range: str, value: dict, generation: Optional[int] = None
    ) -> bool:
        """Store an aggregate; returns False if ``generation`` is no longer current."""
        raise NotImplementedError

    def generation(self, organization_id: str) -> int:
        raise NotImplementedError

    def _bump_generation(self, organization_id: str):
        raise NotImplementedError

    def _delete(self, keys: list[str]):
        raise NotImplementedError

    def invalidate_organization(self, organization_id: str):
        """Drop every reporting window cached for an organization."""
        self._bump_generation(organization_id)
        self._delete([cache_key(organization_id, time_range) for time_range in TIME_RANGES])
        reporting_cache_invalidations.inc()
        logger.info(
            f"Reporting cache invalidated for organization {organization_id}",
            extra={"organization_id": organization_id},
        )

    def _record(self, hit: bool):
        reporting_cache_requests.labels(result="hit" if hit else "miss").inc()


class InMemoryReportingCache(ReportingCache):
    """Process-local cache backed by a dict."""

    def __init__(self, ttl_seconds: int):
        self.ttl_seconds = ttl_seconds
        self._entries: dict[str, tuple[float, dict]] = {}
        self._generations: dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, organization_id: str, time_range: str) -> Optional[dict]:
        key = cache_key(organization_id, time_range)
        with self._lock:
            entry = self._entries.get(key)
            if entry and entry[0] <= time.monotonic():
                del self._entries[key]
                entry = None
        self._record(entry is not None)
        return entry[1] if entry else None

    def set(
        self, organization_id: str, time_range: str, value: dict, generation: Optional[int] = None
    ) -> bool:
        with self._lock:
            if generation is not None and self._generations.get(organization_id, 0) != generation:
                return False
            self._entries[cache_key(organization_id, time_range)] = (
                time.monotonic() + self.ttl_seconds,
                value,
            )
        return True

    def generation(self, organization_id: str) -> int:
        with self._lock:
            return self._generations.get(organization_id, 0)

    def _bump_generation(self, organization_id: str):
        with self._lock:
            self._generations[organization_id] = self._generations.get(organization_id, 0) + 1

    def _delete(self, keys: list[str]):
        with self._lock:
            for key in keys:
                self._entries.pop(key, None)

    def clear(self):
        with self._lock:
            self._entries.clear()
            self._generations.clear()


class RedisReportingCache(ReportingCache):
    """Cache shared by all API instances through Redis."""

    def __init__(self, client: redis.Redis, ttl_seconds: int):
        self.client = client
        self.ttl_seconds = ttl_seconds

    def get(self, organization_id: str, time_range: str) -> Optional[dict]:
        raw = self.client.get(cache_key(organization_id, time_range))
        self._record(raw is not None)
        return json.loads(raw) if raw is not None else None

    def set(
        self, organization_id: str, time_range: str, value: dict, generation: Optional[int] = None
    ) -> bool:
        key = cache_key(organization_id, time_range)
        payload = json.dumps(value, default=str)
        if generation is None:
            self.client.set(key, payload, ex=self.ttl_seconds)
            return True

        # WATCH aborts the write if an invalidation bumps the generation first
        with self.client.pipeline() as pipe:
            try:
                pipe.watch(generation_key(organization_id))
                current = int(pipe.get(generation_key(organization_id)) or 0)
                if current != generation:
                    pipe.unwatch()
                    return False
                pipe.multi()
                pipe.set(key, payload, ex=self.ttl_seconds)
                pipe.execute()
            except redis.WatchError:
                return False
        return True

    def generation(self, organization_id: str) -> int:
        return int(self.client.get(generation_key(organization_id)) or 0)

    def _bump_generation(self, organization_id: str):
        self.client.incr(generation_key(organization_id))

    def _delete(self, keys: list[str]):
        self.client.delete(*keys)


@lru_cache()
def get_reporting_cache() -> ReportingCache:
    """Get the configured reporting cache for this process."""
    settings = get_settings()
    if settings.reporting_cache_backend == "redis":
        client = redis.from_url(settings.redis_url, decode_responses=True)
        return RedisReportingCache(client, settings.reporting_cache_ttl_seconds)
    return InMemoryReportingCache(settings.reporting_cache_ttl_seconds)
