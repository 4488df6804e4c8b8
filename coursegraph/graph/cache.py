"""
Closure Cache

Caches dependency graphs in a shared key-value store. Keys are
`{prefix}:graph:{course_id}:{upstream}:{downstream}:{metadata}:{max_depth}`.

Each cached graph is also indexed under every course it contains, so an
edge mutation can drop the closures keyed by either endpoint and the
closures that merely pass through one.

Caching is an optimization only: a failing cache logs and behaves as a miss.
"""

import fnmatch
import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional, Set, Tuple

import redis.asyncio as redis

from config.settings import get_settings
from .schema import DependencyGraph

logger = logging.getLogger(__name__)


class GraphCache(ABC):
    """Key/value cache for dependency graphs with course-scoped invalidation"""

    def __init__(self, prefix: str = None, ttl_seconds: int = None):
        settings = get_settings()
        self.prefix = prefix or settings.cache_prefix
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.cache_ttl_seconds

    def graph_key(
        self,
        course_id: int,
        include_upstream: bool,
        include_downstream: bool,
        max_depth: int,
        include_metadata: bool = True,
    ) -> str:
        return (
            f"{self.prefix}:graph:{course_id}:{include_upstream}:{include_downstream}:"
            f"{include_metadata}:{max_depth}"
        )

    def members_key(self, course_id: int) -> str:
        return f"{self.prefix}:members:{course_id}"

    async def get_graph(self, key: str) -> Optional[DependencyGraph]:
        try:
            raw = await self._get(key)
        except Exception as e:
            logger.error(f"Cache GET failed for {key}: {e}")
            return None
        if raw is None:
            return None
        return DependencyGraph.model_validate_json(raw)

    async def set_graph(self, key: str, graph: DependencyGraph):
        try:
            await self._set(key, graph.model_dump_json(), self.ttl_seconds)
            for member_id in graph.member_ids():
                await self._index(self.members_key(member_id), key, self.ttl_seconds)
        except Exception as e:
            logger.error(f"Cache SET failed for {key}: {e}")

    async def invalidate_course(self, course_id: int) -> int:
        """Drop every cached graph keyed by or containing the course"""
        try:
            removed = await self._delete_pattern(f"{self.prefix}:graph:{course_id}:*")
            keys = await self._pop_index(self.members_key(course_id))
            if keys:
                removed += await self._delete(keys)
            logger.debug(f"Invalidated {removed} cached graphs for course {course_id}")
            return removed
        except Exception as e:
            logger.error(f"Cache invalidation failed for course {course_id}: {e}")
            return 0

    async def close(self):
        """Release backend resources"""

    # Backend primitives

    @abstractmethod
    async def _get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def _set(self, key: str, value: str, ttl_seconds: int):
        ...

    @abstractmethod
    async def _delete(self, keys: Iterable[str]) -> int:
        ...

    @abstractmethod
    async def _delete_pattern(self, pattern: str) -> int:
        ...

    @abstractmethod
    async def _index(self, index_key: str, member: str, ttl_seconds: int):
        ...

    @abstractmethod
    async def _pop_index(self, index_key: str) -> Set[str]:
        ...


class MemoryCache(GraphCache):
    """Process-local cache with per-entry expiry; expired entries are pruned on every write"""

    def __init__(self, prefix: str = None, ttl_seconds: int = None, clock=time.monotonic):
        super().__init__(prefix, ttl_seconds)
        self.clock = clock
        self.entries: Dict[str, Tuple[float, str]] = {}
        # index key -> {graph key: expires_at}
        self.indexes: Dict[str, Dict[str, float]] = {}

    async def _get(self, key: str) -> Optional[str]:
        entry = self.entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at <= self.clock():
            del self.entries[key]
            return None
        return value

    async def _set(self, key: str, value: str, ttl_seconds: int):
        now = self.clock()
        self._prune(now)
        self.entries[key] = (now + ttl_seconds, value)

    async def _delete(self, keys: Iterable[str]) -> int:
        removed = 0
        for key in keys:
            if self.entries.pop(key, None) is not None:
                removed += 1
        return removed

    async def _delete_pattern(self, pattern: str) -> int:
        return await self._delete(fnmatch.filter(list(self.entries), pattern))

    async def _index(self, index_key: str, member: str, ttl_seconds: int):
        self.indexes.setdefault(index_key, {})[member] = self.clock() + ttl_seconds

    async def _pop_index(self, index_key: str) -> Set[str]:
        now = self.clock()
        members = self.indexes.pop(index_key, {})
        return {member for member, expires_at in members.items() if expires_at > now}

    def _prune(self, now: float):
        for key in [k for k, (expires_at, _) in self.entries.items() if expires_at <= now]:
            del self.entries[key]

        for index_key in list(self.indexes):
            members = self.indexes[index_key]
            for member in [m for m, expires_at in members.items() if expires_at <= now]:
                del members[member]
            if not members:
                del self.indexes[index_key]


class RedisCache(GraphCache):
    """
    Redis-backed cache shared between processes.

    Usage:
        cache = RedisCache("redis://localhost:6379/0")
        graph = await cache.get_graph(cache.graph_key(12, True, True, 10, True))
    """

    def __init__(self, url: str = None, prefix: str = None, ttl_seconds: int = None, client=None):
        super().__init__(prefix, ttl_seconds)
        self.url = url or get_settings().redis_url
        self.client = client or redis.from_url(self.url, decode_responses=True)

    async def _get(self, key: str) -> Optional[str]:
        return await self.client.get(key)

    async def _set(self, key: str, value: str, ttl_seconds: int):
        await self.client.set(key, value, ex=ttl_seconds)

    async def _delete(self, keys: Iterable[str]) -> int:
        keys = list(keys)
        if not keys:
            return 0
        return await self.client.delete(*keys)

    async def _delete_pattern(self, pattern: str) -> int:
        keys = [key async for key in self.client.scan_iter(match=pattern)]
        return await self._delete(keys)

    async def _index(self, index_key: str, member: str, ttl_seconds: int):
        await self.client.sadd(index_key, member)
        await self.client.expire(index_key, ttl_seconds)

    async def _pop_index(self, index_key: str) -> Set[str]:
        members = await self.client.smembers(index_key)
        await self.client.delete(index_key)
        return set(members)

    async def close(self):
        await self.client.aclose()


class NullCache(GraphCache):
    """Disables caching"""

    async def _get(self, key: str) -> Optional[str]:
        return None

    async def _set(self, key: str, value: str, ttl_seconds: int):
        return None

    async def _delete(self, keys: Iterable[str]) -> int:
        return 0

    async def _delete_pattern(self, pattern: str) -> int:
        return 0

    async def _index(self, index_key: str, member: str, ttl_seconds: int):
        return None

    async def _pop_index(self, index_key: str) -> Set[str]:
        return set()
