import time
from abc import ABC, abstractmethod

import redis.asyncio as redis
import structlog

from .exceptions import CacheError

log = structlog.get_logger(__name__)

VERIFICATION_REDIS_PREFIX = "compliance:check:"


def cache_key(identification: str) -> str:
    return f"{VERIFICATION_REDIS_PREFIX}{identification.strip()}"


class ReportCache(ABC):
    """Non-authoritative key/value store for serialized verification reports."""

    @abstractmethod
    async def get(self, key: str) -> str | None: ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def close(self) -> None:
        return None


class RedisReportCache(ReportCache):
    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisReportCache":
        return cls(redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> str | None:
        try:
            value = await self.client.get(key)
        except Exception as e:
            raise CacheError(f"Redis GET {key} failed: {e}") from e
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self.client.setex(key, ttl_seconds, value)
        except Exception as e:
            raise CacheError(f"Redis SETEX {key} failed: {e}") from e

    async def close(self) -> None:
        await self.client.aclose()


class InMemoryReportCache(ReportCache):
    """Process-local cache with expiry, for development and tests."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[float, str]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries[key] = (self._clock() + ttl_seconds, value)
