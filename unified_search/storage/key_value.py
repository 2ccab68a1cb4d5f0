"""Durable key-value stores used for persisted search history."""

from __future__ import annotations

import logging
from typing import Protocol

from redis.asyncio import Redis

from unified_search.core.config import settings
from unified_search.utils.redaction import redact_secrets

logger = logging.getLogger("unified_search.storage")


class KeyValueStore(Protocol):
    async def get_item(self, key: str) -> str | None: ...

    async def set_item(self, key: str, value: str) -> None: ...

    async def remove_item(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Process-local store for tests and single-process deployments."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove_item(self, key: str) -> None:
        self._data.pop(key, None)


class RedisKeyValueStore:
    """Redis-backed store; values are stored as plain strings under a key prefix."""

    def __init__(self, client: Redis, *, prefix: str = "unified_search:") -> None:
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str | None = None, *, prefix: str = "unified_search:") -> "RedisKeyValueStore":
        target = url or settings.redis_url
        logger.info("History store using Redis at %s", redact_secrets(target))
        return cls(Redis.from_url(target, decode_responses=True), prefix=prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get_item(self, key: str) -> str | None:
        value = await self._client.get(self._key(key))
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set_item(self, key: str, value: str) -> None:
        await self._client.set(self._key(key), value)

    async def remove_item(self, key: str) -> None:
        await self._client.delete(self._key(key))

    async def close(self) -> None:
        await self._client.aclose()


def build_store() -> KeyValueStore:
    """Return the history store selected by HISTORY_BACKEND."""
    if settings.history_backend == "redis":
        return RedisKeyValueStore.from_url()
    return InMemoryKeyValueStore()
