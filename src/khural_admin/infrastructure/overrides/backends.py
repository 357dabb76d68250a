# src/khural_admin/infrastructure/overrides/backends.py
# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Raw storage backends for override records.

Synopsis:
    Backends move serialized records (JSON text) in and out of a key-value
    store. They know nothing about the record shape; normalization,
    notification and failure policy live in
    :class:`~khural_admin.infrastructure.overrides.store.OverrideStore`.

Design:
    * Every backend failure surfaces as :class:`OverrideStorageError`.
    * ``RedisRecordBackend`` uses the shared client from
      `infrastructure/caching/redis_client.py` unless one is injected.
    * ``InMemoryRecordBackend`` is process-local (single-process tooling,
      tests).

Layer:
    infrastructure/overrides
"""

from __future__ import annotations

from typing import Protocol

from redis.exceptions import RedisError

from khural_admin.domain.exceptions.overrides import OverrideStorageError
from khural_admin.infrastructure.caching.redis_client import RedisClient, get_redis_client

__all__ = ["InMemoryRecordBackend", "RecordBackend", "RedisRecordBackend"]


class RecordBackend(Protocol):
    """Key → serialized record storage."""

    async def load(self, key: str) -> str | None:
        """Return the stored text for ``key`` or ``None`` if absent."""

    async def save(self, key: str, raw: str) -> None:
        """Replace the stored text for ``key``."""

    async def delete(self, key: str) -> None:
        """Remove ``key`` (no-op when absent)."""


class RedisRecordBackend:
    """Redis string keys, one per entity type, no TTL."""

    def __init__(self, client: RedisClient | None = None) -> None:
        """Initialize the backend.

        Args:
            client: Redis client; the shared global client is used if omitted.
        """
        self._client = client

    def _redis(self) -> RedisClient:
        return self._client if self._client is not None else get_redis_client()

    async def load(self, key: str) -> str | None:
        try:
            raw = await self._redis().get(key)
        except (RedisError, OSError) as exc:
            raise OverrideStorageError("redis load failed", details={"key": key}) from exc
        if raw is None:
            return None
        return raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)

    async def save(self, key: str, raw: str) -> None:
        try:
            await self._redis().set(key, raw)
        except (RedisError, OSError) as exc:
            raise OverrideStorageError("redis save failed", details={"key": key}) from exc

    async def delete(self, key: str) -> None:
        try:
            await self._redis().delete(key)
        except (RedisError, OSError) as exc:
            raise OverrideStorageError("redis delete failed", details={"key": key}) from exc


class InMemoryRecordBackend:
    """Dict-backed backend with an optional size quota.

    Args:
        max_bytes: Reject saves whose text exceeds this many UTF-8 bytes,
            mimicking a storage quota. ``None`` disables the check.
    """

    def __init__(self, *, max_bytes: int | None = None) -> None:
        self._data: dict[str, str] = {}
        self._max_bytes = max_bytes

    async def load(self, key: str) -> str | None:
        return self._data.get(key)

    async def save(self, key: str, raw: str) -> None:
        size = len(raw.encode("utf-8"))
        if self._max_bytes is not None and size > self._max_bytes:
            raise OverrideStorageError(
                "storage quota exceeded",
                details={"key": key, "bytes": size, "max_bytes": self._max_bytes},
            )
        self._data[key] = raw

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        """Stored keys, in insertion order."""
        return list(self._data)
