# src/khural_admin/infrastructure/caching/redis_client.py
# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Async Redis client factory.

Design notes:
    * Provides a small Protocol (`RedisClient`) covering what the override
      backend and the change bus use: string get/set, delete, publish and
      pub/sub.
    * Uses redis.asyncio under the hood for the concrete implementation.
    * Test suites may inject a fakeredis client by assigning to the
      module-level `_client`.
"""

from __future__ import annotations

import logging
from contextlib import suppress
from typing import TYPE_CHECKING, Any, Protocol, cast, runtime_checkable

import redis.asyncio as aioredis

if TYPE_CHECKING:
    from redis.asyncio.client import Redis as _RedisGeneric

    type AioredisRedis = _RedisGeneric[str]
else:
    from redis.asyncio.client import Redis as AioredisRedis  # type: ignore[assignment]

from khural_admin.config.settings import Settings, get_settings

__all__ = [
    "RedisClient",
    "close_redis",
    "get_redis_client",
    "init_redis",
]

logger = logging.getLogger(__name__)


@runtime_checkable
class RedisClient(Protocol):
    """Subset of the async Redis API used by this package."""

    async def get(self, key: str) -> Any: ...
    async def set(self, key: str, value: Any) -> Any: ...
    async def delete(self, *keys: str) -> Any: ...
    async def publish(self, channel: str, message: Any) -> Any: ...
    def pubsub(self, **kwargs: Any) -> Any: ...
    async def ping(self) -> Any: ...
    async def aclose(self) -> Any: ...


_client: RedisClient | Any | None = None


def _create_aioredis_client(settings: Settings) -> AioredisRedis:
    """Build the concrete asyncio Redis client from settings."""
    _from_url: Any = aioredis.from_url
    client = _from_url(
        url=settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        health_check_interval=15,
        socket_timeout=settings.redis_socket_timeout_s,
        socket_connect_timeout=settings.redis_socket_timeout_s,
    )
    return cast(AioredisRedis, client)


def init_redis(settings: Settings) -> None:
    """Initialize the global async Redis client (idempotent)."""
    global _client
    if _client is not None:
        return
    _client = cast(RedisClient, _create_aioredis_client(settings))
    logger.debug("redis client initialized")


async def close_redis() -> None:
    """Close the global Redis client at shutdown."""
    global _client
    if _client is not None:
        with suppress(RuntimeError):
            await _client.aclose()
        _client = None


def get_redis_client() -> RedisClient:
    """Return the initialized Redis client (lazy-inits from settings)."""
    if _client is None:
        init_redis(get_settings())
    if _client is None:
        raise RuntimeError("Redis client not initialized (init_redis failed)")
    return cast(RedisClient, _client)
