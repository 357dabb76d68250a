# src/khural_admin/infrastructure/overrides/change_bus.py
# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Change bus for override records.

Synopsis:
    Tells every mounted list that an override record changed so it re-reads
    the store and recomputes, without a network round trip.

Design:
    * Same-process delivery: listeners registered with :meth:`subscribe` run
      during :meth:`publish`, before it returns.
    * Cross-process delivery (optional): when a Redis client is given,
      :meth:`publish` also sends ``{"origin", "entity_type"}`` on the
      profile's event channel (``khural:<entity>-updated``). :meth:`attach`
      subscribes to those channels and :meth:`pump` / :meth:`listen` deliver
      messages from *other* processes to local listeners; a process never
      re-delivers its own messages.
    * Delivery is best effort: a failing listener is logged and does not
      stop the others; a failed Redis publish is logged and dropped.

Layer:
    infrastructure/overrides
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import uuid
from collections import defaultdict
from collections.abc import Callable, Iterable
from typing import Any

from redis.exceptions import RedisError

from khural_admin.application.interfaces.change_bus_port import ChangeListener
from khural_admin.domain.entities.entity_profile import EntityProfile
from khural_admin.infrastructure.caching.redis_client import RedisClient

__all__ = ["ChangeBus"]

logger = logging.getLogger(__name__)


class ChangeBus:
    """Per-entity-type change notifications, in-process and over Redis."""

    def __init__(self, *, redis: RedisClient | None = None, origin: str | None = None) -> None:
        """Initialize the bus.

        Args:
            redis: Client used for cross-process fan-out; ``None`` keeps the
                bus in-process only.
            origin: Identifier of this process on the channel; random if omitted.
        """
        self._listeners: defaultdict[str, list[ChangeListener]] = defaultdict(list)
        self._redis = redis
        self._origin = origin or uuid.uuid4().hex
        self._pubsub: Any | None = None
        self._channels: dict[str, str] = {}

    @property
    def origin(self) -> str:
        """Identifier stamped on messages this bus publishes."""
        return self._origin

    # ------------------------------------------------------------------ #
    # Same-process
    # ------------------------------------------------------------------ #
    def subscribe(self, entity_type: str, listener: ChangeListener) -> Callable[[], None]:
        """Register ``listener`` for ``entity_type`` changes.

        Returns:
            A callable that unregisters the listener (idempotent).
        """
        self._listeners[entity_type].append(listener)

        def _unsubscribe() -> None:
            listeners = self._listeners.get(entity_type, [])
            if listener in listeners:
                listeners.remove(listener)

        return _unsubscribe

    async def publish(self, profile: EntityProfile) -> None:
        """Notify local listeners, then other processes (if wired)."""
        await self._dispatch(profile.name)
        if self._redis is None:
            return
        message = json.dumps({"origin": self._origin, "entity_type": profile.name})
        try:
            await self._redis.publish(profile.event_name, message)
        except (RedisError, OSError) as exc:
            logger.warning(
                "change notification not published",
                exc_info=exc,
                extra={"extra": {"channel": profile.event_name}},
            )

    async def _dispatch(self, entity_type: str) -> None:
        for listener in list(self._listeners.get(entity_type, ())):
            try:
                result = listener(entity_type)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:  # noqa: BLE001
                logger.exception(
                    "change listener failed",
                    exc_info=exc,
                    extra={"extra": {"entity_type": entity_type}},
                )

    # ------------------------------------------------------------------ #
    # Cross-process
    # ------------------------------------------------------------------ #
    async def attach(self, profiles: Iterable[EntityProfile]) -> None:
        """Subscribe to the event channels of ``profiles``.

        Raises:
            RuntimeError: If the bus has no Redis client.
        """
        if self._redis is None:
            raise RuntimeError("change bus has no redis client to attach to")
        if self._pubsub is None:
            self._pubsub = self._redis.pubsub()
        new = {p.event_name: p.name for p in profiles if p.event_name not in self._channels}
        if new:
            await self._pubsub.subscribe(*new)
            self._channels.update(new)

    async def pump(self, timeout: float = 1.0) -> bool:
        """Deliver at most one message from another process.

        Args:
            timeout: Seconds to wait for a message.

        Returns:
            True if a foreign change was dispatched to local listeners.
        """
        if self._pubsub is None:
            return False
        message = await self._pubsub.get_message(ignore_subscribe_messages=True, timeout=timeout)
        if not message or message.get("type") != "message":
            return False

        channel = message.get("channel")
        if isinstance(channel, bytes):
            channel = channel.decode("utf-8")
        entity_type = self._channels.get(str(channel))
        if entity_type is None:
            return False

        try:
            body = json.loads(message.get("data") or "{}")
        except (TypeError, ValueError):
            body = {}
        if isinstance(body, dict) and body.get("origin") == self._origin:
            return False

        await self._dispatch(entity_type)
        return True

    async def listen(self, *, poll_timeout: float = 1.0) -> None:
        """Pump messages until :meth:`aclose` is called or the task is cancelled."""
        while self._pubsub is not None:
            try:
                await self.pump(timeout=poll_timeout)
            except (RedisError, OSError) as exc:
                logger.warning("change bus receive failed", exc_info=exc)
                await asyncio.sleep(poll_timeout)

    async def aclose(self) -> None:
        """Unsubscribe from all channels and release the pub/sub connection."""
        pubsub, self._pubsub = self._pubsub, None
        self._channels.clear()
        if pubsub is None:
            return
        try:
            await pubsub.unsubscribe()
            await pubsub.aclose()
        except (RedisError, OSError) as exc:
            logger.debug("change bus close failed", exc_info=exc)
