# src/khural_admin/dependencies/bootstrap.py
# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Dependency wiring for the admin override layer.

Overview:
    Builds the object graph the admin views and the CLI use: record backend,
    change bus, override store, transport client and the
    :class:`AdminOverrides` facade.

Layer:
    dependencies

Design:
    * Select the record backend by settings:
        - ``redis``: shared records under Redis keys, and the change bus also
          fans out over Redis pub/sub so other processes hear about writes.
        - ``memory``: process-local records and an in-process bus.
    * One transport client and one store are shared by every entity type.
    * ``OverridesContainer.aclose()`` releases the HTTP client and the
      change bus subscription; the global Redis client is closed only when
      this module created it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from khural_admin.adapters.gateways.khural_entity_gateway import KhuralEntityGateway
from khural_admin.application.services.admin_overrides import AdminOverrides
from khural_admin.config.settings import OverridesBackend, Settings, get_settings
from khural_admin.domain.entities.entity_profile import EntityProfile
from khural_admin.domain.services.entity_registry import EntityRegistry, default_registry
from khural_admin.infrastructure.caching.redis_client import (
    RedisClient,
    close_redis,
    get_redis_client,
)
from khural_admin.infrastructure.external_apis.khural.client import KhuralApiClient
from khural_admin.infrastructure.overrides.backends import (
    InMemoryRecordBackend,
    RecordBackend,
    RedisRecordBackend,
)
from khural_admin.infrastructure.overrides.change_bus import ChangeBus
from khural_admin.infrastructure.overrides.store import OverrideStore

__all__ = ["OverridesContainer", "build_overrides"]

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class OverridesContainer:
    """Wired components of the override layer."""

    settings: Settings
    registry: EntityRegistry
    backend: RecordBackend
    bus: ChangeBus
    store: OverrideStore
    client: KhuralApiClient
    overrides: AdminOverrides
    owns_redis: bool = False

    async def aclose(self) -> None:
        """Release the HTTP client, the bus subscription and owned Redis."""
        await self.bus.aclose()
        await self.client.aclose()
        if self.owns_redis:
            await close_redis()


def build_overrides(
    settings: Settings | None = None,
    *,
    registry: EntityRegistry | None = None,
    redis: RedisClient | None = None,
    http: httpx.AsyncClient | None = None,
) -> OverridesContainer:
    """Wire the override layer.

    Args:
        settings: Configuration; the process singleton when omitted.
        registry: Entity profiles; the built-in registry when omitted.
        redis: Redis client for the ``redis`` backend; the shared global
            client when omitted.
        http: Optional shared ``httpx.AsyncClient`` for the transport.

    Returns:
        OverridesContainer: Ready-to-use components.
    """
    settings = settings or get_settings()
    registry = registry or default_registry()

    owns_redis = False
    backend: RecordBackend
    if settings.overrides_backend is OverridesBackend.REDIS:
        if redis is None:
            redis = get_redis_client()
            owns_redis = True
        backend = RedisRecordBackend(redis)
        bus = ChangeBus(redis=redis)
    else:
        backend = InMemoryRecordBackend()
        bus = ChangeBus()

    store = OverrideStore(
        backend, bus, registry, namespace=settings.overrides_key_namespace
    )
    client = KhuralApiClient.from_settings(settings, http=http)

    def _gateway(profile: EntityProfile) -> KhuralEntityGateway:
        return KhuralEntityGateway(client, profile)

    overrides = AdminOverrides(registry, store, bus, _gateway)
    logger.debug(
        "override layer wired",
        extra={
            "extra": {
                "backend": settings.overrides_backend.value,
                "api_base_url": client.base_url,
                "entity_types": list(registry),
            }
        },
    )
    return OverridesContainer(
        settings=settings,
        registry=registry,
        backend=backend,
        bus=bus,
        store=store,
        client=client,
        overrides=overrides,
        owns_redis=owns_redis,
    )
