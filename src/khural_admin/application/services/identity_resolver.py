# src/khural_admin/application/services/identity_resolver.py
# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Identity Resolver.

Synopsis:
    Hands out local ids for entities created while the backend refused or
    was unreachable, and migrates their overrides to the server id once a
    later create succeeds.

Migration rules:
    * The staged local entity is removed from ``created``.
    * The pending patch under the local id is removed. Fields of that patch
      whose value the server copy does not already carry are re-keyed onto
      the server id (edits made after the optimistic create but before the
      confirmation); a fully reflected patch leaves nothing behind.
    * The server id is never tombstoned by a migration.
    * A create accepted without an id retires the local entry outright.

Layer:
    application/services
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from khural_admin.application.interfaces.override_store_port import OverrideStorePort
from khural_admin.domain.entities.entity_profile import EntityProfile
from khural_admin.domain.entities.override_record import entity_key
from khural_admin.domain.services.local_ids import is_local_id, new_local_id

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Local id allocation and local → server id migration."""

    def __init__(
        self,
        store: OverrideStorePort,
        *,
        id_factory: Callable[[], str] = new_local_id,
    ) -> None:
        """Initialize the resolver.

        Args:
            store: Override store holding the records to migrate.
            id_factory: Source of fresh local ids.
        """
        self._store = store
        self._id_factory = id_factory

    def new_local_id(self) -> str:
        """Return a fresh id from the local id space."""
        local_id = self._id_factory()
        if not is_local_id(local_id):
            raise ValueError(f"id factory produced a non-local id: {local_id!r}")
        return local_id

    @staticmethod
    def is_local_id(entity_id: object) -> bool:
        """Return True if ``entity_id`` is a client-only id."""
        return is_local_id(entity_id)

    async def migrate(
        self,
        entity_type: str | EntityProfile,
        local_id: str,
        server_entity: Mapping[str, Any],
    ) -> bool:
        """Retire the overrides of ``local_id`` in favor of ``server_entity``.

        Args:
            entity_type: Entity type name or profile.
            local_id: Id the entity was staged under.
            server_entity: Entity returned by the successful create.

        Returns:
            True if the record changed and was written back.

        Raises:
            ValueError: If ``server_entity`` has no id.
        """
        server_id = entity_key(server_entity)
        if not server_id:
            raise ValueError("server entity must carry an id")

        local_id = str(local_id)
        record = await self._store.read(entity_type)

        removed = record.discard_created(local_id)
        patch = record.pop_patch(local_id)
        residual: dict[str, Any] = {}
        if patch:
            residual = {k: v for k, v in patch.items() if server_entity.get(k) != v}
            if residual:
                record.stage_patch(server_id, residual)
        order_changed = local_id in record.order_ids
        if order_changed:
            record.order_ids = [
                server_id if sid == local_id else sid
                for sid in record.order_ids
                if sid != server_id
            ]

        changed = removed or patch is not None or order_changed
        if changed:
            await self._store.write(entity_type, record)

        logger.info(
            "local entity migrated",
            extra={
                "extra": {
                    "entity_type": getattr(entity_type, "name", entity_type),
                    "local_id": local_id,
                    "server_id": server_id,
                    "residual_fields": sorted(residual),
                    "changed": changed,
                }
            },
        )
        return changed

    async def retire(self, entity_type: str | EntityProfile, local_id: str) -> bool:
        """Drop every override of ``local_id`` without re-keying it.

        Used when the backend accepted a create but returned no id: the next
        reload shows the server copy, so the staged one must go.

        Returns:
            True if the record changed and was written back.
        """
        local_id = str(local_id)
        record = await self._store.read(entity_type)
        removed = record.discard_created(local_id)
        patch = record.pop_patch(local_id)
        order_changed = local_id in record.order_ids
        if order_changed:
            record.order_ids = [sid for sid in record.order_ids if sid != local_id]

        changed = removed or patch is not None or order_changed
        if changed:
            await self._store.write(entity_type, record)
        logger.info(
            "local entity retired",
            extra={
                "extra": {
                    "entity_type": getattr(entity_type, "name", entity_type),
                    "local_id": local_id,
                    "changed": changed,
                }
            },
        )
        return changed
