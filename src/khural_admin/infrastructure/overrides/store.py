# src/khural_admin/infrastructure/overrides/store.py
# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Override Store.

Synopsis:
    Implements the application ``OverrideStorePort`` on top of a raw record
    backend and a change bus. One JSON document per entity type, stored
    under the profile's key (``khural_<entity>_overrides_v1``, optionally
    namespaced), always replaced whole.

Failure policy (best-effort cache):
    * Missing, unparseable or wrongly shaped content reads as the empty
      record. ``read`` never raises on storage trouble.
    * A failed save (quota, serialization, backend down) is logged and not
      raised. The record is kept in a session copy that later reads of the
      same key prefer until a save succeeds again, so the current process
      keeps showing the change while durability is lost.
    * Listeners are notified after every write, durable or session-only.

Concurrency:
    Whole-record last-writer-wins. Two processes doing read-modify-write on
    the same key can lose one update; within one process writes are
    sequential.

Layer:
    infrastructure/overrides
"""

from __future__ import annotations

import json
import logging
from contextlib import suppress

from khural_admin.application.interfaces.change_bus_port import ChangeBusPort
from khural_admin.domain.entities.entity_profile import EntityProfile
from khural_admin.domain.entities.override_record import OverrideRecord
from khural_admin.domain.exceptions.overrides import OverrideStorageError
from khural_admin.domain.services.entity_registry import EntityRegistry
from khural_admin.infrastructure.observability.metrics import (
    get_override_store_operations_total,
)
from khural_admin.infrastructure.overrides.backends import RecordBackend

__all__ = ["OverrideStore"]

logger = logging.getLogger(__name__)


def _count(op: str, entity_type: str, outcome: str) -> None:
    with suppress(Exception):
        get_override_store_operations_total().labels(
            op=op, entity_type=entity_type, outcome=outcome
        ).inc()


class OverrideStore:
    """Best-effort, notifying store of override records.

    Args:
        backend: Raw key-value backend.
        bus: Change bus notified after each write.
        registry: Resolves entity type names to profiles.
        namespace: Optional key prefix (``"<namespace>:<storage key>"``).
    """

    def __init__(
        self,
        backend: RecordBackend,
        bus: ChangeBusPort,
        registry: EntityRegistry,
        *,
        namespace: str = "",
    ) -> None:
        self._backend = backend
        self._bus = bus
        self._registry = registry
        self._ns = namespace.strip(":")
        self._session: dict[str, OverrideRecord] = {}

    def key_for(self, entity_type: str | EntityProfile) -> str:
        """Return the full storage key of ``entity_type``."""
        profile = self._registry.resolve(entity_type)
        return f"{self._ns}:{profile.storage_key}" if self._ns else profile.storage_key

    async def read(self, entity_type: str | EntityProfile) -> OverrideRecord:
        """Return the normalized record (empty when absent or unreadable)."""
        profile = self._registry.resolve(entity_type)
        key = self.key_for(profile)

        pending = self._session.get(key)
        if pending is not None:
            _count("read", profile.name, "session")
            return pending.copy()

        try:
            raw = await self._backend.load(key)
        except OverrideStorageError as exc:
            logger.warning(
                "override record unreadable; using empty record",
                exc_info=exc,
                extra={"extra": {"entity_type": profile.name, "key": key}},
            )
            _count("read", profile.name, "error")
            return OverrideRecord()

        if not raw:
            _count("read", profile.name, "missing")
            return OverrideRecord()

        try:
            decoded = json.loads(raw)
        except ValueError:
            logger.warning(
                "override record is not valid JSON; using empty record",
                extra={"extra": {"entity_type": profile.name, "key": key}},
            )
            _count("read", profile.name, "corrupt")
            return OverrideRecord()

        _count("read", profile.name, "ok")
        return OverrideRecord.from_payload(decoded, protected_ids=profile.protected_ids)

    async def write(self, entity_type: str | EntityProfile, record: OverrideRecord) -> None:
        """Replace the record of ``entity_type`` and notify listeners."""
        profile = self._registry.resolve(entity_type)
        key = self.key_for(profile)
        snapshot = record.copy()

        try:
            raw = json.dumps(snapshot.to_payload(), ensure_ascii=False, separators=(",", ":"))
            await self._backend.save(key, raw)
        except (TypeError, ValueError, OverrideStorageError) as exc:
            self._session[key] = snapshot
            logger.warning(
                "override record not persisted; kept for this session only",
                exc_info=exc,
                extra={"extra": {"entity_type": profile.name, "key": key}},
            )
            _count("write", profile.name, "error")
        else:
            self._session.pop(key, None)
            _count("write", profile.name, "ok")

        await self._bus.publish(profile)

    async def clear(self, entity_type: str | EntityProfile) -> None:
        """Drop the whole record of ``entity_type`` and notify listeners."""
        profile = self._registry.resolve(entity_type)
        key = self.key_for(profile)
        self._session.pop(key, None)
        try:
            await self._backend.delete(key)
        except OverrideStorageError as exc:
            logger.warning(
                "override record not cleared",
                exc_info=exc,
                extra={"extra": {"entity_type": profile.name, "key": key}},
            )
            _count("clear", profile.name, "error")
        else:
            _count("clear", profile.name, "ok")
        await self._bus.publish(profile)
