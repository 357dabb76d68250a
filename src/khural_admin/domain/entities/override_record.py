# src/khural_admin/domain/entities/override_record.py
# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Override Record.

Purpose:
    In-memory form of the per-entity-type override record
    ``{created, updatedById, deletedIds[, orderIds]}`` plus the normalization
    applied at the storage boundary and the read-modify-write helpers used by
    the write coordinator and the identity resolver.

Design:
    * Ids are always compared as strings.
    * ``from_payload`` is total: any unparseable shape degrades to empty
      fields instead of raising, so the reconciler's precondition holds.
    * Tombstoning prunes ``created``/``updatedById``/``orderIds`` for the id.

Layer:
    domain/entities
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

__all__ = ["Entity", "OverrideRecord", "entity_key"]

#: Opaque entity shape; only ``id`` is interpreted by this layer.
type Entity = Mapping[str, Any]


def entity_key(entity: Any) -> str:
    """Return the entity id as a string, or ``""`` when it has none.

    Args:
        entity: Candidate entity mapping.

    Returns:
        Stripped string id, or an empty string for missing/blank ids.
    """
    if not isinstance(entity, Mapping):
        return ""
    raw = entity.get("id")
    if raw is None:
        return ""
    return str(raw).strip()


def _patch_without_id(patch: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in patch.items() if k != "id"}


def _unique_strings(values: Iterable[Any], *, skip: frozenset[str] = frozenset()) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for value in values:
        if value is None:
            continue
        sid = str(value).strip()
        if not sid or sid in seen or sid in skip:
            continue
        seen.add(sid)
        out.append(sid)
    return out


@dataclass(slots=True)
class OverrideRecord:
    """Client-side overrides for one entity type.

    Attributes:
        created:
            Entities that exist only on this client, in insertion order.
        updated_by_id:
            Partial patches keyed by entity id (local or server).
        deleted_ids:
            Tombstoned ids, in the order they were recorded.
        order_ids:
            Optional display ordering; listed ids come first.
    """

    created: list[dict[str, Any]] = field(default_factory=list)
    updated_by_id: dict[str, dict[str, Any]] = field(default_factory=dict)
    deleted_ids: list[str] = field(default_factory=list)
    order_ids: list[str] = field(default_factory=list)

    # ------------------------------------------------------------------ #
    # Serialization
    # ------------------------------------------------------------------ #
    @classmethod
    def from_payload(
        cls,
        raw: Any,
        *,
        protected_ids: frozenset[str] = frozenset(),
    ) -> OverrideRecord:
        """Build a normalized record from a decoded JSON payload.

        Args:
            raw: Decoded JSON (any shape; non-mappings yield an empty record).
            protected_ids: Ids that are dropped from ``deletedIds``.

        Returns:
            A well-formed record.
        """
        if not isinstance(raw, Mapping):
            return cls()

        created: list[dict[str, Any]] = []
        raw_created = raw.get("created")
        if isinstance(raw_created, list):
            seen: set[str] = set()
            for item in raw_created:
                key = entity_key(item)
                if not key or key in seen:
                    continue
                seen.add(key)
                created.append(dict(item))

        updated: dict[str, dict[str, Any]] = {}
        raw_updated = raw.get("updatedById")
        if isinstance(raw_updated, Mapping):
            for key, patch in raw_updated.items():
                sid = str(key).strip()
                if sid and isinstance(patch, Mapping):
                    updated[sid] = _patch_without_id(patch)

        raw_deleted = raw.get("deletedIds")
        deleted = (
            _unique_strings(raw_deleted, skip=protected_ids)
            if isinstance(raw_deleted, list)
            else []
        )

        raw_order = raw.get("orderIds")
        order = _unique_strings(raw_order) if isinstance(raw_order, list) else []

        return cls(created=created, updated_by_id=updated, deleted_ids=deleted, order_ids=order)

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-ready persisted layout."""
        payload: dict[str, Any] = {
            "created": [dict(e) for e in self.created],
            "updatedById": {k: dict(v) for k, v in self.updated_by_id.items()},
            "deletedIds": list(self.deleted_ids),
        }
        if self.order_ids:
            payload["orderIds"] = list(self.order_ids)
        return payload

    def copy(self) -> OverrideRecord:
        """Return a deep copy safe to mutate."""
        return OverrideRecord(
            created=copy.deepcopy(self.created),
            updated_by_id=copy.deepcopy(self.updated_by_id),
            deleted_ids=list(self.deleted_ids),
            order_ids=list(self.order_ids),
        )

    @property
    def is_empty(self) -> bool:
        """True when the record holds no overrides at all."""
        return not (self.created or self.updated_by_id or self.deleted_ids or self.order_ids)

    # ------------------------------------------------------------------ #
    # Read-modify-write helpers
    # ------------------------------------------------------------------ #
    def is_deleted(self, entity_id: object) -> bool:
        """Return True if ``entity_id`` is tombstoned."""
        return str(entity_id) in self.deleted_ids

    def find_created(self, entity_id: object) -> dict[str, Any] | None:
        """Return the staged local entity with ``entity_id``, if any."""
        sid = str(entity_id)
        for entity in self.created:
            if entity_key(entity) == sid:
                return entity
        return None

    def stage_created(self, entity: Entity) -> None:
        """Stage a client-only entity, replacing a staged copy with the same id.

        Raises:
            ValueError: If the entity has no id.
        """
        key = entity_key(entity)
        if not key:
            raise ValueError("staged entity must carry an id")
        staged = dict(entity)
        staged["id"] = key
        for idx, existing in enumerate(self.created):
            if entity_key(existing) == key:
                self.created[idx] = staged
                return
        self.created.append(staged)

    def discard_created(self, entity_id: object) -> bool:
        """Drop a staged local entity. Returns True if one was removed."""
        sid = str(entity_id)
        before = len(self.created)
        self.created = [e for e in self.created if entity_key(e) != sid]
        return len(self.created) != before

    def stage_patch(self, entity_id: object, patch: Mapping[str, Any]) -> None:
        """Accumulate a patch for ``entity_id``; later keys win per field."""
        sid = str(entity_id)
        merged = dict(self.updated_by_id.get(sid, {}))
        merged.update(_patch_without_id(patch))
        self.updated_by_id[sid] = merged

    def pop_patch(self, entity_id: object) -> dict[str, Any] | None:
        """Remove and return the pending patch for ``entity_id``, if any."""
        return self.updated_by_id.pop(str(entity_id), None)

    def tombstone(self, entity_id: object) -> None:
        """Record a delete and prune every other override for the id."""
        sid = str(entity_id)
        if sid not in self.deleted_ids:
            self.deleted_ids.append(sid)
        self.discard_created(sid)
        self.updated_by_id.pop(sid, None)
        self.order_ids = [i for i in self.order_ids if i != sid]
