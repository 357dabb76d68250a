# src/khural_admin/domain/entities/entity_profile.py
# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Entity Profile.

Purpose:
    Immutable description of one admin entity type: where its override
    record lives, which event announces changes to it, which REST resource
    backs it, and which ids are structural (never deletable).

Layer:
    domain/entities
"""

from __future__ import annotations

from dataclasses import dataclass, field

__all__ = ["EntityProfile"]


@dataclass(frozen=True, slots=True)
class EntityProfile:
    """Static configuration for one entity type.

    Attributes:
        name:
            Entity type name (e.g. ``"committees"``).
        resource:
            REST path segment of the backing collection. Defaults to ``name``.
        protected_ids:
            Ids that may never be tombstoned.

    Raises:
        ValueError:
            If ``name`` is empty or contains whitespace.
    """

    name: str
    resource: str = ""
    protected_ids: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        """Validate invariants and fill derived defaults."""
        if not self.name or self.name != self.name.strip() or " " in self.name:
            raise ValueError("entity profile name must be a non-empty token")
        if not self.resource:
            object.__setattr__(self, "resource", self.name)
        object.__setattr__(
            self, "protected_ids", frozenset(str(i) for i in self.protected_ids)
        )

    @property
    def storage_key(self) -> str:
        """Storage key literal of the override record."""
        return f"khural_{self.name}_overrides_v1"

    @property
    def event_name(self) -> str:
        """Change notification name (same-process event and pub/sub channel)."""
        return f"khural:{self.name}-updated"

    def is_protected(self, entity_id: object) -> bool:
        """Return True when ``entity_id`` is structural for this type."""
        return str(entity_id) in self.protected_ids
