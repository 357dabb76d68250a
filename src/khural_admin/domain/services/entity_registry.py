# src/khural_admin/domain/services/entity_registry.py
# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Entity profile registry.

Purpose:
    Name every admin list that participates in override reconciliation and
    resolve entity type names to their profiles.

Layer:
    domain/services
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Final

from khural_admin.domain.entities.entity_profile import EntityProfile
from khural_admin.domain.exceptions.overrides import UnknownEntityTypeError

__all__ = [
    "DEFAULT_PROFILES",
    "EntityRegistry",
    "STRUCTURAL_COMMITTEE_IDS",
    "default_registry",
]

#: Committees of the parliament structure; shown on the public "About" page
#: and never deletable from the admin.
STRUCTURAL_COMMITTEE_IDS: Final[frozenset[str]] = frozenset(
    {
        "agro",
        "infra",
        "youth",
        "security",
        "health",
        "const",
        "econ",
        "edu",
        "smi-obshestvo",
        "mezhregionalnye-svyazi",
    }
)

DEFAULT_PROFILES: Final[tuple[EntityProfile, ...]] = (
    EntityProfile(name="deputies", resource="persons"),
    EntityProfile(name="committees", protected_ids=STRUCTURAL_COMMITTEE_IDS),
    EntityProfile(name="convocations"),
    EntityProfile(name="pages"),
    EntityProfile(name="portals"),
    EntityProfile(name="news"),
    EntityProfile(name="slider"),
    EntityProfile(name="documents"),
    EntityProfile(name="events", resource="calendar"),
)


class EntityRegistry(Mapping[str, EntityProfile]):
    """Read-only name → profile mapping."""

    def __init__(self, profiles: Iterable[EntityProfile]) -> None:
        self._profiles: dict[str, EntityProfile] = {}
        for profile in profiles:
            if profile.name in self._profiles:
                raise ValueError(f"duplicate entity profile: {profile.name}")
            self._profiles[profile.name] = profile

    def __getitem__(self, name: str) -> EntityProfile:
        return self._profiles[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._profiles)

    def __len__(self) -> int:
        return len(self._profiles)

    def resolve(self, entity_type: str | EntityProfile) -> EntityProfile:
        """Return the profile for ``entity_type``.

        Raises:
            UnknownEntityTypeError: If no profile has that name.
        """
        if isinstance(entity_type, EntityProfile):
            return entity_type
        try:
            return self._profiles[entity_type]
        except KeyError:
            raise UnknownEntityTypeError(
                f"unknown entity type: {entity_type}",
                details={"entity_type": entity_type, "known": sorted(self._profiles)},
            ) from None


def default_registry() -> EntityRegistry:
    """Return a registry with the built-in admin lists."""
    return EntityRegistry(DEFAULT_PROFILES)
