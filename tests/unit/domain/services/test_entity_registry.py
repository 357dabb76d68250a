from __future__ import annotations

import pytest

from khural_admin.domain.entities.entity_profile import EntityProfile
from khural_admin.domain.exceptions.overrides import UnknownEntityTypeError
from khural_admin.domain.services.entity_registry import (
    STRUCTURAL_COMMITTEE_IDS,
    EntityRegistry,
    default_registry,
)


def test_default_registry_profiles() -> None:
    registry = default_registry()
    assert {"deputies", "committees", "news", "slider"} <= set(registry)

    deputies = registry.resolve("deputies")
    assert deputies.resource == "persons"
    assert deputies.storage_key == "khural_deputies_overrides_v1"
    assert deputies.event_name == "khural:deputies-updated"

    committees = registry["committees"]
    assert committees.resource == "committees"
    assert committees.protected_ids == STRUCTURAL_COMMITTEE_IDS
    assert committees.is_protected("agro")
    assert not committees.is_protected("42")


def test_resolve_passes_profiles_through() -> None:
    profile = EntityProfile(name="custom")
    assert default_registry().resolve(profile) is profile


def test_unknown_entity_type() -> None:
    with pytest.raises(UnknownEntityTypeError) as ei:
        default_registry().resolve("planets")
    assert ei.value.code == "UNKNOWN_ENTITY_TYPE"
    assert ei.value.details["entity_type"] == "planets"
    assert "deputies" in ei.value.details["known"]


def test_duplicate_profiles_rejected() -> None:
    with pytest.raises(ValueError):
        EntityRegistry([EntityProfile(name="news"), EntityProfile(name="news")])


@pytest.mark.parametrize("name", ["", " news", "two words"])
def test_profile_name_validation(name: str) -> None:
    with pytest.raises(ValueError):
        EntityProfile(name=name)


def test_profile_coerces_protected_ids_to_strings() -> None:
    profile = EntityProfile(name="things", protected_ids=frozenset({1, "2"}))  # type: ignore[arg-type]
    assert profile.protected_ids == frozenset({"1", "2"})
    assert profile.is_protected(1)
