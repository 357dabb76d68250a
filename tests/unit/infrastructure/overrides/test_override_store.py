from __future__ import annotations

import json

import pytest

from khural_admin.domain.entities.override_record import OverrideRecord
from khural_admin.domain.exceptions.overrides import (
    OverrideStorageError,
    UnknownEntityTypeError,
)
from khural_admin.domain.services.entity_registry import EntityRegistry
from khural_admin.infrastructure.overrides.backends import InMemoryRecordBackend
from khural_admin.infrastructure.overrides.change_bus import ChangeBus
from khural_admin.infrastructure.overrides.store import OverrideStore


class _BrokenBackend:
    async def load(self, key: str) -> str | None:
        raise OverrideStorageError("down", details={"key": key})

    async def save(self, key: str, raw: str) -> None:
        raise OverrideStorageError("down", details={"key": key})

    async def delete(self, key: str) -> None:
        raise OverrideStorageError("down", details={"key": key})


@pytest.mark.asyncio
async def test_missing_record_reads_empty(store: OverrideStore) -> None:
    record = await store.read("deputies")
    assert record.is_empty


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["{not json", "null", "[1,2]", '"str"'])
async def test_corrupt_record_reads_empty(
    store: OverrideStore, backend: InMemoryRecordBackend, raw: str
) -> None:
    await backend.save("khural_news_overrides_v1", raw)
    assert (await store.read("news")).is_empty


@pytest.mark.asyncio
async def test_write_then_read_round_trips_and_notifies(
    store: OverrideStore, backend: InMemoryRecordBackend, bus: ChangeBus
) -> None:
    seen: list[str] = []
    bus.subscribe("committees", seen.append)

    record = OverrideRecord(
        created=[{"id": "local-1", "title": "Комитет"}],
        updated_by_id={"5": {"title": "T"}},
        deleted_ids=["6"],
    )
    await store.write("committees", record)

    assert seen == ["committees"]
    raw = await backend.load("khural_committees_overrides_v1")
    assert raw is not None
    assert json.loads(raw) == record.to_payload()
    assert "Комитет" in raw
    assert (await store.read("committees")).to_payload() == record.to_payload()


@pytest.mark.asyncio
async def test_read_returns_independent_copies(store: OverrideStore) -> None:
    await store.write("news", OverrideRecord(deleted_ids=["1"]))
    first = await store.read("news")
    first.deleted_ids.append("2")
    assert (await store.read("news")).deleted_ids == ["1"]


@pytest.mark.asyncio
async def test_protected_ids_are_dropped_on_read(
    store: OverrideStore, backend: InMemoryRecordBackend
) -> None:
    await backend.save(
        "khural_committees_overrides_v1",
        json.dumps({"created": [], "updatedById": {}, "deletedIds": ["agro", "77"]}),
    )
    assert (await store.read("committees")).deleted_ids == ["77"]


@pytest.mark.asyncio
async def test_quota_failure_keeps_session_copy_and_still_notifies(
    bus: ChangeBus, registry: EntityRegistry
) -> None:
    backend = InMemoryRecordBackend(max_bytes=80)
    store = OverrideStore(backend, bus, registry)
    notified: list[str] = []
    bus.subscribe("news", notified.append)

    big = OverrideRecord(created=[{"id": "local-1", "body": "x" * 200}])
    await store.write("news", big)

    assert notified == ["news"]
    assert await backend.load("khural_news_overrides_v1") is None
    assert (await store.read("news")).created == big.created

    await store.write("news", OverrideRecord(deleted_ids=["1"]))
    assert await backend.load("khural_news_overrides_v1") is not None
    assert (await store.read("news")).deleted_ids == ["1"]


@pytest.mark.asyncio
async def test_unavailable_backend_never_raises(bus: ChangeBus, registry: EntityRegistry) -> None:
    store = OverrideStore(_BrokenBackend(), bus, registry)
    assert (await store.read("pages")).is_empty

    await store.write("pages", OverrideRecord(deleted_ids=["9"]))
    assert (await store.read("pages")).deleted_ids == ["9"]

    await store.clear("pages")
    assert (await store.read("pages")).is_empty


@pytest.mark.asyncio
async def test_namespace_prefixes_keys(bus: ChangeBus, registry: EntityRegistry) -> None:
    backend = InMemoryRecordBackend()
    store = OverrideStore(backend, bus, registry, namespace="staging:")
    await store.write("slider", OverrideRecord(order_ids=["3", "1"]))
    assert backend.keys() == ["staging:khural_slider_overrides_v1"]
    assert store.key_for("slider") == "staging:khural_slider_overrides_v1"


@pytest.mark.asyncio
async def test_clear_removes_record_and_notifies(
    store: OverrideStore, backend: InMemoryRecordBackend, bus: ChangeBus
) -> None:
    notified: list[str] = []
    bus.subscribe("news", notified.append)
    await store.write("news", OverrideRecord(deleted_ids=["1"]))
    await store.clear("news")

    assert notified == ["news", "news"]
    assert backend.keys() == []
    assert (await store.read("news")).is_empty


@pytest.mark.asyncio
async def test_unknown_entity_type_raises(store: OverrideStore) -> None:
    with pytest.raises(UnknownEntityTypeError):
        await store.read("planets")
