# tests/conftest.py
from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

import fakeredis
import fakeredis.aioredis
import pytest

from khural_admin.config.settings import get_settings
from khural_admin.domain.entities.override_record import OverrideRecord
from khural_admin.domain.exceptions.remote import RemoteNotFound, RemoteWriteError
from khural_admin.domain.services.entity_registry import EntityRegistry, default_registry
from khural_admin.infrastructure.caching import redis_client as redis_client_module
from khural_admin.infrastructure.overrides.backends import InMemoryRecordBackend
from khural_admin.infrastructure.overrides.change_bus import ChangeBus
from khural_admin.infrastructure.overrides.store import OverrideStore


class FakeGateway:
    """In-memory backend collection with switchable failures.

    ``fail[<method>] = exc`` makes that method raise ``exc`` until cleared.
    Server ids are sequential integers rendered as strings.
    """

    def __init__(self, rows: list[dict[str, Any]] | None = None) -> None:
        self.rows: dict[str, dict[str, Any]] = {str(r["id"]): dict(r) for r in rows or []}
        self.fail: dict[str, RemoteWriteError] = {}
        self.calls: list[tuple[str, Any]] = []
        self._next_id = 100

    def _maybe_fail(self, method: str) -> None:
        exc = self.fail.get(method)
        if exc is not None:
            raise exc

    async def list(self) -> list[dict[str, Any]]:
        self.calls.append(("list", None))
        self._maybe_fail("list")
        return [dict(r) for r in self.rows.values()]

    async def create(self, body: Mapping[str, Any]) -> dict[str, Any]:
        self.calls.append(("create", dict(body)))
        self._maybe_fail("create")
        self._next_id += 1
        row = {**body, "id": str(self._next_id)}
        self.rows[row["id"]] = row
        return dict(row)

    async def update(self, entity_id: str, patch: Mapping[str, Any]) -> dict[str, Any]:
        self.calls.append(("update", (entity_id, dict(patch))))
        self._maybe_fail("update")
        if entity_id not in self.rows:
            raise RemoteNotFound("not found", details={"id": entity_id})
        self.rows[entity_id].update(patch)
        return dict(self.rows[entity_id])

    async def remove(self, entity_id: str) -> None:
        self.calls.append(("remove", entity_id))
        self._maybe_fail("remove")
        if self.rows.pop(entity_id, None) is None:
            raise RemoteNotFound("not found", details={"id": entity_id})

    def methods_called(self) -> list[str]:
        return [name for name, _ in self.calls]


@pytest.fixture
def registry() -> EntityRegistry:
    return default_registry()


@pytest.fixture
def bus() -> ChangeBus:
    return ChangeBus()


@pytest.fixture
def backend() -> InMemoryRecordBackend:
    return InMemoryRecordBackend()


@pytest.fixture
def store(
    backend: InMemoryRecordBackend, bus: ChangeBus, registry: EntityRegistry
) -> OverrideStore:
    return OverrideStore(backend, bus, registry)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway(
        rows=[
            {"id": "1", "name": "Aldar", "role": "deputy"},
            {"id": "2", "name": "Bair", "role": "deputy"},
        ]
    )


@pytest.fixture
def empty_record() -> OverrideRecord:
    return OverrideRecord()


@pytest.fixture
def fake_redis_server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.fixture
def fake_redis(
    monkeypatch: pytest.MonkeyPatch, fake_redis_server: fakeredis.FakeServer
) -> fakeredis.aioredis.FakeRedis:
    """Fake Redis wired in as the global client."""
    fake = fakeredis.aioredis.FakeRedis(server=fake_redis_server, decode_responses=True)
    monkeypatch.setattr(redis_client_module, "_client", fake)
    return fake


@pytest.fixture
def clean_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Drop cached settings before and after the test."""
    for key in (
        "KHURAL_API_BASE_URL",
        "KHURAL_API_TOKEN",
        "KHURAL_OVERRIDES_BACKEND",
        "KHURAL_OVERRIDES_KEY_NAMESPACE",
        "KHURAL_LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
