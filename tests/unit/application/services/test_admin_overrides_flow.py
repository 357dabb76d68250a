from __future__ import annotations

import logging

import pytest

from khural_admin.application.services.admin_overrides import AdminOverrides
from khural_admin.domain.enums.write import WriteStatus
from khural_admin.domain.exceptions.overrides import UnknownEntityTypeError
from khural_admin.domain.exceptions.remote import RemoteUnavailable
from khural_admin.domain.services.entity_registry import EntityRegistry
from khural_admin.infrastructure.logging.logger import get_operation_id
from khural_admin.infrastructure.overrides.change_bus import ChangeBus
from khural_admin.infrastructure.overrides.store import OverrideStore


@pytest.fixture
def facade(registry: EntityRegistry, store: OverrideStore, bus: ChangeBus, gateway):
    return AdminOverrides(registry, store, bus, lambda profile: gateway)


@pytest.mark.asyncio
async def test_offline_session_converges_after_reconnect(facade: AdminOverrides, gateway) -> None:
    """Offline create/edit/delete stay visible; after reconnect each row shows once."""
    view = facade.reconciled_list("deputies")
    await view.mount()
    await view.reload(gateway)

    gateway.fail = {m: RemoteUnavailable("offline") for m in ("create", "update", "remove")}

    created = await facade.submit_create("deputies", {"name": "Erdem"})
    await facade.submit_update("deputies", created.id, {"role": "chair"})
    await facade.submit_update("deputies", "1", {"name": "Aldar D."})
    deleted = await facade.submit_delete("deputies", "2")

    assert deleted.status is WriteStatus.DELETED_LOCALLY
    assert [(r["id"], r["name"]) for r in view.items] == [
        ("1", "Aldar D."),
        (created.id, "Erdem"),
    ]
    assert view.items[-1]["role"] == "chair"

    gateway.fail = {}
    synced = await facade.submit_create(
        "deputies", {"name": "Erdem", "role": "chair"}, local_id=created.id
    )
    await facade.submit_update("deputies", "1", {"name": "Aldar D."})
    await view.reload(gateway)

    ids = [r["id"] for r in view.items]
    assert ids == ["1", synced.id]
    assert len(ids) == len(set(ids))
    assert view.items[0]["name"] == "Aldar D."


@pytest.mark.asyncio
async def test_coordinators_are_cached_per_type(facade: AdminOverrides, gateway) -> None:
    assert facade.coordinator("news") is facade.coordinator("news")
    assert facade.gateway("news") is gateway
    with pytest.raises(UnknownEntityTypeError):
        await facade.submit_delete("planets", "1")


class _OperationIdCollector(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.INFO)
        self.ids: list[str | None] = []

    def emit(self, record: logging.LogRecord) -> None:
        if record.getMessage() == "write finished":
            self.ids.append(get_operation_id())


@pytest.mark.asyncio
async def test_each_submit_runs_under_its_own_operation_id(facade: AdminOverrides) -> None:
    collector = _OperationIdCollector()
    coordinator_logger = logging.getLogger(
        "khural_admin.application.use_cases.overrides.write_coordinator"
    )
    coordinator_logger.addHandler(collector)
    previous = coordinator_logger.level
    coordinator_logger.setLevel(logging.INFO)
    try:
        await facade.submit_update("deputies", "1", {"name": "x"})
        await facade.submit_update("deputies", "2", {"name": "y"})
    finally:
        coordinator_logger.removeHandler(collector)
        coordinator_logger.setLevel(previous)

    assert len(collector.ids) == 2
    assert all(collector.ids)
    assert collector.ids[0] != collector.ids[1]
    assert get_operation_id() is None
