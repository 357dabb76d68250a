# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Admin Overrides facade.

Synopsis:
    Entry points the admin views call: ``submit_create``, ``submit_update``,
    ``submit_delete`` and ``reconciled_list``. Resolves entity type names to
    profiles and builds one write coordinator per type on first use. Each
    submit runs under its own operation id, which tags its log lines and the
    outbound ``X-Request-ID``.

Layer:
    application/services
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from khural_admin.application.interfaces.change_bus_port import ChangeBusPort
from khural_admin.application.interfaces.entity_gateway import EntityGatewayProtocol
from khural_admin.application.interfaces.override_store_port import OverrideStorePort
from khural_admin.application.schemas.dto.write_result import WriteResult
from khural_admin.application.services.identity_resolver import IdentityResolver
from khural_admin.application.use_cases.overrides.reconciled_list import ReconciledList
from khural_admin.application.use_cases.overrides.write_coordinator import WriteCoordinator
from khural_admin.domain.entities.entity_profile import EntityProfile
from khural_admin.domain.services.entity_registry import EntityRegistry
from khural_admin.infrastructure.logging.logger import operation_context

type GatewayFactory = Callable[[EntityProfile], EntityGatewayProtocol]


class AdminOverrides:
    """Facade over write coordinators and reconciled lists.

    Args:
        registry: Known entity types.
        store: Override store shared by every type.
        bus: Change bus shared by every type.
        gateway_factory: Builds the backend gateway for a profile.
        identity: Optional resolver; built on ``store`` when omitted.
    """

    def __init__(
        self,
        registry: EntityRegistry,
        store: OverrideStorePort,
        bus: ChangeBusPort,
        gateway_factory: GatewayFactory,
        *,
        identity: IdentityResolver | None = None,
    ) -> None:
        self._registry = registry
        self._store = store
        self._bus = bus
        self._gateway_factory = gateway_factory
        self._identity = identity or IdentityResolver(store)
        self._coordinators: dict[str, WriteCoordinator] = {}

    @property
    def identity(self) -> IdentityResolver:
        """Resolver shared by every coordinator."""
        return self._identity

    def gateway(self, entity_type: str | EntityProfile) -> EntityGatewayProtocol:
        """Return the backend gateway of ``entity_type``."""
        return self.coordinator(entity_type).gateway

    def coordinator(self, entity_type: str | EntityProfile) -> WriteCoordinator:
        """Return (building on first use) the coordinator of ``entity_type``."""
        profile = self._registry.resolve(entity_type)
        coordinator = self._coordinators.get(profile.name)
        if coordinator is None:
            coordinator = WriteCoordinator(
                profile, self._gateway_factory(profile), self._store, self._identity
            )
            self._coordinators[profile.name] = coordinator
        return coordinator

    async def submit_create(
        self,
        entity_type: str | EntityProfile,
        body: Mapping[str, Any],
        *,
        local_id: str | None = None,
    ) -> WriteResult:
        """Create through the backend, staging locally on failure."""
        with operation_context():
            return await self.coordinator(entity_type).create(body, local_id=local_id)

    async def submit_update(
        self,
        entity_type: str | EntityProfile,
        entity_id: object,
        patch: Mapping[str, Any],
    ) -> WriteResult:
        """Update through the backend, staging the patch locally on failure."""
        with operation_context():
            return await self.coordinator(entity_type).update(entity_id, patch)

    async def submit_delete(self, entity_type: str | EntityProfile, entity_id: object) -> WriteResult:
        """Delete through the backend; always hides the row locally."""
        with operation_context():
            return await self.coordinator(entity_type).delete(entity_id)

    def reconciled_list(
        self,
        entity_type: str | EntityProfile,
        base_list: Iterable[Mapping[str, Any]] = (),
    ) -> ReconciledList:
        """Return an unmounted reconciled list for ``entity_type``."""
        profile = self._registry.resolve(entity_type)
        return ReconciledList(profile, self._store, self._bus, base_list)
