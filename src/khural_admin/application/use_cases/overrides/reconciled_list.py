# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Use Case: Reconciled List.

Purpose:
    Keep one admin list's display rows current. The display list is
    recomputed whenever the base list is replaced and whenever the change
    bus reports that the override record of this entity type changed, in
    this process or another one.

Layer:
    application/use_cases
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any

from khural_admin.application.interfaces.change_bus_port import ChangeBusPort
from khural_admin.application.interfaces.entity_gateway import EntityGatewayProtocol
from khural_admin.application.interfaces.override_store_port import OverrideStorePort
from khural_admin.domain.entities.entity_profile import EntityProfile
from khural_admin.domain.entities.override_record import OverrideRecord
from khural_admin.domain.services.local_ids import annotate_local
from khural_admin.domain.services.reconciler import merge

logger = logging.getLogger(__name__)

type RenderCallback = Callable[[list[dict[str, Any]]], Awaitable[None] | None]


class ReconciledList:
    """Display list of one entity type, bound to a store and a change bus.

    Use as an async context manager (or call :meth:`mount` / :meth:`unmount`)
    so the bus subscription lives exactly as long as the view.
    """

    def __init__(
        self,
        profile: EntityProfile,
        store: OverrideStorePort,
        bus: ChangeBusPort,
        base_list: Iterable[Mapping[str, Any]] = (),
    ) -> None:
        self._profile = profile
        self._store = store
        self._bus = bus
        self._base: list[dict[str, Any]] = [dict(e) for e in base_list]
        self._record = OverrideRecord()
        self._items: list[dict[str, Any]] = []
        self._callbacks: list[RenderCallback] = []
        self._unsubscribe: Callable[[], None] | None = None

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    async def mount(self) -> list[dict[str, Any]]:
        """Subscribe to changes and compute the first display list."""
        if self._unsubscribe is None:
            self._unsubscribe = self._bus.subscribe(self._profile.name, self._on_change)
        return await self.refresh()

    def unmount(self) -> None:
        """Stop reacting to change notifications."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def __aenter__(self) -> ReconciledList:
        await self.mount()
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.unmount()

    # ------------------------------------------------------------------ #
    # Inputs
    # ------------------------------------------------------------------ #
    async def set_base(self, base_list: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
        """Replace the base list and recompute against the current record."""
        self._base = [dict(e) for e in base_list]
        return await self._recompute()

    async def reload(self, gateway: EntityGatewayProtocol) -> list[dict[str, Any]]:
        """Fetch a fresh base list; fetch errors propagate to the caller."""
        base = await gateway.list()
        self._base = [dict(e) for e in base]
        return await self.refresh()

    async def refresh(self) -> list[dict[str, Any]]:
        """Re-read the override record and recompute."""
        self._record = await self._store.read(self._profile)
        return await self._recompute()

    # ------------------------------------------------------------------ #
    # Outputs
    # ------------------------------------------------------------------ #
    @property
    def items(self) -> list[dict[str, Any]]:
        """Current display list (copies)."""
        return [dict(row) for row in self._items]

    def rows(self) -> list[dict[str, Any]]:
        """Current display list with an ``isLocal`` flag per row."""
        return annotate_local(self._items)

    def subscribe(self, callback: RenderCallback) -> Callable[[], None]:
        """Register a render callback invoked after every recompute."""
        self._callbacks.append(callback)

        def _remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return _remove

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    async def _on_change(self, entity_type: str) -> None:
        if entity_type == self._profile.name:
            await self.refresh()

    async def _recompute(self) -> list[dict[str, Any]]:
        self._items = merge(self._base, self._record)
        for callback in list(self._callbacks):
            result = callback(self.items)
            if inspect.isawaitable(result):
                await result
        return self.items
