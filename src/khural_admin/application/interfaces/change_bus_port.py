# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Application Interface: Change Bus Port.

Synopsis:
    Notification channel telling mounted views that an override record
    changed and must be re-read. Same-process listeners are called on
    publish; other processes are reached through the transport, if any.

Layer:
    application/interfaces
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol

from khural_admin.domain.entities.entity_profile import EntityProfile

#: Receives the entity type name; may be sync or async.
type ChangeListener = Callable[[str], Awaitable[None] | None]


class ChangeBusPort(Protocol):
    """Publish/subscribe on per-entity-type change events."""

    def subscribe(self, entity_type: str, listener: ChangeListener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unregisters it."""

    async def publish(self, profile: EntityProfile) -> None:
        """Announce that the record of ``profile`` changed."""
