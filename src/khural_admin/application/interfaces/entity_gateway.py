# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Application Interface: Entity Gateway.

Synopsis:
    Boundary to the backend REST collection of one entity type. Every write
    method may raise a :class:`RemoteWriteError` subclass; that is the
    trigger for the local fallbacks. ``list`` failures propagate untouched.

Layer:
    application/interfaces
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol


class EntityGatewayProtocol(Protocol):
    """CRUD access to one backend collection."""

    async def list(self) -> list[dict[str, Any]]:
        """Fetch the base list."""

    async def create(self, body: Mapping[str, Any]) -> dict[str, Any]:
        """Create an entity and return the server copy (with its server id)."""

    async def update(self, entity_id: str, patch: Mapping[str, Any]) -> dict[str, Any]:
        """Apply ``patch`` to ``entity_id`` and return the server copy."""

    async def remove(self, entity_id: str) -> None:
        """Delete ``entity_id``."""
