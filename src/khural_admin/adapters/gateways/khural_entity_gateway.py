# src/khural_admin/adapters/gateways/khural_entity_gateway.py
# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Adapter Gateway: Khural REST collection of one entity type.

Binds the transport client to a profile's resource path and implements the
application ``EntityGatewayProtocol``:

* ``list``   → ``GET    /{resource}``
* ``create`` → ``POST   /{resource}``
* ``update`` → ``PATCH  /{resource}/{id}``
* ``remove`` → ``DELETE /{resource}/{id}``

Ids are passed as strings; rows coming back keep their server shape apart
from the id, which is coerced to a string so it matches override keys.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from khural_admin.application.interfaces.entity_gateway import EntityGatewayProtocol
from khural_admin.domain.entities.entity_profile import EntityProfile
from khural_admin.infrastructure.external_apis.khural.client import KhuralApiClient


def _normalize_row(row: Mapping[str, Any]) -> dict[str, Any]:
    out = dict(row)
    if out.get("id") is not None:
        out["id"] = str(out["id"])
    return out


class KhuralEntityGateway(EntityGatewayProtocol):
    """Entity gateway over :class:`KhuralApiClient`."""

    def __init__(self, client: KhuralApiClient, profile: EntityProfile) -> None:
        """Initialize the gateway.

        Args:
            client: Shared transport client.
            profile: Entity profile; its ``resource`` is the collection path.
        """
        self._client = client
        self._profile = profile

    @property
    def resource(self) -> str:
        """Collection path segment."""
        return self._profile.resource

    async def list(self) -> list[dict[str, Any]]:
        rows = await self._client.list(self.resource)
        return [_normalize_row(row) for row in rows]

    async def create(self, body: Mapping[str, Any]) -> dict[str, Any]:
        return _normalize_row(await self._client.create(self.resource, body))

    async def update(self, entity_id: str, patch: Mapping[str, Any]) -> dict[str, Any]:
        return _normalize_row(await self._client.update(self.resource, str(entity_id), patch))

    async def remove(self, entity_id: str) -> None:
        await self._client.remove(self.resource, str(entity_id))
