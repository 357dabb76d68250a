# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Use Case: Coordinated Writes (create / update / delete).

Purpose:
    Try the backend first; when it fails, keep the admin's own view
    consistent by recording the change in the override record. This is the
    only component that talks to both the backend gateway and the override
    store, and the only place user-facing write messages come from.

Fallback matrix:
    create  failure            -> stage entity under a local id
    update  network/validation -> accumulate patch under the id
    update  not found          -> tombstone (the entity is gone remotely)
    delete  any outcome        -> tombstone; a failed remote delete is
                                  reported as pending, not as done
    update/delete on a local id never reach the network, and neither does
    an update of a tombstoned id.

Layer:
    application/use_cases
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from contextlib import suppress
from typing import Any

from khural_admin.application.interfaces.entity_gateway import EntityGatewayProtocol
from khural_admin.application.interfaces.override_store_port import OverrideStorePort
from khural_admin.application.schemas.dto.write_result import WriteResult
from khural_admin.application.services.identity_resolver import IdentityResolver
from khural_admin.domain.entities.entity_profile import EntityProfile
from khural_admin.domain.entities.override_record import entity_key
from khural_admin.domain.enums.write import ErrorKind, WriteAction, WriteStatus
from khural_admin.domain.exceptions.overrides import ProtectedEntityError
from khural_admin.domain.exceptions.remote import RemoteWriteError
from khural_admin.infrastructure.observability.metrics import get_override_writes_total

logger = logging.getLogger(__name__)

_FALLBACK_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.NETWORK: "Server unavailable: saved locally, not yet synced.",
    ErrorKind.VALIDATION: "Validation error: saved locally pending correction.",
    ErrorKind.FORBIDDEN: "No permission on the server: saved locally, not yet synced.",
}


class WriteCoordinator:
    """Remote-first writes with override-record fallback for one entity type.

    Args:
        profile: Entity type the coordinator writes.
        gateway: Backend collection for that type.
        store: Override store.
        identity: Resolver used for local ids and migrations.
    """

    def __init__(
        self,
        profile: EntityProfile,
        gateway: EntityGatewayProtocol,
        store: OverrideStorePort,
        identity: IdentityResolver,
    ) -> None:
        self._profile = profile
        self._gateway = gateway
        self._store = store
        self._identity = identity

    @property
    def profile(self) -> EntityProfile:
        """Entity type this coordinator writes."""
        return self._profile

    @property
    def gateway(self) -> EntityGatewayProtocol:
        """Backend collection this coordinator writes to."""
        return self._gateway

    # ------------------------------------------------------------------ #
    # create
    # ------------------------------------------------------------------ #
    async def create(
        self,
        body: Mapping[str, Any],
        *,
        local_id: str | None = None,
    ) -> WriteResult:
        """Create an entity remotely, staging it locally on failure.

        Args:
            body: Entity fields (any ``id`` key is ignored).
            local_id: Id of an optimistic row already on screen. On success
                its overrides are migrated to the server id; on failure the
                staged copy under this id is replaced instead of duplicated.

        Returns:
            The write result; ``entity`` is the server or staged copy.
        """
        payload = {k: v for k, v in body.items() if k != "id"}
        try:
            created = await self._gateway.create(payload)
        except RemoteWriteError as exc:
            staged_id = local_id or self._identity.new_local_id()
            staged = {**payload, "id": staged_id}
            record = await self._store.read(self._profile)
            record.stage_created(staged)
            await self._store.write(self._profile, record)
            return self._fallback(WriteAction.CREATE, staged_id, exc, entity=staged)

        # Any accepted create is synced; the server copy shows on next reload.
        server_id = entity_key(created)
        if local_id:
            if server_id:
                await self._identity.migrate(self._profile, local_id, created)
            else:
                await self._identity.retire(self._profile, local_id)
        return self._done(
            WriteAction.CREATE,
            server_id or str(local_id or ""),
            WriteStatus.SYNCED,
            "Created.",
            entity=dict(created),
        )

    # ------------------------------------------------------------------ #
    # update
    # ------------------------------------------------------------------ #
    async def update(self, entity_id: object, patch: Mapping[str, Any]) -> WriteResult:
        """Update an entity remotely, accumulating the patch locally on failure.

        Args:
            entity_id: Server or local id.
            patch: Changed fields; merged shallowly (whole-field replace).

        Returns:
            The write result.
        """
        sid = str(entity_id)
        clean = {k: v for k, v in patch.items() if k != "id"}

        record = await self._store.read(self._profile)
        if record.is_deleted(sid):
            return self._done(
                WriteAction.UPDATE, sid, WriteStatus.CONVERGED, "Entity was deleted."
            )

        if self._identity.is_local_id(sid):
            record.stage_patch(sid, clean)
            await self._store.write(self._profile, record)
            return self._done(
                WriteAction.UPDATE, sid, WriteStatus.SAVED_LOCALLY, "Updated locally."
            )

        try:
            updated = await self._gateway.update(sid, clean)
        except RemoteWriteError as exc:
            record = await self._store.read(self._profile)
            if exc.kind is ErrorKind.NOT_FOUND:
                record.tombstone(sid)
                await self._store.write(self._profile, record)
                return self._converged(WriteAction.UPDATE, sid, exc)
            record.stage_patch(sid, clean)
            await self._store.write(self._profile, record)
            return self._fallback(WriteAction.UPDATE, sid, exc)

        record = await self._store.read(self._profile)
        if record.pop_patch(sid) is not None:
            await self._store.write(self._profile, record)
        return self._done(
            WriteAction.UPDATE,
            sid,
            WriteStatus.SYNCED,
            "Updated.",
            entity=dict(updated) if updated else None,
        )

    # ------------------------------------------------------------------ #
    # delete
    # ------------------------------------------------------------------ #
    async def delete(self, entity_id: object) -> WriteResult:
        """Delete an entity; the row disappears locally whatever the backend says.

        Args:
            entity_id: Server or local id.

        Returns:
            The write result. A failed remote delete yields
            ``DELETED_LOCALLY`` so the view can flag it as unconfirmed.

        Raises:
            ProtectedEntityError: If the id is structural for this type.
        """
        sid = str(entity_id)
        if self._profile.is_protected(sid):
            raise ProtectedEntityError(
                f"{self._profile.name} entity {sid} cannot be deleted",
                details={"entity_type": self._profile.name, "id": sid},
            )

        failure: RemoteWriteError | None = None
        if not self._identity.is_local_id(sid):
            try:
                await self._gateway.remove(sid)
            except RemoteWriteError as exc:
                failure = exc

        record = await self._store.read(self._profile)
        record.tombstone(sid)
        await self._store.write(self._profile, record)

        if failure is None:
            return self._done(WriteAction.DELETE, sid, WriteStatus.SYNCED, "Deleted.")
        if failure.kind is ErrorKind.NOT_FOUND:
            return self._converged(WriteAction.DELETE, sid, failure)

        logger.warning(
            "remote delete failed; tombstoned locally",
            extra={
                "extra": {
                    "entity_type": self._profile.name,
                    "id": sid,
                    "error_code": failure.code,
                    "error_kind": failure.kind.value,
                }
            },
        )
        return self._done(
            WriteAction.DELETE,
            sid,
            WriteStatus.DELETED_LOCALLY,
            "Deleted locally: pending delete, not yet confirmed by the server.",
            error_kind=failure.kind,
        )

    # ------------------------------------------------------------------ #
    # Result builders
    # ------------------------------------------------------------------ #
    def _done(
        self,
        action: WriteAction,
        entity_id: str,
        status: WriteStatus,
        message: str,
        *,
        error_kind: ErrorKind | None = None,
        entity: dict[str, Any] | None = None,
    ) -> WriteResult:
        with suppress(Exception):
            get_override_writes_total().labels(
                action=action.value, entity_type=self._profile.name, status=status.value
            ).inc()
        logger.info(
            "write finished",
            extra={
                "extra": {
                    "entity_type": self._profile.name,
                    "action": action.value,
                    "id": entity_id,
                    "status": status.value,
                }
            },
        )
        return WriteResult(
            action=action,
            entity_type=self._profile.name,
            id=entity_id,
            status=status,
            error_kind=error_kind,
            message=message,
            entity=entity,
        )

    def _fallback(
        self,
        action: WriteAction,
        entity_id: str,
        exc: RemoteWriteError,
        *,
        entity: dict[str, Any] | None = None,
    ) -> WriteResult:
        logger.warning(
            "remote write failed; saved locally",
            extra={
                "extra": {
                    "entity_type": self._profile.name,
                    "action": action.value,
                    "id": entity_id,
                    "error_code": exc.code,
                    "error_kind": exc.kind.value,
                    "details": exc.details,
                }
            },
        )
        return self._done(
            action,
            entity_id,
            WriteStatus.SAVED_LOCALLY,
            _FALLBACK_MESSAGES.get(exc.kind, _FALLBACK_MESSAGES[ErrorKind.NETWORK]),
            error_kind=exc.kind,
            entity=entity,
        )

    def _converged(
        self, action: WriteAction, entity_id: str, exc: RemoteWriteError
    ) -> WriteResult:
        return self._done(
            action,
            entity_id,
            WriteStatus.CONVERGED,
            "Entity no longer exists on the server; removed from the list.",
            error_kind=exc.kind,
        )
