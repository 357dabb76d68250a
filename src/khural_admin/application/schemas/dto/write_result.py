# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Write Result DTO.

Purpose:
    Outcome of one create/update/delete attempt, carrying the only text the
    admin sees about it.

Layer: application/schemas/dto
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from khural_admin.application.schemas.dto.base import BaseDTO
from khural_admin.domain.enums.write import ErrorKind, WriteAction, WriteStatus


class WriteResult(BaseDTO):
    """Result of a coordinated write.

    Attributes:
        action: Which write was attempted.
        entity_type: Entity type name.
        id: Id the write ended up under (server id, or local id on fallback).
        status: Terminal state of the attempt.
        error_kind: Failure classification, when the remote call failed.
        message: User-facing notification text.
        entity: Server or locally staged entity, for create/update.
    """

    action: WriteAction
    entity_type: str
    id: str
    status: WriteStatus
    error_kind: ErrorKind | None = None
    message: str
    entity: dict[str, Any] | None = Field(default=None)

    @property
    def synced(self) -> bool:
        """True when the backend holds the change."""
        return self.status is WriteStatus.SYNCED

    @property
    def is_local(self) -> bool:
        """True when the change only exists in the override record."""
        return self.status in (WriteStatus.SAVED_LOCALLY, WriteStatus.DELETED_LOCALLY)
