# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Application Interface: Override Store Port.

Synopsis:
    Whole-record persistence of override records, one per entity type.
    Enables swapping Redis for an in-memory store in tests and tooling.

Layer:
    application/interfaces
"""

from __future__ import annotations

from typing import Protocol

from khural_admin.domain.entities.entity_profile import EntityProfile
from khural_admin.domain.entities.override_record import OverrideRecord


class OverrideStorePort(Protocol):
    """Best-effort store of override records.

    ``read`` never raises for missing or corrupt data and never returns
    ``None``; ``write`` replaces the whole record and then announces the
    change. Storage failures are logged, not raised.
    """

    async def read(self, entity_type: str | EntityProfile) -> OverrideRecord:
        """Return the normalized record for ``entity_type`` (empty if absent)."""

    async def write(self, entity_type: str | EntityProfile, record: OverrideRecord) -> None:
        """Persist ``record`` as the whole record for ``entity_type``."""
