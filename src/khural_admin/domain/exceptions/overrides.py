# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Override Layer Exceptions.

Layer:
    domain/exceptions
"""

from __future__ import annotations

from khural_admin.domain.exceptions.base import DomainError


class UnknownEntityTypeError(DomainError):
    """No profile is registered under the requested entity type name."""

    code = "UNKNOWN_ENTITY_TYPE"


class ProtectedEntityError(DomainError):
    """The entity is structural and cannot be deleted, locally or remotely."""

    code = "PROTECTED_ENTITY"


class OverrideStorageError(DomainError):
    """A storage backend failed to persist or load an override record.

    Raised by backends only; the override store catches it, logs it and
    degrades to best-effort behavior.
    """

    code = "OVERRIDE_STORAGE_FAILED"
