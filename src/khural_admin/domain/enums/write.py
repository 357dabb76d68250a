# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Write outcome enumerations.

Layer:
    domain/enums
"""

from __future__ import annotations

from enum import Enum


class WriteAction(str, Enum):
    """The three logical writes an admin list can issue."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class WriteStatus(str, Enum):
    """Terminal state of one write attempt as seen by the admin.

    SYNCED:
        The backend accepted the write (or there was nothing to send).
    SAVED_LOCALLY:
        The backend call failed; the change lives in the override record.
    DELETED_LOCALLY:
        The remote delete failed; the row is tombstoned but the delete is not
        confirmed by the backend.
    CONVERGED:
        The backend reported the entity gone (404); the local view was
        tombstoned to match.
    """

    SYNCED = "synced"
    SAVED_LOCALLY = "saved_locally"
    DELETED_LOCALLY = "deleted_locally"
    CONVERGED = "converged"


class ErrorKind(str, Enum):
    """Classification of a failed remote write."""

    NETWORK = "network"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
