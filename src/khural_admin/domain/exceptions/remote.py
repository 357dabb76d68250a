# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Remote Write Exceptions.

Synopsis:
    Failure classes raised by the backend API client. Each one is a trigger
    for a local fallback in the write coordinator; the class decides *which*
    fallback and which message the admin sees.

Design:
    * Inherit from :class:`RemoteWriteError` so the coordinator can catch the
      whole family and let anything else (programming errors) propagate.
    * ``kind`` is the stable classification used in write results.

Layer:
    domain/exceptions
"""

from __future__ import annotations

from khural_admin.domain.enums.write import ErrorKind
from khural_admin.domain.exceptions.base import DomainError


class RemoteWriteError(DomainError):
    """Base class for backend API failures.

    Attributes:
        code: Stable, machine-readable error code.
        kind: Failure classification surfaced in write results.
    """

    code = "REMOTE_ERROR"
    kind: ErrorKind = ErrorKind.NETWORK


class RemoteUnavailable(RemoteWriteError):
    """Backend is unreachable, timed out, rate limited or answered 5xx.

    Typical causes:
        * Network errors / timeouts
        * Upstream 5xx
        * 429 after retries were exhausted
    """

    code = "REMOTE_UNAVAILABLE"
    kind = ErrorKind.NETWORK


class RemoteValidationError(RemoteWriteError):
    """Backend rejected the payload (4xx other than 401/403/404)."""

    code = "REMOTE_VALIDATION_FAILED"
    kind = ErrorKind.VALIDATION


class RemoteNotFound(RemoteWriteError):
    """Target entity no longer exists on the backend (404)."""

    code = "REMOTE_NOT_FOUND"
    kind = ErrorKind.NOT_FOUND


class RemoteForbidden(RemoteWriteError):
    """Session lacks the rights for this write (401/403)."""

    code = "REMOTE_FORBIDDEN"
    kind = ErrorKind.FORBIDDEN
