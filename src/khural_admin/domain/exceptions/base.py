# src/khural_admin/domain/exceptions/base.py
# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Base Domain Exceptions.

Summary:
    Canonical base class for domain/application exceptions so callers can map
    failures to user-facing messages and metrics deterministically.

Layer:
    domain/exceptions
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base class for all domain/application exceptions.

    Attributes:
        code:
            Stable error code suitable for logs and metrics.
        details:
            Optional machine-readable diagnostic payload.
    """

    code: str = "DOMAIN_ERROR"

    def __init__(self, message: str = "", *, details: dict[str, Any] | None = None) -> None:
        """Initialize a DomainError instance.

        Args:
            message:
                Human-readable error message.
            details:
                Optional structured diagnostic payload for logs.
        """
        super().__init__(message)
        self.details: dict[str, Any] = details or {}
