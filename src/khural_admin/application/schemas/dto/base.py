# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Base DTO (Application Layer).

Purpose:
    Canonical Pydantic base for application-layer DTOs. Transport-agnostic.

Layer: application/schemas/dto
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BaseDTO(BaseModel):
    """Base class for application-layer DTOs (strict fields, immutable)."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )
