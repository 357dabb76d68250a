# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Khural admin override-reconciliation layer."""

__version__ = "0.1.0"
