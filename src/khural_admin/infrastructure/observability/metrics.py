# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Prometheus metrics for the override layer (registry-aware).

Accessors return collectors bound to the **current**
``prometheus_client.REGISTRY``; caches reset when a test swaps the default
registry, so repeated imports never hit duplicate-registration errors.

Example:
    get_override_store_operations_total().labels(
        op="write", entity_type="committees", outcome="ok"
    ).inc()
"""

from __future__ import annotations

import logging
import threading
from contextlib import suppress
from typing import Final, TypeVar

import prometheus_client as prom
from prometheus_client import Counter, Histogram

_log = logging.getLogger(__name__)

_BUCKETS: Final[tuple[float, ...]] = (
    0.005,
    0.010,
    0.025,
    0.050,
    0.100,
    0.250,
    0.500,
    1.000,
    2.500,
    5.000,
    10.000,
)

T = TypeVar("T", Counter, Histogram)

_registry_id: int | None = None
_cache: dict[str, Counter | Histogram] = {}
_lock = threading.RLock()


def _ensure_registry() -> None:
    """Reset the cache if the active registry changed."""
    global _registry_id
    with _lock:
        rid = id(prom.REGISTRY)
        if _registry_id != rid:
            _cache.clear()
            _registry_id = rid


def _lookup_existing(name: str, kind: type[T]) -> T | None:
    with _lock, suppress(Exception):
        mapping = getattr(prom.REGISTRY, "_names_to_collectors", None)
        if isinstance(mapping, dict):
            col = mapping.get(name)
            if isinstance(col, kind):
                return col
    return None


def _get_or_create(
    kind: type[T],
    name: str,
    help_text: str,
    labelnames: tuple[str, ...],
) -> T:
    """Return the collector ``name`` from the active registry, creating it once."""
    _ensure_registry()
    with _lock:
        cached = _cache.get(name)
        if isinstance(cached, kind):
            return cached

        existing = _lookup_existing(name, kind)
        if existing is not None:
            _cache[name] = existing
            return existing

        try:
            if kind is Histogram:
                col = Histogram(
                    name, help_text, labelnames, buckets=_BUCKETS, registry=prom.REGISTRY
                )
            else:
                col = Counter(name, help_text, labelnames, registry=prom.REGISTRY)
        except ValueError as exc:
            if "Duplicated timeseries" in str(exc):
                again = _lookup_existing(name, kind)
                if again is not None:
                    _cache[name] = again
                    return again
            _log.exception("Failed to register Prometheus collector %s", name)
            raise
        _cache[name] = col
        return col  # type: ignore[return-value]


def get_override_store_operations_total() -> Counter:
    """Counter of override store reads/writes by outcome.

    Labels: ``op`` (read|write), ``entity_type``, ``outcome``
    (ok|missing|corrupt|error).
    """
    return _get_or_create(
        Counter,
        "khural_override_store_operations_total",
        "Override store operations by outcome.",
        ("op", "entity_type", "outcome"),
    )


def get_override_writes_total() -> Counter:
    """Counter of coordinated writes by action and terminal status."""
    return _get_or_create(
        Counter,
        "khural_override_writes_total",
        "Coordinated admin writes by action and status.",
        ("action", "entity_type", "status"),
    )


def get_api_request_duration_seconds() -> Histogram:
    """Histogram of backend API call latency.

    Labels: ``method``, ``resource``, ``outcome`` (ok or an error code).
    """
    return _get_or_create(
        Histogram,
        "khural_api_request_duration_seconds",
        "Backend API request latency in seconds.",
        ("method", "resource", "outcome"),
    )
