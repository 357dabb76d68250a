# src/khural_admin/domain/services/local_ids.py
# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Local id space.

Purpose:
    Generate and classify client-only entity ids. Server ids are plain
    numeric/opaque strings and never carry one of the local prefixes, so the
    two spaces cannot collide.

Layer:
    domain/services
"""

from __future__ import annotations

import itertools
import secrets
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Final

from khural_admin.domain.entities.override_record import entity_key

__all__ = [
    "LOCAL_ID_PREFIXES",
    "LocalIdFactory",
    "annotate_local",
    "is_local_id",
    "new_local_id",
]

#: ``local-`` (including ``local-static-`` seed rows), ``tmp-`` optimistic
#: rows and ``imp-`` imported rows.
LOCAL_ID_PREFIXES: Final[tuple[str, ...]] = ("local-", "tmp-", "imp-")


def is_local_id(entity_id: object) -> bool:
    """Return True if ``entity_id`` belongs to the local id space."""
    if entity_id is None:
        return False
    return str(entity_id).strip().startswith(LOCAL_ID_PREFIXES)


class LocalIdFactory:
    """Thread-safe generator of ``local-<ms>-<seq>-<hex>`` ids.

    The millisecond timestamp keeps ids roughly sortable, the per-factory
    sequence separates calls inside the same millisecond, and the random
    suffix separates factories in different processes.
    """

    def __init__(
        self,
        *,
        prefix: str = "local-",
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not prefix.startswith(LOCAL_ID_PREFIXES):
            raise ValueError(f"prefix must be one of {LOCAL_ID_PREFIXES!r}")
        self._prefix = prefix
        self._clock = clock
        self._seq = itertools.count(1)
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            seq = next(self._seq)
        millis = int(self._clock() * 1000)
        return f"{self._prefix}{millis}-{seq}-{secrets.token_hex(3)}"


_default_factory = LocalIdFactory()


def new_local_id() -> str:
    """Return a fresh id from the process-wide factory."""
    return _default_factory()


def annotate_local(rows: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Return copies of ``rows`` carrying an ``isLocal`` flag.

    The flag lets a view disable actions that need a server id (photo
    upload and the like).
    """
    return [{**row, "isLocal": is_local_id(entity_key(row))} for row in rows]
