# src/khural_admin/domain/services/reconciler.py
# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Override Reconciler.

Purpose:
    Merge a freshly fetched base list with an override record into the list
    an admin view renders. Pure: no I/O, no mutation of its inputs, same
    output for the same inputs.

Algorithm:
    1. Tombstones are collected into a set.
    2. Base entities are walked in order; tombstoned ids are skipped, pending
       patches are shallow-merged in place, ids are recorded as seen.
    3. Staged local entities are walked in order; tombstoned or already seen
       ids are skipped (the base copy wins), pending patches are applied.
    4. If the record carries ``orderIds``, listed ids are moved to the front
       in that order; everything else keeps its relative order.

    Every lookup is a set/dict probe, so a merge is linear in the size of
    its inputs. Patches for ids present in neither list are inert.

Layer:
    domain/services
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from khural_admin.domain.entities.override_record import Entity, OverrideRecord, entity_key

__all__ = ["apply_order", "merge"]


def _apply_patch(entity: Entity, patch: Mapping[str, Any] | None) -> dict[str, Any]:
    # Top-level only: a patched list/dict field replaces the old value whole.
    if not patch:
        return dict(entity)
    return {**entity, **patch}


def merge(base_list: Iterable[Entity] | None, override: OverrideRecord) -> list[dict[str, Any]]:
    """Reconcile a base list with an override record.

    Args:
        base_list: Latest server snapshot for the entity type (read-only).
        override: Normalized override record for the same entity type.

    Returns:
        The display list: fresh dicts, never the caller's objects.
    """
    # Records built in code may carry raw server ids; compare as strings.
    deleted = {str(sid).strip() for sid in override.deleted_ids}
    patches = {str(sid).strip(): patch for sid, patch in override.updated_by_id.items()}

    out: list[dict[str, Any]] = []
    seen: set[str] = set()

    for entity in base_list or ():
        key = entity_key(entity)
        if not key or key in deleted or key in seen:
            continue
        out.append(_apply_patch(entity, patches.get(key)))
        seen.add(key)

    for entity in override.created:
        key = entity_key(entity)
        if not key or key in deleted or key in seen:
            continue
        out.append(_apply_patch(entity, patches.get(key)))
        seen.add(key)

    if override.order_ids:
        return apply_order(out, override.order_ids)
    return out


def apply_order(items: Sequence[dict[str, Any]], order_ids: Sequence[str]) -> list[dict[str, Any]]:
    """Stable reorder: ids in ``order_ids`` first, in that order.

    Args:
        items: Rows to reorder.
        order_ids: Preferred id order; unknown ids are ignored.

    Returns:
        A new list with the same rows.
    """
    rank: dict[str, int] = {}
    for sid in order_ids:
        rank.setdefault(str(sid).strip(), len(rank))
    tail = len(rank)
    indexed = sorted(
        enumerate(items),
        key=lambda pair: (rank.get(entity_key(pair[1]), tail), pair[0]),
    )
    return [row for _, row in indexed]
