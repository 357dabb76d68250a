# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Khural overrides CLI: inspect and reset locally staged admin changes.

Commands:
    entities             List known entity types and their storage keys.
    show <entity>        Print the normalized override record.
    reconcile <entity>   Fetch the base list and print the display list.
    clear <entity>       Drop the override record (other processes are notified).

Environment:
    KHURAL_API_BASE_URL        e.g., https://khural.example/api
    KHURAL_API_TOKEN           Bearer token (optional).
    KHURAL_OVERRIDES_BACKEND   "redis" (default) or "memory".
    KHURAL_REDIS_URL           e.g., redis://localhost:6379/0
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import typer

from khural_admin.config.settings import get_settings
from khural_admin.dependencies.bootstrap import build_overrides
from khural_admin.domain.exceptions.base import DomainError
from khural_admin.domain.exceptions.overrides import UnknownEntityTypeError
from khural_admin.domain.services.entity_registry import default_registry
from khural_admin.infrastructure.logging.logger import configure_root_logging, get_json_logger

configure_root_logging(get_settings().log_level)
log = get_json_logger(__name__)

app = typer.Typer(add_completion=False, no_args_is_help=True)


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _fail(exc: DomainError) -> None:
    log.error(
        "cli.failed",
        extra={"extra": {"code": exc.code, "message": str(exc), "details": exc.details}},
    )
    typer.echo(f"{exc.code}: {exc}", err=True)
    raise typer.Exit(code=1)


@app.command("entities")
def entities() -> None:
    """List entity types with their REST resource and storage key."""
    for profile in default_registry().values():
        protected = f" protected={len(profile.protected_ids)}" if profile.protected_ids else ""
        typer.echo(f"{profile.name}\t/{profile.resource}\t{profile.storage_key}{protected}")


@app.command("show")
def show(entity: str = typer.Argument(..., help="Entity type, e.g. committees.")) -> None:  # noqa: B008
    """Print the override record of ENTITY as JSON."""

    async def _run() -> None:
        container = build_overrides()
        try:
            record = await container.store.read(entity)
            _echo_json(record.to_payload())
        finally:
            await container.aclose()

    try:
        asyncio.run(_run())
    except UnknownEntityTypeError as exc:
        _fail(exc)


@app.command("reconcile")
def reconcile(
    entity: str = typer.Argument(..., help="Entity type, e.g. deputies."),  # noqa: B008
    local_only: bool = typer.Option(
        False, "--local-only", help="Print only rows that exist locally."
    ),  # noqa: B008
) -> None:
    """Fetch the base list of ENTITY and print the reconciled display list."""

    async def _run() -> None:
        container = build_overrides()
        try:
            gateway = container.overrides.gateway(entity)
            async with container.overrides.reconciled_list(entity) as view:
                await view.reload(gateway)
                rows = view.rows()
            if local_only:
                rows = [row for row in rows if row.get("isLocal")]
            log.info(
                "reconcile.done",
                extra={"extra": {"entity_type": entity, "rows": len(rows)}},
            )
            _echo_json(rows)
        finally:
            await container.aclose()

    try:
        asyncio.run(_run())
    except DomainError as exc:
        _fail(exc)


@app.command("clear")
def clear(
    entity: str = typer.Argument(..., help="Entity type, e.g. news."),  # noqa: B008
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),  # noqa: B008
) -> None:
    """Drop every locally staged change of ENTITY."""
    if not yes:
        typer.confirm(f"Discard all local overrides for {entity!r}?", abort=True)

    async def _run() -> None:
        container = build_overrides()
        try:
            await container.store.clear(entity)
        finally:
            await container.aclose()
        log.info("clear.done", extra={"extra": {"entity_type": entity}})

    try:
        asyncio.run(_run())
    except UnknownEntityTypeError as exc:
        _fail(exc)
    typer.echo(f"cleared {entity}")


if __name__ == "__main__":
    app()
