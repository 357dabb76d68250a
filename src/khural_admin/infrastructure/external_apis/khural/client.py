# src/khural_admin/infrastructure/external_apis/khural/client.py
# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Khural REST API transport client (async, httpx).

This transport provides:

* Async HTTP (httpx) with per-request timeout and bearer auth.
* Jittered exponential retries for transient failures, on idempotent calls
  only (``GET``/``PATCH``/``DELETE``); ``POST`` is attempted once so a slow
  create is never duplicated.
* Deterministic mapping of failures to domain errors:

  ==========================  =========================
  transport error / timeout   RemoteUnavailable
  429, 5xx                    RemoteUnavailable
  404                         RemoteNotFound
  401, 403                    RemoteForbidden
  other 4xx                   RemoteValidationError
  ==========================  =========================

* ``{"data": ...}`` envelopes are unwrapped; list endpoints may also use
  ``{"items": [...]}``.
* ``X-Request-ID`` carries the current write operation id.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from contextlib import suppress
from typing import Any, Final

import httpx

from khural_admin.config.settings import Settings
from khural_admin.domain.exceptions.remote import (
    RemoteForbidden,
    RemoteNotFound,
    RemoteUnavailable,
    RemoteValidationError,
    RemoteWriteError,
)
from khural_admin.infrastructure.logging.logger import get_operation_id
from khural_admin.infrastructure.observability.metrics import get_api_request_duration_seconds
from khural_admin.infrastructure.resilience.retry import NO_RETRY, RetryPolicy, retry_async

__all__ = ["KhuralApiClient"]

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT: Final[float] = 10.0

_DEFAULT_HEADERS: Final[dict[str, str]] = {
    "Accept": "application/json",
    "User-Agent": "khural-admin/0.1",
}


def _unwrap(payload: Any) -> Any:
    """Return ``payload["data"]`` when the body is a data envelope."""
    if isinstance(payload, Mapping) and "data" in payload:
        return payload["data"]
    return payload


def _error_details(response: httpx.Response) -> dict[str, Any]:
    details: dict[str, Any] = {
        "status": response.status_code,
        "method": response.request.method,
        "url": str(response.request.url),
    }
    with suppress(Exception):
        body = response.json()
        if isinstance(body, Mapping):
            message = body.get("message") or body.get("error")
            if message:
                details["message"] = message
            if isinstance(body.get("errors"), list):
                details["errors"] = body["errors"]
    return details


def _raise_for_status(response: httpx.Response) -> None:
    """Raise the domain error matching a non-2xx response."""
    status = response.status_code
    if status < 400:
        return
    details = _error_details(response)
    if status == 404:
        raise RemoteNotFound("not found", details=details)
    if status in (401, 403):
        raise RemoteForbidden("forbidden", details=details)
    if status == 429 or status >= 500:
        raise RemoteUnavailable(f"upstream status {status}", details=details)
    raise RemoteValidationError(str(details.get("message") or f"rejected ({status})"), details=details)


class KhuralApiClient:
    """Thin, resilient transport for the Khural REST collections."""

    def __init__(
        self,
        *,
        base_url: str,
        token: str | None = None,
        timeout_s: float | None = None,
        retry_policy: RetryPolicy | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport client.

        Args:
            base_url: API root, e.g. ``https://khural.example/api``.
            token: Bearer token; omitted header when ``None``.
            timeout_s: Per-request timeout in seconds (default ``10.0``).
            retry_policy: Retry configuration for transient failures.
            http: Optional shared ``httpx.AsyncClient``; owned if omitted.
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = float(timeout_s) if timeout_s is not None else _DEFAULT_TIMEOUT
        self._retry = retry_policy or RetryPolicy(total=2)
        self._owns_client = http is None
        self._client = http or httpx.AsyncClient(timeout=self._timeout)
        for key, value in _DEFAULT_HEADERS.items():
            self._client.headers[key] = value
        if token:
            self._client.headers["Authorization"] = f"Bearer {token}"

    @classmethod
    def from_settings(
        cls, settings: Settings, *, http: httpx.AsyncClient | None = None
    ) -> KhuralApiClient:
        """Build a client from application settings."""
        token = settings.api_token.get_secret_value() if settings.api_token else None
        return cls(
            base_url=settings.api_base_url,
            token=token,
            timeout_s=settings.api_timeout_s,
            retry_policy=RetryPolicy(total=settings.api_max_retries),
            http=http,
        )

    @property
    def base_url(self) -> str:
        """Normalized API root."""
        return self._base_url

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance owns it."""
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    # ---------------------------- Public API ----------------------------- #

    async def list(
        self, resource: str, *, params: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """``GET /{resource}``: return the collection rows.

        Raises:
            RemoteValidationError: If the body holds no list of objects.
        """
        payload = await self._request("GET", resource, resource=resource, params=params)
        if isinstance(payload, Mapping) and isinstance(payload.get("items"), list):
            payload = payload["items"]
        if not isinstance(payload, list):
            raise RemoteValidationError("bad_shape", details={"expected": "list"})
        return [dict(row) for row in payload if isinstance(row, Mapping)]

    async def create(self, resource: str, body: Mapping[str, Any]) -> dict[str, Any]:
        """``POST /{resource}``: return the created entity.

        Any 2xx is an accepted create. A response without a JSON entity body
        (``201``/``204`` with no content, or a non-JSON body) yields ``{}``.
        """
        payload = await self._request(
            "POST",
            resource,
            resource=resource,
            json=dict(body),
            retry=False,
            body_optional=True,
        )
        return dict(payload) if isinstance(payload, Mapping) else {}

    async def update(
        self, resource: str, entity_id: str, patch: Mapping[str, Any]
    ) -> dict[str, Any]:
        """``PATCH /{resource}/{id}``: return the updated entity (``{}`` on 204)."""
        payload = await self._request(
            "PATCH", f"{resource}/{entity_id}", resource=resource, json=dict(patch)
        )
        return dict(payload) if isinstance(payload, Mapping) else {}

    async def remove(self, resource: str, entity_id: str) -> None:
        """``DELETE /{resource}/{id}``."""
        await self._request("DELETE", f"{resource}/{entity_id}", resource=resource)

    # --------------------------- Internal helpers ------------------------- #

    async def _request(
        self,
        method: str,
        path: str,
        *,
        resource: str,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
        retry: bool = True,
        body_optional: bool = False,
    ) -> Any:
        """Send one logical request (with retries) and return the unwrapped body."""
        url = f"{self._base_url}/{path.lstrip('/')}"
        headers: dict[str, str] = {}
        operation_id = get_operation_id()
        if operation_id:
            headers["X-Request-ID"] = operation_id

        async def _call() -> Any:
            try:
                response = await self._client.request(
                    method,
                    url,
                    json=json,
                    params=params,
                    headers=headers,
                    timeout=self._timeout,
                )
            except httpx.RequestError as exc:
                raise RemoteUnavailable(
                    "transport error", details={"method": method, "url": url, "error": str(exc)}
                ) from exc
            _raise_for_status(response)
            if response.status_code == 204 or not response.content:
                return None
            try:
                return _unwrap(response.json())
            except ValueError as exc:
                if body_optional:
                    return None
                raise RemoteValidationError("non_json", details={"error": str(exc)}) from exc

        def _log_retry(attempt: int, exc: Exception) -> None:
            logger.info(
                "retrying api call",
                extra={"extra": {"method": method, "url": url, "attempt": attempt + 1}},
            )

        start = time.perf_counter()
        outcome = "ok"
        try:
            return await retry_async(
                _call,
                policy=self._retry if retry else NO_RETRY,
                retry_on=lambda exc: isinstance(exc, RemoteUnavailable),
                on_retry=_log_retry,
            )
        except RemoteWriteError as exc:
            outcome = exc.code
            raise
        finally:
            with suppress(Exception):
                get_api_request_duration_seconds().labels(
                    method=method, resource=resource, outcome=outcome
                ).observe(time.perf_counter() - start)
