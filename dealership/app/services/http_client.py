from __future__ import annotations

import asyncio
import random
from typing import Any, Dict, Optional, Protocol, Type

import httpx

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class UpstreamError(Exception):
    """Base exception for failed calls to an external HTTP service."""


class AsyncTransport(Protocol):
    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: float,
    ) -> httpx.Response: ...

    async def close(self) -> None: ...


class HttpxTransport:
    """httpx-based transport with connection pooling."""

    def __init__(self, base_url: str):
        self._client = httpx.AsyncClient(base_url=base_url, timeout=None)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: float,
    ) -> httpx.Response:
        return await self._client.request(method, path, params=params, json=json, headers=headers, timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()


class JSONServiceClient:
    """JSON-over-HTTP client that retries transport errors and retryable statuses.

    Subclasses set ``error_class`` and call ``_request``. Non-retryable error
    statuses are returned to the caller as a ``(status, body)`` pair when
    ``accept_error_status`` is set, so endpoints that put an ``error`` object in
    the body can be inspected instead of raised.
    """

    error_class: Type[UpstreamError] = UpstreamError
    service_name = "upstream"

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 15.0,
        max_attempts: int = 2,
        backoff_base: float = 0.5,
        transport: Optional[AsyncTransport] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.backoff_base = backoff_base
        self._transport = transport or HttpxTransport(self.base_url)
        self._owns_transport = transport is None
        self._headers = dict(headers or {})

    async def aclose(self) -> None:
        if self._owns_transport:
            await self._transport.close()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        accept_error_status: bool = False,
    ) -> tuple[int, Any]:
        attempts = 0
        last_error: Optional[Exception] = None
        while attempts < self.max_attempts:
            try:
                response = await self._transport.request(
                    method, path, params=params, json=json, headers=self._headers, timeout=self.timeout
                )
            except httpx.RequestError as exc:
                last_error = exc
                await self._maybe_wait(attempts)
                attempts += 1
                continue

            if response.status_code in RETRYABLE_STATUS and attempts < self.max_attempts - 1:
                last_error = self.error_class(f"{self.service_name} returned {response.status_code} for {path}")
                await self._maybe_wait(attempts)
                attempts += 1
                continue

            try:
                body = response.json()
            except ValueError as exc:
                if response.is_success:
                    raise self.error_class(f"Invalid JSON from {self.service_name}") from exc
                body = {"error": response.text or f"HTTP {response.status_code}"}

            if response.is_error and not accept_error_status:
                detail = body.get("error") if isinstance(body, dict) else None
                raise self.error_class(
                    f"{self.service_name} returned {response.status_code} for {path}: {detail or body}"
                )
            return response.status_code, body

        if isinstance(last_error, UpstreamError):
            raise last_error
        if last_error:
            raise self.error_class(str(last_error)) from last_error
        raise self.error_class(f"{self.service_name} request failed")

    async def _maybe_wait(self, attempt: int) -> None:
        if attempt >= self.max_attempts - 1:
            return
        delay = self.backoff_base * (2 ** attempt)
        jitter = random.uniform(0, 0.3)
        await asyncio.sleep(delay + jitter)
