#!/usr/bin/env python3
"""
Charging-Network HTTP Transport

One authenticated request to the Ampeco REST API per call, classified into
success, transient failure or permanent failure. No retries here, retrying is
the resilient client's job.

Classification:
    2xx with JSON body         -> payload
    timeout / network error    -> UpstreamTransientError
    429                        -> UpstreamTransientError (+ retry_after)
    5xx                        -> UpstreamTransientError
    other 4xx, malformed body  -> UpstreamPermanentError

Author: System Architect
Date: 2026-01-12
"""

import asyncio
import time
from datetime import timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx
import orjson

from evassist.core.config.constants import Stage
from evassist.core.exceptions import (
    UpstreamPermanentError,
    UpstreamTransientError,
)
from evassist.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


def parse_retry_after(value: str | None, now: float | None = None) -> float | None:
    """
    Parse a Retry-After header: delta-seconds or an HTTP date.

    Returns seconds to wait (never negative) or None when absent/unparseable.
    """
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    current = now if now is not None else time.time()
    return max(0.0, when.timestamp() - current)


class AmpecoTransport:
    """
    Thin async client for the charging-network API.

    Args:
        base_url: Tenant URL, e.g. https://tenant.ampeco.tech
        api_key: Bearer credential
        timeout: Absolute timeout per request attempt (seconds)
        client: Pre-built httpx.AsyncClient (tests pass one with a MockTransport)
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None,
        timeout: float = 8.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._api_key = api_key
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            if not self.base_url:
                raise UpstreamPermanentError(
                    "Charging network API is not configured", details={"setting": "AMPECO_BASE_URL"}
                )
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        """
        Issue one request and return the decoded JSON payload.

        The whole attempt (connect, send, read) is bounded by self.timeout;
        hitting it raises UpstreamTransientError.
        """
        client = self._get_client()
        url = f"{self.base_url}{path}" if self.base_url else path
        try:
            response = await asyncio.wait_for(
                client.request(
                    method,
                    url,
                    params=params or None,
                    content=orjson.dumps(json_body) if json_body is not None else None,
                    headers=self._headers(),
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise UpstreamTransientError.from_exception(
                e, message=f"Upstream timeout after {self.timeout}s", path=path
            ) from e
        except httpx.TransportError as e:
            raise UpstreamTransientError.from_exception(
                e, message="Upstream connection error", path=path
            ) from e

        return self._decode(response, path)

    def _decode(self, response: httpx.Response, path: str) -> Any:
        status = response.status_code
        if status == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            raise UpstreamTransientError(
                "Upstream rate limited the request",
                details={"status_code": status, "path": path, "retry_after": retry_after},
            )
        if status >= 500:
            raise UpstreamTransientError(
                f"Upstream server error {status}",
                details={"status_code": status, "path": path},
            )
        if status >= 400:
            log_stage(
                logger,
                Stage.UPSTREAM_CALL,
                "Upstream rejected request",
                level="warning",
                path=path,
                status_code=status,
            )
            raise UpstreamPermanentError(
                f"Upstream rejected request with {status}",
                details={"status_code": status, "path": path, "body": response.text[:200]},
            )

        if status == 204 or not response.content:
            return {}
        try:
            return orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            raise UpstreamPermanentError.from_exception(
                e, message="Upstream returned malformed JSON", path=path, status_code=status
            ) from e

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
