"""
Async HTTP client wrapper for provider requests.
Single attempt per call with a bounded timeout; records metrics per request.
Retries belong to the caller (scheduler), never to this client.
"""
from __future__ import annotations

import time
from typing import Any, Optional

import httpx

from shared.config import get_settings
from shared.errors import UpstreamError
from shared.utils.logging import get_logger
from shared.utils.metrics import PROVIDER_LATENCY, PROVIDER_REQUESTS

logger = get_logger(__name__)


class ProviderHTTPClient:
    """
    Async JSON client for a read-only statistics provider.

    Every failure mode (timeout, transport error, non-2xx status, body that
    is not JSON) is raised as ``UpstreamError`` so that callers can apply a
    single stale-serve policy.
    """

    def __init__(
        self,
        provider_name: str,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._provider = provider_name
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_s or settings.provider_request_timeout_s
        self._default_headers = {"Accept": "application/json", **(headers or {})}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._default_headers,
            timeout=httpx.Timeout(self._timeout, connect=min(self._timeout, 5.0)),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_json(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        endpoint: str = "unknown",
    ) -> Any:
        """
        Perform one GET and decode the JSON body.

        Args:
            path: API path relative to base_url.
            params: Query parameters.
            endpoint: Endpoint label for metrics.

        Raises:
            UpstreamError: On timeout, transport failure, non-2xx or decode failure.
        """
        if not self._client:
            raise RuntimeError("ProviderHTTPClient not started. Call start() first.")

        start_time = time.perf_counter()
        status = "error"
        try:
            try:
                resp = await self._client.get(path, params=params)
            except httpx.TimeoutException as exc:
                status = "timeout"
                logger.warning("provider_timeout", provider=self._provider, path=path)
                raise UpstreamError(None, f"timeout after {self._timeout}s: {exc}") from exc
            except httpx.HTTPError as exc:
                logger.warning(
                    "provider_transport_error",
                    provider=self._provider,
                    path=path,
                    error=str(exc),
                )
                raise UpstreamError(None, f"transport error: {exc}") from exc

            status = str(resp.status_code)
            if not resp.is_success:
                logger.warning(
                    "provider_http_error",
                    provider=self._provider,
                    path=path,
                    status=resp.status_code,
                )
                raise UpstreamError(resp.status_code, resp.reason_phrase or "non-success status")

            try:
                payload = resp.json()
            except ValueError as exc:
                status = "decode_error"
                logger.warning("provider_decode_error", provider=self._provider, path=path)
                raise UpstreamError(resp.status_code, f"invalid JSON body: {exc}") from exc

            logger.debug(
                "provider_request_success",
                provider=self._provider,
                path=path,
                status=resp.status_code,
                latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            return payload
        finally:
            PROVIDER_LATENCY.labels(provider=self._provider).observe(
                time.perf_counter() - start_time
            )
            PROVIDER_REQUESTS.labels(
                provider=self._provider, endpoint=endpoint, status=status
            ).inc()
