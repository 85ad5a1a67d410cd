"""
Transport client for Solar Irradiance

Thin wrapper over httpx used by every provider adapter. Each attempt is
individually time-boxed; failures are mapped onto the package error types
and retried through resilience.with_retry. No caching happens here.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import httpx

from solar_irradiance.errors import (
    PayloadFormatError,
    UpstreamConnectionError,
    UpstreamHttpError,
    UpstreamTimeoutError,
)
from solar_irradiance.resilience import RetryConfig, with_retry

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 15_000
DEFAULT_RETRIES = 1


class HttpClient:
    """
    Async HTTP client returning parsed JSON or raw text.

    A custom httpx transport can be injected (httpx.MockTransport in tests),
    so no adapter needs real network access to be exercised.
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_config: Optional[RetryConfig] = None,
        default_retries: int = DEFAULT_RETRIES,
    ):
        self.transport = transport
        self.retry_config = retry_config or RetryConfig()
        self.default_retries = default_retries
        self.request_count = 0
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "HttpClient":
        """Open one pooled connection set shared by every request until exit."""
        if self._client is None:
            self._client = httpx.AsyncClient(transport=self.transport)
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_json(
        self,
        url: str,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        retries: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        GET a URL and decode its JSON body.

        Raises:
            UpstreamHttpError: non-2xx after the retry policy ran
            UpstreamTimeoutError: every attempt timed out
            PayloadFormatError: body is not JSON (not retried)
        """
        text = await self.fetch_text(url, timeout_ms=timeout_ms, retries=retries, headers=headers)
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise PayloadFormatError(f"Response from {url} is not valid JSON: {e}") from e

    async def fetch_text(
        self,
        url: str,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        retries: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> str:
        """GET a URL and return the raw response body."""
        retries = self.default_retries if retries is None else retries
        config = RetryConfig(
            max_retries=retries,
            backoff_step_seconds=self.retry_config.backoff_step_seconds,
            non_retryable_status_codes=self.retry_config.non_retryable_status_codes,
            retryable_status_codes=self.retry_config.retryable_status_codes,
        )

        @with_retry(config=config, provider_name="fetch")
        async def _attempt() -> str:
            return await self._get_once(url, timeout_ms, headers)

        return await _attempt()

    async def _get_once(self, url: str, timeout_ms: int, headers: Optional[Dict[str, str]]) -> str:
        self.request_count += 1
        logger.debug(f"[HttpClient] GET {url} (timeout={timeout_ms}ms)")

        # httpx bounds each phase; wait_for bounds the attempt as a whole
        timeout = httpx.Timeout(timeout_ms / 1000.0)
        try:
            if self._client is not None:
                resp = await asyncio.wait_for(
                    self._client.get(url, headers=headers, timeout=timeout),
                    timeout_ms / 1000.0,
                )
            else:
                async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
                    resp = await asyncio.wait_for(client.get(url, headers=headers), timeout_ms / 1000.0)
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise UpstreamTimeoutError(f"Timeout after {timeout_ms}ms: {url}", url=url) from e
        except httpx.RequestError as e:
            raise UpstreamConnectionError(f"Request error: {e}", url=url) from e

        logger.debug(f"[HttpClient] Response status: {resp.status_code}")
        if not resp.is_success:
            raise UpstreamHttpError(
                resp.status_code,
                body=resp.text,
                url=url,
                reason=resp.reason_phrase,
            )
        return resp.text
