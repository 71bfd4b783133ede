"""USAspending API client for award search and per-award detail.

Async client over httpx. Every attempt passes through the shared
RateLimiter before it touches the network; transient failures (transport
errors, 408/429/5xx) are retried with exponential backoff by tenacity.
Non-2xx responses become APIError with the response body captured, and
bodies that are not valid JSON or do not match the expected shape become
ResponseDecodeError.
"""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import quote

import httpx
from loguru import logger
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..config.schemas import ApiConfig
from ..exceptions import (
    APIError,
    RateLimitError,
    ResponseDecodeError,
    is_retryable,
    wrap_exception,
)
from ..models.awards import DetailRecord
from ..models.query import PageRequest, PageResponse
from .rate_limiter import RateLimiter


API_NAME = "usaspending"


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    return isinstance(exc, Exception) and is_retryable(exc)


class USAspendingClient:
    """Async client for the spending-by-award search and award detail endpoints."""

    def __init__(
        self,
        api_config: ApiConfig,
        rate_limiter: RateLimiter,
        *,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the client.

        Args:
            api_config: Endpoint URLs, timeout, client identifier and retry policy
            rate_limiter: Shared throttle acquired before every attempt
            http_client: Optional pre-configured HTTPX client (useful for tests);
                the caller keeps ownership of a client passed in here
        """
        self.api_config = api_config
        self.rate_limiter = rate_limiter
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=api_config.timeout_seconds)
        self.request_count = 0

        logger.debug(
            f"Initialized USAspendingClient: search_url={api_config.search_url}, "
            f"interval={rate_limiter.interval_seconds}s"
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> USAspendingClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": self.api_config.user_agent,
        }

    async def _send_once(
        self, method: str, url: str, body: dict[str, Any] | None, operation: str
    ) -> Any:
        await self.rate_limiter.acquire()
        self.request_count += 1

        try:
            response = await self._client.request(
                method,
                url,
                json=body,
                headers=self._headers(),
                timeout=self.api_config.timeout_seconds,
            )
        except httpx.TimeoutException as e:
            raise APIError(
                f"Request timed out: {e}",
                api_name=API_NAME,
                endpoint=url,
                operation=operation,
                retryable=True,
                cause=e,
            ) from e
        except httpx.TransportError as e:
            raise wrap_exception(
                e,
                APIError,
                f"Request error: {e}",
                api_name=API_NAME,
                endpoint=url,
                operation=operation,
                retryable=True,
            ) from e

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                "Rate limit exceeded",
                api_name=API_NAME,
                endpoint=url,
                http_status=429,
                operation=operation,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                details={"response_text": response.text[:500]},
            )
        if not response.is_success:
            raise APIError(
                f"HTTP {response.status_code}: {response.text[:200]}",
                api_name=API_NAME,
                endpoint=url,
                http_status=response.status_code,
                operation=operation,
                details={"response_text": response.text[:2000]},
            )

        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ResponseDecodeError(
                f"Malformed JSON response: {e}",
                api_name=API_NAME,
                endpoint=url,
                operation=operation,
                details={"response_text": response.text[:500]},
                cause=e,
            ) from e

    async def _request(
        self,
        method: str,
        url: str,
        body: dict[str, Any] | None = None,
        *,
        operation: str,
    ) -> Any:
        """Send one logical request, retrying transient failures."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.api_config.retry_attempts),
            wait=wait_exponential(
                multiplier=self.api_config.retry_backoff_seconds,
                min=self.api_config.retry_backoff_seconds,
                max=self.api_config.retry_max_backoff_seconds,
            ),
            retry=retry_if_exception(_is_transient),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.debug(
                        f"Retrying {operation} (attempt {attempt.retry_state.attempt_number}): {url}"
                    )
                return await self._send_once(method, url, body, operation)
        raise AssertionError("unreachable")  # pragma: no cover

    async def search_awards(self, request: PageRequest) -> PageResponse:
        """POST one page request to the search endpoint."""
        url = self.api_config.search_url
        payload = await self._request("POST", url, request.to_payload(), operation="search_awards")
        if not isinstance(payload, dict):
            raise ResponseDecodeError(
                "Search response is not a JSON object",
                api_name=API_NAME,
                endpoint=url,
                operation="search_awards",
            )
        try:
            return PageResponse.model_validate(payload)
        except ValidationError as e:
            raise ResponseDecodeError(
                f"Unexpected search response shape: {e.error_count()} validation errors",
                api_name=API_NAME,
                endpoint=url,
                operation="search_awards",
                details={"page": request.page, "errors": e.errors(include_url=False)[:5]},
                cause=e,
            ) from e

    def detail_url(self, generated_internal_id: str) -> str:
        base = self.api_config.detail_url.rstrip("/")
        return f"{base}/{quote(generated_internal_id, safe='')}/"

    async def get_award_detail(self, generated_internal_id: str) -> DetailRecord:
        """GET the detail representation of one award."""
        url = self.detail_url(generated_internal_id)
        payload = await self._request("GET", url, operation="get_award_detail")
        if not isinstance(payload, dict):
            raise ResponseDecodeError(
                "Detail response is not a JSON object",
                api_name=API_NAME,
                endpoint=url,
                operation="get_award_detail",
            )
        try:
            return DetailRecord.model_validate(payload)
        except ValidationError as e:
            raise ResponseDecodeError(
                f"Unexpected detail response shape: {e.error_count()} validation errors",
                api_name=API_NAME,
                endpoint=url,
                operation="get_award_detail",
                cause=e,
            ) from e
