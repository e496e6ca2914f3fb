"""Shared request plumbing for the HTTP-based adapters.

Wraps every outbound call in tenacity retry with exponential backoff
(1-10s, same shape as the notetaker and CRM clients) and converts httpx
failures into AdapterError so callers deal with a single exception type.
Only transient failures are retried: transport errors (including
timeouts) and 408/429/5xx responses.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from src.orchestrator.core.monitoring import adapter_errors_total
from src.orchestrator.errors import AdapterError

logger = structlog.get_logger(__name__)

TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


def is_transient(exc: BaseException) -> bool:
    """Return True for failures worth retrying immediately."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in TRANSIENT_STATUS_CODES
    return isinstance(exc, httpx.TransportError)


class HttpAdapter:
    """Base for adapters that talk to a JSON-over-HTTP API.

    Args:
        client: Open httpx.AsyncClient owned by ServiceClients.
        max_attempts: Total attempts per call, including the first.
    """

    service_name = "http"

    def __init__(self, client: httpx.AsyncClient, max_attempts: int = 3) -> None:
        self._client = client
        self._max_attempts = max(1, max_attempts)

    async def _request(
        self,
        operation: str,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request with retry, raising AdapterError on final failure."""

        def _log_retry(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome else None
            logger.warning(
                "adapter.retrying",
                service=self.service_name,
                operation=operation,
                attempt=state.attempt_number,
                error=str(exc),
            )

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._max_attempts),
                wait=wait_exponential(multiplier=1, min=1, max=10),
                retry=retry_if_exception(is_transient),
                before_sleep=_log_retry,
                reraise=True,
            ):
                with attempt:
                    response = await self._client.request(method, url, **kwargs)
                    response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            raise self._fail(
                operation,
                f"HTTP {status_code}: {exc.response.text[:200]}",
                retryable=status_code in TRANSIENT_STATUS_CODES,
            ) from exc
        except httpx.HTTPError as exc:
            raise self._fail(operation, f"{type(exc).__name__}: {exc}") from exc

        return response

    def _json(self, operation: str, response: httpx.Response) -> dict[str, Any]:
        """Decode a JSON object body, raising AdapterError if it is not one."""
        try:
            data = response.json()
        except ValueError as exc:
            raise self._fail(operation, "response body is not JSON", retryable=False) from exc
        if not isinstance(data, dict):
            raise self._fail(operation, "response body is not a JSON object", retryable=False)
        return data

    def _fail(self, operation: str, detail: str, retryable: bool = True) -> AdapterError:
        adapter_errors_total.labels(service=self.service_name, operation=operation).inc()
        logger.error(
            "adapter.call_failed",
            service=self.service_name,
            operation=operation,
            detail=detail,
            retryable=retryable,
        )
        return AdapterError(self.service_name, operation, detail, retryable=retryable)
