"""
Async HTTP client wrapper for provider requests.
Includes retry logic, timeout management, and metrics collection.

The client is a pure transport utility: it knows URLs, status codes and
backoff, never provider identity or payload schemas. Callers receive either
the parsed payload or a `FetchError` once retries are exhausted.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import httpx

from shared.config import Settings, get_settings
from shared.models.enums import ErrorKind
from shared.utils.logging import get_logger
from shared.utils.metrics import PROVIDER_LATENCY, PROVIDER_REQUESTS

logger = get_logger(__name__)

NON_RETRYABLE_STATUSES = frozenset({401, 403, 404})
BODY_SNIPPET_CHARS = 200


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters; each delay is ``min(cap, base * attempt)``."""

    max_attempts: int = 2
    base_delay_s: float = 2.0
    max_delay_s: float = 8.0
    transport_base_delay_s: float = 0.5
    transport_max_delay_s: float = 3.0
    rate_limit_base_delay_s: float = 0.5
    rate_limit_max_delay_s: float = 5.0

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryPolicy:
        return cls(
            max_attempts=settings.provider_max_attempts,
            base_delay_s=settings.retry_base_delay_s,
            max_delay_s=settings.retry_max_delay_s,
            transport_base_delay_s=settings.retry_transport_base_delay_s,
            transport_max_delay_s=settings.retry_transport_max_delay_s,
            rate_limit_base_delay_s=settings.retry_rate_limit_base_delay_s,
            rate_limit_max_delay_s=settings.retry_rate_limit_max_delay_s,
        )

    def delay_for(self, kind: ErrorKind, attempt: int) -> float:
        if kind == ErrorKind.HTTP_RATE_LIMIT:
            return min(self.rate_limit_max_delay_s, self.rate_limit_base_delay_s * attempt)
        if kind == ErrorKind.TRANSPORT:
            return min(self.transport_max_delay_s, self.transport_base_delay_s * attempt)
        return min(self.max_delay_s, self.base_delay_s * attempt)


class FetchError(Exception):
    """Raised when a fetch exhausts its attempts. ``status_code`` is 0 for transport failures."""

    def __init__(self, status_code: int, message: str, kind: ErrorKind, url: str = "") -> None:
        super().__init__(f"{kind.value} ({status_code}): {message}")
        self.status_code = status_code
        self.message = message
        self.kind = kind
        self.url = url


def classify_status(status_code: int) -> ErrorKind:
    if status_code in NON_RETRYABLE_STATUSES:
        return ErrorKind.HTTP_CLIENT_ERROR
    if status_code == 429:
        return ErrorKind.HTTP_RATE_LIMIT
    if 500 <= status_code <= 599:
        return ErrorKind.HTTP_SERVER_ERROR
    return ErrorKind.HTTP_ERROR


class ProviderHTTPClient:
    """
    Async HTTP client shared by every provider connector.
    Handles timeouts, retries, and records metrics per attempt labelled by host.
    """

    def __init__(
        self,
        timeout_s: float | None = None,
        retry_policy: RetryPolicy | None = None,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        settings = get_settings()
        self._timeout = timeout_s or settings.provider_request_timeout_s
        self._policy = retry_policy or RetryPolicy.from_settings(settings)
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._policy

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout, connect=5.0),
                follow_redirects=True,
                limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
                headers={"Accept": "application/json"},
            )
            self._owns_client = True

    async def close(self) -> None:
        """Close the underlying httpx client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def fetch(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        retries: int | None = None,
    ) -> Any:
        """
        Perform a GET request with retry, metrics, and structured logging.

        Args:
            url: Absolute request URL.
            params: Query parameters.
            headers: Request-specific headers (auth keys).
            retries: Total attempts; defaults to the retry policy.

        Returns:
            Parsed JSON, or the raw response text when the body is not JSON.

        Raises:
            FetchError: Non-retryable status, or all attempts exhausted.
        """
        if self._client is None:
            await self.start()
        assert self._client is not None

        attempts = max(1, retries if retries is not None else self._policy.max_attempts)
        host = httpx.URL(url).host or "unknown"
        last_error: Optional[FetchError] = None

        for attempt in range(1, attempts + 1):
            start_time = time.perf_counter()
            status = "unknown"
            try:
                resp = await self._client.get(
                    url, params=params, headers=headers, timeout=self._timeout
                )
                status = str(resp.status_code)

                if resp.is_success:
                    elapsed_ms = (time.perf_counter() - start_time) * 1000
                    logger.debug(
                        "provider_request_success",
                        host=host,
                        status=resp.status_code,
                        latency_ms=round(elapsed_ms, 2),
                    )
                    return self._parse_body(resp)

                kind = classify_status(resp.status_code)
                snippet = resp.text[:BODY_SNIPPET_CHARS]
                last_error = FetchError(resp.status_code, snippet or resp.reason_phrase, kind, url)
                logger.warning(
                    "provider_http_error",
                    host=host,
                    status=resp.status_code,
                    kind=kind.value,
                    attempt=attempt,
                )
                # Don't retry auth / not-found
                if kind == ErrorKind.HTTP_CLIENT_ERROR:
                    raise last_error

            except httpx.TransportError as exc:
                status = "timeout" if isinstance(exc, httpx.TimeoutException) else "transport_error"
                last_error = FetchError(0, str(exc) or type(exc).__name__, ErrorKind.TRANSPORT, url)
                logger.warning(
                    "provider_transport_error",
                    host=host,
                    error=last_error.message,
                    attempt=attempt,
                )

            finally:
                PROVIDER_REQUESTS.labels(host=host, status=status).inc()
                PROVIDER_LATENCY.labels(host=host).observe(time.perf_counter() - start_time)

            if attempt < attempts:
                await self._sleep(self._policy.delay_for(last_error.kind, attempt))

        assert last_error is not None
        logger.error(
            "provider_request_exhausted",
            host=host,
            status=last_error.status_code,
            kind=last_error.kind.value,
            attempts=attempts,
        )
        raise last_error

    @staticmethod
    def _parse_body(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError:
            # Degraded success: hand the text back and let normalization cope
            return resp.text
