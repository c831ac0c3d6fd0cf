# ABOUTME: HTTP client abstraction for metadata provider API calls.
# ABOUTME: Wraps httpx with a request timeout, minimum spacing, retry with backoff, and injectable transport.

import logging
import time
from typing import Any, Protocol, runtime_checkable

import httpx

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
_USER_AGENT = "bookmeld/0.1.0"


class MetadataFetchError(Exception):
    """Raised when an HTTP request to a metadata provider fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@runtime_checkable
class HttpClient(Protocol):
    """Protocol for HTTP GET operations against metadata APIs."""

    def get(self, url: str, params: dict[str, str] | None = None) -> dict[str, Any]: ...


class BookmeldHttpClient:
    """HTTP client with request spacing and retry for metadata API calls.

    Retries transient failures (429, 5xx) with exponential backoff. Transport
    errors and timeouts are not retried here: they surface as MetadataFetchError
    so the query coordinator can apply its own retry budget across providers.
    """

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        min_request_interval: float = 0.1,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        max_retry_delay: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        client_kwargs: dict[str, Any] = {
            "headers": {"User-Agent": _USER_AGENT, "Accept": "application/json"},
            "timeout": timeout,
            "follow_redirects": True,
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.Client(**client_kwargs)
        self._min_interval = min_request_interval
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._max_retry_delay = max_retry_delay
        self._last_request_time: float = 0.0

    def get(self, url: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        """Send a GET request with spacing and retry.

        Args:
            url: The URL to request.
            params: Optional query parameters.

        Returns:
            Parsed JSON response body.

        Raises:
            MetadataFetchError: On transport errors, non-retryable HTTP errors,
                undecodable bodies, or exhausted retries.
        """
        attempts = 1 + self._max_retries
        last_status = 0
        for attempt in range(attempts):
            self._space_requests()
            try:
                response = self._client.get(url, params=params)
            except httpx.TimeoutException as exc:
                raise MetadataFetchError(f"Request timed out: {url}") from exc
            except httpx.HTTPError as exc:
                raise MetadataFetchError(f"Request failed: {url}: {exc}") from exc
            last_status = response.status_code

            if response.status_code == 200:
                try:
                    return response.json()
                except ValueError as exc:
                    raise MetadataFetchError(f"Malformed JSON from {url}") from exc

            if response.status_code not in _RETRYABLE_STATUS_CODES:
                raise MetadataFetchError(
                    f"HTTP {response.status_code} from {url}", status_code=response.status_code
                )

            if attempt < attempts - 1:
                delay = min(self._max_retry_delay, self._retry_delay * (2**attempt))
                logger.warning(
                    "HTTP %d from %s, retrying in %.1fs (attempt %d/%d)",
                    response.status_code,
                    url,
                    delay,
                    attempt + 1,
                    self._max_retries,
                )
                time.sleep(delay)

        raise MetadataFetchError(
            f"HTTP {last_status} from {url} after {attempts} attempts", status_code=last_status
        )

    def close(self) -> None:
        self._client.close()

    def _space_requests(self) -> None:
        """Sleep if needed to keep the minimum interval between requests."""
        if self._min_interval <= 0:
            return
        now = time.monotonic()
        elapsed = now - self._last_request_time
        if elapsed < self._min_interval and self._last_request_time > 0:
            time.sleep(self._min_interval - elapsed)
        self._last_request_time = time.monotonic()
