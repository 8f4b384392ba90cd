"""
HTTP transport for the GitLab v4 REST API.

One ``HTTPTransport`` wraps one ``httpx.Client`` authenticated with a
single token (the admin token or a user's impersonation token). It
retries throttled, failing and unreachable calls, walks paginated lists,
and turns error responses into the package exceptions.
"""

import random
import time
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

import httpx

from sourcemanager.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ServerError,
    SourceManagerError,
    TransportError,
    ValidationError,
)
from sourcemanager.logging import log_http_request, log_http_response

PRIVATE_TOKEN_HEADER = "PRIVATE-TOKEN"
NEXT_PAGE_HEADER = "X-Next-Page"

# GitLab's wording when a group or project path is already used
_NAME_TAKEN_MARKER = "has already been taken"

_STATUS_ERRORS: dict[int, tuple[type[SourceManagerError], str]] = {
    401: (AuthenticationError, "UNAUTHENTICATED"),
    403: (PermissionDeniedError, "FORBIDDEN"),
    404: (NotFoundError, "NOT_FOUND"),
    409: (ConflictError, "CONFLICT"),
}


@dataclass
class RetryConfig:
    """When and how long to wait before sending a request again."""

    max_retries: int = 3
    backoff_factor: float = 2.0
    retry_on: list[int] = field(default_factory=lambda: [429, 500, 502, 503, 504])
    respect_retry_after: bool = True
    max_backoff: float = 60.0  # seconds
    jitter: float = 0.1  # fraction of the wait, both ways


class HTTPTransport:
    """
    Token-authenticated JSON calls against the provider API.

    Example:
        ```python
        with HTTPTransport("https://gitlab.example.com/api/v4", token) as http:
            group = http.request("GET", "/groups/kathra-projects%2FDT")
            projects = http.get_all(f"/groups/{group['id']}/projects")
        ```
    """

    DEFAULT_PER_PAGE = 100

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 30.0,
        retry_config: RetryConfig | None = None,
        http_transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url: API root, e.g. "https://gitlab.example.com/api/v4"
            token: Admin API token or impersonation token
            timeout: Per-request timeout in seconds
            retry_config: Retry behaviour (default: ``RetryConfig()``)
            http_transport: httpx transport override, e.g. ``httpx.MockTransport``
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_config = retry_config or RetryConfig()

        self._client = httpx.Client(
            base_url=self.base_url,
            headers={PRIVATE_TOKEN_HEADER: token, "Accept": "application/json"},
            timeout=timeout,
            transport=http_transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HTTPTransport":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        """
        Send one call and return its decoded JSON body (None when empty).

        Raises:
            SourceManagerError: Subclass matching the error status
            TransportError: If the provider stays unreachable
        """
        response = self._send(method, path, params, body)
        return response.json() if response.content else None

    def iter_pages(self, path: str, params: dict[str, Any] | None = None) -> Iterator[Any]:
        """Yield the items of a list endpoint, page after page, until X-Next-Page is empty."""
        query = {"per_page": self.DEFAULT_PER_PAGE, **(params or {})}
        page = "1"
        while page:
            response = self._send("GET", path, {**query, "page": page})
            yield from (response.json() if response.content else None) or []
            page = response.headers.get(NEXT_PAGE_HEADER, "")

    def get_all(self, path: str, params: dict[str, Any] | None = None) -> list[Any]:
        return list(self.iter_pages(path, params))

    def _send(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        attempt = 0
        while True:
            log_http_request(method, url, params, body)
            started = time.monotonic()
            try:
                response = self._client.request(method, path, params=params, json=body)
            except httpx.RequestError as e:
                if attempt >= self.retry_config.max_retries:
                    raise TransportError("CONNECTION_ERROR", f"{method} {path}: {e}") from e
                delay = self._get_backoff_time(attempt, None)
            else:
                log_http_response(response.status_code, url, (time.monotonic() - started) * 1000)
                if response.is_success or response.is_redirect:
                    return response
                if not self._should_retry(response.status_code, attempt):
                    raise _error_from_response(response)
                delay = self._get_backoff_time(attempt, response.headers.get("Retry-After"))

            time.sleep(delay)
            attempt += 1

    def _should_retry(self, status_code: int, attempt: int) -> bool:
        """True while attempts remain and ``status_code`` is retryable."""
        return attempt < self.retry_config.max_retries and status_code in self.retry_config.retry_on

    def _get_backoff_time(self, attempt: int, retry_after: str | None) -> float:
        """
        Seconds to wait after the 0-indexed ``attempt``.

        A numeric Retry-After wins when honoured; otherwise
        ``backoff_factor ** attempt`` with jitter, capped at ``max_backoff``.
        """
        config = self.retry_config
        if retry_after and config.respect_retry_after:
            try:
                return float(retry_after)
            except ValueError:
                pass

        delay = config.backoff_factor ** attempt
        delay *= 1 + random.uniform(-config.jitter, config.jitter)
        return min(delay, config.max_backoff)


def _error_from_response(response: httpx.Response) -> SourceManagerError:
    """
    Map an error response to an exception.

    GitLab reports errors as {"message": ...} or {"error": ...}, where
    "message" is a string, a list, or a field -> errors mapping.
    """
    try:
        data = response.json()
    except ValueError:
        data = None
    if not isinstance(data, dict):
        data = {}

    status = response.status_code
    message = _flatten_message(data.get("message", data.get("error"))) or f"HTTP {status}"

    if status in _STATUS_ERRORS:
        error_class, code = _STATUS_ERRORS[status]
        return error_class(code, message, status)
    if status >= 500:
        return ServerError("SERVER_ERROR", message, status)
    if status == 400 and _NAME_TAKEN_MARKER in message:
        return ConflictError("NAME_TAKEN", message, status)
    return ValidationError("BAD_REQUEST", message, status)


def _flatten_message(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw
    if isinstance(raw, list):
        return ", ".join(_flatten_message(item) for item in raw)
    if isinstance(raw, dict):
        return "; ".join(f"{key} {_flatten_message(value)}" for key, value in raw.items())
    return str(raw)
