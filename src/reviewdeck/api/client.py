"""Async HTTP client for the code-review dashboard API."""

import asyncio
import logging
import re
from typing import Any
from urllib.parse import quote

import httpx

from ..config import get_settings
from ..exceptions import ApiError, ConfigError, NotFoundError, TokenExpiredError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})

TOKEN_EXPIRED_CODES = frozenset(
    {"TOKEN_EXPIRED", "VCS_TOKEN_EXPIRED", "REAUTHORIZATION_REQUIRED", "INVALID_GRANT"}
)

TOKEN_EXPIRED_PATTERN = re.compile(
    r"(token|credential)s?\b.{0,40}\b(expired|revoked)"
    r"|\bexpired\b.{0,20}\btoken"
    r"|re-?authori[sz]"
    r"|invalid_grant",
    re.IGNORECASE,
)


def is_token_expired(message: str | None, code: str | None = None) -> bool:
    """Tell an upstream auth-expiry failure apart from any other error."""
    if code and code.upper() in TOKEN_EXPIRED_CODES:
        return True
    return bool(message and TOKEN_EXPIRED_PATTERN.search(message))


def path_segment(value: str | int) -> str:
    """Encode a value for use as a single URL path segment."""
    return quote(str(value), safe="")


class ApiClient:
    """Client for the dashboard REST API.

    Idempotent GET requests are retried with exponential backoff on
    transport errors, 429 and 5xx responses. POST, PUT and DELETE are sent
    exactly once.

    Example:
        async with ApiClient(base_url="https://review.example.com/api", token="...") as api:
            connections = await api.get("/acme/vcs/github/list")
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        *,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_base_delay: float | None = None,
        retry_max_delay: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the API client.

        Args:
            base_url: API base URL (from settings if not provided).
            token: Bearer token (from settings if not provided).
            timeout: Request timeout in seconds.
            max_retries: Retries for GET requests.
            retry_base_delay: First backoff delay in seconds.
            retry_max_delay: Backoff ceiling in seconds.
            transport: Optional httpx transport (used by tests).

        Raises:
            ConfigError: The base URL has no http(s) scheme.
        """
        settings = get_settings().api
        self.base_url = (base_url or settings.base_url).rstrip("/")
        if not self.base_url.startswith(("http://", "https://")):
            raise ConfigError(
                f"API base URL must start with http:// or https://: {self.base_url}"
            )
        self.token = token if token is not None else settings.token
        self.timeout = timeout if timeout is not None else settings.timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.max_retries
        self.retry_base_delay = (
            retry_base_delay if retry_base_delay is not None else settings.retry_base_delay
        )
        self.retry_max_delay = (
            retry_max_delay if retry_max_delay is not None else settings.retry_max_delay
        )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json", "Accept": "application/json"}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self._request("GET", path, params=params, retries=self.max_retries)

    async def post(self, path: str, json: Any | None = None) -> Any:
        return await self._request("POST", path, json=json)

    async def put(self, path: str, json: Any | None = None) -> Any:
        return await self._request("PUT", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self._request("DELETE", path)

    def _backoff(self, attempt: int) -> float:
        return float(min(self.retry_base_delay * (2**attempt), self.retry_max_delay))

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
        retries: int = 0,
    ) -> Any:
        """Send a request, retrying only when ``retries`` allows it."""
        client = await self._get_client()
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        for attempt in range(retries + 1):
            try:
                response = await client.request(method, path, params=params, json=json)
            except httpx.TimeoutException as e:
                if attempt < retries:
                    logger.warning(
                        f"[ApiClient] {method} {path} timed out "
                        f"(attempt {attempt + 1}/{retries + 1})"
                    )
                    await asyncio.sleep(self._backoff(attempt))
                    continue
                raise ApiError(f"Request timed out: {method} {path}") from e
            except httpx.RequestError as e:
                if attempt < retries:
                    logger.warning(
                        f"[ApiClient] {method} {path} failed (attempt {attempt + 1}): {e}"
                    )
                    await asyncio.sleep(self._backoff(attempt))
                    continue
                raise ApiError(f"Network error occurred: {e}") from e

            if response.status_code in RETRYABLE_STATUS and attempt < retries:
                logger.warning(
                    f"[ApiClient] {method} {path} returned {response.status_code}, "
                    f"retrying ({attempt + 1}/{retries + 1})"
                )
                await asyncio.sleep(self._backoff(attempt))
                continue

            return self._handle_response(method, path, response)

        # Unreachable: the final attempt always returns or raises
        raise ApiError(f"Request failed: {method} {path}")

    def _handle_response(self, method: str, path: str, response: httpx.Response) -> Any:
        if response.is_success:
            if response.status_code == 204 or not response.content:
                return None
            if "application/json" not in response.headers.get("content-type", ""):
                return None
            try:
                return response.json()
            except ValueError as e:
                logger.warning(f"[ApiClient] {method} {path} returned invalid JSON: {e}")
                raise ApiError(
                    "Invalid JSON response",
                    status_code=response.status_code,
                    code="INVALID_RESPONSE",
                ) from e

        message, code = self._parse_error(response)
        logger.debug(f"[ApiClient] {method} {path} -> {response.status_code}: {message}")

        if is_token_expired(message, code):
            raise TokenExpiredError(message, status_code=response.status_code, code=code)
        if response.status_code == 404:
            raise NotFoundError(message, status_code=404, code=code)
        raise ApiError(message, status_code=response.status_code, code=code)

    @staticmethod
    def _parse_error(response: httpx.Response) -> tuple[str, str | None]:
        """Extract (message, code) from an error response."""
        try:
            body = response.json()
        except ValueError:
            text = response.text.strip()
            return (text[:200] or f"Request failed with status {response.status_code}", None)

        if not isinstance(body, dict):
            return (f"Request failed with status {response.status_code}", None)

        message = body.get("message") or body.get("detail") or body.get("error")
        if isinstance(message, dict):
            message = message.get("message")
        code = body.get("code") or body.get("errorCode")
        return (
            str(message) if message else f"Request failed with status {response.status_code}",
            str(code) if code else None,
        )
