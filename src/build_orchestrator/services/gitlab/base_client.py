"""Base HTTP client for GitLab API operations."""

import time
from typing import Any, Dict, Optional, Union
from urllib.parse import quote

import httpx
import structlog

from ...core.config import settings
from ...core.exceptions import GitLabAPIError
from ...core.logging import log_gitlab_api_call

logger = structlog.get_logger(__name__)


class BaseClient:
    """Base HTTP client for GitLab API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize base client.

        Args:
            base_url: GitLab instance base URL
            api_token: GitLab API token (sent as PRIVATE-TOKEN)
            timeout: Request timeout in seconds
            transport: Optional httpx transport, used by tests
        """
        self.base_url = (base_url or settings.gitlab_base_url).rstrip("/")
        self.api_url = f"{self.base_url}/api/v4"
        self.api_token = api_token or settings.gitlab_api_token
        self.timeout = timeout or settings.gitlab_api_timeout
        self._transport = transport

        self._session: Optional[httpx.AsyncClient] = None

        if not self.api_token:
            raise ValueError("GitLab API token is required")

    async def __aenter__(self):
        """Async context manager entry."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def _ensure_session(self) -> httpx.AsyncClient:
        """Ensure HTTP session is available."""
        if self._session is None or self._session.is_closed:
            headers = {
                "PRIVATE-TOKEN": self.api_token,
                "User-Agent": "gitlab-build-orchestrator/1.0",
            }

            client_kwargs = {
                "base_url": self.api_url,
                "headers": headers,
                "timeout": httpx.Timeout(float(self.timeout)),
                "limits": httpx.Limits(max_keepalive_connections=10, max_connections=20),
            }
            if self._transport is not None:
                client_kwargs["transport"] = self._transport

            self._session = httpx.AsyncClient(**client_kwargs)

        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.is_closed:
            await self._session.aclose()

    @staticmethod
    def _project_path(project_id: Union[int, str]) -> str:
        """Project ids may be numeric or a URL-encoded ``namespace/name`` path."""
        return f"/projects/{quote(str(project_id), safe='')}"

    async def _send(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send a request and return the response if it is 2xx.

        Raises:
            GitLabAPIError: on transport failure or a non-2xx status; the
                response body is kept as the error detail
        """
        session = await self._ensure_session()
        started = time.monotonic()

        try:
            response = await session.request(
                method=method,
                url=endpoint,
                params=params,
                json=json_data,
            )
        except httpx.HTTPError as e:
            logger.warning(
                "GitLab API request failed",
                method=method,
                endpoint=endpoint,
                error=str(e),
            )
            raise GitLabAPIError(f"{method} {endpoint} failed: {e}") from e

        log_gitlab_api_call(
            logger,
            method=method,
            endpoint=endpoint,
            status_code=response.status_code,
            duration_ms=round((time.monotonic() - started) * 1000, 1),
        )

        if not response.is_success:
            body = response.text or response.reason_phrase
            if response.status_code == 404:
                message = f"Resource not found: {endpoint}"
            elif response.status_code in (401, 403):
                message = "Access denied. Check API token permissions."
            else:
                message = f"{method} {endpoint} returned HTTP {response.status_code}"
            raise GitLabAPIError(
                f"{message} - {body}",
                status_code=response.status_code,
                response_data=body,
            )

        return response

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Make an HTTP request and decode the JSON response.

        Args:
            method: HTTP method
            endpoint: API endpoint
            params: Query parameters
            json_data: JSON request body

        Returns:
            JSON response data

        Raises:
            GitLabAPIError: When API request fails
        """
        response = await self._send(method, endpoint, params=params, json_data=json_data)
        try:
            return response.json()
        except ValueError as e:
            raise GitLabAPIError(
                f"Invalid JSON from {endpoint}: {e}",
                status_code=response.status_code,
                response_data=response.text,
            ) from e

    async def _get_text(self, endpoint: str) -> str:
        """GET an endpoint that answers with plain text."""
        response = await self._send("GET", endpoint)
        return response.text
