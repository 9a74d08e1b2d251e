"""Microsoft Graph API client with refresh-and-retry on expired tokens."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from graph_relay.graph.auth import GraphAuthError, TokenSession, token_session_from_config
from graph_relay.graph.models import GraphResponse, RequestShape

if TYPE_CHECKING:
    from graph_relay.config import AppConfig

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"

_SCOPE_ERROR_MARKERS = ("scope", "permission")

__all__ = [
    "GRAPH_BASE_URL",
    "GraphApiError",
    "GraphAuthError",
    "GraphClient",
    "GraphScopeError",
    "GraphTokenExpiredError",
    "graph_client_from_config",
]


class GraphApiError(Exception):
    """Raised when the Graph API returns a non-2xx response."""

    def __init__(self, status_code: int, message: str, reason: str = "") -> None:
        detail = f"{status_code} {reason}".strip()
        super().__init__(f"Microsoft Graph API error: {detail} - {message}")
        self.status_code = status_code
        self.reason = reason
        self.message = message


class GraphTokenExpiredError(GraphApiError):
    """Raised when Graph answers 401 and the token cannot be refreshed or retried."""


class GraphScopeError(GraphApiError):
    """Raised when Graph answers 403 because the token lacks a scope or permission."""

    def __str__(self) -> str:
        detail = f"{self.status_code} {self.reason}".strip()
        return (
            f"Microsoft Graph API scope error: {detail} - {self.message}. "
            "This tool requires organization mode. Please restart with GR_ORG_MODE=true."
        )


class GraphClient:
    """Authenticated async client for Microsoft Graph API."""

    def __init__(
        self,
        session: TokenSession,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
        base_url: str = GRAPH_BASE_URL,
    ) -> None:
        """Initialise the client.

        Args:
            session: Token session shared by every request.
            http_client: Optional pre-built httpx client (tests inject a mock transport).
            timeout: Request timeout in seconds for the default httpx client.
            base_url: Graph API root the request paths are relative to.
        """
        self.session = session
        self._http = http_client
        self._timeout = timeout
        self._base_url = base_url

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self._timeout)
        return self._http

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def _perform(self, shape: RequestShape, token: str) -> httpx.Response:
        """Send one HTTP request; no status handling."""
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            **shape.headers,
        }
        url = f"{self._base_url}{shape.url_path}"
        return await self._client().request(
            shape.method,
            url,
            headers=headers,
            content=shape.body.encode("utf-8") if shape.body is not None else None,
        )

    async def request(self, shape: RequestShape) -> GraphResponse:
        """Execute a request, refreshing the token once on 401.

        Args:
            shape: Request to send.

        Returns:
            GraphResponse for a 2xx answer.

        Raises:
            GraphAuthError: If token acquisition or refresh fails.
            GraphTokenExpiredError: If Graph answers 401 after the retry, or
                when no refresh token is available.
            GraphScopeError: If Graph answers 403 citing a scope or permission.
            GraphApiError: For any other non-2xx answer.
            httpx.TransportError: If no response is received at all.
        """
        token = await self.session.get_access_token()
        response = await self._perform(shape, token)

        if response.status_code == 401:
            if not self.session.can_refresh:
                self.session.mark_failed()
                raise GraphTokenExpiredError(401, response.text, response.reason_phrase)
            new_token = await self.session.refresh()
            response = await self._perform(shape, new_token)
            if response.status_code == 401:
                logger.error("[request] token rejected after refresh; path:%s", shape.path)
                raise GraphTokenExpiredError(401, response.text, response.reason_phrase)

        if response.status_code == 403:
            error_text = response.text
            if any(marker in error_text for marker in _SCOPE_ERROR_MARKERS):
                raise GraphScopeError(403, error_text, response.reason_phrase)
            raise GraphApiError(403, error_text, response.reason_phrase)

        if not response.is_success:
            raise GraphApiError(response.status_code, response.text, response.reason_phrase)

        return GraphResponse(
            status_code=response.status_code,
            reason=response.reason_phrase,
            headers=dict(response.headers),
            content=response.content,
        )

    async def get_json(self, path: str) -> dict[str, Any]:
        """Perform an authenticated GET and decode the JSON body.

        Args:
            path: URL path relative to the Graph root (must start with '/').

        Returns:
            Parsed JSON response body, or an empty dict for an empty body.
        """
        response = await self.request(RequestShape(method="GET", path=path))
        if not response.content:
            return {}
        data = json.loads(response.content)
        return data if isinstance(data, dict) else {"value": data}

    async def download(self, path: str) -> bytes:
        """Download raw content (e.g. a drive item's /content) as bytes."""
        response = await self.request(RequestShape(method="GET", path=path))
        return response.content


def graph_client_from_config(config: AppConfig) -> GraphClient:
    """Construct a GraphClient from application configuration.

    Args:
        config: Application configuration instance.

    Returns:
        Configured GraphClient instance.
    """
    return GraphClient(
        session=token_session_from_config(config),
        timeout=config.request_timeout,
    )
