"""Bearer token session with MSAL acquisition and refresh."""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import msal

if TYPE_CHECKING:
    from graph_relay.config import AppConfig

logger = logging.getLogger(__name__)

GRAPH_SCOPES = ["https://graph.microsoft.com/.default"]
AUTHORITY_BASE_URL = "https://login.microsoftonline.com"


class GraphAuthError(Exception):
    """Raised when MSAL token acquisition or refresh fails."""


class SessionState(enum.Enum):
    UNSET = "unset"
    ACTIVE = "active"
    FAILED = "failed"


@dataclass
class TokenGrant:
    """Tokens returned by a refresh."""

    access_token: str
    refresh_token: str | None
    expires_in: int


def _build_app(
    client_id: str, client_secret: str, tenant_id: str
) -> msal.ConfidentialClientApplication:
    return msal.ConfidentialClientApplication(
        client_id=client_id,
        client_credential=client_secret,
        authority=f"{AUTHORITY_BASE_URL}/{tenant_id}",
    )


def _raise_for_result(result: dict[str, Any], operation: str) -> None:
    if "access_token" not in result:
        error = result.get("error", "unknown_error")
        description = result.get("error_description", "No description provided")
        logger.error("[%s] MSAL token request failed; error:%s", operation, error)
        raise GraphAuthError(f"{operation} failed: {error} - {description}")


def refresh_access_token(
    refresh_token: str,
    client_id: str,
    client_secret: str | None,
    tenant_id: str = "common",
) -> TokenGrant:
    """Exchange a refresh token for a new access token.

    Args:
        refresh_token: Refresh token issued with the current access token.
        client_id: Azure AD application (client) ID.
        client_secret: Azure AD application client secret.
        tenant_id: Azure AD tenant ID.

    Returns:
        TokenGrant with the new access token and, when rotated, a new refresh token.

    Raises:
        GraphAuthError: If no client secret is configured or MSAL rejects the refresh.
    """
    if not client_secret:
        raise GraphAuthError("Token refresh failed: client secret not configured")
    app = _build_app(client_id, client_secret, tenant_id)
    result: dict[str, Any] = (
        app.acquire_token_by_refresh_token(refresh_token, scopes=GRAPH_SCOPES) or {}
    )
    _raise_for_result(result, "refresh_access_token")
    return TokenGrant(
        access_token=str(result["access_token"]),
        refresh_token=result.get("refresh_token"),
        expires_in=int(result.get("expires_in", 3600)),
    )


class TokenSession:
    """Holds the access/refresh token pair used for every Graph call.

    A session created with an access token starts Active. Otherwise the
    first call acquires an application token through the client-credentials
    flow; MSAL keeps that token cached until it nears expiry. Refreshes
    mutate the session in place without locking: concurrent refreshes are
    last-write-wins.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        tenant_id: str,
        access_token: str | None = None,
        refresh_token: str | None = None,
    ) -> None:
        """Initialise the token session.

        Args:
            client_id: Azure AD application (client) ID.
            client_secret: Azure AD application client secret.
            tenant_id: Azure AD tenant ID.
            access_token: Optional pre-issued delegated access token.
            refresh_token: Optional refresh token paired with access_token.
        """
        self.client_id = client_id
        self.tenant_id = tenant_id
        self._client_secret = client_secret
        self._access_token = access_token
        self._refresh_token = refresh_token
        self._app: msal.ConfidentialClientApplication | None = None
        self.state = SessionState.ACTIVE if access_token else SessionState.UNSET

    @property
    def access_token(self) -> str | None:
        return self._access_token

    @property
    def refresh_token(self) -> str | None:
        return self._refresh_token

    @property
    def can_refresh(self) -> bool:
        return bool(self._refresh_token)

    def _acquire_token(self) -> str:
        """Acquire a Bearer token using client credentials flow.

        Raises:
            GraphAuthError: If MSAL cannot acquire a token.
        """
        if self._app is None:
            self._app = _build_app(self.client_id, self._client_secret, self.tenant_id)
        result: dict[str, Any] = self._app.acquire_token_for_client(scopes=GRAPH_SCOPES) or {}
        _raise_for_result(result, "_acquire_token")
        return str(result["access_token"])

    async def get_access_token(self) -> str:
        """Return the token to send with the next request.

        Raises:
            GraphAuthError: If no token is held and acquisition fails.
        """
        if self._access_token:
            return self._access_token
        try:
            token = await asyncio.to_thread(self._acquire_token)
        except GraphAuthError:
            self.state = SessionState.FAILED
            raise
        self.state = SessionState.ACTIVE
        return token

    async def refresh(self) -> str:
        """Refresh the access token once and install the result.

        Returns:
            The new access token.

        Raises:
            GraphAuthError: If there is no refresh token or the refresh call fails.
        """
        refresh_token = self._refresh_token
        if not refresh_token:
            self.state = SessionState.FAILED
            raise GraphAuthError("Token refresh failed: no refresh token available")

        logger.info("[refresh] refreshing access token after 401")
        try:
            grant = await asyncio.to_thread(
                refresh_access_token,
                refresh_token,
                self.client_id,
                self._client_secret,
                self.tenant_id,
            )
        except GraphAuthError:
            self.state = SessionState.FAILED
            raise

        self._access_token = grant.access_token
        if grant.refresh_token:
            self._refresh_token = grant.refresh_token
        self.state = SessionState.ACTIVE
        logger.info("[refresh] access token refreshed; expires_in:%d", grant.expires_in)
        return grant.access_token

    def mark_failed(self) -> None:
        self.state = SessionState.FAILED


def token_session_from_config(config: AppConfig) -> TokenSession:
    """Construct a TokenSession from application configuration.

    Args:
        config: Application configuration instance.

    Returns:
        Configured TokenSession instance.
    """
    return TokenSession(
        client_id=config.client_id,
        client_secret=config.client_secret,
        tenant_id=config.tenant_id,
        access_token=config.access_token,
        refresh_token=config.refresh_token,
    )
