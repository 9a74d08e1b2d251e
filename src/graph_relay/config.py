"""Application configuration loaded from environment variables."""

import os
from dataclasses import dataclass

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def _env_flag(name: str, default: bool = False) -> bool:
    """Read a boolean flag from the environment."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class AppConfig:
    """Centralized application configuration.

    Required fields have no defaults and will cause a KeyError at startup
    if the corresponding environment variable is missing. Mode switches and
    tuning knobs have defaults but can be overridden via environment variables.
    """

    # Required — no defaults, fail at startup if missing
    client_id: str
    client_secret: str
    tenant_id: str

    # Pre-issued delegated tokens; when absent the client-credentials flow is used
    access_token: str | None = None
    refresh_token: str | None = None

    # Tool visibility modes
    read_only: bool = False
    org_mode: bool = False
    enabled_tools: str | None = None
    discovery_mode: bool = False

    # Output and side-effect settings
    output_format: str = "json"
    download_dir: str = "downloads"
    catalog_path: str | None = None
    request_timeout: float = 60.0


def load_config() -> AppConfig:
    """Construct an AppConfig from environment variables.

    Required environment variables:
        GR_CLIENT_ID: Azure AD application (client) ID.
        GR_CLIENT_SECRET: Azure AD application client secret.
        GR_TENANT_ID: Azure AD tenant ID (or "common").

    Optional environment variables (with defaults):
        GR_ACCESS_TOKEN: Delegated access token to start the session with.
        GR_REFRESH_TOKEN: Refresh token used when Graph answers 401.
        GR_READ_ONLY: Hide every non-GET tool (default: false).
        GR_ORG_MODE: Expose organization-only tools (default: false).
        GR_ENABLED_TOOLS: Regex; only tools whose name matches are exposed.
        GR_DISCOVERY_MODE: Expose search-tools/execute-tool only (default: false).
        GR_OUTPUT_FORMAT: "json" or "yaml" (default: json).
        GR_DOWNLOAD_DIR: Base directory for download-file-to-local (default: downloads).
        GR_CATALOG_PATH: Endpoint catalog JSON file (default: packaged catalog).
        GR_REQUEST_TIMEOUT: HTTP timeout in seconds (default: 60).

    Returns:
        Configured AppConfig instance.
    """
    return AppConfig(
        client_id=os.environ["GR_CLIENT_ID"],
        client_secret=os.environ["GR_CLIENT_SECRET"],
        tenant_id=os.environ["GR_TENANT_ID"],
        access_token=os.environ.get("GR_ACCESS_TOKEN") or None,
        refresh_token=os.environ.get("GR_REFRESH_TOKEN") or None,
        read_only=_env_flag("GR_READ_ONLY"),
        org_mode=_env_flag("GR_ORG_MODE"),
        enabled_tools=os.environ.get("GR_ENABLED_TOOLS") or None,
        discovery_mode=_env_flag("GR_DISCOVERY_MODE"),
        output_format=os.environ.get("GR_OUTPUT_FORMAT", "json").strip().lower(),
        download_dir=os.environ.get("GR_DOWNLOAD_DIR", "downloads"),
        catalog_path=os.environ.get("GR_CATALOG_PATH") or None,
        request_timeout=float(os.environ.get("GR_REQUEST_TIMEOUT", "60")),
    )
