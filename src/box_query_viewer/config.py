"""Viewer configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

from box_query_viewer.box.client import BOX_API_BASE, BOX_TOKEN_URL
from box_query_viewer.viewer import GrantFlow, ViewerMode


@dataclass(frozen=True)
class ViewerConfig:
    """Settings shared by every request.

    Nothing is required: credentials and file IDs arrive per request in the
    query string, so every field has a default.
    """

    mode: ViewerMode = ViewerMode.AUTO
    grant_flow: GrantFlow = GrantFlow.CLIENT_CREDENTIALS
    api_base: str = BOX_API_BASE
    token_url: str = BOX_TOKEN_URL
    http_timeout: float | None = None
    log_level: str = "INFO"


def load_config() -> ViewerConfig:
    """Construct a ViewerConfig from environment variables.

    Optional environment variables (with defaults):
        BOX_VIEWER_MODE: ``auto``, ``single_file`` or ``list`` (default: auto).
        BOX_VIEWER_GRANT_FLOW: ``client_credentials`` or ``authorization_code``.
        BOX_API_BASE: Box content API base URL.
        BOX_TOKEN_URL: Box OAuth 2.0 token endpoint.
        BOX_HTTP_TIMEOUT: Request timeout in seconds (default: unset, no timeout).
        BOX_VIEWER_LOG_LEVEL: Root log level for the entry points (default: INFO).

    Raises:
        ValueError: If a mode, grant flow or timeout value is not recognised.
    """
    timeout = os.environ.get("BOX_HTTP_TIMEOUT", "")
    return ViewerConfig(
        mode=ViewerMode(os.environ.get("BOX_VIEWER_MODE", ViewerMode.AUTO.value).lower()),
        grant_flow=GrantFlow(
            os.environ.get("BOX_VIEWER_GRANT_FLOW", GrantFlow.CLIENT_CREDENTIALS.value).lower()
        ),
        api_base=os.environ.get("BOX_API_BASE", BOX_API_BASE),
        token_url=os.environ.get("BOX_TOKEN_URL", BOX_TOKEN_URL),
        http_timeout=float(timeout) if timeout else None,
        log_level=os.environ.get("BOX_VIEWER_LOG_LEVEL", "INFO").upper(),
    )
