"""Box client for the OAuth token endpoint and the files API.

Provides a typed async interface over ``httpx`` for the three-step call
sequence used by the viewer: acquire a token, then list or fetch files.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from box_query_viewer.box.errors import BoxApiError, BoxAuthError, TokenAttemptFailure
from box_query_viewer.box.models import (
    FILE_LIST_FIELDS,
    FILE_LIST_LIMIT,
    BoxUser,
    FileListPage,
    FileResource,
    GrantShape,
    TokenResponse,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import TracebackType

    from box_query_viewer.box.models import Credentials

logger = logging.getLogger(__name__)

BOX_API_BASE = "https://api.box.com/2.0"
BOX_TOKEN_URL = "https://api.box.com/oauth2/token"

CLIENT_CREDENTIALS_GRANTS: tuple[GrantShape, ...] = (
    GrantShape.CLIENT_CREDENTIALS,
    GrantShape.CLIENT_CREDENTIALS_ENTERPRISE,
)
AUTHORIZATION_CODE_GRANTS: tuple[GrantShape, ...] = (GrantShape.AUTHORIZATION_CODE,)


def _path_segment(value: str) -> str:
    """Percent-encode *value* so it stays a single path segment.

    Dots are encoded too, otherwise ``.`` and ``..`` would be resolved as
    relative segments before the request is sent.
    """
    return quote(value, safe="").replace(".", "%2E")


def _json_body(response: httpx.Response) -> dict[str, Any]:
    """Return the decoded JSON object of *response*, or ``{}``."""
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class BoxClient:
    """Async client for the Box token endpoint and files API.

    Parameters
    ----------
    http_client:
        Optional pre-configured ``httpx.AsyncClient``.  When provided the
        client is borrowed and never closed by :meth:`aclose`.  This is
        useful for testing with ``httpx.MockTransport``.
    api_base:
        Base URL of the Box content API.
    token_url:
        URL of the OAuth 2.0 token endpoint.
    timeout:
        Per-request timeout in seconds.  ``None`` waits indefinitely.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        api_base: str = BOX_API_BASE,
        token_url: str = BOX_TOKEN_URL,
        timeout: float | None = None,
    ) -> None:
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._api_base = api_base.rstrip("/")
        self._token_url = token_url

    async def __aenter__(self) -> BoxClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def acquire_token(
        self,
        credentials: Credentials,
        grants: Sequence[GrantShape] = CLIENT_CREDENTIALS_GRANTS,
        *,
        auth_code: str | None = None,
    ) -> TokenResponse:
        """Request an access token, trying each grant shape in order.

        The first 2xx response wins and later shapes are never sent.

        Parameters
        ----------
        credentials:
            Application ``client_id`` / ``client_secret``.
        grants:
            Grant shapes to attempt, in order.
        auth_code:
            Authorization code, required by ``GrantShape.AUTHORIZATION_CODE``.

        Raises
        ------
        BoxAuthError
            When every attempt fails (message of the last attempt, all
            failures on ``attempts``), or when a 2xx body has no
            ``access_token``.
        """
        if not grants:
            msg = "At least one grant shape must be attempted."
            raise ValueError(msg)

        failures: list[TokenAttemptFailure] = []
        last = len(grants) - 1
        for index, grant in enumerate(grants):
            logger.info("Trying authentication method %d (%s)", index + 1, grant.value)
            try:
                response = await self._http.post(
                    self._token_url,
                    data=grant.form_body(credentials, auth_code),
                    headers={"Accept": "application/json"},
                )
            except httpx.HTTPError as exc:
                logger.warning("Authentication method %d raised: %s", index + 1, exc)
                failures.append(TokenAttemptFailure(grant, None, None, str(exc)))
                if index == last:
                    msg = f"Token request failed: {exc}"
                    raise BoxAuthError(msg, attempts=failures) from exc
                continue

            body = _json_body(response)
            if response.is_success:
                logger.info("Authentication method %d successful", index + 1)
                if "access_token" not in body:
                    description = body.get("error_description") or "Unknown error"
                    msg = f"Failed to get access token: {description}"
                    raise BoxAuthError(
                        msg,
                        status_code=response.status_code,
                        error_code=body.get("error"),
                        description=body.get("error_description"),
                        attempts=failures,
                    )
                return TokenResponse.from_dict(body)

            error_code = body.get("error")
            description = body.get("error_description")
            failures.append(
                TokenAttemptFailure(grant, response.status_code, error_code, description)
            )
            logger.warning(
                "Authentication method %d failed: %s %s",
                index + 1,
                response.status_code,
                body,
            )
            if index == last:
                detail = description or error_code or response.reason_phrase
                msg = f"Token request failed: {response.status_code} - {detail}"
                raise BoxAuthError(
                    msg,
                    status_code=response.status_code,
                    error_code=error_code,
                    description=description,
                    attempts=failures,
                )

        # Unreachable: the final iteration either returns or raises.
        msg = "Token request failed"
        raise BoxAuthError(msg, attempts=failures)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def fetch_file(self, file_id: str, access_token: str) -> FileResource:
        """Get the full metadata record of a single file.

        Raises
        ------
        BoxApiError
            On a non-2xx response, or when the body has no ``id``.
        """
        response = await self._get(f"/files/{_path_segment(file_id)}", access_token)
        body = self._check(response, "File metadata request failed")
        if body.get("id") is None:
            msg = f"File metadata request failed: 404 - File {file_id} not found"
            raise BoxApiError(msg, status_code=404, description="not_found")
        return FileResource.from_dict(body)

    async def list_files(self, access_token: str) -> FileListPage:
        """List the first page of files visible to the token.

        Only the ``entries`` member of the response envelope is used;
        pagination cursors are ignored.
        """
        params = {"limit": str(FILE_LIST_LIMIT), "fields": ",".join(FILE_LIST_FIELDS)}
        response = await self._get("/files", access_token, params=params)
        body = self._check(response, "File list request failed")
        entries = [
            FileResource.from_dict(entry)
            for entry in body.get("entries") or []
            if isinstance(entry, dict) and entry.get("id") is not None
        ]
        return FileListPage(entries=entries, total_count=body.get("total_count"))

    async def get_current_user(self, access_token: str) -> BoxUser:
        """Return the identity behind *access_token*."""
        response = await self._get("/users/me", access_token)
        body = self._check(response, "User request failed")
        return BoxUser.from_dict(body)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get(
        self,
        path: str,
        access_token: str,
        *,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        url = f"{self._api_base}{path}"
        logger.debug("GET %s", url)
        try:
            return await self._http.get(
                url,
                params=params,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json",
                },
            )
        except httpx.HTTPError as exc:
            msg = f"Request to {path} failed: {exc}"
            raise BoxApiError(msg) from exc

    @staticmethod
    def _check(response: httpx.Response, context: str) -> dict[str, Any]:
        """Return the JSON body of a 2xx response or raise ``BoxApiError``."""
        body = _json_body(response)
        if response.is_success:
            return body
        detail = body.get("message") or body.get("error") or "Unknown error"
        logger.error("%s: %s %s", context, response.status_code, body)
        msg = f"{context}: {response.status_code} - {detail}"
        raise BoxApiError(
            msg,
            status_code=response.status_code,
            error_code=body.get("code") or body.get("error"),
            description=body.get("message") or body.get("error_description"),
        )
