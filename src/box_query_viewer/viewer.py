"""Action controller: authenticate, fetch or list, render.

A :class:`BoxViewer` is built around an injected :class:`BoxClient`; it
owns the metadata panel and the fetch button state for the page it serves.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from box_query_viewer.box.client import AUTHORIZATION_CODE_GRANTS, CLIENT_CREDENTIALS_GRANTS
from box_query_viewer.box.errors import BoxViewerError, MissingInputError, user_message
from box_query_viewer.box.models import Credentials
from box_query_viewer.params import AUTH_CODE, CLIENT_ID, CLIENT_SECRET, FILE_ID
from box_query_viewer.render import (
    FETCH_LABEL,
    LOADING_LABEL,
    render_error,
    render_file_list,
    render_loading,
    render_metadata,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from box_query_viewer.box.client import BoxClient
    from box_query_viewer.box.models import BoxUser, TokenResponse
    from box_query_viewer.params import QueryParams

logger = logging.getLogger(__name__)

MISSING_FILE_ID = "File ID is required. Please add file_id parameter to the URL."
MISSING_CREDENTIALS = (
    "Client ID and Client Secret are required. "
    "Please add client_id and client_secret parameters to the URL."
)
MISSING_AUTH_CODE = "Authorization code is required. Please add auth_code parameter to the URL."


class ViewerMode(enum.Enum):
    """Which resource a fetch action retrieves."""

    SINGLE_FILE = "single_file"
    LIST = "list"
    AUTO = "auto"


class GrantFlow(enum.Enum):
    """Which token grant shapes are attempted."""

    CLIENT_CREDENTIALS = "client_credentials"
    AUTHORIZATION_CODE = "authorization_code"


class ButtonState(enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    FAILED = "failed"


class FetchButton:
    """State of the fetch control: Idle -> Loading -> Success|Failed -> Idle."""

    def __init__(self) -> None:
        self.state = ButtonState.IDLE
        self.history: list[ButtonState] = [ButtonState.IDLE]

    @property
    def disabled(self) -> bool:
        return self.state is ButtonState.LOADING

    @property
    def label(self) -> str:
        return LOADING_LABEL if self.disabled else FETCH_LABEL

    def _move(self, state: ButtonState) -> None:
        self.state = state
        self.history.append(state)

    @asynccontextmanager
    async def loading(self) -> AsyncIterator[FetchButton]:
        """Hold the Loading state; always ends back at Idle."""
        self._move(ButtonState.LOADING)
        try:
            yield self
        except BaseException:
            if self.state is ButtonState.LOADING:
                self._move(ButtonState.FAILED)
            raise
        finally:
            self._move(ButtonState.IDLE)

    def succeed(self) -> None:
        self._move(ButtonState.SUCCESS)

    def fail(self) -> None:
        self._move(ButtonState.FAILED)


class Panel:
    """Display container; every render replaces the whole content.

    The lock keeps two actions on the same panel from interleaving their
    renders.
    """

    def __init__(self, name: str = "metadata-container") -> None:
        self.name = name
        self.content = ""
        self.lock = asyncio.Lock()

    def replace(self, markup: str) -> str:
        self.content = markup
        return markup


class BoxViewer:
    """Runs the token -> fetch/list -> render sequence for one page.

    Parameters
    ----------
    client:
        Box API client used for every outbound call.
    mode:
        ``SINGLE_FILE`` fetches ``file_id``, ``LIST`` lists the first page,
        ``AUTO`` fetches when ``file_id`` is present and lists otherwise.
    grant_flow:
        ``CLIENT_CREDENTIALS`` tries the plain then the enterprise-subject
        grant; ``AUTHORIZATION_CODE`` redeems ``auth_code``.
    """

    def __init__(
        self,
        client: BoxClient,
        *,
        mode: ViewerMode = ViewerMode.AUTO,
        grant_flow: GrantFlow = GrantFlow.CLIENT_CREDENTIALS,
    ) -> None:
        self._client = client
        self.mode = mode
        self.grant_flow = grant_flow
        self.panel = Panel()
        self.button = FetchButton()

    def resolve_mode(self, params: QueryParams, mode: ViewerMode | None = None) -> ViewerMode:
        mode = mode or self.mode
        if mode is ViewerMode.AUTO:
            return ViewerMode.SINGLE_FILE if params.get(FILE_ID) else ViewerMode.LIST
        return mode

    def _credentials(self, params: QueryParams) -> Credentials:
        client_id = params.get(CLIENT_ID)
        client_secret = params.get(CLIENT_SECRET)
        if not client_id:
            raise MissingInputError(MISSING_CREDENTIALS, CLIENT_ID)
        if not client_secret:
            raise MissingInputError(MISSING_CREDENTIALS, CLIENT_SECRET)
        return Credentials(client_id=client_id, client_secret=client_secret)

    def _auth_code(self, params: QueryParams) -> str | None:
        if self.grant_flow is not GrantFlow.AUTHORIZATION_CODE:
            return None
        auth_code = params.get(AUTH_CODE)
        if not auth_code:
            raise MissingInputError(MISSING_AUTH_CODE, AUTH_CODE)
        return auth_code

    async def _token(self, credentials: Credentials, auth_code: str | None) -> TokenResponse:
        grants = (
            AUTHORIZATION_CODE_GRANTS
            if self.grant_flow is GrantFlow.AUTHORIZATION_CODE
            else CLIENT_CREDENTIALS_GRANTS
        )
        token = await self._client.acquire_token(credentials, grants, auth_code=auth_code)
        logger.info("Successfully obtained access token")
        return token

    async def fetch(self, params: QueryParams, mode: ViewerMode | None = None) -> str:
        """Run one fetch action and return the panel's new content.

        Missing inputs are reported before any request is sent.  Upstream
        failures are logged in full and rendered as a short message.
        """
        resolved = self.resolve_mode(params, mode)
        failure_prefix = (
            "Failed to fetch file metadata: "
            if resolved is ViewerMode.SINGLE_FILE
            else "Failed to list files: "
        )
        async with self.panel.lock:
            try:
                if resolved is ViewerMode.SINGLE_FILE and not params.get(FILE_ID):
                    raise MissingInputError(MISSING_FILE_ID, FILE_ID)
                credentials = self._credentials(params)
                auth_code = self._auth_code(params)
            except MissingInputError as exc:
                logger.warning("Missing query parameter %s", exc.parameter)
                return self.panel.replace(render_error(exc.message))

            async with self.button.loading():
                self.panel.replace(render_loading())
                try:
                    token = await self._token(credentials, auth_code)
                    if resolved is ViewerMode.SINGLE_FILE:
                        resource = await self._client.fetch_file(
                            params[FILE_ID], token.access_token
                        )
                        markup = render_metadata(resource)
                    else:
                        page = await self._client.list_files(token.access_token)
                        markup = render_file_list(page)
                except BoxViewerError as exc:
                    logger.exception("Error running %s action", resolved.value)
                    self.button.fail()
                    return self.panel.replace(render_error(failure_prefix + user_message(exc)))
                self.button.succeed()
                return self.panel.replace(markup)

    async def validate_token(self, params: QueryParams) -> BoxUser:
        """Acquire a token and return the identity it belongs to.

        Raises
        ------
        MissingInputError
            If credentials (or the authorization code) are absent.
        BoxViewerError
            If authentication or the user lookup fails.
        """
        credentials = self._credentials(params)
        auth_code = self._auth_code(params)
        token = await self._token(credentials, auth_code)
        return await self._client.get_current_user(token.access_token)
