"""Tests for the fetch action controller."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest

from box_query_viewer.box.client import (
    AUTHORIZATION_CODE_GRANTS,
    CLIENT_CREDENTIALS_GRANTS,
    BoxClient,
)
from box_query_viewer.box.errors import BoxApiError, BoxAuthError, MissingInputError
from box_query_viewer.box.models import BoxUser, FileListPage, FileResource, TokenResponse
from box_query_viewer.params import QueryParams
from box_query_viewer.render import FETCH_LABEL, LOADING_LABEL, render_loading
from box_query_viewer.viewer import (
    MISSING_AUTH_CODE,
    MISSING_CREDENTIALS,
    MISSING_FILE_ID,
    BoxViewer,
    ButtonState,
    FetchButton,
    GrantFlow,
    ViewerMode,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

FULL_QUERY = "file_id=42&client_id=abc&client_secret=xyz"


def _mock_client() -> AsyncMock:
    client = AsyncMock(spec=BoxClient)
    client.acquire_token.return_value = TokenResponse(access_token="tok")
    client.fetch_file.return_value = FileResource.from_dict(
        {"id": "42", "name": "report.pdf", "size": 2048}
    )
    client.list_files.return_value = FileListPage(
        entries=[FileResource.from_dict({"id": "1", "name": "a.txt"})]
    )
    return client


def _params(query: str) -> QueryParams:
    return QueryParams.from_query_string(query)


# ---------------------------------------------------------------------------
# Tests: FetchButton
# ---------------------------------------------------------------------------


class TestFetchButton:
    async def test_loading_disables_and_relabels(self) -> None:
        button = FetchButton()

        async with button.loading():
            assert button.disabled is True
            assert button.label == LOADING_LABEL

        assert button.disabled is False
        assert button.label == FETCH_LABEL

    async def test_exception_still_restores_idle(self) -> None:
        button = FetchButton()

        with pytest.raises(RuntimeError):
            async with button.loading():
                raise RuntimeError("boom")

        assert button.state is ButtonState.IDLE
        assert button.history == [
            ButtonState.IDLE,
            ButtonState.LOADING,
            ButtonState.FAILED,
            ButtonState.IDLE,
        ]


# ---------------------------------------------------------------------------
# Tests: missing input
# ---------------------------------------------------------------------------


class TestMissingInput:
    async def test_missing_client_id_sends_nothing(self) -> None:
        # Arrange
        client = _mock_client()
        viewer = BoxViewer(client)

        # Act
        markup = await viewer.fetch(_params("file_id=42&client_secret=xyz"))

        # Assert
        assert MISSING_CREDENTIALS in markup
        assert "client_id" in markup
        client.acquire_token.assert_not_awaited()
        client.fetch_file.assert_not_awaited()
        assert viewer.button.history == [ButtonState.IDLE]

    async def test_missing_file_id_in_single_file_mode(self) -> None:
        # Arrange
        client = _mock_client()
        viewer = BoxViewer(client, mode=ViewerMode.SINGLE_FILE)

        # Act
        markup = await viewer.fetch(_params("client_id=abc&client_secret=xyz"))

        # Assert
        assert MISSING_FILE_ID in markup
        client.acquire_token.assert_not_awaited()

    async def test_missing_auth_code_in_authorization_code_flow(self) -> None:
        # Arrange
        client = _mock_client()
        viewer = BoxViewer(client, grant_flow=GrantFlow.AUTHORIZATION_CODE)

        # Act
        markup = await viewer.fetch(_params(FULL_QUERY))

        # Assert
        assert MISSING_AUTH_CODE in markup
        client.acquire_token.assert_not_awaited()


# ---------------------------------------------------------------------------
# Tests: fetch
# ---------------------------------------------------------------------------


class TestFetch:
    async def test_single_file_success(self) -> None:
        # Arrange
        client = _mock_client()
        viewer = BoxViewer(client)

        # Act
        markup = await viewer.fetch(_params(FULL_QUERY))

        # Assert
        assert "report.pdf" in markup
        assert "2 KB" in markup
        assert viewer.panel.content == markup
        client.acquire_token.assert_awaited_once()
        assert client.acquire_token.await_args.args[1] == CLIENT_CREDENTIALS_GRANTS
        client.fetch_file.assert_awaited_once_with("42", "tok")
        assert viewer.button.history == [
            ButtonState.IDLE,
            ButtonState.LOADING,
            ButtonState.SUCCESS,
            ButtonState.IDLE,
        ]

    async def test_auto_mode_lists_without_file_id(self) -> None:
        # Arrange
        client = _mock_client()
        viewer = BoxViewer(client, mode=ViewerMode.AUTO)

        # Act
        markup = await viewer.fetch(_params("client_id=abc&client_secret=xyz"))

        # Assert
        assert "a.txt" in markup
        client.list_files.assert_awaited_once_with("tok")
        client.fetch_file.assert_not_awaited()

    async def test_list_mode_ignores_file_id(self) -> None:
        # Arrange
        client = _mock_client()
        viewer = BoxViewer(client, mode=ViewerMode.LIST)

        # Act
        await viewer.fetch(_params(FULL_QUERY))

        # Assert
        client.list_files.assert_awaited_once()
        client.fetch_file.assert_not_awaited()

    async def test_authorization_code_flow(self) -> None:
        # Arrange
        client = _mock_client()
        viewer = BoxViewer(client, grant_flow=GrantFlow.AUTHORIZATION_CODE)

        # Act
        await viewer.fetch(_params(FULL_QUERY + "&auth_code=c0de"))

        # Assert
        call = client.acquire_token.await_args
        assert call.args[1] == AUTHORIZATION_CODE_GRANTS
        assert call.kwargs["auth_code"] == "c0de"

    async def test_auth_failure_renders_guidance(self) -> None:
        # Arrange
        client = _mock_client()
        client.acquire_token.side_effect = BoxAuthError(
            "Token request failed: 401 - invalid client", status_code=401
        )
        viewer = BoxViewer(client)

        # Act
        markup = await viewer.fetch(_params(FULL_QUERY))

        # Assert
        assert "Failed to fetch file metadata: Authentication failed:" in markup
        client.fetch_file.assert_not_awaited()
        assert viewer.button.history[-2:] == [ButtonState.FAILED, ButtonState.IDLE]
        assert viewer.button.disabled is False

    async def test_resource_failure_renders_message(self) -> None:
        # Arrange
        client = _mock_client()
        client.list_files.side_effect = BoxApiError(
            "File list request failed: 500 - Internal", status_code=500
        )
        viewer = BoxViewer(client, mode=ViewerMode.LIST)

        # Act
        markup = await viewer.fetch(_params(FULL_QUERY))

        # Assert
        assert "Failed to list files: File list request failed: 500 - Internal" in markup

    async def test_unexpected_error_propagates_and_restores_button(self) -> None:
        # Arrange
        client = _mock_client()
        client.fetch_file.side_effect = RuntimeError("bug")
        viewer = BoxViewer(client)

        # Act & Assert
        with pytest.raises(RuntimeError, match="bug"):
            await viewer.fetch(_params(FULL_QUERY))

        assert viewer.button.state is ButtonState.IDLE
        assert not viewer.panel.lock.locked()

    async def test_concurrent_actions_do_not_interleave(self) -> None:
        # Arrange
        events: list[tuple[str, str]] = []

        async def slow_fetch(file_id: str, token: str) -> FileResource:
            events.append(("start", file_id))
            await asyncio.sleep(0.01)
            events.append(("end", file_id))
            return FileResource.from_dict({"id": file_id})

        client = _mock_client()
        client.fetch_file.side_effect = slow_fetch
        viewer = BoxViewer(client)

        # Act
        await asyncio.gather(
            viewer.fetch(_params("file_id=1&client_id=a&client_secret=b")),
            viewer.fetch(_params("file_id=2&client_id=a&client_secret=b")),
        )

        # Assert
        assert events == [("start", "1"), ("end", "1"), ("start", "2"), ("end", "2")]
        assert "file-id:2" in viewer.panel.content

    async def test_missing_input_waits_for_action_in_flight(self) -> None:
        # Arrange
        seen_after_sleep: list[str] = []
        viewer: BoxViewer

        async def slow_fetch(file_id: str, token: str) -> FileResource:
            await asyncio.sleep(0.01)
            seen_after_sleep.append(viewer.panel.content)
            return FileResource.from_dict({"id": file_id})

        client = _mock_client()
        client.fetch_file.side_effect = slow_fetch
        viewer = BoxViewer(client)

        # Act
        await asyncio.gather(
            viewer.fetch(_params("file_id=1&client_id=a&client_secret=b")),
            viewer.fetch(_params("file_id=2&client_secret=b")),
        )

        # Assert
        assert seen_after_sleep == [render_loading()]
        assert MISSING_CREDENTIALS in viewer.panel.content
        assert "file-id:1" not in viewer.panel.content


# ---------------------------------------------------------------------------
# Tests: validate_token
# ---------------------------------------------------------------------------


class TestValidateToken:
    async def test_returns_user(self) -> None:
        # Arrange
        client = _mock_client()
        client.get_current_user.return_value = BoxUser(id="7", name="Alice")
        viewer = BoxViewer(client)

        # Act
        user = await viewer.validate_token(_params("client_id=abc&client_secret=xyz"))

        # Assert
        assert user.name == "Alice"
        client.get_current_user.assert_awaited_once_with("tok")

    async def test_missing_secret_raises(self) -> None:
        viewer = BoxViewer(_mock_client())

        with pytest.raises(MissingInputError) as excinfo:
            await viewer.validate_token(_params("client_id=abc"))

        assert excinfo.value.parameter == "client_secret"


# ---------------------------------------------------------------------------
# Tests: end to end over a mock transport
# ---------------------------------------------------------------------------


class TestEndToEnd:
    async def test_token_then_file_then_render(self) -> None:
        # Arrange
        sent: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent.append(request)
            if request.url.path == "/oauth2/token":
                return httpx.Response(200, json={"access_token": "tok"})
            if request.url.path == "/2.0/files/42":
                return httpx.Response(
                    200, json={"id": "42", "name": "report.pdf", "size": 2048}
                )
            return httpx.Response(404, json={"message": "Not Found"})

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        viewer = BoxViewer(BoxClient(http_client=http))

        # Act
        markup = await viewer.fetch(_params("?" + FULL_QUERY))

        # Assert
        assert '<span class="metadata-name">Size (bytes):</span>' in markup
        assert '<span class="metadata-value">2 KB</span>' in markup
        assert '<span class="metadata-value">report.pdf</span>' in markup
        assert "<script" not in markup
        assert [request.url.path for request in sent] == ["/oauth2/token", "/2.0/files/42"]
        assert sent[1].headers["Authorization"] == "Bearer tok"
        await http.aclose()

    async def test_crafted_file_id_never_reaches_another_endpoint(self) -> None:
        # Arrange
        sent: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent.append(request)
            if request.url.path == "/oauth2/token":
                return httpx.Response(200, json={"access_token": "tok"})
            if request.url.path == "/2.0/users/me":
                return httpx.Response(200, json={"id": "7", "name": "Alice"})
            return httpx.Response(404, json={"message": "Not Found"})

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        viewer = BoxViewer(BoxClient(http_client=http))

        # Act
        markup = await viewer.fetch(
            _params("file_id=..%2Fusers%2Fme&client_id=a&client_secret=b")
        )

        # Assert
        assert sent[1].url.raw_path.startswith(b"/2.0/files/")
        assert "Alice" not in markup
        assert "Failed to fetch file metadata:" in markup
        await http.aclose()
