"""FastAPI web application echoing query parameters and Box file metadata."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from pathlib import Path

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse

from box_query_viewer.box.client import BoxClient
from box_query_viewer.box.errors import (
    BoxViewerError,
    ClipboardError,
    ErrorKind,
    MissingInputError,
    user_message,
)
from box_query_viewer.clipboard import resolve_copy_text
from box_query_viewer.config import ViewerConfig, load_config
from box_query_viewer.params import QueryParams, install_access_log_redaction, log_parameters
from box_query_viewer.render import render_page
from box_query_viewer.viewer import BoxViewer, ViewerMode

load_dotenv()

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"
_STATIC_FILES = {"app.js": "text/javascript", "style.css": "text/css"}


def _params(request: Request) -> QueryParams:
    return QueryParams.from_query_string(request.url.query)


def create_app(
    config: ViewerConfig | None = None,
    client_factory: Callable[[], BoxClient] | None = None,
) -> FastAPI:
    """Build the application.

    Parameters
    ----------
    config:
        Viewer settings.  Defaults to :func:`load_config`.
    client_factory:
        Callable returning a fresh :class:`BoxClient` per request.  Tests
        pass a factory wired to ``httpx.MockTransport``.
    """
    config = config or load_config()
    # The page sends client_secret in the query of /metadata and /api/copy-text.
    install_access_log_redaction()

    def default_factory() -> BoxClient:
        return BoxClient(
            api_base=config.api_base,
            token_url=config.token_url,
            timeout=config.http_timeout,
        )

    factory = client_factory or default_factory

    async def get_viewer() -> AsyncIterator[BoxViewer]:
        async with factory() as client:
            yield BoxViewer(client, mode=config.mode, grant_flow=config.grant_flow)

    app = FastAPI(title="Box Integration App")
    app.state.config = config

    @app.get("/", response_class=HTMLResponse)
    async def index(request: Request) -> HTMLResponse:
        """Serve the parameters page."""
        params = _params(request)
        log_parameters(params)
        return HTMLResponse(render_page(params, str(request.url)))

    @app.get("/static/{filename}", response_model=None)
    async def static_file(filename: str) -> FileResponse | JSONResponse:
        media_type = _STATIC_FILES.get(filename)
        if media_type is None:
            return JSONResponse({"error": "Not found"}, status_code=404)
        return FileResponse(STATIC_DIR / filename, media_type=media_type)

    @app.get("/metadata", response_class=HTMLResponse)
    async def metadata(
        request: Request, viewer: BoxViewer = Depends(get_viewer)
    ) -> HTMLResponse:
        """Run the fetch action and return the replacement container markup."""
        return HTMLResponse(await viewer.fetch(_params(request)))

    @app.get("/files", response_class=HTMLResponse)
    async def files(
        request: Request, viewer: BoxViewer = Depends(get_viewer)
    ) -> HTMLResponse:
        """List the first page of files regardless of the configured mode."""
        return HTMLResponse(await viewer.fetch(_params(request), mode=ViewerMode.LIST))

    @app.get("/api/parameters")
    async def parameters(request: Request) -> JSONResponse:
        """Return the query parameters as a JSON object."""
        return JSONResponse(_params(request).as_dict())

    @app.get("/api/me")
    async def me(request: Request, viewer: BoxViewer = Depends(get_viewer)) -> JSONResponse:
        """Validate the credentials in the query string against ``/users/me``."""
        try:
            user = await viewer.validate_token(_params(request))
        except MissingInputError as exc:
            return JSONResponse({"error": exc.message}, status_code=400)
        except BoxViewerError as exc:
            logger.exception("Failed to validate Box token")
            status = 401 if exc.kind is ErrorKind.AUTHENTICATION else 502
            return JSONResponse({"error": user_message(exc)}, status_code=status)
        return JSONResponse({"id": user.id, "name": user.name, "login": user.login})

    @app.get("/api/copy-text")
    async def copy_text(key: str = "", url: str = "") -> JSONResponse:
        """Resolve a copy-button key against the page URL it was rendered for."""
        try:
            text = resolve_copy_text(key, QueryParams.from_url(url), url)
        except ClipboardError as exc:
            return JSONResponse({"error": exc.message}, status_code=404)
        return JSONResponse({"text": text})

    return app


app = create_app()


def start() -> None:
    """Run the web application with uvicorn (used by the console script)."""
    import uvicorn

    config: ViewerConfig = app.state.config
    logging.basicConfig(level=config.log_level, format="%(levelname)s | %(message)s")
    uvicorn.run(
        "box_query_viewer.app:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )


if __name__ == "__main__":
    start()
