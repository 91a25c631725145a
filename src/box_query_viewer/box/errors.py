"""Typed errors raised by the Box client and viewer.

Every failure carries its classification plus the upstream status code,
error token and description, so that :func:`user_message` can map it to
user-facing text without inspecting free-text messages.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from box_query_viewer.box.models import GrantShape

_SUBJECT_ID_TOKEN = "box_subject_id"


class ErrorKind(enum.Enum):
    """Classification of everything that can go wrong in one action."""

    MISSING_INPUT = "missing_input"
    AUTHENTICATION = "authentication"
    RESOURCE_ACCESS = "resource_access"
    CLIPBOARD = "clipboard"


class BoxViewerError(Exception):
    """Base error with structured upstream details."""

    kind: ErrorKind = ErrorKind.RESOURCE_ACCESS

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
        description: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.description = description


class MissingInputError(BoxViewerError):
    """A required query parameter is absent; no request was sent."""

    kind = ErrorKind.MISSING_INPUT

    def __init__(self, message: str, parameter: str) -> None:
        super().__init__(message)
        self.parameter = parameter


class ClipboardError(BoxViewerError):
    """Nothing could be resolved for a copy request."""

    kind = ErrorKind.CLIPBOARD


@dataclass(frozen=True)
class TokenAttemptFailure:
    """One rejected token request."""

    grant: GrantShape
    status_code: int | None
    error_code: str | None = None
    description: str | None = None


class BoxAuthError(BoxViewerError):
    """The token endpoint rejected every grant shape that was tried.

    The message and structured fields describe the last attempt; every
    failed attempt, in order, is kept on ``attempts``.
    """

    kind = ErrorKind.AUTHENTICATION

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
        description: str | None = None,
        attempts: list[TokenAttemptFailure] | None = None,
    ) -> None:
        super().__init__(
            message,
            status_code=status_code,
            error_code=error_code,
            description=description,
        )
        self.attempts = list(attempts or [])


class BoxApiError(BoxViewerError):
    """A Box resource endpoint returned a non-2xx response."""

    kind = ErrorKind.RESOURCE_ACCESS


def user_message(error: BoxViewerError) -> str:
    """Map a structured error to the text shown in the page.

    Known upstream patterns get actionable guidance; anything else falls
    back to the error's own message.
    """
    if error.kind in (ErrorKind.MISSING_INPUT, ErrorKind.CLIPBOARD):
        return error.message

    tokens = (error.error_code or "", error.description or "")
    if any(_SUBJECT_ID_TOKEN in token for token in tokens):
        return (
            "Authentication error: Please check your Box application configuration. "
            "The app may need enterprise access or different authentication settings."
        )
    if error.status_code == 401:
        return (
            "Authentication failed: Please verify your client_id and "
            "client_secret are correct."
        )
    if error.status_code == 403:
        return (
            "Access denied: The application may not have permission to access "
            "this file or the Box API."
        )
    if error.status_code == 404:
        return (
            "File not found: The specified file_id does not exist or is not "
            "accessible."
        )
    return error.message
