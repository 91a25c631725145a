"""Data models for Box OAuth tokens, file resources and listings."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

FILE_LIST_LIMIT = 100

# Field selection sent with the file listing request.
FILE_LIST_FIELDS: tuple[str, ...] = (
    "id",
    "type",
    "name",
    "size",
    "extension",
    "created_at",
    "modified_at",
    "owned_by",
    "parent",
    "shared_link",
)


@dataclass(frozen=True)
class Credentials:
    """Box application client credentials taken from the query string."""

    client_id: str
    client_secret: str = field(repr=False)


class GrantShape(enum.Enum):
    """Form body variants accepted by the Box token endpoint."""

    CLIENT_CREDENTIALS = "client_credentials"
    CLIENT_CREDENTIALS_ENTERPRISE = "client_credentials_enterprise"
    AUTHORIZATION_CODE = "authorization_code"

    def form_body(
        self, credentials: Credentials, auth_code: str | None = None
    ) -> dict[str, str]:
        """Return the form-encoded fields for this grant shape."""
        if self is GrantShape.AUTHORIZATION_CODE:
            if not auth_code:
                msg = "An authorization code is required for the authorization_code grant."
                raise ValueError(msg)
            return {
                "grant_type": "authorization_code",
                "code": auth_code,
                "client_id": credentials.client_id,
                "client_secret": credentials.client_secret,
            }

        body = {
            "grant_type": "client_credentials",
            "client_id": credentials.client_id,
            "client_secret": credentials.client_secret,
        }
        if self is GrantShape.CLIENT_CREDENTIALS_ENTERPRISE:
            body["box_subject_type"] = "enterprise"
        return body


@dataclass(frozen=True)
class TokenResponse:
    """Parsed body of a successful token request."""

    access_token: str = field(repr=False)
    token_type: str | None = None
    expires_in: int | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenResponse:
        return cls(
            access_token=str(data["access_token"]),
            token_type=data.get("token_type"),
            expires_in=data.get("expires_in"),
            raw=dict(data),
        )


@dataclass(frozen=True)
class FileResource:
    """A Box file record, kept verbatim as returned by the API.

    Only ``id`` is guaranteed; every other field is optional and looked up
    through :meth:`get`.
    """

    id: str
    fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileResource:
        return cls(id=str(data["id"]), fields=dict(data))

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)

    @property
    def name(self) -> str | None:
        return self.fields.get("name")

    @property
    def size(self) -> int | None:
        return self.fields.get("size")


@dataclass(frozen=True)
class FileListPage:
    """First page of a file listing; pagination metadata is dropped."""

    entries: list[FileResource] = field(default_factory=list)
    total_count: int | None = None

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class BoxUser:
    """Identity returned by ``GET /users/me``."""

    id: str
    name: str | None = None
    login: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BoxUser:
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name"),
            login=data.get("login"),
        )
