"""Query parameter reader for the viewer page."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

logger = logging.getLogger(__name__)

FILE_ID = "file_id"
CLIENT_ID = "client_id"
CLIENT_SECRET = "client_secret"
AUTH_CODE = "auth_code"

# Never written to a log sink in clear text.
SENSITIVE_KEYS = frozenset({CLIENT_SECRET, AUTH_CODE, "code", "access_token"})
REDACTED = "***"


class QueryParams(Mapping[str, str]):
    """Read-only mapping of query string keys to their last-seen value.

    Keys are case-sensitive and values are never coerced: everything stays
    a string, blank values included.
    """

    def __init__(self, values: Mapping[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(values or {})

    @classmethod
    def from_query_string(cls, query: str) -> QueryParams:
        """Parse a raw query string; a leading ``?`` is ignored."""
        pairs = parse_qsl(query.lstrip("?"), keep_blank_values=True)
        # dict() keeps the last value of duplicated keys.
        return cls(dict(pairs))

    @classmethod
    def from_url(cls, url: str) -> QueryParams:
        return cls.from_query_string(urlsplit(url).query)

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"QueryParams({self.redacted()!r})"

    def has(self, key: str) -> bool:
        return key in self._values

    def as_dict(self) -> dict[str, str]:
        return dict(self._values)

    def to_query_string(self) -> str:
        return urlencode(self._values)

    def redacted(self) -> dict[str, str]:
        """Copy of the parameters with secrets masked, for logging."""
        return {
            key: REDACTED if key in SENSITIVE_KEYS and value else value
            for key, value in self._values.items()
        }


def log_parameters(params: QueryParams) -> None:
    """Log every parameter on its own line, secrets masked."""
    logger.info("Box Integration App - Query Parameters:")
    if not params:
        logger.info("No query parameters found")
        return
    for key, value in params.redacted().items():
        logger.info("%s: %s", key, value)


def redact_query_string(query: str) -> str:
    """Mask secret values in a raw query string.

    Values that are themselves URLs (the copy endpoint's ``url=``) have
    their own query redacted as well.
    """
    pairs = []
    for key, value in parse_qsl(query, keep_blank_values=True):
        if key in SENSITIVE_KEYS and value:
            value = REDACTED
        elif "://" in value:
            value = redact_url(value)
        pairs.append((key, value))
    return urlencode(pairs, safe="*")


def redact_url(url: str) -> str:
    """Return *url* (absolute, or a path with a query) with secrets masked."""
    parts = urlsplit(url)
    if not parts.query:
        return url
    return urlunsplit(parts._replace(query=redact_query_string(parts.query)))


class AccessLogRedactor(logging.Filter):
    """Mask secrets in the request target of uvicorn access log records.

    uvicorn logs ``(client, method, path_with_query, http_version, status)``
    as the record arguments; only the third one is rewritten.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        args = record.args
        if isinstance(args, tuple) and len(args) >= 3 and isinstance(args[2], str):
            record.args = (*args[:2], redact_url(args[2]), *args[3:])
        return True


def install_access_log_redaction(logger_name: str = "uvicorn.access") -> None:
    """Attach an :class:`AccessLogRedactor` to *logger_name* once."""
    access_logger = logging.getLogger(logger_name)
    if not any(isinstance(f, AccessLogRedactor) for f in access_logger.filters):
        access_logger.addFilter(AccessLogRedactor())
