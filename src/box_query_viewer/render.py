"""HTML rendering of query parameters and Box file metadata.

Everything here is pure string formatting.  Upstream and user supplied
text is escaped exactly once, at the point where it is placed into markup;
the ``format_*`` helpers return plain text.
"""

from __future__ import annotations

import html
import json
from datetime import datetime
from typing import TYPE_CHECKING, Any

from box_query_viewer.clipboard import (
    COPY_FEEDBACK_SECONDS,
    CURRENT_URL_KEY,
    FILE_ID_PREFIX,
    VALUE_PREFIX,
)

if TYPE_CHECKING:
    from box_query_viewer.box.models import FileListPage, FileResource
    from box_query_viewer.params import QueryParams

SIZE_UNITS: tuple[str, ...] = ("Bytes", "KB", "MB", "GB", "TB")
_KILO = 1024

METADATA_FIELDS: tuple[tuple[str, str], ...] = (
    ("id", "File ID"),
    ("name", "File Name"),
    ("type", "Type"),
    ("size", "Size (bytes)"),
    ("created_at", "Created At"),
    ("modified_at", "Modified At"),
    ("description", "Description"),
    ("path_collection", "Path Collection"),
    ("owned_by", "Owned By"),
    ("shared_link", "Shared Link"),
    ("parent", "Parent Folder"),
    ("item_status", "Item Status"),
    ("version_number", "Version Number"),
    ("comment_count", "Comment Count"),
    ("permissions", "Permissions"),
    ("tags", "Tags"),
    ("lock", "Lock Status"),
    ("extension", "Extension"),
    ("is_package", "Is Package"),
    ("expires_at", "Expires At"),
    ("representations", "Representations"),
    ("classification", "Classification"),
    ("watermark_info", "Watermark Info"),
    ("is_externally_owned", "Is Externally Owned"),
    ("has_collaborations", "Has Collaborations"),
    ("metadata", "Metadata"),
    ("fields", "Fields"),
    ("etag", "ETag"),
    ("sequence_id", "Sequence ID"),
    ("sha1", "SHA1"),
    ("file_version", "File Version"),
)

NO_PARAMETERS = "No query parameters found in the URL."
NO_METADATA = "No metadata available for this file."
NO_FILES = "No files found."
FETCH_LABEL = "\U0001f50d Fetch File Metadata"
LOADING_LABEL = "⏳ Fetching..."


def escape_html(text: str) -> str:
    """Replace ``& < > " '`` with their entity forms."""
    return html.escape(text, quote=True)


def format_file_size(num_bytes: int) -> str:
    """Format a byte count with the largest fitting unit.

    Two decimals at most, trailing zeros dropped.  Counts of 1024 TB and
    above stay in TB.
    """
    if num_bytes < 0:
        msg = f"Byte count must be non-negative, got {num_bytes}"
        raise ValueError(msg)
    if num_bytes == 0:
        return "0 Bytes"

    # floor(log1024(n)) on integers, capped at the last unit.
    index = 0
    while index < len(SIZE_UNITS) - 1 and num_bytes >= _KILO ** (index + 1):
        index += 1
    scaled = num_bytes / _KILO**index
    text = f"{scaled:.2f}".rstrip("0").rstrip(".")
    return f"{text} {SIZE_UNITS[index]}"


def _format_date(value: str) -> str:
    try:
        moment = datetime.fromisoformat(value)
    except ValueError:
        return value
    if moment.tzinfo is not None:
        moment = moment.astimezone()
    return moment.strftime("%c")


def format_field_value(key: str, value: Any) -> str:
    """Return the display text of one metadata field."""
    if "_at" in key and isinstance(value, str):
        return _format_date(value)
    if key == "size" and isinstance(value, int) and not isinstance(value, bool):
        return format_file_size(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, indent=2)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def metadata_rows(resource: FileResource) -> list[tuple[str, str, str]]:
    """Return ``(key, label, display value)`` for every present field.

    Absent and null fields are skipped in every view.
    """
    rows = []
    for key, label in METADATA_FIELDS:
        value = resource.get(key)
        if value is None:
            continue
        rows.append((key, label, format_field_value(key, value)))
    return rows


# ----------------------------------------------------------------------
# Fragments
# ----------------------------------------------------------------------


def _copy_button(copy_key: str) -> str:
    return (
        f'<button class="copy-button" data-copy-key="{escape_html(copy_key)}">'
        "Copy</button>"
    )


def _row(css: str, label: str, value: str, copy_key: str) -> str:
    return (
        f'<div class="{css}-item">'
        f'<span class="{css}-name">{escape_html(label)}:</span>'
        f'<span class="{css}-value">{escape_html(value)}</span>'
        f"{_copy_button(copy_key)}"
        "</div>"
    )


def render_parameters(params: QueryParams) -> str:
    if not params:
        return f'<div class="no-parameters">{NO_PARAMETERS}</div>'
    return "".join(_row("parameter", key, value, key) for key, value in params.items())


def _metadata_items(resource: FileResource) -> str:
    items = []
    for key, label, display in metadata_rows(resource):
        copy_key = f"{FILE_ID_PREFIX}{display}" if key == "id" else f"{VALUE_PREFIX}{display}"
        items.append(_row("metadata", label, display, copy_key))
    return "".join(items)


def render_metadata(resource: FileResource) -> str:
    body = _metadata_items(resource)
    if not body:
        return f'<div class="loading">{NO_METADATA}</div>'
    return body


def render_file_list(page: FileListPage) -> str:
    if not page.entries:
        return f'<div class="loading">{NO_FILES}</div>'
    cards = []
    for resource in page.entries:
        title = escape_html(resource.name or resource.id)
        cards.append(
            f'<div class="file-card"><h3 class="file-name">{title}</h3>'
            f"{_metadata_items(resource)}</div>"
        )
    count = len(page.entries)
    header = f'<div class="file-count">Showing {count} file{"" if count == 1 else "s"}</div>'
    return header + "".join(cards)


def render_error(message: str) -> str:
    return f'<div class="error">{escape_html(message)}</div>'


def render_loading(text: str = "Fetching file metadata from Box API...") -> str:
    return f'<div class="loading">{escape_html(text)}</div>'


def render_page(params: QueryParams, page_url: str, *, now: datetime | None = None) -> str:
    """Render the complete parameters page."""
    timestamp = (now or datetime.now()).strftime("%c")
    feedback_ms = int(COPY_FEEDBACK_SECONDS * 1000)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>Box Integration App</title>
<link rel="stylesheet" href="/static/style.css">
</head>
<body data-copy-feedback-ms="{feedback_ms}">
<main class="container">
<h1>Box Integration App</h1>
<section class="url-section">
<h2>Current URL</h2>
<span id="current-url">{escape_html(page_url)}</span>
{_copy_button(CURRENT_URL_KEY)}
<div id="timestamp">Last updated: {escape_html(timestamp)}</div>
</section>
<section>
<h2>Query Parameters</h2>
<div id="parameters-container">{render_parameters(params)}</div>
</section>
<section>
<h2>File Metadata</h2>
<button id="fetch-metadata-btn" data-idle-label="{escape_html(FETCH_LABEL)}" \
data-loading-label="{escape_html(LOADING_LABEL)}">{escape_html(FETCH_LABEL)}</button>
<div id="metadata-container"></div>
</section>
</main>
<script src="/static/app.js"></script>
</body>
</html>
"""
