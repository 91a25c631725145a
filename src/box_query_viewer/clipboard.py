"""Resolution of copy-button keys to the text placed on the clipboard.

The browser performs the actual clipboard write (``static/app.js``); the
server decides what text a key stands for.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from box_query_viewer.box.errors import ClipboardError

if TYPE_CHECKING:
    from box_query_viewer.params import QueryParams

logger = logging.getLogger(__name__)

CURRENT_URL_KEY = "current-url"
FILE_ID_PREFIX = "file-id:"
VALUE_PREFIX = "value:"

# How long the "Copied!" label stays before the button reverts.
COPY_FEEDBACK_SECONDS = 1.0


def resolve_copy_text(key: str, params: QueryParams, page_url: str) -> str:
    """Return the literal text a copy button with *key* should copy.

    Raises
    ------
    ClipboardError
        If the key resolves to nothing.
    """
    if key == CURRENT_URL_KEY:
        text = page_url
    elif key.startswith(FILE_ID_PREFIX):
        text = key[len(FILE_ID_PREFIX):]
    elif key.startswith(VALUE_PREFIX):
        text = key[len(VALUE_PREFIX):]
    else:
        text = params.get(key, "")

    if not text:
        logger.error("Failed to copy text: nothing to copy for key %r", key)
        msg = "Failed to copy to clipboard"
        raise ClipboardError(msg)
    return text
