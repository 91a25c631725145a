"""Sample script: authenticate with client credentials and print file metadata.

Usage::

    # 1. Put BOX_CLIENT_ID / BOX_CLIENT_SECRET (and optionally BOX_FILE_ID)
    #    in a .env file.
    # 2. Run:
    #        python -m box_query_viewer.box.sample_fetch

The script will:
  1. Request an access token, trying each client-credentials grant shape.
  2. Fetch BOX_FILE_ID, or list the first page of files when it is unset.
  3. Log every formatted metadata row.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

logging.basicConfig(level=logging.INFO, format="%(levelname)s | %(message)s")
logger = logging.getLogger(__name__)


async def main() -> None:
    """Entry point for the sample fetch script."""
    # ------------------------------------------------------------------ #
    # 1. Load configuration from .env
    # ------------------------------------------------------------------ #
    load_dotenv()

    client_id = os.environ.get("BOX_CLIENT_ID", "")
    client_secret = os.environ.get("BOX_CLIENT_SECRET", "")
    file_id = os.environ.get("BOX_FILE_ID", "")

    if not client_id or not client_secret:
        logger.error("BOX_CLIENT_ID and BOX_CLIENT_SECRET must be set in .env")
        sys.exit(1)

    from box_query_viewer.box.client import BoxClient
    from box_query_viewer.box.errors import BoxViewerError, user_message
    from box_query_viewer.box.models import Credentials
    from box_query_viewer.render import metadata_rows

    async with BoxClient() as client:
        try:
            # ---------------------------------------------------------- #
            # 2. Authenticate
            # ---------------------------------------------------------- #
            token = await client.acquire_token(Credentials(client_id, client_secret))

            # ---------------------------------------------------------- #
            # 3. Fetch one file or list the first page
            # ---------------------------------------------------------- #
            if file_id:
                resources = [await client.fetch_file(file_id, token.access_token)]
            else:
                page = await client.list_files(token.access_token)
                resources = page.entries
                logger.info("Found %d file(s):", len(resources))
        except BoxViewerError as exc:
            logger.error("Request failed: %s", user_message(exc))
            sys.exit(1)

    for resource in resources:
        logger.info("-- %s", resource.name or resource.id)
        for _key, label, value in metadata_rows(resource):
            logger.info("  %s: %s", label, value)


if __name__ == "__main__":
    asyncio.run(main())
