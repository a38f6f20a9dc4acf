"""Resource file synchronisation for a single session directory.

Each resource of a submission is mirrored into the session directory under
its sanitized file name.  Download problems are counted and logged but
never abort the run.
"""

from __future__ import annotations

import logging
import posixpath
from pathlib import Path
from urllib.parse import unquote, urlsplit, urlunsplit

from room_assets.core.client import PretalxClient
from room_assets.core.models import Submission
from room_assets.sync.models import SyncStatus
from room_assets.sync.sanitize import sanitize_file_name

logger = logging.getLogger(__name__)

_ABSOLUTE_SCHEMES = ("http", "https")


def resolve_resource_url(base_url: str, resource: str) -> str:
    """Return an absolute download URL for *resource*.

    Absolute ``http(s)`` URLs are returned unchanged.  Anything else is
    appended to the path of *base_url*, with ``.`` and ``..`` segments
    normalised, so ``/media/x.pdf`` on ``https://host/pretalx`` becomes
    ``https://host/pretalx/media/x.pdf``.
    """
    parts = urlsplit(resource)
    if parts.scheme in _ABSOLUTE_SCHEMES:
        return resource

    base = urlsplit(base_url)
    joined = base.path.rstrip("/") + "/" + parts.path.lstrip("/")
    path = posixpath.normpath(joined)
    if joined.endswith("/") and not path.endswith("/"):
        path += "/"
    # normpath keeps a leading double slash
    path = "/" + path.lstrip("/")
    return urlunsplit((base.scheme, base.netloc, path, parts.query, ""))


def resource_file_name(url: str) -> str:
    """Decoded last path segment of *url*; empty if the path ends in ``/``."""
    return unquote(urlsplit(url).path.split("/")[-1])


class ResourceSynchronizer:
    """Mirror submission resources into session directories.

    Args:
        client: Client used for the conditional downloads.
        base_url: Base URL relative resource paths are resolved against.
    """

    def __init__(self, client: PretalxClient, base_url: str) -> None:
        self.client = client
        self.base_url = base_url

    def sync_resources(
        self, session_dir: Path, submission: Submission
    ) -> SyncStatus:
        """Mirror every resource of *submission* into *session_dir*.

        Returns a status with only the resource counters set.
        """
        status = SyncStatus()
        for entry in submission.resources:
            url = resolve_resource_url(self.base_url, entry.resource)
            filename = resource_file_name(url)
            if not filename:
                logger.error(
                    "Failed to extract usable file name from asset URL %s",
                    url,
                )
                status.failed_resources_count += 1
                continue

            target_file = session_dir / sanitize_file_name(filename)
            is_new = not target_file.is_file()

            result = self.client.mirror(url, target_file)
            if result.not_modified:
                logger.debug("Resource %s is up to date", target_file)
            elif result.is_success:
                if is_new:
                    status.new_resources_count += 1
                    logger.info("Downloaded new resource %s", target_file)
                else:
                    status.updated_resources_count += 1
                    logger.info("Updated resource %s", target_file)
            else:
                logger.error(
                    'Failed to download asset %s from submission "%s" '
                    "(code: %s): %s",
                    entry.resource,
                    submission.title,
                    submission.code,
                    result.status_line,
                )
                status.failed_resources_count += 1
        return status
