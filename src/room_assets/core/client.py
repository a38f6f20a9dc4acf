"""HTTP client for the Pretalx API and resource downloads.

One ``PretalxClient`` is constructed per run and passed to the sync
engine; it owns a single ``requests.Session`` that is closed when the run
ends (use the client as a context manager).
"""

from __future__ import annotations

import logging
import os
import tempfile
from email.utils import formatdate, parsedate_to_datetime
from pathlib import Path
from typing import Any
from urllib.parse import quote

import requests
from pydantic import BaseModel, ValidationError

from .. import __version__
from ..errors import FetchError
from .models import Schedule, Submission

logger = logging.getLogger(__name__)

SUBMISSIONS_PAGE_LIMIT = 10000
_CHUNK_SIZE = 64 * 1024


class MirrorResult(BaseModel):
    """Outcome of a conditional download.

    Attributes:
        url: The requested URL.
        status_code: HTTP status, or 0 when no response was received or the
            file could not be written.
        reason: HTTP reason phrase or the error message.
    """

    url: str
    status_code: int
    reason: str = ""

    model_config = {"frozen": True}

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def not_modified(self) -> bool:
        return self.status_code == 304

    @property
    def status_line(self) -> str:
        if self.status_code:
            return f"{self.status_code} {self.reason}".rstrip()
        return self.reason


class PretalxClient:
    """Fetch schedules and submissions and mirror resource files.

    Args:
        base_url: Base URL of the Pretalx instance, without trailing slash.
        session: Optional pre-built session (tests pass a fake here).
        timeout: ``(connect, read)`` timeout applied to every request.
    """

    def __init__(
        self,
        base_url: str,
        session: requests.Session | None = None,
        timeout: tuple[float, float] = (10, 60),
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers["User-Agent"] = f"room-assets/{__version__}"
        return session

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> PretalxClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Pretalx API
    # ------------------------------------------------------------------

    def fetch_submissions(self, event: str) -> dict[str, Submission]:
        """Fetch all submissions of *event*, keyed by submission code.

        Follows ``next`` links until the last page.

        Raises:
            FetchError: If a page cannot be retrieved or parsed.
        """
        url: str | None = (
            f"{self.base_url}/api/events/{quote(event, safe='')}/submissions/"
        )
        params: dict[str, Any] | None = {"limit": SUBMISSIONS_PAGE_LIMIT}
        submissions: dict[str, Submission] = {}
        while url:
            page = self._get_json(url, params=params, what="submissions")
            for raw in page.get("results", []):
                try:
                    submission = Submission.model_validate(raw)
                except ValidationError as exc:
                    raise FetchError(
                        f"Invalid submission in event {event}: {exc}"
                    ) from exc
                submissions[submission.code] = submission
            url = page.get("next")
            # The next link already carries the query string.
            params = None
        logger.debug(
            "Fetched %d submissions for event %s", len(submissions), event
        )
        return submissions

    def fetch_schedule(self, event: str) -> Schedule:
        """Fetch the public schedule widget data of *event*.

        Raises:
            FetchError: If the schedule cannot be retrieved or parsed.
        """
        url = (
            f"{self.base_url}/{quote(event, safe='')}"
            "/schedule/widget/v2.json"
        )
        data = self._get_json(url, what="schedule")
        try:
            schedule = Schedule.model_validate(data)
        except ValidationError as exc:
            raise FetchError(
                f"Invalid schedule for event {event}: {exc}"
            ) from exc
        logger.debug(
            "Fetched schedule for event %s: %d rooms, %d talks",
            event,
            len(schedule.rooms),
            len(schedule.talks),
        )
        return schedule

    def _get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        what: str = "resource",
    ) -> dict[str, Any]:
        try:
            response = self.session.get(
                url, params=params, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise FetchError(f"Failed to retrieve {what}: {exc}") from exc
        if not response.ok:
            raise FetchError(
                f"Failed to retrieve {what}: "
                f"{response.status_code} {response.reason}"
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise FetchError(
                f"Failed to decode {what} from {url}: {exc}"
            ) from exc
        if not isinstance(data, dict):
            raise FetchError(
                f"Unexpected {what} payload from {url}: {type(data).__name__}"
            )
        return data

    # ------------------------------------------------------------------
    # Conditional download
    # ------------------------------------------------------------------

    def mirror(self, url: str, target: Path) -> MirrorResult:
        """Download *url* to *target* unless the local copy is current.

        Sends ``If-Modified-Since`` with the mtime of an existing *target*.
        Any status outside 2xx, ``304`` included, leaves the file untouched.
        A successful response is
        streamed into a temporary file next to *target* and moved into
        place atomically; the file's mtime is then set from the
        ``Last-Modified`` header when the server sends one, so the next run
        asks the server about the same point in time.

        Never raises for transport or write failures; they are reported as
        a ``MirrorResult`` with ``status_code`` 0.
        """
        headers: dict[str, str] = {}
        if target.exists():
            headers["If-Modified-Since"] = formatdate(
                target.stat().st_mtime, usegmt=True
            )

        try:
            response = self.session.get(
                url, headers=headers, timeout=self.timeout, stream=True
            )
        except requests.RequestException as exc:
            return MirrorResult(url=url, status_code=0, reason=str(exc))

        try:
            if not 200 <= response.status_code < 300:
                return MirrorResult(
                    url=url,
                    status_code=response.status_code,
                    reason=response.reason or "",
                )
            self._write_atomically(response, target)
        except (requests.RequestException, OSError) as exc:
            return MirrorResult(url=url, status_code=0, reason=str(exc))
        finally:
            response.close()

        return MirrorResult(
            url=url,
            status_code=response.status_code,
            reason=response.reason or "",
        )

    def _write_atomically(
        self, response: requests.Response, target: Path
    ) -> None:
        fd, tmp_path = tempfile.mkstemp(
            dir=str(target.parent), prefix=".", suffix=".part"
        )
        try:
            with os.fdopen(fd, "wb") as fh:
                for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                    if chunk:
                        fh.write(chunk)
            last_modified = _parse_http_date(
                response.headers.get("Last-Modified")
            )
            if last_modified is not None:
                os.utime(tmp_path, (last_modified, last_modified))
            os.replace(tmp_path, target)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise


def _parse_http_date(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return parsedate_to_datetime(value).timestamp()
    except (TypeError, ValueError):
        logger.debug("Ignoring unparsable Last-Modified header %r", value)
        return None
