"""Shared pytest fixtures for room-assets tests.

HTTP is never hit in the default run: ``FakeSession`` stands in for
``requests.Session`` and ``FakePretalx`` serves schedule, submission and
resource payloads from memory, honouring ``If-Modified-Since``.
"""

from __future__ import annotations

from email.utils import formatdate, parsedate_to_datetime
from pathlib import Path
from typing import Any

import pytest

from room_assets.config import Config
from room_assets.core.client import PretalxClient

PRETALX_URL = "https://pretalx.example.org"
EVENT = "sotm2025"
LAST_MODIFIED = 1_750_000_000.0

_REASONS = {
    200: "OK",
    304: "Not Modified",
    404: "Not Found",
    500: "Internal Server Error",
}

_ENV_VARS = (
    "PRETALX_URL",
    "PRETALX_EVENTS",
    "PRETALX_ROOMS",
    "PRETALX_LANGUAGE",
    "ROOM_ASSETS_TARGET_DIR",
    "ROOM_ASSETS_LOCALE",
    "ROOM_ASSETS_DAY_PATTERN",
    "ROOM_ASSETS_SESSION_PATTERN",
    "ROOM_ASSETS_CONFIG",
    "NEXTCLOUD_USER",
    "NEXTCLOUD_PASSWORD",
    "NEXTCLOUD_FOLDER_URL",
    "NEXTCLOUD_SILENT",
    "LOG_LEVEL",
)


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live Pretalx instance",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live Pretalx instance"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep the developer's env vars and config files out of the tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)


# ---------------------------------------------------------------------------
# HTTP fakes
# ---------------------------------------------------------------------------


class FakeResponse:
    """Just enough of ``requests.Response`` for the client."""

    def __init__(
        self,
        status_code: int = 200,
        *,
        json_data: Any = None,
        body: bytes = b"",
        headers: dict[str, str] | None = None,
        reason: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.reason = reason if reason is not None else _REASONS.get(status_code, "")
        self.headers = headers or {}
        self.body = body
        self.closed = False
        self._json = json_data

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if self._json is None:
            raise ValueError("No JSON object could be decoded")
        return self._json

    def iter_content(self, chunk_size: int = 1):
        for start in range(0, len(self.body), chunk_size):
            yield self.body[start : start + chunk_size]

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """In-memory replacement for ``requests.Session``.

    ``json_routes`` answer with a JSON payload, ``files`` with a body and a
    ``Last-Modified`` header, and ``failures`` with a status code or by
    raising the given exception.  Unknown URLs answer 404.
    """

    def __init__(self) -> None:
        self.json_routes: dict[str, Any] = {}
        self.files: dict[str, tuple[bytes, float]] = {}
        self.failures: dict[str, int | Exception] = {}
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def add_json(self, url: str, payload: Any) -> None:
        self.json_routes[url] = payload

    def add_file(
        self, url: str, body: bytes, last_modified: float = LAST_MODIFIED
    ) -> None:
        self.files[url] = (body, float(int(last_modified)))

    def fail(self, url: str, failure: int | Exception) -> None:
        self.failures[url] = failure

    def urls(self) -> list[str]:
        return [call["url"] for call in self.calls]

    def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: Any = None,
        stream: bool = False,
    ) -> FakeResponse:
        headers = dict(headers or {})
        self.calls.append(
            {"url": url, "params": params, "headers": headers, "timeout": timeout}
        )

        failure = self.failures.get(url)
        if isinstance(failure, Exception):
            raise failure
        if failure is not None:
            return FakeResponse(failure)

        if url in self.json_routes:
            return FakeResponse(200, json_data=self.json_routes[url])

        if url in self.files:
            body, last_modified = self.files[url]
            since = headers.get("If-Modified-Since")
            if since and parsedate_to_datetime(since).timestamp() >= last_modified:
                return FakeResponse(304)
            return FakeResponse(
                200,
                body=body,
                headers={"Last-Modified": formatdate(last_modified, usegmt=True)},
            )

        return FakeResponse(404)

    def close(self) -> None:
        self.closed = True


class FakePretalx:
    """A Pretalx instance with rooms, talks and resources held in memory.

    Every mutation republishes the schedule and submission endpoints of the
    affected event on ``session``.  Tests that edit ``rooms`` or ``talks``
    directly call ``publish()`` afterwards.
    """

    def __init__(self, base_url: str = PRETALX_URL) -> None:
        self.base_url = base_url
        self.session = FakeSession()
        self.rooms: dict[str, list[dict[str, Any]]] = {}
        self.talks: dict[str, list[dict[str, Any]]] = {}
        self.submissions: dict[str, dict[str, dict[str, Any]]] = {}

    def add_room(
        self, room_id: int, name: str | dict[str, str], event: str = EVENT
    ) -> None:
        if isinstance(name, str):
            name = {"en": name}
        self.rooms.setdefault(event, []).append({"id": room_id, "name": name})
        self.publish(event)

    def add_talk(
        self,
        code: str,
        title: str,
        room: int,
        start: str,
        resources: tuple[str, ...] = ("slides.pdf",),
        event: str = EVENT,
        submission: bool = True,
    ) -> None:
        """Schedule *code* and serve one file per name in *resources*."""
        self.talks.setdefault(event, []).append(
            {"code": code, "title": title, "room": room, "start": start}
        )
        if submission:
            paths = []
            for name in resources:
                path = self.resource_path(code, name, event)
                self.session.add_file(
                    self.base_url + path, f"{code}:{name}".encode()
                )
                paths.append({"resource": path, "description": name})
            self.submissions.setdefault(event, {})[code] = {
                "code": code,
                "title": title,
                "resources": paths,
            }
        self.publish(event)

    def add_break(self, room: int, start: str, event: str = EVENT) -> None:
        self.talks.setdefault(event, []).append(
            {"title": {"en": "Coffee"}, "room": room, "start": start}
        )
        self.publish(event)

    @staticmethod
    def resource_path(code: str, name: str, event: str = EVENT) -> str:
        return f"/media/{event}/submissions/{code}/resources/{name}"

    def schedule_url(self, event: str = EVENT) -> str:
        return f"{self.base_url}/{event}/schedule/widget/v2.json"

    def submissions_url(self, event: str = EVENT) -> str:
        return f"{self.base_url}/api/events/{event}/submissions/"

    def publish(self, event: str = EVENT) -> None:
        self.session.add_json(
            self.schedule_url(event),
            {
                "rooms": self.rooms.get(event, []),
                "talks": self.talks.get(event, []),
            },
        )
        self.session.add_json(
            self.submissions_url(event),
            {
                "count": len(self.submissions.get(event, {})),
                "next": None,
                "results": list(self.submissions.get(event, {}).values()),
            },
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def pretalx() -> FakePretalx:
    """Pretalx with one room, ``Main Hall`` (id 1), and no talks yet."""
    server = FakePretalx()
    server.add_room(1, "Main Hall")
    return server


@pytest.fixture
def client(pretalx):
    """PretalxClient talking to the in-memory ``pretalx`` fixture."""
    with PretalxClient(PRETALX_URL, session=pretalx.session) as pretalx_client:
        yield pretalx_client


@pytest.fixture
def target_dir(tmp_path) -> Path:
    directory = tmp_path / "assets"
    directory.mkdir()
    return directory


@pytest.fixture
def make_config(target_dir):
    """Factory for a valid Config pointing at ``target_dir``."""

    def _make(**overrides: Any) -> Config:
        values: dict[str, Any] = {
            "events": [EVENT],
            "target_dir": str(target_dir),
            "pretalx_url": PRETALX_URL,
            "day_strftime_pattern": "%Y-%m-%d",
        }
        values.update(overrides)
        return Config(**values)

    return _make


@pytest.fixture
def config(make_config) -> Config:
    return make_config()
