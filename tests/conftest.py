"""Shared test fixtures for urlocal.

Provides an isolated XDG environment, a scripted HTTP origin served
through :class:`httpx.MockTransport`, a controllable clock, a recording
sleep, and a ready-made :class:`~urlocal.cache.engine.CoherenceEngine`
wired to all of them.  These fixtures are automatically discovered by
pytest and available to all test modules without explicit imports.
"""

from __future__ import annotations

from collections import defaultdict, deque
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Union

import httpx
import pytest

from urlocal.api import reset_engine, set_engine
from urlocal.cache.engine import CoherenceEngine
from urlocal.models import CacheSettings
from urlocal.output import OutputManager, reset_output, set_output


START = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_globals_between_tests() -> None:
    """Install a quiet, colourless OutputManager and drop the shared engine.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time, and the process-wide engine caches the cache root, so
    both are reset after every test.
    """
    set_output(OutputManager(no_color=True, quiet=True))
    yield
    reset_output()
    reset_engine()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration and cache to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_CACHE_HOME to subdirectories of tmp_path,
    forces XDG path resolution, and clears all URLOCAL_* environment
    variables.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("urlocal.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    for var in ["URLOCAL_CACHE_DIR", "URLOCAL_CHECK_INTERVAL"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingSleep:
    """Stand-in for ``time.sleep`` that records the requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeps() -> RecordingSleep:
    return RecordingSleep()


# ---------------------------------------------------------------------------
# Scripted origin server
# ---------------------------------------------------------------------------


class FailingStream(httpx.SyncByteStream):
    """Response body that breaks after the first chunk."""

    def __iter__(self):
        yield b"partial"
        raise httpx.ReadError("connection reset while reading body")


Scripted = Union[httpx.Response, Exception]


class Origin:
    """Queue of canned responses per URL, recording every request received.

    Each request to a URL consumes the next queued response for it; a
    request with nothing queued fails the test.

    Example::

        origin.reply("https://example.test/a.json", 200, b"{}", etag='"v1"')
        origin.fail("https://example.test/a.json", httpx.ConnectError("refused"))
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._queue: dict[str, deque[Scripted]] = defaultdict(deque)

    def reply(
        self,
        url: str,
        status: int = 200,
        content: bytes = b"",
        etag: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        all_headers = dict(headers or {})
        if etag is not None:
            all_headers["ETag"] = etag
        self._queue[url].append(httpx.Response(status, headers=all_headers, content=content))

    def reply_with_broken_body(self, url: str, etag: Optional[str] = None) -> None:
        headers = {"ETag": etag} if etag is not None else {}
        self._queue[url].append(httpx.Response(200, headers=headers, stream=FailingStream()))

    def reply_with(self, url: str, response: httpx.Response) -> None:
        self._queue[url].append(response)

    def fail(self, url: str, exc: Exception) -> None:
        self._queue[url].append(exc)

    def urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self._queue[str(request.url)]
        assert queue, f"Unexpected request to {request.url}"
        scripted = queue.popleft()
        if isinstance(scripted, Exception):
            raise scripted
        return scripted

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def origin() -> Origin:
    return Origin()


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cache_root(tmp_path: Path) -> Path:
    root = tmp_path / "cache-root"
    root.mkdir()
    return root


@pytest.fixture
def settings(cache_root: Path) -> CacheSettings:
    return CacheSettings(cache_dir=cache_root, check_interval_seconds=86400)


@pytest.fixture
def engine(
    settings: CacheSettings,
    origin: Origin,
    clock: FakeClock,
    sleeps: RecordingSleep,
) -> CoherenceEngine:
    """A CoherenceEngine talking to the scripted origin."""
    return CoherenceEngine(settings, transport=origin.transport, clock=clock, sleep=sleeps)


@pytest.fixture
def shared_engine(engine: CoherenceEngine) -> CoherenceEngine:
    """Install :func:`engine` as the process-wide engine used by :mod:`urlocal.api`."""
    set_engine(engine)
    return engine


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
