"""The cache coherence engine.

Given a URL, :class:`CoherenceEngine` decides whether to serve stored
bytes unchanged, revalidate them with a conditional GET, perform a full
fetch, follow a redirect, or back off under throttling, and persists the
result through :class:`~urlocal.cache.store.EntryStore`.

States and transitions::

    NO_ENTRY ---------------------------> MISS_FETCH
    entry present, within interval -----> FRESH_HIT ----------------> DONE
    entry present, interval exceeded ---> REVALIDATING
    MISS_FETCH / REVALIDATING:
        200 -> write content + metadata ----------------------------> DONE
        304 (revalidating only) -> touch last_checked_at -----------> DONE
        301/302 -> REDIRECTING -> MISS_FETCH of Location (once)
        429 -> THROTTLE_WAIT -> sleep Retry-After -> same request (once)
        anything else ----------------------------------------------> FAILED

Every fetch result is classified into one of the outcome variants
:class:`Ok`, :class:`Redirect`, :class:`Throttled` or :class:`Err`, and the
engine switches on the variant.  A fetch starts either from a URL
(:class:`UrlSource`) or from a response that has already been received
(:class:`ResponseSource`, used when a revalidation answers with something
other than 304); both go through the same branching.

Redirects and throttle retries are each limited to one per logical request
(:class:`ChainState`), however the engine recurses.

Concurrent calls for the same key are not coordinated: the engine assumes a
single caller per key at a time.
"""

from __future__ import annotations

import math
import re
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Callable, Mapping, Optional, Union

import httpx

from urlocal.cache.keys import derive_key
from urlocal.cache.store import EntryStore
from urlocal.client.fetcher import ConditionalFetcher, FetchResponse
from urlocal.exceptions import (
    RedirectLoopError,
    ThrottleExceededError,
    ThrottleHeaderInvalidError,
    TransportError,
    UnexpectedStatusError,
    UrlocalError,
)
from urlocal.models import CacheSettings, EntryMetadata, RetrieveOptions
from urlocal.output import debug, warning

_REDIRECT_STATUSES = (httpx.codes.MOVED_PERMANENTLY, httpx.codes.FOUND)
_DIGITS = re.compile(r"[0-9]+")


class EngineState(str, Enum):
    """States of the coherence state machine, reported in debug output."""

    NO_ENTRY = "no-entry"
    FRESH_HIT = "fresh-hit"
    REVALIDATING = "revalidating"
    MISS_FETCH = "miss-fetch"
    REDIRECTING = "redirecting"
    THROTTLE_WAIT = "throttle-wait"
    DONE = "done"
    FAILED = "failed"


class Resolution(str, Enum):
    """How a successful call obtained the content it serves."""

    FRESH = "fresh"  # within the check interval, no network
    REVALIDATED = "revalidated"  # 304 Not Modified
    DOWNLOADED = "downloaded"  # 200, content replaced
    STALE = "stale"  # revalidation failed, cached content served anyway


@dataclass(frozen=True)
class EngineResult:
    """Terminal ``DONE`` state of one call.

    ``url`` is the URL the served content belongs to; it differs from the
    requested URL when a redirect was followed.
    """

    url: str
    key: str
    content_path: Path
    resolution: Resolution

    def open(self) -> BinaryIO:
        """Open the served content for binary reading."""
        return open(self.content_path, "rb")


# ---------------------------------------------------------------------- #
# Fetch sources
# ---------------------------------------------------------------------- #


@dataclass(frozen=True)
class UrlSource:
    """A fetch that has not been sent yet."""

    url: str
    headers: Mapping[str, str]


@dataclass(frozen=True)
class ResponseSource:
    """A fetch whose response has already been received.

    ``headers`` are the request headers that produced ``response``, so that
    a throttled request can be re-issued identically.
    """

    response: FetchResponse
    headers: Mapping[str, str]


FetchSource = Union[UrlSource, ResponseSource]


@dataclass(frozen=True)
class ChainState:
    """Per-request bounds carried through the recursion."""

    redirected: bool = False
    retried: bool = False


# ---------------------------------------------------------------------- #
# Outcome variants
# ---------------------------------------------------------------------- #


@dataclass(frozen=True)
class Ok:
    """A 200 response whose body should replace the cache entry."""


@dataclass(frozen=True)
class Redirect:
    """A redirect that should be followed to ``location``."""

    location: str


@dataclass(frozen=True)
class Throttled:
    """A 429 that should be retried after ``delay`` seconds."""

    delay: int


@dataclass(frozen=True)
class Err:
    """A terminal failure."""

    error: UrlocalError


Outcome = Union[Ok, Redirect, Throttled, Err]


def parse_retry_after(value: Optional[str], now: datetime) -> Optional[int]:
    """Convert a ``Retry-After`` header value into whole seconds.

    Accepts either a non-negative integer number of seconds or an HTTP date.
    Dates are converted to a delta against *now*, rounded to the nearest
    second with halves rounded up; dates in the past yield ``0``.

    Returns:
        The delay in seconds, or ``None`` if *value* is missing or matches
        neither form.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if _DIGITS.fullmatch(value):
        return int(value)

    try:
        target = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if target is None:
        return None
    if target.tzinfo is None:
        target = target.replace(tzinfo=timezone.utc)

    delta = (target - now).total_seconds()
    if delta <= 0:
        return 0
    return math.floor(delta + 0.5)


def classify_response(
    response: FetchResponse,
    options: RetrieveOptions,
    chain: ChainState,
    now: datetime,
) -> Outcome:
    """Map a (non-304) response onto the outcome the engine should act on."""
    status = response.status_code
    headers = response.headers

    if status == httpx.codes.OK:
        return Ok()

    if status in _REDIRECT_STATUSES and options.follow_redirects:
        location = headers.get("Location")
        if chain.redirected:
            return Err(RedirectLoopError(response.url, location))
        if not location:
            return Err(UnexpectedStatusError(response.url, status, headers))
        return Redirect(str(httpx.URL(response.url).join(location)))

    if status == httpx.codes.TOO_MANY_REQUESTS and options.retry_when_throttled and not chain.retried:
        delay = parse_retry_after(headers.get("Retry-After"), now)
        if delay is None:
            return Err(ThrottleHeaderInvalidError(response.url, headers))
        if delay > options.max_retry_after:
            return Err(ThrottleExceededError(response.url, delay, options.max_retry_after, headers))
        return Throttled(delay)

    return Err(UnexpectedStatusError(response.url, status, headers))


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _seconds_since(then: Optional[datetime], now: datetime) -> float:
    """Seconds elapsed since *then*; infinite when *then* is unknown."""
    then = _utc(then)
    if then is None:
        return math.inf
    return (now - then).total_seconds()


# ---------------------------------------------------------------------- #
# Engine
# ---------------------------------------------------------------------- #


@dataclass
class _Call:
    """Everything one call needs, fixed at the start of the call."""

    store: EntryStore
    fetcher: ConditionalFetcher
    options: RetrieveOptions
    check_interval: int


class CoherenceEngine:
    """Drive the fetcher and entry store from a URL to a served cache entry.

    Args:
        settings: Process-wide cache root and check interval.  May be
            mutated at any time; each call works on a snapshot taken when
            it starts.
        transport: Optional :class:`httpx.BaseTransport` handed to the
            fetcher (tests pass an :class:`httpx.MockTransport`).
        clock: Returns the current UTC time.
        sleep: Suspends the calling thread for a number of seconds.

    Example::

        engine = CoherenceEngine(CacheSettings(cache_dir=Path("/tmp/cache")))
        result = engine.ensure("https://example.com/data.json")
        with result.open() as f:
            data = f.read()
    """

    def __init__(
        self,
        settings: CacheSettings,
        transport: Optional[httpx.BaseTransport] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sleep = sleep or time.sleep

    @property
    def settings(self) -> CacheSettings:
        return self._settings

    def ensure(self, url: str, options: Optional[RetrieveOptions] = None) -> Optional[EngineResult]:
        """Make sure the cache holds usable content for *url*.

        Args:
            url: The exact URL to serve.
            options: Per-call options; defaults when ``None``.

        Returns:
            The :class:`EngineResult` describing the served entry, or
            ``None`` when *url* is empty.

        Raises:
            UrlocalError: Any ``FAILED`` outcome -- see
                :mod:`urlocal.exceptions`.
        """
        key = derive_key(url)
        if key is None:
            return None

        snapshot = self._settings.snapshot()
        opts = options or RetrieveOptions()
        store = EntryStore(snapshot.cache_dir)

        with ConditionalFetcher(transport=self._transport) as fetcher:
            call = _Call(store, fetcher, opts, snapshot.check_interval_seconds)
            if not store.exists(key):
                self._enter(EngineState.NO_ENTRY, url)
                return self._resolve(call, UrlSource(url, opts.request_headers), ChainState())
            return self._check(call, url, key)

    def open(self, result: EngineResult) -> BinaryIO:
        """Open the content served by *result* for binary reading."""
        return result.open()

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _check(self, call: _Call, url: str, key: str) -> EngineResult:
        """Freshness decision for an entry known to be present."""
        metadata = call.store.read_metadata(key)
        now = self._clock()
        elapsed = _seconds_since(metadata.last_checked_at, now)

        if call.check_interval > 0 and elapsed <= call.check_interval:
            self._enter(EngineState.FRESH_HIT, url, "within cache check interval; skipping staleness check")
            return self._done(call, url, key, Resolution.FRESH)

        self._enter(EngineState.REVALIDATING, metadata.url, "cache check interval exceeded")
        headers = dict(call.options.request_headers)
        if metadata.etag:
            headers["If-None-Match"] = metadata.etag

        try:
            response = call.fetcher.fetch(
                metadata.url,
                headers,
                call.options.connect_timeout,
                call.options.read_timeout,
            )
            return self._resolve(call, ResponseSource(response, headers), ChainState(), (key, metadata))
        except TransportError as exc:
            if not call.options.return_cached_on_exception or not call.store.exists(key):
                self._enter(EngineState.FAILED, metadata.url, str(exc))
                raise
            warning(
                f"Unexpected error while checking {metadata.url} for staleness "
                f"({exc}). Potentially stale cached content will be used."
            )
            return self._done(call, url, key, Resolution.STALE)

    def _resolve(
        self,
        call: _Call,
        source: FetchSource,
        chain: ChainState,
        cached: Optional[tuple[str, EntryMetadata]] = None,
    ) -> EngineResult:
        """Status branching shared by the miss and revalidation paths.

        *cached* is the ``(key, metadata)`` of the entry being revalidated,
        which is what makes a 304 acceptable.
        """
        if isinstance(source, UrlSource):
            if cached is None:
                self._enter(EngineState.MISS_FETCH, source.url, "downloading")
            response = call.fetcher.fetch(
                source.url,
                source.headers,
                call.options.connect_timeout,
                call.options.read_timeout,
            )
        else:
            response = source.response

        with response:
            url = response.url

            if cached is not None and response.status_code == httpx.codes.NOT_MODIFIED:
                key, metadata = cached
                self._enter(EngineState.DONE, url, "not modified; cached copy is up to date")
                updated = metadata.model_copy(
                    update={"last_checked_at": self._advance(metadata.last_checked_at)}
                )
                call.store.write_metadata(key, updated)
                return self._done(call, url, key, Resolution.REVALIDATED)

            outcome = classify_response(response, call.options, chain, self._clock())

            if isinstance(outcome, Ok):
                return self._store_response(call, response, cached)

            if isinstance(outcome, Redirect):
                self._enter(EngineState.REDIRECTING, url, f"redirected to {outcome.location}")
                # The original URL no longer serves content.
                call.store.remove(derive_key(url))
                response.close()
                target = UrlSource(outcome.location, call.options.request_headers)
                return self._resolve(call, target, replace(chain, redirected=True))

            if isinstance(outcome, Throttled):
                self._enter(
                    EngineState.THROTTLE_WAIT,
                    url,
                    f"throttled (429), sleeping {outcome.delay}s then retrying",
                )
                headers = source.headers
                response.close()
                self._sleep(outcome.delay)
                return self._resolve(call, UrlSource(url, headers), replace(chain, retried=True), cached)

            self._enter(EngineState.FAILED, url, str(outcome.error))
            raise outcome.error

    def _store_response(
        self,
        call: _Call,
        response: FetchResponse,
        cached: Optional[tuple[str, EntryMetadata]],
    ) -> EngineResult:
        """Replace the entry for ``response.url`` with the response body."""
        url = response.url
        key = derive_key(url)
        size = call.store.write_content(key, response.iter_bytes())

        previous = cached[1].last_checked_at if cached is not None and cached[0] == key else None
        now = self._clock()
        etag = response.headers.get("ETag")
        metadata = EntryMetadata(
            url=url,
            etag=etag if etag and etag.strip() else None,
            downloaded_at=now,
            last_checked_at=self._advance(previous, now),
        )
        call.store.write_metadata(key, metadata)
        self._enter(EngineState.DONE, url, f"downloaded {size} bytes")
        return self._done(call, url, key, Resolution.DOWNLOADED)

    def _advance(self, previous: Optional[datetime], now: Optional[datetime] = None) -> datetime:
        """Next ``last_checked_at``; never moves backwards."""
        now = now or self._clock()
        previous = _utc(previous)
        if previous is not None and previous > now:
            return previous
        return now

    def _done(self, call: _Call, url: str, key: str, resolution: Resolution) -> EngineResult:
        if resolution in (Resolution.FRESH, Resolution.STALE):
            self._enter(EngineState.DONE, url, f"serving cached copy ({resolution.value})")
        return EngineResult(url, key, call.store.content_path(key), resolution)

    def _enter(self, state: EngineState, url: str, detail: str = "") -> None:
        suffix = f" - {detail}" if detail else ""
        debug(f"{state.value}: {url}{suffix}")
