"""Single-shot HTTP GET used by the coherence engine.

:class:`ConditionalFetcher` wraps :class:`httpx.Client` with the fixed
policy the cache needs:

- **No transport redirects** -- ``follow_redirects=False`` always; the
  engine decides whether a 301/302 is followed so that cache entries stay
  coherent with the URL that actually served the content.
- **Default User-Agent** -- injected unless the caller supplies a header
  with exactly the key ``User-Agent``.  Every other caller header,
  including ``If-None-Match``, is passed through unmodified.
- **Bounded timeouts** -- connect and read timeouts are mandatory and given
  in milliseconds.
- **Error mapping** -- every :class:`httpx.RequestError` (connect, DNS,
  timeout, protocol, or a body that fails to decode), whether raised while
  sending or while streaming the body, surfaces as
  :class:`~urlocal.exceptions.TransportError`.

There is no retry here; retry policy lives in the engine.
"""

from __future__ import annotations

from typing import Iterator, Mapping, Optional

import httpx

from urlocal import __version__
from urlocal.exceptions import InvalidUrlError, TransportError

DEFAULT_USER_AGENT = f"urlocal/{__version__}"


class FetchResponse:
    """A streamed response whose body has not been read yet.

    Must be closed once handled; usable as a context manager.

    Args:
        response: The streamed :class:`httpx.Response`.
        url: The URL that was requested (not a redirect target).
    """

    def __init__(self, response: httpx.Response, url: str) -> None:
        self._response = response
        self.url = url

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    def iter_bytes(self) -> Iterator[bytes]:
        """Yield the response body in chunks.

        Raises:
            TransportError: If the connection fails mid-body (e.g. read timeout) or
                the body cannot be decoded.
        """
        try:
            yield from self._response.iter_bytes()
        except httpx.RequestError as exc:
            raise TransportError(f"Error reading response from {self.url}: {exc}", self.url) from exc

    def close(self) -> None:
        self._response.close()

    def __enter__(self) -> FetchResponse:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


class ConditionalFetcher:
    """Issue one HTTP GET per call with redirects disabled.

    Must be used as a context manager so that the underlying transport is
    properly opened and closed.

    Args:
        transport: Optional :class:`httpx.BaseTransport`; tests pass an
            :class:`httpx.MockTransport` here.
        user_agent: Value of the default ``User-Agent`` header.

    Example::

        with ConditionalFetcher() as fetcher:
            with fetcher.fetch("https://example.com/", {"If-None-Match": '"v1"'}) as resp:
                print(resp.status_code)
    """

    def __init__(
        self,
        transport: Optional[httpx.BaseTransport] = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._transport = transport
        self._user_agent = user_agent
        self._client: Optional[httpx.Client] = None

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> ConditionalFetcher:
        self._client = httpx.Client(follow_redirects=False, transport=self._transport)
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def fetch(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        connect_timeout: int = 1000,
        read_timeout: int = 1000,
    ) -> FetchResponse:
        """Send a GET for *url* and return the streamed response.

        Args:
            url: Absolute http(s) URL.
            headers: Extra request headers, merged over the default
                ``User-Agent``.
            connect_timeout: Socket-connect bound in milliseconds.
            read_timeout: Socket-read bound in milliseconds.

        Returns:
            A :class:`FetchResponse` for any HTTP status; status handling is
            the caller's job.

        Raises:
            InvalidUrlError: If *url* cannot be turned into a request.
            TransportError: On connection, DNS, timeout or protocol failure.
        """
        assert self._client is not None, "Fetcher not initialised -- use as context manager"

        merged_headers: dict[str, str] = {"User-Agent": self._user_agent}
        merged_headers.update(headers or {})

        timeout = httpx.Timeout(read_timeout / 1000, connect=connect_timeout / 1000)

        try:
            request = self._client.build_request("GET", url, headers=merged_headers, timeout=timeout)
        except httpx.InvalidURL as exc:
            raise InvalidUrlError(f"Invalid URL {url!r}: {exc}") from exc

        try:
            response = self._client.send(request, stream=True)
        except httpx.RequestError as exc:
            raise TransportError(f"Request to {url} failed: {exc}", url) from exc

        return FetchResponse(response, url)
