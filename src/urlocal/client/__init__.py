"""HTTP client module for urlocal.

Provides :class:`ConditionalFetcher`, a thin wrapper over
:class:`httpx.Client` that performs exactly one GET per call with
transport-level redirects disabled, a default ``User-Agent``, bounded
timeouts, and httpx transport failures mapped to
:class:`~urlocal.exceptions.TransportError`.

Example::

    from urlocal.client import ConditionalFetcher

    with ConditionalFetcher() as fetcher:
        with fetcher.fetch("https://example.com/") as resp:
            body = b"".join(resp.iter_bytes())
"""

from urlocal.client.fetcher import DEFAULT_USER_AGENT, ConditionalFetcher, FetchResponse

__all__ = ["ConditionalFetcher", "DEFAULT_USER_AGENT", "FetchResponse"]
