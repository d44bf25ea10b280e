"""urlocal -- transparent, disk-persisted caching of HTTP(S) downloads.

Content fetched over HTTP(S) is stored on disk together with a small
metadata record (source URL, ETag, timestamps).  Subsequent requests for
the same URL are served from disk, and are periodically revalidated with
ETag-based conditional requests so that stale content is replaced while
unchanged content is never downloaded twice.

Typical usage::

    import urlocal

    with urlocal.retrieve("https://spdx.org/licenses/licenses.json") as f:
        data = f.read()

Modules:
    api: Public facade -- :func:`retrieve` plus cache administration.
    cache: Key derivation, entry store, and the coherence engine.
    client: The conditional HTTP fetcher built on :mod:`httpx`.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration and cache-root resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr diagnostics with Rich support.
"""

__version__ = "1.0.0"

from urlocal.api import (  # noqa: E402
    cache_check_interval,
    cache_dir,
    remove_cache_entry,
    reset_cache,
    retrieve,
    set_cache_check_interval,
    set_cache_name,
)

__all__ = [
    "__version__",
    "cache_check_interval",
    "cache_dir",
    "remove_cache_entry",
    "reset_cache",
    "retrieve",
    "set_cache_check_interval",
    "set_cache_name",
]
