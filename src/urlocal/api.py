"""Public facade: :func:`retrieve` and module-level cache administration.

All functions here share one process-wide :class:`CoherenceEngine`, built
lazily from :func:`urlocal.config.load_settings` on first use.  Tests (or
embedding applications) can substitute their own engine with
:func:`set_engine` and drop it again with :func:`reset_engine`.

Example::

    import urlocal

    urlocal.set_cache_check_interval(3600)
    with urlocal.retrieve("https://example.com/data.json", follow_redirects=True) as f:
        data = f.read()
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, BinaryIO, Mapping, Optional, Union

import httpx
from pydantic import ValidationError

from urlocal.cache.admin import CacheAdmin
from urlocal.cache.engine import CoherenceEngine
from urlocal.config import load_settings
from urlocal.exceptions import ConfigError, InvalidUrlError
from urlocal.models import EntryMetadata, RetrieveOptions

_SUPPORTED_SCHEMES = ("http", "https")

_engine: Optional[CoherenceEngine] = None


def get_engine() -> CoherenceEngine:
    """Return the process-wide engine, creating it on first use."""
    global _engine
    if _engine is None:
        _engine = CoherenceEngine(load_settings())
    return _engine


def set_engine(engine: CoherenceEngine) -> None:
    """Replace the process-wide engine."""
    global _engine
    _engine = engine


def reset_engine() -> None:
    """Forget the process-wide engine; the next call rebuilds it from config."""
    global _engine
    _engine = None


def _admin() -> CacheAdmin:
    return CacheAdmin(get_engine().settings)


def _coerce_options(
    options: Union[RetrieveOptions, Mapping[str, Any], None],
    overrides: Mapping[str, Any],
) -> RetrieveOptions:
    if isinstance(options, RetrieveOptions):
        if not overrides:
            return options
        data = options.model_dump()
    else:
        data = dict(options or {})
    data.update(overrides)
    try:
        return RetrieveOptions.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid retrieve options: {exc}") from exc


def retrieve(
    url: Optional[str],
    options: Union[RetrieveOptions, Mapping[str, Any], None] = None,
    **overrides: Any,
) -> Optional[BinaryIO]:
    """Return a binary stream over the cached content for *url*.

    The content is downloaded, revalidated or served straight from disk as
    the cache's state requires.

    Args:
        url: An absolute ``http`` or ``https`` URL.
        options: A :class:`~urlocal.models.RetrieveOptions` or a mapping of
            its fields.
        **overrides: Individual option fields, applied on top of *options*.

    Returns:
        An open binary file object the caller must close, or ``None`` when
        *url* is empty or does not use the ``http``/``https`` scheme.

    Raises:
        InvalidUrlError: If *url* cannot be parsed or has no scheme.
        ConfigError: If the options are invalid.
        UrlocalError: Any failure reported by the coherence engine.
    """
    if url is None or not str(url).strip():
        return None

    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise InvalidUrlError(f"Invalid URL {url!r}: {exc}") from exc

    if not parsed.scheme:
        raise InvalidUrlError(f"Invalid URL {url!r}: no scheme")
    if parsed.scheme not in _SUPPORTED_SCHEMES:
        return None
    if not parsed.host:
        raise InvalidUrlError(f"Invalid URL {url!r}: missing host")

    opts = _coerce_options(options, overrides)
    engine = get_engine()
    CacheAdmin(engine.settings).ensure_cache_dir()
    result = engine.ensure(url, opts)
    return engine.open(result)


# --- Cache administration ---


def cache_dir() -> Path:
    """Return the current cache root."""
    return _admin().cache_dir()


def set_cache_name(name: Optional[str]) -> None:
    """Switch to the cache directory *name* under the XDG cache home."""
    _admin().set_cache_name(name)


def reset_cache() -> None:
    """Delete the current cache root and everything in it."""
    _admin().reset_cache()


def remove_cache_entry(url: Optional[str]) -> None:
    """Delete the cached entry for *url*, if any."""
    _admin().remove_cache_entry(url)


def cache_check_interval() -> int:
    """Return the staleness-check interval in seconds."""
    return _admin().cache_check_interval()


def set_cache_check_interval(seconds: Optional[int]) -> None:
    """Set the staleness-check interval in seconds (``0`` = always revalidate)."""
    _admin().set_cache_check_interval(seconds)


def list_entries() -> list[tuple[str, EntryMetadata]]:
    """Return ``(url, metadata)`` for every entry in the current cache."""
    return _admin().list_entries()
