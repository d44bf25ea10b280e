"""Canonical Pydantic models shared across all urlocal modules.

This is the single source of truth for data shapes in the project. The
models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`CacheConfig`, :class:`RequestConfig`, and :class:`GlobalConfig`.

**Cache models** -- produced and consumed by the cache engine:
    :class:`CacheSettings` (process-wide, mutable cache root and check
    interval), :class:`RetrieveOptions` (per-call options) and
    :class:`EntryMetadata` (the persisted provenance record of one entry).

All models use Pydantic v2.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_CHECK_INTERVAL_SECONDS = 86400  # 24 hours
DEFAULT_CACHE_NAME = "urlocal"


# --- Process-wide settings ---


class CacheSettings(BaseModel):
    """Process-wide tunables read by the coherence engine.

    One instance is held by each :class:`~urlocal.cache.engine.CoherenceEngine`
    and may be mutated by cache administration at any time.  The engine
    takes a :meth:`snapshot` at the start of every call, so a change only
    affects calls that start after it.
    """

    model_config = ConfigDict(validate_assignment=True)

    cache_dir: Path
    check_interval_seconds: int = Field(default=DEFAULT_CHECK_INTERVAL_SECONDS, ge=0)

    def snapshot(self) -> CacheSettings:
        """Return an independent copy of the current settings."""
        return self.model_copy()


# --- Per-call options ---


class RetrieveOptions(BaseModel):
    """Options recognised by :func:`urlocal.retrieve` and the coherence engine.

    Timeouts are expressed in milliseconds and bound every individual fetch
    attempt.  The redirect and throttle sub-flows are each limited to a
    single hop / attempt per logical request, regardless of these settings.

    Example::

        RetrieveOptions(follow_redirects=True, request_headers={"Accept": "text/plain"})
    """

    model_config = ConfigDict(frozen=True)

    connect_timeout: int = Field(
        default=1000, gt=0, description="Socket-connect bound per fetch attempt (ms)"
    )
    read_timeout: int = Field(
        default=1000, gt=0, description="Socket-read bound per fetch attempt (ms)"
    )
    follow_redirects: bool = Field(
        default=False, description="Follow a single 301/302 redirect"
    )
    retry_when_throttled: bool = Field(
        default=False, description="Retry once after a 429 response"
    )
    max_retry_after: int = Field(
        default=10, ge=0, description="Ceiling on an accepted Retry-After delay (s)"
    )
    request_headers: dict[str, str] = Field(
        default_factory=dict, description="Extra request headers"
    )
    return_cached_on_exception: bool = Field(
        default=True,
        description="Serve stale content when revalidation fails with a transport error",
    )


# --- Persisted cache metadata ---


class EntryMetadata(BaseModel):
    """Provenance record stored beside each cached content blob.

    ``url`` is the URL the content was actually fetched from, which differs
    from the caller's URL after a redirect.  ``etag`` is only present when
    the origin returned one; without it every revalidation becomes a full
    download.
    """

    url: str
    etag: Optional[str] = None
    downloaded_at: datetime
    last_checked_at: Optional[datetime] = None


# --- Persisted configuration ---


class CacheConfig(BaseModel):
    """Cache location and staleness settings stored in :class:`GlobalConfig`."""

    name: str = Field(
        default=DEFAULT_CACHE_NAME,
        min_length=1,
        description="Cache directory name under the XDG cache home",
    )
    check_interval_seconds: int = Field(
        default=DEFAULT_CHECK_INTERVAL_SECONDS,
        ge=0,
        description="Minimum seconds between revalidations (0 = always revalidate)",
    )


class RequestConfig(BaseModel):
    """Default request settings used by the ``urlocal get`` command."""

    connect_timeout: int = Field(default=1000, gt=0, description="Connect timeout (ms)")
    read_timeout: int = Field(default=1000, gt=0, description="Read timeout (ms)")
    follow_redirects: bool = Field(default=False, description="Follow one redirect")
    retry_when_throttled: bool = Field(default=False, description="Retry once on 429")
    max_retry_after: int = Field(default=10, ge=0, description="Max Retry-After delay (s)")


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/urlocal/config.json``.

    Loaded and saved by :func:`~urlocal.config.load_global_config` and
    :func:`~urlocal.config.save_global_config`. Environment variables
    take precedence; see :func:`~urlocal.config.load_settings`.
    """

    cache: CacheConfig = Field(default_factory=CacheConfig)
    request: RequestConfig = Field(default_factory=RequestConfig)
