"""Exception hierarchy for urlocal.

All exceptions inherit from :class:`UrlocalError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`urlocal.exit_codes`.
The top-level error handler in :func:`urlocal.app.main` catches
``UrlocalError`` and exits with the appropriate code; library callers can
catch the individual subclasses to inspect the failure context (status
code, response headers, requested retry delay, ...).

Subclass hierarchy::

    UrlocalError (exit 1)
    +-- InvalidUrlError             (exit 2)
    +-- ConfigError                 (exit 2)
    +-- CorruptMetadataError        (exit 3)
    +-- UnexpectedStatusError       (exit 4)
    +-- RedirectLoopError           (exit 5)
    +-- TransportError              (exit 6)
    +-- ThrottleError               (exit 7)
        +-- ThrottleHeaderInvalidError
        +-- ThrottleExceededError
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Optional

from urlocal.exit_codes import (
    EXIT_CONNECTION_ERROR,
    EXIT_CORRUPT_METADATA,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_REDIRECT_LOOP,
    EXIT_THROTTLED,
    EXIT_UNEXPECTED_STATUS,
)


class UrlocalError(Exception):
    """Base exception for all urlocal errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`urlocal.exit_codes`. The CLI entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUrlError(UrlocalError):
    """Raised when a URL string cannot be parsed."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(UrlocalError):
    """Raised for configuration problems (invalid config file, bad interval, bad env vars)."""

    exit_code = EXIT_INVALID_USAGE


class CorruptMetadataError(UrlocalError):
    """Raised when a cache entry's metadata file cannot be read or parsed.

    Args:
        message: Description of the parse failure.
        path: The metadata file that could not be parsed.
    """

    exit_code = EXIT_CORRUPT_METADATA

    def __init__(self, message: str, path: Path):
        super().__init__(message)
        self.path = path


class UnexpectedStatusError(UrlocalError):
    """Raised when the origin answers with an HTTP status that is not handled.

    This covers plain errors (404, 500, ...) as well as redirects and 429
    responses when the corresponding sub-flow is disabled or already used.

    Args:
        url: The URL that was requested.
        status_code: The HTTP status returned.
        headers: The response headers, for diagnosis.
    """

    exit_code = EXIT_UNEXPECTED_STATUS

    def __init__(self, url: str, status_code: int, headers: Optional[Mapping[str, str]] = None):
        super().__init__(f"Unexpected HTTP response from {url}: {status_code}")
        self.url = url
        self.status_code = status_code
        self.headers = dict(headers or {})


class RedirectLoopError(UrlocalError):
    """Raised when a second redirect is encountered while following a redirect."""

    exit_code = EXIT_REDIRECT_LOOP

    def __init__(self, url: str, location: Optional[str]):
        super().__init__(
            f"Request to {url} redirected to {location} after a redirect was "
            "already followed; only one redirect is allowed per request."
        )
        self.url = url
        self.location = location


class TransportError(UrlocalError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    The underlying :class:`httpx.RequestError` is available as
    ``__cause__``.
    """

    exit_code = EXIT_CONNECTION_ERROR

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class ThrottleError(UrlocalError):
    """Base class for HTTP 429 handling failures."""

    exit_code = EXIT_THROTTLED

    def __init__(self, message: str, url: str, headers: Optional[Mapping[str, str]] = None):
        super().__init__(message)
        self.url = url
        self.headers = dict(headers or {})


class ThrottleHeaderInvalidError(ThrottleError):
    """Raised when a 429 response has a missing or unparsable ``Retry-After`` header."""

    def __init__(self, url: str, headers: Optional[Mapping[str, str]] = None):
        super().__init__(
            f"Request to {url} throttled (429), but Retry-After response header "
            "was missing or invalid.",
            url,
            headers,
        )


class ThrottleExceededError(ThrottleError):
    """Raised when the requested ``Retry-After`` delay exceeds ``max_retry_after``."""

    def __init__(
        self,
        url: str,
        retry_after: int,
        max_retry_after: int,
        headers: Optional[Mapping[str, str]] = None,
    ):
        super().__init__(
            f"Request to {url} throttled (429), but requested retry ({retry_after}s) "
            f"was longer than maximum allowed ({max_retry_after}s).",
            url,
            headers,
        )
        self.retry_after = retry_after
        self.max_retry_after = max_retry_after
