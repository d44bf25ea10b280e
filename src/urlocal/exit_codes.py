"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~urlocal.exceptions.UrlocalError` subclass.
Shell scripts wrapping ``urlocal get`` can inspect the exit code to
determine the failure class without parsing stderr.

Example::

    $ urlocal get https://example.com/missing.json
    $ echo $?
    4   # EXIT_UNEXPECTED_STATUS -- the server answered with a status we don't handle
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or an unusable URL."""

EXIT_CORRUPT_METADATA = 3
"""A cache entry's metadata record could not be parsed."""

EXIT_UNEXPECTED_STATUS = 4
"""The origin server returned an HTTP status the cache does not handle."""

EXIT_REDIRECT_LOOP = 5
"""More than one redirect was encountered for a single request."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_THROTTLED = 7
"""The origin server throttled the request (HTTP 429) and no retry was possible."""
