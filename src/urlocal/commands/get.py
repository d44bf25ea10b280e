"""The ``urlocal get`` command -- fetch a URL through the cache.

Request defaults come from the ``request`` section of the global config
(see ``urlocal config show``); any flag given on the command line wins.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Optional

import typer

from urlocal.exceptions import ConfigError, InvalidUrlError
from urlocal.output import debug, get_output, success


def _parse_headers(values: list[str]) -> dict[str, str]:
    """Turn ``Name: value`` strings into a header dict."""
    headers: dict[str, str] = {}
    for raw in values:
        name, sep, value = raw.partition(":")
        if not sep or not name.strip():
            raise ConfigError(f"Invalid header {raw!r}, expected 'Name: value'")
        headers[name.strip()] = value.strip()
    return headers


def get_command(
    url: str = typer.Argument(help="http(s) URL to retrieve."),
    follow_redirects: Optional[bool] = typer.Option(
        None,
        "--follow-redirects/--no-follow-redirects",
        help="Follow a single 301/302 redirect.",
    ),
    retry_when_throttled: Optional[bool] = typer.Option(
        None,
        "--retry-when-throttled/--no-retry-when-throttled",
        help="Retry once after a 429 response.",
    ),
    max_retry_after: Optional[int] = typer.Option(
        None, "--max-retry-after", min=0, help="Longest Retry-After delay to honour (seconds)."
    ),
    connect_timeout: Optional[int] = typer.Option(
        None, "--connect-timeout", min=1, help="Connect timeout (milliseconds)."
    ),
    read_timeout: Optional[int] = typer.Option(
        None, "--read-timeout", min=1, help="Read timeout (milliseconds)."
    ),
    header: list[str] = typer.Option(
        [], "--header", "-H", help="Extra request header 'Name: value' (repeatable)."
    ),
    no_stale: bool = typer.Option(
        False, "--no-stale", help="Fail instead of serving cached content when revalidation fails."
    ),
    output_file: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write content to this file instead of stdout."
    ),
) -> None:
    """Print the content of URL, downloading or revalidating it as needed.

    Example::

        urlocal get https://spdx.org/licenses/licenses.json
        urlocal get https://example.com/a.json --follow-redirects -o a.json
    """
    from urlocal.api import retrieve
    from urlocal.config import load_global_config
    from urlocal.models import RetrieveOptions

    defaults = load_global_config().request

    def pick(value, default):
        return default if value is None else value

    options = RetrieveOptions(
        connect_timeout=pick(connect_timeout, defaults.connect_timeout),
        read_timeout=pick(read_timeout, defaults.read_timeout),
        follow_redirects=pick(follow_redirects, defaults.follow_redirects),
        retry_when_throttled=pick(retry_when_throttled, defaults.retry_when_throttled),
        max_retry_after=pick(max_retry_after, defaults.max_retry_after),
        request_headers=_parse_headers(header),
        return_cached_on_exception=not no_stale,
    )
    debug(f"Retrieve options: {options.model_dump()}")

    stream = retrieve(url, options)
    if stream is None:
        raise InvalidUrlError(f"Not an http(s) URL: {url!r}")

    with stream:
        if output_file is None:
            get_output().write_bytes(stream)
        else:
            with open(output_file, "wb") as fd:
                shutil.copyfileobj(stream, fd)
            success(f"Saved {url} to {output_file}")
