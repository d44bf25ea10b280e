"""Typer application and CLI entry point for urlocal.

This module wires together the top-level Typer application and registers
the built-in sub-commands (``get``, ``cache``, ``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs a SIGINT handler, invokes the Typer app,
and turns :class:`~urlocal.exceptions.UrlocalError` into an error message
on stderr plus the error's exit code.

See Also:
    :mod:`urlocal.config`: Global configuration and cache-root resolution.
    :mod:`urlocal.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
from typing import Any

import typer

from urlocal import __version__
from urlocal.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="urlocal",
    help="Fetch HTTP(S) content through an ETag-revalidated local disk cache.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

# ------------------------------------------------------------------ #
# Sub-commands
# ------------------------------------------------------------------ #

from urlocal.commands.cache import cache_app  # noqa: E402
from urlocal.commands.config import config_app  # noqa: E402
from urlocal.commands.get import get_command  # noqa: E402

app.command("get")(get_command)
app.add_typer(cache_app, name="cache", help="Cache inspection and administration.")
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"urlocal {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output (cache decisions)."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~urlocal.output.OutputManager` from
    CLI flags.
    """
    from urlocal.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(
        OutputManager(
            format=fmt,
            no_color=no_color,
            quiet=quiet,
            verbose=verbose,
        )
    )


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """CLI entry point invoked by the ``urlocal`` console script.

    Unhandled :class:`~urlocal.exceptions.UrlocalError` instances cause a
    clean exit with the error's ``exit_code``. Any other exception is
    reported with its type and exits with a generic failure.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from urlocal.exceptions import UrlocalError
        from urlocal.output import error

        if isinstance(exc, UrlocalError):
            error(str(exc))
            sys.exit(exc.exit_code)
        error(f"Unexpected error: {type(exc).__name__}: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
