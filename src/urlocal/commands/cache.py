"""Cache commands -- inspect and administer the local cache.

Provides the ``urlocal cache`` sub-command group.  ``name`` and
``interval`` also persist the new value in the global config file so that
later invocations pick it up.
"""

from __future__ import annotations

from typing import Optional

import typer

from urlocal.output import info, print_table, success

cache_app = typer.Typer(no_args_is_help=True)


def _timestamp(value) -> str:
    return value.isoformat() if value is not None else "-"


@cache_app.command("path")
def cache_path() -> None:
    """Print the cache directory."""
    from urlocal.api import cache_dir
    from urlocal.output import get_output

    get_output().print_data(str(cache_dir()))


@cache_app.command("list")
def cache_list() -> None:
    """List cached URLs with their ETag and timestamps.

    Example::

        urlocal cache list
        urlocal --json cache list
    """
    from urlocal.api import list_entries

    entries = list_entries()
    if not entries:
        info("Cache is empty.")
        return

    rows = [
        [url, meta.etag or "-", _timestamp(meta.downloaded_at), _timestamp(meta.last_checked_at)]
        for url, meta in entries
    ]
    print_table(["URL", "ETag", "Downloaded", "Last checked"], rows, title="Cached entries")


@cache_app.command("remove")
def cache_remove(
    url: str = typer.Argument(help="URL whose cache entry should be deleted."),
) -> None:
    """Delete the cache entry for URL (no-op if it is not cached)."""
    from urlocal.api import remove_cache_entry

    remove_cache_entry(url)
    success(f"Removed {url} from the cache.")


@cache_app.command("reset")
def cache_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Delete the entire cache directory.

    Example::

        urlocal cache reset --force
    """
    from urlocal.api import cache_dir, reset_cache

    root = cache_dir()
    if not force:
        confirmed = typer.confirm(f"Delete {root} and everything in it?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    reset_cache()
    success(f"Deleted cache {root}.")


@cache_app.command("interval")
def cache_interval(
    seconds: Optional[int] = typer.Argument(
        None, help="New staleness-check interval in seconds (0 = always revalidate)."
    ),
) -> None:
    """Show or set the staleness-check interval.

    Example::

        urlocal cache interval
        urlocal cache interval 3600
    """
    from urlocal.api import cache_check_interval, set_cache_check_interval
    from urlocal.config import load_global_config, save_global_config
    from urlocal.output import get_output

    if seconds is None:
        get_output().print_data(str(cache_check_interval()))
        return

    set_cache_check_interval(seconds)
    config = load_global_config()
    config.cache.check_interval_seconds = seconds
    save_global_config(config)
    success(f"Cache check interval set to {seconds}s.")


@cache_app.command("name")
def cache_name(
    name: str = typer.Argument(help="Cache name; the cache lives in <XDG cache home>/<name>."),
) -> None:
    """Switch to a differently named cache directory.

    Entries in the previous cache are left on disk.
    """
    from urlocal.api import cache_dir, set_cache_name
    from urlocal.config import load_global_config, save_global_config
    from urlocal.exceptions import ConfigError

    if not name.strip():
        raise ConfigError("Cache name must not be blank")

    set_cache_name(name)
    config = load_global_config()
    config.cache.name = name.strip()
    save_global_config(config)
    success(f"Using cache {cache_dir()}.")
