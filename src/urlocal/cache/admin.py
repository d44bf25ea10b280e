"""Cache administration.

:class:`CacheAdmin` operates on the same :class:`~urlocal.models.CacheSettings`
instance as a :class:`~urlocal.cache.engine.CoherenceEngine`, so changes
made here are picked up by the next engine call (calls already in flight
keep the snapshot they started with).  Changes are not persisted; the CLI
writes them to the global config file itself.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Optional

from urlocal.cache.keys import derive_key, url_for_key
from urlocal.cache.store import EntryStore
from urlocal.config import get_default_cache_dir
from urlocal.exceptions import ConfigError
from urlocal.models import CacheSettings, EntryMetadata
from urlocal.output import debug


class CacheAdmin:
    """Inspect and reconfigure the cache described by *settings*.

    Args:
        settings: The mutable settings shared with the engine.
    """

    def __init__(self, settings: CacheSettings) -> None:
        self._settings = settings

    @property
    def settings(self) -> CacheSettings:
        return self._settings

    def cache_dir(self) -> Path:
        """Return the current cache root."""
        return self._settings.cache_dir

    def ensure_cache_dir(self) -> Path:
        """Create the cache root if it does not exist yet and return it."""
        root = self._settings.cache_dir
        root.mkdir(parents=True, exist_ok=True)
        return root

    def set_cache_name(self, name: Optional[str]) -> None:
        """Switch to the cache called *name* under the XDG cache home.

        The new directory is created before the switch, so a failure leaves
        the current root in place.  Blank names are ignored.  Entries in the
        previous root are left on disk.
        """
        if name is None or not name.strip():
            return
        root = get_default_cache_dir(name.strip())
        root.mkdir(parents=True, exist_ok=True)
        debug(f"Cache root changed: {self._settings.cache_dir} -> {root}")
        self._settings.cache_dir = root

    def reset_cache(self) -> None:
        """Delete the whole cache root, including anything else stored in it."""
        root = self._settings.cache_dir
        if root.exists():
            shutil.rmtree(root)
            debug(f"Deleted cache {root}")

    def remove_cache_entry(self, url: Optional[str]) -> None:
        """Delete the entry for *url*, if there is one."""
        key = derive_key(url)
        if key is not None:
            EntryStore(self._settings.cache_dir).remove(key)

    def cache_check_interval(self) -> int:
        """Return the staleness-check interval in seconds."""
        return self._settings.check_interval_seconds

    def set_cache_check_interval(self, seconds: Optional[int]) -> None:
        """Set the staleness-check interval; ``0`` revalidates on every call.

        ``None`` is ignored.

        Raises:
            ConfigError: If *seconds* is negative.
        """
        if seconds is None:
            return
        if seconds < 0:
            raise ConfigError(f"Cache check interval must not be negative, got: {seconds}")
        self._settings.check_interval_seconds = seconds

    def list_entries(self) -> list[tuple[str, EntryMetadata]]:
        """Return ``(url, metadata)`` for every present entry, ordered by key.

        Raises:
            CorruptMetadataError: If an entry's metadata cannot be read.
        """
        store = EntryStore(self._settings.cache_dir)
        return [(url_for_key(key), store.read_metadata(key)) for key in store.keys()]
