"""On-disk representation of cache entries.

Each entry consists of two files in the cache root, both named after the
entry's cache key (see :mod:`urlocal.cache.keys`):

* ``<key>.content`` -- the raw response body of the last 200 response.
* ``<key>.metadata.json`` -- the serialised
  :class:`~urlocal.models.EntryMetadata` record.

Keys longer than :data:`~urlocal.cache.keys.SEGMENT_LENGTH` characters are
split into nested directories, e.g. ``<seg1>/<seg2>.content``, so that no
single file name exceeds the usual 255-byte limit.

Both files are written atomically via a temp file in the same directory
followed by ``os.replace``, but the pair is not transactional: content is
always written first, so a crash between the two writes leaves a content
file without metadata, which :meth:`EntryStore.exists` reports as absent.

The store never creates the cache root; that belongs to
:class:`~urlocal.cache.admin.CacheAdmin`.  It does create (and prune) the
subdirectories of split keys.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import BinaryIO, Iterable

from pydantic import ValidationError

from urlocal.cache.keys import key_segments
from urlocal.config import atomic_write
from urlocal.exceptions import CorruptMetadataError
from urlocal.models import EntryMetadata

CONTENT_SUFFIX = ".content"
METADATA_SUFFIX = ".metadata.json"


class EntryStore:
    """Read/write cache entries under a single cache root.

    Args:
        root: The cache directory.  Must already exist before anything is
            written.

    Example::

        store = EntryStore(Path("~/.cache/urlocal").expanduser())
        key = derive_key("https://example.com/data.json")
        if store.exists(key):
            meta = store.read_metadata(key)
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        """The cache directory this store reads and writes."""
        return self._root

    def content_path(self, key: str) -> Path:
        return self._entry_path(key, CONTENT_SUFFIX)

    def metadata_path(self, key: str) -> Path:
        return self._entry_path(key, METADATA_SUFFIX)

    def exists(self, key: str) -> bool:
        """Return ``True`` iff both the content and the metadata file exist."""
        return self.content_path(key).is_file() and self.metadata_path(key).is_file()

    def read_metadata(self, key: str) -> EntryMetadata:
        """Load the metadata record for *key*.

        Raises:
            CorruptMetadataError: If the file cannot be read, is not JSON, or
                does not validate as :class:`~urlocal.models.EntryMetadata`.
        """
        path = self.metadata_path(key)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return EntryMetadata.model_validate(data)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
            raise CorruptMetadataError(f"Invalid cache metadata at {path}: {exc}", path) from exc

    def open_content(self, key: str) -> BinaryIO:
        """Open the cached content for *key* for binary reading."""
        return open(self.content_path(key), "rb")

    def write_content(self, key: str, chunks: Iterable[bytes]) -> int:
        """Replace the content for *key* with the bytes yielded by *chunks*.

        Returns:
            The number of bytes written.
        """
        written = 0

        def _copy(fd: BinaryIO) -> None:
            nonlocal written
            for chunk in chunks:
                fd.write(chunk)
                written += len(chunk)

        path = self.content_path(key)
        self._make_parents(path)
        atomic_write(path, _copy, binary=True)
        return written

    def write_metadata(self, key: str, metadata: EntryMetadata) -> None:
        """Replace the metadata record for *key*.

        ``etag`` is left out of the file entirely when it is ``None``.
        """
        data = metadata.model_dump(mode="json", exclude_none=True)
        text = (json.dumps(data, indent=2) + "\n").encode("utf-8")
        path = self.metadata_path(key)
        self._make_parents(path)
        atomic_write(path, lambda fd: fd.write(text), binary=True)

    def remove(self, key: str) -> None:
        """Delete both files for *key*.  Missing files are ignored."""
        for path in (self.content_path(key), self.metadata_path(key)):
            try:
                path.unlink()
            except FileNotFoundError:
                pass
        self._prune_parents(self.content_path(key))

    def keys(self) -> list[str]:
        """Return the keys of all present entries, sorted."""
        if not self._root.is_dir():
            return []
        found = []
        for path in self._root.rglob(f"*{METADATA_SUFFIX}"):
            key = "".join(path.relative_to(self._root).parts)[: -len(METADATA_SUFFIX)]
            if self.content_path(key).is_file():
                found.append(key)
        return sorted(found)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _entry_path(self, key: str, suffix: str) -> Path:
        *dirs, name = key_segments(key)
        return self._root.joinpath(*dirs, f"{name}{suffix}")

    def _make_parents(self, path: Path) -> None:
        """Create the split-key directories between the root and *path*.

        Each level is created without ``parents=True`` so that a missing
        root still fails.
        """
        parent = self._root
        for part in path.relative_to(self._root).parts[:-1]:
            parent = parent / part
            parent.mkdir(exist_ok=True)

    def _prune_parents(self, path: Path) -> None:
        """Remove split-key directories left empty by :meth:`remove`."""
        parent = path.parent
        while parent != self._root:
            try:
                parent.rmdir()
            except OSError:
                # Missing, or still holding other entries.
                return
            parent = parent.parent
