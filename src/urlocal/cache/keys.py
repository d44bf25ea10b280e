"""Cache key derivation.

A cache key is the URL-safe base64 encoding of the UTF-8 bytes of the
exact URL string.  The encoding is reversible (see :func:`url_for_key`),
which lets cache administration list entries by URL without reading any
metadata, and it only ever produces ``[A-Za-z0-9_=-]``, which is safe as a
file name on every platform.  Keys longer than :data:`SEGMENT_LENGTH`
characters are stored as several path components (see :func:`key_segments`).

No normalisation is performed: ``https://example.com`` and
``https://example.com/`` are different keys, as are URLs differing only in
host case.
"""

from __future__ import annotations

import base64
import binascii
from typing import Optional

SEGMENT_LENGTH = 200


def derive_key(url: Optional[str]) -> Optional[str]:
    """Return the cache key for *url*, or ``None`` if *url* is ``None`` or empty.

    Args:
        url: The exact URL string used to request content.

    Returns:
        The filesystem-safe key, or ``None`` when there is nothing to key.
    """
    if not url:
        return None
    return base64.urlsafe_b64encode(str(url).encode("utf-8")).decode("ascii")


def url_for_key(key: str) -> str:
    """Return the URL that *key* was derived from.

    Raises:
        ValueError: If *key* is not a valid encoding.
    """
    try:
        return base64.urlsafe_b64decode(key.encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeError) as exc:
        raise ValueError(f"Not a cache key: {key!r}") from exc


def key_segments(key: str) -> list[str]:
    """Split *key* into path components of at most :data:`SEGMENT_LENGTH` characters.

    Keys of long URLs would exceed the 255-byte file-name limit of common
    filesystems, so the store lays such keys out as nested directories.
    Joining the segments gives back the key.
    """
    return [key[i : i + SEGMENT_LENGTH] for i in range(0, len(key), SEGMENT_LENGTH)]
