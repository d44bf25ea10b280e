"""Disk cache for HTTP(S) content.

- :mod:`~urlocal.cache.keys` -- URL to cache key.
- :mod:`~urlocal.cache.store` -- the two files that make up an entry.
- :mod:`~urlocal.cache.engine` -- the coherence state machine.
- :mod:`~urlocal.cache.admin` -- rename, reset, list and tune the cache.
"""

from urlocal.cache.admin import CacheAdmin
from urlocal.cache.engine import CoherenceEngine, EngineResult, EngineState, Resolution
from urlocal.cache.keys import derive_key, url_for_key
from urlocal.cache.store import EntryStore

__all__ = [
    "CacheAdmin",
    "CoherenceEngine",
    "EngineResult",
    "EngineState",
    "EntryStore",
    "Resolution",
    "derive_key",
    "url_for_key",
]
