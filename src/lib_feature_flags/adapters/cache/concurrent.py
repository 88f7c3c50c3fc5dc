"""Thread-safe in-memory cache strategy.

Purpose
-------
Default :class:`~lib_feature_flags.application.ports.Cache` implementation used
by :class:`~lib_feature_flags.application.caching.CachingFlagProvider`.

Key behaviours
--------------
* Hits are served without locking.
* Misses run the loader under a per-key lock: concurrent callers for the same
  key wait and observe the winner's result, callers for other keys proceed.
  A key lock only lives while somebody is loading or waiting on that key.
* A loader returning ``None`` is passed through but never stored.
* ``put``/``invalidate``/``invalidate_all`` do not wait for in-flight loaders;
  a loader that finishes after an invalidation still stores its result.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Callable, Hashable, Iterator, TypeVar

from ...application.ports import Cache

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_MISSING = object()


class _KeyLock:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.holders = 0


class ConcurrentCache(Cache[K, V]):
    """Dictionary-backed cache with compute-if-absent loading.

    Parameters
    ----------
    loader:
        Default loader used when :meth:`get` receives no override.

    Examples
    --------
    >>> cache = ConcurrentCache(loader=str.upper)
    >>> cache.get("flag")
    'FLAG'
    >>> cache.get("flag", lambda key: "ignored")
    'FLAG'
    >>> cache.invalidate("flag")
    >>> "flag" in cache
    False
    """

    def __init__(self, loader: Callable[[K], V | None] | None = None) -> None:
        self._loader = loader
        self._entries: dict[K, V] = {}
        self._lock = threading.Lock()
        self._key_locks: dict[K, _KeyLock] = {}

    def get(self, key: K, loader: Callable[[K], V | None] | None = None) -> V | None:
        cached = self._entries.get(key, _MISSING)
        if cached is not _MISSING:
            return cached  # type: ignore[return-value]
        chosen = loader if loader is not None else self._loader
        if chosen is None:
            raise TypeError(f"No loader available for cache miss on {key!r}")
        with self._locked(key):
            cached = self._entries.get(key, _MISSING)
            if cached is not _MISSING:
                return cached  # type: ignore[return-value]
            computed = chosen(key)
            if computed is not None:
                with self._lock:
                    self._entries[key] = computed
            return computed

    def put(self, key: K, value: V) -> None:
        with self._lock:
            self._entries[key] = value

    def invalidate(self, key: K) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def invalidate_all(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"ConcurrentCache({dict(self._entries)!r})"

    @contextmanager
    def _locked(self, key: K) -> Iterator[None]:
        with self._lock:
            entry = self._key_locks.get(key)
            if entry is None:
                entry = self._key_locks[key] = _KeyLock()
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._lock:
                entry.holders -= 1
                if not entry.holders:
                    del self._key_locks[key]
