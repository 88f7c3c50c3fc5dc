"""Caching decorator with optional periodic refresh and change forwarding.

Purpose
-------
Put a pluggable cache in front of a slow or expensive provider (remote
service, large file) while keeping change notifications flowing.

Contents
--------
* :class:`CachingFlagProvider` – observable decorator around one delegate.

System Role
-----------
Cache entries are populated only by full rebuilds and by misses, never by
source push events. Push events from an observable delegate are forwarded to
listeners as-is and the cache keeps serving the previous value until the next
rebuild. Child queries bypass the cache entirely.
"""

from __future__ import annotations

import threading
from typing import Final, Mapping

from ..domain.value import NULL_VALUE, FlagValue
from ..observability import log_debug, log_error, make_event
from .listeners import ListenerRegistry
from .ports import Cache, ChangeListener, FlagProvider, ObservableFlagProvider

_WORKER_NAME: Final[str] = "lib-feature-flags-cache-refresh"


class CachingFlagProvider(ObservableFlagProvider):
    """Decorate *delegate* with *cache* and an optional refresh schedule.

    Why
    ----
    Hot paths call ``resolve`` far more often than sources change; answering
    from memory keeps lookups cheap while a single background thread keeps the
    snapshot current.

    What
    ----
    Construction subscribes to an observable delegate, performs one
    synchronous :meth:`refresh`, then starts a daemon thread that rebuilds the
    cache every ``refresh_interval`` seconds when the interval is positive.
    A rebuild invalidates everything, copies ``delegate.resolve_children("")``
    into the cache and notifies every key, changed or not, in the delegate's
    iteration order.

    Parameters
    ----------
    delegate:
        Provider that owns the data.
    cache:
        Cache strategy, usually a
        :class:`~lib_feature_flags.adapters.cache.concurrent.ConcurrentCache`.
    refresh_interval:
        Seconds between background rebuilds; ``0`` disables the schedule.

    Examples
    --------
    >>> from lib_feature_flags.adapters.cache.concurrent import ConcurrentCache
    >>> from lib_feature_flags.adapters.memory.default import InMemoryFlagProvider
    >>> source = InMemoryFlagProvider({"beta": "on"})
    >>> cached = CachingFlagProvider(source, ConcurrentCache())
    >>> source.set_flag("beta", "off")
    >>> cached.resolve("beta").as_string()
    'on'
    >>> cached.refresh()
    >>> cached.resolve("beta").as_string()
    'off'
    >>> cached.shutdown()
    """

    def __init__(
        self,
        delegate: FlagProvider,
        cache: Cache[str, FlagValue],
        refresh_interval: float = 0.0,
    ) -> None:
        self._delegate = delegate
        self._cache = cache
        self._refresh_interval = refresh_interval
        self._listeners = ListenerRegistry()
        self._stop = threading.Event()
        self._rebuild_lock = threading.Lock()
        self._worker: threading.Thread | None = None
        self._shut_down = False
        self._observes_delegate = isinstance(delegate, ObservableFlagProvider)

        if self._observes_delegate:
            delegate.add_change_listener(self._on_source_change)  # type: ignore[union-attr]

        self.refresh()

        if refresh_interval > 0:
            self._worker = threading.Thread(target=self._run, name=_WORKER_NAME, daemon=True)
            self._worker.start()

    @property
    def delegate(self) -> FlagProvider:
        return self._delegate

    @property
    def cache(self) -> Cache[str, FlagValue]:
        return self._cache

    def resolve(self, key: str) -> FlagValue:
        value = self._cache.get(key, self._delegate.resolve)
        return NULL_VALUE if value is None else value

    def resolve_children(self, prefix: str) -> Mapping[str, FlagValue]:
        return self._delegate.resolve_children(prefix)

    def refresh(self) -> None:
        """Rebuild the cache from the delegate, then refresh the delegate itself."""

        self._rebuild()
        self._delegate.refresh()

    def add_change_listener(self, listener: ChangeListener) -> None:
        self._listeners.add(listener)

    def remove_change_listener(self, listener: ChangeListener) -> None:
        self._listeners.remove(listener)

    def shutdown(self) -> None:
        """Stop the refresh schedule and shut the delegate down.

        Safe to call when no schedule was started and safe to call twice. Once
        this returns no rebuild runs and no notification is delivered.
        """

        if self._shut_down:
            return
        self._shut_down = True
        self._stop.set()
        worker = self._worker
        if worker is not None and worker is not threading.current_thread():
            worker.join()
        if self._observes_delegate:
            self._delegate.remove_change_listener(self._on_source_change)  # type: ignore[union-attr]
        self._listeners.clear()
        self._delegate.shutdown()
        log_debug("provider_shutdown", **make_event(type(self).__name__, None))

    def _run(self) -> None:
        while not self._stop.wait(self._refresh_interval):
            try:
                self._rebuild()
            except Exception as exc:  # noqa: BLE001 - background thread has no caller
                log_error(
                    "cache_refresh_failed",
                    **make_event(type(self).__name__, None, {"delegate": type(self._delegate).__name__, "error": repr(exc)}),
                )

    def _rebuild(self) -> None:
        with self._rebuild_lock:
            self._cache.invalidate_all()
            flags = self._delegate.resolve_children("")
            for key, value in flags.items():
                self._cache.put(key, value)
        log_debug("cache_rebuilt", **make_event(type(self).__name__, None, {"keys": len(flags)}))
        # listeners run unlocked so one of them may call shutdown()
        for key, value in flags.items():
            if self._stop.is_set():
                return
            self._listeners.notify(key, value)

    def _on_source_change(self, key: str, value: FlagValue | None) -> None:
        self._listeners.notify(key, FlagValue.of(value))
