"""Composition root and facade for ``lib_feature_flags``.

Purpose
-------
Give application code one place to ask for flags, independent of how the
providers behind it are composed, and one helper that wires the bundled
sources into the usual layered stack.

Contents
--------
* :class:`NullProvider` – provider that knows no flags; installed by default.
* :class:`FeatureFlags` – application-owned facade handle holding the current
  provider and the listener dispatch worker.
* :func:`set_provider` / :func:`get` / :func:`get_children` / :func:`refresh` /
  :func:`add_global_change_listener` / :func:`remove_global_change_listener` /
  :func:`shutdown` / :func:`current_provider` – the same operations on a
  process-wide default handle.
* :func:`build_provider` – compose overrides, environment, and files.

System Role
-----------
The facade never raises for a missing flag: ``get`` always returns a
:class:`FlagValue`, the absent value when nobody knows the key. Global change
listeners run on a single background worker so slow listener code never
blocks the thread that detected the change.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Final, Iterable, Mapping

from .adapters.cache.concurrent import ConcurrentCache
from .adapters.env.default import EnvFlagProvider, default_env_prefix
from .adapters.file.default import FileFlagProvider
from .adapters.memory.default import InMemoryFlagProvider
from .application.caching import CachingFlagProvider
from .application.composite import CompositeFlagProvider
from .application.ports import ChangeListener, FlagProvider, ObservableFlagProvider
from .domain.errors import FlagError, InvalidFormat, NotFound, ResolutionError, TypeConversionError
from .domain.value import NULL_VALUE, FlagValue
from .observability import log_debug, log_error, log_info, make_event

_LISTENER_THREAD_PREFIX: Final[str] = "lib-feature-flags-listener"


class NullProvider(FlagProvider):
    """Provider without flags: every key is absent, every prefix is empty."""

    def resolve(self, key: str) -> FlagValue:
        return NULL_VALUE

    def resolve_children(self, prefix: str) -> Mapping[str, FlagValue]:
        return MappingProxyType({})


@dataclass(frozen=True, slots=True)
class _Registration:
    listener: ChangeListener
    provider: ObservableFlagProvider
    dispatcher: ChangeListener


class FeatureFlags:
    """Facade over the currently installed provider.

    Why
    ----
    Call sites should not care whether flags come from one file or a cached
    composite of five sources, and the provider must be swappable at runtime
    (tests, hot reconfiguration).

    What
    ----
    Holds one provider (a :class:`NullProvider` until another is installed)
    and a single-thread executor that delivers global change notifications in
    the order the provider emitted them.

    Examples
    --------
    >>> flags = FeatureFlags()
    >>> flags.get("checkout.v2").as_boolean()
    False
    >>> flags.set_provider(InMemoryFlagProvider({"checkout.v2": "true"}))
    >>> flags.get("checkout.v2").as_boolean()
    True
    >>> flags.shutdown()
    """

    def __init__(self, provider: FlagProvider | None = None) -> None:
        self._provider: FlagProvider = provider if provider is not None else NullProvider()
        self._lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None
        self._registrations: list[_Registration] = []
        self._worker_state = threading.local()

    @property
    def provider(self) -> FlagProvider:
        return self._provider

    def set_provider(self, provider: FlagProvider | None, shutdown_previous: bool = False) -> None:
        """Install *provider*; ``None`` installs a :class:`NullProvider`.

        The previous provider keeps running unless *shutdown_previous* is set.
        Global listeners stay attached to the provider they were added to.
        """

        installed = provider if provider is not None else NullProvider()
        with self._lock:
            previous, self._provider = self._provider, installed
        log_info(
            "provider_installed",
            **make_event(type(installed).__name__, None, {"previous": type(previous).__name__}),
        )
        if shutdown_previous:
            previous.shutdown()

    def get(self, key: str) -> FlagValue:
        value = self._provider.resolve(key)
        return NULL_VALUE if value is None else value

    def get_children(self, prefix: str) -> Mapping[str, FlagValue]:
        return self._provider.resolve_children(prefix)

    def refresh(self) -> None:
        self._provider.refresh()

    def add_global_change_listener(self, listener: ChangeListener) -> bool:
        """Attach *listener* to the current provider if it is observable.

        Notifications are delivered asynchronously on the facade worker thread.

        Returns
        -------
        bool
            ``True`` when the listener was attached, ``False`` when the current
            provider cannot report changes.
        """

        provider = self._provider
        if not isinstance(provider, ObservableFlagProvider):
            log_debug("listener_ignored", **make_event(type(provider).__name__, None))
            return False

        def dispatch(key: str, value: FlagValue) -> None:
            self._submit(listener, key, value)

        provider.add_change_listener(dispatch)
        with self._lock:
            self._registrations.append(_Registration(listener, provider, dispatch))
        return True

    def remove_global_change_listener(self, listener: ChangeListener) -> None:
        """Detach every registration of *listener* made through this facade."""

        with self._lock:
            matching = [entry for entry in self._registrations if entry.listener == listener]
            self._registrations = [entry for entry in self._registrations if entry.listener != listener]
        for entry in matching:
            entry.provider.remove_change_listener(entry.dispatcher)

    def shutdown(self) -> None:
        """Shut down the current provider, then stop the listener worker.

        Notifications already queued are delivered before this returns unless
        it is called from a listener. A later notification starts a fresh
        worker.
        """

        self._provider.shutdown()
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=not getattr(self._worker_state, "active", False))
        log_debug("provider_shutdown", **make_event(type(self._provider).__name__, None))

    def _submit(self, listener: ChangeListener, key: str, value: FlagValue) -> None:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=_LISTENER_THREAD_PREFIX)
            self._executor.submit(self._deliver, listener, key, value)

    def _deliver(self, listener: ChangeListener, key: str, value: FlagValue) -> None:
        self._worker_state.active = True
        try:
            listener(key, value)
        except Exception as exc:  # noqa: BLE001 - worker thread has no caller to raise to
            log_error("listener_failed", **make_event("FeatureFlags", key, {"error": repr(exc)}))


_DEFAULT: Final[FeatureFlags] = FeatureFlags()


def set_provider(provider: FlagProvider | None, shutdown_previous: bool = False) -> None:
    """Install *provider* on the process-wide facade (see :meth:`FeatureFlags.set_provider`)."""

    _DEFAULT.set_provider(provider, shutdown_previous)


def current_provider() -> FlagProvider:
    return _DEFAULT.provider


def get(key: str) -> FlagValue:
    """Return the flag *key* from the process-wide facade; never raises for absence.

    Examples
    --------
    >>> get("never.configured").as_int(5)
    5
    """

    return _DEFAULT.get(key)


def get_children(prefix: str) -> Mapping[str, FlagValue]:
    return _DEFAULT.get_children(prefix)


def refresh() -> None:
    _DEFAULT.refresh()


def add_global_change_listener(listener: ChangeListener) -> bool:
    return _DEFAULT.add_global_change_listener(listener)


def remove_global_change_listener(listener: ChangeListener) -> None:
    _DEFAULT.remove_global_change_listener(listener)


def shutdown() -> None:
    _DEFAULT.shutdown()


def build_provider(
    *,
    files: Iterable[str | Path] = (),
    env_prefix: str | None = None,
    overrides: Mapping[str, Any] | None = None,
    short_circuit: bool = False,
    cache: bool = True,
    refresh_interval: float = 0.0,
    environ: Mapping[str, str] | None = None,
) -> FlagProvider:
    """Compose the bundled sources into a layered provider.

    Precedence, highest first: *overrides*, environment variables carrying
    *env_prefix*, then *files* in the order given.

    Parameters
    ----------
    files:
        TOML/JSON/YAML flag documents; missing files contribute nothing.
    env_prefix:
        Prefix for :class:`EnvFlagProvider`; ``None`` skips the environment.
    overrides:
        Flags placed in an :class:`InMemoryFlagProvider` ahead of every source.
    short_circuit:
        Forwarded to :class:`CompositeFlagProvider`.
    cache:
        Wrap the composite in a :class:`CachingFlagProvider`.
    refresh_interval:
        Background rebuild period in seconds for the cache (``0`` disables).
    environ:
        Environment mapping for tests; defaults to :data:`os.environ`.

    Examples
    --------
    >>> provider = build_provider(overrides={"beta": "1"}, env_prefix="DEMO", environ={"DEMO_BETA": "0"})
    >>> provider.resolve("beta").as_boolean()
    True
    >>> provider.shutdown()
    """

    layers: list[FlagProvider] = []
    if overrides is not None:
        layers.append(InMemoryFlagProvider(overrides))
    if env_prefix is not None:
        layers.append(EnvFlagProvider(env_prefix, environ=environ))
    layers.extend(FileFlagProvider(path) for path in files)

    composite = CompositeFlagProvider(layers, short_circuit=short_circuit)
    log_debug("provider_composed", **make_event("CompositeFlagProvider", None, {"layers": len(layers)}))
    if not cache:
        return composite
    return CachingFlagProvider(composite, ConcurrentCache(), refresh_interval)


__all__ = [
    "FeatureFlags",
    "NullProvider",
    "FlagValue",
    "NULL_VALUE",
    "FlagError",
    "TypeConversionError",
    "ResolutionError",
    "InvalidFormat",
    "NotFound",
    "set_provider",
    "current_provider",
    "get",
    "get_children",
    "refresh",
    "add_global_change_listener",
    "remove_global_change_listener",
    "shutdown",
    "build_provider",
    "default_env_prefix",
]
