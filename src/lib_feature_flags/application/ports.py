"""Application-layer ports describing provider and cache responsibilities.

Purpose
-------
Define the structural contracts that flag sources, decorators, and cache
strategies satisfy so the facade and the decorators can orchestrate behaviour
without depending on concrete implementations.

Contents
--------
* :data:`ChangeListener` – callback shape invoked with ``(key, new_value)``.
* :class:`FlagProvider` – resolve keys and child maps; refresh and shutdown.
* :class:`ObservableFlagProvider` – provider that also reports changes.
* :class:`Cache` – get/put/invalidate strategy used by the caching decorator.

System Role
-----------
The protocols are ``runtime_checkable`` so decorators decide at runtime
whether a delegate is observable. Classes that subclass a protocol explicitly
inherit the no-op ``refresh``/``shutdown`` defaults; structural
implementations must provide all four provider methods themselves.
"""

from __future__ import annotations

from typing import Callable, Hashable, Mapping, Protocol, TypeVar, runtime_checkable

from ..domain.value import FlagValue

ChangeListener = Callable[[str, FlagValue], None]
"""Callback invoked with the changed key and its new :class:`FlagValue`."""

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@runtime_checkable
class FlagProvider(Protocol):
    """Resolve flag keys to :class:`FlagValue` instances.

    Methods
    -------
    :meth:`resolve`
        Value for *key*; the absent value (or ``None``) when missing.
    :meth:`resolve_children`
        Flags below *prefix* with the prefix stripped; never ``None``.
    :meth:`refresh`
        Reload from the backing source. No-op by default.
    :meth:`shutdown`
        Release resources. No-op by default; the provider is unusable after.
    """

    def resolve(self, key: str) -> FlagValue | None:
        """Return the value for *key* or the absent value."""

    def resolve_children(self, prefix: str) -> Mapping[str, FlagValue]:
        """Return the flags below *prefix* keyed by their stripped names."""

    def refresh(self) -> None:
        """Reload flags from the underlying source."""

        return None

    def shutdown(self) -> None:
        """Release resources held by the provider."""

        return None


@runtime_checkable
class ObservableFlagProvider(FlagProvider, Protocol):
    """Provider that notifies registered listeners when a flag changes.

    Listeners run in registration order. No fairness or priority guarantee
    exists beyond that.
    """

    def add_change_listener(self, listener: ChangeListener) -> None:
        """Register *listener* for change notifications."""

    def remove_change_listener(self, listener: ChangeListener) -> None:
        """Deregister a previously registered *listener*."""


@runtime_checkable
class Cache(Protocol[K, V]):
    """Pluggable cache strategy used by the caching decorator.

    Why
    ----
    Keep eviction and concurrency policy replaceable without touching the
    decorator.
    """

    def get(self, key: K, loader: Callable[[K], V | None] | None = None) -> V | None:
        """Return the cached value, computing it with *loader* on a miss."""

    def put(self, key: K, value: V) -> None:
        """Store *value* under *key*, replacing any previous entry."""

    def invalidate(self, key: K) -> None:
        """Drop the entry for *key* if present."""

    def invalidate_all(self) -> None:
        """Drop every entry."""
