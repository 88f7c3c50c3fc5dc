"""Lazily initialised, thread-safe base for concrete flag sources.

Purpose
-------
Give file, environment, and in-memory sources one shared store so they only
implement how flags are loaded, never how they are guarded or looked up.

Contents
--------
* :class:`GenericFlagProvider` – abstract base with ``initialize``/``load_flags``
  hooks plus ``update_flag``/``bulk_update_flags`` write helpers.
* :func:`normalize_prefix` / :func:`select_children` – prefix handling shared
  with the in-memory adapter.

System Role
-----------
Reads go against an immutable snapshot that writers replace atomically, so
``resolve`` never takes a lock once the provider is initialised. The first
``resolve`` (or ``resolve_children``) call runs :meth:`initialize` exactly once
behind a double-checked lock.
"""

from __future__ import annotations

import threading
from abc import abstractmethod
from types import MappingProxyType
from typing import Any, Final, Mapping

from ..domain.value import NULL_VALUE, FlagValue
from ..observability import log_debug, make_event
from .ports import FlagProvider

SEPARATOR: Final[str] = "."


def normalize_prefix(prefix: str) -> str:
    """Append the key separator to *prefix* when missing.

    An empty prefix stays empty and therefore matches every key.

    Examples
    --------
    >>> normalize_prefix("auth"), normalize_prefix("auth."), normalize_prefix("")
    ('auth.', 'auth.', '')
    """

    if not prefix or prefix.endswith(SEPARATOR):
        return prefix
    return prefix + SEPARATOR


def select_children(flags: Mapping[str, FlagValue], prefix: str) -> Mapping[str, FlagValue]:
    """Return the read-only child map of *flags* below *prefix*.

    Matching is a literal ``startswith`` on the normalised prefix; returned keys
    have the prefix and separator stripped.

    Examples
    --------
    >>> flags = {"auth.login": FlagValue(True), "author": FlagValue("x")}
    >>> dict(select_children(flags, "auth"))
    {'login': FlagValue(raw=True)}
    """

    normalized = normalize_prefix(prefix)
    cut = len(normalized)
    return MappingProxyType({key[cut:]: value for key, value in flags.items() if key.startswith(normalized)})


class GenericFlagProvider(FlagProvider):
    """Abstract key/value store that concrete sources extend.

    Why
    ----
    Sources differ only in where flags come from. Locking, lazy start-up, and
    prefix lookups live here once.

    What
    ----
    Subclasses implement :meth:`initialize` (one-time setup, usually an initial
    load) and :meth:`load_flags` (called by :meth:`refresh`). Both populate the
    store through :meth:`update_flag` and :meth:`bulk_update_flags`.

    Examples
    --------
    >>> class Static(GenericFlagProvider):
    ...     def initialize(self):
    ...         self.load_flags()
    ...     def load_flags(self):
    ...         self.bulk_update_flags({"auth.login.enabled": True})
    >>> Static().resolve("auth.login.enabled").as_boolean()
    True
    >>> dict(Static().resolve_children("auth.login"))
    {'enabled': FlagValue(raw=True)}
    """

    def __init__(self) -> None:
        self._flags: Mapping[str, FlagValue] = MappingProxyType({})
        self._initialized = False
        self._init_lock = threading.Lock()
        self._write_lock = threading.Lock()

    @abstractmethod
    def initialize(self) -> None:
        """Perform one-time setup; called lazily on first lookup."""

    @abstractmethod
    def load_flags(self) -> None:
        """Reload flags from the backing source."""

    @property
    def initialized(self) -> bool:
        return self._initialized

    def resolve(self, key: str) -> FlagValue:
        self._ensure_initialized()
        return self._flags.get(key, NULL_VALUE)

    def resolve_children(self, prefix: str) -> Mapping[str, FlagValue]:
        self._ensure_initialized()
        return select_children(self._flags, prefix)

    def refresh(self) -> None:
        self.load_flags()

    def shutdown(self) -> None:
        with self._write_lock:
            self._flags = MappingProxyType({})

    def update_flag(self, key: str, value: Any) -> None:
        """Set *key* to *value*; ``None`` removes the key."""

        self.bulk_update_flags({key: value})

    def bulk_update_flags(self, updates: Mapping[str, Any]) -> None:
        """Apply *updates* in one atomic snapshot swap; ``None`` values remove keys."""

        with self._write_lock:
            snapshot = dict(self._flags)
            for key, value in updates.items():
                if value is None:
                    snapshot.pop(key, None)
                else:
                    snapshot[key] = FlagValue.of(value)
            self._flags = MappingProxyType(snapshot)

    def _ensure_initialized(self) -> None:
        if self._initialized:
            return
        with self._init_lock:
            if self._initialized:
                return
            self.initialize()
            self._initialized = True
        log_debug("provider_initialized", **make_event(type(self).__name__, None, {"flags": len(self._flags)}))
