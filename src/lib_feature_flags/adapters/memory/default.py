"""In-memory observable flag source.

Purpose
-------
Hold flags set programmatically: test fixtures, runtime overrides, admin
toggles. It is the bundled observable source; every mutation notifies the
registered listeners synchronously on the mutating thread.

Key behaviours
--------------
* Builds on :class:`~lib_feature_flags.application.generic.GenericFlagProvider`
  for storage, so reads are lock free.
* ``set_flag`` notifies with the new value, ``clear_flag``/``clear_all``
  notify with the absent value.
* ``refresh`` is a no-op: the flags are the source of truth.
"""

from __future__ import annotations

from typing import Any, Mapping

from ...application.generic import GenericFlagProvider
from ...application.listeners import ListenerRegistry
from ...application.ports import ChangeListener, ObservableFlagProvider
from ...domain.value import NULL_VALUE, FlagValue


class InMemoryFlagProvider(GenericFlagProvider, ObservableFlagProvider):
    """Observable provider backed by a plain mapping.

    Examples
    --------
    >>> events = []
    >>> overrides = InMemoryFlagProvider({"checkout.v2": False})
    >>> overrides.add_change_listener(lambda key, value: events.append((key, value.raw)))
    >>> overrides.set_flag("checkout.v2", True)
    >>> overrides.resolve("checkout.v2").as_boolean()
    True
    >>> events
    [('checkout.v2', True)]
    """

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        super().__init__()
        self._initial = dict(initial or {})
        self._listeners = ListenerRegistry()

    def initialize(self) -> None:
        self.bulk_update_flags(self._initial)

    def load_flags(self) -> None:
        return None

    def set_flag(self, key: str, value: Any) -> None:
        """Store *value* under *key* and notify listeners; ``None`` clears the key."""

        if value is None:
            self.clear_flag(key)
            return
        self._ensure_initialized()
        flag = FlagValue.of(value)
        self.update_flag(key, flag)
        self._listeners.notify(key, flag)

    def clear_flag(self, key: str) -> None:
        self._ensure_initialized()
        if key not in self._flags:
            return
        self.update_flag(key, None)
        self._listeners.notify(key, NULL_VALUE)

    def clear_all(self) -> None:
        self._ensure_initialized()
        removed = list(self._flags)
        self.bulk_update_flags(dict.fromkeys(removed))
        for key in removed:
            self._listeners.notify(key, NULL_VALUE)

    def add_change_listener(self, listener: ChangeListener) -> None:
        self._listeners.add(listener)

    def remove_change_listener(self, listener: ChangeListener) -> None:
        self._listeners.remove(listener)
