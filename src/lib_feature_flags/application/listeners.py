"""Copy-on-write listener list shared by observable providers."""

from __future__ import annotations

import threading

from ..domain.value import FlagValue
from .ports import ChangeListener


class ListenerRegistry:
    """Registration-ordered listeners, safe to mutate while notifying.

    ``notify`` iterates the snapshot taken when it started, so listeners added
    or removed during a notification take effect on the next one. Exceptions
    raised by a listener propagate to the notifier and skip the remaining
    listeners.

    Examples
    --------
    >>> seen = []
    >>> registry = ListenerRegistry()
    >>> registry.add(lambda key, value: seen.append((key, value.raw)))
    >>> registry.notify("beta", FlagValue(True))
    >>> seen
    [('beta', True)]
    """

    def __init__(self) -> None:
        self._listeners: tuple[ChangeListener, ...] = ()
        self._lock = threading.Lock()

    def add(self, listener: ChangeListener) -> None:
        with self._lock:
            self._listeners = (*self._listeners, listener)

    def remove(self, listener: ChangeListener) -> None:
        """Remove the first registration of *listener*; unknown listeners are ignored."""

        with self._lock:
            listeners = list(self._listeners)
            if listener in listeners:
                listeners.remove(listener)
                self._listeners = tuple(listeners)

    def clear(self) -> None:
        with self._lock:
            self._listeners = ()

    def notify(self, key: str, value: FlagValue) -> None:
        for listener in self._listeners:
            listener(key, value)

    def __len__(self) -> int:
        return len(self._listeners)
