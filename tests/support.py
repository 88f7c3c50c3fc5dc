"""Shared fixtures-in-code for the provider test suites.

The helpers stand in for real flag sources so the decorator tests can observe
exactly how often a delegate was asked, refreshed, or shut down.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping

from lib_feature_flags.application.generic import GenericFlagProvider, select_children
from lib_feature_flags.application.listeners import ListenerRegistry
from lib_feature_flags.application.ports import ChangeListener, FlagProvider, ObservableFlagProvider
from lib_feature_flags.domain.value import FlagValue


class CountingProvider(GenericFlagProvider):
    """Generic provider that records hook calls and can stall ``initialize``."""

    def __init__(self, flags: Mapping[str, Any] | None = None, *, init_delay: float = 0.0) -> None:
        super().__init__()
        self.source: dict[str, Any] = dict(flags or {})
        self.init_delay = init_delay
        self.initialize_calls = 0
        self.load_calls = 0
        self._counter_lock = threading.Lock()

    def initialize(self) -> None:
        with self._counter_lock:
            self.initialize_calls += 1
        if self.init_delay:
            time.sleep(self.init_delay)
        self.bulk_update_flags(self.source)

    def load_flags(self) -> None:
        with self._counter_lock:
            self.load_calls += 1
        self.bulk_update_flags(self.source)


class MutableSource(ObservableFlagProvider):
    """Structural observable provider returning ``None`` for unknown keys.

    Mirrors what a hand-written collaborator looks like: no base class help,
    every contract method spelled out.
    """

    def __init__(self, flags: Mapping[str, Any] | None = None) -> None:
        self.flags: dict[str, Any] = dict(flags or {})
        self.listeners = ListenerRegistry()
        self.resolve_calls = 0
        self.refresh_calls = 0
        self.shutdown_calls = 0

    def set_flag(self, key: str, value: Any) -> None:
        self.flags[key] = value
        self.listeners.notify(key, FlagValue.of(value))

    def resolve(self, key: str) -> FlagValue | None:
        self.resolve_calls += 1
        if key not in self.flags:
            return None
        return FlagValue.of(self.flags[key])

    def resolve_children(self, prefix: str) -> Mapping[str, FlagValue]:
        return select_children({key: FlagValue.of(value) for key, value in self.flags.items()}, prefix)

    def refresh(self) -> None:
        self.refresh_calls += 1

    def shutdown(self) -> None:
        self.shutdown_calls += 1

    def add_change_listener(self, listener: ChangeListener) -> None:
        self.listeners.add(listener)

    def remove_change_listener(self, listener: ChangeListener) -> None:
        self.listeners.remove(listener)


@dataclass
class StubProvider(FlagProvider):
    """Plain, non-observable provider with optional failure hooks."""

    flags: dict[str, Any] = field(default_factory=dict)
    fail_with: BaseException | None = None
    calls: list[str] = field(default_factory=list)

    def resolve(self, key: str) -> FlagValue:
        self.calls.append(f"resolve:{key}")
        self._maybe_fail()
        return FlagValue.of(self.flags.get(key))

    def resolve_children(self, prefix: str) -> Mapping[str, FlagValue]:
        self.calls.append(f"children:{prefix}")
        self._maybe_fail()
        return select_children({key: FlagValue.of(value) for key, value in self.flags.items()}, prefix)

    def refresh(self) -> None:
        self.calls.append("refresh")
        self._maybe_fail()

    def shutdown(self) -> None:
        self.calls.append("shutdown")
        self._maybe_fail()

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with


class RecordingListener:
    """Thread-safe listener that remembers ``(key, raw)`` pairs and their threads."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []
        self.threads: list[str] = []
        self._condition = threading.Condition()

    def __call__(self, key: str, value: FlagValue) -> None:
        with self._condition:
            self.events.append((key, value.raw))
            self.threads.append(threading.current_thread().name)
            self._condition.notify_all()

    def wait_for(self, predicate: Callable[[list[tuple[str, Any]]], bool], timeout: float = 2.0) -> bool:
        with self._condition:
            return self._condition.wait_for(lambda: predicate(self.events), timeout=timeout)

    def snapshot(self) -> list[tuple[str, Any]]:
        with self._condition:
            return list(self.events)


def frozen(flags: Mapping[str, Any]) -> Mapping[str, FlagValue]:
    """Wrap raw payloads the way providers return child maps."""

    return MappingProxyType({key: FlagValue.of(value) for key, value in flags.items()})
