"""Composite provider aggregating several providers by priority order.

Purpose
-------
Resolve flags from multiple sources (overrides, environment, files, remote
services) as if they were one, earlier providers taking precedence.

Contents
    - ``CompositeFlagProvider``: ordered, immutable provider list plus the
      ``short_circuit`` switch.

System Role
-----------
Typically wrapped by :class:`~lib_feature_flags.application.caching.CachingFlagProvider`
and installed on the facade. Delegate errors are never caught: a raising
provider stops the iteration and the error reaches the caller unchanged.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping

from ..domain.value import NULL_VALUE, FlagValue
from .ports import FlagProvider


class CompositeFlagProvider(FlagProvider):
    """Aggregate an ordered list of providers into a single provider.

    Why
    ----
    Layered sources need deterministic precedence without each caller knowing
    the layers.

    What
    ----
    ``resolve`` returns the first present value in list order. ``short_circuit``
    only affects ``resolve_children``: when set, the first provider that
    returns a non-empty child map wins outright and later providers contribute
    nothing; otherwise child maps merge with first-write-wins.

    Examples
    --------
    >>> from lib_feature_flags.adapters.memory.default import InMemoryFlagProvider
    >>> primary = InMemoryFlagProvider({"auth.login": True})
    >>> fallback = InMemoryFlagProvider({"auth.login": False, "auth.register": False})
    >>> merged = CompositeFlagProvider([primary, fallback])
    >>> sorted(merged.resolve_children("auth").items())
    [('login', FlagValue(raw=True)), ('register', FlagValue(raw=False))]
    >>> dict(CompositeFlagProvider([primary, fallback], short_circuit=True).resolve_children("auth"))
    {'login': FlagValue(raw=True)}
    """

    def __init__(self, providers: Iterable[FlagProvider], short_circuit: bool = False) -> None:
        self._providers: tuple[FlagProvider, ...] = tuple(providers)
        self._short_circuit = short_circuit

    @property
    def providers(self) -> tuple[FlagProvider, ...]:
        return self._providers

    @property
    def short_circuit(self) -> bool:
        return self._short_circuit

    def resolve(self, key: str) -> FlagValue:
        # short_circuit applies to resolve_children only
        for provider in self._providers:
            value = provider.resolve(key)
            if value is None or value.is_null():
                continue
            return value
        return NULL_VALUE

    def resolve_children(self, prefix: str) -> Mapping[str, FlagValue]:
        merged: dict[str, FlagValue] = {}
        for provider in self._providers:
            children = provider.resolve_children(prefix)
            if self._short_circuit and children:
                return MappingProxyType(dict(children))
            for key, value in children.items():
                merged.setdefault(key, value)
        return MappingProxyType(merged)

    def refresh(self) -> None:
        for provider in self._providers:
            provider.refresh()

    def shutdown(self) -> None:
        for provider in self._providers:
            provider.shutdown()

    def __repr__(self) -> str:
        names = ", ".join(type(provider).__name__ for provider in self._providers)
        return f"CompositeFlagProvider([{names}], short_circuit={self._short_circuit})"
