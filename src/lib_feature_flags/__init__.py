"""Public package surface for ``lib_feature_flags``.

Re-exports the facade functions, the provider building blocks, the value
object, and the error taxonomy so applications can ``import lib_feature_flags``
and never reach into subpackages for day-to-day use.
"""

from __future__ import annotations

from .adapters.cache.concurrent import ConcurrentCache
from .adapters.env.default import EnvFlagProvider, default_env_prefix
from .adapters.file.default import FileFlagProvider
from .adapters.memory.default import InMemoryFlagProvider
from .application.caching import CachingFlagProvider
from .application.composite import CompositeFlagProvider
from .application.generic import GenericFlagProvider
from .application.ports import Cache, ChangeListener, FlagProvider, ObservableFlagProvider
from .core import (
    FeatureFlags,
    NullProvider,
    add_global_change_listener,
    build_provider,
    current_provider,
    get,
    get_children,
    refresh,
    remove_global_change_listener,
    set_provider,
    shutdown,
)
from .domain.errors import FlagError, InvalidFormat, NotFound, ResolutionError, TypeConversionError
from .domain.value import NULL_VALUE, FlagValue
from .observability import bind_trace_id, get_logger

__all__ = [
    "Cache",
    "CachingFlagProvider",
    "ChangeListener",
    "CompositeFlagProvider",
    "ConcurrentCache",
    "EnvFlagProvider",
    "FeatureFlags",
    "FileFlagProvider",
    "FlagError",
    "FlagProvider",
    "FlagValue",
    "GenericFlagProvider",
    "InMemoryFlagProvider",
    "InvalidFormat",
    "NULL_VALUE",
    "NotFound",
    "NullProvider",
    "ObservableFlagProvider",
    "ResolutionError",
    "TypeConversionError",
    "add_global_change_listener",
    "bind_trace_id",
    "build_provider",
    "current_provider",
    "default_env_prefix",
    "get",
    "get_children",
    "get_logger",
    "refresh",
    "remove_global_change_listener",
    "set_provider",
    "shutdown",
]
