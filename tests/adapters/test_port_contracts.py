"""Adapter contract tests for the application-layer ports.

Every bundled provider and cache must keep satisfying the runtime-checkable
protocols so the decorators and the facade can rely on ``isinstance`` checks.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from lib_feature_flags.adapters.cache.concurrent import ConcurrentCache
from lib_feature_flags.adapters.env.default import EnvFlagProvider
from lib_feature_flags.adapters.file.default import FileFlagProvider
from lib_feature_flags.adapters.memory.default import InMemoryFlagProvider
from lib_feature_flags.application import ports
from lib_feature_flags.application.caching import CachingFlagProvider
from lib_feature_flags.application.composite import CompositeFlagProvider
from lib_feature_flags.core import NullProvider
from tests.support import MutableSource, StubProvider


@pytest.fixture()
def flag_file(tmp_path: Path) -> Path:
    path = tmp_path / "flags.toml"
    path.write_text("beta = true\n")
    return path


def test_plain_providers_are_not_observable(flag_file: Path) -> None:
    for provider in (
        EnvFlagProvider("DEMO", environ={}),
        FileFlagProvider(flag_file),
        CompositeFlagProvider([]),
        NullProvider(),
        StubProvider(),
    ):
        assert isinstance(provider, ports.FlagProvider)
        assert not isinstance(provider, ports.ObservableFlagProvider)


def test_observable_providers() -> None:
    cached = CachingFlagProvider(StubProvider(), ConcurrentCache())
    for provider in (InMemoryFlagProvider(), MutableSource(), cached):
        assert isinstance(provider, ports.ObservableFlagProvider)
        assert isinstance(provider, ports.FlagProvider)
    cached.shutdown()


def test_default_lifecycle_hooks_are_noops() -> None:
    provider = NullProvider()
    assert provider.refresh() is None
    assert provider.shutdown() is None
    assert provider.resolve("anything").is_null()
    assert dict(provider.resolve_children("")) == {}


def test_concurrent_cache_contract() -> None:
    assert isinstance(ConcurrentCache(), ports.Cache)
