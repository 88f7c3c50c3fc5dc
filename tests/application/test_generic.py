"""GenericFlagProvider behaviour: lazy start-up, snapshots, and prefix lookups."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from lib_feature_flags.application.generic import normalize_prefix, select_children
from lib_feature_flags.domain.value import NULL_VALUE, FlagValue
from tests.support import CountingProvider


def test_initialize_runs_once_under_concurrent_first_use() -> None:
    """Racing first lookups must share a single initialisation."""

    provider = CountingProvider({"beta": True}, init_delay=0.05)
    start = threading.Barrier(8)

    def first_lookup(_: int) -> bool:
        start.wait()
        return provider.resolve("beta").as_boolean()

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(first_lookup, range(8)))

    assert results == [True] * 8
    assert provider.initialize_calls == 1
    assert provider.initialized


def test_resolve_children_also_initialises() -> None:
    provider = CountingProvider({"auth.login": True})
    assert dict(provider.resolve_children("auth")) == {"login": FlagValue(True)}
    assert provider.initialize_calls == 1


def test_missing_key_returns_absent_value() -> None:
    assert CountingProvider().resolve("nope") is NULL_VALUE


def test_children_strip_prefix_and_separator() -> None:
    provider = CountingProvider({"auth.login.enabled": True, "auth.login.mode": "sso", "author": "x", "auth": 1})
    children = provider.resolve_children("auth.login")
    assert dict(children) == {"enabled": FlagValue(True), "mode": FlagValue("sso")}
    assert dict(provider.resolve_children("auth.")) == dict(provider.resolve_children("auth"))


def test_empty_prefix_returns_every_flag() -> None:
    provider = CountingProvider({"a.b": 1, "c": 2})
    assert dict(provider.resolve_children("")) == {"a.b": FlagValue(1), "c": FlagValue(2)}


def test_children_map_is_read_only() -> None:
    children = CountingProvider({"auth.login": True}).resolve_children("auth")
    with pytest.raises(TypeError):
        children["login"] = FlagValue(False)  # type: ignore[index]


def test_refresh_calls_load_flags() -> None:
    provider = CountingProvider({"retries": 3})
    provider.resolve("retries")
    provider.source["retries"] = 5
    provider.refresh()
    assert provider.load_calls == 1
    assert provider.resolve("retries").as_int() == 5


def test_bulk_update_with_none_removes_keys() -> None:
    provider = CountingProvider({"keep": 1, "drop": 2})
    provider.resolve("keep")
    provider.bulk_update_flags({"drop": None, "add": 3})
    assert provider.resolve("drop") is NULL_VALUE
    assert provider.resolve("add").as_int() == 3
    provider.update_flag("keep", None)
    assert provider.resolve("keep") is NULL_VALUE


def test_snapshot_taken_before_update_is_unchanged() -> None:
    provider = CountingProvider({"auth.login": True})
    before = provider.resolve_children("auth")
    provider.update_flag("auth.register", True)
    assert dict(before) == {"login": FlagValue(True)}


def test_shutdown_discards_flags() -> None:
    provider = CountingProvider({"beta": True})
    provider.resolve("beta")
    provider.shutdown()
    assert provider.resolve("beta") is NULL_VALUE


def test_initialisation_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="lib_feature_flags")
    CountingProvider({"beta": True}).resolve("beta")
    record = next(record for record in caplog.records if record.getMessage() == "provider_initialized")
    assert record.context["provider"] == "CountingProvider"
    assert record.context["flags"] == 1


def test_prefix_helpers() -> None:
    assert normalize_prefix("") == ""
    assert normalize_prefix("a.b") == "a.b."
    assert dict(select_children({"x.y": FlagValue(1)}, "x")) == {"y": FlagValue(1)}


def test_failed_initialisation_is_retried() -> None:
    class Flaky(CountingProvider):
        def initialize(self) -> None:
            super().initialize()
            if self.initialize_calls == 1:
                raise RuntimeError("source not ready")

    provider = Flaky({"beta": True})
    with pytest.raises(RuntimeError, match="not ready"):
        provider.resolve("beta")
    assert not provider.initialized
    assert provider.resolve("beta").as_boolean() is True
    assert provider.initialize_calls == 2
