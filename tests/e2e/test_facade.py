"""Facade behaviour: provider swapping, asynchronous global listeners, and wiring."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Iterator

import pytest

import lib_feature_flags
from lib_feature_flags import (
    CachingFlagProvider,
    CompositeFlagProvider,
    FeatureFlags,
    InMemoryFlagProvider,
    NullProvider,
    build_provider,
)
from lib_feature_flags.domain.value import NULL_VALUE, FlagValue
from tests.support import MutableSource, RecordingListener, StubProvider


@pytest.fixture()
def flags() -> Iterator[FeatureFlags]:
    facade = FeatureFlags()
    yield facade
    facade.shutdown()


@pytest.fixture()
def default_facade() -> Iterator[None]:
    yield
    lib_feature_flags.set_provider(None, shutdown_previous=True)


def test_null_provider_is_installed_by_default(flags: FeatureFlags) -> None:
    assert isinstance(flags.provider, NullProvider)
    assert flags.get("anything") is NULL_VALUE
    assert dict(flags.get_children("")) == {}


def test_none_from_provider_becomes_absent_value(flags: FeatureFlags) -> None:
    flags.set_provider(MutableSource())
    assert flags.get("ghost") is NULL_VALUE


def test_set_provider_keeps_previous_running_by_default(flags: FeatureFlags) -> None:
    first = StubProvider({"beta": 1})
    flags.set_provider(first)
    flags.set_provider(StubProvider({"beta": 2}))
    assert "shutdown" not in first.calls
    assert flags.get("beta").as_int() == 2


def test_set_provider_can_shut_down_previous(flags: FeatureFlags) -> None:
    first = StubProvider()
    flags.set_provider(first)
    flags.set_provider(None, shutdown_previous=True)
    assert first.calls == ["shutdown"]
    assert isinstance(flags.provider, NullProvider)


def test_refresh_and_children_delegate(flags: FeatureFlags) -> None:
    provider = StubProvider({"auth.login": True})
    flags.set_provider(provider)
    flags.refresh()
    assert dict(flags.get_children("auth")) == {"login": FlagValue(True)}
    assert provider.calls == ["refresh", "children:auth"]


def test_global_listener_requires_observable_provider(flags: FeatureFlags, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="lib_feature_flags")
    assert flags.add_global_change_listener(RecordingListener()) is False
    assert any(record.getMessage() == "listener_ignored" for record in caplog.records)


def test_global_listener_runs_off_the_calling_thread(flags: FeatureFlags) -> None:
    source = InMemoryFlagProvider()
    flags.set_provider(source)
    release = threading.Event()
    delivered: list[tuple[str, object, str]] = []

    def slow_listener(key: str, value: FlagValue) -> None:
        release.wait(2.0)
        delivered.append((key, value.raw, threading.current_thread().name))

    assert flags.add_global_change_listener(slow_listener) is True
    source.set_flag("beta", "on")
    source.set_flag("beta", "off")
    assert delivered == []
    release.set()
    flags.shutdown()
    assert [(key, raw) for key, raw, _ in delivered] == [("beta", "on"), ("beta", "off")]
    assert all(name.startswith("lib-feature-flags-listener") for _, _, name in delivered)


def test_removed_global_listener_stops_receiving(flags: FeatureFlags) -> None:
    source = InMemoryFlagProvider()
    flags.set_provider(source)
    listener = RecordingListener()
    flags.add_global_change_listener(listener)
    source.set_flag("beta", 1)
    assert listener.wait_for(lambda events: len(events) == 1)
    flags.remove_global_change_listener(listener)
    source.set_flag("beta", 2)
    flags.shutdown()
    assert listener.snapshot() == [("beta", 1)]
    assert len(source._listeners) == 0


def test_failing_listener_is_logged_and_later_events_still_flow(
    flags: FeatureFlags, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.ERROR, logger="lib_feature_flags")
    source = InMemoryFlagProvider()
    flags.set_provider(source)
    listener = RecordingListener()

    def broken(key: str, value: FlagValue) -> None:
        raise RuntimeError("listener exploded")

    flags.add_global_change_listener(broken)
    flags.add_global_change_listener(listener)
    source.set_flag("beta", True)
    assert listener.wait_for(lambda events: events == [("beta", True)])
    failures = [record for record in caplog.records if record.getMessage() == "listener_failed"]
    assert failures and "listener exploded" in failures[0].context["error"]


def test_listener_may_shut_down_the_facade(flags: FeatureFlags) -> None:
    source = InMemoryFlagProvider()
    flags.set_provider(source)
    done = threading.Event()

    def stopper(key: str, value: FlagValue) -> None:
        flags.shutdown()
        done.set()

    flags.add_global_change_listener(stopper)
    source.set_flag("beta", True)
    assert done.wait(2.0)


def test_listeners_follow_caching_refreshes(flags: FeatureFlags) -> None:
    source = MutableSource({"beta": "on"})
    cached = CachingFlagProvider(source, lib_feature_flags.ConcurrentCache())
    flags.set_provider(cached)
    listener = RecordingListener()
    flags.add_global_change_listener(listener)
    source.flags["beta"] = "off"
    flags.refresh()
    assert listener.wait_for(lambda events: ("beta", "off") in events)
    assert flags.get("beta").as_string() == "off"


def test_module_level_facade(default_facade: None) -> None:
    assert lib_feature_flags.get("beta") is NULL_VALUE
    source = InMemoryFlagProvider({"beta": "1"})
    lib_feature_flags.set_provider(source)
    assert lib_feature_flags.current_provider() is source
    assert lib_feature_flags.get("beta").as_boolean() is True
    listener = RecordingListener()
    assert lib_feature_flags.add_global_change_listener(listener) is True
    source.set_flag("beta", "0")
    assert listener.wait_for(lambda events: events == [("beta", "0")])
    lib_feature_flags.remove_global_change_listener(listener)
    assert dict(lib_feature_flags.get_children("")) == {"beta": FlagValue("0")}
    lib_feature_flags.refresh()
    lib_feature_flags.shutdown()


def test_build_provider_layers_sources(tmp_path: Path) -> None:
    flag_file = tmp_path / "flags.toml"
    flag_file.write_text('beta = "file"\ngamma = "file"\ndelta = "file"\n')
    provider = build_provider(
        files=[flag_file],
        env_prefix="DEMO",
        overrides={"beta": "override"},
        environ={"DEMO_BETA": "env", "DEMO_GAMMA": "env"},
    )
    try:
        assert isinstance(provider, CachingFlagProvider)
        assert provider.resolve("beta").as_string() == "override"
        assert provider.resolve("gamma").as_string() == "env"
        assert provider.resolve("delta").as_string() == "file"
    finally:
        provider.shutdown()


def test_build_provider_without_cache_returns_composite() -> None:
    provider = build_provider(overrides={"auth.login": True}, short_circuit=True, cache=False)
    assert isinstance(provider, CompositeFlagProvider)
    assert provider.short_circuit is True
    assert len(provider.providers) == 1
