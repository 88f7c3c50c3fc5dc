"""InMemoryFlagProvider mutations and their synchronous notifications."""

from __future__ import annotations

from lib_feature_flags.adapters.memory.default import InMemoryFlagProvider
from lib_feature_flags.domain.value import NULL_VALUE
from tests.support import RecordingListener


def test_initial_flags_are_visible() -> None:
    provider = InMemoryFlagProvider({"checkout.v2": True})
    assert provider.resolve("checkout.v2").as_boolean() is True
    assert not InMemoryFlagProvider().resolve_children("")


def test_set_flag_notifies_on_calling_thread() -> None:
    provider = InMemoryFlagProvider()
    listener = RecordingListener()
    provider.add_change_listener(listener)
    provider.set_flag("beta", "on")
    assert listener.snapshot() == [("beta", "on")]
    assert provider.resolve("beta").as_string() == "on"


def test_set_flag_none_clears() -> None:
    provider = InMemoryFlagProvider({"beta": 1})
    listener = RecordingListener()
    provider.add_change_listener(listener)
    provider.set_flag("beta", None)
    assert provider.resolve("beta") is NULL_VALUE
    assert listener.snapshot() == [("beta", None)]


def test_clear_flag_of_unknown_key_is_silent() -> None:
    provider = InMemoryFlagProvider()
    listener = RecordingListener()
    provider.add_change_listener(listener)
    provider.clear_flag("ghost")
    assert listener.snapshot() == []


def test_clear_all_notifies_each_removed_key() -> None:
    provider = InMemoryFlagProvider({"a": 1, "b": 2})
    listener = RecordingListener()
    provider.add_change_listener(listener)
    provider.clear_all()
    assert sorted(listener.snapshot()) == [("a", None), ("b", None)]
    assert not provider.resolve_children("")


def test_refresh_keeps_programmatic_flags() -> None:
    provider = InMemoryFlagProvider()
    provider.set_flag("beta", True)
    provider.refresh()
    assert provider.resolve("beta").as_boolean() is True


def test_removed_listener_is_not_called() -> None:
    provider = InMemoryFlagProvider()
    listener = RecordingListener()
    provider.add_change_listener(listener)
    provider.remove_change_listener(listener)
    provider.set_flag("beta", True)
    assert listener.snapshot() == []
