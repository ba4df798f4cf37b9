"""Tests for resolving env files against the secret store."""
import logging
import threading

import pytest

from envgg.secrets.domains.errors import (
    EnvFileNotFoundError,
    SecretNotFoundError,
    StoreUnavailableError,
)
from envgg.secrets.domains.keyring_client import InMemorySecretStore
from envgg.secrets.domains.models import Alias, Comment, Direct, Lookup
from envgg.secrets.workflows.resolve_env import resolve_directives, resolve_env_file


class OrderedStore(InMemorySecretStore):
    """Store whose lookups finish in a forced order.

    A lookup of `waits_for[label]` does not return until that other
    label's lookup has returned.
    """

    def __init__(self, secrets, waits_for):
        super().__init__("envgg-test", secrets)
        self.waits_for = waits_for
        self.done = {label: threading.Event() for label in secrets}
        self.completed = []
        self._record = threading.Lock()

    def get(self, label):
        other = self.waits_for.get(label)
        if other is not None:
            assert self.done[other].wait(timeout=5)
        value = super().get(label)
        with self._record:
            self.completed.append(label)
        self.done[label].set()
        return value


class FailingStore(InMemorySecretStore):
    def __init__(self, error):
        super().__init__("envgg-test")
        self.error = error

    def get(self, label):
        raise self.error


class TestResolveDirectives:
    """Merging directives into an environment."""

    def test_end_to_end_scenario(self, write_env):
        store = InMemorySecretStore("envgg-test", {"SECRET_B": "sb", "C": "vc"})
        path = write_env("#comment\nA=1\nB=$SECRET_B\nC\n")

        resolution = resolve_env_file(path, store)

        assert resolution.env == {"A": "1", "B": "sb", "C": "vc"}
        assert resolution.warnings == []

    def test_comments_contribute_nothing(self, memory_store):
        resolution = resolve_directives([Comment(), Comment()], memory_store)
        assert resolution.env == {}

    def test_empty_file_gives_empty_env(self, write_env, memory_store):
        resolution = resolve_env_file(write_env(""), memory_store)

        assert resolution.env == {}
        assert resolution.warnings == []

    def test_comment_only_file_gives_empty_env(self, write_env, memory_store):
        resolution = resolve_env_file(write_env("# one\n\n   # two\n"), memory_store)
        assert resolution.env == {}

    def test_direct_duplicates_last_wins(self, memory_store):
        directives = [Direct(key="A", value="1"), Direct(key="A", value="2")]
        assert resolve_directives(directives, memory_store).env == {"A": "2"}

    def test_lookup_overrides_earlier_direct(self):
        store = InMemorySecretStore("envgg-test", {"A": "from-store"})
        directives = [Direct(key="A", value="literal"), Lookup(key="A")]

        assert resolve_directives(directives, store).env == {"A": "from-store"}

    def test_direct_overrides_earlier_lookup(self):
        store = InMemorySecretStore("envgg-test", {"A": "from-store"})
        directives = [Lookup(key="A"), Direct(key="A", value="literal")]

        assert resolve_directives(directives, store).env == {"A": "literal"}

    def test_failed_later_lookup_keeps_earlier_value(self, memory_store):
        directives = [Direct(key="A", value="1"), Alias(key="A", keyring_key="MISSING")]

        resolution = resolve_directives(directives, memory_store)

        assert resolution.env == {"A": "1"}
        assert len(resolution.warnings) == 1


class TestLookupOrdering:
    """Precedence follows file order, not lookup completion order."""

    def test_later_line_wins_when_it_finishes_first(self):
        store = OrderedStore({"FIRST": "1", "SECOND": "2"}, waits_for={"FIRST": "SECOND"})
        directives = [Alias(key="A", keyring_key="FIRST"), Alias(key="A", keyring_key="SECOND")]

        resolution = resolve_directives(directives, store, max_workers=2)

        assert store.completed == ["SECOND", "FIRST"]
        assert resolution.env == {"A": "2"}

    def test_later_line_wins_when_it_finishes_last(self):
        store = OrderedStore({"FIRST": "1", "SECOND": "2"}, waits_for={"SECOND": "FIRST"})
        directives = [Alias(key="A", keyring_key="FIRST"), Alias(key="A", keyring_key="SECOND")]

        resolution = resolve_directives(directives, store, max_workers=2)

        assert store.completed == ["FIRST", "SECOND"]
        assert resolution.env == {"A": "2"}

    def test_keys_keep_file_order(self):
        store = OrderedStore({"X": "x", "Y": "y"}, waits_for={"X": "Y"})
        directives = [Lookup(key="X"), Direct(key="M", value="m"), Lookup(key="Y")]

        resolution = resolve_directives(directives, store, max_workers=2)

        assert list(resolution.env) == ["X", "M", "Y"]

    def test_single_worker(self):
        store = InMemorySecretStore("envgg-test", {"S1": "a", "S2": "b"})
        directives = [Alias(key="K", keyring_key="S1"), Alias(key="K", keyring_key="S2")]

        assert resolve_directives(directives, store, max_workers=1).env == {"K": "b"}


class TestPartialFailure:
    """Missing secrets are skipped, never fatal."""

    def test_missing_alias_dropped_with_warning(self, write_env, memory_store, caplog):
        caplog.set_level(logging.WARNING)
        path = write_env("GOOD=1\nBAD=$NOT_THERE\n")

        resolution = resolve_env_file(path, memory_store)

        assert resolution.env == {"GOOD": "1"}
        assert len(resolution.warnings) == 1
        warning = resolution.warnings[0]
        assert warning.key == "BAD"
        assert warning.keyring_key == "NOT_THERE"
        assert warning.line_number == 2
        assert "NOT_THERE" in caplog.text
        assert "BAD" in caplog.text

    def test_missing_lookup_dropped(self, memory_store):
        resolution = resolve_directives([Lookup(key="MISSING")], memory_store)

        assert resolution.env == {}
        assert resolution.warnings[0].keyring_key == "MISSING"

    def test_empty_alias_target_never_reaches_store(self):
        store = FailingStore(AssertionError("store should not be called"))

        resolution = resolve_directives([Alias(key="KEY", keyring_key="")], store)

        assert resolution.env == {}
        assert resolution.warnings[0].reason == "empty keyring key"

    def test_store_unavailable_is_recoverable(self):
        store = FailingStore(StoreUnavailableError("X", "no dbus"))
        directives = [Direct(key="A", value="1"), Lookup(key="X")]

        resolution = resolve_directives(directives, store)

        assert resolution.env == {"A": "1"}
        assert "no dbus" in resolution.warnings[0].reason

    def test_warnings_logged_in_line_order(self, caplog):
        caplog.set_level(logging.WARNING)
        store = FailingStore(SecretNotFoundError("?", "envgg-test"))
        directives = [Lookup(key=f"K{i}") for i in range(10)]

        resolution = resolve_directives(directives, store, max_workers=4)

        assert [w.key for w in resolution.warnings] == [f"K{i}" for i in range(10)]
        messages = [record.getMessage() for record in caplog.records]
        assert len(messages) == 10
        assert "'K0'" in messages[0]
        assert "'K9'" in messages[-1]


class TestFatalErrors:
    """Failures that abort resolution."""

    def test_missing_file(self, tmp_path, memory_store):
        with pytest.raises(EnvFileNotFoundError):
            resolve_env_file(tmp_path / ".env.production", memory_store)

    def test_interrupt_during_lookup_propagates(self):
        store = FailingStore(KeyboardInterrupt())

        with pytest.raises(KeyboardInterrupt):
            resolve_directives([Direct(key="A", value="1"), Lookup(key="B")], store)

    def test_unexpected_errors_propagate(self):
        store = FailingStore(RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            resolve_directives([Lookup(key="B")], store)

    def test_interrupt_cancels_queued_lookups(self):
        release = threading.Event()
        requested = []

        class InterruptingStore(InMemorySecretStore):
            def get(self, label):
                requested.append(label)
                if label == "A":
                    raise KeyboardInterrupt()
                # Holds the only worker until the interrupt has been handled
                release.wait(timeout=5)
                return super().get(label)

        store = InterruptingStore("envgg-test", {"A": "a", "B": "b", "C": "c"})
        directives = [Lookup(key="A"), Lookup(key="B"), Lookup(key="C")]

        try:
            with pytest.raises(KeyboardInterrupt):
                resolve_directives(directives, store, max_workers=1)
        finally:
            release.set()

        assert "C" not in requested
