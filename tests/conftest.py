"""Shared fixtures for the envgg test suite."""
from pathlib import Path

import pytest
from keyring.errors import PasswordDeleteError

from envgg.secrets.domains.keyring_client import InMemorySecretStore, KeyringSecretStore

SERVICE = "envgg-test"


class FakeItem:
    """Stand-in for a secretstorage Item."""

    def __init__(self, attributes):
        self._attributes = attributes

    def get_attributes(self):
        return dict(self._attributes)


class FakeConnection:
    """Stand-in for the D-Bus connection a Collection holds."""

    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


class FakeCollection:
    """Stand-in for a secretstorage Collection."""

    def __init__(self, entries):
        self._entries = entries
        self.connection = FakeConnection()

    def search_items(self, attributes):
        for entry in self._entries:
            if all(entry.get(name) == value for name, value in attributes.items()):
                yield FakeItem(entry)


class FakeKeyringBackend:
    """Minimal keyring backend shaped like keyring's SecretService backend."""

    def __init__(self):
        self.passwords = {}
        self.extra_entries = []
        self.error = None
        self.collections = []

    def _check(self):
        if self.error is not None:
            raise self.error

    def get_password(self, service, username):
        self._check()
        return self.passwords.get((service, username))

    def set_password(self, service, username, password):
        self._check()
        self.passwords[(service, username)] = password

    def delete_password(self, service, username):
        self._check()
        if (service, username) not in self.passwords:
            raise PasswordDeleteError("No such password!")
        del self.passwords[(service, username)]

    def get_preferred_collection(self):
        self._check()
        entries = [
            {"service": service, "username": username, "application": "Python keyring library"}
            for service, username in self.passwords
        ]
        collection = FakeCollection(entries + self.extra_entries)
        self.collections.append(collection)
        return collection


class SecretServiceBackend(FakeKeyringBackend):
    """Fake backend whose class reports the Secret Service module."""

    __module__ = "keyring.backends.SecretService"


@pytest.fixture
def memory_store():
    """Empty in-memory secret store."""
    return InMemorySecretStore(SERVICE)


@pytest.fixture
def fake_backend():
    return FakeKeyringBackend()


@pytest.fixture
def secret_service_backend():
    return SecretServiceBackend()


@pytest.fixture
def keyring_store(fake_backend):
    """KeyringSecretStore wired to the fake Secret Service backend."""
    return KeyringSecretStore(fake_backend, service=SERVICE, flavor="secret-service")


@pytest.fixture
def write_env(tmp_path):
    """Write an env file into tmp_path and return its path."""
    def _write(content, name=".env"):
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path
    return _write


@pytest.fixture
def temp_home(tmp_path, monkeypatch):
    """Fixture to create a temporary home directory for testing."""
    fake_home = tmp_path / "home"
    fake_home.mkdir()
    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.setattr(Path, "home", lambda: fake_home)
    monkeypatch.delenv("ENVGG_CONFIG", raising=False)
    return fake_home
