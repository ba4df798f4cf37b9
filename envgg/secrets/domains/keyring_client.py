"""OS secret store access through the keyring library.

All entries live under one service tag (the namespace). A secret is
identified by its label, which keyring stores as the entry's username.
"""
import logging
import re
import subprocess
import threading
from abc import ABC, abstractmethod
from contextlib import closing, contextmanager
from typing import Any, Dict, Iterable, List, Optional

import keyring
from keyring.backends.chainer import ChainerBackend
from keyring.errors import (
    KeyringError,
    KeyringLocked,
    PasswordDeleteError,
    PasswordSetError,
)

from .config_loader import DEFAULT_SERVICE
from .errors import (
    MalformedEntryError,
    SecretNotFoundError,
    StoreAccessDeniedError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

# Linux/Windows backends name the label "username", macOS calls it "account"
LABEL_ATTRIBUTES = ("username", "account")

_KEYCHAIN_ATTR = re.compile(r'^\s+"(\w{4})"<\w+>="(.*)"$')
_KEYCHAIN_NAMES = {"svce": "service", "acct": "account"}


def label_from_attributes(attributes: Dict[str, Any]) -> str:
    """
    Extract the secret label from an entry's attributes.

    Raises:
        MalformedEntryError: If neither 'username' nor 'account' is present
    """
    for name in LABEL_ATTRIBUTES:
        value = attributes.get(name)
        if value is not None:
            return value
    raise MalformedEntryError(attributes)


class SecretStore(ABC):
    """Create, read, delete and list secrets within one namespace."""

    def __init__(self, service: str = DEFAULT_SERVICE):
        self.service = service

    @abstractmethod
    def put(self, label: str, value: str) -> None:
        """Create or overwrite the secret stored under label."""

    @abstractmethod
    def get(self, label: str) -> str:
        """Return the secret stored under label, or raise SecretNotFoundError."""

    @abstractmethod
    def delete(self, label: str) -> None:
        """Remove the secret stored under label, or raise SecretNotFoundError."""

    @abstractmethod
    def _search_entries(self) -> Iterable[Dict[str, Any]]:
        """Yield the attribute mapping of every entry in the namespace."""

    def list_labels(self) -> List[str]:
        """
        List the labels of all secrets in the namespace.

        The order is whatever the backend returns; callers that display
        labels sort them.

        Raises:
            MalformedEntryError: If an entry carries no label attribute
        """
        return [label_from_attributes(attributes) for attributes in self._search_entries()]


class InMemorySecretStore(SecretStore):
    """Dict-backed store, used for tests and the 'memory' backend."""

    def __init__(self, service: str = DEFAULT_SERVICE, secrets: Optional[Dict[str, str]] = None):
        super().__init__(service)
        self._secrets = dict(secrets or {})
        self._lock = threading.Lock()

    def put(self, label: str, value: str) -> None:
        with self._lock:
            self._secrets[label] = value

    def get(self, label: str) -> str:
        with self._lock:
            if label not in self._secrets:
                raise SecretNotFoundError(label, self.service)
            return self._secrets[label]

    def delete(self, label: str) -> None:
        with self._lock:
            if label not in self._secrets:
                raise SecretNotFoundError(label, self.service)
            del self._secrets[label]

    def _search_entries(self) -> Iterable[Dict[str, Any]]:
        with self._lock:
            labels = list(self._secrets)
        return [{"service": self.service, "username": label} for label in labels]


@contextmanager
def _keyring_errors(label: Optional[str]):
    """Translate keyring exceptions into secret store errors."""
    try:
        yield
    except (KeyringLocked, PasswordSetError) as e:
        raise StoreAccessDeniedError(label, e)
    except KeyringError as e:
        raise StoreUnavailableError(label, e)


class KeyringSecretStore(SecretStore):
    """Secret store backed by a keyring backend.

    The flavor names the platform store behind the backend and decides
    how entries are enumerated for list_labels().
    list_backend is the backend list_labels() enumerates when it differs
    from the one used for reads and writes (a member of a ChainerBackend).
    """

    def __init__(self, backend, service: str = DEFAULT_SERVICE, flavor: Optional[str] = None, list_backend=None):
        super().__init__(service)
        self._backend = backend
        self._list_backend = list_backend if list_backend is not None else backend
        self.flavor = flavor

    def put(self, label: str, value: str) -> None:
        with _keyring_errors(label):
            self._backend.set_password(self.service, label, value)
        logger.debug(f"Stored secret '{label}' in namespace '{self.service}'")

    def get(self, label: str) -> str:
        if not label:
            raise SecretNotFoundError(label, self.service)

        with _keyring_errors(label):
            value = self._backend.get_password(self.service, label)

        if value is None:
            raise SecretNotFoundError(label, self.service)
        return value

    def delete(self, label: str) -> None:
        with _keyring_errors(label):
            if not label or self._backend.get_password(self.service, label) is None:
                raise SecretNotFoundError(label, self.service)
            try:
                self._backend.delete_password(self.service, label)
            except PasswordDeleteError as e:
                raise StoreAccessDeniedError(label, e)
        logger.debug(f"Deleted secret '{label}' from namespace '{self.service}'")

    def _search_entries(self) -> Iterable[Dict[str, Any]]:
        if self.flavor == "secret-service":
            return self._search_secret_service()
        if self.flavor == "macos":
            return self._search_macos_keychain()
        if self.flavor == "windows":
            return self._search_windows_credentials()
        raise StoreUnavailableError(
            None, f"listing secrets is not supported by {type(self._backend).__name__}"
        )

    def _search_secret_service(self) -> List[Dict[str, Any]]:
        with _keyring_errors(None):
            collection = self._list_backend.get_preferred_collection()
            with closing(collection.connection):
                items = collection.search_items({"service": self.service})
                return [dict(item.get_attributes()) for item in items]

    def _search_macos_keychain(self) -> List[Dict[str, Any]]:
        try:
            result = subprocess.run(
                ["security", "dump-keychain"],
                capture_output=True, text=True, check=True
            )
        except FileNotFoundError as e:
            raise StoreUnavailableError(None, e)
        except subprocess.CalledProcessError as e:
            raise StoreAccessDeniedError(None, e.stderr.strip() or e)
        entries = parse_keychain_dump(result.stdout)
        return [entry for entry in entries if entry.get("service") == self.service]

    def _search_windows_credentials(self) -> List[Dict[str, Any]]:
        try:
            from win32ctypes.pywin32 import win32cred
        except ImportError as e:
            raise StoreUnavailableError(None, e)

        suffix = f"@{self.service}"
        try:
            credentials = win32cred.CredEnumerate(f"*{self.service}", 0)
        except Exception as e:
            # pywin32-ctypes raises its own error type for ERROR_NOT_FOUND
            if getattr(e, "winerror", None) == 1168:
                return []
            raise StoreUnavailableError(None, e)

        entries = []
        for credential in credentials:
            target = credential.get("TargetName", "")
            if target == self.service or target.endswith(suffix):
                entries.append({name.lower(): value for name, value in credential.items()})
        return entries


def parse_keychain_dump(output: str) -> List[Dict[str, str]]:
    """
    Parse `security dump-keychain` output into attribute mappings.

    Only generic passwords are kept. 'svce' and 'acct' are reported as
    'service' and 'account'.
    """
    entries = []
    current: Optional[Dict[str, str]] = None
    is_generic = False

    for line in output.splitlines():
        if line.startswith("keychain:"):
            if current is not None and is_generic:
                entries.append(current)
            current, is_generic = {}, False
        elif current is None:
            continue
        elif line.startswith("class:"):
            is_generic = line.split(":", 1)[1].strip() == '"genp"'
        else:
            match = _KEYCHAIN_ATTR.match(line)
            if match and match.group(1) in _KEYCHAIN_NAMES:
                current[_KEYCHAIN_NAMES[match.group(1)]] = match.group(2)

    if current is not None and is_generic:
        entries.append(current)
    return entries


def _flavor_of(backend) -> Optional[str]:
    module = type(backend).__module__
    if "SecretService" in module:
        return "secret-service"
    if "macOS" in module:
        return "macos"
    if "Windows" in module:
        return "windows"
    return None


def _listing_backend(backend):
    """
    Pick the backend to enumerate entries from, with its flavor.

    A ChainerBackend wraps several viable backends; the first one whose
    platform store is known is used for listing.
    """
    if isinstance(backend, ChainerBackend):
        for member in backend.backends:
            flavor = _flavor_of(member)
            if flavor is not None:
                return member, flavor
        return backend, None
    return backend, _flavor_of(backend)


def _create_backend(flavor: str):
    if flavor == "secret-service":
        from keyring.backends import SecretService
        return SecretService.Keyring()
    if flavor == "macos":
        from keyring.backends import macOS
        return macOS.Keyring()
    if flavor == "windows":
        from keyring.backends import Windows
        return Windows.WinVaultKeyring()
    raise ValueError(f"Unknown keyring backend: {flavor}")


def get_secret_store(config: Dict[str, Any]) -> SecretStore:
    """
    Build the secret store selected by configuration.

    Called once per process. "auto" uses whatever keyring has configured
    (keyringrc, PYTHON_KEYRING_BACKEND, or the platform default).

    Args:
        config: Loaded configuration (see config_loader.load_config)

    Returns:
        SecretStore for the configured namespace
    """
    service = config["keyring"]["service"]
    backend_name = config["keyring"]["backend"]

    if backend_name == "memory":
        logger.debug("Using in-memory secret store")
        return InMemorySecretStore(service)

    if backend_name == "auto":
        backend = keyring.get_keyring()
        list_backend, flavor = _listing_backend(backend)
    else:
        backend = _create_backend(backend_name)
        list_backend, flavor = backend, backend_name

    logger.debug(f"Using keyring backend {type(backend).__name__} ({flavor}) for service '{service}'")
    return KeyringSecretStore(backend, service=service, flavor=flavor, list_backend=list_backend)
