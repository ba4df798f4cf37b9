"""Workflow for secret operations used by the CLI."""
import logging
from typing import Iterable, List

from ..domains.errors import InvalidKeyFormatError, InvalidSecretValueError
from ..domains.keyring_client import SecretStore
from ..domains.validation import is_valid_env_var_name

logger = logging.getLogger(__name__)


def add_secret(key: str, value: str, store: SecretStore) -> None:
    """
    Store a secret under a SCREAMING_CASE key.

    Args:
        key: Secret key, also the variable name env files refer to
        value: Secret value, must not be empty
        store: Target secret store

    Raises:
        InvalidKeyFormatError: If the key is not SCREAMING_CASE
        InvalidSecretValueError: If the value is empty
        SecretStoreError: If the store rejects the write
    """
    if not is_valid_env_var_name(key):
        raise InvalidKeyFormatError(key)
    if not value:
        raise InvalidSecretValueError(key)

    store.put(key, value)
    logger.info(f"Secret '{key}' added to namespace '{store.service}'")


def delete_secret(key: str, store: SecretStore) -> None:
    """
    Remove a secret.

    Raises:
        SecretNotFoundError: If no secret is stored under key
    """
    store.delete(key)
    logger.info(f"Secret '{key}' deleted from namespace '{store.service}'")


def get_secret(key: str, store: SecretStore) -> str:
    """Return a secret's value; SecretNotFoundError if it does not exist."""
    return store.get(key)


def list_secret_labels(store: SecretStore) -> List[str]:
    """Return all secret labels in the namespace, sorted."""
    return sorted(store.list_labels())


def filter_secret_labels(labels: Iterable[str], query: str) -> List[str]:
    """Keep labels containing query, ignoring case."""
    needle = query.lower()
    return [label for label in labels if needle in label.lower()]
