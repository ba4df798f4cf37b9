"""Error types raised by envgg.

Every error carries the path, label or key it is about so the CLI can
print it as a single line.
"""
from typing import Optional


class EnvggError(Exception):
    """Base class for all envgg errors."""
    pass


class EnvFileError(EnvggError):
    """An env file could not be opened or read."""

    def __init__(self, path, message: str):
        self.path = str(path)
        super().__init__(message)


class EnvFileNotFoundError(EnvFileError):
    def __init__(self, path):
        super().__init__(path, f"Env file not found: {path}")


class EnvFileReadError(EnvFileError):
    def __init__(self, path, reason):
        self.reason = reason
        super().__init__(path, f"Failed to read env file {path}: {reason}")


class SecretStoreError(EnvggError):
    """A secret store operation failed for a given label."""

    def __init__(self, label: Optional[str], message: str):
        self.label = label
        super().__init__(message)


class StoreUnavailableError(SecretStoreError):
    """The platform credential backend could not be reached."""

    def __init__(self, label: Optional[str], reason):
        self.reason = reason
        super().__init__(label, f"Secret store unavailable: {reason}")


class StoreAccessDeniedError(SecretStoreError):
    """The OS refused programmatic access to the credential backend."""

    def __init__(self, label: Optional[str], reason):
        self.reason = reason
        target = f" for '{label}'" if label else ""
        super().__init__(label, f"Access to secret store denied{target}: {reason}")


class SecretNotFoundError(SecretStoreError):
    def __init__(self, label: str, service: str):
        self.service = service
        super().__init__(label, f"Secret '{label}' not found in namespace '{service}'")


class MalformedEntryError(SecretStoreError):
    """A stored entry has neither a 'username' nor an 'account' attribute."""

    def __init__(self, attributes: dict):
        self.attributes = attributes
        names = ", ".join(sorted(attributes)) or "none"
        super().__init__(None, f"Secret store entry has no key attribute (attributes: {names})")


class InvalidKeyFormatError(EnvggError):
    def __init__(self, key: str):
        self.key = key
        super().__init__(
            f"Invalid key name '{key}': must be SCREAMING_CASE "
            "(uppercase letters, digits and underscores, starting with a letter)"
        )


class InvalidSecretValueError(EnvggError):
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Secret value for '{key}' cannot be empty")
