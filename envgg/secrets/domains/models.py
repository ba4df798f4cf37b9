"""Domain models for env file resolution."""
from dataclasses import dataclass, field
from typing import Dict, List, Union


@dataclass(frozen=True)
class Comment:
    """A blank line or a line starting with '#'."""


@dataclass(frozen=True)
class Direct:
    """KEY=value, with at most one layer of matching quotes removed."""
    key: str
    value: str


@dataclass(frozen=True)
class Alias:
    """KEY=$NAME, resolved from the secret store under NAME."""
    key: str
    keyring_key: str


@dataclass(frozen=True)
class Lookup:
    """KEY on its own, resolved from the secret store under KEY."""
    key: str


Directive = Union[Comment, Direct, Alias, Lookup]


@dataclass(frozen=True)
class LookupWarning:
    """A variable dropped from the environment because its secret could not be read."""
    key: str
    keyring_key: str
    line_number: int
    reason: str

    def message(self) -> str:
        return (
            f"Warning: Failed to get secret for '{self.keyring_key}' from keyring: {self.reason}. "
            f"Skipping environment variable '{self.key}'."
        )


@dataclass
class Resolution:
    """Result of resolving an env file."""
    env: Dict[str, str] = field(default_factory=dict)
    warnings: List[LookupWarning] = field(default_factory=list)
