"""Parsing of .env files into directives.

Supported line forms:

    # comment
    KEY=value
    KEY="quoted value"
    KEY=$OTHER_KEYRING_LABEL
    LOOKUP_KEY
"""
import logging
from pathlib import Path
from typing import List, Optional

from .errors import EnvFileNotFoundError, EnvFileReadError
from .models import Alias, Comment, Direct, Directive, Lookup

logger = logging.getLogger(__name__)

ENV_FILES = [".env", ".env.development", ".env.staging", ".env.production"]

ENV_ALIASES = {
    "d": "development",
    "development": "development",
    "s": "staging",
    "staging": "staging",
    "p": "production",
    "production": "production",
}


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    return value


def parse_env_line(line: str) -> Directive:
    """
    Classify one raw line of an env file.

    Never raises: anything that is not a comment or an assignment is
    treated as a keyring lookup of the whole trimmed line.

    Args:
        line: Raw line, with or without its trailing newline

    Returns:
        Comment, Direct, Alias or Lookup directive
    """
    trimmed = line.strip()

    if not trimmed or trimmed.startswith("#"):
        return Comment()

    key, sep, value = trimmed.partition("=")
    if not sep:
        return Lookup(key=trimmed)

    key = key.strip()
    value = value.strip()

    if value.startswith("$"):
        # Alias targets are taken as-is, quotes included
        return Alias(key=key, keyring_key=value[1:].strip())

    return Direct(key=key, value=_strip_quotes(value))


def read_env_file(path) -> List[Directive]:
    """
    Read an env file and classify every line, keeping file order.

    Args:
        path: Path to the env file

    Returns:
        One directive per physical line

    Raises:
        EnvFileNotFoundError: If the file does not exist
        EnvFileReadError: If the file cannot be opened or decoded
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            lines = f.readlines()
    except FileNotFoundError:
        raise EnvFileNotFoundError(path)
    except (OSError, UnicodeDecodeError) as e:
        raise EnvFileReadError(path, e)

    logger.debug(f"Read {len(lines)} lines from {path}")
    return [parse_env_line(line) for line in lines]


def env_var_names(path) -> List[str]:
    """Return the variable names declared in an env file, in order, without duplicates."""
    names = {}
    for directive in read_env_file(path):
        if isinstance(directive, Comment):
            continue
        names.setdefault(directive.key, None)
    return list(names)


def normalize_env_name(env: Optional[str]) -> Optional[str]:
    """
    Map a short or long environment name to its canonical form.

    Raises:
        ValueError: If the name is not a known environment
    """
    if env is None:
        return None
    try:
        return ENV_ALIASES[env]
    except KeyError:
        raise ValueError(f"Unknown environment '{env}' (expected one of: {', '.join(ENV_ALIASES)})")


def env_file_path(env: Optional[str] = None, base_dir=None) -> Path:
    """
    Select the env file for an environment.

    Args:
        env: None for .env, or development/staging/production (or d/s/p)
        base_dir: Directory holding the env files (current directory if omitted)

    Returns:
        Path of the env file; existence is not checked
    """
    name = normalize_env_name(env)
    filename = ".env" if name is None else f".env.{name}"
    return Path(base_dir or ".") / filename


def present_env_files(base_dir=None) -> List[Path]:
    """List the supported env files that exist in a directory."""
    base = Path(base_dir or ".")
    return [base / name for name in ENV_FILES if (base / name).is_file()]
