"""Workflow for resolving an env file into a process environment."""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional, Sequence, Tuple

from ..domains.config_loader import DEFAULT_MAX_CONCURRENT_LOOKUPS
from ..domains.env_file import read_env_file
from ..domains.errors import SecretStoreError
from ..domains.keyring_client import SecretStore
from ..domains.models import Alias, Direct, Directive, Lookup, LookupWarning, Resolution

logger = logging.getLogger(__name__)


def _keyring_key(directive) -> str:
    if isinstance(directive, Alias):
        return directive.keyring_key
    return directive.key


def resolve_directives(
    directives: Sequence[Directive],
    store: SecretStore,
    max_workers: int = DEFAULT_MAX_CONCURRENT_LOOKUPS,
) -> Resolution:
    """
    Turn classified lines into environment variables.

    Direct values are used as-is. Alias and Lookup directives are read
    from the secret store on a bounded thread pool. A lookup that fails
    does not stop resolution: the variable is dropped and a warning is
    recorded for it.

    When a key appears more than once, the line that comes last in the
    file wins, whatever order the lookups finish in.

    If resolution is interrupted, queued lookups are cancelled and the
    interrupt propagates. Lookups already running cannot be stopped: the
    interpreter still waits for them at exit, so a keyring call blocked
    on an unlock prompt delays shutdown until the prompt is answered.

    Args:
        directives: Directives in file order
        store: Secret store to read Alias/Lookup values from
        max_workers: Upper bound on concurrent store lookups

    Returns:
        Resolution with the merged environment and any lookup warnings
    """
    # One slot per line; lookups write only to their own slot
    slots: List[Optional[Tuple[str, str]]] = [None] * len(directives)
    failures: Dict[int, LookupWarning] = {}
    pending = {}

    executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="envgg-lookup")
    try:
        for index, directive in enumerate(directives):
            if isinstance(directive, Direct):
                slots[index] = (directive.key, directive.value)
            elif isinstance(directive, (Alias, Lookup)):
                keyring_key = _keyring_key(directive)
                if not keyring_key:
                    failures[index] = LookupWarning(
                        key=directive.key,
                        keyring_key=keyring_key,
                        line_number=index + 1,
                        reason="empty keyring key",
                    )
                    continue
                pending[executor.submit(store.get, keyring_key)] = index

        logger.debug(f"Waiting on {len(pending)} secret lookups (max {max_workers} concurrent)")

        for future in as_completed(pending):
            index = pending[future]
            directive = directives[index]
            try:
                value = future.result()
            except SecretStoreError as e:
                failures[index] = LookupWarning(
                    key=directive.key,
                    keyring_key=_keyring_key(directive),
                    line_number=index + 1,
                    reason=str(e),
                )
                continue
            slots[index] = (directive.key, value)
    finally:
        # Drops queued lookups if we are leaving early (e.g. Ctrl-C)
        executor.shutdown(wait=False, cancel_futures=True)

    resolution = Resolution()
    for slot in slots:
        if slot is not None:
            key, value = slot
            resolution.env[key] = value

    for index in sorted(failures):
        warning = failures[index]
        logger.warning(warning.message())
        resolution.warnings.append(warning)

    return resolution


def resolve_env_file(
    path,
    store: SecretStore,
    max_workers: int = DEFAULT_MAX_CONCURRENT_LOOKUPS,
) -> Resolution:
    """
    Read an env file and resolve it against the secret store.

    Raises:
        EnvFileNotFoundError: If the file does not exist
        EnvFileReadError: If the file cannot be read
    """
    directives = read_env_file(path)
    resolution = resolve_directives(directives, store, max_workers=max_workers)
    logger.info(
        f"Resolved {len(resolution.env)} variables from {path} "
        f"({len(resolution.warnings)} skipped)"
    )
    return resolution
