"""Run a command with a resolved environment."""
import os
import logging
import subprocess
from typing import Dict, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

LAUNCH_FAILURE_EXIT_CODE = 1


def build_child_env(resolved: Mapping[str, str], base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Overlay resolved variables on the parent environment.

    Keys that cannot be exported (empty, or containing '=') are skipped.
    """
    env = dict(os.environ if base is None else base)
    for key, value in resolved.items():
        if not key or "=" in key:
            logger.warning(f"Skipping invalid environment variable name '{key}'")
            continue
        env[key] = value
    return env


def run_command(argv: Sequence[str], resolved: Mapping[str, str]) -> int:
    """
    Launch a command and wait for it.

    Args:
        argv: Command and its arguments
        resolved: Variables to add to the inherited environment

    Returns:
        The command's exit code, or LAUNCH_FAILURE_EXIT_CODE if it could not be started

    Raises:
        ValueError: If argv is empty
    """
    if not argv:
        raise ValueError("No command specified")

    env = build_child_env(resolved)
    logger.debug(f"Running {argv[0]} with {len(resolved)} resolved variables")

    try:
        result = subprocess.run(list(argv), env=env, check=False)
    except OSError as e:
        logger.error(f"Error: Failed to run '{argv[0]}': {e}")
        return LAUNCH_FAILURE_EXIT_CODE

    # Killed by a signal: report it the way a shell would
    if result.returncode < 0:
        return 128 - result.returncode
    return result.returncode
