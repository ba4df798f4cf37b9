"""Key name rules for secrets stored by envgg."""
import string

_UPPER = frozenset(string.ascii_uppercase)
_TAIL = _UPPER | frozenset(string.digits) | {"_"}


def is_valid_env_var_name(name: str) -> bool:
    """
    Check that a name is SCREAMING_CASE.

    The first character must be an uppercase ASCII letter; the rest may be
    uppercase ASCII letters, digits or underscores.

    Args:
        name: Candidate key name

    Returns:
        True if the name may be used as a secret key
    """
    if not name or name[0] not in _UPPER:
        return False

    if any(ch not in _TAIL for ch in name[1:]):
        return False

    # Always true after the first-character check, kept as its own rule
    return any(ch in _UPPER for ch in name)
