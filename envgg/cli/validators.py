"""Input validation for CLI arguments."""
import sys

from envgg.secrets.domains.validation import is_valid_env_var_name


def validate_secret_key(name: str) -> None:
    """
    Validate a secret key is SCREAMING_CASE.

    Args:
        name: Secret key to validate

    Raises:
        SystemExit with code 2 if validation fails
    """
    if not name:
        print("Error: Secret key cannot be empty", file=sys.stderr)
        sys.exit(2)

    if not is_valid_env_var_name(name):
        print(f"Error: Invalid secret key '{name}'", file=sys.stderr)
        print("\nKeys must be SCREAMING_CASE: uppercase letters, digits and underscores,", file=sys.stderr)
        print("starting with an uppercase letter.", file=sys.stderr)
        print("\nExamples of valid keys:", file=sys.stderr)
        print("  ✓ API_KEY", file=sys.stderr)
        print("  ✓ DATABASE_PASSWORD_2", file=sys.stderr)
        print("\nExamples of invalid keys:", file=sys.stderr)
        print("  ✗ api_key (lowercase)", file=sys.stderr)
        print("  ✗ 2FA_TOKEN (starts with a digit)", file=sys.stderr)
        print("  ✗ API-KEY (contains hyphen)", file=sys.stderr)
        sys.exit(2)


def validate_secret_value(value: str) -> None:
    """
    Validate secret value is not empty.

    Raises:
        SystemExit with code 2 if validation fails
    """
    if not value:
        print("Error: Secret value cannot be empty", file=sys.stderr)
        sys.exit(2)
