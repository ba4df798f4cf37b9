"""CLI entrypoint for envgg."""
import sys
import argparse
import getpass
import logging

from envgg.secrets.domains.config_loader import get_config_path, load_config
from envgg.secrets.domains.env_file import (
    ENV_ALIASES,
    env_file_path,
    env_var_names,
    present_env_files,
)
from envgg.secrets.domains.errors import EnvggError
from envgg.secrets.domains.keyring_client import get_secret_store
from envgg.secrets.workflows.launcher import run_command
from envgg.secrets.workflows.resolve_env import resolve_env_file
from envgg.secrets.workflows.secret_operations import (
    add_secret,
    delete_secret,
    filter_secret_labels,
    get_secret,
    list_secret_labels,
)

from .validators import validate_secret_key, validate_secret_value

VERSION = "0.1.0"

# Configure logging to stderr
logging.basicConfig(
    level=logging.WARNING,
    format="%(message)s",
    stream=sys.stderr
)
logger = logging.getLogger(__name__)


def _open_store():
    """Load config and build the secret store it selects."""
    config = load_config()
    return config, get_secret_store(config)


def split_env_args(args):
    """
    Split `[env] command...` into the environment name and the command.

    The first argument is only taken as an environment when it is one of
    d, development, s, staging, p, production.
    """
    if args and args[0] == "--":
        args = args[1:]
    if args and args[0] in ENV_ALIASES:
        return args[0], list(args[1:])
    return None, list(args)


def cmd_version(args):
    """Show version information."""
    print(f"envgg {VERSION}")


def cmd_run(args):
    """Resolve an env file and run a command with it."""
    env, command = split_env_args(args.args)
    if not command:
        print("Error: No command specified", file=sys.stderr)
        sys.exit(2)

    env_path = env_file_path(env)
    config, store = _open_store()
    resolution = resolve_env_file(
        env_path,
        store,
        max_workers=config["resolution"]["max_concurrent_lookups"],
    )

    sys.exit(run_command(command, resolution.env))


def cmd_list(args):
    """List secret labels in the namespace."""
    _config, store = _open_store()
    labels = list_secret_labels(store)
    if args.filter:
        labels = filter_secret_labels(labels, args.filter)

    for label in labels:
        print(label)


def cmd_current(args):
    """Print variable names declared by the env files in the current directory."""
    env_files = present_env_files()

    if not env_files:
        print("No .env files found in current directory")
        return

    print(f"{len(env_files)} .env file(s) found")
    for path in env_files:
        try:
            names = env_var_names(path)
        except EnvggError as e:
            print(f"Error reading {path.name}: {e}", file=sys.stderr)
            continue

        if not names:
            print(f"\n{path.name}: No variables")
        else:
            print(f"\n{path.name}:")
            for name in names:
                print(name)


def cmd_secrets_add(args):
    """Add or overwrite a secret."""
    validate_secret_key(args.key)

    value = args.value
    if value is None:
        value = getpass.getpass(f"Value for {args.key}: ")
    validate_secret_value(value)

    _config, store = _open_store()
    add_secret(args.key, value, store)
    print(f"Secret '{args.key}' added successfully")


def cmd_secrets_delete(args):
    """Delete a secret after confirmation."""
    if not args.yes:
        response = input(f"Are you sure you want to delete the secret '{args.key}'? (y/N): ").strip().lower()
        if response != 'y':
            print("Cancelled.")
            return

    _config, store = _open_store()
    delete_secret(args.key, store)
    print(f"Secret '{args.key}' deleted successfully")


def cmd_secrets_get(args):
    """Print a secret's value."""
    _config, store = _open_store()
    value = get_secret(args.key, store)

    if args.quiet:
        # Quiet mode: output only value, no formatting
        print(value)
    else:
        print(f"Secret '{args.key}': {value}")


def cmd_config_show(args):
    """Show the config file path and effective settings."""
    config_path, source = get_config_path()
    suffix = "" if config_path.exists() else " (file not found, using defaults)"
    print(f"Config path: {config_path}{suffix}")
    print(f"Source: {source}")

    config = load_config()
    print(f"Keyring service: {config['keyring']['service']}")
    print(f"Keyring backend: {config['keyring']['backend']}")
    print(f"Max concurrent lookups: {config['resolution']['max_concurrent_lookups']}")


def build_parser():
    parser = argparse.ArgumentParser(
        prog="envgg",
        description="Run commands with environment variables from .env files and the system keyring",
        epilog="""
Exit codes:
  0 - Success
  1 - Runtime error (keyring unavailable, env file missing, secret not found, etc.)
  2 - Usage error (invalid arguments, invalid key name, etc.)
  'envgg run' exits with the command's own exit code.

Environment variables:
  ENVGG_CONFIG - Path to config file (overrides default location)

Configuration:
  Default location: ~/.config/envgg/config.yml
  View current: Run 'envgg config show'
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show debug logging on stderr"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # version command
    subparsers.add_parser(
        "version",
        help="Show version information",
        description="Display the current version of envgg"
    )

    # run command
    run_parser = subparsers.add_parser(
        "run",
        help="Run a command with variables from an env file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="""
Resolve an env file and run a command with the result.

The env file is .env, or .env.<env> when env is given. env can be:
  d, development, s, staging, p, production

Secrets that cannot be read from the keyring are skipped with a warning;
the command still runs without them.

Examples:
  envgg run npm start             # .env
  envgg run development npm start # .env.development
  envgg run d npm start           # .env.development
  envgg run p tsx src/index.ts    # .env.production
        """
    )
    run_parser.add_argument(
        "args",
        nargs=argparse.REMAINDER,
        help="[env] command..."
    )

    # list command
    list_parser = subparsers.add_parser(
        "list",
        help="List secrets in the keyring namespace",
        description="List all secrets stored in the envgg namespace of the system keyring, sorted"
    )
    list_parser.add_argument(
        "-f", "--filter",
        help="Only show labels containing this text (case-insensitive)"
    )

    # current command
    subparsers.add_parser(
        "current",
        help="Show variables declared by env files in the current directory",
        description="Print variable names from .env, .env.development, .env.staging and .env.production"
    )

    # secrets command
    secrets_parser = subparsers.add_parser(
        "secrets",
        help="Secret management operations",
        description="Manage secrets in the system keyring"
    )
    secrets_subparsers = secrets_parser.add_subparsers(dest="secrets_command")

    add_parser = secrets_subparsers.add_parser(
        "add",
        help="Add or overwrite a secret",
        description="Store a secret under a SCREAMING_CASE key. Prompts for the value if --value is omitted."
    )
    add_parser.add_argument("key", help="Secret key (format: [A-Z][A-Z0-9_]*)")
    add_parser.add_argument("--value", help="Secret value (avoid on shared machines: ends up in shell history)")

    delete_parser = secrets_subparsers.add_parser(
        "delete",
        help="Delete a secret",
        description="Delete a secret from the keyring namespace"
    )
    delete_parser.add_argument("key", help="Secret key")
    delete_parser.add_argument(
        "-y", "--yes",
        action="store_true",
        help="Do not ask for confirmation"
    )

    get_parser = secrets_subparsers.add_parser(
        "get",
        help="Get a secret value",
        description="Print a secret value from the keyring namespace"
    )
    get_parser.add_argument("key", help="Secret key")
    get_parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Output only the secret value (useful for scripts)"
    )

    # config command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="Inspect envgg configuration"
    )
    config_subparsers = config_parser.add_subparsers(dest="config_command")
    config_subparsers.add_parser(
        "show",
        help="Show config path and effective settings"
    )

    return parser, {"secrets": secrets_parser, "config": config_parser}


def main(argv=None):
    """Main CLI entrypoint.

    Exit codes:
        0 - Success
        1 - Runtime errors (keyring, env file, secret not found, etc.)
        2 - Usage errors (invalid arguments, invalid key name, etc.)
    """
    parser, group_parsers = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # If no command provided, show help and exit with usage error code
    if not args.command:
        parser.print_help()
        sys.exit(2)

    # Route to command handlers
    try:
        if args.command == "version":
            cmd_version(args)
        elif args.command == "run":
            cmd_run(args)
        elif args.command == "list":
            cmd_list(args)
        elif args.command == "current":
            cmd_current(args)
        elif args.command == "secrets":
            if args.secrets_command == "add":
                cmd_secrets_add(args)
            elif args.secrets_command == "delete":
                cmd_secrets_delete(args)
            elif args.secrets_command == "get":
                cmd_secrets_get(args)
            else:
                group_parsers["secrets"].print_help()
                sys.exit(2)
        elif args.command == "config":
            if args.config_command == "show":
                cmd_config_show(args)
            else:
                group_parsers["config"].print_help()
                sys.exit(2)
        else:
            parser.print_help()
            sys.exit(2)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
