"""CLI entrypoint for compose-secrets."""
import sys
import signal
import argparse
import logging

from compose_secrets import __version__
from compose_secrets.secrets.domains.config_loader import SOURCE_TYPES, load_config
from compose_secrets.secrets.domains.errors import CommandError, ComposeSecretsError, ConfigError
from compose_secrets.secrets.domains.sources import build_source
from compose_secrets.secrets.workflows.compose import (
    CommandRunner,
    compose_command,
    default_secret_names,
    run_with_secrets,
)
from compose_secrets.secrets.workflows.scoped_session import ScopedSecretSession

from .validators import validate_binding_variable, validate_secret_names, validate_target_services

logger = logging.getLogger(__name__)


def _configure_logging(verbosity: int) -> None:
    """Log to stderr; -v for INFO, -vv for DEBUG."""
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)


def _raise_on_sigterm(signum, frame):
    # Unwinds the stack like Ctrl-C does, so open secret scopes are cleaned up.
    raise SystemExit(128 + signum)


def _exit_status(returncode: int) -> int:
    """Shell convention: a child killed by signal N exits with 128 + N."""
    if returncode < 0:
        return 128 - returncode
    return returncode


def _strip_separator(command):
    if command and command[0] == "--":
        return command[1:]
    return command


def _build_session(args) -> ScopedSecretSession:
    """Load config, apply command line overrides and build a session."""
    config = load_config(args.config)

    if args.credentials_file:
        config["source"] = {"type": "file", "path": args.credentials_file}
    elif args.source:
        config["source"]["type"] = args.source
        if args.source == "file" and not config["source"].get("path"):
            raise ConfigError("--source file needs --credentials-file or source.path in the config")

    if args.project_id:
        config["gcp"]["project_id"] = args.project_id

    session_config = config["session"]
    if getattr(args, "workdir", None) and not session_config.working_dir:
        session_config.working_dir = args.workdir
    if getattr(args, "binding_variable", None):
        validate_binding_variable(args.binding_variable)
        session_config.binding_variable = args.binding_variable

    return ScopedSecretSession(build_source(config), session_config)


def _secret_names(args):
    names = args.secrets or default_secret_names()
    validate_secret_names(names)
    return names


def cmd_version(args):
    """Show version information."""
    print(f"compose-secrets {__version__}")


def cmd_config_show(args):
    """Show which config file is in use and where it came from."""
    config = load_config(args.config)
    session_config = config["session"]

    print(f"Config path: {config['config_path'] or '(none)'}")
    print(f"Source: {config['config_origin']}")
    print(f"Secret source: {config['source']['type']}")
    if config["gcp"].get("project_id"):
        print(f"GCP project: {config['gcp']['project_id']}")
    print(f"Binding variable: {session_config.binding_variable}")
    print(f"Scratch directory: {session_config.resolve_scratch_dir()}")


def cmd_run(args):
    """Run an arbitrary command with secret env files exported."""
    command = _strip_separator(args.command)
    if not command:
        print("Error: No command given. Usage: compose-secrets run [-s NAME]... -- COMMAND", file=sys.stderr)
        sys.exit(2)

    names = _secret_names(args)
    session = _build_session(args)
    run_with_secrets(session, names, command, CommandRunner(args.workdir))


def cmd_compose(args):
    """Run docker compose with secret env files injected."""
    validate_target_services(args.services)
    compose_args = _strip_separator(args.compose_args)
    if not compose_args:
        print("Error: No compose subcommand given (e.g. 'up -d').", file=sys.stderr)
        sys.exit(2)

    names = _secret_names(args)
    session = _build_session(args)
    command = compose_command(compose_args, args.services)
    run_with_secrets(
        session,
        names,
        command,
        CommandRunner(args.workdir),
        env_file_args=args.env_file_args,
    )


def _add_session_arguments(parser):
    parser.add_argument(
        "-s", "--secret",
        dest="secrets",
        action="append",
        metavar="NAME",
        help="Secret to expose as an env file (repeatable). Defaults to the repository name"
    )
    parser.add_argument(
        "-C", "--workdir",
        help="Directory to run the command in (defaults to the current directory)"
    )


def main():
    """Main CLI entrypoint.

    Exit codes:
        0 - Success
        1 - Runtime errors (secret not found, empty secret, config, write failure, interrupted)
        2 - Usage errors (invalid arguments, invalid secret name format, etc.)
        N - The wrapped command's own exit status when it fails
    """
    parser = argparse.ArgumentParser(
        prog="compose-secrets",
        description="Run docker compose (or any command) with secrets exposed as temporary env files",
        epilog="""
Exit codes:
  0 - Success
  1 - Runtime error (secret not found, empty secret, configuration, etc.)
  2 - Usage error (invalid arguments, invalid secret name format, etc.)
  N - Exit status of the wrapped command when it fails

Environment variables:
  COMPOSE_SECRETS_CONFIG - Config file path (overridden by --config)
  GCP_PROJECT            - GCP project ID (overrides config file)
  WORKSPACE_TMP          - Scratch directory for secret files
  JOB_NAME               - Used to derive the default secret name

Configuration:
  Default location: ~/.config/compose-secrets/config.yml
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", help="Path to config file")
    parser.add_argument("--source", choices=SOURCE_TYPES, help="Secret source to use (overrides config)")
    parser.add_argument("--credentials-file", help="YAML credential file (implies --source file)")
    parser.add_argument("--project-id", help="GCP project ID (overrides config and GCP_PROJECT)")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity")

    subparsers = parser.add_subparsers(dest="command_name", help="Available commands")

    subparsers.add_parser(
        "version",
        help="Show version information",
        description="Display the current version of compose-secrets"
    )

    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="Inspect compose-secrets configuration"
    )
    config_subparsers = config_parser.add_subparsers(dest="config_command")
    config_subparsers.add_parser(
        "show",
        help="Show current configuration",
        description="""
Display the configuration file in use and where it was found.

Sources:
  - argument: Path given with --config
  - environment: Path from COMPOSE_SECRETS_CONFIG
  - default: ~/.config/compose-secrets/config.yml
  - built-in defaults: No config file found
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    run_parser = subparsers.add_parser(
        "run",
        help="Run a command with secret env files",
        description="""
Fetch the named secrets, write each to a temporary file outside the working
tree, and run COMMAND with the comma separated file paths in COMPOSE_ENV_FILES.
The files are removed when the command finishes, even if it fails.
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    _add_session_arguments(run_parser)
    run_parser.add_argument(
        "--binding-variable",
        help="Environment variable receiving the file paths (default: COMPOSE_ENV_FILES)"
    )
    run_parser.add_argument("command", nargs=argparse.REMAINDER, help="Command to run, after --")

    compose_parser = subparsers.add_parser(
        "compose",
        help="Run docker compose with secret env files",
        description="Run 'docker compose ARGS' with the named secrets injected as env files."
    )
    _add_session_arguments(compose_parser)
    compose_parser.add_argument(
        "--env-file-args",
        action="store_true",
        help="Pass each file as --env-file instead of through COMPOSE_ENV_FILES"
    )
    compose_parser.add_argument(
        "--services",
        default="",
        help='Services to target, space separated (e.g. "nextcloud db redis")'
    )
    compose_parser.add_argument("compose_args", nargs=argparse.REMAINDER, help="docker compose arguments, after --")

    args = parser.parse_args()
    _configure_logging(args.verbose)

    if not args.command_name:
        parser.print_help()
        sys.exit(2)

    signal.signal(signal.SIGTERM, _raise_on_sigterm)

    try:
        if args.command_name == "version":
            cmd_version(args)
        elif args.command_name == "config":
            if args.config_command == "show":
                cmd_config_show(args)
            else:
                config_parser.print_help()
                sys.exit(2)
        elif args.command_name == "run":
            cmd_run(args)
        elif args.command_name == "compose":
            cmd_compose(args)
        else:
            parser.print_help()
            sys.exit(2)
    except CommandError as e:
        logger.info(str(e))
        sys.exit(_exit_status(e.returncode))
    except ComposeSecretsError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
