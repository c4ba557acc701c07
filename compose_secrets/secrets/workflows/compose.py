"""Workflow for running commands, docker compose in particular, with secrets injected."""
import os
import shlex
import logging
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..domains.errors import CommandError
from ..domains.models import SessionBinding
from .scoped_session import ScopedSecretSession

logger = logging.getLogger(__name__)

COMPOSE_PREFIXES = (("docker", "compose"), ("docker-compose",))

# Global options whose value is the following argument.
COMPOSE_VALUE_OPTIONS = {
    "-f", "--file", "-p", "--project-name", "--profile", "--env-file",
    "--project-directory", "--ansi", "--progress", "--parallel",
}


class CommandRunner:
    """Executes commands in a working directory."""

    def __init__(self, cwd: Optional[str] = None):
        self.cwd = cwd

    def run(self, args: Sequence[str], env: Optional[Dict[str, str]] = None) -> int:
        """
        Run a command, inheriting the current environment plus ``env``.

        Returns:
            The command's exit status (always 0)

        Raises:
            CommandError: If the command exits with a non-zero status
        """
        child_env = dict(os.environ)
        if env:
            child_env.update(env)

        logger.info(f"Running: {shlex.join(args)}")
        result = subprocess.run(list(args), cwd=self.cwd, env=child_env, check=False)
        if result.returncode != 0:
            raise CommandError(list(args), result.returncode)
        return result.returncode


def default_secret_names() -> List[str]:
    """
    Secret names to use when none are given: the repository name.

    Taken from the second segment of JOB_NAME (``folder/repo/branch``) when
    set, otherwise from the current directory's name.
    """
    job_name = os.getenv("JOB_NAME")
    if job_name:
        parts = [part for part in job_name.split("/") if part]
        if parts:
            return [parts[1] if len(parts) > 1 else parts[0]]
    return [Path.cwd().name]


def _subcommand(args: Sequence[str]) -> Optional[str]:
    """First argument that is neither a global option nor an option's value."""
    expects_value = False
    for arg in args:
        if expects_value:
            expects_value = False
        elif arg.startswith("-"):
            expects_value = arg in COMPOSE_VALUE_OPTIONS
        else:
            return arg
    return None


def compose_command(args: Sequence[str], target_services: str = "") -> List[str]:
    """
    Build a ``docker compose`` command line.

    Target services are appended to every subcommand except ``config``,
    which does not accept service names. ``config`` is recognized even
    after global options such as ``-f docker-compose.yml``.
    """
    command = ["docker", "compose", *args]
    if target_services and args and _subcommand(args) != "config":
        command.extend(target_services.split())
    return command


def with_env_file_args(command: Sequence[str], binding: SessionBinding) -> List[str]:
    """
    Insert ``--env-file`` flags right after the compose program tokens.

    Raises:
        ValueError: If the command is not a docker compose invocation
    """
    command = list(command)
    for prefix in COMPOSE_PREFIXES:
        if tuple(command[:len(prefix)]) == prefix:
            return command[:len(prefix)] + binding.env_file_args() + command[len(prefix):]
    raise ValueError(f"--env-file injection needs a docker compose command, got: {shlex.join(command)}")


def run_with_secrets(
    session: ScopedSecretSession,
    names: Sequence[str],
    command: Sequence[str],
    runner: Optional[CommandRunner] = None,
    env_file_args: bool = False,
) -> int:
    """
    Run ``command`` with the named secrets available as env files.

    By default the file paths are exported through the session's binding
    variable (COMPOSE_ENV_FILES, which docker compose reads natively). With
    ``env_file_args`` they are passed as ``--env-file`` flags instead.

    Returns:
        The command's exit status

    Raises:
        CommandError: If the command fails (after the secret files are removed)
    """
    runner = runner or CommandRunner()

    def action(binding: SessionBinding) -> int:
        if env_file_args:
            return runner.run(with_env_file_args(command, binding))
        return runner.run(command, env=binding.as_env())

    return session.run(names, action)
