"""Tests for the command runner and docker compose workflow."""
import os
import sys
from unittest import mock

import pytest

from compose_secrets.secrets.domains.errors import CommandError, SecretResolutionError
from compose_secrets.secrets.domains.models import SessionBinding
from compose_secrets.secrets.domains.sources import MappingSecretSource
from compose_secrets.secrets.workflows.compose import (
    CommandRunner,
    compose_command,
    default_secret_names,
    run_with_secrets,
    with_env_file_args,
)
from compose_secrets.secrets.workflows.scoped_session import ScopedSecretSession

# Concatenates every file listed in COMPOSE_ENV_FILES into argv[1].
CONCAT_ENV_FILES = (
    "import os, sys\n"
    "with open(sys.argv[1], 'w') as out:\n"
    "    for path in os.environ['COMPOSE_ENV_FILES'].split(','):\n"
    "        with open(path) as f:\n"
    "            out.write(f.read())\n"
)


class TestComposeCommand:
    """Test suite for docker compose command construction."""

    def test_targets_appended(self):
        assert compose_command(["up", "-d"], "web db") == ["docker", "compose", "up", "-d", "web", "db"]

    def test_config_takes_no_services(self):
        assert compose_command(["config", "--quiet"], "web db") == ["docker", "compose", "config", "--quiet"]

    def test_no_targets(self):
        assert compose_command(["ps"]) == ["docker", "compose", "ps"]

    def test_config_after_global_options_takes_no_services(self):
        command = compose_command(["-f", "docker-compose.prod.yml", "config", "--quiet"], "web")
        assert command == ["docker", "compose", "-f", "docker-compose.prod.yml", "config", "--quiet"]

    def test_option_value_named_config_is_not_subcommand(self):
        command = compose_command(["-p", "config", "up", "-d"], "web")
        assert command == ["docker", "compose", "-p", "config", "up", "-d", "web"]


class TestEnvFileArgs:
    """Test suite for --env-file injection."""

    def test_inserted_after_docker_compose(self):
        binding = SessionBinding(paths=("/s/a", "/s/b"))
        command = with_env_file_args(["docker", "compose", "up", "-d"], binding)
        assert command == ["docker", "compose", "--env-file", "/s/a", "--env-file", "/s/b", "up", "-d"]

    def test_inserted_after_legacy_binary(self):
        binding = SessionBinding(paths=("/s/a",))
        command = with_env_file_args(["docker-compose", "pull"], binding)
        assert command == ["docker-compose", "--env-file", "/s/a", "pull"]

    def test_rejects_other_commands(self):
        with pytest.raises(ValueError):
            with_env_file_args(["make", "deploy"], SessionBinding(paths=("/s/a",)))


class TestDefaultSecretNames:
    """Test suite for the default secret name."""

    def test_repository_segment_of_job_name(self, monkeypatch):
        monkeypatch.setenv("JOB_NAME", "apps/nextcloud/main")
        assert default_secret_names() == ["nextcloud"]

    def test_single_segment_job_name(self, monkeypatch):
        monkeypatch.setenv("JOB_NAME", "nextcloud")
        assert default_secret_names() == ["nextcloud"]

    def test_falls_back_to_directory_name(self, tmp_path, monkeypatch):
        repo = tmp_path / "my-service"
        repo.mkdir()
        monkeypatch.chdir(repo)
        assert default_secret_names() == ["my-service"]


class TestCommandRunner:
    """Test suite for CommandRunner."""

    def test_env_overrides_passed(self):
        runner = CommandRunner()
        script = "import os, sys; sys.exit(0 if os.environ.get('SECRET_FILES') == 'x' else 3)"
        assert runner.run([sys.executable, "-c", script], env={"SECRET_FILES": "x"}) == 0

    def test_current_environment_is_not_modified(self):
        CommandRunner().run([sys.executable, "-c", "pass"], env={"ONLY_FOR_CHILD": "1"})
        assert "ONLY_FOR_CHILD" not in os.environ

    def test_failure_raises_command_error(self):
        with pytest.raises(CommandError) as exc_info:
            CommandRunner().run([sys.executable, "-c", "import sys; sys.exit(4)"])
        assert exc_info.value.returncode == 4

    def test_runs_in_working_directory(self, tmp_path):
        marker = tmp_path / "marker"
        CommandRunner(cwd=str(tmp_path)).run([sys.executable, "-c", "open('marker', 'w').close()"])
        assert marker.exists()


class TestRunWithSecrets:
    """Test suite for running commands with secrets."""

    def test_exports_binding_variable(self, session_config, scratch_dir):
        session = ScopedSecretSession(MappingSecretSource({"a": "A=1\n"}), session_config)
        runner = mock.Mock()
        seen = {}

        def fake_run(command, env=None):
            seen["command"] = command
            seen["env"] = env
            with open(env["COMPOSE_ENV_FILES"]) as f:
                seen["content"] = f.read()
            return 0

        runner.run.side_effect = fake_run

        assert run_with_secrets(session, ["a"], ["docker", "compose", "up", "-d"], runner) == 0
        assert seen["command"] == ["docker", "compose", "up", "-d"]
        assert seen["content"] == "A=1\n"
        assert os.listdir(scratch_dir) == []

    def test_env_file_args_mode(self, session_config):
        session = ScopedSecretSession(MappingSecretSource({"a": "A=1\n", "b": "B=2\n"}), session_config)
        runner = mock.Mock()
        runner.run.return_value = 0

        run_with_secrets(session, ["a", "b"], ["docker", "compose", "up"], runner, env_file_args=True)

        command = runner.run.call_args[0][0]
        assert command[:3] == ["docker", "compose", "--env-file"]
        assert command[-1] == "up"
        assert command.count("--env-file") == 2

    def test_command_failure_still_cleans_up(self, session_config, scratch_dir):
        session = ScopedSecretSession(MappingSecretSource({"a": "A=1\n"}), session_config)
        runner = mock.Mock()
        runner.run.side_effect = CommandError(["docker", "compose", "up"], 1)

        with pytest.raises(CommandError):
            run_with_secrets(session, ["a"], ["docker", "compose", "up"], runner)

        assert os.listdir(scratch_dir) == []

    def test_unresolved_secret_never_runs_command(self, session_config):
        session = ScopedSecretSession(MappingSecretSource({}), session_config)
        runner = mock.Mock()

        with pytest.raises(SecretResolutionError):
            run_with_secrets(session, ["missing"], ["docker", "compose", "up"], runner)

        runner.run.assert_not_called()

    def test_end_to_end_subprocess(self, session_config, scratch_dir, tmp_path):
        """Test that a real child process reads the secret files in order."""
        session = ScopedSecretSession(MappingSecretSource({"a": "A=1\n", "b": "B=2\n"}), session_config)
        output = tmp_path / "combined.env"

        run_with_secrets(session, ["b", "a"], [sys.executable, "-c", CONCAT_ENV_FILES, str(output)])

        assert output.read_text() == "B=2\nA=1\n"
        assert os.listdir(scratch_dir) == []
