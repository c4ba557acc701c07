"""Shared fixtures for compose-secrets tests."""
from pathlib import Path

import pytest

from compose_secrets.secrets.domains.config_loader import SessionConfig

ISOLATED_ENV_VARS = (
    "COMPOSE_SECRETS_CONFIG",
    "GCP_PROJECT",
    "JOB_NAME",
    "WORKSPACE",
    "WORKSPACE_TMP",
    "COMPOSE_ENV_FILES",
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep the real environment and home directory out of every test."""
    for name in ISOLATED_ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    fake_home = tmp_path / "home"
    fake_home.mkdir()
    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.setattr(Path, "home", lambda: fake_home)
    return fake_home


@pytest.fixture
def scratch_dir(tmp_path):
    """Scratch directory for secret files, outside the working tree."""
    return (tmp_path / "scratch").resolve()


@pytest.fixture
def work_dir(tmp_path):
    """Stand-in for the caller's working tree."""
    work = tmp_path / "work"
    work.mkdir()
    return work


@pytest.fixture
def session_config(scratch_dir, work_dir):
    return SessionConfig(scratch_dir=str(scratch_dir), working_dir=str(work_dir))
