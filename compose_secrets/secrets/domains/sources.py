"""Secret sources a session can resolve names against."""
import os
import logging
from typing import Any, Dict, List, Mapping, Protocol, Sequence

import yaml

from .errors import ConfigError, SecretResolutionError
from .models import SecretRecord

logger = logging.getLogger(__name__)


class SecretSource(Protocol):
    """Anything that can turn secret names into SecretRecords."""

    def fetch(self, names: Sequence[str]) -> Dict[str, SecretRecord]:
        """Resolve every name or raise SecretResolutionError naming the failures."""
        ...


class MappingSecretSource:
    """In-memory secret store."""

    def __init__(self, secrets: Mapping[str, str]):
        self._secrets = dict(secrets)

    def fetch(self, names: Sequence[str]) -> Dict[str, SecretRecord]:
        missing = [name for name in names if name not in self._secrets]
        if missing:
            raise SecretResolutionError(missing, "not in memory store")
        return {
            name: SecretRecord(name=name, notes=self._secrets[name], source="memory")
            for name in names
        }


class EnvSecretSource:
    """Reads secrets from environment variables, optionally prefixed."""

    def __init__(self, prefix: str = ""):
        self.prefix = prefix

    def fetch(self, names: Sequence[str]) -> Dict[str, SecretRecord]:
        records: Dict[str, SecretRecord] = {}
        missing = []
        for name in names:
            value = os.getenv(f"{self.prefix}{name}")
            if value is None:
                missing.append(name)
                continue
            records[name] = SecretRecord(name=name, notes=value, source="env")
        if missing:
            raise SecretResolutionError(missing, "environment variable not set")
        return records


class FileSecretSource:
    """
    YAML credential file.

    Each top-level key is a secret name; its value is either the note text
    itself or a mapping with a ``notes`` key::

        app-env: |
          KEY=value
        db-env:
          notes: |
            POSTGRES_PASSWORD=example

    The file is re-read on every fetch so edits take effect immediately.
    """

    def __init__(self, path: str):
        self.path = path

    def _load(self) -> Dict[str, Any]:
        try:
            with open(self.path, 'r') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse credential file {self.path}: {e}")
        except OSError as e:
            raise ConfigError(f"Failed to read credential file {self.path}: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Credential file {self.path} must contain a mapping")
        return data

    def fetch(self, names: Sequence[str]) -> Dict[str, SecretRecord]:
        data = self._load()
        records: Dict[str, SecretRecord] = {}
        missing = []
        for name in names:
            entry = data.get(name)
            if isinstance(entry, dict):
                entry = entry.get("notes")
            if entry is None:
                missing.append(name)
                continue
            records[name] = SecretRecord(name=name, notes=str(entry), source="file")
        if missing:
            raise SecretResolutionError(missing, f"not in credential file {self.path}")
        return records


class ChainedSecretSource:
    """Tries each source in order; the first one that resolves a name wins."""

    def __init__(self, sources: Sequence[SecretSource]):
        if not sources:
            raise ValueError("ChainedSecretSource needs at least one source")
        self.sources: List[SecretSource] = list(sources)

    def fetch(self, names: Sequence[str]) -> Dict[str, SecretRecord]:
        records: Dict[str, SecretRecord] = {}
        for name in names:
            for source in self.sources:
                try:
                    records[name] = source.fetch([name])[name]
                    break
                except SecretResolutionError as e:
                    logger.debug(f"{type(source).__name__} could not resolve {name}: {e}")
            else:
                raise SecretResolutionError([name], "not found in any configured source")
        return records


def build_source(config: Dict[str, Any]) -> SecretSource:
    """
    Build the secret source described by a loaded config.

    ``auto`` checks environment variables first and falls back to GCP
    Secret Manager, which keeps local development fast.
    """
    from .gcp_client import GCPSecretSource

    source_config = config.get("source") or {}
    source_type = source_config.get("type", "auto")
    gcp = config.get("gcp") or {}
    auth = config.get("authentication") or {}

    def gcp_source() -> GCPSecretSource:
        return GCPSecretSource(
            project_id=gcp.get("project_id"),
            version=str(gcp.get("version", "latest")),
            service_account_path=auth.get("service_account_path"),
        )

    env_source = EnvSecretSource(prefix=source_config.get("env_prefix", ""))

    if source_type == "env":
        return env_source
    if source_type == "file":
        return FileSecretSource(source_config["path"])
    if source_type == "gcp":
        return gcp_source()
    if source_type == "auto":
        return ChainedSecretSource([env_source, gcp_source()])
    raise ConfigError(f"Unsupported source type: {source_type}")
