"""Run commands with secrets exposed as short-lived env files."""
__version__ = "0.1.0"

from compose_secrets.secrets.domains.config_loader import SessionConfig
from compose_secrets.secrets.domains.errors import (
    ArtifactCleanupWarning,
    ArtifactWriteError,
    ComposeSecretsError,
    ConfigError,
    EmptySecretError,
    SecretResolutionError,
)
from compose_secrets.secrets.domains.models import SecretRecord, SessionBinding
from compose_secrets.secrets.workflows.scoped_session import ScopedSecretSession

__all__ = [
    "ArtifactCleanupWarning",
    "ArtifactWriteError",
    "ComposeSecretsError",
    "ConfigError",
    "EmptySecretError",
    "ScopedSecretSession",
    "SecretRecord",
    "SecretResolutionError",
    "SessionBinding",
    "SessionConfig",
]
