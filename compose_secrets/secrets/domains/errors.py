"""Exception taxonomy for scoped secret sessions."""
from typing import Iterable, List


class ComposeSecretsError(Exception):
    """Base class for all compose-secrets errors."""
    pass


class SecretResolutionError(ComposeSecretsError):
    """The secret source could not resolve one or more names."""

    def __init__(self, names: Iterable[str], reason: str = ""):
        self.names: List[str] = list(names)
        self.reason = reason
        message = f"Could not resolve secret(s): {', '.join(self.names)}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class EmptySecretError(ComposeSecretsError):
    """A resolved secret has no usable content."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"The secret '{name}' contains no notes. Cannot proceed.")


class ArtifactWriteError(ComposeSecretsError):
    """A secret could not be written to its ephemeral file."""

    def __init__(self, path: str, name: str, cause: Exception):
        self.path = path
        self.name = name
        self.cause = cause
        super().__init__(f"Failed to write secret '{name}' to {path}: {cause}")


class ConfigError(ComposeSecretsError):
    """Configuration error exception."""
    pass


class CommandError(ComposeSecretsError):
    """A wrapped command exited with a non-zero status."""

    def __init__(self, command: List[str], returncode: int):
        self.command = list(command)
        self.returncode = returncode
        super().__init__(f"Command '{' '.join(self.command)}' exited with status {returncode}")


class ArtifactCleanupWarning(UserWarning):
    """An ephemeral secret file could not be removed during teardown."""

    def __init__(self, path: str, error: Exception):
        self.path = path
        self.error = error
        super().__init__(f"Failed to remove ephemeral secret file {path}: {error}")
