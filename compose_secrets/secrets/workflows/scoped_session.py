"""Run an action with secrets visible as temporary files for its duration only.

Secrets are fetched one name at a time, written to freshly named files in a
scratch directory outside the working tree, and handed to the action as a
SessionBinding of paths. Every file is removed when the scope exits, whether
the action returned, raised, or was interrupted.

Abrupt termination (SIGKILL, power loss) while the action runs leaves the
files behind. Prefer ephemeral build agents when that matters.
"""
import os
import uuid
import logging
import warnings
from typing import Callable, List, Optional, Sequence, TypeVar

from ..domains.config_loader import SessionConfig
from ..domains.errors import (
    ArtifactCleanupWarning,
    ArtifactWriteError,
    ComposeSecretsError,
    EmptySecretError,
    SecretResolutionError,
)
from ..domains.models import EphemeralArtifact, SecretRecord, SessionBinding
from ..domains.sources import SecretSource

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SecretScope:
    """
    Single-use context manager owning the files of one session.

    Entering fetches, validates and materializes the secrets and returns
    the SessionBinding. If entering fails partway, whatever was already
    written is removed before the error propagates. Exiting removes every
    file, never raises for a failed removal, and records each failure in
    ``cleanup_warnings`` instead.
    """

    def __init__(self, source: SecretSource, names: Sequence[str], config: SessionConfig):
        self.source = source
        self.names = list(names)
        self.config = config
        self.session_id = uuid.uuid4().hex
        self.artifacts: List[EphemeralArtifact] = []
        self.cleanup_warnings: List[ArtifactCleanupWarning] = []
        self.binding: Optional[SessionBinding] = None
        self._entered = False

    def __enter__(self) -> SessionBinding:
        if self._entered:
            raise RuntimeError("A SecretScope can only be entered once")
        self._entered = True

        try:
            self._materialize()
        except BaseException:
            self._sweep()
            raise
        return self.binding

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._sweep()
        return False

    def _resolve(self, name: str) -> SecretRecord:
        try:
            records = self.source.fetch([name])
        except ComposeSecretsError:
            raise
        except Exception as e:
            raise SecretResolutionError([name], str(e)) from e

        record = records.get(name)
        if record is None:
            raise SecretResolutionError([name], "source returned no record")
        if record.is_blank():
            raise EmptySecretError(name)
        return record

    def _write(self, scratch_dir: str, record: SecretRecord) -> EphemeralArtifact:
        path = os.path.join(scratch_dir, f"{self.config.file_prefix}{uuid.uuid4().hex}")
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        except OSError as e:
            raise ArtifactWriteError(path, record.name, e) from e

        # Registered before the write so a partially written file is still swept.
        artifact = EphemeralArtifact(path=path, secret_name=record.name, session_id=self.session_id)
        self.artifacts.append(artifact)

        try:
            with os.fdopen(fd, "wb") as f:
                # surrogateescape restores undecodable bytes read from the environment.
                f.write(record.notes.encode("utf-8", errors="surrogateescape"))
        except (OSError, UnicodeError) as e:
            raise ArtifactWriteError(path, record.name, e) from e

        logger.debug(f"Wrote secret '{record.name}' to {path}")
        return artifact

    def _materialize(self) -> None:
        scratch_dir = self.config.resolve_scratch_dir()
        for name in self.names:
            record = self._resolve(name)
            self._write(scratch_dir, record)

        self.binding = SessionBinding(
            paths=tuple(artifact.path for artifact in self.artifacts),
            variable=self.config.binding_variable,
            separator=self.config.separator,
        )
        logger.info(f"Session {self.session_id}: materialized {len(self.artifacts)} secret file(s)")

    def _sweep(self) -> None:
        for artifact in self.artifacts:
            try:
                os.remove(artifact.path)
            except FileNotFoundError:
                logger.debug(f"Secret file already gone: {artifact.path}")
            except OSError as e:
                warning = ArtifactCleanupWarning(artifact.path, e)
                self.cleanup_warnings.append(warning)
                logger.warning(str(warning))
        if self.artifacts:
            logger.info(f"Session {self.session_id}: removed secret files")
        self.artifacts = []


class ScopedSecretSession:
    """
    Bridges a SecretSource to actions that expect secrets as files.

    A session holds no per-call state, so one instance can serve
    concurrent ``run`` calls; each call gets its own SecretScope.
    """

    def __init__(self, source: SecretSource, config: Optional[SessionConfig] = None):
        self.source = source
        self.config = config or SessionConfig()

    def open(self, names: Sequence[str]) -> SecretScope:
        """
        Create a scope for ``names`` to be used in a ``with`` statement.

        Raises:
            TypeError: If names is a single string instead of a sequence
            ValueError: If names is empty
        """
        if isinstance(names, str):
            raise TypeError("names must be a sequence of secret names, not a string")
        names = list(names)
        if not names:
            raise ValueError("At least one secret name is required")
        return SecretScope(self.source, names, self.config)

    def run(self, names: Sequence[str], action: Callable[[SessionBinding], T]) -> T:
        """
        Run ``action`` with the named secrets materialized as files.

        Args:
            names: Secret names, in the order their paths should appear
            action: Callable receiving the SessionBinding

        Returns:
            Whatever ``action`` returns

        Raises:
            SecretResolutionError: A name could not be resolved
            EmptySecretError: A secret had no content
            ArtifactWriteError: A secret file could not be written
            Anything ``action`` raises, unchanged

        Files that could not be removed are logged. After a successful
        action they are also issued as ArtifactCleanupWarning warnings,
        which are never escalated to errors by a warnings filter.
        """
        scope = self.open(names)
        with scope as binding:
            result = action(binding)

        with warnings.catch_warnings():
            warnings.simplefilter("always", ArtifactCleanupWarning)
            for warning in scope.cleanup_warnings:
                warnings.warn(warning, stacklevel=2)
        return result
