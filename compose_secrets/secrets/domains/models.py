"""Domain models for scoped secret sessions."""
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Tuple

DEFAULT_BINDING_VARIABLE = "COMPOSE_ENV_FILES"
DEFAULT_SEPARATOR = ","


@dataclass
class SecretRecord:
    """A resolved secret and where it came from."""
    name: str
    notes: str = field(repr=False)
    source: str  # "gcp", "env", "file" or "memory"

    def is_blank(self) -> bool:
        return not self.notes or not self.notes.strip()


@dataclass(frozen=True)
class EphemeralArtifact:
    """A temporary file holding one secret for the lifetime of a session."""
    path: str
    secret_name: str
    session_id: str


@dataclass(frozen=True)
class SessionBinding:
    """
    What the wrapped action gets to see: file paths, never payloads.

    The paths keep the order in which the secret names were requested.
    """
    paths: Tuple[str, ...]
    variable: str = DEFAULT_BINDING_VARIABLE
    separator: str = DEFAULT_SEPARATOR

    @property
    def value(self) -> str:
        return self.separator.join(self.paths)

    def as_env(self) -> Dict[str, str]:
        """Environment overrides for a child process."""
        return {self.variable: self.value}

    def env_file_args(self) -> List[str]:
        """One ``--env-file <path>`` pair per artifact."""
        args: List[str] = []
        for path in self.paths:
            args.extend(["--env-file", path])
        return args

    def __iter__(self) -> Iterator[str]:
        return iter(self.paths)

    def __len__(self) -> int:
        return len(self.paths)
