"""Configuration loader for compose-secrets."""
import os
import logging
import tempfile
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Any, Optional, Tuple
import yaml

from .errors import ConfigError
from .models import DEFAULT_BINDING_VARIABLE, DEFAULT_SEPARATOR

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "COMPOSE_SECRETS_CONFIG"
SOURCE_TYPES = ("auto", "gcp", "env", "file")
KNOWN_SECTIONS = ("source", "gcp", "authentication", "session")


def default_config_path() -> Path:
    """XDG default location of the config file."""
    return Path.home() / ".config" / "compose-secrets" / "config.yml"


@dataclass
class SessionConfig:
    """Every option a ScopedSecretSession recognizes, with its default."""
    scratch_dir: Optional[str] = None
    working_dir: Optional[str] = None
    binding_variable: str = DEFAULT_BINDING_VARIABLE
    separator: str = DEFAULT_SEPARATOR
    file_prefix: str = "env-"

    @classmethod
    def from_mapping(cls, values: Optional[Dict[str, Any]]) -> "SessionConfig":
        """
        Build a SessionConfig from a plain mapping.

        Raises:
            ConfigError: If the mapping has keys SessionConfig does not know
        """
        values = values or {}
        if not isinstance(values, dict):
            raise ConfigError(f"'session' must be a mapping, got {type(values).__name__}")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigError(
                f"Unknown session option(s): {', '.join(unknown)}\n"
                f"Recognized options: {', '.join(sorted(known))}"
            )
        return cls(**values)

    def resolve_scratch_dir(self) -> str:
        """
        Pick the directory ephemeral secret files are written to.

        Priority order:
        1. ``scratch_dir`` option
        2. WORKSPACE_TMP environment variable
        3. ``$WORKSPACE@tmp`` when running inside a CI workspace
        4. The system temp directory

        The directory is created if missing and must not be inside the
        working directory, so secret files never end up in archives or
        copies of the working tree.

        Raises:
            ConfigError: If the directory is inside the working tree or can't be created
        """
        if self.scratch_dir:
            scratch = Path(self.scratch_dir)
        elif os.getenv("WORKSPACE_TMP"):
            scratch = Path(os.environ["WORKSPACE_TMP"])
        elif os.getenv("WORKSPACE"):
            scratch = Path(f"{os.environ['WORKSPACE'].rstrip('/')}@tmp")
        else:
            scratch = Path(tempfile.gettempdir())

        scratch = scratch.expanduser().resolve()
        working = Path(self.working_dir or os.getcwd()).expanduser().resolve()

        if scratch == working or working in scratch.parents:
            raise ConfigError(
                f"Scratch directory {scratch} is inside the working directory {working}\n"
                f"Secret files must be written outside the working tree."
            )

        try:
            scratch.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigError(f"Failed to create scratch directory {scratch}: {e}")

        logger.debug(f"Using scratch directory: {scratch}")
        return str(scratch)


def _get_config_path(explicit: Optional[str] = None) -> Tuple[Optional[Path], str]:
    """
    Get config file path.

    Priority order:
    1. Explicit path (``--config``)
    2. COMPOSE_SECRETS_CONFIG environment variable
    3. Default location: ~/.config/compose-secrets/config.yml

    Returns:
        Tuple of (path or None if no config file exists, origin label)

    Raises:
        ConfigError: If an explicitly requested config file doesn't exist
    """
    if explicit:
        config_path = Path(explicit).expanduser()
        if not config_path.is_file():
            raise ConfigError(f"Configuration file not found at: {config_path}")
        return config_path, "argument"

    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        config_path = Path(env_path).expanduser()
        if not config_path.is_file():
            raise ConfigError(
                f"Configuration file from {CONFIG_ENV_VAR} not found at: {config_path}"
            )
        return config_path, "environment"

    default_config = default_config_path()
    if default_config.is_file():
        logger.info(f"Using default config location: {default_config}")
        return default_config, "default"

    return None, "built-in defaults"


def _validate_source(config: Dict[str, Any]) -> None:
    source = config.setdefault("source", {})
    if not isinstance(source, dict):
        raise ConfigError("'source' must be a mapping")

    source_type = source.setdefault("type", "auto")
    if source_type not in SOURCE_TYPES:
        raise ConfigError(
            f"Unsupported source type: {source_type}\n"
            f"Supported types: {', '.join(SOURCE_TYPES)}"
        )

    if source_type == "file" and not source.get("path"):
        raise ConfigError(
            "Missing 'source.path' in config\n"
            "A file source needs the path of a YAML credential file."
        )


def _validate_authentication(config: Dict[str, Any]) -> None:
    auth = config.get("authentication")
    if not auth:
        return
    if not isinstance(auth, dict):
        raise ConfigError(f"'authentication' must be a mapping, got {type(auth).__name__}")

    if auth.get("type", "service_account") != "service_account":
        raise ConfigError(
            f"Unsupported authentication type: {auth['type']}\n"
            f"Only 'service_account' is supported."
        )

    service_account_path = auth.get("service_account_path")
    if not service_account_path:
        raise ConfigError(
            "Missing 'authentication.service_account_path' in config\n"
            "Please specify the absolute path to your service account JSON file."
        )

    if not os.path.exists(service_account_path):
        raise ConfigError(
            f"Service account file not found at: {service_account_path}\n"
            f"Please ensure the file exists or update the path in your config."
        )

    if not os.path.isfile(service_account_path):
        raise ConfigError(f"Service account path is not a file: {service_account_path}")


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load and validate configuration.

    Args:
        path: Explicit config file path (optional)

    Returns:
        Dict containing configuration with keys:
        - source: dict with type and optional path/env_prefix
        - gcp: dict with optional project_id and version
        - authentication: dict with optional service_account_path
        - session: SessionConfig instance
        - config_path: path the config was read from, or None

    Raises:
        ConfigError: If config file is missing, invalid, or references missing files
    """
    config_path, origin = _get_config_path(path)

    config: Dict[str, Any] = {}
    if config_path is not None:
        try:
            with open(config_path, 'r') as f:
                config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML config at {config_path}: {e}")
        except OSError as e:
            raise ConfigError(f"Failed to read config file at {config_path}: {e}")

        if not isinstance(config, dict):
            raise ConfigError(f"Config file at {config_path} must contain a mapping")

        unknown = sorted(set(config) - set(KNOWN_SECTIONS))
        if unknown:
            raise ConfigError(
                f"Unknown section(s) in config at {config_path}: {', '.join(unknown)}"
            )
    else:
        logger.debug("No config file found, using built-in defaults")

    _validate_source(config)
    _validate_authentication(config)

    gcp = config.get("gcp") or {}
    if not isinstance(gcp, dict):
        raise ConfigError(f"'gcp' must be a mapping, got {type(gcp).__name__}")
    config["gcp"] = gcp
    gcp_project_env = os.getenv("GCP_PROJECT")
    if gcp_project_env:
        logger.debug(f"Using GCP_PROJECT from environment: {gcp_project_env}")
        gcp["project_id"] = gcp_project_env

    config["session"] = SessionConfig.from_mapping(config.get("session"))
    config["config_path"] = str(config_path) if config_path else None
    config["config_origin"] = origin

    logger.info(f"Configuration loaded from {config_path or origin}")
    return config
