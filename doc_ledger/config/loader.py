"""
Configuration management and loading.

Handles application settings and environment variables.
"""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from doc_ledger.storage.models import DEFAULT_RECENT_LIMIT

CONFIG_ENV_VAR = "DOC_LEDGER_CONFIG"
ROOT_ENV_VAR = "DOC_LEDGER_ROOT"
PORT_ENV_VAR = "PORT"
LOG_LEVEL_ENV_VAR = "LOG_LEVEL"

DEFAULT_ROOT = "uploads"
DEFAULT_PORT = 10000
DEFAULT_LOG_LEVEL = "INFO"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class StorageConfig:
    """Where records and the usage ledger are kept."""
    root: str = DEFAULT_ROOT
    recent_limit: int = DEFAULT_RECENT_LIMIT

    def __post_init__(self):
        """Validate storage values."""
        if not self.root:
            raise ValueError("storage root cannot be empty")
        if self.recent_limit <= 0:
            raise ValueError("recent_limit must be > 0")

    @property
    def json_dir(self) -> Path:
        """Directory holding the date partitions of document records."""
        return Path(self.root) / "json"

    @property
    def usage_file(self) -> Path:
        """Path of the usage ledger document."""
        return Path(self.root) / "usage.json"


@dataclass(frozen=True)
class ServerConfig:
    """HTTP server settings."""
    port: int = DEFAULT_PORT

    def __post_init__(self):
        if not 0 < self.port < 65536:
            raise ValueError("port must be between 1 and 65535")


@dataclass(frozen=True)
class LoggingConfig:
    """Logging settings."""
    level: str = DEFAULT_LOG_LEVEL

    def __post_init__(self):
        if self.level.upper() not in _LOG_LEVELS:
            raise ValueError(f"logging level must be one of: {sorted(_LOG_LEVELS)}")


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""
    storage: StorageConfig = field(default_factory=StorageConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> AppConfig:
    """Load and validate configuration from a YAML file and the environment.

    The file is optional. When path is not given, DOC_LEDGER_CONFIG may name
    one. DOC_LEDGER_ROOT, PORT and LOG_LEVEL override file values.

    Args:
        path: Path to YAML configuration file
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated AppConfig object

    Raises:
        FileNotFoundError: If a named config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    env = os.environ if environ is None else environ
    path = path or env.get(CONFIG_ENV_VAR)

    config = AppConfig()
    if path:
        config = _load_file(path)

    return _apply_env(config, env)


def _load_file(path: str) -> AppConfig:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        return AppConfig()
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    allowed_top_keys = {'storage', 'server', 'logging'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    storage_data = _section(raw_config, 'storage', {'root', 'recent_limit'})
    server_data = _section(raw_config, 'server', {'port'})
    logging_data = _section(raw_config, 'logging', {'level'})

    storage = StorageConfig(
        root=str(storage_data.get('root', DEFAULT_ROOT)),
        recent_limit=_as_int(storage_data.get('recent_limit', DEFAULT_RECENT_LIMIT), 'storage.recent_limit'),
    )
    server = ServerConfig(port=_as_int(server_data.get('port', DEFAULT_PORT), 'server.port'))

    level = logging_data.get('level', DEFAULT_LOG_LEVEL)
    if not isinstance(level, str):
        raise ValueError("'logging.level' must be a string")

    return AppConfig(storage=storage, server=server, logging=LoggingConfig(level=level.upper()))


def _section(raw_config: Dict, name: str, allowed_keys: set) -> Dict[str, Any]:
    """Extract and validate one optional configuration section.

    Args:
        raw_config: Parsed configuration document
        name: Section name
        allowed_keys: Keys accepted in the section

    Returns:
        Section contents, empty if absent

    Raises:
        ValueError: If the section is not a mapping or has unknown keys
    """
    data = raw_config.get(name) or {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")

    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown {name} keys: {unknown_keys}")
    return data


def _as_int(value: Any, path: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"'{path}' must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"'{path}' must be an integer")


def _apply_env(config: AppConfig, env: Mapping[str, str]) -> AppConfig:
    """Apply environment variable overrides on top of file values."""
    if env.get(ROOT_ENV_VAR):
        config = replace(config, storage=replace(config.storage, root=env[ROOT_ENV_VAR]))
    if env.get(PORT_ENV_VAR):
        config = replace(config, server=ServerConfig(port=_as_int(env[PORT_ENV_VAR], PORT_ENV_VAR)))
    if env.get(LOG_LEVEL_ENV_VAR):
        config = replace(config, logging=LoggingConfig(level=env[LOG_LEVEL_ENV_VAR].upper()))
    return config
