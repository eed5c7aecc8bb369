"""
Configuration file support for the text store.

Provides:
- Config dataclasses for holding configuration values
- TOML config file loading (text_store.toml)
- Precedence: CLI > environment > config file > defaults
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

# Python 3.11+ has tomllib in stdlib, earlier versions need tomli
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "text_store.toml"
DEFAULT_SNAPSHOT_PATH = Path.home() / ".textstore" / "texts.json"

ENV_SNAPSHOT_PATH = "TEXTSTORE_SNAPSHOT_PATH"
ENV_PERSISTENT = "TEXTSTORE_PERSISTENT"
ENV_ACTOR = "TEXTSTORE_ACTOR"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(value: Any, config_key: str) -> bool:
    """Accept a TOML boolean or one of the usual true/false spellings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
    raise ConfigurationError(
        f"{config_key} must be a boolean, got '{value}'",
        context={"config_key": config_key},
    )


def _section(data: Dict[str, Any], name: str, config_path: Optional[Path]) -> Dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigurationError(
            f"Invalid value in config {config_path or ''}: [{name}] must be a table",
            context={"file_path": str(config_path) if config_path else None, "config_key": name},
        )
    return section


@dataclass
class StoreConfig:
    """Where and whether the store persists its snapshot."""

    snapshot_path: Optional[str] = None
    persistent: bool = True
    default_actor: str = "DUMMY_USER"
    page_size: int = 25

    @property
    def resolved_snapshot_path(self) -> Path:
        if self.snapshot_path:
            return Path(self.snapshot_path).expanduser()
        return DEFAULT_SNAPSHOT_PATH


@dataclass
class ServerConfig:
    """Web server configuration."""

    host: str = "127.0.0.1"
    port: int = 8080


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "WARNING"
    log_file: Optional[str] = None


@dataclass
class Config:
    """Complete configuration for the text store."""

    store: StoreConfig = field(default_factory=StoreConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    config_path: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], config_path: Optional[Path] = None) -> "Config":
        """Create Config from a dictionary (parsed TOML)."""
        store_data = _section(data, "store", config_path)
        server_data = _section(data, "server", config_path)
        logging_data = _section(data, "logging", config_path)

        try:
            return cls(
                store=StoreConfig(
                    snapshot_path=store_data.get("snapshot_path"),
                    persistent=_parse_bool(store_data.get("persistent", True), "store.persistent"),
                    default_actor=str(store_data.get("default_actor", "DUMMY_USER")),
                    page_size=int(store_data.get("page_size", 25)),
                ),
                server=ServerConfig(
                    host=str(server_data.get("host", "127.0.0.1")),
                    port=int(server_data.get("port", 8080)),
                ),
                logging=LoggingConfig(
                    level=str(logging_data.get("level", "WARNING")),
                    log_file=logging_data.get("log_file"),
                ),
                config_path=config_path,
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Invalid value in config {config_path or ''}: {e}",
                context={"file_path": str(config_path) if config_path else None},
            )

    def apply_environment(self, environ: Optional[Dict[str, str]] = None) -> "Config":
        """Override store settings from TEXTSTORE_* environment variables."""
        env = os.environ if environ is None else environ

        snapshot_path = env.get(ENV_SNAPSHOT_PATH, "").strip()
        if snapshot_path:
            logger.debug(f"Using {ENV_SNAPSHOT_PATH}: {snapshot_path}")
            self.store.snapshot_path = snapshot_path

        persistent = env.get(ENV_PERSISTENT, "").strip()
        if persistent:
            self.store.persistent = _parse_bool(persistent, ENV_PERSISTENT)

        actor = env.get(ENV_ACTOR, "").strip()
        if actor:
            self.store.default_actor = actor

        return self


def find_config_file(config_path: Optional[Path] = None) -> Optional[Path]:
    """
    Find the configuration file.

    Search order:
    1. Explicit path if provided
    2. text_store.toml in current directory

    Returns:
        Path to config file, or None if not found.

    Raises:
        ConfigurationError: If an explicit path does not exist.
    """
    if config_path is not None:
        if config_path.exists():
            return config_path
        raise ConfigurationError(
            f"Config file not found: {config_path}",
            context={"file_path": str(config_path)},
        )

    cwd_config = Path.cwd() / DEFAULT_CONFIG_NAME
    if cwd_config.exists():
        return cwd_config

    return None


def load_config(
    config_path: Optional[Path] = None,
    environ: Optional[Dict[str, str]] = None,
) -> Config:
    """
    Load configuration from a TOML file and the environment.

    If no config file is found, defaults are used.

    Raises:
        ConfigurationError: If the config file exists but cannot be parsed.
    """
    config_file = find_config_file(config_path)

    if config_file is None:
        logger.debug("No config file found, using defaults")
        return Config().apply_environment(environ)

    logger.debug(f"Loading config from: {config_file}")

    try:
        with open(config_file, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(
            f"Invalid TOML in {config_file}: {e}",
            context={"file_path": str(config_file)},
        )
    except OSError as e:
        raise ConfigurationError(
            f"Cannot read config file {config_file}: {e}",
            context={"file_path": str(config_file)},
        )

    config = Config.from_dict(data, config_path=config_file)
    logger.info(f"Loaded config from: {config_file}")
    return config.apply_environment(environ)
