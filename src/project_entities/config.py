"""Configuration management for project-entities using YAML files."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog
import yaml

from project_entities.locking import DEFAULT_LOCK_TIMEOUT

logger = structlog.get_logger()

STORE_DIR_NAME = ".entities"
GLOBAL_DIR_NAME = ".project-entities"
CONFIG_FILE_NAME = "config.yaml"

APPROVAL_MODES = ("default", "strict", "loose")
AUTOMATION_LEVELS = ("simple", "standard", "advanced", "auto")
SETTING_KEYS = ("approval_mode", "automation_level", "lock_timeout", "integrity_checks")


def global_config_dir() -> Path:
    return Path.home() / GLOBAL_DIR_NAME


class Config:
    """Configuration manager using YAML file storage.

    Supports both local (project-level) and global (user-level) configuration.
    Local config is stored in .entities/config.yaml under the project root.
    Global config is stored in ~/.project-entities/config.yaml.

    When reading, values are looked up in local config first, then global config.
    """

    def __init__(self, use_global: bool = False, project_root: Path | None = None) -> None:
        """Initialize configuration manager.

        Args:
            use_global: If True, use global config only. If False, use local config with global fallback.
            project_root: Project directory holding the local store (defaults to the current directory)
        """
        if use_global:
            self.config_dir = global_config_dir()
            self.is_global = True
        else:
            root = Path(project_root) if project_root is not None else Path.cwd()
            self.config_dir = root / STORE_DIR_NAME
            self.is_global = False

        self.config_file = self.config_dir / CONFIG_FILE_NAME
        self._config: dict[str, Any] = self._load(self.config_file)

        # For local config, also load global config as fallback
        self._global_config: dict[str, Any] = {}
        if not self.is_global:
            global_config_file = global_config_dir() / CONFIG_FILE_NAME
            if global_config_file.exists():
                try:
                    self._global_config = self._load(global_config_file)
                except ValueError as e:
                    logger.warning("Failed to load global config", error=str(e))

        logger.debug("Config initialized", config_file=str(self.config_file), is_global=self.is_global)

    @staticmethod
    def _load(config_file: Path) -> dict[str, Any]:
        """Load configuration from a YAML file.

        Returns:
            Configuration dictionary, empty if the file does not exist
        """
        if not config_file.exists():
            logger.debug("Config file does not exist, initializing empty config", config_file=str(config_file))
            return {}

        try:
            with open(config_file, "r") as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to load config", error=str(e))
            raise ValueError(f"Failed to load config from {config_file}: {e}") from e

        if not isinstance(config, dict):
            raise ValueError(f"Failed to load config from {config_file}: expected a mapping")
        logger.debug("Config loaded successfully", keys=list(config.keys()))
        return config

    def _save(self) -> None:
        """Save configuration to YAML file."""
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, "w") as f:
                yaml.safe_dump(self._config, f, default_flow_style=False, sort_keys=False)
            logger.debug("Config saved successfully")
        except OSError as e:
            logger.error("Failed to save config", error=str(e))
            raise ValueError(f"Failed to save config to {self.config_file}: {e}") from e

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value.

        For local config, checks local config first, then falls back to global config.

        Args:
            key: Configuration key
            default: Default value if key doesn't exist

        Returns:
            Configuration value or default
        """
        if key in self._config:
            logger.debug("Getting config value from local", key=key)
            return self._config[key]

        if not self.is_global and key in self._global_config:
            logger.debug("Getting config value from global", key=key)
            return self._global_config[key]

        logger.debug("Config value not found", key=key)
        return default

    def set(self, key: str, value: str) -> None:
        """Set a configuration value.

        Args:
            key: Configuration key
            value: Configuration value
        """
        logger.debug("Setting config value", key=key)
        self._config[key] = value
        self._save()

    def unset(self, key: str) -> None:
        """Remove a configuration value.

        Args:
            key: Configuration key
        """
        logger.debug("Unsetting config value", key=key)
        if key in self._config:
            del self._config[key]
            self._save()

    def list(self) -> dict[str, Any]:
        """List all configuration settings.

        For local config, merges global config with local config (local takes precedence).

        Returns:
            Dictionary of all config settings
        """
        if self.is_global:
            logger.debug("Listing global config values", count=len(self._config))
            return self._config.copy()

        merged = self._global_config.copy()
        merged.update(self._config)
        logger.debug("Listing merged config values", count=len(merged))
        return merged


def get_config(use_global: bool = False, project_root: Path | None = None) -> Config:
    """Get a configuration instance.

    Args:
        use_global: If True, return global config. If False, return local config with global fallback.
        project_root: Project directory for local config

    Returns:
        Config instance
    """
    return Config(use_global=use_global, project_root=project_root)


def _parse_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "yes", "on", "1"):
        return True
    if text in ("false", "no", "off", "0"):
        return False
    raise ValueError(f"Invalid value for {key}: {value!r} (expected true or false)")


def _parse_choice(key: str, value: Any, choices: tuple[str, ...]) -> str:
    text = str(value)
    if text not in choices:
        raise ValueError(f"Invalid {key}: {value!r} (expected one of {', '.join(choices)})")
    return text


def _parse_timeout(key: str, value: Any) -> float:
    try:
        timeout = float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid {key}: {value!r}") from e
    if timeout <= 0:
        raise ValueError(f"Invalid {key}: {timeout} (must be positive)")
    return timeout


def parse_setting(key: str, value: Any) -> Any:
    """Convert a raw configuration value to the type its setting expects.

    Args:
        key: One of SETTING_KEYS
        value: Raw value, usually a string from the command line or YAML

    Returns:
        The typed value

    Raises:
        ValueError: If the key is unknown or the value cannot be interpreted
    """
    if key == "approval_mode":
        return _parse_choice(key, value, APPROVAL_MODES)
    if key == "automation_level":
        return _parse_choice(key, value, AUTOMATION_LEVELS)
    if key == "lock_timeout":
        return _parse_timeout(key, value)
    if key == "integrity_checks":
        return _parse_bool(key, value)
    raise ValueError(f"Unknown setting: {key!r} (expected one of {', '.join(SETTING_KEYS)})")


@dataclass
class ProjectSettings:
    """Typed view of the settings a Project reads from configuration."""

    approval_mode: str = "default"
    automation_level: str = "standard"
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    integrity_checks: bool = True

    @classmethod
    def from_config(cls, config: Config) -> "ProjectSettings":
        """Build settings from a Config, falling back to defaults for missing keys.

        Raises:
            ValueError: If a value cannot be interpreted
        """
        values = {}
        for key in SETTING_KEYS:
            value = config.get(key)
            if value is not None:
                values[key] = parse_setting(key, value)
        return cls(**values)
