"""
Balance - Configuration Management

This module handles loading, merging, and managing configuration from
TOML files and environment variables. Supports default values and
runtime configuration updates.

Author: Balance Terminal contributors
Version: 1.0.0
"""

import copy
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from .constants import (
    ARGON2_MEMORY_COST,
    ARGON2_PARALLELISM,
    ARGON2_TIME_COST,
    CHAT_HISTORY_LIMIT,
    CHAT_SNIPPET_LENGTH,
    CONFIG_FILENAME,
    DATABASE_FILENAME,
    DEFAULT_DATA_DIR,
    DOWNLOADS_DIR,
    LOCAL_STORAGE_FILENAME,
    STORED_MESSAGE_LIMIT,
)
from .errors import ConfigError, ErrorCode

# Default configuration dictionary
DEFAULT_CONFIG: Dict[str, Any] = {
    "storage": {
        "data_dir": DEFAULT_DATA_DIR,
        "database": DATABASE_FILENAME,
        "local_storage": LOCAL_STORAGE_FILENAME,
        "download_dir": DOWNLOADS_DIR,
    },
    "security": {
        "time_cost": ARGON2_TIME_COST,
        "memory_cost": ARGON2_MEMORY_COST,
        "parallelism": ARGON2_PARALLELISM,
    },
    "chat": {
        "history_limit": CHAT_HISTORY_LIMIT,
        "snippet_length": CHAT_SNIPPET_LENGTH,
        "stored_message_limit": STORED_MESSAGE_LIMIT,
    },
    "logging": {
        "level": "INFO",
        "file_logging": True,
        "console_logging": True,
    },
}


class Config:
    """Configuration manager for Balance.

    Loads configuration from TOML files, merges with defaults,
    and applies environment variable overrides.

    Attributes:
        config_path: Path to the configuration file
        data: Configuration dictionary
    """

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to configuration file (optional)
                If not provided, uses default location
        """
        if config_path is None:
            data_dir = Path(os.environ.get("BALANCE_STORAGE_DATA_DIR", DEFAULT_DATA_DIR))
            config_path = data_dir.expanduser() / CONFIG_FILENAME

        self.config_path = Path(config_path)
        self.data = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from file and merge with defaults.

        Returns:
            Merged configuration dictionary

        Raises:
            ConfigError: If configuration loading or parsing fails
        """
        config = copy.deepcopy(DEFAULT_CONFIG)

        if self.config_path.exists():
            try:
                with open(self.config_path, "rb") as f:
                    file_config = tomllib.load(f)
            except (OSError, tomllib.TOMLDecodeError) as e:
                raise ConfigError(
                    ErrorCode.E704_CONFIG_PARSE_ERROR,
                    f"Failed to parse configuration file: {e}",
                    {"path": str(self.config_path), "error": str(e)},
                ) from e

            config = self._merge_config(config, file_config)

        return self._apply_env_overrides(config)

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge override config into base config."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration.

        Environment variables follow the pattern: BALANCE_SECTION_KEY
        For example: BALANCE_LOGGING_LEVEL=DEBUG

        Raises:
            ConfigError: If an override cannot be converted to the key's type
        """
        for section, settings in config.items():
            if not isinstance(settings, dict):
                continue

            for key, current in settings.items():
                env_var = f"BALANCE_{section.upper()}_{key.upper()}"
                env_value = os.environ.get(env_var)
                if env_value is None:
                    continue

                try:
                    if isinstance(current, bool):
                        settings[key] = env_value.lower() in ("true", "1", "yes")
                    elif isinstance(current, int):
                        settings[key] = int(env_value)
                    elif isinstance(current, float):
                        settings[key] = float(env_value)
                    else:
                        settings[key] = env_value
                except ValueError as e:
                    raise ConfigError(
                        ErrorCode.E704_CONFIG_PARSE_ERROR,
                        f"Invalid value for {env_var}: {env_value!r}",
                        {"variable": env_var},
                    ) from e

        return config

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        return self.data.get(section, {}).get(key, default)

    def set(self, section: str, key: str, value: Any) -> None:
        """Set a configuration value."""
        self.data.setdefault(section, {})[key] = value

    @property
    def data_dir(self) -> Path:
        """Resolved data directory."""
        return Path(self.get("storage", "data_dir", DEFAULT_DATA_DIR)).expanduser()

    def resolve_path(self, key: str) -> Path:
        """Resolve a ``[storage]`` path, relative paths being under ``data_dir``."""
        path = Path(self.get("storage", key)).expanduser()
        return path if path.is_absolute() else self.data_dir / path

    def save(self) -> None:
        """Save current configuration to file.

        Raises:
            ConfigError: If saving fails
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w", encoding="utf-8") as f:
                self._write_toml(f, self.data)
        except OSError as e:
            raise ConfigError(
                ErrorCode.E702_CONFIG_SAVE_FAILED,
                f"Failed to save configuration: {e}",
                {"path": str(self.config_path), "error": str(e)},
            ) from e

    def _write_toml(self, file, data: Dict[str, Any]) -> None:
        """Write configuration data as TOML format."""
        for section, settings in data.items():
            if isinstance(settings, dict):
                file.write(f"[{section}]\n")
                for key, value in settings.items():
                    if isinstance(value, bool):
                        file.write(f"{key} = {str(value).lower()}\n")
                    elif isinstance(value, (int, float)):
                        file.write(f"{key} = {value}\n")
                    elif isinstance(value, str):
                        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
                        file.write(f'{key} = "{escaped}"\n')
                file.write("\n")

    def to_dict(self) -> Dict[str, Any]:
        """Get configuration as dictionary."""
        return copy.deepcopy(self.data)
