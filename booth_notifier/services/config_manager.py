"""
Configuration management for the BOOTH notifier.
"""

import os
import re
from typing import Any, Dict, Optional

import yaml

from ..models.config import BoothConfig, Configuration, DiscordConfig, StorageConfig
from ..utils.error_handling import ConfigError

ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

DEFAULT_CONFIG_PATHS = [
    "config/config.yaml",
    "config/config.yml",
    "config.yaml",
    "config.yml",
]


class ConfigurationManager:
    """Manages loading, validation, and reloading of system configuration."""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file. If None, uses default paths.
        """
        self.config_path = config_path or self._find_config_file()
        self._config: Optional[Configuration] = None
        self._last_modified: Optional[float] = None

    def _find_config_file(self) -> str:
        """Find the configuration file in standard locations."""
        for path in DEFAULT_CONFIG_PATHS:
            if os.path.exists(path):
                return path

        if os.path.exists("config/config.example.yaml"):
            raise ConfigError(
                "No configuration file found. Please copy 'config/config.example.yaml' "
                "to 'config/config.yaml' and customize it for your needs."
            )

        raise ConfigError(
            "No configuration file found. Please create a configuration file "
            "at one of these locations: " + ", ".join(DEFAULT_CONFIG_PATHS)
        )

    def load_config(self) -> Configuration:
        """
        Load configuration from file.

        Returns:
            Configuration object with validated settings.

        Raises:
            ConfigError: If the file is missing, unreadable or invalid.
        """
        if not os.path.exists(self.config_path):
            raise ConfigError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read configuration file: {e}") from e

        config = self.parse(raw_config)

        self._config = config
        self._last_modified = os.path.getmtime(self.config_path)
        return config

    def parse(self, raw_config: Any, expand_env: bool = True) -> Configuration:
        """Build and validate a configuration from its mapping form."""
        if raw_config is None:
            raw_config = {}
        if not isinstance(raw_config, dict):
            raise ConfigError("Configuration file must contain a mapping")

        if expand_env:
            raw_config = self._expand_env_vars(raw_config)

        config = self._parse_config(raw_config)
        config.validate()
        return config

    def _expand_env_vars(self, obj: Any) -> Any:
        """Recursively expand ${VAR_NAME} references in configuration."""
        if isinstance(obj, dict):
            return {key: self._expand_env_vars(value) for key, value in obj.items()}
        elif isinstance(obj, list):
            return [self._expand_env_vars(item) for item in obj]
        elif isinstance(obj, str):
            return ENV_VAR_PATTERN.sub(self._env_value, obj)
        else:
            return obj

    @staticmethod
    def _env_value(match: "re.Match[str]") -> str:
        var_name = match.group(1)
        env_value = os.getenv(var_name)
        if env_value is None:
            raise ConfigError(f"Environment variable '{var_name}' not found")
        return env_value

    @staticmethod
    def _section(raw_config: Dict[str, Any], name: str) -> Dict[str, Any]:
        section = raw_config.get(name) or {}
        if not isinstance(section, dict):
            raise ConfigError(f"Configuration section '{name}' must be a mapping")
        return section

    def _parse_config(self, raw_config: Dict[str, Any]) -> Configuration:
        """Parse raw configuration dictionary into Configuration object."""
        discord_data = self._section(raw_config, "discord")
        if "bot_token" not in discord_data:
            raise ConfigError("Missing required configuration key: discord.bot_token")

        discord = DiscordConfig(
            bot_token=str(discord_data["bot_token"]),
            api_base_url=discord_data.get(
                "api_base_url", DiscordConfig.api_base_url
            ),
            max_retries=discord_data.get("max_retries", DiscordConfig.max_retries),
            retry_delay=discord_data.get("retry_delay", DiscordConfig.retry_delay),
        )

        booth_data = self._section(raw_config, "booth")
        booth = BoothConfig(
            **{
                key: booth_data[key]
                for key in (
                    "catalog_url",
                    "item_url_template",
                    "timeout",
                    "max_retries",
                    "user_agent",
                )
                if key in booth_data
            }
        )

        storage_data = self._section(raw_config, "storage")
        storage = StorageConfig(
            database_path=storage_data.get(
                "database_path", StorageConfig.database_path
            )
        )

        system_data = self._section(raw_config, "system")

        return Configuration(
            discord=discord,
            booth=booth,
            storage=storage,
            polling_interval=system_data.get("polling_interval", 300),
            fetch_interval=system_data.get("fetch_interval", 1.0),
            seed_on_bootstrap=system_data.get("seed_on_bootstrap", False),
            log_level=str(system_data.get("log_level", "INFO")).upper(),
            log_dir=system_data.get("log_dir", "logs"),
        )

    def get_config(self) -> Configuration:
        """
        Get current configuration, loading if necessary.

        Returns:
            Current configuration object.
        """
        if self._config is None:
            return self.load_config()
        return self._config

    def reload_if_changed(self) -> bool:
        """
        Reload configuration if file has been modified.

        Returns:
            True if configuration was reloaded, False otherwise.
        """
        if not os.path.exists(self.config_path):
            return False

        current_modified = os.path.getmtime(self.config_path)

        if self._last_modified is None or current_modified > self._last_modified:
            try:
                self.load_config()
                return True
            except ConfigError:
                # Keep the current configuration
                return False

        return False
