"""
Configuration models for the system.
"""

from dataclasses import dataclass, field
from urllib.parse import urlparse

from ..utils.error_handling import ConfigError

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _check_http_url(value: str, label: str) -> None:
    parsed_url = urlparse(value)
    if parsed_url.scheme not in ["http", "https"] or not parsed_url.netloc:
        raise ConfigError(f"{label} must be an HTTP or HTTPS URL: {value}")


@dataclass
class DiscordConfig:
    """Configuration for the Discord transport."""

    bot_token: str
    api_base_url: str = "https://discord.com/api/v10"
    max_retries: int = 3
    retry_delay: float = 1.0

    def validate(self) -> bool:
        """Validate Discord configuration."""
        if not self.bot_token or not self.bot_token.strip():
            raise ConfigError("Discord bot token cannot be empty")

        _check_http_url(self.api_base_url, "Discord API base URL")

        if not isinstance(self.max_retries, int) or self.max_retries < 0:
            raise ConfigError("Discord max_retries must be a non-negative integer")

        if not isinstance(self.retry_delay, (int, float)) or self.retry_delay < 0:
            raise ConfigError("Discord retry_delay must be a non-negative number")

        return True


@dataclass
class BoothConfig:
    """Configuration for the BOOTH catalog client."""

    catalog_url: str = "https://booth.pm/ja/items?sort=new"
    item_url_template: str = "https://booth.pm/ja/items/{item_id}.json"
    timeout: int = 30
    max_retries: int = 3
    user_agent: str = "booth-notifier/0.1 (+new item monitor)"

    def validate(self) -> bool:
        """Validate catalog client configuration."""
        _check_http_url(self.catalog_url, "Catalog URL")

        if "{item_id}" not in self.item_url_template:
            raise ConfigError("Item URL template must contain '{item_id}'")
        _check_http_url(
            self.item_url_template.replace("{item_id}", "0"), "Item URL template"
        )

        if not isinstance(self.timeout, int) or self.timeout <= 0:
            raise ConfigError("Catalog timeout must be a positive integer")

        if not isinstance(self.max_retries, int) or self.max_retries < 0:
            raise ConfigError("Catalog max_retries must be a non-negative integer")

        return True


@dataclass
class StorageConfig:
    """Configuration for the SQLite repository."""

    database_path: str = "data/booth_notifier.db"

    def validate(self) -> bool:
        if not self.database_path or not self.database_path.strip():
            raise ConfigError("Database path cannot be empty")
        return True


@dataclass
class Configuration:
    """System configuration."""

    discord: DiscordConfig
    booth: BoothConfig = field(default_factory=BoothConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    polling_interval: int = 300
    fetch_interval: float = 1.0
    seed_on_bootstrap: bool = False
    log_level: str = "INFO"
    log_dir: str = "logs"

    def validate(self) -> bool:
        """Validate system configuration."""
        if not isinstance(self.polling_interval, int) or isinstance(
            self.polling_interval, bool
        ):
            raise ConfigError("Polling interval must be an integer number of seconds")

        if self.polling_interval < 30:
            raise ConfigError("Polling interval must be at least 30 seconds")

        if (
            not isinstance(self.fetch_interval, (int, float))
            or isinstance(self.fetch_interval, bool)
            or self.fetch_interval < 0
        ):
            raise ConfigError("Fetch interval must be a non-negative number")

        if self.fetch_interval >= self.polling_interval:
            raise ConfigError("Fetch interval must be shorter than the polling interval")

        if not isinstance(self.seed_on_bootstrap, bool):
            raise ConfigError("seed_on_bootstrap must be a boolean")

        if str(self.log_level).upper() not in VALID_LOG_LEVELS:
            raise ConfigError(f"Log level must be one of: {VALID_LOG_LEVELS}")

        self.discord.validate()
        self.booth.validate()
        self.storage.validate()

        return True
