"""
Configuration management system for Live Alert.
"""

import json
import os
import re
from typing import Any, Dict, List, Optional

import yaml

from ..models.config import (
    Configuration,
    Destination,
    PlatformLinks,
    ServerConfig,
    TelegramConfig,
    YouTubeConfig,
)

# ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(
    r"^\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>.*))?\}$"
)

DEFAULT_HUB_URL = "https://pubsubhubbub.appspot.com/publish"


class ConfigurationManager:
    """Manages loading and validation of system configuration."""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file. If None, standard
                locations are searched and the environment-only template is
                used when none exists.
        """
        self.config_path = config_path or self._find_config_file()

    def _find_config_file(self) -> Optional[str]:
        """Find the configuration file in standard locations."""
        possible_paths = [
            "config/config.yaml",
            "config/config.yml",
            "config/config.json",
            "config.yaml",
            "config.yml",
            "config.json",
        ]

        for path in possible_paths:
            if os.path.exists(path):
                return path

        return None

    def load_config(self) -> Configuration:
        """
        Load configuration from file, or from the environment if there is none.

        Returns:
            Configuration object with validated settings.

        Raises:
            ValueError: If configuration is invalid, a referenced environment
                variable is missing, or the file cannot be read.
            FileNotFoundError: If an explicit configuration file doesn't exist.
        """
        if self.config_path is not None and not os.path.exists(self.config_path):
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        try:
            if self.config_path is None:
                raw_config = self.get_config_template()
            else:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    if self.config_path.endswith(".json"):
                        raw_config = json.load(f)
                    else:
                        raw_config = yaml.safe_load(f)

            if not isinstance(raw_config, dict):
                raise ValueError("Configuration must be a mapping")

            raw_config = self._expand_env_vars(raw_config)
            config = self._parse_config(raw_config)
            config.validate()
            return config

        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {e}")
        except ValueError:
            raise
        except Exception as e:
            raise ValueError(f"Error loading configuration: {e}")

    def _expand_env_vars(self, obj: Any) -> Any:
        """Recursively expand environment variables in configuration."""
        if isinstance(obj, dict):
            return {key: self._expand_env_vars(value) for key, value in obj.items()}
        elif isinstance(obj, list):
            return [self._expand_env_vars(item) for item in obj]
        elif isinstance(obj, str):
            match = ENV_VAR_PATTERN.match(obj)
            if not match:
                return obj

            var_name = match.group("name")
            env_value = os.getenv(var_name)
            if env_value is None or env_value == "":
                default = match.group("default")
                if default is not None:
                    return default
                raise ValueError(f"Environment variable '{var_name}' not found")
            return env_value
        else:
            return obj

    def _parse_config(self, raw_config: Dict[str, Any]) -> Configuration:
        """Parse raw configuration dictionary into Configuration object."""
        youtube_data = raw_config.get("youtube") or {}
        telegram_data = raw_config.get("telegram") or {}
        server_data = raw_config.get("server") or {}
        logging_data = raw_config.get("logging") or {}
        redis_data = raw_config.get("redis") or {}
        notification_data = raw_config.get("notification") or {}

        youtube = YouTubeConfig(
            channel_id=str(youtube_data.get("channel_id", "")),
            api_key=str(youtube_data.get("api_key", "")),
        )

        telegram = TelegramConfig(
            bot_token=str(telegram_data.get("bot_token", "")),
            destinations=self._parse_destinations(telegram_data.get("destinations")),
            authorized_users=self._parse_list(telegram_data.get("authorized_users")),
            max_retries=int(telegram_data.get("max_retries", 3)),
            retry_delay=float(telegram_data.get("retry_delay", 2.0)),
        )

        server = ServerConfig(
            port=self._parse_port(server_data.get("port", 3000)),
            webhook_secret=str(server_data.get("webhook_secret", "")),
            base_url=server_data.get("base_url") or None,
            hub_url=server_data.get("hub_url") or DEFAULT_HUB_URL,
        )

        return Configuration(
            youtube=youtube,
            telegram=telegram,
            platforms=self._parse_platforms(raw_config.get("platforms")),
            server=server,
            redis_url=str(redis_data.get("url", "")),
            log_level=str(logging_data.get("level", "INFO")),
            log_dir=logging_data.get("directory", "logs"),
            timezone=str(notification_data.get("timezone", "Europe/Istanbul")),
        )

    @staticmethod
    def _parse_port(value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValueError(f"Server port must be an integer: {value}")

    @staticmethod
    def _parse_list(value: Any) -> List[str]:
        """Accept a YAML list or a comma-separated string."""
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return [str(item).strip() for item in value if str(item).strip()]

    def _parse_destinations(self, value: Any) -> List[Destination]:
        """Accept ``chat[:thread]`` strings or ``{chat_id, thread_id}`` mappings."""
        if value is None:
            return []

        if isinstance(value, str):
            return [Destination.parse(part) for part in self._parse_list(value)]

        destinations = []
        for item in value:
            if isinstance(item, dict):
                thread_id = item.get("thread_id")
                destinations.append(
                    Destination(
                        chat_id=str(item.get("chat_id", "")).strip(),
                        thread_id=int(thread_id) if thread_id is not None else None,
                    )
                )
            else:
                destinations.append(Destination.parse(str(item)))
        return destinations

    @staticmethod
    def _parse_platforms(value: Any) -> PlatformLinks:
        """Accept a mapping or a JSON object string with one URL per platform."""
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid PLATFORM_LINKS format: {e}")

        if not isinstance(value, dict):
            raise ValueError("Platform links must be a mapping of platform to URL")

        missing = [name for name in PlatformLinks.PLATFORMS if not value.get(name)]
        if missing:
            raise ValueError(f"Missing platform links: {', '.join(missing)}")

        return PlatformLinks(**{name: value[name] for name in PlatformLinks.PLATFORMS})

    def get_config_template(self) -> Dict[str, Any]:
        """
        Get the configuration used when no file is present.

        Every value is read from the environment.
        """
        return {
            "youtube": {
                "channel_id": "${YOUTUBE_CHANNEL_ID}",
                "api_key": "${YOUTUBE_API_KEY}",
            },
            "telegram": {
                "bot_token": "${TELEGRAM_BOT_TOKEN}",
                "destinations": "${TELEGRAM_CHAT_IDS}",
                "authorized_users": "${TELEGRAM_AUTHORIZED_USERS:-}",
            },
            "platforms": "${PLATFORM_LINKS}",
            "server": {
                "port": "${PORT}",
                "webhook_secret": "${WEBHOOK_SECRET}",
                "base_url": "${BASE_URL:-}",
                "hub_url": DEFAULT_HUB_URL,
            },
            "logging": {
                "level": "${LOG_LEVEL}",
                "directory": "logs",
            },
            "redis": {
                "url": "${REDIS_URL}",
            },
            "notification": {
                "timezone": "Europe/Istanbul",
            },
        }
