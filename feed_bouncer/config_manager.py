"""
Configuration manager for Feed Bouncer.
Handles loading and validation of configuration settings.
"""
import copy
import json
import logging
import os
from json.decoder import JSONDecodeError
from typing import Any, Dict, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_PREFIX = "FEED_BOUNCER_"

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_SETTINGS: Dict[str, Any] = {
    "networking": {
        "timeout_seconds": 30,
        "retry_attempts": 5,
        "retry_delay_seconds": 0.5,
        "backoff_factor": 2.0,
        "max_workers": 8,
        "user_agent": "feed-bouncer/1.0"
    },
    "storage": {
        "base_dir": "./storage"
    },
    "logging": {
        "level": "INFO",
        "log_dir": "./logs"
    },
    "schedule": {
        "enabled": True,
        "interval_minutes": 60,
        "run_on_start": True
    }
}

# Environment variable -> (dot path, type)
ENV_OVERRIDES = {
    "STORAGE_PATH": ("storage.base_dir", str),
    "LOG_LEVEL": ("logging.level", str),
    "LOG_DIR": ("logging.log_dir", str),
    "TIMEOUT_SECONDS": ("networking.timeout_seconds", float),
    "RETRY_ATTEMPTS": ("networking.retry_attempts", int),
    "RETRY_DELAY_SECONDS": ("networking.retry_delay_seconds", float),
    "MAX_WORKERS": ("networking.max_workers", int),
    "USER_AGENT": ("networking.user_agent", str),
    "REFRESH_INTERVAL_MINUTES": ("schedule.interval_minutes", float),
}


def merge_dicts(source: Dict[str, Any], default: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merges default dict into source dict."""
    for key, value in default.items():
        if key not in source:
            source[key] = copy.deepcopy(value)
        elif isinstance(value, dict) and isinstance(source[key], dict):
            merge_dicts(source[key], value)
        # No else: existing values in source take precedence
    return source


class ConfigManager:
    """
    Manages configuration loading from an optional settings.json and the environment.
    """

    def __init__(self, settings_path: Optional[str] = None, load_env: bool = True):
        """
        Initialize configuration manager.

        Args:
            settings_path: Path to a JSON settings file; defaults are used when omitted
            load_env: Read a .env file and apply FEED_BOUNCER_* overrides
        """
        self.settings_path = settings_path
        self.settings: Dict[str, Any] = {}

        logger.debug(f"ConfigManager initialized with settings: {settings_path}")

        if load_env:
            load_dotenv()

        self.settings = self._load_json_file(settings_path) if settings_path else {}
        self._validate_sections()
        merge_dicts(self.settings, DEFAULT_SETTINGS)
        if load_env:
            self._apply_env_overrides()
        self._validate_specific_settings()

        logger.info("Settings configuration validated")

    def _load_json_file(self, file_path: str) -> Dict[str, Any]:
        """
        Load a JSON configuration file.

        Args:
            file_path: Path to JSON file

        Returns:
            Configuration dictionary

        Raises:
            FileNotFoundError: If the file does not exist.
            json.JSONDecodeError: If the file contains invalid JSON.
            TypeError: If the top level is not an object.
        """
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                config = json.load(f)
        except FileNotFoundError:
            logger.critical(f"Configuration file not found: {file_path}")
            raise
        except JSONDecodeError as e:
            logger.error(f"Invalid JSON in settings file '{file_path}': {e}")
            raise

        if not isinstance(config, dict):
            raise TypeError(f"Settings file '{file_path}' must contain a JSON object")

        logger.info(f"Loaded settings from {file_path}")
        return config

    def _validate_sections(self):
        for section in DEFAULT_SETTINGS:
            if section in self.settings and not isinstance(self.settings[section], dict):
                raise TypeError(f"Invalid type for configuration section '{section}'. Expected dict")

    def _apply_env_overrides(self):
        for suffix, (key_path, value_type) in ENV_OVERRIDES.items():
            raw = os.environ.get(ENV_PREFIX + suffix)
            if raw is None or raw == "":
                continue
            try:
                value = value_type(raw)
            except ValueError as e:
                raise ValueError(f"Invalid value for {ENV_PREFIX + suffix}: {raw!r}") from e

            section, key = key_path.split('.')
            self.settings[section][key] = value
            logger.debug(f"Overriding {key_path} from environment")

        enabled = os.environ.get(ENV_PREFIX + "SCHEDULE_ENABLED")
        if enabled:
            self.settings["schedule"]["enabled"] = enabled.strip().lower() in ("1", "true", "yes", "on")

    def _validate_specific_settings(self):
        """Validate specific key values within settings."""
        networking = self.settings["networking"]
        if not isinstance(networking.get("timeout_seconds"), (int, float)) or networking["timeout_seconds"] <= 0:
            raise TypeError("Invalid 'networking.timeout_seconds'. Expected a positive number.")
        if not isinstance(networking.get("retry_attempts"), int) or networking["retry_attempts"] < 1:
            raise TypeError("Invalid 'networking.retry_attempts'. Expected an int of at least 1.")
        if not isinstance(networking.get("retry_delay_seconds"), (int, float)) or networking["retry_delay_seconds"] < 0:
            raise TypeError("Invalid 'networking.retry_delay_seconds'. Expected a non-negative number.")
        if not isinstance(networking.get("backoff_factor"), (int, float)):
            raise TypeError("Invalid type for 'networking.backoff_factor'. Expected int or float.")
        if not isinstance(networking.get("max_workers"), int) or networking["max_workers"] < 1:
            raise TypeError("Invalid 'networking.max_workers'. Expected an int of at least 1.")
        if not isinstance(networking.get("user_agent"), str):
            raise TypeError("Invalid type for 'networking.user_agent'. Expected a string.")

        storage = self.settings["storage"]
        if not storage.get("base_dir") or not isinstance(storage.get("base_dir"), str):
            raise TypeError("Missing or invalid type for 'storage.base_dir'. Expected non-empty string.")

        logging_settings = self.settings["logging"]
        if not isinstance(logging_settings.get("level"), str):
            raise TypeError("Invalid type for 'logging.level'. Expected a string.")
        if logging_settings["level"].upper() not in VALID_LOG_LEVELS:
            raise ValueError(f"Unknown log level: {logging_settings['level']}")

        schedule = self.settings["schedule"]
        if not isinstance(schedule.get("enabled"), bool):
            raise TypeError("Invalid type for 'schedule.enabled'. Expected boolean.")
        if not isinstance(schedule.get("interval_minutes"), (int, float)) or schedule["interval_minutes"] <= 0:
            raise TypeError("Invalid 'schedule.interval_minutes'. Expected a positive number.")
        if not isinstance(schedule.get("run_on_start"), bool):
            raise TypeError("Invalid type for 'schedule.run_on_start'. Expected boolean.")

    def get_config_value(self, key_path: str, default=None):
        """
        Get configuration value using dot notation.

        Args:
            key_path: Dot-separated path to configuration value (e.g., "storage.base_dir")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.settings

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value
