"""
FanPanel - Configuration Module

Handles application settings and configuration.
"""

import json
import logging
from pathlib import Path
from dataclasses import dataclass, asdict, fields
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "fanpanel"
CONFIG_FILE = CONFIG_DIR / "config.json"

# Refresh intervals offered in the settings page
POLL_INTERVAL_CHOICES_MS = (1000, 2000, 5000, 10000)


@dataclass
class AppConfig:
    """Application configuration."""

    # UI Settings
    dark_mode: bool = True
    window_width: int = 960
    window_height: int = 720

    # Refresh cadence for policies and readings
    poll_interval_ms: int = 2000

    # Curve editor temperature axis
    temp_min_celsius: int = 20
    temp_max_celsius: int = 100

    # Backend helper
    helper_command: str = "fanpanel-helper"
    use_pkexec: bool = True
    backend_timeout_seconds: float = 10.0

    # Temperature alerts
    temp_alert_enabled: bool = False
    temp_alert_threshold_celsius: int = 85
    temp_alert_cooldown_seconds: int = 60

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        """Create config from dictionary, ignoring unknown keys."""
        defaults = cls()
        values = {}
        for f in fields(cls):
            value = data.get(f.name, getattr(defaults, f.name))
            default = getattr(defaults, f.name)
            # bool is an int subclass, so it only fits bool fields
            if isinstance(value, bool) != isinstance(default, bool) or (
                not isinstance(value, type(default))
                and not (isinstance(default, float) and isinstance(value, int))
            ):
                logger.warning(f"Ignoring invalid config value {f.name}={value!r}")
                value = default
            values[f.name] = value

        config = cls(**values)
        if config.poll_interval_ms <= 0:
            logger.warning("poll_interval_ms must be positive, using default")
            config.poll_interval_ms = defaults.poll_interval_ms
        if config.temp_min_celsius >= config.temp_max_celsius:
            logger.warning("Temperature axis is empty, using defaults")
            config.temp_min_celsius = defaults.temp_min_celsius
            config.temp_max_celsius = defaults.temp_max_celsius
        return config


def poll_interval_choice(interval_ms: int) -> int:
    """Index of the first offered interval at least as long as interval_ms."""
    for i, choice in enumerate(POLL_INTERVAL_CHOICES_MS):
        if interval_ms <= choice:
            return i
    return len(POLL_INTERVAL_CHOICES_MS) - 1


class ConfigManager:
    """Manages application configuration."""

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = config_file or CONFIG_FILE
        self._config: Optional[AppConfig] = None

    @property
    def config(self) -> AppConfig:
        """Get current configuration, loading from file if needed."""
        if self._config is None:
            self._config = self.load()
        return self._config

    def load(self) -> AppConfig:
        """Load configuration from file."""
        if not self.config_file.exists():
            logger.info("No config file found, using defaults")
            return AppConfig()

        try:
            with open(self.config_file, 'r') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("config root must be an object")
            return AppConfig.from_dict(data)
        except (json.JSONDecodeError, ValueError, IOError) as e:
            logger.warning(f"Failed to load config: {e}, using defaults")
            return AppConfig()

    def save(self, config: Optional[AppConfig] = None) -> bool:
        """Save configuration to file."""
        if config is not None:
            self._config = config

        if self._config is None:
            return False

        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, 'w') as f:
                json.dump(self._config.to_dict(), f, indent=2)
            logger.info("Configuration saved")
            return True
        except IOError as e:
            logger.error(f"Failed to save config: {e}")
            return False

    def reset_to_defaults(self) -> AppConfig:
        """Reset configuration to defaults."""
        self._config = AppConfig()
        self.save()
        return self._config


# Global config manager instance
_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get the global config manager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def get_config() -> AppConfig:
    """Get the current application configuration."""
    return get_config_manager().config


def save_config(config: Optional[AppConfig] = None) -> bool:
    """Save the current application configuration."""
    return get_config_manager().save(config)
