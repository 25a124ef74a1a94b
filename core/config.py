"""
Configuration Management - YAML-based configuration with environment overrides
=============================================================================

This module handles all configuration aspects including:
- Loading from YAML files
- Environment variable overrides
- Default values
- Configuration validation
- The server/account feature flag for variables
"""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional
from dataclasses import dataclass, field, asdict

from .exceptions import ConfigError


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class VariablesConfig:
    """
    Variables feature configuration.

    ``enabled`` is the server-wide switch. ``accounts`` maps an account
    name to a per-account override; accounts not listed inherit the
    server value. When the feature is off, ``set`` commands are no-ops
    and ``${...}`` references are passed through literally.
    """
    enabled: bool = True
    accounts: Dict[str, bool] = field(default_factory=dict)

    def enabled_for(self, account: Optional[str] = None) -> bool:
        """
        Resolve the feature flag for an account.

        Args:
            account: Account name (case-insensitive), or None for the server value

        Returns:
            True if variables are evaluated for this account
        """
        if account:
            for name, value in self.accounts.items():
                if name.lower() == account.lower():
                    return bool(value)
        return bool(self.enabled)

    def validate(self) -> None:
        """Validate variables configuration."""
        if not isinstance(self.accounts, dict):
            raise ConfigError(
                f"variables.accounts must be a mapping, got {type(self.accounts).__name__}"
            )
        for name, value in self.accounts.items():
            if not isinstance(value, bool):
                raise ConfigError(
                    f"variables.accounts.{name} must be true or false, got {value!r}"
                )


@dataclass
class FilterConfig:
    """
    Filter evaluation configuration.

    Controls which script is evaluated by default and where a message
    lands when the script keeps it.
    """
    script_path: str = ""
    default_folder: str = "INBOX"

    def validate(self) -> None:
        """Validate filter configuration."""
        if not self.default_folder:
            raise ConfigError("default_folder cannot be empty")


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    json_format: bool = False
    console_output: bool = True

    def validate(self) -> None:
        """Validate logging configuration."""
        if self.level.upper() not in LOG_LEVELS:
            raise ConfigError(f"Invalid log level: {self.level}")


@dataclass
class Config:
    """
    Main configuration container.

    Aggregates all configuration sections into a single object
    and provides methods for loading, saving, and validating.
    """
    app_name: str = "Sieve Variables Engine"
    version: str = "1.0.0"
    debug: bool = False

    variables: VariablesConfig = field(default_factory=VariablesConfig)
    filter: FilterConfig = field(default_factory=FilterConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Paths (set at runtime)
    config_dir: str = ""
    log_dir: str = ""

    def validate(self) -> None:
        """
        Validate all configuration sections.

        Raises:
            ConfigError: If any configuration section is invalid
        """
        self.variables.validate()
        self.filter.validate()
        self.logging.validate()

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "app_name": self.app_name,
            "version": self.version,
            "debug": self.debug,
            "variables": asdict(self.variables),
            "filter": asdict(self.filter),
            "logging": asdict(self.logging),
        }


def get_default_config_dir() -> Path:
    """
    Get the default configuration directory path.

    Returns:
        Path to the configuration directory
    """
    if "SIEVE_VARS_CONFIG_DIR" in os.environ:
        return Path(os.environ["SIEVE_VARS_CONFIG_DIR"])

    if "XDG_CONFIG_HOME" in os.environ:
        return Path(os.environ["XDG_CONFIG_HOME"]) / "sieve-vars"

    return Path.home() / ".config" / "sieve-vars"


def load_config(config_path: Optional[str] = None, load_env: bool = True) -> Config:
    """
    Load configuration from YAML file with environment variable overrides.

    This function loads configuration in the following order:
    1. Default values from dataclass
    2. Values from YAML file
    3. Environment variable overrides

    Args:
        config_path: Path to configuration file (optional)
        load_env: Whether to load environment variable overrides

    Returns:
        Config object with loaded values

    Raises:
        ConfigError: If configuration is invalid or cannot be loaded
    """
    config = Config()
    config.config_dir = str(get_default_config_dir())
    config.log_dir = str(Path(config.config_dir) / "logs")

    if config_path:
        yaml_path = Path(config_path)
        if not yaml_path.exists():
            raise ConfigError("Config file not found", {"path": str(yaml_path)})
    else:
        yaml_path = Path(config.config_dir) / "config.yaml"

    if yaml_path.exists():
        try:
            with open(yaml_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse config file: {e}", {"path": str(yaml_path)})
        except IOError as e:
            raise ConfigError(f"Failed to read config file: {e}", {"path": str(yaml_path)})

        if not isinstance(yaml_config, dict):
            raise ConfigError("Config file must contain a mapping", {"path": str(yaml_path)})
        _apply_yaml_config(config, yaml_config)

    if load_env:
        _apply_env_overrides(config)

    config.validate()

    return config


def _apply_yaml_config(config: Config, yaml_config: Dict[str, Any]) -> None:
    """
    Apply YAML configuration values to Config object.

    Unknown keys are ignored.

    Args:
        config: Config object to update
        yaml_config: Dictionary of configuration values from YAML
    """
    for key in ("app_name", "version", "debug", "log_dir"):
        if key in yaml_config:
            setattr(config, key, yaml_config[key])

    for section in ("variables", "filter", "logging"):
        section_cfg = yaml_config.get(section)
        if not section_cfg:
            continue
        if not isinstance(section_cfg, dict):
            raise ConfigError(f"Config section '{section}' must be a mapping")
        section_obj = getattr(config, section)
        for key, value in section_cfg.items():
            if hasattr(section_obj, key):
                setattr(section_obj, key, value)


def _apply_env_overrides(config: Config) -> None:
    """
    Apply environment variable overrides to Config object.

    Environment variables follow the pattern: SIEVE_VARS_SECTION_KEY
    For example: SIEVE_VARS_VARIABLES_ENABLED, SIEVE_VARS_LOGGING_LEVEL

    Args:
        config: Config object to update
    """
    env_mappings = {
        "SIEVE_VARS_VARIABLES_ENABLED": ("variables", "enabled", bool),
        "SIEVE_VARS_FILTER_SCRIPT_PATH": ("filter", "script_path"),
        "SIEVE_VARS_FILTER_DEFAULT_FOLDER": ("filter", "default_folder"),
        "SIEVE_VARS_LOGGING_LEVEL": ("logging", "level"),
        "SIEVE_VARS_LOGGING_JSON_FORMAT": ("logging", "json_format", bool),
    }

    for env_var, mapping in env_mappings.items():
        value = os.environ.get(env_var)
        if value is not None:
            section = mapping[0]
            key = mapping[1]
            converter = mapping[2] if len(mapping) > 2 else str

            section_obj = getattr(config, section)

            if converter == bool:
                converted = value.lower() in ("true", "1", "yes", "on")
            else:
                converted = converter(value)

            setattr(section_obj, key, converted)


def save_config(config: Config, config_path: Optional[str] = None) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: Config object to save
        config_path: Path to save configuration (optional)

    Raises:
        ConfigError: If configuration cannot be saved
    """
    if config_path:
        yaml_path = Path(config_path)
    else:
        yaml_path = Path(config.config_dir) / "config.yaml"

    yaml_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(yaml_path, "w", encoding="utf-8") as f:
            yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
    except IOError as e:
        raise ConfigError(f"Failed to save config file: {e}", {"path": str(yaml_path)})
