"""
Core Module - Foundation components for the Sieve Variables Engine
==================================================================

This module provides the foundational components including:
- Configuration management
- Logging setup
- Exception handling
"""

from .config import Config, load_config, save_config
from .exceptions import (
    SieveVarsError,
    ConfigError,
    SieveSyntaxError,
    ScriptError,
    MessageError,
)
from .logging import setup_logging, get_logger

__all__ = [
    "Config",
    "load_config",
    "save_config",
    "SieveVarsError",
    "ConfigError",
    "SieveSyntaxError",
    "ScriptError",
    "MessageError",
    "setup_logging",
    "get_logger",
]
