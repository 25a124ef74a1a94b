"""
Exception Definitions - Custom exceptions for the Sieve Variables Engine
========================================================================

This module defines all custom exceptions used throughout the engine,
providing clear error handling and meaningful error messages.
"""


class SieveVarsError(Exception):
    """
    Base exception for all engine errors.

    All custom exceptions in this package inherit from this base class,
    allowing for easy catching of all engine-specific errors.

    Attributes:
        message (str): Human-readable error description
        details (dict): Additional error details for debugging
    """

    def __init__(self, message: str, details: dict = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            details: Optional dictionary with additional error context
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        """Return formatted error message with details if present."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigError(SieveVarsError):
    """
    Configuration-related errors.

    Raised when there are issues with:
    - Unreadable configuration files
    - Invalid configuration values
    - Configuration parsing errors
    """
    pass


class SieveSyntaxError(SieveVarsError):
    """
    Script syntax errors.

    Raised while loading a script when a ``set`` command is malformed:
    - Fewer than two plain arguments (name and value)
    - Unknown variable modifier

    The message always carries the offending argument list or token
    so scripts can be debugged.
    """
    pass


class ScriptError(SieveVarsError):
    """
    Script structure errors.

    Raised while building a script from its dict/YAML form:
    - Unknown command or test
    - Unknown match type or comparator
    - Missing required fields
    """
    pass


class MessageError(SieveVarsError):
    """
    Message input errors.

    Raised when a message file cannot be read or parsed.
    """
    pass
