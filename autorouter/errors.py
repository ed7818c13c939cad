"""Exceptions raised by the auto-router."""


class AutoRouterError(Exception):
    """Base exception for all auto-router errors."""


class ConfigValidationError(AutoRouterError, ValueError):
    """Raised when a keyword configuration fails validation.

    The message names the offending field and where it was found, e.g.
    ``weight for intent:coding:pattern[2] must be between 0 and 1``.
    """


class ConversationParseError(AutoRouterError):
    """Raised when a request body cannot be parsed into a conversation."""
