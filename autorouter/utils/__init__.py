"""Utility functions for autorouter."""

from autorouter.utils.helpers import clamp, dedupe, remove_nullish, to_boolean, to_number
from autorouter.utils.logging import configure_logging

__all__ = [
    "clamp",
    "configure_logging",
    "dedupe",
    "remove_nullish",
    "to_boolean",
    "to_number",
]
