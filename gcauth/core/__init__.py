"""Core configuration and logging for gcauth."""

from gcauth.core.logging import JsonFormatter, configure_logging

__all__ = [
    "JsonFormatter",
    "configure_logging",
]
