"""Wise Money Transfer API integration."""

from .exceptions import (
    WiseAuthenticationError,
    WiseConnectionError,
    WiseError,
    WiseRateLimitError,
    WiseResponseError,
    WiseValidationError,
)
from .integration import WiseProvider

__all__ = [
    "WiseProvider",
    "WiseError",
    "WiseAuthenticationError",
    "WiseConnectionError",
    "WiseValidationError",
    "WiseRateLimitError",
    "WiseResponseError",
]
