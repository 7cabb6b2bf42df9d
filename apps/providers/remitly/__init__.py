"""
Remitly Provider Package

This package implements integration with Remitly, a digital financial services provider
that specializes in international money transfers.
"""

from apps.providers.remitly.exceptions import (
    RemitlyAuthenticationError,
    RemitlyConnectionError,
    RemitlyError,
    RemitlyRateLimitError,
    RemitlyResponseError,
    RemitlyValidationError,
)
from apps.providers.remitly.integration import RemitlyProvider

__all__ = [
    "RemitlyProvider",
    "RemitlyError",
    "RemitlyAuthenticationError",
    "RemitlyConnectionError",
    "RemitlyValidationError",
    "RemitlyRateLimitError",
    "RemitlyResponseError",
]
