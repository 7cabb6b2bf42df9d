"""
WorldRemit Money Transfer Provider package.

This package provides integration with the WorldRemit money transfer service.
"""

from apps.providers.worldremit.integration import WorldRemitProvider, sign_request
from apps.providers.worldremit.exceptions import (
    WorldRemitError,
    WorldRemitAuthenticationError,
    WorldRemitConnectionError,
    WorldRemitValidationError,
    WorldRemitRateLimitError,
    WorldRemitResponseError,
)

__all__ = [
    'WorldRemitProvider',
    'sign_request',
    'WorldRemitError',
    'WorldRemitAuthenticationError',
    'WorldRemitConnectionError',
    'WorldRemitValidationError',
    'WorldRemitRateLimitError',
    'WorldRemitResponseError',
]
