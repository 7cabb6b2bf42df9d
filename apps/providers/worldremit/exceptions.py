"""
WorldRemit Exception Classes

This module defines all exception classes specific to the WorldRemit integration.
"""
from typing import Any, Dict, Optional

from apps.providers.base.exceptions import ProviderError


class WorldRemitError(ProviderError):
    """Base exception class for WorldRemit-related errors."""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, provider="WorldRemit", error_code=error_code, details=details)


class WorldRemitAuthenticationError(WorldRemitError):
    """Raised when authentication with WorldRemit API fails."""
    pass


class WorldRemitConnectionError(WorldRemitError):
    """Raised when connection to WorldRemit API fails."""
    pass


class WorldRemitValidationError(WorldRemitError):
    """Raised when request validation fails."""
    pass


class WorldRemitRateLimitError(WorldRemitError):
    """Raised when API rate limit is exceeded."""
    pass


class WorldRemitResponseError(WorldRemitError):
    """Raised when a WorldRemit payload is missing required fields."""
    pass
