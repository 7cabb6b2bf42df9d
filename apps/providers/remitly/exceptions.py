"""Remitly-specific exceptions."""
from typing import Optional, Dict, Any
from apps.providers.base.exceptions import ProviderError


class RemitlyError(ProviderError):
    """Base exception for Remitly integration errors."""
    def __init__(self, message: str, error_code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            provider="Remitly",
            error_code=error_code,
            details=details
        )


class RemitlyAuthenticationError(RemitlyError):
    """Raised when the Remitly API token is rejected."""
    pass


class RemitlyConnectionError(RemitlyError):
    """Raised when the Remitly API cannot be reached."""
    pass


class RemitlyValidationError(RemitlyError):
    """Raised when Remitly rejects the request or the corridor is unknown."""
    pass


class RemitlyRateLimitError(RemitlyError):
    """Raised when Remitly throttles our requests."""
    pass


class RemitlyResponseError(RemitlyError):
    """Raised when a Remitly response cannot be decoded."""
    pass
