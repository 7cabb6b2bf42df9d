"""Provider-specific exceptions module."""
from typing import Optional, Dict, Any


class ProviderError(Exception):
    """Base class for all provider-related errors."""

    def __init__(
        self,
        message: str,
        provider: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.provider = provider
        self.error_code = error_code
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.provider}] {self.message} ({self.error_code})"
        return f"[{self.provider}] {self.message}"


class CallAbortedError(Exception):
    """A provider call was stopped before it could complete."""


class CallCancelledError(CallAbortedError):
    """The caller cancelled the operation."""


class DeadlineExceededError(CallAbortedError):
    """The operation ran past its deadline."""
