"""Provider capability contract and shared plumbing."""

from apps.providers.base.context import CallContext
from apps.providers.base.exceptions import (
    CallAbortedError,
    CallCancelledError,
    DeadlineExceededError,
    ProviderError,
)
from apps.providers.base.provider import RemittanceProvider

__all__ = [
    "CallContext",
    "CallAbortedError",
    "CallCancelledError",
    "DeadlineExceededError",
    "ProviderError",
    "RemittanceProvider",
]
