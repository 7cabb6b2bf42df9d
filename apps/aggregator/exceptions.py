"""Exceptions for the aggregator module"""

from typing import Any, Dict, Optional


class AggregatorError(Exception):
    """Base exception for all aggregator-related errors."""

    def __init__(
        self,
        message: str = "An error occurred in the aggregator",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ProviderNotFoundError(AggregatorError):
    """No registered provider has the requested name."""

    def __init__(
        self,
        message: str = "Provider not found",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)


class NoQuotesAvailableError(AggregatorError):
    """Every eligible provider failed, or none was eligible."""

    def __init__(
        self,
        message: str = "No quotes available",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)


class AggregationCancelledError(AggregatorError):
    """The caller cancelled a quote collection before it finished."""

    def __init__(
        self,
        message: str = "Quote collection was cancelled",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
