"""
Base class for remittance providers.
"""
import abc
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, FrozenSet, Optional

from apps.providers.base.context import CallContext
from apps.providers.base.exceptions import ProviderError
from apps.providers.models import (
    Corridor,
    Currency,
    ExchangeRate,
    RemittanceQuote,
    TransactionRequest,
    TransactionResponse,
)


class RemittanceProvider(abc.ABC):
    """
    Abstract base class for standardized remittance provider interface.

    Every backend the hub talks to implements this contract. Fee models,
    rounding and authentication differ per backend and stay behind it.
    Instances may be called from several worker threads at once, so any
    internal mutable state must be safe for concurrent use.
    """

    def __init__(self, name: str, base_url: str, timeout: float = 30):
        self.name = name
        self.base_url = base_url
        self.timeout = timeout

    @abc.abstractmethod
    def get_supported_currencies(self) -> FrozenSet[Currency]:
        """Currencies this provider can send or pay out."""
        raise NotImplementedError

    @abc.abstractmethod
    def get_supported_countries(self) -> FrozenSet[str]:
        """ISO-3166-1 alpha-2 countries this provider operates in."""
        raise NotImplementedError

    @abc.abstractmethod
    def get_quote(
        self, request: TransactionRequest, context: Optional[CallContext] = None
    ) -> RemittanceQuote:
        """Price a transfer. Must set an expiry and must not modify the request."""
        raise NotImplementedError

    @abc.abstractmethod
    def send_money(
        self, request: TransactionRequest, context: Optional[CallContext] = None
    ) -> TransactionResponse:
        """
        Initiate a transfer.

        Not idempotent: calling twice may create two transfers. The request's
        reference is forwarded to the backend untouched.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def get_transaction_status(
        self, transaction_id: str, context: Optional[CallContext] = None
    ) -> TransactionResponse:
        raise NotImplementedError

    @abc.abstractmethod
    def get_exchange_rates(
        self,
        from_currency: Currency,
        to_currency: Currency,
        context: Optional[CallContext] = None,
    ) -> ExchangeRate:
        raise NotImplementedError

    def supports_corridor(self, corridor: Corridor) -> bool:
        """
        Permissive eligibility check.

        A provider qualifies when it supports at least one of the two
        currencies and at least one of the two countries.
        """
        currencies = self.get_supported_currencies()
        countries = self.get_supported_countries()
        supports_currency = (
            corridor.source_currency in currencies or corridor.dest_currency in currencies
        )
        supports_country = (
            corridor.source_country in countries or corridor.dest_country in countries
        )
        return supports_currency and supports_country

    def malformed_response(self, message: str, details: Optional[Dict[str, Any]] = None) -> ProviderError:
        """Build the error raised when an upstream payload cannot be decoded."""
        return ProviderError(message, provider=self.name, error_code="INVALID_RESPONSE", details=details)

    def require_decimal(self, data: Dict[str, Any], key: str) -> Decimal:
        """Read a numeric field from an upstream payload or fail loudly."""
        if not isinstance(data, dict) or data.get(key) is None:
            raise self.malformed_response(f"Missing '{key}' in response", details={"response": data})
        try:
            value = Decimal(str(data[key]))
        except (InvalidOperation, ValueError):
            raise self.malformed_response(
                f"Field '{key}' is not numeric: {data[key]!r}", details={"response": data}
            )
        if not value.is_finite():
            raise self.malformed_response(
                f"Field '{key}' is not a finite number: {data[key]!r}", details={"response": data}
            )
        return value

    def optional_decimal(self, data: Dict[str, Any], key: str) -> Optional[Decimal]:
        if not isinstance(data, dict) or data.get(key) is None:
            return None
        return self.require_decimal(data, key)

    def require_field(self, data: Dict[str, Any], key: str) -> Any:
        if not isinstance(data, dict) or data.get(key) in (None, ""):
            raise self.malformed_response(f"Missing '{key}' in response", details={"response": data})
        return data[key]

    def close(self) -> None:
        """Release any network resources held by the provider."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
