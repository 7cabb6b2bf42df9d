"""
Remitly Money Transfer Integration

This module implements the integration with Remitly, a service for international
money transfers.

PAYMENT METHODS:
---------------------------------
- BANK_ACCOUNT: Bank account transfer
- DEBIT_CARD: Debit card payment
- WALLET: Stored balance

Important API notes:
1. Corridors are addressed as "conduits" built from ISO-3 country codes,
   e.g. USA:USD-PHL:PHP
2. The calculator estimate carries the base rate, the total fee and a
   human-readable delivery speed
3. Fees vary with payment method and amount, so every quote is a fresh call
"""

import logging
from datetime import datetime, timedelta, UTC
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, FrozenSet, Optional

import requests

from apps.providers.base.context import CallContext, ensure_context
from apps.providers.base.exceptions import DeadlineExceededError
from apps.providers.base.http import (
    SessionPool,
    build_session,
    log_request_details,
    log_response_details,
)
from apps.providers.base.provider import RemittanceProvider
from apps.providers.models import (
    Currency,
    ExchangeRate,
    PaymentMethod,
    RemittanceQuote,
    TransactionRequest,
    TransactionResponse,
    TransactionStatus,
)
from apps.providers.utils.country_currency_standards import (
    get_home_country_for_currency,
    to_alpha3,
)
from apps.providers.remitly.exceptions import (
    RemitlyAuthenticationError,
    RemitlyConnectionError,
    RemitlyRateLimitError,
    RemitlyResponseError,
    RemitlyValidationError,
)

# Setup logging
logger = logging.getLogger(__name__)


class RemitlyProvider(RemittanceProvider):
    """
    Integration with the Remitly transfer API.

    Example usage:
        provider = RemitlyProvider(api_key="...")
        quote = provider.get_quote(request)
    """

    BASE_URL = "https://api.remitly.io"
    SANDBOX_URL = "https://api.sandbox.remitly.io"
    CALCULATOR_ENDPOINT = "/v3/calculator/estimate"
    TRANSFERS_ENDPOINT = "/v1/transfers"
    TRACKING_URL = "https://remitly.com/track/{transaction_id}"

    DEFAULT_DELIVERY_ESTIMATE = "Minutes to hours"
    QUOTE_VALIDITY = timedelta(minutes=30)
    RATE_VALIDITY = timedelta(minutes=30)
    RATE_PROBE_AMOUNT = Decimal("100")
    CENT = Decimal("0.01")

    SUPPORTED_CURRENCIES = frozenset({
        Currency.USD, Currency.EUR, Currency.PHP, Currency.INR, Currency.MXN,
    })
    SUPPORTED_COUNTRIES = frozenset({"US", "PH", "IN", "MX", "GB"})

    PAYMENT_METHODS = {
        PaymentMethod.BANK_TRANSFER: "BANK_ACCOUNT",
        PaymentMethod.CARD: "DEBIT_CARD",
        PaymentMethod.WALLET: "WALLET",
        PaymentMethod.CASH: "CASH",
    }

    STATUS_MAP = {
        "delivered": TransactionStatus.COMPLETED,
        "completed": TransactionStatus.COMPLETED,
        "cancelled": TransactionStatus.CANCELLED,
        "canceled": TransactionStatus.CANCELLED,
        "failed": TransactionStatus.FAILED,
        "rejected": TransactionStatus.FAILED,
        "refunded": TransactionStatus.FAILED,
    }

    def __init__(self, api_key: str, sandbox: bool = False, timeout: float = 30):
        """
        Initialize the Remitly provider.

        Args:
            api_key: Bearer token issued by Remitly
            sandbox: Use the sandbox host
            timeout: Request timeout in seconds
        """
        if not api_key:
            raise RemitlyAuthenticationError(
                "Remitly requires an API key", error_code="MISSING_CREDENTIALS"
            )
        super().__init__(
            name="Remitly",
            base_url=self.SANDBOX_URL if sandbox else self.BASE_URL,
            timeout=timeout,
        )
        self.api_key = api_key
        self._sessions = SessionPool(self._create_session)

    def _create_session(self) -> requests.Session:
        return build_session({"Authorization": f"Bearer {self.api_key}"})

    def get_supported_currencies(self) -> FrozenSet[Currency]:
        return self.SUPPORTED_CURRENCIES

    def get_supported_countries(self) -> FrozenSet[str]:
        return self.SUPPORTED_COUNTRIES

    def malformed_response(self, message: str, details: Optional[Dict[str, Any]] = None) -> RemitlyResponseError:
        return RemitlyResponseError(message, error_code="INVALID_RESPONSE", details=details)

    def _make_api_request(
        self,
        method: str,
        endpoint: str,
        context: Optional[CallContext] = None,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Make a request to the Remitly API.

        Returns:
            API response as dictionary

        Raises:
            RemitlyAuthenticationError: Authentication failures
            RemitlyConnectionError: Network issues
            RemitlyRateLimitError: Rate limiting
            RemitlyValidationError: Rejected parameters
            RemitlyResponseError: Undecodable body
        """
        context = ensure_context(context)
        context.check()

        url = f"{self.base_url}{endpoint}"
        session = self._sessions.get()
        log_request_details(logger, method, url, dict(session.headers), params=params, data=data)

        try:
            response = session.request(
                method,
                url,
                params=params,
                json=data,
                timeout=context.request_timeout(self.timeout),
                allow_redirects=False,
            )
        except requests.Timeout as e:
            if context.expired:
                raise DeadlineExceededError(f"Remitly call exceeded its deadline: {e}") from e
            raise RemitlyConnectionError(
                "Timed out waiting for Remitly API", error_code="TIMEOUT",
                details={"original_error": str(e)},
            ) from e
        except requests.RequestException as e:
            raise RemitlyConnectionError(
                "Failed to connect to Remitly API", error_code="CONNECTION_FAILED",
                details={"original_error": str(e)},
            ) from e

        log_response_details(logger, response)
        logger.debug(f"Remitly API response status: {response.status_code}")

        if response.status_code in (401, 403):
            raise RemitlyAuthenticationError(
                "Authentication failed", error_code="AUTH_FAILED",
                details={"status_code": response.status_code},
            )
        if response.status_code == 429:
            raise RemitlyRateLimitError(
                "Rate limit exceeded", error_code="RATE_LIMIT",
                details={"retry_after": response.headers.get("Retry-After", "60")},
            )
        if response.status_code in (400, 404, 422):
            raise RemitlyValidationError(
                f"API error: {self._error_message(response)}", error_code="INVALID_PARAMETERS",
                details={"status_code": response.status_code},
            )
        if response.status_code >= 300:
            raise RemitlyConnectionError(
                f"HTTP error from Remitly API: {response.status_code}", error_code="HTTP_ERROR",
                details={"status_code": response.status_code, "response": response.text[:500]},
            )

        try:
            body = response.json()
        except ValueError:
            raise RemitlyResponseError(
                "Remitly returned a non-JSON response", error_code="INVALID_RESPONSE",
                details={"response": response.text[:500]},
            )
        if not isinstance(body, dict):
            raise self.malformed_response("Unexpected Remitly response shape", details={"response": body})
        return body

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            return response.json().get("error", {}).get("message", "Unknown API error")
        except (ValueError, AttributeError):
            return response.text[:200] or "Unknown API error"

    def _build_conduit(self, source_country: str, source_currency: Currency,
                       dest_country: str, dest_currency: Currency) -> str:
        source = to_alpha3(source_country)
        dest = to_alpha3(dest_country)
        if not source or not dest:
            raise RemitlyValidationError(
                f"Unsupported corridor {source_country}->{dest_country}",
                error_code="UNSUPPORTED_CORRIDOR",
            )
        return f"{source}:{source_currency}-{dest}:{dest_currency}"

    def _get_estimate(self, conduit: str, amount: Decimal, payment_method: PaymentMethod,
                      context: Optional[CallContext]) -> Dict[str, Any]:
        params = {
            "conduit": conduit,
            "anchor": "SEND",
            "amount": str(amount),
            "payment_method": self.PAYMENT_METHODS.get(payment_method, "BANK_ACCOUNT"),
            "purpose": "OTHER",
        }
        response_data = self._make_api_request("GET", self.CALCULATOR_ENDPOINT, context, params=params)
        estimate = response_data.get("estimate")
        if not isinstance(estimate, dict):
            raise self.malformed_response(
                "No 'estimate' data in Remitly response", details={"response": response_data}
            )
        return estimate

    def _received_amount(self, estimate: Dict[str, Any], amount: Decimal, rate: Decimal) -> Decimal:
        received = self.optional_decimal(estimate, "receive_amount")
        if received is None:
            received = (amount * rate).quantize(self.CENT, rounding=ROUND_HALF_UP)
        return received

    def get_quote(self, request: TransactionRequest, context: Optional[CallContext] = None) -> RemittanceQuote:
        conduit = self._build_conduit(
            request.sender_country, request.from_currency,
            request.recipient.country_code, request.to_currency,
        )
        estimate = self._get_estimate(conduit, request.amount, request.payment_method, context)

        rate = self.require_decimal(estimate.get("exchange_rate"), "base_rate")
        fee = self.require_decimal(estimate.get("fee"), "total_fee_amount")

        return RemittanceQuote(
            provider=self.name,
            amount=request.amount,
            fee=fee,
            exchange_rate=rate,
            received_amount=self._received_amount(estimate, request.amount, rate),
            estimated_time=estimate.get("delivery_speed_description") or self.DEFAULT_DELIVERY_ESTIMATE,
            valid_until=datetime.now(UTC) + self.QUOTE_VALIDITY,
            from_currency=request.from_currency,
            to_currency=request.to_currency,
        )

    def _map_status(self, status: Optional[str]) -> TransactionStatus:
        return self.STATUS_MAP.get((status or "").lower(), TransactionStatus.PENDING)

    def send_money(self, request: TransactionRequest, context: Optional[CallContext] = None) -> TransactionResponse:
        conduit = self._build_conduit(
            request.sender_country, request.from_currency,
            request.recipient.country_code, request.to_currency,
        )
        payload = {
            "conduit": conduit,
            "send_amount": str(request.amount),
            "payment_method": self.PAYMENT_METHODS.get(request.payment_method, "BANK_ACCOUNT"),
            "sender_id": request.sender_id,
            "recipient": {
                "id": request.recipient.id,
                "name": request.recipient.name,
                "country": to_alpha3(request.recipient.country_code),
                "bank_details": dict(request.recipient.bank_details),
            },
            "purpose": request.purpose,
            "external_reference": request.reference,
        }
        data = self._make_api_request("POST", self.TRANSFERS_ENDPOINT, context, data=payload)
        transaction_id = str(self.require_field(data, "transfer_id"))
        logger.info(f"Remitly transfer {transaction_id} created for reference {request.reference!r}")

        return TransactionResponse(
            transaction_id=transaction_id,
            status=self._map_status(data.get("status")),
            amount=request.amount,
            fee=self.optional_decimal(data, "fee"),
            exchange_rate=self.optional_decimal(data, "exchange_rate"),
            estimated_time=data.get("delivery_speed_description") or self.DEFAULT_DELIVERY_ESTIMATE,
            tracking_url=self.TRACKING_URL.format(transaction_id=transaction_id),
        )

    def get_transaction_status(self, transaction_id: str, context: Optional[CallContext] = None) -> TransactionResponse:
        data = self._make_api_request("GET", f"{self.TRANSFERS_ENDPOINT}/{transaction_id}", context)
        return TransactionResponse(
            transaction_id=str(data.get("transfer_id") or transaction_id),
            status=self._map_status(self.require_field(data, "status")),
            amount=self.optional_decimal(data, "send_amount"),
            fee=self.optional_decimal(data, "fee"),
            exchange_rate=self.optional_decimal(data, "exchange_rate"),
            estimated_time=data.get("delivery_speed_description") or self.DEFAULT_DELIVERY_ESTIMATE,
            tracking_url=self.TRACKING_URL.format(transaction_id=transaction_id),
            error=data.get("failure_reason"),
        )

    def get_exchange_rates(
        self,
        from_currency: Currency,
        to_currency: Currency,
        context: Optional[CallContext] = None,
    ) -> ExchangeRate:
        # Remitly has no standalone rate endpoint, so price a nominal transfer
        conduit = self._build_conduit(
            get_home_country_for_currency(from_currency) or "",
            Currency(from_currency),
            get_home_country_for_currency(to_currency) or "",
            Currency(to_currency),
        )
        estimate = self._get_estimate(conduit, self.RATE_PROBE_AMOUNT, PaymentMethod.BANK_TRANSFER, context)

        return ExchangeRate(
            from_currency=from_currency,
            to_currency=to_currency,
            rate=self.require_decimal(estimate.get("exchange_rate"), "base_rate"),
            fee=self.require_decimal(estimate.get("fee"), "total_fee_amount"),
            valid_until=datetime.now(UTC) + self.RATE_VALIDITY,
        )

    def close(self):
        """Close every session opened by this provider."""
        self._sessions.close()
