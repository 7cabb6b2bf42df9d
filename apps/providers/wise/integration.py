"""
Wise Money Transfer Integration (formerly TransferWise)

This module implements the integration with the Wise platform API.

PAYMENT METHODS (pay_in types):
------------------------------
- BANK_TRANSFER: Regular bank transfer
- DEBIT / CREDIT: Card payment
- BALANCE: Wise account balance

Key API notes:
1. Quotes are created per profile and list every available payment option
2. Each payment option has its own fee, target amount and delivery estimate
3. Transfers reference a quote id and accept a customerTransactionId, which we
   fill with the caller's reference so duplicate sends can be spotted upstream
4. Authentication is a bearer token; the sandbox lives on a separate host
"""

import logging
from datetime import datetime, timedelta, UTC
from decimal import Decimal
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
from .exceptions import (
    WiseAuthenticationError,
    WiseConnectionError,
    WiseRateLimitError,
    WiseResponseError,
    WiseValidationError,
)

logger = logging.getLogger(__name__)


class WiseProvider(RemittanceProvider):
    """Integration with Wise (formerly TransferWise) money transfer service."""

    BASE_URL = "https://api.transferwise.com"
    SANDBOX_URL = "https://api.sandbox.transferwise.tech"
    QUOTES_ENDPOINT = "/v3/profiles/{profile_id}/quotes"
    TRANSFERS_ENDPOINT = "/v1/transfers"
    RATES_ENDPOINT = "/v1/rates"
    TRACKING_URL = "https://wise.com/track/{transaction_id}"

    DEFAULT_DELIVERY_ESTIMATE = "1-2 business days"
    QUOTE_VALIDITY = timedelta(hours=24)
    RATE_VALIDITY = timedelta(hours=1)

    SUPPORTED_CURRENCIES = frozenset({
        Currency.USD, Currency.EUR, Currency.GBP, Currency.INR, Currency.PHP,
    })
    SUPPORTED_COUNTRIES = frozenset({"US", "GB", "IN", "PH", "DE", "FR", "ES"})

    PAY_IN_METHODS = {
        PaymentMethod.BANK_TRANSFER: "BANK_TRANSFER",
        PaymentMethod.CARD: "DEBIT",
        PaymentMethod.WALLET: "BALANCE",
    }

    COMPLETED_STATUSES = {"outgoing_payment_sent"}
    CANCELLED_STATUSES = {"cancelled"}
    FAILED_STATUSES = {"funds_refunded", "bounced_back", "charged_back"}

    def __init__(self, api_key: str, profile_id: str, sandbox: bool = False, timeout: float = 30):
        """Initialize the Wise provider.

        Args:
            api_key: API token for authenticating with Wise
            profile_id: Wise profile that owns quotes and transfers
            sandbox: Use the Wise sandbox host instead of production
            timeout: Request timeout in seconds
        """
        if not api_key or not profile_id:
            raise WiseAuthenticationError(
                "Wise requires both an API key and a profile id",
                error_code="MISSING_CREDENTIALS",
            )
        super().__init__(
            name="Wise",
            base_url=self.SANDBOX_URL if sandbox else self.BASE_URL,
            timeout=timeout,
        )
        self.api_key = api_key
        self.profile_id = str(profile_id)
        self.sandbox = sandbox
        self._sessions = SessionPool(self._create_session)

        logger.debug(f"Initialized WiseProvider (sandbox={sandbox})")

    def _create_session(self) -> requests.Session:
        return build_session({"Authorization": f"Bearer {self.api_key}"})

    def get_supported_currencies(self) -> FrozenSet[Currency]:
        return self.SUPPORTED_CURRENCIES

    def get_supported_countries(self) -> FrozenSet[str]:
        return self.SUPPORTED_COUNTRIES

    def malformed_response(self, message: str, details: Optional[Dict[str, Any]] = None) -> WiseResponseError:
        return WiseResponseError(message, error_code="INVALID_RESPONSE", details=details)

    def _make_api_request(
        self,
        method: str,
        endpoint: str,
        context: Optional[CallContext] = None,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Call the Wise API and return the decoded JSON body.

        Raises:
            WiseConnectionError: If connection to API fails
            WiseValidationError: If API rejects our request parameters
            WiseRateLimitError: If rate limits are exceeded
            WiseAuthenticationError: If authentication fails
            WiseResponseError: If the body is not JSON
        """
        context = ensure_context(context)
        context.check()

        url = f"{self.base_url}{endpoint}"
        session = self._sessions.get()
        log_request_details(logger, method, url, dict(session.headers), params=params, data=payload)

        try:
            response = session.request(
                method,
                url,
                params=params,
                json=payload,
                timeout=context.request_timeout(self.timeout),
            )
        except requests.Timeout as e:
            if context.expired:
                raise DeadlineExceededError(f"Wise call exceeded its deadline: {e}") from e
            raise WiseConnectionError(
                "Timed out waiting for Wise API",
                error_code="TIMEOUT",
                details={"original_error": str(e)},
            ) from e
        except requests.RequestException as e:
            raise WiseConnectionError(
                "Failed to connect to Wise API",
                error_code="CONNECTION_FAILED",
                details={"original_error": str(e)},
            ) from e

        log_response_details(logger, response)
        self._raise_for_status(response)

        try:
            return response.json()
        except ValueError:
            raise WiseResponseError(
                "Wise returned a non-JSON response",
                error_code="INVALID_RESPONSE",
                details={"response": response.text[:500]},
            )

    def _raise_for_status(self, response: requests.Response) -> None:
        status_code = response.status_code
        if status_code < 400:
            return

        details = {"status_code": status_code, "response": response.text[:500]}
        if status_code in (401, 403):
            raise WiseAuthenticationError(
                "Authentication failed with Wise API", error_code="AUTH_FAILED", details=details
            )
        if status_code in (400, 422):
            raise WiseValidationError(
                "Invalid request parameters", error_code="INVALID_PARAMETERS", details=details
            )
        if status_code == 429:
            details["retry_after"] = response.headers.get("Retry-After", "60")
            raise WiseRateLimitError(
                "Rate limit exceeded for Wise API", error_code="RATE_LIMIT", details=details
            )
        raise WiseConnectionError(
            f"HTTP error from Wise API: {status_code}", error_code="HTTP_ERROR", details=details
        )

    def _create_quote(self, request: TransactionRequest, context: Optional[CallContext]) -> Dict[str, Any]:
        payload = {
            "sourceCurrency": str(request.from_currency),
            "targetCurrency": str(request.to_currency),
            "sourceAmount": float(request.amount),
            "payOut": "BANK_TRANSFER",
        }
        pay_in = self.PAY_IN_METHODS.get(request.payment_method)
        if pay_in:
            payload["preferredPayIn"] = pay_in

        endpoint = self.QUOTES_ENDPOINT.format(profile_id=self.profile_id)
        data = self._make_api_request("POST", endpoint, context, payload=payload)
        if not isinstance(data, dict):
            raise self.malformed_response("Invalid quote response format", details={"response": data})
        return data

    def _find_best_payment_option(self, quote_data: Dict, preferred_pay_in: Optional[str]) -> Optional[Dict]:
        """Find the best payment option from quote data.

        Options matching the requested pay-in method win; among those the one
        with the lowest total fee is picked.
        """
        payment_options = quote_data.get("paymentOptions") or []
        if not isinstance(payment_options, list):
            return None
        valid_options = [
            opt for opt in payment_options
            if isinstance(opt, dict) and not opt.get("disabled", False)
        ]
        if not valid_options:
            return None

        matching = [opt for opt in valid_options if opt.get("payIn") == preferred_pay_in]
        candidates = matching or valid_options

        def total_fee(option):
            fee = option.get("fee")
            if isinstance(fee, dict) and fee.get("total") is not None:
                return self.require_decimal(fee, "total")
            return Decimal("Infinity")

        return min(candidates, key=total_fee)

    def _parse_expiry(self, value: Optional[str]) -> datetime:
        if not value:
            return datetime.now(UTC) + self.QUOTE_VALIDITY
        try:
            expiry = datetime.fromisoformat(value)
        except (TypeError, ValueError):
            raise self.malformed_response(f"Unparseable expirationTime: {value!r}")
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=UTC)
        return expiry

    def _quote_from_response(self, request: TransactionRequest, data: Dict[str, Any]) -> RemittanceQuote:
        rate = self.require_decimal(data, "rate")

        if data.get("paymentOptions"):
            option = self._find_best_payment_option(data, self.PAY_IN_METHODS.get(request.payment_method))
            if option is None:
                raise self.malformed_response(
                    "No enabled payment options in Wise quote", details={"response": data}
                )
            fee = self.require_decimal(option.get("fee"), "total")
            received_amount = self.require_decimal(option, "targetAmount")
            estimated_time = option.get("formattedEstimatedDelivery") or self.DEFAULT_DELIVERY_ESTIMATE
        else:
            # Older quote shape without payment options
            fee = self.require_decimal(data, "fee")
            received_amount = self.require_decimal(data, "targetAmount")
            estimated_time = self.DEFAULT_DELIVERY_ESTIMATE

        return RemittanceQuote(
            provider=self.name,
            amount=request.amount,
            fee=fee,
            exchange_rate=rate,
            received_amount=received_amount,
            estimated_time=estimated_time,
            valid_until=self._parse_expiry(data.get("expirationTime")),
            from_currency=request.from_currency,
            to_currency=request.to_currency,
        )

    def _map_status(self, status: Optional[str]) -> TransactionStatus:
        status = (status or "").lower()
        if status in self.COMPLETED_STATUSES:
            return TransactionStatus.COMPLETED
        if status in self.CANCELLED_STATUSES:
            return TransactionStatus.CANCELLED
        if status in self.FAILED_STATUSES:
            return TransactionStatus.FAILED
        return TransactionStatus.PENDING

    def get_quote(self, request: TransactionRequest, context: Optional[CallContext] = None) -> RemittanceQuote:
        data = self._create_quote(request, context)
        return self._quote_from_response(request, data)

    def send_money(self, request: TransactionRequest, context: Optional[CallContext] = None) -> TransactionResponse:
        quote_data = self._create_quote(request, context)
        quote = self._quote_from_response(request, quote_data)

        payload = {
            "targetAccount": request.recipient.id,
            "quoteUuid": self.require_field(quote_data, "id"),
            "customerTransactionId": request.reference,
            "details": {"reference": request.purpose},
        }
        data = self._make_api_request("POST", self.TRANSFERS_ENDPOINT, context, payload=payload)
        transaction_id = str(self.require_field(data, "id"))
        logger.info(f"Wise transfer {transaction_id} created for reference {request.reference!r}")

        return TransactionResponse(
            transaction_id=transaction_id,
            status=self._map_status(data.get("status")),
            amount=request.amount,
            fee=quote.fee,
            exchange_rate=self.optional_decimal(data, "rate") or quote.exchange_rate,
            estimated_time=quote.estimated_time,
            tracking_url=self.TRACKING_URL.format(transaction_id=transaction_id),
        )

    def get_transaction_status(self, transaction_id: str, context: Optional[CallContext] = None) -> TransactionResponse:
        data = self._make_api_request("GET", f"{self.TRANSFERS_ENDPOINT}/{transaction_id}", context)
        if not isinstance(data, dict):
            raise self.malformed_response("Invalid transfer response format", details={"response": data})

        return TransactionResponse(
            transaction_id=str(data.get("id") or transaction_id),
            status=self._map_status(self.require_field(data, "status")),
            amount=self.optional_decimal(data, "sourceValue"),
            exchange_rate=self.optional_decimal(data, "rate"),
            estimated_time=self.DEFAULT_DELIVERY_ESTIMATE,
            tracking_url=self.TRACKING_URL.format(transaction_id=transaction_id),
        )

    def get_exchange_rates(
        self,
        from_currency: Currency,
        to_currency: Currency,
        context: Optional[CallContext] = None,
    ) -> ExchangeRate:
        params = {"source": str(from_currency), "target": str(to_currency)}
        rates = self._make_api_request("GET", self.RATES_ENDPOINT, context, params=params)
        if not isinstance(rates, list) or not rates:
            raise WiseResponseError(
                "No exchange rate found",
                error_code="RATE_NOT_FOUND",
                details={"response": rates, "source": str(from_currency), "target": str(to_currency)},
            )

        return ExchangeRate(
            from_currency=from_currency,
            to_currency=to_currency,
            rate=self.require_decimal(rates[0], "rate"),
            # The rates endpoint is fee-free; fees only exist on quotes
            fee=Decimal("0"),
            valid_until=datetime.now(UTC) + self.RATE_VALIDITY,
        )

    def close(self) -> None:
        """Close every session opened by this provider."""
        self._sessions.close()
