"""
WorldRemit Money Transfer Integration

This module implements the integration with the WorldRemit partner API.

Every request is signed: the signature is a hex HMAC-SHA256, keyed with the
API secret, over "METHOD\\nENDPOINT\\nTIMESTAMP\\nBODY". ENDPOINT includes the
query string and BODY is the exact JSON text sent on the wire (empty for
GET requests). The key, timestamp and signature travel in the X-API-Key,
X-Timestamp and X-Signature headers.
"""

import hashlib
import hmac
import json
import logging
import time
from datetime import datetime, timedelta, UTC
from typing import Any, Dict, FrozenSet, Optional
from urllib.parse import urlencode

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
    RemittanceQuote,
    TransactionRequest,
    TransactionResponse,
    TransactionStatus,
)
from apps.providers.worldremit.exceptions import (
    WorldRemitAuthenticationError,
    WorldRemitConnectionError,
    WorldRemitRateLimitError,
    WorldRemitResponseError,
    WorldRemitValidationError,
)

logger = logging.getLogger(__name__)


def sign_request(secret: str, method: str, endpoint: str, timestamp: str, body: str) -> str:
    """Hex HMAC-SHA256 of the canonical request string."""
    message = "\n".join([method, endpoint, timestamp, body])
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


class WorldRemitProvider(RemittanceProvider):
    """WorldRemit API integration using signed requests."""

    BASE_URL = "https://api.worldremit.com"
    QUOTES_ENDPOINT = "/v1/quotes"
    TRANSACTIONS_ENDPOINT = "/v1/transactions"
    RATES_ENDPOINT = "/v1/rates"
    TRACKING_URL = "https://worldremit.com/track/{transaction_id}"

    DEFAULT_DELIVERY_ESTIMATE = "Minutes"
    QUOTE_VALIDITY = timedelta(minutes=15)
    RATE_VALIDITY = timedelta(minutes=15)

    SUPPORTED_CURRENCIES = frozenset({
        Currency.USD, Currency.EUR, Currency.GBP, Currency.INR, Currency.PHP,
    })
    SUPPORTED_COUNTRIES = frozenset({"US", "GB", "IN", "PH", "KE", "GH"})

    STATUS_MAP = {
        "paid": TransactionStatus.COMPLETED,
        "completed": TransactionStatus.COMPLETED,
        "cancelled": TransactionStatus.CANCELLED,
        "failed": TransactionStatus.FAILED,
        "rejected": TransactionStatus.FAILED,
        "refunded": TransactionStatus.FAILED,
    }

    def __init__(self, api_key: str, api_secret: str, base_url: Optional[str] = None, timeout: float = 30):
        if not api_key or not api_secret:
            raise WorldRemitAuthenticationError(
                "WorldRemit requires an API key and secret", error_code="MISSING_CREDENTIALS"
            )
        super().__init__(name="WorldRemit", base_url=base_url or self.BASE_URL, timeout=timeout)
        self.api_key = api_key
        self.api_secret = api_secret
        self._sessions = SessionPool(build_session)

    def get_supported_currencies(self) -> FrozenSet[Currency]:
        return self.SUPPORTED_CURRENCIES

    def get_supported_countries(self) -> FrozenSet[str]:
        return self.SUPPORTED_COUNTRIES

    def malformed_response(self, message: str, details: Optional[Dict[str, Any]] = None) -> WorldRemitResponseError:
        return WorldRemitResponseError(message, error_code="INVALID_RESPONSE", details=details)

    def _signed_headers(self, method: str, endpoint: str, body: str) -> Dict[str, str]:
        timestamp = str(int(time.time()))
        return {
            "X-API-Key": self.api_key,
            "X-Timestamp": timestamp,
            "X-Signature": sign_request(self.api_secret, method, endpoint, timestamp, body),
        }

    def _make_api_request(
        self,
        method: str,
        endpoint: str,
        context: Optional[CallContext] = None,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        context = ensure_context(context)
        context.check()

        if params:
            endpoint = f"{endpoint}?{urlencode(params)}"
        body = json.dumps(payload, separators=(",", ":")) if payload is not None else ""
        headers = self._signed_headers(method, endpoint, body)
        url = f"{self.base_url}{endpoint}"

        session = self._sessions.get()
        log_request_details(logger, method, url, {**session.headers, **headers}, data=payload)

        try:
            response = session.request(
                method,
                url,
                data=body.encode("utf-8") if body else None,
                headers=headers,
                timeout=context.request_timeout(self.timeout),
            )
        except requests.Timeout as e:
            if context.expired:
                raise DeadlineExceededError(f"WorldRemit call exceeded its deadline: {e}") from e
            raise WorldRemitConnectionError(
                "Request to WorldRemit timed out", error_code="TIMEOUT",
                details={"original_error": str(e)},
            ) from e
        except requests.RequestException as e:
            raise WorldRemitConnectionError(
                f"Connection error: {e}", error_code="CONNECTION_FAILED",
                details={"original_error": str(e)},
            ) from e

        log_response_details(logger, response)

        if response.status_code in (401, 403):
            raise WorldRemitAuthenticationError(
                "WorldRemit rejected the request signature", error_code="AUTH_FAILED",
                details={"status_code": response.status_code},
            )
        if response.status_code == 429:
            raise WorldRemitRateLimitError("Rate limit exceeded", error_code="RATE_LIMIT")
        if response.status_code in (400, 404, 422):
            raise WorldRemitValidationError(
                f"WorldRemit rejected the request: {response.text[:200]}", error_code="INVALID_PARAMETERS",
                details={"status_code": response.status_code},
            )
        if response.status_code >= 300:
            raise WorldRemitConnectionError(
                f"HTTP error from WorldRemit API: {response.status_code}", error_code="HTTP_ERROR",
                details={"status_code": response.status_code},
            )

        try:
            data = response.json()
        except ValueError:
            raise self.malformed_response("Invalid JSON response", details={"response": response.text[:500]})
        if not isinstance(data, dict):
            raise self.malformed_response("Unexpected WorldRemit response shape", details={"response": data})
        return data

    def _parse_expiry(self, value: Optional[str], validity: timedelta) -> datetime:
        if not value:
            return datetime.now(UTC) + validity
        try:
            expiry = datetime.fromisoformat(value)
        except (TypeError, ValueError):
            raise self.malformed_response(f"Unparseable expiresAt: {value!r}")
        return expiry if expiry.tzinfo else expiry.replace(tzinfo=UTC)

    def _map_status(self, status: Optional[str]) -> TransactionStatus:
        return self.STATUS_MAP.get((status or "").lower(), TransactionStatus.PENDING)

    def get_quote(self, request: TransactionRequest, context: Optional[CallContext] = None) -> RemittanceQuote:
        payload = {
            "sendCountry": request.sender_country,
            "sendCurrency": str(request.from_currency),
            "receiveCountry": request.recipient.country_code,
            "receiveCurrency": str(request.to_currency),
            "sendAmount": str(request.amount),
            "payoutMethod": str(request.payment_method),
        }
        data = self._make_api_request("POST", self.QUOTES_ENDPOINT, context, payload=payload)

        rate = self.require_decimal(data, "exchangeRate")
        received = self.optional_decimal(data, "receiveAmount")
        if received is None:
            received = request.amount * rate

        return RemittanceQuote(
            provider=self.name,
            amount=request.amount,
            fee=self.require_decimal(data, "fee"),
            exchange_rate=rate,
            received_amount=received,
            estimated_time=data.get("deliveryTime") or self.DEFAULT_DELIVERY_ESTIMATE,
            valid_until=self._parse_expiry(data.get("expiresAt"), self.QUOTE_VALIDITY),
            from_currency=request.from_currency,
            to_currency=request.to_currency,
        )

    def send_money(self, request: TransactionRequest, context: Optional[CallContext] = None) -> TransactionResponse:
        recipient = request.recipient
        payload = {
            "senderId": request.sender_id,
            "sendCountry": request.sender_country,
            "sendCurrency": str(request.from_currency),
            "receiveCurrency": str(request.to_currency),
            "sendAmount": str(request.amount),
            "payoutMethod": str(request.payment_method),
            "recipient": {
                "id": recipient.id,
                "name": recipient.name,
                "country": recipient.country_code,
                "email": recipient.email,
                "phone": recipient.phone,
                "bankDetails": dict(recipient.bank_details),
            },
            "purpose": request.purpose,
            "reference": request.reference,
        }
        data = self._make_api_request("POST", self.TRANSACTIONS_ENDPOINT, context, payload=payload)
        transaction_id = str(self.require_field(data, "transactionId"))
        logger.info(f"WorldRemit transaction {transaction_id} created")

        return TransactionResponse(
            transaction_id=transaction_id,
            status=self._map_status(data.get("status")),
            amount=request.amount,
            fee=self.optional_decimal(data, "fee"),
            exchange_rate=self.optional_decimal(data, "exchangeRate"),
            estimated_time=data.get("deliveryTime") or self.DEFAULT_DELIVERY_ESTIMATE,
            tracking_url=self.TRACKING_URL.format(transaction_id=transaction_id),
        )

    def get_transaction_status(self, transaction_id: str, context: Optional[CallContext] = None) -> TransactionResponse:
        data = self._make_api_request("GET", f"{self.TRANSACTIONS_ENDPOINT}/{transaction_id}", context)
        return TransactionResponse(
            transaction_id=transaction_id,
            status=self._map_status(self.require_field(data, "status")),
            amount=self.optional_decimal(data, "sendAmount"),
            fee=self.optional_decimal(data, "fee"),
            exchange_rate=self.optional_decimal(data, "exchangeRate"),
            estimated_time=data.get("deliveryTime") or "",
            tracking_url=self.TRACKING_URL.format(transaction_id=transaction_id),
            error=data.get("failureReason"),
        )

    def get_exchange_rates(
        self,
        from_currency: Currency,
        to_currency: Currency,
        context: Optional[CallContext] = None,
    ) -> ExchangeRate:
        params = {"from": str(from_currency), "to": str(to_currency)}
        data = self._make_api_request("GET", self.RATES_ENDPOINT, context, params=params)
        return ExchangeRate(
            from_currency=from_currency,
            to_currency=to_currency,
            rate=self.require_decimal(data, "rate"),
            fee=self.require_decimal(data, "fee"),
            valid_until=self._parse_expiry(data.get("expiresAt"), self.RATE_VALIDITY),
        )

    def close(self):
        self._sessions.close()
