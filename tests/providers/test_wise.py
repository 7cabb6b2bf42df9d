"""
Tests for the Wise integration.

HTTP traffic is mocked with responses; no real API calls are made.
"""
import json
import time
import unittest
from datetime import datetime, UTC
from decimal import Decimal

import requests
import responses
from responses import matchers

from apps.providers.base.context import CallContext
from apps.providers.base.exceptions import CallCancelledError, DeadlineExceededError
from apps.providers.models import Currency, PaymentMethod, TransactionStatus
from apps.providers.wise.exceptions import (
    WiseAuthenticationError,
    WiseConnectionError,
    WiseRateLimitError,
    WiseResponseError,
    WiseValidationError,
)
from apps.providers.wise.integration import WiseProvider
from tests.fakes import build_request

BASE_URL = "https://api.transferwise.com"
QUOTE_URL = f"{BASE_URL}/v3/profiles/42/quotes"
TRANSFERS_URL = f"{BASE_URL}/v1/transfers"
RATES_URL = f"{BASE_URL}/v1/rates"

QUOTE_RESPONSE = {
    "id": "quote-uuid",
    "rate": 56.12,
    "expirationTime": "2030-01-01T12:00:00Z",
    "paymentOptions": [
        {
            "payIn": "BANK_TRANSFER",
            "payOut": "BANK_TRANSFER",
            "disabled": False,
            "fee": {"total": 4.5},
            "targetAmount": 55867.46,
            "formattedEstimatedDelivery": "by Tuesday",
        },
        {
            "payIn": "DEBIT",
            "payOut": "BANK_TRANSFER",
            "disabled": False,
            "fee": {"total": 9.1},
            "targetAmount": 55609.31,
            "formattedEstimatedDelivery": "in seconds",
        },
        {
            "payIn": "BANK_TRANSFER",
            "payOut": "SWIFT",
            "disabled": True,
            "fee": {"total": 0.1},
            "targetAmount": 56000.0,
        },
    ],
}


class TestWiseProvider(unittest.TestCase):
    """Test the Wise provider integration."""

    def setUp(self):
        self.provider = WiseProvider(api_key="test-key", profile_id="42", timeout=5)
        self.request = build_request()

    def tearDown(self):
        self.provider.close()

    def test_requires_credentials(self):
        with self.assertRaises(WiseAuthenticationError):
            WiseProvider(api_key="", profile_id="42")

    def test_sandbox_host(self):
        provider = WiseProvider(api_key="k", profile_id="1", sandbox=True)
        self.assertEqual(provider.base_url, WiseProvider.SANDBOX_URL)

    @responses.activate
    def test_get_quote_picks_cheapest_enabled_matching_option(self):
        responses.add(responses.POST, QUOTE_URL, json=QUOTE_RESPONSE, status=200)

        quote = self.provider.get_quote(self.request)

        self.assertEqual(quote.provider, "Wise")
        self.assertEqual(quote.fee, Decimal("4.5"))
        self.assertEqual(quote.exchange_rate, Decimal("56.12"))
        self.assertEqual(quote.received_amount, Decimal("55867.46"))
        self.assertEqual(quote.total_cost, Decimal("1004.5"))
        self.assertEqual(quote.estimated_time, "by Tuesday")
        self.assertEqual(quote.valid_until, datetime(2030, 1, 1, 12, 0, tzinfo=UTC))

        sent = responses.calls[0].request
        self.assertEqual(sent.headers["Authorization"], "Bearer test-key")
        body = json.loads(sent.body)
        self.assertEqual(body["sourceCurrency"], "USD")
        self.assertEqual(body["targetCurrency"], "PHP")
        self.assertEqual(body["preferredPayIn"], "BANK_TRANSFER")

    @responses.activate
    def test_get_quote_prefers_requested_pay_in(self):
        responses.add(responses.POST, QUOTE_URL, json=QUOTE_RESPONSE, status=200)

        quote = self.provider.get_quote(build_request(payment_method=PaymentMethod.CARD))

        self.assertEqual(quote.fee, Decimal("9.1"))
        self.assertEqual(quote.estimated_time, "in seconds")

    @responses.activate
    def test_get_quote_legacy_shape(self):
        responses.add(
            responses.POST, QUOTE_URL,
            json={"id": "q", "rate": "56.1", "fee": "3.10", "targetAmount": "55926.09"},
            status=200,
        )

        quote = self.provider.get_quote(self.request)

        self.assertEqual(quote.fee, Decimal("3.10"))
        self.assertEqual(quote.received_amount, Decimal("55926.09"))
        self.assertFalse(quote.is_expired())

    @responses.activate
    def test_get_quote_without_rate_is_an_error(self):
        responses.add(responses.POST, QUOTE_URL, json={"id": "q", "paymentOptions": []}, status=200)

        with self.assertRaises(WiseResponseError):
            self.provider.get_quote(self.request)

    @responses.activate
    def test_get_quote_with_only_disabled_options_is_an_error(self):
        data = dict(QUOTE_RESPONSE, paymentOptions=[QUOTE_RESPONSE["paymentOptions"][2]])
        responses.add(responses.POST, QUOTE_URL, json=data, status=200)

        with self.assertRaises(WiseResponseError):
            self.provider.get_quote(self.request)

    @responses.activate
    def test_non_json_body(self):
        responses.add(responses.POST, QUOTE_URL, body="<html>maintenance</html>", status=200)

        with self.assertRaises(WiseResponseError):
            self.provider.get_quote(self.request)

    @responses.activate
    def test_non_finite_numbers_are_a_response_error(self):
        responses.add(
            responses.POST, QUOTE_URL,
            body='{"rate": 1.2, "fee": NaN, "targetAmount": 1200}',
            content_type="application/json",
            status=200,
        )

        with self.assertRaises(WiseResponseError):
            self.provider.get_quote(self.request)

    @responses.activate
    def test_malformed_payment_option_entries_are_skipped(self):
        options = ["junk", None, QUOTE_RESPONSE["paymentOptions"][0]]
        responses.add(responses.POST, QUOTE_URL, json=dict(QUOTE_RESPONSE, paymentOptions=options), status=200)

        quote = self.provider.get_quote(self.request)

        self.assertEqual(quote.fee, Decimal("4.5"))

    @responses.activate
    def test_payment_options_without_any_object_are_an_error(self):
        responses.add(
            responses.POST, QUOTE_URL,
            json=dict(QUOTE_RESPONSE, paymentOptions=["junk", 42]),
            status=200,
        )

        with self.assertRaises(WiseResponseError):
            self.provider.get_quote(self.request)

    @responses.activate
    def test_non_numeric_option_fee_is_an_error(self):
        bad_option = dict(QUOTE_RESPONSE["paymentOptions"][0], fee={"total": "free"})
        responses.add(
            responses.POST, QUOTE_URL,
            json=dict(QUOTE_RESPONSE, paymentOptions=[bad_option, QUOTE_RESPONSE["paymentOptions"][1]]),
            status=200,
        )

        with self.assertRaises(WiseResponseError):
            self.provider.get_quote(self.request)

    def test_http_status_mapping(self):
        cases = [
            (401, WiseAuthenticationError),
            (403, WiseAuthenticationError),
            (422, WiseValidationError),
            (429, WiseRateLimitError),
            (500, WiseConnectionError),
        ]
        for status_code, error_class in cases:
            with self.subTest(status_code=status_code), responses.RequestsMock() as rsps:
                rsps.add(responses.POST, QUOTE_URL, json={"errors": []}, status=status_code)
                with self.assertRaises(error_class):
                    self.provider.get_quote(self.request)

    @responses.activate
    def test_post_is_not_retried(self):
        responses.add(responses.POST, QUOTE_URL, json={}, status=503)

        with self.assertRaises(WiseConnectionError):
            self.provider.get_quote(self.request)
        self.assertEqual(len(responses.calls), 1)

    @responses.activate
    def test_transport_timeout_maps_to_connection_error(self):
        responses.add(responses.POST, QUOTE_URL, body=requests.Timeout("read timed out"))

        with self.assertRaises(WiseConnectionError) as ctx:
            self.provider.get_quote(self.request)
        self.assertEqual(ctx.exception.error_code, "TIMEOUT")

    @responses.activate
    def test_timeout_past_deadline_is_deadline_exceeded(self):
        def slow_callback(request):
            time.sleep(0.05)
            return requests.Timeout("read timed out")

        responses.add_callback(responses.POST, QUOTE_URL, callback=slow_callback)

        with self.assertRaises(DeadlineExceededError):
            self.provider.get_quote(self.request, context=CallContext.with_timeout(0.02))

    @responses.activate
    def test_cancelled_context_makes_no_request(self):
        context = CallContext()
        context.cancel()

        with self.assertRaises(CallCancelledError):
            self.provider.get_quote(self.request, context=context)
        self.assertEqual(len(responses.calls), 0)

    @responses.activate
    def test_send_money(self):
        responses.add(responses.POST, QUOTE_URL, json=QUOTE_RESPONSE, status=200)
        responses.add(
            responses.POST, TRANSFERS_URL,
            json={"id": 987, "status": "incoming_payment_waiting", "rate": 56.12},
            status=200,
        )

        response = self.provider.send_money(self.request)

        self.assertEqual(response.transaction_id, "987")
        self.assertEqual(response.status, TransactionStatus.PENDING)
        self.assertEqual(response.fee, Decimal("4.5"))
        self.assertEqual(response.tracking_url, "https://wise.com/track/987")

        transfer_body = json.loads(responses.calls[1].request.body)
        self.assertEqual(transfer_body["quoteUuid"], "quote-uuid")
        self.assertEqual(transfer_body["customerTransactionId"], "wallet-tx-1")
        self.assertEqual(transfer_body["targetAccount"], "rcp-1")
        self.assertEqual(transfer_body["details"], {"reference": "family support"})

    @responses.activate
    def test_send_money_without_transfer_id_is_an_error(self):
        responses.add(responses.POST, QUOTE_URL, json=QUOTE_RESPONSE, status=200)
        responses.add(responses.POST, TRANSFERS_URL, json={"status": "processing"}, status=200)

        with self.assertRaises(WiseResponseError):
            self.provider.send_money(self.request)

    @responses.activate
    def test_get_transaction_status(self):
        responses.add(
            responses.GET, f"{TRANSFERS_URL}/987",
            json={"id": 987, "status": "outgoing_payment_sent", "sourceValue": 1000, "rate": 56.12},
            status=200,
        )

        response = self.provider.get_transaction_status("987")

        self.assertEqual(response.transaction_id, "987")
        self.assertEqual(response.status, TransactionStatus.COMPLETED)
        self.assertEqual(response.amount, Decimal("1000"))

    def test_status_mapping(self):
        self.assertEqual(self.provider._map_status("cancelled"), TransactionStatus.CANCELLED)
        self.assertEqual(self.provider._map_status("funds_refunded"), TransactionStatus.FAILED)
        self.assertEqual(self.provider._map_status("bounced_back"), TransactionStatus.FAILED)
        self.assertEqual(self.provider._map_status("processing"), TransactionStatus.PENDING)
        self.assertEqual(self.provider._map_status(None), TransactionStatus.PENDING)

    @responses.activate
    def test_get_exchange_rates(self):
        responses.add(
            responses.GET, RATES_URL,
            json=[{"rate": 56.1, "source": "USD", "target": "PHP", "time": "2030-01-01T00:00:00+0000"}],
            status=200,
            match=[matchers.query_param_matcher({"source": "USD", "target": "PHP"})],
        )

        rate = self.provider.get_exchange_rates(Currency.USD, Currency.PHP)

        self.assertEqual(rate.rate, Decimal("56.1"))
        self.assertEqual(rate.fee, Decimal("0"))
        self.assertFalse(rate.is_expired())

    @responses.activate
    def test_get_exchange_rates_empty_list(self):
        responses.add(responses.GET, RATES_URL, json=[], status=200)

        with self.assertRaises(WiseResponseError) as ctx:
            self.provider.get_exchange_rates(Currency.USD, Currency.PHP)
        self.assertEqual(ctx.exception.error_code, "RATE_NOT_FOUND")
