"""
Tests for the RemittanceHub fan-out, ranking and routing.
"""
import threading
import time
import unittest
from datetime import timedelta
from decimal import Decimal

import requests
from django.core.cache.backends.locmem import LocMemCache

from apps.aggregator.aggregator import RemittanceHub, is_eligible
from apps.aggregator.exceptions import (
    AggregationCancelledError,
    NoQuotesAvailableError,
    ProviderNotFoundError,
)
from apps.providers.base.context import CallContext
from apps.providers.base.exceptions import ProviderError
from apps.providers.base.http import SessionPool
from apps.providers.models import Corridor, Currency, TransactionStatus
from tests.fakes import FakeProvider, build_request

HUB_LOGGER = "apps.aggregator.aggregator"


class TestEligibility(unittest.TestCase):

    def setUp(self):
        self.corridor = Corridor("US", "PH", Currency.USD, Currency.PHP)

    def test_one_currency_and_one_country_is_enough(self):
        provider = FakeProvider("Half", currencies=("USD",), countries=("PH",))
        self.assertTrue(is_eligible(provider, self.corridor))

    def test_currency_without_country_is_not_eligible(self):
        provider = FakeProvider("NoCountry", currencies=("USD", "PHP"), countries=("GB",))
        self.assertFalse(is_eligible(provider, self.corridor))

    def test_country_without_currency_is_not_eligible(self):
        provider = FakeProvider("NoCurrency", currencies=("EUR",), countries=("US", "PH"))
        self.assertFalse(is_eligible(provider, self.corridor))

    def test_available_providers_keep_registration_order(self):
        first = FakeProvider("First")
        skipped = FakeProvider("Skipped", currencies=("GBP",), countries=("GB",))
        second = FakeProvider("Second")
        hub = RemittanceHub([first, skipped, second])

        self.assertEqual(hub.get_available_providers(self.corridor), [first, second])


class TestQuoteAggregation(unittest.TestCase):

    def setUp(self):
        self.request = build_request()

    def test_quotes_ranked_by_total_cost(self):
        hub = RemittanceHub([
            FakeProvider("Wise", fee="15", rate="1.2"),
            FakeProvider("Remitly", fee="20", rate="1.15"),
            FakeProvider("WorldRemit", fee="5.99", rate="1.18"),
        ])

        quotes = hub.get_quotes(self.request)

        self.assertEqual([q.provider for q in quotes], ["WorldRemit", "Wise", "Remitly"])
        self.assertEqual(
            [q.total_cost for q in quotes],
            [Decimal("1005.99"), Decimal("1015"), Decimal("1020")],
        )
        self.assertEqual(hub.get_best_quote(self.request).provider, "WorldRemit")

    def test_best_quote_is_first_of_ranked_list(self):
        hub = RemittanceHub([FakeProvider("A", fee="3"), FakeProvider("B", fee="1")])
        self.assertEqual(hub.get_best_quote(self.request), hub.get_quotes(self.request)[0])

    def test_ties_keep_registration_order_regardless_of_arrival(self):
        slow_first = FakeProvider("SlowFirst", fee="5", delay=0.2)
        fast_second = FakeProvider("FastSecond", fee="5")
        cheapest = FakeProvider("Cheapest", fee="1")
        hub = RemittanceHub([slow_first, fast_second, cheapest])

        quotes = hub.get_quotes(self.request)

        self.assertEqual([q.provider for q in quotes], ["Cheapest", "SlowFirst", "FastSecond"])

    def test_no_eligible_providers_returns_empty_list(self):
        outsider = FakeProvider("Outsider", currencies=("GBP",), countries=("GB",))
        hub = RemittanceHub([outsider])

        result = hub.collect_quotes(self.request)

        self.assertEqual(result.quotes, [])
        self.assertEqual(result.providers_called, 0)
        self.assertFalse(result.success)
        self.assertEqual(outsider.quote_calls, 0)

    def test_failed_provider_is_excluded_and_logged(self):
        hub = RemittanceHub([
            FakeProvider("Healthy", fee="10"),
            FakeProvider("Broken", error=ProviderError("upstream exploded", provider="Broken")),
            FakeProvider("Crashy", error=RuntimeError("unexpected")),
        ])

        with self.assertLogs(HUB_LOGGER, level="WARNING") as logs:
            result = hub.collect_quotes(self.request)

        self.assertEqual([q.provider for q in result.quotes], ["Healthy"])
        self.assertEqual(result.failed_providers, ["Broken", "Crashy"])
        self.assertEqual(result.providers_called, 3)
        self.assertEqual(result.successful_providers, 1)
        self.assertTrue(any("Broken" in line for line in logs.output))

    def test_provider_returning_non_finite_numbers_is_excluded(self):
        hub = RemittanceHub([
            FakeProvider("Healthy", fee="10"),
            FakeProvider("Other", fee="3"),
            FakeProvider("Broken", fee="NaN"),
        ])

        with self.assertLogs(HUB_LOGGER, level="WARNING") as logs:
            result = hub.collect_quotes(self.request)

        self.assertEqual([q.provider for q in result.quotes], ["Other", "Healthy"])
        self.assertEqual(result.failed_providers, ["Broken"])
        self.assertTrue(any("Broken" in line for line in logs.output))

    def test_all_providers_failing_is_an_empty_result_not_an_error(self):
        hub = RemittanceHub([FakeProvider("Down", error=ProviderError("down", provider="Down"))])
        with self.assertLogs(HUB_LOGGER, level="WARNING"):
            self.assertEqual(hub.get_quotes(self.request), [])

    def test_best_quote_without_quotes_raises_no_quotes_available(self):
        hub = RemittanceHub([])

        with self.assertRaises(NoQuotesAvailableError) as ctx:
            hub.get_best_quote(self.request)

        self.assertNotIsInstance(ctx.exception, ProviderError)
        self.assertEqual(ctx.exception.details["dest_country"], "PH")

    def test_filter_runs_before_ranking(self):
        hub = RemittanceHub([FakeProvider("Cheap", fee="1"), FakeProvider("Pricey", fee="9")])

        quotes = hub.get_quotes(self.request, filter_fn=lambda q: q.provider != "Cheap")

        self.assertEqual([q.provider for q in quotes], ["Pricey"])

    def test_request_is_shared_unchanged(self):
        provider = FakeProvider("Wise")
        hub = RemittanceHub([provider])
        before = self.request.to_dict()

        hub.get_quotes(self.request)

        self.assertEqual(self.request.to_dict(), before)


class TestDeadlinesAndCancellation(unittest.TestCase):

    def setUp(self):
        self.request = build_request()

    def test_straggler_is_dropped_when_quote_timeout_passes(self):
        slow = FakeProvider("Slow", delay=5)
        hub = RemittanceHub([FakeProvider("Fast", fee="9"), slow], quote_timeout=0.3)

        started = time.monotonic()
        with self.assertLogs(HUB_LOGGER, level="WARNING"):
            result = hub.collect_quotes(self.request)
        elapsed = time.monotonic() - started

        self.assertLess(elapsed, 2)
        self.assertEqual([q.provider for q in result.quotes], ["Fast"])
        self.assertEqual(result.failed_providers, ["Slow"])
        self.assertTrue(slow.last_context.cancelled)

    def test_caller_deadline_caps_quote_timeout(self):
        hub = RemittanceHub([FakeProvider("Fast"), FakeProvider("Slow", delay=5)], quote_timeout=20)

        started = time.monotonic()
        with self.assertLogs(HUB_LOGGER, level="WARNING"):
            quotes = hub.get_quotes(self.request, context=CallContext.with_timeout(0.3))

        self.assertLess(time.monotonic() - started, 2)
        self.assertEqual([q.provider for q in quotes], ["Fast"])

    def test_caller_cancellation_aborts_promptly(self):
        slow = FakeProvider("Slow", delay=5)
        hub = RemittanceHub([slow, FakeProvider("AlsoSlow", delay=5)])
        context = CallContext()

        def cancel_when_started():
            slow.started.wait(2)
            context.cancel()

        canceller = threading.Thread(target=cancel_when_started)
        canceller.start()
        started = time.monotonic()
        with self.assertRaises(AggregationCancelledError):
            hub.collect_quotes(self.request, context=context)
        canceller.join()

        self.assertLess(time.monotonic() - started, 2)
        self.assertTrue(slow.last_context.cancelled)

    def test_already_cancelled_context_dispatches_nothing(self):
        provider = FakeProvider("Wise")
        hub = RemittanceHub([provider])
        context = CallContext()
        context.cancel()

        with self.assertRaises(AggregationCancelledError):
            hub.get_quotes(self.request, context=context)
        self.assertEqual(provider.quote_calls, 0)


class TestRegistryAndRouting(unittest.TestCase):

    def setUp(self):
        self.wise = FakeProvider("Wise")
        self.remitly = FakeProvider("Remitly")
        self.hub = RemittanceHub([self.wise, self.remitly])
        self.request = build_request(reference="dedupe-me")

    def test_duplicate_names_are_rejected(self):
        with self.assertRaises(ValueError):
            self.hub.register(FakeProvider("wise"))

    def test_lookup_is_case_insensitive(self):
        self.assertIs(self.hub.get_provider("WISE"), self.wise)

    def test_send_routes_to_named_provider_only(self):
        response = self.hub.send_money_with_provider("Remitly", self.request)

        self.assertEqual(response.transaction_id, "Remitly-1")
        self.assertEqual(self.remitly.sent, [self.request])
        self.assertEqual(self.wise.sent, [])
        self.assertEqual(self.remitly.sent[0].reference, "dedupe-me")

    def test_unknown_provider_is_reported_without_calling_anyone(self):
        with self.assertRaises(ProviderNotFoundError):
            self.hub.send_money_with_provider("Xoom", self.request)
        self.assertEqual(self.wise.sent, [])
        self.assertEqual(self.remitly.sent, [])

    def test_failing_named_provider_is_not_retried_elsewhere(self):
        broken = FakeProvider("Broken", error=ProviderError("declined", provider="Broken"))
        self.hub.register(broken)

        with self.assertRaises(ProviderError):
            self.hub.send_money_with_provider("Broken", self.request)
        self.assertEqual(self.wise.sent, [])

    def test_sent_transfer_status_round_trip(self):
        sent = self.hub.send_money_with_provider("Wise", self.request)
        status = self.hub.get_transaction_status("Wise", sent.transaction_id)

        self.assertEqual(status.transaction_id, sent.transaction_id)
        self.assertIn(status.status, set(TransactionStatus))


class TestExchangeRateCache(unittest.TestCase):

    def setUp(self):
        self.cache = LocMemCache("hub-tests", {})
        self.cache.clear()

    def test_rate_served_from_cache_while_valid(self):
        provider = FakeProvider("Wise")
        hub = RemittanceHub([provider], rate_cache=self.cache)

        first = hub.get_exchange_rates("Wise", "USD", "PHP")
        second = hub.get_exchange_rates("wise", Currency.USD, Currency.PHP)

        self.assertEqual(first, second)
        self.assertEqual(provider.rate_calls, 1)

    def test_expired_rate_is_never_cached(self):
        provider = FakeProvider("Wise", rate_validity=timedelta(seconds=-1))
        hub = RemittanceHub([provider], rate_cache=self.cache)

        hub.get_exchange_rates("Wise", "USD", "PHP")
        hub.get_exchange_rates("Wise", "USD", "PHP")

        self.assertEqual(provider.rate_calls, 2)

    def test_without_cache_every_lookup_hits_the_provider(self):
        provider = FakeProvider("Wise")
        hub = RemittanceHub([provider])

        hub.get_exchange_rates("Wise", "USD", "PHP")
        hub.get_exchange_rates("Wise", "USD", "PHP")

        self.assertEqual(provider.rate_calls, 2)


class SessionBackedProvider(FakeProvider):
    """Fake provider that opens a pooled session per calling thread, like the HTTP integrations."""

    def __init__(self, name, **kwargs):
        super().__init__(name, **kwargs)
        self.sessions = SessionPool(requests.Session)

    def get_quote(self, request, context=None):
        self.sessions.get()
        return super().get_quote(request, context=context)

    def close(self):
        self.sessions.close()


class TestWorkerPool(unittest.TestCase):

    def setUp(self):
        self.request = build_request()

    def test_sessions_stay_bounded_across_aggregations(self):
        wise = SessionBackedProvider("Wise")
        remitly = SessionBackedProvider("Remitly")
        hub = RemittanceHub([wise, remitly], max_workers=2)
        self.addCleanup(hub.close)

        for _ in range(25):
            self.assertEqual(len(hub.get_quotes(self.request)), 2)

        self.assertLessEqual(len(wise.sessions), 2)
        self.assertLessEqual(len(remitly.sessions), 2)

    def test_close_releases_provider_sessions(self):
        wise = SessionBackedProvider("Wise")
        hub = RemittanceHub([wise])
        hub.get_quotes(self.request)

        hub.close()

        self.assertEqual(len(wise.sessions), 0)

    def test_hub_is_usable_after_close(self):
        hub = RemittanceHub([FakeProvider("Wise")])
        hub.close()
        self.addCleanup(hub.close)

        self.assertEqual([q.provider for q in hub.get_quotes(self.request)], ["Wise"])
