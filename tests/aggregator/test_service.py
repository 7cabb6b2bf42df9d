"""
The wallet service must be a pure pass-through to the hub.
"""
import unittest
from unittest.mock import MagicMock, sentinel

from apps.aggregator.service import WalletRemittanceService


class TestWalletRemittanceService(unittest.TestCase):

    def setUp(self):
        self.hub = MagicMock()
        self.service = WalletRemittanceService(self.hub)

    def test_get_remittance_options(self):
        self.hub.get_quotes.return_value = sentinel.quotes
        result = self.service.get_remittance_options(sentinel.request)

        self.assertIs(result, sentinel.quotes)
        self.hub.get_quotes.assert_called_once_with(sentinel.request, context=None, filter_fn=None)

    def test_get_best_option(self):
        self.hub.get_best_quote.return_value = sentinel.quote
        result = self.service.get_best_option(sentinel.request, filter_fn=sentinel.filter)

        self.assertIs(result, sentinel.quote)
        self.hub.get_best_quote.assert_called_once_with(sentinel.request, context=None, filter_fn=sentinel.filter)

    def test_send_remittance(self):
        self.hub.send_money_with_provider.return_value = sentinel.response
        result = self.service.send_remittance("Wise", sentinel.request, context=sentinel.context)

        self.assertIs(result, sentinel.response)
        self.hub.send_money_with_provider.assert_called_once_with(
            "Wise", sentinel.request, context=sentinel.context
        )

    def test_get_transfer_status(self):
        self.service.get_transfer_status("Wise", "T-1")
        self.hub.get_transaction_status.assert_called_once_with("Wise", "T-1", context=None)

    def test_get_exchange_rate(self):
        self.service.get_exchange_rate("Wise", "USD", "PHP")
        self.hub.get_exchange_rates.assert_called_once_with("Wise", "USD", "PHP", context=None)

    def test_errors_propagate_unchanged(self):
        error = RuntimeError("boom")
        self.hub.send_money_with_provider.side_effect = error

        with self.assertRaises(RuntimeError) as ctx:
            self.service.send_remittance("Wise", sentinel.request)
        self.assertIs(ctx.exception, error)
