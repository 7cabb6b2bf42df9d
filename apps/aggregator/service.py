"""
Wallet-facing entry point to the remittance hub.

Every method delegates straight to the injected hub; the service exists so
callers depend on a small, stable surface instead of the hub itself.
"""
from typing import List, Optional

from apps.aggregator.aggregator import RemittanceHub
from apps.aggregator.filters import QuoteFilter
from apps.providers.base.context import CallContext
from apps.providers.models import (
    ExchangeRate,
    RemittanceQuote,
    TransactionRequest,
    TransactionResponse,
)


class WalletRemittanceService:

    def __init__(self, hub: RemittanceHub):
        self.hub = hub

    def get_remittance_options(
        self,
        request: TransactionRequest,
        context: Optional[CallContext] = None,
        filter_fn: Optional[QuoteFilter] = None,
    ) -> List[RemittanceQuote]:
        return self.hub.get_quotes(request, context=context, filter_fn=filter_fn)

    def get_best_option(
        self,
        request: TransactionRequest,
        context: Optional[CallContext] = None,
        filter_fn: Optional[QuoteFilter] = None,
    ) -> RemittanceQuote:
        return self.hub.get_best_quote(request, context=context, filter_fn=filter_fn)

    def send_remittance(
        self,
        provider_name: str,
        request: TransactionRequest,
        context: Optional[CallContext] = None,
    ) -> TransactionResponse:
        return self.hub.send_money_with_provider(provider_name, request, context=context)

    def get_transfer_status(
        self,
        provider_name: str,
        transaction_id: str,
        context: Optional[CallContext] = None,
    ) -> TransactionResponse:
        return self.hub.get_transaction_status(provider_name, transaction_id, context=context)

    def get_exchange_rate(
        self,
        provider_name: str,
        from_currency,
        to_currency,
        context: Optional[CallContext] = None,
    ) -> ExchangeRate:
        return self.hub.get_exchange_rates(provider_name, from_currency, to_currency, context=context)
