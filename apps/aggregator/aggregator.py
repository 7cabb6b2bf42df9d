import concurrent.futures
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from apps.aggregator.exceptions import (
    AggregationCancelledError,
    NoQuotesAvailableError,
    ProviderNotFoundError,
)
from apps.aggregator.filters import QuoteFilter
from apps.providers.base.context import CallContext, ensure_context
from apps.providers.base.provider import RemittanceProvider
from apps.providers.models import (
    Corridor,
    Currency,
    ExchangeRate,
    RemittanceQuote,
    TransactionRequest,
    TransactionResponse,
)

logger = logging.getLogger(__name__)

# How often the join loop wakes up to look for caller cancellation
POLL_INTERVAL = 0.05


def get_exchange_rate_cache_key(provider_name, from_currency, to_currency):
    """Generate a cache key for a provider's exchange rate lookup."""
    return f"exchange_rate:{provider_name.lower()}:{from_currency}:{to_currency}"


def is_eligible(provider: RemittanceProvider, corridor: Corridor) -> bool:
    """A provider is eligible when it covers one side of both the currency and the country pair."""
    return provider.supports_corridor(corridor)


@dataclass
class AggregationResult:
    """Outcome of one quote fan-out: ranked survivors plus bookkeeping."""

    quotes: List[RemittanceQuote] = field(default_factory=list)
    providers_called: int = 0
    failed_providers: List[str] = field(default_factory=list)
    execution_time: float = 0.0

    @property
    def successful_providers(self) -> int:
        return self.providers_called - len(self.failed_providers)

    @property
    def success(self) -> bool:
        return len(self.quotes) > 0

    @property
    def best(self) -> Optional[RemittanceQuote]:
        return self.quotes[0] if self.quotes else None

    def to_dict(self) -> Dict:
        return {
            "success": self.success,
            "results": [quote.to_dict() for quote in self.quotes],
            "providers_called": self.providers_called,
            "successful_providers": self.successful_providers,
            "failed_providers": list(self.failed_providers),
            "execution_time": round(self.execution_time, 3),
        }


class RemittanceHub:
    """
    Fans quote requests out to every eligible provider and ranks the answers.

    The registry is filled at setup time and only read while requests are
    being served. Providers are expected to be safe for concurrent use; the
    hub calls them from one pool of ``max_workers`` threads that lives until
    ``close()``.
    """

    def __init__(
        self,
        providers: Optional[Iterable[RemittanceProvider]] = None,
        quote_timeout: float = 20,
        max_workers: int = 10,
        rate_cache=None,
    ):
        if quote_timeout is not None and quote_timeout <= 0:
            raise ValueError("quote_timeout must be positive")
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.quote_timeout = quote_timeout
        self.max_workers = max_workers
        self.rate_cache = rate_cache
        self._executor: Optional[concurrent.futures.ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()
        self._providers: List[RemittanceProvider] = []
        for provider in providers or []:
            self.register(provider)

    @property
    def providers(self) -> List[RemittanceProvider]:
        return list(self._providers)

    def register(self, provider: RemittanceProvider) -> None:
        """Append a provider to the registry. Names must be unique (case-insensitive)."""
        if any(p.name.lower() == provider.name.lower() for p in self._providers):
            raise ValueError(f"Provider {provider.name!r} is already registered")
        self._providers.append(provider)
        logger.debug(f"Registered provider {provider.name}")

    def get_provider(self, name: str) -> RemittanceProvider:
        for provider in self._providers:
            if provider.name.lower() == name.lower():
                return provider
        raise ProviderNotFoundError(
            f"Provider {name} not found",
            details={"provider": name, "registered": [p.name for p in self._providers]},
        )

    def _get_executor(self) -> concurrent.futures.ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = concurrent.futures.ThreadPoolExecutor(
                    max_workers=self.max_workers, thread_name_prefix="quote"
                )
            return self._executor

    def close(self) -> None:
        """Stop the worker threads and release every provider's connections."""
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)
        for provider in self._providers:
            provider.close()

    def get_available_providers(self, corridor: Corridor) -> List[RemittanceProvider]:
        return [p for p in self._providers if is_eligible(p, corridor)]

    def collect_quotes(
        self,
        request: TransactionRequest,
        context: Optional[CallContext] = None,
        filter_fn: Optional[QuoteFilter] = None,
    ) -> AggregationResult:
        """
        Ask every eligible provider for a quote, concurrently.

        A provider that raises, or has not answered when the quote deadline
        passes, is logged and left out of the result. The deadline is
        ``quote_timeout`` capped by the caller's own context deadline.

        Raises:
            AggregationCancelledError: if the caller cancels ``context``
                before the fan-out completes
        """
        context = ensure_context(context)
        if context.cancelled:
            raise AggregationCancelledError(details={"stage": "before_dispatch"})

        start_time = time.monotonic()
        corridor = request.corridor
        providers = self.get_available_providers(corridor)

        logger.info(
            f"Collecting quotes for {request.amount} {request.from_currency} -> {request.to_currency}, "
            f"corridor {corridor.source_country}->{corridor.dest_country}, "
            f"{len(providers)} eligible provider(s)"
        )
        if not providers:
            return AggregationResult(execution_time=time.monotonic() - start_time)

        call_context = CallContext.with_timeout(self.quote_timeout, parent=context)
        executor = self._get_executor()
        future_to_index = {
            executor.submit(self._fetch_quote, provider, request, call_context): index
            for index, provider in enumerate(providers)
        }
        quotes_by_index: Dict[int, RemittanceQuote] = {}
        failed_indexes: List[int] = []
        pending = set(future_to_index)

        try:
            while pending:
                if context.cancelled:
                    raise AggregationCancelledError(
                        details={"pending": sorted(providers[future_to_index[f]].name for f in pending)}
                    )
                if call_context.expired:
                    break

                wait_for = POLL_INTERVAL
                remaining = call_context.remaining()
                if remaining is not None:
                    wait_for = min(wait_for, remaining)
                done, pending = concurrent.futures.wait(
                    pending, timeout=wait_for, return_when=concurrent.futures.FIRST_COMPLETED
                )

                for future in done:
                    index = future_to_index[future]
                    provider = providers[index]
                    try:
                        quotes_by_index[index] = future.result()
                    except Exception as exc:
                        logger.warning(f"Error getting quote from {provider.name}: {exc}")
                        failed_indexes.append(index)

            for future in pending:
                index = future_to_index[future]
                logger.warning(
                    f"Provider {providers[index].name} did not answer within the quote deadline, skipping"
                )
                failed_indexes.append(index)
        finally:
            # Stragglers see the cancellation on their next context check
            call_context.cancel()
            for future in pending:
                future.cancel()

        quotes = [quotes_by_index[index] for index in sorted(quotes_by_index)]
        if filter_fn:
            quotes = [q for q in quotes if filter_fn(q)]
        # list.sort is stable, so equal costs keep registration order
        quotes.sort(key=lambda q: q.total_cost)

        result = AggregationResult(
            quotes=quotes,
            providers_called=len(providers),
            failed_providers=[providers[index].name for index in sorted(failed_indexes)],
            execution_time=time.monotonic() - start_time,
        )
        logger.info(
            f"Aggregation finished in {result.execution_time:.2f}s: "
            f"{result.successful_providers}/{result.providers_called} providers answered, "
            f"{len(result.quotes)} quote(s) returned"
        )
        return result

    @staticmethod
    def _fetch_quote(
        provider: RemittanceProvider, request: TransactionRequest, context: CallContext
    ) -> RemittanceQuote:
        context.check()
        return provider.get_quote(request, context=context)

    def get_quotes(
        self,
        request: TransactionRequest,
        context: Optional[CallContext] = None,
        filter_fn: Optional[QuoteFilter] = None,
    ) -> List[RemittanceQuote]:
        """Ranked quotes, cheapest total cost first. Empty when nobody could quote."""
        return self.collect_quotes(request, context=context, filter_fn=filter_fn).quotes

    def get_best_quote(
        self,
        request: TransactionRequest,
        context: Optional[CallContext] = None,
        filter_fn: Optional[QuoteFilter] = None,
    ) -> RemittanceQuote:
        quotes = self.get_quotes(request, context=context, filter_fn=filter_fn)
        if not quotes:
            corridor = request.corridor
            raise NoQuotesAvailableError(
                details={
                    "source_country": corridor.source_country,
                    "dest_country": corridor.dest_country,
                    "source_currency": str(corridor.source_currency),
                    "dest_currency": str(corridor.dest_currency),
                }
            )
        return quotes[0]

    def send_money_with_provider(
        self,
        provider_name: str,
        request: TransactionRequest,
        context: Optional[CallContext] = None,
    ) -> TransactionResponse:
        """Send through exactly the named provider. Never falls back to another one."""
        provider = self.get_provider(provider_name)
        logger.info(f"Sending {request.amount} {request.from_currency} via {provider.name}")
        return provider.send_money(request, context=context)

    def get_transaction_status(
        self,
        provider_name: str,
        transaction_id: str,
        context: Optional[CallContext] = None,
    ) -> TransactionResponse:
        provider = self.get_provider(provider_name)
        return provider.get_transaction_status(transaction_id, context=context)

    def get_exchange_rates(
        self,
        provider_name: str,
        from_currency,
        to_currency,
        context: Optional[CallContext] = None,
    ) -> ExchangeRate:
        """
        Look up a provider's rate, served from ``rate_cache`` while it is still valid.
        """
        provider = self.get_provider(provider_name)
        from_currency = Currency(from_currency)
        to_currency = Currency(to_currency)
        cache_key = get_exchange_rate_cache_key(provider.name, from_currency, to_currency)

        if self.rate_cache is not None:
            cached = self.rate_cache.get(cache_key)
            if cached is not None and not cached.is_expired():
                logger.debug(f"Cache hit for {cache_key}")
                return cached

        rate = provider.get_exchange_rates(from_currency, to_currency, context=context)

        if self.rate_cache is not None:
            ttl = int(rate.seconds_until_expiry())
            if ttl > 0:
                self.rate_cache.set(cache_key, rate, timeout=ttl)
        return rate
