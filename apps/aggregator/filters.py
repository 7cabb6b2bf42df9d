"""
Utility filters for the remittance hub.

This module provides a collection of predefined filter functions for common filtering scenarios.
These functions can be passed to the `filter_fn` parameter of RemittanceHub.get_quotes and
friends; they run on the surviving quotes before ranking.
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, Optional, Union

from apps.providers.models import RemittanceQuote

QuoteFilter = Callable[[RemittanceQuote], bool]
Amount = Union[int, str, Decimal]


def create_max_fee_filter(max_fee: Amount) -> QuoteFilter:
    """Create a filter that limits the maximum fee."""
    limit = Decimal(str(max_fee))

    def filter_fn(quote: RemittanceQuote) -> bool:
        return quote.fee <= limit

    return filter_fn


def create_max_total_cost_filter(max_total_cost: Amount) -> QuoteFilter:
    """Create a filter that limits amount plus fee."""
    limit = Decimal(str(max_total_cost))

    def filter_fn(quote: RemittanceQuote) -> bool:
        return quote.total_cost <= limit

    return filter_fn


def create_min_received_amount_filter(min_amount: Amount) -> QuoteFilter:
    """Create a filter that requires a minimum amount delivered to the recipient."""
    limit = Decimal(str(min_amount))

    def filter_fn(quote: RemittanceQuote) -> bool:
        return quote.received_amount >= limit

    return filter_fn


def create_providers_include_filter(providers: Iterable[str]) -> QuoteFilter:
    """Create a filter that only includes specified providers."""
    names = {name.lower() for name in providers}

    def filter_fn(quote: RemittanceQuote) -> bool:
        return quote.provider.lower() in names

    return filter_fn


def create_providers_exclude_filter(providers: Iterable[str]) -> QuoteFilter:
    """Create a filter that excludes specified providers."""
    names = {name.lower() for name in providers}

    def filter_fn(quote: RemittanceQuote) -> bool:
        return quote.provider.lower() not in names

    return filter_fn


def create_unexpired_filter(at: Optional[datetime] = None) -> QuoteFilter:
    """
    Create a filter that drops quotes past their validity window.

    With no ``at``, expiry is evaluated when the filter runs.
    """

    def filter_fn(quote: RemittanceQuote) -> bool:
        return not quote.is_expired(at)

    return filter_fn


def combine_filters(*filters: QuoteFilter) -> QuoteFilter:
    """Combine multiple filters with AND logic."""

    def combined_filter(quote: RemittanceQuote) -> bool:
        return all(f(quote) for f in filters)

    return combined_filter


def create_custom_filter(
    max_fee: Optional[Amount] = None,
    max_total_cost: Optional[Amount] = None,
    min_received_amount: Optional[Amount] = None,
    include_providers: Optional[Iterable[str]] = None,
    exclude_providers: Optional[Iterable[str]] = None,
    unexpired: bool = False,
) -> QuoteFilter:
    """Create a custom filter with multiple criteria."""
    filters = []

    if max_fee is not None:
        filters.append(create_max_fee_filter(max_fee))

    if max_total_cost is not None:
        filters.append(create_max_total_cost_filter(max_total_cost))

    if min_received_amount is not None:
        filters.append(create_min_received_amount_filter(min_received_amount))

    if include_providers:
        filters.append(create_providers_include_filter(include_providers))

    if exclude_providers:
        filters.append(create_providers_exclude_filter(exclude_providers))

    if unexpired:
        filters.append(create_unexpired_filter())

    return combine_filters(*filters)
