"""
Remittance Hub Aggregator Module

This module fans quote requests out to every eligible remittance provider in
parallel, ranks the answers by total cost and routes transfers to a named
provider.
"""

from apps.aggregator.aggregator import AggregationResult, RemittanceHub, is_eligible
from apps.aggregator.service import WalletRemittanceService

__all__ = ["AggregationResult", "RemittanceHub", "WalletRemittanceService", "is_eligible"]
