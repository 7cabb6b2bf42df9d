"""
Remittance hub configurator.

Builds providers and the hub from Django settings. Credentials only ever
reach the providers as constructor arguments; the hub never reads settings.

Settings used:
    REMITTANCE_PROVIDERS: ordered mapping of factory key -> constructor kwargs
    REMITTANCE_HUB: QUOTE_TIMEOUT, MAX_WORKERS and RATE_CACHE_ALIAS
"""

import functools
import logging
from typing import Any, Dict, List, Mapping, Optional

from django.conf import settings
from django.core.cache import caches

from apps.aggregator.aggregator import RemittanceHub
from apps.aggregator.service import WalletRemittanceService
from apps.providers.base.provider import RemittanceProvider
from apps.providers.factory import ProviderFactory

logger = logging.getLogger(__name__)

DEFAULT_HUB_CONFIG = {
    "QUOTE_TIMEOUT": 20,
    "MAX_WORKERS": 10,
    "RATE_CACHE_ALIAS": "default",
}


def get_hub_config(overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """
    Merge the defaults, the REMITTANCE_HUB setting and explicit overrides.

    Returns:
        Dictionary with every key of DEFAULT_HUB_CONFIG present.
    """
    config = dict(DEFAULT_HUB_CONFIG)
    config.update(getattr(settings, "REMITTANCE_HUB", {}) or {})
    if overrides:
        config.update(overrides)
    return config


def build_providers(provider_settings: Optional[Mapping[str, Mapping[str, Any]]] = None) -> List[RemittanceProvider]:
    """
    Instantiate every configured provider through the ProviderFactory.

    Raises:
        ValueError: if a key is not a registered provider
    """
    if provider_settings is None:
        provider_settings = getattr(settings, "REMITTANCE_PROVIDERS", {}) or {}

    providers = []
    for key, kwargs in provider_settings.items():
        providers.append(ProviderFactory.get_provider(key, **dict(kwargs)))
        logger.info(f"Configured provider {key}")

    if not providers:
        logger.warning("No remittance providers are configured; every quote request will come back empty")
    return providers


def build_hub(
    provider_settings: Optional[Mapping[str, Mapping[str, Any]]] = None,
    hub_config: Optional[Mapping[str, Any]] = None,
) -> RemittanceHub:
    config = get_hub_config(hub_config)
    cache_alias = config.get("RATE_CACHE_ALIAS")
    return RemittanceHub(
        providers=build_providers(provider_settings),
        quote_timeout=config["QUOTE_TIMEOUT"],
        max_workers=config["MAX_WORKERS"],
        rate_cache=caches[cache_alias] if cache_alias else None,
    )


@functools.lru_cache(maxsize=None)
def get_service() -> WalletRemittanceService:
    """Process-wide service used by the API views. Call get_service.cache_clear() to rebuild."""
    return WalletRemittanceService(build_hub())
