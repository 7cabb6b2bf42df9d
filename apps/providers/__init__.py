"""
Remittance providers package.

This package contains the normalized remittance data model, the provider
contract and the integrations for each supported money transfer service.
"""

from .factory import ProviderFactory


def get_provider_by_name(provider_name, **kwargs):
    """
    Get a provider instance by name.

    Args:
        provider_name: Name of the provider
        **kwargs: Additional arguments to pass to the provider

    Returns:
        An instance of the requested provider
    """
    return ProviderFactory.get_provider(provider_name, **kwargs)


def list_providers():
    """Get a list of all registered provider names."""
    return ProviderFactory.list_providers()
