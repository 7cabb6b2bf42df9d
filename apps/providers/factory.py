"""
Factory for creating remittance provider instances.
"""
from typing import Dict, Type

from .base.provider import RemittanceProvider
from .remitly.integration import RemitlyProvider
from .wise.integration import WiseProvider
from .worldremit.integration import WorldRemitProvider


class ProviderFactory:
    """Factory for creating and managing remittance provider instances."""

    _providers: Dict[str, Type[RemittanceProvider]] = {
        'wise': WiseProvider,
        'remitly': RemitlyProvider,
        'worldremit': WorldRemitProvider,
    }

    @classmethod
    def get_provider(cls, provider_name: str, **kwargs) -> RemittanceProvider:
        """
        Get an instance of a remittance provider.

        Args:
            provider_name: Registry key of the provider (case-insensitive)
            **kwargs: Credentials and options passed to the provider constructor

        Returns:
            An instance of the requested provider

        Raises:
            ValueError: If the requested provider is not supported
        """
        key = provider_name.lower()
        if key not in cls._providers:
            raise ValueError(f"Unsupported provider: {provider_name}")

        provider_class = cls._providers[key]
        return provider_class(**kwargs)

    @classmethod
    def register_provider(cls, name: str, provider_class: Type[RemittanceProvider]) -> None:
        """
        Register a new provider class.

        Args:
            name: Name to register the provider under
            provider_class: The provider class to register
        """
        cls._providers[name.lower()] = provider_class

    @classmethod
    def get_available_providers(cls) -> Dict[str, Type[RemittanceProvider]]:
        """Get a dictionary mapping provider keys to provider classes."""
        return dict(cls._providers)

    @classmethod
    def list_providers(cls) -> list:
        return list(cls._providers.keys())
