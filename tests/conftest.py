"""
Shared pytest configuration.

Django settings are bootstrapped here so the API and configurator tests can
use django.test helpers without a database.
"""
import os

import django
import pytest

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "remit_hub.settings")
django.setup()


@pytest.fixture(autouse=True)
def reset_service():
    """Make sure every test builds its own process-wide service."""
    from apps.aggregator.configurator import get_service

    get_service.cache_clear()
    yield
    get_service.cache_clear()
