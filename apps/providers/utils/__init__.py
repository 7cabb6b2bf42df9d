"""Shared lookup tables for provider integrations."""
