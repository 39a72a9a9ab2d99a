"""Open-Finance provider integration."""

from .client import PluggyClient, ProviderClient

__all__ = ["PluggyClient", "ProviderClient"]
