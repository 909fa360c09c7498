from .base import ProviderRegistry, WatchlistProvider
from .http import HttpWatchlistProvider, WatchlistLookupError
from .simulated import OfacSimProvider, UafeSimProvider, UnSimProvider, simulated_providers

__all__ = [
    "HttpWatchlistProvider",
    "OfacSimProvider",
    "ProviderRegistry",
    "UafeSimProvider",
    "UnSimProvider",
    "WatchlistLookupError",
    "WatchlistProvider",
    "simulated_providers",
]
