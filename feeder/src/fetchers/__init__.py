"""
Quote sources for the price feeder.

Importing this package registers every bundled source:

    from feeder.src.fetchers import get_fetcher

    fetcher = get_fetcher("coinmarketcap", api_key="...")
    quote = await fetcher.fetch_quote(TradingPair("ETH", "USD"))
"""

from .base import (
    FETCHER_REGISTRY,
    BaseFetcher,
    FetcherConfigError,
    FetcherError,
    FetcherHTTPError,
    NetworkError,
    Quote,
    QuoteUnavailable,
    get_available_fetchers,
    get_fetcher,
    register_fetcher,
)

# Registration happens on import
from .coinmarketcap import CoinMarketCapFetcher
from .cryptocompare import CryptoCompareFetcher

__all__ = [
    "FETCHER_REGISTRY",
    "BaseFetcher",
    "CoinMarketCapFetcher",
    "CryptoCompareFetcher",
    "FetcherConfigError",
    "FetcherError",
    "FetcherHTTPError",
    "NetworkError",
    "Quote",
    "QuoteUnavailable",
    "get_available_fetchers",
    "get_fetcher",
    "register_fetcher",
]
