"""Quote source interface, error types and the source registry.

A quote source answers one question: how much ``quote`` currency does one
unit of ``base`` cost right now. Sources subclass BaseFetcher, implement
fetch() and register under a short name:

.. code-block:: python

    @register_fetcher
    class ExampleFetcher(BaseFetcher):
        name = "example"

        async def fetch(self, base: str, quote: str) -> float:
            response = await self._get(f"https://quotes.example.com/{base}/{quote}")
            return float(response.json()["price"])

Every source issues a single GET per pair through one process-wide
httpx.AsyncClient. Nothing is retried here; the next tick is the retry.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import ClassVar

import httpx

from ..TradingPair import TradingPair

logger = logging.getLogger(__name__)


class FetcherError(Exception):
    """Base class for every quote source failure."""

    pass


class FetcherConfigError(FetcherError):
    """Raised when a source is used without its required credentials."""

    pass


class NetworkError(FetcherError):
    """Raised when a quote request times out or cannot be delivered."""

    pass


class FetcherHTTPError(NetworkError):
    """Raised when the quote source answers with a non-2xx status.

    :ivar status_code: Status of the rejected response.
    """

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


class QuoteUnavailable(FetcherError):
    """Raised when the source has no price for a symbol/convert combination."""

    pass


@dataclass(frozen=True)
class Quote:
    """A spot price for one pair as returned by a quote source.

    :ivar pair: The quoted trading pair.
    :ivar price: Price of one unit of base, in quote currency.
    :ivar fetched_at: Unix timestamp when the quote was received.
    """

    pair: TradingPair
    price: float
    fetched_at: float = field(default_factory=time.time)


class BaseFetcher(ABC):
    """Common behaviour of quote sources.

    :cvar name: Registry key of the source (e.g., "coinmarketcap").
    :cvar requires_api_key: Whether fetch_quote refuses to run without a key.
    :cvar DEFAULT_TIMEOUT: Request timeout used when none is configured.
    :ivar api_key: Credential sent with each request, if any.
    :ivar timeout: Per-request timeout in seconds.
    """

    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    name: ClassVar[str] = ""
    requires_api_key: ClassVar[bool] = False

    DEFAULT_TIMEOUT = 10.0

    def __init__(self, api_key: str | None = None, timeout: float | None = None):
        """Initialize the fetcher.

        :param api_key: Credential for the source, if it takes one.
        :param timeout: Per-request timeout in seconds (default: 10).
        """
        self.api_key = api_key
        self.timeout = timeout or self.DEFAULT_TIMEOUT

    @property
    def has_api_key(self) -> bool:
        """Whether a non-empty API key was supplied."""
        return bool(self.api_key)

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Return the process-wide HTTP client, opening it on first use."""
        client = BaseFetcher._shared_client
        if client is None or client.is_closed:
            client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0),
                limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
                follow_redirects=True,
            )
            BaseFetcher._shared_client = client
        return client

    @classmethod
    def set_shared_client(cls, client: httpx.AsyncClient | None) -> None:
        """Install a client (e.g., one with a mock transport) for every source."""
        BaseFetcher._shared_client = client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the process-wide HTTP client if it is open."""
        client = BaseFetcher._shared_client
        BaseFetcher._shared_client = None
        if client is not None and not client.is_closed:
            await client.aclose()

    @abstractmethod
    async def fetch(self, base: str, quote: str) -> float:
        """Return the current price of ``base`` in ``quote``.

        :param base: Base currency symbol (e.g., "BTC", "ETH").
        :param quote: Quote currency symbol (e.g., "USD", "ETH").
        :raises QuoteUnavailable: If the source has no data for the pair.
        :raises NetworkError: On transport failure.
        """

    async def fetch_quote(self, pair: TradingPair) -> Quote:
        """Fetch a timestamped Quote for a pair.

        :param pair: Trading pair to quote.
        :returns: Quote with the price and fetch time.
        :raises FetcherConfigError: If an API key is required but missing.
        :raises QuoteUnavailable: If the source has no data for the pair.
        :raises NetworkError: On transport failure.
        """
        if self.requires_api_key and not self.has_api_key:
            raise FetcherConfigError(f"[{self.name}] API key required but not provided")

        price = await self.fetch(pair.base, pair.quote)
        logger.debug(f"[{self.name}] {pair}: {price}")
        return Quote(pair=pair, price=price)

    async def _get(
        self,
        url: str,
        *,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """GET ``url`` through the shared client.

        :raises NetworkError: If the request times out or cannot be sent.
        :raises FetcherHTTPError: If the response status is not 2xx.
        """
        try:
            response = await self.get_shared_client().get(
                url, params=params, headers=headers, timeout=self.timeout
            )
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise NetworkError(f"Request failed: {e}") from e

        if response.is_error:
            body = response.text[:200]
            logger.debug(f"[{self.name}] GET {url} -> {response.status_code}: {body}")
            raise FetcherHTTPError(response.status_code, body)
        return response


# Source name -> fetcher class, filled in by @register_fetcher
FETCHER_REGISTRY: dict[str, type[BaseFetcher]] = {}


def register_fetcher(cls: type[BaseFetcher]) -> type[BaseFetcher]:
    """Class decorator adding a quote source to FETCHER_REGISTRY.

    :raises ValueError: If the class does not set ``name``.
    """
    if not cls.name:
        raise ValueError(f"Fetcher {cls.__name__} must define a 'name' class variable")
    FETCHER_REGISTRY[cls.name] = cls
    return cls


def get_fetcher(
    name: str, api_key: str | None = None, timeout: float | None = None
) -> BaseFetcher:
    """Instantiate the registered quote source called ``name``.

    :param name: Registry key (e.g., "coinmarketcap").
    :param api_key: Credential for the source.
    :param timeout: Per-request timeout in seconds.
    :raises ValueError: If no source is registered under ``name``.
    """
    try:
        fetcher_cls = FETCHER_REGISTRY[name]
    except KeyError:
        available = ", ".join(get_available_fetchers())
        raise ValueError(f"Unknown fetcher '{name}'. Available: {available}") from None
    return fetcher_cls(api_key=api_key, timeout=timeout)


def get_available_fetchers() -> list[str]:
    """Names of all registered quote sources, sorted."""
    return sorted(FETCHER_REGISTRY)
