"""CoinMarketCap fetcher.

Endpoint: https://pro-api.coinmarketcap.com/v1/cryptocurrency/quotes/latest
Rate Limit: 333 calls/day (free tier)
Convert: any listed fiat or crypto symbol (e.g., USD, ETH)
API Key: Required
"""

import logging

from .base import (
    BaseFetcher,
    FetcherHTTPError,
    QuoteUnavailable,
    register_fetcher,
)

logger = logging.getLogger(__name__)


@register_fetcher
class CoinMarketCapFetcher(BaseFetcher):
    """Fetcher for CoinMarketCap API.

    Queries one symbol per request with the quote currency as ``convert``.
    API key is REQUIRED.
    """

    name = "coinmarketcap"
    requires_api_key = True
    BASE_URL = "https://pro-api.coinmarketcap.com"

    async def fetch(self, base: str, quote: str) -> float:
        """Fetch price from CoinMarketCap.

        :param base: Base currency (e.g., "BTC", "ETH").
        :param quote: Quote currency used as convert target (e.g., "USD").
        :returns: Current price.
        :raises QuoteUnavailable: If the symbol or convert currency is unknown.
        :raises NetworkError: On transport failure.
        """
        symbol = base.upper()
        convert = quote.upper()

        url = f"{self.BASE_URL}/v1/cryptocurrency/quotes/latest"
        headers = {
            "X-CMC_PRO_API_KEY": self.api_key or "",
            "Accept": "application/json",
        }
        params = {"symbol": symbol, "convert": convert}

        try:
            response = await self._get(url, params=params, headers=headers)
        except FetcherHTTPError as e:
            # CMC answers unknown symbols/converts with 400 Bad Request
            if e.status_code == 400:
                raise QuoteUnavailable(
                    f"[coinmarketcap] {symbol}-{convert} rejected: {e}"
                ) from e
            raise

        try:
            data = response.json()
            symbol_data = (data.get("data") or {}).get(symbol)

            # Some API versions return a list of matches, take the first one
            if isinstance(symbol_data, list):
                symbol_data = symbol_data[0] if symbol_data else None

            if not symbol_data:
                raise QuoteUnavailable(f"[coinmarketcap] Symbol {symbol} not found")

            quote_data = (symbol_data.get("quote") or {}).get(convert)
            if not quote_data or quote_data.get("price") is None:
                raise QuoteUnavailable(
                    f"[coinmarketcap] Quote {convert} not found for {symbol}"
                )

            return float(quote_data["price"])

        except (KeyError, ValueError, TypeError, AttributeError) as e:
            raise QuoteUnavailable(
                f"[coinmarketcap] Failed to parse response for {symbol}-{convert}: {e}"
            ) from e
