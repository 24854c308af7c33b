"""CryptoCompare fetcher.

Endpoint: https://min-api.cryptocompare.com/data/price
Rate Limit: 100,000 calls/month (free tier)
Convert: any listed symbol via tsyms (e.g., USD, ETH)
API Key: Optional
"""

import logging

from .base import BaseFetcher, QuoteUnavailable, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class CryptoCompareFetcher(BaseFetcher):
    """Secondary quote source backed by the CryptoCompare min-api.

    One ``/price`` request per pair; the API key is optional and only raises
    the rate limit.
    """

    name = "cryptocompare"
    BASE_URL = "https://min-api.cryptocompare.com/data"

    async def fetch(self, base: str, quote: str) -> float:
        """Fetch the ``base`` price in ``quote`` from CryptoCompare.

        :param base: Base currency (e.g., "BTC", "ETH").
        :param quote: Quote currency (e.g., "USD", "ETH").
        :returns: Current price.
        :raises QuoteUnavailable: If the API reports an error or no price.
        :raises NetworkError: On transport failure.
        """
        url = f"{self.BASE_URL}/price"
        params = {
            "fsym": base.upper(),
            "tsyms": quote.upper(),
        }

        # Keyless requests are accepted with a lower rate limit
        headers = {}
        if self.api_key:
            headers["authorization"] = f"Apikey {self.api_key}"

        response = await self._get(
            url,
            params=params,
            headers=headers if headers else None,
        )

        try:
            data = response.json()
        except ValueError as e:
            raise QuoteUnavailable(f"[cryptocompare] Failed to parse response: {e}") from e

        # CryptoCompare reports errors with a 200 status
        if data.get("Response") == "Error":
            message = data.get("Message", "Unknown error")
            raise QuoteUnavailable(f"[cryptocompare] API error: {message}")

        price = data.get(quote.upper())
        if price is None:
            raise QuoteUnavailable(
                f"[cryptocompare] No price for {base.upper()}-{quote.upper()}"
            )

        try:
            return float(price)
        except (TypeError, ValueError) as e:
            raise QuoteUnavailable(f"[cryptocompare] Invalid price {price!r}: {e}") from e
