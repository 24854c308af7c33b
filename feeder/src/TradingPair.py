"""TradingPair: Configured "BASE-QUOTE" pair and its on-chain token ID.

The token ID stored by the oracle contract is derived from the base symbol
only, always in its USD form:
    keccak256("BASE-USD")

so "BTC-USD" and "BTC-ETH" both publish under the same key.

.. code-block:: python

    >>> pair = TradingPair.from_string("btc-eth")
    >>> str(pair)
    'BTC-ETH'
    >>> pair.usd_symbol
    'BTC-USD'
"""

from __future__ import annotations

from web3 import Web3

USD = "USD"


def compute_token_id(symbol: str) -> bytes:
    """Compute the 32-byte token ID for a base symbol.

    Matches ``ethers.id("<SYMBOL>-USD")`` used by existing readers.

    :param symbol: Base currency symbol (e.g., "ETH").
    :returns: 32-byte keccak256 hash of "<SYMBOL>-USD".
    """
    return Web3.keccak(text=f"{symbol.upper()}-{USD}")


class TradingPair:
    """An ordered (base, quote) pair of currency symbols.

    :ivar base: Base currency symbol (uppercase).
    :ivar quote: Quote currency symbol (uppercase).
    """

    def __init__(self, base: str, quote: str) -> None:
        """Initialize a trading pair.

        :param base: Base currency symbol (e.g., "BTC").
        :param quote: Quote currency symbol (e.g., "USD", "ETH").
        """
        self.base = base.strip().upper()
        self.quote = quote.strip().upper()

    def __str__(self) -> str:
        """Return the pair in configuration format."""
        return f"{self.base}-{self.quote}"

    def __repr__(self) -> str:
        """Return a developer-friendly string representation."""
        return f"TradingPair({self.base!r}, {self.quote!r})"

    def __hash__(self) -> int:
        """Return hash for use in dicts and sets."""
        return hash(str(self))

    def __eq__(self, other: object) -> bool:
        """Check equality based on string representation."""
        if not isinstance(other, TradingPair):
            return NotImplemented
        return str(self) == str(other)

    @property
    def is_usd(self) -> bool:
        """Whether the pair is quoted directly in USD."""
        return self.quote == USD

    @property
    def usd_symbol(self) -> str:
        """Canonical USD pricing record name for the base symbol."""
        return f"{self.base}-{USD}"

    @property
    def token_id(self) -> bytes:
        """32-byte on-chain identifier of the base symbol's USD price."""
        return compute_token_id(self.base)

    @classmethod
    def from_string(cls, pair_str: str) -> TradingPair:
        """Parse a pair string in format "BASE-QUOTE".

        :param pair_str: Pair string like "ETH-USD" or "BTC-ETH".
        :returns: New TradingPair instance.
        :raises ValueError: If pair string format is invalid.
        """
        parts = pair_str.strip().split("-")
        if len(parts) != 2 or not parts[0].strip() or not parts[1].strip():
            raise ValueError(
                f"Invalid pair format '{pair_str}'. Expected 'BASE-QUOTE' (e.g., 'ETH-USD')"
            )
        return cls(parts[0], parts[1])
