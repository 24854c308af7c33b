"""PriceEncoder: Fixed-point encoding of USD prices.

Prices are stored on-chain as an integer mantissa and a decimal exponent,
real value = price * 10**expo. The exponent is picked by magnitude:

    usd_price < 10          -> expo -8
    10 <= usd_price < 10000 -> expo -5
    usd_price >= 10000      -> expo -3

Readers of the oracle contract depend on these buckets and on half-up
rounding of the scaled value.

.. code-block:: python

    >>> convert(5.0)
    (500000000, -8)
    >>> convert(50.1234)
    (5012340, -5)
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .RateResolver import ResolvedPrice

# (upper bound exclusive, expo) in ascending order; the last bucket is open.
EXPO_BUCKETS: tuple[tuple[float, int], ...] = (
    (10.0, -8),
    (10_000.0, -5),
    (math.inf, -3),
)


@dataclass(frozen=True)
class EncodedPrice:
    """A USD price ready for ``updatePrices``.

    :ivar token_id: 32-byte token ID of the base symbol.
    :ivar price: Integer mantissa.
    :ivar expo: Decimal exponent.
    :ivar update_time: Unix timestamp shared by the whole batch.
    """

    token_id: bytes
    price: int
    expo: int
    update_time: int

    @property
    def value(self) -> float:
        """Approximate real value ``price * 10**expo``."""
        return self.price * 10.0**self.expo


def select_expo(usd_price: float) -> int:
    """Return the exponent bucket for a USD price."""
    for upper, expo in EXPO_BUCKETS:
        if usd_price < upper:
            return expo
    return EXPO_BUCKETS[-1][1]


def convert(usd_price: float) -> tuple[int, int]:
    """Convert a USD float price to an integer mantissa and exponent.

    :param usd_price: Price in USD.
    :returns: Tuple of (price, expo).
    :raises ValueError: If the price is negative, NaN or infinite.
    """
    if math.isnan(usd_price) or math.isinf(usd_price) or usd_price < 0:
        raise ValueError(f"Cannot encode price {usd_price!r}")

    expo = select_expo(usd_price)
    # Half-up rounding; Python's round() would round half to even.
    price = math.floor(usd_price * 10 ** (-expo) + 0.5)
    return int(price), expo


def encode(resolved: ResolvedPrice, update_time: int) -> EncodedPrice:
    """Encode a resolved USD price for submission.

    :param resolved: Resolved USD price of a base symbol.
    :param update_time: Unix timestamp of the tick.
    :returns: EncodedPrice for the resolved token ID.
    """
    price, expo = convert(resolved.usd_price)
    return EncodedPrice(
        token_id=resolved.token_id,
        price=price,
        expo=expo,
        update_time=update_time,
    )
