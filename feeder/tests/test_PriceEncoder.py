"""Unit tests for PriceEncoder."""

import math

import pytest

from feeder.src.PriceEncoder import EncodedPrice, convert, encode, select_expo
from feeder.src.RateResolver import ResolvedPrice
from feeder.src.TradingPair import TradingPair


class TestConvert:
    """Test bucketed fixed-point conversion."""

    def test_small_price(self) -> None:
        """Prices below 10 use expo -8."""
        assert convert(5.0) == (500000000, -8)

    def test_medium_price(self) -> None:
        """Prices in [10, 10000) use expo -5."""
        assert convert(50.1234) == (5012340, -5)

    def test_large_price(self) -> None:
        """Prices of 10000 and above use expo -3."""
        assert convert(65432.1234567) == (65432123, -3)

    @pytest.mark.parametrize(
        "usd_price, expo",
        [
            (0.0, -8),
            (9.99999999, -8),
            (10.0, -5),
            (9999.99999, -5),
            (10000.0, -3),
            (1e12, -3),
        ],
    )
    def test_bucket_boundaries(self, usd_price: float, expo: int) -> None:
        """Lower bounds are inclusive, upper bounds exclusive."""
        assert select_expo(usd_price) == expo
        assert convert(usd_price)[1] == expo

    def test_rounds_half_up(self) -> None:
        """Scaled values ending in .5 round up, unlike round()."""
        # x.0625 * 1000 is exactly representable as n + 0.5
        assert convert(12345.0625) == (12345063, -3)
        assert convert(10000.0625) == (10000063, -3)
        assert round(12345.0625 * 1000) == 12345062

    def test_rounds_down_below_half(self) -> None:
        assert convert(1.000000004) == (100000000, -8)

    def test_mantissa_is_int(self) -> None:
        price, expo = convert(1234.5678)
        assert isinstance(price, int)
        assert isinstance(expo, int)

    def test_value_recoverable(self) -> None:
        """price * 10**expo should approximate the input."""
        for usd_price in (0.0123, 3.14159, 42.42, 2999.99, 67890.123):
            price, expo = convert(usd_price)
            assert price * 10.0**expo == pytest.approx(usd_price, rel=1e-6)

    @pytest.mark.parametrize("value", [-1.0, math.nan, math.inf])
    def test_rejects_invalid_prices(self, value: float) -> None:
        with pytest.raises(ValueError, match="Cannot encode price"):
            convert(value)


class TestEncode:
    """Test encoding of resolved prices."""

    def test_encode_resolved_price(self) -> None:
        pair = TradingPair("BTC", "ETH")
        resolved = ResolvedPrice(
            token_id=pair.token_id, symbol="BTC", usd_price=30000.0, pair=pair
        )
        encoded = encode(resolved, update_time=1700000000)

        assert encoded == EncodedPrice(
            token_id=pair.token_id,
            price=30000000,
            expo=-3,
            update_time=1700000000,
        )
        assert encoded.value == pytest.approx(30000.0)
