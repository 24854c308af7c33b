"""Unit tests for PriceFeeder ticks."""

import logging

import pytest

from feeder.src.fetchers import CoinMarketCapFetcher
from feeder.src.PriceFeeder import PriceFeeder
from feeder.src.TradingPair import compute_token_id
from feeder.src.UpdateDispatcher import UpdateDispatcher, UpdateStatus


@pytest.fixture()
def dispatcher(client_factory) -> UpdateDispatcher:
    return UpdateDispatcher(confirmation_timeout=5.0, client_factory=client_factory)


class TestPriceFeederInit:
    """Test feeder construction."""

    def test_builds_configured_fetcher(self, make_config, secrets) -> None:
        feeder = PriceFeeder(make_config(["ETH-USD"], fetch_timeout=3.0), secrets)

        assert isinstance(feeder.fetcher, CoinMarketCapFetcher)
        assert feeder.fetcher.api_key == "test-api-key"
        assert feeder.fetcher.timeout == 3.0
        assert feeder.dispatcher.confirmation_timeout == 60.0

    def test_unknown_source(self, make_config, secrets) -> None:
        with pytest.raises(ValueError, match="Unknown source: binance"):
            PriceFeeder(make_config(["ETH-USD"], source="binance"), secrets)


class TestTick:
    """Test the resolve, encode and dispatch pipeline."""

    @pytest.mark.asyncio
    async def test_tick_updates_every_target(
        self, make_config, secrets, make_fetcher, dispatcher, fake_clients
    ) -> None:
        fetcher = make_fetcher({"ETH-USD": 2000.0, "BTC-ETH": 15.0, "USDC-USD": 1.0001})
        feeder = PriceFeeder(
            make_config(["ETH-USD", "BTC-ETH", "USDC-USD"]),
            secrets,
            fetcher=fetcher,
            dispatcher=dispatcher,
        )

        report = await feeder.tick()

        assert report.success
        assert report.confirmed == 2
        assert [e.token_id for e in report.encoded] == [
            compute_token_id("ETH"),
            compute_token_id("BTC"),
            compute_token_id("USDC"),
        ]
        token_ids, prices, expos, update_time = fake_clients["aurora"].submissions[0]
        assert prices == [200000000, 30000000, 100010000]
        assert expos == [-5, -3, -8]
        assert update_time == report.update_time
        assert fake_clients["aurora-testnet"].submissions == fake_clients["aurora"].submissions

    @pytest.mark.asyncio
    async def test_partial_failure_still_dispatches(
        self, make_config, secrets, make_fetcher, dispatcher, fake_clients
    ) -> None:
        """Pairs that fail are reported; the rest are still sent."""
        fetcher = make_fetcher({"BTC-USD": 30000.0}, down={"ETH-USD"})
        feeder = PriceFeeder(
            make_config(["ETH-USD", "BTC-USD", "STETH-ETH"]),
            secrets,
            fetcher=fetcher,
            dispatcher=dispatcher,
        )

        report = await feeder.tick()

        assert [f.kind for f in report.resolution.failures] == [
            "NetworkError",
            "MissingUsdPivot",
        ]
        assert len(report.encoded) == 1
        assert report.success
        assert "pair_failures=2" in report.summary()

    @pytest.mark.asyncio
    async def test_nothing_resolved_skips_dispatch(
        self, make_config, secrets, make_fetcher, dispatcher, fake_clients, caplog
    ) -> None:
        """An all-pairs outage is logged as an error and nothing is sent."""
        fetcher = make_fetcher({}, down={"ETH-USD"})
        feeder = PriceFeeder(
            make_config(["ETH-USD"]), secrets, fetcher=fetcher, dispatcher=dispatcher
        )

        with caplog.at_level(logging.ERROR, logger="feeder.src.PriceFeeder"):
            report = await feeder.tick()

        assert report.encoded == []
        assert report.results == []
        assert not report.success
        assert fake_clients == {}
        assert any(
            r.levelno == logging.ERROR and "No prices resolved" in r.getMessage()
            for r in caplog.records
        )

    @pytest.mark.asyncio
    async def test_unencodable_price_is_dropped(
        self, make_config, secrets, make_fetcher, dispatcher, fake_clients
    ) -> None:
        """A negative price is reported as an encode failure and not sent."""
        fetcher = make_fetcher({"ETH-USD": 2000.0, "BAD-USD": -1.0})
        feeder = PriceFeeder(
            make_config(["ETH-USD", "BAD-USD"]),
            secrets,
            fetcher=fetcher,
            dispatcher=dispatcher,
        )

        report = await feeder.tick()

        assert [str(f.pair) for f in report.encode_failures] == ["BAD-USD"]
        assert fake_clients["aurora"].submissions[0][0] == [compute_token_id("ETH")]

    @pytest.mark.asyncio
    async def test_target_failure_is_reported(
        self, make_config, secrets, make_fetcher, make_client, fake_clients, dispatcher, targets
    ) -> None:
        fake_clients["aurora"] = make_client(targets[0], status=0)
        feeder = PriceFeeder(
            make_config(["ETH-USD"]),
            secrets,
            fetcher=make_fetcher({"ETH-USD": 2000.0}),
            dispatcher=dispatcher,
        )

        report = await feeder.tick()

        assert [r.status for r in report.results] == [
            UpdateStatus.FAILED,
            UpdateStatus.CONFIRMED,
        ]
        assert not report.success
        assert "confirmed=1/2" in report.summary()

    @pytest.mark.asyncio
    async def test_health_check_delegates_to_resolver(
        self, make_config, secrets, make_fetcher
    ) -> None:
        fetcher = make_fetcher({"ETH-USD": 2000.0, "BTC-ETH": 15.0})
        feeder = PriceFeeder(make_config(["BTC-ETH", "ETH-USD"]), secrets, fetcher=fetcher)

        await feeder.health_check()

        assert fetcher.calls == ["BTC-ETH", "ETH-USD"]
