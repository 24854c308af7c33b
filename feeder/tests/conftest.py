"""Shared test fixtures: in-memory quote source and oracle clients."""

from __future__ import annotations

import threading
from typing import Callable

import pytest

from feeder.src.FeederConfig import FeederConfig, Secrets, UpdateTarget
from feeder.src.fetchers import BaseFetcher, NetworkError, QuoteUnavailable
from feeder.src.TradingPair import TradingPair

# Well-known development account key (hardhat / anvil account #0)
TEST_SIGNING_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"


class FakeFetcher(BaseFetcher):
    """Quote source serving prices from a dict.

    Pairs listed in ``down`` raise NetworkError, unknown pairs raise
    QuoteUnavailable. Every request is recorded in ``calls``.
    """

    name = "fake"

    def __init__(self, prices: dict[str, float], down: set[str] | None = None):
        super().__init__()
        self.prices = prices
        self.down = down or set()
        self.calls: list[str] = []

    async def fetch(self, base: str, quote: str) -> float:
        key = f"{base}-{quote}"
        self.calls.append(key)
        if key in self.down:
            raise NetworkError(f"connection refused for {key}")
        if key not in self.prices:
            raise QuoteUnavailable(f"Pair not found: {key}")
        return self.prices[key]


class FakeOracleClient:
    """Stand-in for OracleClient recording submitted batches.

    :ivar receipt_delay: Seconds wait_for_receipt blocks before returning.
    :ivar fail_submit: Exception raised by submit_update, if any.
    :ivar status: Receipt status returned (1 = success, 0 = reverted).
    """

    def __init__(
        self,
        target: UpdateTarget,
        receipt_delay: float = 0.0,
        fail_submit: Exception | None = None,
        status: int = 1,
        block_number: int = 1234,
    ):
        self.target = target
        self.receipt_delay = receipt_delay
        self.fail_submit = fail_submit
        self.status = status
        self.block_number = block_number
        self.submissions: list[tuple[list[bytes], list[int], list[int], int]] = []
        self.released = threading.Event()

    def submit_update(self, token_ids, prices, expos, update_time) -> bytes:
        if self.fail_submit is not None:
            raise self.fail_submit
        self.submissions.append((list(token_ids), list(prices), list(expos), update_time))
        return bytes.fromhex("ab" * 32)

    def wait_for_receipt(self, tx_hash: bytes, timeout: float) -> dict:
        if self.receipt_delay:
            # Returns early once the test releases it
            self.released.wait(self.receipt_delay)
        return {"status": self.status, "blockNumber": self.block_number}


@pytest.fixture()
def signing_key() -> str:
    return TEST_SIGNING_KEY


@pytest.fixture()
def secrets() -> Secrets:
    return Secrets(quote_api_key="test-api-key", signing_key=TEST_SIGNING_KEY)


@pytest.fixture()
def targets() -> tuple[UpdateTarget, ...]:
    return (
        UpdateTarget(
            name="aurora",
            rpc_url="https://mainnet.aurora.example",
            contract_address="0x5FbDB2315678afecb367f032d93F642f64180aa3",
            signing_key=TEST_SIGNING_KEY,
        ),
        UpdateTarget(
            name="aurora-testnet",
            rpc_url="https://testnet.aurora.example",
            contract_address="0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512",
            signing_key=TEST_SIGNING_KEY,
        ),
    )


@pytest.fixture()
def make_config(targets) -> Callable[..., FeederConfig]:
    def _make(pairs: list[str], **kwargs) -> FeederConfig:
        return FeederConfig(
            pairs=tuple(TradingPair.from_string(p) for p in pairs),
            targets=kwargs.pop("targets", targets),
            **kwargs,
        )

    return _make


@pytest.fixture()
def make_fetcher() -> Callable[..., FakeFetcher]:
    return FakeFetcher


@pytest.fixture()
def fake_clients():
    """Fake clients keyed by target name, created on demand."""
    clients: dict[str, FakeOracleClient] = {}
    yield clients
    # Unblock receipt waits abandoned by timed-out dispatches
    for client in clients.values():
        client.released.set()


@pytest.fixture()
def client_factory(fake_clients) -> Callable[[UpdateTarget], FakeOracleClient]:
    def _factory(target: UpdateTarget) -> FakeOracleClient:
        if target.name not in fake_clients:
            fake_clients[target.name] = FakeOracleClient(target)
        return fake_clients[target.name]

    return _factory


@pytest.fixture()
def make_client() -> Callable[..., FakeOracleClient]:
    return FakeOracleClient
