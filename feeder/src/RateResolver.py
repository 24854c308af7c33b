"""RateResolver: Resolve configured pairs into USD prices.

Resolution is a fold over the ordered pair list. The accumulator carries the
tick's USD price cache, so a non-USD pair can only be priced if its quote
currency's USD pair appeared (and succeeded) earlier in the list:

    ETH-USD, BTC-ETH  ->  ETH, BTC = BTC/ETH * ETH/USD
    BTC-ETH, ETH-USD  ->  ETH only (BTC-ETH skipped, pivot not cached yet)

A failing pair never aborts the tick; it is recorded in the report and the
fold continues with the next pair.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Iterable, Mapping, Sequence

from .FeederConfig import ConfigurationError
from .fetchers import BaseFetcher, FetcherError
from .TradingPair import USD, TradingPair

logger = logging.getLogger(__name__)


class MissingUsdPivot(ConfigurationError):
    """Raised when a non-USD pair has no USD pair for its quote currency.

    :ivar pair: The pair that cannot be converted to USD.
    :ivar missing: The missing pivot pair, e.g. "ETH-USD".
    """

    def __init__(self, pair: TradingPair):
        self.pair = pair
        self.missing = f"{pair.quote}-{USD}"
        super().__init__(
            f"Missing corresponding USD pair for {pair.quote} in pair {pair}: "
            f"{self.missing} not found"
        )


@dataclass(frozen=True)
class ResolvedPrice:
    """USD price of a base symbol.

    :ivar token_id: 32-byte token ID of ``<base>-USD``.
    :ivar symbol: Base currency symbol.
    :ivar usd_price: Price in USD.
    :ivar pair: Configured pair the price was derived from.
    """

    token_id: bytes
    symbol: str
    usd_price: float
    pair: TradingPair


@dataclass(frozen=True)
class PairFailure:
    """A pair that could not be resolved during a tick.

    :ivar pair: The failed pair.
    :ivar error: Exception describing the failure.
    """

    pair: TradingPair
    error: Exception

    @property
    def kind(self) -> str:
        """Name of the error type (e.g., "QuoteUnavailable")."""
        return type(self.error).__name__


@dataclass(frozen=True)
class ResolutionState:
    """Accumulator threaded through the resolution fold.

    :ivar usd_cache: USD price per symbol, from USD-quoted pairs only.
    :ivar resolved: Resolved prices keyed by token ID, in resolution order.
    :ivar failures: Pairs that were skipped or failed.
    """

    usd_cache: Mapping[str, float] = field(default_factory=dict)
    resolved: Mapping[bytes, ResolvedPrice] = field(default_factory=dict)
    failures: tuple[PairFailure, ...] = ()

    def with_price(self, resolved: ResolvedPrice, cache_as_pivot: bool) -> ResolutionState:
        """Return a new state including a resolved price."""
        usd_cache = dict(self.usd_cache)
        if cache_as_pivot:
            usd_cache[resolved.symbol] = resolved.usd_price
        prices = dict(self.resolved)
        # Same base symbol from another pair: the later pair wins
        prices.pop(resolved.token_id, None)
        prices[resolved.token_id] = resolved
        return replace(self, usd_cache=usd_cache, resolved=prices)

    def with_failure(self, failure: PairFailure) -> ResolutionState:
        """Return a new state including a failed pair."""
        return replace(self, failures=self.failures + (failure,))


@dataclass(frozen=True)
class ResolutionReport:
    """Outcome of resolving one tick's pairs.

    :ivar resolved: Resolved prices keyed by token ID.
    :ivar usd_cache: Final USD pivot cache of the tick.
    :ivar failures: Pairs that were skipped or failed.
    """

    resolved: Mapping[bytes, ResolvedPrice]
    usd_cache: Mapping[str, float]
    failures: tuple[PairFailure, ...]

    @property
    def prices(self) -> dict[bytes, float]:
        """Mapping of token ID to USD price."""
        return {token_id: r.usd_price for token_id, r in self.resolved.items()}

    @classmethod
    def from_state(cls, state: ResolutionState) -> ResolutionReport:
        return cls(
            resolved=MappingProxyType(dict(state.resolved)),
            usd_cache=MappingProxyType(dict(state.usd_cache)),
            failures=state.failures,
        )


class RateResolver:
    """Resolves trading pairs into USD prices using a single quote source.

    :ivar fetcher: Quote fetcher used for every pair.
    """

    def __init__(self, fetcher: BaseFetcher) -> None:
        """Initialize the resolver.

        :param fetcher: Quote fetcher instance.
        """
        self.fetcher = fetcher

    async def resolve_step(
        self, state: ResolutionState, pair: TradingPair
    ) -> ResolutionState:
        """Resolve one pair against the accumulated state.

        :param state: State after all previous pairs.
        :param pair: Next pair in configuration order.
        :returns: New state including this pair's price or failure.
        """
        if pair.is_usd:
            try:
                quote = await self.fetcher.fetch_quote(pair)
            except FetcherError as e:
                logger.error(f"Error fetching price for pair {pair}: {e}")
                return state.with_failure(PairFailure(pair, e))
            usd_price = quote.price
            cache_as_pivot = True
        else:
            pivot = state.usd_cache.get(pair.quote)
            if not pivot:
                logger.warning(f"USD price for {pair.quote} not found. Skipping {pair}.")
                return state.with_failure(PairFailure(pair, MissingUsdPivot(pair)))
            try:
                quote = await self.fetcher.fetch_quote(pair)
            except FetcherError as e:
                logger.error(f"Error fetching price for pair {pair}: {e}")
                return state.with_failure(PairFailure(pair, e))
            usd_price = quote.price * pivot
            cache_as_pivot = False

        logger.info(f"Fetched USD price for {pair}: {usd_price}")
        resolved = ResolvedPrice(
            token_id=pair.token_id,
            symbol=pair.base,
            usd_price=usd_price,
            pair=pair,
        )
        logger.debug(f"Token ID for {pair.usd_symbol}: 0x{resolved.token_id.hex()}")
        return state.with_price(resolved, cache_as_pivot)

    async def fold(
        self, pairs: Iterable[TradingPair], initial: ResolutionState | None = None
    ) -> ResolutionState:
        """Fold resolve_step over pairs strictly in order.

        :param pairs: Pairs in configuration order.
        :param initial: Starting state (default: empty cache).
        :returns: Final state.
        """
        state = initial if initial is not None else ResolutionState()
        for pair in pairs:
            state = await self.resolve_step(state, pair)
        return state

    async def resolve_all(self, pairs: Sequence[TradingPair]) -> ResolutionReport:
        """Resolve every pair into a USD price with a fresh cache.

        :param pairs: Pairs in configuration order.
        :returns: ResolutionReport with prices and per-pair failures.
        """
        state = await self.fold(pairs)
        report = ResolutionReport.from_state(state)
        logger.info(
            f"Resolved {len(report.resolved)}/{len(pairs)} pairs"
            + (f", {len(report.failures)} failed or skipped" if report.failures else "")
        )
        return report

    async def health_check(self, pairs: Sequence[TradingPair]) -> None:
        """Verify every pair can be fetched and has a USD pivot.

        :param pairs: Pairs in configuration order.
        :raises ValueError: If no pairs are configured.
        :raises FetcherError: If any pair cannot be fetched.
        :raises MissingUsdPivot: If a non-USD pair has no USD pair for its quote.
        """
        if not pairs:
            raise ValueError("At least one trading pair must be specified")

        for pair in pairs:
            try:
                await self.fetcher.fetch_quote(pair)
            except FetcherError as e:
                logger.error(f"Health check failed for pair: {pair}: {e}")
                raise
            logger.info(f"Health check passed for pair: {pair}")

        usd_bases = {pair.base for pair in pairs if pair.is_usd}
        for pair in pairs:
            if not pair.is_usd and pair.quote not in usd_bases:
                raise MissingUsdPivot(pair)
