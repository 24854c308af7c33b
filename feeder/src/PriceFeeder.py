"""PriceFeeder: Main orchestrator for the price update pipeline.

One tick runs the full pipeline:
    1. Resolve every configured pair into a USD price (RateResolver)
    2. Encode each price as (price, expo) (PriceEncoder)
    3. Submit the batch to every oracle target (UpdateDispatcher)

Per-pair and per-target failures are collected into a TickReport instead
of aborting the tick.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from .FeederConfig import FeederConfig, Secrets
from .fetchers import BaseFetcher, get_available_fetchers, get_fetcher
from .PriceEncoder import EncodedPrice, encode
from .RateResolver import PairFailure, RateResolver, ResolutionReport
from .UpdateDispatcher import UpdateDispatcher, UpdateResult, UpdateStatus

logger = logging.getLogger(__name__)


@dataclass
class TickReport:
    """Everything that happened during one tick.

    :ivar update_time: Unix timestamp shared by the batch.
    :ivar resolution: Resolved prices and per-pair failures.
    :ivar encoded: Encoded prices sent to the targets.
    :ivar encode_failures: Pairs whose price could not be encoded.
    :ivar results: One UpdateResult per target (empty if nothing was sent).
    """

    update_time: int
    resolution: ResolutionReport
    encoded: list[EncodedPrice] = field(default_factory=list)
    encode_failures: list[PairFailure] = field(default_factory=list)
    results: list[UpdateResult] = field(default_factory=list)

    @property
    def confirmed(self) -> int:
        """Number of targets that confirmed the update."""
        return sum(1 for r in self.results if r.status is UpdateStatus.CONFIRMED)

    @property
    def success(self) -> bool:
        """Check if a non-empty batch was confirmed on every target."""
        return bool(self.results) and self.confirmed == len(self.results)

    def summary(self) -> str:
        """One-line description for logs."""
        failures = len(self.resolution.failures) + len(self.encode_failures)
        return (
            f"update_time={self.update_time}, prices={len(self.encoded)}, "
            f"pair_failures={failures}, confirmed={self.confirmed}/{len(self.results)}"
        )


class PriceFeeder:
    """Runs health checks and price update ticks for a configuration.

    :ivar config: Immutable feeder configuration.
    :ivar fetcher: Quote fetcher for the configured source.
    :ivar resolver: Rate resolver using the fetcher.
    :ivar dispatcher: Update dispatcher for the configured targets.
    """

    def __init__(
        self,
        config: FeederConfig,
        secrets: Secrets,
        fetcher: BaseFetcher | None = None,
        dispatcher: UpdateDispatcher | None = None,
    ) -> None:
        """Initialize the feeder.

        :param config: Feeder configuration.
        :param secrets: Credentials; the quote API key is given to the fetcher.
        :param fetcher: Optional fetcher overriding ``config.source``.
        :param dispatcher: Optional dispatcher overriding the default one.
        :raises ValueError: If the configured source is unknown.
        """
        self.config = config

        if fetcher is None:
            available = get_available_fetchers()
            if config.source not in available:
                raise ValueError(f"Unknown source: {config.source}. Available: {available}")
            fetcher = get_fetcher(
                config.source,
                api_key=secrets.quote_api_key,
                timeout=config.fetch_timeout,
            )
        self.fetcher = fetcher
        self.resolver = RateResolver(fetcher)
        self.dispatcher = dispatcher or UpdateDispatcher(
            confirmation_timeout=config.confirmation_timeout
        )

        logger.info(
            f"PriceFeeder initialized: pairs={[str(p) for p in config.pairs]}, "
            f"source={self.fetcher.name}, "
            f"targets={[str(t) for t in config.targets]}"
        )

    async def health_check(self) -> None:
        """Verify all pairs are fetchable and every pivot is configured.

        :raises FetcherError: If any pair cannot be fetched.
        :raises MissingUsdPivot: If a pivot pair is missing.
        """
        await self.resolver.health_check(self.config.pairs)

    def _encode_all(self, report: TickReport) -> None:
        for resolved in report.resolution.resolved.values():
            try:
                report.encoded.append(encode(resolved, report.update_time))
            except ValueError as e:
                logger.error(f"Error converting price for pair: {resolved.pair}: {e}")
                report.encode_failures.append(PairFailure(resolved.pair, e))
                continue
            encoded = report.encoded[-1]
            logger.debug(
                f"Encoded {resolved.pair.usd_symbol}: {encoded.price}e{encoded.expo}"
            )

    async def tick(self) -> TickReport:
        """Run one fetch, resolve, encode and dispatch cycle.

        :returns: TickReport describing the outcome.
        """
        update_time = int(time.time())

        resolution = await self.resolver.resolve_all(self.config.pairs)
        report = TickReport(update_time=update_time, resolution=resolution)

        self._encode_all(report)

        if not report.encoded:
            logger.error("No prices resolved, skipping oracle updates")
            return report

        logger.info("Prices fetched and converted successfully")
        report.results = await self.dispatcher.dispatch(
            report.encoded, update_time, self.config.targets
        )
        return report

    async def close(self) -> None:
        """Release network resources."""
        await BaseFetcher.close_shared_client()
