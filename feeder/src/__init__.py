"""
Aurora Price Feeder - Scheduled USD price updates for on-chain oracles

This module provides the price update pipeline:
- TradingPair: "BASE-QUOTE" pair and token ID derivation
- RateResolver: Order-dependent USD resolution through pivot pairs
- PriceEncoder: Fixed-point (price, expo) encoding
- UpdateDispatcher: Per-target updatePrices submission with timeout
- PriceFeeder: Tick orchestrator producing TickReports
- Scheduler: Health-gated cron driver
- fetchers: Pluggable quote source implementations
"""

from .FeederConfig import (
    ConfigurationError,
    FeederConfig,
    Secrets,
    UpdateTarget,
    load_config,
)
from .PriceEncoder import EncodedPrice, convert
from .PriceFeeder import PriceFeeder, TickReport
from .RateResolver import MissingUsdPivot, RateResolver, ResolutionReport, ResolvedPrice
from .Scheduler import Scheduler, SchedulerState
from .TradingPair import TradingPair, compute_token_id
from .UpdateDispatcher import (
    SubmissionFailed,
    SubmissionTimeout,
    UpdateDispatcher,
    UpdateResult,
    UpdateStatus,
)

__all__ = [
    "ConfigurationError",
    "EncodedPrice",
    "FeederConfig",
    "MissingUsdPivot",
    "PriceFeeder",
    "RateResolver",
    "ResolutionReport",
    "ResolvedPrice",
    "Scheduler",
    "SchedulerState",
    "Secrets",
    "SubmissionFailed",
    "SubmissionTimeout",
    "TickReport",
    "TradingPair",
    "UpdateDispatcher",
    "UpdateResult",
    "UpdateStatus",
    "UpdateTarget",
    "compute_token_id",
    "convert",
    "load_config",
]
