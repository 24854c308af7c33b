#!/usr/bin/env python3
"""Aurora Price Feeder.

Fetches spot prices for the configured pairs, converts them to USD (through
USD pivot pairs where needed) and pushes the encoded batch to every
configured price oracle contract on a cron schedule.

Start with a JSON config file and credentials in the environment (or .env).
"""

import argparse
import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

from .src.FeederConfig import (
    DEFAULT_SCHEDULE,
    ConfigurationError,
    Secrets,
    load_config,
)
from .src.fetchers import get_available_fetchers
from .src.PriceFeeder import PriceFeeder
from .src.Scheduler import Scheduler, SchedulerState

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser.

    Defaults come from environment variables so the feeder can be configured
    entirely through a container environment.
    """
    available_sources = get_available_fetchers()

    parser = argparse.ArgumentParser(
        description="Aurora Price Feeder: scheduled USD price updates for oracle contracts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available quote sources:
  {', '.join(available_sources)}

Examples:
  # Run on the schedule from the config file
  python -m feeder.main --config config/feeder.json

  # Override pairs and run every minute
  python -m feeder.main --pairs ETH-USD,BTC-USD,STETH-ETH --schedule "* * * * *"

  # Health check and a single update, then exit
  python -m feeder.main --once

Environment variables (CLI args take precedence):
  CONFIG_FILE, PAIRS, SCHEDULE, SOURCE,
  COINMARKETCAP_API_KEY (or QUOTE_API_KEY), AURORA_PRIVATE_KEY (or SIGNING_KEY)
""",
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to the JSON configuration file (default: config/feeder.json)",
        default=os.environ.get("CONFIG_FILE") or "config/feeder.json",
    )

    parser.add_argument(
        "--pairs",
        type=str,
        help="Comma-separated trading pairs in resolution order (e.g., ETH-USD,BTC-ETH)",
        default=os.environ.get("PAIRS"),
    )

    parser.add_argument(
        "--schedule",
        type=str,
        help=f"Cron expression for updates (config default: '{DEFAULT_SCHEDULE}')",
        default=os.environ.get("SCHEDULE"),
    )

    parser.add_argument(
        "--source",
        type=str,
        help=f"Quote source. Available: {', '.join(available_sources)}",
        default=os.environ.get("SOURCE"),
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run the health check and one update, then exit",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the Aurora Price Feeder CLI."""
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.source and args.source.lower() not in get_available_fetchers():
        parser.error(
            f"Unknown source: {args.source}. "
            f"Available: {', '.join(get_available_fetchers())}"
        )

    secrets = Secrets.from_env()
    try:
        config = load_config(
            args.config,
            secrets,
            pairs=args.pairs,
            schedule=args.schedule,
            source=args.source,
        )
    except FileNotFoundError:
        parser.error(f"Configuration file not found: {args.config}")
    except ConfigurationError as e:
        parser.error(str(e))

    # Log configuration
    logger.info("=" * 60)
    logger.info("Aurora Price Feeder")
    logger.info("=" * 60)
    logger.info(f"Trading Pairs:     {', '.join(str(p) for p in config.pairs)}")
    logger.info(f"Source:            {config.source}")
    logger.info(f"Schedule:          {config.schedule}")
    logger.info(f"Oracles:           {', '.join(str(t) for t in config.targets)}")
    logger.info(f"Fetch Timeout:     {config.fetch_timeout}s")
    logger.info(f"Confirm Timeout:   {config.confirmation_timeout}s")
    logger.info(f"Quote API Key:     {'set' if secrets.quote_api_key else 'not set'}")
    logger.info("=" * 60)

    try:
        feeder = PriceFeeder(config, secrets)
        scheduler = Scheduler(feeder)
        if args.once:
            report = asyncio.run(_run_once(scheduler))
            if report is None or not report.success:
                sys.exit(1)
        else:
            asyncio.run(scheduler.run())
            if scheduler.state is not SchedulerState.RUNNING:
                sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


async def _run_once(scheduler: Scheduler):
    try:
        return await scheduler.run_once()
    finally:
        await scheduler.feeder.close()


if __name__ == "__main__":
    main()
