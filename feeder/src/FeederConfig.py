"""FeederConfig: Immutable feeder configuration and secrets.

The configuration is loaded once at startup from a JSON file and passed
explicitly to every component. Secrets come from the environment and travel
in their own object so they never end up in logs or reprs.

Example config file:

.. code-block:: json

    {
        "pairs": ["ETH-USD", "BTC-USD", "STETH-ETH"],
        "schedule": "*/5 * * * *",
        "source": "coinmarketcap",
        "oracles": [
            {"name": "aurora", "rpcUrl": "https://mainnet.aurora.dev", "address": "0x..."}
        ]
    }
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from croniter import croniter
from web3 import Web3

from .TradingPair import TradingPair

logger = logging.getLogger(__name__)

DEFAULT_SCHEDULE = "*/5 * * * *"
DEFAULT_SOURCE = "coinmarketcap"
DEFAULT_FETCH_TIMEOUT = 10.0
# Confirmation wait per destination before an update is reported as timed out.
DEFAULT_CONFIRMATION_TIMEOUT = 60.0

# Environment variables holding credentials, in lookup order.
QUOTE_API_KEY_VARS = ("COINMARKETCAP_API_KEY", "QUOTE_API_KEY")
SIGNING_KEY_VARS = ("AURORA_PRIVATE_KEY", "SIGNING_KEY")


class ConfigurationError(Exception):
    """Raised when the feeder configuration is invalid."""

    pass


@dataclass(frozen=True)
class Secrets:
    """Credentials used by the feeder.

    :ivar quote_api_key: API key for the quote source.
    :ivar signing_key: Hex private key used to sign oracle updates.
    """

    quote_api_key: str | None = field(default=None, repr=False)
    signing_key: str | None = field(default=None, repr=False)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Secrets:
        """Read secrets from environment variables.

        :param environ: Mapping to read from (default: ``os.environ``).
        :returns: Secrets with any values found.
        """
        env = os.environ if environ is None else environ

        def first(names: tuple[str, ...]) -> str | None:
            for name in names:
                value = env.get(name)
                if value:
                    return value.strip()
            return None

        return cls(
            quote_api_key=first(QUOTE_API_KEY_VARS),
            signing_key=first(SIGNING_KEY_VARS),
        )


@dataclass(frozen=True)
class UpdateTarget:
    """A downstream oracle contract receiving price updates.

    :ivar name: Human readable label used in logs.
    :ivar rpc_url: JSON-RPC endpoint of the chain hosting the contract.
    :ivar contract_address: Checksummed oracle contract address.
    :ivar signing_key: Private key of the authorized updater.
    """

    name: str
    rpc_url: str
    contract_address: str
    signing_key: str = field(default="", repr=False)

    def __str__(self) -> str:
        return f"{self.name} ({self.contract_address})"


@dataclass(frozen=True)
class FeederConfig:
    """Static configuration, immutable for the process lifetime.

    :ivar pairs: Ordered trading pairs; order drives pivot resolution.
    :ivar targets: Oracle contracts to update.
    :ivar schedule: Five-field cron expression for ticks.
    :ivar source: Name of the registered quote fetcher.
    :ivar fetch_timeout: HTTP timeout for quote requests in seconds.
    :ivar confirmation_timeout: Seconds to wait for each update's receipt.
    """

    pairs: tuple[TradingPair, ...]
    targets: tuple[UpdateTarget, ...]
    schedule: str = DEFAULT_SCHEDULE
    source: str = DEFAULT_SOURCE
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    confirmation_timeout: float = DEFAULT_CONFIRMATION_TIMEOUT


def parse_pairs(raw: list[str] | str) -> tuple[TradingPair, ...]:
    """Parse pairs from a list or a comma-separated string, keeping order.

    :param raw: ``["ETH-USD", "BTC-ETH"]`` or ``"ETH-USD,BTC-ETH"``.
    :returns: Tuple of TradingPair in input order.
    :raises ConfigurationError: If a pair is malformed or none are given.
    """
    if isinstance(raw, str):
        raw = [p for p in raw.split(",") if p.strip()]
    if not isinstance(raw, list):
        raise ConfigurationError(f"'pairs' must be a list, got {type(raw).__name__}")

    pairs: list[TradingPair] = []
    for item in raw:
        try:
            pairs.append(TradingPair.from_string(str(item)))
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    if not pairs:
        raise ConfigurationError("At least one trading pair must be specified")
    return tuple(pairs)


def validate_schedule(schedule: str) -> str:
    """Check that a schedule is a valid five-field cron expression.

    :param schedule: Cron expression (minute hour day month weekday).
    :returns: The normalized expression.
    :raises ConfigurationError: If the expression is invalid.
    """
    schedule = schedule.strip()
    if len(schedule.split()) != 5 or not croniter.is_valid(schedule):
        raise ConfigurationError(f"Invalid cron schedule '{schedule}'")
    return schedule


def _build_targets(
    raw: list[dict[str, Any]], signing_key: str
) -> tuple[UpdateTarget, ...]:
    if not isinstance(raw, list) or not raw:
        raise ConfigurationError("At least one oracle target must be configured")

    targets: list[UpdateTarget] = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Oracle entry #{i} must be an object")
        rpc_url = entry.get("rpcUrl") or entry.get("rpc_url")
        address = entry.get("address") or entry.get("contract_address")
        if not rpc_url or not address:
            raise ConfigurationError(
                f"Oracle entry #{i} needs both 'rpcUrl' and 'address'"
            )
        if not Web3.is_address(address):
            raise ConfigurationError(f"Oracle entry #{i} has invalid address {address!r}")

        targets.append(
            UpdateTarget(
                name=str(entry.get("name") or f"oracle-{i}"),
                rpc_url=str(rpc_url),
                contract_address=Web3.to_checksum_address(address),
                signing_key=signing_key,
            )
        )
    return tuple(targets)


def build_config(
    raw: dict[str, Any],
    secrets: Secrets,
    *,
    pairs: str | None = None,
    schedule: str | None = None,
    source: str | None = None,
) -> FeederConfig:
    """Build a validated FeederConfig from parsed JSON.

    Keyword arguments override the corresponding file values.

    :param raw: Parsed configuration document.
    :param secrets: Credentials; the signing key is attached to every target.
    :returns: Immutable FeederConfig.
    :raises ConfigurationError: If any value is missing or invalid.
    """
    if not isinstance(raw, dict):
        raise ConfigurationError("Configuration root must be an object")
    if not secrets.signing_key:
        raise ConfigurationError(
            f"No signing key configured (set one of {', '.join(SIGNING_KEY_VARS)})"
        )

    try:
        fetch_timeout = float(raw.get("fetchTimeout", DEFAULT_FETCH_TIMEOUT))
        confirmation_timeout = float(
            raw.get("confirmationTimeout", DEFAULT_CONFIRMATION_TIMEOUT)
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid timeout value: {e}") from e
    if fetch_timeout <= 0 or confirmation_timeout <= 0:
        raise ConfigurationError("Timeouts must be positive")

    return FeederConfig(
        pairs=parse_pairs(pairs if pairs is not None else raw.get("pairs", [])),
        targets=_build_targets(raw.get("oracles", []), secrets.signing_key),
        schedule=validate_schedule(schedule or raw.get("schedule") or DEFAULT_SCHEDULE),
        source=(source or raw.get("source") or DEFAULT_SOURCE).lower(),
        fetch_timeout=fetch_timeout,
        confirmation_timeout=confirmation_timeout,
    )


def load_config(path: str | Path, secrets: Secrets, **overrides: Any) -> FeederConfig:
    """Load and validate the feeder configuration file.

    :param path: Path to the JSON configuration file.
    :param secrets: Credentials read from the environment.
    :param overrides: ``pairs``, ``schedule`` or ``source`` overrides.
    :returns: Immutable FeederConfig.
    :raises FileNotFoundError: If the file does not exist.
    :raises ConfigurationError: If the file is not valid JSON or invalid.
    """
    path = Path(path)
    with open(path, "r") as file:
        try:
            raw = json.load(file)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"{path}: invalid JSON: {e}") from e

    config = build_config(raw, secrets, **overrides)
    logger.debug(f"Loaded configuration from {path}: {config}")
    return config
