"""UpdateDispatcher: Submit encoded prices to every oracle target.

Each target gets one ``updatePrices`` call carrying the whole batch. Targets
are handled one after another and independently: a failed or timed-out
update is recorded and the next target is still attempted. There is no
rollback across targets.

The confirmation wait runs in a worker thread and is raced against
``confirmation_timeout``. When the timeout wins, the wait is abandoned, not
cancelled; the transaction may still be mined later.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Sequence

from web3.exceptions import TimeExhausted

from .FeederConfig import DEFAULT_CONFIRMATION_TIMEOUT, UpdateTarget
from .OracleClient import OracleClient
from .PriceEncoder import EncodedPrice

logger = logging.getLogger(__name__)


class SubmissionError(Exception):
    """Base exception for oracle update submission errors."""

    pass


class SubmissionFailed(SubmissionError):
    """Raised when sending the update fails or the transaction reverts."""

    pass


class SubmissionTimeout(SubmissionError):
    """Raised when the update is not confirmed within the timeout."""

    pass


class UpdateStatus(str, Enum):
    """Outcome of an update on one target."""

    CONFIRMED = "confirmed"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass(frozen=True)
class UpdateResult:
    """Result of submitting the batch to one target.

    :ivar target: Target the update was sent to.
    :ivar status: Confirmed, timed out or failed.
    :ivar tx_hash: Transaction hash, if the transaction was sent.
    :ivar block_number: Block of the confirmed transaction.
    :ivar reason: Failure description for non-confirmed updates.
    """

    target: UpdateTarget
    status: UpdateStatus
    tx_hash: str | None = None
    block_number: int | None = None
    reason: str | None = None

    @property
    def success(self) -> bool:
        """Check if the update was confirmed."""
        return self.status is UpdateStatus.CONFIRMED


ClientFactory = Callable[[UpdateTarget], OracleClient]


class UpdateDispatcher:
    """Sends price batches to oracle targets with a confirmation timeout.

    :ivar confirmation_timeout: Seconds to wait for each receipt.
    :ivar client_factory: Builds an OracleClient for a target.
    """

    def __init__(
        self,
        confirmation_timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
        client_factory: ClientFactory | None = None,
    ) -> None:
        """Initialize the dispatcher.

        :param confirmation_timeout: Seconds to wait for each receipt (default: 60).
        :param client_factory: Optional factory for OracleClient instances.
        """
        self.confirmation_timeout = confirmation_timeout
        self.client_factory: ClientFactory = client_factory or OracleClient
        self._clients: dict[UpdateTarget, OracleClient] = {}

    def _get_client(self, target: UpdateTarget) -> OracleClient:
        client = self._clients.get(target)
        if client is None:
            client = self.client_factory(target)
            self._clients[target] = client
        return client

    async def _submit(
        self,
        target: UpdateTarget,
        encoded: Sequence[EncodedPrice],
        update_time: int,
    ) -> UpdateResult:
        """Submit the batch to one target and wait for confirmation.

        :raises SubmissionFailed: If sending fails or the transaction reverts.
        :raises SubmissionTimeout: If the receipt does not arrive in time.
        """
        token_ids = [e.token_id for e in encoded]
        prices = [e.price for e in encoded]
        expos = [e.expo for e in encoded]

        try:
            client = self._get_client(target)
            tx_hash = await asyncio.to_thread(
                client.submit_update, token_ids, prices, expos, update_time
            )
        except Exception as e:
            raise SubmissionFailed(f"Transaction failed: {e}") from e

        tx_hex = "0x" + bytes(tx_hash).hex()
        logger.info(f"[{target.name}] Submitted update {tx_hex}, waiting for confirmation")

        try:
            receipt = await asyncio.wait_for(
                asyncio.to_thread(
                    client.wait_for_receipt, tx_hash, self.confirmation_timeout
                ),
                timeout=self.confirmation_timeout,
            )
        except (asyncio.TimeoutError, TimeExhausted) as e:
            raise SubmissionTimeout(
                f"Transaction {tx_hex} not confirmed within "
                f"{self.confirmation_timeout:g}s"
            ) from e
        except Exception as e:
            raise SubmissionFailed(f"Waiting for {tx_hex} failed: {e}") from e

        if receipt["status"] != 1:
            raise SubmissionFailed(
                f"Transaction {tx_hex} reverted in block {receipt['blockNumber']}"
            )

        return UpdateResult(
            target=target,
            status=UpdateStatus.CONFIRMED,
            tx_hash=tx_hex,
            block_number=receipt["blockNumber"],
        )

    async def dispatch_one(
        self,
        target: UpdateTarget,
        encoded: Sequence[EncodedPrice],
        update_time: int,
    ) -> UpdateResult:
        """Submit the batch to a single target, capturing any error.

        :param target: Oracle target.
        :param encoded: Encoded prices of the tick.
        :param update_time: Unix timestamp shared by the batch.
        :returns: UpdateResult for the target.
        """
        logger.info(
            f"[{target.name}] Updating {len(encoded)} prices on "
            f"{target.contract_address} at time {update_time}"
        )
        logger.debug(f"[{target.name}] tokenIds: {['0x' + e.token_id.hex() for e in encoded]}")
        logger.debug(f"[{target.name}] prices: {[e.price for e in encoded]}")
        logger.debug(f"[{target.name}] expos: {[e.expo for e in encoded]}")

        try:
            result = await self._submit(target, encoded, update_time)
        except SubmissionTimeout as e:
            logger.error(f"[{target.name}] Transaction timed out: {e}")
            return UpdateResult(target=target, status=UpdateStatus.TIMED_OUT, reason=str(e))
        except SubmissionFailed as e:
            logger.error(f"[{target.name}] Transaction failed: {e}")
            return UpdateResult(target=target, status=UpdateStatus.FAILED, reason=str(e))

        logger.info(
            f"[{target.name}] Transaction confirmed in block {result.block_number}"
        )
        return result

    async def dispatch(
        self,
        encoded: Sequence[EncodedPrice],
        update_time: int,
        targets: Sequence[UpdateTarget],
    ) -> list[UpdateResult]:
        """Submit the batch to every target, one at a time.

        :param encoded: Encoded prices of the tick.
        :param update_time: Unix timestamp shared by the batch.
        :param targets: Oracle targets in configuration order.
        :returns: One UpdateResult per target, in target order.
        """
        results: list[UpdateResult] = []
        for target in targets:
            results.append(await self.dispatch_one(target, encoded, update_time))
        return results
