"""OracleClient: Web3 connection to one price oracle contract."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Sequence

from eth_account import Account
from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes
from web3 import Web3
from web3.middleware import SignAndSendRawMiddlewareBuilder
from web3.types import TxReceipt

from .FeederConfig import UpdateTarget

logger = logging.getLogger(__name__)

DEFAULT_ABI_PATH = Path(__file__).parent / "abi" / "PriceOracle.json"


class OracleClient:
    """Signs and submits ``updatePrices`` calls to an oracle contract.

    :ivar target: Oracle target this client talks to.
    :ivar w3: Web3 instance with a signing middleware for the updater key.
    :ivar account: Local account of the authorized updater.
    :ivar contract: Oracle contract instance.
    """

    def __init__(
        self,
        target: UpdateTarget,
        abi: list | None = None,
        w3: Web3 | None = None,
        request_timeout: float = 30.0,
    ) -> None:
        """Initialize the client.

        :param target: Oracle target (endpoint, address, signing key).
        :param abi: Contract ABI. Loads the bundled ABI if not provided.
        :param w3: Optional Web3 instance. Creates one for the target if not provided.
        :param request_timeout: JSON-RPC request timeout in seconds.
        :raises ValueError: If the signing key is invalid.
        """
        self.target = target
        if w3 is None:
            w3 = Web3(
                Web3.HTTPProvider(
                    target.rpc_url, request_kwargs={"timeout": request_timeout}
                )
            )
        self.w3 = w3

        self.account: LocalAccount = Account.from_key(target.signing_key)
        self.w3.middleware_onion.add(SignAndSendRawMiddlewareBuilder.build(self.account))
        self.w3.eth.default_account = self.account.address

        self.contract = self.w3.eth.contract(
            address=target.contract_address,
            abi=abi if abi is not None else self.load_abi(),
        )

    @staticmethod
    def load_abi(path: str | Path | None = None) -> list:
        """Load the oracle contract ABI.

        :param path: ABI JSON file. Either a bare ABI list or a build artifact
            with an ``abi`` key. Defaults to the bundled ABI.
        :returns: ABI list.
        """
        with open(path or DEFAULT_ABI_PATH, "r") as file:
            contract_data = json.load(file)

        if isinstance(contract_data, dict):
            return contract_data["abi"]
        return contract_data

    def submit_update(
        self,
        token_ids: Sequence[bytes],
        prices: Sequence[int],
        expos: Sequence[int],
        update_time: int,
    ) -> HexBytes:
        """Sign and send one ``updatePrices`` transaction.

        :param token_ids: 32-byte token IDs.
        :param prices: Integer mantissas, aligned with token_ids.
        :param expos: Decimal exponents, aligned with token_ids.
        :param update_time: Unix timestamp of the batch.
        :returns: Transaction hash.
        """
        tx_params = self.contract.functions.updatePrices(
            list(token_ids), list(prices), list(expos), update_time
        ).build_transaction(
            {"from": self.account.address, "gasPrice": self.w3.eth.gas_price}
        )
        tx_hash = self.w3.eth.send_transaction(tx_params)
        logger.debug(f"[{self.target.name}] Sent transaction 0x{bytes(tx_hash).hex()}")
        return tx_hash

    def wait_for_receipt(self, tx_hash: HexBytes, timeout: float) -> TxReceipt:
        """Block until the transaction is mined.

        :param tx_hash: Transaction hash returned by submit_update.
        :param timeout: Seconds to wait before web3 gives up.
        :returns: Transaction receipt.
        :raises web3.exceptions.TimeExhausted: If not mined within timeout.
        """
        return self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
