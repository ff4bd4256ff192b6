"""
Wallet Capability & Network Guard
=================================

[WALLET] Explicit capability interface for a connected account:
- request_chain_id()      extension-level network (may be unavailable)
- get_chain_id()          account/session-level network
- execute(...)            send an invoke transaction, returns its hash
- wait_for_transaction()  block until accepted or rejected

[GUARD] WalletNetworkGuard checks both network identifiers against the
configured target before any transaction is built. The target is accepted in
either encoding (hex chain id or its short-string alias, e.g. SN_SEPOLIA).
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence

from config import NetworkConfig
from core.errors import ChainQueryError, NetworkMismatchError, StageError
from chain.rpc import StarknetRpcClient

logger = logging.getLogger(__name__)

ACCEPTED_STATUSES = ("ACCEPTED_ON_L2", "ACCEPTED_ON_L1")


class WalletHandle(ABC):
    """Connected account as seen by the submission pipeline."""

    address: str = ""

    @abstractmethod
    async def request_chain_id(self) -> Optional[str]:
        """Extension-level chain id, or None if the extension cannot report it."""

    @abstractmethod
    async def get_chain_id(self) -> str:
        """Chain id the account session is bound to."""

    @abstractmethod
    async def execute(self, contract_address: str, entry_point: str, calldata: Sequence[str]) -> str:
        """Send one invoke transaction and return its hash."""

    @abstractmethod
    async def wait_for_transaction(self, tx_hash: str) -> Dict[str, Any]:
        """Wait until the transaction is accepted; raise if it is rejected."""


class JsonRpcWallet(WalletHandle):
    """
    Wallet reached through a JSON-RPC bridge speaking the Starknet wallet API.

    Chain id and receipts come from the node RPC; signing and sending is left
    to the bridge (wallet_addInvokeTransaction).
    """

    def __init__(
        self,
        bridge_url: str,
        node: StarknetRpcClient,
        address: str = "",
        wait_timeout: float = 180.0,
        poll_interval: float = 3.0,
    ):
        self.bridge = StarknetRpcClient(bridge_url, timeout=node.timeout)
        self.node = node
        self.address = address
        self.wait_timeout = wait_timeout
        self.poll_interval = poll_interval

    async def request_chain_id(self) -> Optional[str]:
        result = await self.bridge.request("wallet_requestChainId")
        return result if isinstance(result, str) else None

    async def get_chain_id(self) -> str:
        return await self.node.chain_id()

    async def execute(self, contract_address: str, entry_point: str, calldata: Sequence[str]) -> str:
        params = {
            "calls": [
                {
                    "contract_address": contract_address,
                    "entry_point": entry_point,
                    "calldata": list(calldata),
                }
            ]
        }
        result = await self.bridge.request("wallet_addInvokeTransaction", params)
        if not isinstance(result, dict) or "transaction_hash" not in result:
            raise StageError(f"Wallet returned no transaction hash for {entry_point}", stage="submit")
        tx_hash = result["transaction_hash"]
        logger.info(f"[WALLET] Sent {entry_point} to {contract_address}: {tx_hash}")
        return tx_hash

    async def wait_for_transaction(self, tx_hash: str) -> Dict[str, Any]:
        deadline = time.monotonic() + self.wait_timeout
        while True:
            try:
                receipt = await self.node.get_transaction_receipt(tx_hash)
            except ChainQueryError as e:
                # Transaction is already sent; poll until the deadline
                logger.warning(f"[WALLET] Receipt query for {tx_hash} failed, retrying: {e}")
                receipt = None
            if receipt is not None:
                status = receipt.get("execution_status")
                if status == "REVERTED":
                    reason = receipt.get("revert_reason", "no reason given")
                    raise StageError(f"Transaction {tx_hash} reverted: {reason}", stage="submit")
                if status == "SUCCEEDED" or receipt.get("finality_status") in ACCEPTED_STATUSES:
                    return receipt

            if time.monotonic() >= deadline:
                raise StageError(
                    f"Transaction {tx_hash} not accepted within {self.wait_timeout:.0f}s",
                    stage="submit",
                )
            await asyncio.sleep(self.poll_interval)


# ============================================================================
# Network Guard
# ============================================================================

def is_target_chain_id(value: Any, network: NetworkConfig) -> bool:
    """True if value names the target chain in either accepted encoding."""
    if not isinstance(value, str):
        return False
    text = value.strip()
    if text == network.chain_alias:
        return True
    try:
        return int(text, 16) == int(network.chain_id, 16)
    except ValueError:
        return False


class WalletNetworkGuard:
    """Refuses submission unless the wallet is on the configured network."""

    def __init__(self, network: NetworkConfig):
        self.network = network

    @property
    def expected(self) -> str:
        return f"{self.network.name} ({self.network.chain_alias})"

    async def assert_correct_network(self, wallet: WalletHandle) -> None:
        # Extension and session networks can diverge; check both
        try:
            extension_chain = await wallet.request_chain_id()
        except (ChainQueryError, NotImplementedError) as e:
            logger.debug(f"[WALLET] Extension chain id unavailable: {e}")
            extension_chain = None

        if extension_chain is None:
            logger.debug("[WALLET] Skipping extension network check")
        elif not is_target_chain_id(extension_chain, self.network):
            logger.warning(f"[WALLET] Extension on {extension_chain}, expected {self.network.chain_alias}")
            raise NetworkMismatchError(extension_chain, self.expected, source="wallet")

        account_chain = await wallet.get_chain_id()
        if not is_target_chain_id(account_chain, self.network):
            logger.warning(f"[WALLET] Account on {account_chain}, expected {self.network.chain_alias}")
            raise NetworkMismatchError(str(account_chain), self.expected, source="account")

        logger.debug(f"[WALLET] Network check passed ({self.network.chain_alias})")
