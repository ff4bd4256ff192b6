"""
Submission Tests
================

[CHAIN] chain/submitter.py and the JSON-RPC wallet bridge.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest


def calldata_result(predicate="age_verify"):
    from core.types import CalldataResult, PredicateType
    return CalldataResult(calldata=[2, 10, 20], predicate_type=PredicateType.parse(predicate), nullifier="0xa")


class TestProofSubmitter:
    """Test ProofSubmitter."""

    def test_build_calldata(self):
        """Circuit id precedes the framed span."""
        from config import CIRCUIT_IDS
        from chain.submitter import ProofSubmitter

        submitter = ProofSubmitter("0x54ca", dict(CIRCUIT_IDS))

        assert submitter.build_calldata(calldata_result("membership_proof")) == ["0x1", "0x2", "0xa", "0x14"]

    def test_unknown_circuit(self):
        """Missing circuit id mapping is a StageError."""
        from core.errors import StageError
        from chain.submitter import ProofSubmitter

        with pytest.raises(StageError):
            ProofSubmitter("0x54ca", {}).build_calldata(calldata_result())

    @pytest.mark.asyncio
    async def test_submit(self, fake_wallet):
        """Executes verify_and_register and waits for acceptance."""
        from config import CIRCUIT_IDS
        from chain.submitter import ProofSubmitter

        result = await ProofSubmitter("0x54ca", dict(CIRCUIT_IDS)).submit(fake_wallet, calldata_result())

        assert result.transaction_hash == "0xfeed"
        assert result.circuit_id == 0
        assert result.success is True
        assert fake_wallet.calls == ["execute", "wait_for_transaction"]
        assert fake_wallet.executed == [("0x54ca", "verify_and_register", ["0x0", "0x2", "0xa", "0x14"])]

    @pytest.mark.asyncio
    async def test_rejected_transaction_propagates(self, fake_wallet):
        """A reverted transaction is not reported as success."""
        from config import CIRCUIT_IDS
        from core.errors import StageError
        from chain.submitter import ProofSubmitter

        fake_wallet.wait_for_transaction = AsyncMock(side_effect=StageError("Transaction 0xfeed reverted: nullifier used"))

        with pytest.raises(StageError, match="reverted"):
            await ProofSubmitter("0x54ca", dict(CIRCUIT_IDS)).submit(fake_wallet, calldata_result())


class TestExplorerUrl:
    """Test explorer links."""

    def test_normalizes_hash(self):
        """Hash is trimmed and 0x-prefixed."""
        from chain.submitter import explorer_tx_url

        assert explorer_tx_url(" abc ", "https://sepolia.voyager.online/") == "https://sepolia.voyager.online/tx/0xabc"

    def test_no_explorer(self):
        """No explorer configured gives an empty link."""
        from chain.submitter import explorer_tx_url

        assert explorer_tx_url("0xabc", "") == ""


class TestJsonRpcWallet:
    """Test the wallet bridge."""

    def _wallet(self, bridge_responses, receipts):
        from chain.wallet import JsonRpcWallet

        node = MagicMock()
        node.timeout = 5
        node.chain_id = AsyncMock(return_value="0x534e5f5345504f4c4941")
        node.get_transaction_receipt = AsyncMock(side_effect=receipts)
        wallet = JsonRpcWallet("http://bridge", node, address="0xacc", wait_timeout=5, poll_interval=0)
        wallet.bridge = MagicMock()
        wallet.bridge.request = AsyncMock(side_effect=bridge_responses)
        return wallet

    @pytest.mark.asyncio
    async def test_request_chain_id(self):
        """Extension chain id comes from wallet_requestChainId."""
        wallet = self._wallet(["SN_SEPOLIA"], [])

        assert await wallet.request_chain_id() == "SN_SEPOLIA"
        wallet.bridge.request.assert_awaited_once_with("wallet_requestChainId")

    @pytest.mark.asyncio
    async def test_non_string_chain_id_is_none(self):
        """Unreadable extension chain id is None."""
        wallet = self._wallet([{"chainId": 1}], [])

        assert await wallet.request_chain_id() is None

    @pytest.mark.asyncio
    async def test_execute(self):
        """Invoke goes through wallet_addInvokeTransaction."""
        wallet = self._wallet([{"transaction_hash": "0xbeef"}], [])

        tx_hash = await wallet.execute("0x54ca", "verify_and_register", ["0x0", "0x1"])

        assert tx_hash == "0xbeef"
        method, params = wallet.bridge.request.await_args.args
        assert method == "wallet_addInvokeTransaction"
        assert params["calls"][0]["entry_point"] == "verify_and_register"
        assert params["calls"][0]["calldata"] == ["0x0", "0x1"]

    @pytest.mark.asyncio
    async def test_wait_polls_until_succeeded(self):
        """Unknown receipts are polled until execution succeeds."""
        wallet = self._wallet([], [None, {"execution_status": "SUCCEEDED", "finality_status": "ACCEPTED_ON_L2"}])

        receipt = await wallet.wait_for_transaction("0xbeef")

        assert receipt["execution_status"] == "SUCCEEDED"
        assert wallet.node.get_transaction_receipt.await_count == 2

    @pytest.mark.asyncio
    async def test_wait_reverted(self):
        """Reverted transactions raise StageError."""
        from core.errors import StageError

        wallet = self._wallet([], [{"execution_status": "REVERTED", "revert_reason": "nullifier already used"}])

        with pytest.raises(StageError, match="nullifier already used"):
            await wallet.wait_for_transaction("0xbeef")

    @pytest.mark.asyncio
    async def test_wait_survives_transient_receipt_error(self):
        """A failed receipt query after sending is retried, not raised."""
        from core.errors import ChainQueryError

        wallet = self._wallet([], [
            ChainQueryError("RPC starknet_getTransactionReceipt failed: HTTP 502"),
            {"execution_status": "SUCCEEDED", "finality_status": "ACCEPTED_ON_L2"},
        ])

        receipt = await wallet.wait_for_transaction("0xbeef")

        assert receipt["execution_status"] == "SUCCEEDED"
        assert wallet.node.get_transaction_receipt.await_count == 2
