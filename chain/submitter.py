"""
Registry Submission
===================

[WRITE PATH] verify_and_register(circuit_id: u8, full_proof_with_hints: Span<felt252>)

Calldata sent through the wallet is [circuit_id, span_length, *span], hex
encoded. The span is the already-framed CalldataResult.calldata.
"""

import logging
from typing import Dict, List

from core.errors import StageError
from core.types import CalldataResult, SubmitResult
from chain.wallet import WalletHandle

logger = logging.getLogger(__name__)

ENTRY_POINT = "verify_and_register"


class ProofSubmitter:
    def __init__(self, registry_address: str, circuit_ids: Dict[str, int]):
        self.registry_address = registry_address
        self.circuit_ids = circuit_ids

    def circuit_id(self, calldata_result: CalldataResult) -> int:
        try:
            return self.circuit_ids[calldata_result.predicate_type.value]
        except KeyError:
            raise StageError(
                f"No circuit id configured for {calldata_result.predicate_type.value}",
                stage="submit",
            ) from None

    def build_calldata(self, calldata_result: CalldataResult) -> List[str]:
        circuit_id = self.circuit_id(calldata_result)
        return [hex(circuit_id)] + [hex(v) for v in calldata_result.calldata]

    async def submit(self, wallet: WalletHandle, calldata_result: CalldataResult) -> SubmitResult:
        circuit_id = self.circuit_id(calldata_result)
        calldata = self.build_calldata(calldata_result)

        tx_hash = await wallet.execute(self.registry_address, ENTRY_POINT, calldata)
        logger.info(f"[CHAIN] Submitted {calldata_result.predicate_type.value} proof: {tx_hash}")

        await wallet.wait_for_transaction(tx_hash)
        logger.info(f"[CHAIN] Transaction accepted: {tx_hash}")

        return SubmitResult(transaction_hash=tx_hash, circuit_id=circuit_id, success=True)


def explorer_tx_url(tx_hash: str, explorer_url: str) -> str:
    """Block explorer URL for a transaction ('' if no explorer is configured)."""
    if not explorer_url:
        return ""
    normalized = tx_hash.strip()
    if not normalized.startswith("0x"):
        normalized = "0x" + normalized
    return f"{explorer_url.rstrip('/')}/tx/{normalized}"
