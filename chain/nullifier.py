"""
Nullifier Guard
===============

[REUSE] A nullifier can be registered once. The guard is consulted twice:
speculatively when calldata is previewed, and again right before submission,
since another submission may land while the preview is open.

[FAIL CLOSED] An inconclusive check is reported as ERROR, never as UNUSED.
"""

import logging
from typing import Union

from core.types import ReuseCheck, ReuseStatus
from chain.reader import ChainReader

logger = logging.getLogger(__name__)


class NullifierGuard:
    def __init__(self, reader: ChainReader):
        self.reader = reader

    async def check_reuse(self, nullifier: Union[int, str]) -> ReuseCheck:
        try:
            record = await self.reader.record(nullifier)
        except Exception as e:
            logger.warning(f"[NULLIFIER] Reuse check failed for {nullifier}: {e}")
            return ReuseCheck(status=ReuseStatus.ERROR, error=str(e) or type(e).__name__)

        if record.exists:
            logger.info(
                f"[NULLIFIER] {nullifier} already registered "
                f"(circuit {record.circuit_id}, timestamp {record.timestamp})"
            )
            return ReuseCheck(status=ReuseStatus.USED, record=record)

        logger.debug(f"[NULLIFIER] {nullifier} unused")
        return ReuseCheck(status=ReuseStatus.UNUSED)
