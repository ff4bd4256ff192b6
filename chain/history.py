"""
Verification History
====================

[HISTORY] Local, caller-owned log of submitted proofs.

- entry_from_submission(): build a StoredVerification from a completed run
- HistoryStore: SQLite persistence (aiosqlite), one row per transaction
- HistoryEnricher: on-chain confirmation for each entry, fetched concurrently

[CANCELLATION] Enrichment takes an explicit CancellationToken. Once the owner
cancels it, results are discarded instead of applied or persisted.
"""

import asyncio
import json
import logging
import time
from dataclasses import replace
from typing import List, Optional

import aiosqlite

from core.types import CalldataResult, StoredVerification, SubmitResult
from chain.reader import ChainReader
from prover.signals import PublicOutputs

logger = logging.getLogger(__name__)


class CancellationToken:
    """Ownership flag for background work whose results may become stale."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


def entry_from_submission(
    submit_result: SubmitResult,
    calldata_result: CalldataResult,
    outputs: PublicOutputs,
    timestamp: Optional[int] = None,
) -> StoredVerification:
    return StoredVerification(
        tx_hash=submit_result.transaction_hash,
        nullifier=outputs.nullifier,
        predicate_type=calldata_result.predicate_type,
        timestamp=int(time.time() * 1000) if timestamp is None else timestamp,
        attribute_key=outputs.echoed_attribute_key,
        threshold=outputs.threshold_or_set_hash,
    )


# ============================================================================
# Persistence
# ============================================================================

class HistoryStore:
    """
    SQLite-backed history, newest entries first.

    Entries are stored in their serialized record form so the table never
    has to follow the optional enrichment fields.
    """

    def __init__(self, db_path: str = "verifications.db"):
        self.db_path = db_path
        self._db: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        self._db = await aiosqlite.connect(self.db_path)
        await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS verifications (
                tx_hash TEXT PRIMARY KEY,
                created_at INTEGER NOT NULL,
                record TEXT NOT NULL
            )
        """)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    async def add(self, entry: StoredVerification) -> bool:
        """Insert an entry. Returns False if the transaction is already recorded."""
        async with self._lock:
            try:
                await self._db.execute(
                    "INSERT INTO verifications (tx_hash, created_at, record) VALUES (?, ?, ?)",
                    (entry.tx_hash, entry.timestamp, json.dumps(entry.to_dict())),
                )
                await self._db.commit()
            except aiosqlite.IntegrityError:
                return False
        logger.info(f"[HISTORY] Recorded {entry.predicate_type.value} verification {entry.tx_hash}")
        return True

    async def list(self) -> List[StoredVerification]:
        cursor = await self._db.execute(
            "SELECT record FROM verifications ORDER BY created_at DESC, rowid DESC"
        )
        rows = await cursor.fetchall()
        return [StoredVerification.from_dict(json.loads(row[0])) for row in rows]

    async def replace(self, entries: List[StoredVerification]) -> None:
        async with self._lock:
            for entry in entries:
                await self._db.execute(
                    "UPDATE verifications SET record = ? WHERE tx_hash = ?",
                    (json.dumps(entry.to_dict()), entry.tx_hash),
                )
            await self._db.commit()

    async def clear(self) -> None:
        async with self._lock:
            await self._db.execute("DELETE FROM verifications")
            await self._db.commit()
        logger.info("[HISTORY] Cleared local history")


# ============================================================================
# Enrichment
# ============================================================================

class HistoryEnricher:
    def __init__(self, reader: ChainReader):
        self.reader = reader

    async def _enrich_one(self, entry: StoredVerification) -> StoredVerification:
        try:
            record = await self.reader.record(entry.nullifier)
        except Exception as e:
            logger.warning(f"[HISTORY] Could not confirm {entry.tx_hash}: {e}")
            return entry

        if not record.exists:
            return replace(entry, confirmed=False)
        return replace(
            entry,
            on_chain_timestamp=record.timestamp,
            on_chain_circuit_id=record.circuit_id,
            confirmed=True,
        )

    async def enrich(
        self,
        entries: List[StoredVerification],
        token: CancellationToken,
    ) -> Optional[List[StoredVerification]]:
        """Enriched copies of entries, or None if the token was cancelled meanwhile."""
        if token.cancelled:
            return None
        enriched = await asyncio.gather(*(self._enrich_one(entry) for entry in entries))
        if token.cancelled:
            logger.debug("[HISTORY] Enrichment cancelled; discarding results")
            return None
        return list(enriched)


async def load_and_enrich(
    store: HistoryStore,
    enricher: HistoryEnricher,
    token: CancellationToken,
) -> Optional[List[StoredVerification]]:
    entries = await store.list()
    enriched = await enricher.enrich(entries, token)
    if enriched is None:
        return None
    await store.replace(enriched)
    return enriched
