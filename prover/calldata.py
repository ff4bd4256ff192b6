"""
Calldata Builder
================

[PIPELINE] proof + public signals -> verifier call arguments:

1. Flatten public signals into 32-byte big-endian chunks
2. Fetch the verifying key for the predicate type (local dir or http(s))
3. Encode (proof, public inputs, vk) with the calldata encoder
4. Frame the result as a length-prefixed span, exactly once

[FRAMING] Encoder versions disagree on whether the returned sequence already
starts with its span length. If the first element equals the number of
remaining elements the sequence is taken as prefixed, otherwise the length is
prepended. This is a compatibility shim; check it against the encoder version
actually deployed.
"""

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import aiohttp

from core.errors import ResourceError, SignalLayoutError, StageError, ZkGateError
from core.types import CalldataResult, PredicateType, ProofResult
from prover.runtime import CalldataEncoder
from prover.signals import flatten_public_signals, parse_public_outputs

logger = logging.getLogger(__name__)


class AssetLoader:
    """Fetches binary assets relative to a base path or URL."""

    def __init__(self, base_path: str, timeout: float = 30.0):
        self.base_path = base_path
        self.timeout = timeout

    @property
    def is_remote(self) -> bool:
        return self.base_path.startswith(("http://", "https://"))

    def resolve(self, relative_path: str) -> str:
        if self.is_remote:
            return self.base_path.rstrip("/") + "/" + relative_path.lstrip("/")
        return str(Path(self.base_path) / relative_path.lstrip("/"))

    async def fetch(self, relative_path: str) -> bytes:
        location = self.resolve(relative_path)
        if not self.is_remote:
            path = Path(location)
            if not path.is_file():
                raise ResourceError(relative_path, 404)
            return path.read_bytes()

        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(location, timeout=aiohttp.ClientTimeout(total=self.timeout)) as resp:
                    if resp.status != 200:
                        raise ResourceError(relative_path, resp.status)
                    return await resp.read()
        # No HTTP status for transport failures
        except asyncio.TimeoutError as e:
            raise ResourceError(relative_path, 0, f"timed out after {self.timeout}s") from e
        except aiohttp.ClientError as e:
            raise ResourceError(relative_path, 0, str(e)) from e


def frame_span(values: Sequence[int]) -> List[int]:
    """Return values as a length-prefixed span, prefixing only when needed."""
    values = list(values)
    if values and values[0] == len(values) - 1:
        return values
    return [len(values)] + values


class CalldataBuilder:
    """Translates a ProofResult into verifier calldata."""

    def __init__(
        self,
        encoder: CalldataEncoder,
        assets: AssetLoader,
        vk_paths: Dict[str, str],
    ):
        self.encoder = encoder
        self.assets = assets
        self.vk_paths = vk_paths
        self._vk_cache: Dict[PredicateType, bytes] = {}

    async def load_verifying_key(self, predicate_type: PredicateType) -> bytes:
        cached = self._vk_cache.get(predicate_type)
        if cached is not None:
            return cached
        path = self.vk_paths.get(predicate_type.value)
        if not path:
            raise ResourceError(f"<no vk path for {predicate_type.value}>", 404)
        vk = await self.assets.fetch(path)
        self._vk_cache[predicate_type] = vk
        logger.debug(f"[CALLDATA] Loaded verifying key {path} ({len(vk)} bytes)")
        return vk

    async def build(self, proof_result: ProofResult, predicate_type: PredicateType) -> CalldataResult:
        public_inputs = flatten_public_signals(proof_result.public_signals)
        vk = await self.load_verifying_key(predicate_type)

        try:
            encoded = await self.encoder.encode(proof_result.proof, public_inputs, vk)
        except ZkGateError:
            raise
        except Exception as e:
            raise StageError(f"Calldata encoding failed: {e}", stage="calldata") from e

        calldata = frame_span(encoded)
        logger.info(
            f"[CALLDATA] {predicate_type.value}: {len(proof_result.public_signals)} public signals "
            f"-> {len(calldata)} felts"
        )
        return CalldataResult(
            calldata=calldata,
            predicate_type=predicate_type,
            nullifier=extract_nullifier(proof_result.public_signals, predicate_type),
        )


def extract_nullifier(signals: Sequence[str], predicate_type: PredicateType) -> Optional[str]:
    try:
        return parse_public_outputs(signals, predicate_type).nullifier
    except SignalLayoutError as e:
        logger.warning(f"[CALLDATA] Nullifier unavailable: {e}")
        return None
