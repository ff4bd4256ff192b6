"""
Proving Collaborators
=====================

[INTERFACES] The circuit-execution runtime, the proving backend and the
calldata encoder are external systems. The orchestrator only sees the
abstract interfaces below.

[ADAPTERS] Subprocess adapters for the Noir / Barretenberg / Garaga CLIs:
- NargoRuntime:          Prover.toml + `nargo execute`       -> witness bytes
- BarretenbergBackend:   `bb prove` / `bb verify` (UltraHonk, keccak oracle)
- GaragaCalldataEncoder: `garaga calldata --format array`    -> felt list

[USAGE]
    runtime = NargoRuntime("circuits")
    await runtime.initialize()
    witness = await runtime.execute(PredicateType.AGE, inputs)
    proof, signals = await BarretenbergBackend("circuits").prove(PredicateType.AGE, witness)
"""

import asyncio
import json
import logging
import re
import shutil
import tempfile
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from core.types import PredicateType
from prover.signals import flatten_public_signals, split_public_signals

logger = logging.getLogger(__name__)


@dataclass
class RawProof:
    """Proving backend output before timing is attached."""
    proof: bytes
    public_signals: List[str]


class CircuitRuntime(ABC):
    """Executes a circuit against an input map to obtain a witness."""

    @abstractmethod
    async def initialize(self) -> None:
        """Load the runtime. Must be a no-op once loaded."""

    @abstractmethod
    async def execute(self, predicate_type: PredicateType, inputs: Dict[str, Any]) -> bytes:
        """Return the compressed witness."""


class ProvingBackend(ABC):
    """Produces and checks proofs for a witness."""

    @abstractmethod
    async def prove(self, predicate_type: PredicateType, witness: bytes) -> RawProof:
        ...

    @abstractmethod
    async def verify(self, predicate_type: PredicateType, proof: bytes, public_signals: Sequence[str]) -> bool:
        ...


class CalldataEncoder(ABC):
    """Encodes a proof into verifier call arguments."""

    @abstractmethod
    async def encode(self, proof: bytes, public_inputs: bytes, verifying_key: bytes) -> List[int]:
        ...


# ============================================================================
# Subprocess helpers
# ============================================================================

class ToolError(Exception):
    """External CLI exited with an error."""


async def run_tool(*cmd: str, cwd: Optional[Path] = None) -> str:
    """Run an external tool, return stdout, raise ToolError on failure."""
    logger.debug("[PROOF] Running %s", " ".join(cmd[:3]))
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(cwd) if cwd else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise ToolError(f"{cmd[0]} not found") from e

    stdout, stderr = await process.communicate()
    if process.returncode != 0:
        detail = (stderr or stdout).decode(errors="replace").strip()
        raise ToolError(f"{Path(cmd[0]).name} exited with code {process.returncode}: {detail[-500:]}")
    return stdout.decode(errors="replace")


def _toml_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_toml_value(v) for v in value) + "]"
    return json.dumps(str(value))


def format_prover_toml(inputs: Dict[str, Any]) -> str:
    """Render an input map as Prover.toml (flat keys, string scalars, arrays)."""
    return "".join(f"{key} = {_toml_value(value)}\n" for key, value in inputs.items())


# ============================================================================
# Noir / Barretenberg / Garaga adapters
# ============================================================================

class NargoRuntime(CircuitRuntime):
    """
    Circuit execution with `nargo`.

    Each predicate type is a Noir project under circuits_dir named after the
    circuit (age_verify/, membership_proof/).
    """

    def __init__(self, circuits_dir: str, nargo_bin: str = "nargo"):
        self.circuits_dir = Path(circuits_dir)
        self.nargo_bin = nargo_bin
        self._initialized = False
        self._lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        if self._initialized:
            return
        async with self._lock:
            if self._initialized:
                return
            version = await run_tool(self.nargo_bin, "--version")
            self._initialized = True
            logger.info(f"[PROOF] Circuit runtime ready: {version.splitlines()[0] if version else self.nargo_bin}")

    async def execute(self, predicate_type: PredicateType, inputs: Dict[str, Any]) -> bytes:
        project = self.circuits_dir / predicate_type.value
        # nargo resolves --prover-name relative to the program directory
        run_id = uuid.uuid4().hex[:12]
        prover_name = f"Prover_{run_id}"
        witness_name = f"witness_{run_id}"
        prover_file = project / f"{prover_name}.toml"
        witness_path = project / "target" / f"{witness_name}.gz"

        prover_file.write_text(format_prover_toml(inputs), encoding="utf-8")
        try:
            await run_tool(
                self.nargo_bin, "execute", witness_name,
                "--program-dir", str(project),
                "--prover-name", prover_name,
            )
            return witness_path.read_bytes()
        finally:
            prover_file.unlink(missing_ok=True)
            witness_path.unlink(missing_ok=True)


class BarretenbergBackend(ProvingBackend):
    """UltraHonk proving with the `bb` CLI (keccak transcript, Garaga compatible)."""

    # Flags selecting the keccak ZK transcript expected by the on-chain verifier
    DEFAULT_FLAGS = ("--scheme", "ultra_honk", "--oracle_hash", "keccak", "--zk")

    def __init__(self, circuits_dir: str, bb_bin: str = "bb", flags: Sequence[str] = DEFAULT_FLAGS):
        self.circuits_dir = Path(circuits_dir)
        self.bb_bin = bb_bin
        self.flags = tuple(flags)

    def _bytecode(self, predicate_type: PredicateType) -> Path:
        name = predicate_type.value
        return self.circuits_dir / name / "target" / f"{name}.json"

    def _vk(self, predicate_type: PredicateType) -> Path:
        return self.circuits_dir / predicate_type.value / "target" / "vk"

    async def prove(self, predicate_type: PredicateType, witness: bytes) -> RawProof:
        with tempfile.TemporaryDirectory(prefix="zkgate_") as tmp:
            out = Path(tmp)
            (out / "witness.gz").write_bytes(witness)
            await run_tool(
                self.bb_bin, "prove",
                *self.flags,
                "-b", str(self._bytecode(predicate_type)),
                "-w", str(out / "witness.gz"),
                "-o", str(out),
            )
            proof = (out / "proof").read_bytes()
            signals = split_public_signals((out / "public_inputs").read_bytes())
        return RawProof(proof=proof, public_signals=signals)

    async def verify(self, predicate_type: PredicateType, proof: bytes, public_signals: Sequence[str]) -> bool:
        with tempfile.TemporaryDirectory(prefix="zkgate_") as tmp:
            out = Path(tmp)
            (out / "proof").write_bytes(proof)
            (out / "public_inputs").write_bytes(flatten_public_signals(public_signals))
            try:
                await run_tool(
                    self.bb_bin, "verify",
                    *self.flags,
                    "-k", str(self._vk(predicate_type)),
                    "-p", str(out / "proof"),
                    "-i", str(out / "public_inputs"),
                )
            except ToolError as e:
                logger.info(f"[PROOF] Local verification rejected proof: {e}")
                return False
        return True


_INT_PATTERN = re.compile(r"0x[0-9a-fA-F]+|\d+")


class GaragaCalldataEncoder(CalldataEncoder):
    """Full verifier calldata via `garaga calldata` (ultra_keccak_zk_honk)."""

    def __init__(self, garaga_bin: str = "garaga", system: str = "ultra_keccak_zk_honk"):
        self.garaga_bin = garaga_bin
        self.system = system

    async def encode(self, proof: bytes, public_inputs: bytes, verifying_key: bytes) -> List[int]:
        with tempfile.TemporaryDirectory(prefix="zkgate_") as tmp:
            out = Path(tmp)
            files: Tuple[Tuple[str, bytes], ...] = (
                ("proof", proof),
                ("public_inputs", public_inputs),
                ("vk", verifying_key),
            )
            for name, blob in files:
                (out / name).write_bytes(blob)
            stdout = await run_tool(
                self.garaga_bin, "calldata",
                "--system", self.system,
                "--vk", str(out / "vk"),
                "--proof", str(out / "proof"),
                "--public-inputs", str(out / "public_inputs"),
                "--format", "array",
            )
        return [int(token, 16) if token.startswith("0x") else int(token) for token in _INT_PATTERN.findall(stdout)]


def tools_available(*binaries: str) -> bool:
    return all(shutil.which(b) for b in binaries)
