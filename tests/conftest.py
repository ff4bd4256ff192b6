"""
zkgate Test Configuration
=========================

[QA] Central pytest configuration with fixtures for all test types:
- Unit tests: Isolated, no I/O, fast
- Integration tests: Real async I/O, temp databases
- E2E tests: Full proof lifecycle against fake collaborators

[FIXTURES]
- age_credential / membership_credential: well-formed credential records
- age_signals / membership_signals: v1 public-signal arrays
- fake_runtime / fake_backend / fake_encoder: proving collaborators
- fake_wallet: WalletHandle with scripted chain ids and receipts
- fake_registry: registry client with call counting
- sepolia: target NetworkConfig

Usage:
    pytest tests/unit/          # Fast unit tests
    pytest tests/e2e/           # Full lifecycle
"""

import sys
import shutil
import tempfile
import logging
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Sequence, Tuple
from unittest.mock import AsyncMock

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import NetworkConfig
from core.types import PredicateType
from prover.runtime import CalldataEncoder, CircuitRuntime, ProvingBackend, RawProof
from chain.wallet import WalletHandle


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests (I/O, slower)")
    config.addinivalue_line("markers", "e2e: End-to-end tests (full stack)")
    config.addinivalue_line("markers", "tools: Tests requiring nargo / bb / garaga on PATH")


def pytest_collection_modifyitems(config, items):
    """Auto-mark tests based on their path."""
    for item in items:
        if "/unit/" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in str(item.fspath):
            item.add_marker(pytest.mark.e2e)


# ============================================================================
# Logging Configuration
# ============================================================================

@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """Configure logging for tests."""
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


# ============================================================================
# Temporary Directory Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    temp_path = Path(tempfile.mkdtemp(prefix="zkgate_test_"))
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


# ============================================================================
# Credential Fixtures
# ============================================================================

ISSUER_X = "0x1c6e4b5e3f4d2a9b8c7d6e5f4a3b2c1d0e9f8a7b6c5d4e3f2a1b0c9d8e7f6a5b"
ISSUER_Y = "0x0a1b2c3d4e5f60718293a4b5c6d7e8f90a1b2c3d4e5f60718293a4b5c6d7e8f9"


def make_credential(credential_type: str, attribute_key: str, attribute_value: str) -> Dict[str, Any]:
    return {
        "subject_id": "0x7b",
        "issuer_id": ISSUER_X,
        "credential_type": credential_type,
        "attribute_key": attribute_key,
        "attribute_value": attribute_value,
        "issued_at": "0x65a0bc00",
        "expires_at": "0x6b6c8a00",
        "secret_salt": "0x3039",
        "signature": [i % 256 for i in range(7, 7 + 64)],
        "issuer_pub_key_x": ISSUER_X,
        "issuer_pub_key_y": ISSUER_Y,
    }


@pytest.fixture
def age_credential() -> Dict[str, Any]:
    """Age credential (attribute value 25)."""
    return make_credential("0x0", "0x1", "0x19")


@pytest.fixture
def membership_credential() -> Dict[str, Any]:
    """Membership credential for group 0x64."""
    return make_credential("0x1", "0x2", "0x64")


def _signal(value: int) -> str:
    return "0x" + format(value, "064x")


AGE_NULLIFIER = _signal(0xA9E)
MEMBERSHIP_NULLIFIER = _signal(0xB0B)
SET_HASH = _signal(0x5E7)


@pytest.fixture
def age_signals() -> List[str]:
    """v1 age_verify public signals."""
    return [
        ISSUER_X, ISSUER_Y, _signal(1_700_000_000), _signal(18), _signal(42),
        AGE_NULLIFIER, ISSUER_X, _signal(18),
    ]


@pytest.fixture
def membership_signals() -> List[str]:
    """v1 membership_proof public signals."""
    allowed = [_signal(0x64), _signal(0x65)] + [_signal(0)] * 6
    return [
        ISSUER_X, ISSUER_Y, _signal(1_700_000_000), _signal(42),
        *allowed,
        MEMBERSHIP_NULLIFIER, ISSUER_X, SET_HASH,
    ]


# ============================================================================
# Proving Collaborator Fakes
# ============================================================================

class FakeRuntime(CircuitRuntime):
    """Records executed inputs and returns a fixed witness."""

    def __init__(self):
        self.initialize_calls = 0
        self.executed: List[Dict[str, Any]] = []
        self.error: Optional[Exception] = None

    async def initialize(self) -> None:
        self.initialize_calls += 1

    async def execute(self, predicate_type: PredicateType, inputs: Dict[str, Any]) -> bytes:
        if self.error is not None:
            raise self.error
        self.executed.append(inputs)
        return b"witness"


class FakeBackend(ProvingBackend):
    """Returns scripted public signals per predicate type."""

    def __init__(self, signals: Dict[PredicateType, List[str]]):
        self.signals = signals
        self.error: Optional[Exception] = None
        self.valid = True

    async def prove(self, predicate_type: PredicateType, witness: bytes) -> RawProof:
        if self.error is not None:
            raise self.error
        return RawProof(proof=b"\x01proof", public_signals=list(self.signals[predicate_type]))

    async def verify(self, predicate_type: PredicateType, proof: bytes, public_signals: Sequence[str]) -> bool:
        if self.error is not None:
            raise self.error
        return self.valid


class FakeEncoder(CalldataEncoder):
    """Returns an unprefixed felt sequence and remembers its inputs."""

    def __init__(self, felts: Optional[List[int]] = None):
        self.felts = felts if felts is not None else [11, 22, 33]
        self.calls: List[Dict[str, bytes]] = []

    async def encode(self, proof: bytes, public_inputs: bytes, verifying_key: bytes) -> List[int]:
        self.calls.append({"proof": proof, "public_inputs": public_inputs, "vk": verifying_key})
        return list(self.felts)


@pytest.fixture
def fake_runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def fake_backend(age_signals, membership_signals) -> FakeBackend:
    return FakeBackend({PredicateType.AGE: age_signals, PredicateType.MEMBERSHIP: membership_signals})


@pytest.fixture
def fake_encoder() -> FakeEncoder:
    return FakeEncoder()


@pytest.fixture
def vk_dir(temp_dir: Path) -> Path:
    """Local verifying-key directory with both keys."""
    (temp_dir / "vk").mkdir()
    (temp_dir / "vk" / "age_verify.vk").write_bytes(b"age-vk")
    (temp_dir / "vk" / "membership_proof.vk").write_bytes(b"membership-vk")
    return temp_dir


# ============================================================================
# Chain Fakes
# ============================================================================

SEPOLIA_ID = "0x534e5f5345504f4c4941"
MAINNET_ID = "0x534e5f4d41494e"


@pytest.fixture
def sepolia() -> NetworkConfig:
    return NetworkConfig(
        name="Starknet Sepolia",
        chain_id=SEPOLIA_ID,
        chain_alias="SN_SEPOLIA",
        rpc_url="http://127.0.0.1:9545",
        explorer_url="https://sepolia.voyager.online",
        registry_address="0x54ca",
    )


class FakeWallet(WalletHandle):
    """
    Scripted wallet.

    extension_chain=None simulates an extension that cannot report its network.
    """

    def __init__(self, extension_chain: Optional[str] = SEPOLIA_ID, account_chain: str = SEPOLIA_ID):
        self.address = "0xacc"
        self.extension_chain = extension_chain
        self.account_chain = account_chain
        self.tx_hash = "0xfeed"
        self.calls: List[str] = []
        self.executed: List[Tuple[str, str, List[str]]] = []

    async def request_chain_id(self) -> Optional[str]:
        self.calls.append("request_chain_id")
        return self.extension_chain

    async def get_chain_id(self) -> str:
        self.calls.append("get_chain_id")
        return self.account_chain

    async def execute(self, contract_address: str, entry_point: str, calldata: Sequence[str]) -> str:
        self.calls.append("execute")
        self.executed.append((contract_address, entry_point, list(calldata)))
        return self.tx_hash

    async def wait_for_transaction(self, tx_hash: str) -> Dict[str, Any]:
        self.calls.append("wait_for_transaction")
        return {"transaction_hash": tx_hash, "execution_status": "SUCCEEDED"}


class FakeRegistryClient:
    """Registry client double answering from an in-memory record table."""

    def __init__(self):
        self.records: Dict[int, Dict[str, Any]] = {}
        self.is_nullifier_used = AsyncMock(side_effect=self._is_used)
        self.get_verification_record = AsyncMock(side_effect=self._get_record)

    def register(self, nullifier: int, timestamp: int = 1_700_000_100, circuit_id: int = 0) -> None:
        self.records[nullifier] = {
            "nullifier": {"low": nullifier & ((1 << 128) - 1), "high": nullifier >> 128},
            "attribute_key": {"low": 1, "high": 0},
            "threshold_or_set_hash": {"low": 18, "high": 0},
            "timestamp": timestamp,
            "circuit_id": circuit_id,
        }

    async def _is_used(self, nullifier: int) -> bool:
        return nullifier in self.records

    async def _get_record(self, nullifier: int) -> Dict[str, Any]:
        return self.records[nullifier]


@pytest.fixture
def fake_wallet() -> FakeWallet:
    return FakeWallet()


@pytest.fixture
def fake_registry() -> FakeRegistryClient:
    return FakeRegistryClient()


@pytest.fixture
def make_wallet():
    """Factory for wallets on arbitrary chains."""
    return FakeWallet
