"""
zkgate Configuration
====================
Centralized configuration for proof generation, calldata preparation and
registry submission.
"""

from dataclasses import dataclass, field
from typing import Dict

import os

# ============================================================================
# Starknet Network Presets
# ============================================================================

NETWORKS: Dict[str, Dict[str, object]] = {
    "sepolia": {
        "name": "Starknet Sepolia",
        # Both encodings of the same network are accepted from wallets
        "chain_id": "0x534e5f5345504f4c4941",
        "chain_alias": "SN_SEPOLIA",
        "rpc_url": "https://free-rpc.nethermind.io/sepolia-juno/v0_8",
        "explorer_url": "https://sepolia.voyager.online",
        "registry_address": "0x054ca264033ae3b5874574c84de9c6086d94a66fb65445e455a8cef3137b7fab",
        "age_verifier_address": "0x9afed88f1d6bb0da51d98d29a3aaca31ed7ca99dc51a3df06931c543694f52",
        "membership_verifier_address": "0x483b48c3dbd32ebbc45b22a2a419c9a95c3999b103f5eb4a3048a0e8000d1da",
    },
    "mainnet": {
        "name": "Starknet Mainnet",
        "chain_id": "0x534e5f4d41494e",
        "chain_alias": "SN_MAIN",
        "rpc_url": "https://free-rpc.nethermind.io/mainnet-juno/v0_8",
        "explorer_url": "https://voyager.online",
        # NOTE: Fill in when the registry is deployed to mainnet
        "registry_address": "0x0",
        "age_verifier_address": "0x0",
        "membership_verifier_address": "0x0",
    },
}

# Selected network from environment (.env: ZKGATE_NETWORK)
ZKGATE_NETWORK: str = os.getenv("ZKGATE_NETWORK", "sepolia").lower()
if ZKGATE_NETWORK not in NETWORKS:
    ZKGATE_NETWORK = "sepolia"

_SELECTED = NETWORKS[ZKGATE_NETWORK]

# Convenience globals
RPC_URL: str = os.getenv("ZKGATE_RPC_URL", "") or _SELECTED["rpc_url"]  # type: ignore
CHAIN_ID: str = _SELECTED["chain_id"]  # type: ignore
CHAIN_ALIAS: str = _SELECTED["chain_alias"]  # type: ignore
EXPLORER_URL: str = _SELECTED["explorer_url"]  # type: ignore
REGISTRY_ADDRESS: str = os.getenv("ZKGATE_REGISTRY_ADDRESS", "") or _SELECTED["registry_address"]  # type: ignore

# Circuit ID mapping (registry constructor order: 0=age, 1=membership)
CIRCUIT_IDS: Dict[str, int] = {
    "age_verify": 0,
    "membership_proof": 1,
}

# Verifying key assets, relative to ProverConfig.vk_base_path
VK_PATHS: Dict[str, str] = {
    "age_verify": "vk/age_verify.vk",
    "membership_proof": "vk/membership_proof.vk",
}

try:
    RPC_TIMEOUT: float = float(os.getenv("ZKGATE_RPC_TIMEOUT", "") or 30.0)
except ValueError:
    RPC_TIMEOUT = 30.0


@dataclass
class NetworkConfig:
    """Target chain and registry contract."""

    name: str = _SELECTED["name"]  # type: ignore
    chain_id: str = CHAIN_ID
    chain_alias: str = CHAIN_ALIAS
    rpc_url: str = RPC_URL
    explorer_url: str = EXPLORER_URL
    registry_address: str = REGISTRY_ADDRESS
    age_verifier_address: str = _SELECTED["age_verifier_address"]  # type: ignore
    membership_verifier_address: str = _SELECTED["membership_verifier_address"]  # type: ignore

    # RPC request timeout (seconds)
    rpc_timeout: float = RPC_TIMEOUT


@dataclass
class ProverConfig:
    """Circuits, verifying keys and external proving tools."""

    # Directory holding one Noir project per circuit (age_verify/, membership_proof/)
    circuits_dir: str = os.getenv("ZKGATE_CIRCUITS_DIR", "circuits")

    # Local directory or http(s) base URL serving the verifying keys
    vk_base_path: str = os.getenv("ZKGATE_VK_BASE", "assets")
    vk_paths: Dict[str, str] = field(default_factory=lambda: dict(VK_PATHS))

    nargo_bin: str = os.getenv("ZKGATE_NARGO", "nargo")
    bb_bin: str = os.getenv("ZKGATE_BB", "bb")
    garaga_bin: str = os.getenv("ZKGATE_GARAGA", "garaga")

    # Circuit width of the membership allowed set
    max_allowed_set: int = 8


@dataclass
class SubmissionConfig:
    """Transaction submission settings."""

    circuit_ids: Dict[str, int] = field(default_factory=lambda: dict(CIRCUIT_IDS))

    # Max time to wait for a transaction to be accepted (seconds)
    tx_wait_timeout: float = 180.0

    # Receipt polling interval (seconds)
    poll_interval: float = 3.0


@dataclass
class HistoryConfig:
    """Local verification history."""

    database_path: str = os.getenv("ZKGATE_HISTORY_DB", "verifications.db")


@dataclass
class Config:
    """Main configuration object."""

    network: NetworkConfig = field(default_factory=NetworkConfig)
    prover: ProverConfig = field(default_factory=ProverConfig)
    submission: SubmissionConfig = field(default_factory=SubmissionConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)


# Global configuration instance
config = Config()


def get_current_network() -> Dict[str, object]:
    """Return the active network preset."""
    return {
        "key": ZKGATE_NETWORK,
        "name": _SELECTED["name"],
        "chain_id": CHAIN_ID,
        "chain_alias": CHAIN_ALIAS,
        "rpc_url": RPC_URL,
        "explorer_url": EXPLORER_URL,
        "registry_address": REGISTRY_ADDRESS,
    }
