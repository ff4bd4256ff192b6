"""
zkgate Chain
============
Registry access on Starknet:
- rpc: JSON-RPC transport and felt / u256 helpers
- reader: registry reads with response normalization
- wallet: wallet capability interface and network guard
- nullifier: reuse guard (fails closed)
- submitter: verify_and_register submission
- history: local verification history and on-chain enrichment
"""

from .rpc import StarknetRpcClient, get_selector_from_name, to_u256, from_u256
from .reader import ChainReader, RegistryClient, registry_client_factory
from .wallet import JsonRpcWallet, WalletHandle, WalletNetworkGuard, is_target_chain_id
from .nullifier import NullifierGuard
from .submitter import ProofSubmitter, explorer_tx_url
from .history import (
    CancellationToken,
    HistoryEnricher,
    HistoryStore,
    entry_from_submission,
    load_and_enrich,
)

__all__ = [
    "StarknetRpcClient",
    "get_selector_from_name",
    "to_u256",
    "from_u256",
    "ChainReader",
    "RegistryClient",
    "registry_client_factory",
    "JsonRpcWallet",
    "WalletHandle",
    "WalletNetworkGuard",
    "is_target_chain_id",
    "NullifierGuard",
    "ProofSubmitter",
    "explorer_tx_url",
    "CancellationToken",
    "HistoryEnricher",
    "HistoryStore",
    "entry_from_submission",
    "load_and_enrich",
]
