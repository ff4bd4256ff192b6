"""
zkgate Prover
=============
Credential -> witness -> proof -> calldata:
- credentials: credential loading and validation
- witness: circuit input mapping
- signals: versioned public-signal layouts
- runtime: circuit runtime / proving backend / calldata encoder adapters
- calldata: verifying-key loading and calldata framing
- orchestrator: proof lifecycle state machine (import from prover.orchestrator)
"""

from .credentials import CredentialValidator, load_credential, validate_credential
from .witness import WitnessMapper, pad_allowed_set
from .signals import (
    AgePublicOutputs,
    MembershipPublicOutputs,
    PublicSignalLayout,
    flatten_public_signals,
    parse_public_outputs,
    split_public_signals,
)
from .runtime import (
    BarretenbergBackend,
    CalldataEncoder,
    CircuitRuntime,
    GaragaCalldataEncoder,
    NargoRuntime,
    ProvingBackend,
    RawProof,
)
from .calldata import AssetLoader, CalldataBuilder, frame_span

__all__ = [
    "CredentialValidator",
    "load_credential",
    "validate_credential",
    "WitnessMapper",
    "pad_allowed_set",
    "AgePublicOutputs",
    "MembershipPublicOutputs",
    "PublicSignalLayout",
    "flatten_public_signals",
    "parse_public_outputs",
    "split_public_signals",
    "BarretenbergBackend",
    "CalldataEncoder",
    "CircuitRuntime",
    "GaragaCalldataEncoder",
    "NargoRuntime",
    "ProvingBackend",
    "RawProof",
    "AssetLoader",
    "CalldataBuilder",
    "frame_span",
]
