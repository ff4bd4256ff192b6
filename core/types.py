"""
Data Model
==========

[CREDENTIALS] Issuer-signed attestations and proof parameters.
[PROOFS] Ephemeral proof / calldata / submission results.
[REGISTRY] On-chain verification records and the caller-owned history entry.
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Union


# BN254 scalar field modulus (Noir native field)
FIELD_MODULUS = 21888242871839275222246405745257275088548364400416034343698204186575808495617

SIGNATURE_LENGTH = 64


class CredentialType(IntEnum):
    AGE = 0
    MEMBERSHIP = 1


class AttributeKey(IntEnum):
    AGE = 1
    MEMBERSHIP_GROUP = 2


class PredicateType(Enum):
    """
    Statement being proven. The value is the circuit name.
    """
    AGE = "age_verify"
    MEMBERSHIP = "membership_proof"

    @classmethod
    def parse(cls, value: Union["PredicateType", str]) -> "PredicateType":
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if text in (member.value, member.name.lower()):
                return member
        raise ValueError(f"Unknown predicate type: {value}")

    @property
    def credential_type(self) -> CredentialType:
        return CredentialType.AGE if self is PredicateType.AGE else CredentialType.MEMBERSHIP

    @property
    def attribute_key(self) -> AttributeKey:
        return AttributeKey.AGE if self is PredicateType.AGE else AttributeKey.MEMBERSHIP_GROUP

    @property
    def label(self) -> str:
        return "Age" if self is PredicateType.AGE else "Membership"


# Private scalar fields passed to the circuit, in circuit order
PRIVATE_FIELDS = (
    "subject_id",
    "issuer_id",
    "credential_type",
    "attribute_key",
    "attribute_value",
    "issued_at",
    "expires_at",
    "secret_salt",
)

SCALAR_FIELDS = PRIVATE_FIELDS + ("issuer_pub_key_x", "issuer_pub_key_y")

REQUIRED_FIELDS = PRIVATE_FIELDS + ("signature", "issuer_pub_key_x", "issuer_pub_key_y")


@dataclass(frozen=True)
class Credential:
    """
    Issuer-signed attestation. Scalars are hex-encoded field elements.

    [IMMUTABLE] Never mutated; discarded by the caller after proving.
    """
    subject_id: str
    issuer_id: str
    credential_type: str
    attribute_key: str
    attribute_value: str
    issued_at: str
    expires_at: str
    secret_salt: str
    signature: List[int]
    issuer_pub_key_x: str
    issuer_pub_key_y: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Credential":
        # Reference-only keys (credential_hash, nullifier, ...) are ignored
        return cls(
            **{name: data[name] for name in SCALAR_FIELDS},
            signature=list(data["signature"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {name: getattr(self, name) for name in SCALAR_FIELDS}
        record["signature"] = list(self.signature)
        return record

    def __repr__(self) -> str:
        # attribute_value, secret_salt and signature stay out of logs
        return f"Credential(subject_id={self.subject_id!r}, issuer_id={self.issuer_id!r})"


@dataclass
class AgeParameters:
    threshold: int
    context_id: int
    timestamp: Optional[int] = None


@dataclass
class MembershipParameters:
    allowed_set: List[Union[str, int]]
    context_id: int
    timestamp: Optional[int] = None


ProofParameters = Union[AgeParameters, MembershipParameters]


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)


@dataclass
class ProofResult:
    """Proof bytes (opaque), ordered public signals, proving duration."""
    proof: bytes
    public_signals: List[str]
    proving_time_ms: float


@dataclass
class CalldataResult:
    """Length-prefixed verifier call arguments for one predicate type."""
    calldata: List[int]
    predicate_type: PredicateType
    nullifier: Optional[str] = None


@dataclass
class SubmitResult:
    transaction_hash: str
    circuit_id: int
    success: bool


@dataclass
class VerificationRecord:
    """Projection of on-chain registry state. Always re-derived from a live query."""
    exists: bool
    nullifier: int = 0
    attribute_key: int = 0
    threshold_or_set_hash: int = 0
    timestamp: int = 0
    circuit_id: int = 0

    @classmethod
    def empty(cls) -> "VerificationRecord":
        return cls(exists=False)


class ReuseStatus(Enum):
    UNUSED = "unused"
    USED = "used"
    ERROR = "error"


@dataclass
class ReuseCheck:
    """Outcome of a nullifier reuse check."""
    status: ReuseStatus
    record: Optional[VerificationRecord] = None
    error: Optional[str] = None

    @property
    def may_submit(self) -> bool:
        return self.status is ReuseStatus.UNUSED


@dataclass
class StoredVerification:
    """
    Local history entry, owned by the calling application.

    Serialized with the camelCase keys of the persisted record format.
    """
    tx_hash: str
    nullifier: str
    predicate_type: PredicateType
    timestamp: int
    attribute_key: str
    threshold: str
    on_chain_timestamp: Optional[int] = None
    on_chain_circuit_id: Optional[int] = None
    confirmed: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "txHash": self.tx_hash,
            "nullifier": self.nullifier,
            "predicateType": self.predicate_type.value,
            "timestamp": self.timestamp,
            "attributeKey": self.attribute_key,
            "threshold": self.threshold,
        }
        if self.on_chain_timestamp is not None:
            data["onChainTimestamp"] = self.on_chain_timestamp
        if self.on_chain_circuit_id is not None:
            data["onChainCircuitId"] = self.on_chain_circuit_id
        if self.confirmed is not None:
            data["confirmed"] = self.confirmed
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredVerification":
        return cls(
            tx_hash=data["txHash"],
            nullifier=data["nullifier"],
            predicate_type=PredicateType.parse(data["predicateType"]),
            timestamp=int(data["timestamp"]),
            attribute_key=data["attributeKey"],
            threshold=data["threshold"],
            on_chain_timestamp=data.get("onChainTimestamp"),
            on_chain_circuit_id=data.get("onChainCircuitId"),
            confirmed=data.get("confirmed"),
        )
