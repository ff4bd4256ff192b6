"""
zkgate Core
===========
Shared building blocks:
- types: credential, proof and registry data model
- errors: typed error taxonomy and user guidance
- events: in-process async event bus
- logger: activity log handler and logging setup
"""

from .errors import (
    ErrorKind,
    ZkGateError,
    ValidationError,
    InputError,
    StageError,
    NetworkMismatchError,
    ResourceError,
    ChainQueryError,
    ChainDecodeError,
    SignalLayoutError,
    LifecycleError,
    describe_error,
)
from .events import ACTIVITY_LOG, PROOF_STEP, EventBus, event_bus
from .types import (
    PredicateType,
    Credential,
    AgeParameters,
    MembershipParameters,
    ValidationResult,
    ProofResult,
    CalldataResult,
    SubmitResult,
    VerificationRecord,
    ReuseStatus,
    ReuseCheck,
    StoredVerification,
)

__all__ = [
    "ErrorKind",
    "ZkGateError",
    "ValidationError",
    "InputError",
    "StageError",
    "NetworkMismatchError",
    "ResourceError",
    "ChainQueryError",
    "ChainDecodeError",
    "SignalLayoutError",
    "LifecycleError",
    "describe_error",
    "EventBus",
    "event_bus",
    "PROOF_STEP",
    "ACTIVITY_LOG",
    "PredicateType",
    "Credential",
    "AgeParameters",
    "MembershipParameters",
    "ValidationResult",
    "ProofResult",
    "CalldataResult",
    "SubmitResult",
    "VerificationRecord",
    "ReuseStatus",
    "ReuseCheck",
    "StoredVerification",
]
