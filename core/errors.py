"""
Error Taxonomy
==============

[ERRORS] Every failure raised by zkgate carries a typed ErrorKind assigned
where it is raised. Display code maps the kind (never the message text) to
user guidance via describe_error().

Propagation:
- Validation problems are returned as ValidationResult, not raised
- Stage / network / resource / chain errors are raised and caught at the
  orchestrator boundary, which keeps the message verbatim for display
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


class ErrorKind(Enum):
    """Typed error category."""
    VALIDATION = "validation"
    INPUT = "input"
    STAGE = "stage"
    NETWORK_MISMATCH = "network_mismatch"
    RESOURCE = "resource"
    CHAIN_QUERY = "chain_query"
    SIGNAL_LAYOUT = "signal_layout"
    LIFECYCLE = "lifecycle"
    UNKNOWN = "unknown"


class ZkGateError(Exception):
    """Base class for all zkgate errors."""

    kind: ErrorKind = ErrorKind.UNKNOWN


class ValidationError(ZkGateError):
    """Malformed or inconsistent credential."""

    kind = ErrorKind.VALIDATION

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Credential validation failed: " + "; ".join(self.errors))


class InputError(ZkGateError):
    """Proof parameters violate a circuit constraint."""

    kind = ErrorKind.INPUT


class StageError(ZkGateError):
    """Circuit execution, proving or encoding failure."""

    kind = ErrorKind.STAGE

    def __init__(self, message: str, stage: str = ""):
        self.stage = stage
        super().__init__(message)


class NetworkMismatchError(ZkGateError):
    """Wallet is connected to a different chain than the registry."""

    kind = ErrorKind.NETWORK_MISMATCH

    def __init__(self, observed: str, expected: str, source: str = "wallet"):
        self.observed = observed
        self.expected = expected
        self.source = source
        super().__init__(
            f"Wrong {source} network: connected to {observed}. "
            f"Please switch to {expected} before submitting."
        )


class ResourceError(ZkGateError):
    """Asset could not be fetched."""

    kind = ErrorKind.RESOURCE

    def __init__(self, path: str, status: int, detail: str = ""):
        self.path = path
        self.status = status
        message = f"Failed to load VK file from {path}: {status}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class ChainQueryError(ZkGateError):
    """RPC failure while querying the registry."""

    kind = ErrorKind.CHAIN_QUERY

    def __init__(self, message: str, code: Optional[int] = None):
        self.code = code
        super().__init__(message)


class ChainDecodeError(ChainQueryError):
    """Registry response has an unrecognized shape."""


class SignalLayoutError(ZkGateError):
    """Public signals do not match the versioned layout."""

    kind = ErrorKind.SIGNAL_LAYOUT


class LifecycleError(ZkGateError):
    """Operation invoked from a step that does not allow it."""

    kind = ErrorKind.LIFECYCLE


# ============================================================================
# User guidance
# ============================================================================

@dataclass
class ErrorGuidance:
    title: str
    message: str
    action: str


_GUIDANCE: Dict[ErrorKind, Dict[str, str]] = {
    ErrorKind.VALIDATION: {
        "title": "Invalid Credential",
        "action": "Check the credential file or request a new one from the issuer.",
    },
    ErrorKind.INPUT: {
        "title": "Invalid Proof Parameters",
        "action": "Adjust the proof parameters (at most 8 allowed values).",
    },
    ErrorKind.STAGE: {
        "title": "Proof Generation Failed",
        "action": "Check that the credential is not expired and satisfies the predicate, then retry.",
    },
    ErrorKind.NETWORK_MISMATCH: {
        "title": "Wrong Network",
        "action": "Switch your wallet to the configured Starknet network.",
    },
    ErrorKind.RESOURCE: {
        "title": "Asset Load Failure",
        "action": "Verify the verifying-key location and retry.",
    },
    ErrorKind.CHAIN_QUERY: {
        "title": "Registry Unavailable",
        "action": "The registry could not be queried. Retry when the RPC endpoint is reachable.",
    },
    ErrorKind.SIGNAL_LAYOUT: {
        "title": "Circuit Version Mismatch",
        "action": "The circuit output does not match the configured layout version.",
    },
    ErrorKind.LIFECYCLE: {
        "title": "Operation Not Allowed",
        "action": "Reset the proof flow and start again.",
    },
}


def error_kind(exc: BaseException) -> ErrorKind:
    """Return the typed kind of an exception (UNKNOWN for foreign errors)."""
    if isinstance(exc, ZkGateError):
        return exc.kind
    return ErrorKind.UNKNOWN


def describe_error(exc: BaseException, kind: Optional[ErrorKind] = None) -> ErrorGuidance:
    """Map an error to a user-facing title and action."""
    kind = kind or error_kind(exc)
    entry = _GUIDANCE.get(kind)
    if entry is None:
        return ErrorGuidance(
            title="Unexpected Error",
            message=str(exc),
            action="Try again. If the problem persists, reset the proof flow.",
        )
    return ErrorGuidance(title=entry["title"], message=str(exc), action=entry["action"])
