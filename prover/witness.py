"""
Witness Input Mapping
=====================

Converts a validated credential plus proof parameters into the input map
consumed by circuit execution.

[FORMAT] The execution runtime takes string-typed scalars only:
- private credential scalars pass through as hex strings
- signature bytes become decimal strings
- public numeric parameters are hex-encoded ("0x12" for 18)

[DETERMINISM] Output depends on the wall clock only when no timestamp
override is given.
"""

import time
from typing import Any, Dict, List, Optional, Sequence, Union

from core.errors import InputError
from core.types import (
    PRIVATE_FIELDS,
    AgeParameters,
    Credential,
    MembershipParameters,
    PredicateType,
    ProofParameters,
)

MAX_ALLOWED_SET = 8
SET_PADDING = "0x0"

InputMap = Dict[str, Any]


def to_hex(value: int) -> str:
    if value < 0:
        raise InputError(f"Field values must be non-negative, got {value}")
    return "0x" + format(value, "x")


def resolve_timestamp(override: Optional[int] = None) -> int:
    return int(override) if override is not None else int(time.time())


def pad_allowed_set(
    allowed_set: Sequence[Union[str, int]],
    width: int = MAX_ALLOWED_SET,
) -> List[str]:
    """
    Pad the allowed set to the circuit width with the canonical zero.

    Oversized sets are rejected before any padding happens.
    """
    if len(allowed_set) > width:
        raise InputError(f"allowed_set has {len(allowed_set)} elements, max {width}")
    padded = [to_hex(v) if isinstance(v, int) else str(v) for v in allowed_set]
    padded.extend([SET_PADDING] * (width - len(padded)))
    return padded


def _private_inputs(credential: Credential) -> InputMap:
    inputs: InputMap = {name: getattr(credential, name) for name in PRIVATE_FIELDS}
    inputs["signature"] = [str(b) for b in credential.signature]
    return inputs


def age_inputs(credential: Credential, params: AgeParameters) -> InputMap:
    inputs = _private_inputs(credential)
    inputs.update({
        "pub_key_x": credential.issuer_pub_key_x,
        "pub_key_y": credential.issuer_pub_key_y,
        "current_timestamp": to_hex(resolve_timestamp(params.timestamp)),
        "threshold": to_hex(params.threshold),
        "dapp_context_id": to_hex(params.context_id),
    })
    return inputs


def membership_inputs(
    credential: Credential,
    params: MembershipParameters,
    width: int = MAX_ALLOWED_SET,
) -> InputMap:
    allowed_set = pad_allowed_set(params.allowed_set, width)
    inputs = _private_inputs(credential)
    inputs.update({
        "pub_key_x": credential.issuer_pub_key_x,
        "pub_key_y": credential.issuer_pub_key_y,
        "current_timestamp": to_hex(resolve_timestamp(params.timestamp)),
        "dapp_context_id": to_hex(params.context_id),
        "allowed_set": allowed_set,
    })
    return inputs


class WitnessMapper:
    """Builds circuit inputs for either predicate type."""

    def __init__(self, max_allowed_set: int = MAX_ALLOWED_SET):
        self.max_allowed_set = max_allowed_set

    def map(
        self,
        credential: Credential,
        predicate_type: PredicateType,
        params: ProofParameters,
    ) -> InputMap:
        if predicate_type is PredicateType.AGE:
            if not isinstance(params, AgeParameters):
                raise InputError("Age proofs require AgeParameters")
            return age_inputs(credential, params)

        if not isinstance(params, MembershipParameters):
            raise InputError("Membership proofs require MembershipParameters")
        return membership_inputs(credential, params, self.max_allowed_set)
