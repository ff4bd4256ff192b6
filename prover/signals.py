"""
Public Signal Layouts
=====================

The flat public-signal array produced by each circuit has a fixed index
layout. Layouts are registered per (version, predicate type) so that a
circuit upgrade ships a new layout instead of silently shifting indices.

v1 age_verify (8 signals):
    [0] pub_key_x  [1] pub_key_y  [2] current_timestamp  [3] threshold
    [4] dapp_context_id  [5] nullifier  [6] echoed_issuer_x  [7] echoed_threshold

v1 membership_proof (15 signals):
    [0] pub_key_x  [1] pub_key_y  [2] current_timestamp  [3] dapp_context_id
    [4..11] allowed_set  [12] nullifier  [13] echoed_issuer_x  [14] set_hash
"""

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple, Union

from core.errors import SignalLayoutError
from core.types import AttributeKey, PredicateType

DEFAULT_LAYOUT_VERSION = "v1"

# Each public signal is one big-endian field element
FIELD_BYTES = 32

# Field name -> index, or (start, stop) for a slice
SignalIndex = Union[int, Tuple[int, int]]


@dataclass(frozen=True)
class PublicSignalLayout:
    version: str
    predicate_type: PredicateType
    length: int
    fields: Dict[str, SignalIndex]

    def extract(self, signals: Sequence[str]) -> Dict[str, Union[str, List[str]]]:
        if len(signals) != self.length:
            raise SignalLayoutError(
                f"{self.predicate_type.value} layout {self.version} expects "
                f"{self.length} public signals, got {len(signals)}"
            )
        values: Dict[str, Union[str, List[str]]] = {}
        for name, index in self.fields.items():
            if isinstance(index, tuple):
                values[name] = list(signals[index[0]:index[1]])
            else:
                values[name] = signals[index]
        return values


LAYOUTS: Dict[Tuple[str, PredicateType], PublicSignalLayout] = {
    ("v1", PredicateType.AGE): PublicSignalLayout(
        version="v1",
        predicate_type=PredicateType.AGE,
        length=8,
        fields={
            "issuer_pub_key_x": 0,
            "issuer_pub_key_y": 1,
            "current_timestamp": 2,
            "threshold": 3,
            "dapp_context_id": 4,
            "nullifier": 5,
            "echoed_issuer_x": 6,
            "echoed_threshold": 7,
        },
    ),
    ("v1", PredicateType.MEMBERSHIP): PublicSignalLayout(
        version="v1",
        predicate_type=PredicateType.MEMBERSHIP,
        length=15,
        fields={
            "issuer_pub_key_x": 0,
            "issuer_pub_key_y": 1,
            "current_timestamp": 2,
            "dapp_context_id": 3,
            "allowed_set": (4, 12),
            "nullifier": 12,
            "echoed_issuer_x": 13,
            "set_hash": 14,
        },
    ),
}


def get_layout(
    predicate_type: PredicateType,
    version: str = DEFAULT_LAYOUT_VERSION,
) -> PublicSignalLayout:
    try:
        return LAYOUTS[(version, predicate_type)]
    except KeyError:
        raise SignalLayoutError(
            f"No public signal layout {version} for {predicate_type.value}"
        ) from None


@dataclass
class AgePublicOutputs:
    threshold: str
    dapp_context_id: str
    current_timestamp: str
    issuer_pub_key_x: str
    issuer_pub_key_y: str
    nullifier: str
    echoed_issuer_x: str
    echoed_threshold: str
    echoed_attribute_key: str = hex(AttributeKey.AGE)
    predicate_type: PredicateType = PredicateType.AGE

    @property
    def threshold_or_set_hash(self) -> str:
        return self.echoed_threshold


@dataclass
class MembershipPublicOutputs:
    dapp_context_id: str
    current_timestamp: str
    issuer_pub_key_x: str
    issuer_pub_key_y: str
    allowed_set: List[str]
    nullifier: str
    echoed_issuer_x: str
    set_hash: str
    echoed_attribute_key: str = hex(AttributeKey.MEMBERSHIP_GROUP)
    predicate_type: PredicateType = PredicateType.MEMBERSHIP

    @property
    def threshold_or_set_hash(self) -> str:
        return self.set_hash


PublicOutputs = Union[AgePublicOutputs, MembershipPublicOutputs]


def parse_public_outputs(
    signals: Sequence[str],
    predicate_type: PredicateType,
    version: str = DEFAULT_LAYOUT_VERSION,
) -> PublicOutputs:
    """Decode the flat public-signal array into named outputs."""
    values = get_layout(predicate_type, version).extract(signals)
    if predicate_type is PredicateType.AGE:
        return AgePublicOutputs(**values)  # type: ignore[arg-type]
    return MembershipPublicOutputs(**values)  # type: ignore[arg-type]


# ============================================================================
# Byte encoding
# ============================================================================

def flatten_public_signals(signals: Sequence[str]) -> bytes:
    """
    Concatenate public signals as 32-byte big-endian chunks.

    Every element takes exactly FIELD_BYTES; a shorter or longer rendering
    would misalign every following element.
    """
    chunks = []
    for i, signal in enumerate(signals):
        try:
            value = int(signal, 16)
        except (TypeError, ValueError):
            raise SignalLayoutError(f"Public signal {i} is not a hex field element: {signal!r}") from None
        if value < 0 or value.bit_length() > FIELD_BYTES * 8:
            raise SignalLayoutError(f"Public signal {i} does not fit in {FIELD_BYTES} bytes")
        chunks.append(value.to_bytes(FIELD_BYTES, "big"))
    return b"".join(chunks)


def split_public_signals(data: bytes) -> List[str]:
    """Split concatenated 32-byte chunks back into 0x-prefixed 64-digit hex strings."""
    if len(data) % FIELD_BYTES:
        raise SignalLayoutError(
            f"Public signal blob length {len(data)} is not a multiple of {FIELD_BYTES}"
        )
    return ["0x" + data[i:i + FIELD_BYTES].hex() for i in range(0, len(data), FIELD_BYTES)]
