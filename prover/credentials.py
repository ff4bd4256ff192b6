"""
Credential Loading and Validation
=================================

[VALIDATION] Checks a raw credential record (as loaded from the issuer's JSON
file) against the target predicate before any witness is built:

1. Every required field is present
2. Signature is an array of exactly 64 bytes
3. Scalar fields are 0x-prefixed field elements below the BN254 modulus
4. credential_type matches the predicate (0 = age, 1 = membership)
5. attribute_key matches the predicate (1 = age, 2 = membership group)
6. issuer_id equals issuer_pub_key_x (no key substitution)

All violations are accumulated; validation never raises.
"""

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from core.types import (
    FIELD_MODULUS,
    REQUIRED_FIELDS,
    SCALAR_FIELDS,
    SIGNATURE_LENGTH,
    PredicateType,
    ValidationResult,
)

# 0x followed by hex digits only; no underscores or whitespace
HEX_FIELD = re.compile(r"0x[0-9a-fA-F]+")


def load_credential(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a credential JSON file into a raw record."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Credential file {path} must contain a JSON object")
    return data


def parse_field(value: Any) -> Optional[int]:
    """Parse a 0x-prefixed field element, None if it is not one."""
    if not isinstance(value, str) or not HEX_FIELD.fullmatch(value):
        return None
    return int(value, 16)


def _check_signature(signature: Any, errors: List[str]) -> None:
    if not isinstance(signature, list):
        errors.append("Signature must be an array")
        return
    if len(signature) != SIGNATURE_LENGTH:
        errors.append(f"Signature must be {SIGNATURE_LENGTH} bytes, got {len(signature)}")
    for i, byte in enumerate(signature):
        # bool is an int subclass but never a byte here
        if isinstance(byte, bool) or not isinstance(byte, int) or not 0 <= byte <= 255:
            errors.append(f"Signature byte {i} out of range: {byte!r}")


def _check_scalar(name: str, value: Any, errors: List[str]) -> None:
    if not isinstance(value, str):
        errors.append(f"{name} must be a hex string, got {type(value).__name__}")
        return
    if not value.startswith("0x"):
        errors.append(f"{name} must start with 0x, got: {value[:10]}")
        return
    parsed = parse_field(value)
    if parsed is None:
        errors.append(f"{name} is not a valid hex field element: {value[:10]}")
    elif parsed >= FIELD_MODULUS:
        errors.append(f"{name} exceeds the field modulus")


def _check_constant(
    record: Mapping[str, Any],
    name: str,
    expected: int,
    label: str,
    errors: List[str],
) -> None:
    raw = record.get(name)
    if raw is None:
        return
    parsed = parse_field(raw)
    if parsed is None:
        errors.append(f"Invalid {name} format: {raw!r}")
    elif parsed != expected:
        errors.append(f"Expected {name} {expected} ({label}), got {raw}")


class CredentialValidator:
    """
    Structural and semantic credential checks for one predicate type.

    [PURE] No side effects; repeated calls on the same input return equal results.
    """

    def validate(
        self,
        credential: Mapping[str, Any],
        predicate_type: Union[PredicateType, str],
    ) -> ValidationResult:
        predicate = PredicateType.parse(predicate_type)
        if not isinstance(credential, Mapping):
            return ValidationResult(valid=False, errors=["Credential must be a JSON object"])
        errors: List[str] = []

        for name in REQUIRED_FIELDS:
            if credential.get(name) is None:
                errors.append(f"Missing field: {name}")

        if credential.get("signature") is not None:
            _check_signature(credential["signature"], errors)

        for name in SCALAR_FIELDS:
            if credential.get(name) is not None:
                _check_scalar(name, credential[name], errors)

        label = predicate.label.lower()
        _check_constant(credential, "credential_type", int(predicate.credential_type), label, errors)
        _check_constant(credential, "attribute_key", int(predicate.attribute_key), label, errors)

        issuer_id = parse_field(credential.get("issuer_id"))
        pub_key_x = parse_field(credential.get("issuer_pub_key_x"))
        if issuer_id is not None and pub_key_x is not None and issuer_id != pub_key_x:
            errors.append("issuer_id does not match issuer_pub_key_x")

        return ValidationResult(valid=not errors, errors=errors)


def validate_credential(
    credential: Mapping[str, Any],
    predicate_type: Union[PredicateType, str],
) -> ValidationResult:
    return CredentialValidator().validate(credential, predicate_type)
