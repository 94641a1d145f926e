"""
Common types for deletion proofs.

This module provides:
1. LeafRecord - one node of the value-sorted linked list stored in the tree
2. DeletionProofInputs - the deletion half of the circuit inputs
3. JwtRequest / JwtSdkOutput - what goes into and comes out of the JWT SDK
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Sequence, Union

from .encoding import to_uint
from .exceptions import EncodingError

HashDigest = str
CombinedInputs = Dict[str, Any]

U256_BITS = 256

# ============================================================================
# INDEXED MERKLE TREE LEAF
# ============================================================================


@dataclass(frozen=True)
class LeafRecord:
    """
    Linked-list node encoded into an indexed Merkle tree leaf.

    Attributes:
        value: Stored nullifier value
        next_value: Next larger value in the list, or 0 for the maximum
        next_index: Leaf index holding next_value, or 0 for the maximum

    Values may be given as ints, hex/decimal strings or big-endian bytes;
    they are normalized to ints below 2^256.
    """

    value: int
    next_value: int
    next_index: int

    def __post_init__(self) -> None:
        for name in ("value", "next_value", "next_index"):
            object.__setattr__(
                self, name, to_uint(getattr(self, name), U256_BITS, name=name)
            )

    @property
    def is_max(self) -> bool:
        return self.next_value == 0

    def brackets(self, nullifier: int) -> bool:
        """True if ``nullifier`` falls strictly between value and next_value."""
        if nullifier <= self.value:
            return False
        return self.is_max or nullifier < self.next_value

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LeafRecord":
        try:
            return cls(
                value=data["value"],
                next_value=data["next_value"],
                next_index=data["next_index"],
            )
        except KeyError as exc:
            raise EncodingError(f"leaf record missing {exc.args[0]!r}") from exc

    def to_dict(self) -> dict:
        return {
            "value": hex(self.value),
            "next_value": hex(self.next_value),
            "next_index": hex(self.next_index),
        }


LeafLike = Union[LeafRecord, Mapping[str, Any]]


def coerce_leaf(leaf: LeafLike) -> LeafRecord:
    if isinstance(leaf, LeafRecord):
        return leaf
    if isinstance(leaf, Mapping):
        return LeafRecord.from_mapping(leaf)
    raise EncodingError(f"unsupported leaf type {type(leaf).__name__}")


def to_digest(value: Any, *, name: str = "digest") -> HashDigest:
    """
    Normalize an int, hex string or bytes to a 64-hex-digit digest.

    Example:
        >>> to_digest(5)[-2:]
        '05'
    """
    return f"0x{to_uint(value, U256_BITS, name=name):064x}"


# ============================================================================
# DELETION PROOF INPUTS
# ============================================================================


@dataclass(frozen=True)
class DeletionProofInputs:
    """
    Deletion half of the circuit inputs.

    Produced from a tree build or supplied directly as a fixed test vector;
    both render to the same circuit field names.
    """

    current_nmt_root: HashDigest
    nullifier: int
    low_leaf: LeafRecord
    low_index: int
    path: tuple[HashDigest, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "nullifier", to_uint(self.nullifier, name="nullifier"))
        object.__setattr__(
            self, "low_index", to_uint(self.low_index, name="low_nullifier_index")
        )
        object.__setattr__(self, "low_leaf", coerce_leaf(self.low_leaf))
        object.__setattr__(
            self,
            "current_nmt_root",
            to_digest(self.current_nmt_root, name="current_nmt_root"),
        )
        object.__setattr__(
            self,
            "path",
            tuple(
                to_digest(node, name=f"low_nullifier_path[{i}]")
                for i, node in enumerate(self.path)
            ),
        )

    @property
    def depth(self) -> int:
        return len(self.path)

    def to_circuit(self) -> dict:
        return {
            "current_nmt_root": self.current_nmt_root,
            "newly_deleted_message_nullifier": hex(self.nullifier),
            "low_nullifier_leaf_data_value": hex(self.low_leaf.value),
            "low_nullifier_leaf_data_next_value": hex(self.low_leaf.next_value),
            "low_nullifier_leaf_data_next_index": hex(self.low_leaf.next_index),
            "low_nullifier_index": hex(self.low_index),
            "low_nullifier_path": list(self.path),
        }


JWT_FIELDS = (
    "jwt_signed_data",
    "payload_base64_decode_offset",
    "pubkey_modulus_limbs",
    "redc_params_limbs",
    "signature_limbs",
    "expected_user_id_in_jwt",
)

DELETION_FIELDS = (
    "current_nmt_root",
    "newly_deleted_message_nullifier",
    "low_nullifier_leaf_data_value",
    "low_nullifier_leaf_data_next_value",
    "low_nullifier_leaf_data_next_index",
    "low_nullifier_index",
    "low_nullifier_path",
)

# ============================================================================
# JWT SDK CONTRACT
# ============================================================================


@dataclass(frozen=True)
class JwtRequest:
    """Raw JWT authentication material supplied by the caller."""

    jwt: str
    public_key_jwk: Mapping[str, Any]
    expected_user_id: str


@dataclass(frozen=True)
class JwtSdkOutput:
    """
    Circuit inputs derived by the JWT SDK.

    ``data`` is whatever byte-like shape the SDK returns; it is normalized
    later by the encoder.
    """

    data: Any
    base64_decode_offset: int
    modulus_limbs: Sequence[Any]
    redc_params_limbs: Sequence[Any]
    signature_limbs: Sequence[Any]
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "JwtSdkOutput":
        """
        Accept the key names emitted by the JavaScript noir-jwt SDK.

        Raises:
            EncodingError: If a required key is absent
        """
        aliases = {
            "data": ("data",),
            "base64_decode_offset": ("base64_decode_offset", "base64DecodeOffset"),
            "modulus_limbs": ("pubkey_modulus_limbs", "modulus_limbs", "modulusLimbs"),
            "redc_params_limbs": (
                "redc_params_limbs",
                "reductionParamLimbs",
                "redc_limbs",
            ),
            "signature_limbs": ("signature_limbs", "signatureLimbs"),
        }
        values: Dict[str, Any] = {}
        used: set[str] = set()
        for attr, keys in aliases.items():
            for key in keys:
                if key in data:
                    values[attr] = data[key]
                    used.add(key)
                    break
            else:
                raise EncodingError(f"JWT SDK output missing {keys[0]!r}")
        values["extra"] = {k: v for k, v in data.items() if k not in used}
        return cls(**values)
