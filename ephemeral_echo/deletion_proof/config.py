"""
Circuit configuration for the deletion proof toolkit.

The constants below must match the globals declared by the paired Noir
circuit. ``CircuitConfig`` bundles them so a deployment can override a
value from a YAML file without touching the module defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigurationError

# ============================================================================
# JWT SUB-CIRCUIT
# ============================================================================

MAX_JWT_DATA_LENGTH = 1024  # header.payload bytes
MAX_USER_ID_LENGTH = 64

# RSA-2048 split into 18 limbs by the JWT SDK (120-bit limbs)
RSA_2048_NUM_LIMBS = 18
SDK_LIMB_BITS = 120

# Circuit declares u128 limbs
LIMB_WIDTH_BITS = 128

# ============================================================================
# DELETION SUB-CIRCUIT
# ============================================================================

TREE_DEPTH = 32

# BN254 scalar field (Noir's native Field)
BN254_FIELD_MODULUS = (
    21888242871839275222246405745257275088548364400416722356234659706158089210141
)

HASH_OUTPUT_BITS = 256

DOMAIN_SEPARATOR_PREFIX = b"EPHEMERAL_ECHO_V1_"

DOMAIN_SEPARATORS = {
    "nmt_hash": DOMAIN_SEPARATOR_PREFIX + b"NMT_HASH",
    "mock_witness": DOMAIN_SEPARATOR_PREFIX + b"MOCK_WITNESS",
    "mock_proof": DOMAIN_SEPARATOR_PREFIX + b"MOCK_PROOF",
}

# ============================================================================
# VALIDATION STAGE
# ============================================================================

REQUIRED_JWT_KEYS = ("payload_base64_decode_offset",)
REQUIRED_DELETION_KEYS = ("current_nmt_root",)

# ============================================================================
# RUN REPORT SERIALIZATION
# ============================================================================

REPORT_VERSION = 1


@dataclass(frozen=True)
class CircuitConfig:
    """
    Sizes the assembler and tree builder encode against.

    Example:
        >>> cfg = CircuitConfig.load("circuit.yaml")
        >>> cfg.tree_depth
        32
    """

    max_jwt_data_length: int = MAX_JWT_DATA_LENGTH
    max_user_id_length: int = MAX_USER_ID_LENGTH
    rsa_num_limbs: int = RSA_2048_NUM_LIMBS
    limb_width_bits: int = LIMB_WIDTH_BITS
    tree_depth: int = TREE_DEPTH
    required_jwt_keys: tuple[str, ...] = REQUIRED_JWT_KEYS
    required_deletion_keys: tuple[str, ...] = REQUIRED_DELETION_KEYS

    def __post_init__(self) -> None:
        for name in (
            "max_jwt_data_length",
            "max_user_id_length",
            "rsa_num_limbs",
            "limb_width_bits",
        ):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer")
        if not isinstance(self.tree_depth, int) or self.tree_depth < 0:
            raise ConfigurationError("tree_depth must be a non-negative integer")
        if not self.required_jwt_keys or not self.required_deletion_keys:
            raise ConfigurationError("at least one required key per input half")

    def with_overrides(self, overrides: Mapping[str, Any]) -> "CircuitConfig":
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConfigurationError(f"unknown config key(s): {', '.join(unknown)}")
        values = dict(overrides)
        for key in ("required_jwt_keys", "required_deletion_keys"):
            if key in values:
                values[key] = tuple(values[key])
        return replace(self, **values)

    @classmethod
    def load(cls, path: str | Path) -> "CircuitConfig":
        """
        Load overrides from a YAML mapping.

        Raises:
            ConfigurationError: If the file is not valid YAML, not a mapping
                or has unknown keys
        """
        with open(path, "r", encoding="utf-8") as fh:
            try:
                data = yaml.safe_load(fh)
            except yaml.YAMLError as exc:
                raise ConfigurationError(f"{path}: invalid YAML: {exc}") from exc
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path}: expected a mapping at top level")
        return cls().with_overrides(data)


def validate_config() -> bool:
    """
    Validate configuration parameters.

    Returns:
        True if configuration is valid

    Raises:
        AssertionError: If configuration is invalid
    """
    assert SDK_LIMB_BITS <= LIMB_WIDTH_BITS, "SDK limbs must fit circuit limbs"
    assert RSA_2048_NUM_LIMBS * SDK_LIMB_BITS >= 2048, "too few limbs for RSA-2048"
    assert 0 <= TREE_DEPTH <= 64, "Unsupported tree depth"
    assert BN254_FIELD_MODULUS.bit_length() <= HASH_OUTPUT_BITS
    assert len(set(DOMAIN_SEPARATORS.values())) == len(DOMAIN_SEPARATORS)
    assert not set(REQUIRED_JWT_KEYS) & set(REQUIRED_DELETION_KEYS)

    return True


# Auto-validate on import
validate_config()
