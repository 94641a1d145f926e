# -*- coding: utf-8 -*-
from __future__ import annotations

from typing import Any, Dict, List

from ..exceptions import DeletionProofError
from ..types import DeletionProofInputs, LeafRecord

VECTOR_DEPTH = 32

# Fixed deletion half used by the circuit's own test; the path is synthetic
# so it does not hash up to the root.
DELETION_VECTOR: Dict[str, Any] = {
    "current_nmt_root": "0x1a1ca84369d806125dfd3fdc26facd5b3aa48c3bcef1905543aa05dbf8a488ee",
    "nullifier": "0x96",
    "low_leaf": {"value": "0x64", "next_value": "0xc8", "next_index": "0xd1"},
    "low_index": "0x0",
    "path": [f"0x{0x200 + i:064x}" for i in range(VECTOR_DEPTH)],
}

# Four-element linked list 3 -> 7 -> 0x10 -> 0x15.
DEMO_LEAVES: List[Dict[str, int]] = [
    {"value": 0x03, "next_value": 0x07, "next_index": 1},
    {"value": 0x07, "next_value": 0x10, "next_index": 2},
    {"value": 0x10, "next_value": 0x15, "next_index": 3},
    {"value": 0x15, "next_value": 0x00, "next_index": 0},
]

DEMO_NULLIFIER = 0x0C


def deletion_vector(vector: Dict[str, Any] = DELETION_VECTOR) -> DeletionProofInputs:
    return DeletionProofInputs(
        current_nmt_root=vector["current_nmt_root"],
        nullifier=vector["nullifier"],
        low_leaf=LeafRecord.from_mapping(vector["low_leaf"]),
        low_index=vector["low_index"],
        path=tuple(vector["path"]),
    )


def demo_leaves() -> List[LeafRecord]:
    return [LeafRecord.from_mapping(leaf) for leaf in DEMO_LEAVES]


def validate_vector(vector: Dict[str, Any], depth: int = VECTOR_DEPTH) -> List[str]:
    errors: List[str] = []
    for key in ("current_nmt_root", "nullifier", "low_leaf", "low_index", "path"):
        if key not in vector:
            errors.append(f"missing {key}")
    if errors:
        return errors

    if not _is_digest(vector["current_nmt_root"]):
        errors.append("current_nmt_root: expected 0x + 64 hex digits")
    path = vector["path"]
    if not isinstance(path, list) or len(path) != depth:
        errors.append(f"path: expected {depth} entries")
    else:
        errors.extend(
            f"path[{i}]: expected 0x + 64 hex digits"
            for i, node in enumerate(path)
            if not _is_digest(node)
        )

    try:
        inputs = deletion_vector(vector)
    except DeletionProofError as exc:
        errors.append(f"invalid values: {exc}")
        return errors
    if not inputs.low_leaf.brackets(inputs.nullifier):
        errors.append("low_leaf does not bracket nullifier")
    return errors


def _is_digest(value: Any) -> bool:
    if not isinstance(value, str) or len(value) != 66 or not value.startswith("0x"):
        return False
    try:
        int(value[2:], 16)
    except ValueError:
        return False
    return True
