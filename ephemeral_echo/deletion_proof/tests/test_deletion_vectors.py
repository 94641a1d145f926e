from __future__ import annotations

import copy

from ephemeral_echo.deletion_proof import merkle
from ephemeral_echo.deletion_proof.test_vectors import deletion_vectors


def test_fixed_vector_is_valid() -> None:
    assert deletion_vectors.validate_vector(deletion_vectors.DELETION_VECTOR) == []


def test_fixed_vector_values() -> None:
    inputs = deletion_vectors.deletion_vector()
    assert inputs.nullifier == 0x96
    assert inputs.low_leaf.value == 0x64
    assert inputs.low_leaf.next_value == 0xC8
    assert inputs.low_leaf.next_index == 0xD1
    assert inputs.low_index == 0
    assert inputs.depth == 32
    assert inputs.path[0] == "0x" + "0" * 61 + "200"
    assert inputs.path[31] == "0x" + "0" * 61 + "21f"


def test_validate_vector_reports_problems() -> None:
    vector = copy.deepcopy(deletion_vectors.DELETION_VECTOR)
    vector["current_nmt_root"] = "0x1234"
    vector["path"] = vector["path"][:5]
    vector["nullifier"] = "0x10"

    errors = deletion_vectors.validate_vector(vector)
    assert "current_nmt_root: expected 0x + 64 hex digits" in errors
    assert "path: expected 32 entries" in errors
    assert "low_leaf does not bracket nullifier" in errors


def test_validate_vector_missing_keys() -> None:
    assert deletion_vectors.validate_vector({}) == [
        "missing current_nmt_root",
        "missing nullifier",
        "missing low_leaf",
        "missing low_index",
        "missing path",
    ]


def test_validate_vector_bad_values() -> None:
    vector = copy.deepcopy(deletion_vectors.DELETION_VECTOR)
    vector["low_leaf"] = {"value": "0x64"}
    errors = deletion_vectors.validate_vector(vector)
    assert errors and errors[-1].startswith("invalid values:")


def test_demo_leaves_form_linked_list() -> None:
    leaves = deletion_vectors.demo_leaves()
    merkle.validate_linked_list(leaves)
    assert merkle.find_low_nullifier(leaves, deletion_vectors.DEMO_NULLIFIER) == 1
