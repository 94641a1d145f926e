"""Unit tests for the indexed Merkle tree builder."""

from __future__ import annotations

import hashlib

import pytest

from ephemeral_echo.deletion_proof import merkle
from ephemeral_echo.deletion_proof.config import BN254_FIELD_MODULUS, DOMAIN_SEPARATORS
from ephemeral_echo.deletion_proof.exceptions import (
    ConfigurationError,
    EmptyTreeError,
    IndexOutOfRangeError,
    NullifierRangeError,
)
from ephemeral_echo.deletion_proof.test_vectors.deletion_vectors import demo_leaves
from ephemeral_echo.deletion_proof.types import LeafRecord


def _leaf(value: int, next_value: int = 0, next_index: int = 0) -> LeafRecord:
    return LeafRecord(value, next_value, next_index)


def test_digest_format() -> None:
    digest = merkle.sha256_field_hash([merkle.ZERO_DIGEST])
    assert digest.startswith("0x")
    assert len(digest) == 66
    assert digest == digest.lower()
    assert int(digest, 16) < BN254_FIELD_MODULUS


def test_field_hash_matches_sha256() -> None:
    left, right = merkle.to_digest(1), merkle.to_digest(2)
    preimage = (
        DOMAIN_SEPARATORS["nmt_hash"]
        + bytes([2])
        + (1).to_bytes(32, "big")
        + (2).to_bytes(32, "big")
    )
    expected = int.from_bytes(hashlib.sha256(preimage).digest(), "big") % BN254_FIELD_MODULUS
    assert merkle.hash_node(left, right) == f"0x{expected:064x}"


def test_hash_node_is_ordered() -> None:
    a, b = merkle.to_digest(1), merkle.to_digest(2)
    assert merkle.hash_node(a, b) != merkle.hash_node(b, a)


def test_four_leaves_depth_two() -> None:
    leaves = demo_leaves()
    tree = merkle.build(leaves, 2)
    layer0, layer1, root_layer = tree.layers

    assert len(layer0) == 4
    assert list(layer0) == list(tree.leaf_hashes)
    assert len(layer1) == 2
    assert list(root_layer) == [tree.root]

    path = tree.path_for(0)
    assert path == [layer0[1], layer1[1]]
    assert layer1[0] == merkle.hash_node(layer0[0], layer0[1])
    assert tree.root == merkle.hash_node(layer1[0], layer1[1])


def test_single_leaf_depth_zero() -> None:
    leaf = _leaf(5)
    tree = merkle.build([leaf], 0)

    assert tree.root == merkle.hash_leaf(leaf)
    assert tree.path_for(0) == []
    assert tree.depth == 0


def test_padding_uses_zero_digest() -> None:
    leaves = [_leaf(1, 2, 1), _leaf(2)]
    tree = merkle.build(leaves, 3)
    layer0 = tree.layers[0]

    assert len(layer0) == 8
    assert layer0[2:] == [merkle.ZERO_DIGEST] * 6
    assert tree.layers[1][1] == merkle.hash_node(merkle.ZERO_DIGEST, merkle.ZERO_DIGEST)


def test_every_populated_path_replays_to_root() -> None:
    leaves = [_leaf(v) for v in range(1, 6)]
    tree = merkle.build(leaves, 4)
    for index, leaf_hash in enumerate(tree.leaf_hashes):
        path = tree.path_for(index)
        assert len(path) == 4
        assert merkle.verify_path(leaf_hash, index, path, tree.root)


def test_tampered_path_fails_verification() -> None:
    tree = merkle.build(demo_leaves(), 3)
    path = tree.path_for(2)
    path[1] = merkle.to_digest(0xDEAD)
    assert not merkle.verify_path(tree.leaf_hashes[2], 2, path, tree.root)


def test_depth_32_is_lazy() -> None:
    tree = merkle.build(demo_leaves(), 32)

    assert len(tree.layers) == 33
    assert len(tree.layers[0]) == 2**32
    assert len(tree.layers[0].explicit) == 4
    path = tree.path_for(3)
    assert len(path) == 32
    assert merkle.verify_path(tree.leaf_hashes[3], 3, path, tree.root)


def test_lazy_layers_match_dense_build() -> None:
    leaves = [_leaf(v) for v in range(1, 4)]
    tree = merkle.build(leaves, 3)

    dense = list(tree.leaf_hashes) + [merkle.ZERO_DIGEST] * 5
    while len(dense) > 1:
        dense = [merkle.hash_node(dense[i], dense[i + 1]) for i in range(0, len(dense), 2)]
    assert tree.root == dense[0]


def test_odd_layer_pairs_last_node_with_zero() -> None:
    layer = merkle.MerkleLayer([merkle.to_digest(1), merkle.to_digest(2), merkle.to_digest(3)], 3)
    parent = merkle.next_layer(layer)
    assert len(parent) == 2
    assert parent[1] == merkle.hash_node(merkle.to_digest(3), merkle.ZERO_DIGEST)


def test_injected_hasher_is_used() -> None:
    calls = []

    def hasher(inputs):
        calls.append(len(inputs))
        return merkle.to_digest(sum(int(x, 16) for x in inputs) % 2**256)

    tree = merkle.build([_leaf(1, 2, 1), _leaf(2)], 1, hasher)
    assert calls == [3, 3, 2]
    assert tree.root == merkle.to_digest(1 + 2 + 1 + 2)


def test_empty_leaves_raise() -> None:
    with pytest.raises(EmptyTreeError):
        merkle.build([], 4)


@pytest.mark.parametrize("depth", [-1, 1.5, True])
def test_bad_depth_raises(depth) -> None:
    with pytest.raises(ConfigurationError):
        merkle.build([_leaf(1)], depth)


def test_too_many_leaves_for_depth() -> None:
    with pytest.raises(ConfigurationError):
        merkle.build([_leaf(v) for v in range(1, 4)], 1)


@pytest.mark.parametrize("index", [-1, 4, 7, True])
def test_path_index_out_of_range(index) -> None:
    tree = merkle.build(demo_leaves(), 3)
    with pytest.raises(IndexOutOfRangeError):
        tree.path_for(index)
    with pytest.raises(IndexError):
        tree.path_for(index)


def test_path_for_plain_list_layers_respects_leaf_count() -> None:
    tree = merkle.build([_leaf(1)], 2)
    plain = [[layer[i] for i in range(len(layer))] for layer in tree.layers]

    assert merkle.path_for(0, plain, leaf_count=1) == tree.path_for(0)
    with pytest.raises(IndexOutOfRangeError):
        merkle.path_for(3, plain, leaf_count=1)


def test_path_for_without_layers() -> None:
    with pytest.raises(EmptyTreeError):
        merkle.path_for(0, [])


def test_find_low_nullifier() -> None:
    leaves = demo_leaves()
    assert merkle.find_low_nullifier(leaves, 0x05) == 0
    assert merkle.find_low_nullifier(leaves, "0x0c") == 1
    assert merkle.find_low_nullifier(leaves, 0x12) == 2
    assert merkle.find_low_nullifier(leaves, 0x99) == 3


@pytest.mark.parametrize("nullifier", [0x01, 0x03, 0x07])
def test_find_low_nullifier_without_bracket(nullifier) -> None:
    with pytest.raises(NullifierRangeError):
        merkle.find_low_nullifier(demo_leaves(), nullifier)


def test_validate_linked_list_accepts_demo() -> None:
    merkle.validate_linked_list(demo_leaves())
    merkle.build(demo_leaves(), 2, strict=True)


@pytest.mark.parametrize(
    "leaves",
    [
        [_leaf(3, 7, 1), _leaf(8)],
        [_leaf(3, 7, 5), _leaf(7)],
        [_leaf(3, 2, 1), _leaf(2)],
        [_leaf(3, 0, 1)],
    ],
)
def test_validate_linked_list_rejects(leaves) -> None:
    with pytest.raises(ConfigurationError):
        merkle.build(leaves, 2, strict=True)


def test_leaf_record_normalizes_values() -> None:
    leaf = LeafRecord.from_mapping({"value": "0x64", "next_value": "200", "next_index": b"\x01"})
    assert (leaf.value, leaf.next_value, leaf.next_index) == (100, 200, 1)
    assert leaf.to_dict() == {"value": "0x64", "next_value": "0xc8", "next_index": "0x1"}
