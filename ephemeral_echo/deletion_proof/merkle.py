"""
Indexed Merkle tree utilities for nullifier deletion proofs.

Leaves encode a value-sorted linked list (value, next_value, next_index).
The leaf layer is padded with the zero digest up to 2^depth entries and a
missing right child is always the zero digest, matching the paired circuit.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Sequence as SequenceABC
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Sequence

from .config import BN254_FIELD_MODULUS, DOMAIN_SEPARATORS
from .encoding import to_uint
from .exceptions import (
    ConfigurationError,
    EmptyTreeError,
    IndexOutOfRangeError,
    NullifierRangeError,
)
from .types import HashDigest, LeafLike, LeafRecord, coerce_leaf, to_digest

logger = logging.getLogger(__name__)

ZERO_DIGEST: HashDigest = "0x" + "0" * 64

Hasher = Callable[[Sequence[HashDigest]], HashDigest]


def sha256_field_hash(inputs: Sequence[HashDigest]) -> HashDigest:
    """
    Hash digests with domain-separated SHA-256, reduced into the BN254 field.

    The arity is bound into the preimage so leaf (3 inputs) and node
    (2 inputs) hashes never collide.
    """
    domain_sep = DOMAIN_SEPARATORS["nmt_hash"]
    payload = b"".join(bytes.fromhex(to_digest(x)[2:]) for x in inputs)
    digest = hashlib.sha256(domain_sep + bytes([len(inputs)]) + payload).digest()
    return to_digest(int.from_bytes(digest, "big") % BN254_FIELD_MODULUS)


def hash_leaf(leaf: LeafRecord, hasher: Hasher = sha256_field_hash) -> HashDigest:
    return hasher(
        [to_digest(leaf.value), to_digest(leaf.next_value), to_digest(leaf.next_index)]
    )


def hash_node(
    left: HashDigest, right: HashDigest, hasher: Hasher = sha256_field_hash
) -> HashDigest:
    """Fixed left||right ordering, no sorting."""
    return hasher([left, right])


class MerkleLayer(SequenceABC):
    """
    One tree layer: an explicitly hashed prefix followed by a repeated fill.

    Padding subtrees are identical, so a depth-32 layer of 2^32 entries
    only stores the nodes that depend on real leaves.
    """

    __slots__ = ("_nodes", "_size", "_fill")

    def __init__(
        self, nodes: Iterable[HashDigest], size: int, fill: HashDigest = ZERO_DIGEST
    ) -> None:
        self._nodes = tuple(nodes)
        self._size = size
        self._fill = fill
        if len(self._nodes) > size:
            raise ValueError("layer holds more nodes than its size")

    @property
    def explicit(self) -> tuple[HashDigest, ...]:
        return self._nodes

    @property
    def fill(self) -> HashDigest:
        return self._fill

    def __len__(self) -> int:
        return self._size

    def __getitem__(self, index):
        if isinstance(index, slice):
            return [self[i] for i in range(*index.indices(self._size))]
        if index < 0:
            index += self._size
        if not 0 <= index < self._size:
            raise IndexError("layer index out of range")
        if index < len(self._nodes):
            return self._nodes[index]
        return self._fill

    def __repr__(self) -> str:
        return (
            f"MerkleLayer(size={self._size}, explicit={len(self._nodes)}, "
            f"fill={self._fill[:10]}...)"
        )


def next_layer(layer: MerkleLayer, hasher: Hasher = sha256_field_hash) -> MerkleLayer:
    """
    Hash a layer pairwise into its parent layer of ceil(n/2) entries.

    A missing right child at an odd final position is the zero digest.
    """
    size = (len(layer) + 1) // 2
    explicit = len(layer.explicit)
    nodes: List[HashDigest] = []
    for i in range(0, explicit, 2):
        right = layer[i + 1] if i + 1 < len(layer) else ZERO_DIGEST
        nodes.append(hash_node(layer[i], right, hasher))

    if len(nodes) == size:
        return MerkleLayer(nodes, size)

    fill = hash_node(layer.fill, layer.fill, hasher)
    if len(layer) % 2 == 1:
        # last parent pairs a fill node with the zero digest
        nodes.extend([fill] * (size - 1 - len(nodes)))
        nodes.append(hash_node(layer.fill, ZERO_DIGEST, hasher))
    return MerkleLayer(nodes, size, fill)


@dataclass(frozen=True)
class MerkleTree:
    """Result of build(): root, every layer, and the unpadded leaf hashes."""

    root: HashDigest
    layers: tuple[MerkleLayer, ...]
    leaves: tuple[LeafRecord, ...]
    leaf_hashes: tuple[HashDigest, ...]

    @property
    def depth(self) -> int:
        return len(self.layers) - 1

    def path_for(self, index: int) -> List[HashDigest]:
        return path_for(index, self.layers, leaf_count=len(self.leaves))


def build(
    leaves: Sequence[LeafLike],
    depth: int,
    hasher: Hasher = sha256_field_hash,
    *,
    strict: bool = False,
) -> MerkleTree:
    """
    Build an indexed Merkle tree of the given depth.

    Args:
        leaves: Leaf records (or mappings with value/next_value/next_index)
        depth: Tree depth; 2^depth must hold every leaf
        hasher: Injected hash over a sequence of digests
        strict: Also check the linked-list invariant of the leaves

    Returns:
        MerkleTree with ``layers[0]`` of 2^depth entries and a one-entry root layer

    Raises:
        EmptyTreeError: If leaves is empty
        ConfigurationError: If depth is negative or too small

    Example:
        tree = build(leaves, depth=32)
        path = tree.path_for(0)
    """
    if not leaves:
        raise EmptyTreeError("Cannot build tree with zero leaves")
    if not isinstance(depth, int) or isinstance(depth, bool) or depth < 0:
        raise ConfigurationError(f"depth must be a non-negative int, got {depth!r}")
    capacity = 1 << depth
    if len(leaves) > capacity:
        raise ConfigurationError(
            f"depth {depth} holds {capacity} leaves, got {len(leaves)}"
        )

    records = tuple(coerce_leaf(leaf) for leaf in leaves)
    if strict:
        validate_linked_list(records)
    leaf_hashes = tuple(hash_leaf(leaf, hasher) for leaf in records)

    layers = [MerkleLayer(leaf_hashes, capacity)]
    while len(layers[-1]) > 1:
        layers.append(next_layer(layers[-1], hasher))

    root = layers[-1][0]
    logger.debug("built depth-%d tree over %d leaves, root %s", depth, len(records), root)
    return MerkleTree(
        root=root, layers=tuple(layers), leaves=records, leaf_hashes=leaf_hashes
    )


def path_for(
    index: int,
    layers: Sequence[Sequence[HashDigest]],
    *,
    leaf_count: Optional[int] = None,
) -> List[HashDigest]:
    """
    Sibling path for a leaf, one digest per level below the root.

    Only the first ``leaf_count`` leaves are populated. When omitted it is
    the explicit prefix of a MerkleLayer, or the full length of a plain
    list, so padded plain-list layers should pass it.

    Raises:
        EmptyTreeError: If there are no layers
        IndexOutOfRangeError: If index is not a populated leaf
    """
    if not layers:
        raise EmptyTreeError("Cannot extract a path from an empty tree")
    leaf_layer = layers[0]
    if leaf_count is not None:
        populated = leaf_count
    elif isinstance(leaf_layer, MerkleLayer):
        populated = len(leaf_layer.explicit)
    else:
        populated = len(leaf_layer)
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < populated:
        raise IndexOutOfRangeError(f"leaf index {index!r} not in [0, {populated})")

    path = []
    for layer in layers[:-1]:
        sibling = index ^ 1
        path.append(layer[sibling] if sibling < len(layer) else ZERO_DIGEST)
        index //= 2
    return path


def compute_root(
    leaf_hash: HashDigest,
    index: int,
    path: Sequence[HashDigest],
    hasher: Hasher = sha256_field_hash,
) -> HashDigest:
    """Replay a sibling path from a leaf hash up to the root."""
    current = leaf_hash
    for sibling in path:
        if index % 2 == 0:
            current = hash_node(current, sibling, hasher)
        else:
            current = hash_node(sibling, current, hasher)
        index //= 2
    return current


def verify_path(
    leaf_hash: HashDigest,
    index: int,
    path: Sequence[HashDigest],
    root: HashDigest,
    hasher: Hasher = sha256_field_hash,
) -> bool:
    """
    Verify a Merkle authentication path.

    Example:
        if verify_path(tree.leaf_hashes[0], 0, tree.path_for(0), tree.root):
            ...
    """
    return compute_root(leaf_hash, index, path, hasher) == root


def find_low_nullifier(leaves: Sequence[LeafLike], nullifier: Any) -> int:
    """
    Index of the leaf whose value is immediately below ``nullifier``.

    Raises:
        NullifierRangeError: If no leaf brackets the nullifier
    """
    target = to_uint(nullifier, name="nullifier")
    for idx, leaf in enumerate(leaves):
        if coerce_leaf(leaf).brackets(target):
            return idx
    raise NullifierRangeError(f"no low nullifier leaf for {hex(target)}")


def validate_linked_list(leaves: Sequence[LeafLike]) -> None:
    """
    Check that every next_index points at the leaf holding next_value.

    The maximum element must carry next_value = next_index = 0.

    Raises:
        ConfigurationError: Naming the first inconsistent leaf
    """
    records = [coerce_leaf(leaf) for leaf in leaves]
    for idx, leaf in enumerate(records):
        if leaf.is_max:
            if leaf.next_index != 0:
                raise ConfigurationError(f"leaf {idx}: maximum element must point at 0")
            continue
        if leaf.next_value <= leaf.value:
            raise ConfigurationError(f"leaf {idx}: next_value must exceed value")
        if leaf.next_index >= len(records):
            raise ConfigurationError(f"leaf {idx}: next_index {leaf.next_index} out of range")
        if records[leaf.next_index].value != leaf.next_value:
            raise ConfigurationError(
                f"leaf {idx}: next_index {leaf.next_index} does not hold next_value"
            )
