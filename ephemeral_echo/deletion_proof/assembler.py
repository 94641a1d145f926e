"""
Combined input assembly for the deletion circuit.

Merges the JWT-authentication inputs (derived by the JWT SDK, then
normalized by the encoder) with the deletion-proof inputs (from a tree
build or a fixed test vector) into one flat mapping.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence

from .config import CircuitConfig
from .encoding import encode, encode_limbs
from .exceptions import (
    AssemblyError,
    ConfigurationError,
    DeletionProofError,
    FieldCollisionError,
    NullifierRangeError,
)
from .interfaces import JwtInputSdk
from .merkle import Hasher, build, find_low_nullifier, sha256_field_hash
from .types import (
    CombinedInputs,
    DeletionProofInputs,
    JwtRequest,
    JwtSdkOutput,
    LeafLike,
)

logger = logging.getLogger(__name__)


def deletion_inputs_from_leaves(
    leaves: Sequence[LeafLike],
    nullifier: Any,
    *,
    depth: int,
    target_index: Optional[int] = None,
    hasher: Hasher = sha256_field_hash,
) -> DeletionProofInputs:
    """
    Build the tree and extract the low nullifier leaf and its sibling path.

    When ``target_index`` is omitted the low nullifier leaf is located from
    the nullifier itself.

    Raises:
        NullifierRangeError: If the target leaf does not bracket the nullifier
    """
    tree = build(leaves, depth, hasher)
    if target_index is None:
        target_index = find_low_nullifier(tree.leaves, nullifier)
    path = tree.path_for(target_index)

    low_leaf = tree.leaves[target_index]
    deletion = DeletionProofInputs(
        current_nmt_root=tree.root,
        nullifier=nullifier,
        low_leaf=low_leaf,
        low_index=target_index,
        path=tuple(path),
    )
    if not low_leaf.brackets(deletion.nullifier):
        raise NullifierRangeError(
            f"leaf {target_index} does not bracket nullifier {hex(deletion.nullifier)}"
        )
    return deletion


class InputAssembler:
    """
    Assemble CombinedInputs for one proof run.

    Example:
        assembler = InputAssembler(LocalJwtInputSdk())
        inputs = assembler.assemble(jwt_request, leaves, None, 32, nullifier=0x05)
    """

    def __init__(
        self,
        jwt_sdk: JwtInputSdk,
        config: Optional[CircuitConfig] = None,
        *,
        hasher: Hasher = sha256_field_hash,
    ) -> None:
        self._jwt_sdk = jwt_sdk
        self._config = config or CircuitConfig()
        self._hasher = hasher

    @property
    def config(self) -> CircuitConfig:
        return self._config

    def assemble(
        self,
        jwt_request: JwtRequest,
        leaves: Optional[Sequence[LeafLike]] = None,
        target_index: Optional[int] = None,
        depth: Optional[int] = None,
        *,
        nullifier: Any = None,
        precomputed: Optional[DeletionProofInputs] = None,
    ) -> CombinedInputs:
        """
        Produce the flat circuit input mapping.

        Args:
            jwt_request: Raw JWT, public key JWK and expected user id
            leaves: Leaf set of the nullifier tree (tree mode)
            target_index: Low nullifier leaf index; located from the
                nullifier when omitted
            depth: Tree depth, defaults to the configured depth
            nullifier: Nullifier being deleted (tree mode)
            precomputed: Ready-made deletion inputs (test-vector mode)

        Raises:
            AssemblyError: Wrapping the first failure encountered
        """
        try:
            jwt_fields = self.jwt_inputs(jwt_request)
            deletion_fields = self._deletion_inputs(
                leaves, target_index, depth, nullifier, precomputed
            ).to_circuit()
            return merge_inputs(jwt_fields, deletion_fields)
        except AssemblyError:
            raise
        except DeletionProofError as exc:
            raise AssemblyError(f"input assembly failed: {exc}") from exc

    def jwt_inputs(self, jwt_request: JwtRequest) -> dict:
        """
        Derive and encode the JWT half; any limb overflow is fatal.

        Raises:
            AssemblyError: If the JWT SDK fails
            LimbOverflowError: For the first overflowing limb
        """
        cfg = self._config
        try:
            sdk_output = self._jwt_sdk.derive_jwt_circuit_inputs(
                jwt_request.jwt,
                jwt_request.public_key_jwk,
                cfg.max_jwt_data_length,
            )
        except DeletionProofError:
            raise
        except Exception as exc:
            logger.exception("JWT SDK failed")
            raise AssemblyError(f"JWT SDK failed: {exc}") from exc
        if isinstance(sdk_output, Mapping):
            sdk_output = JwtSdkOutput.from_mapping(sdk_output)
        elif not isinstance(sdk_output, JwtSdkOutput):
            raise AssemblyError(
                f"JWT SDK returned {type(sdk_output).__name__}, expected JwtSdkOutput"
            )

        signed_data = encode(
            sdk_output.data, cfg.max_jwt_data_length, name="jwt_signed_data"
        )
        user_id = encode(
            jwt_request.expected_user_id,
            cfg.max_user_id_length,
            name="expected_user_id_in_jwt",
        )

        limb_fields = {}
        for field_name, limbs in (
            ("pubkey_modulus_limbs", sdk_output.modulus_limbs),
            ("redc_params_limbs", sdk_output.redc_params_limbs),
            ("signature_limbs", sdk_output.signature_limbs),
        ):
            encoded = encode_limbs(
                limbs, cfg.limb_width_bits, count=cfg.rsa_num_limbs, name=field_name
            )
            encoded.raise_for_overflow()
            limb_fields[field_name] = encoded.to_circuit()

        try:
            offset = int(sdk_output.base64_decode_offset)
        except (TypeError, ValueError) as exc:
            raise AssemblyError(
                f"invalid payload_base64_decode_offset: {sdk_output.base64_decode_offset!r}"
            ) from exc
        if offset < 0:
            raise AssemblyError("payload_base64_decode_offset must be non-negative")

        return {
            "jwt_signed_data": signed_data.to_circuit(),
            "payload_base64_decode_offset": offset,
            **limb_fields,
            "expected_user_id_in_jwt": user_id.to_circuit(),
        }

    def _deletion_inputs(
        self,
        leaves: Optional[Sequence[LeafLike]],
        target_index: Optional[int],
        depth: Optional[int],
        nullifier: Any,
        precomputed: Optional[DeletionProofInputs],
    ) -> DeletionProofInputs:
        if precomputed is not None:
            if leaves is not None:
                raise ConfigurationError("pass either leaves or precomputed inputs")
            expected = self._config.tree_depth if depth is None else depth
            if precomputed.depth != expected:
                raise ConfigurationError(
                    f"precomputed path has {precomputed.depth} entries, expected {expected}"
                )
            return precomputed
        if leaves is None:
            raise ConfigurationError("leaves or precomputed deletion inputs required")
        if nullifier is None:
            raise ConfigurationError("nullifier is required to build deletion inputs")
        return deletion_inputs_from_leaves(
            leaves,
            nullifier,
            depth=self._config.tree_depth if depth is None else depth,
            target_index=target_index,
            hasher=self._hasher,
        )


def merge_inputs(jwt_fields: dict, deletion_fields: dict) -> CombinedInputs:
    """
    Disjoint union of the two input halves.

    Raises:
        FieldCollisionError: If a field name appears in both halves
    """
    overlap = set(jwt_fields) & set(deletion_fields)
    if overlap:
        raise FieldCollisionError(overlap)
    return {**jwt_fields, **deletion_fields}
