"""
Deterministic mock circuit runtime and proving backend.

Notes:
- This adapter is for tests and local demos.
- It does NOT provide real cryptographic security: the "proof" is a
  SHA-256 tag over the witness.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from ..config import DOMAIN_SEPARATORS
from ..types import DELETION_FIELDS, JWT_FIELDS

_DIGEST_LEN = 32


@dataclass(frozen=True)
class MockCircuit:
    """Handle returned by load_circuit()."""

    bytecode_digest: bytes
    declared_inputs: tuple[str, ...]


class MockCircuitBackend:
    """
    Mock circuit runtime and prover in one object.

    ``execute`` rejects inputs that lack a declared circuit field, like the
    real runtime does. ``verify_result`` forces the verifier's answer so
    tests can exercise the ``invalid`` outcome.
    """

    _BACKEND_NAME = "MockCircuitBackend"
    _BACKEND_VERSION = "0.1.0"

    def __init__(
        self,
        declared_inputs: Sequence[str] = JWT_FIELDS + DELETION_FIELDS,
        *,
        verify_result: Optional[bool] = None,
    ) -> None:
        self._declared = tuple(declared_inputs)
        self._verify_result = verify_result
        self.calls: Dict[str, int] = {
            "load_circuit": 0,
            "execute": 0,
            "generate_proof": 0,
            "verify_proof": 0,
        }

    @property
    def backend_name(self) -> str:
        return self._BACKEND_NAME

    @property
    def backend_version(self) -> str:
        return self._BACKEND_VERSION

    def load_circuit(self, bytecode: bytes) -> MockCircuit:
        if not isinstance(bytecode, (bytes, bytearray)) or not bytecode:
            raise ValueError("bytecode must be non-empty bytes")
        self.calls["load_circuit"] += 1
        return MockCircuit(
            bytecode_digest=hashlib.sha256(bytes(bytecode)).digest(),
            declared_inputs=self._declared,
        )

    def execute(self, circuit: MockCircuit, inputs: Dict[str, Any]) -> bytes:
        if not isinstance(circuit, MockCircuit):
            raise TypeError("circuit must be a MockCircuit handle")
        if not isinstance(inputs, dict):
            raise TypeError("inputs must be a dict")
        self.calls["execute"] += 1
        missing = [name for name in circuit.declared_inputs if name not in inputs]
        if missing:
            raise ValueError(f"missing circuit input(s): {', '.join(missing)}")
        payload = json.dumps(inputs, sort_keys=True).encode("utf-8")
        return hashlib.sha256(
            DOMAIN_SEPARATORS["mock_witness"] + circuit.bytecode_digest + payload
        ).digest()

    def generate_proof(self, witness: bytes) -> bytes:
        if not isinstance(witness, (bytes, bytearray)) or len(witness) != _DIGEST_LEN:
            raise ValueError("witness must be a 32-byte digest")
        self.calls["generate_proof"] += 1
        return bytes(witness) + self._tag(bytes(witness))

    def verify_proof(self, proof: bytes) -> bool:
        self.calls["verify_proof"] += 1
        if self._verify_result is not None:
            return self._verify_result
        if not isinstance(proof, (bytes, bytearray)) or len(proof) != 2 * _DIGEST_LEN:
            return False
        witness, tag = bytes(proof[:_DIGEST_LEN]), bytes(proof[_DIGEST_LEN:])
        return tag == self._tag(witness)

    @staticmethod
    def _tag(witness: bytes) -> bytes:
        return hashlib.sha256(DOMAIN_SEPARATORS["mock_proof"] + witness).digest()
