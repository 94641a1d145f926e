from __future__ import annotations

import hashlib

import pytest

from ephemeral_echo.deletion_proof.config import DOMAIN_SEPARATORS
from ephemeral_echo.deletion_proof.interfaces import CircuitRuntime, ProvingBackend
from ephemeral_echo.deletion_proof.types import DELETION_FIELDS, JWT_FIELDS

from ephemeral_echo.deletion_proof.adapters.mock_adapter import (
    MockCircuit,
    MockCircuitBackend,
)

BYTECODE = b"compiled-circuit"


def _inputs() -> dict:
    return {name: "0x1" for name in JWT_FIELDS + DELETION_FIELDS}


def test_implements_both_interfaces() -> None:
    backend = MockCircuitBackend()
    assert isinstance(backend, CircuitRuntime)
    assert isinstance(backend, ProvingBackend)
    assert backend.backend_name == "MockCircuitBackend"
    assert backend.backend_version == "0.1.0"


def test_load_circuit_digests_bytecode() -> None:
    backend = MockCircuitBackend()
    circuit = backend.load_circuit(BYTECODE)

    assert isinstance(circuit, MockCircuit)
    assert circuit.bytecode_digest == hashlib.sha256(BYTECODE).digest()
    assert circuit.declared_inputs == JWT_FIELDS + DELETION_FIELDS
    assert backend.calls["load_circuit"] == 1


@pytest.mark.parametrize("bytecode", [b"", "text", None])
def test_load_circuit_rejects_bad_bytecode(bytecode) -> None:
    with pytest.raises(ValueError):
        MockCircuitBackend().load_circuit(bytecode)


def test_execute_is_deterministic() -> None:
    backend = MockCircuitBackend()
    circuit = backend.load_circuit(BYTECODE)

    first = backend.execute(circuit, _inputs())
    second = backend.execute(circuit, dict(reversed(list(_inputs().items()))))

    assert first == second
    assert len(first) == 32
    assert backend.execute(circuit, {**_inputs(), "current_nmt_root": "0x2"}) != first


def test_execute_requires_declared_inputs() -> None:
    backend = MockCircuitBackend()
    circuit = backend.load_circuit(BYTECODE)
    inputs = _inputs()
    del inputs["low_nullifier_path"]

    with pytest.raises(ValueError, match="low_nullifier_path"):
        backend.execute(circuit, inputs)


def test_execute_rejects_foreign_handle() -> None:
    with pytest.raises(TypeError):
        MockCircuitBackend().execute(object(), _inputs())


def test_proof_roundtrip() -> None:
    backend = MockCircuitBackend()
    witness = backend.execute(backend.load_circuit(BYTECODE), _inputs())
    proof = backend.generate_proof(witness)

    expected_tag = hashlib.sha256(DOMAIN_SEPARATORS["mock_proof"] + witness).digest()
    assert proof == witness + expected_tag
    assert backend.verify_proof(proof) is True


def test_tampered_proof_is_rejected() -> None:
    backend = MockCircuitBackend()
    proof = bytearray(backend.generate_proof(b"\x01" * 32))
    proof[-1] ^= 0xFF

    assert backend.verify_proof(bytes(proof)) is False
    assert backend.verify_proof(b"short") is False
    assert backend.verify_proof("not bytes") is False


def test_generate_proof_rejects_bad_witness() -> None:
    with pytest.raises(ValueError):
        MockCircuitBackend().generate_proof(b"\x00" * 31)


def test_forced_verify_result() -> None:
    backend = MockCircuitBackend(verify_result=False)
    proof = backend.generate_proof(b"\x02" * 32)
    assert backend.verify_proof(proof) is False
    assert backend.calls["verify_proof"] == 1
