"""
Collaborator interfaces for the deletion proof pipeline.

Circuit runtime, proving backend and JWT SDK live outside this package.
Runtime and backend methods may be plain functions or coroutines; the
pipeline awaits whichever it gets.
"""

from __future__ import annotations

import inspect
from typing import Any, Awaitable, Mapping, Protocol, Union, runtime_checkable

from .types import CombinedInputs, JwtSdkOutput

Witness = Any
Proof = Any
CircuitHandle = Any


@runtime_checkable
class CircuitRuntime(Protocol):
    """Turns compiled bytecode and inputs into a witness."""

    def load_circuit(
        self, bytecode: bytes
    ) -> Union[CircuitHandle, Awaitable[CircuitHandle]]:
        ...

    def execute(
        self, circuit: CircuitHandle, inputs: CombinedInputs
    ) -> Union[Witness, Awaitable[Witness]]:
        ...


@runtime_checkable
class ProvingBackend(Protocol):
    """Turns a witness into a proof and checks proofs."""

    @property
    def backend_name(self) -> str:
        ...

    def generate_proof(self, witness: Witness) -> Union[Proof, Awaitable[Proof]]:
        ...

    def verify_proof(self, proof: Proof) -> Union[bool, Awaitable[bool]]:
        ...


@runtime_checkable
class JwtInputSdk(Protocol):
    """Decomposes a JWT and RSA public key into circuit inputs."""

    def derive_jwt_circuit_inputs(
        self,
        jwt: str,
        public_key_jwk: Mapping[str, Any],
        max_signed_data_length: int,
    ) -> JwtSdkOutput:
        ...


async def maybe_await(value: Any) -> Any:
    """Await collaborator results that are awaitable, pass others through."""
    if inspect.isawaitable(value):
        return await value
    return value
