"""
Deletion Proof Example

This example signs a throwaway RS256 JWT, builds a depth-32 nullifier tree
over the demo leaves and drives the full pipeline against the mock backend.
"""

import trio

from ephemeral_echo.deletion_proof import (
    DeletionProofPipeline,
    InputAssembler,
    JwtRequest,
    LazyCircuit,
    LocalJwtInputSdk,
    bytes_source,
    get_proving_backend,
)
from ephemeral_echo.deletion_proof.test_vectors.deletion_vectors import (
    DEMO_NULLIFIER,
    demo_leaves,
)
from ephemeral_echo.deletion_proof.test_vectors.jwt_vectors import (
    generate_rsa_key,
    public_jwk,
    sign_jwt,
)

# Stand-in for a compiled Noir program
DEMO_BYTECODE = b"ephemeral-echo-demo-circuit"


def print_event(event):
    print(f"   [{event.stage.value:>10}] {event.status.value:<10} {event.message}")


async def main():
    """Run one deletion proof end to end."""

    print("\n" + "=" * 70)
    print("ephemeral-echo - Deletion Proof Example")
    print("=" * 70)

    print("\n1. Signing a JWT with a fresh RSA-2048 key...")
    key = generate_rsa_key()
    token = sign_jwt(key, {"sub": "alice", "iat": 1700000000})
    request = JwtRequest(jwt=token, public_key_jwk=public_jwk(key), expected_user_id="alice")
    print(f"   JWT: {token[:40]}...")

    print("\n2. Wiring the pipeline (mock backend)...")
    backend = get_proving_backend(prefer="mock")
    pipeline = DeletionProofPipeline(
        InputAssembler(LocalJwtInputSdk()),
        LazyCircuit(bytes_source(DEMO_BYTECODE), backend),
        backend,
        event_sink=print_event,
    )

    print(f"\n3. Deleting nullifier {hex(DEMO_NULLIFIER)}...")
    run = await pipeline.run(
        request, demo_leaves(), None, 32, nullifier=DEMO_NULLIFIER
    )

    print("\n4. Result")
    print(f"   State: {run.stage.value}")
    print(f"   Root:  {run.inputs['current_nmt_root'] if run.inputs else '-'}")
    for stage, seconds in run.timings.items():
        print(f"   {stage:<10} {seconds * 1000:.1f} ms")
    for line in run.diagnostics:
        print(f"   ! {line}")

    print("\n" + "=" * 70)


if __name__ == "__main__":
    trio.run(main)
