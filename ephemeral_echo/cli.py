"""
Command-Line Interface for the ephemeral-echo deletion proof toolkit

Builds nullifier trees, assembles combined circuit inputs and drives the
staged proving pipeline.
"""

import functools
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import click
import trio

from ephemeral_echo import __version__
from ephemeral_echo.deletion_proof import merkle
from ephemeral_echo.deletion_proof.artifact import JsonArtifactSource, LazyCircuit
from ephemeral_echo.deletion_proof.assembler import InputAssembler
from ephemeral_echo.deletion_proof.config import CircuitConfig, TREE_DEPTH
from ephemeral_echo.deletion_proof.encoding import to_uint
from ephemeral_echo.deletion_proof.exceptions import DeletionProofError, NullifierRangeError
from ephemeral_echo.deletion_proof.factory import (
    BACKEND_REGISTRY,
    get_circuit_runtime,
    get_proving_backend,
)
from ephemeral_echo.deletion_proof.jwt_sdk import LocalJwtInputSdk, StaticJwtInputSdk
from ephemeral_echo.deletion_proof.pipeline import (
    DeletionProofPipeline,
    EventStatus,
    PipelineStage,
    StageEvent,
)
from ephemeral_echo.deletion_proof.test_vectors.deletion_vectors import (
    DEMO_LEAVES,
    deletion_vector,
)
from ephemeral_echo.deletion_proof.types import JwtRequest

EXIT_VALID = 0
EXIT_INVALID = 1
EXIT_FAILED = 2


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose):
    """
    ephemeral-echo deletion proof toolkit

    Assemble circuit inputs that prove deletion of a message nullifier
    from an indexed Merkle tree, authenticated by an RS256 JWT.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_json(path: str) -> Any:
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"{path}: invalid JSON ({exc})")


def _load_leaves(path: Optional[str]) -> list:
    if path is None:
        return list(DEMO_LEAVES)
    leaves = _load_json(path)
    if not isinstance(leaves, list):
        raise click.BadParameter(f"{path}: expected a JSON list of leaves")
    return leaves


def _fail(message: str) -> None:
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    sys.exit(EXIT_FAILED)


@main.command()
@click.option(
    "--leaves",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON list of {value, next_value, next_index} leaves (default: demo leaves)",
)
@click.option("--depth", type=int, default=TREE_DEPTH, show_default=True)
@click.option("--index", "target_index", type=int, help="Leaf to extract a path for")
@click.option("--nullifier", help="Locate the low nullifier leaf for this value")
@click.option("--strict", is_flag=True, help="Check the linked-list invariant")
def tree(leaves, depth, target_index, nullifier, strict):
    """Build the nullifier tree and print its root and a sibling path."""
    try:
        records = _load_leaves(leaves)
        built = merkle.build(records, depth, strict=strict)
        if target_index is None and nullifier is not None:
            target_index = merkle.find_low_nullifier(built.leaves, nullifier)
        result = {"root": built.root, "depth": built.depth, "leaf_count": len(built.leaves)}
        if target_index is not None:
            result["path"] = built.path_for(target_index)
            result["index"] = target_index
            result["leaf"] = built.leaves[target_index].to_dict()
            if nullifier is not None:
                value = to_uint(nullifier, name="nullifier")
                if not built.leaves[target_index].brackets(value):
                    raise NullifierRangeError(
                        f"leaf {target_index} does not bracket nullifier {hex(value)}"
                    )
    except DeletionProofError as exc:
        _fail(str(exc))
    click.echo(json.dumps(result, indent=2))


_INPUT_OPTIONS = [
    click.option("--jwt", "jwt_token", help="RS256 JWT (compact serialization)"),
    click.option(
        "--jwt-file", type=click.Path(exists=True, dir_okay=False), help="File holding the JWT"
    ),
    click.option(
        "--jwk", type=click.Path(exists=True, dir_okay=False), help="RSA public key as JWK JSON"
    ),
    click.option("--user-id", default="", help="Expected user id in the JWT"),
    click.option(
        "--sdk-output",
        type=click.Path(exists=True, dir_okay=False),
        help="Precomputed JWT SDK output JSON (replaces --jwt/--jwk)",
    ),
    click.option(
        "--leaves",
        type=click.Path(exists=True, dir_okay=False),
        help="JSON list of leaves (default: demo leaves)",
    ),
    click.option("--nullifier", help="Nullifier being deleted (tree mode)"),
    click.option("--index", "target_index", type=int, help="Low nullifier leaf index"),
    click.option("--depth", type=int, help="Tree depth (default: configured depth)"),
    click.option("--vector", is_flag=True, help="Use the fixed deletion test vector"),
    click.option(
        "--config",
        "config_path",
        type=click.Path(exists=True, dir_okay=False),
        help="YAML circuit configuration overrides",
    ),
]


def input_options(func):
    """Options shared by ``assemble`` and ``run``."""
    for option in reversed(_INPUT_OPTIONS):
        func = option(func)
    return func


def _prepare(
    jwt_token, jwt_file, jwk, user_id, sdk_output, leaves, nullifier,
    target_index, depth, vector, config_path,
):
    """Resolve CLI options into (assembler, request, assemble kwargs)."""
    config = CircuitConfig.load(config_path) if config_path else CircuitConfig()

    if sdk_output:
        sdk = StaticJwtInputSdk(_load_json(sdk_output))
    else:
        sdk = LocalJwtInputSdk()
        if jwt_file:
            jwt_token = Path(jwt_file).read_text(encoding="utf-8").strip()
        if not jwt_token or not jwk:
            raise click.UsageError("--jwt/--jwt-file and --jwk are required without --sdk-output")

    request = JwtRequest(
        jwt=jwt_token or "",
        public_key_jwk=_load_json(jwk) if jwk else {},
        expected_user_id=user_id,
    )
    kwargs = {"target_index": target_index, "depth": depth}
    if vector:
        kwargs["precomputed"] = deletion_vector()
    else:
        if nullifier is None:
            raise click.UsageError("--nullifier is required unless --vector is given")
        kwargs["leaves"] = _load_leaves(leaves)
        kwargs["nullifier"] = nullifier
    return InputAssembler(sdk, config), request, kwargs


@main.command()
@input_options
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write JSON here")
def assemble(output, **options):
    """Assemble the combined circuit inputs and print them as JSON."""
    try:
        assembler, request, kwargs = _prepare(**options)
        inputs = assembler.assemble(request, **kwargs)
    except DeletionProofError as exc:
        _fail(str(exc))

    text = json.dumps(inputs, indent=2)
    if output:
        Path(output).write_text(text, encoding="utf-8")
        click.echo(click.style(f"✓ Inputs written to {output}", fg="green"))
    else:
        click.echo(text)


def _echo_event(event: StageEvent) -> None:
    colors = {
        EventStatus.PROCESSING: "cyan",
        EventStatus.SUCCESS: "green",
        EventStatus.FAILURE: "red",
    }
    line = f"[{event.stage.value:>10}] {event.message}"
    if event.duration is not None:
        line += f" ({event.duration:.3f}s)"
    click.echo(click.style(line, fg=colors[event.status]))


@main.command()
@input_options
@click.option(
    "--artifact",
    type=click.Path(dir_okay=False),
    help="Compiled circuit JSON (default: $DELETION_CIRCUIT_ARTIFACT or circuits/)",
)
@click.option(
    "--backend",
    type=click.Choice(sorted(BACKEND_REGISTRY), case_sensitive=False),
    help="Proving backend (default: feature flag)",
)
@click.option(
    "--report", type=click.Path(dir_okay=False), help="Write the CBOR run report here"
)
def run(artifact, backend, report, **options):
    """
    Run the full pipeline: prepare, validate, execute, verify.

    Exits 0 when the proof is valid, 1 when it is invalid and 2 on failure.
    """
    try:
        assembler, request, kwargs = _prepare(**options)
        prover = get_proving_backend(prefer=backend)
        circuit = LazyCircuit(JsonArtifactSource(artifact), get_circuit_runtime(prover))
    except (DeletionProofError, FileNotFoundError, ValueError, ImportError, TypeError) as exc:
        _fail(str(exc))

    pipeline = DeletionProofPipeline(assembler, circuit, prover, event_sink=_echo_event)
    result = trio.run(functools.partial(pipeline.run, request, **kwargs))

    for line in result.diagnostics:
        click.echo(click.style(f"  - {line}", fg="yellow"))
    if report:
        Path(report).write_bytes(result.serialize())
        click.echo(f"Run report written to {report}")

    click.echo(f"Result: {result.stage.value.upper()} in {result.timings['total']:.3f}s")
    if result.stage is PipelineStage.VALID:
        sys.exit(EXIT_VALID)
    if result.stage is PipelineStage.INVALID:
        sys.exit(EXIT_INVALID)
    sys.exit(EXIT_FAILED)


if __name__ == "__main__":
    main()
