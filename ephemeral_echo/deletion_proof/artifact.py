"""Compiled circuit artifact sources and the lazily loaded circuit handle."""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from pathlib import Path
from typing import Any, Awaitable, Callable, Union

import trio

from .exceptions import ConfigurationError
from .interfaces import CircuitHandle, CircuitRuntime, maybe_await

logger = logging.getLogger(__name__)

ArtifactSource = Callable[[], Union[bytes, Awaitable[bytes]]]

DEFAULT_ARTIFACT_NAME = "ephemeral_echo_circuits.json"
_ENV_VAR_NAME = "DELETION_CIRCUIT_ARTIFACT"


def resolve_artifact_path(path: str | Path | None = None) -> Path:
    """
    Resolve the compiled circuit JSON: argument, then env var, then
    ``circuits/`` under the working directory.
    """
    if path is None:
        path = os.getenv(_ENV_VAR_NAME) or Path("circuits") / DEFAULT_ARTIFACT_NAME
    resolved = Path(path)
    if not resolved.is_file():
        raise FileNotFoundError(f"Unable to resolve circuit artifact: {resolved}")
    return resolved


class JsonArtifactSource:
    """Read bytecode from a compiled Noir program JSON file."""

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = resolve_artifact_path(path)

    @property
    def path(self) -> Path:
        return self._path

    def __call__(self) -> bytes:
        try:
            program = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"{self._path}: invalid JSON: {exc}") from exc
        bytecode = program.get("bytecode") if isinstance(program, dict) else None
        if not bytecode or not isinstance(bytecode, str):
            raise ConfigurationError(f"{self._path}: artifact has no bytecode")
        try:
            return base64.b64decode(bytecode, validate=True)
        except binascii.Error as exc:
            raise ConfigurationError(f"{self._path}: bytecode is not base64") from exc


class LazyCircuit:
    """
    Owns the loaded circuit handle for the process lifetime.

    ``get()`` loads on first use under a lock; concurrent callers wait for
    the same load and the artifact is never loaded twice.
    """

    def __init__(self, source: ArtifactSource, runtime: CircuitRuntime) -> None:
        self._source = source
        self._runtime = runtime
        self._lock = trio.Lock()
        self._handle: Any = None
        self._loaded = False

    @property
    def runtime(self) -> CircuitRuntime:
        return self._runtime

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def get(self) -> CircuitHandle:
        if self._loaded:
            return self._handle
        async with self._lock:
            if not self._loaded:
                logger.info("loading circuit artifact")
                bytecode = await maybe_await(self._source())
                self._handle = await maybe_await(self._runtime.load_circuit(bytecode))
                self._loaded = True
                logger.info("circuit loaded (%d bytes of bytecode)", len(bytecode))
        return self._handle

    async def execute(self, inputs: Any) -> Any:
        handle = await self.get()
        return await maybe_await(self._runtime.execute(handle, inputs))


def bytes_source(bytecode: bytes) -> ArtifactSource:
    """Artifact source over in-memory bytecode."""

    def _source() -> bytes:
        return bytecode

    return _source

