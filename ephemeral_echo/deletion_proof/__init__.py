"""Public API for the deletion proof toolkit."""
from __future__ import annotations

from .artifact import JsonArtifactSource, LazyCircuit, bytes_source
from .assembler import InputAssembler, deletion_inputs_from_leaves, merge_inputs
from .config import CircuitConfig
from .encoding import EncodedBuffer, LimbArray, encode, encode_limbs
from .exceptions import (
    AssemblyError,
    BusyError,
    CollaboratorError,
    ConfigurationError,
    DeletionProofError,
    EmptyTreeError,
    EncodingError,
    FieldCollisionError,
    IndexOutOfRangeError,
    LimbOverflowError,
    MissingFieldError,
    NullifierRangeError,
)
from .factory import get_circuit_runtime, get_proving_backend, register_backend
from .feature_flags import get_backend_type, set_backend_type
from .interfaces import CircuitRuntime, JwtInputSdk, ProvingBackend
from .jwt_sdk import LocalJwtInputSdk, StaticJwtInputSdk
from .merkle import MerkleTree, build, find_low_nullifier, path_for, verify_path
from .pipeline import (
    DeletionProofPipeline,
    EventStatus,
    PipelineRun,
    PipelineStage,
    StageEvent,
)
from .types import DeletionProofInputs, JwtRequest, JwtSdkOutput, LeafRecord

__all__ = [
    "AssemblyError",
    "BusyError",
    "CircuitConfig",
    "CircuitRuntime",
    "CollaboratorError",
    "ConfigurationError",
    "DeletionProofError",
    "DeletionProofInputs",
    "DeletionProofPipeline",
    "EmptyTreeError",
    "EncodedBuffer",
    "EncodingError",
    "EventStatus",
    "FieldCollisionError",
    "IndexOutOfRangeError",
    "InputAssembler",
    "JsonArtifactSource",
    "JwtInputSdk",
    "JwtRequest",
    "JwtSdkOutput",
    "LazyCircuit",
    "LeafRecord",
    "LimbArray",
    "LimbOverflowError",
    "LocalJwtInputSdk",
    "MerkleTree",
    "MissingFieldError",
    "NullifierRangeError",
    "PipelineRun",
    "PipelineStage",
    "ProvingBackend",
    "StageEvent",
    "StaticJwtInputSdk",
    "build",
    "bytes_source",
    "deletion_inputs_from_leaves",
    "encode",
    "encode_limbs",
    "find_low_nullifier",
    "get_backend_type",
    "get_circuit_runtime",
    "get_proving_backend",
    "merge_inputs",
    "path_for",
    "register_backend",
    "set_backend_type",
    "verify_path",
]
