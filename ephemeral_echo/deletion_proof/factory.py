"""
Backend factory for the deletion proof pipeline.

Backends are registered by dotted import path and instantiated on demand,
so optional native bindings are only imported when selected.
"""

from __future__ import annotations

import importlib
from typing import Any, Final

from .feature_flags import get_backend_type
from .interfaces import CircuitRuntime, ProvingBackend

BACKEND_REGISTRY: dict[str, str] = {
    "mock": "ephemeral_echo.deletion_proof.adapters.mock_adapter.MockCircuitBackend",
}

_DEFAULT_BACKEND: Final[str] = "mock"


def _format_valid_options() -> str:
    return ", ".join(sorted(BACKEND_REGISTRY.keys()))


def register_backend(name: str, import_path: str) -> None:
    """
    Register a backend class under ``name``.

    Raises:
        ValueError: If the name or import path is malformed.
    """
    if not isinstance(name, str) or not name.strip():
        raise ValueError(f"Invalid backend name: {name!r}")
    module_path, _, class_name = import_path.rpartition(".")
    if not module_path or not class_name:
        raise ValueError(f"Invalid backend import path for {name!r}: {import_path!r}")
    BACKEND_REGISTRY[name.strip()] = import_path


def _normalize_backend_name(value: str | None, *, source: str) -> str | None:
    if value is None or value == "":
        return None

    if not isinstance(value, str) or value not in BACKEND_REGISTRY:
        raise ValueError(
            f"Invalid backend name from {source}: {value!r}. "
            f"Valid options: {_format_valid_options()}"
        )

    return value


def _load_backend_class(backend_name: str) -> type:
    import_path = BACKEND_REGISTRY[backend_name]
    module_path, _, class_name = import_path.rpartition(".")

    try:
        module = importlib.import_module(module_path)
    except ModuleNotFoundError as exc:
        raise ImportError(
            f"Unable to import backend module {module_path!r} for {backend_name!r}"
        ) from exc

    try:
        backend_cls = getattr(module, class_name)
    except AttributeError as exc:
        raise ImportError(
            f"Backend class {class_name!r} not found in module {module_path!r}"
        ) from exc

    if not isinstance(backend_cls, type):
        raise TypeError(f"Backend reference {import_path!r} did not resolve to a class")

    return backend_cls


def _resolve_backend_name(
    *, prefer: str | None = None, override: str | None = None
) -> str:
    resolved_override = _normalize_backend_name(override, source="override")
    if resolved_override is not None:
        return resolved_override

    resolved_prefer = _normalize_backend_name(prefer, source="prefer")
    if resolved_prefer is not None:
        return resolved_prefer

    resolved_flag = get_backend_type()
    if resolved_flag not in BACKEND_REGISTRY:
        raise ValueError(
            f"Invalid backend name from feature flags: {resolved_flag!r}. "
            f"Valid options: {_format_valid_options()}"
        )

    return resolved_flag or _DEFAULT_BACKEND


def get_proving_backend(
    *, prefer: str | None = None, override: str | None = None, **kwargs: Any
) -> ProvingBackend:
    """
    Return a proving backend instance based on feature flags.

    Args:
        prefer: Optional backend name hint.
        override: Optional backend name override (testing only).
        **kwargs: Passed to the backend constructor.

    Returns:
        ProvingBackend: New backend instance. Backends that also implement
        CircuitRuntime can be handed to LazyCircuit directly.

    Raises:
        ValueError: If a backend name is invalid.
        ImportError: If the backend class cannot be imported.
        TypeError: If the instance does not implement ProvingBackend.
    """
    backend_name = _resolve_backend_name(prefer=prefer, override=override)
    backend_cls = _load_backend_class(backend_name)
    backend = backend_cls(**kwargs)

    if not isinstance(backend, ProvingBackend):
        raise TypeError(f"Backend instance {backend!r} does not implement ProvingBackend")

    return backend


def get_circuit_runtime(backend: Any) -> CircuitRuntime:
    """Return ``backend`` as a CircuitRuntime, or raise TypeError."""
    if not isinstance(backend, CircuitRuntime):
        raise TypeError(f"Backend {backend!r} does not implement CircuitRuntime")
    return backend
