"""
Feature flags for selecting the deletion proof backend.

Only the mock backend ships with this package; real Noir/Barretenberg
bindings register themselves through the factory.
"""

from __future__ import annotations

import os
from typing import Final

_DEFAULT_BACKEND: Final[str] = "mock"
_ENV_VAR_NAME: Final[str] = "DELETION_PROOF_BACKEND"

_backend_override: str | None = None


def _normalize_backend(value: str | None) -> str | None:
    if value is None:
        return None

    if not isinstance(value, str):
        raise ValueError(f"Invalid backend type: {value!r}. Expected a string")

    value = value.strip()
    if value == "":
        return None

    return value


def get_backend_type(prefer: str | None = None) -> str:
    """
    Resolve backend type in precedence order: prefer, override, env, default.

    Raises:
        ValueError: If a provided backend value is not a string.
    """
    preferred = _normalize_backend(prefer)
    if preferred is not None:
        return preferred

    if _backend_override is not None:
        return _backend_override

    env_backend = _normalize_backend(os.getenv(_ENV_VAR_NAME))
    if env_backend is not None:
        return env_backend

    return _DEFAULT_BACKEND


def set_backend_type(value: str | None) -> None:
    """Set in-memory backend override (testing only); None clears it."""
    global _backend_override
    _backend_override = _normalize_backend(value)
