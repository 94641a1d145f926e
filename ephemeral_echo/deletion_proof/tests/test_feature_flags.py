"""Unit tests for backend feature flags and the backend factory."""

from __future__ import annotations

import pytest

from ephemeral_echo.deletion_proof import factory
from ephemeral_echo.deletion_proof.adapters.mock_adapter import MockCircuitBackend
from ephemeral_echo.deletion_proof.feature_flags import get_backend_type, set_backend_type
from ephemeral_echo.deletion_proof.interfaces import CircuitRuntime, ProvingBackend


@pytest.fixture(autouse=True)
def reset_backend_state(monkeypatch: pytest.MonkeyPatch) -> None:
    set_backend_type(None)
    monkeypatch.delenv("DELETION_PROOF_BACKEND", raising=False)
    monkeypatch.setattr(factory, "BACKEND_REGISTRY", dict(factory.BACKEND_REGISTRY))
    yield
    set_backend_type(None)


def test_default_backend_type_is_mock() -> None:
    assert get_backend_type() == "mock"


def test_precedence_prefer_override_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DELETION_PROOF_BACKEND", "from-env")
    assert get_backend_type() == "from-env"

    set_backend_type("from-override")
    assert get_backend_type() == "from-override"
    assert get_backend_type(prefer="preferred") == "preferred"

    set_backend_type(None)
    assert get_backend_type() == "from-env"


def test_blank_values_fall_through(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DELETION_PROOF_BACKEND", "  ")
    set_backend_type("")
    assert get_backend_type(prefer="") == "mock"


def test_non_string_backend_rejected() -> None:
    with pytest.raises(ValueError):
        set_backend_type(42)  # type: ignore[arg-type]


def test_default_backend_is_mock() -> None:
    backend = factory.get_proving_backend()
    assert isinstance(backend, MockCircuitBackend)
    assert isinstance(backend, ProvingBackend)
    assert isinstance(factory.get_circuit_runtime(backend), CircuitRuntime)


def test_backend_kwargs_are_forwarded() -> None:
    backend = factory.get_proving_backend(verify_result=False)
    assert backend.verify_proof(b"anything") is False


def test_unknown_backend_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DELETION_PROOF_BACKEND", "groth16")
    with pytest.raises(ValueError, match="groth16"):
        factory.get_proving_backend()


def test_unknown_prefer_and_override() -> None:
    with pytest.raises(ValueError):
        factory.get_proving_backend(prefer="nope")
    with pytest.raises(ValueError):
        factory.get_proving_backend(override="nope")


def test_register_backend_and_select() -> None:
    factory.register_backend(
        "mock2", "ephemeral_echo.deletion_proof.adapters.mock_adapter.MockCircuitBackend"
    )
    assert isinstance(factory.get_proving_backend(override="mock2"), MockCircuitBackend)


def test_register_backend_rejects_bad_path() -> None:
    with pytest.raises(ValueError):
        factory.register_backend("bad", "NoDots")
    with pytest.raises(ValueError):
        factory.register_backend(" ", "a.B")


def test_missing_module_raises_import_error() -> None:
    factory.register_backend("ghost", "ephemeral_echo.no_such_module.Backend")
    with pytest.raises(ImportError):
        factory.get_proving_backend(prefer="ghost")


def test_missing_class_raises_import_error() -> None:
    factory.register_backend("ghost", "ephemeral_echo.deletion_proof.factory.NoSuchClass")
    with pytest.raises(ImportError):
        factory.get_proving_backend(prefer="ghost")


def test_non_backend_class_raises_type_error() -> None:
    factory.register_backend("plain", "collections.OrderedDict")
    with pytest.raises(TypeError):
        factory.get_proving_backend(prefer="plain")


def test_get_circuit_runtime_rejects_plain_object() -> None:
    with pytest.raises(TypeError):
        factory.get_circuit_runtime(object())
