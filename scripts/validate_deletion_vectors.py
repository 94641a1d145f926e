from __future__ import annotations

from ephemeral_echo.deletion_proof.test_vectors import deletion_vectors


def main() -> int:
    errors = deletion_vectors.validate_vector(deletion_vectors.DELETION_VECTOR)
    if errors:
        for error in errors:
            print(f"DELETION_VECTOR: {error}")
        return 1
    print("DELETION_VECTOR: OK")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
