"""
Custom exceptions for the deletion proof toolkit.

Every error raised by the encoder, tree builder, assembler or pipeline
derives from DeletionProofError so callers can catch the whole family.
"""

from __future__ import annotations

from typing import Iterable, Optional


class DeletionProofError(Exception):
    """Base exception for deletion proof errors."""

    pass


class ConfigurationError(DeletionProofError):
    """Bad depth, size or configuration parameter."""

    pass


class NullifierRangeError(ConfigurationError):
    """No leaf brackets the nullifier being deleted."""

    pass


class EncodingError(DeletionProofError):
    """Input has an unrecognized shape or an unparsable element."""

    pass


class LimbOverflowError(DeletionProofError, OverflowError):
    """
    A limb exceeds the declared limb width.

    Attributes:
        index: Position of the offending limb
        value: The limb value as received
        width_bits: Declared limb width
    """

    def __init__(self, index: int, value: int, width_bits: int) -> None:
        self.index = index
        self.value = value
        self.width_bits = width_bits
        super().__init__(
            f"limb[{index}] = {value:#x} does not fit in {width_bits} bits"
        )


class EmptyTreeError(DeletionProofError):
    """Tree construction was attempted with no leaves."""

    pass


class IndexOutOfRangeError(DeletionProofError, IndexError):
    """Leaf index outside the populated part of the tree."""

    pass


class FieldCollisionError(DeletionProofError):
    """JWT and deletion input halves share a field name."""

    def __init__(self, fields: Iterable[str]) -> None:
        self.fields = sorted(fields)
        super().__init__(f"field name collision: {', '.join(self.fields)}")


class MissingFieldError(DeletionProofError):
    """Combined inputs lack required keys."""

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = list(missing)
        if self.missing:
            message = "missing required input(s): " + ", ".join(self.missing)
        else:
            message = "combined inputs are empty"
        super().__init__(message)


class AssemblyError(DeletionProofError):
    """Input assembly failed; ``__cause__`` holds the first failure."""

    pass


class CollaboratorError(DeletionProofError):
    """External SDK, circuit or proving backend failure."""

    def __init__(self, stage: str, message: str) -> None:
        self.stage = stage
        super().__init__(f"[{stage}] {message}")


class BusyError(DeletionProofError):
    """A pipeline run is already in progress."""

    def __init__(self, active_run: Optional[str] = None) -> None:
        self.active_run = active_run
        detail = f" ({active_run})" if active_run else ""
        super().__init__(f"pipeline run already active{detail}")
