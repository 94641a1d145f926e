"""
Fixed-width encodings for circuit inputs.

Noir bounded vectors and limb arrays have a size fixed at compile time, so
every byte-bearing input is right-padded to its declared maximum and every
limb is checked against the declared limb width before it reaches the
circuit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence

from .exceptions import ConfigurationError, EncodingError, LimbOverflowError

logger = logging.getLogger(__name__)

ZERO_BYTE = "0x00"


@dataclass(frozen=True)
class EncodedBuffer:
    """
    Zero-padded byte buffer with its logical length.

    Attributes:
        storage: Exactly ``max_length`` bytes as ``"0xNN"`` strings
        length: Logical (unpadded) size, never above ``max_length``
        source_length: Size of the input before truncation
    """

    storage: tuple[str, ...]
    length: int
    source_length: int

    @property
    def max_length(self) -> int:
        return len(self.storage)

    @property
    def truncated(self) -> bool:
        return self.source_length > self.length

    def data(self) -> bytes:
        """Logical bytes, padding excluded."""
        return bytes(int(b, 16) for b in self.storage[: self.length])

    def to_circuit(self) -> dict:
        return {"storage": list(self.storage), "len": self.length}


@dataclass(frozen=True)
class LimbArray:
    """
    Big-integer limbs checked against a declared width.

    Overflowing limbs keep their value so the failure stays attributable
    to an index; ``errors`` holds one LimbOverflowError per offender.
    """

    limbs: tuple[int, ...]
    width_bits: int
    errors: tuple[LimbOverflowError, ...] = ()

    @property
    def overflow_indices(self) -> list[int]:
        return [err.index for err in self.errors]

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_overflow(self) -> None:
        if self.errors:
            raise self.errors[0]

    def to_circuit(self) -> list[str]:
        return [hex(limb) for limb in self.limbs]

    def __len__(self) -> int:
        return len(self.limbs)


def encode(data: Any, max_length: int, *, name: str = "input") -> EncodedBuffer:
    """
    Encode a byte-like input into a fixed-width buffer.

    Args:
        data: ``{storage, len}`` mapping or EncodedBuffer, bytes-like object,
            text (UTF-8), or a sequence of ints / ``0x`` hex strings
        max_length: Declared maximum length (size of ``storage``)
        name: Field name used in diagnostics

    Returns:
        EncodedBuffer with ``len(storage) == max_length``

    Raises:
        ConfigurationError: If max_length is negative
        EncodingError: If the input shape or an element is not recognized

    Example:
        >>> encode(b"\\x05", 4).storage
        ('0x05', '0x00', '0x00', '0x00')
    """
    if not isinstance(max_length, int) or max_length < 0:
        raise ConfigurationError(f"{name}: max_length must be a non-negative int")

    values = _logical_bytes(data, name)
    source_length = len(values)
    if source_length > max_length:
        logger.warning(
            "%s: truncating %d bytes to declared maximum of %d",
            name,
            source_length,
            max_length,
        )
        values = values[:max_length]

    storage = [f"0x{b:02x}" for b in values]
    storage.extend([ZERO_BYTE] * (max_length - len(storage)))
    return EncodedBuffer(
        storage=tuple(storage), length=len(values), source_length=source_length
    )


def encode_limbs(
    limbs: Iterable[Any],
    limb_width_bits: int,
    *,
    count: Optional[int] = None,
    name: str = "limbs",
) -> LimbArray:
    """
    Convert limbs to ints and report any that exceed the limb width.

    Args:
        limbs: ints, decimal strings or ``0x`` hex strings
        limb_width_bits: Declared width of each circuit limb
        count: Expected number of limbs, if fixed
        name: Field name used in diagnostics

    Returns:
        LimbArray; check ``ok`` or call ``raise_for_overflow()``

    Raises:
        ConfigurationError: If limb_width_bits is not positive
        EncodingError: If a limb cannot be parsed or the count is wrong
    """
    if not isinstance(limb_width_bits, int) or limb_width_bits <= 0:
        raise ConfigurationError(f"{name}: limb width must be a positive int")
    if isinstance(limbs, (str, bytes, bytearray)) or not isinstance(limbs, Iterable):
        raise EncodingError(f"{name}: expected a sequence of limbs")

    values = [_limb_to_int(limb, idx, name) for idx, limb in enumerate(limbs)]
    if count is not None and len(values) != count:
        raise EncodingError(f"{name}: expected {count} limbs, got {len(values)}")

    max_limb = (1 << limb_width_bits) - 1
    errors = []
    for idx, value in enumerate(values):
        if value > max_limb:
            logger.error(
                "%s[%d] exceeds %d-bit limb width", name, idx, limb_width_bits
            )
            errors.append(LimbOverflowError(idx, value, limb_width_bits))

    return LimbArray(limbs=tuple(values), width_bits=limb_width_bits, errors=tuple(errors))


def to_uint(value: Any, bits: int = 256, *, name: str = "value") -> int:
    """
    Normalize an int, hex/decimal string or big-endian bytes to an unsigned int.

    Raises:
        EncodingError: If the value is unparsable, negative or wider than ``bits``
    """
    if isinstance(value, bool):
        raise EncodingError(f"{name}: bool is not a numeric value")
    if isinstance(value, int):
        result = value
    elif isinstance(value, (bytes, bytearray)):
        if len(value) * 8 > bits:
            raise EncodingError(f"{name}: {len(value)} bytes exceed {bits} bits")
        result = int.from_bytes(value, "big")
    elif isinstance(value, str):
        result = _parse_int_str(value, name)
    else:
        raise EncodingError(f"{name}: unsupported type {type(value).__name__}")

    if result < 0:
        raise EncodingError(f"{name} must be non-negative")
    if result.bit_length() > bits:
        raise EncodingError(f"{name} does not fit in {bits} bits")
    return result


def _logical_bytes(data: Any, name: str) -> list[int]:
    if isinstance(data, EncodedBuffer):
        return list(data.data())

    if isinstance(data, Mapping):
        if "storage" not in data:
            raise EncodingError(f"{name}: mapping input must have a 'storage' key")
        storage = data["storage"]
        if isinstance(storage, (str, bytes, bytearray)) or not isinstance(
            storage, Sequence
        ):
            raise EncodingError(f"{name}: 'storage' must be a sequence of bytes")
        length = data.get("len", data.get("length", len(storage)))
        if not isinstance(length, int) or isinstance(length, bool) or length < 0:
            raise EncodingError(f"{name}: length must be a non-negative int")
        if length > len(storage):
            raise EncodingError(
                f"{name}: length {length} exceeds storage size {len(storage)}"
            )
        # entries beyond length are padding and never carried over
        return [_byte(b, idx, name) for idx, b in enumerate(storage[:length])]

    if isinstance(data, (bytes, bytearray, memoryview)):
        return list(bytes(data))

    if isinstance(data, str):
        return list(data.encode("utf-8"))

    if isinstance(data, Sequence):
        return [_byte(b, idx, name) for idx, b in enumerate(data)]

    raise EncodingError(
        f"{name}: unsupported input type {type(data).__name__}"
    )


def _byte(value: Any, idx: int, name: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        result = value
    elif isinstance(value, str) and value[:2].lower() == "0x":
        try:
            result = int(value, 16)
        except ValueError as exc:
            raise EncodingError(f"{name}[{idx}]: invalid hex byte {value!r}") from exc
    else:
        raise EncodingError(f"{name}[{idx}]: unsupported byte {value!r}")

    if not 0 <= result <= 0xFF:
        raise EncodingError(f"{name}[{idx}]: {value!r} is not a byte")
    return result


def _limb_to_int(value: Any, idx: int, name: str) -> int:
    label = f"{name}[{idx}]"
    if isinstance(value, bool):
        raise EncodingError(f"{label}: bool is not a limb")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        result = _parse_int_str(value, label)
    else:
        raise EncodingError(f"{label}: unsupported limb type {type(value).__name__}")
    if result < 0:
        raise EncodingError(f"{label}: limb must be non-negative")
    return result


def _parse_int_str(value: str, label: str) -> int:
    text = value.strip()
    try:
        if text[:2].lower() == "0x":
            return int(text, 16)
        return int(text, 10)
    except ValueError as exc:
        raise EncodingError(f"{label}: cannot parse {value!r} as an integer") from exc
