"""Unit tests for fixed-width buffer and limb encodings."""

from __future__ import annotations

import logging

import pytest

from ephemeral_echo.deletion_proof.encoding import (
    EncodedBuffer,
    encode,
    encode_limbs,
    to_uint,
)
from ephemeral_echo.deletion_proof.exceptions import (
    ConfigurationError,
    EncodingError,
    LimbOverflowError,
)


@pytest.mark.parametrize("data", [b"\x05", bytearray(b"\x05"), [5], ["0x05"]])
def test_single_byte_is_zero_padded(data) -> None:
    buf = encode(data, 4)
    assert buf.storage == ("0x05", "0x00", "0x00", "0x00")
    assert buf.length == 1
    assert buf.max_length == 4
    assert buf.truncated is False


def test_text_is_utf8() -> None:
    buf = encode("ab", 3)
    assert buf.storage == ("0x61", "0x62", "0x00")
    assert buf.data() == b"ab"


def test_storage_mapping_ignores_padding_beyond_len() -> None:
    buf = encode({"storage": [1, 2, 9, 9], "len": 2}, 4)
    assert buf.storage == ("0x01", "0x02", "0x00", "0x00")
    assert buf.length == 2


def test_storage_mapping_accepts_length_alias() -> None:
    buf = encode({"storage": ["0x0a", "0x0b"], "length": 1}, 2)
    assert buf.to_circuit() == {"storage": ["0x0a", "0x00"], "len": 1}


def test_encoded_buffer_is_reencoded_to_new_width() -> None:
    first = encode(b"xyz", 8)
    second = encode(first, 4)
    assert isinstance(second, EncodedBuffer)
    assert second.data() == b"xyz"
    assert second.max_length == 4


def test_exact_fit_is_not_truncated() -> None:
    buf = encode(b"abcd", 4)
    assert buf.length == 4
    assert buf.truncated is False


def test_oversized_input_is_truncated_with_warning(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="ephemeral_echo.deletion_proof.encoding"):
        buf = encode(b"abcdef", 4, name="jwt_signed_data")

    assert buf.length == 4
    assert buf.source_length == 6
    assert buf.truncated is True
    assert buf.data() == b"abcd"
    assert any(
        "jwt_signed_data" in record.getMessage() and record.levelno == logging.WARNING
        for record in caplog.records
    )


def test_empty_input() -> None:
    buf = encode(b"", 2)
    assert buf.storage == ("0x00", "0x00")
    assert buf.length == 0


@pytest.mark.parametrize(
    "data",
    [
        3.5,
        object(),
        [256],
        [-1],
        ["0xzz"],
        ["12"],
        [True],
        {"len": 1},
        {"storage": "abc", "len": 1},
        {"storage": [1], "len": 2},
        {"storage": [1], "len": -1},
    ],
)
def test_unrecognized_input_raises(data) -> None:
    with pytest.raises(EncodingError):
        encode(data, 4)


def test_negative_max_length_rejected() -> None:
    with pytest.raises(ConfigurationError):
        encode(b"", -1)


def test_limb_overflow_reported_for_that_index_only() -> None:
    limbs = encode_limbs([1, 2**128, 3], 128)

    assert limbs.overflow_indices == [1]
    assert limbs.ok is False
    assert limbs.limbs == (1, 2**128, 3)
    assert limbs.errors[0].value == 2**128


def test_limb_at_max_width_is_accepted() -> None:
    limbs = encode_limbs([2**128 - 1, "0x0", "42"], 128)
    assert limbs.ok
    assert limbs.to_circuit() == [hex(2**128 - 1), "0x0", "0x2a"]
    limbs.raise_for_overflow()


def test_raise_for_overflow_raises_first_offender(caplog) -> None:
    with caplog.at_level(logging.ERROR, logger="ephemeral_echo.deletion_proof.encoding"):
        limbs = encode_limbs([2**130, 0, 2**129], 128, name="signature_limbs")

    assert limbs.overflow_indices == [0, 2]
    assert len([r for r in caplog.records if r.levelno == logging.ERROR]) == 2

    with pytest.raises(LimbOverflowError) as excinfo:
        limbs.raise_for_overflow()
    assert excinfo.value.index == 0
    assert excinfo.value.width_bits == 128
    assert isinstance(excinfo.value, OverflowError)


def test_limb_count_mismatch() -> None:
    with pytest.raises(EncodingError):
        encode_limbs([1, 2], 128, count=18)


@pytest.mark.parametrize("limbs", ["123", [1.0], [-5], ["nope"], [False]])
def test_bad_limbs_raise(limbs) -> None:
    with pytest.raises(EncodingError):
        encode_limbs(limbs, 128)


def test_limb_width_must_be_positive() -> None:
    with pytest.raises(ConfigurationError):
        encode_limbs([1], 0)


@pytest.mark.parametrize(
    ("value", "expected"),
    [(16, 16), ("0x10", 16), ("16", 16), (" 0X10 ", 16), (b"\x01\x00", 256)],
)
def test_to_uint_accepts(value, expected) -> None:
    assert to_uint(value) == expected


@pytest.mark.parametrize("value", [True, -1, 2**256, "0x", "ten", 1.5, b"\x00" * 33])
def test_to_uint_rejects(value) -> None:
    with pytest.raises(EncodingError):
        to_uint(value)
