"""
Local JWT SDK: decomposes an RS256 JWT into circuit inputs.

Mirrors the noir-jwt input generator: the signed data is the ASCII
``header.payload`` segment, the payload starts one byte after the header,
and the RSA modulus, Barrett reduction parameter and signature are split
into little-endian 120-bit limbs. The signature is NOT verified here; that
is the circuit's job.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any, List, Mapping

from cryptography.hazmat.primitives.asymmetric import rsa

from .config import SDK_LIMB_BITS
from .exceptions import EncodingError
from .types import JwtSdkOutput


def b64url_decode(segment: str) -> bytes:
    padded = segment + "=" * (-len(segment) % 4)
    try:
        return base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError) as exc:
        raise EncodingError(f"invalid base64url segment: {exc}") from exc


def split_limbs(value: int, limb_bits: int, count: int) -> List[int]:
    """Little-endian limb decomposition into exactly ``count`` limbs."""
    if value.bit_length() > limb_bits * count:
        raise EncodingError(
            f"{value.bit_length()}-bit value does not fit {count} x {limb_bits}-bit limbs"
        )
    mask = (1 << limb_bits) - 1
    return [(value >> (limb_bits * i)) & mask for i in range(count)]


def barrett_reduction_param(modulus: int) -> int:
    """floor(2^(2k + 4) / n) for a k-bit modulus."""
    return (1 << (2 * modulus.bit_length() + 4)) // modulus


def load_rsa_public_key(public_key_jwk: Mapping[str, Any]) -> rsa.RSAPublicKey:
    """
    Build an RSA public key from a JWK mapping.

    Raises:
        EncodingError: If the JWK is not a usable RSA key
    """
    if public_key_jwk.get("kty") != "RSA":
        raise EncodingError("public key JWK must have kty 'RSA'")
    try:
        n = int.from_bytes(b64url_decode(public_key_jwk["n"]), "big")
        e = int.from_bytes(b64url_decode(public_key_jwk["e"]), "big")
    except KeyError as exc:
        raise EncodingError(f"public key JWK missing {exc.args[0]!r}") from exc
    try:
        return rsa.RSAPublicNumbers(e, n).public_key()
    except ValueError as exc:
        raise EncodingError(f"invalid RSA public key: {exc}") from exc


class LocalJwtInputSdk:
    """In-process implementation of the JWT SDK contract."""

    def __init__(self, limb_bits: int = SDK_LIMB_BITS) -> None:
        self._limb_bits = limb_bits

    def derive_jwt_circuit_inputs(
        self,
        jwt: str,
        public_key_jwk: Mapping[str, Any],
        max_signed_data_length: int,
    ) -> JwtSdkOutput:
        parts = jwt.split(".")
        if len(parts) != 3 or not all(parts):
            raise EncodingError("JWT must have three non-empty segments")
        header_b64, payload_b64, signature_b64 = parts

        signed_data = f"{header_b64}.{payload_b64}".encode("ascii")
        if len(signed_data) > max_signed_data_length:
            raise EncodingError(
                f"signed data is {len(signed_data)} bytes, "
                f"maximum is {max_signed_data_length}"
            )

        public_key = load_rsa_public_key(public_key_jwk)
        modulus = public_key.public_numbers().n
        count = -(-public_key.key_size // self._limb_bits)

        signature = int.from_bytes(b64url_decode(signature_b64), "big")
        if signature >= modulus:
            raise EncodingError("signature is not reduced modulo the RSA modulus")

        storage = list(signed_data) + [0] * (max_signed_data_length - len(signed_data))
        return JwtSdkOutput(
            data={"storage": storage, "len": len(signed_data)},
            base64_decode_offset=len(header_b64) + 1,
            modulus_limbs=split_limbs(modulus, self._limb_bits, count),
            redc_params_limbs=split_limbs(
                barrett_reduction_param(modulus), self._limb_bits, count
            ),
            signature_limbs=split_limbs(signature, self._limb_bits, count),
        )


class StaticJwtInputSdk:
    """Replays a previously derived SDK output, e.g. one saved by the JS SDK."""

    def __init__(self, output: JwtSdkOutput | Mapping[str, Any]) -> None:
        if not isinstance(output, JwtSdkOutput):
            output = JwtSdkOutput.from_mapping(output)
        self._output = output

    def derive_jwt_circuit_inputs(
        self,
        jwt: str,
        public_key_jwk: Mapping[str, Any],
        max_signed_data_length: int,
    ) -> JwtSdkOutput:
        return self._output
