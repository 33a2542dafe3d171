"""Kaspa address parsing.

Kaspa addresses use a CashAddr style encoding: ``<prefix>:<payload><checksum>``
where the payload is the version byte followed by the public key or script
hash, packed into base32 characters, and the checksum is a 40-bit BCH code
over the prefix and payload.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from .errors import InputError

CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_CHARSET_INDEX = {char: index for index, char in enumerate(CHARSET)}
_CHECKSUM_LENGTH = 8
_GENERATORS = (
    0x98F2BC8E61,
    0x79B76D99E2,
    0xF33E5FB3C4,
    0xAE2EABE2A8,
    0x1E4F43E470,
)

KNOWN_PREFIXES = frozenset({"kaspa", "kaspatest", "kaspasim", "kaspadev"})


class AddressVersion(IntEnum):
    PUBKEY = 0
    PUBKEY_ECDSA = 1
    SCRIPT_HASH = 8


_PAYLOAD_LENGTHS = {
    AddressVersion.PUBKEY: 32,
    AddressVersion.PUBKEY_ECDSA: 33,
    AddressVersion.SCRIPT_HASH: 32,
}


class AddressError(InputError):
    """Raised when an address string cannot be decoded."""

    def __init__(self, message: str) -> None:
        super().__init__(message, operation="parse address")


@dataclass(frozen=True)
class Address:
    prefix: str
    version: AddressVersion
    payload: bytes

    def __str__(self) -> str:
        return encode_address(self.prefix, self.version, self.payload)


def _polymod(values: list[int]) -> int:
    checksum = 1
    for value in values:
        top = checksum >> 35
        checksum = ((checksum & 0x07FFFFFFFF) << 5) ^ value
        for bit, generator in enumerate(_GENERATORS):
            if (top >> bit) & 1:
                checksum ^= generator
    return checksum ^ 1


def _prefix_values(prefix: str) -> list[int]:
    return [ord(char) & 0x1F for char in prefix] + [0]


def _convert_bits(data: bytes | list[int], from_bits: int, to_bits: int, pad: bool) -> list[int]:
    accumulator = 0
    bits = 0
    result: list[int] = []
    max_value = (1 << to_bits) - 1
    for value in data:
        accumulator = (accumulator << from_bits) | value
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            result.append((accumulator >> bits) & max_value)
    if pad:
        if bits:
            result.append((accumulator << (to_bits - bits)) & max_value)
    elif bits >= from_bits or (accumulator << (to_bits - bits)) & max_value:
        raise AddressError("address payload has invalid padding")
    return result


def encode_address(prefix: str, version: AddressVersion | int, payload: bytes) -> str:
    """Encode ``payload`` under ``prefix`` with the given address version."""

    data = _convert_bits(bytes([int(version)]) + payload, 8, 5, pad=True)
    checksum = _polymod(_prefix_values(prefix) + data + [0] * _CHECKSUM_LENGTH)
    checksum_values = [
        (checksum >> (5 * (_CHECKSUM_LENGTH - 1 - index))) & 0x1F
        for index in range(_CHECKSUM_LENGTH)
    ]
    return prefix + ":" + "".join(CHARSET[value] for value in data + checksum_values)


def parse_address(raw: str, *, expected_prefix: str | None = None) -> Address:
    """Decode and validate a Kaspa address string."""

    text = raw.strip()
    if text != text.lower() and text != text.upper():
        raise AddressError(f"address mixes upper and lower case: {raw}")
    text = text.lower()
    prefix, separator, body = text.rpartition(":")
    if not separator or not prefix:
        raise AddressError(f"address is missing its network prefix: {raw}")
    if prefix not in KNOWN_PREFIXES:
        raise AddressError(f"unknown address prefix '{prefix}'")
    if expected_prefix is not None and prefix != expected_prefix:
        raise AddressError(
            f"address prefix '{prefix}' does not match the selected network ('{expected_prefix}')"
        )
    if len(body) <= _CHECKSUM_LENGTH:
        raise AddressError(f"address is too short: {raw}")

    try:
        values = [_CHARSET_INDEX[char] for char in body]
    except KeyError as exc:
        raise AddressError(f"address contains invalid character {exc.args[0]!r}") from exc

    if _polymod(_prefix_values(prefix) + values) != 0:
        raise AddressError(f"address checksum mismatch: {raw}")

    decoded = bytes(_convert_bits(values[:-_CHECKSUM_LENGTH], 5, 8, pad=False))
    if not decoded:
        raise AddressError(f"address has an empty payload: {raw}")
    try:
        version = AddressVersion(decoded[0])
    except ValueError as exc:
        raise AddressError(f"unsupported address version {decoded[0]}") from exc
    payload = decoded[1:]
    if len(payload) != _PAYLOAD_LENGTHS[version]:
        raise AddressError(
            f"address payload for version {version.name} must be "
            f"{_PAYLOAD_LENGTHS[version]} bytes, got {len(payload)}"
        )
    return Address(prefix=prefix, version=version, payload=payload)
