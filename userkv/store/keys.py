"""Order-preserving encoding of key tuples.

A key is a non-empty tuple of parts. Each part is encoded as a one byte type
code followed by a body, so that comparing two encoded keys byte by byte gives
the same answer as comparing the tuples part by part:

* parts of different types order by type code,
  ``bytes < str < int < float < bool``
* ``bytes`` and ``str`` (as UTF-8) are terminated by ``0x00``, with embedded
  zero bytes escaped as ``0x00 0xff``, so a shorter string sorts first
* ``int`` is stored as a biased 64-bit big-endian integer
* ``float`` is stored as IEEE 754 big-endian with the sign bit flipped for
  positive numbers and every bit flipped for negative numbers

No type code is ``0xff``, which makes ``prefix + b"\\xff"`` an exclusive upper
bound for every key that extends ``prefix``.
"""

from __future__ import annotations

import struct
from typing import TypeAlias

KeyPart: TypeAlias = bytes | str | int | float | bool
Key: TypeAlias = tuple[KeyPart, ...]

MAX_KEY_SIZE = 2048

_BYTES = 0x01
_STRING = 0x02
_INT = 0x14
_FLOAT = 0x21
_FALSE = 0x26
_TRUE = 0x27

_TERMINATOR = b"\x00"
_ESCAPED_ZERO = b"\x00\xff"
_INT_BIAS = 1 << 63
_INT_MIN = -(1 << 63)
_INT_MAX = (1 << 63) - 1
_SIGN_BIT = 1 << 63
_ALL_BITS = (1 << 64) - 1

PREFIX_END = b"\xff"


def _encode_part(part: KeyPart) -> bytes:
    # bool is a subclass of int and must be checked first
    if isinstance(part, bool):
        return bytes([_TRUE if part else _FALSE])

    if isinstance(part, bytes):
        return bytes([_BYTES]) + part.replace(_TERMINATOR, _ESCAPED_ZERO) + _TERMINATOR

    if isinstance(part, str):
        body = part.encode("utf-8")
        return bytes([_STRING]) + body.replace(_TERMINATOR, _ESCAPED_ZERO) + _TERMINATOR

    if isinstance(part, int):
        if not _INT_MIN <= part <= _INT_MAX:
            msg = f"Integer key part out of 64-bit range: {part}"
            raise ValueError(msg)
        return bytes([_INT]) + (part + _INT_BIAS).to_bytes(8, "big")

    if isinstance(part, float):
        if part != part:  # noqa: PLR0124
            msg = "NaN is not a valid key part"
            raise ValueError(msg)
        (bits,) = struct.unpack(">Q", struct.pack(">d", part))
        bits = bits ^ _ALL_BITS if bits & _SIGN_BIT else bits | _SIGN_BIT
        return bytes([_FLOAT]) + bits.to_bytes(8, "big")

    msg = f"Unsupported key part type: {type(part).__name__}"
    raise TypeError(msg)


def encode_key(key: Key) -> bytes:
    """Encode a key tuple into its ordered byte form.

    :param key: Non-empty tuple of key parts
    :return: The encoded key
    :raises ValueError: If the key is empty, too large, or holds an invalid part
    :raises TypeError: If a part has an unsupported type
    """
    if not isinstance(key, tuple) or not key:
        msg = "Key must be a non-empty tuple"
        raise ValueError(msg)

    encoded = b"".join(_encode_part(part) for part in key)
    if len(encoded) > MAX_KEY_SIZE:
        msg = f"Encoded key is {len(encoded)} bytes, limit is {MAX_KEY_SIZE}"
        raise ValueError(msg)
    return encoded


def encode_prefix(prefix: Key) -> bytes:
    """Encode a key prefix. The empty tuple selects the whole keyspace."""
    if prefix == ():
        return b""
    return encode_key(prefix)


def _read_terminated(data: bytes, pos: int) -> tuple[bytes, int]:
    out = bytearray()
    while True:
        end = data.find(_TERMINATOR, pos)
        if end == -1:
            msg = "Unterminated key part"
            raise ValueError(msg)
        out += data[pos:end]
        if end + 1 < len(data) and data[end + 1] == 0xFF:  # noqa: PLR2004
            out += _TERMINATOR
            pos = end + 2
            continue
        return bytes(out), end + 1


def _read_fixed(data: bytes, pos: int) -> tuple[int, int]:
    if pos + 8 > len(data):
        msg = "Truncated key part"
        raise ValueError(msg)
    return int.from_bytes(data[pos : pos + 8], "big"), pos + 8


def decode_key(data: bytes) -> Key:
    """Decode bytes produced by :func:`encode_key` back into a key tuple.

    :param data: Encoded key
    :return: The key tuple
    :raises ValueError: If the bytes are not a valid encoded key
    """
    parts: list[KeyPart] = []
    pos = 0
    while pos < len(data):
        code = data[pos]
        pos += 1
        if code == _BYTES:
            raw, pos = _read_terminated(data, pos)
            parts.append(raw)
        elif code == _STRING:
            raw, pos = _read_terminated(data, pos)
            parts.append(raw.decode("utf-8"))
        elif code == _INT:
            value, pos = _read_fixed(data, pos)
            parts.append(value - _INT_BIAS)
        elif code == _FLOAT:
            bits, pos = _read_fixed(data, pos)
            bits = bits ^ _SIGN_BIT if bits & _SIGN_BIT else bits ^ _ALL_BITS
            parts.append(struct.unpack(">d", bits.to_bytes(8, "big"))[0])
        elif code in (_FALSE, _TRUE):
            parts.append(code == _TRUE)
        else:
            msg = f"Unknown key part type code 0x{code:02x}"
            raise ValueError(msg)

    if not parts:
        msg = "Encoded key is empty"
        raise ValueError(msg)
    return tuple(parts)
