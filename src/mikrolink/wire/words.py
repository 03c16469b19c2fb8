"""Word codec for the RouterOS API wire format.

A word is a length prefix followed by the UTF-8 payload. The prefix uses the
shortest of five forms::

    n < 0x80          1 byte   n
    n < 0x4000        2 bytes  0x80 | n >> 8, n & 0xFF
    n < 0x200000      3 bytes  0xC0 | n >> 16, ...
    n < 0x10000000    4 bytes  0xE0 | n >> 24, ...
    otherwise         5 bytes  0xF0, n as 4 big-endian bytes

A zero-length word (a single 0x00 byte) terminates a sentence.

Payloads are UTF-8. Bytes that are not valid UTF-8 (older RouterOS releases
send names in the device codepage) decode with ``surrogateescape``: each bad
byte becomes a lone surrogate U+DC80..U+DCFF, which no real text contains, and
``encode_word`` turns it back into the same byte.
"""

from __future__ import annotations

from typing import Tuple

from mikrolink.client.errors import IncompleteWordError, MalformedWordError

MAX_WORD_LENGTH = 0xFFFFFFFF


def encode_length(n: int) -> bytes:
    if n < 0:
        raise ValueError(f"word length must be >= 0, got {n}")
    if n < 0x80:
        return bytes([n])
    if n < 0x4000:
        return bytes([0x80 | (n >> 8), n & 0xFF])
    if n < 0x200000:
        return bytes([0xC0 | (n >> 16), (n >> 8) & 0xFF, n & 0xFF])
    if n < 0x10000000:
        return bytes([0xE0 | (n >> 24), (n >> 16) & 0xFF, (n >> 8) & 0xFF, n & 0xFF])
    if n <= MAX_WORD_LENGTH:
        return b"\xF0" + n.to_bytes(4, "big")
    raise ValueError(f"word length {n} exceeds {MAX_WORD_LENGTH}")


def encode_word(word: str) -> bytes:
    """Encode one word as length prefix + UTF-8 payload."""
    payload = word.encode("utf-8", errors="surrogateescape")
    return encode_length(len(payload)) + payload


def _need(buf: bytes, end: int) -> None:
    if end > len(buf):
        raise IncompleteWordError(f"need {end} bytes, have {len(buf)}")


def decode_length(buf: bytes, offset: int = 0) -> Tuple[int, int]:
    """Decode a length prefix at ``offset``.

    Returns:
        ``(length, offset_after_prefix)``.

    Raises:
        IncompleteWordError: The prefix is cut off by the end of ``buf``.
        MalformedWordError: The first byte is a reserved control byte (> 0xF0).
    """
    _need(buf, offset + 1)
    b = buf[offset]

    if b < 0x80:
        return b, offset + 1
    if b < 0xC0:
        _need(buf, offset + 2)
        return ((b & 0x7F) << 8) | buf[offset + 1], offset + 2
    if b < 0xE0:
        _need(buf, offset + 3)
        return ((b & 0x3F) << 16) | int.from_bytes(buf[offset + 1 : offset + 3], "big"), offset + 3
    if b < 0xF0:
        _need(buf, offset + 4)
        return ((b & 0x1F) << 24) | int.from_bytes(buf[offset + 1 : offset + 4], "big"), offset + 4
    if b == 0xF0:
        _need(buf, offset + 5)
        return int.from_bytes(buf[offset + 1 : offset + 5], "big"), offset + 5

    raise MalformedWordError(f"reserved control byte 0x{b:02X} at offset {offset}")


def decode_word(buf: bytes, offset: int = 0) -> Tuple[str, int]:
    """Decode one word at ``offset`` and return ``(word, new_offset)``.

    An empty string means the terminator was read; callers must not treat it
    as a data word.
    """
    n, start = decode_length(buf, offset)
    end = start + n
    _need(buf, end)
    return bytes(buf[start:end]).decode("utf-8", errors="surrogateescape"), end
