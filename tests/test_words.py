"""Tests for the word codec."""

import pytest

from mikrolink.client.errors import IncompleteWordError, MalformedWordError
from mikrolink.wire.words import decode_length, decode_word, encode_length, encode_word


@pytest.mark.parametrize(
    "n, prefix",
    [
        (0, b"\x00"),
        (1, b"\x01"),
        (0x7F, b"\x7F"),
        (0x80, b"\x80\x80"),
        (0x3FFF, b"\xBF\xFF"),
        (0x4000, b"\xC0\x40\x00"),
        (0x1FFFFF, b"\xDF\xFF\xFF"),
        (0x200000, b"\xE0\x20\x00\x00"),
        (0xFFFFFFF, b"\xEF\xFF\xFF\xFF"),
        (0x10000000, b"\xF0\x10\x00\x00\x00"),
    ],
)
def test_length_prefix_at_boundaries(n, prefix):
    assert encode_length(n) == prefix
    assert decode_length(prefix) == (n, len(prefix))


@pytest.mark.parametrize("n", [0, 1, 127, 128, 16383, 16384, 2097151, 2097152])
def test_word_roundtrip(n):
    word = "x" * n
    encoded = encode_word(word)
    assert decode_word(encoded) == (word, len(encoded))


def test_length_uses_utf8_bytes_not_characters():
    # 64 two-byte characters -> 128 payload bytes -> 2-byte prefix
    word = "é" * 64
    encoded = encode_word(word)
    assert encoded[:2] == b"\x80\x80"
    assert decode_word(encoded)[0] == word


def test_decode_at_offset():
    buf = encode_word("/login") + encode_word("=name=admin")
    w1, off = decode_word(buf, 0)
    w2, end = decode_word(buf, off)
    assert (w1, w2) == ("/login", "=name=admin")
    assert end == len(buf)


def test_zero_length_word_is_empty():
    assert decode_word(b"\x00") == ("", 1)


def test_truncated_payload_is_incomplete():
    encoded = encode_word("/system/resource/print")
    with pytest.raises(IncompleteWordError):
        decode_word(encoded[:-1])


def test_truncated_prefix_is_incomplete():
    with pytest.raises(IncompleteWordError):
        decode_length(b"\xC0\x40")


def test_reserved_control_byte_rejected():
    with pytest.raises(MalformedWordError):
        decode_length(b"\xF8\x00")


def test_negative_or_huge_length_rejected():
    with pytest.raises(ValueError):
        encode_length(-1)
    with pytest.raises(ValueError):
        encode_length(0x100000000)


def test_invalid_utf8_is_kept_distinct_from_replacement_char():
    raw = b"\x05ab\xe9\xff!"
    word, end = decode_word(raw)
    assert end == len(raw)
    assert word == "ab\udce9\udcff!"
    assert "\ufffd" not in word
    assert decode_word(encode_word("\ufffd"))[0] == "\ufffd"
    # the same bytes come back out
    assert encode_word(word) == raw
