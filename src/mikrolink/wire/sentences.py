"""Sentence framing: words grouped up to a zero-length terminator word."""

from __future__ import annotations

from typing import Iterable, List, Tuple

from mikrolink.client.errors import IncompleteWordError
from mikrolink.wire.words import decode_length, decode_word, encode_word

Sentence = List[str]

TERMINATOR = b"\x00"


def encode_sentence(words: Iterable[str]) -> bytes:
    return b"".join(encode_word(w) for w in words) + TERMINATOR


def split_sentences(buf: bytes) -> Tuple[List[Sentence], int]:
    """Decode every complete sentence in ``buf``.

    Returns:
        ``(sentences, consumed)`` where ``consumed`` is the number of bytes
        up to and including the last terminator seen. ``buf[consumed:]`` is
        an unterminated tail that needs more bytes.

    Raises:
        MalformedWordError: A reserved control byte was found.
    """
    sentences: List[Sentence] = []
    current: Sentence = []
    offset = 0
    consumed = 0

    while offset < len(buf):
        try:
            n, _ = decode_length(buf, offset)
            if n == 0:
                offset += 1
                # Empty sentences (back-to-back terminators) are skipped.
                if current:
                    sentences.append(current)
                current = []
                consumed = offset
                continue
            word, offset = decode_word(buf, offset)
        except IncompleteWordError:
            break
        current.append(word)

    return sentences, consumed


def decode_stream(buf: bytes) -> List[Sentence]:
    """Decode ``buf`` into complete sentences.

    A trailing sentence without its terminator is not returned. Use
    :class:`SentenceDecoder` to keep that tail across reads.
    """
    sentences, _ = split_sentences(buf)
    return sentences


class SentenceDecoder:
    """Incremental decoder that keeps partial words/sentences between feeds.

    Usage::

        dec = SentenceDecoder()
        for chunk in chunks:
            for sentence in dec.feed(chunk):
                ...
    """

    def __init__(self) -> None:
        self._buf = bytearray()

    @property
    def pending(self) -> int:
        return len(self._buf)

    def feed(self, chunk: bytes) -> List[Sentence]:
        self._buf += chunk
        sentences, consumed = split_sentences(self._buf)
        if consumed:
            del self._buf[:consumed]
        return sentences

    def reset(self) -> None:
        self._buf.clear()
