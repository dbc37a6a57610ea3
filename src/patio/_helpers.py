"""Derived patterns, built only from the core algebra."""

from __future__ import annotations

from patio._pattern import AndThen, Bytes, Delimited, Map, Pattern


def length_prefixed(prefix: Pattern) -> AndThen:
    """A length read with ``prefix``, followed by that many raw bytes.

    >>> from patio import U8, decode
    >>> decode(length_prefixed(U8), b"\\x02hi")
    b'hi'
    """
    return AndThen(prefix, Bytes, head=len)


def utf8(pattern: Pattern) -> Map:
    """Decode the bytes of ``pattern`` as UTF-8 text (and encode on write)."""
    return Map(pattern, _decode_utf8, _encode_utf8)


def line(max_size: int = 64 * 1024) -> Map:
    """One ``\\n``-terminated UTF-8 line; the final terminator is optional."""
    return utf8(Delimited(b"\n", max_size))


def _decode_utf8(data: bytes) -> str:
    return bytes(data).decode("utf-8")


def _encode_utf8(text: str) -> bytes:
    return text.encode("utf-8")
