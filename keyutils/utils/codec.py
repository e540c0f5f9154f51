# -*- coding: utf-8 -*-
import re

from base58 import b58decode, b58encode

from keyutils.errors import DecodeError, ParseError

# optional sign followed by ASCII decimal digits
_BYTE_TOKEN = re.compile(r"[+-]?[0-9]+")


def encode(data: bytes) -> str:
    """Plain base58 (no checksum) rendering of ``data``."""
    return b58encode(bytes(data)).decode("ascii")


def decode(text: str) -> bytes:
    """Inverse of :func:`encode`. Raises DecodeError on non-alphabet characters."""
    try:
        return b58decode(text.strip())
    except ValueError as e:
        raise DecodeError("Invalid base58 string {!r}: {}".format(text, e)) from e


def parse_byte_array(text: str) -> bytes:
    """
    Parse a secret key written as a list of integers.

    Both ``[1, 2, 3]`` (JSON style) and ``1, 2, 3`` (bare list) are accepted
    and yield the same bytes.
    """
    body = text.strip()
    if body.startswith("[") or body.endswith("]"):
        if not (body.startswith("[") and body.endswith("]")):
            raise ParseError("Unbalanced brackets in {!r}".format(text))
        body = body[1:-1].strip()
    if not body:
        return b""

    values = []
    for position, token in enumerate(body.split(",")):
        token = token.strip()
        if not token:
            raise ParseError("Empty value at position {}".format(position))
        if not _BYTE_TOKEN.fullmatch(token):
            raise ParseError("Invalid byte {!r} at position {}".format(token, position))
        value = int(token, 10)
        if not 0 <= value <= 255:
            raise ParseError("Byte {} out of range at position {}".format(value, position))
        values.append(value)
    return bytes(values)


def format_byte_array(data: bytes) -> str:
    return "[{}]".format(",".join(str(b) for b in bytes(data)))
