"""Locate one entry by code inside a geoip/geosite list file without loading it whole."""

from __future__ import annotations

import os
from typing import BinaryIO

_TAG_FIELD1_BYTES = 10  # (field 1 << 3) | wire type 2
_MAX_VARINT_LEN = 10


class GeodataError(Exception):
    """Base class for geodata decoding errors."""


class FailedToReadBytesError(GeodataError):
    def __init__(self) -> None:
        super().__init__("failed to read bytes")


class FailedToReadExpectedLenBytesError(GeodataError):
    def __init__(self) -> None:
        super().__init__("failed to read expected length of bytes")


class InvalidGeodataFileError(GeodataError):
    def __init__(self) -> None:
        super().__init__("invalid geodata file")


class InvalidGeodataVarintLengthError(GeodataError):
    def __init__(self) -> None:
        super().__init__("invalid geodata varint length")


class CodeNotFoundError(GeodataError):
    def __init__(self) -> None:
        super().__init__("code not found")


def _consume_varint(buf: bytes) -> tuple[int, int]:
    value = 0
    for i, b in enumerate(buf):
        if i >= _MAX_VARINT_LEN:
            break
        value |= (b & 0x7F) << (7 * i)
        if b < 0x80:
            if i == _MAX_VARINT_LEN - 1 and b > 1:
                break
            return value, i + 1
    raise InvalidGeodataVarintLengthError()


def emit_bytes(stream: BinaryIO, code: str) -> bytes:
    """Return the serialized list entry whose code equals ``code``, ignoring case."""
    count = 1
    is_inner = False
    pending = bytearray()
    advance = 1
    geo_len = code_len = len_byte_len = 0
    wanted = code.casefold()

    while True:
        try:
            container = stream.read(advance)
        except OSError as exc:
            raise FailedToReadBytesError() from exc
        if container is None:
            raise FailedToReadBytesError()
        if advance > 0 and not container:
            raise CodeNotFoundError()
        if len(container) != advance:
            raise FailedToReadExpectedLenBytesError()

        if count in (1, 3):
            if container[0] != _TAG_FIELD1_BYTES:
                raise InvalidGeodataFileError()
            advance = 1
            count += 1
        elif count in (2, 4):
            pending += container
            if container[0] > 127:
                advance = 1
                continue
            value, n = _consume_varint(bytes(pending))
            pending = bytearray()
            if not is_inner:
                is_inner = True
                geo_len = value
                advance = 1
            else:
                is_inner = False
                code_len = value
                len_byte_len = n
                advance = code_len
            count += 1
        elif count == 5:
            if container.decode("utf-8", "replace").casefold() == wanted:
                count += 1
                stream.seek(-(1 + len_byte_len + code_len), os.SEEK_CUR)
                advance = geo_len
            else:
                count = 1
                stream.seek(geo_len - code_len - len_byte_len - 1, os.SEEK_CUR)
                advance = 1
        else:
            return bytes(container)


def decode(filename: str | os.PathLike[str], code: str) -> bytes:
    """Open a geodata file and return the serialized entry for ``code``."""
    with open(filename, "rb") as f:
        return emit_bytes(f, code)