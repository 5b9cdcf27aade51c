"""PNG encoder with per-row filter selection and the built-in zlib compressor.

Each scanline is filtered with one of the five PNG filters.  Unless a filter
is forced, every filter is tried and the one whose output has the smallest
sum of absolute signed byte values is kept.
"""

from __future__ import annotations

import os
import struct

from .deflate import crc32, zlib_compress
from .formats import ImageWriteError

__all__ = ["encode_png", "write_png"]

_SIGNATURE = bytes((137, 80, 78, 71, 13, 10, 26, 10))
_COLOR_TYPES = {1: 0, 2: 4, 3: 2, 4: 6}
_FILTER_COUNT = 5


def _paeth(a: int, b: int, c: int) -> int:
    p = a + b - c
    pa, pb, pc = abs(p - a), abs(p - b), abs(p - c)
    if pa <= pb and pa <= pc:
        return a
    if pb <= pc:
        return b
    return c


def _filter_row(cur: bytes, prior: bytes, n: int, filter_type: int) -> bytes:
    """Apply one PNG filter to a scanline; ``prior`` is all zeros for the first row."""
    out = bytearray(len(cur))
    for i, x in enumerate(cur):
        a = cur[i - n] if i >= n else 0
        b = prior[i]
        c = prior[i - n] if i >= n else 0
        if filter_type == 0:
            v = x
        elif filter_type == 1:
            v = x - a
        elif filter_type == 2:
            v = x - b
        elif filter_type == 3:
            v = x - ((a + b) >> 1)
        else:
            v = x - _paeth(a, b, c)
        out[i] = v & 0xFF
    return bytes(out)


def _estimate(filtered: bytes) -> int:
    return sum(v if v < 128 else 256 - v for v in filtered)


def _best_filter(cur: bytes, prior: bytes, n: int) -> tuple[int, bytes]:
    best_type, best_row, best_est = 0, b"", None
    for filter_type in range(_FILTER_COUNT):
        row = _filter_row(cur, prior, n, filter_type)
        est = _estimate(row)
        if best_est is None or est < best_est:
            best_type, best_row, best_est = filter_type, row, est
    return best_type, best_row


def _chunk(tag: bytes, payload: bytes) -> bytes:
    body = tag + payload
    return struct.pack(">I", len(payload)) + body + struct.pack(">I", crc32(body))


def encode_png(
    width: int,
    height: int,
    comp: int,
    data,
    stride_bytes: int = 0,
    compression_level: int = 8,
    force_filter: int = -1,
    flip_vertically: bool = False,
) -> bytes:
    """Encode 8-bit pixels as a PNG file and return its bytes.

    ``stride_bytes`` is the distance between the starts of adjacent rows
    (0 means tightly packed).  ``force_filter`` in 0..4 selects a fixed
    filter; any other value lets each row pick its own.
    """
    if width < 0 or height < 0:
        raise ImageWriteError(f"invalid image size {width}x{height}")
    if comp not in _COLOR_TYPES:
        raise ImageWriteError(f"unsupported channel count {comp}")
    row_len = width * comp
    if stride_bytes == 0:
        stride_bytes = row_len
    if stride_bytes < row_len:
        raise ImageWriteError(f"stride {stride_bytes} shorter than row of {row_len} bytes")
    buf = bytes(data)
    needed = stride_bytes * (height - 1) + row_len if height else 0
    if len(buf) < needed:
        raise ImageWriteError(f"pixel data holds {len(buf)} bytes, {needed} needed")
    if force_filter >= _FILTER_COUNT:
        force_filter = -1

    rows = [buf[r * stride_bytes : r * stride_bytes + row_len] for r in range(height)]
    if flip_vertically:
        rows.reverse()

    filtered = bytearray()
    prior = bytes(row_len)
    for cur in rows:
        if force_filter > -1:
            filter_type = force_filter
            line = _filter_row(cur, prior, comp, filter_type)
        else:
            filter_type, line = _best_filter(cur, prior, comp)
        filtered.append(filter_type)
        filtered += line
        prior = cur

    compressed = zlib_compress(bytes(filtered), compression_level)
    header = struct.pack(">IIBBBBB", width, height, 8, _COLOR_TYPES[comp], 0, 0, 0)
    return (
        _SIGNATURE
        + _chunk(b"IHDR", header)
        + _chunk(b"IDAT", compressed)
        + _chunk(b"IEND", b"")
    )


def write_png(
    path: str | os.PathLike,
    width: int,
    height: int,
    comp: int,
    data,
    stride_bytes: int = 0,
    compression_level: int = 8,
    force_filter: int = -1,
    flip_vertically: bool = False,
) -> None:
    """Write a PNG file."""
    payload = encode_png(
        width,
        height,
        comp,
        data,
        stride_bytes,
        compression_level,
        force_filter,
        flip_vertically,
    )
    with open(path, "wb") as handle:
        handle.write(payload)