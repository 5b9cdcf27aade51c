"""A small zlib stream compressor using fixed Huffman codes, plus CRC-32 and Adler-32.

The compressor emits a single final DEFLATE block with the fixed Huffman
tables, finds matches through a hash of the next three bytes and applies a
one-byte lazy-matching check.  Its output is a valid zlib stream that any
inflater accepts, though larger than an optimising encoder would produce.
"""

from __future__ import annotations

from bisect import bisect_right

__all__ = ["zlib_compress", "crc32", "adler32"]

_MASK32 = 0xFFFFFFFF
_HASH_SIZE = 16384
_WINDOW = 32768
_MAX_MATCH = 258
_ADLER_MOD = 65521
_ADLER_BLOCK = 5552

_LENGTH_BASE = (
    3, 4, 5, 6, 7, 8, 9, 10, 11, 13, 15, 17, 19, 23, 27, 31,
    35, 43, 51, 59, 67, 83, 99, 115, 131, 163, 195, 227, 258, 259,
)
_LENGTH_EXTRA = (
    0, 0, 0, 0, 0, 0, 0, 0, 1, 1, 1, 1, 2, 2, 2, 2,
    3, 3, 3, 3, 4, 4, 4, 4, 5, 5, 5, 5, 0,
)
_DIST_BASE = (
    1, 2, 3, 4, 5, 7, 9, 13, 17, 25, 33, 49, 65, 97, 129, 193,
    257, 385, 513, 769, 1025, 1537, 2049, 3073, 4097, 6145, 8193,
    12289, 16385, 24577, 32768,
)
_DIST_EXTRA = (
    0, 0, 0, 0, 1, 1, 2, 2, 3, 3, 4, 4, 5, 5, 6, 6,
    7, 7, 8, 8, 9, 9, 10, 10, 11, 11, 12, 12, 13, 13,
)


def _make_crc_table() -> tuple[int, ...]:
    table = []
    for n in range(256):
        c = n
        for _ in range(8):
            c = (c >> 1) ^ 0xEDB88320 if c & 1 else c >> 1
        table.append(c)
    return tuple(table)


_CRC_TABLE = _make_crc_table()


def crc32(data: bytes) -> int:
    """Return the CRC-32 (as used by PNG and zlib) of ``data``."""
    crc = _MASK32
    for byte in bytes(data):
        crc = (crc >> 8) ^ _CRC_TABLE[(byte ^ crc) & 0xFF]
    return crc ^ _MASK32


def adler32(data: bytes) -> int:
    """Return the Adler-32 checksum of ``data``."""
    buf = bytes(data)
    s1, s2 = 1, 0
    for start in range(0, len(buf), _ADLER_BLOCK):
        for byte in buf[start : start + _ADLER_BLOCK]:
            s1 += byte
            s2 += s1
        s1 %= _ADLER_MOD
        s2 %= _ADLER_MOD
    return (s2 << 16) | s1


def _bit_reverse(code: int, bits: int) -> int:
    result = 0
    for _ in range(bits):
        result = (result << 1) | (code & 1)
        code >>= 1
    return result


def _zhash(data: bytes, pos: int) -> int:
    h = data[pos] + (data[pos + 1] << 8) + (data[pos + 2] << 16)
    h ^= (h << 3) & _MASK32
    h = (h + (h >> 5)) & _MASK32
    h ^= (h << 4) & _MASK32
    h = (h + (h >> 17)) & _MASK32
    h ^= (h << 25) & _MASK32
    h = (h + (h >> 6)) & _MASK32
    return h & (_HASH_SIZE - 1)


def _match_length(data: bytes, earlier: int, current: int, limit: int) -> int:
    limit = min(limit, _MAX_MATCH)
    length = 0
    while length < limit and data[earlier + length] == data[current + length]:
        length += 1
    return length


class _BitWriter:
    """Accumulates LSB-first bits into a byte array."""

    def __init__(self, prefix: bytes) -> None:
        self.out = bytearray(prefix)
        self._buffer = 0
        self._count = 0

    def add(self, code: int, bits: int) -> None:
        self._buffer |= code << self._count
        self._count += bits
        while self._count >= 8:
            self.out.append(self._buffer & 0xFF)
            self._buffer >>= 8
            self._count -= 8

    def huffman(self, code: int, bits: int) -> None:
        self.add(_bit_reverse(code, bits), bits)

    def symbol(self, n: int) -> None:
        """Write a literal/length symbol with the fixed Huffman table."""
        if n <= 143:
            self.huffman(0x30 + n, 8)
        elif n <= 255:
            self.huffman(0x190 + n - 144, 9)
        elif n <= 279:
            self.huffman(n - 256, 7)
        else:
            self.huffman(0xC0 + n - 280, 8)

    def align(self) -> None:
        while self._count:
            self.add(0, 1)


def zlib_compress(data: bytes, quality: int = 8) -> bytes:
    """Compress ``data`` into a zlib stream.

    ``quality`` bounds the length of each hash chain (twice its value); values
    below 5 are raised to 5.
    """
    buf = bytes(data)
    size = len(buf)
    quality = max(quality, 5)

    writer = _BitWriter(b"\x78\x5e")
    writer.add(1, 1)  # final block
    writer.add(1, 2)  # fixed Huffman codes

    table: dict[int, list[int]] = {}
    i = 0
    while i < size - 3:
        chain = table.setdefault(_zhash(buf, i), [])
        best = 3
        best_pos: int | None = None
        for pos in chain:
            if pos > i - _WINDOW:
                length = _match_length(buf, pos, i, size - i)
                if length >= best:
                    best, best_pos = length, pos
        if len(chain) == 2 * quality:
            del chain[:quality]
        chain.append(i)

        if best_pos is not None:
            for pos in table.get(_zhash(buf, i + 1), ()):
                if pos > i - (_WINDOW - 1):
                    if _match_length(buf, pos, i + 1, size - i - 1) > best:
                        best_pos = None
                        break

        if best_pos is not None:
            distance = i - best_pos
            j = bisect_right(_LENGTH_BASE, best) - 1
            writer.symbol(j + 257)
            if _LENGTH_EXTRA[j]:
                writer.add(best - _LENGTH_BASE[j], _LENGTH_EXTRA[j])
            j = bisect_right(_DIST_BASE, distance) - 1
            writer.add(_bit_reverse(j, 5), 5)
            if _DIST_EXTRA[j]:
                writer.add(distance - _DIST_BASE[j], _DIST_EXTRA[j])
            i += best
        else:
            writer.symbol(buf[i])
            i += 1

    for byte in buf[i:]:
        writer.symbol(byte)
    writer.symbol(256)
    writer.align()

    writer.out += adler32(buf).to_bytes(4, "big")
    return bytes(writer.out)