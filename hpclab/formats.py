"""Encoders for BMP, TGA (raw or run-length) and Radiance HDR images.

Pixel data is stored left to right, top to bottom, with ``comp`` interleaved
8-bit channels per pixel: 1 = Y, 2 = YA, 3 = RGB, 4 = RGBA.  HDR input is a
flat sequence of linear floats laid out the same way.
"""

from __future__ import annotations

import math
import os
import struct
from collections.abc import Iterable, Iterator

__all__ = [
    "ImageWriteError",
    "encode_bmp",
    "encode_tga",
    "encode_hdr",
    "write_bmp",
    "write_tga",
    "write_hdr",
]

_BACKGROUND = (255, 0, 255)
_BMP_HEADER_SIZE = 14 + 40
_TGA_MAX_PACKET = 128
_HDR_HEADER = b"#?RADIANCE\n# Written by hpclab\nFORMAT=32-bit_rle_rgbe\n"


class ImageWriteError(ValueError):
    """Raised when an image cannot be encoded from the given parameters."""


def _check_size(width: int, height: int) -> None:
    if width < 0 or height < 0:
        raise ImageWriteError(f"invalid image size {width}x{height}")


def _check_comp(comp: int) -> None:
    if comp not in (1, 2, 3, 4):
        raise ImageWriteError(f"unsupported channel count {comp}")


def _pixel_buffer(data: Iterable[int] | bytes, width: int, height: int, comp: int) -> bytes:
    buf = bytes(data)
    needed = width * height * comp
    if len(buf) < needed:
        raise ImageWriteError(f"pixel data holds {len(buf)} bytes, {needed} needed")
    return buf


def _row_order(height: int, bottom_up: bool) -> range:
    return range(height - 1, -1, -1) if bottom_up else range(height)


def _row_pixels(buf: bytes, row: int, width: int, comp: int) -> list[bytes]:
    start = row * width * comp
    return [buf[start + i * comp : start + (i + 1) * comp] for i in range(width)]


def _truncating_div(numerator: int, denominator: int) -> int:
    quotient = abs(numerator) // denominator
    return -quotient if numerator < 0 else quotient


def _pack_pixel(pixel: bytes, comp: int, write_alpha: bool, expand_mono: bool) -> bytes:
    """Return one pixel in the file's BGR(A) or Y(A) channel order."""
    if comp <= 2:
        color = bytes((pixel[0],) * 3) if expand_mono else pixel[:1]
    elif comp == 4 and not write_alpha:
        alpha = pixel[3]
        blended = [
            bg + _truncating_div((channel - bg) * alpha, 255)
            for channel, bg in zip(pixel[:3], _BACKGROUND)
        ]
        color = bytes((blended[2], blended[1], blended[0]))
    else:
        color = bytes((pixel[2], pixel[1], pixel[0]))
    if write_alpha:
        color += pixel[comp - 1 : comp]
    return color


def encode_bmp(width: int, height: int, comp: int, data, flip_vertically: bool = False) -> bytes:
    """Encode an image as a 24-bit BMP; alpha is composited onto magenta."""
    _check_size(width, height)
    _check_comp(comp)
    buf = _pixel_buffer(data, width, height, comp)
    pad = (-width * 3) & 3
    file_size = _BMP_HEADER_SIZE + (width * 3 + pad) * height
    out = bytearray(struct.pack("<2sIHHI", b"BM", file_size, 0, 0, _BMP_HEADER_SIZE))
    out += struct.pack("<IIIHHIIIIII", 40, width, height, 1, 24, 0, 0, 0, 0, 0, 0)
    padding = bytes(pad)
    for row in _row_order(height, bottom_up=not flip_vertically):
        for pixel in _row_pixels(buf, row, width, comp):
            out += _pack_pixel(pixel, comp, write_alpha=False, expand_mono=True)
        out += padding
    return bytes(out)


def _tga_packets(pixels: list[bytes]) -> Iterator[tuple[bool, int, int]]:
    """Yield (is_raw, start, length) packets covering one row."""
    count = len(pixels)
    i = 0
    while i < count:
        length = 1
        raw = True
        if i < count - 1:
            length += 1
            raw = pixels[i] != pixels[i + 1]
            k = i + 2
            if raw:
                prev = i
                while k < count and length < _TGA_MAX_PACKET:
                    if pixels[prev] != pixels[k]:
                        prev += 1
                        length += 1
                    else:
                        length -= 1
                        break
                    k += 1
            else:
                while k < count and length < _TGA_MAX_PACKET and pixels[i] == pixels[k]:
                    length += 1
                    k += 1
        yield raw, i, length
        i += length


def encode_tga(
    width: int,
    height: int,
    comp: int,
    data,
    rle: bool = True,
    flip_vertically: bool = False,
) -> bytes:
    """Encode an image as a TGA file, run-length compressed unless ``rle`` is false."""
    _check_size(width, height)
    _check_comp(comp)
    buf = _pixel_buffer(data, width, height, comp)
    has_alpha = comp in (2, 4)
    color_bytes = comp - 1 if has_alpha else comp
    image_type = 3 if color_bytes < 2 else 2
    if rle:
        image_type += 8
    out = bytearray(
        struct.pack(
            "<BBBHHBHHHHBB",
            0,
            0,
            image_type,
            0,
            0,
            0,
            0,
            0,
            width & 0xFFFF,
            height & 0xFFFF,
            (color_bytes + has_alpha) * 8,
            has_alpha * 8,
        )
    )
    for row in _row_order(height, bottom_up=not flip_vertically):
        pixels = _row_pixels(buf, row, width, comp)
        if not rle:
            for pixel in pixels:
                out += _pack_pixel(pixel, comp, write_alpha=has_alpha, expand_mono=False)
            continue
        for raw, start, length in _tga_packets(pixels):
            if raw:
                out.append(length - 1)
                for pixel in pixels[start : start + length]:
                    out += _pack_pixel(pixel, comp, write_alpha=has_alpha, expand_mono=False)
            else:
                out.append((length - 129) & 0xFF)
                out += _pack_pixel(pixels[start], comp, write_alpha=has_alpha, expand_mono=False)
    return bytes(out)


def _f32(value: float) -> float:
    return struct.unpack("<f", struct.pack("<f", value))[0]


def _to_byte(value: float) -> int:
    return max(0, min(255, int(value)))


def _linear_to_rgbe(red: float, green: float, blue: float) -> bytes:
    maxcomp = max(red, green, blue)
    if maxcomp < 1e-32:
        return bytes(4)
    mantissa, exponent = math.frexp(maxcomp)
    normalize = _f32(_f32(_f32(mantissa) * 256.0) / maxcomp)
    return bytes(
        (
            _to_byte(_f32(red * normalize)),
            _to_byte(_f32(green * normalize)),
            _to_byte(_f32(blue * normalize)),
            (exponent + 128) & 0xFF,
        )
    )


def _rle_channel(channel: bytes) -> bytes:
    out = bytearray()
    width = len(channel)
    x = 0
    while x < width:
        run = x
        while run + 2 < width:
            if channel[run] == channel[run + 1] == channel[run + 2]:
                break
            run += 1
        if run + 2 >= width:
            run = width
        while x < run:
            length = min(run - x, 128)
            out.append(length)
            out += channel[x : x + length]
            x += length
        if run + 2 < width:
            while run < width and channel[run] == channel[x]:
                run += 1
            while x < run:
                length = min(run - x, 127)
                out.append(length + 128)
                out.append(channel[x])
                x += length
    return bytes(out)


def _hdr_scanline(values: list[float], width: int, comp: int) -> bytes:
    pixels = []
    for x in range(width):
        base = x * comp
        if comp >= 3:
            linear = values[base : base + 3]
        else:
            linear = [values[base]] * 3
        pixels.append(_linear_to_rgbe(*linear))
    if width < 8 or width >= 32768:
        return b"".join(pixels)
    out = bytearray((2, 2, (width & 0xFF00) >> 8, width & 0x00FF))
    for c in range(4):
        out += _rle_channel(bytes(pixel[c] for pixel in pixels))
    return bytes(out)


def encode_hdr(width: int, height: int, comp: int, data, flip_vertically: bool = False) -> bytes:
    """Encode linear float pixels as a Radiance RGBE image; alpha is dropped."""
    if width <= 0 or height <= 0 or data is None:
        raise ImageWriteError(f"invalid image size {width}x{height}")
    if comp < 1:
        raise ImageWriteError(f"unsupported channel count {comp}")
    values = [_f32(float(v)) for v in data]
    needed = width * height * comp
    if len(values) < needed:
        raise ImageWriteError(f"pixel data holds {len(values)} values, {needed} needed")
    out = bytearray(_HDR_HEADER)
    out += b"EXPOSURE=          1.0000000000000\n\n-Y %d +X %d\n" % (height, width)
    row_len = width * comp
    for row in _row_order(height, bottom_up=flip_vertically):
        out += _hdr_scanline(values[row * row_len : (row + 1) * row_len], width, comp)
    return bytes(out)


def _write_file(path: str | os.PathLike, payload: bytes) -> None:
    with open(path, "wb") as handle:
        handle.write(payload)


def write_bmp(path, width, height, comp, data, flip_vertically=False) -> None:
    """Write a BMP file."""
    _write_file(path, encode_bmp(width, height, comp, data, flip_vertically))


def write_tga(path, width, height, comp, data, rle=True, flip_vertically=False) -> None:
    """Write a TGA file."""
    _write_file(path, encode_tga(width, height, comp, data, rle, flip_vertically))


def write_hdr(path, width, height, comp, data, flip_vertically=False) -> None:
    """Write a Radiance HDR file."""
    _write_file(path, encode_hdr(width, height, comp, data, flip_vertically))