import struct

import pytest

from hpclab.formats import (
    ImageWriteError,
    encode_bmp,
    encode_hdr,
    encode_tga,
    write_bmp,
    write_hdr,
    write_tga,
)


# ---------------------------------------------------------------- helpers


def decode_tga_rle(payload: bytes, pixel_size: int) -> bytes:
    out = bytearray()
    pos = 0
    while pos < len(payload):
        header = payload[pos]
        pos += 1
        count = (header & 0x7F) + 1
        if header & 0x80:
            out += payload[pos : pos + pixel_size] * count
            pos += pixel_size
        else:
            out += payload[pos : pos + pixel_size * count]
            pos += pixel_size * count
    return bytes(out)


def hdr_payload(blob: bytes) -> bytes:
    start = blob.index(b"+X ")
    return blob[blob.index(b"\n", start) + 1 :]


def decode_hdr_rle(payload: bytes, width: int, height: int) -> list[tuple[int, int, int, int]]:
    pos = 0
    pixels = []
    for _ in range(height):
        assert payload[pos : pos + 4] == bytes((2, 2, width >> 8, width & 0xFF))
        pos += 4
        channels = []
        for _c in range(4):
            channel = bytearray()
            while len(channel) < width:
                n = payload[pos]
                pos += 1
                if n > 128:
                    channel += bytes([payload[pos]]) * (n - 128)
                    pos += 1
                else:
                    channel += payload[pos : pos + n]
                    pos += n
            channels.append(channel)
        pixels.extend(zip(*channels))
    assert pos == len(payload)
    return pixels


def rgbe_to_float(rgbe) -> tuple[float, float, float]:
    r, g, b, e = rgbe
    if e == 0:
        return (0.0, 0.0, 0.0)
    scale = 2.0 ** (e - 136)
    return (r * scale, g * scale, b * scale)


# ---------------------------------------------------------------- BMP


def test_bmp_header_and_pixel():
    out = encode_bmp(1, 1, 3, bytes([10, 20, 30]))
    assert out[:2] == b"BM"
    size, _r1, _r2, offset = struct.unpack_from("<IHHI", out, 2)
    assert size == len(out)
    assert offset == 14 + 40
    assert struct.unpack_from("<IiiHH", out, 14) == (40, 1, 1, 1, 24)
    assert out[54:57] == bytes([30, 20, 10])
    assert (len(out) - 54) % 4 == 0
    assert set(out[57:]) == {0}


def test_bmp_rows_bottom_up_and_flip():
    data = bytes([1, 2])
    normal = encode_bmp(1, 2, 1, data)
    flipped = encode_bmp(1, 2, 1, data, flip_vertically=True)
    assert normal[54:57] == bytes([2, 2, 2])
    assert normal[58:61] == bytes([1, 1, 1])
    assert flipped[54:57] == bytes([1, 1, 1])
    assert flipped[58:61] == bytes([2, 2, 2])


def test_bmp_alpha_composited_on_background():
    opaque = encode_bmp(1, 1, 4, bytes([10, 20, 30, 255]))
    transparent = encode_bmp(1, 1, 4, bytes([10, 20, 30, 0]))
    assert opaque[54:57] == bytes([30, 20, 10])
    assert transparent[54:57] == bytes([255, 0, 255])


def test_bmp_grey_alpha_drops_alpha():
    out = encode_bmp(1, 1, 2, bytes([77, 3]))
    assert out[54:57] == bytes([77, 77, 77])


def test_bmp_zero_height_is_header_only():
    assert len(encode_bmp(3, 0, 3, b"")) == 54


@pytest.mark.parametrize(
    "args",
    [(-1, 1, 3, b"\0\0\0"), (2, 2, 3, b"\0" * 5), (1, 1, 5, b"\0" * 5)],
)
def test_bmp_errors(args):
    with pytest.raises(ImageWriteError):
        encode_bmp(*args)


def test_write_bmp_matches_encode(tmp_path):
    data = bytes(range(2 * 3 * 3))
    path = tmp_path / "img.bmp"
    write_bmp(path, 3, 2, 3, data)
    assert path.read_bytes() == encode_bmp(3, 2, 3, data)


# ---------------------------------------------------------------- TGA


def test_tga_raw_header_and_pixels():
    data = bytes([1, 2, 3, 4, 5, 6, 7, 8])
    out = encode_tga(2, 1, 4, data, rle=False)
    assert len(out) == 18 + 8
    assert out[2] == 2
    width, height, bpp, alpha_bits = struct.unpack_from("<HHBB", out, 12)
    assert (width, height, alpha_bits) == (2, 1, 8)
    assert bpp == 32
    assert out[18:] == bytes([3, 2, 1, 4, 7, 6, 5, 8])


def test_tga_image_types():
    assert encode_tga(1, 1, 3, b"abc", rle=True)[2] == 10
    assert encode_tga(1, 1, 1, b"a", rle=False)[2] == 3
    assert encode_tga(1, 1, 2, b"ab", rle=True)[2] == 11


def test_tga_raw_rows_bottom_up_and_flip():
    data = bytes([1, 2])
    assert encode_tga(1, 2, 1, data, rle=False)[18:] == bytes([2, 1])
    assert encode_tga(1, 2, 1, data, rle=False, flip_vertically=True)[18:] == bytes([1, 2])


@pytest.mark.parametrize("comp", [1, 2, 3, 4])
@pytest.mark.parametrize("flip", [False, True])
def test_tga_rle_decodes_to_raw(comp, flip):
    width, height = 11, 3
    row_values = [5, 5, 5, 5, 1, 2, 3, 3, 9, 8, 8]
    data = bytearray()
    for row in range(height):
        for value in row_values:
            data += bytes([(value + row) % 256] * comp)
    raw = encode_tga(width, height, comp, data, rle=False, flip_vertically=flip)
    packed = encode_tga(width, height, comp, data, rle=True, flip_vertically=flip)
    assert decode_tga_rle(packed[18:], comp) == raw[18:]
    assert len(packed) < len(raw)


def test_tga_long_run_is_split():
    width = 300
    data = bytes([42, 43, 44]) * width
    raw = encode_tga(width, 1, 3, data, rle=False)
    packed = encode_tga(width, 1, 3, data, rle=True)
    assert decode_tga_rle(packed[18:], 3) == raw[18:]
    headers = [packed[18 + i * 4] for i in range((len(packed) - 18) // 4)]
    assert all(h & 0x80 for h in headers)
    assert sum((h & 0x7F) + 1 for h in headers) == width


def test_tga_random_rows_round_trip():
    width, height = 40, 4
    data = bytes((i * 7919 // 13) % 4 for i in range(width * height * 3))
    raw = encode_tga(width, height, 3, data, rle=False)
    packed = encode_tga(width, height, 3, data, rle=True)
    assert decode_tga_rle(packed[18:], 3) == raw[18:]


def test_tga_errors():
    with pytest.raises(ImageWriteError):
        encode_tga(1, -1, 3, b"")
    with pytest.raises(ImageWriteError):
        encode_tga(4, 4, 3, b"\0" * 10)


def test_write_tga_matches_encode(tmp_path):
    data = bytes([9] * 12)
    path = tmp_path / "img.tga"
    write_tga(path, 2, 2, 3, data, rle=True)
    assert path.read_bytes() == encode_tga(2, 2, 3, data, rle=True)


# ---------------------------------------------------------------- HDR


def test_hdr_header():
    out = encode_hdr(3, 2, 3, [0.5] * 18)
    assert out.startswith(b"#?RADIANCE\n")
    assert b"FORMAT=32-bit_rle_rgbe\n" in out
    assert b"EXPOSURE=          1.0000000000000\n\n-Y 2 +X 3\n" in out


def test_hdr_flat_scanlines_round_trip():
    values = [1.0, 0.5, 0.25, 2.0, 0.0, 0.125, 0.0, 0.0, 0.0, 3.0, 1.5, 0.75]
    out = encode_hdr(2, 2, 3, values)
    payload = hdr_payload(out)
    assert len(payload) == 4 * 4
    decoded = [rgbe_to_float(payload[i : i + 4]) for i in range(0, 16, 4)]
    expected = [tuple(values[i : i + 3]) for i in range(0, 12, 3)]
    assert decoded == expected


def test_hdr_zero_pixel_is_all_zero():
    payload = hdr_payload(encode_hdr(1, 1, 3, [0.0, 0.0, 0.0]))
    assert payload == bytes(4)


def test_hdr_grey_replicated():
    payload = hdr_payload(encode_hdr(1, 1, 1, [0.7]))
    assert payload[0] == payload[1] == payload[2]
    assert rgbe_to_float(payload)[0] == pytest.approx(0.7, abs=0.7 / 100)


def test_hdr_alpha_ignored():
    with_alpha = encode_hdr(2, 1, 4, [1.0, 0.5, 0.25, 9.0, 0.1, 0.2, 0.3, 9.0])
    without = encode_hdr(2, 1, 3, [1.0, 0.5, 0.25, 0.1, 0.2, 0.3])
    assert with_alpha == without


@pytest.mark.parametrize("width", [8, 10, 200])
def test_hdr_rle_round_trip(width):
    height = 2
    values = []
    for row in range(height):
        for x in range(width):
            level = 0.25 if x % 5 < 3 else 1.0 + x / 10 + row
            values += [level, level / 2, level / 4]
    out = encode_hdr(width, height, 3, values)
    pixels = decode_hdr_rle(hdr_payload(out), width, height)
    assert len(pixels) == width * height
    for index, rgbe in enumerate(pixels):
        expected = values[index * 3 : index * 3 + 3]
        tolerance = max(expected) / 100
        for got, want in zip(rgbe_to_float(rgbe), expected):
            assert got == pytest.approx(want, abs=tolerance)


def test_hdr_flip_reverses_rows():
    values = [1.0, 1.0, 1.0, 0.5, 0.5, 0.5]
    normal = hdr_payload(encode_hdr(1, 2, 3, values))
    flipped = hdr_payload(encode_hdr(1, 2, 3, values, flip_vertically=True))
    assert normal[:4] == flipped[4:]
    assert normal[4:] == flipped[:4]
    assert rgbe_to_float(normal[:4]) == (1.0, 1.0, 1.0)


@pytest.mark.parametrize(
    "args",
    [(0, 1, 3, [0.0] * 3), (1, 0, 3, [0.0] * 3), (2, 2, 3, [0.0] * 5), (1, 1, 3, None)],
)
def test_hdr_errors(args):
    with pytest.raises(ImageWriteError):
        encode_hdr(*args)


def test_write_hdr_matches_encode(tmp_path):
    values = [0.3] * 27
    path = tmp_path / "img.hdr"
    write_hdr(path, 9, 1, 3, values)
    assert path.read_bytes() == encode_hdr(9, 1, 3, values)