# hpclab

Image encoders written with nothing outside the Python standard library,
a small zlib-stream compressor, and a wall-clock stopwatch.

## What is inside

- `hpclab.png`: `encode_png` returns the bytes of a PNG file and `write_png`
  writes one. Each row is filtered with one of the five PNG filters; unless
  `force_filter` is 0..4, every filter is tried per row and the one with the
  smallest sum of absolute signed byte values is kept. `stride_bytes` gives
  the distance between row starts (0 means tightly packed), and
  `compression_level` is handed to the compressor.
- `hpclab.deflate`: `zlib_compress(data, quality)` produces a zlib stream
  holding one fixed-Huffman DEFLATE block with hash-chain matching and a
  one-byte lazy-match check; `crc32` and `adler32` compute the usual checksums.
- `hpclab.formats`:
  - `encode_bmp` / `write_bmp`: 24-bit BMP; grey is expanded to RGB and alpha
    is composited onto magenta.
  - `encode_tga` / `write_tga`: TGA, run-length compressed by default
    (`rle=False` for raw).
  - `encode_hdr` / `write_hdr`: Radiance RGBE from linear floats; alpha is
    dropped, grey is replicated to three channels.
  - `ImageWriteError`, a `ValueError` raised when an image cannot be encoded.
- `hpclab.timer.Timer`: `start()`, `stop()` and `elapsed()` in seconds; also a
  context manager that starts on entry and stops on exit. `elapsed()` raises
  `RuntimeError` if the timer was not both started and stopped.

Pixel data is given as bytes (or any iterable of ints), left to right and top
to bottom, `comp` channels per pixel: 1 = grey, 2 = grey + alpha, 3 = RGB,
4 = RGBA. Every encoder takes `flip_vertically` to store the rows in the
opposite order.

## Installation

```
pip install .
```

## Example

```python
from hpclab.png import write_png
from hpclab.formats import write_bmp
from hpclab.timer import Timer

width, height = 64, 32
pixels = bytes((x * 4) & 0xFF for y in range(height) for x in range(width))

with Timer() as timer:
    write_png("gradient.png", width, height, 1, pixels)
print(f"{timer.elapsed() * 1000:.1f} ms")

write_bmp("gradient.bmp", width, height, 1, pixels)
```

## What it does not do

The package only writes images. It has no command-line program, does not read
or decode any image format, has no JPEG encoder, and does not compute images
itself: the pixel data has to come from the caller.