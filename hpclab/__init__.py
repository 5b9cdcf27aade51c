"""Pure-Python PNG, BMP, TGA and HDR encoders, a zlib compressor and a stopwatch."""

__version__ = "0.1.0"