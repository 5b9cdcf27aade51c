[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "hpclab"
version = "0.1.0"
description = "Pure-Python image encoders for PNG, BMP, TGA and Radiance HDR, with a small deflate compressor and a stopwatch"
requires-python = ">=3.10"
dependencies = []
keywords = ["png", "bmp", "tga", "hdr", "image", "deflate", "zlib", "crc32", "adler32"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Graphics :: Graphics Conversion",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["hpclab"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
