"""Converting NES CHR tile data to and from PNG images."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Sequence
from pathlib import Path

from PIL import Image

from gones.cartridge import _base_name, from_ines_file

_log = logging.getLogger(__name__)

TILES_PER_ROW = 16
TILE_SIZE = 8
BYTES_PER_TILE = 16
IMAGE_WIDTH = TILES_PER_ROW * TILE_SIZE

DEFAULT_PALETTE = ("000", "555", "AAA", "FFF")

Color = tuple[int, int, int, int]
PathLike = str | os.PathLike[str]


class InvalidPaletteError(ValueError):
    """The palette does not hold exactly four hex colors."""


class NoCHRError(ValueError):
    """The ROM file carries no CHR data."""


class ImageWidthError(ValueError):
    """The image is not exactly one tile row wide."""


def _parse_hex(text: str) -> Color:
    digits = text[1:] if text.startswith("#") else text
    try:
        int(digits, 16)
    except ValueError:
        raise ValueError(f"invalid hex color: {text!r}") from None
    if len(digits) in (3, 4):
        parts = [int(d, 16) * 17 for d in digits]
    elif len(digits) in (6, 8):
        parts = [int(digits[i:i + 2], 16) for i in range(0, len(digits), 2)]
    else:
        raise ValueError(f"invalid hex color: {text!r}")
    if len(parts) == 3:
        parts.append(255)
    return (parts[0], parts[1], parts[2], parts[3])


def parse_palette(values: Sequence[str] | str) -> list[Color]:
    """Parse four hex colors (a list, or one comma-separated string)."""
    if isinstance(values, str):
        values = values.split(",")
    values = list(values)
    if len(values) != 4:
        raise InvalidPaletteError(
            f"palette must contain 4 hex colors: {','.join(values)}"
        )
    return [_parse_hex(value) for value in values]


def decode_tiles(data: bytes) -> Iterator[tuple[int, list[int]]]:
    """Yield each tile's index and its 64 color indexes, row by row."""
    for i in range(len(data) // BYTES_PER_TILE):
        tile = data[i * BYTES_PER_TILE:(i + 1) * BYTES_PER_TILE]
        yield i, [
            (((tile[y + TILE_SIZE] >> x) & 1) << 1) | ((tile[y] >> x) & 1)
            for y in range(TILE_SIZE)
            for x in range(TILE_SIZE - 1, -1, -1)
        ]


def chr_to_image(data: bytes, palette: Sequence[Color]) -> Image.Image:
    """Lay out CHR tiles sixteen to a row in a paletted image."""
    height = len(data) // (TILES_PER_ROW * BYTES_PER_TILE) * TILE_SIZE
    pixels = bytearray(IMAGE_WIDTH * height)
    for i, tile in decode_tiles(data):
        x_off = (i % TILES_PER_ROW) * TILE_SIZE
        y_off = (i // TILES_PER_ROW) * TILE_SIZE
        for y in range(TILE_SIZE):
            row = y_off + y
            if row >= height:
                break
            start = row * IMAGE_WIDTH + x_off
            pixels[start:start + TILE_SIZE] = bytes(tile[y * TILE_SIZE:(y + 1) * TILE_SIZE])

    image = Image.frombytes("P", (IMAGE_WIDTH, height), bytes(pixels))
    image.putpalette([c for color in palette for c in color], rawmode="RGBA")
    return image


def _nearest(color: Color, palette: Sequence[Color]) -> int:
    best, best_dist = 0, None
    for i, candidate in enumerate(palette):
        dist = sum((a - b) ** 2 for a, b in zip(color, candidate))
        if best_dist is None or dist < best_dist:
            best, best_dist = i, dist
    return best


def image_to_chr(image: Image.Image, palette: Sequence[Color]) -> bytes:
    """Encode an image's 8x8 tiles as CHR data using the nearest palette colors."""
    width, height = image.size
    if width != IMAGE_WIDTH:
        raise ImageWidthError(f"image width must be {IMAGE_WIDTH}; got {width}")

    raw = image.convert("RGBA").tobytes()
    cache: dict[bytes, int] = {}

    def index_at(x: int, y: int) -> int:
        offset = (y * width + x) * 4
        key = raw[offset:offset + 4]
        if key not in cache:
            cache[key] = _nearest((key[0], key[1], key[2], key[3]), palette)
        return cache[key]

    out = bytearray()
    for ty in range(height // TILE_SIZE):
        for tx in range(width // TILE_SIZE):
            for plane in (0, 1):
                for y in range(TILE_SIZE):
                    byte = 0
                    for x in range(TILE_SIZE):
                        index = index_at(tx * TILE_SIZE + x, ty * TILE_SIZE + y)
                        byte |= ((index >> plane) & 1) << (7 - x)
                    out.append(byte)
    return bytes(out)


def load_chr(path: PathLike) -> bytes:
    """Read CHR data from a .nes ROM or a raw CHR file."""
    if os.path.splitext(os.fspath(path))[1] == ".nes":
        cart = from_ines_file(path)
        if cart.header.chr_count == 0:
            raise NoCHRError(f"ROM file has no CHR data: {path}")
        return bytes(cart.chr)
    return Path(path).read_bytes()


def decode_file(
    input_path: PathLike,
    output: PathLike | None = None,
    palette: Sequence[Color] | None = None,
) -> tuple[Path, int]:
    """Write a ROM's or CHR file's tiles to a PNG; return its path and tile count."""
    if palette is None:
        palette = parse_palette(DEFAULT_PALETTE)
    data = load_chr(input_path)
    image = chr_to_image(data, palette)
    count = len(data) // BYTES_PER_TILE

    out = Path(output) if output else Path(_base_name(input_path) + ".png")
    image.save(out, format="PNG")
    _log.info("Wrote file path=%s tiles=%d", out, count)
    return out, count


def encode_file(
    input_path: PathLike,
    output: PathLike | None = None,
    palette: Sequence[Color] | None = None,
) -> Path:
    """Convert a PNG into a raw CHR data file and return its path."""
    if palette is None:
        palette = parse_palette(DEFAULT_PALETTE)
    with Image.open(input_path) as image:
        image.load()
        data = image_to_chr(image, palette)

    out = Path(output) if output else Path(_base_name(input_path))
    _log.info("Writing CHR data path=%s", out)
    out.write_bytes(data)
    return out