import pytest
from PIL import Image

from gones.cartridge import INESHeader
from gones.chrdata import (
    DEFAULT_PALETTE,
    IMAGE_WIDTH,
    ImageWidthError,
    InvalidPaletteError,
    NoCHRError,
    chr_to_image,
    decode_file,
    decode_tiles,
    encode_file,
    image_to_chr,
    load_chr,
    parse_palette,
)
from gones.consts import CHR_CHUNK_SIZE, PRG_CHUNK_SIZE

SAMPLE = bytes(range(256)) * 2


def _palette():
    return parse_palette(DEFAULT_PALETTE)


def test_parse_default_palette_ends():
    palette = _palette()
    assert palette[0] == (0, 0, 0, 255)
    assert palette[3] == (255, 255, 255, 255)
    assert len(palette) == 4


def test_parse_palette_comma_string_matches_list():
    assert parse_palette("000,555,AAA,FFF") == _palette()


def test_parse_palette_wrong_count():
    with pytest.raises(InvalidPaletteError):
        parse_palette(["000", "FFF"])


def test_parse_palette_bad_hex():
    with pytest.raises(ValueError):
        parse_palette(["000", "555", "AAA", "XYZ"])


def test_decode_tiles_planes():
    tile = bytes([0x80] + [0] * 7 + [0x80] + [0] * 7)
    tiles = list(decode_tiles(tile))
    assert len(tiles) == 1
    index, pixels = tiles[0]
    assert index == 0
    assert pixels[0] == 3
    assert sum(pixels) == 3


def test_decode_tiles_count():
    assert len(list(decode_tiles(SAMPLE))) == len(SAMPLE) // 16


def test_chr_to_image_size():
    image = chr_to_image(SAMPLE, _palette())
    assert image.size == (IMAGE_WIDTH, len(SAMPLE) // 256 * 8)


def test_round_trip():
    image = chr_to_image(SAMPLE, _palette())
    assert image_to_chr(image, _palette()) == SAMPLE


def test_image_width_error():
    with pytest.raises(ImageWidthError):
        image_to_chr(Image.new("RGBA", (64, 8)), _palette())


def _rom(tmp_path, chr_count):
    header = INESHeader(prg_count=1, chr_count=chr_count)
    chr_data = bytes(range(256)) * (CHR_CHUNK_SIZE // 256) * chr_count
    path = tmp_path / "game.nes"
    path.write_bytes(header.to_bytes() + bytes(PRG_CHUNK_SIZE) + chr_data)
    return path, chr_data


def test_load_chr_from_rom(tmp_path):
    path, chr_data = _rom(tmp_path, 1)
    assert load_chr(path) == chr_data


def test_load_chr_rom_without_chr(tmp_path):
    path, _ = _rom(tmp_path, 0)
    with pytest.raises(NoCHRError):
        load_chr(path)


def test_load_chr_raw_file(tmp_path):
    path = tmp_path / "tiles.chr"
    path.write_bytes(SAMPLE)
    assert load_chr(path) == SAMPLE


def test_file_round_trip(tmp_path):
    raw = tmp_path / "tiles.chr"
    raw.write_bytes(SAMPLE)
    png, count = decode_file(raw, tmp_path / "tiles.png")
    assert count == len(SAMPLE) // 16
    out = encode_file(png, tmp_path / "out.chr")
    assert out.read_bytes() == SAMPLE


def test_decode_file_default_output(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    raw = tmp_path / "tiles.chr"
    raw.write_bytes(SAMPLE)
    png, _ = decode_file(raw)
    assert png.name == "tiles.png"
    assert png.exists()