import hashlib
import io

import pytest

from gones.cartridge import (
    SUBMAPPER_MC_ACC,
    Cartridge,
    INESHeader,
    InvalidROMError,
    Mirror,
    cartridge_from_bytes,
    from_ines,
    from_ines_file,
)
from gones.consts import CHR_CHUNK_SIZE, PRG_CHUNK_SIZE, PRG_ROM_ADDR


def header(*control):
    return INESHeader(control=bytearray(control))


def control10(*values):
    return bytearray(values) + bytearray(10 - len(values))


@pytest.mark.parametrize(
    "control, want",
    [((), False), ((2,), True), ((0xFF,), True), ((0xFF ^ 2,), False)],
)
def test_battery(control, want):
    assert header(*control).battery() is want


@pytest.mark.parametrize(
    "control, want",
    [((), Mirror.HORIZONTAL), ((1,), Mirror.VERTICAL), ((0x8 | 0x1,), Mirror.FOUR_SCREEN)],
)
def test_mirror(control, want):
    assert header(*control).mirror() == want


@pytest.mark.parametrize(
    "control, want",
    [((), 0), ((0x10,), 1), ((0x20,), 2), ((0x80, 0x20), 40)],
)
def test_mapper(control, want):
    assert header(*control).mapper() == want


@pytest.mark.parametrize(
    "control, value, want",
    [
        ((), True, 2),
        ((2,), False, 0),
        ((), False, 0),
        ((2,), True, 2),
        ((0xFF,), True, 0xFF),
        ((0xFF,), False, 0xFD),
    ],
)
def test_set_battery(control, value, want):
    h = header(*control)
    h.set_battery(value)
    assert h.battery() is value
    assert h.control[0] == want


@pytest.mark.parametrize(
    "control, value, want",
    [
        ((), Mirror.HORIZONTAL, 0),
        ((), Mirror.VERTICAL, 1),
        ((1,), Mirror.VERTICAL, 1),
        ((1,), Mirror.VERTICAL, 1),
        ((1,), Mirror.FOUR_SCREEN, 0x8),
        ((0xFF,), Mirror.HORIZONTAL, 0xF6),
        ((0xFF,), Mirror.VERTICAL, 0xF7),
        ((0xFF,), Mirror.FOUR_SCREEN, 0xFE),
    ],
)
def test_set_mirror(control, value, want):
    h = header(*control)
    h.set_mirror(value)
    assert h.mirror() == value
    assert h.control[0] == want


@pytest.mark.parametrize(
    "control, value, want",
    [
        ((), 1, (0x10, 0)),
        ((), 71, (0x70, 0x40)),
        ((0x70, 0x40), 0, ()),
        ((0xFF, 0xFF, 0xFF), 0, (0xF, 0xF, 0xFF)),
    ],
)
def test_set_mapper(control, value, want):
    h = header(*control)
    h.set_mapper(value)
    assert h.mapper() == value
    assert h.control == control10(*want)


def test_submapper_requires_nes2():
    assert header(0, 0x08, 0x30).submapper() == SUBMAPPER_MC_ACC
    assert header(0, 0x00, 0x30).submapper() == 0
    assert header(0, 0x08).nes2() is True


def test_header_bytes_round_trip():
    h = INESHeader(prg_count=2, chr_count=1, control=bytearray([0x13, 0x40]))
    raw = h.to_bytes()
    assert len(raw) == 16
    assert raw[:4] == b"NES\x1a"
    assert INESHeader.from_bytes(raw) == h


def test_header_from_short_bytes():
    with pytest.raises(InvalidROMError):
        INESHeader.from_bytes(b"NES\x1a")


def test_mirror_str():
    assert str(header(0x8).mirror()) == "FourScreen"
    assert str(header().mirror()) == "Horizontal"


def make_rom(prg_count=1, chr_count=1, control=(0x13,)):
    h = INESHeader(prg_count=prg_count, chr_count=chr_count, control=bytearray(control))
    prg = bytes(i % 251 for i in range(prg_count * PRG_CHUNK_SIZE))
    chr_data = bytes(i % 7 for i in range(chr_count * CHR_CHUNK_SIZE))
    return h.to_bytes() + prg + chr_data, prg, chr_data


def test_from_ines_loads_sections():
    data, prg, chr_data = make_rom()
    cart = from_ines(io.BytesIO(data))
    assert bytes(cart.prg) == prg
    assert bytes(cart.chr) == chr_data
    assert cart.mirror == Mirror.VERTICAL
    assert cart.battery is True
    assert cart.header.mapper() == 1
    assert cart.hash == hashlib.md5(data).hexdigest()
    assert len(cart.sram) == 0x2000


def test_from_ines_without_chr_allocates_ram():
    data, _, _ = make_rom(chr_count=0)
    cart = from_ines(io.BytesIO(data))
    assert cart.chr == bytearray(CHR_CHUNK_SIZE)


def test_from_ines_rejects_bad_magic():
    data, _, _ = make_rom()
    with pytest.raises(InvalidROMError):
        from_ines(io.BytesIO(b"XXXX" + data[4:]))


def test_from_ines_rejects_truncated_prg():
    data, _, _ = make_rom()
    with pytest.raises(InvalidROMError):
        from_ines(io.BytesIO(data[:100]))


def test_from_ines_file_names_after_file(tmp_path):
    data, _, _ = make_rom()
    path = tmp_path / "Some Game.nes"
    path.write_bytes(data)
    cart = from_ines_file(path)
    assert cart.name == "Some Game"


def test_set_name():
    cart = Cartridge()
    cart.set_name("/roms/dir/Title.v1.nes")
    assert cart.name == "Title.v1"


def test_cartridge_from_bytes():
    program = bytes([0xA9, 0x01, 0x00])
    cart = cartridge_from_bytes(program)
    assert len(cart.prg) == PRG_CHUNK_SIZE * 2
    assert bytes(cart.prg[PRG_ROM_ADDR:PRG_ROM_ADDR + 3]) == program
    assert cart.prg[0xFFFD - 0x8000] == 0x86
    assert len(cart.chr) == CHR_CHUNK_SIZE
    assert cart.hash == hashlib.md5(program).hexdigest()


def test_default_cartridge_header():
    cart = Cartridge()
    assert cart.header.magic == b"NES\x1a"
    assert cart.header.nes2() is True