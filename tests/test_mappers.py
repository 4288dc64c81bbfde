import pytest

from gones.cartridge import Cartridge, Mirror
from gones.consts import PRG_CHUNK_SIZE
from gones.mappers import Mapper, Mapper1, Mapper2, Mapper3, Mapper7, Mapper71

PRG_BANKS = 4
CHR_BANKS = 4


def make_cart(prg_banks=PRG_BANKS, chr_size=0x2000):
    prg = bytearray()
    for bank in range(prg_banks):
        prg += bytes([bank]) * PRG_CHUNK_SIZE
    return Cartridge(prg=prg, chr=bytearray(chr_size))


def serial_write(mapper, addr, value):
    for bit in range(5):
        mapper.write_mem(addr, (value >> bit) & 1)


def test_mapper_is_abstract():
    with pytest.raises(TypeError):
        Mapper()


# Mapper 1

def test_mapper1_initial_banks():
    m = Mapper1(make_cart())
    assert m.read_mem(0x8000) == 0
    assert m.read_mem(0xC000) == PRG_BANKS - 1
    assert m.shift_register == 0x10


def test_mapper1_switch_prg_bank():
    cart = make_cart()
    m = Mapper1(cart)
    serial_write(m, 0x8000, 0x0E)  # PRG mode 3, vertical mirroring
    assert m.prg_mode == 3
    assert cart.mirror == Mirror.VERTICAL
    serial_write(m, 0xE000, 2)
    assert m.read_mem(0x8000) == 2
    assert m.read_mem(0xFFFF) == PRG_BANKS - 1
    assert m.shift_register == 0x10


@pytest.mark.parametrize(
    "bits, mirror",
    [(0, Mirror.SINGLE_LOWER), (1, Mirror.SINGLE_UPPER), (2, Mirror.VERTICAL), (3, Mirror.HORIZONTAL)],
)
def test_mapper1_mirroring(bits, mirror):
    cart = make_cart()
    m = Mapper1(cart)
    serial_write(m, 0x8000, bits)
    assert cart.mirror == mirror
    assert m.control == bits


def test_mapper1_reset_bit():
    m = Mapper1(make_cart())
    m.write_mem(0x8000, 1)
    m.write_mem(0x8000, 0x80)
    assert m.shift_register == 0x10
    assert m.control & 0x0C == 0x0C


def test_mapper1_sram_and_chr_round_trip():
    cart = make_cart()
    m = Mapper1(cart)
    m.write_mem(0x6001, 0x42)
    m.write_mem(0x0005, 0x24)
    assert m.read_mem(0x6001) == 0x42
    assert cart.sram[1] == 0x42
    assert m.read_mem(0x0005) == 0x24


def test_mapper1_invalid_read_is_zero():
    assert Mapper1(make_cart()).read_mem(0x4000) == 0


# Mapper 2

def test_mapper2_banks():
    m = Mapper2(make_cart())
    assert m.prg_banks == PRG_BANKS
    assert m.read_mem(0xC000) == PRG_BANKS - 1
    m.write_mem(0x8000, 2)
    assert m.read_mem(0x8000) == 2
    assert m.read_mem(0xBFFF) == 2
    m.write_mem(0x8000, 2 + PRG_BANKS)
    assert m.prg_bank1 == 2


def test_mapper2_memory_round_trip():
    cart = make_cart()
    m = Mapper2(cart)
    m.write_mem(0x1FFF, 9)
    m.write_mem(0x7FFF, 8)
    assert m.read_mem(0x1FFF) == 9
    assert m.read_mem(0x7FFF) == 8
    assert m.read_mem(0x5000) == 0


# Mapper 3

def test_mapper3_chr_banks():
    chr_data = bytearray()
    for bank in range(CHR_BANKS):
        chr_data += bytes([bank]) * 0x2000
    cart = Cartridge(prg=make_cart(2).prg, chr=chr_data)
    m = Mapper3(cart)
    assert m.read_mem(0x0000) == 0
    m.write_mem(0x8000, 2)
    assert m.read_mem(0x0000) == 2
    m.write_mem(0x8000, 2 | 4)
    assert m.chr_bank == 2
    assert m.read_mem(0xC000) == 1


# Mapper 7

def test_mapper7_mirroring_and_bank():
    cart = make_cart()
    m = Mapper7(cart)
    m.write_mem(0x8000, 0x10 | 1)
    assert cart.mirror == Mirror.SINGLE_UPPER
    assert m.prg_bank == 1
    m.write_mem(0x8000, 0)
    assert cart.mirror == Mirror.SINGLE_LOWER
    assert m.read_mem(0x8000) == 0


def test_mapper7_bank_wraps():
    m = Mapper7(make_cart())
    m.write_mem(0x8000, 1)
    first = m.read_mem(0x8000)
    m.write_mem(0x8000, 1 + PRG_BANKS // 2)
    assert m.read_mem(0x8000) == first


# Mapper 71

def test_mapper71_banks():
    m = Mapper71(make_cart())
    assert m.read_mem(0xC000) == PRG_BANKS - 1
    m.write_mem(0xC000, 1)
    assert m.read_mem(0x8000) == 1
    m.write_mem(0xC000, 1 + PRG_BANKS)
    assert m.prg_active == 1


def test_mapper71_mirroring():
    cart = make_cart()
    m = Mapper71(cart)
    m.write_mem(0x9000, 0x10)
    assert cart.mirror == Mirror.VERTICAL
    m.write_mem(0x8000, 0x00)
    assert cart.mirror == Mirror.VERTICAL
    m.write_mem(0x9000, 0x00)
    assert cart.mirror == Mirror.HORIZONTAL


def test_mapper71_has_no_sram():
    m = Mapper71(make_cart())
    assert m.read_mem(0x6000) == 0