"""Simple cartridge mappers: MMC1, UxROM, CNROM, AxROM and Camerica."""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field

from gones.cartridge import Cartridge, Mirror
from gones.consts import PRG_CHUNK_SIZE

_log = logging.getLogger(__name__)


def _trunc_mod(value: int, divisor: int) -> int:
    """Remainder with the sign of the dividend."""
    rem = abs(value) % divisor
    return -rem if value < 0 else rem


def _bank_offset(index: int, size: int, bank_size: int) -> int:
    if index >= 0x80:
        index -= 0x100
    index = _trunc_mod(index, size // bank_size)
    offset = index * bank_size
    if offset < 0:
        offset += size
    return offset


class Mapper(abc.ABC):
    """Maps CPU and PPU addresses onto cartridge memory."""

    cartridge: Cartridge

    @abc.abstractmethod
    def read_mem(self, addr: int) -> int:
        """Read a byte at a CPU or PPU address."""

    @abc.abstractmethod
    def write_mem(self, addr: int, data: int) -> None:
        """Write a byte at a CPU or PPU address."""

    def _invalid(self, action: str, addr: int) -> None:
        _log.error("Invalid %s %s addr=0x%04X", type(self).__name__, action, addr)


@dataclass
class Mapper1(Mapper):
    """MMC1 with a 5-bit serial load register."""

    cartridge: Cartridge
    shift_register: int = 0x10
    control: int = 0
    prg_mode: int = 0
    chr_mode: bool = False
    prg_bank: int = 0
    chr_bank0: int = 0
    chr_bank1: int = 0
    prg_offsets: list[int] = field(default_factory=lambda: [0, 0])
    chr_offsets: list[int] = field(default_factory=lambda: [0, 0])

    def __post_init__(self) -> None:
        self.prg_offsets[1] = self._prg_bank_offset(-1)

    def read_mem(self, addr: int) -> int:
        if addr < 0x2000:
            bank, offset = divmod(addr, 0x1000)
            return self.cartridge.chr[self.chr_offsets[bank] + offset]
        if 0x6000 <= addr < 0x8000:
            return self.cartridge.sram[addr - 0x6000]
        if addr >= 0x8000:
            bank, offset = divmod(addr - 0x8000, PRG_CHUNK_SIZE)
            return self.cartridge.prg[self.prg_offsets[bank] + offset]
        self._invalid("read", addr)
        return 0

    def write_mem(self, addr: int, data: int) -> None:
        if addr < 0x2000:
            bank, offset = divmod(addr, 0x1000)
            self.cartridge.chr[self.chr_offsets[bank] + offset] = data
        elif 0x6000 <= addr < 0x8000:
            self.cartridge.sram[addr - 0x6000] = data
        elif addr >= 0x8000:
            self._write_register(addr, data)
        else:
            self._invalid("write", addr)

    def _write_register(self, addr: int, data: int) -> None:
        if (data >> 7) & 1:
            self.shift_register = 0x10
            self._write_control(self.control | 0x0C)
            return
        complete = self.shift_register & 1 == 1
        self.shift_register = (self.shift_register >> 1) | ((data & 1) << 4)
        if not complete:
            return
        value = self.shift_register
        if addr < 0xA000:
            self._write_control(value)
        elif addr < 0xC000:
            self.chr_bank0 = value
            self._update_offsets()
        elif addr < 0xE000:
            self.chr_bank1 = value
            self._update_offsets()
        else:
            self.prg_bank = value & 0xF
            self._update_offsets()
        self.shift_register = 0x10

    def _write_control(self, data: int) -> None:
        self.control = data
        self.chr_mode = (data >> 4) & 1 == 1
        self.prg_mode = (data >> 2) & 3
        self.cartridge.mirror = (
            Mirror.SINGLE_LOWER,
            Mirror.SINGLE_UPPER,
            Mirror.VERTICAL,
            Mirror.HORIZONTAL,
        )[data & 3]
        self._update_offsets()

    def _prg_bank_offset(self, index: int) -> int:
        return _bank_offset(index, len(self.cartridge.prg), PRG_CHUNK_SIZE)

    def _chr_bank_offset(self, index: int) -> int:
        return _bank_offset(index, len(self.cartridge.chr), 0x1000)

    def _update_offsets(self) -> None:
        if self.prg_mode in (0, 1):
            self.prg_offsets[0] = self._prg_bank_offset(self.prg_bank & 0xFE)
            self.prg_offsets[1] = self._prg_bank_offset(self.prg_bank | 0x01)
        elif self.prg_mode == 2:
            self.prg_offsets[0] = 0
            self.prg_offsets[1] = self._prg_bank_offset(self.prg_bank)
        else:
            self.prg_offsets[0] = self._prg_bank_offset(self.prg_bank)
            self.prg_offsets[1] = self._prg_bank_offset(-1)

        if self.chr_mode:
            self.chr_offsets[0] = self._chr_bank_offset(self.chr_bank0)
            self.chr_offsets[1] = self._chr_bank_offset(self.chr_bank1)
        else:
            self.chr_offsets[0] = self._chr_bank_offset(self.chr_bank0 & 0xFE)
            self.chr_offsets[1] = self._chr_bank_offset(self.chr_bank0 | 0x01)


@dataclass
class Mapper2(Mapper):
    """UxROM: switchable 16 KiB bank at $8000, last bank fixed at $C000."""

    cartridge: Cartridge
    prg_banks: int = field(init=False)
    prg_bank1: int = 0
    prg_bank2: int = field(init=False)

    def __post_init__(self) -> None:
        self.prg_banks = len(self.cartridge.prg) // PRG_CHUNK_SIZE
        self.prg_bank2 = self.prg_banks - 1

    def read_mem(self, addr: int) -> int:
        if addr < 0x2000:
            return self.cartridge.chr[addr]
        if 0x6000 <= addr < 0x8000:
            return self.cartridge.sram[addr - 0x6000]
        if 0x8000 <= addr < 0xC000:
            return self.cartridge.prg[addr - 0x8000 + self.prg_bank1 * PRG_CHUNK_SIZE]
        if addr >= 0xC000:
            return self.cartridge.prg[addr - 0xC000 + self.prg_bank2 * PRG_CHUNK_SIZE]
        self._invalid("read", addr)
        return 0

    def write_mem(self, addr: int, data: int) -> None:
        if addr < 0x2000:
            self.cartridge.chr[addr] = data
        elif 0x6000 <= addr < 0x8000:
            self.cartridge.sram[addr - 0x6000] = data
        elif addr >= 0x8000:
            self.prg_bank1 = data % self.prg_banks
        else:
            self._invalid("write", addr)


@dataclass
class Mapper3(Mapper):
    """CNROM: switchable 8 KiB CHR bank."""

    cartridge: Cartridge
    chr_bank: int = 0
    prg_bank1: int = 0
    prg_bank2: int = field(init=False)

    def __post_init__(self) -> None:
        self.prg_bank2 = len(self.cartridge.prg) // PRG_CHUNK_SIZE - 1

    def read_mem(self, addr: int) -> int:
        if addr < 0x2000:
            return self.cartridge.chr[addr + self.chr_bank * 0x2000]
        if 0x6000 <= addr < 0x8000:
            return self.cartridge.sram[addr - 0x6000]
        if 0x8000 <= addr < 0xC000:
            return self.cartridge.prg[addr - 0x8000 + self.prg_bank1 * PRG_CHUNK_SIZE]
        if addr >= 0xC000:
            return self.cartridge.prg[addr - 0xC000 + self.prg_bank2 * PRG_CHUNK_SIZE]
        self._invalid("read", addr)
        return 0

    def write_mem(self, addr: int, data: int) -> None:
        if addr < 0x2000:
            self.cartridge.chr[addr + self.chr_bank * 0x2000] = data
        elif 0x6000 <= addr < 0x8000:
            self.cartridge.sram[addr - 0x6000] = data
        elif addr >= 0x8000:
            self.chr_bank = data & 3
        else:
            self._invalid("write", addr)


@dataclass
class Mapper7(Mapper):
    """AxROM: switchable 32 KiB PRG bank and single-screen mirroring."""

    cartridge: Cartridge
    prg_bank: int = 0

    def read_mem(self, addr: int) -> int:
        if addr < 0x2000:
            return self.cartridge.chr[addr & 0x1FFF]
        if 0x6000 <= addr < 0x8000:
            return self.cartridge.sram[addr - 0x6000]
        if addr >= 0x8000:
            index = addr - 0x8000 + self.prg_bank * 2 * PRG_CHUNK_SIZE
            return self.cartridge.prg[index % len(self.cartridge.prg)]
        self._invalid("read", addr)
        return 0

    def write_mem(self, addr: int, data: int) -> None:
        if addr < 0x2000:
            self.cartridge.chr[addr % 0x1FFF] = data
        elif 0x6000 <= addr < 0x8000:
            self.cartridge.sram[addr - 0x6000] = data
        elif addr >= 0x8000:
            self.cartridge.mirror = (
                Mirror.SINGLE_UPPER if (data >> 4) & 1 else Mirror.SINGLE_LOWER
            )
            self.prg_bank = data & 7
        else:
            self._invalid("write", addr)


@dataclass
class Mapper71(Mapper):
    """Camerica boards: switchable 16 KiB bank with the last bank fixed."""

    cartridge: Cartridge
    prg_count: int = field(init=False)
    prg_active: int = 0
    prg_last: int = field(init=False)

    def __post_init__(self) -> None:
        self.prg_count = len(self.cartridge.prg) // PRG_CHUNK_SIZE
        self.prg_last = self.prg_count - 1

    def read_mem(self, addr: int) -> int:
        if addr < 0x2000:
            return self.cartridge.chr[addr]
        if 0x8000 <= addr < 0xC000:
            return self.cartridge.prg[addr - 0x8000 + self.prg_active * PRG_CHUNK_SIZE]
        if addr >= 0xC000:
            return self.cartridge.prg[addr - 0xC000 + self.prg_last * PRG_CHUNK_SIZE]
        self._invalid("read", addr)
        return 0

    def write_mem(self, addr: int, data: int) -> None:
        if addr < 0x2000:
            self.cartridge.chr[addr] = data
        elif 0x8000 <= addr < 0x9000:
            pass  # Mirroring control here is ignored for compatibility.
        elif 0x9000 <= addr < 0xA000:
            self.cartridge.mirror = Mirror((data >> 4) & 1)
        elif addr >= 0xC000:
            self.prg_active = (data & 0xF) % self.prg_count
        else:
            self._invalid("write", addr)