"""Interrupt-generating mappers (MMC3, Sunsoft FME-7) and mapper selection."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from gones.cartridge import SUBMAPPER_MC_ACC, Cartridge, Mirror
from gones.mappers import (
    Mapper,
    Mapper1,
    Mapper2,
    Mapper3,
    Mapper7,
    Mapper71,
    _bank_offset,
)

_log = logging.getLogger(__name__)


class UnsupportedMapperError(ValueError):
    """The cartridge uses a mapper that is not implemented."""


def _fine_y(addr: Any) -> int:
    fine_y = getattr(addr, "fine_y", None)
    if fine_y is None:
        # A raw VRAM address register keeps fine Y in bits 12-14.
        fine_y = (int(addr) >> 12) & 7
    return fine_y


@dataclass
class Mapper4(Mapper):
    """MMC3: fine-grained PRG/CHR banking with a scanline IRQ counter."""

    cartridge: Cartridge
    register: int = 0
    registers: list[int] = field(default_factory=lambda: [0] * 8)
    prg_mode: bool = False
    chr_mode: bool = False
    prg_offsets: list[int] = field(default_factory=lambda: [0] * 4)
    chr_offsets: list[int] = field(default_factory=lambda: [0] * 8)
    reload: int = 0
    counter: int = 0
    irq_enabled: bool = False
    irq_pending: bool = False
    prev_a12: bool = False

    def __post_init__(self) -> None:
        self.prg_offsets = [
            self._prg_bank_offset(0),
            self._prg_bank_offset(1),
            self._prg_bank_offset(-2),
            self._prg_bank_offset(-1),
        ]

    def on_scanline(self) -> None:
        """Clock the IRQ counter."""
        if self.counter == 0:
            self.counter = self.reload
        else:
            self.counter -= 1
            if self.counter == 0 and self.irq_enabled:
                self.irq_pending = True

    def irq(self) -> bool:
        return self.irq_pending

    def on_vram_addr(self, addr: Any) -> None:
        """Watch PPU address line A12 and clock the counter on its edge.

        ``addr`` is either an object with a ``fine_y`` attribute or the raw
        15-bit VRAM address register value.
        """
        curr = _fine_y(addr) & 1 == 1
        if self.cartridge.header.submapper() == SUBMAPPER_MC_ACC:
            if self.prev_a12 and not curr:
                self.on_scanline()
        elif not self.prev_a12 and curr:
            self.on_scanline()
        self.prev_a12 = curr

    def read_mem(self, addr: int) -> int:
        if addr < 0x2000:
            bank, offset = divmod(addr, 0x400)
            return self.cartridge.chr[self.chr_offsets[bank] + offset]
        if 0x6000 <= addr < 0x8000:
            return self.cartridge.sram[addr - 0x6000]
        if addr >= 0x8000:
            bank, offset = divmod(addr - 0x8000, 0x2000)
            return self.cartridge.prg[self.prg_offsets[bank] + offset]
        self._invalid("read", addr)
        return 0

    def write_mem(self, addr: int, data: int) -> None:
        even = addr % 2 == 0
        if addr < 0x2000:
            bank, offset = divmod(addr, 0x400)
            self.cartridge.chr[self.chr_offsets[bank] + offset] = data
        elif 0x6000 <= addr < 0x8000:
            self.cartridge.sram[addr - 0x6000] = data
        elif 0x8000 <= addr < 0xA000:
            if even:
                self.prg_mode = data & 0x40 == 0x40
                self.chr_mode = data & 0x80 == 0x80
                self.register = data & 7
            else:
                self.registers[self.register] = data
            self._update_offsets()
        elif 0xA000 <= addr < 0xC000:
            if even:
                self.cartridge.mirror = Mirror.HORIZONTAL if data & 1 else Mirror.VERTICAL
        elif 0xC000 <= addr < 0xE000:
            if even:
                self.reload = data
            else:
                self.counter = 0
        elif addr >= 0xE000:
            self.irq_enabled = not even
            if not self.irq_enabled:
                self.irq_pending = False
        else:
            self._invalid("write", addr)

    def _prg_bank_offset(self, index: int) -> int:
        return _bank_offset(index, len(self.cartridge.prg), 0x2000)

    def _chr_bank_offset(self, index: int) -> int:
        return _bank_offset(index, len(self.cartridge.chr), 0x400)

    def _update_offsets(self) -> None:
        regs = self.registers
        prg = self._prg_bank_offset
        if self.prg_mode:
            self.prg_offsets = [prg(-2), prg(regs[7]), prg(regs[6]), prg(-1)]
        else:
            self.prg_offsets = [prg(regs[6]), prg(regs[7]), prg(-2), prg(-1)]

        chr_ = self._chr_bank_offset
        pairs = [
            chr_(regs[0] & 0xFE), chr_(regs[0] | 1),
            chr_(regs[1] & 0xFE), chr_(regs[1] | 1),
        ]
        singles = [chr_(regs[2]), chr_(regs[3]), chr_(regs[4]), chr_(regs[5])]
        self.chr_offsets = singles + pairs if self.chr_mode else pairs + singles


@dataclass
class Mapper69(Mapper):
    """Sunsoft FME-7: command/parameter registers and a CPU-cycle IRQ counter."""

    cartridge: Cartridge
    command: int = 0
    prg_count: int = field(init=False)
    prg_banks: list[int] = field(init=False)
    ram_select: bool = False
    ram_enabled: bool = False
    chr_banks: list[int] = field(default_factory=lambda: [0] * 8)
    irq_enabled: bool = False
    irq_counter_enabled: bool = False
    irq_counter: int = 0
    irq_pending: bool = False

    def __post_init__(self) -> None:
        count = len(self.cartridge.prg) // 0x2000
        self.prg_count = count & 0xFF
        self.prg_banks = [0, 0, 0, 0, count - 1]

    def on_cpu_step(self, cycles: int) -> None:
        """Count the IRQ counter down; an underflow raises the IRQ."""
        if not self.irq_counter_enabled:
            return
        prev = self.irq_counter
        self.irq_counter = (self.irq_counter - cycles) & 0xFFFF
        if self.irq_enabled and self.irq_counter > prev:
            self.irq_pending = True

    def irq(self) -> bool:
        return self.irq_pending

    def read_mem(self, addr: int) -> int:
        if addr < 0x2000:
            bank, offset = divmod(addr, 0x400)
            index = self.chr_banks[bank] * 0x400 + offset
            return self.cartridge.chr[index % len(self.cartridge.chr)]
        if 0x6000 <= addr < 0x8000 and self.ram_select:
            # Disabled RAM reads as open bus.
            return self.cartridge.sram[addr - 0x6000] if self.ram_enabled else 0
        if addr >= 0x6000:
            bank, offset = divmod(addr - 0x6000, 0x2000)
            index = self.prg_banks[bank] * 0x2000 + offset
            return self.cartridge.prg[index % len(self.cartridge.prg)]
        self._invalid("read", addr)
        return 0

    def write_mem(self, addr: int, data: int) -> None:
        if 0x6000 <= addr < 0x8000:
            if self.ram_select and self.ram_enabled:
                self.cartridge.sram[addr - 0x6000] = data
        elif 0x8000 <= addr < 0xA000:
            self.command = data & 0xF
        elif 0xA000 <= addr < 0xC000:
            self._run_command(data)
        else:
            self._invalid("write", addr)

    def _run_command(self, data: int) -> None:
        command = self.command
        if command <= 0x7:
            self.chr_banks[command] = data
        elif command <= 0xB:
            if command == 0x8:
                self.ram_select = (data >> 6) & 1 == 1
                self.ram_enabled = (data >> 7) & 1 == 1
            self.prg_banks[command - 0x8] = data & 0x1F
        elif command == 0xC:
            self.cartridge.mirror = Mirror(data & 0x3)
        elif command == 0xD:
            self.irq_enabled = data & 1 == 1
            self.irq_counter_enabled = (data >> 7) & 1 == 1
            self.irq_pending = False
        elif command == 0xE:
            self.irq_counter = (self.irq_counter & 0xFF00) | data
        else:
            self.irq_counter = (data << 8) | (self.irq_counter & 0xFF)


_MAPPERS: dict[int, type[Mapper]] = {
    0: Mapper2,
    1: Mapper1,
    2: Mapper2,
    3: Mapper3,
    4: Mapper4,
    7: Mapper7,
    69: Mapper69,
    71: Mapper71,
}


def new_mapper(cartridge: Cartridge) -> Mapper:
    """Create the mapper named by the cartridge header."""
    number = cartridge.header.mapper()
    try:
        cls = _MAPPERS[number]
    except KeyError:
        raise UnsupportedMapperError(f"unsupported mapper: {number}") from None
    return cls(cartridge)