"""CPU memory bus connecting RAM, PPU, APU, controllers and the cartridge."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from gones.apu import APU
from gones.config import Config
from gones.controller import Player, new_controller
from gones.mappers import Mapper

_log = logging.getLogger(__name__)


class Bus:
    """Decodes CPU addresses onto the devices behind them."""

    def __init__(self, conf: Config, mapper: Mapper, ppu: Any, apu: APU) -> None:
        self.cpu_vram = bytearray(0x800)
        self.open_bus = 0
        self._mapper = mapper
        self._ppu = ppu
        self._apu = apu
        self.controller1 = new_controller(conf, Player.PLAYER1)
        self.controller2 = new_controller(conf, Player.PLAYER2)

    @property
    def mapper(self) -> Mapper:
        return self._mapper

    def read_mem(self, addr: int) -> int:
        """Read a byte; most devices also update the open-bus latch."""
        if addr < 0x2000:
            self.open_bus = self.cpu_vram[addr & 0x07FF]
        elif 0x2000 <= addr <= 0x2007 or addr == 0x4014:
            return self._ppu.read_mem(addr)
        elif 0x2008 <= addr < 0x4000:
            return self._ppu.read_mem(addr & 0x2007)
        elif 0x4000 <= addr < 0x4016:
            self.open_bus = self._apu.read_mem(addr)
        elif addr == 0x4016:
            self.open_bus = (self.open_bus & ~0xF & 0xFF) | self.controller1.read()
        elif addr == 0x4017:
            self.open_bus = (self.open_bus & ~0xF & 0xFF) | self.controller2.read()
        elif addr <= 0x4018 and addr < 0x4020:
            pass  # Disabled test registers.
        elif addr >= 0x4020:
            self.open_bus = self._mapper.read_mem(addr)
        else:
            _log.error("Invalid Bus read addr=0x%04X", addr)
            return 0
        return self.open_bus

    def read_mem_safe(self, addr: int) -> int:
        """Read a byte, returning 0xFF for any address whose read has side effects."""
        if (
            0x2001 <= addr < 0x4000
            or 0x4004 <= addr <= 0x4007
            or 0x4015 <= addr <= 0x4017
        ):
            return 0xFF
        return self.read_mem(addr)

    def write_mem(self, addr: int, data: int) -> None:
        """Write a byte to the device at ``addr``."""
        if addr < 0x2000:
            self.cpu_vram[addr & 0x07FF] = data
        elif 0x2000 <= addr <= 0x2007 or addr == 0x4014:
            self._ppu.write_mem(addr, data)
            return
        elif 0x2008 <= addr < 0x4000:
            self._ppu.write_mem(addr & 0x2007, data)
            return
        elif 0x4000 <= addr <= 0x4013 or addr in (0x4015, 0x4017):
            self._apu.write_mem(addr, data)
        elif addr == 0x4016:
            self.controller1.write(data)
            self.controller2.write(data)
        elif addr <= 0x4018 and addr < 0x4020:
            pass  # Disabled test registers.
        elif addr >= 0x4020:
            self._mapper.write_mem(addr, data)
        else:
            _log.error("Invalid Bus write addr=0x%04X", addr)
        self.open_bus = data

    def read_mem16(self, addr: int) -> int:
        """Read a little-endian 16-bit word."""
        lo = self.read_mem(addr)
        hi = self.read_mem((addr + 1) & 0xFFFF)
        return (hi << 8) | lo

    def write_mem16(self, addr: int, data: int) -> None:
        """Write a little-endian 16-bit word."""
        self.write_mem(addr, data & 0xFF)
        self.write_mem((addr + 1) & 0xFFFF, (data >> 8) & 0xFF)

    def update_input(self, is_pressed: Callable[[str], bool]) -> None:
        """Refresh both controllers from a key-pressed predicate."""
        self.controller1.update_input(is_pressed)
        self.controller2.update_input(is_pressed)

    def set_mapper(self, mapper: Mapper) -> None:
        self._mapper = mapper