"""The APU's sound channels: two squares, a triangle, noise and the DMC."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

LENGTH_TABLE = (
    10, 254, 20, 2, 40, 4, 80, 6, 160, 8, 60, 10, 14, 12, 26, 14,
    12, 16, 24, 18, 48, 20, 96, 22, 192, 24, 72, 26, 16, 28, 32, 30,
)

SQUARE_DUTY_TABLE = (
    (0, 1, 0, 0, 0, 0, 0, 0),
    (0, 1, 1, 0, 0, 0, 0, 0),
    (0, 1, 1, 1, 1, 0, 0, 0),
    (1, 0, 0, 1, 1, 1, 1, 1),
)

TRIANGLE_OUTPUT_TABLE = (
    0, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12, 13, 14, 15,
    15, 14, 13, 12, 11, 10, 9, 8, 7, 6, 5, 4, 3, 2, 1, 0,
)

NOISE_PERIOD_TABLE = (
    4, 8, 16, 32, 64, 96, 128, 160, 202, 254, 380, 508, 762, 1016, 2034, 4068,
)

DMC_PERIOD_TABLE = (
    214, 190, 170, 160, 143, 127, 113, 107, 95, 80, 71, 64, 53, 42, 36, 27,
)


class _CPU(Protocol):
    def read_mem(self, addr: int) -> int: ...

    def add_stall(self, cycles: int) -> None: ...


def _length(data: int) -> int:
    return LENGTH_TABLE[(data >> 3) & 0x1F]


@dataclass
class Square:
    """Pulse wave channel with envelope, sweep and length counter."""

    enabled: bool = False
    channel1: bool = False

    duty_mode: int = 0
    duty_value: int = 0

    envelope_enabled: bool = False
    envelope_period: int = 0
    envelope_loop: bool = False
    envelope_start: bool = False
    envelope_vol: int = 0
    envelope_value: int = 0

    volume: int = 0

    sweep_enabled: bool = False
    sweep_period: int = 0
    sweep_negate: bool = False
    sweep_shift: int = 0
    sweep_reload: bool = False
    sweep_value: int = 0

    length_enabled: bool = False
    length_value: int = 0

    timer_period: int = 0
    timer_value: int = 0

    def write(self, addr: int, data: int) -> None:
        """Handle a write to one of the channel's four registers."""
        if addr in (0x4000, 0x4004):
            self.duty_mode = (data >> 6) & 3
            self.length_enabled = (data >> 5) & 1 == 0
            self.envelope_loop = (data >> 5) & 1 == 1
            self.envelope_enabled = (data >> 4) & 1 == 0
            self.volume = data & 0xF
            self.envelope_period = data & 0xF
        elif addr in (0x4001, 0x4005):
            self.sweep_enabled = (data >> 7) & 1 == 1
            self.sweep_period = (data >> 4) & 7
            self.sweep_negate = (data >> 3) & 1 == 1
            self.sweep_shift = data & 7
            self.sweep_reload = True
        elif addr in (0x4002, 0x4006):
            self.timer_period = (self.timer_period & 0x700) | data
        elif addr in (0x4003, 0x4007):
            if self.enabled:
                self.length_value = _length(data)
            self.timer_period = ((data & 7) << 8) | (self.timer_period & 0xFF)
            self.envelope_start = True
            self.duty_value = 0

    def set_enabled(self, value: bool) -> None:
        self.enabled = value
        if not value:
            self.length_value = 0

    def step_timer(self) -> None:
        if self.timer_value == 0:
            self.timer_value = self.timer_period
            self.duty_value = (self.duty_value + 1) % 8
        else:
            self.timer_value -= 1

    def step_envelope(self) -> None:
        if self.envelope_start:
            self.envelope_vol = 15
            self.envelope_value = self.envelope_period
            self.envelope_start = False
        elif self.envelope_value > 0:
            self.envelope_value -= 1
        else:
            if self.envelope_vol > 0:
                self.envelope_vol -= 1
            elif self.envelope_loop:
                self.envelope_vol = 15
            self.envelope_value = self.envelope_period

    def step_sweep(self) -> None:
        if self.sweep_reload:
            if self.sweep_enabled and self.sweep_value == 0:
                self._sweep()
            self.sweep_value = self.sweep_period
            self.sweep_reload = False
        elif self.sweep_value > 0:
            self.sweep_value -= 1
        else:
            if self.sweep_enabled:
                self._sweep()
            self.sweep_value = self.sweep_period

    def _sweep(self) -> None:
        delta = self.timer_period >> self.sweep_shift
        if self.sweep_negate:
            delta = -delta
            if self.channel1:
                delta -= 1
        self.timer_period = (self.timer_period + delta) & 0xFFFF

    def step_length(self) -> None:
        if self.length_enabled and self.length_value > 0:
            self.length_value -= 1

    def output(self) -> int:
        if not self.enabled or self.length_value == 0:
            return 0
        if self.timer_period < 8 or self.timer_period > 0x7FF:
            return 0
        if SQUARE_DUTY_TABLE[self.duty_mode][self.duty_value] == 0:
            return 0
        return self.envelope_vol if self.envelope_enabled else self.volume


@dataclass
class Triangle:
    """Triangle wave channel with linear and length counters."""

    enabled: bool = False

    length_enabled: bool = False
    length_value: int = 0

    counter_period: int = 0
    counter_value: int = 0
    counter_reload: bool = False

    duty_value: int = 0

    timer_period: int = 0
    timer_value: int = 0

    def write(self, addr: int, data: int) -> None:
        if addr == 0x4008:
            self.length_enabled = (data >> 7) & 1 == 0
            self.counter_period = data & 0x7F
        elif addr == 0x400A:
            self.timer_period = (self.timer_period & 0xFF00) | data
        elif addr == 0x400B:
            if self.enabled:
                self.length_value = _length(data)
            self.timer_period = ((data & 7) << 8) | (self.timer_period & 0xFF)
            self.timer_value = self.timer_period
            self.counter_reload = True

    def set_enabled(self, value: bool) -> None:
        self.enabled = value
        if not value:
            self.length_value = 0

    def step_timer(self) -> None:
        if self.timer_value == 0:
            self.timer_value = self.timer_period
            if self.length_value > 0 and self.counter_value > 0 and self.timer_period != 0:
                self.duty_value = (self.duty_value + 1) % 32
        else:
            self.timer_value -= 1

    def step_length(self) -> None:
        if self.length_enabled and self.length_value > 0:
            self.length_value -= 1

    def step_counter(self) -> None:
        if self.counter_reload:
            self.counter_value = self.counter_period
        elif self.counter_value > 0:
            self.counter_value -= 1
        if self.length_enabled:
            self.counter_reload = False

    def output(self) -> int:
        return TRIANGLE_OUTPUT_TABLE[self.duty_value]


@dataclass
class Noise:
    """Pseudo-random noise channel driven by a 15-bit shift register."""

    enabled: bool = False

    envelope_enabled: bool = False
    envelope_loop: bool = False
    envelope_start: bool = False
    envelope_vol: int = 0
    envelope_period: int = 0
    envelope_value: int = 0

    volume: int = 0

    loop_noise: bool = False
    shift_register: int = 0

    timer_period: int = 0
    timer_value: int = 0

    length_enabled: bool = False
    length_value: int = 0

    def write(self, addr: int, data: int) -> None:
        if addr == 0x400C:
            self.envelope_loop = (data >> 5) & 1 == 1
            self.length_enabled = (data >> 5) & 1 == 0
            self.envelope_enabled = (data >> 4) & 1 == 0
            self.envelope_period = data & 0xF
            self.volume = data & 0xF
        elif addr == 0x400E:
            self.loop_noise = (data >> 7) & 1 == 1
            self.timer_period = NOISE_PERIOD_TABLE[data & 0xF]
        elif addr == 0x400F:
            if self.enabled:
                self.length_value = _length(data)
            self.envelope_start = True

    def set_enabled(self, value: bool) -> None:
        self.enabled = value
        if not value:
            self.length_value = 0

    def step_timer(self) -> None:
        if self.timer_value == 0:
            self.timer_value = self.timer_period
            shift = 6 if self.loop_noise else 1
            feedback = (self.shift_register & 1) ^ ((self.shift_register >> shift) & 1)
            self.shift_register = (self.shift_register >> 1) | (feedback << 14)
        else:
            self.timer_value -= 1

    def step_envelope(self) -> None:
        if self.envelope_start:
            self.envelope_vol = 15
            self.envelope_value = self.envelope_period
            self.envelope_start = False
        elif self.envelope_value > 0:
            self.envelope_value -= 1
        else:
            if self.envelope_vol > 0:
                self.envelope_vol -= 1
            elif self.envelope_loop:
                self.envelope_vol = 15
            self.envelope_value = self.envelope_period

    def step_length(self) -> None:
        if self.length_enabled and self.length_value > 0:
            self.length_value -= 1

    def output(self) -> int:
        if not self.enabled or self.length_value == 0:
            return 0
        if self.shift_register & 1 == 1:
            return 0
        return self.envelope_vol if self.envelope_enabled else self.volume


@dataclass
class DMC:
    """Delta modulation channel that plays 1-bit samples fetched from memory."""

    enabled: bool = False
    value: int = 0

    irq_enabled: bool = False
    irq_pending: bool = False
    loop: bool = False

    tick_period: int = 0
    tick_value: int = 0

    sample_addr: int = 0
    sample_len: int = 0

    curr_addr: int = 0
    curr_len: int = 0
    shift_register: int = 0
    bit_count: int = 0

    cpu: Any = field(default=None, repr=False, compare=False)

    def write(self, addr: int, data: int) -> None:
        if addr == 0x4010:
            self.irq_enabled = (data >> 7) & 1 == 1
            if not self.irq_enabled:
                self.irq_pending = False
            self.loop = (data >> 6) & 1 == 1
            self.tick_period = DMC_PERIOD_TABLE[data & 0xF]
        elif addr == 0x4011:
            self.value = data & 0x7F
        elif addr == 0x4012:
            self.sample_addr = 0xC000 | (data << 6)
        elif addr == 0x4013:
            self.sample_len = (data << 4) | 1

    def set_enabled(self, value: bool) -> None:
        self.enabled = value
        if value:
            if self.curr_len == 0:
                self._restart()
        else:
            self.curr_len = 0

    def _restart(self) -> None:
        self.curr_addr = self.sample_addr
        self.curr_len = self.sample_len

    def step_timer(self) -> None:
        if not self.enabled:
            return
        self._step_reader()
        if self.tick_value == 0:
            self.tick_value = self.tick_period
            self._step_shifter()
        else:
            self.tick_value -= 1

    def _step_reader(self) -> None:
        if self.curr_len == 0 or self.bit_count != 0:
            return
        cpu: _CPU = self.cpu
        cpu.add_stall(4)
        self.shift_register = cpu.read_mem(self.curr_addr) & 0xFF
        self.bit_count = 8
        self.curr_addr = (self.curr_addr + 1) & 0xFFFF
        if self.curr_addr == 0:
            self.curr_addr = 0x8000
        self.curr_len -= 1
        if self.curr_len == 0:
            if self.loop:
                self._restart()
            elif self.irq_enabled:
                self.irq_pending = True

    def _step_shifter(self) -> None:
        if self.bit_count == 0:
            return
        if self.shift_register & 1 == 1:
            if self.value <= 125:
                self.value += 2
        elif self.value >= 2:
            self.value -= 2
        self.shift_register >>= 1
        self.bit_count -= 1

    def output(self) -> int:
        return self.value