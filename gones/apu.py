"""Audio processing unit: mixes the channels and streams float samples."""

from __future__ import annotations

import logging
import struct
from typing import Any

from gones.channels import DMC, Noise, Square, Triangle
from gones.config import Config
from gones.consts import AUDIO_SAMPLE_RATE, CPU_FREQUENCY, FRAME_RATE_DIFF
from gones.ringbuffer import RingBuffer

_log = logging.getLogger(__name__)

FRAME_COUNTER_RATE = CPU_FREQUENCY / 240.0
DEFAULT_SAMPLE_RATE = CPU_FREQUENCY / AUDIO_SAMPLE_RATE * FRAME_RATE_DIFF

STATUS_PULSE1 = 1 << 0
STATUS_PULSE2 = 1 << 1
STATUS_TRIANGLE = 1 << 2
STATUS_NOISE = 1 << 3
STATUS_DMC = 1 << 4
STATUS_FRAME_INTERRUPT = 1 << 6
STATUS_DMC_INTERRUPT = 1 << 7

SQUARE_TABLE = tuple(0.0 if i == 0 else 95.52 / (8128.0 / i + 100) for i in range(31))
TND_TABLE = tuple(0.0 if i == 0 else 163.67 / (24329.0 / i + 100) for i in range(203))

_SAMPLE = struct.Struct("<ff")


class APU:
    """The NES APU, clocked once per CPU cycle."""

    def __init__(self, conf: Config) -> None:
        self.enabled = True
        self.sample_rate = DEFAULT_SAMPLE_RATE
        self._conf = conf.audio
        self._buf = RingBuffer(int(conf.audio.buffer_size))
        self._sample = 0.0

        self.square = [Square(channel1=True), Square()]
        self.triangle = Triangle()
        self.noise = Noise(shift_register=1)
        self.dmc = DMC()

        self.cycle = 0
        self.frame_period = 4
        self.frame_value = 0

        self.irq_enabled = False
        self.irq_pending = False

    def write_mem(self, addr: int, data: int) -> None:
        """Handle a CPU write to an APU register."""
        if 0x4000 <= addr <= 0x4003:
            self.square[0].write(addr, data)
        elif 0x4004 <= addr <= 0x4007:
            self.square[1].write(addr, data)
        elif 0x4008 <= addr <= 0x400B:
            self.triangle.write(addr, data)
        elif 0x400C <= addr <= 0x400F:
            self.noise.write(addr, data)
        elif 0x4010 <= addr <= 0x4013:
            self.dmc.write(addr, data)
        elif addr == 0x4015:
            self.square[0].set_enabled(data & STATUS_PULSE1 != 0)
            self.square[1].set_enabled(data & STATUS_PULSE2 != 0)
            self.triangle.set_enabled(data & STATUS_TRIANGLE != 0)
            self.noise.set_enabled(data & STATUS_NOISE != 0)
            self.dmc.set_enabled(data & STATUS_DMC != 0)
            self.dmc.irq_pending = False
        elif addr == 0x4017:
            self.frame_period = 4 + ((data >> 7) & 1)
            self.irq_enabled = (data >> 6) & 1 == 0
            if not self.irq_enabled:
                self.irq_pending = False
            if self.frame_period == 5:
                self._step_envelope()
                self._step_sweep()
                self._step_length()
        else:
            _log.error("Invalid APU write addr=0x%04X", addr)

    def read_mem(self, addr: int) -> int:
        """Read the status register; other addresses read as zero."""
        if addr != 0x4015:
            return 0
        data = 0
        if self.square[0].length_value > 0:
            data |= STATUS_PULSE1
        if self.square[1].length_value > 0:
            data |= STATUS_PULSE2
        if self.triangle.length_value > 0:
            data |= STATUS_TRIANGLE
        if self.noise.length_value > 0:
            data |= STATUS_NOISE
        if self.dmc.curr_len > 0:
            data |= STATUS_DMC
        if self.irq_pending:
            data |= STATUS_FRAME_INTERRUPT
        if self.dmc.irq_pending:
            data |= STATUS_DMC_INTERRUPT
        self.irq_pending = False
        return data

    def reset(self) -> None:
        self.irq_pending = False
        self.write_mem(0x4015, 0)

    def step(self) -> bool:
        """Advance one CPU cycle; return whether an interrupt is pending."""
        cycle1 = float(self.cycle)
        self.cycle += 1
        cycle2 = float(self.cycle)

        self._step_timer()

        if int(cycle1 / FRAME_COUNTER_RATE) != int(cycle2 / FRAME_COUNTER_RATE):
            self._step_frame_counter()

        if self.enabled:
            self._sample += self._output()
            if int(cycle1 / self.sample_rate) != int(cycle2 / self.sample_rate):
                self._send_sample()

        return self.irq_pending or self.dmc.irq_pending

    def set_cpu(self, cpu: Any) -> None:
        """Attach the CPU the DMC fetches samples from."""
        self.dmc.cpu = cpu

    def _step_frame_counter(self) -> None:
        self.frame_value = (self.frame_value + 1) % self.frame_period
        if self.frame_value in (0, 2):
            self._step_envelope()
        elif self.frame_value in (1, 3):
            self._step_envelope()
            self._step_sweep()
            self._step_length()
            if self.frame_value == 3 and self.frame_period == 4 and self.irq_enabled:
                self.irq_pending = True

    def _step_timer(self) -> None:
        if self.cycle % 2 == 0:
            self.square[0].step_timer()
            self.square[1].step_timer()
            self.noise.step_timer()
            self.dmc.step_timer()
        self.triangle.step_timer()

    def _step_envelope(self) -> None:
        self.square[0].step_envelope()
        self.square[1].step_envelope()
        self.triangle.step_counter()
        self.noise.step_envelope()

    def _step_sweep(self) -> None:
        self.square[0].step_sweep()
        self.square[1].step_sweep()

    def _step_length(self) -> None:
        self.square[0].step_length()
        self.square[1].step_length()
        self.triangle.step_length()
        self.noise.step_length()

    def _output(self) -> float:
        channels = self._conf.channels
        square = 0
        if channels.square1:
            square += self.square[0].output()
        if channels.square2:
            square += self.square[1].output()
        tnd = 0
        if channels.triangle:
            tnd += 3 * self.triangle.output()
        if channels.noise:
            tnd += 2 * self.noise.output()
        if channels.pcm:
            tnd += self.dmc.output()
        return SQUARE_TABLE[square] + TND_TABLE[tnd]

    def _send_sample(self) -> None:
        result = self._sample / self.sample_rate
        self._sample = 0.0
        self._buf.write(_SAMPLE.pack(result, result))

    def clear(self) -> None:
        """Drop all buffered audio."""
        self._buf.reset()

    def read(self, size: int) -> bytes:
        """Return buffered stereo float32 samples, or silence if none are ready."""
        data = self._buf.read(size)
        if not data:
            return bytes(size)
        return data