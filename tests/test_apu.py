import struct

from gones.apu import (
    APU,
    FRAME_COUNTER_RATE,
    STATUS_DMC,
    STATUS_FRAME_INTERRUPT,
    STATUS_PULSE1,
    STATUS_TRIANGLE,
)
from gones.channels import LENGTH_TABLE
from gones.config import new_default


class FakeCPU:
    def __init__(self):
        self.stall = 0
        self.reads = []

    def read_mem(self, addr):
        self.reads.append(addr)
        return 0xAA

    def add_stall(self, cycles):
        self.stall += cycles


def make_apu(**channel_flags):
    conf = new_default()
    for name, value in channel_flags.items():
        setattr(conf.audio.channels, name, value)
    return APU(conf)


def test_initial_state():
    apu = make_apu()
    assert apu.square[0].channel1 is True
    assert apu.square[1].channel1 is False
    assert apu.noise.shift_register == 1
    assert apu.frame_period == 4
    assert apu.read_mem(0x4015) == 0


def test_status_reflects_length_counters():
    apu = make_apu()
    apu.write_mem(0x4015, 0x1F)
    apu.write_mem(0x4003, 0x08)
    apu.write_mem(0x400B, 0x08)
    status = apu.read_mem(0x4015)
    assert status & STATUS_PULSE1 == STATUS_PULSE1
    assert status & STATUS_TRIANGLE == STATUS_TRIANGLE
    assert apu.square[0].length_value == LENGTH_TABLE[1]


def test_status_reports_dmc_active():
    apu = make_apu()
    apu.write_mem(0x4013, 0x01)
    apu.write_mem(0x4015, STATUS_DMC)
    assert apu.dmc.curr_len == 0x11
    status = apu.read_mem(0x4015)
    assert status & STATUS_DMC == STATUS_DMC


def test_reading_status_clears_frame_irq():
    apu = make_apu()
    apu.irq_pending = True
    assert apu.read_mem(0x4015) & STATUS_FRAME_INTERRUPT == STATUS_FRAME_INTERRUPT
    assert apu.irq_pending is False
    assert apu.read_mem(0x4015) & STATUS_FRAME_INTERRUPT == 0


def test_other_reads_are_zero():
    apu = make_apu()
    apu.irq_pending = True
    assert apu.read_mem(0x4000) == 0
    assert apu.irq_pending is True


def test_frame_counter_raises_irq_in_four_step_mode():
    apu = make_apu()
    apu.enabled = False
    apu.write_mem(0x4017, 0x00)
    assert apu.irq_enabled is True
    fired_at = None
    for i in range(int(FRAME_COUNTER_RATE * 5)):
        if apu.step():
            fired_at = i
            break
    assert fired_at is not None
    assert apu.frame_value == 3


def test_irq_inhibit_clears_pending():
    apu = make_apu()
    apu.irq_pending = True
    apu.write_mem(0x4017, 0x40)
    assert apu.irq_enabled is False
    assert apu.irq_pending is False


def test_five_step_mode_clocks_length_immediately():
    apu = make_apu()
    apu.write_mem(0x4000, 0x00)  # length counter enabled
    apu.write_mem(0x4015, STATUS_PULSE1)
    apu.write_mem(0x4003, 0x08)
    before = apu.square[0].length_value
    apu.write_mem(0x4017, 0x80)
    assert apu.frame_period == 5
    assert apu.square[0].length_value == before - 1


def test_reset_silences_channels():
    apu = make_apu()
    apu.write_mem(0x4015, 0x1F)
    apu.write_mem(0x4003, 0x08)
    apu.irq_pending = True
    apu.reset()
    assert apu.square[0].length_value == 0
    assert apu.irq_pending is False
    assert apu.square[0].enabled is False


def test_read_returns_silence_when_empty():
    apu = make_apu()
    assert apu.read(32) == bytes(32)


def test_samples_are_stereo_pairs():
    apu = make_apu()
    apu.write_mem(0x4011, 0x7F)
    for _ in range(2000):
        apu.step()
    data = apu.read(4096)
    assert 0 < len(data) < 4096
    assert len(data) % 8 == 0
    for left, right in struct.iter_unpack("<ff", data):
        assert left == right
        assert left > 0


def test_disabled_channel_contributes_nothing():
    apu = make_apu(pcm=False)
    apu.write_mem(0x4011, 0x7F)
    for _ in range(2000):
        apu.step()
    data = apu.read(4096)
    assert 0 < len(data) < 4096
    assert all(left == 0.0 for left, _ in struct.iter_unpack("<ff", data))


def test_clear_drops_buffered_audio():
    apu = make_apu()
    for _ in range(1000):
        apu.step()
    apu.clear()
    assert apu.read(16) == bytes(16)


def test_disabled_apu_produces_no_samples():
    apu = make_apu()
    apu.enabled = False
    apu.write_mem(0x4011, 0x7F)
    for _ in range(2000):
        apu.step()
    assert apu.read(64) == bytes(64)


def test_set_cpu_used_by_dmc():
    apu = make_apu()
    cpu = FakeCPU()
    apu.set_cpu(cpu)
    apu.write_mem(0x4013, 0x00)
    apu.write_mem(0x4015, STATUS_DMC)
    for _ in range(4):
        apu.step()
    assert cpu.reads[0] == apu.dmc.sample_addr
    assert cpu.stall == 4


def test_invalid_write_is_logged(caplog):
    apu = make_apu()
    with caplog.at_level("ERROR"):
        apu.write_mem(0x4016, 1)
    assert "Invalid APU write" in caplog.text