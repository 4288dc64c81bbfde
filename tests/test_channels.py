from gones.channels import DMC, LENGTH_TABLE, Noise, Square, Triangle


class FakeCPU:
    def __init__(self, memory=None, default=0):
        self.memory = memory or {}
        self.default = default
        self.stall = 0
        self.reads = []

    def read_mem(self, addr):
        self.reads.append(addr)
        return self.memory.get(addr, self.default)

    def add_stall(self, cycles):
        self.stall += cycles


# --- Square ---------------------------------------------------------------

def test_square_control_register():
    sq = Square()
    sq.write(0x4000, 0xBF)
    assert sq.duty_mode == 0xBF >> 6
    assert sq.length_enabled is False
    assert sq.envelope_loop is True
    assert sq.envelope_enabled is False
    assert sq.volume == 0xBF & 0xF
    assert sq.envelope_period == 0xBF & 0xF


def test_square_length_loaded_only_when_enabled():
    sq = Square()
    sq.write(0x4003, 0x08)
    assert sq.length_value == 0
    sq.set_enabled(True)
    sq.write(0x4003, 0x08)
    assert sq.length_value == 254
    assert sq.envelope_start is True
    sq.set_enabled(False)
    assert sq.length_value == 0


def test_square_timer_period_combines_registers():
    sq = Square()
    sq.write(0x4002, 0x34)
    sq.write(0x4003, 0x05)
    assert sq.timer_period == (5 << 8) | 0x34
    sq.write(0x4006, 0x12)
    assert sq.timer_period == (5 << 8) | 0x12


def test_square_output_follows_duty_and_volume():
    sq = Square(enabled=True)
    sq.write(0x4000, 0x3A)  # duty 0, constant volume 10
    sq.write(0x4002, 0x40)
    sq.write(0x4003, 0x08)
    assert sq.duty_value == 0
    assert sq.output() == 0
    sq.step_timer()  # timer_value was 0: reload and advance duty
    assert sq.duty_value == 1
    assert sq.output() == 0x3A & 0xF


def test_square_silent_when_period_too_small():
    sq = Square(enabled=True)
    sq.write(0x4000, 0x3F)
    sq.write(0x4002, 0x07)
    sq.write(0x4003, 0x08)
    sq.step_timer()
    assert sq.output() == 0


def test_square_envelope_decays_then_loops():
    sq = Square()
    sq.write(0x4000, 0x20)  # loop, envelope period 0
    sq.envelope_start = True
    sq.step_envelope()
    assert sq.envelope_vol == 15
    for _ in range(15):
        sq.step_envelope()
    assert sq.envelope_vol == 0
    sq.step_envelope()
    assert sq.envelope_vol == 15


def test_square_sweep_negate_channel1_one_less():
    ch1 = Square(channel1=True, timer_period=0x100)
    ch2 = Square(timer_period=0x100)
    for sq in (ch1, ch2):
        sq.write(0x4001 if sq.channel1 else 0x4005, 0x89)  # enabled, period 0, negate, shift 1
        sq.step_sweep()
    assert ch2.timer_period < 0x100
    assert ch1.timer_period == ch2.timer_period - 1


def test_square_length_counter_halts_when_disabled():
    sq = Square(enabled=True)
    sq.write(0x4000, 0x20)  # length halt
    sq.write(0x4003, 0x08)
    before = sq.length_value
    sq.step_length()
    assert sq.length_value == before


# --- Triangle -------------------------------------------------------------

def test_triangle_counter_reload():
    tri = Triangle()
    tri.write(0x4008, 0x05)
    tri.set_enabled(True)
    tri.write(0x400B, 0x08)
    assert tri.length_value == LENGTH_TABLE[1]
    assert tri.counter_reload is True
    tri.step_counter()
    assert tri.counter_value == 5
    assert tri.counter_reload is False
    tri.step_counter()
    assert tri.counter_value == 4


def test_triangle_sequence_cycles():
    tri = Triangle()
    tri.write(0x4008, 0x7F)
    tri.set_enabled(True)
    tri.write(0x400A, 0x01)
    tri.write(0x400B, 0x08)
    tri.step_counter()
    outputs = []
    for _ in range(64):
        tri.step_timer()
        outputs.append(tri.output())
    assert tri.duty_value == 0
    assert max(outputs) == 15
    assert min(outputs) == 0


def test_triangle_does_not_advance_without_counter():
    tri = Triangle()
    tri.set_enabled(True)
    tri.write(0x400A, 0x01)
    tri.write(0x400B, 0x08)
    for _ in range(10):
        tri.step_timer()
    assert tri.duty_value == 0


# --- Noise ----------------------------------------------------------------

def test_noise_period_register():
    n = Noise()
    n.write(0x400E, 0x80)
    assert n.loop_noise is True
    assert n.timer_period == 4


def test_noise_shift_register_stays_nonzero_15_bit():
    for mode in (0x00, 0x80):
        n = Noise(shift_register=1)
        n.write(0x400E, mode)
        seen = set()
        for _ in range(2000):
            n.step_timer()
            assert 0 < n.shift_register < (1 << 15)
            seen.add(n.shift_register)
        assert len(seen) > 1


def test_noise_output_muted_by_shift_bit():
    n = Noise(enabled=True, shift_register=1, length_value=5)
    n.write(0x400C, 0x3C)
    assert n.output() == 0
    n.shift_register = 2
    assert n.output() == 0xC


def test_noise_length_loaded_only_when_enabled():
    n = Noise()
    n.write(0x400F, 0x08)
    assert n.length_value == 0
    assert n.envelope_start is True
    n.set_enabled(True)
    n.write(0x400F, 0x08)
    assert n.length_value == LENGTH_TABLE[1]


# --- DMC ------------------------------------------------------------------

def test_dmc_sample_registers():
    d = DMC()
    d.write(0x4012, 0)
    d.write(0x4013, 0)
    d.write(0x4011, 0xFF)
    assert d.sample_addr == 0xC000
    assert d.sample_len == 1
    assert d.value == 0x7F


def test_dmc_irq_disable_clears_pending():
    d = DMC(irq_pending=True)
    d.write(0x4010, 0x0F)
    assert d.irq_pending is False
    assert d.irq_enabled is False
    d.write(0x4010, 0xC0)
    assert d.irq_enabled is True
    assert d.loop is True


def test_dmc_reads_sample_and_raises_irq():
    cpu = FakeCPU(default=0xFF)
    d = DMC(cpu=cpu)
    d.write(0x4010, 0x80)
    d.write(0x4012, 0)
    d.write(0x4013, 0)
    d.set_enabled(True)
    assert d.curr_len == d.sample_len
    d.step_timer()
    assert cpu.reads == [0xC000]
    assert cpu.stall == 4
    assert d.curr_len == 0
    assert d.irq_pending is True


def test_dmc_loop_restarts_sample():
    cpu = FakeCPU()
    d = DMC(cpu=cpu)
    d.write(0x4010, 0x40)
    d.write(0x4013, 0)
    d.set_enabled(True)
    d.step_timer()
    assert d.curr_len == d.sample_len
    assert d.curr_addr == d.sample_addr
    assert d.irq_pending is False


def test_dmc_value_stays_in_range():
    d = DMC(cpu=FakeCPU(default=0xFF))
    d.write(0x4010, 0xCF)
    d.write(0x4011, 0x7E)
    d.set_enabled(True)
    for _ in range(500):
        d.step_timer()
        assert 0 <= d.output() <= 127
    d2 = DMC(cpu=FakeCPU(default=0x00))
    d2.write(0x4010, 0x4F)
    d2.write(0x4011, 0x01)
    d2.set_enabled(True)
    for _ in range(500):
        d2.step_timer()
        assert 0 <= d2.output() <= 127


def test_dmc_disable_stops_playback():
    d = DMC(cpu=FakeCPU())
    d.write(0x4013, 0x10)
    d.set_enabled(True)
    assert d.curr_len > 0
    d.set_enabled(False)
    assert d.curr_len == 0